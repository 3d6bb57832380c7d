"""Allow ``python -m defect_analyzer``."""

from defect_analyzer.cli import main


if __name__ == "__main__":
    main()
