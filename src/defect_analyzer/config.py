"""
DefectAnalyzer Configuration
============================

This module handles configuration loading for the defect analyzer.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    DEFECT_ANALYZER_INPUT_ROOT         -> paths.input_root
    DEFECT_ANALYZER_OUTPUT_ROOT        -> paths.output_root
    DEFECT_ANALYZER_CODEBOOK_PATH      -> paths.codebook_path
    DEFECT_ANALYZER_CLUSTER_RADIUS     -> analysis.cluster_radius
    DEFECT_ANALYZER_CLUSTER_WINDOW_SEC -> analysis.cluster_time_window_sec
    DEFECT_ANALYZER_ALARM_WINDOW_SEC   -> analysis.alarm_window_sec
    DEFECT_ANALYZER_ALARM_THRESHOLD    -> analysis.alarm_threshold
    DEFECT_ANALYZER_PRUNE_EVERY        -> analysis.prune_every
    DEFECT_ANALYZER_ENCODING           -> ingest.encoding
    DEFECT_ANALYZER_LOG_LEVEL          -> logging.level

Example:
    from defect_analyzer.config import settings

    print(settings.analysis.cluster_radius)
    print(settings.paths.output_root)
"""

import json
import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


ENV_PREFIX = "DEFECT_ANALYZER_"


# =============================================================================
# Configuration Models
# =============================================================================

class PathsConfig(BaseModel):
    """Input, output and codebook locations."""

    input_root: Optional[str] = Field(
        default=None,
        description="Root directory laid out as <IC>/<yyyyMMdd>/<Lot>/**/*.csv",
    )
    output_root: Optional[str] = Field(
        default=None,
        description="Directory under which the exports/ folder is created",
    )
    codebook_path: Optional[str] = Field(
        default=None,
        description="Text file of NN_Key defect code lines",
    )


class AnalysisConfig(BaseModel):
    """Default run parameters for clustering and alarm bucketing."""

    cluster_radius: float = Field(
        default=3.0,
        gt=0,
        description="Cluster radius r (same unit as record X/Y)",
    )
    cluster_time_window_sec: float = Field(
        default=60.0,
        gt=0,
        description="Cluster time window t in seconds",
    )
    alarm_window_sec: float = Field(
        default=300.0,
        gt=0,
        description="Alarm bucket width in seconds",
    )
    alarm_threshold: int = Field(
        default=10,
        ge=0,
        description="Alarm raised when a bucket count reaches this value",
    )
    prune_every: int = Field(
        default=10000,
        ge=1,
        description="Run a full anchor prune every N accepted records",
    )


class IngestConfig(BaseModel):
    """CSV ingestion configuration."""

    encoding: str = Field(default="utf-8-sig", description="Source file encoding")
    delimiters: List[str] = Field(
        default_factory=lambda: [",", "\t", ";", "|"],
        min_length=1,
        description="Delimiter candidates, in tie-break order",
    )
    yield_every: int = Field(
        default=500,
        ge=1,
        description="Yield to the event loop every N rows",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for DefectAnalyzer.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    paths: PathsConfig = Field(default_factory=PathsConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Paths
    if env_input := os.environ.get(ENV_PREFIX + "INPUT_ROOT"):
        config_data.setdefault("paths", {})["input_root"] = env_input
    if env_output := os.environ.get(ENV_PREFIX + "OUTPUT_ROOT"):
        config_data.setdefault("paths", {})["output_root"] = env_output
    if env_codebook := os.environ.get(ENV_PREFIX + "CODEBOOK_PATH"):
        config_data.setdefault("paths", {})["codebook_path"] = env_codebook

    # Analysis defaults
    if env_radius := os.environ.get(ENV_PREFIX + "CLUSTER_RADIUS"):
        config_data.setdefault("analysis", {})["cluster_radius"] = float(env_radius)
    if env_cw := os.environ.get(ENV_PREFIX + "CLUSTER_WINDOW_SEC"):
        config_data.setdefault("analysis", {})["cluster_time_window_sec"] = float(env_cw)
    if env_aw := os.environ.get(ENV_PREFIX + "ALARM_WINDOW_SEC"):
        config_data.setdefault("analysis", {})["alarm_window_sec"] = float(env_aw)
    if env_th := os.environ.get(ENV_PREFIX + "ALARM_THRESHOLD"):
        config_data.setdefault("analysis", {})["alarm_threshold"] = int(env_th)
    if env_prune := os.environ.get(ENV_PREFIX + "PRUNE_EVERY"):
        config_data.setdefault("analysis", {})["prune_every"] = int(env_prune)

    # Ingest
    if env_enc := os.environ.get(ENV_PREFIX + "ENCODING"):
        config_data.setdefault("ingest", {})["encoding"] = env_enc

    # Logging
    if env_log := os.environ.get(ENV_PREFIX + "LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; message text is escaped by json.dumps."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    datefmt = "%Y-%m-%dT%H:%M:%S"

    if settings.logging.format == "json":
        formatter = JsonLogFormatter(datefmt=datefmt)
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt=datefmt,
        )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logging.basicConfig(level=log_level, handlers=[handler])


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
