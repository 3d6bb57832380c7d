"""
Online Clusterer
================

Assigns a spatial-temporal cluster id to each accepted record in a single
forward pass with bounded memory.

Records within radius r of a live anchor join that anchor's cluster. An
anchor stays live while it keeps being refreshed at least once per time
window t; anchors older than t are evicted and never matched again.

Algorithm (per record at (x, y), time ts):
    1. cell = (floor(x / r), floor(y / r))
    2. Scan the 3x3 block of cells around `cell`
    3. In each bucket, evict anchors whose age (ts - last_seen) exceeds t;
       the first remaining anchor within distance r is the match
    4. No match: create a new anchor (next id) in `cell`
    5. Match: move the anchor to (x, y) and set last_seen = ts. The anchor
       stays in its original bucket even if the move crosses a cell border.
    6. Return the anchor id

Storage:
    Anchors live in an arena keyed by id. The grid maps a cell to the list of
    anchor ids bucketed there, so an in-place update is seen through every
    lookup path. Each anchor id is in exactly one bucket.

Eviction:
    Lazy eviction during lookup is what keeps stale anchors from matching.
    `prune()` sweeps the whole grid with the same predicate and only bounds
    memory; calling it at any cadence does not change assigned ids.

Approximation:
    Only the latest state of each anchor is kept. Two close records more than
    t apart are not merged even if other records bridged them earlier, and
    the first qualifying anchor wins rather than the nearest one.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from defect_analyzer.models.record import InspectionRecord


logger = logging.getLogger(__name__)


Cell = Tuple[int, int]

# Scan order of the neighbouring cells around a record's cell
_NEIGHBOR_OFFSETS: Tuple[Cell, ...] = tuple(
    (dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1)
)


@dataclass(slots=True)
class ClusterAnchor:
    """
    Representative point of a live cluster.

    Attributes:
        anchor_id: Cluster id, unique within a run, starting at 1
        x: Position of the most recently merged record
        y: Position of the most recently merged record
        last_seen: Timestamp of the most recently merged record
    """

    anchor_id: int
    x: float
    y: float
    last_seen: datetime


class OnlineClusterer:
    """
    Grid-indexed sliding-window clusterer.

    One instance per run; the id counter is scoped to the instance.

    Attributes:
        radius: Cluster radius r (grid cell size)
        time_window: Cluster time window t

    Example:
        clusterer = OnlineClusterer(radius=3.0, time_window=timedelta(seconds=60))

        for record in records:
            cluster_id = clusterer.assign_record(record)
    """

    def __init__(self, radius: float, time_window: timedelta) -> None:
        """
        Initialize clusterer.

        Args:
            radius: Cluster radius, must be positive
            time_window: Anchor lifetime without refresh, must be positive
        """
        if not math.isfinite(radius) or radius <= 0:
            raise ValueError("radius must be positive and finite")
        if time_window <= timedelta(0):
            raise ValueError("time_window must be positive")

        self.radius = radius
        self.time_window = time_window
        self._radius_sq = radius * radius

        self._anchors: Dict[int, ClusterAnchor] = {}
        self._grid: Dict[Cell, List[int]] = {}
        self._next_id: int = 1

        self._evicted_on_lookup: int = 0
        self._pruned: int = 0

    @property
    def anchor_count(self) -> int:
        """Number of anchors currently held."""
        return len(self._anchors)

    @property
    def clusters_created(self) -> int:
        """Number of cluster ids assigned so far."""
        return self._next_id - 1

    def assign_record(self, record: InspectionRecord) -> int:
        """Assign a cluster id to a record."""
        return self.assign(record.x, record.y, record.timestamp)

    def assign(self, x: float, y: float, timestamp: datetime) -> int:
        """
        Assign a cluster id to a point.

        Args:
            x: X position
            y: Y position
            timestamp: Observation time

        Returns:
            Positive cluster id
        """
        cell = self._cell(x, y)
        anchor = self._find_anchor(cell, x, y, timestamp)

        if anchor is None:
            anchor = ClusterAnchor(
                anchor_id=self._next_id,
                x=x,
                y=y,
                last_seen=timestamp,
            )
            self._next_id += 1
            self._anchors[anchor.anchor_id] = anchor
            self._grid.setdefault(cell, []).append(anchor.anchor_id)
        else:
            # Drift without rebucketing
            anchor.x = x
            anchor.y = y
            anchor.last_seen = timestamp

        return anchor.anchor_id

    def prune(self, now: datetime) -> int:
        """
        Evict every anchor older than the time window.

        Args:
            now: Reference time, normally the latest record timestamp

        Returns:
            Number of anchors removed
        """
        removed = 0
        for cell in list(self._grid):
            bucket = self._grid[cell]
            for i in range(len(bucket) - 1, -1, -1):
                if self._is_expired(self._anchors[bucket[i]], now):
                    self._evict(bucket, i)
                    removed += 1
            if not bucket:
                del self._grid[cell]

        self._pruned += removed
        if removed > 0:
            logger.debug(f"Pruned {removed} expired anchors, {len(self._anchors)} remain")
        return removed

    def get_metrics(self) -> dict:
        """Get clusterer metrics for observability."""
        return {
            "clusters_created": self.clusters_created,
            "active_anchors": len(self._anchors),
            "occupied_cells": len(self._grid),
            "evicted_on_lookup": self._evicted_on_lookup,
            "pruned": self._pruned,
        }

    def _cell(self, x: float, y: float) -> Cell:
        return (math.floor(x / self.radius), math.floor(y / self.radius))

    def _is_expired(self, anchor: ClusterAnchor, now: datetime) -> bool:
        return now - anchor.last_seen > self.time_window

    def _evict(self, bucket: List[int], index: int) -> None:
        anchor_id = bucket.pop(index)
        del self._anchors[anchor_id]

    def _find_anchor(
        self,
        cell: Cell,
        x: float,
        y: float,
        timestamp: datetime,
    ) -> Optional[ClusterAnchor]:
        """Return the first live anchor within the radius, evicting stale ones on the way."""
        cx, cy = cell
        for dx, dy in _NEIGHBOR_OFFSETS:
            key = (cx + dx, cy + dy)
            bucket = self._grid.get(key)
            if not bucket:
                continue

            for i in range(len(bucket) - 1, -1, -1):
                anchor = self._anchors[bucket[i]]
                if self._is_expired(anchor, timestamp):
                    self._evict(bucket, i)
                    self._evicted_on_lookup += 1
                    continue
                ddx = anchor.x - x
                ddy = anchor.y - y
                if ddx * ddx + ddy * ddy <= self._radius_sq:
                    return anchor

            if not bucket:
                del self._grid[key]

        return None
