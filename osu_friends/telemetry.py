"""Metrics for bot commands and verification attempts."""
from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp REAL NOT NULL,
    metric_type TEXT NOT NULL,
    name TEXT NOT NULL,
    value REAL NOT NULL,
    tags TEXT,
    metadata TEXT
);
CREATE INDEX IF NOT EXISTS idx_metrics_type_name
    ON metrics (metric_type, name);
"""


class MetricType(Enum):
    COMMAND_USAGE = "command_usage"
    ERROR_RATE = "error_rate"
    VERIFICATION = "verification"


@dataclass
class MetricEvent:
    timestamp: float
    metric_type: MetricType
    name: str
    value: float
    tags: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


class TelemetryCollector:
    """Keeps metric events in memory and writes them out in batches.

    Events reach SQLite when :meth:`flush` is called, or on the first
    :meth:`record` after ``flush_interval`` seconds have passed.
    """

    def __init__(self, db_path: Optional[Path] = None, flush_interval: float = 60.0):
        self.db_path = db_path or Path("telemetry.db")
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript(_SCHEMA)
        self._metrics_buffer: List[MetricEvent] = []
        self._flush_interval = flush_interval
        self._last_flush = time.time()

    def track_command(
        self,
        command_name: str,
        user_id: str,
        guild_id: str,
        success: bool = True,
        duration_ms: Optional[float] = None,
    ) -> None:
        self.record(
            MetricType.COMMAND_USAGE,
            command_name,
            1.0,
            tags={"user_id": user_id, "guild_id": guild_id, "success": str(success)},
            metadata={"duration_ms": duration_ms} if duration_ms else {},
        )

    def track_error(
        self,
        error_type: str,
        *,
        command: Optional[str] = None,
        user_id: Optional[str] = None,
        error_details: Optional[str] = None,
    ) -> None:
        tags = {key: value for key, value in (("command", command), ("user_id", user_id)) if value}
        self.record(
            MetricType.ERROR_RATE,
            error_type,
            1.0,
            tags=tags,
            metadata={"error_details": error_details} if error_details else {},
        )

    def track_verification(
        self,
        outcome: str,
        user_id: str,
        duration_ms: float,
        *,
        trigger: str,
    ) -> None:
        """Record how one verification attempt ended and how long it took."""

        self.record(
            MetricType.VERIFICATION,
            outcome,
            duration_ms,
            tags={"user_id": user_id, "trigger": trigger},
        )

    def record(
        self,
        metric_type: MetricType,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        now = time.time()
        self._metrics_buffer.append(
            MetricEvent(now, metric_type, name, value, tags or {}, metadata or {})
        )
        if now - self._last_flush > self._flush_interval:
            self.flush()

    def flush(self) -> None:
        if not self._metrics_buffer:
            return
        rows = [
            (
                event.timestamp,
                event.metric_type.value,
                event.name,
                event.value,
                json.dumps(event.tags),
                json.dumps(event.metadata),
            )
            for event in self._metrics_buffer
        ]
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.executemany(
                    "INSERT INTO metrics (timestamp, metric_type, name, value, tags, metadata) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    rows,
                )
        except sqlite3.Error as exc:
            logger.error("Failed to flush %d metrics: %s", len(rows), exc)
            return
        self._metrics_buffer.clear()
        self._last_flush = time.time()

    def get_verification_summary(self, hours: int = 24) -> Dict[str, Dict[str, float]]:
        """Count and average duration per verification outcome."""

        self.flush()
        cutoff = time.time() - hours * 3600
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT name, COUNT(*), AVG(value) FROM metrics "
                "WHERE metric_type = ? AND timestamp >= ? GROUP BY name",
                (MetricType.VERIFICATION.value, cutoff),
            ).fetchall()
        return {
            name: {"count": count, "avg_duration_ms": avg or 0.0}
            for name, count, avg in rows
        }


_telemetry: Optional[TelemetryCollector] = None


def get_telemetry() -> TelemetryCollector:
    """Return the process-wide collector, creating it on first use."""
    global _telemetry
    if _telemetry is None:
        _telemetry = TelemetryCollector(Path(os.getenv("OSU_FRIENDS_TELEMETRY_DB", "telemetry.db")))
    return _telemetry


__all__ = ["MetricEvent", "MetricType", "TelemetryCollector", "get_telemetry"]
