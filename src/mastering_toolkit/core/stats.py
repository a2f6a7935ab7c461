"""Completion counters kept outside the mastering core."""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from .base import MasteringResult

LOG = logging.getLogger(__name__)


class StatsRecorder(ABC):
    """Receives a notification for every completed master."""

    @abstractmethod
    def record_completion(self, result: MasteringResult) -> None:
        """Count one finished job."""


class NullStatsRecorder(StatsRecorder):
    def record_completion(self, result: MasteringResult) -> None:
        pass


class JsonStatsRecorder(StatsRecorder):
    """
    Persistent counters in a JSON file.

    A stats failure never fails a job that already produced its artifacts,
    so I/O errors are logged and dropped.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._stats = self._load()

    def _load(self) -> dict[str, Any]:
        empty: dict[str, Any] = {"tracks_mastered": 0, "tracks_by_preset": {}, "last_updated": None}
        if not self.path.exists():
            return empty
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            LOG.warning("Failed to load stats from %s: %s", self.path, e)
            return empty

        if not isinstance(data, dict):
            LOG.warning("Ignoring malformed stats file %s", self.path)
            return empty
        empty.update(data)
        return empty

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump(self._stats, f, indent=2)
        except OSError as e:
            LOG.warning("Failed to save stats to %s: %s", self.path, e)

    def record_completion(self, result: MasteringResult) -> None:
        with self._lock:
            self._stats["tracks_mastered"] = int(self._stats.get("tracks_mastered", 0)) + 1
            by_preset = self._stats.setdefault("tracks_by_preset", {})
            by_preset[result.preset_id] = int(by_preset.get(result.preset_id, 0)) + 1
            self._stats["last_updated"] = datetime.now(timezone.utc).isoformat()
            self._save()

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return json.loads(json.dumps(self._stats))
