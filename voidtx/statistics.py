"""
Aggregate settlement statistics.

Counters only grow, and only the settlement engine writes them: once per
completed call, after reconciliation succeeded.
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path

from voidtx.errors import StatisticsError


@dataclass(frozen=True)
class SettlementStatistics:
    """Snapshot of the aggregate counters."""

    total_payments_processed: int = 0
    total_volume_processed: int = 0  # in RAO

    def to_dict(self) -> dict:
        return {
            "totalPaymentsProcessed": self.total_payments_processed,
            "totalVolumeProcessed": self.total_volume_processed,
        }

    @staticmethod
    def from_dict(data: dict) -> "SettlementStatistics":
        return SettlementStatistics(
            total_payments_processed=int(data["totalPaymentsProcessed"]),
            total_volume_processed=int(data["totalVolumeProcessed"]),
        )


class StatisticsStore:
    """Thread-safe in-memory counters."""

    def __init__(self, initial: SettlementStatistics = SettlementStatistics()):
        self._lock = threading.Lock()
        self._payments = initial.total_payments_processed
        self._volume = initial.total_volume_processed

    def record(self, payments: int, volume: int) -> SettlementStatistics:
        """Add one call's successful payments and delivered volume."""
        if payments < 0 or volume < 0:
            raise ValueError("Statistics only grow: payments and volume must be >= 0")
        with self._lock:
            snapshot = SettlementStatistics(
                total_payments_processed=self._payments + payments,
                total_volume_processed=self._volume + volume,
            )
            self._persist(snapshot)
            self._payments = snapshot.total_payments_processed
            self._volume = snapshot.total_volume_processed
            return snapshot

    def snapshot(self) -> SettlementStatistics:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> SettlementStatistics:
        return SettlementStatistics(
            total_payments_processed=self._payments,
            total_volume_processed=self._volume,
        )

    def _persist(self, snapshot: SettlementStatistics) -> None:
        pass


class FileStatisticsStore(StatisticsStore):
    """Counters persisted to a JSON file, rewritten atomically on every record."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> SettlementStatistics:
        if not self.path.exists():
            return SettlementStatistics()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return SettlementStatistics.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StatisticsError(f"Corrupt statistics file {self.path}: {e}")

    def _persist(self, snapshot: SettlementStatistics) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StatisticsError(f"Failed to write statistics file {self.path}: {e}")
