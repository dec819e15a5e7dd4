"""
Sinks recording the outcome of every pull.
"""

import itertools

from sst_sync.core.models import SyncLogEntry


class SyncLogSink:
    """Receives one SyncLogEntry per pull attempt."""

    def record(self, entry: SyncLogEntry) -> None:
        raise NotImplementedError

    def recent(self, limit: int = 20) -> list[SyncLogEntry]:
        raise NotImplementedError


class InMemorySyncLog(SyncLogSink):
    """Keeps the newest ``max_entries`` entries in process memory."""

    def __init__(self, max_entries: int = 1000) -> None:
        self.entries: list[SyncLogEntry] = []
        self.max_entries = max_entries
        self._ids = itertools.count(1)

    def record(self, entry: SyncLogEntry) -> None:
        self.entries.append(entry.model_copy(update={"log_id": next(self._ids)}))
        del self.entries[: -self.max_entries]

    def recent(self, limit: int = 20) -> list[SyncLogEntry]:
        return list(reversed(self.entries[-limit:]))
