"""
In-memory snapshot of the remote adherence table and the queries the
dashboard runs against it.
"""

import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Sequence

from pydantic import BaseModel

from sst_sync.core.models import AdherenceRecord, AdherenceStatus

GUEST_SEPARATOR = ", "


class SyncStatus(BaseModel):
    total: int
    last_synced_at: datetime | None = None
    seconds_since_last_sync: int | None = None


class SectorCount(BaseModel):
    sector: str
    count: int


class AdherenceStatistics(BaseModel):
    total_routes: int
    completed_routes: int
    pending_routes: int
    completion_percentage: int
    sectors_inspected: int
    guest_sectors: list[SectorCount]


def compute_statistics(records: Sequence[AdherenceRecord]) -> AdherenceStatistics:
    """
    Aggregate figures over a set of adherence records.

    Guest lists are split on ", " and counted per sector.
    """
    total = len(records)
    completed = sum(1 for r in records if r.status is AdherenceStatus.COMPLETED)
    pending = sum(1 for r in records if r.status is AdherenceStatus.PENDING)

    guests: Counter[str] = Counter()
    for record in records:
        if record.guests:
            guests.update(g for g in record.guests.split(GUEST_SEPARATOR) if g)

    return AdherenceStatistics(
        total_routes=total,
        completed_routes=completed,
        pending_routes=pending,
        completion_percentage=round(completed / total * 100) if total else 0,
        sectors_inspected=len({r.sector for r in records}),
        guest_sectors=[SectorCount(sector=s, count=c) for s, c in guests.items()],
    )


class SnapshotCache:
    """
    Holds the last complete pull.

    ``replace`` swaps the whole snapshot under a lock; readers always see
    either the previous or the new snapshot, never a mix.
    """

    def __init__(self, clock=lambda: datetime.now(timezone.utc)) -> None:
        self._records: tuple[AdherenceRecord, ...] = ()
        self._last_synced_at: datetime | None = None
        self._clock = clock
        self.lock = asyncio.Lock()

    @property
    def records(self) -> tuple[AdherenceRecord, ...]:
        return self._records

    @property
    def last_synced_at(self) -> datetime | None:
        return self._last_synced_at

    async def replace(self, records: Sequence[AdherenceRecord]) -> None:
        async with self.lock:
            self._records = tuple(records)
            self._last_synced_at = self._clock()

    def find_route(self, route_number: str) -> AdherenceRecord | None:
        return next((r for r in self._records if r.route_number == route_number), None)

    def filter_by_sector(self, sector: str) -> list[AdherenceRecord]:
        return [r for r in self._records if r.sector == sector]

    def filter_by_status(self, status: AdherenceStatus | str) -> list[AdherenceRecord]:
        wanted = AdherenceStatus(status)
        return [r for r in self._records if r.status is wanted]

    def status(self) -> SyncStatus:
        elapsed = None
        if self._last_synced_at is not None:
            elapsed = int((self._clock() - self._last_synced_at).total_seconds())
        return SyncStatus(
            total=len(self._records),
            last_synced_at=self._last_synced_at,
            seconds_since_last_sync=elapsed,
        )

    def statistics(self) -> AdherenceStatistics:
        return compute_statistics(self._records)

    def as_dicts(self) -> list[dict[str, Any]]:
        return [r.model_dump(mode="json") for r in self._records]
