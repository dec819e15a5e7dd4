"""
Pull of the full remote adherence table into the in-memory snapshot.

token -> resolve -> fetch rows -> map every row -> swap snapshot

The swap only happens when every step succeeded. Any failure leaves the
previous snapshot in place, logs the cause, records a sync-log entry and
returns an empty list.
"""

import asyncio
from typing import Any

import httpx

from sst_sync.config import SharePointSettings
from sst_sync.core.errors import FetchFailure, SyncError
from sst_sync.core.models import AdherenceRecord, ResolvedAddress, SyncLogEntry
from sst_sync.core.result import Err, Ok, Result
from sst_sync.graph import GraphClient, GraphRequestError, ResourceResolver, TokenProvider
from sst_sync.observability import metrics
from sst_sync.observability.logger import get_logger, log_operation

from .mapper import DataMapper
from .snapshot import SnapshotCache
from .sync_log import InMemorySyncLog, SyncLogSink

logger = get_logger(__name__)


class SyncOrchestrator:
    """
    Refreshes the adherence snapshot on demand and on a fixed timer.
    """

    def __init__(
        self,
        settings: SharePointSettings,
        token_provider: TokenProvider,
        resolver: ResourceResolver,
        client: GraphClient,
        mapper: DataMapper | None = None,
        snapshot: SnapshotCache | None = None,
        sync_log: SyncLogSink | None = None,
    ) -> None:
        self.settings = settings
        self.token_provider = token_provider
        self.resolver = resolver
        self.client = client
        self.mapper = mapper or DataMapper()
        self.snapshot = snapshot or SnapshotCache()
        self.sync_log = sync_log or InMemorySyncLog()
        self._timer_task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    async def pull_all(self, trigger: str = "manual") -> list[AdherenceRecord]:
        """
        Re-read the whole remote table.

        Returns:
            The new snapshot, or [] when any stage failed
        """
        with metrics.track_duration(metrics.pull_duration_seconds):
            result = await self._pull()

        if not result.ok:
            self._record_failure(result.error, trigger)
            return []

        records = result.value
        await self.snapshot.replace(records)
        metrics.increment_counter(metrics.pulls_total, status="success", trigger=trigger)
        metrics.set_gauge(metrics.snapshot_size, len(records))
        self.sync_log.record(SyncLogEntry(
            status="success",
            message=f"Pulled {len(records)} adherence records",
            records_processed=len(records),
            trigger=trigger,
        ))
        logger.info("Adherence snapshot refreshed", extra={"records": len(records), "trigger": trigger})
        return list(records)

    async def _pull(self) -> Result[list[AdherenceRecord]]:
        token = await self.token_provider.get_token()
        if not token.ok:
            return token

        address = await self.resolver.resolve(self.settings.site_name, self.settings.file_path, token.value)
        if not address.ok:
            return address

        rows = await self._fetch_rows(address.value, token.value)
        if not rows.ok:
            # The cached address may be stale (file moved, table renamed)
            self.resolver.invalidate()
            return rows

        records = []
        for index, row in enumerate(rows.value):
            try:
                records.append(self.mapper.from_remote_row(row))
            except (ValueError, TypeError) as e:
                return Err(FetchFailure(f"Row {index} could not be mapped: {e}", payload=row))
        return Ok(records)

    async def _fetch_rows(self, address: ResolvedAddress, token) -> Result[list[list[Any]]]:
        try:
            body = await self.client.get(address.rows_path, token)
        except GraphRequestError as e:
            return Err(FetchFailure(str(e), payload=e.payload, status_code=e.status_code))
        except httpx.HTTPError as e:
            return Err(FetchFailure(f"{type(e).__name__}: {e}"))

        entries = body.get("value") or []
        if not isinstance(entries, list):
            return Err(FetchFailure("Rows response has no row list", payload=body))

        rows = []
        for index, row in enumerate(entries):
            values = row.get("values") if isinstance(row, dict) else None
            if not values or not isinstance(values, list) or not isinstance(values[0], list):
                return Err(FetchFailure(f"Row {index} carries no values", payload=row))
            rows.append(values[0])
        return Ok(rows)

    def _record_failure(self, error: SyncError, trigger: str) -> None:
        metrics.increment_counter(metrics.pulls_total, status="failure", trigger=trigger)
        logger.error(
            f"Adherence pull failed, keeping previous snapshot: {error}",
            extra={"error": error.to_dict(), "trigger": trigger},
        )
        self.sync_log.record(SyncLogEntry(
            status="error",
            message="Adherence pull failed",
            error_details=str(error),
            trigger=trigger,
        ))

    async def validate_configuration(self) -> bool:
        """Run token + full resolution without touching any row."""
        token = await self.token_provider.get_token()
        if not token.ok:
            return False
        self.resolver.invalidate()
        address = await self.resolver.resolve(self.settings.site_name, self.settings.file_path, token.value)
        return address.ok

    async def run_periodic(self, stop_event: asyncio.Event | None = None, interval: float | None = None) -> None:
        """
        Pull immediately, then every ``interval`` seconds until ``stop_event`` is set.
        """
        interval = interval or self.settings.sync_interval_seconds
        stop_event = stop_event or asyncio.Event()
        logger.info(f"Starting periodic adherence pull every {interval} seconds")

        while not stop_event.is_set():
            with log_operation("Periodic adherence pull", logger=logger):
                await self.pull_all(trigger="timer")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    def start(self, interval: float | None = None) -> asyncio.Task:
        """Schedule run_periodic on the running loop."""
        if self._timer_task is None or self._timer_task.done():
            self._stop_event = asyncio.Event()
            self._timer_task = asyncio.create_task(self.run_periodic(self._stop_event, interval))
        return self._timer_task

    async def stop(self) -> None:
        if self._timer_task is not None:
            self._stop_event.set()
            await self._timer_task
            self._timer_task = None
