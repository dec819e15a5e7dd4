"""
Worklist of adherence rows whose publish failed after the local
confirmation was already committed.

Nothing here retries on its own; an operator runs
``sst-sync route retry-publishes``, which calls ``retry_all``.
Each retry first claims its item, so two concurrent retries never publish
the same row twice.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from sst_sync.core.models import AdherenceRecord
from sst_sync.observability import metrics
from sst_sync.observability.logger import get_logger

logger = get_logger(__name__)


class FailedPublish(BaseModel):
    """
    Attributes:
        record: Row that could not be published
        error: Last error as a dict (kind, message, stage...)
        attempts: Publish attempts so far
        failed_at: When the last attempt failed
    """

    record: AdherenceRecord
    error: dict[str, Any]
    attempts: int = Field(1, ge=1)
    failed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FailedPublishWorklist:
    """Process-local worklist; PostgresPublishWorklist keeps it across runs."""

    def __init__(self) -> None:
        self._items: dict[str, FailedPublish] = {}

    def add(self, record: AdherenceRecord, error: dict[str, Any], attempts: int | None = None) -> FailedPublish:
        """
        Queue ``record``. Without ``attempts`` the count continues from any
        item already queued for the same route number.
        """
        if attempts is None:
            previous = self._items.get(record.route_number)
            attempts = previous.attempts + 1 if previous else 1
        item = FailedPublish(record=record, error=error, attempts=attempts)
        self._items[record.route_number] = item
        self._queued(item)
        return item

    def claim(self, route_number: str) -> FailedPublish | None:
        """Remove and return the item, or None if another retry took it."""
        item = self._items.pop(route_number, None)
        metrics.set_gauge(metrics.failed_publish_worklist_size, len(self))
        return item

    def pending(self) -> list[FailedPublish]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def _queued(self, item: FailedPublish) -> None:
        metrics.set_gauge(metrics.failed_publish_worklist_size, len(self))
        logger.warning(
            f"Route {item.record.route_number} queued for manual publish retry",
            extra={"route_number": item.record.route_number, "attempts": item.attempts},
        )

    async def retry_all(self, publisher) -> dict[str, int]:
        """
        Publish every pending row once.

        Successful rows leave the worklist; failures go back with their
        attempt count bumped.
        """
        succeeded = failed = 0
        for queued in self.pending():
            item = self.claim(queued.record.route_number)
            if item is None:
                continue
            try:
                result = await publisher.publish(item.record)
            except Exception:
                self.add(item.record, item.error, attempts=item.attempts)
                raise
            if result.ok:
                succeeded += 1
                logger.info(
                    f"Route {item.record.route_number} published on retry",
                    extra={"route_number": item.record.route_number, "row_id": result.value},
                )
            else:
                self.add(item.record, result.error.to_dict(), attempts=item.attempts + 1)
                failed += 1

        metrics.set_gauge(metrics.failed_publish_worklist_size, len(self))
        return {"succeeded": succeeded, "failed": failed}
