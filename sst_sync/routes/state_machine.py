"""
Route lifecycle.

    pending   -> confirmed | cancelled
    confirmed -> completed | cancelled
    completed, cancelled: terminal

Confirmation is the only transition with a remote side effect: it
publishes one adherence row. The local transition is committed first and
is never rolled back when the publish fails; the failed row goes to the
FailedPublishWorklist and the failure is returned in ConfirmationOutcome.
Consumers must not assume that a confirmed route has reached the remote
table.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Sequence

from sst_sync.core.errors import PublishFailure, SyncError, TransitionFailure, ValidationFailure
from sst_sync.core.models import (
    AdherenceRecord,
    PresenceFlag,
    Route,
    RouteStatus,
    normalize_presence,
)
from sst_sync.core.result import Err, Result
from sst_sync.observability import metrics
from sst_sync.observability.logger import get_logger
from sst_sync.sync.mapper import DataMapper

from .notifications import (
    TEMPLATE_ROUTE_CONFIRMED,
    TEMPLATE_ROUTE_SCHEDULED,
    NotificationDispatcher,
    route_template_data,
)
from .repository import RouteRepository
from .worklist import FailedPublishWorklist

logger = get_logger(__name__)

TRANSITIONS: dict[RouteStatus, frozenset[RouteStatus]] = {
    RouteStatus.PENDING: frozenset({RouteStatus.CONFIRMED, RouteStatus.CANCELLED}),
    RouteStatus.CONFIRMED: frozenset({RouteStatus.COMPLETED, RouteStatus.CANCELLED}),
    RouteStatus.COMPLETED: frozenset(),
    RouteStatus.CANCELLED: frozenset(),
}


def can_transition(current: RouteStatus, target: RouteStatus) -> bool:
    return target in TRANSITIONS[current]


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


@dataclass(frozen=True)
class ConfirmationOutcome:
    """Committed route plus the best-effort publish result."""

    route: Route
    record: AdherenceRecord
    publish: Result

    @property
    def published(self) -> bool:
        return self.publish.ok


class RouteStateMachine:
    """
    Applies transitions to stored routes.

    A per-route asyncio.Lock covers the read-check-write of each
    transition within one process. Across processes the repository save is
    conditional on the status that was read, so of two concurrent
    confirm/cancel calls on one route only one commits.
    """

    def __init__(
        self,
        repository: RouteRepository,
        publisher,
        notifier: NotificationDispatcher | None = None,
        recipients: Sequence[str] = (),
        worklist: FailedPublishWorklist | None = None,
        mapper: DataMapper | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.repository = repository
        self.publisher = publisher
        self.notifier = notifier
        self.recipients = list(recipients)
        self.worklist = worklist if worklist is not None else FailedPublishWorklist()
        self.mapper = mapper or DataMapper()
        self.clock = clock
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}

    async def create(self, route: Route) -> Route:
        """Store a new pending route and announce it."""
        now = self.clock()
        stored = self.repository.add(route.model_copy(update={
            "status": RouteStatus.PENDING,
            "created_at": now,
            "updated_at": now,
        }))
        logger.info(f"Route {stored.route_number} scheduled", extra={"route_id": stored.route_id})
        await self._notify(TEMPLATE_ROUTE_SCHEDULED, stored)
        return stored

    async def confirm(
        self,
        route_id: int,
        responsible_party: str,
        notes: str | None = None,
        all_present: Any = False,
        actual_date: date | str | None = None,
    ) -> ConfirmationOutcome:
        """
        pending -> confirmed, then publish the adherence row.

        Raises:
            TransitionFailure: Route is not pending
            ValidationFailure: responsible_party is blank
        """
        async with self._route_lock(route_id):
            route = self.repository.get(route_id)
            self._check(route, RouteStatus.CONFIRMED)
            if _blank(responsible_party):
                raise ValidationFailure("responsible_party", "Responsible party is required to confirm")

            now = self.clock()
            present = normalize_presence(all_present)
            confirmed = self._commit(route, RouteStatus.CONFIRMED, {
                "responsible_party": responsible_party.strip(),
                "confirmed_at": now,
                "confirmation_notes": notes,
                "all_present": present is PresenceFlag.YES,
                "updated_at": now,
            })

            record = self.mapper.from_route(confirmed, present, actual_date or now.date())
            publish = await self._publish(record)
            if not publish.ok:
                self._queue_failed_publish(record, publish.error)

        await self._notify(TEMPLATE_ROUTE_CONFIRMED, confirmed)
        return ConfirmationOutcome(route=confirmed, record=record, publish=publish)

    async def complete(self, route_id: int, notes: str | None = None) -> Route:
        """confirmed -> completed."""
        async with self._route_lock(route_id):
            route = self.repository.get(route_id)
            self._check(route, RouteStatus.COMPLETED)
            now = self.clock()
            return self._commit(route, RouteStatus.COMPLETED, {
                "completed_at": now,
                "completion_notes": notes,
                "updated_at": now,
            })

    async def cancel(self, route_id: int, notes: str) -> Route:
        """
        pending | confirmed -> cancelled. Notes are mandatory.
        """
        async with self._route_lock(route_id):
            route = self.repository.get(route_id)
            self._check(route, RouteStatus.CANCELLED)
            if _blank(notes):
                raise ValidationFailure("notes", "Cancellation notes are required")
            now = self.clock()
            return self._commit(route, RouteStatus.CANCELLED, {
                "cancelled_at": now,
                "cancellation_notes": notes.strip(),
                "updated_at": now,
            })

    @asynccontextmanager
    async def _route_lock(self, route_id: int):
        """Per-route lock, dropped once no task holds or awaits it."""
        lock = self._locks.setdefault(route_id, asyncio.Lock())
        self._lock_users[route_id] = self._lock_users.get(route_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[route_id] -= 1
            if not self._lock_users[route_id]:
                del self._lock_users[route_id]
                del self._locks[route_id]

    def _check(self, route: Route, target: RouteStatus) -> None:
        if not can_transition(route.status, target):
            metrics.record_transition(route.status.value, target.value, applied=False)
            logger.warning(
                f"Rejected transition {route.status.value} -> {target.value} for route {route.route_id}",
                extra={"route_id": route.route_id},
            )
            raise TransitionFailure(route.status.value, target.value)

    def _commit(self, route: Route, target: RouteStatus, changes: dict[str, Any]) -> Route:
        updated = route.model_copy(update={"status": target, **changes})
        if updated.updated_at < updated.created_at:
            updated = updated.model_copy(update={"updated_at": updated.created_at})
        try:
            saved = self.repository.save(updated, expected_status=route.status)
        except TransitionFailure:
            metrics.record_transition(route.status.value, target.value, applied=False)
            raise
        metrics.record_transition(route.status.value, target.value, applied=True)
        logger.info(
            f"Route {route.route_number} moved {route.status.value} -> {target.value}",
            extra={"route_id": route.route_id},
        )
        return saved

    async def _publish(self, record: AdherenceRecord) -> Result:
        try:
            return await self.publisher.publish(record)
        except Exception as e:  # noqa: BLE001
            logger.exception(f"Publishing route {record.route_number} raised: {e}")
            return Err(PublishFailure(f"{type(e).__name__}: {e}"))

    def _queue_failed_publish(self, record: AdherenceRecord, error: SyncError) -> None:
        logger.error(
            f"Route {record.route_number} confirmed locally but not published: {error}",
            extra={"route_number": record.route_number, "error": error.to_dict()},
        )
        self.worklist.add(record, error.to_dict())

    async def _notify(self, template: str, route: Route) -> None:
        if self.notifier is None:
            return
        data = route_template_data(template, route)
        for contact in self.recipients:
            try:
                delivered = await self.notifier.send(contact, data)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Notification to {contact} raised: {e}", extra={"template": template})
                continue
            if not delivered:
                logger.warning(f"Notification to {contact} was not delivered", extra={"template": template})
