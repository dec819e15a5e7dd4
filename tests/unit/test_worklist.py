"""
Unit tests for the failed-publish worklist.
"""

import asyncio

from sst_sync.core.errors import PublishFailure
from sst_sync.core.models import AdherenceRecord
from sst_sync.core.result import Err, Ok
from sst_sync.observability import metrics
from sst_sync.routes import FailedPublishWorklist


class FlakyPublisher:
    """Fails for the route numbers in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    async def publish(self, record):
        self.calls.append(record.route_number)
        if record.route_number in self.failing:
            return Err(PublishFailure("HTTP 503", status_code=503))
        return Ok("7")


def record(number):
    return AdherenceRecord(
        route_number=number, sector="Xarope", safety_technician="João", planned_date="2026-01-15"
    )


def test_add_tracks_attempts():
    worklist = FailedPublishWorklist()
    worklist.add(record("ROTA-1"), {"kind": "publish"})
    item = worklist.add(record("ROTA-1"), {"kind": "auth"})

    assert len(worklist) == 1
    assert item.attempts == 2
    assert item.error == {"kind": "auth"}


def test_retry_all_removes_successes():
    worklist = FailedPublishWorklist()
    for number in ("ROTA-1", "ROTA-2", "ROTA-3"):
        worklist.add(record(number), {"kind": "publish"})
    publisher = FlakyPublisher(failing={"ROTA-2"})

    summary = asyncio.run(worklist.retry_all(publisher))

    assert summary == {"succeeded": 2, "failed": 1}
    assert publisher.calls == ["ROTA-1", "ROTA-2", "ROTA-3"]
    remaining = worklist.pending()
    assert [i.record.route_number for i in remaining] == ["ROTA-2"]
    assert remaining[0].attempts == 2
    assert remaining[0].error["status_code"] == 503
    assert metrics.REGISTRY.get_sample_value("sst_failed_publish_worklist_size") == 1


def test_retry_empty_worklist():
    summary = asyncio.run(FailedPublishWorklist().retry_all(FlakyPublisher()))
    assert summary == {"succeeded": 0, "failed": 0}


def test_claim_takes_item_once():
    worklist = FailedPublishWorklist()
    worklist.add(record("ROTA-1"), {"kind": "publish"})

    assert worklist.claim("ROTA-1").record.route_number == "ROTA-1"
    assert worklist.claim("ROTA-1") is None
    assert len(worklist) == 0


def test_explicit_attempts_override_count():
    worklist = FailedPublishWorklist()
    worklist.add(record("ROTA-1"), {"kind": "publish"})
    assert worklist.add(record("ROTA-1"), {"kind": "publish"}, attempts=5).attempts == 5
