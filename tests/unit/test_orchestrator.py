"""
Unit tests for SyncOrchestrator: full-table pulls, snapshot swap and the
periodic timer.
"""

import asyncio

import httpx

from sst_sync.core.models import AdherenceStatus
from sst_sync.observability import metrics


def pulls(status, trigger="manual"):
    return metrics.REGISTRY.get_sample_value(
        "sst_pulls_total", {"status": status, "trigger": trigger}
    ) or 0.0


def test_pull_replaces_snapshot(app, fake_graph, make_row):
    fake_graph.rows = [make_row("ROTA-1"), make_row("ROTA-2", sector="Envase", present="NÃO")]

    records = asyncio.run(app.orchestrator.pull_all())

    assert [r.route_number for r in records] == ["ROTA-1", "ROTA-2"]
    assert app.orchestrator.snapshot.records == tuple(records)
    assert app.orchestrator.snapshot.last_synced_at is not None


def test_status_recomputed_from_presence(app, fake_graph, make_row):
    fake_graph.rows = [make_row(present="SIM", status="PENDENTE")]

    records = asyncio.run(app.orchestrator.pull_all())

    assert records[0].status is AdherenceStatus.COMPLETED


def test_success_recorded_in_sync_log(app, fake_graph, make_row):
    fake_graph.rows = [make_row("ROTA-1"), make_row("ROTA-2")]
    before = pulls("success")

    asyncio.run(app.orchestrator.pull_all())

    entry = app.orchestrator.sync_log.recent()[0]
    assert entry.status == "success"
    assert entry.records_processed == 2
    assert entry.trigger == "manual"
    assert pulls("success") == before + 1


def test_token_timeout_keeps_previous_snapshot(app, fake_graph, make_row):
    fake_graph.rows = [make_row("ROTA-1")]
    previous = asyncio.run(app.orchestrator.pull_all())

    app.token_provider.invalidate()
    fake_graph.token_error = httpx.ReadTimeout("token endpoint timed out")
    before = pulls("failure")

    records = asyncio.run(app.orchestrator.pull_all())

    assert records == []
    assert app.orchestrator.snapshot.records == tuple(previous)
    assert pulls("failure") == before + 1

    entry = app.orchestrator.sync_log.recent()[0]
    assert entry.status == "error"
    assert "ReadTimeout" in entry.error_details


def test_resolution_failure_returns_empty(app, fake_graph):
    fake_graph.sites = []

    assert asyncio.run(app.orchestrator.pull_all()) == []
    assert app.orchestrator.snapshot.records == ()
    assert "[site]" in app.orchestrator.sync_log.recent()[0].error_details


def test_row_fetch_failure_invalidates_address(app, fake_graph, make_row):
    fake_graph.rows = [make_row()]
    asyncio.run(app.orchestrator.pull_all())

    fake_graph.rows_status = 500
    assert asyncio.run(app.orchestrator.pull_all()) == []
    assert len(app.orchestrator.snapshot.records) == 1

    fake_graph.rows_status = 200
    asyncio.run(app.orchestrator.pull_all())
    assert fake_graph.count("/sites") == 2


def test_unreadable_token_expiry_keeps_previous_snapshot(app, fake_graph, make_row):
    fake_graph.rows = [make_row("ROTA-1")]
    previous = asyncio.run(app.orchestrator.pull_all())

    app.token_provider.invalidate()
    fake_graph.token_body = {"access_token": "x", "expires_in": "soon"}

    assert asyncio.run(app.orchestrator.pull_all()) == []
    assert app.orchestrator.snapshot.records == tuple(previous)
    entry = app.orchestrator.sync_log.recent()[0]
    assert entry.status == "error"
    assert "soon" in entry.error_details


def test_worksheet_without_id_is_stage_failure(app, fake_graph):
    fake_graph.worksheets = [{"name": "Aderência"}]

    assert asyncio.run(app.orchestrator.pull_all()) == []
    assert "[worksheet]" in app.orchestrator.sync_log.recent()[0].error_details


def test_malformed_rows_response_returns_empty(app, fake_graph, make_row):
    fake_graph.rows = [make_row("ROTA-1")]
    asyncio.run(app.orchestrator.pull_all())

    fake_graph.rows = ["not-a-row"]

    assert asyncio.run(app.orchestrator.pull_all()) == []
    assert len(app.orchestrator.snapshot.records) == 1


def test_empty_table(app):
    assert asyncio.run(app.orchestrator.pull_all()) == []
    assert app.orchestrator.sync_log.recent()[0].status == "success"


def test_validate_configuration(app, fake_graph):
    assert asyncio.run(app.orchestrator.validate_configuration()) is True
    assert fake_graph.count("/rows") == 0

    fake_graph.tables = []
    assert asyncio.run(app.orchestrator.validate_configuration()) is False


def test_validate_configuration_bad_credentials(app, fake_graph):
    fake_graph.token_status = 401
    assert asyncio.run(app.orchestrator.validate_configuration()) is False


def test_run_periodic_until_stopped(app, fake_graph, make_row):
    fake_graph.rows = [make_row()]

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(app.orchestrator.run_periodic(stop, interval=0.01))
        await asyncio.sleep(0.08)
        stop.set()
        await task

    asyncio.run(scenario())

    entries = app.orchestrator.sync_log.recent(100)
    assert len(entries) >= 2
    assert {e.trigger for e in entries} == {"timer"}


def test_start_and_stop(app, fake_graph):
    async def scenario():
        task = app.orchestrator.start(interval=60)
        assert app.orchestrator.start(interval=60) is task
        await asyncio.sleep(0.01)
        await app.orchestrator.stop()
        return task

    task = asyncio.run(scenario())

    assert task.done()
    assert fake_graph.count("/rows") == 1
