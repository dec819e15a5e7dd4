"""
End-to-end: schedule routes, confirm them against the (mocked) Graph API,
pull the adherence table back and read the dashboard figures.
"""

import asyncio
from datetime import date, time

import pytest

from sst_sync.core.errors import AuthFailure
from sst_sync.core.models import AdherenceStatus, Route, RouteStatus
from sst_sync.routes import InMemoryRouteRepository, LoggingNotificationDispatcher, RouteStateMachine


def new_route(sector, guests=None) -> Route:
    return Route(
        route_date=date(2026, 1, 15),
        route_time=time(9, 30),
        sector=sector,
        safety_technician="João Silva",
        maintenance_representative="Carlos Santos",
        production_representative="Maria Oliveira",
        guests=guests,
    )


@pytest.fixture
def machine(app):
    return RouteStateMachine(
        InMemoryRouteRepository(),
        app.publisher,
        notifier=LoggingNotificationDispatcher(),
        recipients=["sst@example.com"],
    )


@pytest.mark.e2e
def test_confirmed_routes_show_up_in_snapshot(app, machine, fake_graph):
    async def scenario():
        xarope = await machine.create(new_route("Xarope", guests="Qualidade, Utilidades"))
        envase = await machine.create(new_route("Envase", guests="Qualidade"))
        await machine.create(new_route("Caldeira"))

        first = await machine.confirm(xarope.route_id, "Ana Lima", all_present="SIM")
        second = await machine.confirm(envase.route_id, "Ana Lima", all_present="NÃO")
        await machine.complete(xarope.route_id)

        records = await app.orchestrator.pull_all()
        return first, second, records

    first, second, records = asyncio.run(scenario())

    assert (first.publish.value, second.publish.value) == ("0", "1")
    assert fake_graph.token_calls == 1
    assert fake_graph.count("/sites") == 1

    snapshot = app.orchestrator.snapshot
    assert [r.route_number for r in records] == ["ROTA-1", "ROTA-2"]
    assert snapshot.find_route("ROTA-1").status is AdherenceStatus.COMPLETED
    assert snapshot.find_route("ROTA-2").status is AdherenceStatus.PENDING

    stats = snapshot.statistics()
    assert stats.completion_percentage == 50
    assert stats.sectors_inspected == 2
    assert {g.sector: g.count for g in stats.guest_sectors} == {"Qualidade": 2, "Utilidades": 1}


@pytest.mark.e2e
def test_outage_during_confirmation_then_retry(app, machine, fake_graph):
    fake_graph.token_status = 500

    async def confirm_during_outage():
        route = await machine.create(new_route("Xarope"))
        return await machine.confirm(route.route_id, "Ana Lima", all_present="SIM")

    outcome = asyncio.run(confirm_during_outage())

    assert isinstance(outcome.publish.error, AuthFailure)
    assert outcome.route.status is RouteStatus.CONFIRMED
    assert fake_graph.rows == []
    assert len(machine.worklist) == 1

    fake_graph.token_status = 200
    summary = asyncio.run(machine.worklist.retry_all(app.publisher))

    assert summary == {"succeeded": 1, "failed": 0}
    assert len(machine.worklist) == 0
    assert fake_graph.rows[0][0] == "ROTA-1"
    assert fake_graph.rows[0][-1] == "CONCLUÍDO"
