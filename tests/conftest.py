"""
Pytest configuration and fixtures for sst-sync tests

This module provides shared fixtures for unit, integration, and E2E tests.
Graph and identity endpoints are served by httpx.MockTransport; nothing
here touches the network.
"""
import json
from typing import Generator

import httpx
import pytest
from testcontainers.postgres import PostgresContainer

from sst_sync.app import SyncApplication, build_application
from sst_sync.config import SharePointSettings
from sst_sync.storage.connection import DatabaseConnectionPool

GRAPH_BASE = "https://graph.test/v1.0"
LOGIN_BASE = "https://login.test"


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that run a full route-to-table flow"
    )


# =======================
# FAKE GRAPH
# =======================

class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGraph:
    """
    In-process stand-in for the identity provider and the Graph API.

    Serves one site / drive / workbook whose "Aderência" worksheet holds
    one "Aderência" table. Tests mutate the attributes to inject failures.
    """

    def __init__(self):
        self.token_calls = 0
        self.token_error: Exception | None = None
        self.token_status = 200
        self.token_body: dict | None = None

        self.sites = [{"id": "site-1", "displayName": "SST", "name": "SST"}]
        self.drives = [{"id": "drive-1", "name": "Documentos"}]
        self.file_name: str | None = "Aderencia.xlsx"
        self.worksheets = [{"id": "ws-1", "name": "Aderência"}, {"id": "ws-2", "name": "Resumo"}]
        self.tables = [{"id": "tbl-1", "name": "Aderência"}]
        self.rows: list[list] = []

        self.sites_status = 200
        self.rows_status = 200
        self.add_status = 201

        self.requests: list[tuple[str, str]] = []

    def paths(self, method: str | None = None) -> list[str]:
        return [p for m, p in self.requests if method is None or m == method]

    def count(self, suffix: str, method: str = "GET") -> int:
        return sum(1 for m, p in self.requests if m == method and p.endswith(suffix))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))

        if request.url.host == "login.test":
            return self._token(request)

        path = request.url.path.removeprefix("/v1.0")

        if path == "/sites":
            if self.sites_status >= 400:
                return httpx.Response(self.sites_status, json={"error": {"code": "accessDenied"}})
            return httpx.Response(200, json={"value": self.sites})

        if path.startswith("/sites/") and path.endswith("/drives"):
            return httpx.Response(200, json={"value": self.drives})

        if path.startswith("/drives/drive-1/root:"):
            if self.file_name is None:
                return httpx.Response(404, json={"error": {"code": "itemNotFound"}})
            return httpx.Response(200, json={"id": "file-1", "name": self.file_name})

        if path == "/drives/drive-1/items/file-1/workbook/worksheets":
            return httpx.Response(200, json={"value": self.worksheets})

        if path.startswith("/drives/drive-1/items/file-1/workbook/worksheets/") and path.endswith("/tables"):
            return httpx.Response(200, json={"value": self.tables})

        if path == "/drives/drive-1/items/file-1/workbook/tables/Aderência/rows":
            if self.rows_status >= 400:
                return httpx.Response(self.rows_status, json={"error": {"code": "generalException"}})
            return httpx.Response(200, json={
                "value": [{"index": i, "values": [row]} for i, row in enumerate(self.rows)]
            })

        if path == "/drives/drive-1/items/file-1/workbook/tables/Aderência/rows/add":
            if self.add_status >= 400:
                return httpx.Response(self.add_status, json={"error": {"code": "InvalidArgument"}})
            row = json.loads(request.content)["values"][0]
            self.rows.append(row)
            return httpx.Response(self.add_status, json={"index": len(self.rows) - 1, "values": [row]})

        return httpx.Response(404, json={"error": {"code": "notFound", "path": path}})

    def _token(self, request: httpx.Request) -> httpx.Response:
        if self.token_error is not None:
            raise self.token_error
        self.token_calls += 1
        if self.token_status >= 400:
            return httpx.Response(self.token_status, json={"error": "invalid_client"})
        body = self.token_body or {
            "access_token": f"token-{self.token_calls}",
            "token_type": "Bearer",
            "expires_in": 3600,
        }
        return httpx.Response(self.token_status, json=body)


@pytest.fixture
def make_row():
    """Factory for positional rows as the remote table returns them."""
    def _row(route_number="ROTA-1", sector="Xarope", present="SIM", status="PENDENTE", guests=""):
        return [
            route_number, sector, "João Silva", "Carlos Santos", "Maria Oliveira",
            guests, present, "2026-01-15", "2026-01-16", status,
        ]
    return _row


@pytest.fixture
def settings() -> SharePointSettings:
    return SharePointSettings(
        tenant_id="tenant-1",
        client_id="client-1",
        client_secret="s3cret-value",
        site_name="SST",
        file_path="/Documentos/Aderencia.xlsx",
        graph_base_url=GRAPH_BASE,
        login_base_url=LOGIN_BASE,
    )


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_http(fake_graph) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_graph.handler))


@pytest.fixture
def app(settings, mock_http, clock) -> SyncApplication:
    """Fully wired application talking to FakeGraph."""
    return build_application(settings, http_client=mock_http, clock=clock)


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_sst",
        password="test_password",
        dbname="test_sst_rotas"
    ) as postgres:
        # Wait for container to be ready
        postgres.get_connection_url()
        yield postgres


@pytest.fixture(scope="function")
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open a connection pool on the test container, truncating tables afterwards

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_sst_rotas",
        user="test_sst",
        password="test_password",
    )
    pool.open()

    yield pool

    pool.execute_command(
        "DO $$ BEGIN "
        "IF to_regclass('scheduled_routes') IS NOT NULL THEN TRUNCATE scheduled_routes RESTART IDENTITY; END IF; "
        "IF to_regclass('sync_logs') IS NOT NULL THEN TRUNCATE sync_logs RESTART IDENTITY; END IF; "
        "IF to_regclass('failed_publishes') IS NOT NULL THEN TRUNCATE failed_publishes; END IF; "
        "END $$"
    )
    pool.close()

