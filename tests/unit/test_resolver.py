"""
Unit tests for the site -> drive -> file -> worksheet -> table resolver.
"""

import asyncio

import httpx
import pytest

from sst_sync.core.errors import ResolutionFailure
from sst_sync.core.models import AccessToken
from sst_sync.graph import STAGES, GraphClient, ResourceResolver
from sst_sync.observability import metrics

FILE_PATH = "/Documentos/Aderencia.xlsx"


@pytest.fixture
def token():
    return AccessToken(access_token="token-1", expires_at=9_999_999_999.0)


@pytest.fixture
def resolver(mock_http, settings):
    return ResourceResolver(GraphClient(mock_http, base_url=settings.graph_base_url))


def resolve(resolver, token, site="SST", path=FILE_PATH):
    return asyncio.run(resolver.resolve(site, path, token))


def test_full_chain(resolver, token, fake_graph):
    result = resolve(resolver, token)

    assert result.ok
    address = result.value
    assert (address.site_id, address.drive_id, address.file_id) == ("site-1", "drive-1", "file-1")
    assert address.worksheet_id == "ws-1"
    assert address.table_name == "Aderência"
    assert fake_graph.paths("GET") == [
        "/v1.0/sites",
        "/v1.0/sites/site-1/drives",
        "/v1.0/drives/drive-1/root:/Documentos/Aderencia.xlsx",
        "/v1.0/drives/drive-1/items/file-1/workbook/worksheets",
        "/v1.0/drives/drive-1/items/file-1/workbook/worksheets/ws-1/tables",
    ]


def test_bearer_token_sent(resolver, token, fake_graph):
    seen = []
    original = fake_graph.handler

    def spy(request):
        seen.append(request.headers.get("Authorization"))
        return original(request)

    resolver.client.http = httpx.AsyncClient(transport=httpx.MockTransport(spy))
    resolve(resolver, token)

    assert seen and all(h == "Bearer token-1" for h in seen)


def test_zero_sites_fails_at_site_stage(resolver, token, fake_graph):
    fake_graph.sites = []
    before = metrics.REGISTRY.get_sample_value("sst_resolution_failures_total", {"stage": "site"}) or 0.0

    result = resolve(resolver, token)

    assert isinstance(result.error, ResolutionFailure)
    assert result.error.stage == "site"
    assert fake_graph.paths("GET") == ["/v1.0/sites"]
    assert metrics.REGISTRY.get_sample_value(
        "sst_resolution_failures_total", {"stage": "site"}
    ) == before + 1


def test_exact_site_name_preferred(resolver, token, fake_graph, caplog):
    fake_graph.sites = [
        {"id": "site-old", "displayName": "SST Antigo"},
        {"id": "site-1", "displayName": "sst"},
    ]

    result = resolve(resolver, token)

    assert result.value.site_id == "site-1"
    assert "returned 2 results" in caplog.text


def test_first_site_taken_without_exact_match(resolver, token, fake_graph):
    fake_graph.sites = [
        {"id": "site-a", "displayName": "SST Fábrica"},
        {"id": "site-b", "displayName": "SST Escritório"},
    ]

    result = resolve(resolver, token)

    assert result.value.site_id == "site-a"
    assert "/v1.0/sites/site-a/drives" in fake_graph.paths()


def test_site_search_denied(resolver, token, fake_graph):
    fake_graph.sites_status = 403

    result = resolve(resolver, token)

    assert result.error.stage == "site"
    assert result.error.payload == {"error": {"code": "accessDenied"}}


def test_no_drives(resolver, token, fake_graph):
    fake_graph.drives = []
    assert resolve(resolver, token).error.stage == "drive"


def test_missing_file(resolver, token, fake_graph):
    fake_graph.file_name = None
    result = resolve(resolver, token)
    assert result.error.stage == "file"
    assert "404" in result.error.detail


def test_file_case_mismatch(resolver, token, fake_graph):
    fake_graph.file_name = "aderencia.xlsx"

    result = resolve(resolver, token)

    assert result.error.stage == "file"
    assert "case mismatch" in result.error.detail


def test_missing_worksheet_lists_available(resolver, token, fake_graph):
    fake_graph.worksheets = [{"id": "ws-9", "name": "Plan1"}]

    result = resolve(resolver, token)

    assert result.error.stage == "worksheet"
    assert result.error.payload == {"available": ["Plan1"]}


def test_worksheet_without_id(resolver, token, fake_graph):
    fake_graph.worksheets = ["Resumo", {"name": "Aderência"}]

    result = resolve(resolver, token)

    assert result.error.stage == "worksheet"
    assert result.error.payload == {"name": "Aderência"}


def test_worksheet_label_without_accent(resolver, token, fake_graph):
    fake_graph.worksheets = [{"id": "ws-1", "name": "ADERENCIA"}]
    assert resolve(resolver, token).ok


def test_missing_table(resolver, token, fake_graph):
    fake_graph.tables = [{"id": "tbl-2", "name": "Tabela1"}]

    result = resolve(resolver, token)

    assert result.error.stage == "table"
    assert "Tabela1" in str(result.error)


def test_address_cached(resolver, token, fake_graph):
    resolve(resolver, token)
    resolve(resolver, token)
    assert fake_graph.count("/sites") == 1


def test_invalidate_forces_full_resolution(resolver, token, fake_graph):
    resolve(resolver, token)
    resolver.invalidate()
    resolve(resolver, token)
    assert fake_graph.count("/sites") == 2


def test_failure_drops_cached_address(resolver, token, fake_graph):
    resolve(resolver, token)
    resolve(resolver, token, path="/Documentos/Outro.xlsx")
    resolve(resolver, token)
    assert fake_graph.count("/sites") == 3


def test_transport_error_tagged_with_stage(resolver, token, fake_graph):
    def offline(request):
        raise httpx.ConnectError("connection refused")

    resolver.client.http = httpx.AsyncClient(transport=httpx.MockTransport(offline))

    result = resolve(resolver, token)

    assert result.error.stage == "site"
    assert "ConnectError" in result.error.detail


def test_stage_order():
    assert STAGES == ("site", "drive", "file", "worksheet", "table")
