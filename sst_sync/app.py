"""
Wiring of the shared Graph stack.

TokenProvider and ResourceResolver are shared by the pull and publish
paths, and all of them share one httpx.AsyncClient.
"""

from dataclasses import dataclass

import httpx

from sst_sync.config import SharePointSettings
from sst_sync.graph import GraphClient, ResourceResolver, TokenProvider, build_http_client
from sst_sync.sync import AdherencePublisher, DataMapper, SyncLogSink, SyncOrchestrator


@dataclass
class SyncApplication:
    settings: SharePointSettings
    http: httpx.AsyncClient
    client: GraphClient
    token_provider: TokenProvider
    resolver: ResourceResolver
    orchestrator: SyncOrchestrator
    publisher: AdherencePublisher

    async def aclose(self) -> None:
        await self.orchestrator.stop()
        await self.http.aclose()

    async def __aenter__(self) -> "SyncApplication":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def build_application(
    settings: SharePointSettings,
    http_client: httpx.AsyncClient | None = None,
    sync_log: SyncLogSink | None = None,
    clock=None,
) -> SyncApplication:
    http = http_client or build_http_client(settings.http_timeout)
    client = GraphClient(http, base_url=settings.graph_base_url, timeout=settings.http_timeout)
    token_kwargs = {"clock": clock} if clock is not None else {}
    token_provider = TokenProvider(settings, http, **token_kwargs)
    resolver = ResourceResolver(client)
    mapper = DataMapper()

    return SyncApplication(
        settings=settings,
        http=http,
        client=client,
        token_provider=token_provider,
        resolver=resolver,
        orchestrator=SyncOrchestrator(
            settings, token_provider, resolver, client, mapper=mapper, sync_log=sync_log
        ),
        publisher=AdherencePublisher(settings, token_provider, resolver, client, mapper=mapper),
    )
