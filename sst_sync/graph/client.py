"""
Thin async HTTP layer over the Graph API.

One httpx.AsyncClient is shared by the token provider, the resolver, the
pull and the publish paths. Every call carries the same fixed timeout.
"""

from typing import Any

import httpx

from sst_sync.config import DEFAULT_HTTP_TIMEOUT, GRAPH_BASE_URL
from sst_sync.core.models import AccessToken
from sst_sync.observability.logger import get_logger

logger = get_logger(__name__)


class GraphRequestError(Exception):
    """Non-2xx answer from a Graph or identity endpoint."""

    def __init__(self, method: str, url: str, status_code: int, payload: Any):
        self.method = method
        self.url = url
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"{method} {url} returned HTTP {status_code}")


def response_payload(response: httpx.Response) -> Any:
    """Decoded JSON body, falling back to raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text


def build_http_client(timeout: float = DEFAULT_HTTP_TIMEOUT, **kwargs) -> httpx.AsyncClient:
    """AsyncClient with the per-call timeout applied to every request."""
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout), **kwargs)


class GraphClient:
    """
    Issues authenticated JSON requests relative to the Graph base URL.

    Raises httpx.HTTPError for transport problems (timeouts included) and
    GraphRequestError for non-2xx responses; callers tag these with the
    stage they belong to.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = GRAPH_BASE_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self._owns_client = http_client is None
        self.http = http_client or build_http_client(timeout)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def get(
        self, path: str, token: AccessToken, params: dict[str, str] | None = None
    ) -> dict[str, Any]:
        return await self._request("GET", path, token, params=params)

    async def post(
        self, path: str, token: AccessToken, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request("POST", path, token, json=payload)

    async def _request(self, method: str, path: str, token: AccessToken, **kwargs) -> dict[str, Any]:
        url = self.url(path)
        response = await self.http.request(
            method,
            url,
            headers={
                "Authorization": token.authorization_header,
                "Accept": "application/json",
            },
            timeout=self.timeout,
            **kwargs,
        )
        if not response.is_success:
            raise GraphRequestError(method, url, response.status_code, response_payload(response))

        logger.debug(f"{method} {url} -> {response.status_code}")
        body = response_payload(response)
        return body if isinstance(body, dict) else {"value": body}

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
