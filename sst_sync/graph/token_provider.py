"""
OAuth2 client-credentials token acquisition with a process-local cache.
"""

import asyncio
import time
from typing import Callable

import httpx

from sst_sync.config import GRAPH_SCOPE, SharePointSettings
from sst_sync.core.errors import AuthFailure
from sst_sync.core.models import AccessToken
from sst_sync.core.result import Err, Ok, Result
from sst_sync.observability import metrics
from sst_sync.observability.logger import get_logger

from .client import build_http_client, response_payload

logger = get_logger(__name__)

# Assumed lifetime when the identity provider omits expires_in
DEFAULT_EXPIRES_IN = 3599


class TokenCache:
    """
    Holds at most one token for the single external identity.

    ``lock`` serializes the read-check-acquire-store sequence so two
    concurrent callers cannot both hit the token endpoint.
    """

    def __init__(self) -> None:
        self._token: AccessToken | None = None
        self.lock = asyncio.Lock()

    def get(self, now: float) -> AccessToken | None:
        if self._token is not None and self._token.is_fresh(now):
            return self._token
        self._token = None
        return None

    def store(self, token: AccessToken) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class TokenProvider:
    """
    Acquires bearer tokens for the Graph API.

    A cached token is returned with no network call while fresh. Failures are
    returned as AuthFailure and never retried here.
    """

    def __init__(
        self,
        settings: SharePointSettings,
        http_client: httpx.AsyncClient | None = None,
        cache: TokenCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.http = http_client or build_http_client(settings.http_timeout)
        self.cache = cache or TokenCache()
        self.clock = clock

    async def get_token(self) -> Result[AccessToken]:
        async with self.cache.lock:
            cached = self.cache.get(self.clock())
            if cached is not None:
                metrics.increment_counter(metrics.token_requests_total, outcome="cache_hit")
                return Ok(cached)

            result = await self._acquire()
            if result.ok:
                self.cache.store(result.value)
                metrics.increment_counter(metrics.token_requests_total, outcome="acquired")
            else:
                metrics.increment_counter(metrics.token_requests_total, outcome="failure")
            return result

    def invalidate(self) -> None:
        self.cache.clear()

    async def _acquire(self) -> Result[AccessToken]:
        issued_at = self.clock()
        form = {
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret.get_secret_value(),
            "scope": GRAPH_SCOPE,
            "grant_type": "client_credentials",
        }

        try:
            response = await self.http.post(
                self.settings.token_url,
                data=form,
                timeout=self.settings.http_timeout,
            )
        except httpx.HTTPError as e:
            logger.error(
                f"Token endpoint unreachable: {e}",
                extra={"error_type": type(e).__name__},
            )
            return Err(AuthFailure(f"Token endpoint unreachable: {type(e).__name__}: {e}"))

        payload = response_payload(response)
        if not response.is_success:
            logger.error(
                f"Token request rejected with HTTP {response.status_code}",
                extra={"status_code": response.status_code, "payload": payload},
            )
            return Err(AuthFailure(
                f"Token request rejected with HTTP {response.status_code}",
                payload=payload,
                status_code=response.status_code,
            ))

        if not isinstance(payload, dict) or not payload.get("access_token"):
            logger.error("Token response carried no access_token")
            return Err(AuthFailure("Token response carried no access_token", payload=payload,
                                   status_code=response.status_code))

        try:
            expires_in = float(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
            token = AccessToken(
                access_token=payload["access_token"],
                token_type=payload.get("token_type", "Bearer"),
                expires_at=issued_at + expires_in,
            )
        except (TypeError, ValueError) as e:
            message = f"Token response could not be read: {e}"
            logger.error(message, extra={"status_code": response.status_code})
            return Err(AuthFailure(
                message,
                payload={k: v for k, v in payload.items() if k != "access_token"},
                status_code=response.status_code,
            ))

        logger.info("Acquired Graph access token", extra={"expires_in": expires_in})
        return Ok(token)
