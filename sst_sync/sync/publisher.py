"""
Append one adherence row to the remote table.

Not idempotent: two calls for the same route number add two rows. The
route state machine guarantees at most one call per confirmation.
"""

import httpx

from sst_sync.config import SharePointSettings
from sst_sync.core.errors import PublishFailure
from sst_sync.core.models import AdherenceRecord
from sst_sync.core.result import Err, Ok, Result
from sst_sync.graph import GraphClient, GraphRequestError, ResourceResolver, TokenProvider
from sst_sync.observability import metrics
from sst_sync.observability.logger import get_logger

from .mapper import DataMapper

logger = get_logger(__name__)


class AdherencePublisher:
    """Validates, resolves and inserts exactly one row per call."""

    def __init__(
        self,
        settings: SharePointSettings,
        token_provider: TokenProvider,
        resolver: ResourceResolver,
        client: GraphClient,
        mapper: DataMapper | None = None,
    ) -> None:
        self.settings = settings
        self.token_provider = token_provider
        self.resolver = resolver
        self.client = client
        self.mapper = mapper or DataMapper()

    async def publish(self, record: AdherenceRecord) -> Result[str]:
        """
        Insert ``record`` as a new row.

        Returns:
            Ok(remote row id) or Err(ValidationFailure | AuthFailure |
            ResolutionFailure | PublishFailure)
        """
        valid = self.mapper.validate(record)
        if not valid.ok:
            metrics.increment_counter(metrics.publishes_total, status="invalid")
            logger.warning(
                f"Adherence row rejected before publish: {valid.error}",
                extra={"route_number": record.route_number, "field": valid.error.field},
            )
            return valid

        result = await self._insert(record)
        if result.ok:
            metrics.increment_counter(metrics.publishes_total, status="success")
            logger.info(
                f"Route {record.route_number} added to the adherence table",
                extra={"route_number": record.route_number, "row_id": result.value,
                       "status": record.status.value},
            )
        else:
            metrics.increment_counter(metrics.publishes_total, status="failure")
            logger.error(
                f"Publishing route {record.route_number} failed: {result.error}",
                extra={"route_number": record.route_number, "error": result.error.to_dict()},
            )
        return result

    async def _insert(self, record: AdherenceRecord) -> Result[str]:
        token = await self.token_provider.get_token()
        if not token.ok:
            return token

        address = await self.resolver.resolve(self.settings.site_name, self.settings.file_path, token.value)
        if not address.ok:
            return address

        payload = {"values": [list(self.mapper.to_remote_row(record))]}
        try:
            body = await self.client.post(address.value.add_rows_path, token.value, payload)
        except GraphRequestError as e:
            self.resolver.invalidate()
            return Err(PublishFailure(str(e), payload=e.payload, status_code=e.status_code))
        except httpx.HTTPError as e:
            self.resolver.invalidate()
            return Err(PublishFailure(f"{type(e).__name__}: {e}"))

        row_id = body.get("index")
        return Ok(str(row_id) if row_id is not None else record.route_number)
