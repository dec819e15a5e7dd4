"""
Resolution of the remote adherence table from human readable names.

Stages run strictly in order, each needing the previous identifier:

    site -> drive -> file -> worksheet -> table

The first failing stage short-circuits the chain and is reported as a
ResolutionFailure tagged with its stage name, so "the file moved" can be
told apart from "the credentials are wrong" (an AuthFailure, raised earlier
by the token provider).
"""

from pathlib import PurePosixPath
from typing import Any
from urllib.parse import quote

import httpx

from sst_sync.core.errors import ResolutionFailure
from sst_sync.core.models import AccessToken, ResolvedAddress
from sst_sync.core.result import Err, Ok, Result
from sst_sync.observability import metrics
from sst_sync.observability.logger import get_logger

from .client import GraphClient, GraphRequestError

logger = get_logger(__name__)

STAGE_SITE = "site"
STAGE_DRIVE = "drive"
STAGE_FILE = "file"
STAGE_WORKSHEET = "worksheet"
STAGE_TABLE = "table"

STAGES = (STAGE_SITE, STAGE_DRIVE, STAGE_FILE, STAGE_WORKSHEET, STAGE_TABLE)

# Compared case-insensitively against worksheet names
WORKSHEET_LABELS = frozenset({"aderência", "aderencia"})
TABLE_NAME = "Aderência"


def _entries(body: dict[str, Any]) -> list[dict[str, Any]]:
    """Object entries of a Graph collection response; anything else is skipped."""
    value = body.get("value")
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


class ResourceResolver:
    """
    Resolves (site name, file path) into a ResolvedAddress.

    The last successful address is cached per (site, path) and dropped as
    soon as any resolution fails or a caller reports that the address no
    longer works (``invalidate``).
    """

    def __init__(self, client: GraphClient, use_cache: bool = True) -> None:
        self.client = client
        self.use_cache = use_cache
        self._cache: dict[tuple[str, str], ResolvedAddress] = {}

    def invalidate(self) -> None:
        self._cache.clear()

    async def resolve(
        self, site_name: str, file_path: str, token: AccessToken
    ) -> Result[ResolvedAddress]:
        key = (site_name, file_path)
        if self.use_cache and key in self._cache:
            return Ok(self._cache[key])

        result = await self._resolve_chain(site_name, file_path, token)
        if result.ok:
            if self.use_cache:
                self._cache[key] = result.value
            logger.info(
                "Resolved adherence table",
                extra={"site_id": result.value.site_id, "file_id": result.value.file_id},
            )
        else:
            self.invalidate()
            metrics.increment_counter(metrics.resolution_failures_total, stage=result.error.stage)
            logger.error(
                f"Resolution failed at stage '{result.error.stage}': {result.error.detail}",
                extra={"stage": result.error.stage, "payload": result.error.payload},
            )
        return result

    async def _resolve_chain(
        self, site_name: str, file_path: str, token: AccessToken
    ) -> Result[ResolvedAddress]:
        site = await self.resolve_site(site_name, token)
        if not site.ok:
            return site

        drive = await self.resolve_drive(site.value, token)
        if not drive.ok:
            return drive

        item = await self.resolve_file(drive.value, file_path, token)
        if not item.ok:
            return item

        worksheet = await self.resolve_worksheet(drive.value, item.value, token)
        if not worksheet.ok:
            return worksheet

        table = await self.resolve_table(drive.value, item.value, worksheet.value, token)
        if not table.ok:
            return table

        return Ok(ResolvedAddress(
            site_id=site.value,
            drive_id=drive.value,
            file_id=item.value,
            worksheet_id=worksheet.value,
            table_name=table.value,
        ))

    async def resolve_site(self, site_name: str, token: AccessToken) -> Result[str]:
        """
        Search the site directory by display name.

        Zero matches fail. With several matches an exact (case-insensitive)
        displayName/name match wins, otherwise the first search hit is taken.
        """
        body = await self._fetch(STAGE_SITE, "/sites", token, params={"search": site_name})
        if not body.ok:
            return body

        sites = _entries(body.value)
        if not sites:
            return Err(ResolutionFailure(STAGE_SITE, f"No site matches '{site_name}'"))

        wanted = site_name.casefold()
        exact = [
            s for s in sites
            if str(s.get("displayName") or "").casefold() == wanted
            or str(s.get("name") or "").casefold() == wanted
        ]
        chosen = exact[0] if exact else sites[0]
        if len(sites) > 1:
            logger.warning(
                f"Site search for '{site_name}' returned {len(sites)} results, using '{chosen.get('displayName')}'",
                extra={"candidates": [s.get("displayName") for s in sites]},
            )

        if not chosen.get("id"):
            return Err(ResolutionFailure(STAGE_SITE, "Site search result has no id", payload=chosen))
        return Ok(chosen["id"])

    async def resolve_drive(self, site_id: str, token: AccessToken) -> Result[str]:
        """First document library of the site."""
        body = await self._fetch(STAGE_DRIVE, f"/sites/{quote(site_id, safe='')}/drives", token)
        if not body.ok:
            return body

        drives = _entries(body.value)
        if not drives or not drives[0].get("id"):
            return Err(ResolutionFailure(STAGE_DRIVE, f"Site {site_id} has no drives"))
        return Ok(drives[0]["id"])

    async def resolve_file(self, drive_id: str, file_path: str, token: AccessToken) -> Result[str]:
        """Exact, case-sensitive lookup of a server-relative path."""
        path = file_path if file_path.startswith("/") else f"/{file_path}"
        body = await self._fetch(
            STAGE_FILE, f"/drives/{quote(drive_id, safe='')}/root:{quote(path, safe='/')}", token
        )
        if not body.ok:
            return body

        expected_name = PurePosixPath(path).name
        actual_name = body.value.get("name")
        if actual_name is not None and actual_name != expected_name:
            return Err(ResolutionFailure(
                STAGE_FILE,
                f"Path case mismatch: expected '{expected_name}', found '{actual_name}'",
            ))
        if not body.value.get("id"):
            return Err(ResolutionFailure(STAGE_FILE, f"No item id for '{path}'", payload=body.value))
        return Ok(body.value["id"])

    async def resolve_worksheet(self, drive_id: str, file_id: str, token: AccessToken) -> Result[str]:
        """Worksheet labelled Aderência / Aderencia, any case."""
        path = f"/drives/{quote(drive_id, safe='')}/items/{quote(file_id, safe='')}/workbook/worksheets"
        body = await self._fetch(STAGE_WORKSHEET, path, token)
        if not body.ok:
            return body

        worksheets = _entries(body.value)
        for sheet in worksheets:
            if str(sheet.get("name") or "").casefold() in WORKSHEET_LABELS:
                if not sheet.get("id"):
                    return Err(ResolutionFailure(STAGE_WORKSHEET, "Worksheet entry has no id", payload=sheet))
                return Ok(sheet["id"])

        available = [sheet.get("name") for sheet in worksheets]
        return Err(ResolutionFailure(
            STAGE_WORKSHEET,
            f"No 'Aderência' worksheet; available: {available}",
            payload={"available": available},
        ))

    async def resolve_table(
        self, drive_id: str, file_id: str, worksheet_id: str, token: AccessToken
    ) -> Result[str]:
        """Table named exactly Aderência inside the worksheet."""
        path = (
            f"/drives/{quote(drive_id, safe='')}/items/{quote(file_id, safe='')}"
            f"/workbook/worksheets/{quote(worksheet_id, safe='')}/tables"
        )
        body = await self._fetch(STAGE_TABLE, path, token)
        if not body.ok:
            return body

        tables = _entries(body.value)
        for table in tables:
            if table.get("name") == TABLE_NAME:
                return Ok(table["name"])

        available = [table.get("name") for table in tables]
        return Err(ResolutionFailure(
            STAGE_TABLE,
            f"No '{TABLE_NAME}' table in worksheet; available: {available}",
            payload={"available": available},
        ))

    async def _fetch(
        self, stage: str, path: str, token: AccessToken, params: dict[str, str] | None = None
    ) -> Result[dict[str, Any]]:
        try:
            return Ok(await self.client.get(path, token, params=params))
        except GraphRequestError as e:
            return Err(ResolutionFailure(stage, str(e), payload=e.payload))
        except httpx.HTTPError as e:
            return Err(ResolutionFailure(stage, f"{type(e).__name__}: {e}"))
