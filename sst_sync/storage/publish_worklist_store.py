"""
Failed-publish worklist persisted in PostgreSQL (``failed_publishes`` table).

Lets a failed publish from one ``sst-sync route confirm`` run be retried
by a later ``sst-sync route retry-publishes`` run.
"""

import json
from typing import Any

import psycopg

from sst_sync.core.models import AdherenceRecord
from sst_sync.observability.logger import get_logger
from sst_sync.routes.worklist import FailedPublish, FailedPublishWorklist

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

CREATE_FAILED_PUBLISHES_TABLE = """
    CREATE TABLE IF NOT EXISTS failed_publishes (
        route_number VARCHAR(64) PRIMARY KEY,
        record JSONB NOT NULL,
        error JSONB NOT NULL,
        attempts INTEGER NOT NULL DEFAULT 1 CHECK (attempts >= 1),
        failed_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
"""

UPSERT_COLUMNS = "(route_number, record, error, attempts, failed_at)"
UPSERT_VALUES = "(%(route_number)s, %(record)s, %(error)s, %(attempts)s, %(failed_at)s)"


def _from_row(row: dict) -> FailedPublish:
    return FailedPublish(
        record=row["record"],
        error=row["error"],
        attempts=row["attempts"],
        failed_at=row["failed_at"],
    )


class PostgresPublishWorklist(FailedPublishWorklist):
    def __init__(self, pool: DatabaseConnectionPool):
        super().__init__()
        self.pool = pool

    def ensure_schema(self) -> None:
        self.pool.execute_command(CREATE_FAILED_PUBLISHES_TABLE)

    def add(self, record: AdherenceRecord, error: dict[str, Any], attempts: int | None = None) -> FailedPublish:
        if attempts is None:
            on_conflict = "attempts = failed_publishes.attempts + 1"
            attempts = 1
        else:
            on_conflict = "attempts = EXCLUDED.attempts"

        query = f"""
            INSERT INTO failed_publishes {UPSERT_COLUMNS} VALUES {UPSERT_VALUES}
            ON CONFLICT (route_number) DO UPDATE SET
                record = EXCLUDED.record,
                error = EXCLUDED.error,
                failed_at = EXCLUDED.failed_at,
                {on_conflict}
            RETURNING *
        """
        item = FailedPublish(record=record, error=error, attempts=attempts)
        params = {
            "route_number": record.route_number,
            "record": json.dumps(record.model_dump(mode="json", exclude={"status"})),
            "error": json.dumps(error, default=str),
            "attempts": attempts,
            "failed_at": item.failed_at,
        }
        try:
            row = self._fetch_one(query, params)
        except psycopg.DatabaseError as e:
            logger.error(
                f"Failed to queue route {record.route_number} for publish retry: {e}",
                extra={"route_number": record.route_number, "error": error},
            )
            raise

        stored = _from_row(row)
        self._queued(stored)
        return stored

    def claim(self, route_number: str) -> FailedPublish | None:
        row = self._fetch_one(
            "DELETE FROM failed_publishes WHERE route_number = %(route_number)s RETURNING *",
            {"route_number": route_number},
        )
        return _from_row(row) if row else None

    def pending(self) -> list[FailedPublish]:
        rows = self.pool.execute_query("SELECT * FROM failed_publishes ORDER BY failed_at, route_number")
        return [_from_row(row) for row in rows]

    def __len__(self) -> int:
        return self.pool.execute_query("SELECT COUNT(*) AS n FROM failed_publishes")[0]["n"]

    def _fetch_one(self, query: str, params: dict) -> dict | None:
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                row = cur.fetchone()
            conn.commit()
        return row
