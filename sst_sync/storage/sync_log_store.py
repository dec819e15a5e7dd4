"""
Sync log persisted in PostgreSQL (``sync_logs`` table).
"""

import psycopg

from sst_sync.core.models import SyncLogEntry
from sst_sync.observability.logger import get_logger
from sst_sync.sync.sync_log import SyncLogSink

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

CREATE_SYNC_LOGS_TABLE = """
    CREATE TABLE IF NOT EXISTS sync_logs (
        log_id SERIAL PRIMARY KEY,
        status VARCHAR(16) NOT NULL CHECK (status IN ('success', 'error')),
        message TEXT NOT NULL,
        error_details TEXT,
        records_processed INTEGER NOT NULL DEFAULT 0,
        trigger VARCHAR(16) NOT NULL DEFAULT 'manual',
        synced_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
"""


class PostgresSyncLog(SyncLogSink):
    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def ensure_schema(self) -> None:
        self.pool.execute_command(CREATE_SYNC_LOGS_TABLE)

    def record(self, entry: SyncLogEntry) -> None:
        """
        Insert one entry.

        A database error is logged and not raised.
        """
        insert_sql = """
            INSERT INTO sync_logs (
                status, message, error_details, records_processed, trigger, synced_at
            ) VALUES (
                %(status)s, %(message)s, %(error_details)s,
                %(records_processed)s, %(trigger)s, %(synced_at)s
            )
        """
        try:
            self.pool.execute_command(insert_sql, entry.model_dump(exclude={"log_id"}))
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to insert sync log entry: {e}", extra={"status": entry.status})

    def recent(self, limit: int = 20) -> list[SyncLogEntry]:
        rows = self.pool.execute_query(
            "SELECT * FROM sync_logs ORDER BY synced_at DESC, log_id DESC LIMIT %s", (limit,)
        )
        return [SyncLogEntry(**row) for row in rows]
