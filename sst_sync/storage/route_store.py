"""
PostgreSQL-backed route repository.

Rows are never deleted; cancelled routes stay with status 'cancelled'.
"""

import psycopg

from sst_sync.core.errors import RouteNotFound, TransitionFailure
from sst_sync.core.models import Route, RouteStatus
from sst_sync.observability.logger import get_logger
from sst_sync.routes.repository import RouteRepository

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

ROUTE_COLUMNS = (
    "route_date",
    "route_time",
    "sector",
    "safety_technician",
    "maintenance_representative",
    "production_representative",
    "guests",
    "notes",
    "status",
    "responsible_party",
    "confirmed_at",
    "confirmation_notes",
    "all_present",
    "completed_at",
    "completion_notes",
    "cancelled_at",
    "cancellation_notes",
    "created_at",
    "updated_at",
)

CREATE_ROUTES_TABLE = """
    CREATE TABLE IF NOT EXISTS scheduled_routes (
        route_id SERIAL PRIMARY KEY,
        route_date DATE NOT NULL,
        route_time TIME NOT NULL,
        sector VARCHAR(255) NOT NULL,
        safety_technician VARCHAR(255) NOT NULL,
        maintenance_representative VARCHAR(255) NOT NULL,
        production_representative VARCHAR(255) NOT NULL,
        guests TEXT,
        notes TEXT,
        status VARCHAR(16) NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'confirmed', 'completed', 'cancelled')),
        responsible_party VARCHAR(255),
        confirmed_at TIMESTAMPTZ,
        confirmation_notes TEXT,
        all_present BOOLEAN,
        completed_at TIMESTAMPTZ,
        completion_notes TEXT,
        cancelled_at TIMESTAMPTZ,
        cancellation_notes TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CHECK (updated_at >= created_at)
    );
"""


def _params(route: Route) -> dict:
    params = route.model_dump(include=set(ROUTE_COLUMNS))
    params["status"] = route.status.value
    return params


class PostgresRouteRepository(RouteRepository):
    """
    Route repository on the ``scheduled_routes`` table.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def ensure_schema(self) -> None:
        """Create the routes table if it does not exist."""
        self.pool.execute_command(CREATE_ROUTES_TABLE)

    def add(self, route: Route) -> Route:
        columns = ", ".join(ROUTE_COLUMNS)
        placeholders = ", ".join(f"%({c})s" for c in ROUTE_COLUMNS)
        query = f"INSERT INTO scheduled_routes ({columns}) VALUES ({placeholders}) RETURNING route_id"

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, _params(route))
                    route_id = cur.fetchone()["route_id"]
                conn.commit()
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to insert route: {e}")
            raise

        logger.debug(f"Inserted route {route_id}")
        return route.model_copy(update={"route_id": route_id})

    def get(self, route_id: int) -> Route:
        rows = self.pool.execute_query(
            "SELECT * FROM scheduled_routes WHERE route_id = %s", (route_id,)
        )
        if not rows:
            raise RouteNotFound(route_id)
        return Route(**rows[0])

    def save(self, route: Route, expected_status: RouteStatus | None = None) -> Route:
        """
        Overwrite the stored row.

        With ``expected_status`` the update only applies while the row still
        has that status, so two processes racing on one transition cannot
        both commit it.

        Raises:
            RouteNotFound: No row with this id
            TransitionFailure: The row no longer has ``expected_status``
        """
        assignments = ", ".join(f"{c} = %({c})s" for c in ROUTE_COLUMNS)
        params = _params(route)
        params["route_id"] = route.route_id
        query = f"UPDATE scheduled_routes SET {assignments} WHERE route_id = %(route_id)s"
        if expected_status is not None:
            params["expected_status"] = RouteStatus(expected_status).value
            query += " AND status = %(expected_status)s"

        try:
            updated = self.pool.execute_command(query, params)
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to update route {route.route_id}: {e}")
            raise

        if updated == 0:
            current = self.get(route.route_id)
            logger.warning(
                f"Route {route.route_id} changed to '{current.status.value}' before this update",
                extra={"route_id": route.route_id, "expected_status": params.get("expected_status")},
            )
            raise TransitionFailure(current.status.value, route.status.value)
        return route

    def list(self, status: RouteStatus | None = None) -> list[Route]:
        if status is None:
            rows = self.pool.execute_query("SELECT * FROM scheduled_routes ORDER BY route_id")
        else:
            rows = self.pool.execute_query(
                "SELECT * FROM scheduled_routes WHERE status = %s ORDER BY route_id",
                (RouteStatus(status).value,),
            )
        return [Route(**row) for row in rows]
