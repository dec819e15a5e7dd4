"""
Route model: a scheduled safety inspection of one factory sector.
"""

from datetime import date, datetime, time, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RouteStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({RouteStatus.COMPLETED, RouteStatus.CANCELLED})


class Route(BaseModel):
    """
    Locally owned inspection route.

    Routes are created by an operator, mutated only by state-machine
    transitions and never deleted; cancellation is a terminal status.

    Attributes:
        route_id: Numeric id assigned by the store at creation
        route_date: Scheduled date
        route_time: Scheduled time
        sector: Inspected area
        safety_technician: Safety technician (mandatory)
        maintenance_representative: Maintenance representative (mandatory)
        production_representative: Production representative (mandatory)
        guests: Free-text guest list, comma separated
        notes: Scheduling notes
        status: Lifecycle status
        responsible_party: Who confirmed the route
        confirmed_at / confirmation_notes: Confirmation metadata
        all_present: Whether every participant attended (set on confirm)
        completed_at / completion_notes: Completion metadata
        cancelled_at / cancellation_notes: Cancellation metadata
        created_at / updated_at: Audit timestamps
    """

    route_id: int | None = None
    route_date: date
    route_time: time
    sector: str = Field(..., min_length=1)
    safety_technician: str = Field(..., min_length=1)
    maintenance_representative: str = Field(..., min_length=1)
    production_representative: str = Field(..., min_length=1)
    guests: str | None = None
    notes: str | None = None
    status: RouteStatus = RouteStatus.PENDING

    responsible_party: str | None = None
    confirmed_at: datetime | None = None
    confirmation_notes: str | None = None
    all_present: bool | None = None
    completed_at: datetime | None = None
    completion_notes: str | None = None
    cancelled_at: datetime | None = None
    cancellation_notes: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator(
        "sector",
        "safety_technician",
        "maintenance_representative",
        "production_representative",
    )
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @model_validator(mode="after")
    def check_timestamps(self) -> "Route":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not precede created_at")
        return self

    @property
    def route_number(self) -> str:
        """Stable remote key derived from the local id."""
        if self.route_id is None:
            raise ValueError("Route has no id yet")
        return f"ROTA-{self.route_id}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    class Config:
        json_schema_extra = {
            "example": {
                "route_id": 12,
                "route_date": "2026-01-15",
                "route_time": "14:00",
                "sector": "Xarope",
                "safety_technician": "João Silva",
                "maintenance_representative": "Carlos Santos",
                "production_representative": "Maria Oliveira",
                "guests": "Qualidade, Utilidades",
                "status": "pending",
            }
        }
