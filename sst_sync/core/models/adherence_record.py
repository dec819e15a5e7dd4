"""
AdherenceRecord model: one row of the remote "Aderência" table.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, computed_field, field_validator


class PresenceFlag(str, Enum):
    YES = "SIM"
    NO = "NÃO"


class AdherenceStatus(str, Enum):
    COMPLETED = "CONCLUÍDO"
    PENDING = "PENDENTE"


# Values read as "everyone attended"; anything else means NÃO
_TRUTHY_PRESENCE = frozenset({"SIM", "S", "TRUE", "YES", "Y", "1"})


def normalize_presence(value: Any) -> PresenceFlag:
    """Map any boolean-equivalent input onto SIM / NÃO."""
    if isinstance(value, PresenceFlag):
        return value
    if isinstance(value, bool):
        return PresenceFlag.YES if value else PresenceFlag.NO
    if isinstance(value, (int, float)):
        return PresenceFlag.YES if value == 1 else PresenceFlag.NO
    if isinstance(value, str) and value.strip().upper() in _TRUTHY_PRESENCE:
        return PresenceFlag.YES
    return PresenceFlag.NO


def derive_status(all_present: Any) -> AdherenceStatus:
    """CONCLUÍDO when everyone attended, PENDENTE otherwise."""
    if normalize_presence(all_present) is PresenceFlag.YES:
        return AdherenceStatus.COMPLETED
    return AdherenceStatus.PENDING


class AdherenceRecord(BaseModel):
    """
    Outcome of one confirmed route as stored remotely.

    Text fields default to "" because remote cells may be blank; required
    fields are enforced by DataMapper.validate, not by the model. ``status``
    is always computed from ``all_present``.
    """

    route_number: str = ""
    sector: str = ""
    safety_technician: str = ""
    maintenance: str = ""
    production: str = ""
    guests: str = ""
    all_present: PresenceFlag = PresenceFlag.NO
    planned_date: str = ""
    actual_date: str = ""

    @field_validator("all_present", mode="before")
    @classmethod
    def coerce_presence(cls, v: Any) -> PresenceFlag:
        return normalize_presence(v)

    @computed_field
    @property
    def status(self) -> AdherenceStatus:
        return derive_status(self.all_present)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "route_number": "ROTA-12",
                "sector": "Xarope",
                "safety_technician": "João Silva",
                "maintenance": "Carlos Santos",
                "production": "Maria Oliveira",
                "guests": "Qualidade",
                "all_present": "SIM",
                "planned_date": "2026-01-15",
                "actual_date": "2026-01-15",
                "status": "CONCLUÍDO",
            }
        }
