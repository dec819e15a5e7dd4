"""
Core data models for route tracking and adherence synchronization.

All models use Pydantic for runtime validation and type safety.
"""

from .access_token import AccessToken
from .adherence_record import (
    AdherenceRecord,
    AdherenceStatus,
    PresenceFlag,
    derive_status,
    normalize_presence,
)
from .resolved_address import ResolvedAddress
from .route import TERMINAL_STATUSES, Route, RouteStatus
from .sync_log import SyncLogEntry

__all__ = [
    "AccessToken",
    "AdherenceRecord",
    "AdherenceStatus",
    "PresenceFlag",
    "derive_status",
    "normalize_presence",
    "ResolvedAddress",
    "Route",
    "RouteStatus",
    "TERMINAL_STATUSES",
    "SyncLogEntry",
]
