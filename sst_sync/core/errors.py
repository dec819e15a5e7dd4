"""
Error taxonomy for the synchronization pipeline and the route lifecycle.

Local errors (validation, transitions) are raised or returned immediately.
Remote errors (auth, resolution, publish) carry the provider's diagnostic
payload so it can be logged.
"""

from typing import Any


class SyncError(Exception):
    """Base class for every error this package surfaces to callers."""

    kind = "sync_error"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": str(self)}


class ConfigurationError(SyncError):
    """Required configuration is missing or malformed (startup-time)."""

    kind = "configuration"

    def __init__(self, missing: list[str] | None = None, message: str | None = None):
        self.missing = list(missing or [])
        if message is None:
            message = "Missing required configuration: " + ", ".join(self.missing)
        super().__init__(message)


class AuthFailure(SyncError):
    """Token endpoint unreachable or credentials rejected."""

    kind = "auth"

    def __init__(self, message: str, payload: Any = None, status_code: int | None = None):
        self.payload = payload
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "status_code": self.status_code, "payload": self.payload}


class ResolutionFailure(SyncError):
    """One stage of the site -> drive -> file -> worksheet -> table chain failed."""

    kind = "resolution"

    def __init__(self, stage: str, detail: str, payload: Any = None):
        self.stage = stage
        self.detail = detail
        self.payload = payload
        super().__init__(f"[{stage}] {detail}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "stage": self.stage, "payload": self.payload}


class ValidationFailure(SyncError):
    """A record or transition argument was rejected before any network call."""

    kind = "validation"

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"{field} is required")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "field": self.field}


class PublishFailure(SyncError):
    """The row insertion call failed after a successful resolution."""

    kind = "publish"

    def __init__(self, message: str, payload: Any = None, status_code: int | None = None):
        self.payload = payload
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "status_code": self.status_code, "payload": self.payload}


class FetchFailure(SyncError):
    """Reading the rows of a resolved table failed."""

    kind = "fetch"

    def __init__(self, message: str, payload: Any = None, status_code: int | None = None):
        self.payload = payload
        self.status_code = status_code
        super().__init__(message)


class TransitionFailure(SyncError):
    """Illegal route state-machine move; the route is left unchanged."""

    kind = "transition"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Cannot move route from '{from_status}' to '{to_status}'")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "from": self.from_status, "to": self.to_status}


class RouteNotFound(SyncError):
    """No route with the given id exists in the store."""

    kind = "not_found"

    def __init__(self, route_id: int):
        self.route_id = route_id
        super().__init__(f"Route {route_id} not found")
