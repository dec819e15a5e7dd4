"""
SyncLogEntry model: the outcome of one pull of the adherence table.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field


class SyncLogEntry(BaseModel):
    """
    One pull attempt.

    Attributes:
        log_id: Store-assigned id (None until persisted)
        status: "success" or "error"
        message: Human readable summary
        error_details: Diagnostic payload for failures
        records_processed: Rows in the pulled snapshot (0 on failure)
        trigger: "manual" or "timer"
        synced_at: When the pull finished
    """

    log_id: int | None = None
    status: Literal["success", "error"]
    message: str
    error_details: str | None = None
    records_processed: int = Field(0, ge=0)
    trigger: Literal["manual", "timer"] = "manual"
    synced_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
