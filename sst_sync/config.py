"""
Runtime configuration read from the environment.

All five SharePoint settings are mandatory; a missing one is a startup
error, never a runtime retry condition.
"""

import os
from typing import Mapping

from pydantic import BaseModel, Field, SecretStr, field_validator

from sst_sync.core.errors import ConfigurationError

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
LOGIN_BASE_URL = "https://login.microsoftonline.com"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_SYNC_INTERVAL_SECONDS = 300

REQUIRED_ENV_VARS = {
    "tenant_id": "SHAREPOINT_TENANT_ID",
    "client_id": "SHAREPOINT_CLIENT_ID",
    "client_secret": "SHAREPOINT_CLIENT_SECRET",
    "site_name": "SHAREPOINT_SITE_NAME",
    "file_path": "SHAREPOINT_FILE_PATH",
}


class SharePointSettings(BaseModel):
    """
    Credentials and addressing for the remote adherence spreadsheet.

    Attributes:
        tenant_id: Identity provider tenant
        client_id: App registration id
        client_secret: App registration secret
        site_name: Human readable site name, resolved to an id at runtime
        file_path: Server-relative workbook path inside the default drive
        http_timeout: Per-call timeout in seconds
        sync_interval_seconds: Period of the background pull
    """

    tenant_id: str = Field(..., min_length=1)
    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    site_name: str = Field(..., min_length=1)
    file_path: str = Field(..., min_length=1)
    http_timeout: float = Field(DEFAULT_HTTP_TIMEOUT, gt=0)
    sync_interval_seconds: int = Field(DEFAULT_SYNC_INTERVAL_SECONDS, gt=0)
    graph_base_url: str = GRAPH_BASE_URL
    login_base_url: str = LOGIN_BASE_URL

    @field_validator("file_path")
    @classmethod
    def leading_slash(cls, v: str) -> str:
        return v if v.startswith("/") else f"/{v}"

    @property
    def token_url(self) -> str:
        return f"{self.login_base_url.rstrip('/')}/{self.tenant_id}/oauth2/v2.0/token"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SharePointSettings":
        """
        Build settings from environment variables.

        Raises:
            ConfigurationError: Naming every missing required variable
        """
        env = os.environ if environ is None else environ

        values = {}
        missing = []
        for field_name, var in REQUIRED_ENV_VARS.items():
            value = (env.get(var) or "").strip()
            if not value:
                missing.append(var)
            values[field_name] = value

        if missing:
            raise ConfigurationError(missing)

        try:
            values["http_timeout"] = float(env.get("SHAREPOINT_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT))
            values["sync_interval_seconds"] = int(
                env.get("SYNC_INTERVAL_SECONDS", DEFAULT_SYNC_INTERVAL_SECONDS)
            )
        except ValueError as e:
            raise ConfigurationError(message=f"Invalid numeric setting: {e}") from e

        values["graph_base_url"] = env.get("GRAPH_BASE_URL", GRAPH_BASE_URL)
        values["login_base_url"] = env.get("LOGIN_BASE_URL", LOGIN_BASE_URL)

        return cls(**values)
