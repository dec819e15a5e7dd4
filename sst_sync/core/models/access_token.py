"""
AccessToken model: a cached OAuth2 client-credentials bearer token.
"""

from pydantic import BaseModel, SecretStr

# Tokens are dropped this many seconds before their real expiry
EXPIRY_SKEW_SECONDS = 60


class AccessToken(BaseModel):
    """
    Bearer token plus its absolute expiry (epoch seconds).

    The token value is a SecretStr so it never shows up in reprs or logs.
    """

    access_token: SecretStr
    token_type: str = "Bearer"
    expires_at: float

    def is_fresh(self, now: float, skew: float = EXPIRY_SKEW_SECONDS) -> bool:
        """True while ``now`` is more than ``skew`` seconds before expiry."""
        return now < self.expires_at - skew

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.access_token.get_secret_value()}"
