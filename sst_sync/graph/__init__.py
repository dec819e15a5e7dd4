"""
Graph API access: HTTP client, token provider and resource resolver.
"""

from .client import GraphClient, GraphRequestError, build_http_client
from .resolver import STAGES, ResourceResolver
from .token_provider import TokenCache, TokenProvider

__all__ = [
    "GraphClient",
    "GraphRequestError",
    "build_http_client",
    "ResourceResolver",
    "STAGES",
    "TokenCache",
    "TokenProvider",
]
