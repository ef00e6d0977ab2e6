"""Credential model, resolver contract and attachment strategies."""

from .credential import Credential, CredentialResolver
from .strategies import ApiKeyHeader, ApiKeyQuery, AuthStrategy, BasicAuth, BearerAuth, NoAuth

__all__ = [
    "Credential",
    "CredentialResolver",
    "AuthStrategy",
    "NoAuth",
    "BearerAuth",
    "ApiKeyHeader",
    "ApiKeyQuery",
    "BasicAuth",
]
