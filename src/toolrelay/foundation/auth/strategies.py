"""Credential attachment strategies.

A toolkit declares how its credential travels on the outbound request:
as a bearer header, an API-key header, a query parameter, or HTTP Basic.
The strategy holds no secret itself; it is applied per request to the
credential the resolver returned.
"""

from __future__ import annotations

import base64
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

from .credential import Credential

_HEADER_PATTERN = r"^[A-Za-z][A-Za-z0-9-]*$"


class NoAuth(BaseModel):
    """Toolkit needs no credential."""

    model_config = ConfigDict(frozen=True, extra="forbid")
    auth_type: Literal["none"] = "none"

    @property
    def requires_credential(self) -> bool:
        return False

    def apply(self, headers: dict[str, str], params: dict[str, str], credential: Credential | None) -> None:
        return None


class BearerAuth(BaseModel):
    """``Authorization: Bearer <token>`` (OAuth2 access tokens, JWTs)."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)
    auth_type: Literal["bearer"] = "bearer"
    header: Annotated[str, Field(pattern=_HEADER_PATTERN)] = "Authorization"
    scheme: str = "Bearer"

    @property
    def requires_credential(self) -> bool:
        return True

    def apply(self, headers: dict[str, str], params: dict[str, str], credential: Credential | None) -> None:
        if credential is not None:
            token = credential.secret()
            headers[self.header] = f"{self.scheme} {token}" if self.scheme else token


class ApiKeyHeader(BaseModel):
    """API key sent verbatim in a named header."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)
    auth_type: Literal["api_key_header"] = "api_key_header"
    header_name: Annotated[str, Field(pattern=_HEADER_PATTERN)] = "X-API-Key"

    @property
    def requires_credential(self) -> bool:
        return True

    def apply(self, headers: dict[str, str], params: dict[str, str], credential: Credential | None) -> None:
        if credential is not None:
            headers[self.header_name] = credential.secret()


class ApiKeyQuery(BaseModel):
    """API key sent as a query parameter."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)
    auth_type: Literal["api_key_query"] = "api_key_query"
    param_name: Annotated[str, Field(min_length=1)] = "api_key"

    @property
    def requires_credential(self) -> bool:
        return True

    def apply(self, headers: dict[str, str], params: dict[str, str], credential: Credential | None) -> None:
        if credential is not None:
            params[self.param_name] = credential.secret()


class BasicAuth(BaseModel):
    """HTTP Basic with ``credential.username`` and the secret as password."""

    model_config = ConfigDict(frozen=True, extra="forbid")
    auth_type: Literal["basic"] = "basic"

    @property
    def requires_credential(self) -> bool:
        return True

    def apply(self, headers: dict[str, str], params: dict[str, str], credential: Credential | None) -> None:
        if credential is not None:
            pair = f"{credential.username or ''}:{credential.secret()}".encode()
            headers["Authorization"] = f"Basic {base64.b64encode(pair).decode()}"


def _auth_discriminator(v: dict[str, object] | BaseModel) -> str:
    if isinstance(v, dict):
        return str(v.get("auth_type", "none"))
    return getattr(v, "auth_type", "none")


AuthStrategy = Annotated[
    Annotated[NoAuth, Tag("none")]
    | Annotated[BearerAuth, Tag("bearer")]
    | Annotated[ApiKeyHeader, Tag("api_key_header")]
    | Annotated[ApiKeyQuery, Tag("api_key_query")]
    | Annotated[BasicAuth, Tag("basic")],
    Discriminator(_auth_discriminator),
]
