"""Credentials and the resolver contract the dispatcher depends on.

The core never issues credentials. It asks a CredentialResolver for one per
(toolkit, caller) pair and attaches whatever comes back according to the
toolkit's attachment strategy.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_serializer, field_validator


class Credential(BaseModel):
    """Opaque secret issued for one toolkit and caller.

    The value is a SecretStr so it never shows up in reprs, logs or JSON dumps.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: SecretStr
    username: Annotated[str, Field(min_length=1)] | None = None
    expires_at: datetime | None = None
    metadata: dict[str, str] = Field(default_factory=dict, repr=False)

    @field_validator("value", mode="before")
    @classmethod
    def _non_empty(cls, v: str | SecretStr) -> str | SecretStr:
        raw = v.get_secret_value() if isinstance(v, SecretStr) else v
        if not raw:
            raise ValueError("credential value must not be empty")
        return v

    @field_validator("expires_at")
    @classmethod
    def _aware(cls, v: datetime | None) -> datetime | None:
        """Naive datetimes are taken as UTC."""
        return v.replace(tzinfo=UTC) if v is not None and v.tzinfo is None else v

    @field_serializer("value", when_used="json")
    def _mask_value(self, v: SecretStr) -> str:
        return "***"

    def secret(self) -> str:
        return self.value.get_secret_value()

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(UTC)) >= self.expires_at


@runtime_checkable
class CredentialResolver(Protocol):
    """Source of credentials, implemented outside the core.

    ``resolve`` returns a usable Credential or raises NoCredentialError /
    ExpiredCredentialError. Implementations must be safe to call
    concurrently and idempotent for the same pair within a short window.
    """

    async def resolve(self, toolkit_id: str, caller: str) -> Credential: ...
