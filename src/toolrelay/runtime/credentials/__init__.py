"""Credential resolvers: static table, function adapter and TTL cache."""

from .resolvers import ANY_CALLER, CachingResolver, CallableResolver, StaticCredentialResolver

__all__ = ["StaticCredentialResolver", "CallableResolver", "CachingResolver", "ANY_CALLER"]
