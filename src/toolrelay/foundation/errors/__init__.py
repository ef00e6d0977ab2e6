"""Unified error handling for toolrelay.

- ErrorKind: fixed taxonomy of invocation failures
- ToolrelayError and subclasses: exceptions raised inside the core
- Violation/ValidationFailure: per-path schema violations
- Result/Ok/Err: non-raising outcomes between pipeline stages
- ResultEnvelope/ErrorInfo: the uniform shape returned to callers
"""

from .envelope import DEFAULT_MESSAGE_LIMIT, ErrorInfo, ResultEnvelope, sanitize_message
from .errors import (
    CredentialError,
    DuplicateToolError,
    ErrorKind,
    ExpiredCredentialError,
    HandlerError,
    InvalidInputError,
    InvocationCancelledError,
    MalformedResponseError,
    NoCredentialError,
    RemoteCallError,
    ToolNotFoundError,
    ToolRegistrationError,
    ToolrelayError,
    ToolTimeoutError,
    classify_exception,
)
from .result import Err, Ok, Result
from .validation import ValidationFailure, Violation

__all__ = [
    # Taxonomy
    "ErrorKind", "classify_exception",
    # Exceptions
    "ToolrelayError", "ToolNotFoundError", "DuplicateToolError", "ToolRegistrationError",
    "InvalidInputError", "CredentialError", "NoCredentialError", "ExpiredCredentialError",
    "HandlerError", "RemoteCallError", "ToolTimeoutError", "MalformedResponseError",
    "InvocationCancelledError",
    # Validation detail
    "Violation", "ValidationFailure",
    # Result
    "Result", "Ok", "Err",
    # Envelope
    "ResultEnvelope", "ErrorInfo", "sanitize_message", "DEFAULT_MESSAGE_LIMIT",
]
