"""Testing utilities: fake remote APIs, mock resolvers and handler spies."""

from .fixture import MockAPI, MockResponse, RecordedRequest
from .mock import HandlerCall, HandlerSpy, LogCapture, MockResolver

__all__ = ["MockAPI", "MockResponse", "RecordedRequest", "MockResolver", "HandlerSpy", "HandlerCall", "LogCapture"]
