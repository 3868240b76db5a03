"""
Realtime Errors
===============

Exception hierarchy and the error stream for the realtime conversation SDK.

Two kinds of failure exist:

- Fatal ones (connection setup) are raised from ``connect`` as exceptions.
- Everything else (server-reported protocol errors, failed best-effort sends,
  undecodable frames) is delivered as a :class:`ServerError` value on the
  conversation's :class:`ErrorStream` and never interrupts event processing.
"""

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, List, Optional

from pydantic import BaseModel, ConfigDict

from src.realtime_api.utils import generate_id


class ServerError(BaseModel):
    """An error reported by the server, or a local failure wrapped into the same shape."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str
    """The type of error (e.g. ``invalid_request_error``, ``server_error``)."""

    code: Optional[str] = None
    message: str
    param: Optional[str] = None

    event_id: Optional[str] = None
    """The id of the client event that caused the error, if applicable."""

    @classmethod
    def from_exception(cls, exc: BaseException, event_id: Optional[str] = None) -> "ServerError":
        """Wrap a locally raised exception so it can travel on the error stream."""
        code = getattr(exc, "code", None) or getattr(exc, "errno", None)
        return cls(
            type=type(exc).__name__,
            code=str(code) if code is not None else None,
            message=str(exc) or repr(exc),
            param=repr(exc.args) if exc.args else None,
            event_id=event_id or generate_id("local_", 16),
        )

    def __str__(self) -> str:
        parameters = ", ".join(
            f"{key}: {value}"
            for key, value in (
                ("type", self.type),
                ("code", self.code),
                ("message", self.message),
                ("param", self.param),
                ("event_id", self.event_id),
            )
            if value is not None
        )
        return f"ServerError({parameters})"


class RealtimeError(Exception):
    """Base exception for the realtime SDK."""

    pass


# ========================
# Conversation Exceptions
# ========================


class ConversationError(RealtimeError):
    """Base exception for conversation-level failures."""

    pass


class SessionNotFoundError(ConversationError):
    """Raised when the session is changed before the server has created it."""

    def __init__(self):
        super().__init__("No session yet; wait for session.created before updating it")


class NotConnectedError(ConversationError):
    """Raised when an event is sent while the transport is not connected."""

    def __init__(self, event_type: Optional[str] = None):
        self.event_type = event_type
        detail = f" (event {event_type})" if event_type else ""
        super().__init__(f"Transport is not connected{detail}")


# ========================
# Transport Exceptions
# ========================


class TransportError(RealtimeError):
    """Base exception for transport failures."""

    pass


class InvalidCredentialError(TransportError):
    """Raised when the server rejects the API key or ephemeral key."""

    def __init__(self, status_code: int = 401):
        self.status_code = status_code
        super().__init__(f"Invalid credential (HTTP {status_code})")


class HandshakeError(TransportError):
    """Raised when the connection cannot be established."""

    def __init__(self, url: str, error_detail: str):
        self.url = url
        self.error_detail = error_detail
        super().__init__(f"Failed to connect to {url}: {error_detail}")


class EventDecodeError(TransportError):
    """Raised when an inbound frame cannot be decoded into a server event."""

    def __init__(self, path: str, error_detail: str, event_type: Optional[str] = None):
        self.path = path
        self.event_type = event_type
        self.error_detail = error_detail
        super().__init__(f"Cannot decode {event_type or 'event'} at {path}: {error_detail}")


# ========================
# Schema Exceptions
# ========================


class SchemaDecodeError(ValueError):
    """Raised when a dict cannot be decoded into a JSON schema."""

    def __init__(self, path: str, error_detail: str):
        self.path = path
        self.error_detail = error_detail
        super().__init__(f"Invalid JSON schema at {path}: {error_detail}")


class SchemaValidationError(RealtimeError):
    """
    Base exception for JSON schema validation failures.

    ``path`` is a JSON-pointer-like location of the offending value,
    e.g. ``$``, ``$.records[2].fields``.
    """

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class TypeMismatchError(SchemaValidationError):
    def __init__(self, path: str, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(path, f"expected {expected}, got {actual}")


class MissingRequiredPropertyError(SchemaValidationError):
    def __init__(self, path: str, property_name: str):
        self.property_name = property_name
        super().__init__(path, f"missing required property '{property_name}'")


class EnumMismatchError(SchemaValidationError):
    def __init__(self, path: str, value, cases):
        self.value = value
        self.cases = list(cases)
        super().__init__(path, f"{value!r} is not one of {self.cases}")


class PatternMismatchError(SchemaValidationError):
    def __init__(self, path: str, value: str, pattern: str):
        self.value = value
        self.pattern = pattern
        super().__init__(path, f"{value!r} does not match pattern {pattern!r}")


class ArrayLengthError(SchemaValidationError):
    def __init__(self, path: str, length: int, min_items: Optional[int], max_items: Optional[int]):
        self.length = length
        self.min_items = min_items
        self.max_items = max_items
        super().__init__(
            path, f"array has {length} items, allowed range is [{min_items}, {max_items}]"
        )


class NumberConstraintError(SchemaValidationError):
    def __init__(self, path: str, value, constraint: str, limit):
        self.value = value
        self.constraint = constraint
        self.limit = limit
        super().__init__(path, f"{value!r} violates {constraint}={limit!r}")


class AnyOfMismatchError(SchemaValidationError):
    def __init__(self, path: str, errors: List[SchemaValidationError]):
        self.errors = list(errors)
        super().__init__(path, f"value matches none of {len(self.errors)} candidate schemas")


class InvalidSchemaError(SchemaValidationError):
    """Raised when the schema itself cannot be applied (e.g. a broken regex)."""

    pass


class InvalidArgumentsError(SchemaValidationError):
    """Raised when tool call arguments are not valid JSON."""

    def __init__(self, path: str, detail: str):
        self.detail = detail
        super().__init__(path, f"arguments are not valid JSON: {detail}")


# ========================
# Error Stream
# ========================

_CLOSED = object()


class ErrorStream:
    """
    Async stream of :class:`ServerError` values.

    Errors are buffered until read. ``close()`` ends iteration for every reader
    once the buffered errors are drained; pushes after close are dropped.
    """

    def __init__(self, history_size: int = 100) -> None:
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._closed = False
        self._history: Deque[ServerError] = deque(maxlen=history_size)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def history(self) -> List[ServerError]:
        """The most recent errors pushed, oldest first, up to ``history_size``."""
        return list(self._history)

    def push(self, error: ServerError) -> None:
        if self._closed:
            return
        self._history.append(error)
        self._queue.put_nowait(error)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[ServerError]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ServerError]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                # leave the sentinel for other readers
                self._queue.put_nowait(_CLOSED)
                return
            yield item
