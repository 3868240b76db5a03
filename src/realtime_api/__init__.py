"""
Realtime API Package

Client SDK for a realtime conversational API:
- Conversation engine reconciling server events into an item log
- Item, session and protocol event models
- MCP call progress tracking and JSON schema validation
- WebSocket transport
"""

from .conversation import Conversation
from .errors import (
    ErrorStream,
    HandshakeError,
    InvalidArgumentsError,
    InvalidCredentialError,
    RealtimeError,
    SchemaValidationError,
    ServerError,
    SessionNotFoundError,
)
from .event_handler import RealtimeEventHandler
from .events import ClientEvent, ServerEvent, decode_server_event
from .items import Item, ItemStatus, MessageRole, decode_item, encode_item
from .json_schema import JSONSchema, schema_from_dict, schema_to_dict, validate
from .mcp import MCPCallStep
from .session import Model, ResponseConfig, Session, TranscriptionModel
from .transport import ConnectionStatus, Transport, WebSocketTransport

__all__ = [
    "Conversation",
    "RealtimeEventHandler",
    "Transport",
    "WebSocketTransport",
    "ConnectionStatus",
    "ClientEvent",
    "ServerEvent",
    "decode_server_event",
    "Item",
    "ItemStatus",
    "MessageRole",
    "decode_item",
    "encode_item",
    "MCPCallStep",
    "JSONSchema",
    "schema_from_dict",
    "schema_to_dict",
    "validate",
    "Model",
    "TranscriptionModel",
    "Session",
    "ResponseConfig",
    "ServerError",
    "ErrorStream",
    "RealtimeError",
    "SessionNotFoundError",
    "InvalidCredentialError",
    "HandshakeError",
    "InvalidArgumentsError",
    "SchemaValidationError",
]
