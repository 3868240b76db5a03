"""
Conversation Items
==================

Pydantic models for the items of a realtime conversation log.

An item is one of eight variants, told apart on the wire by its ``type``:

==========================  =========================
``message``                 :class:`Message`
``function_call``           :class:`FunctionCall`
``function_call_output``    :class:`FunctionCallOutput`
``mcp_call``                :class:`MCPCall`
``mcp_tool_call``           :class:`MCPToolCall`
``mcp_approval_request``    :class:`MCPApprovalRequest`
``mcp_approval_response``   :class:`MCPApprovalResponse`
``mcp_list_tools``          :class:`MCPListTools`
==========================  =========================

Items are frozen. Changing an item means building a new value
(``item.model_copy(update=...)``) and replacing it by ``id``.

Argument encoding differs between kinds and is kept as-is: ``MCPCall`` carries
arguments/output as JSON values while ``MCPToolCall`` and
``MCPApprovalRequest`` carry a JSON-encoded string.
"""

from __future__ import annotations

import base64
import json
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Tuple, Type, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_serializer,
    field_validator,
)

from src.realtime_api.errors import InvalidArgumentsError
from src.realtime_api.json_schema import ROOT_PATH, JSONSchema, schema_from_dict, schema_to_dict


class ItemStatus(str, Enum):
    """Lifecycle of an item. Advisory only. Ordered in_progress < incomplete < completed."""

    IN_PROGRESS = "in_progress"
    INCOMPLETE = "incomplete"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER[self]

    def __lt__(self, other):
        if not isinstance(other, ItemStatus):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, ItemStatus):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, ItemStatus):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, ItemStatus):
            return NotImplemented
        return self.rank >= other.rank


_STATUS_ORDER = {status: index for index, status in enumerate(ItemStatus)}


class MessageRole(str, Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"


def decode_arguments(raw: str) -> Any:
    """Decode a JSON arguments string; blank means no arguments."""
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError as e:
        raise InvalidArgumentsError(ROOT_PATH, str(e)) from e


class _ItemModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------
# Message content
# ---------------------------


def _decode_audio_bytes(value: Any) -> Any:
    if isinstance(value, str):
        return base64.b64decode(value)
    return value


class _AudioPayload(_ItemModel):
    audio: Optional[bytes] = None
    """Raw audio bytes; base64 on the wire."""

    transcript: Optional[str] = None

    @field_validator("audio", mode="before")
    @classmethod
    def coerce_audio(cls, value: Any) -> Any:
        return _decode_audio_bytes(value)

    @field_serializer("audio")
    def serialize_audio(self, audio: Optional[bytes]) -> Optional[str]:
        return base64.b64encode(audio).decode("utf-8") if audio is not None else None

    @property
    def text(self) -> Optional[str]:
        return self.transcript


class TextContent(_ItemModel):
    type: Literal["text"] = "text"
    text: str = ""


class InputTextContent(_ItemModel):
    type: Literal["input_text"] = "input_text"
    text: str = ""


class AudioContent(_AudioPayload):
    """Model audio output."""

    type: Literal["output_audio"] = "output_audio"


class InputAudioContent(_AudioPayload):
    """User audio input."""

    type: Literal["input_audio"] = "input_audio"


Content = Union[TextContent, InputTextContent, AudioContent, InputAudioContent]

CONTENT_TYPES: Dict[str, Type[_ItemModel]] = {
    "text": TextContent,
    "output_text": TextContent,
    "input_text": InputTextContent,
    "audio": AudioContent,
    "output_audio": AudioContent,
    "input_audio": InputAudioContent,
}


def decode_content(data: Any) -> Content:
    """Decode one content part from its wire dict."""
    if isinstance(data, _ItemModel):
        return data
    if not isinstance(data, Mapping):
        raise ValueError(f"content part must be an object, got {type(data).__name__}")
    content_type = data.get("type")
    content_cls = CONTENT_TYPES.get(content_type)
    if content_cls is None:
        raise ValueError(f"Unknown content type: {content_type!r}")
    return content_cls.model_validate({**data, "type": content_cls.model_fields["type"].default})


WireContent = Annotated[Content, BeforeValidator(decode_content)]


# ---------------------------
# Items
# ---------------------------


class Message(_ItemModel):
    """A message item in a realtime conversation."""

    type: Literal["message"] = "message"
    id: str
    status: ItemStatus = ItemStatus.COMPLETED
    role: MessageRole
    content: Tuple[WireContent, ...] = ()

    @property
    def has_audio(self) -> bool:
        return any(isinstance(part, AudioContent) for part in self.content)

    @property
    def text(self) -> str:
        """Text and transcripts of every content part, joined."""
        return "".join(part.text or "" for part in self.content)


class FunctionCall(_ItemModel):
    """A function call item in a realtime conversation."""

    type: Literal["function_call"] = "function_call"
    id: str
    status: ItemStatus = ItemStatus.IN_PROGRESS
    call_id: str
    name: str
    arguments: str = ""

    def decoded_arguments(self) -> Any:
        return decode_arguments(self.arguments)


class FunctionCallOutput(_ItemModel):
    """A function call output item in a realtime conversation."""

    type: Literal["function_call_output"] = "function_call_output"
    id: str
    call_id: str
    output: str


class MCPCall(_ItemModel):
    """
    An MCP call item (``mcp_call``).

    ``arguments``, ``output`` and ``error`` are JSON values of any shape.
    Arguments usually arrive empty on ``conversation.item.added`` and are
    filled in by the finalized item.
    """

    type: Literal["mcp_call"] = "mcp_call"
    id: str
    server: Optional[str] = Field(default=None, alias="server_label")
    name: str
    arguments: Any = None
    output: Any = None
    error: Any = None
    approval_request_id: Optional[str] = None

    def decoded_arguments(self) -> Any:
        """Arguments as a JSON value, decoding them when the server sent a JSON string."""
        if isinstance(self.arguments, str):
            return decode_arguments(self.arguments)
        return self.arguments


class MCPToolCallError(_ItemModel):
    code: Optional[int] = None
    type: str
    message: str


class MCPToolCall(_ItemModel):
    """An invocation of a tool on an MCP server. ``arguments`` is a JSON string."""

    type: Literal["mcp_tool_call"] = "mcp_tool_call"
    id: str
    server: Optional[str] = Field(default=None, alias="server_label")
    tool: str = Field(alias="name")
    arguments: str
    output: Optional[str] = None
    error: Optional[MCPToolCallError] = None
    approval_request_id: Optional[str] = None

    def decoded_arguments(self) -> Any:
        return decode_arguments(self.arguments)


class MCPApprovalRequest(_ItemModel):
    """A request for human approval of a tool invocation. ``arguments`` is a JSON string."""

    type: Literal["mcp_approval_request"] = "mcp_approval_request"
    id: str
    server: Optional[str] = Field(default=None, alias="server_label")
    tool: str = Field(alias="name")
    arguments: str

    def decoded_arguments(self) -> Any:
        return decode_arguments(self.arguments)


class MCPApprovalResponse(_ItemModel):
    """A response to an MCP approval request."""

    type: Literal["mcp_approval_response"] = "mcp_approval_response"
    id: str
    approval_request_id: str
    approve: bool
    reason: Optional[str] = None


class MCPToolAnnotations(_ItemModel):
    title: Optional[str] = None
    destructive_hint: Optional[bool] = None
    idempotent_hint: Optional[bool] = None
    open_world_hint: Optional[bool] = None
    read_only_hint: Optional[bool] = None


WireSchema = Annotated[
    JSONSchema,
    BeforeValidator(schema_from_dict),
    PlainSerializer(schema_to_dict, return_type=dict),
]


class MCPTool(_ItemModel):
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="ignore", arbitrary_types_allowed=True
    )

    name: str
    description: Optional[str] = None
    input_schema: WireSchema
    annotations: Optional[MCPToolAnnotations] = None


class MCPListTools(_ItemModel):
    """
    The tools available on an MCP server.

    ``tools`` is None until the listing has arrived (e.g. for a placeholder
    entry created from ``mcp_list_tools.in_progress``).
    """

    type: Literal["mcp_list_tools"] = "mcp_list_tools"
    id: str
    server: Optional[str] = Field(default=None, alias="server_label")
    tools: Optional[Tuple[MCPTool, ...]] = None

    def get_tool(self, name: str) -> Optional[MCPTool]:
        for tool in self.tools or ():
            if tool.name == name:
                return tool
        return None


Item = Union[
    Message,
    FunctionCall,
    FunctionCallOutput,
    MCPCall,
    MCPToolCall,
    MCPApprovalRequest,
    MCPApprovalResponse,
    MCPListTools,
]

ITEM_TYPES: Dict[str, Type[_ItemModel]] = {
    "message": Message,
    "function_call": FunctionCall,
    "function_call_output": FunctionCallOutput,
    "mcp_call": MCPCall,
    "mcp_tool_call": MCPToolCall,
    "mcp_approval_request": MCPApprovalRequest,
    "mcp_approval_response": MCPApprovalResponse,
    "mcp_list_tools": MCPListTools,
}


def decode_item(data: Any) -> Item:
    """Decode an item from its wire dict using the ``type`` discriminator."""
    if isinstance(data, _ItemModel):
        return data
    if not isinstance(data, Mapping):
        raise ValueError(f"item must be an object, got {type(data).__name__}")
    item_type = data.get("type")
    item_cls = ITEM_TYPES.get(item_type)
    if item_cls is None:
        raise ValueError(f"Unknown item type: {item_type!r}")
    return item_cls.model_validate(data)


def encode_item(item: Item) -> Dict[str, Any]:
    """Encode an item to its wire dict."""
    return item.to_wire()


WireItem = Annotated[
    Item,
    BeforeValidator(decode_item),
    PlainSerializer(encode_item, return_type=dict),
]
