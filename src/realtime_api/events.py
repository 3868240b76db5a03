"""
Realtime Protocol Events
========================

Pydantic models for the two closed sets of messages exchanged with the
realtime server:

- server events (server -> client), decoded with :func:`decode_server_event`
- client events (client -> server), encoded with :meth:`ClientEvent.to_wire`

Every event carries a ``type`` discriminator and an ``event_id``. Decoding
goes through an explicit ``type`` -> model table; types this SDK does not
know decode to :class:`UnknownServerEvent` instead of failing. Legacy (beta)
event names are mapped onto their current names before decoding.
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Type, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
)

from src.realtime_api.errors import EventDecodeError, ServerError
from src.realtime_api.items import Content, WireItem, decode_content
from src.realtime_api.session import ResponseConfig, Session
from src.realtime_api.utils import decode_audio, encode_audio, generate_id


def _decode_base64(value: Any) -> Any:
    if isinstance(value, str):
        return decode_audio(value)
    return value


Base64Audio = Annotated[
    bytes,
    BeforeValidator(_decode_base64),
    PlainSerializer(encode_audio, return_type=str),
]

WireContentPart = Annotated[Content, BeforeValidator(decode_content)]


# ==============================================================================
# SERVER EVENTS
# ==============================================================================


class ServerEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    type: str
    event_id: Optional[str] = None


class UnknownServerEvent(ServerEvent):
    """A server event type this SDK does not model. Payload fields are kept as extras."""


class ErrorEvent(ServerEvent):
    type: Literal["error"] = "error"
    error: ServerError


class SessionCreated(ServerEvent):
    type: Literal["session.created"] = "session.created"
    session: Session


class SessionUpdated(ServerEvent):
    type: Literal["session.updated"] = "session.updated"
    session: Session


class ConversationItemCreated(ServerEvent):
    type: Literal["conversation.item.created"] = "conversation.item.created"
    previous_item_id: Optional[str] = None
    item: WireItem


class ConversationItemAdded(ServerEvent):
    type: Literal["conversation.item.added"] = "conversation.item.added"
    previous_item_id: Optional[str] = None
    item: WireItem


class ConversationItemDone(ServerEvent):
    type: Literal["conversation.item.done"] = "conversation.item.done"
    previous_item_id: Optional[str] = None
    item: WireItem


class ConversationItemRetrieved(ServerEvent):
    type: Literal["conversation.item.retrieved"] = "conversation.item.retrieved"
    item: WireItem


class ConversationItemDeleted(ServerEvent):
    type: Literal["conversation.item.deleted"] = "conversation.item.deleted"
    item_id: str


class ConversationItemTruncated(ServerEvent):
    type: Literal["conversation.item.truncated"] = "conversation.item.truncated"
    item_id: str
    content_index: int = 0
    audio_end_ms: int = 0


class InputAudioTranscriptionCompleted(ServerEvent):
    type: Literal["conversation.item.input_audio_transcription.completed"] = (
        "conversation.item.input_audio_transcription.completed"
    )
    item_id: str
    content_index: int = 0
    transcript: str = ""
    logprobs: Optional[List[Dict[str, Any]]] = None
    usage: Optional[Dict[str, Any]] = None


class InputAudioTranscriptionDelta(ServerEvent):
    type: Literal["conversation.item.input_audio_transcription.delta"] = (
        "conversation.item.input_audio_transcription.delta"
    )
    item_id: str
    content_index: int = 0
    delta: str = ""


class InputAudioTranscriptionFailed(ServerEvent):
    type: Literal["conversation.item.input_audio_transcription.failed"] = (
        "conversation.item.input_audio_transcription.failed"
    )
    item_id: str
    content_index: int = 0
    error: ServerError


class InputAudioTranscriptionSegment(ServerEvent):
    type: Literal["conversation.item.input_audio_transcription.segment"] = (
        "conversation.item.input_audio_transcription.segment"
    )
    item_id: str
    content_index: int = 0
    text: str = ""
    id: Optional[str] = None
    speaker: Optional[str] = None
    start: Optional[float] = None
    end: Optional[float] = None


class InputAudioBufferCommitted(ServerEvent):
    type: Literal["input_audio_buffer.committed"] = "input_audio_buffer.committed"
    previous_item_id: Optional[str] = None
    item_id: str


class InputAudioBufferCleared(ServerEvent):
    type: Literal["input_audio_buffer.cleared"] = "input_audio_buffer.cleared"


class InputAudioBufferSpeechStarted(ServerEvent):
    type: Literal["input_audio_buffer.speech_started"] = "input_audio_buffer.speech_started"
    audio_start_ms: int = 0
    item_id: Optional[str] = None


class InputAudioBufferSpeechStopped(ServerEvent):
    type: Literal["input_audio_buffer.speech_stopped"] = "input_audio_buffer.speech_stopped"
    audio_end_ms: int = 0
    item_id: Optional[str] = None


class InputAudioBufferTimeoutTriggered(ServerEvent):
    type: Literal["input_audio_buffer.timeout_triggered"] = "input_audio_buffer.timeout_triggered"
    audio_start_ms: int = 0
    audio_end_ms: int = 0
    item_id: Optional[str] = None


class OutputAudioBufferStarted(ServerEvent):
    type: Literal["output_audio_buffer.started"] = "output_audio_buffer.started"
    response_id: Optional[str] = None


class OutputAudioBufferStopped(ServerEvent):
    type: Literal["output_audio_buffer.stopped"] = "output_audio_buffer.stopped"
    response_id: Optional[str] = None


class OutputAudioBufferCleared(ServerEvent):
    type: Literal["output_audio_buffer.cleared"] = "output_audio_buffer.cleared"
    response_id: Optional[str] = None


class Response(BaseModel):
    """The response object of ``response.created`` / ``response.done``."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    status: Optional[str] = None
    conversation_id: Optional[str] = None
    output: Optional[List[Dict[str, Any]]] = None
    usage: Optional[Dict[str, Any]] = None


class ResponseCreated(ServerEvent):
    type: Literal["response.created"] = "response.created"
    response: Response


class ResponseDone(ServerEvent):
    type: Literal["response.done"] = "response.done"
    response: Response


class ResponseOutputItemAdded(ServerEvent):
    type: Literal["response.output_item.added"] = "response.output_item.added"
    response_id: Optional[str] = None
    output_index: int = 0
    item: WireItem


class ResponseOutputItemDone(ServerEvent):
    type: Literal["response.output_item.done"] = "response.output_item.done"
    response_id: Optional[str] = None
    output_index: int = 0
    item: WireItem


class _ContentEvent(ServerEvent):
    response_id: Optional[str] = None
    item_id: str
    output_index: int = 0
    content_index: int = 0


class ResponseContentPartAdded(_ContentEvent):
    type: Literal["response.content_part.added"] = "response.content_part.added"
    part: WireContentPart


class ResponseContentPartDone(_ContentEvent):
    type: Literal["response.content_part.done"] = "response.content_part.done"
    part: WireContentPart


class ResponseTextDelta(_ContentEvent):
    type: Literal["response.output_text.delta"] = "response.output_text.delta"
    delta: str = ""


class ResponseTextDone(_ContentEvent):
    type: Literal["response.output_text.done"] = "response.output_text.done"
    text: str = ""


class ResponseAudioTranscriptDelta(_ContentEvent):
    type: Literal["response.output_audio_transcript.delta"] = (
        "response.output_audio_transcript.delta"
    )
    delta: str = ""


class ResponseAudioTranscriptDone(_ContentEvent):
    type: Literal["response.output_audio_transcript.done"] = (
        "response.output_audio_transcript.done"
    )
    transcript: str = ""


class ResponseAudioDelta(_ContentEvent):
    type: Literal["response.output_audio.delta"] = "response.output_audio.delta"
    delta: Base64Audio = b""


class ResponseAudioDone(_ContentEvent):
    type: Literal["response.output_audio.done"] = "response.output_audio.done"


class ResponseFunctionCallArgumentsDelta(ServerEvent):
    type: Literal["response.function_call_arguments.delta"] = (
        "response.function_call_arguments.delta"
    )
    response_id: Optional[str] = None
    item_id: str
    output_index: int = 0
    call_id: Optional[str] = None
    delta: str = ""


class ResponseFunctionCallArgumentsDone(ServerEvent):
    type: Literal["response.function_call_arguments.done"] = (
        "response.function_call_arguments.done"
    )
    response_id: Optional[str] = None
    item_id: str
    output_index: int = 0
    call_id: Optional[str] = None
    arguments: str = ""


class ResponseMCPCallArgumentsDelta(ServerEvent):
    type: Literal["response.mcp_call_arguments.delta"] = "response.mcp_call_arguments.delta"
    response_id: Optional[str] = None
    item_id: str
    output_index: int = 0
    delta: str = ""
    obfuscation: Optional[str] = None


class ResponseMCPCallArgumentsDone(ServerEvent):
    type: Literal["response.mcp_call_arguments.done"] = "response.mcp_call_arguments.done"
    response_id: Optional[str] = None
    item_id: str
    output_index: int = 0
    arguments: Optional[str] = None


class ResponseMCPCallInProgress(ServerEvent):
    type: Literal["response.mcp_call.in_progress"] = "response.mcp_call.in_progress"
    item_id: str
    output_index: int = 0


class ResponseMCPCallCompleted(ServerEvent):
    type: Literal["response.mcp_call.completed"] = "response.mcp_call.completed"
    item_id: str
    output_index: int = 0


class ResponseMCPCallFailed(ServerEvent):
    type: Literal["response.mcp_call.failed"] = "response.mcp_call.failed"
    item_id: str
    output_index: int = 0


class MCPListToolsInProgress(ServerEvent):
    type: Literal["mcp_list_tools.in_progress"] = "mcp_list_tools.in_progress"
    item_id: str


class MCPListToolsCompleted(ServerEvent):
    type: Literal["mcp_list_tools.completed"] = "mcp_list_tools.completed"
    item_id: str


class MCPListToolsFailed(ServerEvent):
    type: Literal["mcp_list_tools.failed"] = "mcp_list_tools.failed"
    item_id: str


class RateLimitsUpdated(ServerEvent):
    type: Literal["rate_limits.updated"] = "rate_limits.updated"
    rate_limits: List[Dict[str, Any]] = Field(default_factory=list)


_SERVER_EVENT_MODELS: List[Type[ServerEvent]] = [
    ErrorEvent,
    SessionCreated,
    SessionUpdated,
    ConversationItemCreated,
    ConversationItemAdded,
    ConversationItemDone,
    ConversationItemRetrieved,
    ConversationItemDeleted,
    ConversationItemTruncated,
    InputAudioTranscriptionCompleted,
    InputAudioTranscriptionDelta,
    InputAudioTranscriptionFailed,
    InputAudioTranscriptionSegment,
    InputAudioBufferCommitted,
    InputAudioBufferCleared,
    InputAudioBufferSpeechStarted,
    InputAudioBufferSpeechStopped,
    InputAudioBufferTimeoutTriggered,
    OutputAudioBufferStarted,
    OutputAudioBufferStopped,
    OutputAudioBufferCleared,
    ResponseCreated,
    ResponseDone,
    ResponseOutputItemAdded,
    ResponseOutputItemDone,
    ResponseContentPartAdded,
    ResponseContentPartDone,
    ResponseTextDelta,
    ResponseTextDone,
    ResponseAudioTranscriptDelta,
    ResponseAudioTranscriptDone,
    ResponseAudioDelta,
    ResponseAudioDone,
    ResponseFunctionCallArgumentsDelta,
    ResponseFunctionCallArgumentsDone,
    ResponseMCPCallArgumentsDelta,
    ResponseMCPCallArgumentsDone,
    ResponseMCPCallInProgress,
    ResponseMCPCallCompleted,
    ResponseMCPCallFailed,
    MCPListToolsInProgress,
    MCPListToolsCompleted,
    MCPListToolsFailed,
    RateLimitsUpdated,
]

SERVER_EVENT_TYPES: Dict[str, Type[ServerEvent]] = {
    model.model_fields["type"].default: model for model in _SERVER_EVENT_MODELS
}

# Beta-era names still emitted by some deployments
LEGACY_EVENT_TYPES: Dict[str, str] = {
    "response.text.delta": "response.output_text.delta",
    "response.text.done": "response.output_text.done",
    "response.audio.delta": "response.output_audio.delta",
    "response.audio.done": "response.output_audio.done",
    "response.audio_transcript.delta": "response.output_audio_transcript.delta",
    "response.audio_transcript.done": "response.output_audio_transcript.done",
}


def _error_path(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return "$"
    path = "$"
    for part in errors[0].get("loc", ()):
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def decode_server_event(payload: Union[str, bytes, Mapping[str, Any]]) -> ServerEvent:
    """
    Decode one server event from a JSON frame or an already parsed dict.

    Raises:
        EventDecodeError: the frame is not JSON, has no ``type``, or does not
            match the model for its ``type``.
    """
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise EventDecodeError("$", f"invalid JSON: {e}") from e

    if not isinstance(payload, Mapping) or not isinstance(payload.get("type"), str):
        raise EventDecodeError("$.type", "missing event type")

    event_type = LEGACY_EVENT_TYPES.get(payload["type"], payload["type"])
    event_cls = SERVER_EVENT_TYPES.get(event_type, UnknownServerEvent)
    try:
        return event_cls.model_validate({**payload, "type": event_type})
    except ValidationError as e:
        raise EventDecodeError(_error_path(e), str(e), event_type) from e


# ==============================================================================
# CLIENT EVENTS
# ==============================================================================


class ClientEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    event_id: str = Field(default_factory=lambda: generate_id("event_"))

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


class SessionUpdate(ClientEvent):
    type: Literal["session.update"] = "session.update"
    session: Session


class InputAudioBufferAppend(ClientEvent):
    type: Literal["input_audio_buffer.append"] = "input_audio_buffer.append"
    audio: Base64Audio


class InputAudioBufferCommit(ClientEvent):
    type: Literal["input_audio_buffer.commit"] = "input_audio_buffer.commit"


class InputAudioBufferClear(ClientEvent):
    type: Literal["input_audio_buffer.clear"] = "input_audio_buffer.clear"


class OutputAudioBufferClear(ClientEvent):
    type: Literal["output_audio_buffer.clear"] = "output_audio_buffer.clear"


class ConversationItemCreate(ClientEvent):
    type: Literal["conversation.item.create"] = "conversation.item.create"
    previous_item_id: Optional[str] = None
    item: WireItem


class ConversationItemRetrieve(ClientEvent):
    type: Literal["conversation.item.retrieve"] = "conversation.item.retrieve"
    item_id: str


class ConversationItemTruncate(ClientEvent):
    type: Literal["conversation.item.truncate"] = "conversation.item.truncate"
    item_id: str
    content_index: int = 0
    audio_end_ms: int


class ConversationItemDelete(ClientEvent):
    type: Literal["conversation.item.delete"] = "conversation.item.delete"
    item_id: str


class ResponseCreate(ClientEvent):
    type: Literal["response.create"] = "response.create"
    response: Optional[ResponseConfig] = None


class ResponseCancel(ClientEvent):
    type: Literal["response.cancel"] = "response.cancel"
    response_id: Optional[str] = None


CLIENT_EVENT_TYPES: Dict[str, Type[ClientEvent]] = {
    model.model_fields["type"].default: model
    for model in (
        SessionUpdate,
        InputAudioBufferAppend,
        InputAudioBufferCommit,
        InputAudioBufferClear,
        OutputAudioBufferClear,
        ConversationItemCreate,
        ConversationItemRetrieve,
        ConversationItemTruncate,
        ConversationItemDelete,
        ResponseCreate,
        ResponseCancel,
    )
}


def decode_client_event(payload: Union[str, bytes, Mapping[str, Any]]) -> ClientEvent:
    """Decode a client event from its wire form (used when replaying recorded traffic)."""
    if isinstance(payload, (str, bytes, bytearray)):
        payload = json.loads(payload)
    event_cls = CLIENT_EVENT_TYPES.get(payload.get("type"))
    if event_cls is None:
        raise ValueError(f"Unknown client event type: {payload.get('type')!r}")
    return event_cls.model_validate(payload)
