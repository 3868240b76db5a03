"""
Realtime Conversation
=====================

The conversation engine: consumes server events one at a time and keeps a
single consistent log of conversation items, plus the progress that has no
home in the log (MCP call steps, tool listings, audio playback timing and
speech interruption).

All state is owned by one consumer task. Event handling is synchronous and
never waits on the network: follow-up client events are queued on the
transport, and failures to send them are reported on :attr:`Conversation.errors`
instead of being raised.

Observers can subscribe with :meth:`Conversation.on` to

- ``conversation.updated``: after every handled server event
- ``conversation.item.appended`` / ``conversation.item.completed``
- ``conversation.interrupted``: user speech started or ``interrupt_speech`` ran
- ``conversation.error``: an error was pushed to the error stream
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar, Union

from src.realtime_api import config
from src.realtime_api.errors import ConversationError, ErrorStream, ServerError, SessionNotFoundError
from src.realtime_api.event_handler import RealtimeEventHandler
from src.realtime_api.events import (
    ClientEvent,
    ConversationItemCreate,
    ConversationItemTruncate,
    InputAudioBufferAppend,
    InputAudioBufferCommit,
    OutputAudioBufferClear,
    ResponseCancel,
    ResponseCreate,
    ServerEvent,
    SessionUpdate,
)
from src.realtime_api.items import (
    AudioContent,
    FunctionCall,
    FunctionCallOutput,
    InputAudioContent,
    InputTextContent,
    Item,
    ItemStatus,
    MCPApprovalRequest,
    MCPApprovalResponse,
    MCPCall,
    MCPListTools,
    MCPTool,
    MCPToolCall,
    Message,
    MessageRole,
    TextContent,
)
from src.realtime_api.json_schema import validate
from src.realtime_api.mcp import MCPCallStep, MCPTracking
from src.realtime_api.session import ResponseConfig, Session
from src.realtime_api.transport import ConnectionStatus, Transport, WebSocketTransport
from src.realtime_api.utils import AudioBuffer, audio_to_bytes, generate_id
from utils.ml_logging import get_logger

SessionUpdateCallback = Callable[[Session], Optional[Session]]
T = TypeVar("T")


class Conversation(RealtimeEventHandler):
    """
    A realtime conversation with the model.

    Args:
        transport: Connection to the server. Defaults to a
            :class:`WebSocketTransport` configured from the environment.
        debug (bool): Log every inbound server event.
        configure_session: Called once with a copy of the session on the first
            ``session.created``; the changed session is sent back as
            ``session.update``.
        session_config: Mapping (or YAML path) merged onto the session on the
            first ``session.created``. Defaults to ``REALTIME_SESSION_CONFIG``.
        logger: Logger used for diagnostics.
        clock: Monotonic clock in seconds used for playback timing.
    """

    EventProcessors = {
        "error": lambda self, event: self._process_error(event),
        "session.created": lambda self, event: self._process_session_created(event),
        "session.updated": lambda self, event: self._process_session_updated(event),
        "conversation.item.created": lambda self, event: self._process_item_created(event),
        "conversation.item.added": lambda self, event: self._process_item_added(event),
        "conversation.item.done": lambda self, event: self._process_item_done(event),
        "conversation.item.retrieved": lambda self, event: self._process_item_retrieved(event),
        "conversation.item.deleted": lambda self, event: self._process_item_deleted(event),
        "conversation.item.truncated": lambda self, event: self._process_item_truncated(event),
        "conversation.item.input_audio_transcription.completed": lambda self, event: self._process_input_audio_transcription_completed(event),
        "conversation.item.input_audio_transcription.delta": lambda self, event: self._process_input_audio_transcription_delta(event),
        "conversation.item.input_audio_transcription.failed": lambda self, event: self._process_input_audio_transcription_failed(event),
        "input_audio_buffer.speech_started": lambda self, event: self._process_speech_started(event),
        "input_audio_buffer.speech_stopped": lambda self, event: self._process_speech_stopped(event),
        "output_audio_buffer.started": lambda self, event: self._process_output_audio_started(event),
        "output_audio_buffer.stopped": lambda self, event: self._process_output_audio_stopped(event),
        "output_audio_buffer.cleared": lambda self, event: self._process_output_audio_cleared(event),
        "response.created": lambda self, event: self._process_response_created(event),
        "response.output_item.added": lambda self, event: self._process_output_item_added(event),
        "response.output_item.done": lambda self, event: self._process_output_item_done(event),
        "response.content_part.added": lambda self, event: self._process_content_part_added(event),
        "response.content_part.done": lambda self, event: self._process_content_part_done(event),
        "response.output_text.delta": lambda self, event: self._process_text_delta(event),
        "response.output_text.done": lambda self, event: self._process_text_done(event),
        "response.output_audio_transcript.delta": lambda self, event: self._process_audio_transcript_delta(event),
        "response.output_audio_transcript.done": lambda self, event: self._process_audio_transcript_done(event),
        "response.output_audio.delta": lambda self, event: self._process_audio_delta(event),
        "response.function_call_arguments.delta": lambda self, event: self._process_function_call_arguments_delta(event),
        "response.function_call_arguments.done": lambda self, event: self._process_function_call_arguments_done(event),
        "response.mcp_call_arguments.delta": lambda self, event: self._process_mcp_call_arguments_delta(event),
        "response.mcp_call_arguments.done": lambda self, event: self._process_mcp_call_arguments_done(event),
        "response.mcp_call.in_progress": lambda self, event: self._process_mcp_call_in_progress(event),
        "response.mcp_call.completed": lambda self, event: self._process_mcp_call_completed(event),
        "response.mcp_call.failed": lambda self, event: self._process_mcp_call_failed(event),
        "mcp_list_tools.in_progress": lambda self, event: self._process_mcp_list_tools(event, ItemStatus.IN_PROGRESS),
        "mcp_list_tools.completed": lambda self, event: self._process_mcp_list_tools(event, ItemStatus.COMPLETED),
        "mcp_list_tools.failed": lambda self, event: self._process_mcp_list_tools(event, ItemStatus.INCOMPLETE),
        "rate_limits.updated": lambda self, event: self._process_rate_limits_updated(event),
    }

    def __init__(
        self,
        transport: Optional[Transport] = None,
        *,
        debug: bool = False,
        configure_session: Optional[SessionUpdateCallback] = None,
        session_config: Optional[Union[Mapping[str, Any], str]] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: Optional[float] = None,
    ) -> None:
        super().__init__()
        self.transport: Transport = transport if transport is not None else WebSocketTransport()
        self.debug = debug
        self.logger = logger or get_logger("realtime_api.conversation")
        self.clock = clock
        self.poll_interval = poll_interval or config.REALTIME_CONNECTION_POLL_INTERVAL
        self.errors = ErrorStream()

        if session_config is None and config.REALTIME_SESSION_CONFIG:
            session_config = config.REALTIME_SESSION_CONFIG
        if isinstance(session_config, str):
            session_config = config.load_session_config(session_config, defaults={})
        self._session_config: Optional[Mapping[str, Any]] = session_config
        self._configure_session = configure_session
        self._session_configured = False

        self.id: Optional[str] = None
        self.session: Optional[Session] = None
        self.rate_limits: List[Dict[str, Any]] = []
        self._entries: List[Item] = []
        self._mcp: Dict[str, MCPTracking] = {}

        self.is_user_speaking = False
        self.is_model_speaking = False
        self.is_interrupting = False
        self.playing_item_id: Optional[str] = None
        self.model_audio_start_time: Optional[float] = None
        self.model_audio_accumulated_ms: int = 0

        self._consumer_task: Optional[asyncio.Task] = None
        self._closing = False

        self.transport.on("transport.error", self._on_transport_error)

    # ---------------------------
    # Read-only state
    # ---------------------------

    @property
    def entries(self) -> Tuple[Item, ...]:
        """Snapshot of the conversation log, in arrival order."""
        return tuple(self._entries)

    @property
    def messages(self) -> Tuple[Message, ...]:
        """Message items only. Use :attr:`entries` for function and MCP items."""
        return tuple(item for item in self._entries if isinstance(item, Message))

    @property
    def status(self) -> ConnectionStatus:
        return self.transport.status

    def get_item(self, item_id: str) -> Optional[Item]:
        index = self._index_of(item_id)
        return self._entries[index] if index is not None else None

    def mcp_call_step(self, item_id: str) -> Optional[MCPCallStep]:
        """Progress of an MCP call, or None when nothing is known about ``item_id``."""
        tracking = self._mcp.get(item_id)
        return tracking.call_step if tracking else None

    def mcp_list_tools_status(self, item_id: str) -> Optional[ItemStatus]:
        tracking = self._mcp.get(item_id)
        return tracking.list_tools_status if tracking else None

    def mcp_call_last_event_id(self, item_id: str) -> Optional[str]:
        tracking = self._mcp.get(item_id)
        return tracking.call_last_event_id if tracking else None

    def mcp_list_tools_last_event_id(self, item_id: str) -> Optional[str]:
        tracking = self._mcp.get(item_id)
        return tracking.list_tools_last_event_id if tracking else None

    # ---------------------------
    # Connection
    # ---------------------------

    async def connect(self, **kwargs: Any) -> None:
        """
        Connect the transport and start consuming server events.

        Connection failures (bad credential, handshake errors) are raised here.
        """
        await self.transport.connect(**kwargs)
        self.start()

    def start(self) -> None:
        """Start the consumer task on an already connected transport."""
        if self._consumer_task is None or self._consumer_task.done():
            self._closing = False
            self._consumer_task = asyncio.create_task(self._consume())

    async def wait_for_connection(self, timeout: Optional[float] = None) -> None:
        """Poll the transport status until it reports connected."""

        async def _poll() -> None:
            while self.status != ConnectionStatus.CONNECTED:
                await asyncio.sleep(self.poll_interval)

        await asyncio.wait_for(_poll(), timeout=timeout)

    async def when_connected(self, callback: Callable[[], Union[T, Awaitable[T]]]) -> T:
        """Run ``callback`` (sync or async) once the connection is established."""
        await self.wait_for_connection()
        result = callback()
        if asyncio.iscoroutine(result):
            return await result
        return result

    async def close(self) -> None:
        """
        Stop the consumer task, end the error stream and disconnect the transport.
        """
        self._closing = True
        if self._consumer_task is not None:
            self._consumer_task.cancel()
            try:
                await self._consumer_task
            except asyncio.CancelledError:
                pass
            self._consumer_task = None
        self.errors.close()
        await self.transport.disconnect()

    async def _consume(self) -> None:
        try:
            async for event in self.transport.events():
                if self._closing:
                    break
                try:
                    self.handle(event)
                except Exception as e:
                    self.logger.exception(f"Unhandled error in event handler for {event.type}")
                    self._report(ServerError.from_exception(e))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Conversation event stream failed: {e}")
            self._report(ServerError.from_exception(e))

    # ---------------------------
    # Sending
    # ---------------------------

    def send(self, event: ClientEvent) -> None:
        """
        Send a client event to the server.

        Intended for advanced use; the other ``send_*`` helpers cover messages,
        audio and function results.
        """
        self.transport.send(event)

    def send_text(
        self,
        text: str,
        role: MessageRole = MessageRole.USER,
        response: Optional[ResponseConfig] = None,
    ) -> None:
        """Add a text message to the conversation and ask the model to respond."""
        message = Message(
            id=generate_id(length=32),
            role=role,
            content=(InputTextContent(text=text),),
        )
        self.send(ConversationItemCreate(item=message))
        self.send(ResponseCreate(response=response))

    def send_audio_delta(self, audio: AudioBuffer, commit: bool = False) -> None:
        """
        Append audio to the input buffer.

        Commit the buffer to trigger a response when server turn detection is
        disabled. Float arrays are converted to PCM16.
        """
        self.send(InputAudioBufferAppend(audio=audio_to_bytes(audio)))
        if commit:
            self.send(InputAudioBufferCommit())

    def send_result(self, output: FunctionCallOutput) -> None:
        """Send the result of a function call."""
        self.send(ConversationItemCreate(item=output))

    def respond_to_mcp_approval(
        self, request_id: str, approve: bool, reason: Optional[str] = None
    ) -> None:
        """Approve or reject an ``mcp_approval_request`` item."""
        response = MCPApprovalResponse(
            id=generate_id(length=32),
            approval_request_id=request_id,
            approve=approve,
            reason=reason,
        )
        self.send(ConversationItemCreate(item=response))

    def _send_safely(self, event: ClientEvent) -> bool:
        """Send without raising; failures go to the error stream."""
        try:
            self.transport.send(event)
            return True
        except Exception as e:
            error = ServerError.from_exception(e, event.event_id)
            self.logger.error(f"Failed to send {event.type}: {error}")
            self._report(error)
            return False

    # ---------------------------
    # Session
    # ---------------------------

    def set_session(self, session: Session) -> None:
        """Replace the server session configuration."""
        self.send(self._session_update(session))

    def update_session(
        self, callback: Optional[SessionUpdateCallback] = None, **changes: Any
    ) -> None:
        """
        Change the current session.

        ``callback`` receives a copy of the session to modify (or replace by
        returning a new one); keyword arguments are assigned as fields.

        Raises:
            SessionNotFoundError: no ``session.created`` has been received yet.
        """
        self.send(self._session_update(self._changed_session(callback, changes)))

    def _changed_session(
        self, callback: Optional[SessionUpdateCallback], changes: Mapping[str, Any]
    ) -> Session:
        if self.session is None:
            raise SessionNotFoundError()
        session = self.session.model_copy(deep=True)
        if callback is not None:
            result = callback(session)
            if isinstance(result, Session):
                session = result
        for name, value in changes.items():
            setattr(session, name, value)
        return session

    @staticmethod
    def _session_update(session: Session) -> SessionUpdate:
        # the endpoint rejects updates carrying the session id
        return SessionUpdate(session=session.model_copy(update={"id": None}))

    def _apply_session_configuration(self) -> None:
        session = self.session
        if self._session_config:
            session = Session.model_validate(
                config.deep_merge(session.model_dump(exclude_none=True), self._session_config)
            )
        if self._configure_session is not None:
            session = session.model_copy(deep=True)
            result = self._configure_session(session)
            if isinstance(result, Session):
                session = result
        self.logger.info("Applying session configuration")
        self._send_safely(self._session_update(session))

    # ---------------------------
    # Interruption
    # ---------------------------

    def _playback_ms(self) -> int:
        elapsed = self.model_audio_accumulated_ms
        if self.model_audio_start_time is not None:
            elapsed += int((self.clock() - self.model_audio_start_time) * 1000)
        return elapsed

    def _freeze_playback_clock(self) -> None:
        self.model_audio_accumulated_ms = self._playback_ms()
        self.model_audio_start_time = None

    def currently_playing_item_id(self) -> Optional[str]:
        """
        The item whose audio is playing: the tracked item, else the newest
        assistant message with audio, else the newest assistant message.
        """
        if self.playing_item_id is not None:
            return self.playing_item_id

        assistant_messages = [
            item
            for item in reversed(self._entries)
            if isinstance(item, Message) and item.role == MessageRole.ASSISTANT
        ]
        for message in assistant_messages:
            if message.has_audio:
                return message.id
        return assistant_messages[0].id if assistant_messages else None

    def interrupt_speech(self) -> bool:
        """
        Interrupt the model's response if it is currently playing.

        Tells the server how much audio was actually heard (truncate), cancels
        the response and clears the output buffer. Send failures are reported
        on the error stream.

        Returns:
            bool: False when there was nothing to interrupt.
        """
        if not self.is_model_speaking or self.is_interrupting:
            return False

        self.is_interrupting = True
        try:
            elapsed_ms = self._playback_ms()
            target_id = self.currently_playing_item_id()
            if target_id is not None:
                self.logger.info(f"✋ Interrupting {target_id} at {elapsed_ms} ms")
                for event in (
                    ConversationItemTruncate(item_id=target_id, content_index=0, audio_end_ms=elapsed_ms),
                    ResponseCancel(),
                    OutputAudioBufferClear(),
                ):
                    self._send_safely(event)

            self.model_audio_accumulated_ms = elapsed_ms
            self.model_audio_start_time = None
            self.playing_item_id = None
            self.is_model_speaking = False
        finally:
            self.is_interrupting = False

        self.dispatch("conversation.interrupted", {"item_id": target_id, "audio_end_ms": elapsed_ms})
        return True

    # ---------------------------
    # MCP
    # ---------------------------

    def find_mcp_tool(self, server: Optional[str], name: str) -> Optional[MCPTool]:
        """Newest listed definition of tool ``name`` on ``server``."""
        for item in reversed(self._entries):
            if isinstance(item, MCPListTools) and item.server == server:
                tool = item.get_tool(name)
                if tool is not None:
                    return tool
        return None

    def validate_mcp_arguments(self, item_id: str) -> Any:
        """
        Validate the arguments of an MCP call against the tool's input schema.

        Returns:
            The decoded arguments.

        Raises:
            ConversationError: the item is unknown, not an MCP invocation, or
                its tool has not been listed.
            SchemaValidationError: the arguments do not match the schema, or
                are not valid JSON (:class:`InvalidArgumentsError`).
        """
        item = self.get_item(item_id)
        if isinstance(item, MCPCall):
            tool_name, arguments = item.name, item.decoded_arguments()
        elif isinstance(item, (MCPToolCall, MCPApprovalRequest)):
            tool_name, arguments = item.tool, item.decoded_arguments()
        else:
            raise ConversationError(f"No MCP call with id {item_id!r}")

        tool = self.find_mcp_tool(item.server, tool_name)
        if tool is None:
            raise ConversationError(f"Tool {tool_name!r} is not listed for server {item.server!r}")
        validate(arguments, tool.input_schema)
        return arguments

    def _tracking(self, item_id: str) -> MCPTracking:
        return self._mcp.setdefault(item_id, MCPTracking())

    def _finalize_mcp_call(self, item_id: str, event_id: Optional[str]) -> None:
        tracking = self._tracking(item_id)
        tracking.call_last_event_id = event_id
        step = tracking.call_step
        # a failed call already asked for a response; a finished one did too
        if step is not None and (step.is_incomplete or step.is_response_finished):
            return
        tracking.call_step = MCPCallStep.RESPONSE_COMPLETED
        self.logger.info(f"MCP call {item_id} finished, requesting a response")
        self._send_safely(ResponseCreate())

    # ---------------------------
    # Event handling
    # ---------------------------

    def handle(self, event: ServerEvent) -> None:
        """
        Apply one server event to the conversation.
        """
        if self.debug:
            self.logger.info(f"⬇️ {event.type}: {event.model_dump(exclude={'delta'})}")

        event_processor = self.EventProcessors.get(event.type)
        if event_processor is None:
            self.logger.debug(f"Unhandled server event: {event.type}")
            return
        event_processor(self, event)
        self.dispatch("conversation.updated", event)

    def _report(self, error: ServerError) -> None:
        self.errors.push(error)
        self.dispatch("conversation.error", error)

    def _on_transport_error(self, error: Exception) -> None:
        self._report(ServerError.from_exception(error))

    def _index_of(self, item_id: str) -> Optional[int]:
        for index, item in enumerate(self._entries):
            if item.id == item_id:
                return index
        return None

    def _append(self, item: Item) -> None:
        self._entries.append(item)
        self.dispatch("conversation.item.appended", {"item": item})

    def _upsert(self, item: Item) -> None:
        index = self._index_of(item.id)
        if index is None:
            self._append(item)
        else:
            self._entries[index] = item

    def _replace(self, item: Item) -> bool:
        index = self._index_of(item.id)
        if index is None:
            return False
        self._entries[index] = item
        return True

    def _update_message(self, item_id: str, update: Callable[[Message], Optional[Message]]) -> None:
        index = self._index_of(item_id)
        if index is None or not isinstance(self._entries[index], Message):
            return
        updated = update(self._entries[index])
        if updated is not None:
            self._entries[index] = updated

    def _update_content(
        self, item_id: str, content_index: int, update: Callable[[Any], Optional[Any]]
    ) -> None:
        def _apply(message: Message) -> Optional[Message]:
            if not 0 <= content_index < len(message.content):
                self.logger.debug(f"No content part {content_index} on {item_id}")
                return None
            part = update(message.content[content_index])
            if part is None:
                return None
            content = list(message.content)
            content[content_index] = part
            return message.model_copy(update={"content": tuple(content)})

        self._update_message(item_id, _apply)

    def _update_function_call(self, item_id: str, arguments: Callable[[str], str]) -> None:
        index = self._index_of(item_id)
        if index is None or not isinstance(self._entries[index], FunctionCall):
            return
        call = self._entries[index]
        self._entries[index] = call.model_copy(update={"arguments": arguments(call.arguments)})

    @staticmethod
    def _is_completed(item: Item) -> bool:
        return getattr(item, "status", None) == ItemStatus.COMPLETED

    # ---------------------------
    # Event Processors
    # ---------------------------

    def _process_error(self, event) -> None:
        self.logger.error(f"Realtime API error event: {event.error}")
        self._report(event.error)

    def _process_session_created(self, event) -> None:
        self.session = event.session
        if self._session_configured:
            return
        self._session_configured = True
        if self._configure_session is not None or self._session_config:
            self._apply_session_configuration()

    def _process_session_updated(self, event) -> None:
        self.session = event.session

    def _process_item_created(self, event) -> None:
        self._upsert(event.item)
        if self._is_completed(event.item):
            self.dispatch("conversation.item.completed", {"item": event.item})

    def _process_item_added(self, event) -> None:
        item = event.item
        self._upsert(item)
        if isinstance(item, MCPCall):
            tracking = self._tracking(item.id)
            if tracking.call_step is None:
                tracking.call_step = MCPCallStep.ADDED
            tracking.call_last_event_id = event.event_id

    def _process_item_done(self, event) -> None:
        item = event.item
        if not self._replace(item):
            self.logger.debug(f"item.done for unknown item {item.id}")
        if isinstance(item, MCPListTools):
            tracking = self._tracking(item.id)
            tracking.list_tools_status = ItemStatus.COMPLETED
            tracking.list_tools_last_event_id = event.event_id
        elif isinstance(item, MCPCall):
            self._finalize_mcp_call(item.id, event.event_id)
        self.dispatch("conversation.item.completed", {"item": item})

    def _process_item_retrieved(self, event) -> None:
        self._upsert(event.item)

    def _process_item_deleted(self, event) -> None:
        index = self._index_of(event.item_id)
        if index is not None:
            del self._entries[index]
        self._mcp.pop(event.item_id, None)
        if self.playing_item_id == event.item_id:
            self.playing_item_id = None

    def _process_item_truncated(self, event) -> None:
        if self.playing_item_id == event.item_id:
            self.playing_item_id = None
        self._freeze_playback_clock()

    def _process_input_audio_transcription_completed(self, event) -> None:
        def _set(part):
            if isinstance(part, InputAudioContent):
                return part.model_copy(update={"transcript": event.transcript})
            return None

        self._update_content(event.item_id, event.content_index, _set)

    def _process_input_audio_transcription_delta(self, event) -> None:
        def _append(part):
            if isinstance(part, InputAudioContent):
                return part.model_copy(update={"transcript": (part.transcript or "") + event.delta})
            return None

        self._update_content(event.item_id, event.content_index, _append)

    def _process_input_audio_transcription_failed(self, event) -> None:
        self.logger.error(f"Input audio transcription failed for {event.item_id}: {event.error}")
        self._report(event.error)

    def _process_speech_started(self, event) -> None:
        self.is_user_speaking = True
        self.dispatch("conversation.interrupted", {"item_id": event.item_id, "audio_start_ms": event.audio_start_ms})

    def _process_speech_stopped(self, event) -> None:
        self.is_user_speaking = False

    def _process_output_audio_started(self, event) -> None:
        self.is_model_speaking = True
        self.model_audio_accumulated_ms = 0
        self.model_audio_start_time = self.clock()

    def _process_output_audio_stopped(self, event) -> None:
        self._freeze_playback_clock()
        self.is_model_speaking = False
        self.playing_item_id = None

    def _process_output_audio_cleared(self, event) -> None:
        self._freeze_playback_clock()
        self.model_audio_accumulated_ms = 0
        self.is_model_speaking = False
        self.playing_item_id = None

    def _process_response_created(self, event) -> None:
        if self.id is None and event.response.conversation_id:
            self.id = event.response.conversation_id
            self.logger.info(f"Conversation id: {self.id}")

    def _process_output_item_added(self, event) -> None:
        item = event.item
        if isinstance(item, MCPCall):
            tracking = self._tracking(item.id)
            if tracking.call_step is None:
                tracking.call_step = MCPCallStep.ADDED
            tracking.call_last_event_id = event.event_id

    def _process_output_item_done(self, event) -> None:
        item = event.item
        if isinstance(item, Message):
            self._update_message(item.id, lambda _: item)
        elif isinstance(item, MCPCall):
            self._finalize_mcp_call(item.id, event.event_id)

        if self.playing_item_id == item.id:
            self.playing_item_id = None
        self._freeze_playback_clock()
        if self._is_completed(item):
            self.dispatch("conversation.item.completed", {"item": item})

    def _process_content_part_added(self, event) -> None:
        def _insert(message: Message) -> Message:
            content = list(message.content)
            content.insert(min(event.content_index, len(content)), event.part)
            return message.model_copy(update={"content": tuple(content)})

        self._update_message(event.item_id, _insert)

    def _process_content_part_done(self, event) -> None:
        self._update_content(event.item_id, event.content_index, lambda _: event.part)

    def _process_text_delta(self, event) -> None:
        def _append(part):
            if isinstance(part, TextContent):
                return part.model_copy(update={"text": part.text + event.delta})
            return None

        self._update_content(event.item_id, event.content_index, _append)

    def _process_text_done(self, event) -> None:
        self._update_content(event.item_id, event.content_index, lambda _: TextContent(text=event.text))

    def _process_audio_transcript_delta(self, event) -> None:
        def _append(part):
            if isinstance(part, AudioContent):
                return part.model_copy(update={"transcript": (part.transcript or "") + event.delta})
            return None

        self._update_content(event.item_id, event.content_index, _append)

    def _process_audio_transcript_done(self, event) -> None:
        def _set(part):
            if isinstance(part, AudioContent):
                return part.model_copy(update={"transcript": event.transcript})
            return None

        self._update_content(event.item_id, event.content_index, _set)

    def _process_audio_delta(self, event) -> None:
        self.playing_item_id = event.item_id

        def _append(part):
            if isinstance(part, AudioContent):
                return part.model_copy(update={"audio": (part.audio or b"") + event.delta})
            return None

        self._update_content(event.item_id, event.content_index, _append)

    def _process_function_call_arguments_delta(self, event) -> None:
        self._update_function_call(event.item_id, lambda arguments: arguments + event.delta)

    def _process_function_call_arguments_done(self, event) -> None:
        self._update_function_call(event.item_id, lambda _: event.arguments)

    def _process_mcp_call_arguments_delta(self, event) -> None:
        tracking = self._tracking(event.item_id)
        if tracking.call_step is None or tracking.call_step <= MCPCallStep.CALL_IN_PROGRESS:
            tracking.call_step = MCPCallStep.CALL_IN_PROGRESS
        tracking.call_last_event_id = event.event_id

    def _process_mcp_call_arguments_done(self, event) -> None:
        tracking = self._tracking(event.item_id)
        if tracking.call_step is None or tracking.call_step <= MCPCallStep.CALL_IN_PROGRESS:
            tracking.call_step = MCPCallStep.CALL_COMPLETED
        tracking.call_last_event_id = event.event_id

    def _process_mcp_call_in_progress(self, event) -> None:
        tracking = self._tracking(event.item_id)
        # arguments may finish streaming before the ack arrives
        if tracking.call_step is None or tracking.call_step <= MCPCallStep.CALL_IN_PROGRESS:
            tracking.call_step = MCPCallStep.CALL_IN_PROGRESS
        tracking.call_last_event_id = event.event_id

    def _process_mcp_call_completed(self, event) -> None:
        # the response phase starts with item.done, not with this ack
        self._tracking(event.item_id).call_last_event_id = event.event_id

    def _process_mcp_call_failed(self, event) -> None:
        tracking = self._tracking(event.item_id)
        tracking.call_last_event_id = event.event_id
        step = tracking.call_step
        if step is not None and (step.is_incomplete or step.is_response_finished):
            return
        tracking.call_step = MCPCallStep.CALL_INCOMPLETE
        self.logger.warning(f"MCP call {event.item_id} failed, requesting a response")
        self._send_safely(ResponseCreate())

    def _process_mcp_list_tools(self, event, status: ItemStatus) -> None:
        if self._index_of(event.item_id) is None:
            self._append(MCPListTools(id=event.item_id))
        tracking = self._tracking(event.item_id)
        tracking.list_tools_status = status
        tracking.list_tools_last_event_id = event.event_id

    def _process_rate_limits_updated(self, event) -> None:
        self.rate_limits = list(event.rate_limits)
