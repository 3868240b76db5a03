"""
Tests for the conversation engine
=================================

Feeds decoded server events into ``Conversation.handle`` and checks the item
log, the MCP progress tracking and the client events sent in response.
"""

import pytest

from src.realtime_api.conversation import Conversation
from src.realtime_api.errors import (
    ConversationError,
    InvalidArgumentsError,
    MissingRequiredPropertyError,
    SchemaValidationError,
    SessionNotFoundError,
)
from src.realtime_api.items import (
    AudioContent,
    FunctionCall,
    FunctionCallOutput,
    InputAudioContent,
    ItemStatus,
    MCPListTools,
    Message,
    MessageRole,
    TextContent,
)
from src.realtime_api.mcp import MCPCallStep
from src.realtime_api.session import Session
from src.realtime_api.transport import Transport
from tests.conftest import MockTransport, server_event


def assistant_message(item_id="msg_1", content=None, status="in_progress"):
    return {
        "id": item_id,
        "type": "message",
        "role": "assistant",
        "status": status,
        "content": content or [],
    }


def mcp_call(item_id="mcp_1", arguments="", **fields):
    return {
        "id": item_id,
        "type": "mcp_call",
        "server_label": "docs",
        "name": "search",
        "arguments": arguments,
        **fields,
    }


def list_tools(item_id="mlt_1", tools=None):
    payload = {"id": item_id, "type": "mcp_list_tools", "server_label": "docs"}
    if tools is not None:
        payload["tools"] = tools
    return payload


SEARCH_TOOL = {
    "name": "search",
    "input_schema": {
        "type": "object",
        "properties": {"query": {"type": "string"}, "limit": {"type": "integer"}},
        "required": ["query"],
    },
}


class TestItemLog:
    """Items are unique by id and only removed by deletion."""

    def test_created_then_added_keeps_one_entry(self, conversation):
        conversation.handle(server_event("conversation.item.created", item=assistant_message()))
        conversation.handle(
            server_event(
                "conversation.item.added",
                item=assistant_message(content=[{"type": "output_text", "text": "Hi"}]),
            )
        )
        assert [item.id for item in conversation.entries] == ["msg_1"]
        assert conversation.entries[0].text == "Hi"

    def test_repeated_created_replaces_in_place(self, conversation):
        conversation.handle(server_event("conversation.item.created", item=assistant_message("a")))
        conversation.handle(server_event("conversation.item.created", item=assistant_message("b")))
        conversation.handle(
            server_event("conversation.item.created", item=assistant_message("a", status="completed"))
        )
        assert [item.id for item in conversation.entries] == ["a", "b"]
        assert conversation.get_item("a").status == ItemStatus.COMPLETED

    def test_item_done_is_idempotent(self, conversation):
        conversation.handle(server_event("conversation.item.added", item=assistant_message()))
        done = server_event(
            "conversation.item.done",
            item=assistant_message(status="completed", content=[{"type": "text", "text": "Bye"}]),
        )
        conversation.handle(done)
        once = conversation.entries
        conversation.handle(done)
        assert conversation.entries == once
        assert len(once) == 1

    def test_item_done_for_unknown_item_is_not_appended(self, conversation):
        conversation.handle(server_event("conversation.item.done", item=assistant_message()))
        assert conversation.entries == ()

    def test_delete(self, conversation):
        conversation.handle(server_event("conversation.item.created", item=assistant_message()))
        conversation.handle(server_event("conversation.item.deleted", item_id="msg_1"))
        assert conversation.entries == ()

    def test_retrieved_replaces(self, conversation):
        conversation.handle(server_event("conversation.item.created", item=assistant_message()))
        conversation.handle(
            server_event(
                "conversation.item.retrieved",
                item=assistant_message(status="completed", content=[{"type": "text", "text": "x"}]),
            )
        )
        assert len(conversation.entries) == 1
        assert conversation.entries[0].text == "x"

    def test_messages_view(self, conversation):
        conversation.handle(server_event("conversation.item.created", item=assistant_message()))
        conversation.handle(
            server_event(
                "conversation.item.created",
                item={"id": "fc_1", "type": "function_call", "call_id": "c", "name": "f"},
            )
        )
        assert [message.id for message in conversation.messages] == ["msg_1"]
        assert len(conversation.entries) == 2

    def test_observers_are_notified(self, conversation):
        appended, updated = [], []
        conversation.on("conversation.item.appended", appended.append)
        conversation.on("conversation.updated", updated.append)
        conversation.handle(server_event("conversation.item.created", item=assistant_message()))
        conversation.handle(server_event("conversation.item.added", item=assistant_message()))
        assert len(appended) == 1
        assert len(updated) == 2

    def test_unhandled_events_are_ignored(self, conversation):
        conversation.handle(server_event("input_audio_buffer.committed", item_id="msg_1"))
        conversation.handle(server_event("response.reasoning.delta", delta="x"))
        assert conversation.entries == ()


class TestStreaming:
    def test_audio_and_transcript_deltas(self, conversation):
        conversation.handle(server_event("conversation.item.added", item=assistant_message()))
        conversation.handle(
            server_event(
                "response.content_part.added",
                item_id="msg_1",
                content_index=0,
                part={"type": "audio", "transcript": ""},
            )
        )
        for chunk in ("Hel", "lo"):
            conversation.handle(
                server_event("response.output_audio_transcript.delta", item_id="msg_1", delta=chunk)
            )
        conversation.handle(server_event("response.output_audio.delta", item_id="msg_1", delta="AAE="))
        conversation.handle(server_event("response.output_audio.delta", item_id="msg_1", delta="Ag=="))

        part = conversation.get_item("msg_1").content[0]
        assert isinstance(part, AudioContent)
        assert part.transcript == "Hello"
        assert part.audio == b"\x00\x01\x02"
        assert conversation.playing_item_id == "msg_1"

        conversation.handle(
            server_event("response.output_audio_transcript.done", item_id="msg_1", transcript="Hello!")
        )
        assert conversation.get_item("msg_1").content[0].transcript == "Hello!"

    def test_text_deltas(self, conversation):
        conversation.handle(server_event("conversation.item.added", item=assistant_message()))
        conversation.handle(
            server_event(
                "response.content_part.added",
                item_id="msg_1",
                content_index=0,
                part={"type": "text", "text": ""},
            )
        )
        conversation.handle(server_event("response.output_text.delta", item_id="msg_1", delta="4"))
        conversation.handle(server_event("response.text.delta", item_id="msg_1", delta="2"))
        assert conversation.get_item("msg_1").content[0] == TextContent(text="42")

        conversation.handle(server_event("response.output_text.done", item_id="msg_1", text="42."))
        assert conversation.get_item("msg_1").text == "42."

    def test_delta_for_missing_part_is_ignored(self, conversation):
        conversation.handle(server_event("conversation.item.added", item=assistant_message()))
        conversation.handle(
            server_event("response.output_text.delta", item_id="msg_1", content_index=3, delta="x")
        )
        assert conversation.get_item("msg_1").content == ()

    def test_content_part_done_replaces(self, conversation):
        conversation.handle(
            server_event(
                "conversation.item.added",
                item=assistant_message(content=[{"type": "text", "text": "draft"}]),
            )
        )
        conversation.handle(
            server_event(
                "response.content_part.done",
                item_id="msg_1",
                content_index=0,
                part={"type": "text", "text": "final"},
            )
        )
        assert conversation.get_item("msg_1").text == "final"

    def test_function_call_arguments(self, conversation):
        conversation.handle(
            server_event(
                "conversation.item.added",
                item={"id": "fc_1", "type": "function_call", "call_id": "c1", "name": "lookup"},
            )
        )
        for delta in ('{"q"', ': "x"}'):
            conversation.handle(
                server_event("response.function_call_arguments.delta", item_id="fc_1", delta=delta)
            )
        call = conversation.get_item("fc_1")
        assert isinstance(call, FunctionCall)
        assert call.decoded_arguments() == {"q": "x"}

        conversation.handle(
            server_event("response.function_call_arguments.done", item_id="fc_1", arguments="{}")
        )
        assert conversation.get_item("fc_1").arguments == "{}"

    def test_output_item_done_replaces_message(self, conversation):
        conversation.handle(server_event("conversation.item.added", item=assistant_message()))
        conversation.handle(
            server_event(
                "response.output_item.done",
                item=assistant_message(status="completed", content=[{"type": "text", "text": "ok"}]),
            )
        )
        assert conversation.get_item("msg_1").status == ItemStatus.COMPLETED

    def test_input_audio_transcription(self, conversation):
        conversation.handle(
            server_event(
                "conversation.item.created",
                item={
                    "id": "u1",
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_audio"}],
                },
            )
        )
        conversation.handle(
            server_event(
                "conversation.item.input_audio_transcription.delta", item_id="u1", delta="Hi"
            )
        )
        assert conversation.get_item("u1").content[0].transcript == "Hi"
        conversation.handle(
            server_event(
                "conversation.item.input_audio_transcription.completed",
                item_id="u1",
                transcript="Hi there",
            )
        )
        part = conversation.get_item("u1").content[0]
        assert isinstance(part, InputAudioContent)
        assert part.transcript == "Hi there"

    def test_conversation_id_from_first_response(self, conversation):
        conversation.handle(
            server_event("response.created", response={"id": "r1", "conversation_id": "conv_1"})
        )
        conversation.handle(
            server_event("response.created", response={"id": "r2", "conversation_id": "conv_2"})
        )
        assert conversation.id == "conv_1"

    def test_speech_flags(self, conversation):
        interrupted = []
        conversation.on("conversation.interrupted", interrupted.append)
        conversation.handle(server_event("input_audio_buffer.speech_started", item_id="u1"))
        assert conversation.is_user_speaking
        assert len(interrupted) == 1
        conversation.handle(server_event("input_audio_buffer.speech_stopped", item_id="u1"))
        assert not conversation.is_user_speaking


class TestMCPTracking:
    def test_nominal_call(self, conversation, transport):
        conversation.handle(server_event("conversation.item.added", item=mcp_call()))
        assert conversation.mcp_call_step("mcp_1") is MCPCallStep.ADDED

        conversation.handle(server_event("response.mcp_call_arguments.delta", item_id="mcp_1", delta="{"))
        assert conversation.mcp_call_step("mcp_1") is MCPCallStep.CALL_IN_PROGRESS

        conversation.handle(server_event("response.mcp_call_arguments.done", item_id="mcp_1", arguments="{}"))
        assert conversation.mcp_call_step("mcp_1") is MCPCallStep.CALL_COMPLETED

        conversation.handle(server_event("response.mcp_call.completed", item_id="mcp_1"))
        assert conversation.mcp_call_step("mcp_1") is MCPCallStep.CALL_COMPLETED
        assert transport.sent_types() == []

        done = server_event(
            "conversation.item.done", item=mcp_call(arguments='{"query": "x"}', output="result")
        )
        conversation.handle(done)
        assert conversation.mcp_call_step("mcp_1") is MCPCallStep.RESPONSE_COMPLETED
        assert conversation.mcp_call_step("mcp_1").is_complete
        assert conversation.get_item("mcp_1").output == "result"
        assert conversation.mcp_call_last_event_id("mcp_1") == done.event_id
        assert transport.sent_types() == ["response.create"]

    def test_in_progress_ack_does_not_regress(self, conversation):
        conversation.handle(server_event("response.mcp_call_arguments.done", item_id="mcp_1", arguments="{}"))
        conversation.handle(server_event("response.mcp_call.in_progress", item_id="mcp_1"))
        assert conversation.mcp_call_step("mcp_1") is MCPCallStep.CALL_COMPLETED

    def test_added_does_not_regress(self, conversation):
        conversation.handle(server_event("response.mcp_call_arguments.delta", item_id="mcp_1", delta="{"))
        conversation.handle(server_event("conversation.item.added", item=mcp_call()))
        conversation.handle(server_event("response.output_item.added", item=mcp_call()))
        assert conversation.mcp_call_step("mcp_1") is MCPCallStep.CALL_IN_PROGRESS

    def test_failure_sends_exactly_one_response(self, conversation, transport):
        conversation.handle(server_event("conversation.item.added", item=mcp_call()))
        conversation.handle(server_event("response.mcp_call_arguments.done", item_id="mcp_1", arguments="{}"))
        conversation.handle(server_event("response.mcp_call.failed", item_id="mcp_1"))
        conversation.handle(server_event("conversation.item.done", item=mcp_call(error={"message": "boom"})))
        conversation.handle(server_event("response.output_item.done", item=mcp_call(error={"message": "boom"})))

        assert transport.sent_types() == ["response.create"]
        assert conversation.mcp_call_step("mcp_1") is MCPCallStep.CALL_INCOMPLETE
        assert conversation.mcp_call_step("mcp_1").is_incomplete

    def test_item_done_and_output_item_done_send_one_response(self, conversation, transport):
        conversation.handle(server_event("conversation.item.added", item=mcp_call()))
        conversation.handle(server_event("response.output_item.done", item=mcp_call(output="r")))
        conversation.handle(server_event("conversation.item.done", item=mcp_call(output="r")))
        conversation.handle(server_event("conversation.item.done", item=mcp_call(output="r")))
        assert transport.sent_types() == ["response.create"]

    def test_list_tools_placeholder(self, conversation):
        conversation.handle(server_event("mcp_list_tools.in_progress", item_id="mlt_1"))
        conversation.handle(server_event("mcp_list_tools.in_progress", item_id="mlt_1"))
        assert len(conversation.entries) == 1
        placeholder = conversation.entries[0]
        assert isinstance(placeholder, MCPListTools)
        assert placeholder.tools is None
        assert conversation.mcp_list_tools_status("mlt_1") is ItemStatus.IN_PROGRESS

        conversation.handle(server_event("mcp_list_tools.completed", item_id="mlt_1"))
        conversation.handle(server_event("conversation.item.done", item=list_tools(tools=[SEARCH_TOOL])))
        assert len(conversation.entries) == 1
        assert conversation.entries[0].get_tool("search") is not None
        assert conversation.mcp_list_tools_status("mlt_1") is ItemStatus.COMPLETED

    def test_list_tools_failed(self, conversation):
        failed = server_event("mcp_list_tools.failed", item_id="mlt_1")
        conversation.handle(failed)
        assert conversation.mcp_list_tools_status("mlt_1") is ItemStatus.INCOMPLETE
        assert conversation.mcp_list_tools_last_event_id("mlt_1") == failed.event_id

    def test_delete_purges_tracking(self, conversation):
        conversation.handle(server_event("mcp_list_tools.in_progress", item_id="mcp_1"))
        conversation.handle(server_event("response.mcp_call_arguments.delta", item_id="mcp_1", delta="{"))
        conversation.handle(server_event("conversation.item.deleted", item_id="mcp_1"))
        assert conversation.mcp_call_step("mcp_1") is None
        assert conversation.mcp_list_tools_status("mcp_1") is None
        assert conversation.mcp_call_last_event_id("mcp_1") is None
        assert conversation.mcp_list_tools_last_event_id("mcp_1") is None
        assert conversation.entries == ()

    def test_follow_up_send_failure_goes_to_error_stream(self, conversation, transport):
        transport.fail_on.add("response.create")
        conversation.handle(server_event("response.mcp_call.failed", item_id="mcp_1"))
        assert transport.sent == []
        assert len(conversation.errors.history) == 1
        assert conversation.errors.history[0].type == "ConnectionError"

    def test_validate_arguments(self, conversation):
        conversation.handle(server_event("conversation.item.created", item=list_tools(tools=[SEARCH_TOOL])))
        conversation.handle(server_event("conversation.item.added", item=mcp_call(arguments='{"query": "x", "limit": "5"}')))
        assert conversation.validate_mcp_arguments("mcp_1") == {"query": "x", "limit": "5"}

        conversation.handle(server_event("conversation.item.added", item=mcp_call("mcp_2", arguments={"limit": 1})))
        with pytest.raises(MissingRequiredPropertyError):
            conversation.validate_mcp_arguments("mcp_2")

    def test_validate_unknown_tool(self, conversation):
        conversation.handle(server_event("conversation.item.added", item=mcp_call()))
        with pytest.raises(ConversationError):
            conversation.validate_mcp_arguments("mcp_1")
        with pytest.raises(ConversationError):
            conversation.validate_mcp_arguments("missing")

    def test_validate_malformed_arguments(self, conversation):
        conversation.handle(server_event("conversation.item.created", item=list_tools(tools=[SEARCH_TOOL])))
        conversation.handle(
            server_event(
                "conversation.item.created",
                item={
                    "id": "apr_1",
                    "type": "mcp_approval_request",
                    "server_label": "docs",
                    "name": "search",
                    "arguments": "{not json",
                },
            )
        )
        conversation.handle(server_event("conversation.item.added", item=mcp_call("mcp_2", arguments="{not json")))

        for item_id in ("apr_1", "mcp_2"):
            with pytest.raises(InvalidArgumentsError) as exc_info:
                conversation.validate_mcp_arguments(item_id)
            assert isinstance(exc_info.value, SchemaValidationError)
            assert exc_info.value.path == "$"
            assert isinstance(exc_info.value.__cause__, ValueError)


class TestPlayback:
    def test_accumulator_freezes_on_stop(self, conversation, clock):
        conversation.handle(server_event("output_audio_buffer.started", response_id="r1"))
        assert conversation.is_model_speaking
        clock.advance(0.5)
        conversation.handle(server_event("output_audio_buffer.stopped", response_id="r1"))
        assert not conversation.is_model_speaking
        assert conversation.model_audio_accumulated_ms == 500
        assert conversation.model_audio_start_time is None

    def test_cleared_resets_accumulator(self, conversation, clock):
        conversation.handle(server_event("output_audio_buffer.started"))
        conversation.handle(server_event("response.output_audio.delta", item_id="msg_1", delta=""))
        clock.advance(0.2)
        conversation.handle(server_event("output_audio_buffer.cleared"))
        assert conversation.model_audio_accumulated_ms == 0
        assert conversation.playing_item_id is None

    def test_truncated_clears_playing_item(self, conversation, clock):
        conversation.handle(server_event("output_audio_buffer.started"))
        conversation.handle(server_event("response.output_audio.delta", item_id="msg_1", delta=""))
        clock.advance(0.125)
        conversation.handle(server_event("conversation.item.truncated", item_id="msg_1", audio_end_ms=125))
        assert conversation.playing_item_id is None
        assert conversation.model_audio_accumulated_ms == 125


class TestInterruptSpeech:
    def _start_speaking(self, conversation, item_id="msg_1"):
        conversation.handle(
            server_event(
                "conversation.item.added",
                item=assistant_message(item_id, content=[{"type": "audio", "transcript": ""}]),
            )
        )
        conversation.handle(server_event("output_audio_buffer.started"))
        conversation.handle(server_event("response.output_audio.delta", item_id=item_id, delta="AAE="))

    def test_truncate_cancel_clear_in_order(self, conversation, transport, clock):
        self._start_speaking(conversation)
        conversation.model_audio_accumulated_ms = 1000
        clock.advance(0.25)

        assert conversation.interrupt_speech() is True

        assert transport.sent_types() == [
            "conversation.item.truncate",
            "response.cancel",
            "output_audio_buffer.clear",
        ]
        truncate = transport.sent[0]
        assert truncate.item_id == "msg_1"
        assert truncate.audio_end_ms == pytest.approx(1250, abs=5)
        assert conversation.model_audio_accumulated_ms == truncate.audio_end_ms
        assert conversation.model_audio_start_time is None
        assert conversation.playing_item_id is None
        assert not conversation.is_model_speaking
        assert not conversation.is_interrupting

    def test_noop_when_model_is_silent(self, conversation, transport):
        assert conversation.interrupt_speech() is False
        assert transport.sent == []

    def test_noop_while_already_interrupting(self, conversation, transport):
        self._start_speaking(conversation)
        conversation.is_interrupting = True
        assert conversation.interrupt_speech() is False
        assert transport.sent == []

    def test_failures_do_not_stop_the_sequence(self, conversation, transport):
        self._start_speaking(conversation)
        transport.fail_on.update({"conversation.item.truncate", "response.cancel"})

        conversation.interrupt_speech()

        assert transport.sent_types() == ["output_audio_buffer.clear"]
        assert len(conversation.errors.history) == 2
        assert not conversation.is_interrupting
        assert conversation.playing_item_id is None

    def test_falls_back_to_newest_assistant_audio(self, conversation, transport):
        conversation.handle(
            server_event(
                "conversation.item.created",
                item=assistant_message("old", content=[{"type": "audio"}]),
            )
        )
        conversation.handle(
            server_event(
                "conversation.item.created",
                item=assistant_message("text_only", content=[{"type": "text", "text": "x"}]),
            )
        )
        conversation.handle(server_event("output_audio_buffer.started"))
        conversation.interrupt_speech()
        assert transport.sent[0].item_id == "old"

    def test_falls_back_to_newest_assistant_message(self, conversation, transport):
        conversation.handle(server_event("conversation.item.created", item=assistant_message("a1")))
        conversation.handle(server_event("conversation.item.created", item=assistant_message("a2")))
        conversation.handle(
            server_event(
                "conversation.item.created",
                item={"id": "u1", "type": "message", "role": "user", "content": []},
            )
        )
        conversation.handle(server_event("output_audio_buffer.started"))
        conversation.interrupt_speech()
        assert transport.sent[0].item_id == "a2"

    def test_without_target_nothing_is_sent(self, conversation, transport):
        conversation.handle(server_event("output_audio_buffer.started"))
        assert conversation.interrupt_speech() is True
        assert transport.sent == []
        assert not conversation.is_model_speaking


class TestErrors:
    def test_error_event_is_forwarded(self, conversation):
        observed = []
        conversation.on("conversation.error", observed.append)
        conversation.handle(
            server_event(
                "error",
                error={"type": "invalid_request_error", "code": "x", "message": "bad", "event_id": "c1"},
            )
        )
        assert [error.message for error in conversation.errors.history] == ["bad"]
        assert observed[0].event_id == "c1"

    def test_transcription_failure_is_forwarded(self, conversation):
        conversation.handle(
            server_event(
                "conversation.item.input_audio_transcription.failed",
                item_id="u1",
                error={"type": "transcription_error", "message": "unintelligible"},
            )
        )
        assert conversation.errors.history[0].type == "transcription_error"

    def test_transport_errors_are_forwarded(self, conversation, transport):
        transport.dispatch("transport.error", OSError("broken pipe"))
        assert conversation.errors.history[0].message == "broken pipe"


class TestSession:
    SESSION = {"id": "sess_1", "object": "realtime.session", "model": "gpt-realtime", "voice": "alloy"}

    def test_session_is_replaced(self, conversation):
        conversation.handle(server_event("session.created", session=self.SESSION))
        conversation.handle(server_event("session.updated", session={**self.SESSION, "voice": "verse"}))
        assert conversation.session.voice == "verse"

    def test_configure_callback_runs_once(self, transport, clock):
        calls = []

        def configure(session: Session) -> None:
            calls.append(session.id)
            session.instructions = "Be brief"

        conversation = Conversation(transport, clock=clock, configure_session=configure, session_config={})
        conversation.handle(server_event("session.created", session=self.SESSION))
        conversation.handle(server_event("session.created", session=self.SESSION))

        assert calls == ["sess_1"]
        assert transport.sent_types() == ["session.update"]
        wire = transport.sent[0].to_wire()["session"]
        assert wire["instructions"] == "Be brief"
        assert "id" not in wire

    def test_session_config_is_merged(self, transport, clock):
        conversation = Conversation(
            transport, clock=clock, session_config={"audio": {"output": {"voice": "marin"}}}
        )
        conversation.handle(
            server_event("session.created", session={**self.SESSION, "audio": {"input": {"format": "pcm16"}}})
        )
        audio = transport.sent[0].to_wire()["session"]["audio"]
        assert audio == {"input": {"format": "pcm16"}, "output": {"voice": "marin"}}

    def test_update_before_session_fails(self, conversation):
        with pytest.raises(SessionNotFoundError):
            conversation.update_session(instructions="x")

    def test_update_session(self, conversation, transport):
        conversation.handle(server_event("session.created", session=self.SESSION))
        conversation.update_session(lambda session: setattr(session, "voice", "cedar"), temperature=0.7)
        wire = transport.sent[0].to_wire()["session"]
        assert wire["voice"] == "cedar"
        assert wire["temperature"] == 0.7
        assert conversation.session.voice == "alloy"

    def test_set_session_drops_id(self, conversation, transport):
        conversation.set_session(Session(id="sess_1", voice="marin", instructions="Be brief"))
        assert transport.sent_types() == ["session.update"]
        assert transport.sent[0].to_wire()["session"] == {"voice": "marin", "instructions": "Be brief"}


class TestSendHelpers:
    def test_send_text(self, conversation, transport):
        conversation.send_text("What time is it?")
        assert transport.sent_types() == ["conversation.item.create", "response.create"]
        message = transport.sent[0].item
        assert isinstance(message, Message)
        assert message.role == MessageRole.USER
        assert len(message.id) == 32
        assert transport.sent[0].to_wire()["item"]["content"] == [
            {"type": "input_text", "text": "What time is it?"}
        ]

    def test_send_audio_delta(self, conversation, transport):
        conversation.send_audio_delta(b"\x00\x01", commit=True)
        assert transport.sent_types() == ["input_audio_buffer.append", "input_audio_buffer.commit"]
        assert transport.sent[0].to_wire()["audio"] == "AAE="

    def test_send_result(self, conversation, transport):
        conversation.send_result(FunctionCallOutput(id="o1", call_id="c1", output="{}"))
        assert transport.sent[0].item.call_id == "c1"

    def test_mcp_approval(self, conversation, transport):
        conversation.respond_to_mcp_approval("apr_1", approve=True)
        wire = transport.sent[0].to_wire()["item"]
        assert wire["type"] == "mcp_approval_response"
        assert wire["approval_request_id"] == "apr_1"
        assert wire["approve"] is True

    def test_send_raises_when_transport_fails(self, conversation, transport):
        transport.fail_on.add("response.create")
        with pytest.raises(ConnectionError):
            conversation.send_text("hi")


def test_mock_transport_is_a_transport():
    assert isinstance(MockTransport(), Transport)
