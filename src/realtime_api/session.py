"""
Session configuration models.

The server owns the session; the client only ever replaces its local copy
with what ``session.created`` / ``session.updated`` report and asks for
changes through ``session.update``.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict


class Model(str, Enum):
    """Well-known realtime models. Any other model name can be passed as a plain string."""

    GPT_REALTIME = "gpt-realtime"
    GPT_REALTIME_MINI = "gpt-realtime-mini"

    def __str__(self) -> str:
        return self.value


class TranscriptionModel(str, Enum):
    WHISPER = "whisper-1"
    GPT_4O = "gpt-4o-transcribe-latest"
    GPT_4O_MINI = "gpt-4o-mini-transcribe"
    GPT_4O_DIARIZE = "gpt-4o-transcribe-diarize"

    def __str__(self) -> str:
        return self.value


class Session(BaseModel):
    """
    Negotiated configuration of a realtime session.

    Only the commonly used fields are declared; anything else the server
    sends is kept as an extra field and sent back unchanged.
    """

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    id: Optional[str] = None
    type: Optional[str] = None
    object: Optional[str] = None
    model: Optional[str] = None
    instructions: Optional[str] = None
    voice: Optional[str] = None
    modalities: Optional[List[str]] = None
    output_modalities: Optional[List[str]] = None
    input_audio_format: Optional[str] = None
    output_audio_format: Optional[str] = None
    input_audio_transcription: Optional[Dict[str, Any]] = None
    turn_detection: Optional[Dict[str, Any]] = None
    audio: Optional[Dict[str, Any]] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    temperature: Optional[float] = None
    max_response_output_tokens: Optional[Union[int, str]] = None
    max_output_tokens: Optional[Union[int, str]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ResponseConfig(BaseModel):
    """Per-response overrides for ``response.create``."""

    model_config = ConfigDict(extra="allow")

    instructions: Optional[str] = None
    modalities: Optional[List[str]] = None
    output_modalities: Optional[List[str]] = None
    voice: Optional[str] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    temperature: Optional[float] = None
    max_output_tokens: Optional[Union[int, str]] = None
    conversation: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
