"""
src/realtime_api/config.py
==========================
Central place for every environment variable and default used by the
realtime conversation SDK.
"""

from __future__ import annotations

import copy
import os
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from utils.ml_logging import get_logger

# Load environment variables from .env file
load_dotenv(override=False)

logger = get_logger("realtime_api.config")

# ------------------------------------------------------------------------------
# Realtime endpoint
# ------------------------------------------------------------------------------
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
OPENAI_REALTIME_URL: str = os.getenv("OPENAI_REALTIME_URL", "wss://api.openai.com/v1/realtime")
OPENAI_REALTIME_MODEL: str = os.getenv("OPENAI_REALTIME_MODEL", "gpt-realtime")

# ------------------------------------------------------------------------------
# Connection behaviour
# ------------------------------------------------------------------------------
# Seconds between status polls in Conversation.wait_for_connection
REALTIME_CONNECTION_POLL_INTERVAL: float = float(
    os.getenv("REALTIME_CONNECTION_POLL_INTERVAL", "0.5")
)
# Handshake attempts before giving up
REALTIME_CONNECT_MAX_TRIES: int = int(os.getenv("REALTIME_CONNECT_MAX_TRIES", "3"))
REALTIME_OPEN_TIMEOUT: float = float(os.getenv("REALTIME_OPEN_TIMEOUT", "10"))

# ------------------------------------------------------------------------------
# Session behaviour
# ------------------------------------------------------------------------------
# Optional YAML file applied to the session on the first session.created
REALTIME_SESSION_CONFIG: Optional[str] = os.getenv("REALTIME_SESSION_CONFIG") or None

DEFAULT_SESSION_CONFIG: Dict[str, Any] = {
    "type": "realtime",
    "output_modalities": ["audio"],
    "audio": {
        "input": {
            "format": {"type": "audio/pcm", "rate": 24000},
            "transcription": {"model": "whisper-1"},
            "turn_detection": {
                "type": "server_vad",
                "threshold": 0.5,
                "prefix_padding_ms": 300,
                "silence_duration_ms": 200,
                "create_response": True,
            },
        },
        "output": {"format": {"type": "audio/pcm", "rate": 24000}},
    },
}


def deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_session_config(
    path: str, defaults: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """
    Load session settings from a YAML file and merge them onto the defaults.

    Nested sections (``audio``, ``turn_detection``, ``input_audio_transcription``...)
    are merged key by key so a file only needs the values it changes.

    Args:
        path (str): Path of the YAML document.
        defaults (Mapping, optional): Base configuration. Defaults to
            :data:`DEFAULT_SESSION_CONFIG`.

    Returns:
        dict: The merged configuration. The defaults when the document is not
        a mapping.
    """
    base = dict(DEFAULT_SESSION_CONFIG if defaults is None else defaults)
    with open(path, "r") as f:
        config_from_yaml = yaml.safe_load(f)

    if not isinstance(config_from_yaml, Mapping):
        logger.warning(f"Session config YAML is not a mapping, ignoring: {path}")
        return copy.deepcopy(base)

    logger.info(f"Loading session config from {path}")
    return deep_merge(base, config_from_yaml)
