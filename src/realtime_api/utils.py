import base64
import uuid
from typing import Union

import numpy as np

AudioBuffer = Union[bytes, bytearray, memoryview, np.ndarray]


def generate_id(prefix: str = "", length: int = 21) -> str:
    """
    Generate a random identifier of the form ``<prefix><hex>``.

    Args:
        prefix (str): Prefix string for the ID (e.g. ``"event_"``).
        length (int): Number of random hex characters after the prefix.

    Returns:
        str: Generated unique ID.
    """
    random_part = ""
    while len(random_part) < length:
        random_part += uuid.uuid4().hex
    return f"{prefix}{random_part[:length]}"


def float_to_16bit_pcm(float32_array: np.ndarray) -> np.ndarray:
    """
    Converts a numpy array of float32 amplitude data to a numpy array in int16 format.

    Args:
        float32_array (np.ndarray): Input float32 numpy array.

    Returns:
        np.ndarray: Output int16 numpy array.
    """
    int16_array = np.clip(float32_array, -1, 1) * 32767
    return int16_array.astype(np.int16)


def audio_to_bytes(audio: AudioBuffer) -> bytes:
    """
    Normalizes an audio buffer to raw PCM16 bytes.

    Float arrays are clipped and converted to PCM16; other arrays are sent as-is.
    """
    if isinstance(audio, np.ndarray):
        if audio.dtype in (np.float32, np.float64):
            audio = float_to_16bit_pcm(audio)
        return audio.tobytes()
    return bytes(audio)


def encode_audio(audio: AudioBuffer) -> str:
    """
    Converts an audio buffer to a base64 encoded string.

    Args:
        audio: Raw bytes or a numpy array.

    Returns:
        str: Base64 encoded string.
    """
    return base64.b64encode(audio_to_bytes(audio)).decode("utf-8")


def decode_audio(base64_string: str) -> bytes:
    """
    Converts a base64 encoded string to raw bytes.

    Args:
        base64_string (str): Base64 encoded string.

    Returns:
        bytes: Decoded audio bytes.
    """
    return base64.b64decode(base64_string)
