"""Conversions between PCM sample buffers and the base64 transport encoding."""

from __future__ import annotations

import base64
import binascii

import numpy as np

from .exceptions import DecodeError

INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
INPUT_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"


def pcm16_to_transport_text(data: bytes) -> str:
    """Encode raw bytes as base64 text for inclusion in a JSON frame."""
    return base64.b64encode(bytes(data)).decode("ascii")


def transport_text_to_bytes(text: str) -> bytes:
    """
    Decode base64 transport text back to raw bytes.

    Raises:
        DecodeError: If the text is not valid base64.
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise DecodeError(f"Malformed transport data: {exc}") from exc


def float_samples_to_int16(samples) -> np.ndarray:
    """
    Convert float samples in [-1.0, 1.0] to signed 16-bit integers.

    Out-of-range values are clamped. Negative samples scale by 32768 and
    positive samples by 32767 so both ends of the int16 range are reachable.
    """
    block = np.nan_to_num(np.asarray(samples, dtype=np.float32), nan=0.0, posinf=1.0, neginf=-1.0)
    clipped = np.clip(block, -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return scaled.astype(np.int16)


def int16_to_float_samples(data: bytes) -> np.ndarray:
    """
    Convert little-endian 16-bit PCM bytes to float32 samples.

    Raises:
        DecodeError: If the byte count is not a whole number of samples.
    """
    if len(data) % 2:
        raise DecodeError(f"PCM payload has an odd byte count ({len(data)})")
    pcm = np.frombuffer(data, dtype="<i2")
    return pcm.astype(np.float32) / 32768.0


def resample_linear(samples, source_rate: int, target_rate: int) -> np.ndarray:
    """Resample a mono block with linear interpolation."""
    block = np.asarray(samples, dtype=np.float32)
    if source_rate == target_rate or block.size == 0:
        return block
    target_length = max(1, int(round(block.size * target_rate / source_rate)))
    source_positions = np.arange(block.size, dtype=np.float64)
    target_positions = np.linspace(0.0, block.size - 1, target_length)
    return np.interp(target_positions, source_positions, block).astype(np.float32)


def encode_capture_block(samples) -> str:
    """Convert one float capture block straight to transport text."""
    return pcm16_to_transport_text(float_samples_to_int16(samples).astype("<i2").tobytes())
