"""Configuration helpers for live vocabulary sessions."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass
class AppConfig:
    """
    Runtime configuration for live sessions.

    Attributes:
        api_key: Gemini API key for the live endpoint.
        live_host: Host serving the BidiGenerateContent WebSocket.
        model: Live-capable model name.
        voice: Prebuilt voice the partner speaks with.
        handshake_timeout: Seconds to wait for the endpoint to acknowledge setup.
        slow_connect_seconds: Seconds in "connecting" before the host is told it is slow.
        input_device: Optional microphone name substring.
        output_device: Optional speaker name substring.
        capture_block: Samples per outbound audio frame (at 16 kHz).
        learner_name: Default learner name for the CLI.
        learner_occupation: Default learner occupation for the CLI.

    Usage:
        >>> config = AppConfig.from_env()
        >>> config.voice
        'Kore'
    """

    api_key: Optional[str]
    live_host: str
    model: str
    voice: str
    handshake_timeout: float
    slow_connect_seconds: float
    input_device: Optional[str]
    output_device: Optional[str]
    capture_block: int
    learner_name: str
    learner_occupation: str

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Build an :class:`AppConfig` from environment variables.

        Supported variables:
            - VOCAB_COACH_API_KEY: Gemini API key (falls back to GEMINI_API_KEY).
            - VOCAB_COACH_LIVE_HOST: Endpoint host (default: generativelanguage.googleapis.com).
            - VOCAB_COACH_MODEL: Model name (default: models/gemini-2.0-flash-exp).
            - VOCAB_COACH_VOICE: Prebuilt voice (default: Kore).
            - VOCAB_COACH_HANDSHAKE_TIMEOUT: Seconds to wait for setup (float, default: 30).
            - VOCAB_COACH_SLOW_CONNECT_SECONDS: Advisory delay (float, default: 10).
            - VOCAB_COACH_INPUT_DEVICE: Microphone name substring.
            - VOCAB_COACH_OUTPUT_DEVICE: Speaker name substring.
            - VOCAB_COACH_CAPTURE_BLOCK: Samples per outbound frame (int, default: 4096).
            - VOCAB_COACH_LEARNER_NAME: Default learner name (default: "Learner").
            - VOCAB_COACH_LEARNER_OCCUPATION: Default learner occupation.
        """

        api_key = os.environ.get("VOCAB_COACH_API_KEY") or os.environ.get("GEMINI_API_KEY") or None
        live_host = os.environ.get("VOCAB_COACH_LIVE_HOST", "generativelanguage.googleapis.com").strip()
        model = os.environ.get("VOCAB_COACH_MODEL", "models/gemini-2.0-flash-exp").strip()
        voice = os.environ.get("VOCAB_COACH_VOICE", "Kore").strip()
        handshake_timeout = _float_env("VOCAB_COACH_HANDSHAKE_TIMEOUT", "30")
        slow_connect_seconds = _float_env("VOCAB_COACH_SLOW_CONNECT_SECONDS", "10")
        input_device = os.environ.get("VOCAB_COACH_INPUT_DEVICE") or None
        output_device = os.environ.get("VOCAB_COACH_OUTPUT_DEVICE") or None
        capture_block_raw = os.environ.get("VOCAB_COACH_CAPTURE_BLOCK", "4096")
        try:
            capture_block = int(capture_block_raw)
        except ValueError as exc:
            raise ValueError("VOCAB_COACH_CAPTURE_BLOCK must be an integer") from exc
        if capture_block <= 0:
            raise ValueError("VOCAB_COACH_CAPTURE_BLOCK must be positive")
        learner_name = os.environ.get("VOCAB_COACH_LEARNER_NAME", "").strip()
        learner_occupation = os.environ.get("VOCAB_COACH_LEARNER_OCCUPATION", "").strip()

        return cls(
            api_key=api_key,
            live_host=live_host or "generativelanguage.googleapis.com",
            model=model or "models/gemini-2.0-flash-exp",
            voice=voice or "Kore",
            handshake_timeout=handshake_timeout,
            slow_connect_seconds=slow_connect_seconds,
            input_device=input_device,
            output_device=output_device,
            capture_block=capture_block,
            learner_name=learner_name or "Learner",
            learner_occupation=learner_occupation,
        )


def _float_env(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
