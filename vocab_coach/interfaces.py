"""Protocol interfaces for dependency injection."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence

from .models import ChatMessage, SessionStatus, TranscriptPreview

FrameCallback = Callable[[str], None]


class AudioCapture(Protocol):
    """Turns microphone input into transport-encoded 16 kHz frames."""

    @property
    def muted(self) -> bool:
        """Whether frames are currently being dropped."""

    def initialize(self) -> None:
        """
        Acquire the microphone.

        Raises:
            PermissionDenied, DeviceNotFound, DeviceUnavailable
        """

    def start(self, on_frame: FrameCallback) -> None:
        """Begin delivering encoded frames to ``on_frame`` until stopped."""

    def set_muted(self, muted: bool) -> None:
        """Stop (or resume) forwarding frames without tearing down the stream."""

    def stop(self) -> None:
        """Stop the input stream. Safe to call when never started."""

    def cleanup(self) -> None:
        """Release the stream and device. Safe to call repeatedly."""


class AudioOutput(Protocol):
    """An output device with a monotonic audio clock."""

    sample_rate: int

    @property
    def current_time(self) -> float:
        """Seconds of audio rendered since the output was opened."""

    def schedule(self, samples, start_time: float) -> None:
        """Play float samples starting at ``start_time`` on the audio clock."""

    def close(self) -> None:
        """Stop playback and release the device. Safe to call repeatedly."""


class ConnectionListener(Protocol):
    """Receives inbound events from a live connection."""

    def on_audio(self, encoded: str) -> None:
        """A transport-encoded 24 kHz PCM chunk from the model."""

    def on_input_transcript(self, fragment: str) -> None:
        """A fragment of what the learner said."""

    def on_output_transcript(self, fragment: str) -> None:
        """A fragment of what the model said."""

    def on_turn_complete(self) -> None:
        """The current conversational turn finished."""

    def on_transport_error(self, error: Exception) -> None:
        """The open stream failed."""

    def on_closed(self, code: Optional[int], reason: Optional[str]) -> None:
        """The remote side closed the stream."""


class LiveConnection(Protocol):
    """Duplex stream to the conversational AI endpoint."""

    def open(self, listener: ConnectionListener) -> None:
        """
        Open the stream and block until the endpoint acknowledges it.

        Raises:
            HandshakeFailure: If the endpoint rejects or never acknowledges.
        """

    def send_audio(self, encoded: str) -> None:
        """Send one encoded capture frame."""

    def send_text(self, text: str) -> None:
        """Send a complete text turn from the learner."""

    def close(self) -> None:
        """Close the stream. Safe to call repeatedly."""


ConnectionFactory = Callable[[str], LiveConnection]


class SessionObserver(Protocol):
    """Host-side view of a running session."""

    def on_status(self, status: SessionStatus, detail: Optional[str]) -> None:
        """Status changed; ``detail`` holds the failure message on error."""

    def on_slow_connection(self) -> None:
        """Connecting is taking longer than expected."""

    def on_preview(self, preview: Optional[TranscriptPreview]) -> None:
        """The in-progress transcript changed (``None`` once finalized)."""

    def on_history(self, history: Sequence[ChatMessage]) -> None:
        """New finalized messages were appended."""
