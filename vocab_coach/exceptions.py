"""Custom exceptions for live conversation sessions."""

from __future__ import annotations

from typing import Optional


class LiveSessionError(RuntimeError):
    """Base class for failures raised by the live session stack."""

    user_message = "Failed to start the conversation. Please try again."


class CaptureError(LiveSessionError):
    """Raised when the microphone cannot be acquired."""


class PermissionDenied(CaptureError):
    """Raised when microphone access was declined or blocked."""

    user_message = (
        "Microphone access denied. Allow microphone access for this "
        "application in your system privacy settings, then restart the session."
    )


class DeviceNotFound(CaptureError):
    """Raised when no input device is available."""

    user_message = "No microphone found. Connect a microphone and try again."


class DeviceUnavailable(CaptureError):
    """Raised when the input device exists but cannot be opened."""

    user_message = (
        "The microphone could not be opened. Check that no other application "
        "is using it and try again."
    )


class ConnectionFailure(LiveSessionError):
    """Base class for failures of the duplex stream to the live endpoint."""


class HandshakeFailure(ConnectionFailure):
    """Raised when the live endpoint rejects or fails to open the stream."""

    user_message = "Connection failed. Restart the session to try again."


class TransportError(ConnectionFailure):
    """Raised when an open stream drops mid-session."""

    user_message = "The connection was lost. Restart the session to continue practising."


class DecodeError(LiveSessionError, ValueError):
    """Raised when transport-encoded audio cannot be decoded."""


class CleanupError(LiveSessionError):
    """Raised (and logged, never surfaced) when a resource fails to release."""


def describe_failure(exc: Optional[BaseException]) -> str:
    """
    Pick the human-readable message shown to the learner for a failure.

    Known session errors carry their own message; anything else gets the
    generic text with the exception detail appended.
    """
    if isinstance(exc, LiveSessionError):
        return exc.user_message
    if exc is None:
        return LiveSessionError.user_message
    return f"Failed to start the conversation: {exc}"
