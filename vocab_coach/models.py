"""Shared dataclasses for the live conversation session."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Literal

Role = Literal["user", "model"]


@dataclass(frozen=True)
class ChatMessage:
    """A single finalized conversational turn."""

    role: Role
    text: str

    def as_dict(self) -> Dict[str, str]:
        """Convert to the shape handed to the lesson flow."""
        return {"role": self.role, "text": self.text}


@dataclass
class UserProfile:
    """
    Learner details interpolated into the roleplay instruction.

    Attributes:
        name: How the partner should address the learner.
        occupation: Learner job, used to personalise the scene.
        extras: Any further free-form profile fields.
    """

    name: str
    occupation: str = ""
    extras: Dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, str]:
        return {"name": self.name, "occupation": self.occupation, **self.extras}


@dataclass(frozen=True)
class TranscriptPreview:
    """Partial transcript currently being spoken by one side."""

    role: Role
    text: str

    @property
    def label(self) -> str:
        return "You" if self.role == "user" else "AI"


class SessionStatus(Enum):
    """Top-level state of a live session."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    ENDED = "ended"

    def can_transition_to(self, target: "SessionStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.CONNECTING: frozenset(
        {SessionStatus.CONNECTED, SessionStatus.ERROR, SessionStatus.ENDED}
    ),
    SessionStatus.CONNECTED: frozenset({SessionStatus.ERROR, SessionStatus.ENDED}),
    SessionStatus.ERROR: frozenset(),
    SessionStatus.ENDED: frozenset(),
}
