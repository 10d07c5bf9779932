"""Turn reconstruction from incremental transcription fragments."""

from __future__ import annotations

import json
from typing import List, Sequence

from .models import ChatMessage, Role


class TranscriptReconstructor:
    """
    Buffers transcription fragments per direction and emits finished turns.

    Fragments are assumed to arrive in the order the endpoint produced them,
    so each buffer is a plain concatenation.

    Usage:
        >>> transcript = TranscriptReconstructor()
        >>> transcript.add_output("Hi")
        'Hi'
        >>> transcript.add_output(" there!")
        'Hi there!'
        >>> transcript.turn_complete()
        [ChatMessage(role='model', text='Hi there!')]
        >>> transcript.turn_complete()
        []
    """

    def __init__(self) -> None:
        self._incoming = ""
        self._outgoing = ""

    def add_input(self, fragment: str) -> str:
        """
        Append a fragment of learner speech.

        Returns:
            The learner text accumulated so far in this turn.
        """
        if fragment:
            self._incoming += fragment
        return self._incoming

    def add_output(self, fragment: str) -> str:
        """
        Append a fragment of model speech.

        Returns:
            The model text accumulated so far in this turn.
        """
        if fragment:
            self._outgoing += fragment
        return self._outgoing

    def turn_complete(self) -> List[ChatMessage]:
        """Finalize both buffers, learner first, then model."""
        messages: List[ChatMessage] = []
        user_text = self._incoming.strip()
        if user_text:
            messages.append(ChatMessage(role="user", text=user_text))
        self._incoming = ""

        model_text = self._outgoing.strip()
        if model_text:
            messages.append(ChatMessage(role="model", text=model_text))
        self._outgoing = ""
        return messages

    def flush(self) -> List[ChatMessage]:
        """Finalize whatever is pending when the session is ended early."""
        return self.turn_complete()

    @property
    def pending(self) -> bool:
        return bool(self._incoming.strip() or self._outgoing.strip())

    def buffer_for(self, role: Role) -> str:
        return self._incoming if role == "user" else self._outgoing


def save_transcript(path: str, history: Sequence[ChatMessage]) -> None:
    payload = [message.as_dict() for message in history]
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, ensure_ascii=False)
