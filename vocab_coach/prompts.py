"""Default roleplay instruction for the live conversation partner."""

from __future__ import annotations

from typing import Sequence

from .models import UserProfile


def build_roleplay_instruction(
    profile: UserProfile,
    scene: str,
    words: Sequence[str],
    context: str = "",
) -> str:
    """Interpolate the learner, scene, and target words into a short brief."""
    lines = [
        "You are a friendly conversation partner helping an English learner practise vocabulary.",
        "",
        f"Learner: {profile.name}" + (f", works as {profile.occupation}" if profile.occupation else ""),
        f"Scene: {scene.strip()}",
    ]
    if context.strip():
        lines.append(f"Background: {context.strip()}")
    lines.extend(
        [
            f"Target words: {', '.join(words)}",
            "",
            "Rules:",
            "1. Greet the learner first, in character, in one sentence.",
            "2. Keep every reply to one short sentence.",
            "3. Aim for six to eight exchanges, then wrap up naturally.",
            "4. When the learner makes a mistake, repeat the corrected form naturally.",
            "5. Acknowledge correct use of a target word briefly and nudge toward the others.",
        ]
    )
    return "\n".join(lines)
