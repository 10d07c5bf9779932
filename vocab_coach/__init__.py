"""
Vocab Coach live conversation package.

This package runs the spoken roleplay step of a vocabulary lesson: it streams
the learner's microphone to a live conversational model, plays the model's
speech back gaplessly, and rebuilds a turn-by-turn transcript for the lesson
flow. The default entrypoint for local experiments is ``python -m vocab_coach``.
"""

__all__ = [
    "codec",
    "config",
    "interfaces",
    "models",
    "playback",
    "session",
    "transcript",
]
