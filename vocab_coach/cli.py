"""CLI harness that runs one live roleplay session in a terminal."""

from __future__ import annotations

import argparse
import logging
import threading
from typing import List, Optional, Sequence

from .config import AppConfig
from .models import ChatMessage, SessionStatus, TranscriptPreview, UserProfile
from .session import LiveConversationSession, NullObserver, start_session
from .transcript import save_transcript

DEFAULT_SCENE = "You're a barista at a busy café; I'm ordering coffee."


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


class ConsoleObserver(NullObserver):
    """Prints session progress the way a UI would render it."""

    def __init__(self) -> None:
        self._printed = 0

    def on_status(self, status: SessionStatus, detail: Optional[str]) -> None:
        if status is SessionStatus.CONNECTING:
            print("[live] Connecting to AI...")
        elif status is SessionStatus.CONNECTED:
            print("[live] ✓ Connected. The AI will speak first, then you reply.")
            print("[live] Enter = finish, m + Enter = mute/unmute, q + Enter = close")
        elif status is SessionStatus.ERROR:
            print(f"[live] ✗ {detail or 'Connection failed.'}")
            print("[live] Press Enter to keep the transcript so far, or q + Enter to close.")
        elif status is SessionStatus.ENDED:
            print("[live] Session ended.")

    def on_slow_connection(self) -> None:
        print("[live] Taking longer than expected. Run with --verbose to see what is happening.")

    def on_preview(self, preview: Optional[TranscriptPreview]) -> None:
        if preview is not None:
            print(f"  ...{preview.label}: {preview.text}")

    def on_history(self, history: Sequence[ChatMessage]) -> None:
        for message in history[self._printed:]:
            speaker = "You" if message.role == "user" else "AI"
            print(f"{speaker}: {message.text}")
        self._printed = len(history)


def run_console_session(
    session: LiveConversationSession,
    done: threading.Event,
    read_line=input,
) -> None:
    """Drive mute / finish / close from stdin until the session completes."""
    while not done.is_set():
        try:
            command = read_line().strip().lower()
        except (EOFError, KeyboardInterrupt):
            session.cancel()
            break
        if command == "m":
            muted = session.toggle_mute()
            print("[live] Muted" if muted else "[live] Microphone active")
        elif command == "q":
            session.cancel()
        elif command == "":
            session.end()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Practise target words in a live spoken roleplay.")
    parser.add_argument(
        "--word",
        dest="words",
        action="append",
        required=True,
        help="Target word to practise (repeat for several).",
    )
    parser.add_argument("--scene", default=DEFAULT_SCENE, help="Roleplay scene description.")
    parser.add_argument("--name", help="Learner name (overrides VOCAB_COACH_LEARNER_NAME).")
    parser.add_argument("--occupation", help="Learner occupation (overrides VOCAB_COACH_LEARNER_OCCUPATION).")
    parser.add_argument("--context", default="", help="Extra background for the partner.")
    parser.add_argument("--output", help="Write the finished transcript to this JSON file.")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    config = AppConfig.from_env()
    profile = UserProfile(
        name=args.name or config.learner_name,
        occupation=args.occupation if args.occupation is not None else config.learner_occupation,
    )
    done = threading.Event()

    def on_complete(history: List[ChatMessage]) -> None:
        print(f"\n[live] ✓ Conversation finished with {len(history)} messages")
        if args.output:
            save_transcript(args.output, history)
            print(f"[live] Transcript saved to {args.output}")
        done.set()

    def on_cancel() -> None:
        print("\n[live] Session closed without saving.")
        done.set()

    session = start_session(
        profile,
        args.scene,
        args.words,
        on_complete,
        on_cancel,
        config=config,
        observer=ConsoleObserver(),
        context=args.context,
    )
    run_console_session(session, done)


if __name__ == "__main__":
    main()
