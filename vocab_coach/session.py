"""Orchestration of one live roleplay conversation."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional, Sequence, Type

from .config import AppConfig
from .exceptions import (
    CaptureError,
    CleanupError,
    DeviceUnavailable,
    HandshakeFailure,
    LiveSessionError,
    describe_failure,
)
from .interfaces import AudioCapture, AudioOutput, ConnectionFactory, LiveConnection, SessionObserver
from .models import ChatMessage, SessionStatus, TranscriptPreview, UserProfile
from .playback import PlaybackScheduler
from .prompts import build_roleplay_instruction
from .transcript import TranscriptReconstructor

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[List[ChatMessage]], None]
InstructionBuilder = Callable[[UserProfile, str, Sequence[str], str], str]


class NullObserver(SessionObserver):
    """Observer that ignores every update; subclass and override what you need."""

    def on_status(self, status: SessionStatus, detail: Optional[str]) -> None:
        pass

    def on_slow_connection(self) -> None:
        pass

    def on_preview(self, preview: Optional[TranscriptPreview]) -> None:
        pass

    def on_history(self, history: Sequence[ChatMessage]) -> None:
        pass


def _spawn_thread(target: Callable[[], None]) -> None:
    threading.Thread(target=target, name="live-session-start", daemon=True).start()


class LiveConversationSession:
    """
    Runs one live roleplay: microphone out, model speech and transcripts in.

    Compose this class with a capture pipeline, an output device, and a
    factory for the duplex connection. The session owns all three for its
    lifetime and releases them on teardown, which is idempotent and safe from
    any state, including while the connection is still being established.

    Every inbound callback first checks the liveness flag, so events that
    arrive after teardown change nothing. A connection that finishes opening
    after teardown is closed straight away.

    Usage:
        session = LiveConversationSession(
            capture=SoundDeviceCapture(),
            output=SoundDeviceOutput(),
            connection_factory=lambda instruction: GeminiLiveConnection(
                api_key=key, system_instruction=instruction,
            ),
            on_complete=save_history,
            on_cancel=show_menu,
        )
        session.start(["resilient"], "You're a barista.", UserProfile("Ana"))
        ...
        session.end()
    """

    def __init__(
        self,
        *,
        capture: AudioCapture,
        output: AudioOutput,
        connection_factory: ConnectionFactory,
        on_complete: CompletionCallback,
        on_cancel: Optional[Callable[[], None]] = None,
        observer: Optional[SessionObserver] = None,
        instruction_builder: InstructionBuilder = build_roleplay_instruction,
        slow_connect_seconds: float = 10.0,
        spawn: Callable[[Callable[[], None]], None] = _spawn_thread,
        timer_factory: Callable[..., Any] = threading.Timer,
    ) -> None:
        self._capture = capture
        self._output = output
        self._connection_factory = connection_factory
        self._on_complete = on_complete
        self._on_cancel = on_cancel
        self._observer = observer or NullObserver()
        self._instruction_builder = instruction_builder
        self._slow_connect_seconds = slow_connect_seconds
        self._spawn = spawn
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._alive = True
        self._started = False
        self._finished = False
        self._status = SessionStatus.CONNECTING
        self._connection: Optional[LiveConnection] = None
        self._slow_timer: Optional[Any] = None
        self._slow_connection = False
        self._last_error: Optional[BaseException] = None

        self._scheduler = PlaybackScheduler(output)
        self._transcript = TranscriptReconstructor()
        self._history: List[ChatMessage] = []
        self._preview: Optional[TranscriptPreview] = None

    # Host-facing state -------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def history(self) -> Sequence[ChatMessage]:
        """Read-only list of finalized messages so far."""
        with self._lock:
            return tuple(self._history)

    @property
    def preview(self) -> Optional[TranscriptPreview]:
        return self._preview

    @property
    def muted(self) -> bool:
        return self._capture.muted

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def slow_connection(self) -> bool:
        return self._slow_connection

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    # Lifecycle ---------------------------------------------------------

    def start(
        self,
        target_words: Sequence[str],
        scene_description: str,
        profile: UserProfile,
        context: str = "",
    ) -> None:
        """Begin connecting; returns immediately while the worker establishes the session."""
        with self._lock:
            if self._started:
                raise RuntimeError("A live session can only be started once.")
            if not self._alive:
                raise RuntimeError("This live session was already torn down.")
            self._started = True
            self._scheduler.reset()
            self._observer.on_status(SessionStatus.CONNECTING, None)
            if self._slow_connect_seconds > 0:
                timer = self._timer_factory(self._slow_connect_seconds, self._on_slow_connect)
                timer.daemon = True
                self._slow_timer = timer
                timer.start()

        words = list(target_words)
        logger.info("Starting live session (%d target words)", len(words))
        self._spawn(lambda: self._establish(words, scene_description, profile, context))

    def toggle_mute(self) -> bool:
        """Flip the microphone mute; ignored unless connected. Returns the muted state."""
        with self._lock:
            if not self._alive or self._status is not SessionStatus.CONNECTED:
                return self._capture.muted
            muted = not self._capture.muted
            self._capture.set_muted(muted)
            return muted

    def end(self) -> None:
        """Flush pending speech, hand the transcript to the host, then tear down."""
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._append(self._transcript.flush())
            self._set_preview(None)
            self._transition(SessionStatus.ENDED)
            history = list(self._history)

        logger.info("Session ended with %d messages", len(history))
        try:
            self._on_complete(history)
        finally:
            self.teardown()

    def cancel(self) -> None:
        """Abandon the session without delivering a transcript."""
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._transition(SessionStatus.ENDED)

        logger.info("Session cancelled")
        try:
            self.teardown()
        finally:
            if self._on_cancel is not None:
                self._on_cancel()

    def teardown(self) -> None:
        """Release every resource in order; each step runs even if an earlier one fails."""
        with self._lock:
            if not self._alive:
                return
            self._alive = False
            timer, self._slow_timer = self._slow_timer, None
            connection, self._connection = self._connection, None

        if timer is not None:
            self._best_effort("cancel connect advisory", timer.cancel)
        if connection is not None:
            self._best_effort("close connection", connection.close)
        self._best_effort("stop capture", self._capture.stop)
        self._best_effort("release capture graph", self._capture.cleanup)
        self._best_effort("close output", self._output.close)
        logger.debug("Session torn down")

    # Establishment -----------------------------------------------------

    def _establish(
        self,
        words: List[str],
        scene: str,
        profile: UserProfile,
        context: str,
    ) -> None:
        logger.info("Requesting microphone access...")
        try:
            self._capture.initialize()
        except CaptureError as exc:
            self._fail(exc)
            return
        except Exception as exc:
            self._fail(self._unexpected("acquiring the microphone", DeviceUnavailable, exc))
            return

        if not self._alive:
            self._best_effort("release late microphone", self._capture.cleanup)
            return

        connection: Optional[LiveConnection] = None
        try:
            instruction = self._instruction_builder(profile, scene, words, context)
            connection = self._connection_factory(instruction)
            connection.open(self)
        except LiveSessionError as exc:
            self._fail(exc)
            return
        except Exception as exc:
            self._fail(self._unexpected("opening the live connection", HandshakeFailure, exc))
            return

        with self._lock:
            late = not self._alive
            if not late:
                self._connection = connection
                self._transition(SessionStatus.CONNECTED)
        if late:
            logger.info("Connection resolved after teardown; closing it")
            self._best_effort("close late connection", connection.close)
            return

        # Teardown may have run while observers handled CONNECTED.
        failure: Optional[LiveSessionError] = None
        with self._lock:
            if not self._alive:
                logger.info("Session torn down before capture started")
                return
            try:
                self._capture.start(connection.send_audio)
            except CaptureError as exc:
                failure = exc
            except Exception as exc:
                failure = self._unexpected("starting capture", DeviceUnavailable, exc)
            else:
                # The partner always greets first.
                connection.send_text("")
        if failure is not None:
            self._fail(failure)

    def _on_slow_connect(self) -> None:
        with self._lock:
            if not self._alive or self._status is not SessionStatus.CONNECTING:
                return
            self._slow_connection = True
            logger.warning("Connection taking longer than expected...")
            self._observer.on_slow_connection()

    # Connection listener -----------------------------------------------

    def on_audio(self, encoded: str) -> None:
        with self._lock:
            if not self._alive:
                return
            try:
                self._scheduler.enqueue(encoded)
            except CaptureError as exc:
                logger.warning("Playback unavailable, dropping chunk: %s", exc)

    def on_input_transcript(self, fragment: str) -> None:
        with self._lock:
            if not self._alive:
                return
            text = self._transcript.add_input(fragment)
            self._set_preview(TranscriptPreview(role="user", text=text))

    def on_output_transcript(self, fragment: str) -> None:
        with self._lock:
            if not self._alive:
                return
            text = self._transcript.add_output(fragment)
            self._set_preview(TranscriptPreview(role="model", text=text))

    def on_turn_complete(self) -> None:
        with self._lock:
            if not self._alive:
                return
            if self._append(self._transcript.turn_complete()):
                self._set_preview(None)

    def on_transport_error(self, error: Exception) -> None:
        self._fail(error)

    def on_closed(self, code: Optional[int], reason: Optional[str]) -> None:
        with self._lock:
            if not self._alive:
                return
            logger.info("Partner closed the session (code=%s)", code)
            self._transition(SessionStatus.ENDED)
        self.teardown()

    # Internals ---------------------------------------------------------

    def _fail(self, error: BaseException) -> None:
        with self._lock:
            if not self._alive:
                logger.debug("Ignoring failure after teardown: %s", error)
                return
            self._last_error = error
            logger.error("Live session failed: %s", error)
            self._transition(SessionStatus.ERROR, describe_failure(error))
        self.teardown()

    def _transition(self, target: SessionStatus, detail: Optional[str] = None) -> bool:
        current = self._status
        if not current.can_transition_to(target):
            logger.debug("Ignoring status change %s -> %s", current.value, target.value)
            return False
        self._status = target
        logger.info("Session status: %s", target.value)
        self._observer.on_status(target, detail)
        return True

    def _append(self, messages: List[ChatMessage]) -> bool:
        if not messages:
            return False
        self._history.extend(messages)
        self._observer.on_history(tuple(self._history))
        return True

    def _set_preview(self, preview: Optional[TranscriptPreview]) -> None:
        if preview == self._preview:
            return
        self._preview = preview
        self._observer.on_preview(preview)

    def _unexpected(
        self,
        step: str,
        error_type: Type[LiveSessionError],
        exc: Exception,
    ) -> LiveSessionError:
        logger.exception("Unexpected error %s", step)
        failure = error_type(str(exc) or type(exc).__name__)
        failure.__cause__ = exc
        return failure

    def _best_effort(self, step: str, action: Callable[[], None]) -> None:
        try:
            action()
        except Exception as exc:
            logger.warning("%s", CleanupError(f"Cleanup step '{step}' failed: {exc}"))


def start_session(
    profile: UserProfile,
    scene_description: str,
    target_words: Sequence[str],
    on_complete: CompletionCallback,
    on_cancel: Optional[Callable[[], None]] = None,
    *,
    config: Optional[AppConfig] = None,
    observer: Optional[SessionObserver] = None,
    context: str = "",
) -> LiveConversationSession:
    """Build a session from the default sounddevice and Gemini collaborators and start it."""
    from .services.capture import SoundDeviceCapture
    from .services.live_connection import GeminiLiveConnection
    from .services.output import SoundDeviceOutput

    config = config or AppConfig.from_env()

    def connect(instruction: str) -> GeminiLiveConnection:
        return GeminiLiveConnection(
            api_key=config.api_key or "",
            system_instruction=instruction,
            model=config.model,
            voice=config.voice,
            host=config.live_host,
            handshake_timeout=config.handshake_timeout,
        )

    session = LiveConversationSession(
        capture=SoundDeviceCapture(block_size=config.capture_block, device_name=config.input_device),
        output=SoundDeviceOutput(device_name=config.output_device),
        connection_factory=connect,
        on_complete=on_complete,
        on_cancel=on_cancel,
        observer=observer,
        slow_connect_seconds=config.slow_connect_seconds,
    )
    session.start(target_words, scene_description, profile, context)
    return session
