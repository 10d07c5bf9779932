"""Duplex WebSocket connection to the Gemini Live (BidiGenerateContent) endpoint."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

import websocket

from ..codec import INPUT_MIME_TYPE
from ..exceptions import HandshakeFailure, TransportError
from ..interfaces import ConnectionListener, LiveConnection

logger = logging.getLogger(__name__)

LIVE_PATH = "/ws/google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"


class ServerEventKind(Enum):
    SETUP_COMPLETE = "setup_complete"
    AUDIO = "audio"
    INPUT_TRANSCRIPT = "input_transcript"
    OUTPUT_TRANSCRIPT = "output_transcript"
    TURN_COMPLETE = "turn_complete"
    GO_AWAY = "go_away"


@dataclass(frozen=True)
class ServerEvent:
    kind: ServerEventKind
    data: str = ""


def parse_server_message(payload: Dict[str, Any]) -> List[ServerEvent]:
    """
    Split one server message into events, in dispatch order.

    Accepted shapes (all keys optional, several may share one message):
        {"setupComplete": {}}
        {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"data": "..."}}]},
                           "inputTranscription": {"text": "..."},
                           "outputTranscription": {"text": "..."},
                           "turnComplete": true}}
        {"goAway": {"timeLeft": "..."}}
    """
    events: List[ServerEvent] = []
    if "setupComplete" in payload:
        events.append(ServerEvent(ServerEventKind.SETUP_COMPLETE))

    content = payload.get("serverContent")
    if isinstance(content, dict):
        model_turn = content.get("modelTurn")
        if isinstance(model_turn, dict):
            for part in model_turn.get("parts") or []:
                inline = part.get("inlineData") if isinstance(part, dict) else None
                if isinstance(inline, dict) and inline.get("data"):
                    events.append(ServerEvent(ServerEventKind.AUDIO, inline["data"]))

        for key, kind in (
            ("inputTranscription", ServerEventKind.INPUT_TRANSCRIPT),
            ("outputTranscription", ServerEventKind.OUTPUT_TRANSCRIPT),
        ):
            transcription = content.get(key)
            if isinstance(transcription, dict) and transcription.get("text"):
                events.append(ServerEvent(kind, transcription["text"]))

        if content.get("turnComplete"):
            events.append(ServerEvent(ServerEventKind.TURN_COMPLETE))

    go_away = payload.get("goAway")
    if go_away is not None:
        time_left = go_away.get("timeLeft", "") if isinstance(go_away, dict) else ""
        events.append(ServerEvent(ServerEventKind.GO_AWAY, str(time_left)))
    return events


class GeminiLiveConnection(LiveConnection):
    """
    WebSocket client for the Gemini Live API.

    The socket runs on a daemon thread owned by ``websocket.WebSocketApp``;
    inbound events are handed to the listener from that thread.

    Protocol:
        1. Connect to the BidiGenerateContent endpoint with the API key
        2. Send the setup message (model, voice, system instruction, transcription)
        3. Receive setupComplete; ``open`` returns
        4. Stream realtimeInput audio frames out, serverContent events in
        5. Close from either side

    Usage:
        >>> connection = GeminiLiveConnection(api_key="...", system_instruction="Be brief.")
        >>> connection.open(listener)
        >>> connection.send_text("")
        >>> connection.close()
    """

    def __init__(
        self,
        *,
        api_key: str,
        system_instruction: str,
        model: str = "models/gemini-2.0-flash-exp",
        voice: str = "Kore",
        host: str = "generativelanguage.googleapis.com",
        handshake_timeout: float = 30.0,
        app_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        """
        Initialize the connection (nothing is opened until ``open``).

        Args:
            api_key: Gemini API key, sent as the ``key`` query parameter.
            system_instruction: Roleplay brief sent in the setup message.
            model: Live-capable model name, with or without the ``models/`` prefix.
            voice: Prebuilt voice name.
            host: Endpoint host.
            handshake_timeout: Seconds to wait for setupComplete.
            app_factory: Builds the WebSocketApp; defaults to ``websocket.WebSocketApp``.
        """
        if not api_key:
            raise HandshakeFailure("No API key configured for the live endpoint.")
        self._api_key = api_key
        self._system_instruction = system_instruction
        self._model = model if model.startswith("models/") else f"models/{model}"
        self._voice = voice
        self._host = host.rstrip("/")
        self._handshake_timeout = handshake_timeout
        self._app_factory = app_factory or websocket.WebSocketApp
        self._app: Optional[Any] = None
        self._thread: Optional[threading.Thread] = None
        self._listener: Optional[ConnectionListener] = None
        self._ready = threading.Event()
        self._setup_done = False
        self._closing = False
        self._failure: Optional[BaseException] = None

    @property
    def is_open(self) -> bool:
        return self._app is not None and self._setup_done and not self._closing

    def build_url(self) -> str:
        return f"wss://{self._host}{LIVE_PATH}?key={self._api_key}"

    def build_setup_message(self) -> Dict[str, Any]:
        """Build the BidiGenerateContentSetup message."""
        setup: Dict[str, Any] = {
            "model": self._model,
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self._voice}},
                },
            },
            "inputAudioTranscription": {},
            "outputAudioTranscription": {},
        }
        if self._system_instruction:
            setup["systemInstruction"] = {"parts": [{"text": self._system_instruction}]}
        return {"setup": setup}

    def open(self, listener: ConnectionListener) -> None:
        if self._app is not None:
            raise HandshakeFailure("Connection was already opened.")

        self._listener = listener
        logger.info("Connecting to live endpoint at %s (%s)...", self._host, self._model)
        app = self._app_factory(
            self.build_url(),
            on_open=self._on_open,
            on_message=self._on_message,
            on_error=self._on_error,
            on_close=self._on_close,
        )
        self._app = app
        self._thread = threading.Thread(target=app.run_forever, name="live-connection", daemon=True)
        self._thread.start()

        if not self._ready.wait(self._handshake_timeout):
            self.close()
            raise HandshakeFailure(f"No setup acknowledgement within {self._handshake_timeout:.0f}s")

        if self._failure is not None or not self._setup_done:
            failure = self._failure
            self.close()
            if isinstance(failure, HandshakeFailure):
                raise failure
            raise HandshakeFailure(f"Live endpoint handshake failed: {failure}") from failure

        logger.info("Live session established")

    def send_audio(self, encoded: str) -> None:
        self._send(
            {
                "realtimeInput": {
                    "mediaChunks": [{"mimeType": INPUT_MIME_TYPE, "data": encoded}],
                }
            }
        )

    def send_text(self, text: str) -> None:
        self._send(
            {
                "clientContent": {
                    "turns": [{"role": "user", "parts": [{"text": text}]}],
                    "turnComplete": True,
                }
            }
        )

    def close(self) -> None:
        self._closing = True
        app, self._app = self._app, None
        self._listener = None
        self._ready.set()
        if app is None:
            return
        try:
            app.close()
            logger.info("Closed live connection")
        except Exception as exc:
            logger.warning("Error closing WebSocket: %s", exc)

    def _send(self, message: Dict[str, Any]) -> None:
        app = self._app
        if app is None or not self._setup_done or self._closing:
            logger.debug("Connection not open; dropping %s", next(iter(message)))
            return
        try:
            app.send(json.dumps(message))
        except (websocket.WebSocketException, OSError) as exc:
            logger.debug("Send failed (%s); dropping %s", exc, next(iter(message)))

    def _on_open(self, ws) -> None:
        try:
            ws.send(json.dumps(self.build_setup_message()))
            logger.debug("Sent setup message")
        except (websocket.WebSocketException, OSError) as exc:
            self._fail_handshake(exc)

    def _on_message(self, ws, raw: Union[str, bytes]) -> None:
        try:
            text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
            payload = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Skipping unparseable server frame: %s", exc)
            return
        if not isinstance(payload, dict):
            logger.warning("Skipping non-object server frame")
            return

        for event in parse_server_message(payload):
            if event.kind is ServerEventKind.SETUP_COMPLETE:
                self._setup_done = True
                self._ready.set()
                continue
            if not self._setup_done:
                logger.debug("Ignoring %s before setup completed", event.kind.value)
                continue
            self._dispatch(event)

    def _dispatch(self, event: ServerEvent) -> None:
        listener = self._listener
        if listener is None or self._closing:
            return
        try:
            if event.kind is ServerEventKind.AUDIO:
                listener.on_audio(event.data)
            elif event.kind is ServerEventKind.INPUT_TRANSCRIPT:
                listener.on_input_transcript(event.data)
            elif event.kind is ServerEventKind.OUTPUT_TRANSCRIPT:
                listener.on_output_transcript(event.data)
            elif event.kind is ServerEventKind.TURN_COMPLETE:
                listener.on_turn_complete()
            elif event.kind is ServerEventKind.GO_AWAY:
                logger.warning("Live endpoint will close the session soon (time left: %s)", event.data or "unknown")
        except Exception:
            # WebSocketApp would report a raising callback as a transport error.
            logger.exception("Listener failed handling %s", event.kind.value)

    def _on_error(self, ws, error: Exception) -> None:
        if not self._setup_done:
            self._fail_handshake(error)
            return
        if self._closing:
            logger.debug("Ignoring error after close: %s", error)
            return
        logger.error("Live connection error: %s", error)
        self._notify("on_transport_error", TransportError(str(error) or type(error).__name__))

    def _on_close(self, ws, code: Optional[int], reason: Optional[str]) -> None:
        logger.info("Live connection closed (code=%s, reason=%s)", code, reason or "none")
        if not self._setup_done:
            detail = f"{reason} (code {code})" if reason else f"code {code}"
            self._fail_handshake(HandshakeFailure(f"Live endpoint closed during handshake: {detail}"))
            return
        if self._closing:
            return
        self._notify("on_closed", code, reason)

    def _notify(self, method: str, *args: Any) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            getattr(listener, method)(*args)
        except Exception:
            logger.exception("Listener failed handling %s", method)

    def _fail_handshake(self, error: BaseException) -> None:
        if self._failure is None:
            self._failure = error
        logger.error("Live endpoint handshake failed: %s", error)
        self._ready.set()
