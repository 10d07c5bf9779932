import json
from typing import List, Optional

import numpy as np
import pytest

from vocab_coach.models import SessionStatus
from vocab_coach.session import LiveConversationSession, NullObserver


class FakeCapture:
    def __init__(self, init_error: Optional[Exception] = None, start_error: Optional[Exception] = None):
        self.init_error = init_error
        self.start_error = start_error
        self.calls: List[str] = []
        self.on_frame = None
        self._muted = False

    @property
    def muted(self) -> bool:
        return self._muted

    def initialize(self) -> None:
        self.calls.append("initialize")
        if self.init_error is not None:
            raise self.init_error

    def start(self, on_frame) -> None:
        self.calls.append("start")
        if self.start_error is not None:
            raise self.start_error
        self.on_frame = on_frame

    def set_muted(self, muted: bool) -> None:
        self._muted = muted

    def stop(self) -> None:
        self.calls.append("stop")

    def cleanup(self) -> None:
        self.calls.append("cleanup")
        self.on_frame = None

    def emit(self, frame: str) -> None:
        if self.on_frame is not None and not self._muted:
            self.on_frame(frame)


class FakeOutput:
    sample_rate = 24000

    def __init__(self) -> None:
        self.now = 0.0
        self.scheduled = []
        self.closed = 0

    @property
    def current_time(self) -> float:
        return self.now

    def schedule(self, samples, start_time: float) -> None:
        self.scheduled.append((start_time, np.asarray(samples)))

    def close(self) -> None:
        self.closed += 1


class FakeConnection:
    def __init__(self, open_error: Optional[Exception] = None, on_open=None):
        self.open_error = open_error
        self.on_open = on_open
        self.listener = None
        self.audio: List[str] = []
        self.texts: List[str] = []
        self.close_calls = 0

    def open(self, listener) -> None:
        self.listener = listener
        if self.on_open is not None:
            self.on_open()
        if self.open_error is not None:
            raise self.open_error

    def send_audio(self, encoded: str) -> None:
        self.audio.append(encoded)

    def send_text(self, text: str) -> None:
        self.texts.append(text)

    def close(self) -> None:
        self.close_calls += 1


class RecordingObserver(NullObserver):
    def __init__(self) -> None:
        self.statuses = []
        self.previews = []
        self.histories = []
        self.slow = 0

    def on_status(self, status, detail) -> None:
        self.statuses.append((status, detail))

    def on_slow_connection(self) -> None:
        self.slow += 1

    def on_preview(self, preview) -> None:
        self.previews.append(preview)

    def on_history(self, history) -> None:
        self.histories.append(list(history))

    @property
    def status_values(self) -> List[SessionStatus]:
        return [status for status, _ in self.statuses]


class ManualTimer:
    instances: List["ManualTimer"] = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        ManualTimer.instances.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


class SessionHarness:
    def __init__(self, connection: Optional[FakeConnection] = None, capture=None, **options):
        self.capture = capture or FakeCapture()
        self.output = FakeOutput()
        self.connection = connection or FakeConnection()
        self.observer = RecordingObserver()
        self.completed: List[list] = []
        self.cancelled = 0
        self.instructions: List[str] = []
        self.timers: List[ManualTimer] = []

        def factory(instruction: str) -> FakeConnection:
            self.instructions.append(instruction)
            return self.connection

        def timer_factory(interval, function):
            timer = ManualTimer(interval, function)
            self.timers.append(timer)
            return timer

        self.session = LiveConversationSession(
            capture=self.capture,
            output=self.output,
            connection_factory=factory,
            on_complete=self.completed.append,
            on_cancel=self._on_cancel,
            observer=self.observer,
            spawn=lambda target: target(),
            timer_factory=timer_factory,
            **options,
        )

    def _on_cancel(self) -> None:
        self.cancelled += 1


@pytest.fixture
def harness():
    return SessionHarness()


def server_frame(**content) -> str:
    return json.dumps({"serverContent": content})


class FakePortAudioError(Exception):
    pass


class FakeStream:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.started = False
        self.stopped = False
        self.aborted = False
        self.closed = False

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def abort(self):
        self.aborted = True

    def close(self):
        self.closed = True


class FakeSoundDevice:
    """Minimal stand-in for the sounddevice module."""

    PortAudioError = FakePortAudioError

    def __init__(self, devices=None, supported_rates=(16000,), check_error=None):
        if devices is None:
            devices = [
                {"name": "Built-in Microphone", "max_input_channels": 1, "max_output_channels": 0,
                 "default_samplerate": 48000.0},
                {"name": "Built-in Speakers", "max_input_channels": 0, "max_output_channels": 2,
                 "default_samplerate": 48000.0},
            ]
        self.devices = devices
        self.supported_rates = supported_rates
        self.check_error = check_error
        self.streams = []

    def query_devices(self, device=None, kind=None):
        if kind is None:
            return list(self.devices)
        key = "max_input_channels" if kind == "input" else "max_output_channels"
        for entry in self.devices:
            if entry.get(key, 0) > 0:
                return entry
        raise FakePortAudioError("Error querying device -1")

    def check_input_settings(self, device=None, channels=None, dtype=None, samplerate=None):
        if self.check_error is not None:
            raise self.check_error
        if samplerate not in self.supported_rates:
            raise FakePortAudioError("Invalid sample rate")

    def InputStream(self, **kwargs):
        stream = FakeStream(**kwargs)
        self.streams.append(stream)
        return stream

    def OutputStream(self, **kwargs):
        stream = FakeStream(**kwargs)
        self.streams.append(stream)
        return stream
