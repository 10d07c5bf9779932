import numpy as np
import pytest

from vocab_coach.codec import transport_text_to_bytes
from vocab_coach.exceptions import DeviceNotFound, DeviceUnavailable, PermissionDenied
from vocab_coach.services import capture as capture_module
from vocab_coach.services.capture import SoundDeviceCapture

from conftest import FakePortAudioError, FakeSoundDevice


@pytest.fixture
def fake_sd(monkeypatch):
    sd = FakeSoundDevice()
    monkeypatch.setattr(capture_module, "lazy_import_sounddevice", lambda: sd)
    return sd


def _use(monkeypatch, sd):
    monkeypatch.setattr(capture_module, "lazy_import_sounddevice", lambda: sd)


def test_opens_at_target_rate_when_supported(fake_sd):
    capture = SoundDeviceCapture()
    capture.initialize()
    capture.start(lambda frame: None)

    stream = fake_sd.streams[0]
    assert stream.started
    assert stream.kwargs["samplerate"] == 16000
    assert stream.kwargs["blocksize"] == 4096
    assert stream.kwargs["channels"] == 1


def test_resamples_when_device_rate_differs(monkeypatch):
    sd = FakeSoundDevice(supported_rates=(48000,))
    _use(monkeypatch, sd)
    frames = []
    capture = SoundDeviceCapture()
    capture.start(frames.append)

    stream = sd.streams[0]
    assert capture.device_rate == 48000
    assert stream.kwargs["blocksize"] == 12288

    block = np.full((12288, 1), 0.5, dtype=np.float32)
    stream.kwargs["callback"](block, 12288, None, None)
    pcm = np.frombuffer(transport_text_to_bytes(frames[0]), dtype="<i2")
    assert pcm.size == 4096
    assert np.all(pcm == 16383)


def test_each_block_becomes_one_frame(fake_sd):
    frames = []
    capture = SoundDeviceCapture()
    capture.start(frames.append)
    callback = fake_sd.streams[0].kwargs["callback"]
    for value in (0.1, 0.2):
        callback(np.full((4096, 1), value, dtype=np.float32), 4096, None, None)
    assert len(frames) == 2
    assert len(transport_text_to_bytes(frames[0])) == 8192


def test_muted_blocks_are_dropped(fake_sd):
    frames = []
    capture = SoundDeviceCapture()
    capture.start(frames.append)
    callback = fake_sd.streams[0].kwargs["callback"]

    capture.set_muted(True)
    callback(np.zeros((4096, 1), dtype=np.float32), 4096, None, None)
    assert frames == []
    assert fake_sd.streams[0].started

    capture.set_muted(False)
    callback(np.zeros((4096, 1), dtype=np.float32), 4096, None, None)
    assert len(frames) == 1


def test_frame_failures_are_absorbed(fake_sd):
    def failing(frame):
        raise OSError("socket closed")

    capture = SoundDeviceCapture()
    capture.start(failing)
    fake_sd.streams[0].kwargs["callback"](np.zeros((4096, 1), dtype=np.float32), 4096, None, None)


def test_permission_errors_are_classified(monkeypatch):
    _use(monkeypatch, FakeSoundDevice(check_error=FakePortAudioError("Error opening InputStream: Permission denied")))
    with pytest.raises(PermissionDenied):
        SoundDeviceCapture().initialize()


def test_driver_errors_are_device_unavailable(monkeypatch):
    _use(monkeypatch, FakeSoundDevice(check_error=FakePortAudioError("Unanticipated host error [PaErrorCode -9999]")))
    with pytest.raises(DeviceUnavailable):
        SoundDeviceCapture().initialize()


def test_no_input_devices(monkeypatch):
    _use(monkeypatch, FakeSoundDevice(devices=[]))
    with pytest.raises(DeviceNotFound):
        SoundDeviceCapture().initialize()


def test_unknown_preferred_device(fake_sd):
    with pytest.raises(DeviceNotFound):
        SoundDeviceCapture(device_name="Zoom H2").initialize()


def test_preferred_device_is_used(fake_sd):
    capture = SoundDeviceCapture(device_name="built-in mic")
    capture.start(lambda frame: None)
    assert fake_sd.streams[0].kwargs["device"] == 0


def test_initialize_is_idempotent(fake_sd):
    capture = SoundDeviceCapture()
    capture.initialize()
    fake_sd.devices = []
    capture.initialize()
    assert capture.initialized


def test_stop_and_cleanup_tolerate_never_started():
    capture = SoundDeviceCapture()
    capture.stop()
    capture.cleanup()
    capture.cleanup()


def test_stop_then_cleanup_releases_stream(fake_sd):
    capture = SoundDeviceCapture()
    capture.start(lambda frame: None)
    stream = fake_sd.streams[0]
    capture.stop()
    capture.cleanup()
    capture.stop()
    assert stream.stopped and stream.closed
    assert not capture.initialized
