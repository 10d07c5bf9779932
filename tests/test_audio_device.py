import pytest

from vocab_coach.exceptions import DeviceNotFound, DeviceUnavailable, PermissionDenied, describe_failure
from vocab_coach.services.audio_device import classify_device_error, list_devices, select_device

from conftest import FakePortAudioError, FakeSoundDevice

MICS = [
    {"name": "Built-in Microphone", "index": 0},
    {"name": "USB Headset", "index": 3},
]


def test_no_preference_means_system_default():
    assert select_device(MICS) is None


def test_preference_matches_substring_case_insensitively():
    assert select_device(MICS, "headset")["index"] == 3


def test_missing_preference_raises():
    with pytest.raises(DeviceNotFound, match="Zoom"):
        select_device(MICS, "Zoom")


def test_empty_device_list_raises():
    with pytest.raises(DeviceNotFound):
        select_device([], None)


def test_list_devices_filters_by_direction():
    sd = FakeSoundDevice()
    inputs = list_devices(sd, kind="input")
    outputs = list_devices(sd, kind="output")
    assert [d["name"] for d in inputs] == ["Built-in Microphone"]
    assert [d["index"] for d in outputs] == [1]


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Error opening InputStream: Permission denied", PermissionDenied),
        ("Audio device access not authorized", PermissionDenied),
        ("Error querying device -1", DeviceNotFound),
        ("No default input device available", DeviceNotFound),
        ("Invalid device [PaErrorCode -9996]", DeviceNotFound),
        ("Device unavailable [PaErrorCode -9985]", DeviceUnavailable),
        ("Unanticipated host error", DeviceUnavailable),
    ],
)
def test_classify_device_error(message, expected):
    error = classify_device_error(FakePortAudioError(message))
    assert type(error) is expected
    assert str(error) == message


def test_classified_errors_carry_user_messages():
    denied = classify_device_error(FakePortAudioError("Permission denied"))
    missing = classify_device_error(FakePortAudioError("Invalid device"))
    busy = classify_device_error(FakePortAudioError("Host error"))
    messages = {describe_failure(denied), describe_failure(missing), describe_failure(busy)}
    assert len(messages) == 3
