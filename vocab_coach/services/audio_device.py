"""Shared sounddevice helpers."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..exceptions import DeviceNotFound, DeviceUnavailable, PermissionDenied

_PERMISSION_MARKERS = ("permission", "not permitted", "denied", "not authorized", "-9986")
_MISSING_MARKERS = (
    "no default input",
    "invalid device",
    "querying device -1",
    "-9996",
)


def lazy_import_sounddevice():
    try:
        import sounddevice as sd  # type: ignore
    except (ImportError, OSError) as exc:  # pragma: no cover - runtime dependency
        # OSError: the package is installed but the PortAudio library is missing.
        raise DeviceUnavailable(
            "sounddevice (and the PortAudio library) is required for audio I/O. Install via pip."
        ) from exc
    return sd


def list_devices(sd, *, kind: str) -> List[Dict[str, Any]]:
    """Return devices with at least one channel in the requested direction."""
    key = "max_input_channels" if kind == "input" else "max_output_channels"
    devices = []
    for index, device in enumerate(sd.query_devices()):
        if device.get(key, 0) > 0:
            entry = dict(device)
            entry.setdefault("index", index)
            devices.append(entry)
    return devices


def select_device(
    candidates: List[Dict[str, Any]],
    prefer_name: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Pick a device by case-insensitive name substring.

    Returns None when no preference is given, meaning "use the system default".

    Raises:
        DeviceNotFound: If there are no candidates, or none matches the preference.
    """
    if not candidates:
        raise DeviceNotFound("No audio devices found.")
    if not prefer_name:
        return None
    needle = prefer_name.lower()
    for device in candidates:
        if needle in str(device.get("name", "")).lower():
            return device
    raise DeviceNotFound(f"No audio device matching '{prefer_name}'.")


def classify_device_error(exc: BaseException) -> Exception:
    """Map a PortAudio failure onto the capture error taxonomy."""
    message = str(exc)
    lowered = message.lower()
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return PermissionDenied(message)
    if any(marker in lowered for marker in _MISSING_MARKERS):
        return DeviceNotFound(message)
    return DeviceUnavailable(message)
