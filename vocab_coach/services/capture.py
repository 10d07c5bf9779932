"""Microphone capture backed by sounddevice, emitting 16 kHz transport frames."""

from __future__ import annotations

import logging
from typing import Optional

from ..codec import INPUT_SAMPLE_RATE, encode_capture_block, resample_linear
from ..interfaces import AudioCapture, FrameCallback
from .audio_device import classify_device_error, lazy_import_sounddevice, list_devices, select_device

logger = logging.getLogger(__name__)


class SoundDeviceCapture(AudioCapture):
    """
    Streams the microphone in fixed-size blocks and hands each block on as
    base64 16-bit PCM at 16 kHz.

    If the device cannot run at 16 kHz it is opened at its native rate with a
    proportionally larger block, and every block is resampled before encoding,
    so one callback always yields one frame of ``block_size`` samples.

    Args:
        block_size: Samples per emitted frame at the target rate.
        target_rate: Rate frames are encoded at (Hz).
        device_name: Optional input device name substring.
        echo_cancellation: Request echo cancellation where the backend has it.
        noise_suppression: Request noise suppression where the backend has it.
        auto_gain_control: Request automatic gain control where the backend has it.

    Usage:
        capture = SoundDeviceCapture()
        capture.initialize()
        capture.start(connection.send_audio)
        ...
        capture.stop()
        capture.cleanup()
    """

    def __init__(
        self,
        *,
        block_size: int = 4096,
        target_rate: int = INPUT_SAMPLE_RATE,
        device_name: Optional[str] = None,
        echo_cancellation: bool = True,
        noise_suppression: bool = True,
        auto_gain_control: bool = True,
    ) -> None:
        self.block_size = block_size
        self.target_rate = target_rate
        self.device_name = device_name
        self.processing = {
            "echo_cancellation": echo_cancellation,
            "noise_suppression": noise_suppression,
            "auto_gain_control": auto_gain_control,
        }
        self._sd = None
        self._device_index: Optional[int] = None
        self._device_rate: Optional[int] = None
        self._stream = None
        self._on_frame: Optional[FrameCallback] = None
        self._muted = False

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def initialized(self) -> bool:
        return self._sd is not None

    @property
    def device_rate(self) -> Optional[int]:
        return self._device_rate

    def initialize(self) -> None:
        if self._sd is not None:
            return
        sd = lazy_import_sounddevice()
        try:
            candidates = list_devices(sd, kind="input")
            device = select_device(candidates, self.device_name)
            info = device if device is not None else sd.query_devices(kind="input")
            device_index = device["index"] if device is not None else None
            try:
                sd.check_input_settings(
                    device=device_index,
                    channels=1,
                    dtype="float32",
                    samplerate=self.target_rate,
                )
                device_rate = self.target_rate
            except sd.PortAudioError:
                device_rate = int(info.get("default_samplerate") or self.target_rate)
                sd.check_input_settings(
                    device=device_index,
                    channels=1,
                    dtype="float32",
                    samplerate=device_rate,
                )
        except sd.PortAudioError as exc:
            raise classify_device_error(exc) from exc
        except ValueError as exc:
            # sounddevice raises ValueError when there is no default input device.
            raise classify_device_error(exc) from exc

        requested = [name for name, enabled in self.processing.items() if enabled]
        if requested:
            logger.debug("Input processing requested (%s); PortAudio applies none of it", ", ".join(requested))

        self._sd = sd
        self._device_index = device_index
        self._device_rate = device_rate
        logger.info(
            "Microphone ready: %s at %d Hz",
            info.get("name", "default input"),
            device_rate,
        )

    def start(self, on_frame: FrameCallback) -> None:
        if self._stream is not None:
            return
        self.initialize()
        sd = self._sd
        device_rate = self._device_rate or self.target_rate
        blocksize = int(round(self.block_size * device_rate / self.target_rate))
        self._on_frame = on_frame
        try:
            stream = sd.InputStream(
                samplerate=device_rate,
                channels=1,
                dtype="float32",
                blocksize=blocksize,
                device=self._device_index,
                callback=self._callback,
            )
            stream.start()
        except sd.PortAudioError as exc:
            self._on_frame = None
            raise classify_device_error(exc) from exc
        self._stream = stream
        logger.info("Capture started (%d-frame blocks at %d Hz)", blocksize, device_rate)

    def set_muted(self, muted: bool) -> None:
        self._muted = bool(muted)
        logger.info("Microphone %s", "muted" if self._muted else "live")

    def stop(self) -> None:
        stream = self._stream
        if stream is None:
            return
        stream.stop()

    def cleanup(self) -> None:
        self._on_frame = None
        stream, self._stream = self._stream, None
        self._sd = None
        self._device_index = None
        self._device_rate = None
        if stream is not None:
            stream.close()
            logger.debug("Capture stream closed")

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug("Capture status: %s", status)
        on_frame = self._on_frame
        if self._muted or on_frame is None:
            return
        try:
            block = indata[:, 0]
            if self._device_rate and self._device_rate != self.target_rate:
                block = resample_linear(block, self._device_rate, self.target_rate)
            on_frame(encode_capture_block(block))
        except Exception as exc:
            logger.warning("Dropping capture frame: %s", exc)
