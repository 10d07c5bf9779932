"""Speaker output backed by a sounddevice stream with a sample-accurate clock."""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional, Tuple

from ..codec import OUTPUT_SAMPLE_RATE
from ..interfaces import AudioOutput
from .audio_device import classify_device_error, lazy_import_sounddevice, list_devices, select_device

logger = logging.getLogger(__name__)


class SoundDeviceOutput(AudioOutput):
    """
    Plays scheduled float buffers through one long-lived output stream.

    The audio clock counts frames handed to the device, so it only moves
    while the stream runs and never depends on wall-clock or network time.
    Segments are mixed into each callback block by frame position.

    Args:
        sample_rate: Output rate (Hz); the live endpoint speaks 24 kHz PCM.
        device_name: Optional output device name substring.
        blocksize: Frames per callback block (0 lets PortAudio choose).

    Usage:
        output = SoundDeviceOutput()
        output.schedule(samples, output.current_time)
        ...
        output.close()
    """

    def __init__(
        self,
        *,
        sample_rate: int = OUTPUT_SAMPLE_RATE,
        device_name: Optional[str] = None,
        blocksize: int = 0,
    ) -> None:
        self.sample_rate = sample_rate
        self.device_name = device_name
        self.blocksize = blocksize
        self._lock = threading.Lock()
        self._segments: List[Tuple[int, Any]] = []
        self._frames_rendered = 0
        self._stream = None
        self._closed = False

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / self.sample_rate

    def schedule(self, samples, start_time: float) -> None:
        import numpy as np

        if self._closed:
            logger.debug("Output closed; ignoring %d samples", len(samples))
            return
        self._ensure_stream()
        start_frame = int(round(start_time * self.sample_rate))
        block = np.asarray(samples, dtype=np.float32)
        with self._lock:
            self._segments.append((start_frame, block))

    def close(self) -> None:
        self._closed = True
        stream, self._stream = self._stream, None
        with self._lock:
            self._segments.clear()
        if stream is None:
            return
        try:
            stream.abort()
        finally:
            stream.close()
        logger.debug("Output stream closed")

    def _ensure_stream(self) -> None:
        if self._stream is not None:
            return
        sd = lazy_import_sounddevice()
        try:
            device = select_device(list_devices(sd, kind="output"), self.device_name)
            stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self.blocksize,
                device=device["index"] if device else None,
                callback=self._callback,
            )
            stream.start()
        except sd.PortAudioError as exc:
            raise classify_device_error(exc) from exc
        self._stream = stream
        logger.info("Output stream opened at %d Hz", self.sample_rate)

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug("Output status: %s", status)
        outdata.fill(0)
        mix = outdata[:, 0]
        with self._lock:
            window_start = self._frames_rendered
            window_end = window_start + frames
            remaining = []
            for start_frame, block in self._segments:
                end_frame = start_frame + block.size
                if end_frame <= window_start:
                    continue
                remaining.append((start_frame, block))
                if start_frame >= window_end:
                    continue
                src_from = max(0, window_start - start_frame)
                src_to = min(block.size, window_end - start_frame)
                dst_from = max(0, start_frame - window_start)
                mix[dst_from:dst_from + (src_to - src_from)] += block[src_from:src_to]
            self._segments = remaining
            self._frames_rendered = window_end
