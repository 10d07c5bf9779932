"""Gapless scheduling of received model audio."""

from __future__ import annotations

import logging
from typing import Optional

from .codec import int16_to_float_samples, transport_text_to_bytes
from .exceptions import DecodeError
from .interfaces import AudioOutput

logger = logging.getLogger(__name__)


class PlaybackScheduler:
    """
    Schedules audio chunks back to back against the output's audio clock.

    Each chunk starts at ``max(clock_now, next_start_time)``: never before
    the previous chunk ends, and immediately when it arrives after the
    previous chunk already finished. Chunks are scheduled in arrival order;
    out-of-order delivery is not corrected.

    Usage:
        scheduler = PlaybackScheduler(SoundDeviceOutput())
        scheduler.enqueue(encoded_chunk)
    """

    def __init__(self, output: AudioOutput) -> None:
        self._output = output
        self.next_start_time = 0.0

    @property
    def output(self) -> AudioOutput:
        return self._output

    def reset(self) -> None:
        self.next_start_time = 0.0

    def enqueue(self, encoded_chunk: str) -> Optional[float]:
        """
        Decode and schedule one chunk.

        Returns:
            The audio-clock time the chunk starts at, or None when the chunk
            was empty or could not be decoded.
        """
        try:
            samples = int16_to_float_samples(transport_text_to_bytes(encoded_chunk))
        except DecodeError as exc:
            logger.warning("Dropping undecodable audio chunk: %s", exc)
            return None

        if samples.size == 0:
            return None

        start_time = max(self._output.current_time, self.next_start_time)
        self._output.schedule(samples, start_time)
        self.next_start_time = start_time + samples.size / self._output.sample_rate
        logger.debug(
            "Scheduled %d samples at %.3fs (next %.3fs)",
            samples.size,
            start_time,
            self.next_start_time,
        )
        return start_time
