import numpy as np
import pytest

from vocab_coach.codec import pcm16_to_transport_text
from vocab_coach.playback import PlaybackScheduler

from conftest import FakeOutput


def _chunk(samples: int) -> str:
    return pcm16_to_transport_text(np.zeros(samples, dtype="<i2").tobytes())


def test_chunks_never_overlap():
    output = FakeOutput()
    scheduler = PlaybackScheduler(output)
    sizes = [2400, 4800, 1200, 24000]
    starts = []
    for index, size in enumerate(sizes):
        output.now = index * 0.01
        starts.append(scheduler.enqueue(_chunk(size)))

    for i in range(len(sizes) - 1):
        assert starts[i + 1] >= starts[i] + sizes[i] / 24000 - 1e-9


def test_late_chunk_starts_at_clock_time():
    output = FakeOutput()
    scheduler = PlaybackScheduler(output)
    first = scheduler.enqueue(_chunk(2400))
    assert first == 0.0
    output.now = 0.5
    assert scheduler.enqueue(_chunk(2400)) == 0.5
    assert scheduler.next_start_time == pytest.approx(0.6)


def test_early_chunk_queues_behind_previous():
    output = FakeOutput()
    scheduler = PlaybackScheduler(output)
    scheduler.enqueue(_chunk(24000))
    output.now = 0.25
    assert scheduler.enqueue(_chunk(2400)) == pytest.approx(1.0)


def test_undecodable_chunk_is_dropped_and_later_chunks_play():
    output = FakeOutput()
    scheduler = PlaybackScheduler(output)
    assert scheduler.enqueue("%%%") is None
    assert scheduler.enqueue(pcm16_to_transport_text(b"\x00\x01\x02")) is None
    assert scheduler.next_start_time == 0.0
    assert scheduler.enqueue(_chunk(240)) == 0.0
    assert len(output.scheduled) == 1


def test_empty_chunk_is_ignored():
    output = FakeOutput()
    scheduler = PlaybackScheduler(output)
    assert scheduler.enqueue("") is None
    assert output.scheduled == []


def test_scheduled_samples_are_decoded_floats():
    output = FakeOutput()
    scheduler = PlaybackScheduler(output)
    scheduler.enqueue(pcm16_to_transport_text(np.array([16384, -32768], dtype="<i2").tobytes()))
    _, samples = output.scheduled[0]
    assert samples.tolist() == [0.5, -1.0]


def test_reset_rewinds_cursor():
    output = FakeOutput()
    scheduler = PlaybackScheduler(output)
    scheduler.enqueue(_chunk(2400))
    scheduler.reset()
    assert scheduler.next_start_time == 0.0
