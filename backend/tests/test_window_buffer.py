import numpy as np
import pytest

from conftest import sine_wave
from live_transcriber.audio import SampleWindowBuffer
from live_transcriber.config import OverlapMode


def feed_in_chunks(buffer, signal, chunk_size=1024):
    windows = []
    for i in range(0, len(signal), chunk_size):
        window = buffer.push_chunk(signal[i:i + chunk_size])
        if window is not None:
            windows.append(window)
    return windows


def test_consecutive_windows_share_padding_samples():
    signal = sine_wave(16000 * 4 + 1920)
    buffer = SampleWindowBuffer()

    windows = feed_in_chunks(buffer, signal)

    assert len(windows) == 4
    for window in windows:
        assert len(window) == 17920
        assert window.samples.dtype == np.int16
        np.testing.assert_array_equal(
            window.samples, signal[window.start_sample:window.start_sample + 17920]
        )
    for previous, current in zip(windows, windows[1:]):
        assert current.start_sample - previous.start_sample == 16000
        np.testing.assert_array_equal(previous.samples[-1920:], current.samples[:1920])
    assert [w.index for w in windows] == [0, 1, 2, 3]
    assert windows[1].start_time == pytest.approx(1.0)


def test_no_window_until_buffer_is_full():
    buffer = SampleWindowBuffer()

    assert buffer.push_chunk(np.zeros(17919, dtype=np.int16)) is None
    assert buffer.buffered_samples == 17919

    window = buffer.push_chunk(np.zeros(1, dtype=np.int16))
    assert window is not None
    assert buffer.buffered_samples == 1920
    np.testing.assert_array_equal(buffer.overlap, window.samples[16000:])


def test_emitted_window_is_read_only():
    buffer = SampleWindowBuffer()
    window = buffer.push_chunk(sine_wave(17920))

    with pytest.raises(ValueError):
        window.samples[0] = 1


def test_discard_mode_emits_disjoint_windows():
    signal = sine_wave(17920 * 2)
    buffer = SampleWindowBuffer(overlap_mode="discard")

    first = buffer.push_chunk(signal)
    second = buffer.pop_window()

    assert buffer.overlap_mode is OverlapMode.DISCARD
    assert first.start_sample == 0
    assert second.start_sample == 17920
    np.testing.assert_array_equal(second.samples, signal[17920:])
    # The tail of the last window is still recorded
    np.testing.assert_array_equal(buffer.overlap, signal[-1920:])
    assert buffer.pop_window() is None


def test_large_chunk_queues_every_window():
    buffer = SampleWindowBuffer()

    first = buffer.push_chunk(sine_wave(16000 * 3 + 1920))

    assert first.index == 0
    assert buffer.pending_windows == 2
    assert buffer.pop_window().start_sample == 16000
    assert buffer.pop_window().start_sample == 32000
    assert buffer.pop_window() is None


def test_flush_pads_pending_tail_with_zeros():
    signal = sine_wave(8000)
    buffer = SampleWindowBuffer()
    assert buffer.push_chunk(signal) is None

    window = buffer.flush()

    assert window is not None
    assert len(window) == 17920
    np.testing.assert_array_equal(window.samples[:8000], signal)
    assert not window.samples[8000:].any()
    assert buffer.flush() is None


def test_flush_ignores_a_short_tail():
    buffer = SampleWindowBuffer()
    buffer.push_chunk(sine_wave(100))

    assert buffer.flush() is None


def test_flush_after_window_counts_only_new_samples():
    buffer = SampleWindowBuffer()
    buffer.push_chunk(sine_wave(17920))

    # Only the carried overlap is buffered
    assert buffer.flush() is None

    buffer.push_chunk(sine_wave(5000))
    window = buffer.flush()
    assert window.start_sample == 16000
    assert window.index == 1


def test_drop_pending_keeps_only_the_overlap_seed():
    first = sine_wave(17920)
    buffer = SampleWindowBuffer()
    buffer.push_chunk(first)
    buffer.push_chunk(sine_wave(5000, freq=880.0))

    assert buffer.drop_pending() == 5000
    assert buffer.buffered_samples == 1920

    after = sine_wave(16000, freq=220.0)
    window = buffer.push_chunk(after)

    assert window.index == 1
    assert window.start_sample == 21000
    np.testing.assert_array_equal(window.samples[:1920], first[-1920:])
    np.testing.assert_array_equal(window.samples[1920:], after)


def test_drop_pending_before_first_window_discards_everything():
    buffer = SampleWindowBuffer()
    buffer.push_chunk(sine_wave(10000))

    assert buffer.drop_pending() == 10000
    assert buffer.buffered_samples == 0
    assert buffer.flush() is None


def test_reset_clears_state():
    buffer = SampleWindowBuffer()
    buffer.push_chunk(sine_wave(16000 * 3 + 1920))

    buffer.reset()

    assert buffer.pending_windows == 0
    assert buffer.windows_emitted == 0
    assert buffer.buffered_samples == 0
    assert buffer.overlap is None
    assert buffer.current_offset_s == 0.0
    window = buffer.push_chunk(sine_wave(17920))
    assert window.index == 0
    assert window.start_sample == 0


def test_padding_larger_than_a_second_is_rejected():
    with pytest.raises(ValueError):
        SampleWindowBuffer(sample_rate=16000, padding_samples=16001)
