"""
Rolling capture buffer that hands off fixed-size analysis windows.

Each window is ``sample_rate + padding_samples`` samples (17920 at 16 kHz).
After a window is emitted its last ``padding_samples`` samples are kept as the
overlap seed. What happens to that seed depends on the overlap mode:

- ``splice``: the seed opens the next window, so consecutive windows share
  exactly ``padding_samples`` samples and advance by ``sample_rate``.
- ``discard``: the seed is only recorded (``overlap``); windows are disjoint
  blocks of ``buffer_size`` samples.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

import numpy as np

from live_transcriber.config import OverlapMode


@dataclass(frozen=True)
class AnalysisWindow:
    """One fixed-length block of int16 samples handed to the model"""
    samples: np.ndarray  # read-only int16
    index: int           # sequence number, starting at 0
    start_sample: int    # absolute position of samples[0] in the stream
    sample_rate: int

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def start_time(self) -> float:
        return self.start_sample / self.sample_rate

    @property
    def duration(self) -> float:
        return len(self) / self.sample_rate


class SampleWindowBuffer:
    """
    Accumulates converted int16 samples and yields overlapping windows.

    Parameters
    ----------
    sample_rate : int
        Rate of the incoming (already converted) samples.
    padding_samples : int
        Samples of overlap carried from one window into the next.
    overlap_mode : OverlapMode or str
        ``"splice"`` (default) or ``"discard"``.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        padding_samples: int = 1920,
        overlap_mode=OverlapMode.SPLICE,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        if not 0 <= padding_samples <= sample_rate:
            raise ValueError(f"padding_samples must be in [0, sample_rate], got {padding_samples}")

        self.sample_rate = sample_rate
        self.padding_samples = padding_samples
        self.buffer_size = sample_rate + padding_samples
        self.overlap_mode = OverlapMode(overlap_mode)

        self._buffer: np.ndarray = np.array([], dtype=np.int16)
        self._read_pos: int = 0
        self._compacted_offset: int = 0
        self._windows_emitted: int = 0
        self._overlap: Optional[np.ndarray] = None
        self._ready: Deque[AnalysisWindow] = deque()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def hop_samples(self) -> int:
        """Distance between the starts of consecutive windows"""
        if self.overlap_mode is OverlapMode.SPLICE:
            return self.sample_rate
        return self.buffer_size

    def push_chunk(self, samples) -> Optional[AnalysisWindow]:
        """
        Append converted samples to the buffer.

        Returns
        -------
        AnalysisWindow or None
            The oldest complete window not yet handed out. If one chunk
            completes several windows the rest are returned by later calls
            or by ``pop_window()``.
        """
        chunk = np.asarray(samples, dtype=np.int16).ravel()
        if chunk.size:
            self._buffer = np.concatenate([self._buffer, chunk])

        while len(self._buffer) - self._read_pos >= self.buffer_size:
            window = self._buffer[self._read_pos : self._read_pos + self.buffer_size].copy()
            self._emit(window, self._compacted_offset + self._read_pos)
            self._read_pos += self.hop_samples

        self._compact()
        return self.pop_window()

    def pop_window(self) -> Optional[AnalysisWindow]:
        if self._ready:
            return self._ready.popleft()
        return None

    @property
    def pending_windows(self) -> int:
        return len(self._ready)

    def flush(self) -> Optional[AnalysisWindow]:
        """
        Return a zero-padded final window from audio that has not been
        covered by any window yet.

        Useful at the end of a recording so notes near the tail are decoded.
        Returns ``None`` when less than a quarter of a hop of new audio is
        pending. Windows still queued from ``push_chunk`` should be popped
        first; the flushed window is always the last one.
        """
        remaining = len(self._buffer) - self._read_pos
        carried = 0
        if self.overlap_mode is OverlapMode.SPLICE and self._windows_emitted:
            carried = min(self.padding_samples, remaining)
        new_samples = remaining - carried
        if new_samples <= 0 or new_samples < self.hop_samples * 0.25:
            return None

        segment = self._buffer[self._read_pos :]
        window = np.pad(segment, (0, self.buffer_size - remaining), mode="constant")
        self._emit(window.astype(np.int16), self._compacted_offset + self._read_pos)
        self._read_pos = len(self._buffer)
        return self._ready.pop()

    def drop_pending(self) -> int:
        """
        Discard the partially assembled window.

        In splice mode the overlap seed carried from the last emitted window
        is kept and opens the next window, which then continues with whatever
        audio arrives next. Windows already queued are not touched.

        Returns the number of samples discarded.
        """
        remaining = len(self._buffer) - self._read_pos
        carried = 0
        if self.overlap_mode is OverlapMode.SPLICE and self._windows_emitted:
            carried = min(self.padding_samples, remaining)
        discarded = remaining - carried

        # Stream positions skip the discarded samples; the seed precedes the next chunk
        self._compacted_offset += self._read_pos + discarded
        self._buffer = self._buffer[self._read_pos : self._read_pos + carried].copy()
        self._read_pos = 0
        return discarded

    def reset(self) -> None:
        """Clear all internal state between sessions."""
        self._buffer = np.array([], dtype=np.int16)
        self._read_pos = 0
        self._compacted_offset = 0
        self._windows_emitted = 0
        self._overlap = None
        self._ready.clear()

    @property
    def overlap(self) -> Optional[np.ndarray]:
        """Trailing ``padding_samples`` of the last emitted window"""
        return self._overlap

    @property
    def windows_emitted(self) -> int:
        return self._windows_emitted

    @property
    def buffered_samples(self) -> int:
        """Samples waiting for the next window (including any carried overlap)"""
        return len(self._buffer) - self._read_pos

    @property
    def current_offset_s(self) -> float:
        """Return the current read-cursor position in seconds."""
        return (self._compacted_offset + self._read_pos) / self.sample_rate

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _emit(self, samples: np.ndarray, start_sample: int) -> None:
        samples.setflags(write=False)
        self._overlap = samples[self.sample_rate :]
        self._ready.append(AnalysisWindow(
            samples=samples,
            index=self._windows_emitted,
            start_sample=start_sample,
            sample_rate=self.sample_rate,
        ))
        self._windows_emitted += 1

    def _compact(self) -> None:
        # Drop consumed samples so memory stays bounded
        if self._read_pos > self.buffer_size * 4 or self._read_pos >= len(self._buffer):
            consumed = min(self._read_pos, len(self._buffer))
            self._compacted_offset += consumed
            self._buffer = self._buffer[consumed:]
            self._read_pos -= consumed
