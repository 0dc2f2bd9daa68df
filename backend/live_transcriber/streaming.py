"""
Real-time streaming transcription.

The capture callback (producer) converts chunks and cuts windows in strict
order. Complete windows go through a single-slot queue to one processing
thread (consumer) that runs the model and the decoder, so at most one window
is in flight. When the slot is still occupied the new window is either dropped
(default, keeps capture real-time) or capture blocks until the slot frees up.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from live_transcriber.audio.window_buffer import AnalysisWindow
from live_transcriber.config import Backpressure
from live_transcriber.models.note import NoteSequence
from live_transcriber.pipeline import TranscriptionPipeline

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class WindowResult:
    """Notes decoded from one analysis window"""
    index: int
    start_time: float  # seconds from stream start
    notes: NoteSequence  # times relative to start_time


class StreamingTranscriber:
    """
    Runs a ``TranscriptionPipeline`` on a background processing thread.

    Args:
        pipeline: Pipeline owning capture state and the model
        on_notes: Called on the processing thread with each WindowResult
        backpressure: Override of ``pipeline.config.backpressure``
    """

    def __init__(
        self,
        pipeline: TranscriptionPipeline,
        on_notes: Optional[Callable[[WindowResult], None]] = None,
        backpressure: Optional[Backpressure] = None,
    ):
        self.pipeline = pipeline
        self.on_notes = on_notes
        self.backpressure = Backpressure(backpressure or pipeline.config.backpressure)

        # Single-slot channel between capture and decode
        self._slot: "queue.Queue" = queue.Queue(maxsize=1)
        self._thread: Optional[threading.Thread] = None
        self._running = False

        self.windows_processed = 0
        self.dropped_windows = 0

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._processing_loop,
                                        name="transcriber-decode", daemon=True)
        self._thread.start()
        logger.info("Streaming transcription started (backpressure=%s)", self.backpressure.value)

    def stop(self, flush: bool = False, timeout: Optional[float] = 5.0) -> None:
        """
        Stop the processing thread.

        With ``flush`` the pending tail of the stream is zero-padded into one
        last window and decoded before the thread exits.
        """
        if not self._running:
            return
        if flush:
            window = self.pipeline.pop_window()
            while window is not None:
                self._slot.put(window)
                window = self.pipeline.pop_window()
            window = self.pipeline.flush()
            if window is not None:
                self._slot.put(window)
        self._slot.put(_STOP)
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        self._running = False
        self._thread = None
        logger.info("Streaming transcription stopped (%d windows decoded, %d dropped)",
                    self.windows_processed, self.dropped_windows)

    @property
    def running(self) -> bool:
        return self._running

    def feed(self, chunk, native_rate: Optional[int] = None, channels: int = 1) -> None:
        """Capture callback: convert a chunk and hand off any window it completes"""
        window = self.pipeline.push_chunk(chunk, native_rate=native_rate, channels=channels)
        while window is not None:
            self._hand_off(window)
            window = self.pipeline.pop_window()

    def _hand_off(self, window: AnalysisWindow) -> None:
        if self.backpressure is Backpressure.BLOCK:
            self._slot.put(window)
            return
        try:
            self._slot.put_nowait(window)
        except queue.Full:
            self.dropped_windows += 1
            logger.warning("Decoder busy, dropping window %d", window.index)

    def _processing_loop(self) -> None:
        while True:
            item = self._slot.get()
            if item is _STOP:
                break
            window: AnalysisWindow = item
            try:
                notes = self.pipeline.process_window(window)
            except Exception:
                # The consumer must keep draining the slot or a blocked producer hangs
                logger.exception("Processing failed for window %d", window.index)
                notes = NoteSequence()
            self.windows_processed += 1
            if self.on_notes is not None:
                try:
                    self.on_notes(WindowResult(index=window.index,
                                               start_time=window.start_time,
                                               notes=notes))
                except Exception:
                    logger.exception("on_notes callback failed for window %d", window.index)

    def __enter__(self) -> "StreamingTranscriber":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop(flush=exc_type is None)
