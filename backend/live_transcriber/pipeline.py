"""
Owned capture + decode pipeline.

One ``TranscriptionPipeline`` holds everything a single audio stream needs:
format conversion, the window buffer, the acoustic model and the decoding
options. There is no module-level capture state, so several streams can run
side by side, each with its own pipeline.
"""

import logging
from typing import Callable, Optional

from live_transcriber.audio.format_converter import FormatConverter
from live_transcriber.audio.window_buffer import AnalysisWindow, SampleWindowBuffer
from live_transcriber.config import TranscriberConfig
from live_transcriber.decoding.decoder import decode_model_output
from live_transcriber.errors import FormatConversionError, TranscriptionError
from live_transcriber.inference.base import AcousticModel
from live_transcriber.inference.model_output import ModelOutput
from live_transcriber.models.note import NoteSequence

logger = logging.getLogger(__name__)

# Decoding options that may change between windows without touching capture state
LIVE_OPTIONS = frozenset({
    "predict_velocities",
    "use_viterbi_decoding",
    "viterbi_alpha",
    "frame_threshold",
    "onset_threshold",
    "offset_threshold",
    "velocity_scale",
    "velocity_bias",
    "default_velocity",
})


class TranscriptionPipeline:
    """
    Raw audio chunks in, note sequences out.

    Args:
        model: Acoustic model backend
        config: Pipeline configuration (defaults if omitted)
        on_error: Called with the exception whenever a chunk is dropped
    """

    def __init__(
        self,
        model: AcousticModel,
        config: Optional[TranscriberConfig] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.model = model
        self.config = config or TranscriberConfig()
        self.on_error = on_error

        self.converter = FormatConverter(target_rate=self.config.sample_rate)
        self.buffer = SampleWindowBuffer(
            sample_rate=self.config.sample_rate,
            padding_samples=self.config.padding_samples,
            overlap_mode=self.config.overlap_mode,
        )

        self.dropped_chunks = 0
        self.failed_windows = 0

    # ------------------------------------------------------------------
    # Capture side
    # ------------------------------------------------------------------

    def push_chunk(self, chunk, native_rate: Optional[int] = None,
                   channels: int = 1) -> Optional[AnalysisWindow]:
        """
        Convert and buffer one captured chunk.

        Returns the next complete window, or ``None``. A chunk that cannot be
        converted is dropped (logged, counted, reported to ``on_error``)
        together with the partial window it belonged to; capture carries on
        with the next chunk.
        """
        try:
            samples = self.converter.convert(chunk, native_rate=native_rate, channels=channels)
        except FormatConversionError as e:
            self.dropped_chunks += 1
            # The window being assembled now has a gap; only the overlap seed survives
            discarded = self.buffer.drop_pending()
            logger.error("Dropping audio chunk (%d buffered samples discarded): %s", discarded, e)
            if self.on_error is not None:
                self.on_error(e)
            return None
        return self.buffer.push_chunk(samples)

    def pop_window(self) -> Optional[AnalysisWindow]:
        return self.buffer.pop_window()

    def flush(self) -> Optional[AnalysisWindow]:
        return self.buffer.flush()

    def reset(self) -> None:
        self.buffer.reset()

    # ------------------------------------------------------------------
    # Decode side
    # ------------------------------------------------------------------

    def infer(self, window: AnalysisWindow) -> Optional[ModelOutput]:
        """Run the model on ``window``; ``None`` if the model failed"""
        audio = self.converter.to_model_input(window.samples)
        try:
            output = self.model.infer(audio)
            output.validate((self.config.num_frames, self.config.num_pitches))
            return output
        except (TranscriptionError, ValueError, RuntimeError) as e:
            self.failed_windows += 1
            logger.error("Model inference failed for window %d: %s", window.index, e)
            return None

    def process_window(self, window: AnalysisWindow, absolute_times: bool = False) -> NoteSequence:
        """
        Infer and decode one window.

        Note times are relative to the window start unless ``absolute_times``
        is set. Model failures yield an empty sequence, never partial notes.
        """
        output = self.infer(window)
        if output is None:
            return NoteSequence()

        try:
            notes = decode_model_output(output, self.config)
        except (TranscriptionError, ValueError) as e:
            self.failed_windows += 1
            logger.error("Decoding failed for window %d: %s", window.index, e)
            return NoteSequence()
        logger.debug("Window %d: %d notes", window.index, len(notes))
        if absolute_times:
            return notes.shifted(window.start_time)
        return notes

    def transcribe_chunk(self, chunk, native_rate: Optional[int] = None, channels: int = 1,
                         absolute_times: bool = False) -> NoteSequence:
        """Push a chunk and decode the window it completes, if any"""
        window = self.push_chunk(chunk, native_rate=native_rate, channels=channels)
        if window is None:
            return NoteSequence()
        return self.process_window(window, absolute_times=absolute_times)

    def update_options(self, **options) -> TranscriberConfig:
        """
        Change decoding options between windows (e.g. ``predict_velocities``,
        ``use_viterbi_decoding``, ``viterbi_alpha``). Values are validated.
        """
        unknown = set(options) - LIVE_OPTIONS
        if unknown:
            raise ValueError(f"Options cannot be changed while streaming: {sorted(unknown)}")
        data = self.config.model_dump()
        data.update(options)
        self.config = TranscriberConfig(**data)
        return self.config
