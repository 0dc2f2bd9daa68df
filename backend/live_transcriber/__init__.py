"""
Live audio-to-note transcription.

Mono audio is cut into overlapping 17920-sample windows, run through an
Onsets and Frames acoustic model and decoded (directly or with Viterbi) into
notes ready for a MIDI emitter.
"""

from live_transcriber.audio import AnalysisWindow, FormatConverter, SampleWindowBuffer
from live_transcriber.config import Backpressure, OverlapMode, TranscriberConfig
from live_transcriber.decoding import (
    decode_model_output,
    pianoroll_onsets,
    pianoroll_to_note_sequence,
    probs_to_pianoroll_viterbi,
    unscale_velocity,
)
from live_transcriber.errors import (
    FormatConversionError,
    ModelInvocationError,
    ProbabilityIntegrityError,
    ShapeMismatchError,
    TranscriptionError,
)
from live_transcriber.inference import AcousticModel, ModelOutput
from live_transcriber.models import Note, NoteSequence
from live_transcriber.pipeline import TranscriptionPipeline
from live_transcriber.streaming import StreamingTranscriber, WindowResult

__version__ = "0.1.0"
