#!/usr/bin/env python3
"""
Transcribe a WAV file through the streaming pipeline.

The file is fed in small chunks, exactly as a microphone callback would, so
the output matches what a live session over the same audio produces.

Usage:
    python -m live_transcriber.cli recording.wav --viterbi --alpha 0.5 --velocities
"""

import argparse
import logging
import sys
from typing import List, Optional

import numpy as np
from scipy.io import wavfile

from live_transcriber.config import OverlapMode, TranscriberConfig
from live_transcriber.inference import load_model
from live_transcriber.logging_setup import setup_logger
from live_transcriber.models.note import NoteSequence
from live_transcriber.pipeline import TranscriptionPipeline

logger = logging.getLogger(__name__)

CHUNK_SECONDS = 0.1


def transcribe_file(path: str, pipeline: TranscriptionPipeline,
                    chunk_seconds: float = CHUNK_SECONDS) -> NoteSequence:
    """Stream ``path`` through ``pipeline`` and collect notes in absolute time"""
    sample_rate, audio = wavfile.read(path)
    channels = 1 if audio.ndim == 1 else audio.shape[1]
    if audio.dtype == np.uint8:
        audio = (audio.astype(np.float64) - 128.0) / 128.0
    elif np.issubdtype(audio.dtype, np.integer) and audio.dtype != np.int16:
        # 24/32-bit PCM: scale to float in [-1, 1]
        audio = audio.astype(np.float64) / np.iinfo(audio.dtype).max

    chunk_len = max(1, int(sample_rate * chunk_seconds))
    notes = []
    for start in range(0, audio.shape[0], chunk_len):
        window = pipeline.push_chunk(audio[start:start + chunk_len],
                                     native_rate=sample_rate, channels=channels)
        while window is not None:
            notes.extend(pipeline.process_window(window, absolute_times=True))
            window = pipeline.pop_window()

    window = pipeline.flush()
    if window is not None:
        notes.extend(pipeline.process_window(window, absolute_times=True))

    return NoteSequence(notes).sorted_by_onset()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transcribe a WAV file to notes")
    parser.add_argument("audio", help="Path to a WAV file")
    parser.add_argument("--model", default=None, help="Path to onsets_frames_wavinput.tflite")
    parser.add_argument("--viterbi", action="store_true", help="Use Viterbi decoding (wrong-note filter)")
    parser.add_argument("--alpha", type=float, default=None, help="Viterbi onset/frame blend in [0, 1]")
    parser.add_argument("--velocities", action="store_true", help="Predict note velocities")
    parser.add_argument("--overlap-mode", choices=[m.value for m in OverlapMode], default=None,
                        help="How window overlap is handled")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)

    overrides = {}
    if args.model:
        overrides["model_path"] = args.model
    if args.viterbi:
        overrides["use_viterbi_decoding"] = True
    if args.alpha is not None:
        overrides["viterbi_alpha"] = args.alpha
    if args.velocities:
        overrides["predict_velocities"] = True
    if args.overlap_mode:
        overrides["overlap_mode"] = args.overlap_mode
    config = TranscriberConfig.from_env(**overrides)

    pipeline = TranscriptionPipeline(load_model(config), config)
    notes = transcribe_file(args.audio, pipeline)

    print(f"Detected {len(notes)} notes:")
    for note in notes:
        print(f"   {note.name:<4} | MIDI {note.midi_pitch(config.midi_offset):>3} | "
              f"Start: {note.start_time:>6.3f}s | End: {note.end_time:>6.3f}s | "
              f"Velocity: {note.velocity}")
    if pipeline.dropped_chunks or pipeline.failed_windows:
        print(f"Dropped chunks: {pipeline.dropped_chunks}, failed windows: {pipeline.failed_windows}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
