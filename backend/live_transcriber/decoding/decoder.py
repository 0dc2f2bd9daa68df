"""Select between direct thresholding and Viterbi decoding for one window."""

import logging

import numpy as np

from live_transcriber.config import TranscriberConfig
from live_transcriber.decoding.segmenter import pianoroll_to_note_sequence
from live_transcriber.decoding.viterbi import pianoroll_onsets, probs_to_pianoroll_viterbi
from live_transcriber.inference.model_output import ModelOutput
from live_transcriber.models.note import NoteSequence

logger = logging.getLogger(__name__)


def decode_model_output(output: ModelOutput, config: TranscriberConfig) -> NoteSequence:
    """
    Turn one window's model output into notes.

    With ``use_viterbi_decoding`` the frame/onset probabilities are first
    decoded into a piano-roll, whose rising edges replace the raw onsets.
    Offsets and velocities are always the model's.
    """
    segment_kwargs = dict(
        frames_per_second=config.frames_per_second,
        frame_threshold=config.frame_threshold,
        onset_threshold=config.onset_threshold,
        offset_threshold=config.offset_threshold,
        predict_velocities=config.predict_velocities,
        velocity_scale=config.velocity_scale,
        velocity_bias=config.velocity_bias,
        default_velocity=config.default_velocity,
    )

    if not config.use_viterbi_decoding:
        return pianoroll_to_note_sequence(
            output.frames, output.onsets, output.offsets, output.velocities,
            **segment_kwargs,
        )

    logger.debug("Using Viterbi decoding (alpha=%.2f)", config.viterbi_alpha)
    pianoroll = probs_to_pianoroll_viterbi(output.frames, output.onsets,
                                           alpha=config.viterbi_alpha)
    onsets = pianoroll_onsets(pianoroll)

    return pianoroll_to_note_sequence(
        pianoroll.astype(np.float32), onsets.astype(np.float32),
        output.offsets, output.velocities,
        **segment_kwargs,
    )
