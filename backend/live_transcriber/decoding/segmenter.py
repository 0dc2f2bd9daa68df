"""
Piano-roll to note sequence conversion.

A single forward scan over time: a pitch opens on a confirmed onset, closes
when its frame goes inactive, and is re-triggered by a fresh onset edge while
still sounding. One all-zero frame is appended so every open note is closed
before the scan ends.

Based on note_seq's ``pianoroll_to_note_sequence``:
https://github.com/magenta/note-seq/blob/55e4432a6686cec84b392c2290d4c2a1d040675c/note_seq/sequences_lib.py#L1950
"""

from typing import Dict

import numpy as np

from live_transcriber.errors import ProbabilityIntegrityError, ShapeMismatchError
from live_transcriber.inference.model_output import check_probabilities
from live_transcriber.models.note import Note, NoteSequence

MAX_MIDI_PITCH = 127


def unscale_velocity(velocity: float, scale: int = 80, bias: int = 10) -> int:
    """
    Map a raw model velocity to a MIDI velocity.

    The value is clamped to [0, 1] first, so the result always lies in
    ``[bias, bias + scale]``. Arithmetic is float32, matching the model's
    output precision, and the result is truncated.
    """
    clamped = np.float32(max(min(np.float32(velocity), np.float32(1.0)), np.float32(0.0)))
    unscaled = clamped * np.float32(scale) + np.float32(bias)
    return int(unscaled)


def _threshold_and_pad(values: np.ndarray, threshold: float) -> np.ndarray:
    predicted = values > threshold
    sentinel = np.zeros([1, values.shape[1]], dtype=bool)
    return np.concatenate([predicted, sentinel], axis=0)


def pianoroll_to_note_sequence(
    frames,
    onsets,
    offsets,
    velocities,
    frames_per_second: int = 32,
    frame_threshold: float = 0.5,
    onset_threshold: float = 0.5,
    offset_threshold: float = 0.0,
    predict_velocities: bool = False,
    velocity_scale: int = 80,
    velocity_bias: int = 10,
    default_velocity: int = 60,
) -> NoteSequence:
    """
    Convert frame/onset/offset/velocity matrices to a NoteSequence.

    Args:
        frames: [T, P] frame probabilities (or a 0/1 piano-roll)
        onsets: [T, P] onset probabilities (or 0/1 onset edges)
        offsets: [T, P] offset probabilities
        velocities: [T, P] raw velocity predictions
        frames_per_second: Frame rate of the matrices
        frame_threshold: A frame is active when strictly above this
        onset_threshold: An onset fires when strictly above this
        offset_threshold: An offset fires when strictly above this
        predict_velocities: Use ``velocities``; otherwise ``default_velocity``
        velocity_scale: Velocity scale (see ``unscale_velocity``)
        velocity_bias: Velocity bias (see ``unscale_velocity``)
        default_velocity: Velocity when not predicting

    Returns:
        NoteSequence in the order notes close (time-ascending per pitch).
        Note times are relative to the first frame.
    """
    frames = np.asarray(frames, dtype=np.float32)
    onsets = np.asarray(onsets, dtype=np.float32)
    offsets = np.asarray(offsets, dtype=np.float32)
    velocities = np.asarray(velocities, dtype=np.float32)

    if frames.ndim != 2:
        raise ShapeMismatchError(f"frames must be 2-D, got shape {frames.shape}")
    for name, matrix in (("onsets", onsets), ("offsets", offsets), ("velocities", velocities)):
        if matrix.shape != frames.shape:
            raise ShapeMismatchError(
                f"{name} has shape {matrix.shape}, expected {frames.shape}"
            )
    if frames.shape[1] > MAX_MIDI_PITCH + 1:
        raise ShapeMismatchError(f"too many pitches: {frames.shape[1]}")

    check_probabilities("frames", frames)
    check_probabilities("onsets", onsets)
    check_probabilities("offsets", offsets)
    if predict_velocities and np.isnan(velocities).any():
        raise ProbabilityIntegrityError("velocities contains NaN")

    frame_length_seconds = 1.0 / frames_per_second

    frame_predictions = _threshold_and_pad(frames, frame_threshold)
    onset_predictions = _threshold_and_pad(onsets, onset_threshold)
    offset_predictions = _threshold_and_pad(offsets, offset_threshold)

    # Ensure that any frame with an onset prediction is considered active.
    active = np.logical_or(frame_predictions, onset_predictions)
    # If the frame and offset are both on, then turn it off.
    active[np.logical_and(frame_predictions, offset_predictions)] = False

    sequence = NoteSequence()
    pitch_start_step: Dict[int, int] = {}
    onset_velocities = [0] * (MAX_MIDI_PITCH + 1)

    def record_velocity(pitch: int, frame_index: int) -> None:
        if predict_velocities:
            onset_velocities[pitch] = unscale_velocity(
                velocities[frame_index, pitch], scale=velocity_scale, bias=velocity_bias
            )
        else:
            onset_velocities[pitch] = default_velocity

    def end_pitch(pitch: int, end_frame: int) -> None:
        start_frame = pitch_start_step.pop(pitch, None)
        if start_frame is None:
            return
        sequence.append(Note(
            pitch=pitch,
            start_time=start_frame * frame_length_seconds,
            end_time=end_frame * frame_length_seconds,
            velocity=onset_velocities[pitch],
        ))

    def process_active_pitch(pitch: int, frame_index: int) -> None:
        if pitch not in pitch_start_step:
            if onset_predictions[frame_index, pitch]:
                pitch_start_step[pitch] = frame_index
                record_velocity(pitch, frame_index)
            # Frame activity without an onset never starts a note
        elif (onset_predictions[frame_index, pitch]
              and not onset_predictions[frame_index - 1, pitch]):
            # Already sounding, but a new onset edge: end the note and start another
            end_pitch(pitch, frame_index)
            pitch_start_step[pitch] = frame_index
            record_velocity(pitch, frame_index)

    for frame_index, frame in enumerate(active):
        for pitch, is_active in enumerate(frame):
            if is_active:
                process_active_pitch(pitch, frame_index)
            else:
                end_pitch(pitch, frame_index)

    return sequence
