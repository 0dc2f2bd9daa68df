"""
Viterbi decoding of frame and onset probabilities into a binary piano-roll.

Each pitch column is an independent two-state chain (0 = inactive,
1 = active). Frame evidence is charged per state, onset evidence per
transition; ``alpha`` blends the two. The search is vectorised across
pitches and loops over time only.

Based on Magenta's ``probs_to_pianoroll_viterbi``:
https://github.com/magenta/magenta/blob/52828dc160781f422e670d414406ffe91c30066b/magenta/models/onsets_frames_transcription/infer_util.py#L28
"""

import numpy as np

from live_transcriber.errors import ShapeMismatchError
from live_transcriber.inference.model_output import check_probabilities


def _weighted_neg_log(probs: np.ndarray, weight: float) -> np.ndarray:
    # A zero weight must not turn -log(0) = inf into 0 * inf = nan
    if weight == 0.0:
        return np.zeros_like(probs)
    with np.errstate(divide='ignore'):
        return weight * -np.log(probs)


def _state_probs(probs: np.ndarray) -> np.ndarray:
    """[T, P] -> [T, P, 2] with P(inactive) and P(active) on the last axis"""
    probs = probs[:, :, np.newaxis]
    return np.concatenate([1 - probs, probs], axis=2)


def probs_to_pianoroll_viterbi(frame_probs, onset_probs, alpha: float = 0.5) -> np.ndarray:
    """
    Viterbi decoding of frame & onset probabilities to a piano-roll.

    Args:
        frame_probs: [T, P] frame probabilities
        onset_probs: [T, P] onset probabilities
        alpha: Relative weight of onset and frame loss, in [0, 1]

    Returns:
        [T, P] boolean piano-roll

    Transition costs into step ``i``, indexed [previous state, new state]:

        0 -> 0, 1 -> 0, 1 -> 1: inactive onset loss at ``i``
        0 -> 1:                 active onset loss at ``i``

    Holding a note pays the same onset cost as staying silent; only the
    0 -> 1 step pays the active onset loss. Ties go to the inactive state.
    """
    if not 0.0 <= alpha <= 1.0:
        raise ValueError(f"alpha must be in [0, 1], got {alpha}")

    frame_probs = np.asarray(frame_probs, dtype=np.float64)
    onset_probs = np.asarray(onset_probs, dtype=np.float64)
    if frame_probs.ndim != 2 or frame_probs.shape != onset_probs.shape:
        raise ShapeMismatchError(
            f"frame and onset probabilities must be matching 2-D arrays, "
            f"got {frame_probs.shape} and {onset_probs.shape}"
        )
    check_probabilities("frames", frame_probs)
    check_probabilities("onsets", onset_probs)

    n, d = onset_probs.shape
    if n == 0:
        return np.zeros([0, d], dtype=bool)

    loss_matrix = np.zeros([n, d, 2], dtype=np.float64)
    path_matrix = np.zeros([n, d, 2], dtype=np.int64)

    frame_losses = _weighted_neg_log(_state_probs(frame_probs), 1 - alpha)
    onset_losses = _weighted_neg_log(_state_probs(onset_probs), alpha)

    pitches = np.arange(d)

    loss_matrix[0, :, :] = frame_losses[0, :, :] + onset_losses[0, :, :]

    for i in range(1, n):
        # [pitch, previous state, new state]
        transition_losses = np.tile(loss_matrix[i - 1, :, :][:, :, np.newaxis], [1, 1, 2])

        transition_losses[:, 0, 0] += onset_losses[i, :, 0]
        transition_losses[:, 0, 1] += onset_losses[i, :, 1]
        transition_losses[:, 1, 0] += onset_losses[i, :, 0]
        transition_losses[:, 1, 1] += onset_losses[i, :, 0]

        # np.argmin returns the first minimum, so ties resolve to state 0
        path_matrix[i, :, :] = np.argmin(transition_losses, axis=1)

        loss_matrix[i, :, 0] = transition_losses[pitches, path_matrix[i, :, 0], 0]
        loss_matrix[i, :, 1] = transition_losses[pitches, path_matrix[i, :, 1], 1]

        loss_matrix[i, :, :] += frame_losses[i, :, :]

    states = np.zeros([n, d], dtype=np.int64)
    states[n - 1, :] = np.argmin(loss_matrix[n - 1, :, :], axis=-1)
    for i in range(n - 2, -1, -1):
        states[i, :] = path_matrix[i + 1, pitches, states[i + 1, :]]

    return states.astype(bool)


def pianoroll_onsets(pianoroll) -> np.ndarray:
    """
    Rising edges of a boolean piano-roll.

    A cell is an onset when it is active and the previous frame was not; an
    active first frame always counts as an onset.
    """
    pianoroll = np.asarray(pianoroll, dtype=bool)
    if pianoroll.ndim != 2:
        raise ShapeMismatchError(f"piano-roll must be 2-D, got shape {pianoroll.shape}")

    onsets = np.zeros_like(pianoroll)
    if pianoroll.shape[0] == 0:
        return onsets
    onsets[0, :] = pianoroll[0, :]
    onsets[1:, :] = np.logical_and(pianoroll[1:, :], np.logical_not(pianoroll[:-1, :]))
    return onsets
