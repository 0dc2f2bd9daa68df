"""
Fixed-shape containers for the acoustic model's four output matrices.

Every matrix is a float32 ``[num_frames, num_pitches]`` array (32 x 88 for the
Onsets and Frames model). A leading batch dimension of size 1 is accepted and
squeezed, since that is what the TFLite interpreter returns.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from live_transcriber.errors import ProbabilityIntegrityError, ShapeMismatchError

NUM_FRAMES = 32
NUM_PITCHES = 88


def as_matrix(name: str, values, shape: Tuple[int, int] = (NUM_FRAMES, NUM_PITCHES)) -> np.ndarray:
    """
    Coerce ``values`` to a float32 matrix of exactly ``shape``.

    Flat arrays of the right size are reshaped (row-major); anything else of
    the wrong size raises ``ShapeMismatchError``.
    """
    matrix = np.asarray(values, dtype=np.float32)

    if matrix.ndim == 3 and matrix.shape[0] == 1:
        matrix = matrix[0]
    elif matrix.ndim == 1 and matrix.size == shape[0] * shape[1]:
        matrix = matrix.reshape(shape)

    if matrix.shape != tuple(shape):
        raise ShapeMismatchError(
            f"{name} has shape {matrix.shape}, expected {tuple(shape)}"
        )
    return matrix


def check_probabilities(name: str, matrix: np.ndarray) -> np.ndarray:
    """Raise if ``matrix`` holds NaN or values outside [0, 1]"""
    if np.isnan(matrix).any():
        raise ProbabilityIntegrityError(f"{name} contains NaN")
    if matrix.size and (matrix.min() < 0.0 or matrix.max() > 1.0):
        raise ProbabilityIntegrityError(
            f"{name} has values outside [0, 1] "
            f"(min={float(matrix.min()):.4f}, max={float(matrix.max()):.4f})"
        )
    return matrix


@dataclass(frozen=True)
class ModelOutput:
    """Per-window model predictions (time x pitch)"""
    frames: np.ndarray
    onsets: np.ndarray
    offsets: np.ndarray
    velocities: np.ndarray

    @classmethod
    def from_arrays(cls, frames, onsets, offsets, velocities,
                    shape: Tuple[int, int] = (NUM_FRAMES, NUM_PITCHES)) -> "ModelOutput":
        """Build and validate a ModelOutput from raw (possibly batched) arrays"""
        output = cls(
            frames=as_matrix("frames", frames, shape),
            onsets=as_matrix("onsets", onsets, shape),
            offsets=as_matrix("offsets", offsets, shape),
            velocities=as_matrix("velocities", velocities, shape),
        )
        output.validate()
        return output

    @property
    def shape(self) -> Tuple[int, int]:
        return self.frames.shape

    def validate(self, shape: Optional[Tuple[int, int]] = None) -> None:
        """
        Check shapes and probability ranges.

        All four matrices must share one 2-D shape, ``shape`` when given.
        """
        expected = tuple(shape) if shape is not None else self.frames.shape
        for name in ("frames", "onsets", "offsets", "velocities"):
            matrix = getattr(self, name)
            if matrix.ndim != 2 or matrix.shape != expected:
                raise ShapeMismatchError(
                    f"{name} has shape {matrix.shape}, expected {expected}"
                )

        check_probabilities("frames", self.frames)
        check_probabilities("onsets", self.onsets)
        check_probabilities("offsets", self.offsets)
        # Velocity is clamped later, only NaN is fatal here
        if np.isnan(self.velocities).any():
            raise ProbabilityIntegrityError("velocities contains NaN")
