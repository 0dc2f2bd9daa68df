"""Interface the pipeline uses to run an acoustic model."""

from abc import ABC, abstractmethod

import numpy as np

from live_transcriber.inference.model_output import NUM_FRAMES, NUM_PITCHES, ModelOutput


class AcousticModel(ABC):
    """Maps one analysis window to frame/onset/offset/velocity matrices"""

    num_frames: int = NUM_FRAMES
    num_pitches: int = NUM_PITCHES

    @abstractmethod
    def infer(self, window: np.ndarray) -> ModelOutput:
        """
        Run the model on a single window.

        Args:
            window: float32 samples in [-1, 1], exactly one window long

        Returns:
            ModelOutput with [num_frames, num_pitches] matrices
        """
