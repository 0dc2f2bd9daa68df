"""
Onsets and Frames TFLite acoustic model.

Google Magenta's piano transcription model, wav-input variant.

Model: onsets_frames_wavinput.tflite
Source: https://storage.googleapis.com/magentadata/models/onsets_frames_transcription/tflite/onsets_frames_wavinput.tflite

The core pipeline only depends on the ``AcousticModel`` interface; which
backend (CPU interpreter, hardware delegate, a test fake) runs behind it is
decided by whoever builds the pipeline.
"""

import logging
from typing import Optional

import numpy as np

from live_transcriber.errors import ModelInvocationError
from live_transcriber.inference.base import AcousticModel
from live_transcriber.inference.model_output import ModelOutput

# Use new LiteRT API instead of deprecated tf.lite.Interpreter
try:
    from ai_edge_litert.interpreter import Interpreter, load_delegate
except ImportError:
    # Fallback to deprecated tf.lite.Interpreter if ai_edge_litert not installed
    import warnings
    warnings.filterwarnings('ignore', message='.*tf.lite.Interpreter is deprecated.*')
    import tensorflow as tf
    Interpreter = tf.lite.Interpreter
    load_delegate = tf.lite.experimental.load_delegate

logger = logging.getLogger(__name__)


def sigmoid(x: np.ndarray) -> np.ndarray:
    """Apply sigmoid function to convert logits to probabilities"""
    return 1.0 / (1.0 + np.exp(-x))


class OnsetsFramesTFLite(AcousticModel):
    """
    Wrapper for the Onsets and Frames TFLite model.

    Model expects:
    - Input: raw audio waveform (16kHz, mono, float32), one window
    - Output 0: frame logits [1, 32, 88]
    - Output 1: onset logits [1, 32, 88]
    - Output 2: offset logits [1, 32, 88]
    - Output 3: velocity values [1, 32, 88]
    """

    def __init__(
        self,
        model_path: str = "onsets_frames_wavinput.tflite",
        delegate_path: Optional[str] = None,
        apply_sigmoid: bool = True,
        num_threads: Optional[int] = None,
    ):
        """
        Initialize the TFLite interpreter.

        Args:
            model_path: Path to .tflite model file
            delegate_path: Optional hardware delegate library; when it cannot
                be loaded the interpreter runs on the CPU instead
            apply_sigmoid: Convert frame/onset/offset logits to probabilities
            num_threads: CPU threads for the interpreter
        """
        self.model_path = model_path
        self.apply_sigmoid = apply_sigmoid
        self.delegate_used = False

        try:
            self.interpreter = self._create_interpreter(model_path, delegate_path, num_threads)
            self.interpreter.allocate_tensors()
        except (ValueError, RuntimeError, OSError) as e:
            raise ModelInvocationError(f"Failed to load model {model_path}: {e}") from e

        self.input_details = self.interpreter.get_input_details()
        self.output_details = self.interpreter.get_output_details()
        self.input_shape = self.input_details[0]['shape']

        logger.info("Loaded Onsets and Frames TFLite model (input shape %s, %d outputs, %s)",
                    self.input_shape, len(self.output_details),
                    "delegate" if self.delegate_used else "CPU")

        # First invoke is slow; do it at load time instead of on the first window
        self._invoke(np.zeros(self.input_length, dtype=np.float32))

    def _create_interpreter(self, model_path: str, delegate_path: Optional[str],
                            num_threads: Optional[int]):
        if delegate_path:
            try:
                delegate = load_delegate(delegate_path)
                interpreter = Interpreter(model_path=model_path,
                                          experimental_delegates=[delegate],
                                          num_threads=num_threads)
                self.delegate_used = True
                return interpreter
            except (ValueError, RuntimeError, OSError) as e:
                logger.warning("Delegate %s unavailable, using CPU inference: %s",
                               delegate_path, e)
        return Interpreter(model_path=model_path, num_threads=num_threads)

    @property
    def input_length(self) -> int:
        # Input shape is [N] not [batch, N]
        return int(self.input_shape[0] if len(self.input_shape) == 1 else self.input_shape[1])

    def _invoke(self, window: np.ndarray):
        audio = np.asarray(window, dtype=np.float32).reshape(-1)
        if audio.shape[0] != self.input_length:
            raise ModelInvocationError(
                f"Window has {audio.shape[0]} samples, model expects {self.input_length}"
            )

        try:
            self.interpreter.set_tensor(self.input_details[0]['index'], audio)
            self.interpreter.invoke()
            return tuple(
                self.interpreter.get_tensor(self.output_details[i]['index'])
                for i in range(4)
            )
        except (ValueError, RuntimeError, IndexError) as e:
            raise ModelInvocationError(f"Failed to invoke the interpreter: {e}") from e

    def infer(self, window: np.ndarray) -> ModelOutput:
        frame_logits, onset_logits, offset_logits, velocity_values = self._invoke(window)

        if self.apply_sigmoid:
            frames = sigmoid(frame_logits)
            onsets = sigmoid(onset_logits)
            offsets = sigmoid(offset_logits)
        else:
            frames, onsets, offsets = frame_logits, onset_logits, offset_logits

        # Velocities are already scaled
        return ModelOutput.from_arrays(frames, onsets, offsets, velocity_values,
                                       shape=(self.num_frames, self.num_pitches))
