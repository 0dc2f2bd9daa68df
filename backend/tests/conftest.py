import threading

import numpy as np
import pytest

from live_transcriber.config import TranscriberConfig
from live_transcriber.errors import ModelInvocationError
from live_transcriber.inference.base import AcousticModel
from live_transcriber.inference.model_output import NUM_FRAMES, NUM_PITCHES, ModelOutput

# Pitch index 39 is middle C (MIDI 60)
MIDDLE_C = 39


def empty_matrix() -> np.ndarray:
    return np.zeros([NUM_FRAMES, NUM_PITCHES], dtype=np.float32)


def single_note_output(pitch: int = MIDDLE_C, start: int = 4, end: int = 10) -> ModelOutput:
    """Model output holding one note sounding on frames [start, end)"""
    frames, onsets = empty_matrix(), empty_matrix()
    frames[start:end, pitch] = 0.9
    onsets[start, pitch] = 0.9
    velocities = empty_matrix()
    velocities[start, pitch] = 0.5
    return ModelOutput(frames=frames, onsets=onsets, offsets=empty_matrix(), velocities=velocities)


def sine_wave(num_samples: int, freq: float = 440.0, sample_rate: int = 16000,
              amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(num_samples) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t) * 32767).astype(np.int16)


class FakeModel(AcousticModel):
    """Returns the same output for every window and records its inputs"""

    def __init__(self, output: ModelOutput = None):
        self.output = output if output is not None else single_note_output()
        self.windows = []

    def infer(self, window):
        self.windows.append(np.array(window))
        return self.output


class FailingModel(AcousticModel):
    def infer(self, window):
        raise ModelInvocationError("interpreter exploded")


class BlockingModel(FakeModel):
    """Blocks inside infer() until released, to keep the decoder busy"""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def infer(self, window):
        self.started.set()
        self.release.wait(timeout=5.0)
        return super().infer(window)


@pytest.fixture
def config():
    return TranscriberConfig()


@pytest.fixture
def fake_model():
    return FakeModel()
