"""
Runtime configuration for the transcription pipeline.

Defaults match the Onsets and Frames wav-input model: 16 kHz mono audio,
17920-sample windows (1 s + 1920 samples of padding) and 32 x 88 output
matrices at 32 frames per second.

Values can be overridden from the environment (or a ``.env`` file) using the
``TRANSCRIBER_`` prefix, e.g. ``TRANSCRIBER_USE_VITERBI_DECODING=true``.
"""

import os
from enum import Enum
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "TRANSCRIBER_"


class OverlapMode(str, Enum):
    SPLICE = "splice"     # carried-over samples open the next window
    DISCARD = "discard"   # carried-over samples are kept for inspection only


class Backpressure(str, Enum):
    DROP = "drop"     # drop the new window when the decoder is busy
    BLOCK = "block"   # block capture until the decoder takes the window


class TranscriberConfig(BaseModel):
    # Capture / windowing
    sample_rate: int = Field(16000, gt=0)
    padding_samples: int = Field(1920, ge=0)
    overlap_mode: OverlapMode = OverlapMode.SPLICE
    backpressure: Backpressure = Backpressure.DROP

    # Model output geometry
    frames_per_second: int = Field(32, gt=0)
    num_frames: int = Field(32, gt=0)
    num_pitches: int = Field(88, gt=0)

    # Decoding
    predict_velocities: bool = False
    use_viterbi_decoding: bool = False
    viterbi_alpha: float = Field(0.5, ge=0.0, le=1.0)
    frame_threshold: float = Field(0.5, ge=0.0, le=1.0)
    onset_threshold: float = Field(0.5, ge=0.0, le=1.0)
    # None: 0.5 when the backend emits probabilities (apply_sigmoid), else 0.0 (logit 0)
    offset_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    velocity_scale: int = Field(80, ge=0)
    velocity_bias: int = Field(10, ge=0)
    default_velocity: int = Field(60, ge=0, le=127)

    # Acoustic model backend
    model_path: str = "onsets_frames_wavinput.tflite"
    delegate_path: Optional[str] = None
    apply_sigmoid: bool = True

    # Consumer-side mapping from pitch index to MIDI note number (A0 = 21)
    midi_offset: int = 21

    @model_validator(mode="after")
    def _check_consistency(self) -> "TranscriberConfig":
        if self.padding_samples > self.sample_rate:
            raise ValueError("padding_samples must not exceed sample_rate")
        if self.velocity_bias + self.velocity_scale > 127:
            raise ValueError("velocity_bias + velocity_scale must not exceed 127")
        if self.offset_threshold is None:
            self.offset_threshold = 0.5 if self.apply_sigmoid else 0.0
        return self

    @property
    def buffer_size(self) -> int:
        """Samples per analysis window"""
        return self.sample_rate + self.padding_samples

    @property
    def frame_length_seconds(self) -> float:
        return 1.0 / self.frames_per_second

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 dotenv_path: Optional[str] = None, **overrides) -> "TranscriberConfig":
        """
        Build a config from ``TRANSCRIBER_*`` variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            dotenv_path: Optional ``.env`` file loaded before reading the
                environment (only when ``environ`` is not given)
            **overrides: Explicit values that win over the environment
        """
        if environ is None:
            load_dotenv(dotenv_path)
            environ = os.environ

        values: Dict[str, str] = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ and environ[key] != "":
                values[name] = environ[key]
        values.update(overrides)
        return cls(**values)
