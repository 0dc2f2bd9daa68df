"""
Conversion of captured audio chunks to the model's PCM format.

Hardware delivers chunks at its own rate, channel count and sample format.
The window buffer only ever sees 16-bit signed mono samples at the target
rate; this module produces them.
"""

from math import gcd
from typing import Optional

import numpy as np
from scipy.signal import resample_poly

from live_transcriber.errors import FormatConversionError

INT16_MAX = np.iinfo(np.int16).max
INT16_MIN = np.iinfo(np.int16).min


class FormatConverter:
    """
    Converts raw chunks to int16 mono at ``target_rate``.

    Parameters
    ----------
    target_rate : int
        Sample rate expected by the model (16 kHz for Onsets and Frames).
    """

    def __init__(self, target_rate: int = 16000) -> None:
        if target_rate <= 0:
            raise ValueError(f"target_rate must be positive, got {target_rate}")
        self.target_rate = target_rate

    def convert(self, chunk, native_rate: Optional[int] = None, channels: int = 1) -> np.ndarray:
        """
        Convert one captured chunk.

        Parameters
        ----------
        chunk : array-like
            int16 PCM or float samples in [-1, 1]. Multi-channel audio is
            either interleaved (1-D) or shaped ``[n, channels]``.
        native_rate : int, optional
            Rate of ``chunk``; ``None`` means it is already at the target rate.
        channels : int
            Channel count of ``chunk``.

        Returns
        -------
        np.ndarray
            int16 mono samples at ``target_rate``.

        Raises
        ------
        FormatConversionError
            If the chunk is empty, non-finite, or its layout does not match
            ``channels``.
        """
        try:
            audio = np.asarray(chunk)
        except (TypeError, ValueError) as e:
            raise FormatConversionError(f"Unreadable audio chunk: {e}") from e

        if audio.size == 0:
            raise FormatConversionError("Empty audio chunk")
        if channels < 1:
            raise FormatConversionError(f"Invalid channel count: {channels}")
        if native_rate is not None and native_rate <= 0:
            raise FormatConversionError(f"Invalid sample rate: {native_rate}")
        if not (np.issubdtype(audio.dtype, np.integer) or np.issubdtype(audio.dtype, np.floating)):
            raise FormatConversionError(f"Unsupported sample format: {audio.dtype}")

        samples = self._to_float(audio)
        samples = self._to_mono(samples, channels)

        if not np.isfinite(samples).all():
            raise FormatConversionError("Audio chunk contains non-finite samples")

        # Resample to the target rate (anti-aliased)
        if native_rate is not None and native_rate != self.target_rate:
            g = gcd(native_rate, self.target_rate)
            samples = resample_poly(samples, self.target_rate // g, native_rate // g)

        return self.to_int16(samples)

    @staticmethod
    def _to_float(audio: np.ndarray) -> np.ndarray:
        if np.issubdtype(audio.dtype, np.integer):
            return audio.astype(np.float64) / INT16_MAX
        return audio.astype(np.float64)

    @staticmethod
    def _to_mono(samples: np.ndarray, channels: int) -> np.ndarray:
        if samples.ndim == 2:
            if samples.shape[1] != channels:
                raise FormatConversionError(
                    f"Chunk has {samples.shape[1]} channels, expected {channels}"
                )
            return samples.mean(axis=1)
        if samples.ndim != 1:
            raise FormatConversionError(f"Unsupported chunk shape: {samples.shape}")
        if channels == 1:
            return samples
        if samples.shape[0] % channels != 0:
            raise FormatConversionError(
                f"Interleaved chunk of {samples.shape[0]} samples is not a multiple of {channels} channels"
            )
        return samples.reshape(-1, channels).mean(axis=1)

    @staticmethod
    def to_int16(samples: np.ndarray) -> np.ndarray:
        """Scale float samples in [-1, 1] to int16, clipping overshoot"""
        scaled = np.round(np.asarray(samples, dtype=np.float64) * INT16_MAX)
        return np.clip(scaled, INT16_MIN, INT16_MAX).astype(np.int16)

    @staticmethod
    def to_model_input(window: np.ndarray) -> np.ndarray:
        """Normalise int16 samples to float32 in [-1, 1] for the model"""
        normalised = np.asarray(window, dtype=np.float32) / np.float32(INT16_MAX)
        # -32768 would land just below -1
        return np.clip(normalised, -1.0, 1.0).astype(np.float32)
