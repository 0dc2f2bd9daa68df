"""
Exception types raised by the transcription core.

Shape and integrity errors subclass ``ValueError`` so callers that only care
about bad input can catch them generically.
"""


class TranscriptionError(Exception):
    """Base class for all transcription errors"""
    pass


class ShapeMismatchError(TranscriptionError, ValueError):
    """A probability matrix does not have the expected [frames, pitches] shape"""
    pass


class ProbabilityIntegrityError(TranscriptionError, ValueError):
    """A probability matrix contains NaN or values outside [0, 1]"""
    pass


class FormatConversionError(TranscriptionError):
    """A captured audio chunk could not be converted to 16-bit mono PCM"""
    pass


class ModelInvocationError(TranscriptionError):
    """The acoustic model failed to load or run"""
    pass
