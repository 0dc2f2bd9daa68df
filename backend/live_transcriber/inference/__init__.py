from live_transcriber.inference.base import AcousticModel
from live_transcriber.inference.model_output import (
    NUM_FRAMES,
    NUM_PITCHES,
    ModelOutput,
    as_matrix,
    check_probabilities,
)


def load_model(config):
    """Build the TFLite backend described by ``config`` (imported lazily)"""
    from live_transcriber.inference.tflite_model import OnsetsFramesTFLite
    return OnsetsFramesTFLite(
        model_path=config.model_path,
        delegate_path=config.delegate_path,
        apply_sigmoid=config.apply_sigmoid,
    )


__all__ = ["AcousticModel", "NUM_FRAMES", "NUM_PITCHES", "ModelOutput",
           "as_matrix", "check_probabilities", "load_model"]
