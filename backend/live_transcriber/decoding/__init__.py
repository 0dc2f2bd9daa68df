from live_transcriber.decoding.decoder import decode_model_output
from live_transcriber.decoding.segmenter import pianoroll_to_note_sequence, unscale_velocity
from live_transcriber.decoding.viterbi import pianoroll_onsets, probs_to_pianoroll_viterbi

__all__ = [
    "decode_model_output",
    "pianoroll_onsets",
    "pianoroll_to_note_sequence",
    "probs_to_pianoroll_viterbi",
    "unscale_velocity",
]
