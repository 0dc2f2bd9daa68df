import pytest
from pydantic import ValidationError

from live_transcriber.config import Backpressure, OverlapMode, TranscriberConfig


def test_defaults_match_onsets_and_frames_model():
    config = TranscriberConfig()

    assert config.sample_rate == 16000
    assert config.padding_samples == 1920
    assert config.buffer_size == 17920
    assert config.frame_length_seconds == pytest.approx(1 / 32)
    assert (config.num_frames, config.num_pitches) == (32, 88)
    assert config.overlap_mode is OverlapMode.SPLICE
    assert config.backpressure is Backpressure.DROP
    assert not config.use_viterbi_decoding
    assert not config.predict_velocities
    assert config.viterbi_alpha == 0.5
    assert (config.frame_threshold, config.onset_threshold, config.offset_threshold) == (0.5, 0.5, 0.5)


def test_from_env_reads_prefixed_variables():
    environ = {
        "TRANSCRIBER_USE_VITERBI_DECODING": "true",
        "TRANSCRIBER_VITERBI_ALPHA": "0.7",
        "TRANSCRIBER_OVERLAP_MODE": "discard",
        "TRANSCRIBER_DELEGATE_PATH": "",
        "UNRELATED": "1",
    }

    config = TranscriberConfig.from_env(environ)

    assert config.use_viterbi_decoding is True
    assert config.viterbi_alpha == pytest.approx(0.7)
    assert config.overlap_mode is OverlapMode.DISCARD
    assert config.delegate_path is None


def test_explicit_overrides_win_over_environment():
    config = TranscriberConfig.from_env(
        {"TRANSCRIBER_VITERBI_ALPHA": "0.7"}, viterbi_alpha=0.2
    )

    assert config.viterbi_alpha == pytest.approx(0.2)


def test_from_env_loads_dotenv_file(tmp_path, monkeypatch):
    # Registered with monkeypatch so the variable load_dotenv sets is removed afterwards
    monkeypatch.setenv("TRANSCRIBER_PREDICT_VELOCITIES", "placeholder")
    monkeypatch.delenv("TRANSCRIBER_PREDICT_VELOCITIES")
    env_file = tmp_path / ".env"
    env_file.write_text("TRANSCRIBER_PREDICT_VELOCITIES=1\n")

    config = TranscriberConfig.from_env(dotenv_path=str(env_file))

    assert config.predict_velocities is True


def test_offset_threshold_follows_output_space():
    # Probabilities from the sigmoid: 0.5; raw logits: logit 0
    assert TranscriberConfig(apply_sigmoid=True).offset_threshold == 0.5
    assert TranscriberConfig(apply_sigmoid=False).offset_threshold == 0.0
    assert TranscriberConfig(offset_threshold=0.3).offset_threshold == 0.3


@pytest.mark.parametrize("kwargs", [
    {"viterbi_alpha": 1.5},
    {"velocity_bias": 100},
    {"velocity_scale": -1},
    {"velocity_bias": -5},
    {"frame_threshold": 1.2},
    {"onset_threshold": -0.1},
    {"offset_threshold": 2.0},
    {"viterbi_alpha": -0.1},
    {"padding_samples": 20000},
    {"sample_rate": 0},
    {"overlap_mode": "interleave"},
])
def test_invalid_values_are_rejected(kwargs):
    with pytest.raises(ValidationError):
        TranscriberConfig(**kwargs)
