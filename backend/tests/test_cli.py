import pytest
from scipy.io import wavfile

from conftest import FakeModel, sine_wave
from live_transcriber import cli
from live_transcriber.pipeline import TranscriptionPipeline


@pytest.fixture
def wav_path(tmp_path):
    path = tmp_path / "two_windows.wav"
    wavfile.write(str(path), 16000, sine_wave(16000 * 2 + 1920))
    return str(path)


def test_transcribe_file_collects_absolute_times(wav_path):
    notes = cli.transcribe_file(wav_path, TranscriptionPipeline(FakeModel()))

    assert [n.start_time for n in notes] == pytest.approx([4 / 32, 1 + 4 / 32])
    assert all(n.name == "C4" for n in notes)


def test_main_prints_detected_notes(wav_path, monkeypatch, capsys):
    monkeypatch.setattr(cli, "load_model", lambda config: FakeModel())

    exit_code = cli.main([wav_path, "--viterbi", "--velocities"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Detected 2 notes:" in out
    assert "MIDI  60" in out
    assert "Velocity: 50" in out


def test_parser_rejects_unknown_overlap_mode():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["a.wav", "--overlap-mode", "interleave"])
