import numpy as np
import pytest

pytest.importorskip("ai_edge_litert")

from live_transcriber.errors import ModelInvocationError  # noqa: E402
from live_transcriber.inference import tflite_model  # noqa: E402
from live_transcriber.inference.tflite_model import OnsetsFramesTFLite, sigmoid  # noqa: E402


class FakeInterpreter:
    """Stands in for the LiteRT interpreter; every output is all-zero logits"""

    instances = []

    def __init__(self, model_path, experimental_delegates=None, num_threads=None):
        self.model_path = model_path
        self.experimental_delegates = experimental_delegates
        self.inputs = []
        FakeInterpreter.instances.append(self)

    def allocate_tensors(self):
        pass

    def get_input_details(self):
        return [{"index": 0, "shape": np.array([17920])}]

    def get_output_details(self):
        return [{"index": i} for i in range(1, 5)]

    def set_tensor(self, index, value):
        self.inputs.append(value)

    def invoke(self):
        pass

    def get_tensor(self, index):
        return np.zeros([1, 32, 88], dtype=np.float32)


@pytest.fixture
def fake_interpreter(monkeypatch):
    FakeInterpreter.instances = []
    monkeypatch.setattr(tflite_model, "Interpreter", FakeInterpreter)
    return FakeInterpreter


def test_sigmoid():
    assert sigmoid(np.array([0.0]))[0] == pytest.approx(0.5)
    assert sigmoid(np.array([20.0]))[0] == pytest.approx(1.0)


def test_model_warms_up_and_returns_probabilities(fake_interpreter):
    model = OnsetsFramesTFLite(model_path="model.tflite")

    interpreter = fake_interpreter.instances[0]
    assert len(interpreter.inputs) == 1  # warm-up run
    assert model.input_length == 17920

    output = model.infer(np.zeros(17920, dtype=np.float32))

    assert output.shape == (32, 88)
    assert np.allclose(output.frames, 0.5)
    assert np.allclose(output.onsets, 0.5)
    assert not output.velocities.any()


def test_raw_logits_when_sigmoid_disabled(fake_interpreter):
    model = OnsetsFramesTFLite(model_path="model.tflite", apply_sigmoid=False)

    output = model.infer(np.zeros(17920, dtype=np.float32))

    assert not output.frames.any()


def test_wrong_window_length_is_rejected(fake_interpreter):
    model = OnsetsFramesTFLite(model_path="model.tflite")

    with pytest.raises(ModelInvocationError):
        model.infer(np.zeros(16000, dtype=np.float32))


def test_unavailable_delegate_falls_back_to_cpu(fake_interpreter, monkeypatch):
    def broken_delegate(path):
        raise ValueError(f"cannot load {path}")

    monkeypatch.setattr(tflite_model, "load_delegate", broken_delegate)

    model = OnsetsFramesTFLite(model_path="model.tflite", delegate_path="libdelegate.so")

    assert not model.delegate_used
    assert fake_interpreter.instances[0].experimental_delegates is None


def test_delegate_is_used_when_available(fake_interpreter, monkeypatch):
    monkeypatch.setattr(tflite_model, "load_delegate", lambda path: object())

    model = OnsetsFramesTFLite(model_path="model.tflite", delegate_path="libdelegate.so")

    assert model.delegate_used
    assert len(fake_interpreter.instances[0].experimental_delegates) == 1


def test_missing_model_file_raises(monkeypatch):
    def missing(model_path, **kwargs):
        raise ValueError(f"Could not open '{model_path}'")

    monkeypatch.setattr(tflite_model, "Interpreter", missing)

    with pytest.raises(ModelInvocationError):
        OnsetsFramesTFLite(model_path="missing.tflite")
