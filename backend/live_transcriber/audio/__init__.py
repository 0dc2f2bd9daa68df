from live_transcriber.audio.format_converter import FormatConverter
from live_transcriber.audio.window_buffer import AnalysisWindow, SampleWindowBuffer

__all__ = ["AnalysisWindow", "FormatConverter", "SampleWindowBuffer"]
