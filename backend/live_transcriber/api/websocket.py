"""
WebSocket endpoint streaming raw audio chunks to notes.

Clients send ``audio_chunk`` events with base64 audio; each completed
analysis window is decoded and answered with a ``notes_detected`` event.
Every connection owns its own pipeline; only the (read-only) model is shared.
"""

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Literal, Optional

import numpy as np
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, ValidationError

from live_transcriber.config import TranscriberConfig
from live_transcriber.errors import ModelInvocationError, TranscriptionError
from live_transcriber.inference import load_model
from live_transcriber.inference.base import AcousticModel
from live_transcriber.pipeline import TranscriptionPipeline

logger = logging.getLogger(__name__)

SUPPORTED_DTYPES = {"int16": np.int16, "float32": np.float32}


class AudioEvent(BaseModel):
    type: str  # "audio_chunk", "set_options", "notes_detected", ...
    data: Dict
    timestamp: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, session_id: str, websocket: WebSocket):
        await websocket.accept()
        self.active_connections[session_id] = websocket

    def disconnect(self, session_id: str):
        if session_id in self.active_connections:
            del self.active_connections[session_id]

    async def send_event(self, session_id: str, event: AudioEvent):
        if session_id in self.active_connections:
            ws = self.active_connections[session_id]
            await ws.send_json(event.model_dump())


manager = ConnectionManager()

# Lazy-loaded model shared by all connections
_model: Optional[AcousticModel] = None
_model_factory: Callable[[TranscriberConfig], AcousticModel] = load_model


def set_model_factory(factory: Callable[[TranscriberConfig], AcousticModel]) -> None:
    """Replace how the shared model is built (drops any cached model)"""
    global _model, _model_factory
    _model_factory = factory
    _model = None


def model_loaded() -> bool:
    return _model is not None


def get_model(config: TranscriberConfig) -> AcousticModel:
    global _model
    if _model is None:
        _model = _model_factory(config)
        logger.info("Acoustic model loaded for websocket sessions")
    return _model


class AudioChunk(BaseModel):
    """Payload of an ``audio_chunk`` event"""
    audio: str = Field(..., min_length=1)  # base64 PCM
    sample_rate: Optional[int] = Field(None, gt=0)  # None: already at the model rate
    dtype: Literal["int16", "float32"] = "int16"
    channels: int = Field(1, ge=1)


def decode_audio(chunk: AudioChunk) -> np.ndarray:
    """Decode the base64 audio of an audio_chunk payload"""
    try:
        audio_bytes = base64.b64decode(chunk.audio, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 audio: {e}") from e
    dtype = SUPPORTED_DTYPES[chunk.dtype]
    if len(audio_bytes) % np.dtype(dtype).itemsize != 0:
        raise ValueError(f"Audio payload is not a whole number of {chunk.dtype} samples")
    return np.frombuffer(audio_bytes, dtype=dtype)


async def websocket_endpoint(websocket: WebSocket, session_id: str,
                             config: Optional[TranscriberConfig] = None):
    """WebSocket endpoint for real-time audio streaming and note detection."""
    await manager.connect(session_id, websocket)

    config = config or TranscriberConfig.from_env()
    try:
        model = get_model(config)
    except ModelInvocationError as e:
        logger.error("Session %s: acoustic model unavailable: %s", session_id, e)
        await manager.send_event(session_id, AudioEvent(
            type="error", data={"message": f"Model unavailable: {e}"}, timestamp=_now()))
        manager.disconnect(session_id)
        await websocket.close(code=1011)
        return

    errors = []
    pipeline = TranscriptionPipeline(model, config, on_error=errors.append)

    await manager.send_event(session_id, AudioEvent(
        type="session_started",
        data={"session_id": session_id, "buffer_size": config.buffer_size,
              "sample_rate": config.sample_rate},
        timestamp=_now(),
    ))

    try:
        while True:
            data = await websocket.receive_json()
            try:
                event = AudioEvent(**data)
            except (ValidationError, TypeError) as e:
                await manager.send_event(session_id, AudioEvent(
                    type="error", data={"message": f"Malformed event: {e}"}, timestamp=_now()))
                continue

            if event.type == "audio_chunk":
                # ValidationError is a ValueError
                try:
                    chunk = AudioChunk(**event.data)
                    samples = decode_audio(chunk)
                except ValueError as e:
                    await manager.send_event(session_id, AudioEvent(
                        type="error", data={"message": str(e)}, timestamp=_now()))
                    continue

                window = pipeline.push_chunk(samples, native_rate=chunk.sample_rate,
                                             channels=chunk.channels)
                if errors:
                    message = str(errors[-1])
                    errors.clear()
                    await manager.send_event(session_id, AudioEvent(
                        type="error", data={"message": message}, timestamp=_now()))

                while window is not None:
                    notes = pipeline.process_window(window, absolute_times=True)
                    await manager.send_event(session_id, AudioEvent(
                        type="notes_detected",
                        data={
                            "window_index": window.index,
                            "window_start": window.start_time,
                            "notes": notes.to_dicts(midi_offset=pipeline.config.midi_offset),
                        },
                        timestamp=_now(),
                    ))
                    window = pipeline.pop_window()

            elif event.type == "set_options":
                try:
                    updated = pipeline.update_options(**event.data)
                except (ValueError, ValidationError, TranscriptionError) as e:
                    await manager.send_event(session_id, AudioEvent(
                        type="error", data={"message": str(e)}, timestamp=_now()))
                    continue
                await manager.send_event(session_id, AudioEvent(
                    type="options_updated",
                    data={
                        "predict_velocities": updated.predict_velocities,
                        "use_viterbi_decoding": updated.use_viterbi_decoding,
                        "viterbi_alpha": updated.viterbi_alpha,
                    },
                    timestamp=_now(),
                ))

            else:
                await manager.send_event(session_id, AudioEvent(
                    type="event_received",
                    data={"status": "ignored", "original_type": event.type},
                    timestamp=_now(),
                ))

    except WebSocketDisconnect:
        logger.info("Session %s disconnected", session_id)
        manager.disconnect(session_id)
