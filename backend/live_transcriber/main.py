"""FastAPI app serving live transcription over a websocket."""

import os

from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from live_transcriber import __version__
from live_transcriber.logging_setup import setup_logger

# Load environment variables from .env file
load_dotenv()
setup_logger()

app = FastAPI(title="Live Transcriber API", version=__version__)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("TRANSCRIBER_CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
async def health_check():
    from live_transcriber.api import websocket
    return {
        "status": "healthy",
        "model_loaded": websocket.model_loaded(),
        "active_sessions": len(websocket.manager.active_connections),
    }

@app.websocket("/ws/{session_id}")
async def websocket_route(websocket: WebSocket, session_id: str):
    from live_transcriber.api.websocket import websocket_endpoint
    await websocket_endpoint(websocket, session_id)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("TRANSCRIBER_HOST", "0.0.0.0"),
                port=int(os.getenv("TRANSCRIBER_PORT", "8000")))
