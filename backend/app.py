import logging
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

import config
from ws import Hub

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _frame_text(message: dict) -> str:
    text = message.get("text")
    if text is not None:
        return text
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


def create_app(hub: Hub = None) -> FastAPI:
    """Build the service with its own hub; every app starts with no channels."""
    app = FastAPI(title="Project Realtime Hub", version="0.1.0")
    app.add_middleware(CORSMiddleware, allow_origins=config.CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
    app.state.hub = hub or Hub()

    @app.get("/health")
    async def health():
        h: Hub = app.state.hub
        return {
            "status": "healthy",
            "service": "project-realtime-hub",
            "connections": h.connection_count,
            "channels": {str(pid): n for pid, n in h.channel_sizes().items()},
        }

    @app.websocket("/ws")
    async def ws_endpoint(ws: WebSocket):
        h: Hub = ws.app.state.hub
        peer = await h.connect(ws)
        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
                h.handle(peer, _frame_text(message))
        except Exception:
            logger.exception("WebSocket receive loop failed")
        finally:
            h.disconnect(peer)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
