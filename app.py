from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from backend import RoomRegistry
from connections import ConnectionManager
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, STATIC_DIR
from logging_config import get_logger, setup_logging
from relay import SignalingRelay
from routers.pages import pages_router
from schemas.events import Envelope

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Build the app with its own registry, transport and relay.

    All room state hangs off ``app.state``; two apps never share rooms.
    """
    app = FastAPI(title="Knights Meet")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    registry = RoomRegistry()
    transport = ConnectionManager()
    relay = SignalingRelay(registry, transport)
    app.state.registry = registry
    app.state.transport = transport
    app.state.relay = relay

    app.include_router(pages_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Signaling socket. Frames are JSON ``{"event": ..., "data": ...}``."""
        connection_id = await transport.connect(websocket)
        relay.on_connect(connection_id)
        message_count = 0
        try:
            while True:
                try:
                    message = await websocket.receive()
                    if message["type"] == "websocket.disconnect":
                        raise WebSocketDisconnect(message.get("code", 1000))

                    data = message.get("text")
                    if data is None:
                        logger.warning(f"Dropping binary frame from connection {connection_id}")
                        continue
                    message_count += 1
                    logger.debug(f"Received message #{message_count} from connection {connection_id}")

                    try:
                        envelope = Envelope.model_validate_json(data)
                    except ValidationError:
                        logger.warning(f"Dropping malformed frame from connection {connection_id}")
                        continue

                    relay.dispatch(connection_id, envelope.event, envelope.data)

                except WebSocketDisconnect:
                    logger.info(f"WebSocket disconnected normally for connection {connection_id}")
                    break
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
        finally:
            relay.on_disconnect(connection_id)
            await transport.disconnect(connection_id)
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")

    # Mounted last so "/" and "/ws" win over the catch-all static mount
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True, check_dir=False), name="static")

    logger.info("FastAPI application initialized")
    return app


app = create_app()
