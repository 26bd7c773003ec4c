"""
WebSocket transport adapter.

Wraps Starlette WebSockets so the relay only sees the small Connection
protocol, and runs one coroutine per connection feeding frames to the relay
in receipt order.
"""
import logging
from typing import AsyncIterator, Optional

from starlette.websockets import WebSocket, WebSocketState

from core.services.relay import RelayCore

logger = logging.getLogger(__name__)

DEVICE_PATH = "/esp32"
VIEWER_PATH = "/frontend"


class WebSocketConnection:
    """Relay-facing handle for an accepted Starlette WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    async def send_json(self, data: dict) -> None:
        await self.websocket.send_json(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        if self.websocket.application_state != WebSocketState.DISCONNECTED:
            await self.websocket.close(code=code, reason=reason)

    def __repr__(self) -> str:
        client = self.websocket.client
        return f"WebSocketConnection({client.host}:{client.port})" if client else "WebSocketConnection()"


async def iter_frames(websocket: WebSocket) -> AsyncIterator[Optional[str]]:
    """Yield text frames until the peer disconnects. Binary frames are decoded as UTF-8."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            logger.debug(f"WebSocket closed by peer (code {message.get('code')})")
            return
        text = message.get("text")
        if text is None and message.get("bytes") is not None:
            text = message["bytes"].decode("utf-8", errors="replace")
        yield text


async def serve_device(relay: RelayCore, websocket: WebSocket):
    await websocket.accept()
    conn = WebSocketConnection(websocket)
    epoch = None
    try:
        epoch = await relay.register_device(conn)
        async for text in iter_frames(websocket):
            await relay.handle_device_message(epoch, text)
    except Exception as e:
        # Abrupt resets and protocol errors count as a disconnect
        logger.error(f"ESP32 WebSocket error: {e}")
    finally:
        if epoch is None:
            # Interrupted while registering, the slot may already hold this connection
            epoch = relay.epoch_of(conn)
        if epoch is not None:
            await relay.release_device(epoch)


async def serve_viewer(relay: RelayCore, websocket: WebSocket):
    await websocket.accept()
    conn = WebSocketConnection(websocket)
    if not await relay.add_viewer(conn):
        return
    try:
        async for text in iter_frames(websocket):
            await relay.handle_viewer_message(conn, text)
    except Exception as e:
        logger.warning(f"Frontend WebSocket error: {e}")
    finally:
        relay.remove_viewer(conn)
