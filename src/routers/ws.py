import logging

from fastapi import APIRouter, WebSocket

from core.services.transport import DEVICE_PATH, VIEWER_PATH, serve_device, serve_viewer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket(DEVICE_PATH)
async def device_endpoint(websocket: WebSocket):
    await serve_device(websocket.app.state.relay, websocket)


@router.websocket(VIEWER_PATH)
async def viewer_endpoint(websocket: WebSocket):
    await serve_viewer(websocket.app.state.relay, websocket)


@router.websocket("/{path:path}")
async def unknown_endpoint(websocket: WebSocket, path: str):
    logger.debug(f"Rejecting WebSocket connection on unknown path /{path}")
    await websocket.close()
