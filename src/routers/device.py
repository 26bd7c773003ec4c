import time

from fastapi import APIRouter, Depends, HTTPException

from core.models.command import DisplayCommand, MassageCommand, VibrateCommand
from core.services.relay import RelayCore
from routers.dependencies import get_relay
from schemas import (
    DisplayRequest,
    DisplayResponse,
    MassageRequest,
    MassageResponse,
    SensorSnapshotModel,
    StatusResponse,
    VibrateRequest,
    VibrateResponse,
)

router = APIRouter(tags=["device"])

DEVICE_NOT_CONNECTED = "ESP32 not connected"

COMMAND_RESPONSES = {
    400: {
        "description": "Invalid command payload.",
        "content": {
            "application/json": {
                "example": {"success": False, "error": "Invalid vibration level. Must be 0 (Off), 1 (Low), 2 (Medium), or 3 (High)"}
            }
        }
    },
    503: {
        "description": "No device is attached to the relay.",
        "content": {
            "application/json": {
                "example": {"success": False, "error": DEVICE_NOT_CONNECTED}
            }
        }
    }
}


async def _deliver(relay: RelayCore, command) -> None:
    if not await relay.send_to_device(command):
        raise HTTPException(status_code=503, detail=DEVICE_NOT_CONNECTED)


@router.get("/status", response_model=StatusResponse)
async def get_status(relay: RelayCore = Depends(get_relay)) -> StatusResponse:
    """
    Report whether the headband is attached, together with the current snapshot
    (simulated while in demo mode).
    """
    return StatusResponse(
        success=True,
        connected=relay.is_device_connected(),
        data=SensorSnapshotModel(**relay.snapshot.to_dict()),
        timestamp=int(time.time() * 1000),
    )


@router.post("/vibrate", response_model=VibrateResponse, responses=COMMAND_RESPONSES)
async def control_vibration(payload: VibrateRequest, relay: RelayCore = Depends(get_relay)) -> VibrateResponse:
    """
    Set the vibration motor level.

    - **level**: 0 (Off), 1 (Low), 2 (Medium) or 3 (High)
    - **duration**: milliseconds, 0 to 60000 (default 1000)
    """
    command = VibrateCommand(level=payload.level, duration=payload.duration)
    await _deliver(relay, command)
    return VibrateResponse(
        success=True,
        message=f"Vibration level set to {command.level}",
        level=command.level,
    )


@router.post("/message", response_model=DisplayResponse, responses=COMMAND_RESPONSES)
async def send_message(payload: DisplayRequest, relay: RelayCore = Depends(get_relay)) -> DisplayResponse:
    """Show a short text (up to 200 characters) on the headband display."""
    command = DisplayCommand(message=payload.message)
    await _deliver(relay, command)
    return DisplayResponse(success=True, message="Message sent to ESP32", sentMessage=command.message)


@router.post("/massage", response_model=MassageResponse, responses=COMMAND_RESPONSES)
async def toggle_massage(payload: MassageRequest, relay: RelayCore = Depends(get_relay)) -> MassageResponse:
    command = MassageCommand(enabled=payload.enabled)
    await _deliver(relay, command)
    return MassageResponse(
        success=True,
        message="Massage mode started" if command.enabled else "Massage mode stopped",
        enabled=command.enabled,
    )
