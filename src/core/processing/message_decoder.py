"""
Decoding of inbound WebSocket frames.

Every frame is turned into a typed value (``SensorReading``, ``DeviceText``,
a command) or rejected with ``DecodeError``; nothing downstream ever sees the
raw payload. Frames with a ``type`` the relay does not handle decode to None.
"""
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Union

from core.models.command import Command, MAX_VIBRATION_LEVEL, command_from_message
from core.models.sensor_data import SensorReading

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """Raised when a frame is not valid JSON or does not match the expected shape."""


@dataclass(frozen=True)
class DeviceText:
    """Free-form text sent by the device (status lines, acknowledgements)."""
    content: str


DeviceMessage = Union[SensorReading, DeviceText]


def _parse_object(text: Optional[str]) -> dict:
    if text is None:
        raise DecodeError("Empty frame")
    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError, oversized integer literals and runaway nesting
        raise DecodeError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _number(data: dict, key: str) -> float:
    value: Any = data.get(key)
    # Missing or null fields default to 0
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"Field {key!r} must be a number, got {value!r}")
    try:
        number = float(value)
    except OverflowError as e:
        raise DecodeError(f"Field {key!r} is out of range") from e
    if not math.isfinite(number):
        raise DecodeError(f"Field {key!r} must be a finite number")
    return number


def decode_sensor_reading(data: dict) -> SensorReading:
    level = _number(data, "vibrationLevel")
    return SensorReading(
        heart_rate=max(0.0, _number(data, "heartRate")),
        temperature=_number(data, "temperature"),
        vibration_level=max(0, min(MAX_VIBRATION_LEVEL, int(round(level)))),
    )


def decode_device_message(text: Optional[str]) -> Optional[DeviceMessage]:
    """Decode a frame received on the device connection."""
    data = _parse_object(text)
    msg_type = data.get("type")

    if msg_type == "sensorData":
        return decode_sensor_reading(data)

    if msg_type == "message":
        content = data.get("content")
        if not isinstance(content, str):
            raise DecodeError("Field 'content' must be a string")
        return DeviceText(content=content)

    logger.debug(f"Ignoring device message of type {msg_type!r}")
    return None


def decode_viewer_message(text: Optional[str]) -> Optional[Command]:
    """Decode a frame received on a viewer connection."""
    data = _parse_object(text)
    msg_type = data.get("type")

    if msg_type == "command":
        try:
            return command_from_message(data)
        except ValueError as e:
            raise DecodeError(str(e)) from e

    logger.debug(f"Ignoring viewer message of type {msg_type!r}")
    return None
