"""
Device command models.

Commands are built either by the HTTP control API or from a viewer's
``{"type": "command", ...}`` message, and are forwarded once to the device.
The validators below are shared by both entry points.
"""
from dataclasses import dataclass
from typing import Any, Union

MAX_VIBRATION_LEVEL = 3
MAX_VIBRATION_DURATION_MS = 60000
DEFAULT_VIBRATION_DURATION_MS = 1000
MAX_DISPLAY_LENGTH = 200


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_level(value: Any) -> int:
    if not _is_number(value) or not 0 <= value <= MAX_VIBRATION_LEVEL or value != int(value):
        raise ValueError(
            "Invalid vibration level. Must be 0 (Off), 1 (Low), 2 (Medium), or 3 (High)"
        )
    return int(value)


def validate_duration(value: Any) -> int:
    if value is None:
        return DEFAULT_VIBRATION_DURATION_MS
    if not _is_number(value) or not 0 <= value <= MAX_VIBRATION_DURATION_MS:
        raise ValueError(
            f"Invalid duration. Must be between 0 and {MAX_VIBRATION_DURATION_MS} milliseconds (1 minute)"
        )
    return int(value)


def validate_display_text(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError("Message is required and must be a string")
    if not value.strip():
        raise ValueError("Message cannot be empty")
    if len(value) > MAX_DISPLAY_LENGTH:
        raise ValueError(f"Message too long. Maximum {MAX_DISPLAY_LENGTH} characters allowed")
    return value


def validate_enabled(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError("enabled field is required and must be a boolean")
    return value


@dataclass(frozen=True)
class VibrateCommand:
    level: int
    duration: int = DEFAULT_VIBRATION_DURATION_MS

    kind = "vibrate"

    def __post_init__(self):
        validate_level(self.level)
        validate_duration(self.duration)

    def to_message(self) -> dict:
        return {"type": "command", "command": self.kind, "level": self.level, "duration": self.duration}


@dataclass(frozen=True)
class DisplayCommand:
    message: str

    kind = "display"

    def __post_init__(self):
        validate_display_text(self.message)

    def to_message(self) -> dict:
        return {"type": "command", "command": self.kind, "message": self.message}


@dataclass(frozen=True)
class MassageCommand:
    enabled: bool

    kind = "massage"

    def __post_init__(self):
        validate_enabled(self.enabled)

    def to_message(self) -> dict:
        return {"type": "command", "command": self.kind, "enabled": self.enabled}


Command = Union[VibrateCommand, DisplayCommand, MassageCommand]


def command_from_message(message: dict) -> Command:
    """
    Build a typed command from a ``{"type": "command", "command": <kind>, ...}`` dict.
    Raises ValueError for an unknown kind or an invalid payload.
    """
    kind = message.get("command")
    if kind == VibrateCommand.kind:
        return VibrateCommand(
            level=validate_level(message.get("level")),
            duration=validate_duration(message.get("duration")),
        )
    if kind == DisplayCommand.kind:
        return DisplayCommand(message=validate_display_text(message.get("message")))
    if kind == MassageCommand.kind:
        return MassageCommand(enabled=validate_enabled(message.get("enabled")))
    raise ValueError(f"Unknown command: {kind!r}")
