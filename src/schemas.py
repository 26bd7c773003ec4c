from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator

from core.models.command import (
    validate_display_text,
    validate_duration,
    validate_enabled,
    validate_level,
)


class AppInfo(BaseModel):
    message: str


class HealthOK(BaseModel):
    status: str
    timestamp: str
    esp32Connected: bool


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class SensorSnapshotModel(BaseModel):
    heartRate: float
    temperature: float
    vibrationLevel: int
    timestamp: int


class StatusResponse(BaseModel):
    success: bool
    connected: bool
    data: SensorSnapshotModel
    timestamp: int


# --- Device commands ---

class VibrateRequest(BaseModel):
    level: Optional[int] = Field(default=None, validate_default=True, description="0 (Off) to 3 (High)")
    duration: Optional[int] = Field(default=None, validate_default=True, description="Milliseconds, 0 to 60000")

    @field_validator("level", mode="before")
    @classmethod
    def check_level(cls, value: Any) -> int:
        return validate_level(value)

    @field_validator("duration", mode="before")
    @classmethod
    def check_duration(cls, value: Any) -> int:
        return validate_duration(value)


class VibrateResponse(BaseModel):
    success: bool
    message: str
    level: int


class DisplayRequest(BaseModel):
    message: Optional[str] = Field(default=None, validate_default=True, description="Up to 200 characters")

    @field_validator("message", mode="before")
    @classmethod
    def check_message(cls, value: Any) -> str:
        return validate_display_text(value)


class DisplayResponse(BaseModel):
    success: bool
    message: str
    sentMessage: str


class MassageRequest(BaseModel):
    enabled: Optional[bool] = Field(default=None, validate_default=True)

    @field_validator("enabled", mode="before")
    @classmethod
    def check_enabled(cls, value: Any) -> bool:
        return validate_enabled(value)


class MassageResponse(BaseModel):
    success: bool
    message: str
    enabled: bool


# --- Assistant ---

class ChatRequest(BaseModel):
    message: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("message", mode="before")
    @classmethod
    def check_message(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Message is required and must be a string")
        return value


class ChatResponse(BaseModel):
    success: bool
    response: str
    model: str
    timestamp: int
    tokens: Optional[int] = None
    note: Optional[str] = None


class AssistantStatusResponse(BaseModel):
    success: bool
    available: bool
    models: Optional[List[Any]] = None
    message: Optional[str] = None
