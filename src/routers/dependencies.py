from fastapi import Request

from core.services.assistant import AssistantService
from core.services.relay import RelayCore


def get_relay(request: Request) -> RelayCore:
    """The relay built by the application lifespan."""
    return request.app.state.relay


def get_assistant(request: Request) -> AssistantService:
    return request.app.state.assistant
