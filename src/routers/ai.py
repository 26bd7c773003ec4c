from fastapi import APIRouter, Depends

from core.services.assistant import AssistantService
from routers.dependencies import get_assistant
from schemas import AssistantStatusResponse, ChatRequest, ChatResponse

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True, responses={
    400: {
        "description": "Missing or empty message.",
        "content": {
            "application/json": {
                "example": {"success": False, "error": "Message is required and must be a string"}
            }
        }
    }
})
async def chat_with_ai(payload: ChatRequest, assistant: AssistantService = Depends(get_assistant)) -> ChatResponse:
    """
    Ask the WellnessAI assistant.
    Falls back to canned answers (model "fallback") when the language model is unavailable.
    """
    return ChatResponse(**await assistant.chat(payload.message))


@router.get("/status", response_model=AssistantStatusResponse, response_model_exclude_none=True)
async def get_ai_status(assistant: AssistantService = Depends(get_assistant)) -> AssistantStatusResponse:
    return AssistantStatusResponse(**await assistant.status())
