"""
Tests for the WellnessAI assistant: keyword fallback, Ollama calls and the /api/ai routes.
"""
import json

import httpx
import pytest

from core.models.config_data import AssistantConfig
from core.services.assistant import (
    DEFAULT_FALLBACK,
    FALLBACK_NOTE,
    FALLBACK_RESPONSES,
    SYSTEM_PROMPT,
    AssistantService,
    build_prompt,
    fallback_reply,
)


def make_service(handler) -> AssistantService:
    config = AssistantConfig(url="http://ollama.test:11434/", model="test-model", timeout=1.0)
    return AssistantService(config, transport=httpx.MockTransport(handler))


class TestFallbackReply:

    @pytest.mark.parametrize("message,keyword", [
        ("I have a terrible headache", "headache"),
        ("Feeling STRESSED today", "stress"),
        ("What do the sensors show?", "sensor"),
        ("Which vibration level should I use?", "vibration"),
        ("Any music for focus?", "music"),
        ("I can't sleep", "sleep"),
    ])
    def test_keyword_match(self, message, keyword):
        assert fallback_reply(message) == FALLBACK_RESPONSES[keyword]

    def test_first_keyword_in_table_order_wins(self):
        # "stress" comes before "music" in the table regardless of word order
        assert fallback_reply("music to fight stress") == FALLBACK_RESPONSES["stress"]

    def test_keywords_need_word_start(self):
        assert fallback_reply("showhow") == DEFAULT_FALLBACK

    @pytest.mark.parametrize("message", [
        "I don't have a headache",
        "no stress at all",
        "never mind the music",
    ])
    def test_negation_gets_general_advice(self, message):
        assert fallback_reply(message) == DEFAULT_FALLBACK

    def test_unknown_topic(self):
        assert fallback_reply("what's the weather like?") == DEFAULT_FALLBACK


class TestBuildPrompt:

    def test_prompt_layout(self):
        prompt = build_prompt("Hello")
        assert prompt.startswith(SYSTEM_PROMPT)
        assert prompt.endswith("\n\nUser: Hello\nWellnessAI:")


class TestChat:

    @pytest.mark.asyncio
    async def test_model_answer(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "  Breathe slowly.  ", "eval_count": 42})

        service = make_service(handler)
        try:
            result = await service.chat("I feel tense")
        finally:
            await service.aclose()

        assert seen["url"] == "http://ollama.test:11434/api/generate"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["stream"] is False
        assert seen["body"]["prompt"] == build_prompt("I feel tense")
        assert result["success"] is True
        assert result["response"] == "Breathe slowly."
        assert result["model"] == "test-model"
        assert result["tokens"] == 42
        assert isinstance(result["timestamp"], int)
        assert "note" not in result

    @pytest.mark.asyncio
    async def test_missing_eval_count(self):
        service = make_service(lambda request: httpx.Response(200, json={"response": "ok"}))
        try:
            result = await service.chat("hi")
        finally:
            await service.aclose()
        assert result["tokens"] == 0

    @pytest.mark.asyncio
    async def test_unreachable_model_falls_back(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = make_service(handler)
        try:
            result = await service.chat("my headache is back")
        finally:
            await service.aclose()

        assert result["success"] is True
        assert result["model"] == "fallback"
        assert result["note"] == FALLBACK_NOTE
        assert result["response"] == FALLBACK_RESPONSES["headache"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="model crashed"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"unexpected": True}),
    ])
    async def test_bad_model_response_falls_back(self, response):
        service = make_service(lambda request: response)
        try:
            result = await service.chat("hello")
        finally:
            await service.aclose()
        assert result["model"] == "fallback"
        assert result["response"] == DEFAULT_FALLBACK


class TestStatus:

    @pytest.mark.asyncio
    async def test_available(self):
        models = [{"name": "qwen2:latest"}]

        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": models})

        service = make_service(handler)
        try:
            result = await service.status()
        finally:
            await service.aclose()
        assert result == {"success": True, "available": True, "models": models}

    @pytest.mark.asyncio
    async def test_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = make_service(handler)
        try:
            result = await service.status()
        finally:
            await service.aclose()
        assert result["available"] is False
        assert result["message"] == "Ollama not running - using fallback responses"


class StubAssistant:
    def __init__(self):
        self.messages = []

    async def chat(self, message):
        self.messages.append(message)
        return {"success": True, "response": "Try some breathing.", "model": "stub", "timestamp": 1, "tokens": 3}

    async def status(self):
        return {"success": True, "available": False, "message": "Ollama not running - using fallback responses"}


@pytest.fixture
def stub_assistant(client):
    stub = StubAssistant()
    client.app.state.assistant, original = stub, client.app.state.assistant
    yield stub
    client.app.state.assistant = original


class TestRoutes:

    def test_chat(self, client, stub_assistant):
        response = client.post("/api/ai/chat", json={"message": "hello"})
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "response": "Try some breathing.",
            "model": "stub",
            "timestamp": 1,
            "tokens": 3,
        }
        assert stub_assistant.messages == ["hello"]

    @pytest.mark.parametrize("payload", [{}, {"message": ""}, {"message": "   "}, {"message": 7}])
    def test_chat_requires_message(self, client, stub_assistant, payload):
        response = client.post("/api/ai/chat", json=payload)
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Message is required and must be a string"}
        assert stub_assistant.messages == []

    def test_status(self, client, stub_assistant):
        response = client.get("/api/ai/status")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "available": False,
            "message": "Ollama not running - using fallback responses",
        }
