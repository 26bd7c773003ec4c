"""
WellnessAI chat assistant.

Talks to a local Ollama server; whenever the model is unreachable, slow or
returns something unusable, a keyword-based responder answers instead so the
chat widget never goes silent.
"""
import logging
import re
import time
from typing import Optional

import httpx

from core.models.config_data import AssistantConfig

logger = logging.getLogger(__name__)

FALLBACK_MODEL = "fallback"
FALLBACK_NOTE = "Using fallback response (Ollama unavailable)"
STATUS_TIMEOUT = 5.0

SYSTEM_PROMPT = """You are "WellnessAI", the assistant of the Smart Headache Relief Headband.
You help users understand their readings, use the app and follow relaxation protocols.

What the system offers:
- Live monitoring, updated every second: heart rate (normal 60-100 BPM), body temperature
  (normal 36-37.5 C) and stress level (0 calm, 1 mild, 2 moderate, 3 high).
- Vibration therapy from the "Therapy Controls" panel: level 0 (Off) to 3 (High).
- Music therapy: "Weightless", "Alpha Waves Meditation", "Binaural Waves 11Hz", "River Flows in You",
  "Nuvole Bianche", "Clair de Lune", "Moonlight Sonata" and "Bach Suite No. 3".
- Relaxation games, trend charts under "Advanced Analytics" and messages to the headband display.
- Demo mode with simulated readings whenever the headband is not connected.

How to answer:
- Be warm and concise: 2-3 sentences, under 120 words.
- Give actionable guidance and name the feature, track or setting to use.
- Combine vibration, music and breathing when it helps.
- Suggest seeing a healthcare provider when readings stay out of range.

Now respond to the user's message:"""

GENERATION_OPTIONS = {
    "temperature": 0.5,
    "top_p": 0.8,
    "top_k": 20,
    "num_predict": 120,
    "repeat_penalty": 1.15,
    "stop": ["\nUser:", "\nHuman:", "User:", "Human:", "\n\n\n"],
    "num_ctx": 2048,
}

# Ordered: the first keyword found in the message wins
FALLBACK_RESPONSES = {
    "headache": 'Try the 4-7-8 breathing technique: inhale for 4 counts, hold for 7, exhale for 8. Set vibration therapy to level 2 or 3 in "Therapy Controls" and play "Weightless" or "Alpha Waves Meditation" from the music player.',
    "stress": 'Your readings suggest it is time to unwind. Set vibration to level 1 or 2, play "Binaural Waves 11Hz" and try box breathing: inhale 4, hold 4, exhale 4, hold 4.',
    "sensor": "The dashboard updates every second: heart rate (normal 60-100 BPM), temperature (normal 36-37.5 C) and stress level (0-3). Values outside the normal range suggest starting a therapy session.",
    "reading": "Green values are normal, yellow means mild concern and red needs attention. If your heart rate is elevated or stress is 2-3, start vibration therapy with calming music.",
    "vibration": 'Pick a level in "Therapy Controls": 1 (Low) for mild discomfort, 2 (Medium) for moderate, 3 (High) for severe. Sessions typically last 10-15 minutes.',
    "how": 'Monitor your sensors at the top, control vibration in "Therapy Controls", play music in "Music Therapy" and ask me anything here. All features work together for headache relief.',
    "music": 'For headache relief try "Weightless", "Alpha Waves Meditation" (432Hz) or classical pieces like "Clair de Lune" and "Nuvole Bianche", all in the music player.',
    "track": 'Start with "Weightless", often called the most relaxing song ever recorded. For deeper meditation try the 11Hz binaural beats; classical options include Debussy, Beethoven and Yiruma.',
    "protocol": 'Relaxation protocol: check your sensors, set vibration to level 2, play "Alpha Waves Meditation" and do 4-7-8 breathing for 10 minutes.',
    "feature": "The app offers live sensor monitoring, vibration therapy, eight therapeutic music tracks, relaxation games, trend charts and messages to the headband display.",
    "chart": 'Open "Advanced Analytics" below the sensor cards to see heart rate, temperature and stress trends over time.',
    "connect": "The status bar shows whether the dashboard reaches the backend. Without the headband the app runs in demo mode with simulated sensors.",
    "breathing": 'Box breathing: inhale 4 counts, hold 4, exhale 4, hold 4, five times. Pair it with "Binaural Waves 11Hz" and a low vibration level to guide your rhythm.',
    "sleep": 'Dim the lights and put screens away an hour before bed. Play "Moonlight Sonata" or "Clair de Lune" with vibration at level 1 for 15 minutes.',
    "relax": 'Set vibration to level 1 or 2, play "Weightless" or "Alpha Waves Meditation", close your eyes and breathe deeply. Relief usually starts within 3-5 minutes.',
}

DEFAULT_FALLBACK = (
    "I recommend trying our vibration therapy on a low setting, taking deep breaths, "
    "and staying hydrated. If symptoms persist, consult a healthcare provider."
)

NEGATION_PATTERN = re.compile(r"\b(no|not|don't|doesn't|never|without)\b", re.IGNORECASE)
KEYWORD_PATTERNS = [
    (re.compile(rf"\b{re.escape(keyword)}\w*\b", re.IGNORECASE), response)
    for keyword, response in FALLBACK_RESPONSES.items()
]


def fallback_reply(message: str) -> str:
    """Pick a canned answer by keyword. Negated messages get the general advice."""
    if NEGATION_PATTERN.search(message):
        return DEFAULT_FALLBACK
    for pattern, response in KEYWORD_PATTERNS:
        if pattern.search(message):
            return response
    return DEFAULT_FALLBACK


def build_prompt(message: str) -> str:
    return f"{SYSTEM_PROMPT}\n\nUser: {message}\nWellnessAI:"


class AssistantService:
    def __init__(self, config: Optional[AssistantConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or AssistantConfig()
        self._http = httpx.AsyncClient(
            base_url=self.config.url.rstrip("/"),
            timeout=self.config.timeout,
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self.config.model

    async def chat(self, message: str) -> dict:
        """Answer ``message``. Never raises on model failures."""
        try:
            resp = await self._http.post("/api/generate", json={
                "model": self.model,
                "prompt": build_prompt(message),
                "stream": False,
                "options": GENERATION_OPTIONS,
            })
            resp.raise_for_status()
            body = resp.json()
            answer = body["response"].strip()
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"AI model unavailable, using fallback response: {e}")
            return {
                "success": True,
                "response": fallback_reply(message),
                "model": FALLBACK_MODEL,
                "timestamp": int(time.time() * 1000),
                "note": FALLBACK_NOTE,
            }

        logger.info(f"{self.model}: response generated ({len(answer)} chars)")
        return {
            "success": True,
            "response": answer,
            "model": self.model,
            "timestamp": int(time.time() * 1000),
            "tokens": body.get("eval_count") or 0,
        }

    async def status(self) -> dict:
        try:
            resp = await self._http.get("/api/tags", timeout=STATUS_TIMEOUT)
            resp.raise_for_status()
            models = resp.json().get("models") or []
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.debug(f"Ollama status check failed: {e}")
            return {
                "success": True,
                "available": False,
                "message": "Ollama not running - using fallback responses",
            }
        return {"success": True, "available": True, "models": models}

    async def aclose(self):
        await self._http.aclose()
