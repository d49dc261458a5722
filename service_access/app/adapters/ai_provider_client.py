"""
Client for the OpenAI-compatible chat completions API.
"""

import copy
import json
from typing import Any, Dict, List, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.config import BaseConfig
from shared.errors import ExternalServiceError
from shared.logging import get_logger

MOOD_SYSTEM_PROMPT = (
    "You are an expert emotional intelligence AI specialized in mood analysis and "
    "mental health insights. Provide accurate, empathetic, and helpful analysis."
)

MOOD_PROMPT = """Analyze the emotional content and mood of the following text. Provide:

1. primaryEmotion (joy, sadness, anger, fear, surprise, disgust, trust, anticipation, love, hope, anxiety, excitement, confidence, gratitude, contentment)
2. moodScore (0-100, where 0 is very negative and 100 is very positive)
3. sentiment (polarity: -1 to 1, subjectivity: 0 to 1)
4. emotions (0-1 for each emotion)
5. confidence (0-1)
6. indicators: key emotional indicators found in the text
7. insights: contextual insights
8. recommendations: suggestions for mood improvement if needed

Text to analyze: "{text}"

Respond with a single JSON object."""

NEUTRAL_MOOD: Dict[str, Any] = {
    "primaryEmotion": "neutral",
    "moodScore": 50,
    "sentiment": {"polarity": 0, "subjectivity": 0.5, "confidence": 0.5},
    "emotions": {},
    "confidence": 0.5,
    "indicators": ["Analysis parsing failed"],
    "insights": ["Unable to parse detailed analysis"],
    "recommendations": ["Please try again with different text"],
}


class AIProviderError(Exception):
    """The provider answered with an error or an unusable payload."""


class AIProviderClient:
    """Chat completions with a fallback model, behind a circuit breaker."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        *,
        default_model: str = "gpt-4o-mini",
        fallback_model: Optional[str] = "gpt-3.5-turbo",
        default_temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.fallback_model = fallback_model
        self.default_temperature = default_temperature
        self.max_tokens = max_tokens
        self.logger = get_logger("access.ai_provider")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            name="ai_provider",
        )

        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    @classmethod
    def from_config(cls, config: BaseConfig, client: Optional[httpx.AsyncClient] = None) -> "AIProviderClient":
        return cls(
            config.ai_base_url,
            config.ai_api_key,
            default_model=config.ai_default_model,
            fallback_model=config.ai_fallback_model,
            default_temperature=config.ai_default_temperature,
            max_tokens=config.ai_max_tokens,
            timeout=config.ai_timeout_seconds,
            client=client,
        )

    async def _complete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.post(f"{self.base_url}/chat/completions", json=payload)
        if response.status_code != 200:
            raise AIProviderError(f"provider returned {response.status_code}")
        try:
            body = response.json()
        except ValueError as e:
            raise AIProviderError("provider returned invalid JSON") from e
        if not body.get("choices"):
            raise AIProviderError("provider returned no choices")
        return body

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Run a completion, retrying once on the fallback model."""
        payload = {
            "model": model or self.default_model,
            "messages": messages,
            "temperature": self.default_temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }

        try:
            return await self.circuit_breaker.call(self._complete, payload)
        except CircuitBreakerOpenException as e:
            self.logger.warning("AI provider circuit open", error=str(e))
            raise ExternalServiceError("ai_provider", "AI service is temporarily unavailable", code="AI_SERVICE_ERROR")
        except (httpx.HTTPError, AIProviderError) as e:
            self.logger.error("AI chat completion error", model=payload["model"], error=str(e))
            if not self.fallback_model or payload["model"] == self.fallback_model:
                raise ExternalServiceError("ai_provider", f"AI chat service error: {e}", code="AI_SERVICE_ERROR")

        self.logger.info("Trying fallback model", model=self.fallback_model)
        return await self.chat_completion(
            messages,
            model=self.fallback_model,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def analyze_mood(self, text: str) -> Dict[str, Any]:
        messages = [
            {"role": "system", "content": MOOD_SYSTEM_PROMPT},
            {"role": "user", "content": MOOD_PROMPT.format(text=text)},
        ]
        response = await self.chat_completion(messages, temperature=0.3, max_tokens=1000)
        content = response["choices"][0].get("message", {}).get("content") or ""

        try:
            analysis = json.loads(content)
        except json.JSONDecodeError:
            self.logger.warning("Mood analysis returned non-JSON content")
            return copy.deepcopy(NEUTRAL_MOOD)
        if not isinstance(analysis, dict):
            return copy.deepcopy(NEUTRAL_MOOD)
        return analysis

    async def close(self) -> None:
        await self._client.aclose()
