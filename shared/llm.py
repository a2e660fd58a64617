"""Chat-style text generation client.

Wraps the OpenAI async client behind a small interface so the pipeline can
run without a credential: every caller checks ``available`` and degrades to
un-enriched data when it is False.
"""
import json
import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from shared.config import settings

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when the generation capability returns nothing usable."""


class GenerationClient:
    """Chat completion client; unavailable when no API key is configured."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model or settings.openai_model
        self.api_calls = 0
        self.total_tokens = 0
        self._client: Optional[AsyncOpenAI] = None
        if api_key:
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=timeout or settings.llm_timeout,
            )

    @classmethod
    def from_settings(cls) -> "GenerationClient":
        return cls(api_key=settings.openai_api_key)

    @property
    def available(self) -> bool:
        return self._client is not None

    async def complete(
        self,
        user: str,
        system: Optional[str] = None,
        json_mode: bool = False,
        max_tokens: int = 300,
        temperature: Optional[float] = None,
    ) -> str:
        """Send one system+user exchange and return the reply text."""
        if self._client is None:
            raise GenerationError("Generation capability is not configured")

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": user})

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        self.api_calls += 1
        response = await self._client.chat.completions.create(**kwargs)
        if response.usage:
            self.total_tokens += response.usage.total_tokens

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("Empty response from generation capability")
        return content.strip()

    async def complete_json(self, user: str, system: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """Like ``complete`` in JSON mode; the reply must decode to an object."""
        content = await self.complete(user, system=system, json_mode=True, **kwargs)
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise GenerationError(f"Unparsable JSON response: {e}") from e
        if not isinstance(parsed, dict):
            raise GenerationError("JSON response is not an object")
        return parsed

    def get_usage_stats(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "api_calls": self.api_calls,
            "total_tokens": self.total_tokens,
        }
