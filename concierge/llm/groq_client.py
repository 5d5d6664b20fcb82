from __future__ import annotations

import json
import logging
from typing import Any

from groq import APIConnectionError, APIError, AsyncGroq

from .base import CompletionBackend
from .config import DEFAULT_LLM_CONFIG, LLMConfig
from .errors import CompletionError, CompletionUnavailableError

logger = logging.getLogger(__name__)


class GroqCompletionClient(CompletionBackend):
    """CompletionBackend that calls Groq chat completions in JSON mode."""

    def __init__(self, config: LLMConfig = DEFAULT_LLM_CONFIG) -> None:
        self.config = config
        self._client: AsyncGroq | None = None
        if config.usable:
            self._client = AsyncGroq(api_key=config.api_key, timeout=config.timeout)

    @property
    def available(self) -> bool:
        return self._client is not None

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 512,
        temperature: float = 0.2,
    ) -> dict[str, Any]:
        if self._client is None:
            raise CompletionUnavailableError("Groq LLM is disabled or has no API key")

        try:
            response = await self._client.chat.completions.create(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=min(max_tokens, self.config.max_tokens),
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except APIConnectionError as exc:
            raise CompletionUnavailableError(f"Groq unreachable: {exc}") from exc
        except APIError as exc:
            raise CompletionError(f"Groq request failed: {exc}") from exc

        content = response.choices[0].message.content or ""
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise CompletionError("Groq returned content that is not JSON") from exc
        if not isinstance(parsed, dict):
            raise CompletionError("Groq returned JSON that is not an object")

        logger.debug("Groq completion returned keys %s", sorted(parsed))
        return parsed
