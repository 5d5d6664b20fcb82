from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class CompletionBackend(ABC):
    """A text-completion capability that answers with a JSON object."""

    @abstractmethod
    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 512,
        temperature: float = 0.2,
    ) -> dict[str, Any]:
        """Return the decoded JSON object, or raise ``CompletionError``."""
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
