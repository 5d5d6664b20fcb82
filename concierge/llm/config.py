from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


@dataclass(frozen=True)
class LLMConfig:
    """Groq settings for intent parsing, re-ranking, descriptions and concierge suggestions."""

    api_key: str = os.getenv("GROQ_API_KEY", "")
    model: str = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    # Per-request ceiling; the pipeline deadline bounds the whole search.
    timeout: float = float(os.getenv("GROQ_TIMEOUT_SECONDS", "10"))
    # Upper bound applied to every call's own max_tokens.
    max_tokens: int = int(os.getenv("GROQ_MAX_TOKENS", "1024"))
    enabled: bool = _env_flag("LLM_ENABLED", True)

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("LLM timeout must be positive")
        if self.max_tokens < 1:
            raise ValueError("LLM max_tokens must be at least 1")

    @property
    def usable(self) -> bool:
        return self.enabled and bool(self.api_key)


DEFAULT_LLM_CONFIG = LLMConfig()
