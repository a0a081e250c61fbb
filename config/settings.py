from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv


load_dotenv()

PACKAGE_ROOT = Path(__file__).resolve().parent.parent / "assistant"
DEFAULT_SYSTEM_PROMPT_PATH = PACKAGE_ROOT / "core" / "system-prompt.txt"
DEFAULT_SENSITIVE_WORDS_PATH = PACKAGE_ROOT / "guardrail" / "sensitive_words.txt"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _env_bool(source: Mapping[str, str], key: str, default: bool) -> bool:
    raw = source.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{key} must be a boolean, got {raw!r}")


def _env_list(source: Mapping[str, str], key: str) -> List[str]:
    raw = source.get(key) or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. Components receive a
    Settings instance explicitly instead of reading the environment.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        source = os.environ if env is None else env

        self.app_env: str = source.get("APP_ENV", "development")
        self.host: str = source.get("HOST", "127.0.0.1")
        self.port: int = int(source.get("PORT", "8000"))

        self.google_api_key: Optional[str] = source.get("GOOGLE_API_KEY") or None
        self.gemini_model: str = source.get("GEMINI_MODEL", "gemini-2.0-flash")
        self.temperature: float = float(source.get("MODEL_TEMPERATURE", "0.3"))
        self.top_p: float = float(source.get("MODEL_TOP_P", "0.9"))

        # ai.guardrail.enabled / ai.guardrail.case-sensitive
        self.guardrail_enabled: bool = _env_bool(source, "AI_GUARDRAIL_ENABLED", False)
        self.guardrail_case_sensitive: bool = _env_bool(source, "AI_GUARDRAIL_CASE_SENSITIVE", False)
        self.guardrail_words_path: Path = Path(
            source.get("AI_GUARDRAIL_WORDS_PATH") or DEFAULT_SENSITIVE_WORDS_PATH
        )
        self.guardrail_extra_words: List[str] = _env_list(source, "AI_GUARDRAIL_EXTRA_WORDS")

        self.system_prompt_path: Path = Path(
            source.get("AI_SYSTEM_PROMPT_PATH") or DEFAULT_SYSTEM_PROMPT_PATH
        )
        self.memory_max_messages: int = int(source.get("AI_MEMORY_MAX_MESSAGES", "10"))
        self.memory_max_conversations: int = int(source.get("AI_MEMORY_MAX_CONVERSATIONS", "1000"))
        self.stream_timeout_seconds: float = float(source.get("AI_STREAM_TIMEOUT_SECONDS", "120"))

        self._validate()

    def _validate(self) -> None:
        if self.memory_max_messages <= 0:
            raise ValueError("AI_MEMORY_MAX_MESSAGES must be positive")
        if self.memory_max_conversations <= 0:
            raise ValueError("AI_MEMORY_MAX_CONVERSATIONS must be positive")
        if self.stream_timeout_seconds <= 0:
            raise ValueError("AI_STREAM_TIMEOUT_SECONDS must be positive")
        if not 0.0 <= self.top_p <= 1.0:
            raise ValueError("MODEL_TOP_P must be in [0, 1]")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
