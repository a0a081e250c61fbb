"""Input guardrail that blocks messages containing sensitive terms.

Terms are matched as substrings with an Aho-Corasick automaton. The automaton
is built lazily on first use, exactly once even when several threads race
to validate the first message.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

import ahocorasick

from assistant.errors import StartupResourceError
from config.settings import Settings


logger = logging.getLogger("aicodehelper.guardrail")

SENSITIVE_CONTENT_REASON = "sensitive content detected"


@dataclass(frozen=True)
class GuardrailVerdict:
    accepted: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "GuardrailVerdict":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str) -> "GuardrailVerdict":
        return cls(accepted=False, reason=reason)


def read_word_file(path: Union[str, Path]) -> List[str]:
    """Read one term per line, skipping blanks and ``#`` comments."""
    word_path = Path(path)
    try:
        lines = word_path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise StartupResourceError(f"Failed to read sensitive word list from {word_path}: {exc}") from exc
    return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]


class SafeInputGuardrail:
    """Reject user input containing any term from the sensitive-word dictionary."""

    def __init__(
        self,
        *,
        enabled: bool = False,
        case_sensitive: bool = False,
        words: Optional[Iterable[str]] = None,
        words_path: Optional[Union[str, Path]] = None,
    ) -> None:
        self.enabled = enabled
        self.case_sensitive = case_sensitive
        self._words = list(words or [])
        self._words_path = Path(words_path) if words_path is not None else None
        self._matcher: Optional[ahocorasick.Automaton] = None
        self._init_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SafeInputGuardrail":
        return cls(
            enabled=settings.guardrail_enabled,
            case_sensitive=settings.guardrail_case_sensitive,
            words=settings.guardrail_extra_words,
            words_path=settings.guardrail_words_path,
        )

    @property
    def initialized(self) -> bool:
        return self._matcher is not None

    def warm_up(self) -> None:
        self._ensure_matcher()

    def validate(self, message: str) -> GuardrailVerdict:
        matcher = self._ensure_matcher()
        if not self.enabled:
            return GuardrailVerdict.accept()

        if len(matcher) == 0:
            return GuardrailVerdict.accept()

        text = message if self.case_sensitive else message.casefold()
        match = next(matcher.iter(text), None)
        if match is None:
            return GuardrailVerdict.accept()

        # Never log the message itself.
        logger.info("Guardrail rejected message: message_len=%s matched_term_len=%s", len(message), len(match[1]))
        return GuardrailVerdict.reject(SENSITIVE_CONTENT_REASON)

    def _ensure_matcher(self) -> ahocorasick.Automaton:
        matcher = self._matcher
        if matcher is not None:
            return matcher
        with self._init_lock:
            if self._matcher is None:
                self._matcher = self._build_matcher()
            return self._matcher

    def _load_terms(self) -> List[str]:
        terms = list(self._words)
        if self._words_path is not None:
            terms.extend(read_word_file(self._words_path))
        return terms

    def _build_matcher(self) -> ahocorasick.Automaton:
        automaton = ahocorasick.Automaton()
        for term in self._load_terms():
            key = term if self.case_sensitive else term.casefold()
            if key:
                automaton.add_word(key, key)
        if len(automaton) > 0:
            automaton.make_automaton()
        logger.info(
            "Sensitive word dictionary built: terms=%s case_sensitive=%s enabled=%s",
            len(automaton),
            self.case_sensitive,
            self.enabled,
        )
        return automaton
