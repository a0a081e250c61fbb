from __future__ import annotations

import logging
from typing import AsyncIterator, Dict, Hashable, List, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI

from assistant.chat import ChatSessionService
from assistant.core.memory import ConversationMemoryStore, to_turns
from assistant.core.prompt import load_system_prompt
from assistant.errors import GuardrailRejection, StartupResourceError
from assistant.guardrail import SafeInputGuardrail
from config.settings import Settings


logger = logging.getLogger("aicodehelper.assistant")


class Assistant:
    """Guarded entry point: every message passes the guardrail before reaching the model."""

    def __init__(self, guardrail: SafeInputGuardrail, chat_service: ChatSessionService) -> None:
        self.guardrail = guardrail
        self.chat_service = chat_service

    def check(self, message: str) -> None:
        verdict = self.guardrail.validate(message)
        if not verdict.accepted:
            raise GuardrailRejection(verdict.reason or "rejected")

    def chat_stream(self, conversation_id: Hashable, message: str) -> AsyncIterator[str]:
        """Validate now, then return a one-shot stream of reply fragments.

        Raises GuardrailRejection before any stream is created.
        """
        self.check(message)
        return self.chat_service.chat_stream(conversation_id, message)

    async def chat(self, conversation_id: Hashable, message: str) -> str:
        self.check(message)
        return await self.chat_service.chat(conversation_id, message)

    def history(self, conversation_id: Hashable) -> List[Dict[str, str]]:
        memory = self.chat_service.memory_store.get(conversation_id)
        if memory is None:
            return []
        return to_turns(memory.snapshot())

    def reset(self, conversation_id: Hashable) -> bool:
        return self.chat_service.memory_store.discard(conversation_id)


def build_llm(settings: Settings) -> BaseChatModel:
    if not settings.google_api_key:
        raise StartupResourceError(
            "GOOGLE_API_KEY not set. Please configure it in environment or .env"
        )

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.google_api_key,
        temperature=settings.temperature,
        top_p=settings.top_p,
    )


def build_assistant(settings: Settings, llm: Optional[BaseChatModel] = None) -> Assistant:
    """Wire guardrail, system prompt, memory and model from explicit settings."""
    system_prompt = load_system_prompt(settings.system_prompt_path)

    guardrail = SafeInputGuardrail.from_settings(settings)
    guardrail.warm_up()

    memory_store = ConversationMemoryStore(
        max_messages=settings.memory_max_messages,
        max_conversations=settings.memory_max_conversations,
    )
    chat_service = ChatSessionService(
        llm=llm if llm is not None else build_llm(settings),
        system_prompt=system_prompt,
        memory_store=memory_store,
        timeout_seconds=settings.stream_timeout_seconds,
    )
    logger.info(
        "Assistant ready: model=%s guardrail_enabled=%s memory_max_messages=%s",
        settings.gemini_model,
        settings.guardrail_enabled,
        settings.memory_max_messages,
    )
    return Assistant(guardrail=guardrail, chat_service=chat_service)
