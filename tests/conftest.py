from __future__ import annotations

import asyncio
import re
from typing import Any, AsyncIterator, Iterator, List, Optional

import pytest
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import Field

from assistant.chat import ChatSessionService
from assistant.core.memory import ConversationMemoryStore


SYSTEM_PROMPT = "You are a helpful coding tutor. Answer with {braces} intact."


def split_fragments(text: str) -> List[str]:
    # An empty reply still arrives as one empty chunk, as real backends send it.
    return re.findall(r"\S+\s*", text) or [""]


class FakeStreamingChatModel(BaseChatModel):
    """Chat model returning canned replies and recording every request."""

    replies: List[str] = Field(default_factory=list)
    default_reply: str = "ok"
    fail_with: Optional[str] = None
    delay_seconds: float = 0.0
    received: List[List[BaseMessage]] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "fake-streaming"

    def _next_reply(self, messages: List[BaseMessage]) -> str:
        self.received.append(list(messages))
        if self.fail_with:
            raise RuntimeError(self.fail_with)
        if self.replies:
            return self.replies.pop(0)
        return self.default_reply

    def _generate(self, messages: List[BaseMessage], stop: Any = None, run_manager: Any = None, **kwargs: Any) -> ChatResult:
        text = self._next_reply(messages)
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=text))])

    def _stream(
        self, messages: List[BaseMessage], stop: Any = None, run_manager: Any = None, **kwargs: Any
    ) -> Iterator[ChatGenerationChunk]:
        for piece in split_fragments(self._next_reply(messages)):
            yield ChatGenerationChunk(message=AIMessageChunk(content=piece))

    async def _agenerate(
        self, messages: List[BaseMessage], stop: Any = None, run_manager: Any = None, **kwargs: Any
    ) -> ChatResult:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        return self._generate(messages)

    async def _astream(
        self, messages: List[BaseMessage], stop: Any = None, run_manager: Any = None, **kwargs: Any
    ) -> AsyncIterator[ChatGenerationChunk]:
        text = self._next_reply(messages)
        for piece in split_fragments(text):
            if self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            yield ChatGenerationChunk(message=AIMessageChunk(content=piece))


@pytest.fixture
def fake_llm() -> FakeStreamingChatModel:
    return FakeStreamingChatModel()


@pytest.fixture
def memory_store() -> ConversationMemoryStore:
    return ConversationMemoryStore(max_messages=10, max_conversations=100)


@pytest.fixture
def chat_service(fake_llm: FakeStreamingChatModel, memory_store: ConversationMemoryStore) -> ChatSessionService:
    return ChatSessionService(llm=fake_llm, system_prompt=SYSTEM_PROMPT, memory_store=memory_store, timeout_seconds=5.0)


async def collect(stream: AsyncIterator[str]) -> List[str]:
    return [fragment async for fragment in stream]
