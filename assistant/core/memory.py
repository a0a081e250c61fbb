"""Per-conversation chat memory.

Each conversation id owns a bounded window of LangChain messages. The store
keeps at most ``max_conversations`` windows and drops the least recently used
one when a new conversation would exceed that cap.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Dict, Hashable, Iterable, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage


logger = logging.getLogger("aicodehelper.memory")


class ConversationMemory:
    """Sliding window over the most recent messages of one conversation."""

    def __init__(self, max_messages: int = 10) -> None:
        if max_messages <= 0:
            raise ValueError("max_messages must be positive")
        self.max_messages = max_messages
        self._messages: List[BaseMessage] = []
        # Held for the whole request so turns of one conversation never interleave.
        self.lock = asyncio.Lock()

    def append(self, messages: Iterable[BaseMessage]) -> None:
        self._messages.extend(messages)
        if len(self._messages) > self.max_messages:
            self._messages = self._messages[-self.max_messages :]

    def snapshot(self) -> List[BaseMessage]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)


class ConversationMemoryStore:
    """Map of conversation id to memory, with LRU eviction of whole conversations."""

    def __init__(self, max_messages: int = 10, max_conversations: int = 1000) -> None:
        if max_conversations <= 0:
            raise ValueError("max_conversations must be positive")
        self.max_messages = max_messages
        self.max_conversations = max_conversations
        self._memories: "OrderedDict[Hashable, ConversationMemory]" = OrderedDict()

    def get_or_create(self, conversation_id: Hashable) -> ConversationMemory:
        memory = self._memories.get(conversation_id)
        if memory is not None:
            self._memories.move_to_end(conversation_id)
            return memory

        memory = ConversationMemory(max_messages=self.max_messages)
        self._memories[conversation_id] = memory
        while len(self._memories) > self.max_conversations:
            evicted_id, _ = self._memories.popitem(last=False)
            logger.info("Evicted conversation memory: conversation_id=%s", evicted_id)
        return memory

    def get(self, conversation_id: Hashable) -> Optional[ConversationMemory]:
        return self._memories.get(conversation_id)

    def discard(self, conversation_id: Hashable) -> bool:
        return self._memories.pop(conversation_id, None) is not None

    def __contains__(self, conversation_id: Hashable) -> bool:
        return conversation_id in self._memories

    def __len__(self) -> int:
        return len(self._memories)


def message_role(message: BaseMessage) -> str:
    if isinstance(message, HumanMessage):
        return "user"
    if isinstance(message, AIMessage):
        return "assistant"
    if isinstance(message, SystemMessage):
        return "system"
    return message.type


def to_turns(messages: Iterable[BaseMessage]) -> List[Dict[str, str]]:
    """Render LangChain messages as plain role/content dicts."""
    turns: List[Dict[str, str]] = []
    for message in messages:
        content = message.content if isinstance(message.content, str) else str(message.content)
        turns.append({"role": message_role(message), "content": content})
    return turns
