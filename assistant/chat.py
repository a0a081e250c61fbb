from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Hashable, List

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from assistant.core.memory import ConversationMemoryStore
from assistant.errors import BackendDispatchError


logger = logging.getLogger("aicodehelper.chat")

_END_OF_STREAM = object()


def chunk_text(chunk: Any) -> str:
    """Extract plain text from a model message or chunk."""
    content = getattr(chunk, "content", chunk)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text") or "")
        return "".join(parts)
    return ""


class ChatSessionService:
    """Chat with the model using a fixed system prompt and per-conversation memory.

    Callers are expected to have run the input guardrail already.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        system_prompt: str,
        memory_store: ConversationMemoryStore,
        timeout_seconds: float = 120.0,
    ) -> None:
        self.llm = llm
        self.system_prompt = system_prompt
        self.memory_store = memory_store
        self.timeout_seconds = timeout_seconds
        # SystemMessage is passed verbatim so braces in the prompt are not template variables.
        self.prompt = ChatPromptTemplate.from_messages(
            [
                SystemMessage(content=system_prompt),
                MessagesPlaceholder("chat_history", optional=True),
                ("human", "{input}"),
            ]
        )
        self.chain = self.prompt | self.llm

    async def chat_stream(self, conversation_id: Hashable, user_message: str) -> AsyncIterator[str]:
        """Yield reply fragments as the model produces them.

        The backend is read by a separate task that owns the conversation lock,
        so the lock and the timeout never depend on how fast the caller reads.
        Closing the stream early cancels that task and leaves history as it was.
        A stream that is abandoned without being closed still runs to completion
        in the background and records its exchange.
        """
        queue: "asyncio.Queue[Any]" = asyncio.Queue()
        producer = asyncio.ensure_future(self._produce(conversation_id, user_message, queue))
        try:
            while True:
                item = await queue.get()
                if item is _END_OF_STREAM:
                    break
                if isinstance(item, BackendDispatchError):
                    raise item
                yield item
        finally:
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)

    async def _produce(self, conversation_id: Hashable, user_message: str, queue: "asyncio.Queue[Any]") -> None:
        memory = self.memory_store.get_or_create(conversation_id)
        try:
            async with memory.lock:
                payload = {"input": user_message, "chat_history": memory.snapshot()}
                logger.info(
                    "Streaming chat: conversation_id=%s history_messages=%s query_len=%s",
                    conversation_id,
                    len(memory),
                    len(user_message),
                )
                pieces = await self._read_backend(payload, queue)

                reply = "".join(pieces)
                memory.append([HumanMessage(content=user_message), AIMessage(content=reply)])
                logger.info(
                    "Streaming chat finished: conversation_id=%s fragments=%s reply_len=%s",
                    conversation_id,
                    len(pieces),
                    len(reply),
                )
        except BackendDispatchError as exc:
            queue.put_nowait(exc)
            return
        queue.put_nowait(_END_OF_STREAM)

    async def _read_backend(self, payload: Dict[str, Any], queue: "asyncio.Queue[Any]") -> List[str]:
        # The deadline starts once the lock is held and only covers the backend.
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        stream = self.chain.astream(payload)
        pieces: List[str] = []
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise BackendDispatchError(f"Model stream timed out after {self.timeout_seconds}s")
                try:
                    chunk = await asyncio.wait_for(stream.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError as exc:
                    raise BackendDispatchError(f"Model stream timed out after {self.timeout_seconds}s") from exc
                except Exception as exc:
                    raise BackendDispatchError(f"Model stream failed: {exc}") from exc

                text = chunk_text(chunk)
                if text:
                    pieces.append(text)
                    queue.put_nowait(text)
        finally:
            await stream.aclose()
        return pieces

    async def chat(self, conversation_id: Hashable, user_message: str) -> str:
        """Non-streaming counterpart of chat_stream with the same history handling."""
        memory = self.memory_store.get_or_create(conversation_id)
        async with memory.lock:
            payload = {"input": user_message, "chat_history": memory.snapshot()}
            logger.info(
                "Chat: conversation_id=%s history_messages=%s query_len=%s",
                conversation_id,
                len(memory),
                len(user_message),
            )
            try:
                result = await asyncio.wait_for(self.chain.ainvoke(payload), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as exc:
                raise BackendDispatchError(f"Model call timed out after {self.timeout_seconds}s") from exc
            except Exception as exc:
                raise BackendDispatchError(f"Model call failed: {exc}") from exc

            reply = chunk_text(result)
            memory.append([HumanMessage(content=user_message), AIMessage(content=reply)])
            logger.info("Chat finished: conversation_id=%s reply_len=%s", conversation_id, len(reply))
            return reply
