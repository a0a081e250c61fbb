from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
import logging
from pydantic import BaseModel, Field

from assistant import Assistant, BackendDispatchError, GuardrailRejection, build_assistant
from config.settings import get_settings


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("aicodehelper")


class ChatRequest(BaseModel):
    conversation_id: int = Field(..., description="Identifier scoping the conversation memory")
    message: str = Field(..., min_length=1, description="User's latest message")


def _get_assistant(request: Request) -> Assistant:
    return request.app.state.assistant


def _rejection_response(exc: GuardrailRejection) -> JSONResponse:
    return JSONResponse(status_code=400, content={"rejected": True, "reason": exc.reason})


def create_app(assistant: Optional[Assistant] = None) -> FastAPI:
    """Build the HTTP app. Without an injected assistant, one is built from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup fails here if the system prompt, word list or API key is unusable.
        app.state.assistant = assistant if assistant is not None else build_assistant(get_settings())
        yield

    app = FastAPI(title="AI Code Helper Assistant", version="1.0.0", lifespan=lifespan)

    # CORS: allow local frontend during development
    settings = get_settings()
    if settings.app_env.lower() in {"dev", "development", "local"}:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.post("/agent/chat/stream")
    async def chat_stream(req: ChatRequest, request: Request):
        assistant_ = _get_assistant(request)
        logger.info(
            "Incoming stream chat: conversation_id=%s query_len=%s",
            req.conversation_id,
            len(req.message),
        )
        try:
            stream = assistant_.chat_stream(req.conversation_id, req.message)
        except GuardrailRejection as exc:
            logger.warning("Message rejected: conversation_id=%s reason=%s", req.conversation_id, exc.reason)
            return _rejection_response(exc)

        async def body() -> AsyncIterator[str]:
            try:
                async for fragment in stream:
                    yield fragment
            except BackendDispatchError:
                logger.exception("Stream chat failed: conversation_id=%s", req.conversation_id)
                raise
            finally:
                await stream.aclose()

        return StreamingResponse(body(), media_type="text/plain; charset=utf-8")

    @app.post("/agent/chat")
    async def chat(req: ChatRequest, request: Request) -> Any:
        assistant_ = _get_assistant(request)
        logger.info(
            "Incoming chat: conversation_id=%s query_len=%s",
            req.conversation_id,
            len(req.message),
        )
        try:
            output_text = await assistant_.chat(req.conversation_id, req.message)
        except GuardrailRejection as exc:
            logger.warning("Message rejected: conversation_id=%s reason=%s", req.conversation_id, exc.reason)
            return _rejection_response(exc)
        except BackendDispatchError as e:
            logger.exception("Chat processing failed: %s", e)
            raise HTTPException(status_code=502, detail=str(e))

        logger.info("Model responded: %s chars", len(output_text))
        return {"ai_response": output_text}

    @app.get("/agent/conversations/{conversation_id}/history")
    async def history(conversation_id: int, request: Request) -> Dict[str, Any]:
        return {
            "conversation_id": conversation_id,
            "messages": _get_assistant(request).history(conversation_id),
        }

    @app.delete("/agent/conversations/{conversation_id}")
    async def reset(conversation_id: int, request: Request) -> Dict[str, Any]:
        cleared = _get_assistant(request).reset(conversation_id)
        logger.info("Conversation reset: conversation_id=%s cleared=%s", conversation_id, cleared)
        return {"cleared": cleared}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
