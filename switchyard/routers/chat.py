"""
Chat API router.
POST /chat          buffered completion, returns {"content": ...}
POST /chat/stream   newline-delimited JSON stream of StreamEvents;
                    a failure mid-stream is written as {"error": {...}}
"""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import suppress
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, PositiveInt

from switchyard.agent.manager import CompletionManager
from switchyard.errors import AIError, ErrorCode
from switchyard.models.base import CompletionConfig, Message, RequestOptions, StreamEvent
from switchyard.permissions.engine import PermissionContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

MISSING_CHAT_FIELDS = "Missing required fields: provider, messages, config"


class ChatRequest(BaseModel):
    provider: str = ""
    messages: list[Message] = Field(default_factory=list)
    config: Optional[CompletionConfig] = None
    permissions: Optional[PermissionContext] = None
    max_rounds: Optional[PositiveInt] = None

    def request_options(self) -> RequestOptions:
        return RequestOptions(
            permissions=self.permissions or PermissionContext(),
            max_rounds=self.max_rounds,
        )


def get_manager(request: Request) -> CompletionManager:
    return request.app.state.manager


def _require_fields(body: ChatRequest) -> CompletionConfig:
    if not body.provider or not body.messages or body.config is None:
        raise AIError(ErrorCode.INVALID_REQUEST, MISSING_CHAT_FIELDS)
    return body.config


def error_line(error: BaseException) -> str:
    return json.dumps({"error": AIError.from_unknown(error).to_api_error()}) + "\n"


@router.post("/chat")
async def chat(body: ChatRequest, manager: CompletionManager = Depends(get_manager)):
    config = _require_fields(body)
    content = await manager.send_message(body.provider, body.messages, config, options=body.request_options())
    return {"content": content}


@router.post("/chat/stream")
async def chat_stream(body: ChatRequest, manager: CompletionManager = Depends(get_manager)):
    config = _require_fields(body)
    queue: asyncio.Queue[Optional[str]] = asyncio.Queue()

    async def on_chunk(event: StreamEvent) -> None:
        await queue.put(event.model_dump_json(exclude_none=True) + "\n")

    async def run() -> None:
        try:
            await manager.send_message(body.provider, body.messages, config, on_chunk, body.request_options())
        except Exception as e:
            logger.warning("Streaming chat with %s failed: %s", body.provider, e)
            await queue.put(error_line(e))
        finally:
            await queue.put(None)

    async def ndjson() -> AsyncIterator[str]:
        task = asyncio.create_task(run())
        try:
            while True:
                line = await queue.get()
                if line is None:
                    break
                yield line
        finally:
            if not task.done():
                task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    return StreamingResponse(ndjson(), media_type="application/x-ndjson")
