"""
Chat endpoint: streams a completion for a single user message.
"""
from typing import AsyncIterator
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
import structlog

from ..core.exceptions import ChatError
from ..schemas.chat_schemas import ChatRequest
from ..services.chat_service import ChatService
from .deps import get_chat_service

logger = structlog.get_logger()

router = APIRouter(prefix="/chat", tags=["chat"])

# Appended to the body when the chat service fails after the first fragment
STREAM_INTERRUPTED_MARKER = "\n[chat stream interrupted]\n"


@router.post("")
async def chat(
    chat_in: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service)
) -> StreamingResponse:
    """
    Stream content fragments as plain text.

    The first fragment is awaited before responding so connection failures
    surface as an error status rather than an empty body. A failure after
    that point ends the body with ``STREAM_INTERRUPTED_MARKER``.
    """
    stream = chat_service.stream_chat(chat_in.message)
    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        first = ""

    async def body() -> AsyncIterator[str]:
        try:
            if first:
                yield first
            async for fragment in stream:
                yield fragment
        except ChatError as e:
            # Headers are already sent; end the stream early
            logger.error("Chat stream interrupted", error=str(e))
            yield STREAM_INTERRUPTED_MARKER
        finally:
            # Releases the upstream response when the client disconnects
            await stream.aclose()

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")
