"""
Chat completion streaming against a local Ollama-compatible service.
Independent of the user store: no repository or codec access.
"""
import json
from typing import AsyncIterator, Optional
import httpx
import structlog

from ..core.config import Settings
from ..core.exceptions import ChatError

logger = structlog.get_logger()


class ChatService:
    """Streams chat completions for a single user message."""

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.model = model
        self.http_client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatService":
        return cls(
            base_url=settings.OLLAMA_BASE_URL,
            model=settings.CHAT_MODEL,
            timeout=settings.CHAT_TIMEOUT_SECONDS
        )

    async def stream_chat(self, message: str) -> AsyncIterator[str]:
        """
        Send one user message and yield content fragments as they arrive.

        The returned iterator is lazy, finite and cannot be restarted.

        Args:
            message: User message content

        Yields:
            Non-empty content fragments in arrival order

        Raises:
            ChatError: On transport failure, HTTP error status or error payload
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": message}],
            "stream": True
        }
        fragment_count = 0

        try:
            async with self.http_client.stream("POST", "/api/chat", json=payload) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode("utf-8", "replace")
                    logger.error(
                        "Chat request rejected",
                        status_code=response.status_code,
                        body=body[:200]
                    )
                    raise ChatError(f"Chat service returned HTTP {response.status_code}")

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError as e:
                        raise ChatError("Chat service sent malformed data") from e

                    if chunk.get("error"):
                        logger.error("Chat service reported an error", error=chunk["error"])
                        raise ChatError(str(chunk["error"]))

                    content = (chunk.get("message") or {}).get("content", "")
                    if content:
                        fragment_count += 1
                        yield content

                    if chunk.get("done"):
                        break

        except httpx.TimeoutException as e:
            logger.error("Chat request timed out", model=self.model)
            raise ChatError("Chat service timed out") from e
        except httpx.HTTPError as e:
            logger.error("Chat request failed", model=self.model, error=str(e))
            raise ChatError("Chat service is unreachable") from e

        logger.debug("Chat stream finished", model=self.model, fragment_count=fragment_count)

    async def cleanup(self) -> None:
        """Close the HTTP client."""
        await self.http_client.aclose()
        logger.info("Chat service cleanup completed")
