"""Ollama LLM client wrapper with error handling."""
import json
from typing import AsyncIterator, Dict, List, Optional

import httpx
import structlog

from app import config
from app.errors import UpstreamError

logger = structlog.get_logger()


class OllamaClient:
    """Async client for interacting with Ollama API."""

    def __init__(
        self,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            timeout: Request timeout in seconds (defaults to config.OLLAMA_TIMEOUT)
            transport: Optional httpx transport (used to fake Ollama in tests)
        """
        self.base_url = (base_url or config.OLLAMA_BASE_URL).rstrip("/")
        self.timeout = timeout or config.OLLAMA_TIMEOUT
        self.transport = transport

    def _client(self, timeout: float = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self.transport,
        )

    async def chat_stream(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Stream a chat completion, yielding text increments as they arrive.

        Ollama answers with one JSON object per line. Lines that cannot be
        parsed are logged and skipped so one bad increment does not abort an
        otherwise healthy stream. Closing the generator early closes the
        underlying HTTP response.

        Raises:
            UpstreamError: On connection/HTTP errors or an 'error' line
        """
        model = model or config.CHAT_MODEL
        payload = self._chat_payload(messages, model, stream=True, temperature=temperature)

        logger.info(
            "ollama_chat_stream_request",
            model=model,
            message_count=len(messages),
        )

        increments = 0
        try:
            async with self._client() as client:
                async with client.stream("POST", "/api/chat", json=payload) as response:
                    response.raise_for_status()

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue

                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError:
                            logger.warning("ollama_stream_line_skipped", line_preview=line[:100])
                            continue

                        if not isinstance(data, dict):
                            logger.warning("ollama_stream_line_skipped", line_preview=line[:100])
                            continue

                        if data.get("error"):
                            raise UpstreamError(
                                f"Chat stream failed: {data['error']}", provider_name="ollama"
                            )

                        message = data.get("message")
                        text = message.get("content") if isinstance(message, dict) else None
                        if text:
                            increments += 1
                            yield text

                        if data.get("done"):
                            break

        except httpx.HTTPError as e:
            logger.error("ollama_chat_stream_error", error=str(e), base_url=self.base_url)
            raise UpstreamError(f"Chat stream failed: {e}", provider_name="ollama") from e

        logger.info("ollama_chat_stream_completed", model=model, increments=increments)

    async def embeddings(
        self,
        prompt: str,
        model: str = None,
    ) -> Dict:
        """Generate embeddings for a text prompt.

        Args:
            prompt: Text to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            Response dict with 'embedding' list

        Raises:
            UpstreamError: If Ollama is unavailable or answers with an error
        """
        model = model or config.EMBEDDING_MODEL

        payload = {
            "model": model,
            "prompt": prompt,
        }

        try:
            async with self._client() as client:
                logger.debug(
                    "ollama_embedding_request",
                    model=model,
                    prompt_length=len(prompt),
                )

                response = await client.post("/api/embeddings", json=payload)
                response.raise_for_status()
                data = response.json()

                logger.debug(
                    "ollama_embedding_response",
                    model=model,
                    dimension=len(data.get("embedding") or []) if isinstance(data, dict) else None,
                )

                return data

        except httpx.HTTPError as e:
            logger.error("ollama_embedding_error", error=str(e), base_url=self.base_url)
            raise UpstreamError(f"Embedding request failed: {e}", provider_name="ollama") from e
        except ValueError as e:
            logger.error("ollama_embedding_malformed", error=str(e))
            raise UpstreamError("Embedding response is not valid JSON", provider_name="ollama") from e

    async def list_models(self) -> List[str]:
        """List all available Ollama models.

        Raises:
            UpstreamError: If Ollama is unavailable
        """
        try:
            async with self._client(timeout=5.0) as client:
                response = await client.get("/api/tags")
                response.raise_for_status()
                data = response.json()
                return [m["name"] for m in data.get("models", [])]
        except httpx.HTTPError as e:
            logger.error("ollama_list_models_error", error=str(e))
            raise UpstreamError(f"Listing models failed: {e}", provider_name="ollama") from e

    @staticmethod
    def _chat_payload(messages, model, stream, temperature) -> Dict:
        payload = {
            "model": model,
            "messages": messages,
            "stream": stream,
        }
        if temperature is not None:
            payload["options"] = {"temperature": temperature}
        return payload


# Global client instance
ollama_client = OllamaClient()
