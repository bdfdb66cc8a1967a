"""Embedding generation through the Ollama embeddings endpoint.

Ollama has no batch endpoint, so batches are embedded one text at a time,
sequentially, which also keeps the load on the embedding backend predictable.
"""
from typing import Callable, List, Optional

import structlog

from app import config
from app.errors import UpstreamError
from app.llm_client import OllamaClient, ollama_client

logger = structlog.get_logger()

PROGRESS_EVERY = 10


class Embedder:
    """Turns text into fixed-dimension embedding vectors."""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        model: str = None,
        dimension: Optional[int] = None,
    ):
        """Initialize the embedder.

        Args:
            client: Ollama client (defaults to the global client)
            model: Embedding model name (default from config)
            dimension: Expected vector length; None disables the check
        """
        self.client = client or ollama_client
        self.model = model or config.EMBEDDING_MODEL
        self.dimension = dimension

    async def embed_one(self, text: str) -> List[float]:
        """Embed a single text.

        Raises:
            UpstreamError: If Ollama is unreachable or returns a malformed embedding
        """
        response = await self.client.embeddings(prompt=text, model=self.model)
        embedding = response.get("embedding") if isinstance(response, dict) else None

        if not embedding or not isinstance(embedding, list):
            logger.error("empty_embedding_returned", model=self.model, text_preview=text[:100])
            raise UpstreamError("Empty embedding returned", provider_name="ollama")

        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in embedding):
            raise UpstreamError("Embedding contains non-numeric values", provider_name="ollama")

        if self.dimension is not None and len(embedding) != self.dimension:
            logger.error(
                "embedding_dimension_mismatch",
                model=self.model,
                expected=self.dimension,
                got=len(embedding),
            )
            raise UpstreamError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(embedding)}",
                provider_name="ollama",
            )

        return [float(v) for v in embedding]

    async def embed_many(
        self,
        texts: List[str],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[List[float]]:
        """Embed texts one by one, preserving input order.

        Any failure aborts the whole batch; no partial result is returned.

        Args:
            texts: Texts to embed
            progress_callback: Optional callback(done, total) after each text

        Raises:
            UpstreamError: If any single embedding fails
        """
        total = len(texts)
        logger.info("embedding_batch_started", model=self.model, total=total)

        embeddings = []
        for i, text in enumerate(texts):
            if i % PROGRESS_EVERY == 0:
                logger.info("embedding_progress", done=i, total=total)

            embeddings.append(await self.embed_one(text))

            if progress_callback:
                progress_callback(i + 1, total)

        logger.info("embedding_batch_completed", model=self.model, total=len(embeddings))
        return embeddings
