"""Retriever for semantic search over indexed documents.

Handles:
- Query embedding generation
- Qdrant similarity search
- Context formatting for the chat prompt
"""
from typing import List, Optional

import structlog

from app import config
from app.rag.embedder import Embedder
from app.rag.store_qdrant import QdrantVectorStore, SearchResult, get_vector_store

logger = structlog.get_logger()


class Retriever:
    """Semantic retriever for RAG pipeline."""

    def __init__(
        self,
        vector_store: Optional[QdrantVectorStore] = None,
        embedder: Optional[Embedder] = None,
        top_k: int = None,
        score_threshold: float = None,
    ):
        """Initialize the retriever.

        Args:
            vector_store: Qdrant vector store (default singleton)
            embedder: Embedder for queries (default built from config)
            top_k: Number of results to retrieve (default from config)
            score_threshold: Minimum similarity score (default from config)
        """
        self.vector_store = vector_store or get_vector_store()
        self.embedder = embedder or Embedder(dimension=config.VECTOR_SIZE)
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        self.score_threshold = (
            config.SCORE_THRESHOLD if score_threshold is None else score_threshold
        )

        logger.info(
            "retriever_initialized",
            embedding_model=self.embedder.model,
            top_k=self.top_k,
            score_threshold=self.score_threshold,
        )

    async def retrieve(self, query: str) -> List[SearchResult]:
        """Retrieve chunks relevant to a query, best first.

        Raises:
            UpstreamError: If embedding or search fails
        """
        logger.info("retrieval_started", query_length=len(query), top_k=self.top_k)

        query_embedding = await self.embedder.embed_one(query)
        results = await self.vector_store.search(
            query_embedding,
            top_k=self.top_k,
            score_threshold=self.score_threshold,
        )

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            results_returned=len(results),
            sources=sorted({r.source for r in results}),
        )

        return results

    @staticmethod
    def format_context(results: List[SearchResult]) -> str:
        """Label retrieved chunks as numbered fragments for the LLM prompt."""
        return "\n\n".join(
            f"[Fragment {i}] {result.content}" for i, result in enumerate(results, 1)
        )
