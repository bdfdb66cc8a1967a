"""Qdrant vector store for semantic search.

Handles:
- Idempotent collection creation
- Deterministic point ids per (source, chunk index)
- Upsert, similarity search and per-source deletion
- Collection statistics
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from qdrant_client import AsyncQdrantClient, models
from qdrant_client.http.exceptions import UnexpectedResponse

from app import config
from app.errors import UpstreamError
from app.rag.chunker import DocumentChunk

logger = structlog.get_logger()

_DISTANCES = {
    "cosine": models.Distance.COSINE,
    "dot": models.Distance.DOT,
    "euclid": models.Distance.EUCLID,
    "manhattan": models.Distance.MANHATTAN,
}


def _utf16_units(text: str):
    for ch in text:
        code = ord(ch)
        if code > 0xFFFF:
            code -= 0x10000
            yield 0xD800 + (code >> 10)
            yield 0xDC00 + (code & 0x3FF)
        else:
            yield code


def point_id(source: str, chunk_index: int) -> int:
    """Derive a stable non-negative point id for a chunk.

    31-multiplier rolling hash over the UTF-16 code units of
    ``"{source}_{chunk_index}"``, folded into a signed 32-bit accumulator
    and taken in absolute value. Collisions are possible but rare.
    """
    h = 0
    for unit in _utf16_units(f"{source}_{chunk_index}"):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


@dataclass
class IndexedPoint:
    """A chunk vector plus the payload stored alongside it."""

    id: int
    vector: List[float]
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk, vector: List[float]) -> "IndexedPoint":
        return cls(
            id=point_id(chunk.source, chunk.chunk_index),
            vector=vector,
            payload={
                "content": chunk.content,
                "source": chunk.source,
                "chunkIndex": chunk.chunk_index,
            },
        )


@dataclass
class SearchResult:
    """A single retrieved chunk with its similarity score."""

    content: str
    score: float
    source: str
    chunk_index: int

    @property
    def metadata(self) -> Dict[str, Any]:
        return {"source": self.source, "chunkIndex": self.chunk_index}


class QdrantVectorStore:
    """Qdrant-backed vector store holding chunks of every ingested document."""

    def __init__(
        self,
        client: Optional[AsyncQdrantClient] = None,
        collection_name: str = None,
        vector_size: int = None,
        distance: str = "cosine",
    ):
        """Initialize the Qdrant vector store.

        Args:
            client: Qdrant client (built from config.QDRANT_URL if not provided)
            collection_name: Collection holding all chunks (default from config)
            vector_size: Embedding dimension (default from config)
            distance: Distance metric name (cosine, dot, euclid, manhattan)
        """
        self.client = client or AsyncQdrantClient(
            url=config.QDRANT_URL, api_key=config.QDRANT_API_KEY
        )
        self.collection_name = collection_name or config.QDRANT_COLLECTION
        self.vector_size = vector_size or config.VECTOR_SIZE
        self.distance = distance

        logger.info(
            "qdrant_store_initialized",
            collection=self.collection_name,
            vector_size=self.vector_size,
            distance=self.distance,
        )

    async def ensure_collection(
        self,
        name: str = None,
        vector_size: int = None,
        distance: str = None,
    ) -> bool:
        """Create the collection unless it already exists.

        Returns:
            True if the collection was created, False if it already existed

        Raises:
            UpstreamError: If Qdrant is unreachable
        """
        name = name or self.collection_name
        vector_size = vector_size or self.vector_size
        distance = (distance or self.distance).lower()

        if distance not in _DISTANCES:
            raise ValueError(f"Unsupported distance metric: {distance}")

        try:
            response = await self.client.get_collections()
            if any(c.name == name for c in response.collections):
                logger.info("qdrant_collection_exists", collection=name)
                return False

            logger.info("creating_qdrant_collection", collection=name, vector_size=vector_size)
            await self.client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(
                    size=vector_size,
                    distance=_DISTANCES[distance],
                ),
            )
        except UnexpectedResponse as e:
            if e.status_code == 409:
                # Created concurrently by another process
                logger.info("qdrant_collection_exists", collection=name)
                return False
            raise self._upstream_error("ensure_collection", e) from e
        except Exception as e:
            raise self._upstream_error("ensure_collection", e) from e

        logger.info("qdrant_collection_created", collection=name)
        return True

    async def recreate_collection(self) -> None:
        """Drop the collection (if present) and create it empty."""
        logger.warning("recreating_qdrant_collection", collection=self.collection_name)
        try:
            await self.client.delete_collection(collection_name=self.collection_name)
        except UnexpectedResponse as e:
            if e.status_code != 404:
                raise self._upstream_error("recreate_collection", e) from e
        except Exception as e:
            raise self._upstream_error("recreate_collection", e) from e
        await self.ensure_collection()

    async def upsert(self, points: List[IndexedPoint]) -> None:
        """Write points, overwriting any point with the same id.

        Raises:
            UpstreamError: If the write fails (nothing is retried client-side)
        """
        if not points:
            return

        try:
            await self.client.upsert(
                collection_name=self.collection_name,
                points=[
                    models.PointStruct(id=p.id, vector=p.vector, payload=p.payload)
                    for p in points
                ],
                wait=True,
            )
        except Exception as e:
            raise self._upstream_error("upsert", e) from e

        logger.info("vectors_upserted", collection=self.collection_name, count=len(points))

    async def upsert_chunks(
        self, chunks: List[DocumentChunk], embeddings: List[List[float]]
    ) -> None:
        """Upsert chunks paired positionally with their embeddings.

        Raises:
            ValueError: If the counts differ
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Chunk/embedding count mismatch: {len(chunks)} chunks, "
                f"{len(embeddings)} embeddings"
            )

        await self.upsert(
            [IndexedPoint.from_chunk(chunk, vector) for chunk, vector in zip(chunks, embeddings)]
        )

    async def search(
        self,
        query_vector: List[float],
        top_k: int = None,
        score_threshold: float = None,
    ) -> List[SearchResult]:
        """Search for the chunks most similar to a query vector.

        Args:
            query_vector: Query embedding
            top_k: Maximum number of results (default from config)
            score_threshold: Minimum similarity score (default from config)

        Returns:
            Results sorted by descending score; empty if nothing clears the threshold
        """
        if top_k is None:
            top_k = config.RETRIEVAL_TOP_K
        if score_threshold is None:
            score_threshold = config.SCORE_THRESHOLD

        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                limit=top_k,
                score_threshold=score_threshold,
                with_payload=True,
            )
        except Exception as e:
            raise self._upstream_error("search", e) from e

        results = []
        for point in response.points:
            payload = point.payload or {}
            results.append(
                SearchResult(
                    content=payload.get("content", ""),
                    score=point.score,
                    source=payload.get("source", ""),
                    chunk_index=payload.get("chunkIndex", 0),
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)

        logger.info(
            "vector_search_completed",
            top_k=top_k,
            score_threshold=score_threshold,
            results_found=len(results),
            top_score=results[0].score if results else None,
        )

        return results

    async def delete_by_source(self, source: str) -> None:
        """Remove every point whose payload 'source' matches."""
        try:
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=models.FilterSelector(
                    filter=models.Filter(
                        must=[
                            models.FieldCondition(
                                key="source",
                                match=models.MatchValue(value=source),
                            )
                        ]
                    )
                ),
                wait=True,
            )
        except Exception as e:
            raise self._upstream_error("delete_by_source", e) from e

        logger.info("vectors_deleted_for_source", collection=self.collection_name, source=source)

    async def collection_info(self) -> Dict[str, Any]:
        """Get statistics about the collection."""
        try:
            info = await self.client.get_collection(collection_name=self.collection_name)
        except Exception as e:
            raise self._upstream_error("collection_info", e) from e

        return {
            "collection_name": self.collection_name,
            "points_count": info.points_count or info.indexed_vectors_count or 0,
            "status": getattr(info.status, "value", info.status),
        }

    async def close(self) -> None:
        await self.client.close()

    def _upstream_error(self, operation: str, error: Exception) -> UpstreamError:
        logger.error(
            "qdrant_operation_failed",
            operation=operation,
            collection=self.collection_name,
            error=str(error),
            error_type=type(error).__name__,
        )
        return UpstreamError(f"{operation} failed: {error}", provider_name="qdrant")


# Singleton instance for convenience
_store_instance: Optional[QdrantVectorStore] = None


def get_vector_store() -> QdrantVectorStore:
    """Get or create a singleton vector store instance."""
    global _store_instance
    if _store_instance is None:
        _store_instance = QdrantVectorStore()
    return _store_instance
