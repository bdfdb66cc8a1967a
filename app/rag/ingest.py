"""Ingest pipeline for indexing PDF documents.

Orchestrates:
- PDF text extraction
- Text chunking
- Removal of stale points for the same document
- Embedding generation
- Vector storage
"""
import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog

from app import config
from app.errors import IngestionError, RagError
from app.rag.chunker import TextChunker
from app.rag.embedder import Embedder
from app.rag.pdf_parser import PdfParser
from app.rag.store_qdrant import QdrantVectorStore, get_vector_store

logger = structlog.get_logger()


@dataclass
class IngestResult:
    """Outcome of ingesting a single document."""

    source: str
    chunks_ingested: int


class IngestPipeline:
    """Pipeline for ingesting PDF documents into the RAG system."""

    def __init__(
        self,
        vector_store: Optional[QdrantVectorStore] = None,
        embedder: Optional[Embedder] = None,
        chunker: Optional[TextChunker] = None,
        parser: Optional[PdfParser] = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            vector_store: Qdrant vector store (default singleton)
            embedder: Embedder (default built from config)
            chunker: Text chunker (default built from config)
            parser: PDF parser
        """
        self.vector_store = vector_store or get_vector_store()
        self.embedder = embedder or Embedder(dimension=config.VECTOR_SIZE)
        self.chunker = chunker or TextChunker()
        self.parser = parser or PdfParser()

        # Re-ingestions of one source must not interleave their delete/upsert.
        # A lock lives only while some ingestion of its source holds or awaits it.
        self._source_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = defaultdict(int)

        self.stats = self._empty_stats()

        logger.info(
            "ingest_pipeline_initialized",
            collection=self.vector_store.collection_name,
            embedding_model=self.embedder.model,
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
        )

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "files_processed": 0,
            "files_failed": 0,
            "chunks_created": 0,
            "embeddings_generated": 0,
        }

    async def ingest(
        self,
        document: bytes,
        filename: str,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> IngestResult:
        """Ingest a single PDF document, replacing any earlier version of it.

        Args:
            document: Raw PDF bytes
            filename: Document identifier stored as the chunks' source
            progress_callback: Optional embedding progress callback(done, total)

        Returns:
            IngestResult with the number of chunks stored

        Raises:
            InvalidInputError: If the document is not a readable PDF
            UpstreamError: If stale points could not be deleted
            IngestionError: If embedding or upsert failed after the delete
        """
        logger.info("ingestion_started", source=filename, size_bytes=len(document))

        # PyMuPDF and chunking are CPU-bound; keep them off the event loop
        parsed = await asyncio.to_thread(self.parser.extract_text, document, filename)
        chunks = await asyncio.to_thread(self.chunker.chunk_document, parsed.text, filename)

        async with self._source_lock(filename):
            await self.vector_store.delete_by_source(filename)

            if not chunks:
                logger.warning("no_chunks_created", source=filename, page_count=parsed.page_count)
                return IngestResult(source=filename, chunks_ingested=0)

            try:
                embeddings = await self.embedder.embed_many(
                    [chunk.content for chunk in chunks],
                    progress_callback=progress_callback,
                )
                await self.vector_store.upsert_chunks(chunks, embeddings)
            except RagError as e:
                logger.error(
                    "ingestion_failed_after_delete",
                    source=filename,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise IngestionError(
                    f"Ingestion of {filename} failed after its old chunks were removed: {e.message}",
                    source=filename,
                    provider_name=e.provider_name,
                ) from e

        self.stats["chunks_created"] += len(chunks)
        self.stats["embeddings_generated"] += len(embeddings)

        logger.info("ingestion_completed", source=filename, chunks_ingested=len(chunks))

        return IngestResult(source=filename, chunks_ingested=len(chunks))

    @asynccontextmanager
    async def _source_lock(self, source: str):
        lock = self._source_locks.setdefault(source, asyncio.Lock())
        self._lock_users[source] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[source] -= 1
            if not self._lock_users[source]:
                del self._lock_users[source]
                del self._source_locks[source]

    async def ingest_file(self, file_path: Path, progress_callback=None) -> IngestResult:
        """Ingest a PDF file from disk under its file name.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        if not file_path.exists():
            raise FileNotFoundError(f"PDF file not found: {file_path}")

        return await self.ingest(
            file_path.read_bytes(),
            file_path.name,
            progress_callback=progress_callback,
        )

    def discover_pdf_files(self, directory: Path) -> List[Path]:
        """Discover all PDF files in a directory, recursively.

        Raises:
            FileNotFoundError: If the directory doesn't exist
        """
        if not directory.exists():
            raise FileNotFoundError(f"Documents directory not found: {directory}")

        pdf_files = sorted(
            p for p in directory.rglob("*") if p.is_file() and p.suffix.lower() == ".pdf"
        )

        logger.info("pdf_files_discovered", count=len(pdf_files), directory=str(directory))
        return pdf_files

    async def ingest_directory(
        self,
        directory: Path = None,
        rebuild: bool = False,
        progress_callback=None,
    ) -> Dict[str, Any]:
        """Ingest all PDF files in a directory.

        A file that fails is counted and logged; the run continues with the
        next file.

        Args:
            directory: Directory to scan (default config.DOCUMENTS_DIR)
            rebuild: If True, drop and recreate the collection first
            progress_callback: Optional callback(current, total, file_path)

        Returns:
            Dictionary with ingestion statistics
        """
        directory = directory or config.DOCUMENTS_DIR
        logger.info("starting_ingest_directory", directory=str(directory), rebuild=rebuild)

        if rebuild:
            await self.vector_store.recreate_collection()
        else:
            await self.vector_store.ensure_collection()

        pdf_files = self.discover_pdf_files(directory)
        self.stats = self._empty_stats()

        for idx, file_path in enumerate(pdf_files, 1):
            if progress_callback:
                progress_callback(idx, len(pdf_files), file_path)

            try:
                await self.ingest_file(file_path)
                self.stats["files_processed"] += 1
            except RagError as e:
                logger.error("file_ingestion_failed", path=str(file_path), error=str(e))
                self.stats["files_failed"] += 1

        logger.info("ingest_directory_completed", stats=self.stats)

        return self.stats


# Singleton instance for convenience
_pipeline_instance: Optional[IngestPipeline] = None


def get_ingest_pipeline() -> IngestPipeline:
    """Get or create a singleton ingest pipeline."""
    global _pipeline_instance
    if _pipeline_instance is None:
        _pipeline_instance = IngestPipeline()
    return _pipeline_instance
