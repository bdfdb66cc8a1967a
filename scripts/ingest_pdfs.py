#!/usr/bin/env python
"""Bulk-ingest PDF documents into the Qdrant collection.

Usage:
    python scripts/ingest_pdfs.py                      # Ingest DOCUMENTS_DIR
    python scripts/ingest_pdfs.py path/to/pdfs         # Ingest another directory
    python scripts/ingest_pdfs.py --rebuild            # Recreate the collection first
    python scripts/ingest_pdfs.py --verbose            # Show detailed progress
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import config
from app.errors import RagError
from app.rag.ingest import IngestPipeline
import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, file_path: Path):
        """Update progress."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {file_path.name[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, stats: dict):
        """Finish progress reporting."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Ingestion Complete!")
        print(f"{'=' * 60}\n")
        print(f"  Files processed:      {stats['files_processed']}")
        print(f"  Files failed:         {stats['files_failed']}")
        print(f"  Chunks created:       {stats['chunks_created']}")
        print(f"  Embeddings generated: {stats['embeddings_generated']}")
        print(f"  Time elapsed:         {elapsed_seconds:.1f}s")

        if stats["chunks_created"] > 0 and elapsed_seconds > 0:
            rate = stats["chunks_created"] / elapsed_seconds
            print(f"  Indexing rate:        {rate:.1f} chunks/sec")

        print(f"\n{'=' * 60}\n")

        if stats["files_failed"] > 0:
            print(f"Warning: {stats['files_failed']} file(s) failed to ingest.")
            print("   Check logs for details.\n")


async def main():
    """Main entry point for the ingest script."""
    parser = argparse.ArgumentParser(
        description="Ingest PDF documents into the RAG vector collection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ingest_pdfs.py                # Ingest DOCUMENTS_DIR
  python scripts/ingest_pdfs.py ~/papers       # Ingest another directory
  python scripts/ingest_pdfs.py --rebuild      # Recreate the collection first
        """,
    )

    parser.add_argument(
        "directory",
        nargs="?",
        type=Path,
        default=None,
        help=f"Directory with PDF files (default: {config.DOCUMENTS_DIR})",
    )

    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Drop and recreate the collection before ingesting",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    args = parser.parse_args()
    directory = args.directory or config.DOCUMENTS_DIR

    progress = ProgressReporter(verbose=args.verbose)

    try:
        print("\nConfiguration:")
        print(f"   Documents directory: {directory}")
        print(f"   Qdrant:              {config.QDRANT_URL} ({config.QDRANT_COLLECTION})")
        print(f"   Embedding model:     {config.EMBEDDING_MODEL}")
        print(f"   Chunk size:          {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:       {config.CHUNK_OVERLAP} chars")

        if args.rebuild:
            print("\nRebuild mode: the whole collection will be dropped!")
            print("   Press Ctrl+C within 3 seconds to cancel...")
            await asyncio.sleep(3)

        action = "Rebuilding" if args.rebuild else "Ingesting"
        progress.start(f"{action} PDF documents")

        pipeline = IngestPipeline()

        stats = await pipeline.ingest_directory(
            directory,
            rebuild=args.rebuild,
            progress_callback=progress.update,
        )

        progress.finish(stats)

        if stats["files_failed"] > 0:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nIngestion cancelled by user.\n")
        sys.exit(1)

    except FileNotFoundError as e:
        print(f"\nError: {e}\n")
        sys.exit(1)

    except RagError as e:
        print(f"\nError: {e}\n")
        logger.error("ingest_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
