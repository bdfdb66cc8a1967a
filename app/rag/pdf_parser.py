"""PDF parser for extracting raw text from uploaded documents.

Handles:
- PDF signature validation
- Page-by-page text extraction with PyMuPDF
"""
import threading
from dataclasses import dataclass

import pymupdf
import structlog

from app.errors import InvalidInputError

logger = structlog.get_logger()

PDF_SIGNATURE = b"%PDF-"

# MuPDF is not thread-safe; parsing runs in worker threads
_MUPDF_LOCK = threading.Lock()


@dataclass
class ParsedPdf:
    """Text extracted from a PDF document."""

    text: str
    page_count: int


class PdfParser:
    """Extracts plain text from PDF byte buffers."""

    def extract_text(self, data: bytes, filename: str = "<upload>") -> ParsedPdf:
        """Extract the text of every page of a PDF.

        Args:
            data: Raw PDF bytes
            filename: Name used in log events

        Returns:
            ParsedPdf with the concatenated page text

        Raises:
            InvalidInputError: If the data is empty or not a readable PDF
        """
        if not data:
            raise InvalidInputError(f"Document is empty: {filename}")

        # The header may be preceded by a few junk bytes in the wild
        if PDF_SIGNATURE not in data[:1024]:
            raise InvalidInputError(f"Document is not a PDF: {filename}")

        try:
            with _MUPDF_LOCK, pymupdf.open(stream=data, filetype="pdf") as doc:
                pages = [page.get_text() for page in doc]
        except Exception as e:
            logger.warning("pdf_open_failed", filename=filename, error=str(e))
            raise InvalidInputError(f"Could not read PDF {filename}: {e}") from e

        text = "\n".join(pages)

        logger.info(
            "pdf_parsed",
            filename=filename,
            page_count=len(pages),
            text_length=len(text),
        )

        return ParsedPdf(text=text, page_count=len(pages))

