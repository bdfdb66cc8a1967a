"""Exception hierarchy for the RAG service.

    RagError            (base)
    +-- InvalidInputError   (bad upload, empty question, bad chunking config)
    +-- UpstreamError       (Ollama or Qdrant unreachable / malformed answer)
    +-- IngestionError      (stale points deleted, new points not written)
"""
from typing import Optional


class RagError(Exception):
    """Base exception for all RAG service errors.

    Carries an optional ``provider_name`` naming the external service that
    caused the failure; it is prefixed in ``str()`` for log scanning,
    e.g. ``[qdrant] Search failed``.
    """

    def __init__(self, message: str = "RAG operation failed", provider_name: Optional[str] = None):
        self.message = message
        self.provider_name = provider_name
        super().__init__(message)

    def __str__(self) -> str:
        if self.provider_name:
            return f"[{self.provider_name}] {self.message}"
        return self.message


class InvalidInputError(RagError):
    """Raised for input rejected before any external call is made."""


class UpstreamError(RagError):
    """Raised when Ollama or Qdrant is unreachable or answers with garbage."""


class IngestionError(RagError):
    """Raised when ingestion fails after stale points were already deleted.

    The document is left with no points in the index; the caller is expected
    to retry the whole ingestion.
    """

    def __init__(self, message: str, source: str, provider_name: Optional[str] = None):
        self.source = source
        super().__init__(message, provider_name=provider_name)
