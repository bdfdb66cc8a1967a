"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DOCUMENTS_DIR = Path(os.getenv("DOCUMENTS_DIR", str(BASE_DIR / "documents")))

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "120.0"))
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama3:8b")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "nomic-embed-text")

# Qdrant configuration
QDRANT_URL = os.getenv("QDRANT_URL", "http://localhost:6333")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY") or None
QDRANT_COLLECTION = os.getenv("QDRANT_COLLECTION", "rag_documents")
VECTOR_SIZE = int(os.getenv("VECTOR_SIZE", "768"))  # nomic-embed-text

# RAG parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "500"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "50"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "5"))
SCORE_THRESHOLD = float(os.getenv("SCORE_THRESHOLD", "0.5"))  # cosine similarity

# Request limits
MAX_QUESTION_LENGTH = int(os.getenv("MAX_QUESTION_LENGTH", "2000"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))

# Canned chat responses
NO_RESULTS_MESSAGE = os.getenv(
    "NO_RESULTS_MESSAGE",
    "Nie znalazłem odpowiednich informacji w dokumentach.",
)
UPSTREAM_ERROR_MESSAGE = os.getenv(
    "UPSTREAM_ERROR_MESSAGE",
    "The answer could not be generated because a backing service is unavailable. "
    "Please try again later.",
)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
