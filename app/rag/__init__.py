"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- PDF text extraction
- Document chunking with overlap
- Embedding generation
- Qdrant vector storage
- Semantic retrieval and streamed chat
"""
