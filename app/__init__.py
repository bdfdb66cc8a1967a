"""PDF question-answering service built on Ollama and Qdrant."""
