#!/usr/bin/env python
"""Validate setup - check dependencies, configuration, Ollama and Qdrant."""
import sys
import asyncio
from pathlib import Path

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"

def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")

def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")

def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")

def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")

def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

async def main():
    print_section("PDF RAG Service - Setup Validation")

    errors = []
    warnings = []

    # 1. Python version check
    print_section("1. Python Environment")
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print_info(f"Python version: {python_version}")
    if sys.version_info >= (3, 10):
        print_success("Python version >= 3.10")
    else:
        print_error("Python version < 3.10 (required)")
        errors.append("Python version too old")

    in_venv = hasattr(sys, 'real_prefix') or (hasattr(sys, 'base_prefix') and sys.base_prefix != sys.prefix)
    if in_venv:
        print_success("Running in virtual environment")
    else:
        print_warning("Not running in virtual environment (recommended)")
        warnings.append("Not in venv")

    # 2. Import core dependencies
    print_section("2. Core Dependencies")

    dependencies = [
        ("quart", "Quart web framework"),
        ("ollama", "Ollama Python client"),
        ("httpx", "HTTP client"),
        ("qdrant_client", "Qdrant client"),
        ("pymupdf", "PyMuPDF PDF reader"),
        ("pydantic", "Data validation"),
        ("structlog", "Structured logging"),
    ]

    for module_name, description in dependencies:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")

    # 3. Test configuration
    print_section("3. Configuration")

    try:
        sys.path.insert(0, str(Path(__file__).parent.parent))
        from app import config
        from app.rag.chunker import validate_chunking

        print_success("Config loaded successfully")
        print_info(f"  Chat model: {config.CHAT_MODEL}")
        print_info(f"  Embedding model: {config.EMBEDDING_MODEL}")
        print_info(f"  Ollama URL: {config.OLLAMA_BASE_URL}")
        print_info(f"  Qdrant URL: {config.QDRANT_URL}")
        print_info(f"  Collection: {config.QDRANT_COLLECTION} (dim={config.VECTOR_SIZE})")
        print_info(f"  Chunking: {config.CHUNK_SIZE} chars, overlap {config.CHUNK_OVERLAP}")

        validate_chunking(config.CHUNK_SIZE, config.CHUNK_OVERLAP)
        print_success("Chunking parameters valid")

    except Exception as e:
        print_error(f"Invalid config: {e}")
        errors.append("Config invalid")
        return errors, warnings

    # 4. Test Ollama connection
    print_section("4. Ollama Service")

    try:
        import httpx
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(f"{config.OLLAMA_BASE_URL}/api/tags")
            response.raise_for_status()
            data = response.json()

            print_success(f"Ollama service running at {config.OLLAMA_BASE_URL}")

            models = {m['name'] for m in data.get('models', [])}
            print_info(f"Found {len(models)} models installed")

            for label, model in (("Chat", config.CHAT_MODEL), ("Embedding", config.EMBEDDING_MODEL)):
                if model in models or f"{model}:latest" in models:
                    print_success(f"{label} model available: {model}")
                else:
                    print_error(f"{label} model missing: {model}")
                    print_info(f"  Run: ollama pull {model}")
                    errors.append(f"Missing {label.lower()} model: {model}")

    except httpx.ConnectError:
        print_error("Cannot connect to Ollama service")
        print_info("  Make sure Ollama is running: ollama serve")
        errors.append("Ollama not running")
    except Exception as e:
        print_error(f"Ollama check failed: {e}")
        errors.append(f"Ollama error: {e}")

    # 5. Test embedding dimension against the collection config
    print_section("5. Ollama Embedding Test")

    try:
        import ollama
        client = ollama.Client(host=config.OLLAMA_BASE_URL)
        response = await asyncio.to_thread(
            client.embeddings,
            model=config.EMBEDDING_MODEL,
            prompt="test"
        )

        dimension = len(response['embedding'])
        if dimension == config.VECTOR_SIZE:
            print_success(f"Embedding dimension matches VECTOR_SIZE ({dimension})")
        else:
            print_error(f"Embedding dimension {dimension} != VECTOR_SIZE {config.VECTOR_SIZE}")
            errors.append("Embedding dimension mismatch")

    except Exception as e:
        print_error(f"Ollama embedding test failed: {e}")
        errors.append(f"Embedding test failed: {e}")

    # 6. Test Qdrant connection
    print_section("6. Qdrant Service")

    try:
        from qdrant_client import AsyncQdrantClient
        qdrant = AsyncQdrantClient(url=config.QDRANT_URL, api_key=config.QDRANT_API_KEY)
        try:
            collections = {c.name for c in (await qdrant.get_collections()).collections}
        finally:
            await qdrant.close()

        print_success(f"Qdrant running at {config.QDRANT_URL}")
        if config.QDRANT_COLLECTION in collections:
            print_success(f"Collection exists: {config.QDRANT_COLLECTION}")
        else:
            print_warning(f"Collection {config.QDRANT_COLLECTION} missing (created on startup)")
            warnings.append("Collection not created yet")

    except Exception as e:
        print_error(f"Qdrant check failed: {e}")
        print_info("  Run: docker run -p 6333:6333 qdrant/qdrant")
        errors.append("Qdrant not reachable")

    # 7. Summary
    print_section("Summary")

    if not errors:
        print_success("All checks passed! ✨")
        print_info("  Start the API: python -m app.main")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"\nFound {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings

if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)
