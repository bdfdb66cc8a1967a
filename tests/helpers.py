"""Test helpers: PDF builder and fakes for Ollama."""
import textwrap
from typing import Dict, List, Optional

import pymupdf

from app.errors import UpstreamError

VECTOR_SIZE = 4


def make_pdf(text: str = "") -> bytes:
    """Build an in-memory PDF containing the given text."""
    doc = pymupdf.open()
    lines = textwrap.wrap(text, 80)
    lines_per_page = 45

    if not lines:
        doc.new_page()
    for i in range(0, len(lines), lines_per_page):
        page = doc.new_page()
        page.insert_text((72, 72), "\n".join(lines[i:i + lines_per_page]), fontsize=10)

    data = doc.tobytes()
    doc.close()
    return data


def sample_text(sentences: int = 40) -> str:
    return " ".join(
        f"Sentence {i:02d} explains one part of the retrieval pipeline." for i in range(sentences)
    )


class FakeEmbedder:
    """Deterministic embedder; fixed vectors can be assigned per text."""

    model = "fake-embed"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, fail_on: Optional[str] = None):
        self.vectors = vectors or {}
        self.fail_on = fail_on
        self.calls: List[str] = []

    async def embed_one(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise UpstreamError("embedding backend down", provider_name="ollama")
        if text in self.vectors:
            return self.vectors[text]
        return [
            float(len(text) % 7 + 1),
            float(sum(map(ord, text)) % 11 + 1),
            1.0,
            0.5,
        ]

    async def embed_many(self, texts, progress_callback=None):
        embeddings = []
        for i, text in enumerate(texts):
            embeddings.append(await self.embed_one(text))
            if progress_callback:
                progress_callback(i + 1, len(texts))
        return embeddings


class FakeLLMClient:
    """Ollama stand-in that streams canned increments and records calls."""

    def __init__(self, increments: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.increments = increments if increments is not None else ["Hello", " world"]
        self.error = error
        self.calls: List[list] = []
        self.closed = False

    async def chat_stream(self, messages, model=None, temperature=None):
        self.calls.append(messages)
        try:
            for text in self.increments:
                yield text
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


