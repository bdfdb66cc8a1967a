"""Unit tests for the sequential Ollama embedder."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.errors import UpstreamError
from app.rag.embedder import Embedder


def _client(*responses) -> MagicMock:
    client = MagicMock()
    client.embeddings = AsyncMock(side_effect=list(responses))
    return client


class TestEmbedOne:
    @pytest.mark.asyncio
    async def test_returns_vector(self):
        client = _client({"embedding": [0.1, 0.2, 3]})
        embedder = Embedder(client=client, model="nomic-embed-text")

        assert await embedder.embed_one("hello") == [0.1, 0.2, 3.0]
        client.embeddings.assert_awaited_once_with(prompt="hello", model="nomic-embed-text")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        {},
        {"embedding": []},
        {"embedding": None},
        {"embedding": "0.1,0.2"},
        {"embedding": [0.1, "x"]},
    ])
    async def test_malformed_response_raises(self, response):
        embedder = Embedder(client=_client(response), model="m")

        with pytest.raises(UpstreamError):
            await embedder.embed_one("hello")

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self):
        embedder = Embedder(client=_client({"embedding": [0.1, 0.2]}), model="m", dimension=768)

        with pytest.raises(UpstreamError, match="dimension"):
            await embedder.embed_one("hello")

    @pytest.mark.asyncio
    async def test_unreachable_backend_propagates(self):
        client = MagicMock()
        client.embeddings = AsyncMock(side_effect=UpstreamError("down", provider_name="ollama"))
        embedder = Embedder(client=client, model="m")

        with pytest.raises(UpstreamError):
            await embedder.embed_one("hello")


class TestEmbedMany:
    @pytest.mark.asyncio
    async def test_one_request_per_text_in_order(self):
        texts = [f"text {i}" for i in range(23)]
        client = _client(*[{"embedding": [float(i), 1.0]} for i in range(23)])
        embedder = Embedder(client=client, model="m")

        vectors = await embedder.embed_many(texts)

        assert vectors == [[float(i), 1.0] for i in range(23)]
        assert [c.kwargs["prompt"] for c in client.embeddings.await_args_list] == texts

    @pytest.mark.asyncio
    async def test_progress_callback(self):
        client = _client(*[{"embedding": [1.0]} for _ in range(3)])
        progress = []

        await Embedder(client=client, model="m").embed_many(
            ["a", "b", "c"], progress_callback=lambda done, total: progress.append((done, total))
        )

        assert progress == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_failure_aborts_the_batch(self):
        client = _client(
            {"embedding": [1.0]},
            UpstreamError("down", provider_name="ollama"),
            {"embedding": [3.0]},
        )
        embedder = Embedder(client=client, model="m")

        with pytest.raises(UpstreamError):
            await embedder.embed_many(["a", "b", "c"])

        assert client.embeddings.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        client = _client()
        assert await Embedder(client=client, model="m").embed_many([]) == []
        client.embeddings.assert_not_called()
