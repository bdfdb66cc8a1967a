"""Unit tests for overlapping character-based chunking."""
import pytest

from app.errors import InvalidInputError
from app.rag.chunker import TextChunker, chunk_text, normalize_whitespace
from tests.helpers import sample_text


def _unique_chars_text(words: int = 60) -> str:
    """Words of one to four characters, no character repeated except the space."""
    chars = iter(chr(0x4E00 + i) for i in range(words * 4))
    return " ".join("".join(next(chars) for _ in range(1 + i % 4)) for i in range(words))


def _covered_positions(text: str, chunks) -> set:
    covered = set()
    previous = -1
    for chunk in chunks:
        position = text.find(chunk)
        assert position >= previous
        covered.update(range(position, position + len(chunk)))
        previous = position
    return covered


def _tokens_text(count: int = 200) -> str:
    """Text of unique short tokens with a period every seventh token."""
    return " ".join(f"t{i:03d}." if i % 7 == 6 else f"t{i:03d}" for i in range(count))


class TestBasicChunking:
    def test_short_text_yields_single_chunk(self):
        assert chunk_text("  Hello   world.\n\nBye  ", 500, 50) == ["Hello world. Bye"]

    def test_text_of_exactly_chunk_size_yields_single_chunk(self):
        text = "x" * 500
        assert chunk_text(text, 500, 50) == [text]

    def test_empty_and_blank_text_yield_nothing(self):
        assert chunk_text("", 500, 50) == []
        assert chunk_text(" \n\t ", 500, 50) == []

    def test_twelve_hundred_chars_give_three_overlapping_chunks(self):
        text = sample_text(22)[:1200]
        assert len(text) == 1200

        chunks = chunk_text(text, 500, 50)

        assert len(chunks) == 3
        assert all(len(c) <= 500 for c in chunks)
        for current, following in zip(chunks, chunks[1:]):
            assert current[-40:] in following[:60]

    def test_prefers_sentence_boundary_past_midpoint(self):
        chunks = chunk_text(sample_text(22), 500, 50)
        assert chunks[0].endswith("pipeline.")

    def test_falls_back_to_space_without_late_period(self):
        text = " ".join(f"word{i}" for i in range(100))
        chunks = chunk_text(text, 50, 5)
        # Cuts land on spaces, so every chunk ends on a whole word
        for chunk in chunks:
            assert len(chunk) <= 50
            assert chunk.split()[-1].startswith("word")

    def test_hard_cut_without_any_boundary(self):
        chunks = chunk_text("a" * 250, 100, 10)
        assert [len(c) for c in chunks] == [100, 100, 70]


class TestTermination:
    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 5, 8, 13])
    def test_terminates_for_every_valid_overlap(self, chunk_size):
        text = _tokens_text(40)
        for overlap in range(chunk_size):
            chunks = chunk_text(text, chunk_size, overlap)
            assert chunks
            assert all(0 < len(c) <= chunk_size for c in chunks)
            assert set("".join(chunks)) - {" "} == set(text) - {" "}

    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 5, 8, 13, 40])
    def test_every_character_position_is_covered(self, chunk_size):
        text = _unique_chars_text()
        for overlap in range(chunk_size):
            chunks = chunk_text(text, chunk_size, overlap)
            covered = _covered_positions(text, chunks)
            assert all(i in covered for i, ch in enumerate(text) if ch != " "), (chunk_size, overlap)

    @pytest.mark.parametrize("chunk_size,overlap", [
        (20, 0), (20, 10), (20, 19),
        (37, 0), (37, 18), (37, 36),
        (100, 0), (100, 50), (100, 99),
        (250, 25), (250, 249),
    ])
    def test_every_token_lands_in_some_chunk(self, chunk_size, overlap):
        text = _tokens_text()
        chunks = chunk_text(text, chunk_size, overlap)

        chunk_words = [set(c.split()) for c in chunks]
        for token in text.split():
            assert any(token in words for words in chunk_words), token


class TestNormalization:
    def test_whitespace_runs_collapse(self):
        assert normalize_whitespace("a \n\n b\t\tc  ") == "a b c"

    def test_chunking_ignores_whitespace_layout(self):
        text = _tokens_text()
        messy = text.replace(" ", "  \n ").replace(".", ".\n\n")
        assert chunk_text(messy, 60, 12) == chunk_text(text, 60, 12)


class TestConfiguration:
    @pytest.mark.parametrize("chunk_size,overlap", [(100, 100), (100, 150), (0, 0), (100, -1)])
    def test_invalid_parameters_rejected(self, chunk_size, overlap):
        with pytest.raises(InvalidInputError):
            chunk_text("some text", chunk_size, overlap)

    def test_chunker_validates_at_construction(self):
        with pytest.raises(InvalidInputError):
            TextChunker(chunk_size=50, chunk_overlap=50)

    def test_zero_overlap_is_kept(self):
        chunker = TextChunker(chunk_size=100, chunk_overlap=0)
        assert chunker.chunk_overlap == 0


class TestDocumentChunks:
    def test_chunk_document_numbers_chunks(self):
        chunker = TextChunker(chunk_size=200, chunk_overlap=20)
        chunks = chunker.chunk_document(sample_text(20), source="guide.pdf")

        assert len(chunks) > 1
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.total_chunks == len(chunks) for c in chunks)
        assert all(c.source == "guide.pdf" for c in chunks)

    def test_chunk_stats(self):
        chunker = TextChunker(chunk_size=200, chunk_overlap=20)
        chunks = chunker.chunk_document(sample_text(20), source="guide.pdf")
        stats = chunker.get_chunk_stats(chunks)

        assert stats["chunk_count"] == len(chunks)
        assert stats["max_chunk_size"] <= 200
        assert chunker.get_chunk_stats([])["chunk_count"] == 0
