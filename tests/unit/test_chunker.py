"""Unit tests for the TextChunker: fixed windows with overlap."""

from __future__ import annotations

import pytest

from src.services.ingestion.chunker import TextChunker

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_chunker(chunk_size: int = 500, overlap: int = 50, **kwargs) -> TextChunker:
    """Build a TextChunker with a predictable configuration."""
    return TextChunker(chunk_size=chunk_size, overlap=overlap, **kwargs)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestWindowing:
    def test_window_offsets(self) -> None:
        chunks = _make_chunker().create_chunks("a" * 1200)

        assert [c.start for c in chunks] == [0, 450, 900]
        assert [c.end for c in chunks] == [500, 950, 1200]
        assert [c.index for c in chunks] == [0, 1, 2]

    def test_consecutive_chunks_share_overlap(self) -> None:
        chunks = _make_chunker(chunk_size=100, overlap=20).create_chunks("b" * 500)
        for prev, nxt in zip(chunks, chunks[1:]):
            assert prev.end - nxt.start == 20

    def test_content_is_trimmed(self) -> None:
        chunks = _make_chunker(chunk_size=60, overlap=10).create_chunks("   " + "word " * 40)
        assert all(c.content == c.content.strip() for c in chunks)

    def test_empty_text(self) -> None:
        assert _make_chunker().create_chunks("") == []

    def test_tiny_trailing_window_dropped(self) -> None:
        chunks = _make_chunker().create_chunks("x" * 460)
        assert len(chunks) == 1
        assert chunks[0].end == 460

    def test_overrides_apply_per_call(self) -> None:
        chunks = _make_chunker().create_chunks("c" * 300, chunk_size=100, overlap=0)
        assert len(chunks) == 3

    def test_deterministic(self) -> None:
        text = "The quick brown fox jumps over the lazy dog. " * 40
        chunker = _make_chunker(chunk_size=120, overlap=30)
        assert chunker.create_chunks(text) == chunker.create_chunks(text)


class TestLimits:
    def test_max_chunks_cap(self) -> None:
        chunks = _make_chunker(chunk_size=20, overlap=0, max_chunks=3).create_chunks("y" * 200)
        assert len(chunks) == 3

    def test_long_text_truncated(self) -> None:
        chunker = _make_chunker(chunk_size=100, overlap=0, max_text_length=250)
        chunks = chunker.create_chunks("z" * 1000)

        assert len(chunks) == 3
        assert chunks[-1].end == 250


class TestValidation:
    @pytest.mark.parametrize(
        ("chunk_size", "overlap"),
        [(100, 100), (100, 150), (0, 0), (100, -1)],
    )
    def test_invalid_window_rejected(self, chunk_size: int, overlap: int) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=chunk_size, overlap=overlap)

    def test_invalid_override_rejected(self) -> None:
        with pytest.raises(ValueError):
            _make_chunker().create_chunks("some text here", chunk_size=50, overlap=50)


class TestAlternativeStrategies:
    def test_paragraph_chunks_group_paragraphs(self) -> None:
        text = "Para one text.\n\nPara two text.\n\nPara three text."
        chunks = _make_chunker().create_paragraph_chunks(text, max_paragraphs_per_chunk=2)

        assert len(chunks) == 2
        assert chunks[0].content == "Para one text.\n\nPara two text."
        assert chunks[1].content == "Para three text."
        assert text[chunks[1].start : chunks[1].end] == "Para three text."

    def test_semantic_chunks_pack_sentences(self) -> None:
        text = "First sentence. Second sentence. Third one here."
        chunks = _make_chunker().create_semantic_chunks(text, max_chunk_size=35)

        assert [c.content for c in chunks] == [
            "First sentence. Second sentence.",
            "Third one here.",
        ]
        assert chunks[1].start == 33

    def test_semantic_chunks_keep_unterminated_tail(self) -> None:
        chunks = _make_chunker().create_semantic_chunks("Alpha. beta gamma")
        assert [c.content for c in chunks] == ["Alpha. beta gamma"]
