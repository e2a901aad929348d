"""Fixed-window text chunking with overlap.

Splits cleaned document text into :class:`~src.models.document.Chunk`
objects sized for the embedding model.  The primary strategy is a plain
sliding character window:

* window ``[start, start + chunk_size)``, clipped to the text length
* the slice is trimmed; slices of 10 characters or fewer are dropped
* ``start`` advances by ``chunk_size - overlap``

so consecutive chunks share exactly ``overlap`` characters of source offset.
The function is pure and deterministic: re-chunking the same text yields the
same chunks.

Two alternative strategies group whole paragraphs or whole sentences
instead of fixed windows; they are not used by the ingestion pipeline but
are exposed for callers that want structure-aligned chunks.
"""

from __future__ import annotations

import re

import structlog

from src.models.document import Chunk

logger = structlog.get_logger(logger_name=__name__)

_PARAGRAPH = re.compile(r"\S.*?(?=\s*\n\s*\n|\s*\Z)", re.DOTALL)
_SENTENCE = re.compile(r"[^.!?]+[.!?]+")


class TextChunker:
    """Splits text into overlapping fixed-size character windows.

    Parameters
    ----------
    chunk_size:
        Window length in characters (default 500).
    overlap:
        Characters shared by consecutive windows (default 50).  Must be
        smaller than *chunk_size*.
    max_text_length:
        Longer input is truncated before chunking (default 1,000,000).
    max_chunks:
        Hard cap on emitted chunks per call (default 1000).
    min_chunk_chars:
        Trimmed windows of this length or shorter are dropped (default 10).
    """

    def __init__(
        self,
        chunk_size: int = 500,
        overlap: int = 50,
        max_text_length: int = 1_000_000,
        max_chunks: int = 1000,
        min_chunk_chars: int = 10,
    ) -> None:
        self._validate_window(chunk_size, overlap)
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._max_text_length = max_text_length
        self._max_chunks = max_chunks
        self._min_chunk_chars = min_chunk_chars

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_chunks(
        self,
        text: str,
        chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> list[Chunk]:
        """Split *text* into overlapping windows.

        Parameters
        ----------
        text:
            Cleaned document text.
        chunk_size:
            Override of the configured window length.
        overlap:
            Override of the configured overlap.

        Returns
        -------
        list[Chunk]
            Chunks with strictly increasing ``index`` and ``start``.  Empty
            input returns an empty list.

        Raises
        ------
        ValueError
            If ``overlap >= chunk_size``, ``chunk_size <= 0`` or
            ``overlap < 0``; such a window would never advance.
        """
        size = self._chunk_size if chunk_size is None else chunk_size
        step_overlap = self._overlap if overlap is None else overlap
        self._validate_window(size, step_overlap)

        if not text:
            return []

        if len(text) > self._max_text_length:
            logger.warning(
                "chunker_text_truncated",
                original_length=len(text),
                max_length=self._max_text_length,
            )
            text = text[: self._max_text_length]

        chunks: list[Chunk] = []
        step = size - step_overlap
        start = 0
        text_length = len(text)

        while start < text_length:
            end = min(start + size, text_length)
            content = text[start:end].strip()

            if len(content) > self._min_chunk_chars:
                chunks.append(
                    Chunk(content=content, start=start, end=end, index=len(chunks))
                )
                if len(chunks) >= self._max_chunks:
                    if end < text_length:
                        logger.warning(
                            "chunker_limit_reached",
                            max_chunks=self._max_chunks,
                            stopped_at=end,
                            text_length=text_length,
                        )
                    break

            start += step

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            chunk_size=size,
            overlap=step_overlap,
            text_length=text_length,
        )
        return chunks

    def create_paragraph_chunks(
        self,
        text: str,
        max_paragraphs_per_chunk: int = 3,
    ) -> list[Chunk]:
        """Group consecutive blank-line-separated paragraphs into chunks.

        ``start``/``end`` span from the first character of the first
        paragraph to the last character of the last paragraph in the group.
        """
        if not text or max_paragraphs_per_chunk < 1:
            return []

        spans = [(m.start(), m.end()) for m in _PARAGRAPH.finditer(text)]
        chunks: list[Chunk] = []
        for i in range(0, len(spans), max_paragraphs_per_chunk):
            group = spans[i : i + max_paragraphs_per_chunk]
            start, end = group[0][0], group[-1][1]
            chunks.append(
                Chunk(content=text[start:end], start=start, end=end, index=len(chunks))
            )

        logger.debug("paragraph_chunking_complete", num_chunks=len(chunks))
        return chunks

    def create_semantic_chunks(self, text: str, max_chunk_size: int = 500) -> list[Chunk]:
        """Pack whole sentences into chunks of at most *max_chunk_size* characters.

        A single sentence longer than the limit becomes its own chunk.
        Trailing text without terminal punctuation is kept as a final
        sentence.
        """
        if not text or not text.strip():
            return []

        spans = [(m.start(), m.end()) for m in _SENTENCE.finditer(text)]
        tail_start = spans[-1][1] if spans else 0
        if text[tail_start:].strip():
            spans.append((tail_start, len(text)))

        chunks: list[Chunk] = []
        group_start: int | None = None
        group_end = 0

        for start, end in spans:
            if group_start is not None and end - group_start > max_chunk_size:
                self._append_span(chunks, text, group_start, group_end)
                group_start = None
            if group_start is None:
                group_start = start
            group_end = end

        if group_start is not None:
            self._append_span(chunks, text, group_start, group_end)

        logger.debug("semantic_chunking_complete", num_chunks=len(chunks))
        return chunks

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_window(chunk_size: int, overlap: int) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap must not be negative, got {overlap}")
        if overlap >= chunk_size:
            raise ValueError(
                f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            )

    @staticmethod
    def _append_span(chunks: list[Chunk], text: str, start: int, end: int) -> None:
        """Append the trimmed span as a chunk, tightening offsets to the trimmed text."""
        raw = text[start:end]
        content = raw.strip()
        if not content:
            return
        lead = len(raw) - len(raw.lstrip())
        start += lead
        chunks.append(
            Chunk(content=content, start=start, end=start + len(content), index=len(chunks))
        )
