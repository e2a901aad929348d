"""Lightweight text statistics and validation used in extraction metadata."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SENTENCE = re.compile(r"[^.!?]+[.!?]+")
_WORD_SPLIT = re.compile(r"\s+")


class TextAnalysis(BaseModel):
    """Counts and averages describing a block of text."""

    model_config = ConfigDict(frozen=True)

    word_count: int = 0
    sentence_count: int = 0
    paragraph_count: int = 0
    avg_word_length: float = 0.0
    avg_sentence_length: float = 0.0
    avg_paragraph_length: float = 0.0
    character_count: int = 0
    non_whitespace_count: int = 0


class TextValidation(BaseModel):
    """Outcome of :func:`validate_text`; ``issues`` is empty when valid."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    issues: list[str] = []


def split_paragraphs(text: str, min_length: int = 50) -> list[str]:
    """Split on blank lines, keeping paragraphs at least *min_length* long."""
    if not text:
        return []
    parts = (p.strip() for p in _PARAGRAPH_SPLIT.split(text))
    return [p for p in parts if len(p) >= min_length]


def extract_sentences(text: str) -> list[str]:
    """Return the punctuation-terminated sentences found in *text*."""
    if not text:
        return []
    return [s.strip() for s in _SENTENCE.findall(text) if s.strip()]


def _words(text: str) -> list[str]:
    return [w for w in _WORD_SPLIT.split(text.strip()) if w]


def analyze_text(text: str) -> TextAnalysis:
    """Compute word, sentence and paragraph statistics for *text*.

    Averages are rounded to two decimal places.  Paragraphs here are any
    non-empty blank-line-separated block, regardless of length.
    """
    if not text:
        return TextAnalysis()

    words = _words(text)
    sentences = extract_sentences(text)
    paragraphs = [p for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]

    word_count = len(words)
    avg_word = sum(len(w) for w in words) / word_count if word_count else 0.0
    avg_sentence = word_count / len(sentences) if sentences else 0.0
    avg_paragraph = word_count / len(paragraphs) if paragraphs else 0.0

    return TextAnalysis(
        word_count=word_count,
        sentence_count=len(sentences),
        paragraph_count=len(paragraphs),
        avg_word_length=round(avg_word, 2),
        avg_sentence_length=round(avg_sentence, 2),
        avg_paragraph_length=round(avg_paragraph, 2),
        character_count=len(text),
        non_whitespace_count=len(_WORD_SPLIT.sub("", text)),
    )


def validate_text(
    text: str,
    min_length: int = 10,
    max_length: int = 10_000_000,
) -> TextValidation:
    """Check that extracted text is usable for chunking.

    Parameters
    ----------
    text:
        Cleaned text.
    min_length:
        Minimum accepted character count.
    max_length:
        Maximum accepted character count.

    Returns
    -------
    TextValidation
        ``valid=False`` with one message per failed check.
    """
    if not isinstance(text, str):
        return TextValidation(valid=False, issues=["Text is not a string"])

    issues: list[str] = []
    if len(text) < min_length:
        issues.append(f"Text too short ({len(text)} < {min_length} characters)")
    if len(text) > max_length:
        issues.append(f"Text too long ({len(text)} > {max_length} characters)")
    if len(_words(text)) < 3:
        issues.append("Text contains fewer than 3 words")

    return TextValidation(valid=not issues, issues=issues)
