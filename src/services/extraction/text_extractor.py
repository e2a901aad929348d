"""UTF-8 text family extraction: plain text, Markdown and JSON.

All three decode the buffer as UTF-8 and differ only in structural
post-processing.  JSON is flattened into readable ``key: value`` sentences,
Markdown is stripped of its syntax (a structural outline is kept in
metadata only), and everything else is treated as plain text.
"""

from __future__ import annotations

import json
import re
import time
from typing import Any

import structlog

from src.models.extraction import (
    ExtractionFailed,
    ExtractionQuality,
    ExtractionResult,
    build_result,
)
from src.utils.text_analysis import analyze_text, extract_sentences, split_paragraphs
from src.utils.text_cleaner import CleanOptions, TextCleaner

logger = structlog.get_logger(logger_name=__name__)

DEEP_STRUCTURE_PLACEHOLDER = "[Deep Structure...]"

_TEXT_CLEAN_OPTIONS = CleanOptions(ensure_sentence_endings=True)

# Markdown stripping, applied in order.
_MARKDOWN_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^#+\s+", re.MULTILINE), ""),
    (re.compile(r"```[\s\S]*?```"), ""),
    (re.compile(r"`[^`]*`"), ""),
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"(\*\*|__)(.*?)\1"), r"\2"),
    (re.compile(r"(\*|_)(.*?)\1"), r"\2"),
    (re.compile(r"^\s*>+", re.MULTILINE), ""),
    (re.compile(r"^\s*[-*_]{3,}\s*$", re.MULTILINE), ""),
]

_MD_HEADER = re.compile(r"^(#+)\s+(.+)")
_MD_LIST_ITEM = re.compile(r"^(?:[-*+]\s|\d+[.)]\s)")


class TextExtractor:
    """Extracts text from ``.txt``, ``.md`` and ``.json`` style buffers.

    Parameters
    ----------
    cleaner:
        Shared text cleaner.
    max_json_depth:
        Nesting depth beyond which JSON content is replaced by a
        placeholder.
    """

    def __init__(self, cleaner: TextCleaner, max_json_depth: int = 10) -> None:
        self._cleaner = cleaner
        self._max_json_depth = max_json_depth

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(
        self,
        buffer: bytes,
        extension: str,
        fallback_to_text: bool = True,
        remove_urls: bool = False,
        remove_emails: bool = False,
    ) -> ExtractionResult:
        """Decode *buffer* and dispatch on *extension* (with leading dot).

        Parameters
        ----------
        buffer:
            Raw file bytes.
        extension:
            Lower-case extension such as ``".md"``.  Anything other than
            ``.json`` and ``.md`` is handled as plain text.
        fallback_to_text:
            When JSON fails to parse, treat it as plain text instead of
            returning :class:`ExtractionFailed`.
        remove_urls, remove_emails:
            Passed through to the cleaner for plain text.
        """
        text = buffer.decode("utf-8", errors="replace")
        logger.info("text_extraction_started", extension=extension, bytes=len(buffer))

        if extension == ".json":
            return self.extract_json(text, fallback_to_text=fallback_to_text)
        if extension == ".md":
            return self.extract_markdown(text)
        return self.extract_plain(
            text,
            CleanOptions(
                ensure_sentence_endings=True,
                remove_urls=remove_urls,
                remove_emails=remove_emails,
            ),
        )

    def extract_plain(self, text: str, options: CleanOptions | None = None) -> ExtractionResult:
        started = time.perf_counter()
        cleaned = self._cleaner.clean(text, options or _TEXT_CLEAN_OPTIONS)
        return build_result(
            cleaned,
            {
                "method": "text",
                "quality": ExtractionQuality.TEXT.value,
                "pages": 1,
                "encoding": "utf-8",
                "text_length": len(cleaned),
                "processing_time_ms": _elapsed_ms(started),
                "analysis": analyze_text(cleaned).model_dump(),
                "structure": self.analyze_structure(text),
            },
        )

    def extract_json(self, text: str, fallback_to_text: bool = True) -> ExtractionResult:
        """Flatten a JSON document into readable text."""
        started = time.perf_counter()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            if fallback_to_text:
                logger.warning("json_parse_failed_fallback_to_text", error=str(exc))
                return self.extract_plain(text)
            logger.error("json_parse_failed", error=str(exc))
            return ExtractionFailed(
                error=f"JSON parsing failed: {exc}",
                error_type=type(exc).__name__,
                metadata={"method": "json", "text_length": 0},
            )

        cleaned = self._cleaner.clean(self.json_to_text(data), _TEXT_CLEAN_OPTIONS)
        return build_result(
            cleaned,
            {
                "method": "json",
                "quality": ExtractionQuality.JSON.value,
                "pages": 1,
                "encoding": "utf-8",
                "text_length": len(cleaned),
                "processing_time_ms": _elapsed_ms(started),
                "analysis": analyze_text(cleaned).model_dump(),
                "json_structure": self.describe_json(data),
            },
        )

    def extract_markdown(self, text: str) -> ExtractionResult:
        """Strip Markdown syntax, keeping link and image alt text."""
        started = time.perf_counter()
        outline = self.markdown_outline(text)
        cleaned = self._cleaner.clean(self.markdown_to_text(text), _TEXT_CLEAN_OPTIONS)
        return build_result(
            cleaned,
            {
                "method": "markdown",
                "quality": ExtractionQuality.MARKDOWN.value,
                "pages": 1,
                "encoding": "utf-8",
                "text_length": len(cleaned),
                "processing_time_ms": _elapsed_ms(started),
                "analysis": analyze_text(cleaned).model_dump(),
                "markdown_structure": outline,
                "has_headers": bool(outline["headers"]),
                "has_lists": bool(outline["lists"]),
                "has_code": bool(outline["code_blocks"]),
            },
        )

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def json_to_text(self, data: Any, depth: int = 0) -> str:
        """Render parsed JSON as ``key: value`` sentences.

        Arrays join their items with ``". "``; objects join their
        ``key: value`` pairs the same way.  ``null`` renders as an empty
        string and anything nested deeper than ``max_json_depth`` becomes
        ``[Deep Structure...]``.
        """
        if depth > self._max_json_depth:
            return DEEP_STRUCTURE_PLACEHOLDER
        if isinstance(data, str):
            return data
        if isinstance(data, bool):
            return "true" if data else "false"
        if isinstance(data, (int, float)):
            return str(data)
        if data is None:
            return ""
        if isinstance(data, list):
            return ". ".join(self.json_to_text(item, depth + 1) for item in data)
        if isinstance(data, dict):
            return ". ".join(
                f"{key}: {self.json_to_text(value, depth + 1)}" for key, value in data.items()
            )
        return ""

    def describe_json(self, data: Any, path: str = "") -> dict[str, Any]:
        """Return a type outline of *data*; arrays are described by their first item."""
        if isinstance(data, str):
            return {"type": "string", "path": path}
        if isinstance(data, bool):
            return {"type": "boolean", "path": path}
        if isinstance(data, (int, float)):
            return {"type": "number", "path": path}
        if data is None:
            return {"type": "null", "path": path}
        if isinstance(data, list):
            child = self.describe_json(data[0], f"{path}[]") if data else {"type": "empty_array"}
            return {"type": "array", "length": len(data), "child_types": child}
        if isinstance(data, dict):
            return {
                "type": "object",
                "keys": list(data.keys()),
                "children": [
                    self.describe_json(value, f"{path}.{key}" if path else str(key))
                    for key, value in data.items()
                ],
            }
        return {"type": "unknown", "path": path}

    # ------------------------------------------------------------------
    # Markdown
    # ------------------------------------------------------------------

    @staticmethod
    def markdown_to_text(markdown: str) -> str:
        text = markdown
        for pattern, replacement in _MARKDOWN_RULES:
            text = pattern.sub(replacement, text)
        return text

    @staticmethod
    def markdown_outline(markdown: str) -> dict[str, list[dict[str, Any]]]:
        """Collect headers, list items, table rows and fenced code spans.

        Line numbers are 0-based.  Lines inside fenced code blocks are not
        inspected for other structure.
        """
        outline: dict[str, list[dict[str, Any]]] = {
            "headers": [],
            "lists": [],
            "code_blocks": [],
            "tables": [],
        }
        code_start: int | None = None

        for line_number, line in enumerate(markdown.split("\n")):
            stripped = line.strip()

            if stripped.startswith("```"):
                if code_start is None:
                    code_start = line_number
                else:
                    outline["code_blocks"].append(
                        {
                            "start": code_start,
                            "end": line_number,
                            "language": stripped[3:].strip() or "unknown",
                        }
                    )
                    code_start = None
                continue
            if code_start is not None:
                continue

            header = _MD_HEADER.match(stripped)
            if header:
                outline["headers"].append(
                    {"text": header.group(2), "level": len(header.group(1)), "line": line_number}
                )

            if _MD_LIST_ITEM.match(stripped):
                outline["lists"].append(
                    {
                        "text": stripped,
                        "line": line_number,
                        "type": "numbered" if stripped[0].isdigit() else "bulleted",
                    }
                )

            cells = stripped.split("|")
            if "|" in stripped and len(cells) > 2:
                outline["tables"].append({"line": line_number, "columns": len(cells) - 1})

        return outline

    # ------------------------------------------------------------------
    # Plain text
    # ------------------------------------------------------------------

    @staticmethod
    def analyze_structure(text: str) -> dict[str, float]:
        paragraphs = split_paragraphs(text, min_length=1)
        sentences = extract_sentences(text)
        return {
            "paragraph_count": len(paragraphs),
            "sentence_count": len(sentences),
            "avg_paragraph_length": round(len(text) / len(paragraphs), 2) if paragraphs else 0.0,
            "avg_sentence_length": round(len(text) / len(sentences), 2) if sentences else 0.0,
        }


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
