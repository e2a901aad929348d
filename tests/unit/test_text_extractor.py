"""Unit tests for plain text, Markdown and JSON extraction."""

from __future__ import annotations

import pytest

from src.models.extraction import ExtractionDegraded, ExtractionFailed, ExtractionSuccess
from src.services.extraction.text_extractor import DEEP_STRUCTURE_PLACEHOLDER, TextExtractor
from src.utils.text_cleaner import TextCleaner


@pytest.fixture
def extractor(cleaner: TextCleaner) -> TextExtractor:
    return TextExtractor(cleaner)


class TestPlainText:
    def test_plain_text_gets_sentence_ending(self, extractor: TextExtractor) -> None:
        result = extractor.extract(b"Hello world this is plain text", ".txt")

        assert isinstance(result, ExtractionSuccess)
        assert result.text == "Hello world this is plain text."
        assert result.metadata["method"] == "text"
        assert result.metadata["analysis"]["word_count"] == 6

    def test_unknown_text_extension_treated_as_plain(self, extractor: TextExtractor) -> None:
        result = extractor.extract(b"a,b,c\n1,2,3 and some more text", ".csv")
        assert result.metadata["method"] == "text"

    def test_invalid_utf8_replaced(self, extractor: TextExtractor) -> None:
        result = extractor.extract(b"Readable text \xff\xfe with a bad byte", ".txt")
        assert result.success
        assert "Readable text" in result.text

    def test_short_text_is_degraded(self, extractor: TextExtractor) -> None:
        result = extractor.extract(b"Hi", ".txt")
        assert isinstance(result, ExtractionDegraded)


class TestJSON:
    def test_json_flattened(self, extractor: TextExtractor) -> None:
        result = extractor.extract(b'{"name": "Alice", "age": 30}', ".json")

        assert result.text == "name: Alice. age: 30."
        assert result.metadata["method"] == "json"
        assert result.metadata["json_structure"]["type"] == "object"
        assert result.metadata["json_structure"]["keys"] == ["name", "age"]

    def test_invalid_json_falls_back_to_text(self, extractor: TextExtractor) -> None:
        result = extractor.extract(b"{not json but still some words", ".json")
        assert result.metadata["method"] == "text"

    def test_invalid_json_without_fallback_fails(self, extractor: TextExtractor) -> None:
        result = extractor.extract(b"{broken", ".json", fallback_to_text=False)

        assert isinstance(result, ExtractionFailed)
        assert result.error_type == "JSONDecodeError"
        assert result.error.startswith("JSON parsing failed")

    def test_scalars_and_null(self, extractor: TextExtractor) -> None:
        assert extractor.json_to_text([True, None, 1.5]) == "true. . 1.5"

    def test_deep_nesting_replaced(self, cleaner: TextCleaner) -> None:
        shallow = TextExtractor(cleaner, max_json_depth=1)
        text = shallow.json_to_text({"a": {"b": {"c": 1}}})
        assert text == f"a: b: {DEEP_STRUCTURE_PLACEHOLDER}"

    def test_describe_array_by_first_item(self, extractor: TextExtractor) -> None:
        outline = extractor.describe_json([{"x": 1}, {"x": 2}])
        assert outline["type"] == "array"
        assert outline["length"] == 2
        assert outline["child_types"]["type"] == "object"


class TestMarkdown:
    _DOC = (
        "# Title\n\n"
        "Some **bold** text with a [link](http://x.com).\n\n"
        "- item one\n"
        "- item two\n\n"
        "```python\ncode here\n```\n"
    )

    def test_syntax_stripped(self, extractor: TextExtractor) -> None:
        result = extractor.extract(self._DOC.encode(), ".md")

        assert result.metadata["method"] == "markdown"
        assert "Title" in result.text
        assert "bold" in result.text
        assert "link" in result.text
        assert "**" not in result.text
        assert "http://x.com" not in result.text
        assert "code here" not in result.text

    def test_outline(self, extractor: TextExtractor) -> None:
        outline = extractor.markdown_outline(self._DOC)

        assert outline["headers"] == [{"text": "Title", "level": 1, "line": 0}]
        assert len(outline["lists"]) == 2
        assert outline["lists"][0]["type"] == "bulleted"
        assert outline["code_blocks"][0]["language"] == "python"

    def test_structure_flags(self, extractor: TextExtractor) -> None:
        result = extractor.extract_markdown(self._DOC)
        assert result.metadata["has_headers"] is True
        assert result.metadata["has_lists"] is True
        assert result.metadata["has_code"] is True

    def test_table_rows_detected(self, extractor: TextExtractor) -> None:
        outline = extractor.markdown_outline("| a | b |\n|---|---|\n| 1 | 2 |")
        assert len(outline["tables"]) == 3
