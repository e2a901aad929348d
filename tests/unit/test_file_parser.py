"""Unit tests for the FileParser facade: validation, dispatch and metadata."""

from __future__ import annotations

import pytest

from src.models.extraction import ExtractionDegraded, ExtractionFailed, ExtractionSuccess
from src.services.extraction.file_parser import (
    FileParser,
    format_file_size,
    get_file_extension,
)
from src.utils.errors import ExtractionValidationError


class TestHelpers:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0 B"), (512, "512.00 B"), (1536, "1.50 KB"), (3 * 1024 * 1024, "3.00 MB")],
    )
    def test_format_file_size(self, size: int, expected: str) -> None:
        assert format_file_size(size) == expected

    def test_extension_lowercased(self) -> None:
        assert get_file_extension("Report.PDF") == ".pdf"

    def test_missing_extension_defaults_to_txt(self) -> None:
        assert get_file_extension("README") == ".txt"


class TestValidation:
    def test_empty_buffer_rejected(self, file_parser: FileParser) -> None:
        with pytest.raises(ExtractionValidationError, match="empty"):
            file_parser.validate(b"", "a.txt")

    def test_missing_filename_rejected(self, file_parser: FileParser) -> None:
        with pytest.raises(ExtractionValidationError, match="filename"):
            file_parser.validate(b"data", "")

    def test_oversize_rejected(self, file_parser: FileParser) -> None:
        with pytest.raises(ExtractionValidationError, match="too large"):
            file_parser.validate(b"x" * (1024 * 1024 + 1), "big.txt")

    def test_unsupported_extension_rejected(self, file_parser: FileParser) -> None:
        with pytest.raises(ExtractionValidationError, match="Unsupported file type: .exe"):
            file_parser.validate(b"MZ", "setup.exe")

    def test_fallback_extension_accepted(self, file_parser: FileParser) -> None:
        assert file_parser.validate(b"a,b", "data.CSV") == ".csv"


class TestExtract:
    @pytest.mark.asyncio
    async def test_text_file(self, file_parser: FileParser) -> None:
        result = await file_parser.extract(b"A short note about graphs and documents", "note.txt")

        assert isinstance(result, ExtractionSuccess)
        assert result.metadata["filename"] == "note.txt"
        assert result.metadata["file_extension"] == ".txt"
        assert result.metadata["word_count"] == 7
        assert "processing_time_ms" in result.metadata

    @pytest.mark.asyncio
    async def test_pdf_dispatched_to_chain(self, file_parser: FileParser, mock_pdf_extractor) -> None:
        mock_pdf_extractor.extract.return_value = ExtractionSuccess(
            text="PDF body text that is long enough to pass validation.",
            metadata={"method": "pymupdf", "pages": 1},
        )
        result = await file_parser.extract(b"%PDF-1.4", "paper.pdf")

        mock_pdf_extractor.extract.assert_awaited_once_with(b"%PDF-1.4")
        assert result.metadata["method"] == "pymupdf"
        assert result.metadata["filename"] == "paper.pdf"

    @pytest.mark.asyncio
    async def test_failed_pdf_keeps_error_and_gains_file_metadata(
        self, file_parser: FileParser, mock_pdf_extractor,
    ) -> None:
        mock_pdf_extractor.extract.return_value = ExtractionFailed(error="encrypted")
        result = await file_parser.extract(b"%PDF-1.4", "locked.pdf")

        assert isinstance(result, ExtractionFailed)
        assert result.error == "encrypted"
        assert result.metadata["file_size"] == len(b"%PDF-1.4")

    @pytest.mark.asyncio
    async def test_short_text_reported_as_degraded(self, file_parser: FileParser) -> None:
        result = await file_parser.extract(b"Hi", "tiny.txt")

        assert isinstance(result, ExtractionDegraded)
        assert result.success
        assert result.warning

    @pytest.mark.asyncio
    async def test_parse_files_records_rejections(self, file_parser: FileParser) -> None:
        batch = await file_parser.parse_files(
            [
                (b"Plenty of ordinary words in this file", "ok.txt"),
                (b"", "empty.txt"),
                (b"MZ", "virus.exe"),
            ]
        )

        assert batch.total == 3
        assert batch.successful == 1
        assert batch.failed == 2
        assert batch.results[1].error == "File buffer is empty"


class TestFileInfo:
    def test_file_info(self, file_parser: FileParser) -> None:
        info = file_parser.get_file_info(b"x" * 2048, "notes.md")

        assert info["extension"] == ".md"
        assert info["size_human"] == "2.00 KB"
        assert info["supported"] is True
        assert info["mime_type"] == "text/markdown"

    def test_pdf_page_estimate(self, file_parser: FileParser) -> None:
        assert file_parser.get_file_info(b"x" * 8192, "a.pdf")["estimated_pages"] == 2

    @pytest.mark.asyncio
    async def test_health_check(self, file_parser: FileParser) -> None:
        health = await file_parser.health_check()

        assert health["healthy"] is True
        assert health["services"]["pdf"]["ocr"] is False
        assert ".pdf" in health["supported_types"]
