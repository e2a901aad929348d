"""File parsing facade: validation, dispatch and metadata.

:class:`FileParser` is the single entry point the ingestion pipeline uses
to turn an uploaded buffer into text.  It rejects structurally invalid
input with :class:`~src.utils.errors.ExtractionValidationError`, routes
``.pdf`` to the PDF strategy chain and every text-like extension to
:class:`TextExtractor`, then runs a final cleaning pass and attaches file
metadata to whatever result came back.
"""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any

import structlog

from src.models.extraction import (
    ExtractionFailed,
    ExtractionResult,
    build_result,
)
from src.models.pipeline import BatchProcessingResult, ProcessingResult
from src.services.extraction.pdf_extractor import PDFExtractor
from src.services.extraction.text_extractor import TextExtractor
from src.utils.errors import ExtractionValidationError
from src.utils.text_analysis import validate_text
from src.utils.text_cleaner import CleanOptions, TextCleaner

logger = structlog.get_logger(logger_name=__name__)

PRIMARY_EXTENSIONS: tuple[str, ...] = (".pdf", ".txt", ".md", ".json")
FALLBACK_TEXT_EXTENSIONS: tuple[str, ...] = (".csv", ".xml", ".html", ".htm", ".rtf")

_MIME_TYPES: dict[str, str] = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".json": "application/json",
    ".csv": "text/csv",
    ".xml": "application/xml",
    ".html": "text/html",
    ".htm": "text/html",
    ".rtf": "application/rtf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")
_WORD = re.compile(r"\b\w+\b")
_FINAL_CLEAN_OPTIONS = CleanOptions(remove_page_numbers=True, ensure_sentence_endings=True)


@dataclass(frozen=True)
class ExtractOptions:
    """Per-call extraction options."""

    fallback_to_text: bool = True
    remove_urls: bool = False
    remove_emails: bool = False
    min_text_length: int = 10
    max_text_length: int = 10 * 1024 * 1024


def format_file_size(num_bytes: int) -> str:
    """Render a byte count as ``"1.50 MB"``; zero is ``"0 B"``."""
    if num_bytes <= 0:
        return "0 B"
    exponent = min(int(math.log(num_bytes, 1024)), len(_SIZE_UNITS) - 1)
    return f"{num_bytes / 1024 ** exponent:.2f} {_SIZE_UNITS[exponent]}"


def get_file_extension(filename: str) -> str:
    """Return the lower-cased extension with its dot; ``.txt`` when absent."""
    return PurePath(filename).suffix.lower() or ".txt"


class FileParser:
    """Validates uploads and extracts their text.

    Parameters
    ----------
    cleaner:
        Shared text cleaner, used for the final cleaning pass.
    pdf_extractor:
        Strategy chain for ``.pdf`` files.
    text_extractor:
        Handler for the UTF-8 text family.
    max_file_size:
        Largest accepted buffer in bytes.
    supported_extensions, fallback_text_extensions:
        First-class extensions and text-like extensions handled as plain
        text.
    """

    def __init__(
        self,
        cleaner: TextCleaner,
        pdf_extractor: PDFExtractor,
        text_extractor: TextExtractor,
        max_file_size: int = 10 * 1024 * 1024,
        supported_extensions: tuple[str, ...] | list[str] = PRIMARY_EXTENSIONS,
        fallback_text_extensions: tuple[str, ...] | list[str] = FALLBACK_TEXT_EXTENSIONS,
    ) -> None:
        self._cleaner = cleaner
        self._pdf = pdf_extractor
        self._text = text_extractor
        self._max_file_size = max_file_size
        self._primary = tuple(supported_extensions)
        self._fallback = tuple(fallback_text_extensions)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(
        self,
        buffer: bytes,
        filename: str,
        options: ExtractOptions | None = None,
    ) -> ExtractionResult:
        """Extract text from one uploaded file.

        Parameters
        ----------
        buffer:
            Raw file bytes.
        filename:
            Declared filename; its extension selects the extractor.
        options:
            Optional per-call settings.

        Returns
        -------
        ExtractionResult
            Success, degraded or failed result with file metadata attached.

        Raises
        ------
        ExtractionValidationError
            If the buffer is empty, the filename is missing, the extension
            is unsupported or the file is too large.
        """
        opts = options or ExtractOptions()
        started = time.perf_counter()
        extension = self.validate(buffer, filename)

        logger.info(
            "file_parse_started",
            filename=filename,
            extension=extension,
            size=format_file_size(len(buffer)),
        )

        if extension == ".pdf":
            result = await self._pdf.extract(buffer)
        else:
            result = self._text.extract(
                buffer,
                extension,
                fallback_to_text=opts.fallback_to_text,
                remove_urls=opts.remove_urls,
                remove_emails=opts.remove_emails,
            )

        result = self._finalize(result, buffer, filename, extension, started, opts)
        logger.info(
            "file_parse_complete",
            filename=filename,
            kind=result.kind,
            chars=len(result.text),
            processing_time_ms=result.metadata.get("processing_time_ms"),
        )
        return result

    parse_file = extract

    async def parse_files(
        self,
        files: list[tuple[bytes, str]],
        options: ExtractOptions | None = None,
    ) -> BatchProcessingResult:
        """Extract several files one after another.

        Validation failures become failed entries instead of aborting the
        batch.
        """
        results: list[ProcessingResult] = []
        for buffer, filename in files:
            try:
                extracted = await self.extract(buffer, filename, options)
            except ExtractionValidationError as exc:
                logger.warning("file_parse_rejected", filename=filename, error=exc.message)
                results.append(ProcessingResult(success=False, filename=filename, error=exc.message))
                continue

            results.append(
                ProcessingResult(
                    success=extracted.success,
                    filename=filename,
                    text_length=len(extracted.text),
                    extraction_metadata=extracted.metadata,
                    warning=extracted.warning,
                    error=extracted.error,
                )
            )

        successful = sum(1 for r in results if r.success)
        logger.info("file_batch_complete", successful=successful, failed=len(results) - successful)
        return BatchProcessingResult(
            total=len(files),
            successful=successful,
            failed=len(results) - successful,
            results=results,
        )

    def validate(self, buffer: bytes, filename: str) -> str:
        """Check *buffer* and *filename*; return the normalized extension."""
        if not isinstance(buffer, (bytes, bytearray)):
            raise ExtractionValidationError("Invalid file buffer")
        if len(buffer) == 0:
            raise ExtractionValidationError("File buffer is empty")
        if not filename or not isinstance(filename, str):
            raise ExtractionValidationError("Invalid filename")
        if len(buffer) > self._max_file_size:
            raise ExtractionValidationError(
                f"File too large: {format_file_size(len(buffer))} > "
                f"{format_file_size(self._max_file_size)}"
            )

        extension = get_file_extension(filename)
        if not self.is_supported(extension):
            raise ExtractionValidationError(
                f"Unsupported file type: {extension}. "
                f"Supported: {', '.join(self.supported_extensions())}"
            )
        return extension

    def is_supported(self, extension: str) -> bool:
        return extension.lower() in self.supported_extensions()

    def supported_extensions(self) -> list[str]:
        return list(self._primary) + [ext for ext in self._fallback if ext not in self._primary]

    @staticmethod
    def get_mime_type(extension: str) -> str:
        ext = extension.lower()
        if not ext.startswith("."):
            ext = f".{ext}"
        return _MIME_TYPES.get(ext, "application/octet-stream")

    @staticmethod
    def estimate_pdf_pages(buffer: bytes) -> int:
        """Rough page estimate at ~4 KB per page, clamped to 1-1000."""
        if not buffer or len(buffer) < 100:
            return 0
        return max(1, min(len(buffer) // 4096, 1000))

    def get_file_info(self, buffer: bytes, filename: str) -> dict[str, Any]:
        extension = get_file_extension(filename)
        return {
            "filename": filename,
            "extension": extension,
            "size_bytes": len(buffer),
            "size_human": format_file_size(len(buffer)),
            "supported": self.is_supported(extension),
            "estimated_pages": self.estimate_pdf_pages(buffer) if extension == ".pdf" else 1,
            "mime_type": self.get_mime_type(extension),
        }

    async def health_check(self) -> dict[str, Any]:
        """Exercise the text path end to end and report PDF stage availability."""
        services: dict[str, Any] = {"pdf": self._pdf.health_check()}

        try:
            sample = self._text.extract_plain(
                "This is a test text for health check. It contains multiple sentences."
            )
            services["text"] = {"healthy": sample.success}
        except Exception as exc:
            logger.error("text_health_check_failed", error=str(exc))
            services["text"] = {"healthy": False, "error": str(exc)}

        services["cleaner"] = {"healthy": self._cleaner.clean("Health check.") == "Health check."}

        healthy = services["text"]["healthy"] and services["cleaner"]["healthy"]
        return {
            "healthy": healthy,
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),  # noqa: UP017
            "supported_types": self.supported_extensions(),
            "services": services,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finalize(
        self,
        result: ExtractionResult,
        buffer: bytes,
        filename: str,
        extension: str,
        started: float,
        opts: ExtractOptions,
    ) -> ExtractionResult:
        file_metadata: dict[str, Any] = {
            "filename": filename,
            "file_extension": extension,
            "file_size": len(buffer),
            "file_size_human": format_file_size(len(buffer)),
            "parsed_at": datetime.now(tz=timezone.utc).isoformat(),  # noqa: UP017
            "processing_time_ms": int((time.perf_counter() - started) * 1000),
        }

        if isinstance(result, ExtractionFailed):
            logger.warning("file_parse_failed", filename=filename, error=result.error)
            return result.model_copy(update={"metadata": {**result.metadata, **file_metadata}})

        text = self._cleaner.clean(result.text, _FINAL_CLEAN_OPTIONS)
        metadata = {
            **result.metadata,
            **file_metadata,
            "text_length": len(text),
            "word_count": len(_WORD.findall(text)),
            "line_count": text.count("\n") + 1,
        }

        warning = result.warning
        validation = validate_text(text, opts.min_text_length, opts.max_text_length)
        if not validation.valid:
            issues = "; ".join(validation.issues)
            logger.warning("text_validation_warning", filename=filename, issues=issues)
            warning = f"{warning}; {issues}" if warning else issues
        return build_result(text, metadata, warning)
