"""PDF text extraction as an ordered chain of fallback strategies.

Each strategy implements ``attempt(buffer) -> ExtractionResult | None``.
:class:`PDFExtractor` tries them in order and returns the first non-``None``
result.  A strategy returns ``None`` when it ran but produced too little
text, and raises when it could not run at all; either way the chain moves
on, remembering the most recent error for the final guidance message.

Default order:

1. :class:`DirectTextStrategy` -- content-stream text via PyMuPDF, then pypdf
2. :class:`OCRStrategy` -- rasterize each page and OCR it
3. :class:`BufferScrapeStrategy` -- regex-scrape readable runs from raw bytes
4. :class:`GuidanceStrategy` -- fixed remediation message, always succeeds
"""

from __future__ import annotations

import asyncio
import io
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from pypdf import PdfReader

from src.interfaces.ocr_provider import IOCRProvider
from src.models.extraction import (
    ExtractionDegraded,
    ExtractionFailed,
    ExtractionQuality,
    ExtractionResult,
    build_result,
)
from src.utils.errors import ExtractionError, OCRExtractionError
from src.utils.text_cleaner import CleanOptions, TextCleaner

logger = structlog.get_logger(logger_name=__name__)

_OCR_CLEAN_OPTIONS = CleanOptions(
    fix_ocr=True,
    remove_page_numbers=True,
    ensure_sentence_endings=True,
)

GUIDANCE_MESSAGE = """This PDF could not be processed. It may be:
- Scanned/image-based
- Password protected/encrypted
- Corrupted or invalid

SOLUTIONS:
1. Convert to a text-searchable PDF using Adobe Acrobat
2. Use a free online OCR service such as smallpdf.com/ocr-pdf
3. Export a .txt file from the original document
4. Take a screenshot and use Google Drive OCR

For best results with MemoryGraph, use text-searchable documents."""

_SCRAPE_PATTERNS: list[re.Pattern[str]] = [
    # sentences
    re.compile(r"[A-Z][^.!?]*[.!?]"),
    # multi-word runs
    re.compile(r"[A-Za-z]{4,}(?:\s+[A-Za-z]{3,}){2,}"),
    # labeled fields
    re.compile(
        r"(?:Name|Address|Email|Phone|Date|Signature|Title|Company):?\s*[A-Za-z0-9@.\-\s,]+",
        re.IGNORECASE,
    ),
    # numbered items
    re.compile(r"\d+[.)]\s+[A-Za-z].{10,}"),
    # readable runs
    re.compile(r"[A-Za-z][A-Za-z\s]{10,}"),
]
_WHITESPACE = re.compile(r"\s+")


class PDFExtractionStrategy(ABC):
    """One stage of the PDF fallback chain."""

    name: str = "strategy"

    @abstractmethod
    async def attempt(
        self,
        buffer: bytes,
        last_error: str | None = None,
    ) -> ExtractionResult | None:
        """Try to extract text from *buffer*.

        Parameters
        ----------
        buffer:
            Raw PDF bytes.
        last_error:
            Message of the most recent failure earlier in the chain.

        Returns
        -------
        ExtractionResult | None
            A result to stop the chain, or ``None`` to fall through.
        """


# ---------------------------------------------------------------------------
# Stage 1: content-stream text
# ---------------------------------------------------------------------------


class DirectTextStrategy(PDFExtractionStrategy):
    """Extract the embedded text layer.

    PyMuPDF is tried first; pypdf is only consulted when PyMuPDF yields
    ``parser_min_chars`` or fewer.  The stage as a whole accepts only text
    longer than ``min_chars``.
    """

    name = "direct_text"

    def __init__(
        self,
        cleaner: TextCleaner,
        min_chars: int = 200,
        parser_min_chars: int = 100,
    ) -> None:
        self._cleaner = cleaner
        self._min_chars = min_chars
        self._parser_min_chars = parser_min_chars

    async def attempt(
        self,
        buffer: bytes,
        last_error: str | None = None,
    ) -> ExtractionResult | None:
        candidate: tuple[str, int, str] | None = None
        errors: list[str] = []

        for method, reader in (("pymupdf", self._read_pymupdf), ("pypdf", self._read_pypdf)):
            try:
                text, pages = await asyncio.to_thread(reader, buffer)
            except Exception as exc:
                logger.debug("pdf_parser_failed", method=method, error=str(exc))
                errors.append(f"{method}: {exc}")
                continue
            if len(text) > self._parser_min_chars:
                candidate = (text, pages, method)
                break

        if candidate is None:
            if len(errors) == 2:
                raise ExtractionError(
                    f"PDF text layer unreadable ({'; '.join(errors)})",
                    provider_name=self.name,
                )
            return None

        text, pages, method = candidate
        if len(text) <= self._min_chars:
            logger.info("pdf_text_layer_too_short", method=method, chars=len(text))
            return None

        cleaned = self._cleaner.clean(text)
        logger.info("pdf_text_extracted", method=method, pages=pages, chars=len(cleaned))
        return build_result(
            cleaned,
            {
                "method": method,
                "pages": pages,
                "text_length": len(cleaned),
                "quality": ExtractionQuality.TEXT_PDF.value,
            },
        )

    @staticmethod
    def _read_pymupdf(buffer: bytes) -> tuple[str, int]:
        doc = fitz.open(stream=buffer, filetype="pdf")
        try:
            page_texts = [doc[page_num].get_text("text") for page_num in range(len(doc))]
            return "\n".join(page_texts).strip(), len(doc)
        finally:
            doc.close()

    @staticmethod
    def _read_pypdf(buffer: bytes) -> tuple[str, int]:
        reader = PdfReader(io.BytesIO(buffer))
        page_texts = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(page_texts).strip(), len(reader.pages)


# ---------------------------------------------------------------------------
# Stage 2: OCR
# ---------------------------------------------------------------------------


class OCRStrategy(PDFExtractionStrategy):
    """Rasterize every page and run OCR on each image.

    Page images live in a private temporary directory and the OCR engine is
    initialized once for the document; both are released before
    :meth:`attempt` returns, whatever the outcome.
    """

    name = "ocr"

    def __init__(
        self,
        cleaner: TextCleaner,
        ocr_provider: IOCRProvider,
        dpi: int = 150,
        min_chars: int = 100,
        page_min_chars: int = 50,
    ) -> None:
        self._cleaner = cleaner
        self._ocr = ocr_provider
        self._dpi = dpi
        self._min_chars = min_chars
        self._page_min_chars = page_min_chars

    async def attempt(
        self,
        buffer: bytes,
        last_error: str | None = None,
    ) -> ExtractionResult | None:
        with tempfile.TemporaryDirectory(prefix="memorygraph-pdf-ocr-") as temp_dir:
            image_paths = await asyncio.to_thread(self._rasterize, buffer, Path(temp_dir))
            if not image_paths:
                raise OCRExtractionError(
                    "Could not convert PDF to images",
                    provider_name=self._ocr.get_provider_name(),
                )
            logger.info("pdf_rasterized", pages=len(image_paths), dpi=self._dpi)

            try:
                await self._ocr.initialize()
                text, successful_pages = await self._recognize_pages(image_paths)
            finally:
                await self._ocr.terminate()

        if successful_pages == 0:
            raise OCRExtractionError(
                "No pages successfully OCR processed",
                provider_name=self._ocr.get_provider_name(),
            )

        cleaned = self._cleaner.clean(text, _OCR_CLEAN_OPTIONS)
        if len(cleaned) <= self._min_chars:
            raise OCRExtractionError(
                "OCR extracted too little text",
                provider_name=self._ocr.get_provider_name(),
            )

        logger.info(
            "pdf_ocr_complete",
            pages=len(image_paths),
            successful_pages=successful_pages,
            chars=len(cleaned),
        )
        return build_result(
            cleaned,
            {
                "method": "tesseract-ocr",
                "pages": len(image_paths),
                "successful_pages": successful_pages,
                "text_length": len(cleaned),
                "quality": ExtractionQuality.OCR_PROCESSED.value,
                "note": "Scanned PDF processed with OCR",
            },
        )

    async def _recognize_pages(self, image_paths: list[Path]) -> tuple[str, int]:
        parts: list[str] = []
        successful_pages = 0

        for page_number, image_path in enumerate(image_paths, start=1):
            try:
                image_bytes = await asyncio.to_thread(image_path.read_bytes)
                page_text = (await self._ocr.recognize(image_bytes)).strip()
            except Exception as exc:
                logger.warning("ocr_page_failed", page=page_number, error=str(exc))
                parts.append(f"[Page {page_number} - OCR failed]\n\n")
                continue

            if len(page_text) > self._page_min_chars:
                parts.append(page_text + "\n\n")
                successful_pages += 1
            else:
                logger.warning("ocr_page_low_text", page=page_number, chars=len(page_text))
                parts.append(f"[Page {page_number} - Low text quality]\n\n")

        return "".join(parts), successful_pages

    def _rasterize(self, buffer: bytes, directory: Path) -> list[Path]:
        doc = fitz.open(stream=buffer, filetype="pdf")
        try:
            paths: list[Path] = []
            for page_num in range(len(doc)):
                pixmap = doc[page_num].get_pixmap(dpi=self._dpi)
                path = directory / f"page-{page_num + 1}.png"
                pixmap.save(str(path))
                paths.append(path)
            return paths
        finally:
            doc.close()


# ---------------------------------------------------------------------------
# Stage 3: raw buffer scraping
# ---------------------------------------------------------------------------


class BufferScrapeStrategy(PDFExtractionStrategy):
    """Scrape human-readable runs straight out of the undecoded bytes."""

    name = "buffer_scrape"

    def __init__(
        self,
        cleaner: TextCleaner,
        max_bytes: int = 200_000,
        max_chars: int = 10_000,
        min_chars: int = 100,
    ) -> None:
        self._cleaner = cleaner
        self._max_bytes = max_bytes
        self._max_chars = max_chars
        self._min_chars = min_chars

    async def attempt(
        self,
        buffer: bytes,
        last_error: str | None = None,
    ) -> ExtractionResult | None:
        scraped = self.scrape(buffer)
        if len(scraped) <= self._min_chars:
            return None

        cleaned = self._cleaner.clean(scraped)
        logger.warning("pdf_buffer_fallback_used", chars=len(cleaned))
        return ExtractionDegraded(
            text=cleaned,
            metadata={
                "method": "buffer_fallback",
                "pages": 1,
                "text_length": len(cleaned),
                "quality": ExtractionQuality.PARTIAL.value,
            },
            warning="Limited text extracted",
        )

    def scrape(self, buffer: bytes) -> str:
        """Return deduplicated pattern matches from the head of *buffer*."""
        decoded = buffer[: self._max_bytes].decode("utf-8", errors="ignore")
        pieces: list[str] = []
        for pattern in _SCRAPE_PATTERNS:
            matches = pattern.findall(decoded)
            if matches:
                pieces.append(" ".join(dict.fromkeys(matches)))
        return _WHITESPACE.sub(" ", " ".join(pieces)).strip()[: self._max_chars]


# ---------------------------------------------------------------------------
# Stage 4: guidance
# ---------------------------------------------------------------------------


class GuidanceStrategy(PDFExtractionStrategy):
    """Terminal stage: explain to the user how to make the PDF readable."""

    name = "guidance"

    async def attempt(
        self,
        buffer: bytes,
        last_error: str | None = None,
    ) -> ExtractionResult | None:
        return ExtractionDegraded(
            text=GUIDANCE_MESSAGE,
            metadata={
                "method": "failed",
                "pages": 0,
                "text_length": 0,
                "quality": ExtractionQuality.NEEDS_CONVERSION.value,
                "error": last_error,
            },
            warning="PDF needs conversion to a text-searchable format",
        )


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


class PDFExtractor:
    """Runs the PDF strategies in order until one produces a result.

    Parameters
    ----------
    cleaner:
        Shared text cleaner.
    ocr_provider:
        OCR engine for scanned PDFs.  When ``None`` the OCR stage is left
        out of the chain.
    strategies:
        Explicit chain, replacing the default four stages.
    settings:
        Thresholds from the ``extraction.pdf`` config section
        (``direct_min_chars``, ``parser_min_chars``, ``ocr_min_chars``,
        ``ocr_page_min_chars``, ``scrape_max_bytes``, ``scrape_max_chars``)
        plus ``dpi``.
    """

    def __init__(
        self,
        cleaner: TextCleaner,
        ocr_provider: IOCRProvider | None = None,
        strategies: list[PDFExtractionStrategy] | None = None,
        settings: dict | None = None,
    ) -> None:
        self._ocr = ocr_provider
        if strategies is not None:
            self._strategies = list(strategies)
        else:
            self._strategies = self._default_strategies(cleaner, ocr_provider, settings or {})

    @property
    def strategies(self) -> list[PDFExtractionStrategy]:
        return list(self._strategies)

    async def extract(self, buffer: bytes) -> ExtractionResult:
        """Return the first result any strategy accepts."""
        last_error: str | None = None

        for strategy in self._strategies:
            try:
                result = await strategy.attempt(buffer, last_error=last_error)
            except Exception as exc:
                last_error = str(exc)
                logger.warning("pdf_strategy_failed", strategy=strategy.name, error=last_error)
                continue

            if result is not None:
                logger.info("pdf_strategy_accepted", strategy=strategy.name, kind=result.kind)
                return result
            logger.info("pdf_strategy_insufficient", strategy=strategy.name)

        return ExtractionFailed(
            error=last_error or "No PDF extraction strategy produced text",
            metadata={"method": "failed", "pages": 0, "text_length": 0},
        )

    def health_check(self) -> dict[str, bool]:
        """Report which stages of the chain can currently run."""
        return {
            "pymupdf": True,
            "pypdf": True,
            "ocr": self._ocr is not None and self._ocr.is_available(),
            "buffer_fallback": True,
        }

    @staticmethod
    def _default_strategies(
        cleaner: TextCleaner,
        ocr_provider: IOCRProvider | None,
        settings: dict,
    ) -> list[PDFExtractionStrategy]:
        strategies: list[PDFExtractionStrategy] = [
            DirectTextStrategy(
                cleaner,
                min_chars=settings.get("direct_min_chars", 200),
                parser_min_chars=settings.get("parser_min_chars", 100),
            ),
        ]
        if ocr_provider is not None:
            strategies.append(
                OCRStrategy(
                    cleaner,
                    ocr_provider,
                    dpi=settings.get("dpi", 150),
                    min_chars=settings.get("ocr_min_chars", 100),
                    page_min_chars=settings.get("ocr_page_min_chars", 50),
                )
            )
        else:
            logger.warning("pdf_ocr_stage_disabled", reason="no OCR provider configured")
        strategies.append(
            BufferScrapeStrategy(
                cleaner,
                max_bytes=settings.get("scrape_max_bytes", 200_000),
                max_chars=settings.get("scrape_max_chars", 10_000),
            )
        )
        strategies.append(GuidanceStrategy())
        return strategies
