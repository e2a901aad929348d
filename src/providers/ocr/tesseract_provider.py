"""Tesseract OCR provider for rasterized PDF pages.

Wraps pytesseract.  The engine version is checked once in :meth:`initialize` and
every :meth:`recognize` call runs in a worker thread, since both Pillow
decoding and the Tesseract subprocess block.
"""

from __future__ import annotations

import asyncio
import io
import time

import pytesseract
from PIL import Image

from src.interfaces.ocr_provider import IOCRProvider
from src.utils.errors import OCRExtractionError
from src.utils.logging import get_logger


class TesseractOCRProvider(IOCRProvider):
    """OCR provider backed by Google Tesseract via pytesseract.

    Parameters
    ----------
    language:
        Tesseract language code(s), e.g. ``"eng"`` or ``"eng+deu"``.
    tesseract_cmd:
        Optional path to the ``tesseract`` binary when it is not on PATH.
    """

    def __init__(self, language: str = "eng", tesseract_cmd: str = "") -> None:
        self._language = language
        self._initialized = False
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IOCRProvider interface
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        if self._initialized:
            return
        try:
            version = await asyncio.to_thread(pytesseract.get_tesseract_version)
        except Exception as exc:
            raise OCRExtractionError(
                f"Tesseract is not available: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        self._initialized = True
        self._logger.info(
            "ocr_engine_initialized",
            provider="tesseract",
            version=str(version),
            language=self._language,
        )

    async def recognize(self, image_bytes: bytes) -> str:
        """Run Tesseract on one page image.

        Calls :meth:`initialize` lazily if the caller skipped it.
        """
        if not self._initialized:
            await self.initialize()

        start = time.perf_counter()
        try:
            text = await asyncio.to_thread(self._run_tesseract, image_bytes)
        except Exception as exc:
            self._logger.error(
                "ocr_recognition_failed",
                provider="tesseract",
                error=str(exc),
                processing_time=round(time.perf_counter() - start, 3),
            )
            raise OCRExtractionError(
                f"Tesseract OCR failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        self._logger.debug(
            "ocr_page_recognized",
            provider="tesseract",
            chars=len(text),
            processing_time=round(time.perf_counter() - start, 3),
        )
        return text

    async def terminate(self) -> None:
        # pytesseract spawns one subprocess per call; nothing stays resident.
        if self._initialized:
            self._logger.debug("ocr_engine_terminated", provider="tesseract")
        self._initialized = False

    def get_provider_name(self) -> str:
        return "tesseract"

    def is_available(self) -> bool:
        """Check that the Tesseract binary can be executed."""
        try:
            pytesseract.get_tesseract_version()
        except Exception:
            return False
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run_tesseract(self, image_bytes: bytes) -> str:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return pytesseract.image_to_string(image.convert("RGB"), lang=self._language)
