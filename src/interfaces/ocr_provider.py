"""Abstract base class for OCR service providers.

Defines the contract for any OCR engine used to read rasterized PDF pages.
An engine is initialized once per document, reused for every page and
terminated when the document is done, so providers that hold a worker
process or a loaded model pay the start-up cost once per document.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: TesseractOCRProvider (src/providers/ocr/)
class IOCRProvider(ABC):
    """Contract for OCR services that turn a page image into text."""

    @abstractmethod
    async def initialize(self) -> None:
        """Acquire engine resources before the first :meth:`recognize` call.

        Raises
        ------
        src.utils.errors.OCRExtractionError
            If the engine cannot be started.
        """

    @abstractmethod
    async def recognize(self, image_bytes: bytes) -> str:
        """Run OCR on one encoded page image and return the recognized text.

        Parameters
        ----------
        image_bytes:
            PNG (or any Pillow-readable) image bytes.

        Returns
        -------
        str
            Recognized text; may be empty for blank pages.

        Raises
        ------
        src.utils.errors.OCRExtractionError
            If recognition fails for this page.
        """

    @abstractmethod
    async def terminate(self) -> None:
        """Release engine resources.  Must be safe to call more than once."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"tesseract"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the engine binary or service can be reached."""
