"""OCR provider implementations for rasterized PDF pages.

TesseractOCRProvider (Google Tesseract via pytesseract) is used by the OCR
stage of the PDF extraction chain for scanned documents whose text layer is
missing or too thin.
"""

from src.providers.ocr.tesseract_provider import TesseractOCRProvider

__all__ = ["TesseractOCRProvider"]
