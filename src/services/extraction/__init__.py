"""Text extraction from uploaded files (PDF chain and UTF-8 text family)."""

from src.services.extraction.file_parser import ExtractOptions, FileParser
from src.services.extraction.pdf_extractor import PDFExtractor
from src.services.extraction.text_extractor import TextExtractor

__all__ = ["ExtractOptions", "FileParser", "PDFExtractor", "TextExtractor"]
