"""Document ingestion pipeline.

Orchestrates the full run: **upload -> extract -> chunk -> embed -> index ->
graph**.

1. **Chunk** (chunker.py / TextChunker) -- Splits cleaned text into
   fixed-size overlapping character windows.

2. **Process** (document_processor.py / DocumentProcessor) -- Drives one
   upload through storage, extraction, chunking, embedding, vector
   indexing and graph building, reporting progress at every step.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.document_processor import DocumentProcessor

__all__ = [
    "DocumentProcessor",
    "TextChunker",
]
