"""Utility modules for MemoryGraph.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at MemoryGraphError;
  each pipeline stage raises its own subclass so callers can handle failures
  granularly without broad ``except Exception`` blocks.
- **concurrency** -- Ordered batch fan-out with an inter-batch delay, used to
  keep embedding and LLM calls under provider rate limits.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_cleaner** -- Unicode normalization, OCR repair and optional
  structural cleanup of extracted text.
- **text_analysis** -- Paragraph and sentence splitting, text statistics
  and length/content validation.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    EntityExtractionError,
    ExtractionError,
    ExtractionValidationError,
    LLMError,
    MemoryGraphError,
    OCRExtractionError,
    PipelineError,
    ProviderUnavailableError,
    RAGError,
    StorageError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import chunked, gather_in_batches

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

# -- Text cleaning and analysis --------------------------------------------
from src.utils.text_analysis import analyze_text, validate_text
from src.utils.text_cleaner import CleanOptions, TextCleaner

__all__ = [
    "CleanOptions",
    "ConfigurationError",
    "DocumentNotFoundError",
    "EntityExtractionError",
    "ExtractionError",
    "ExtractionValidationError",
    "LLMError",
    "MemoryGraphError",
    "OCRExtractionError",
    "PipelineError",
    "ProviderUnavailableError",
    "RAGError",
    "StorageError",
    "TextCleaner",
    "analyze_text",
    "chunked",
    "configure_logging",
    "gather_in_batches",
    "get_logger",
    "validate_text",
]
