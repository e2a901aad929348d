"""Custom exception hierarchy for MemoryGraph.

All application exceptions inherit from :class:`MemoryGraphError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "tesseract", "chromadb") caused the failure.

The hierarchy is organized by pipeline domain:

    MemoryGraphError  (base -- catch-all for any MemoryGraph error)
    +-- ExtractionValidationError (rejected input: empty buffer, bad type)
    +-- ExtractionError           (text extraction could not complete)
    +-- OCRExtractionError        (page raster OCR failure)
    +-- EntityExtractionError     (LLM entity parsing)
    +-- LLMError                  (any LLM API call failure)
    +-- RAGError                  (embedding or vector-store failure)
    +-- StorageError              (object storage / document store failure)
    |   +-- DocumentNotFoundError (missing or foreign document)
    +-- PipelineError             (fatal ingestion run failure)
    +-- ConfigurationError        (startup / missing config)
    +-- ProviderUnavailableError  (external service down / unreachable)
"""


class MemoryGraphError(Exception):
    """Base exception for all MemoryGraph errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------

class ExtractionValidationError(MemoryGraphError):
    """Raised when an uploaded file is structurally invalid.

    Covers an empty buffer, a missing filename, an unsupported extension
    and an oversize file.  Nothing has been written anywhere when this is
    raised, so callers surface the message verbatim.
    """

    def __init__(
        self,
        message: str = "Invalid document input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(MemoryGraphError):
    """Raised when a single extraction strategy cannot produce text."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class OCRExtractionError(MemoryGraphError):
    """Raised when OCR text extraction fails for a rasterized page."""

    def __init__(
        self,
        message: str = "OCR text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EntityExtractionError(MemoryGraphError):
    """Raised when entity parsing from chunk text fails."""

    def __init__(
        self,
        message: str = "Entity extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(MemoryGraphError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(MemoryGraphError):
    """Raised when an LLM API call fails or returns an unparseable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(MemoryGraphError):
    """Raised when an embedding or vector-store operation fails."""

    def __init__(
        self,
        message: str = "Vector index operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(MemoryGraphError):
    """Raised when the object storage or document store rejects an operation."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(StorageError):
    """Raised when a document does not exist or belongs to another user."""

    def __init__(
        self,
        message: str = "Document not found or access denied",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(MemoryGraphError):
    """Raised when an ingestion run aborts (text too short, no chunks, etc.)."""

    def __init__(
        self,
        message: str = "Document processing failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(MemoryGraphError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
