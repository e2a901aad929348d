"""Extraction result models.

An extraction run produces exactly one of three variants:

* :class:`ExtractionSuccess` -- usable text from a trusted strategy.
* :class:`ExtractionDegraded` -- text was produced but the caller should be
  told why it may be poor (buffer scraping, the guidance message, text that
  failed validation).
* :class:`ExtractionFailed` -- no text at all.

``success`` is ``True`` for the first two so ingestion proceeds on degraded
text; ``kind`` is the discriminator used when the union is serialized.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

MIN_TEXT_LENGTH = 10


class ExtractionQuality(str, Enum):  # noqa: UP042
    """Quality tag carried in ``metadata["quality"]``."""

    TEXT_PDF = "text_pdf"
    OCR_PROCESSED = "ocr_processed"
    PARTIAL = "partial"
    NEEDS_CONVERSION = "needs_conversion"
    TEXT = "text"
    MARKDOWN = "markdown"
    JSON = "json"


class ExtractionSuccess(BaseModel):
    """Text extracted cleanly by one strategy."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_length(self) -> "ExtractionSuccess":
        if len(self.text) < MIN_TEXT_LENGTH:
            raise ValueError(
                f"successful extraction needs at least {MIN_TEXT_LENGTH} characters"
            )
        return self

    @property
    def success(self) -> bool:
        return True

    @property
    def warning(self) -> str | None:
        return None

    @property
    def error(self) -> str | None:
        return None


class ExtractionDegraded(BaseModel):
    """Text extracted with a caveat the end user should see."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["degraded"] = "degraded"
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    warning: str

    @property
    def success(self) -> bool:
        return True

    @property
    def error(self) -> str | None:
        return None


class ExtractionFailed(BaseModel):
    """No usable text; ``error_type`` names the exception class that caused it."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["failed"] = "failed"
    error: str
    error_type: str = "ExtractionError"
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return False

    @property
    def text(self) -> str:
        return ""

    @property
    def warning(self) -> str | None:
        return None


ExtractionResult = Annotated[
    Union[ExtractionSuccess, ExtractionDegraded, ExtractionFailed],
    Field(discriminator="kind"),
]


def build_result(
    text: str,
    metadata: dict[str, Any],
    warning: str | None = None,
) -> ExtractionSuccess | ExtractionDegraded:
    """Return a success, or a degraded result when *warning* is set or text is short."""
    if warning is None and len(text) < MIN_TEXT_LENGTH:
        warning = f"Extracted text is shorter than {MIN_TEXT_LENGTH} characters"
    if warning is not None:
        return ExtractionDegraded(text=text, metadata=metadata, warning=warning)
    return ExtractionSuccess(text=text, metadata=metadata)
