"""
Error taxonomy for the ingestion pipeline.

Most failures are recovered where they happen and recorded as `IngestIssue`s so the
run report can list them; only configuration problems abort a run.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    STRUCTURAL = "structural"
    """A document section could not be classified or has no title column; the section is skipped."""

    EXTRACTION = "extraction"
    """A row cannot be attributed to a year or title; the row is skipped."""

    EXTERNAL_SERVICE = "external_service"
    """The metadata service failed; the entry proceeds without metadata."""

    INTEGRITY = "integrity"
    """An identifier is already held by another work; the assignment is refused."""

    UNIT_FAILURE = "unit_failure"
    """Processing one ceremony raised; the unit is rolled back and the run continues."""

    FATAL = "fatal"
    """Required configuration is missing; the run aborts before any network activity."""


class IngestIssue(BaseModel):
    """Structured record of a recovered failure."""

    kind: ErrorKind
    message: str = Field(..., description="Human-readable description")
    source_key: str | None = None
    year: int | None = None
    title: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    def to_log_message(self) -> str:
        loc = self.source_key or "-"
        if self.year is not None:
            loc = f"{loc}/{self.year}"
        subject = f" '{self.title}'" if self.title else ""
        return f"[{self.kind.value}] {loc}{subject}: {self.message}"


class IngestError(RuntimeError):
    """Base class for errors raised by the ingest service."""


class MissingConfigurationError(IngestError):
    """Fatal: a required setting (e.g. the metadata API key) is absent."""


class MetadataServiceError(IngestError):
    """Network failure, non-2xx response or malformed JSON from the metadata service."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DocumentFetchError(IngestError):
    """A source document could not be fetched."""

    def __init__(self, url: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status_code = status_code
