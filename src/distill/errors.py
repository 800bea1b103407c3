"""Exception taxonomy for the distill pipeline.

Every stage raises a subclass of :class:`DistillError`. The orchestrator
catches them once at its boundary; ``retryable`` decides whether the run is
eligible for the single automatic retry.
"""

from __future__ import annotations


class DistillError(Exception):
    """Base class for all distill pipeline errors."""

    retryable: bool = False


class UnsupportedFormat(DistillError):
    """A document carries a format tag no extractor recognises."""

    def __init__(self, fmt: str) -> None:
        super().__init__(f"Unsupported file type: {fmt!r}")
        self.fmt = fmt


class ExtractionError(DistillError):
    """Raw bytes could not be turned into text (corrupt, encrypted, undecodable)."""


class BlobFetchError(DistillError):
    """Reading source bytes from the blob store failed."""

    retryable = True


class InvocationError(DistillError):
    """The completion service failed or returned something unusable."""

    retryable = True


class NoTextContent(InvocationError):
    """The completion response contained no text block."""

    def __init__(self, message: str = "No text content in model response") -> None:
        super().__init__(message)


class ClassifierError(DistillError):
    """Intent classification failed. Never escapes the classifier."""


class CompressionError(DistillError):
    """Knowledge-base compression failed; prior compressed state is untouched."""


class RunTimeout(DistillError):
    """A pipeline run exceeded its time budget at a stage boundary."""

    retryable = True


class IngestError(DistillError):
    """A file was rejected at ingest time (format or size)."""


class DocumentNotFound(DistillError):
    """No source document with the given ID exists."""


class InvalidTransition(DistillError):
    """A status change was requested from a state that does not allow it."""
