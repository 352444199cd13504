"""
Error taxonomy for the segmentation and feed pipeline.

Errors are a small closed set of string codes carried on a handful of exception
classes (one per component) rather than one subclass per failure. Orchestrating
layers catch the lower-level error, re-wrap it under their own code, and keep the
original in ``details["cause"]`` (plus ``details["original_code"]`` when it had one).
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable failure codes."""

    # Construction time
    API_KEY_MISSING = "API_KEY_MISSING"

    # Call time, wrapping a provider or lower-layer failure
    EMBEDDING_FAILED = "EMBEDDING_FAILED"
    DECOMPOSITION_FAILED = "DECOMPOSITION_FAILED"
    BOUNDARY_DETECTION_FAILED = "BOUNDARY_DETECTION_FAILED"
    SEGMENTATION_FAILED = "SEGMENTATION_FAILED"

    # Malformed input
    VALIDATION_ERROR = "VALIDATION_ERROR"
    EMPTY_CONTENT = "EMPTY_CONTENT"

    # Synthesis phase
    INSUFFICIENT_CONCEPTS = "INSUFFICIENT_CONCEPTS"
    INVALID_PERFORMANCE = "INVALID_PERFORMANCE"

    # Feed assembly
    BUILD_FAILED = "BUILD_FAILED"
    NO_CHAPTERS = "NO_CHAPTERS"
    NO_TEXT_CHUNKS = "NO_TEXT_CHUNKS"
    INVALID_CONCEPTS = "INVALID_CONCEPTS"


class PipelineError(Exception):
    """
    Base error for every pipeline component.

    Attributes:
        message: Human-readable description
        code: ErrorCode for programmatic handling
        details: Diagnostic context (``cause``, ``original_code``, sizes, ...)
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        cause = self.details.get("cause")
        if isinstance(cause, BaseException):
            self.__cause__ = cause

    @property
    def cause(self) -> BaseException | None:
        return self.details.get("cause")

    @property
    def original_code(self) -> ErrorCode | None:
        return self.details.get("original_code")

    @classmethod
    def wrap(cls, error: BaseException, code: ErrorCode, prefix: str) -> PipelineError:
        """
        Re-wrap a lower-level error under this class and code.

        Typed pipeline errors keep their code as ``original_code``; anything else
        only contributes its message.

        Args:
            error: The caught exception
            code: Code for the new error
            prefix: Message prefix, e.g. "Boundary detection failed"

        Returns:
            New error instance of ``cls`` (caller raises it)
        """
        details: dict[str, Any] = {"cause": error}
        if isinstance(error, PipelineError):
            details["original_code"] = error.code
            message = error.message
        else:
            message = str(error) or type(error).__name__
        return cls(f"{prefix}: {message}", code, details)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class SemanticBoundaryError(PipelineError):
    """Boundary detection, embedding, or vector validation failure."""


class PropositionChunkingError(PipelineError):
    """Proposition decomposition failure."""


class TextChunkingPipelineError(PipelineError):
    """Text chunking pipeline failure."""


class VideoSegmentationError(PipelineError):
    """Video segmentation failure."""


class SynthesisPhaseError(PipelineError):
    """Synthesis phase generation failure."""


class FeedBuilderError(PipelineError):
    """Feed assembly failure."""
