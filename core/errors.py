# core/errors.py
"""Exception hierarchy shared by the FORGE stages."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    CLASSIFICATION_DEFAULT = "ClassificationDefault"
    NETWORK_RETRYABLE = "NetworkRetryable"
    NETWORK_FATAL = "NetworkFatal"
    EMPTY_COMPLETION = "EmptyCompletion"
    STRUCTURED_PARSE_FAILURE = "StructuredParseFailure"
    VALIDATION_CRITICAL = "ValidationCritical"
    STAGE_FAILURE = "StageFailure"
    INTERNAL = "Internal"


class ForgeError(Exception):
    """Base class for errors raised by FORGE components."""

    kind: ErrorKind = ErrorKind.INTERNAL


class CompletionServiceError(ForgeError):
    """The completion service call failed.

    ``retryable`` tells whether the last failure was transient; when it is set
    the attempts were exhausted before giving up.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
        attempts: int = 1,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.attempts = attempts

    @property
    def kind(self) -> ErrorKind:  # type: ignore[override]
        return ErrorKind.NETWORK_RETRYABLE if self.retryable else ErrorKind.NETWORK_FATAL


class CompletionTimeoutError(ForgeError):
    """A single attempt exceeded its deadline."""

    kind = ErrorKind.NETWORK_RETRYABLE

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Request timeout after {timeout:.1f}s")
        self.timeout = timeout


class EmptyCompletionError(ForgeError):
    """The service returned no text."""

    kind = ErrorKind.EMPTY_COMPLETION

    def __init__(
        self, model: str, reasoning_tokens: int = 0, finish_reason: str | None = None
    ) -> None:
        super().__init__(
            f"Empty response from {model}. Reasoning tokens used: {reasoning_tokens}. "
            "This may indicate the token limit was exhausted by internal reasoning. "
            "Try increasing the token limit."
        )
        self.model = model
        self.reasoning_tokens = reasoning_tokens
        self.finish_reason = finish_reason

    @property
    def exhausted_by_reasoning(self) -> bool:
        return self.reasoning_tokens > 0


class StructuredParseError(ForgeError):
    """No extraction or repair strategy produced parseable JSON."""

    kind = ErrorKind.STRUCTURED_PARSE_FAILURE

    def __init__(self, message: str, preview: str = "") -> None:
        super().__init__(f"{message}\nContent preview: {preview}" if preview else message)
        self.preview = preview


class StageFailure(ForgeError):
    """A stage handler could not produce a usable result."""

    kind = ErrorKind.STAGE_FAILURE

    def __init__(
        self,
        message: str,
        *,
        artifact_name: str | None = None,
        kind: ErrorKind = ErrorKind.STAGE_FAILURE,
    ) -> None:
        super().__init__(message)
        self.artifact_name = artifact_name
        self.kind = kind
