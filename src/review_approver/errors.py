"""Error types for review-approver.

Every failure the worker can hit while processing one job maps onto a
category that decides how it is handled:
- transient store errors propagate and are retried on the next tick
- decode errors leave the claimed entry in the processing list
- resolution mismatches signal a lost or duplicated job
- notification errors are collected and never change a job's fate
- validation errors stop a review before it is ever enqueued
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Categories of errors for handling decisions."""

    TRANSIENT = "transient"  # Store connection/timeout - retry next tick
    DECODE = "decode"  # Malformed claimed payload - job stranded
    RESOLUTION = "resolution"  # Removal count != 1 - lost or duplicate job
    NOTIFICATION = "notification"  # Notifier failed - best effort
    VALIDATION = "validation"  # Bad review input - never enqueued
    CONFIGURATION = "configuration"  # Bad settings - don't retry
    INTERNAL = "internal"  # Bug in code - don't retry


class ApproverError(Exception):
    """Base exception for review-approver errors.

    Attributes:
        message: Human-readable error message
        category: Error category for handling
        context: Additional context information
        recoverable: Whether retrying on a later tick can succeed
    """

    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        context: dict | None = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message


class StoreError(ApproverError):
    """Queue store call failed.

    No job state is changed by a failed call, so the next tick can retry.
    """

    category = ErrorCategory.TRANSIENT

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=True)


class StoreConnectionError(StoreError):
    """Could not reach the queue store."""


class StoreTimeoutError(StoreError):
    """A queue store call exceeded its timeout.

    Distinct from an empty request list: a timed-out claim may or may not
    have happened and must never be read as "no job available".
    """


class JobDecodeError(ApproverError):
    """A claimed payload could not be decoded into a job."""

    category = ErrorCategory.DECODE

    def __init__(self, message: str, payload: bytes | str = b"", context: dict | None = None):
        super().__init__(message, context, recoverable=False)
        self.payload = payload


class ResolutionMismatchError(ApproverError):
    """Terminal removal did not remove exactly one processing-list entry.

    Attributes:
        removed: Number of entries actually removed (0 means the job was
            lost, more than 1 means it was duplicated)
    """

    category = ErrorCategory.RESOLUTION

    def __init__(self, list_name: str, removed: int, context: dict | None = None):
        if removed == 0:
            message = f"Job not found in '{list_name}': possibly lost or already resolved"
        else:
            message = (
                f"Removed {removed} copies of job from '{list_name}': "
                "possible duplicate processing"
            )
        super().__init__(
            message,
            {"list": list_name, "removed": removed, **(context or {})},
            recoverable=False,
        )
        self.list_name = list_name
        self.removed = removed

    @property
    def lost(self) -> bool:
        return self.removed == 0

    @property
    def duplicated(self) -> bool:
        return self.removed > 1


class NotificationError(ApproverError):
    """A notifier failed to deliver its message."""

    category = ErrorCategory.NOTIFICATION

    def __init__(self, message: str, notifier: str = "", context: dict | None = None):
        super().__init__(message, context, recoverable=True)
        self.notifier = notifier


class ValidationError(ApproverError):
    """Review input failed validation.

    Attributes:
        errors: Every problem found with the input
    """

    category = ErrorCategory.VALIDATION

    def __init__(self, errors: list[str], context: dict | None = None):
        super().__init__("; ".join(errors) or "Invalid review", context, recoverable=False)
        self.errors = list(errors)


class ConfigurationError(ApproverError):
    """Configuration error.

    Examples: max attempts below one, unparseable delimiter pattern.
    """

    category = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=False)


def format_error_for_display(error: Exception) -> str:
    """Format an error message for user display.

    Args:
        error: Error to format

    Returns:
        Human-readable error message
    """
    if isinstance(error, ApproverError):
        category = error.category.value
        base_message = error.message

        if error.context:
            context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
            return f"[{category}] {base_message} ({context_str})"

        return f"[{category}] {base_message}"

    return f"[error] {type(error).__name__}: {error}"
