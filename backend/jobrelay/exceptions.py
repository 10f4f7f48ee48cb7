"""Domain-specific exceptions for the orchestration and provider layers.

Routers do not catch these; the handler in `main.py` maps each kind to an HTTP
status and a `{"error": kind, "detail": message}` body.
"""
from __future__ import annotations

from typing import Any, Optional


class JobRelayError(Exception):
    """Base class. `kind` is the user-facing taxonomy label."""

    kind = "Error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}" if self.message else self.kind


class InputValidationError(JobRelayError):
    """Missing or malformed caller input (raised before any remote call)."""

    kind = "ValidationError"


class ProviderError(JobRelayError):
    """Non-2xx or malformed response from a remote call."""

    kind = "ProviderError"

    def __init__(self, message: str, status_code: int = 0, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        text = f"{self.kind}: {self.message}"
        if self.status_code:
            text += f" (HTTP {self.status_code})"
        if self.body:
            text += f" {self.body[:500]}"
        return text


class JobTimeoutError(JobRelayError):
    """Polling exceeded the wait budget. Carries the last observed raw status."""

    kind = "Timeout"

    def __init__(self, message: str, last_status: Optional[str] = None, raw: Any = None) -> None:
        super().__init__(message)
        self.last_status = last_status
        self.raw = raw

    def __str__(self) -> str:
        return f"{self.kind}: {self.message} (last status: {self.last_status or 'unknown'})"


class JobFailedError(JobRelayError):
    """Provider reported a terminal failed or cancelled state."""

    kind = "JobFailed"

    def __init__(self, reason: str, raw: Any = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw = raw


class NoContentError(JobRelayError):
    """Fan-out aggregation yielded no usable text across all inputs."""

    kind = "NoContentError"


class CleanupError(JobRelayError):
    """A best-effort remote delete failed. Logged only, never raised to callers."""

    kind = "CleanupError"
