"""Error taxonomy for the remix engine."""

from __future__ import annotations


class RemixError(Exception):
    """Base class for every error the remix engine raises on purpose."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(RemixError):
    """Request rejected before any state was persisted."""


class QuotaExceededError(ValidationError):
    """Hourly remix limit reached for the user."""

    def __init__(self, message: str, wait_minutes: int):
        super().__init__(message)
        self.wait_minutes = wait_minutes


class InsufficientCreditsError(ValidationError):
    """User has no credit left to spend on a remix."""


class UpstreamError(RemixError):
    """Non-2xx response (or transport failure) from the GitHub API."""

    def __init__(self, status: int, body: str):
        super().__init__(f"GitHub API error {status}: {body}")
        self.status = status
        self.body = body


class TreeTruncatedError(UpstreamError):
    """Recursive tree listing was cut short by GitHub's size limits."""


class EmptySourceError(RemixError):
    """Source branch has no files to copy; raised after the job has started."""


class InternalError(RemixError):
    """Data-store failure while persisting job state."""


class PaymentProviderError(RemixError):
    """Mercado Pago could not be reached or rejected the request."""
