"""
Error taxonomy for the matching pipeline.

Every failure that reaches a caller is one of these types. Each carries
the HTTP-style status code the API layer responds with.
"""

from typing import Any, Optional


class MatchingError(Exception):
    """Base class for all pipeline errors."""

    code: str = "matching_error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, *, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the caller."""
        return {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class ValidationError(MatchingError):
    """Malformed request or job description too short."""

    code = "validation_error"
    status_code = 400


class ExtractionError(MatchingError):
    """Job requirement extraction failed or returned an incomplete structure."""

    code = "extraction_error"
    status_code = 422
    retryable = True


class RateLimited(MatchingError):
    """Upstream throttling persisted after the retry budget was spent."""

    code = "rate_limited"
    status_code = 429
    retryable = True

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again in a moment.",
        *,
        attempts: int = 0,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)
        self.attempts = attempts


class QuotaExceeded(MatchingError):
    """Model provider credits or billing quota exhausted."""

    code = "quota_exceeded"
    status_code = 402

    def __init__(
        self,
        message: str = "AI usage limit reached. Please add credits or check billing.",
        *,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)


class ProviderError(MatchingError):
    """Any other model provider failure (network, 5xx, malformed JSON)."""

    code = "provider_error"
    status_code = 502
