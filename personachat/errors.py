"""
Error taxonomy for the chat pipeline.

Every error that can reach a client carries the HTTP status it maps to and a
human-readable message that goes into the JSON `error` field. Streaming and
persistence errors are the exceptions: a stream has already sent its status
line, and persistence failures are only ever logged.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base for errors surfaced to the client as {"error": message}."""

    status_code: int = 500
    default_message = "An unexpected error occurred. Please try again."

    def __init__(self, message: str | None = None, detail: str = ""):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class RateLimitExceeded(ChatError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."

    def __init__(self, result, message: str | None = None):
        super().__init__(message)
        self.result = result

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "details": {
                "limit": self.result.limit,
                "remaining": self.result.remaining,
                "reset": self.result.reset_iso,
            },
        }


class ValidationError(ChatError):
    status_code = 400
    default_message = "Invalid request."


class UpstreamError(ChatError):
    """Generic completion provider failure."""
    status_code = 500


class UpstreamConfigurationError(UpstreamError):
    """Provider rejected our credentials. Operator-fixable."""
    status_code = 500
    default_message = "Completion provider configuration error."


class UpstreamQuotaError(UpstreamError):
    """Provider quota exhausted. Transient."""
    status_code = 503
    default_message = "Completion provider quota exceeded."


class UpstreamStreamingError(Exception):
    """Provider failed after the event stream was opened."""


class PersistenceError(Exception):
    """A message store write or read failed."""


def classify_upstream_error(detail: str, status_code: int | None = None) -> UpstreamError:
    """
    Map a provider failure to the error class the client sees.

    Credential problems (401/403, or any mention of an API key) are
    configuration errors; anything mentioning quota is a quota error;
    everything else is a generic upstream error.
    """
    text = (detail or "").lower()
    if status_code in (401, 403) or "api key" in text:
        return UpstreamConfigurationError(detail=detail)
    if "quota" in text:
        return UpstreamQuotaError(detail=detail)
    return UpstreamError(detail=detail)
