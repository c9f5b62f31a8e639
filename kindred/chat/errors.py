"""Typed errors for the completion pipeline.

Every error carries a FailureReason set where the failure happens
(status code, transport phase), so callers never classify by
re-reading message text.
"""

from __future__ import annotations

from enum import StrEnum


class FailureReason(StrEnum):
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    RATE_LIMITED = "rate_limited"
    REJECTED = "rejected"
    NETWORK = "network"
    STREAM = "stream"
    CANCELLED = "cancelled"


class ChatError(Exception):
    """Base class for all completion pipeline errors."""

    reason: FailureReason = FailureReason.REJECTED


class ConfigurationError(ChatError):
    """No usable API key (or nothing to try). Raised before any network call."""

    reason = FailureReason.CONFIGURATION


class TransportError(ChatError):
    """Network-level failure while attempting one candidate model."""

    reason = FailureReason.NETWORK

    def __init__(self, model: str, cause: Exception) -> None:
        super().__init__(f"Model {model} failed: {type(cause).__name__}: {cause}")
        self.model = model
        self.cause = cause


class RemoteRejection(ChatError):
    """Non-2xx response for one candidate model."""

    def __init__(self, model: str, status_code: int, remote_message: str | None = None) -> None:
        super().__init__(
            f"Model {model} failed: {status_code} - {remote_message or 'Unknown error'}"
        )
        self.model = model
        self.status_code = status_code
        self.remote_message = remote_message
        self.reason = _reason_for_status(status_code)


class AllModelsFailedError(ChatError):
    """Every candidate model failed; wraps the most recent failure."""

    def __init__(
        self,
        last_error: TransportError | RemoteRejection,
        attempts: list[tuple[str, ChatError]] | None = None,
    ) -> None:
        super().__init__(str(last_error))
        self.last_error = last_error
        self.attempts = attempts or []
        self.reason = last_error.reason

    @property
    def status_code(self) -> int | None:
        return getattr(self.last_error, "status_code", None)


class StreamDecodeError(ChatError):
    """The response body could not be read at all."""

    reason = FailureReason.STREAM


class RequestCancelledError(ChatError):
    """The caller cancelled the request; partial_text holds what had arrived."""

    reason = FailureReason.CANCELLED

    def __init__(self, partial_text: str = "") -> None:
        super().__init__("Request cancelled")
        self.partial_text = partial_text


def _reason_for_status(status_code: int) -> FailureReason:
    if status_code in (401, 403):
        return FailureReason.AUTHENTICATION
    if status_code == 429:
        return FailureReason.RATE_LIMITED
    return FailureReason.REJECTED


_USER_MESSAGES: dict[FailureReason, str] = {
    FailureReason.CONFIGURATION: (
        "The AI service is not configured. Please add your Groq API key "
        "(GROQ_API_KEY) to the environment variables."
    ),
    FailureReason.AUTHENTICATION: "Invalid Groq API key. Please check your configuration.",
    FailureReason.RATE_LIMITED: "Rate limit exceeded. Please wait a moment and try again.",
    FailureReason.NETWORK: "Network error. Please check your internet connection and try again.",
    FailureReason.CANCELLED: "The request was cancelled.",
}


def user_message(error: BaseException) -> str:
    """Wording shown to the user for a failed send_message call."""
    if isinstance(error, ChatError):
        text = _USER_MESSAGES.get(error.reason)
        if text:
            return text
        return str(error)
    return "An unexpected error occurred while communicating with the AI."
