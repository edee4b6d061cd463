"""Custom exception types raised by the Nordlys adapter."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_RETRYABLE_STATUS_CODES = {408, 409, 429}


class AdapterError(RuntimeError):
    """Raised when an adapter cannot fulfil a request."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidPromptError(AdapterError):
    """Raised when a prompt is missing content the backend requires."""


class UnsupportedContentError(AdapterError):
    """Raised when a prompt contains content the backend cannot represent."""

    def __init__(self, functionality: str) -> None:
        self.functionality = functionality
        super().__init__(f"'{functionality}' functionality not supported")


class LoadAPIKeyError(AdapterError):
    """Raised when no API key is configured."""


class NoSuchModelError(AdapterError):
    """Raised when the provider does not offer the requested model type."""

    def __init__(self, model_id: str, model_type: str) -> None:
        self.model_id = model_id
        self.model_type = model_type
        super().__init__(f"no such {model_type}: {model_id}")


class StreamParseError(AdapterError):
    """Raised when a single stream chunk cannot be decoded."""

    def __init__(self, message: str, *, raw: str | None = None) -> None:
        self.raw = raw
        super().__init__(message)


class APICallError(AdapterError):
    """Structured error returned by (or while talking to) the backend API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_type: str | None = None,
        code: str | int | None = None,
        param: Any = None,
        retry_after: float | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type
        self.code = code
        self.param = param
        self.retry_after = retry_after
        self.response_body = response_body

    @property
    def is_retryable(self) -> bool:
        """Whether an external retry policy may reasonably retry this call."""

        if self.status_code is None:
            return False
        return self.status_code in _RETRYABLE_STATUS_CODES or self.status_code >= 500

    @classmethod
    def from_error_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
        response_body: str | None = None,
    ) -> "APICallError":
        """Build an error from the ``{"message", "type", "param", "code"}`` mapping."""

        message = payload.get("message")
        if not isinstance(message, str) or not message:
            message = "Nordlys API error"
        return cls(
            message,
            status_code=status_code,
            error_type=payload.get("type"),
            code=payload.get("code"),
            param=payload.get("param"),
            retry_after=retry_after,
            response_body=response_body,
        )
