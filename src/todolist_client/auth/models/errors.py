"""Error taxonomy for token acquisition and protected API calls.

Identity provider adapters raise `ProviderException` carrying a provider error
code. The identity provider client turns those exceptions into `AuthFailure`
values tagged with an `ErrorKind`, so callers switch on the kind instead of
matching strings.
"""

from __future__ import annotations

from enum import Enum

# Provider error codes that need specific branching
FAILED_SILENT = "failed_to_acquire_token_silently"
INTERACTION_REQUIRED = "interaction_required"
SERVICE_UNAVAILABLE = "temporarily_unavailable"
USER_CANCELED = "authentication_canceled"


class ErrorKind(str, Enum):
    """Closed set of failure kinds reported by acquisitions and runs."""

    SILENT_ACQUISITION_FAILED = "silent_acquisition_failed"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    USER_CANCELED = "user_canceled"
    EMPTY_CHALLENGE_PAYLOAD = "empty_challenge_payload"
    PROVIDER_ERROR = "provider_error"
    API_FAILURE = "api_failure"


class TodoListClientError(Exception):
    """Base exception for all todo-list client errors."""

    pass


class ConfigurationError(TodoListClientError):
    """Raised when required configuration values are missing or invalid."""

    pass


class ProviderException(TodoListClientError):
    """Raised by identity provider adapters when an acquisition fails.

    Attributes:
        error_code: Provider-defined error code, e.g.
            ``failed_to_acquire_token_silently``.
    """

    def __init__(self, error_code: str, message: str | None = None):
        self.error_code = error_code
        super().__init__(message or error_code)

    def display_message(self) -> str:
        """Message plus the nested cause text, if any, for display."""
        message = str(self)
        if self.__cause__ is not None:
            message += f"Inner Exception : {self.__cause__}"
        return message


class CacheError(TodoListClientError):
    """Raised when the persisted credential cache cannot be written."""

    pass
