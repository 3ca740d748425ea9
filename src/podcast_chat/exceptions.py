"""Custom exceptions for podcast_chat.

Every error raised by the pipeline carries a machine-checkable ``kind`` and a
human-readable ``message`` so callers (CLI, TUI) can branch on the former and
display the latter.

Exception Hierarchy:
    PodcastChatError (base)
    ├── AuthError - Authentication failed or session expired (401)
    ├── ForbiddenError - Access denied (403)
    ├── NotFoundError - Episode, URL or remote resource missing (404)
    ├── RateLimitError - Too many requests (429)
    ├── ApiError - Any other remote API failure
    ├── CredentialsError - Credential store could not supply secrets
    ├── UnsupportedFormatError - Audio extension outside the MIME table
    ├── StreamError - Download or model stream broke or produced nothing
    ├── ValidationError - Record failed validation or illegal state transition
    ├── EmptyResultError - Transcription finished with zero valid segments
    ├── PreconditionError - Chat requested without a completed transcript
    ├── ModelError - AI provider failure
    └── OperationCancelledError - Cancellation token was triggered
"""

from typing import Optional


class PodcastChatError(Exception):
    """Base exception for all podcast_chat errors.

    Attributes:
        kind: Stable machine-checkable error kind (e.g., "not-found")
        message: Human-readable error message
        suggestion: Optional suggestion for resolving the error
    """

    kind = "error"

    def __init__(self, message: str, suggestion: Optional[str] = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message with suggestion."""
        if self.suggestion:
            return f"{self.message} Suggestion: {self.suggestion}"
        return self.message


class AuthError(PodcastChatError):
    """Raised when credentials are invalid or the session has expired."""

    kind = "auth-expired"


class ForbiddenError(PodcastChatError):
    kind = "forbidden"


class NotFoundError(PodcastChatError):
    """Raised when an episode, its URL, or a remote resource does not exist."""

    kind = "not-found"


class RateLimitError(PodcastChatError):
    kind = "rate-limited"


class ApiError(PodcastChatError):
    """Raised for remote API failures not covered by a more specific class.

    Attributes:
        status_code: HTTP status code when one was received
    """

    kind = "api-error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message=message, suggestion=suggestion)


class CredentialsError(PodcastChatError):
    """Raised when the credential store cannot supply credentials or an API key."""

    kind = "credentials"


class UnsupportedFormatError(PodcastChatError):
    """Raised when an audio file extension has no known MIME type.

    Example:
        >>> raise UnsupportedFormatError("Unsupported audio file type: .aac")
    """

    kind = "unsupported-format"


class StreamError(PodcastChatError):
    """Raised when a download or model stream fails or yields nothing."""

    kind = "stream"


class ValidationError(PodcastChatError):
    kind = "validation"


class EmptyResultError(PodcastChatError):
    """Raised when a transcription stream finished without any valid segment."""

    kind = "empty-result"


class PreconditionError(PodcastChatError):
    """Raised when an operation's preconditions are not met.

    Common causes:
    - Chat requested for an episode that has not been transcribed
    - Transcription record exists but is not completed
    """

    kind = "precondition"


class ModelError(PodcastChatError):
    """Raised when the AI model provider fails.

    Attributes:
        provider: Name of the provider (e.g., "GeminiProvider/Chat")
    """

    kind = "model"

    def __init__(
        self,
        message: str,
        provider: str = "Unknown",
        suggestion: Optional[str] = None,
    ) -> None:
        self.provider = provider
        super().__init__(message=f"[{provider}] {message}", suggestion=suggestion)


class OperationCancelledError(PodcastChatError):
    kind = "cancelled"

    def __init__(self, operation: str = "operation") -> None:
        self.operation = operation
        super().__init__(message=f"{operation} was cancelled")
