"""ReviewDeck custom exceptions."""

from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Severity levels that decide how a notification is shown."""

    WARNING = "warning"  # Shows toast notification
    ERROR = "error"  # Shows blocking notification


class ReviewDeckError(Exception):
    """Base exception for ReviewDeck."""

    pass


class ConfigError(ReviewDeckError):
    """Configuration error."""

    pass


class ApiError(ReviewDeckError):
    """Error response (or transport failure) from the dashboard API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "message": self.message,
            "status_code": self.status_code,
            "code": self.code,
            "type": self.__class__.__name__,
        }


class TokenExpiredError(ApiError):
    """Upstream VCS token expired or was revoked; the user must reconnect."""

    pass


class NotFoundError(ApiError):
    """Requested resource does not exist."""

    pass


class WizardValidationError(ReviewDeckError):
    """User input blocks a wizard transition. Never reaches the network."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class WizardStateError(ReviewDeckError):
    """Operation is not valid for the wizard's current step."""

    pass


class OnboardingError(ReviewDeckError):
    """Project creation failed; nothing was provisioned."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
