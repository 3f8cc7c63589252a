from typing import Optional

from fastapi import status
import logging

logger = logging.getLogger(__name__)


class QuoteError(Exception):
    """Base class for errors surfaced to API clients as ``{ok: false, error}``."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "We could not send your quote right now. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.public_message
        super().__init__(self.message)

    def payload(self) -> dict:
        # Server-side failures never leak provider or configuration details
        error = self.public_message if self.status_code >= 500 else self.message
        return {"ok": False, "error": error}


class QuoteValidationError(QuoteError):
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid request payload."


class OriginNotAllowedError(QuoteError):
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "This domain is not authorized to submit quotes."


class RateLimitExceeded(QuoteError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    public_message = "Too many requests. Please wait a moment and try again."

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = max(1, int(retry_after))
        super().__init__(message)


class MailDeliveryError(QuoteError):
    """Mail provider rejected or never acknowledged a message.

    ``transient`` marks failures worth retrying: network errors, timeouts,
    HTTP 408, 429 and 5xx.
    """

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None, transient: bool = False):
        super().__init__(message)
        self.provider_status = status_code
        self.transient = transient


class MissingConfigurationError(QuoteError):
    def __init__(self, setting: str, message: Optional[str] = None):
        self.setting = setting
        super().__init__(message or f"Missing required configuration: {setting}")
        logger.error("Missing required configuration: %s", setting)


def is_transient_status(status_code: int) -> bool:
    return status_code in (408, 429) or status_code >= 500
