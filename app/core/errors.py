"""Error taxonomy shared by the wallet and assistant services."""
from typing import Optional


class ParkSarthiError(Exception):
    """Base exception for service errors."""

    message = "An error occurred processing your request."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(ParkSarthiError):
    """Malformed input: non-positive amount, bad user id, unknown action."""

    message = "Invalid request"


class InsufficientBalance(ParkSarthiError):
    """Spend exceeds the wallet balance (or the wallet does not exist)."""

    message = "Insufficient balance"


class StoreUnavailable(ParkSarthiError):
    """Database unreachable; the operation was rolled back and may be retried."""

    message = "Wallet storage is temporarily unavailable. Please try again."


class UpstreamReplyFailure(ParkSarthiError):
    """Gemini errored, timed out or returned no text."""

    message = "Assistant reply could not be generated"
