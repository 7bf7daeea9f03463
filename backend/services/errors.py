"""Error taxonomy for the chat orchestration core."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ServiceError:
    """Structured error information carried by every ChatServiceError."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


class ChatServiceError(Exception):
    """
    Base exception for failures surfaced to the HTTP caller.

    Subclasses fix the error code and the HTTP status the failure maps to.
    """

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.error = ServiceError(code=self.code, message=message, details=details or {})
        super().__init__(message)


class BadRequest(ChatServiceError):
    """Malformed or missing required input."""
    code = "BAD_REQUEST"
    status_code = 400


class StoreUnavailable(ChatServiceError):
    """The record store could not be read."""
    code = "STORE_UNAVAILABLE"


class PersistenceFailed(ChatServiceError):
    """The record store rejected or failed a write."""
    code = "PERSISTENCE_FAILED"


class DecodeFailed(ChatServiceError):
    """A stored record could not be parsed into a Turn."""
    code = "DECODE_FAILED"


class GenerationUnavailable(ChatServiceError):
    """The generation service could not be reached or refused the call."""
    code = "GENERATION_UNAVAILABLE"


class GenerationTimeout(GenerationUnavailable):
    """The generation call exceeded its deadline."""
    code = "TIMEOUT_ERROR"
    status_code = 504


class GenerationResponseInvalid(ChatServiceError):
    """The generation service answered with a body we cannot use."""
    code = "GENERATION_RESPONSE_INVALID"


class AuthExchangeFailed(ChatServiceError):
    """The OAuth provider rejected the authorization code."""
    code = "AUTH_EXCHANGE_FAILED"
    status_code = 400


class AuthUnavailable(ChatServiceError):
    """The OAuth provider could not be reached or answered garbage."""
    code = "AUTH_UNAVAILABLE"


class ConversationBusy(ChatServiceError):
    """Another turn of the same conversation held it past the wait deadline."""
    code = "CONVERSATION_BUSY"
    status_code = 504
