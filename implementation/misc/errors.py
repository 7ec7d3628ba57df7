"""
Error taxonomy for the MagicStream service.

Every failure raised by the core (credentials, tokens, ranking pipeline,
repositories) is one of these classes. The API layer maps them onto HTTP
status codes through ``status_code``; nothing else should leak to the
transport layer.
"""

from typing import Any, Optional


class MagicStreamError(Exception):
    """Base class for all service errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ===============================
#        CLIENT ERRORS
# ===============================

class ValidationFailure(MagicStreamError):
    """Malformed or incomplete input. Carries field-level problems."""
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, problems: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.problems = problems or []


class AuthenticationFailure(MagicStreamError):
    status_code = 401
    default_message = "Invalid email or password"


class InvalidSignature(AuthenticationFailure):
    default_message = "Invalid token signature"


class MalformedToken(AuthenticationFailure):
    default_message = "Malformed token"


class TokenExpired(AuthenticationFailure):
    default_message = "Token has expired"


class AuthorizationFailure(MagicStreamError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFound(MagicStreamError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(MagicStreamError):
    status_code = 409
    default_message = "Resource already exists"


# ===============================
#        SERVER ERRORS
# ===============================

class DependencyUnavailable(MagicStreamError):
    """Storage or classification service unreachable, failing, or timed out."""
    default_message = "A required service is unavailable"


class VocabularyUnavailable(DependencyUnavailable):
    default_message = "Failed to load rankings"


class ClassificationFailure(DependencyUnavailable):
    default_message = "Failed to classify review"


class PersistenceFailure(DependencyUnavailable):
    default_message = "Failed to persist changes"


class ConfigurationMissing(MagicStreamError):
    default_message = "Required configuration is missing"


class HashingFailure(MagicStreamError):
    default_message = "Failed to hash password"


class SigningFailure(MagicStreamError):
    default_message = "Failed to generate tokens"


class InternalFailure(MagicStreamError):
    pass
