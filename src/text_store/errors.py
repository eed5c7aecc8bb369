"""
Custom error types and exit codes for the text store.

Every error carries a message and a context dictionary with the ids
involved, so that callers (CLI, web layer) can report them verbatim.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class TextStoreError(Exception):
    """Base exception for text store errors."""

    exit_code = 1
    error_code = "TEXTSTORE_ERROR"
    http_status = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "status_code": self.http_status,
        }


class ConfigurationError(TextStoreError):
    """Configuration or path-related errors."""

    exit_code = 2
    error_code = "TEXTSTORE_CONFIG"


class ValidationError(TextStoreError):
    """A required field is missing or malformed."""

    exit_code = 5
    error_code = "TEXTSTORE_VALIDATION"
    http_status = 400


class DuplicateError(TextStoreError):
    """An id or a language code is already taken."""

    exit_code = 6
    error_code = "TEXTSTORE_DUPLICATE"
    http_status = 409


class InvalidClientSuppliedIdError(TextStoreError):
    """The client tried to choose the id of a new resource."""

    exit_code = 5
    error_code = "TEXTSTORE_CLIENT_ID"
    http_status = 400


class NotFoundError(TextStoreError):
    """The referenced record or entry does not exist."""

    exit_code = 7
    error_code = "TEXTSTORE_NOT_FOUND"
    http_status = 404


class IntegrityFault(TextStoreError):
    """
    The primary and secondary index disagree.

    Never caused by client input. Raising one means index maintenance has
    a bug; it is logged at ERROR level and must not be retried.
    """

    exit_code = 8
    error_code = "TEXTSTORE_INTEGRITY"
    http_status = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        logger.error(f"Integrity fault: {message} {self.context}")


class PersistenceError(TextStoreError):
    """The snapshot could not be read or written."""

    exit_code = 9
    error_code = "TEXTSTORE_PERSISTENCE"


# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_VALIDATION_ERROR = 5
EXIT_DUPLICATE_ERROR = 6
EXIT_NOT_FOUND = 7
EXIT_INTEGRITY_FAULT = 8
EXIT_PERSISTENCE_ERROR = 9
