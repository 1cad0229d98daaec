"""
Error taxonomy for the binding layer.

Validation failures are data (see ``forms.form_state.ValidationResult``) and the
"identity not resolved yet" case is the binders' not-ready state, so neither
has an exception class here.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar
import asyncio
import logging

from google.api_core import exceptions as api_exceptions
from firebase_admin import exceptions as firebase_exceptions

from .config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorType(str, Enum):
    NETWORK = "network"
    VALIDATION = "validation"
    FIRESTORE = "firestore"
    AUTH = "authentication"
    PERMISSION = "permission"
    UNKNOWN = "unknown"


ERROR_CATEGORIES: Dict[ErrorType, Dict[str, str]] = {
    ErrorType.NETWORK: {
        "title": "Connection Error",
        "message": "Unable to connect to the server. Please check your internet connection and try again.",
    },
    ErrorType.VALIDATION: {
        "title": "Validation Error",
        "message": "Please check your input and try again.",
    },
    ErrorType.FIRESTORE: {
        "title": "Database Error",
        "message": "There was an issue with the database. Please try again.",
    },
    ErrorType.AUTH: {
        "title": "Authentication Error",
        "message": "Please sign in again to continue.",
    },
    ErrorType.PERMISSION: {
        "title": "Permission Denied",
        "message": "You don't have permission to perform this action.",
    },
    ErrorType.UNKNOWN: {
        "title": "Something went wrong",
        "message": "An unexpected error occurred. Please try again.",
    },
}


class SocietyHubError(Exception):
    """Base class for errors raised by the binding layer"""

    def __init__(self, message: str, error_type: ErrorType = ErrorType.UNKNOWN):
        super().__init__(message)
        self.error_type = error_type


class SubscriptionError(SocietyHubError):
    """A live query or one-shot fetch was rejected or dropped by the store"""

    def __init__(self, collection: str, cause: BaseException):
        super().__init__(f"{collection}: {error_message(cause)}", detect_error_type(cause))
        self.collection = collection


class MutationError(SocietyHubError):
    """A create/update/delete was rejected by the store"""

    def __init__(self, operation: str, collection: str, cause: BaseException, document_id: Optional[str] = None):
        target = f"{collection}/{document_id}" if document_id else collection
        super().__init__(f"{operation} on {target} failed: {error_message(cause)}", detect_error_type(cause))
        self.operation = operation
        self.collection = collection
        self.document_id = document_id


def error_message(error: BaseException) -> str:
    """Short human-readable message for an error"""
    if isinstance(error, api_exceptions.GoogleAPICallError) and error.message:
        return error.message
    return str(error) or error.__class__.__name__


def detect_error_type(error: Optional[BaseException]) -> ErrorType:
    """Map store / auth SDK errors onto the coarse error categories."""
    if error is None:
        return ErrorType.UNKNOWN

    if isinstance(error, SocietyHubError):
        return error.error_type

    # Firebase Auth errors
    if isinstance(error, (api_exceptions.Unauthenticated, firebase_exceptions.UnauthenticatedError)):
        return ErrorType.AUTH
    code = getattr(error, "code", "") or ""
    if isinstance(code, str) and code.startswith("auth/"):
        return ErrorType.AUTH

    message = str(error).lower()

    # Firestore permission errors
    if isinstance(error, (api_exceptions.PermissionDenied, firebase_exceptions.PermissionDeniedError)):
        return ErrorType.PERMISSION
    if "permission" in message:
        return ErrorType.PERMISSION

    # Network errors
    if isinstance(error, (
        api_exceptions.ServiceUnavailable,
        api_exceptions.DeadlineExceeded,
        firebase_exceptions.UnavailableError,
        ConnectionError,
        asyncio.TimeoutError,
    )):
        return ErrorType.NETWORK
    if "network" in message or "offline" in message:
        return ErrorType.NETWORK

    if isinstance(error, (api_exceptions.GoogleAPICallError, firebase_exceptions.FirebaseError)):
        return ErrorType.FIRESTORE

    return ErrorType.UNKNOWN


def describe_error(error: BaseException, context: str = "") -> Dict[str, Any]:
    """
    Log an error and return the structured description the caller can surface
    (toast, inline message, HTTP detail). Presentation is the caller's concern.
    """
    error_type = detect_error_type(error)
    category = ERROR_CATEGORIES[error_type]

    where = f" in {context}" if context else ""
    logger.error(f"Error [{error_type.value}]{where}: {error_message(error)}")

    return {
        "type": error_type.value,
        "title": category["title"],
        "message": category["message"],
        "detail": error_message(error),
        "context": context,
    }


def is_recoverable(error: BaseException) -> bool:
    error_type = detect_error_type(error)
    return error_type not in (ErrorType.AUTH, ErrorType.PERMISSION)


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    max_retries: Optional[int] = None,
    delay: Optional[float] = None,
) -> T:
    """
    Await ``operation()`` up to ``max_retries`` times with exponential backoff.
    Auth and permission failures are raised immediately.
    """
    max_retries = max_retries or settings.RETRY_MAX_ATTEMPTS
    delay = settings.RETRY_BASE_DELAY if delay is None else delay

    for attempt in range(1, max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt == max_retries or not is_recoverable(e):
                raise
            wait_time = delay * (2 ** (attempt - 1))
            logger.warning(f"Retry attempt {attempt}/{max_retries} in {wait_time:.2f}s after: {error_message(e)}")
            await asyncio.sleep(wait_time)

    # max_retries < 1
    raise ValueError("max_retries must be at least 1")
