"""Exceptions and user-facing error messages for the Parcel Tracker."""

import requests
from google.api_core import exceptions as gcp_exceptions


class ParcelTrackerError(Exception):
    """Base class for all application errors."""


class ConfigurationError(ParcelTrackerError):
    """A required service is not configured."""


class AuthError(ParcelTrackerError):
    """Sign in or sign up failed.

    Attributes:
        code: Error code returned by the identity provider, e.g.
            ``EMAIL_EXISTS`` or ``INVALID_LOGIN_CREDENTIALS``.
    """

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


class PermissionDeniedError(ParcelTrackerError):
    """The signed-in user may not perform the requested action."""


class MediaUploadError(ParcelTrackerError):
    """An image could not be uploaded to the media CDN."""


class ExtractionError(ParcelTrackerError):
    """AI receipt scanning failed."""


class ImportFileError(ParcelTrackerError):
    """An import file could not be read."""


class OfflineError(ParcelTrackerError):
    """The offline queue could not store or flush an entry."""


INVALID_CREDENTIALS_MESSAGE = "Invalid email or password. If you are new, please create an account."
EMAIL_EXISTS_MESSAGE = "This email is already registered. Please sign in instead."
WEAK_PASSWORD_MESSAGE = "Password should be at least 6 characters."
NETWORK_ERROR_MESSAGE = "Network error. Check internet connection and try again."
PERMISSION_DENIED_MESSAGE = "Permission Denied: Check Firestore Security Rules in Firebase Console."

_AUTH_CODE_MESSAGES = {
    "INVALID_LOGIN_CREDENTIALS": INVALID_CREDENTIALS_MESSAGE,
    "INVALID_PASSWORD": INVALID_CREDENTIALS_MESSAGE,
    "EMAIL_NOT_FOUND": INVALID_CREDENTIALS_MESSAGE,
    "INVALID_EMAIL": INVALID_CREDENTIALS_MESSAGE,
    "EMAIL_EXISTS": EMAIL_EXISTS_MESSAGE,
    "WEAK_PASSWORD": WEAK_PASSWORD_MESSAGE,
    "NETWORK_ERROR": NETWORK_ERROR_MESSAGE,
}

_CONNECTIVITY_ERRORS = (
    requests.ConnectionError,
    requests.Timeout,
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.RetryError,
    ConnectionError,
    TimeoutError,
)


def is_connectivity_error(exc: BaseException) -> bool:
    """Tell whether a failure means the backend could not be reached.

    Such failures route a parcel write to the offline queue instead of
    surfacing an error.
    """
    return isinstance(exc, _CONNECTIVITY_ERRORS)


def describe_firebase_error(exc: BaseException) -> str:
    """Map an SDK, REST or application error to a message for the user.

    Args:
        exc: The exception raised by an action.

    Returns:
        A short, human readable message.
    """
    if isinstance(exc, AuthError):
        # signUp reports "WEAK_PASSWORD : Password should be at least 6 characters"
        code = exc.code.split(":")[0].strip()
        return _AUTH_CODE_MESSAGES.get(code, str(exc))
    if isinstance(exc, (gcp_exceptions.PermissionDenied, PermissionDeniedError)):
        if isinstance(exc, PermissionDeniedError) and str(exc):
            return str(exc)
        return PERMISSION_DENIED_MESSAGE
    if "Missing or insufficient permissions" in str(exc):
        return PERMISSION_DENIED_MESSAGE
    if is_connectivity_error(exc):
        return NETWORK_ERROR_MESSAGE
    return str(exc) or "An error occurred"
