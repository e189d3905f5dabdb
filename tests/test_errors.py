"""Tests for user-facing error messages."""

import pytest
import requests
from google.api_core import exceptions as gcp_exceptions

from parcel_tracker.errors import (
    EMAIL_EXISTS_MESSAGE,
    INVALID_CREDENTIALS_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    PERMISSION_DENIED_MESSAGE,
    WEAK_PASSWORD_MESSAGE,
    AuthError,
    PermissionDeniedError,
    describe_firebase_error,
    is_connectivity_error,
)


@pytest.mark.parametrize("code, message", [
    ("INVALID_LOGIN_CREDENTIALS", INVALID_CREDENTIALS_MESSAGE),
    ("EMAIL_NOT_FOUND", INVALID_CREDENTIALS_MESSAGE),
    ("EMAIL_EXISTS", EMAIL_EXISTS_MESSAGE),
    ("WEAK_PASSWORD : Password should be at least 6 characters", WEAK_PASSWORD_MESSAGE),
    ("NETWORK_ERROR", NETWORK_ERROR_MESSAGE),
])
def test_auth_codes(code, message):
    assert describe_firebase_error(AuthError(code)) == message


def test_unknown_auth_code_is_shown_as_is():
    assert describe_firebase_error(AuthError("TOO_MANY_ATTEMPTS_TRY_LATER")) == "TOO_MANY_ATTEMPTS_TRY_LATER"


def test_permission_errors():
    assert describe_firebase_error(gcp_exceptions.PermissionDenied("nope")) == PERMISSION_DENIED_MESSAGE
    assert describe_firebase_error(RuntimeError("Missing or insufficient permissions.")) == PERMISSION_DENIED_MESSAGE
    assert describe_firebase_error(PermissionDeniedError("Only admins")) == "Only admins"


def test_connectivity_errors():
    assert is_connectivity_error(gcp_exceptions.ServiceUnavailable("unavailable"))
    assert is_connectivity_error(requests.Timeout())
    assert not is_connectivity_error(ValueError("bad"))
    assert describe_firebase_error(gcp_exceptions.DeadlineExceeded("slow")) == NETWORK_ERROR_MESSAGE


def test_fallback_message():
    assert describe_firebase_error(RuntimeError("boom")) == "boom"
    assert describe_firebase_error(RuntimeError()) == "An error occurred"
