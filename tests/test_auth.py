"""Tests for sign in, sign up and role checks."""

from types import SimpleNamespace

import pytest
import requests

from parcel_tracker import auth
from parcel_tracker.auth import can_change_role, require_admin, sign_in, sign_up, toggled_role
from parcel_tracker.errors import AuthError, ConfigurationError, PermissionDeniedError, describe_firebase_error
from parcel_tracker.schemas import UserProfile, UserRole


def _response(status_code, payload):
    return SimpleNamespace(status_code=status_code, content=b"{}", json=lambda: payload)


def test_sign_in(monkeypatch):
    calls = []

    def post(url, params, json, timeout):
        calls.append((url, params, json))
        return _response(200, {"localId": "u1", "email": "a@example.com", "idToken": "tok"})

    monkeypatch.setattr(auth.requests, "post", post)
    session = sign_in("key", " a@example.com ", "secret")
    assert (session.uid, session.email, session.id_token) == ("u1", "a@example.com", "tok")
    url, params, body = calls[0]
    assert url.endswith("accounts:signInWithPassword")
    assert params == {"key": "key"}
    assert body["email"] == "a@example.com"


def test_sign_up_rejected(monkeypatch):
    monkeypatch.setattr(
        auth.requests, "post",
        lambda *args, **kwargs: _response(400, {"error": {"message": "EMAIL_EXISTS"}}),
    )
    with pytest.raises(AuthError) as excinfo:
        sign_up("key", "a@example.com", "secret")
    assert excinfo.value.code == "EMAIL_EXISTS"
    assert "already registered" in describe_firebase_error(excinfo.value)


def test_network_failure(monkeypatch):
    def offline(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(auth.requests, "post", offline)
    with pytest.raises(AuthError) as excinfo:
        sign_in("key", "a@example.com", "secret")
    assert describe_firebase_error(excinfo.value).startswith("Network error")


def test_missing_api_key():
    with pytest.raises(ConfigurationError):
        sign_in(None, "a@example.com", "secret")


def test_require_admin():
    require_admin(UserProfile(uid="u1", role="admin"), "delete entries")
    with pytest.raises(PermissionDeniedError, match="Only admins can delete entries"):
        require_admin(UserProfile(uid="u2", role="staff"), "delete entries")
    with pytest.raises(PermissionDeniedError):
        require_admin(None, "delete entries")


def test_role_changes():
    admin = UserProfile(uid="u1", role="admin")
    assert can_change_role(admin, "u2")
    assert not can_change_role(admin, "u1")
    assert not can_change_role(UserProfile(uid="u3"), "u2")
    assert toggled_role("admin") == UserRole.STAFF
    assert toggled_role("staff") == UserRole.ADMIN
