"""Email/password authentication and role checks.

Sign in and sign up go through the Firebase Auth REST API. Profiles and
roles live in the ``users`` collection and are managed by
``FirestoreManager``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from .errors import AuthError, ConfigurationError, PermissionDeniedError
from .schemas import UserProfile, UserRole


logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
REQUEST_TIMEOUT = 15


@dataclass
class AuthSession:
    """A signed-in user."""

    uid: str
    email: str
    id_token: str
    refresh_token: str = ""


def _post(action: str, api_key: Optional[str], email: str, password: str) -> AuthSession:
    if not api_key:
        raise ConfigurationError("FIREBASE_WEB_API_KEY is not set")

    try:
        response = requests.post(
            f"{IDENTITY_TOOLKIT_URL}:{action}",
            params={"key": api_key},
            json={"email": email.strip(), "password": password, "returnSecureToken": True},
            timeout=REQUEST_TIMEOUT,
        )
    except (requests.ConnectionError, requests.Timeout) as e:
        logger.warning("Auth request failed: %s", e)
        raise AuthError("NETWORK_ERROR") from e

    payload = response.json() if response.content else {}
    if response.status_code != 200:
        code = payload.get("error", {}).get("message", f"HTTP_{response.status_code}")
        logger.info("Auth %s rejected for %s: %s", action, email, code)
        raise AuthError(code)

    return AuthSession(
        uid=payload["localId"],
        email=payload.get("email", email),
        id_token=payload.get("idToken", ""),
        refresh_token=payload.get("refreshToken", ""),
    )


def sign_in(api_key: Optional[str], email: str, password: str) -> AuthSession:
    """Sign in with email and password.

    Raises:
        AuthError: If the credentials are rejected or the network fails.
        ConfigurationError: If no web API key is configured.
    """
    return _post("signInWithPassword", api_key, email, password)


def sign_up(api_key: Optional[str], email: str, password: str) -> AuthSession:
    """Create an account with email and password.

    The user profile is not written here; it is created on first login by
    ``FirestoreManager.ensure_user_profile``.

    Raises:
        AuthError: If the email is taken, the password is weak or the
            network fails.
        ConfigurationError: If no web API key is configured.
    """
    return _post("signUp", api_key, email, password)


def is_admin(profile: Optional[UserProfile]) -> bool:
    return profile is not None and profile.role == UserRole.ADMIN.value


def require_admin(profile: Optional[UserProfile], action: str) -> None:
    """Raise unless the profile belongs to an admin.

    Args:
        profile: Profile of the signed-in user.
        action: What the user tried to do, e.g. "delete entries".

    Raises:
        PermissionDeniedError: If the user is not an admin.
    """
    if not is_admin(profile):
        raise PermissionDeniedError(f"Permission denied. Only admins can {action}.")


def can_change_role(actor: Optional[UserProfile], target_uid: str) -> bool:
    """Admins may change other users' roles, never their own."""
    return is_admin(actor) and actor.uid != target_uid


def toggled_role(role: str) -> UserRole:
    return UserRole.STAFF if role == UserRole.ADMIN.value else UserRole.ADMIN
