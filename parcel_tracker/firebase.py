"""Firebase Admin initialization."""

import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore

from .config import AppConfig
from .errors import ConfigurationError


logger = logging.getLogger(__name__)


def get_firebase_app(config: Optional[AppConfig] = None) -> firebase_admin.App:
    """Return the default Firebase app, initializing it on first use.

    Args:
        config: Application settings. Read from the environment when omitted.

    Returns:
        The default firebase_admin App.

    Raises:
        ConfigurationError: If the credentials file cannot be loaded.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    config = config or AppConfig.from_env()
    options = {}
    if config.firebase_project_id:
        options["projectId"] = config.firebase_project_id

    try:
        if config.firebase_credentials:
            cred = credentials.Certificate(config.firebase_credentials)
        else:
            cred = credentials.ApplicationDefault()
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Could not load Firebase credentials: {e}") from e

    logger.info("Initializing Firebase app for project %s", config.firebase_project_id or "(default)")
    return firebase_admin.initialize_app(cred, options or None)


def get_firestore_client(config: Optional[AppConfig] = None):
    """Get a Firestore client bound to the default Firebase app."""
    return firestore.client(app=get_firebase_app(config))
