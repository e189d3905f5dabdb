"""Configuration for the Parcel Tracker.

Settings are read from a ``.env`` file (python-dotenv) and the process
environment, and collected in a single dataclass shared by the Streamlit app
and the status-check API.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Load environment variables
load_dotenv()

PROJECT_ROOT = Path(__file__).parent.parent

# Firestore collection names
PARCELS_COLLECTION = "parcels"
PAYMENTS_COLLECTION = "payments"
USERS_COLLECTION = "users"

# Firestore rejects batches larger than this
FIRESTORE_BATCH_LIMIT = 500
IMPORT_CHUNK_SIZE = 100

# Dashboard reads the latest N parcels when no date range is set
DASHBOARD_LIMIT = 500

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_PROBE_URL = "https://firestore.googleapis.com"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_logging_configured = False


@dataclass
class AppConfig:
    """Runtime settings for every external service the app talks to.

    Attributes:
        firebase_credentials: Path to a service account JSON file. When unset
            the Admin SDK falls back to application default credentials.
        firebase_project_id: Firestore project id.
        firebase_web_api_key: Web API key used for email/password sign in.
        cloudinary_cloud_name: Cloudinary cloud for image uploads.
        cloudinary_upload_preset: Unsigned upload preset.
        cloudinary_api_key: API key for signed uploads (optional).
        cloudinary_api_secret: API secret for signed uploads (optional).
        gemini_api_key: Key for AI receipt scanning (optional).
        gemini_model: Gemini model name.
        offline_db_path: SQLite file holding the offline queue.
        public_api_url: Base URL Tally uses to reach the status endpoint.
        online_probe_url: URL requested to decide whether we are online.
        log_level: Root log level name.
    """

    firebase_credentials: Optional[str] = None
    firebase_project_id: Optional[str] = None
    firebase_web_api_key: Optional[str] = None
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_upload_preset: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    offline_db_path: Path = PROJECT_ROOT / "data" / "offline" / "pending_parcels.db"
    public_api_url: str = DEFAULT_API_URL
    online_probe_url: str = DEFAULT_PROBE_URL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build the configuration from environment variables."""
        offline_db = os.getenv("OFFLINE_DB_PATH")
        return cls(
            firebase_credentials=os.getenv("FIREBASE_CREDENTIALS") or None,
            firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
            firebase_web_api_key=os.getenv("FIREBASE_WEB_API_KEY") or None,
            cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME") or None,
            cloudinary_upload_preset=os.getenv("CLOUDINARY_UPLOAD_PRESET") or None,
            cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY") or None,
            cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET") or None,
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
            offline_db_path=Path(offline_db) if offline_db else cls.offline_db_path,
            public_api_url=(os.getenv("PUBLIC_API_URL") or DEFAULT_API_URL).rstrip("/"),
            online_probe_url=os.getenv("ONLINE_PROBE_URL") or DEFAULT_PROBE_URL,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def media_enabled(self) -> bool:
        """True when images can be uploaded to Cloudinary."""
        if not self.cloudinary_cloud_name:
            return False
        signed = bool(self.cloudinary_api_key and self.cloudinary_api_secret)
        return signed or bool(self.cloudinary_upload_preset)

    @property
    def ai_scan_enabled(self) -> bool:
        return bool(self.gemini_api_key)


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging once per process.

    Streamlit re-executes the script on every interaction, so repeated calls
    only adjust the level.
    """
    global _logging_configured
    numeric = getattr(logging, str(level).upper(), logging.INFO)
    if not _logging_configured:
        logging.basicConfig(level=numeric, format=LOG_FORMAT)
        _logging_configured = True
    logging.getLogger().setLevel(numeric)
