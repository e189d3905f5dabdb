"""Parcel Tracker - Source Package.

This package provides modules for a transport office's parcel ledger:
- schemas: Pydantic models for parcels, payments, users and lookups
- config / errors: settings from the environment and the exception hierarchy
- firebase / firestore_db / realtime: Firestore access and live feeds
- auth: email/password sign in and role checks
- media / extraction: image uploads and Gemini receipt scanning
- importers / exports: Excel, CSV, JSON and PDF import and export
- filters / analytics: search view filtering and dashboard aggregation
- database / offline: SQLite offline queue and sync
- tally / api: Tally Prime status-check endpoint and TDL generator
"""

from .database import Base, DatabaseManager, PendingParcelModel, get_database_manager
from .errors import (
    AuthError,
    ConfigurationError,
    ExtractionError,
    ImportFileError,
    MediaUploadError,
    OfflineError,
    ParcelTrackerError,
    PermissionDeniedError,
)
from .schemas import (
    DEFAULT_STATES,
    ExtractedParcelData,
    LookupItem,
    LookupKind,
    Parcel,
    ParcelCreate,
    ParcelFilters,
    ParcelStatus,
    Payment,
    PaymentCreate,
    PaymentFilters,
    PaymentMode,
    SortOrder,
    UserProfile,
    UserRole,
    compute_total,
)

__version__ = "0.1.0"

__all__ = [
    # Database
    "Base",
    "DatabaseManager",
    "PendingParcelModel",
    "get_database_manager",
    # Errors
    "AuthError",
    "ConfigurationError",
    "ExtractionError",
    "ImportFileError",
    "MediaUploadError",
    "OfflineError",
    "ParcelTrackerError",
    "PermissionDeniedError",
    # Schemas
    "DEFAULT_STATES",
    "ExtractedParcelData",
    "LookupItem",
    "LookupKind",
    "Parcel",
    "ParcelCreate",
    "ParcelFilters",
    "ParcelStatus",
    "Payment",
    "PaymentCreate",
    "PaymentFilters",
    "PaymentMode",
    "SortOrder",
    "UserProfile",
    "UserRole",
    "compute_total",
]
