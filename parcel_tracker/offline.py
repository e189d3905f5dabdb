"""Offline capture and sync.

When Firestore cannot be reached, new parcels are kept in the local SQLite
queue (``database.DatabaseManager``) together with their compressed image.
``sync_offline_data`` pushes them to Firestore once the app is back online.
"""

import logging
import threading
from typing import Optional

import requests
from google.api_core.exceptions import GoogleAPIError
from sqlalchemy.exc import SQLAlchemyError

from .database import DatabaseManager, PendingParcelModel
from .errors import OfflineError, ParcelTrackerError
from .firestore_db import FirestoreManager
from .media import MediaUploader
from .schemas import ParcelBase, ParcelCreate, SyncResult


logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 3

# Only one flush may run per process
_sync_lock = threading.Lock()


def is_online(probe_url: str, timeout: float = PROBE_TIMEOUT) -> bool:
    """Tell whether the backend looks reachable.

    Any HTTP answer counts as online; only connection failures and
    timeouts count as offline.
    """
    try:
        requests.head(probe_url, timeout=timeout, allow_redirects=False)
    except requests.RequestException as e:
        logger.info("Connectivity probe to %s failed: %s", probe_url, e)
        return False
    return True


def save_parcel_offline(
    db: DatabaseManager,
    parcel: ParcelBase,
    image: Optional[bytes] = None,
    image_name: Optional[str] = None,
    image_mime: Optional[str] = None,
) -> int:
    """Queue a parcel that could not be written to Firestore.

    Args:
        db: The offline queue.
        parcel: Parcel fields from the entry form.
        image: Optional compressed weight image.
        image_name: File name of the image.
        image_mime: MIME type of the image.

    Returns:
        Id of the queued entry.

    Raises:
        OfflineError: If the local database cannot be written.
    """
    data = parcel.with_computed_total().to_document()
    try:
        entry = db.add_pending(data, image=image, image_name=image_name, image_mime=image_mime)
    except SQLAlchemyError as e:
        logger.exception("Could not queue parcel %s offline", data.get("lrNumber"))
        raise OfflineError(f"Could not save the entry offline: {e}") from e
    logger.info("Queued parcel %s offline as entry %d", data.get("lrNumber"), entry.id)
    return entry.id


def get_pending_parcels(db: DatabaseManager) -> list[PendingParcelModel]:
    return db.get_pending()


def count_pending(db: DatabaseManager) -> int:
    return db.count_pending()


def _sync_entry(
    entry: PendingParcelModel,
    store: FirestoreManager,
    uploader: Optional[MediaUploader],
    uid: str,
) -> None:
    parcel = ParcelCreate.model_validate(entry.data)
    parcel_id = store.add_parcel(parcel, uid)

    if entry.image:
        if uploader is None or not uploader.enabled:
            logger.warning("Image of offline entry %d dropped: uploads are not configured", entry.id)
        else:
            try:
                url = uploader.upload(entry.image, entry.image_name)
                store.set_parcel_image(parcel_id, url)
            except (ParcelTrackerError, GoogleAPIError):
                logger.exception("Offline image sync failed for entry %d", entry.id)


def sync_offline_data(
    store: FirestoreManager,
    db: DatabaseManager,
    uid: Optional[str],
    uploader: Optional[MediaUploader] = None,
    online: bool = True,
) -> SyncResult:
    """Push queued parcels to Firestore.

    Each entry is written with a fresh ``createdAt`` and the current user as
    ``createdBy``. Its image is uploaded afterwards; an upload failure is
    logged and does not keep the entry queued. A failed write leaves the
    entry in the queue for the next attempt.

    Args:
        store: Firestore access.
        db: The offline queue.
        uid: Id of the signed-in user. Nothing is synced without one.
        uploader: Image uploader, optional.
        online: Result of the connectivity probe.

    Returns:
        SyncResult with per-entry counts.
    """
    if not _sync_lock.acquire(blocking=False):
        logger.info("Offline sync already running")
        return SyncResult(already_running=True)

    try:
        pending = db.get_pending()
        result = SyncResult(pending=len(pending))
        if not pending or not online:
            return result
        if not uid:
            result.skipped = len(pending)
            return result

        logger.info("Syncing %d offline entries", len(pending))
        for entry in pending:
            try:
                _sync_entry(entry, store, uploader, uid)
            except Exception:
                logger.exception("Sync error for offline entry %d", entry.id)
                result.failed += 1
                continue
            db.delete_pending(entry.id)
            result.synced += 1

        logger.info("Offline sync finished: %d synced, %d failed", result.synced, result.failed)
        return result
    finally:
        _sync_lock.release()
