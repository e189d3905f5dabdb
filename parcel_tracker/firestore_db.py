"""Firestore data access for the Parcel Tracker.

This module wraps every read and write the app performs against Firestore:
parcels, payments, user profiles and the party/transport/state lookup lists.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from .config import (
    DASHBOARD_LIMIT,
    FIRESTORE_BATCH_LIMIT,
    IMPORT_CHUNK_SIZE,
    PARCELS_COLLECTION,
    PAYMENTS_COLLECTION,
    USERS_COLLECTION,
)
from .schemas import (
    LookupItem,
    LookupKind,
    Parcel,
    ParcelBase,
    ParcelStatus,
    Payment,
    PaymentBase,
    UserProfile,
    UserRole,
)


logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _chunks(items: list, size: int) -> Iterable[list]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class FirestoreManager:
    """Manager class for Firestore operations."""

    def __init__(self, client):
        """Initialize the manager.

        Args:
            client: A Firestore client, usually from
                ``firebase.get_firestore_client()``.
        """
        self.client = client

    def _parcels(self):
        return self.client.collection(PARCELS_COLLECTION)

    def _payments(self):
        return self.client.collection(PAYMENTS_COLLECTION)

    # ========================================================================
    # Parcels
    # ========================================================================

    def add_parcel(self, parcel: ParcelBase, uid: str) -> str:
        """Store a new parcel.

        The total is recomputed from weight and rate before writing.

        Args:
            parcel: Parcel fields from the entry form.
            uid: Id of the user creating the entry.

        Returns:
            The id of the new document.
        """
        data = parcel.with_computed_total().to_document()
        data.update({"createdAt": _now(), "createdBy": uid})
        _, ref = self._parcels().add(data)
        logger.info("Added parcel %s (LR %s)", ref.id, data["lrNumber"])
        return ref.id

    def set_parcel_image(self, parcel_id: str, url: str) -> None:
        """Attach an uploaded weight image to a parcel."""
        self._parcels().document(parcel_id).update({"weightImageUrl": url})

    def update_parcel(self, parcel_id: str, parcel: ParcelBase) -> None:
        """Overwrite the editable fields of a parcel.

        ``createdAt`` and ``createdBy`` are left untouched. The total is
        always recomputed from weight and rate, even when that makes it zero.
        """
        data = parcel.with_computed_total(always=True).to_document()
        self._parcels().document(parcel_id).update(data)
        logger.info("Updated parcel %s", parcel_id)

    def delete_parcel(self, parcel_id: str) -> None:
        self._parcels().document(parcel_id).delete()
        logger.info("Deleted parcel %s", parcel_id)

    def get_parcel(self, parcel_id: str) -> Optional[Parcel]:
        snapshot = self._parcels().document(parcel_id).get()
        if not snapshot.exists:
            return None
        return Parcel.from_document(snapshot.id, snapshot.to_dict())

    def list_parcels(self, limit: Optional[int] = None) -> list[Parcel]:
        """Get parcels, newest first.

        Args:
            limit: Maximum number of parcels to read. Reads all when None.

        Returns:
            List of Parcel instances ordered by createdAt descending.
        """
        query = self._parcels().order_by("createdAt", direction=firestore.Query.DESCENDING)
        if limit:
            query = query.limit(limit)
        return [Parcel.from_document(doc.id, doc.to_dict()) for doc in query.stream()]

    def query_parcels(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: int = DASHBOARD_LIMIT,
    ) -> list[Parcel]:
        """Read parcels for the dashboard.

        With a date range the parcels whose ``date`` falls within the bounds
        are returned, newest date first. Without one the latest ``limit``
        parcels by creation time are returned.

        Args:
            date_from: Inclusive lower bound, YYYY-MM-DD.
            date_to: Inclusive upper bound, YYYY-MM-DD.
            limit: Cap used when no range is given.

        Returns:
            List of Parcel instances.
        """
        if not date_from and not date_to:
            return self.list_parcels(limit=limit)

        query = self._parcels()
        if date_from:
            query = query.where(filter=FieldFilter("date", ">=", date_from))
        if date_to:
            query = query.where(filter=FieldFilter("date", "<=", date_to))
        query = query.order_by("date", direction=firestore.Query.DESCENDING)
        return [Parcel.from_document(doc.id, doc.to_dict()) for doc in query.stream()]

    def find_parcel_by_lr(self, lr_number: str) -> Optional[Parcel]:
        """Find the first parcel with the given LR number.

        Args:
            lr_number: LR number, surrounding whitespace is ignored.

        Returns:
            The first matching Parcel, or None.
        """
        lr = str(lr_number).strip()
        query = self._parcels().where(filter=FieldFilter("lrNumber", "==", lr)).limit(1)
        for doc in query.stream():
            return Parcel.from_document(doc.id, doc.to_dict())
        return None

    def suggest_rate(self, party_name: str, state: str) -> Optional[float]:
        """Get the last rate used for a party and state.

        The ordered query needs a composite index. When Firestore reports
        the index as missing, an unordered query is used instead.

        Args:
            party_name: Party of the new entry.
            state: Destination state of the new entry.

        Returns:
            The suggested rate, or None when there is no history.
        """
        if not party_name or not state:
            return None

        base = (
            self._parcels()
            .where(filter=FieldFilter("partyName", "==", party_name))
            .where(filter=FieldFilter("state", "==", state))
        )
        try:
            docs = list(base.order_by("createdAt", direction=firestore.Query.DESCENDING).limit(1).stream())
        except gcp_exceptions.FailedPrecondition:
            logger.warning("Missing index for rate suggestion, using unordered query")
            docs = list(base.limit(1).stream())

        for doc in docs:
            rate = doc.to_dict().get("rate")
            if rate:
                return float(rate)
        return None

    def bulk_update_status(self, parcels: Iterable[Parcel], status: ParcelStatus) -> int:
        """Mark several parcels as paid or pending.

        Paid parcels get ``paidAmount = totalAmount``, pending parcels get
        ``paidAmount = 0``.

        Args:
            parcels: Parcels to update (need id and total).
            status: New status.

        Returns:
            Number of parcels updated.
        """
        status = ParcelStatus(status)
        parcels = [p for p in parcels if p.id]
        for chunk in _chunks(parcels, FIRESTORE_BATCH_LIMIT):
            batch = self.client.batch()
            for parcel in chunk:
                updates: dict[str, Any] = {"status": status.value}
                if status == ParcelStatus.PAID:
                    updates["paidAmount"] = parcel.total_amount
                elif status == ParcelStatus.PENDING:
                    updates["paidAmount"] = 0
                batch.update(self._parcels().document(parcel.id), updates)
            batch.commit()
        logger.info("Marked %d parcels as %s", len(parcels), status.value)
        return len(parcels)

    def bulk_delete(self, parcel_ids: Iterable[str]) -> int:
        """Delete several parcels in batches."""
        ids = [pid for pid in parcel_ids if pid]
        for chunk in _chunks(ids, FIRESTORE_BATCH_LIMIT):
            batch = self.client.batch()
            for parcel_id in chunk:
                batch.delete(self._parcels().document(parcel_id))
            batch.commit()
        logger.info("Deleted %d parcels", len(ids))
        return len(ids)

    def import_parcels(self, documents: list[dict[str, Any]]) -> int:
        """Write normalized import rows in chunks.

        Args:
            documents: Parcel documents as produced by
                ``importers.normalize_import_row``.

        Returns:
            Number of parcels written.
        """
        written = 0
        for chunk in _chunks(documents, IMPORT_CHUNK_SIZE):
            batch = self.client.batch()
            for data in chunk:
                batch.set(self._parcels().document(), data)
            batch.commit()
            written += len(chunk)
        logger.info("Imported %d parcels", written)
        return written

    # ========================================================================
    # Payments
    # ========================================================================

    def add_payment(self, payment: PaymentBase, uid: str) -> str:
        data = payment.to_document()
        data.update({"createdAt": _now(), "createdBy": uid})
        _, ref = self._payments().add(data)
        logger.info("Added payment %s for %s", ref.id, data["transportName"])
        return ref.id

    def update_payment(self, payment_id: str, payment: PaymentBase) -> None:
        self._payments().document(payment_id).update(payment.to_document())
        logger.info("Updated payment %s", payment_id)

    def delete_payment(self, payment_id: str) -> None:
        self._payments().document(payment_id).delete()
        logger.info("Deleted payment %s", payment_id)

    def list_payments(self) -> list[Payment]:
        """Get all payments, newest first."""
        query = self._payments().order_by("createdAt", direction=firestore.Query.DESCENDING)
        return [Payment.from_document(doc.id, doc.to_dict()) for doc in query.stream()]

    # ========================================================================
    # Lookup lists
    # ========================================================================

    def list_lookup(self, kind: LookupKind) -> list[LookupItem]:
        """Get the entries of a lookup list ordered by name."""
        query = self.client.collection(LookupKind(kind).value).order_by("name")
        return [
            LookupItem(id=doc.id, name=str(doc.to_dict().get("name", "")))
            for doc in query.stream()
        ]

    def add_lookup(self, kind: LookupKind, name: str) -> str:
        """Add a name to a lookup list.

        Raises:
            ValueError: If the name is blank.
        """
        name = (name or "").strip()
        if kind == LookupKind.STATES:
            name = name.upper()
        if not name:
            raise ValueError("Name cannot be empty")
        _, ref = self.client.collection(LookupKind(kind).value).add({"name": name})
        logger.info("Added %s entry %s", LookupKind(kind).value, name)
        return ref.id

    def delete_lookup(self, kind: LookupKind, item_id: str) -> None:
        self.client.collection(LookupKind(kind).value).document(item_id).delete()
        logger.info("Deleted %s entry %s", LookupKind(kind).value, item_id)

    # ========================================================================
    # Users
    # ========================================================================

    def get_user(self, uid: str) -> Optional[UserProfile]:
        snapshot = self.client.collection(USERS_COLLECTION).document(uid).get()
        if not snapshot.exists:
            return None
        return UserProfile.from_document(uid, {"uid": uid, **snapshot.to_dict()})

    def list_users(self) -> list[UserProfile]:
        """Get all user profiles, falling back to defaults for missing fields."""
        users = []
        for doc in self.client.collection(USERS_COLLECTION).stream():
            data = doc.to_dict() or {}
            users.append(UserProfile(
                id=doc.id,
                uid=data.get("uid") or doc.id,
                email=data.get("email") or "",
                role=data.get("role") or UserRole.STAFF,
                display_name=data.get("displayName"),
            ))
        return sorted(users, key=lambda u: u.email)

    def set_user_role(self, uid: str, role: UserRole) -> None:
        self.client.collection(USERS_COLLECTION).document(uid).update({"role": UserRole(role).value})
        logger.info("Set role of %s to %s", uid, UserRole(role).value)

    def ensure_user_profile(self, uid: str, email: str) -> tuple[UserProfile, bool]:
        """Get a user's profile, creating it on first login.

        The first account ever registered becomes an admin. Every later
        account starts as staff.

        Args:
            uid: Firebase user id.
            email: Email of the signed-in user.

        Returns:
            Tuple of (profile, created).
        """
        existing = self.get_user(uid)
        if existing is not None:
            return existing, False

        users = self.client.collection(USERS_COLLECTION)
        is_first_user = not list(users.limit(1).stream())
        profile = UserProfile(
            uid=uid,
            email=email or "",
            role=UserRole.ADMIN if is_first_user else UserRole.STAFF,
        )
        users.document(uid).set(profile.to_document())
        logger.info("Created %s profile for %s", profile.role, email)
        return profile, True
