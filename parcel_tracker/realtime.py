"""Realtime Firestore subscriptions.

Streamlit re-runs the script on every interaction, so a listener is started
once per process and keeps the latest snapshot in memory. Each run reads the
current documents from the feed instead of querying Firestore again.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Generic, Optional, TypeVar

from firebase_admin import firestore

from .schemas import Parcel, Payment


logger = logging.getLogger(__name__)

T = TypeVar("T")


class CollectionFeed(Generic[T]):
    """Live view of a Firestore collection ordered by createdAt descending.

    Attributes:
        name: Collection name.
        updated_at: Time the last snapshot arrived, None before the first.
        error: Last listener error, if any.
    """

    def __init__(self, client, name: str, parse: Callable[[str, dict], T]):
        self.client = client
        self.name = name
        self._parse = parse
        self._lock = threading.Lock()
        self._items: list[T] = []
        self._ready = threading.Event()
        self._watch = None
        self.updated_at: Optional[datetime] = None
        self.error: Optional[BaseException] = None

    def _query(self):
        return self.client.collection(self.name).order_by(
            "createdAt", direction=firestore.Query.DESCENDING
        )

    def _on_snapshot(self, docs, changes, read_time) -> None:
        items = []
        for doc in docs:
            try:
                items.append(self._parse(doc.id, doc.to_dict()))
            except ValueError as e:
                logger.warning("Skipping malformed %s document %s: %s", self.name, doc.id, e)
        with self._lock:
            self._items = items
            self.updated_at = datetime.now()
            self.error = None
        self._ready.set()
        logger.debug("%s snapshot: %d documents", self.name, len(items))

    def start(self) -> "CollectionFeed[T]":
        """Start listening. Calling it again is a no-op."""
        if self._watch is None:
            logger.info("Subscribing to %s", self.name)
            self._watch = self._query().on_snapshot(self._on_snapshot)
        return self

    def stop(self) -> None:
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None

    def wait(self, timeout: float = 10.0) -> bool:
        """Block until the first snapshot has arrived."""
        return self._ready.wait(timeout)

    def refresh(self) -> None:
        """Re-read the collection once, bypassing the listener."""
        try:
            self._on_snapshot(list(self._query().stream()), [], None)
        except Exception as e:
            with self._lock:
                self.error = e
            raise

    def items(self) -> list[T]:
        """Get a copy of the latest documents."""
        with self._lock:
            return list(self._items)


def parcel_feed(client) -> CollectionFeed[Parcel]:
    return CollectionFeed(client, "parcels", Parcel.from_document)


def payment_feed(client) -> CollectionFeed[Payment]:
    return CollectionFeed(client, "payments", Payment.from_document)
