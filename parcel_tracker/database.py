"""Local database for the offline queue.

This module provides the SQLAlchemy model and database utilities for the
parcels captured while Firestore could not be reached. Each row holds the
parcel payload as JSON and, optionally, the compressed weight image.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String, Text, create_engine, func, select
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ============================================================================
# SQLAlchemy Models
# ============================================================================


class PendingParcelModel(Base):
    """SQLAlchemy model for parcels waiting to be synced."""

    __tablename__ = "pending_parcels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payload = Column(Text, nullable=False)  # JSON string
    image = Column(LargeBinary, nullable=True)
    image_name = Column(String, nullable=True)
    image_mime = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def data(self) -> dict[str, Any]:
        return json.loads(self.payload)


# ============================================================================
# Database Utilities
# ============================================================================


class DatabaseManager:
    """Manager class for offline queue operations."""

    def __init__(self, db_path: str | Path):
        """Initialize the database manager.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{self.db_path}", echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables."""
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session.

        Returns:
            A SQLAlchemy session object.
        """
        return self.SessionLocal()

    def add_pending(
        self,
        data: dict[str, Any],
        image: Optional[bytes] = None,
        image_name: Optional[str] = None,
        image_mime: Optional[str] = None,
    ) -> PendingParcelModel:
        """Queue a parcel for a later sync.

        Args:
            data: Parcel document (camelCase keys, JSON serializable).
            image: Optional compressed weight image.
            image_name: File name of the image.
            image_mime: MIME type of the image.

        Returns:
            The stored PendingParcelModel instance.
        """
        entry = PendingParcelModel(
            payload=json.dumps(data),
            image=image,
            image_name=image_name,
            image_mime=image_mime,
        )
        with self.get_session() as session:
            session.add(entry)
            session.commit()
            session.refresh(entry)
        return entry

    def get_pending(self) -> list[PendingParcelModel]:
        """Get all queued parcels, oldest first.

        Returns:
            List of PendingParcelModel instances.
        """
        with self.get_session() as session:
            return list(session.scalars(select(PendingParcelModel).order_by(PendingParcelModel.id)))

    def delete_pending(self, entry_id: int) -> None:
        """Remove a queued parcel once it has been synced."""
        with self.get_session() as session:
            entry = session.get(PendingParcelModel, entry_id)
            if entry is not None:
                session.delete(entry)
                session.commit()

    def count_pending(self) -> int:
        with self.get_session() as session:
            return session.scalar(select(func.count()).select_from(PendingParcelModel)) or 0


def get_database_manager(db_path: Optional[str | Path] = None) -> DatabaseManager:
    """Get a DatabaseManager instance with its tables created.

    Args:
        db_path: Optional path to the database file. Defaults to
            data/offline/pending_parcels.db.

    Returns:
        A DatabaseManager instance.
    """
    if db_path is None:
        project_root = Path(__file__).parent.parent
        db_path = project_root / "data" / "offline" / "pending_parcels.db"
    manager = DatabaseManager(db_path)
    manager.create_tables()
    return manager
