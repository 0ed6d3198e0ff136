"""SQLite database operations.

Handles database connection, session management, reads per entity type,
and the single-transaction change set used by imports.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Sequence

from sqlalchemy import create_engine, event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import PersistenceFailure
from .models import Base, Book, Collection, OwnedBook, Profile, ReadingSession, WishlistEntry
from .schemas import (
    BookRecord,
    Category,
    CollectionRecord,
    OwnedBookRecord,
    ReadingSessionRecord,
    UserProfileRecord,
    WishlistEntryRecord,
)
from .store import RecordStore, StagedWrite, WriteAction

logger = logging.getLogger(__name__)

# ORM model per category
MODELS = {
    Category.BOOKS: Book,
    Category.OWNED_BOOKS: OwnedBook,
    Category.READING_SESSIONS: ReadingSession,
    Category.WISHLIST_ENTRIES: WishlistEntry,
    Category.COLLECTIONS: Collection,
    Category.USER_PROFILE: Profile,
}

# Categories whose rows carry an owner_id column
OWNED_CATEGORIES = frozenset(
    {Category.OWNED_BOOKS, Category.WISHLIST_ENTRIES, Category.COLLECTIONS}
)


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database(RecordStore):
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses the
                     configured BOOKPORT_DB_PATH.
        """
        if db_path is None:
            from ..config import get_config

            db_path = str(get_config().db_path)

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        event.listen(self.engine, "connect", _enable_foreign_keys)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Profile Operations
    # ========================================================================

    def get_profile(
        self, owner_id: str, session: Optional[Session] = None
    ) -> Optional[UserProfileRecord]:
        """Get an owner's profile, or None if the owner is unknown."""

        def _get(s: Session) -> Optional[UserProfileRecord]:
            profile = s.get(Profile, owner_id)
            return profile.to_record() if profile else None

        if session:
            return _get(session)
        with self.get_session() as s:
            return _get(s)

    def save_profile(
        self, record: UserProfileRecord, session: Optional[Session] = None
    ) -> UserProfileRecord:
        """Create or update a profile. The record id is the owner id."""
        if not record.id:
            raise ValueError("Profile record needs an owner id")

        def _save(s: Session) -> UserProfileRecord:
            profile = s.get(Profile, record.id)
            if profile is None:
                profile = Profile(id=record.id)
                s.add(profile)
            profile.apply_record(record)
            s.flush()
            return profile.to_record()

        if session:
            return _save(session)
        with self.get_session() as s:
            return _save(s)

    # ========================================================================
    # Catalog and Library Reads
    # ========================================================================

    def list_books(
        self, book_ids: Optional[Sequence[str]] = None, session: Optional[Session] = None
    ) -> list[BookRecord]:
        """List catalog books ordered by title."""

        def _list(s: Session) -> list[BookRecord]:
            stmt = select(Book).order_by(Book.title, Book.id)
            if book_ids is not None:
                if not book_ids:
                    return []
                stmt = stmt.where(Book.id.in_(list(book_ids)))
            return [book.to_record() for book in s.execute(stmt).scalars().all()]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)

    def list_owned_books(
        self, owner_id: str, session: Optional[Session] = None
    ) -> list[OwnedBookRecord]:
        """List an owner's library in insertion order."""

        def _list(s: Session) -> list[OwnedBookRecord]:
            stmt = (
                select(OwnedBook)
                .where(OwnedBook.owner_id == owner_id)
                .order_by(OwnedBook.created_at, OwnedBook.id)
            )
            return [owned.to_record() for owned in s.execute(stmt).scalars().all()]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)

    def list_reading_sessions(
        self, owner_id: str, session: Optional[Session] = None
    ) -> list[ReadingSessionRecord]:
        """List all reading sessions for an owner's books, oldest first."""

        def _list(s: Session) -> list[ReadingSessionRecord]:
            stmt = (
                select(ReadingSession)
                .join(OwnedBook, ReadingSession.owned_book_id == OwnedBook.id)
                .where(OwnedBook.owner_id == owner_id)
                .order_by(ReadingSession.session_date, ReadingSession.id)
            )
            return [entry.to_record() for entry in s.execute(stmt).scalars().all()]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)

    def list_wishlist_entries(
        self, owner_id: str, session: Optional[Session] = None
    ) -> list[WishlistEntryRecord]:
        def _list(s: Session) -> list[WishlistEntryRecord]:
            stmt = (
                select(WishlistEntry)
                .where(WishlistEntry.owner_id == owner_id)
                .order_by(WishlistEntry.created_at, WishlistEntry.id)
            )
            return [entry.to_record() for entry in s.execute(stmt).scalars().all()]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)

    def list_collections(
        self, owner_id: str, session: Optional[Session] = None
    ) -> list[CollectionRecord]:
        def _list(s: Session) -> list[CollectionRecord]:
            stmt = (
                select(Collection)
                .where(Collection.owner_id == owner_id)
                .order_by(Collection.sort_order, Collection.name)
            )
            return [collection.to_record() for collection in s.execute(stmt).scalars().all()]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)

    # ========================================================================
    # Change Sets
    # ========================================================================

    def apply_changes(self, owner_id: str, writes: Sequence[StagedWrite]) -> None:
        """Apply a staged change set in one transaction.

        Writes are applied in order and flushed one by one so that a
        constraint violation surfaces at the offending write. Any failure
        rolls the whole set back.

        Raises:
            PersistenceFailure: if any write fails
        """
        applied = 0
        try:
            with self.get_session() as s:
                for write in writes:
                    self._apply_write(s, owner_id, write)
                    s.flush()
                    applied += 1
        except SQLAlchemyError as e:
            logger.warning(
                "Rolled back change set for %s after %d of %d writes: %s",
                owner_id,
                applied,
                len(writes),
                e,
            )
            raise PersistenceFailure("apply_changes", str(e)) from e
        except PersistenceFailure:
            logger.warning(
                "Rolled back change set for %s after %d of %d writes",
                owner_id,
                applied,
                len(writes),
            )
            raise

        logger.info("Committed %d writes for %s", applied, owner_id)

    def _apply_write(self, s: Session, owner_id: str, write: StagedWrite) -> None:
        """Apply one staged write inside the open session."""
        model = MODELS[write.category]
        record = write.record

        if write.category == Category.USER_PROFILE:
            row = s.get(Profile, owner_id)
            if row is None:
                row = Profile(id=owner_id)
                s.add(row)
            row.apply_record(record)
            return

        if write.action == WriteAction.CREATE:
            row = model(id=record.id) if record.id else model()
            if write.category in OWNED_CATEGORIES:
                row.owner_id = owner_id
            row.apply_record(record)
            s.add(row)
            return

        row = s.get(model, record.id)
        if row is None:
            raise PersistenceFailure(
                "apply_changes",
                f"{write.category.value} record {record.id} does not exist",
            )
        if write.category in OWNED_CATEGORIES and row.owner_id != owner_id:
            raise PersistenceFailure(
                "apply_changes",
                f"{write.category.value} record {record.id} belongs to another owner",
            )
        row.apply_record(record)


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
