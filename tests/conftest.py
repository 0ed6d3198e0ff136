"""Pytest configuration and shared fixtures.

This module provides fixtures for testing bookport, including temporary
databases, an owner with a profile, and sample records.
"""

import os
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Generator

import pytest

from bookport.config import reset_config
from bookport.db.schemas import (
    BookRecord,
    Category,
    CollectionRecord,
    OwnedBookRecord,
    ReadingSessionRecord,
    UserProfileRecord,
    WishlistEntryRecord,
)
from bookport.db.sqlite import Database, reset_db
from bookport.db.store import StagedWrite, WriteAction
from bookport.snapshot import CanonicalSnapshot, SnapshotMetadata

OWNER_ID = "owner-1"
FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    # Set environment variable for test database
    os.environ["BOOKPORT_DB_PATH"] = str(temp_db_path)

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    database.engine.dispose()
    reset_db()
    reset_config()
    if "BOOKPORT_DB_PATH" in os.environ:
        del os.environ["BOOKPORT_DB_PATH"]


@pytest.fixture
def owner_db(db: Database) -> Database:
    """Database with a profile for OWNER_ID."""
    db.save_profile(UserProfileRecord(id=OWNER_ID, name="Test Reader", reading_goal=24))
    return db


@pytest.fixture
def clock():
    """Clock returning a fixed instant."""
    return lambda: FIXED_NOW


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book() -> BookRecord:
    """A catalogued book with an ISBN-13."""
    return BookRecord(
        id="book-gatsby",
        title="The Great Gatsby",
        authors=["F. Scott Fitzgerald"],
        isbn13="9780743273565",
        page_count=180,
        publisher="Scribner",
        categories=["Fiction"],
    )


@pytest.fixture
def sample_book_no_isbn() -> BookRecord:
    """A catalogued book without any ISBN."""
    return BookRecord(
        id="book-dune",
        title="Dune",
        authors=["Frank Herbert"],
        page_count=412,
    )


@pytest.fixture
def sample_owned_book(sample_book: BookRecord) -> OwnedBookRecord:
    return OwnedBookRecord(
        id="owned-gatsby",
        book_id=sample_book.id,
        status="reading",
        current_page=50,
        rating=4,
        tags=["classic"],
        start_date=date(2024, 1, 2),
    )


@pytest.fixture
def sample_snapshot(sample_book: BookRecord, sample_book_no_isbn: BookRecord, sample_owned_book):
    """A snapshot touching every category."""
    owned_dune = OwnedBookRecord(
        id="owned-dune", book_id=sample_book_no_isbn.id, status="want-to-read"
    )
    return CanonicalSnapshot(
        metadata=SnapshotMetadata(owner_id=OWNER_ID, exported_at=FIXED_NOW),
        books=[sample_book, sample_book_no_isbn],
        owned_books=[sample_owned_book, owned_dune],
        reading_sessions=[
            ReadingSessionRecord(
                id="session-1",
                owned_book_id=sample_owned_book.id,
                start_page=0,
                end_page=30,
                session_date=date(2024, 1, 2),
                duration_minutes=45,
            ),
            ReadingSessionRecord(
                id="session-2",
                owned_book_id=sample_owned_book.id,
                start_page=30,
                end_page=50,
                session_date=date(2024, 1, 5),
            ),
        ],
        wishlist_entries=[
            WishlistEntryRecord(id="wish-1", book_id=sample_book_no_isbn.id, priority="high")
        ],
        collections=[
            CollectionRecord(
                id="collection-1",
                name="Classics",
                owned_book_ids=[sample_owned_book.id],
            )
        ],
        user_profile=UserProfileRecord(id=OWNER_ID, name="Test Reader", theme="dark"),
    )


@pytest.fixture
def stored_book(owner_db: Database, sample_book: BookRecord, sample_owned_book) -> Database:
    """Owner database already holding the sample book and owned book."""
    owner_db.apply_changes(
        OWNER_ID,
        [
            StagedWrite(Category.BOOKS, WriteAction.CREATE, sample_book),
            StagedWrite(Category.OWNED_BOOKS, WriteAction.CREATE, sample_owned_book),
        ],
    )
    return owner_db
