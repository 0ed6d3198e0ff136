"""Tests for the export selector."""

from datetime import date

import pytest

from bookport.db.schemas import (
    BookRecord,
    Category,
    OwnedBookRecord,
    ReadingSessionRecord,
    WishlistEntryRecord,
)
from bookport.db.sqlite import Database
from bookport.db.store import StagedWrite, WriteAction
from bookport.errors import OwnerNotFound
from bookport.export.selector import DateRange, ExportSelector
from bookport.snapshot import SCHEMA_VERSION

OWNER_ID = "owner-1"


@pytest.fixture
def library(owner_db: Database) -> Database:
    """Owner with two books, one owned with three sessions, one wished for."""
    owner_db.apply_changes(
        OWNER_ID,
        [
            StagedWrite(Category.BOOKS, WriteAction.CREATE, record)
            for record in (
                BookRecord(id="b1", title="Dune", authors=["Frank Herbert"], page_count=412),
                BookRecord(id="b2", title="Emma", authors=["Jane Austen"]),
                BookRecord(id="b3", title="Not Mine"),
            )
        ]
        + [
            StagedWrite(
                Category.OWNED_BOOKS,
                WriteAction.CREATE,
                OwnedBookRecord(id="o1", book_id="b1", status="reading", current_page=120),
            ),
            StagedWrite(
                Category.WISHLIST_ENTRIES,
                WriteAction.CREATE,
                WishlistEntryRecord(id="w1", book_id="b2"),
            ),
        ]
        + [
            StagedWrite(
                Category.READING_SESSIONS,
                WriteAction.CREATE,
                ReadingSessionRecord(
                    id=f"s{day}",
                    owned_book_id="o1",
                    start_page=(day - 1) * 40,
                    end_page=day * 40,
                    session_date=date(2024, 1, day),
                ),
            )
            for day in (1, 2, 3)
        ],
    )
    return owner_db


class TestExportSelector:
    """Tests for building a snapshot from the store."""

    def test_unknown_owner(self, db: Database, clock):
        with pytest.raises(OwnerNotFound) as exc_info:
            ExportSelector(db, clock=clock).export("nobody")

        assert exc_info.value.details == {"owner_id": "nobody"}

    def test_export_everything(self, library: Database, clock):
        snapshot = ExportSelector(library, clock=clock).export(OWNER_ID)

        assert {b.id for b in snapshot.books} == {"b1", "b2"}
        assert len(snapshot.owned_books) == 1
        assert len(snapshot.reading_sessions) == 3
        assert len(snapshot.wishlist_entries) == 1
        assert snapshot.user_profile.name == "Test Reader"

    def test_metadata_stamp(self, library: Database, clock):
        snapshot = ExportSelector(library, clock=clock).export(OWNER_ID)

        metadata = snapshot.metadata
        assert metadata.exported_at == clock()
        assert metadata.schema_version == SCHEMA_VERSION
        assert metadata.owner_id == OWNER_ID
        assert metadata.total_records == snapshot.total_records == 8
        assert Category.COLLECTIONS not in metadata.categories

    def test_selection_leaves_other_categories_empty(self, library: Database, clock):
        """Test that unrequested categories are present but empty."""
        snapshot = ExportSelector(library, clock=clock).export(
            OWNER_ID, [Category.OWNED_BOOKS]
        )

        assert len(snapshot.owned_books) == 1
        assert snapshot.books == []
        assert snapshot.reading_sessions == []
        assert snapshot.wishlist_entries == []
        assert snapshot.collections == []
        assert snapshot.user_profile is None
        assert snapshot.metadata.categories == [Category.OWNED_BOOKS]

    def test_date_range_inclusive(self, library: Database, clock):
        """Test that both bounds of the window are included."""
        window = DateRange(start=date(2024, 1, 2), end=date(2024, 1, 3))

        snapshot = ExportSelector(library, clock=clock).export(OWNER_ID, None, window)

        assert [s.id for s in snapshot.reading_sessions] == ["s2", "s3"]
        assert len(snapshot.owned_books) == 1

    def test_open_ended_range(self, library: Database, clock):
        window = DateRange(end=date(2024, 1, 1))

        snapshot = ExportSelector(library, clock=clock).export(
            OWNER_ID, [Category.READING_SESSIONS], window
        )

        assert [s.id for s in snapshot.reading_sessions] == ["s1"]

    def test_empty_library(self, owner_db: Database, clock):
        snapshot = ExportSelector(owner_db, clock=clock).export(OWNER_ID)

        assert snapshot.total_records == 1
        assert snapshot.metadata.categories == [Category.USER_PROFILE]


class TestDateRange:
    def test_contains(self):
        window = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31))

        assert window.contains(date(2024, 1, 1))
        assert window.contains(date(2024, 1, 31))
        assert not window.contains(date(2024, 2, 1))

    def test_reversed_bounds(self):
        with pytest.raises(ValueError):
            DateRange(start=date(2024, 2, 1), end=date(2024, 1, 1))
