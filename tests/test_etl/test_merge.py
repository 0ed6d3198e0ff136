"""Tests for record merge resolution."""

from datetime import datetime, timezone

from bookport.db.schemas import BookRecord, CollectionRecord, OwnedBookRecord, WishlistEntryRecord
from bookport.etl.merge import is_absent, merge, merge_fields


class TestIsAbsent:
    def test_absent_values(self):
        assert is_absent(None)
        assert is_absent("")
        assert is_absent([])
        assert is_absent({})

    def test_present_values(self):
        assert not is_absent(0)
        assert not is_absent(False)
        assert not is_absent("x")


class TestMergeFields:
    """Tests for the field precedence rules on plain mappings."""

    def test_incoming_wins_when_present(self):
        merged = merge_fields({"rating": 3, "review": "ok"}, {"rating": 5, "review": None})

        assert merged == {"rating": 5, "review": "ok"}

    def test_identity_fields_kept(self):
        merged = merge_fields({"id": "a", "created_at": 1}, {"id": "b", "created_at": 2})

        assert merged == {"id": "a", "created_at": 1}

    def test_identity_filled_when_missing(self):
        assert merge_fields({"id": None}, {"id": "b"}) == {"id": "b"}

    def test_monotonic_takes_larger(self):
        assert merge_fields({"current_page": 120}, {"current_page": 80}) == {"current_page": 120}
        assert merge_fields({"current_page": 80}, {"current_page": 120}) == {"current_page": 120}

    def test_union_lists(self):
        merged = merge_fields({"tags": ["a", "b"]}, {"tags": ["b", "c"]})

        assert merged == {"tags": ["a", "b", "c"]}

    def test_dicts_merge_by_key(self):
        merged = merge_fields(
            {"external_ids": {"goodreads": "1", "openlibrary": "OL1"}},
            {"external_ids": {"goodreads": "2"}},
        )

        assert merged == {"external_ids": {"goodreads": "2", "openlibrary": "OL1"}}

    def test_new_fields_added(self):
        assert merge_fields({"a": 1}, {"b": 2}) == {"a": 1, "b": 2}

    def test_explicit_zero_and_false_override(self):
        merged = merge_fields({"is_favorite": True, "sort_order": 3}, {"is_favorite": False, "sort_order": 0})

        assert merged == {"is_favorite": False, "sort_order": 0}

    def test_inputs_not_modified(self):
        existing = {"tags": ["a"]}
        incoming = {"tags": ["b"]}

        merge_fields(existing, incoming)

        assert existing == {"tags": ["a"]}
        assert incoming == {"tags": ["b"]}


class TestMergeRecords:
    """Tests for merging typed records."""

    def test_owned_book_merge(self):
        """Test a progress update merged over a stored entry."""
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        existing = OwnedBookRecord(
            id="o1",
            book_id="b1",
            status="reading",
            current_page=150,
            rating=3,
            review="Slow start",
            tags=["scifi"],
            created_at=created,
        )
        incoming = OwnedBookRecord(
            id="import-7",
            book_id="b1",
            status="completed",
            current_page=100,
            rating=5,
            tags=["favorite"],
        )

        merged = merge(existing, incoming)

        assert merged.id == "o1"
        assert merged.created_at == created
        assert merged.status == "completed"
        assert merged.current_page == 150
        assert merged.rating == 5
        assert merged.review == "Slow start"
        assert merged.tags == ["scifi", "favorite"]

    def test_merge_returns_new_record(self):
        existing = BookRecord(id="b1", title="Dune")
        incoming = BookRecord(title="Dune", page_count=412)

        merged = merge(existing, incoming)

        assert merged is not existing
        assert existing.page_count is None
        assert merged.page_count == 412
        assert isinstance(merged, BookRecord)

    def test_merge_with_itself_is_identity(self):
        record = CollectionRecord(id="c1", name="Classics", owned_book_ids=["o1", "o2"])

        assert merge(record, record) == record

    def test_current_page_never_decreases(self):
        existing = OwnedBookRecord(id="o1", book_id="b1", current_page=300)

        for page in (0, 10, 299, 300):
            incoming = OwnedBookRecord(book_id="b1", current_page=page)
            assert merge(existing, incoming).current_page == 300

    def test_unset_fields_keep_existing(self):
        """Test that defaults the incoming record never set do not override."""
        existing = OwnedBookRecord(
            id="o1", book_id="b1", status="paused", is_favorite=True, location="Shelf 2"
        )
        incoming = OwnedBookRecord(book_id="b1", current_page=20, rating=4)

        merged = merge(existing, incoming)

        assert merged.is_favorite is True
        assert merged.status == "paused"
        assert merged.location == "Shelf 2"
        assert merged.rating == 4

    def test_explicit_false_still_wins(self):
        existing = OwnedBookRecord(id="o1", book_id="b1", is_favorite=True)
        incoming = OwnedBookRecord(book_id="b1", is_favorite=False)

        assert merge(existing, incoming).is_favorite is False

    def test_unset_defaults_on_wishlist_and_collection(self):
        entry = WishlistEntryRecord(id="w1", book_id="b1", priority="high")
        collection = CollectionRecord(id="c1", name="Classics", is_public=True, sort_order=3)

        merged_entry = merge(entry, WishlistEntryRecord(book_id="b1", reason="Gift"))
        merged_collection = merge(collection, CollectionRecord(name="Classics"))

        assert merged_entry.priority == "high"
        assert merged_entry.reason == "Gift"
        assert merged_collection.is_public is True
        assert merged_collection.sort_order == 3

    def test_decoded_record_only_carries_its_keys(self):
        existing = WishlistEntryRecord(id="w1", book_id="b1", priority="low")
        incoming = WishlistEntryRecord.model_validate({"bookId": "b1", "targetDate": "2024-12-25"})

        merged = merge(existing, incoming)

        assert merged.priority == "low"
        assert str(merged.target_date) == "2024-12-25"
