"""Canonical snapshot: the format-agnostic shape of an export or import.

A snapshot is built by the export selector or decoded by a codec, consumed
once, and never persisted as-is.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .db.schemas import (
    BookRecord,
    Category,
    CollectionRecord,
    OwnedBookRecord,
    ReadingSessionRecord,
    RecordBase,
    UserProfileRecord,
    WishlistEntryRecord,
)

SCHEMA_VERSION = "1.0.0"
FORMAT_TAG = "bookport-v1"

# Snapshot attribute holding each list category
CATEGORY_FIELDS: dict[Category, str] = {
    Category.BOOKS: "books",
    Category.OWNED_BOOKS: "owned_books",
    Category.READING_SESSIONS: "reading_sessions",
    Category.WISHLIST_ENTRIES: "wishlist_entries",
    Category.COLLECTIONS: "collections",
}


class SnapshotMetadata(RecordBase):
    """Export stamp carried in the ``metadata`` block."""

    schema_version: str = SCHEMA_VERSION
    exported_at: Optional[datetime] = None
    owner_id: Optional[str] = None
    format_tag: str = FORMAT_TAG
    categories: list[Category] = Field(default_factory=list)
    total_records: int = 0


class DecodeReject(BaseModel):
    """An input entry left out because it does not fit its record shape."""

    model_config = ConfigDict(frozen=True)

    category: Category
    index: int
    field: Optional[str] = None
    reason: str
    record_id: Optional[str] = None


class CanonicalSnapshot(RecordBase):
    """Metadata plus one collection per category.

    Categories that were not requested are present but empty.
    """

    metadata: SnapshotMetadata = Field(default_factory=SnapshotMetadata)
    books: list[BookRecord] = Field(default_factory=list)
    owned_books: list[OwnedBookRecord] = Field(default_factory=list)
    reading_sessions: list[ReadingSessionRecord] = Field(default_factory=list)
    wishlist_entries: list[WishlistEntryRecord] = Field(default_factory=list)
    collections: list[CollectionRecord] = Field(default_factory=list)
    user_profile: Optional[UserProfileRecord] = None

    # Rows a codec dropped by rule (e.g. a Goodreads row with no usable
    # read date produces no session). Never serialized.
    skipped_on_decode: dict[Category, int] = Field(default_factory=dict, exclude=True)
    # Entries that did not fit their record shape; reported per record
    decode_rejects: list[DecodeReject] = Field(default_factory=list, exclude=True)

    def records(self, category: Category) -> list[RecordBase]:
        """Records of one category; the profile comes back as a 0/1 list."""
        if category == Category.USER_PROFILE:
            return [self.user_profile] if self.user_profile else []
        return list(getattr(self, CATEGORY_FIELDS[category]))

    def count(self, category: Category) -> int:
        return len(self.records(category))

    @property
    def total_records(self) -> int:
        return sum(self.count(category) for category in Category)

    def populated_categories(self) -> list[Category]:
        """Categories holding at least one record, in dependency order."""
        return [category for category in Category if self.count(category)]

    def source_index(self, category: Category, index: int) -> int:
        """Position in the decoded input of the index-th kept record."""
        position = index
        for dropped in sorted(r.index for r in self.decode_rejects if r.category == category):
            if dropped <= position:
                position += 1
        return position
