"""Pydantic schemas for the record types exchanged by the pipeline.

These records are the unified shape shared by every format (native JSON,
generic CSV, Goodreads CSV) and by the record store. They are immutable
value objects: merging or remapping ids always produces a new instance
via ``model_copy``.

Field constraints are deliberately loose here. Range and reference checks
happen per record in ``bookport.imports.validation`` so a bad record can
be reported and skipped instead of failing the whole decode.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

# Longest review text accepted on import
MAX_REVIEW_LENGTH = 2000


class ReadingStatus(str, Enum):
    """Reading status of an owned book."""

    WANT_TO_READ = "want-to-read"
    READING = "reading"
    COMPLETED = "completed"
    PAUSED = "paused"
    ABANDONED = "abandoned"


class WishlistPriority(str, Enum):
    """Priority of a wishlist entry."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Category(str, Enum):
    """Record categories carried by a snapshot, in dependency order."""

    BOOKS = "books"
    OWNED_BOOKS = "ownedBooks"
    READING_SESSIONS = "readingSessions"
    WISHLIST_ENTRIES = "wishlistEntries"
    COLLECTIONS = "collections"
    USER_PROFILE = "userProfile"


# Status spellings seen in generic CSV files and other trackers
STATUS_ALIASES: dict[str, ReadingStatus] = {
    "want-to-read": ReadingStatus.WANT_TO_READ,
    "want to read": ReadingStatus.WANT_TO_READ,
    "to-read": ReadingStatus.WANT_TO_READ,
    "to read": ReadingStatus.WANT_TO_READ,
    "wishlist": ReadingStatus.WANT_TO_READ,
    "tbr": ReadingStatus.WANT_TO_READ,
    "reading": ReadingStatus.READING,
    "currently-reading": ReadingStatus.READING,
    "currently reading": ReadingStatus.READING,
    "in progress": ReadingStatus.READING,
    "completed": ReadingStatus.COMPLETED,
    "read": ReadingStatus.COMPLETED,
    "finished": ReadingStatus.COMPLETED,
    "done": ReadingStatus.COMPLETED,
    "paused": ReadingStatus.PAUSED,
    "on hold": ReadingStatus.PAUSED,
    "on-hold": ReadingStatus.PAUSED,
    "abandoned": ReadingStatus.ABANDONED,
    "dnf": ReadingStatus.ABANDONED,
    "did-not-finish": ReadingStatus.ABANDONED,
    "did not finish": ReadingStatus.ABANDONED,
}


def parse_status(value: Optional[str]) -> Optional[ReadingStatus]:
    """Map a free-form status string to a ReadingStatus, or None."""
    if not value:
        return None
    return STATUS_ALIASES.get(value.strip().lower())


class RecordBase(BaseModel):
    """Common config: frozen, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BookRecord(RecordBase):
    """A catalogued book."""

    id: Optional[str] = None
    title: str = ""
    authors: list[str] = Field(default_factory=list)
    isbn13: Optional[str] = None
    isbn10: Optional[str] = None
    page_count: Optional[int] = None
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None
    categories: list[str] = Field(default_factory=list)
    thumbnail_url: Optional[str] = None
    external_ids: dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class OwnedBookRecord(RecordBase):
    """A book in an owner's library, with their progress and opinion."""

    id: Optional[str] = None
    book_id: Optional[str] = None
    status: str = ReadingStatus.WANT_TO_READ.value
    current_page: int = 0
    rating: Optional[int] = None
    review: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    is_favorite: bool = False
    start_date: Optional[date] = None
    finish_date: Optional[date] = None
    acquired_date: Optional[date] = None
    location: Optional[str] = None
    created_at: Optional[datetime] = None


class ReadingSessionRecord(RecordBase):
    """One sitting of reading an owned book."""

    id: Optional[str] = None
    owned_book_id: Optional[str] = None
    start_page: int = 0
    end_page: int = 0
    session_date: date
    duration_minutes: Optional[int] = None
    notes: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def pages_read(self) -> int:
        return max(0, self.end_page - self.start_page)

    @property
    def is_valid(self) -> bool:
        """Sessions ending before they start are excluded from stats."""
        return self.end_page >= self.start_page


class WishlistEntryRecord(RecordBase):
    """A book the owner wants to acquire or read."""

    id: Optional[str] = None
    book_id: Optional[str] = None
    priority: str = WishlistPriority.MEDIUM.value
    reason: Optional[str] = None
    target_date: Optional[date] = None
    price_alert: Optional[float] = None
    created_at: Optional[datetime] = None


class CollectionRecord(RecordBase):
    """A named, owner-defined group of owned books."""

    id: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_public: bool = False
    sort_order: int = 0
    owned_book_ids: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class UserProfileRecord(RecordBase):
    """Owner profile and display preferences."""

    id: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    theme: Optional[str] = None
    display_mode: Optional[str] = None
    books_per_page: Optional[int] = None
    default_book_type: Optional[str] = None
    reading_goal: Optional[int] = None


# Record type per category, used by codecs and the orchestrator
RECORD_TYPES: dict[Category, type[RecordBase]] = {
    Category.BOOKS: BookRecord,
    Category.OWNED_BOOKS: OwnedBookRecord,
    Category.READING_SESSIONS: ReadingSessionRecord,
    Category.WISHLIST_ENTRIES: WishlistEntryRecord,
    Category.COLLECTIONS: CollectionRecord,
    Category.USER_PROFILE: UserProfileRecord,
}
