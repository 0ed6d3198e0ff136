"""SQLAlchemy ORM models for the local SQLite record store.

Tables:
- profiles: Owner profiles (one per owner id)
- books: Shared book catalog
- owned_books: A book in an owner's library (unique per owner/book)
- reading_sessions: Individual reading session entries
- wishlist_entries: Books an owner wants (unique per owner/book)
- collections: Owner-defined groups of owned books (unique per owner/name)
"""

import json
from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import (
    BookRecord,
    CollectionRecord,
    OwnedBookRecord,
    ReadingSessionRecord,
    UserProfileRecord,
    WishlistEntryRecord,
)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load_json(value: Optional[str], default: Any) -> Any:
    if value:
        return json.loads(value)
    return default


def _dump_json(value: Any) -> Optional[str]:
    return json.dumps(value) if value else None


def _date_str(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class Profile(Base):
    """Owner profile - the id is the caller's owner id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(200))
    avatar_url: Mapped[Optional[str]] = mapped_column(Text)
    theme: Mapped[Optional[str]] = mapped_column(String(20))
    display_mode: Mapped[Optional[str]] = mapped_column(String(20))
    books_per_page: Mapped[Optional[int]] = mapped_column(Integer)
    default_book_type: Mapped[Optional[str]] = mapped_column(String(20))
    reading_goal: Mapped[Optional[int]] = mapped_column(Integer)

    created_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso, onupdate=utcnow_iso)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, name='{self.name}')>"

    def to_record(self) -> UserProfileRecord:
        return UserProfileRecord(
            id=self.id,
            name=self.name,
            avatar_url=self.avatar_url,
            theme=self.theme,
            display_mode=self.display_mode,
            books_per_page=self.books_per_page,
            default_book_type=self.default_book_type,
            reading_goal=self.reading_goal,
        )

    def apply_record(self, record: UserProfileRecord) -> None:
        self.name = record.name
        self.avatar_url = record.avatar_url
        self.theme = record.theme
        self.display_mode = record.display_mode
        self.books_per_page = record.books_per_page
        self.default_book_type = record.default_book_type
        self.reading_goal = record.reading_goal


class Book(Base):
    """Book model - the shared catalog entry."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Core fields
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    authors: Mapped[Optional[str]] = mapped_column(Text)  # JSON array

    # Identifiers
    isbn13: Mapped[Optional[str]] = mapped_column(String(17), index=True)
    isbn10: Mapped[Optional[str]] = mapped_column(String(13))
    external_ids: Mapped[Optional[str]] = mapped_column(Text)  # JSON dict

    # Metadata
    page_count: Mapped[Optional[int]] = mapped_column(Integer)
    publisher: Mapped[Optional[str]] = mapped_column(String(500))
    published_date: Mapped[Optional[str]] = mapped_column(String(10))
    description: Mapped[Optional[str]] = mapped_column(Text)
    language: Mapped[Optional[str]] = mapped_column(String(10))
    categories: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso, onupdate=utcnow_iso)

    owned_copies: Mapped[list["OwnedBook"]] = relationship(
        "OwnedBook", back_populates="book", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}')>"

    def to_record(self) -> BookRecord:
        return BookRecord(
            id=self.id,
            title=self.title,
            authors=_load_json(self.authors, []),
            isbn13=self.isbn13,
            isbn10=self.isbn10,
            page_count=self.page_count,
            publisher=self.publisher,
            published_date=self.published_date,
            description=self.description,
            language=self.language,
            categories=_load_json(self.categories, []),
            thumbnail_url=self.thumbnail_url,
            external_ids=_load_json(self.external_ids, {}),
            created_at=_parse_datetime(self.created_at),
        )

    def apply_record(self, record: BookRecord) -> None:
        self.title = record.title
        self.authors = _dump_json(record.authors)
        self.isbn13 = record.isbn13
        self.isbn10 = record.isbn10
        self.page_count = record.page_count
        self.publisher = record.publisher
        self.published_date = record.published_date
        self.description = record.description
        self.language = record.language
        self.categories = _dump_json(record.categories)
        self.thumbnail_url = record.thumbnail_url
        self.external_ids = _dump_json(record.external_ids)
        if record.created_at and not self.created_at:
            self.created_at = record.created_at.isoformat()


class OwnedBook(Base):
    """A book in an owner's library."""

    __tablename__ = "owned_books"
    __table_args__ = (UniqueConstraint("owner_id", "book_id", name="uq_owned_owner_book"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    current_page: Mapped[int] = mapped_column(Integer, default=0)
    rating: Mapped[Optional[int]] = mapped_column(Integer)
    review: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    notes: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False)

    # Dates
    start_date: Mapped[Optional[str]] = mapped_column(String(10))
    finish_date: Mapped[Optional[str]] = mapped_column(String(10))
    acquired_date: Mapped[Optional[str]] = mapped_column(String(10))
    location: Mapped[Optional[str]] = mapped_column(String(100))

    created_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso, onupdate=utcnow_iso)

    book: Mapped["Book"] = relationship("Book", back_populates="owned_copies")
    reading_sessions: Mapped[list["ReadingSession"]] = relationship(
        "ReadingSession", back_populates="owned_book", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<OwnedBook(id={self.id}, owner={self.owner_id}, book_id={self.book_id})>"

    def to_record(self) -> OwnedBookRecord:
        return OwnedBookRecord(
            id=self.id,
            book_id=self.book_id,
            status=self.status,
            current_page=self.current_page or 0,
            rating=self.rating,
            review=self.review,
            tags=_load_json(self.tags, []),
            notes=_load_json(self.notes, []),
            is_favorite=bool(self.is_favorite),
            start_date=_parse_date(self.start_date),
            finish_date=_parse_date(self.finish_date),
            acquired_date=_parse_date(self.acquired_date),
            location=self.location,
            created_at=_parse_datetime(self.created_at),
        )

    def apply_record(self, record: OwnedBookRecord) -> None:
        self.book_id = record.book_id
        self.status = record.status
        self.current_page = record.current_page
        self.rating = record.rating
        self.review = record.review
        self.tags = _dump_json(record.tags)
        self.notes = _dump_json(record.notes)
        self.is_favorite = record.is_favorite
        self.start_date = _date_str(record.start_date)
        self.finish_date = _date_str(record.finish_date)
        self.acquired_date = _date_str(record.acquired_date)
        self.location = record.location
        if record.created_at and not self.created_at:
            self.created_at = record.created_at.isoformat()


class ReadingSession(Base):
    """Reading session model - tracks individual reading sittings."""

    __tablename__ = "reading_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    owned_book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("owned_books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    start_page: Mapped[int] = mapped_column(Integer, default=0)
    end_page: Mapped[int] = mapped_column(Integer, default=0)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso)

    owned_book: Mapped["OwnedBook"] = relationship("OwnedBook", back_populates="reading_sessions")

    def __repr__(self) -> str:
        return f"<ReadingSession(id={self.id}, owned_book_id={self.owned_book_id}, date={self.session_date})>"

    def to_record(self) -> ReadingSessionRecord:
        return ReadingSessionRecord(
            id=self.id,
            owned_book_id=self.owned_book_id,
            start_page=self.start_page,
            end_page=self.end_page,
            session_date=date.fromisoformat(self.session_date),
            duration_minutes=self.duration_minutes,
            notes=self.notes,
        )

    def apply_record(self, record: ReadingSessionRecord) -> None:
        self.owned_book_id = record.owned_book_id
        self.session_date = record.session_date.isoformat()
        self.start_page = record.start_page
        self.end_page = record.end_page
        self.duration_minutes = record.duration_minutes
        self.notes = record.notes


class WishlistEntry(Base):
    """Wishlist entry model - a book the owner wants."""

    __tablename__ = "wishlist_entries"
    __table_args__ = (UniqueConstraint("owner_id", "book_id", name="uq_wishlist_owner_book"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    priority: Mapped[str] = mapped_column(String(10), default="medium", index=True)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    target_date: Mapped[Optional[str]] = mapped_column(String(10))
    price_alert: Mapped[Optional[float]] = mapped_column(Float)

    created_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso)

    def __repr__(self) -> str:
        return f"<WishlistEntry(id={self.id}, owner={self.owner_id}, book_id={self.book_id})>"

    def to_record(self) -> WishlistEntryRecord:
        return WishlistEntryRecord(
            id=self.id,
            book_id=self.book_id,
            priority=self.priority,
            reason=self.reason,
            target_date=_parse_date(self.target_date),
            price_alert=self.price_alert,
            created_at=_parse_datetime(self.created_at),
        )

    def apply_record(self, record: WishlistEntryRecord) -> None:
        self.book_id = record.book_id
        self.priority = record.priority
        self.reason = record.reason
        self.target_date = _date_str(record.target_date)
        self.price_alert = record.price_alert
        if record.created_at and not self.created_at:
            self.created_at = record.created_at.isoformat()


class Collection(Base):
    """Collection model - stores custom groups of owned books."""

    __tablename__ = "collections"
    __table_args__ = (UniqueConstraint("owner_id", "name", name="uq_collection_owner_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Display settings
    color: Mapped[Optional[str]] = mapped_column(String(20))
    icon: Mapped[Optional[str]] = mapped_column(String(50))
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    owned_book_ids: Mapped[Optional[str]] = mapped_column(Text)  # JSON array

    created_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso)

    def __repr__(self) -> str:
        return f"<Collection(id={self.id}, name='{self.name}')>"

    def to_record(self) -> CollectionRecord:
        return CollectionRecord(
            id=self.id,
            name=self.name,
            description=self.description,
            color=self.color,
            icon=self.icon,
            is_public=bool(self.is_public),
            sort_order=self.sort_order or 0,
            owned_book_ids=_load_json(self.owned_book_ids, []),
            created_at=_parse_datetime(self.created_at),
        )

    def apply_record(self, record: CollectionRecord) -> None:
        self.name = record.name
        self.description = record.description
        self.color = record.color
        self.icon = record.icon
        self.is_public = record.is_public
        self.sort_order = record.sort_order
        self.owned_book_ids = _dump_json(record.owned_book_ids)
        if record.created_at and not self.created_at:
            self.created_at = record.created_at.isoformat()
