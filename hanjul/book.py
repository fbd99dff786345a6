from __future__ import annotations

import math

STATUS_NEW = "new"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"


def compute_progress(last_read_page: int, total_pages: int | None) -> int:
    """Percentage of the book read, rounded half up and clamped to 0..100.

    Unknown or zero ``total_pages`` counts as 0%.
    """
    if not total_pages or total_pages <= 0 or not last_read_page:
        return 0
    percent = int(math.floor(last_read_page / total_pages * 100 + 0.5))
    return max(0, min(100, percent))


class Book:
    """A book in the local library together with its reading state."""

    def __init__(self, id: int, title: str, author: str, isbn: str | None = None,
                 total_pages: int | None = None, last_read_page: int = 0, read: bool = False,
                 description: str | None = None, thumbnail_url: str | None = None,
                 catalog_id: str | None = None, created_at: str | None = None) -> None:
        self.id = id
        self.title = title
        self.author = author
        self.isbn = isbn
        self.total_pages = total_pages
        self.last_read_page = last_read_page
        self.read = bool(read)
        self.description = description
        self.thumbnail_url = thumbnail_url
        self.catalog_id = catalog_id
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.progress_percent}%)"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Book(id={self.id!r}, title={self.title!r}, last_read_page={self.last_read_page!r}, read={self.read!r})"

    @property
    def progress_percent(self) -> int:
        return compute_progress(self.last_read_page, self.total_pages)

    @property
    def status(self) -> str:
        if self.read:
            return STATUS_COMPLETED
        if self.last_read_page > 0:
            return STATUS_IN_PROGRESS
        return STATUS_NEW

    @property
    def next_start_page(self) -> int:
        return self.last_read_page + 1

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "total_pages": self.total_pages,
            "last_read_page": self.last_read_page,
            "read": self.read,
            "progress_percent": self.progress_percent,
            "status": self.status,
            "description": self.description,
            "thumbnail_url": self.thumbnail_url,
            "catalog_id": self.catalog_id,
            "created_at": self.created_at,
        }

    def to_overview(self) -> dict:
        """Library overview row."""
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "progress_percent": self.progress_percent,
            "read": self.read,
        }

    def to_reading_page(self) -> dict:
        """Book detail / reading page view."""
        return {
            "id": self.id,
            "title": self.title,
            "last_read_page": self.last_read_page,
            "total_pages": self.total_pages,
            "progress_percent": self.progress_percent,
            "next_start_page": self.next_start_page,
        }

    @staticmethod
    def from_row(row) -> "Book":
        data = dict(row)
        return Book(
            id=data["id"],
            title=data["title"],
            author=data["author"],
            isbn=data.get("isbn"),
            total_pages=data.get("totalPages"),
            last_read_page=data.get("lastReadPage") or 0,
            read=bool(data.get("read")),
            description=data.get("description"),
            thumbnail_url=data.get("thumbnailUrl"),
            catalog_id=data.get("catalogId"),
            created_at=data.get("createdAt"),
        )


class ReadingLogEntry:
    """One recorded reading session. Never mutated after creation."""

    def __init__(self, id: int, book_id: int, date: str, start_page: int, end_page: int,
                 reflection: str) -> None:
        self.id = id
        self.book_id = book_id
        self.date = date
        self.start_page = start_page
        self.end_page = end_page
        self.reflection = reflection

    def __repr__(self) -> str:  # pragma: no cover
        return f"ReadingLogEntry(id={self.id!r}, book_id={self.book_id!r}, pages={self.start_page}-{self.end_page})"

    @property
    def pages_read(self) -> int:
        return self.end_page - self.start_page + 1

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "date": self.date,
            "start_page": self.start_page,
            "end_page": self.end_page,
            "reflection": self.reflection,
        }

    @staticmethod
    def from_row(row) -> "ReadingLogEntry":
        return ReadingLogEntry(
            id=row["id"],
            book_id=row["book_id"],
            date=row["date"],
            start_page=row["startPage"],
            end_page=row["endPage"],
            reflection=row["reflection"],
        )


class Review:
    """The concatenated reflections of a book, with its reading period.

    A book without sessions yields the empty review: no dates and empty text.
    """

    SEPARATOR = "\n\n"

    def __init__(self, title: str, start_date: str | None, end_date: str | None,
                 review_text: str, entry_count: int = 0) -> None:
        self.title = title
        self.start_date = start_date
        self.end_date = end_date
        self.review_text = review_text
        self.entry_count = entry_count

    @property
    def is_empty(self) -> bool:
        return self.entry_count == 0

    @classmethod
    def from_entries(cls, title: str, entries: list[ReadingLogEntry]) -> "Review":
        if not entries:
            return cls(title=title, start_date=None, end_date=None, review_text="", entry_count=0)
        dates = [e.date for e in entries]
        return cls(
            title=title,
            start_date=min(dates),
            end_date=max(dates),
            review_text=cls.SEPARATOR.join(e.reflection for e in entries),
            entry_count=len(entries),
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "review_text": self.review_text,
        }
