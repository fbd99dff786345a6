import logging
from typing import Any, Dict, List, Optional, Union

from hanjul.book import Book
from hanjul.database import Database
from hanjul.errors import NotFoundError, ValidationError
from hanjul.services.google_books_service import CatalogVolume, GoogleBooksService, UNKNOWN_AUTHOR
from hanjul.validators import PageValidator, TextValidator

logger = logging.getLogger(__name__)


class Library:
    """Manages the books in the local library.

    The store handle is injected; the catalog is only needed for
    ``add_book_from_catalog``.
    """

    def __init__(self, db: Database, catalog: Optional[GoogleBooksService] = None) -> None:
        self.db = db
        self.catalog = catalog

    # ------------------------- Core operations ------------------------- #
    def add_book(self, metadata: Union[CatalogVolume, Dict[str, Any]]) -> Book:
        """Create a book from catalog metadata with no reading progress."""
        if isinstance(metadata, dict):
            metadata = self._volume_from_dict(metadata)

        title = TextValidator.require(metadata.title, "title")
        total_pages = PageValidator.normalize_total_pages(metadata.page_count)
        author = metadata.author.strip() or UNKNOWN_AUTHOR

        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO books (title, author, isbn, totalPages, lastReadPage, read,
                                   description, thumbnailUrl, catalogId, createdAt)
                VALUES (?, ?, ?, ?, 0, 0, ?, ?, ?, CURRENT_TIMESTAMP)
                """,
                (title, author, metadata.isbn13, total_pages, metadata.description,
                 metadata.thumbnail_url, metadata.volume_id)
            )
            row = conn.execute("SELECT * FROM books WHERE id = ?", (cursor.lastrowid,)).fetchone()

        book = Book.from_row(row)
        if book.total_pages is None:
            logger.warning(f"Book {book.id} '{book.title}' has no page count; progress stays at 0%")
        logger.info(f"Book added: id={book.id} title='{book.title}'")
        return book

    async def add_book_from_catalog(self, volume_id: str) -> Book:
        """Fetch a volume's details from the catalog and add it to the library."""
        if self.catalog is None:
            raise RuntimeError("Library was created without a catalog service.")
        volume = await self.catalog.fetch_details(volume_id)
        return self.add_book(volume)

    def get_book(self, book_id: int) -> Book:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Book {book_id} not found.")
        return Book.from_row(row)

    def list_books(self) -> List[Book]:
        with self.db.connect() as conn:
            rows = conn.execute("SELECT * FROM books ORDER BY id").fetchall()
        return [Book.from_row(row) for row in rows]

    def delete_book(self, book_id: int) -> bool:
        """Delete a book and all of its reading-log entries.

        Returns False when there was no such book; that is not an error.
        """
        with self.db.transaction() as conn:
            logs = conn.execute("DELETE FROM reading_logs WHERE book_id = ?", (book_id,))
            books = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            deleted = books.rowcount > 0

        if deleted:
            logger.info(f"Book {book_id} deleted with {logs.rowcount} reading log entries")
        else:
            logger.info(f"Delete requested for missing book {book_id}; nothing to do")
        return deleted

    def get_statistics(self) -> Dict[str, Any]:
        """Counts for the library overview."""
        with self.db.connect() as conn:
            row = conn.execute("""
                SELECT COUNT(*) AS total_books,
                       COALESCE(SUM(CASE WHEN read = 1 THEN 1 ELSE 0 END), 0) AS completed_books,
                       COALESCE(SUM(CASE WHEN read = 0 AND lastReadPage > 0 THEN 1 ELSE 0 END), 0) AS in_progress_books
                FROM books
            """).fetchone()
            total_sessions = conn.execute("SELECT COUNT(*) FROM reading_logs").fetchone()[0]

        return {
            "total_books": row["total_books"],
            "completed_books": row["completed_books"],
            "in_progress_books": row["in_progress_books"],
            "total_sessions": total_sessions,
        }

    # ------------------------- Utilities ------------------------- #
    @staticmethod
    def _volume_from_dict(data: Dict[str, Any]) -> CatalogVolume:
        """Accept both catalog-shaped and book-shaped metadata dicts."""
        authors = data.get("authors")
        if authors is None and data.get("author"):
            authors = [data["author"]]
        if isinstance(authors, str):
            authors = [authors]
        if "page_count" in data:
            page_count = data["page_count"]
        elif "pageCount" in data:
            page_count = data["pageCount"]
        else:
            page_count = data.get("total_pages", data.get("totalPages"))
        return CatalogVolume(
            title=data.get("title"),
            authors=list(authors or []),
            volume_id=data.get("volume_id") or data.get("catalog_id"),
            isbn13=data.get("isbn13", data.get("isbn")),
            page_count=page_count,
            description=data.get("description"),
            thumbnail_url=data.get("thumbnail_url", data.get("thumbnailUrl")),
        )
