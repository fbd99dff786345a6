import logging
from datetime import date
from typing import Any, Callable, List, Optional

from hanjul.book import Book, ReadingLogEntry, Review, compute_progress
from hanjul.database import Database
from hanjul.errors import NotFoundError
from hanjul.validators import SessionInput

logger = logging.getLogger(__name__)

POLICY_LATEST = "latest"
POLICY_HIGH_WATER = "high_water"
PROGRESS_POLICIES = (POLICY_LATEST, POLICY_HIGH_WATER)


class ReadingLog:
    """Records reading sessions and keeps each book's progress in step with its log.

    A session insert and the book's ``lastReadPage``/``read`` update always
    commit together. How ``lastReadPage`` moves is set by ``progress_policy``:

    - ``latest``: the newest session's end page, even if it is lower.
    - ``high_water``: the highest end page seen so far.

    Under both, ``read == (lastReadPage >= totalPages)`` after every session, so
    re-reading an earlier range of a finished book under ``latest`` clears it.
    """

    def __init__(self, db: Database, progress_policy: str = POLICY_LATEST,
                 today: Callable[[], date] = date.today) -> None:
        if progress_policy not in PROGRESS_POLICIES:
            raise ValueError(f"Unknown progress policy {progress_policy!r}; use one of {PROGRESS_POLICIES}")
        self.db = db
        self.progress_policy = progress_policy
        self._today = today

    def record_session(self, book_id: int, start_page: Any, end_page: Any,
                       reflection: Optional[str]) -> ReadingLogEntry:
        """Append a session to the book's log and update its progress."""
        with self.db.transaction() as conn:
            book_row = conn.execute(
                "SELECT id, title, totalPages, lastReadPage, read FROM books WHERE id = ?",
                (book_id,)
            ).fetchone()
            if book_row is None:
                raise NotFoundError(f"Book {book_id} not found.")

            session = SessionInput.parse(start_page, end_page, reflection)
            total_pages = book_row["totalPages"] or None
            session.check_against(total_pages)

            session_date = self._today().isoformat()
            cursor = conn.execute(
                "INSERT INTO reading_logs (book_id, date, startPage, endPage, reflection) VALUES (?, ?, ?, ?, ?)",
                (book_id, session_date, session.start_page, session.end_page, session.reflection)
            )

            last_read_page = self._next_last_read_page(book_row["lastReadPage"] or 0, session.end_page)
            read = total_pages is not None and last_read_page >= total_pages
            conn.execute(
                "UPDATE books SET lastReadPage = ?, read = ? WHERE id = ?",
                (last_read_page, int(read), book_id)
            )

        entry = ReadingLogEntry(
            id=cursor.lastrowid,
            book_id=book_id,
            date=session_date,
            start_page=session.start_page,
            end_page=session.end_page,
            reflection=session.reflection,
        )
        logger.info(
            f"Session recorded for book {book_id}: pages {session.start_page}-{session.end_page}, "
            f"lastReadPage={last_read_page}, read={read}"
        )
        return entry

    def list_entries(self, book_id: int) -> List[ReadingLogEntry]:
        """All sessions of a book in the order they were recorded."""
        with self.db.connect() as conn:
            self._require_book(conn, book_id)
            rows = conn.execute(
                "SELECT * FROM reading_logs WHERE book_id = ? ORDER BY id",
                (book_id,)
            ).fetchall()
        return [ReadingLogEntry.from_row(row) for row in rows]

    def generate_review(self, book_id: int) -> Review:
        """Join the book's reflections into one review covering its reading period."""
        with self.db.connect() as conn:
            book_row = self._require_book(conn, book_id)
            rows = conn.execute(
                "SELECT * FROM reading_logs WHERE book_id = ? ORDER BY id",
                (book_id,)
            ).fetchall()
        review = Review.from_entries(book_row["title"], [ReadingLogEntry.from_row(row) for row in rows])
        logger.debug(f"Review generated for book {book_id} from {review.entry_count} entries")
        return review

    @staticmethod
    def compute_progress(book: Book) -> int:
        return compute_progress(book.last_read_page, book.total_pages)

    # ------------------------- Helpers ------------------------- #
    def _next_last_read_page(self, current: int, end_page: int) -> int:
        if self.progress_policy == POLICY_HIGH_WATER:
            return max(current, end_page)
        return end_page

    @staticmethod
    def _require_book(conn, book_id: int):
        row = conn.execute("SELECT id, title FROM books WHERE id = ?", (book_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Book {book_id} not found.")
        return row
