import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator

from hanjul.errors import StorageError

logger = logging.getLogger(__name__)


class Database:
    """Owns the SQLite file shared by the library store and the reading log.

    Connections are opened per operation and always closed. Writes go through
    ``transaction()``, which serializes writers inside the process and takes
    SQLite's write lock up front with ``BEGIN IMMEDIATE``.
    """

    def __init__(self, db_file: str) -> None:
        self.db_file = db_file
        self._write_lock = threading.RLock()

    def _open(self) -> sqlite3.Connection:
        try:
            # isolation_level=None: transactions are started explicitly below
            conn = sqlite3.connect(self.db_file, isolation_level=None, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageError(f"Could not open database {self.db_file}: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a read connection and close it afterwards."""
        conn = self._open()
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Database read failed: {e}")
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside one write transaction.

        Commits when the block finishes, rolls back on any exception.
        """
        with self._write_lock:
            conn = self._open()
            try:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                except BaseException:
                    # SQLite may already have rolled back (e.g. RAISE(ROLLBACK) in a trigger)
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                logger.error(f"Database transaction failed: {e}")
                raise StorageError(str(e)) from e
            finally:
                conn.close()

    def create_tables(self) -> None:
        """Create the tables if they are missing and add newer columns."""
        directory = os.path.dirname(os.path.abspath(self.db_file))
        os.makedirs(directory, exist_ok=True)

        with self.transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS books (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    author TEXT NOT NULL,
                    isbn TEXT,
                    totalPages INTEGER,
                    lastReadPage INTEGER NOT NULL DEFAULT 0,
                    read INTEGER NOT NULL DEFAULT 0
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reading_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    book_id INTEGER NOT NULL REFERENCES books(id),
                    date TEXT NOT NULL,
                    startPage INTEGER NOT NULL,
                    endPage INTEGER NOT NULL,
                    reflection TEXT NOT NULL
                )
            """)

            # Databases created by the first version only have the minimal columns
            columns = [row[1] for row in conn.execute("PRAGMA table_info(books)").fetchall()]
            if "description" not in columns:
                conn.execute("ALTER TABLE books ADD COLUMN description TEXT")
            if "thumbnailUrl" not in columns:
                conn.execute("ALTER TABLE books ADD COLUMN thumbnailUrl TEXT")
            if "catalogId" not in columns:
                conn.execute("ALTER TABLE books ADD COLUMN catalogId TEXT")
            if "createdAt" not in columns:
                # SQLite refuses a non-constant default in ALTER TABLE, so backfill instead
                conn.execute("ALTER TABLE books ADD COLUMN createdAt TIMESTAMP")
                conn.execute("UPDATE books SET createdAt = CURRENT_TIMESTAMP WHERE createdAt IS NULL")

            conn.execute("CREATE INDEX IF NOT EXISTS idx_reading_logs_book_id ON reading_logs(book_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")

        logger.info(f"Database ready at {self.db_file}")
