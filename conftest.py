import os
import tempfile

# Keep the module-level app in api.py away from the working directory's database
os.environ.setdefault("LIBRARY_DB_FILE", os.path.join(tempfile.gettempdir(), f"hanjul_test_{os.getpid()}.db"))

import pytest

from hanjul.database import Database
from hanjul.errors import CatalogUnavailableError, NotFoundError, ValidationError
from hanjul.library import Library
from hanjul.reading_log import ReadingLog
from hanjul.services.google_books_service import CatalogVolume


@pytest.fixture
def db(tmp_path, request):
    # A separate database file for every test
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    database = Database(db_file)
    database.create_tables()
    return database


@pytest.fixture
def lib(db):
    return Library(db)


@pytest.fixture
def log(db):
    return ReadingLog(db)


@pytest.fixture
def make_book(lib):
    """Add a book straight from metadata, without the catalog."""
    def _make(title="Demian", authors=("Hermann Hesse",), page_count=300, isbn13="9788937460449"):
        return lib.add_book({
            "title": title,
            "authors": list(authors),
            "page_count": page_count,
            "isbn13": isbn13,
        })
    return _make


class FakeCatalog:
    """Stands in for GoogleBooksService; same async methods, canned volumes."""

    def __init__(self, volumes=None, fail=False):
        self.volumes = list(volumes) if volumes is not None else [
            CatalogVolume(volume_id="demian01", title="Demian", authors=["Hermann Hesse"],
                          isbn13="9788937460449", page_count=300,
                          description="A coming-of-age novel.",
                          thumbnail_url="http://books.example/demian.jpg"),
            CatalogVolume(volume_id="zine01", title="Untitled Zine", authors=[]),
        ]
        self.fail = fail
        self.calls = []

    async def search(self, query, max_results=None):
        self.calls.append(("search", query))
        if self.fail:
            raise CatalogUnavailableError("Google Books unreachable")
        if not query or not query.strip():
            raise ValidationError("Search query cannot be empty.")
        return [v for v in self.volumes if query.lower() in (v.title or "").lower()]

    async def fetch_details(self, volume_id):
        self.calls.append(("fetch_details", volume_id))
        if self.fail:
            raise CatalogUnavailableError("Google Books unreachable")
        for v in self.volumes:
            if v.volume_id == volume_id:
                return v
        raise NotFoundError(f"Catalog volume not found: {volume_id}")


@pytest.fixture
def fake_catalog():
    return FakeCatalog()
