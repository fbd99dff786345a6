import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import settings
from hanjul.database import Database
from hanjul.errors import (
    CatalogUnavailableError,
    HanjulError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from hanjul.library import Library
from hanjul.reading_log import ReadingLog
from hanjul.services.google_books_service import GoogleBooksService
from hanjul.services.http_client import cleanup_http_client

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


# --- Models ---
class CatalogVolumeModel(BaseModel):
    id: str | None = None
    title: str | None = None
    authors: List[str] = Field(default_factory=list)
    isbn13: str | None = None
    page_count: int | None = None
    description: str | None = None
    thumbnail_url: str | None = None

class BookCreateModel(BaseModel):
    volume_id: str = Field(min_length=1, description="Google Books volume id")

class BookModel(BaseModel):
    id: int
    title: str
    author: str
    isbn: str | None = None
    total_pages: int | None = None
    last_read_page: int
    read: bool
    progress_percent: int
    status: str
    description: str | None = None
    thumbnail_url: str | None = None
    catalog_id: str | None = None
    created_at: str | None = None

class LibraryItemModel(BaseModel):
    """One row of the library overview."""
    id: int
    title: str
    author: str
    progress_percent: int
    read: bool

class ReadingPageModel(BaseModel):
    """What the reading page needs to pre-fill the next session."""
    id: int
    title: str
    last_read_page: int
    total_pages: int | None = None
    progress_percent: int
    next_start_page: int

class SessionCreateModel(BaseModel):
    start_page: int
    end_page: int
    reflection: str

class ReadingLogEntryModel(BaseModel):
    id: int
    book_id: int
    date: str
    start_page: int
    end_page: int
    reflection: str

class ReviewModel(BaseModel):
    title: str
    start_date: str | None = None
    end_date: str | None = None
    review_text: str

class StatsModel(BaseModel):
    total_books: int
    completed_books: int
    in_progress_books: int
    total_sessions: int

class DeleteResultModel(BaseModel):
    deleted: bool


# --- Helper functions ---
def _http_error(error: HanjulError) -> HTTPException:
    """Map a core error to the HTTP status the client sees."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, CatalogUnavailableError):
        logger.warning(f"Catalog unavailable: {error}")
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, StorageError):
        logger.error(f"Storage failure: {error}")
        return HTTPException(status_code=500, detail="Storage error")
    return HTTPException(status_code=500, detail=str(error))


def get_library(request: Request) -> Library:
    return request.app.state.library

def get_reading_log(request: Request) -> ReadingLog:
    return request.app.state.reading_log

def get_catalog(request: Request) -> GoogleBooksService:
    return request.app.state.catalog


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        yield
    finally:
        # Close the shared client on shutdown
        await cleanup_http_client()


def create_app(db_file: Optional[str] = None, catalog: Optional[GoogleBooksService] = None,
               progress_policy: Optional[str] = None) -> FastAPI:
    """Build the API with one store handle shared by the library and the reading log."""
    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    database = Database(db_file or settings.database_file)
    database.create_tables()
    catalog = catalog or GoogleBooksService()
    app.state.database = database
    app.state.catalog = catalog
    app.state.library = Library(database, catalog=catalog)
    app.state.reading_log = ReadingLog(database, progress_policy=progress_policy or settings.progress_policy)

    # --- Health ---
    @app.get("/health")
    def health(library: Library = Depends(get_library)):
        """Lightweight health endpoint with a quick database round trip."""
        db_ok = True
        total_books = 0
        try:
            total_books = library.get_statistics()["total_books"]
        except StorageError:
            db_ok = False
        return {
            "status": "healthy" if db_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "db": db_ok,
            "total_books": total_books,
        }

    # --- Catalog ---
    @app.get("/catalog/search", response_model=List[CatalogVolumeModel])
    async def search_catalog(
        q: str = Query(..., min_length=1, description="Title or ISBN"),
        limit: int = Query(settings.google_books_max_results, ge=1, le=40),
        catalog: GoogleBooksService = Depends(get_catalog),
    ):
        """Search the Google Books catalog."""
        try:
            volumes = await catalog.search(q, max_results=limit)
        except HanjulError as e:
            raise _http_error(e)
        return [CatalogVolumeModel(**v.to_dict()) for v in volumes]

    @app.get("/catalog/volumes/{volume_id}", response_model=CatalogVolumeModel)
    async def get_catalog_volume(volume_id: str, catalog: GoogleBooksService = Depends(get_catalog)):
        """Catalog details of a single volume."""
        try:
            volume = await catalog.fetch_details(volume_id)
        except HanjulError as e:
            raise _http_error(e)
        return CatalogVolumeModel(**volume.to_dict())

    # --- Library ---
    @app.post("/books", response_model=BookModel, status_code=201)
    async def add_book(payload: BookCreateModel, library: Library = Depends(get_library)):
        """Add a catalog volume to the library."""
        try:
            book = await library.add_book_from_catalog(payload.volume_id)
        except HanjulError as e:
            raise _http_error(e)
        return BookModel(**book.to_dict())

    @app.get("/books", response_model=List[LibraryItemModel])
    def list_books(library: Library = Depends(get_library)):
        """Library overview with progress for every book."""
        try:
            books = library.list_books()
        except HanjulError as e:
            raise _http_error(e)
        return [LibraryItemModel(**b.to_overview()) for b in books]

    @app.get("/stats", response_model=StatsModel)
    def get_stats(library: Library = Depends(get_library)):
        try:
            return StatsModel(**library.get_statistics())
        except HanjulError as e:
            raise _http_error(e)

    @app.get("/books/{book_id}", response_model=BookModel)
    def get_book(book_id: int, library: Library = Depends(get_library)):
        try:
            book = library.get_book(book_id)
        except HanjulError as e:
            raise _http_error(e)
        return BookModel(**book.to_dict())

    @app.delete("/books/{book_id}", response_model=DeleteResultModel)
    def delete_book(book_id: int, library: Library = Depends(get_library)):
        """Delete a book and its reading log. Deleting an unknown id succeeds with deleted=false."""
        try:
            deleted = library.delete_book(book_id)
        except HanjulError as e:
            raise _http_error(e)
        return DeleteResultModel(deleted=deleted)

    # --- Reading log ---
    @app.get("/books/{book_id}/reading", response_model=ReadingPageModel)
    def get_reading_page(book_id: int, library: Library = Depends(get_library)):
        try:
            book = library.get_book(book_id)
        except HanjulError as e:
            raise _http_error(e)
        return ReadingPageModel(**book.to_reading_page())

    @app.post("/books/{book_id}/sessions", response_model=ReadingLogEntryModel, status_code=201)
    def record_session(book_id: int, payload: SessionCreateModel,
                       reading_log: ReadingLog = Depends(get_reading_log)):
        """Save a reading session and advance the book's progress."""
        try:
            entry = reading_log.record_session(book_id, payload.start_page, payload.end_page, payload.reflection)
        except HanjulError as e:
            raise _http_error(e)
        return ReadingLogEntryModel(**entry.to_dict())

    @app.get("/books/{book_id}/sessions", response_model=List[ReadingLogEntryModel])
    def list_sessions(book_id: int, reading_log: ReadingLog = Depends(get_reading_log)):
        try:
            entries = reading_log.list_entries(book_id)
        except HanjulError as e:
            raise _http_error(e)
        return [ReadingLogEntryModel(**e.to_dict()) for e in entries]

    @app.get("/books/{book_id}/review", response_model=ReviewModel)
    def get_review(book_id: int, reading_log: ReadingLog = Depends(get_reading_log)):
        """The book's reflections joined into one review."""
        try:
            review = reading_log.generate_review(book_id)
        except HanjulError as e:
            raise _http_error(e)
        return ReviewModel(**review.to_dict())

    return app


app = create_app()
