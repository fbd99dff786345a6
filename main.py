import asyncio
import logging
import subprocess
import sys
import webbrowser
from typing import Optional, Tuple

import typer

from config import settings
from hanjul.database import Database
from hanjul.errors import HanjulError
from hanjul.library import Library
from hanjul.reading_log import ReadingLog
from hanjul.services.google_books_service import GoogleBooksService
from hanjul.services.http_client import cleanup_http_client
from hanjul.ui_helpers import (
    set_output_mode,
    print_catalog_results,
    print_entries,
    print_library,
    print_reading_page,
    print_review,
    print_stats,
    print_volume,
)

logger = logging.getLogger(__name__)

app = typer.Typer(help="Haru Hanjul: track what you read, one line a day.")


def _services() -> Tuple[Library, ReadingLog]:
    """Build the store handle for this command and inject it into both components."""
    db = Database(settings.database_file)
    db.create_tables()
    library = Library(db, catalog=GoogleBooksService())
    reading_log = ReadingLog(db, progress_policy=settings.progress_policy)
    return library, reading_log


def _run(coro):
    """Run a catalog coroutine and close the shared HTTP client afterwards."""
    async def runner():
        try:
            return await coro
        finally:
            await cleanup_http_client()
    return asyncio.run(runner())


def _fail(error: Exception) -> None:
    print(f"Error: {error}")
    raise typer.Exit(code=1)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr"),
):
    """Global options for the CLI (output mode, logging)."""
    if output:
        set_output_mode(output)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@app.command("search")
def cli_search(
    query: str = typer.Argument(..., help="Title, author or ISBN"),
    limit: int = typer.Option(settings.google_books_max_results, "--limit", "-l", help="Maximum results"),
):
    """Search the Google Books catalog."""
    catalog = GoogleBooksService()
    try:
        volumes = _run(catalog.search(query, max_results=limit))
    except HanjulError as e:
        _fail(e)
    print_catalog_results(volumes)


@app.command("show")
def cli_show(volume_id: str):
    """Show catalog details of a volume."""
    catalog = GoogleBooksService()
    try:
        volume = _run(catalog.fetch_details(volume_id))
    except HanjulError as e:
        _fail(e)
    print_volume(volume)


@app.command("add")
def cli_add(volume_id: str):
    """Add a catalog volume to the library."""
    library, _ = _services()
    try:
        book = _run(library.add_book_from_catalog(volume_id))
    except HanjulError as e:
        _fail(e)
    print(f"Added to library: {book.id}. {book.title} - {book.author}")


@app.command("list")
def cli_list():
    """List the books in the library with their progress."""
    library, _ = _services()
    try:
        books = library.list_books()
    except HanjulError as e:
        _fail(e)
    print_library(books)


@app.command("reading")
def cli_reading(book_id: int):
    """Show a book's reading progress."""
    library, _ = _services()
    try:
        book = library.get_book(book_id)
    except HanjulError as e:
        _fail(e)
    print_reading_page(book)


@app.command("log")
def cli_log(
    book_id: int,
    start_page: int = typer.Argument(..., help="First page read in this session"),
    end_page: int = typer.Argument(..., help="Last page read in this session"),
    reflection: str = typer.Argument(..., help="What you thought about it"),
):
    """Record a reading session with a reflection."""
    library, reading_log = _services()
    try:
        entry = reading_log.record_session(book_id, start_page, end_page, reflection)
        book = library.get_book(book_id)
    except HanjulError as e:
        _fail(e)
    print(f"Session saved: pages {entry.start_page}-{entry.end_page} on {entry.date}")
    print(f"Progress: {book.progress_percent}%")
    if book.read:
        print(f"Finished '{book.title}'! Run 'review {book.id}' to see your review.")


@app.command("sessions")
def cli_sessions(book_id: int):
    """List a book's reading sessions."""
    _, reading_log = _services()
    try:
        entries = reading_log.list_entries(book_id)
    except HanjulError as e:
        _fail(e)
    print_entries(entries)


@app.command("review")
def cli_review(book_id: int):
    """Print the review built from a book's reflections."""
    _, reading_log = _services()
    try:
        review = reading_log.generate_review(book_id)
    except HanjulError as e:
        _fail(e)
    print_review(review)


@app.command("remove")
def cli_remove(book_id: int, yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation")):
    """Delete a book and all of its reading sessions."""
    library, _ = _services()
    if not yes and not typer.confirm(f"Delete book {book_id} and its reading log?"):
        print("Cancelled.")
        return
    try:
        deleted = library.delete_book(book_id)
    except HanjulError as e:
        _fail(e)
    if deleted:
        print(f"Book {book_id} has been removed.")
    else:
        print(f"Book {book_id} not found; nothing removed.")


@app.command("stats")
def cli_stats():
    """Show library statistics."""
    library, _ = _services()
    try:
        stats = library.get_statistics()
    except HanjulError as e:
        _fail(e)
    print_stats(stats)


@app.command("serve")
def cli_serve(no_browser: bool = typer.Option(False, "--no-browser", help="Do not open a browser")):
    """Start the HTTP API with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}/docs"
    print(f"Starting API on {url}")
    if not no_browser:
        try:
            webbrowser.open(url)
        except webbrowser.Error:
            logger.warning("Could not open a browser")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    try:
        subprocess.run(args)
    except KeyboardInterrupt:
        print("Stopped.")


if __name__ == "__main__":
    app()
