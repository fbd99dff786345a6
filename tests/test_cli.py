import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

import main
from config import settings
from conftest import FakeCatalog
from hanjul.database import Database
from hanjul.library import Library
from hanjul.reading_log import ReadingLog
from hanjul.ui_helpers import OUTPUT_MODE_ENV
from main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch):
    # Every command opens this file; the catalog never leaves the process
    monkeypatch.setattr(settings, "database_file", str(tmp_path / "cli.db"))
    monkeypatch.setattr(main, "GoogleBooksService", lambda: FakeCatalog())
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")


@pytest.fixture
def cli_db():
    db = Database(settings.database_file)
    db.create_tables()
    return db


@pytest.fixture
def demian(cli_db):
    return Library(cli_db).add_book({"title": "Demian", "authors": ["Hermann Hesse"], "page_count": 300})


def test_list_no_books():
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "No books in library." in result.stdout


def test_search():
    result = runner.invoke(app, ["search", "demian"])
    assert result.exit_code == 0
    assert "demian01 - Demian - Hermann Hesse - ISBN: 9788937460449" in result.stdout


def test_search_no_results():
    result = runner.invoke(app, ["search", "cookbook"])
    assert result.exit_code == 0
    assert "No books found." in result.stdout


def test_search_catalog_down(monkeypatch):
    monkeypatch.setattr(main, "GoogleBooksService", lambda: FakeCatalog(fail=True))
    result = runner.invoke(app, ["search", "demian"])
    assert result.exit_code == 1
    assert "Error: Google Books unreachable" in result.stdout


def test_show_volume():
    result = runner.invoke(app, ["show", "demian01"])
    assert result.exit_code == 0
    assert "Title: Demian" in result.stdout
    assert "Pages: 300" in result.stdout
    assert "Description: A coming-of-age novel." in result.stdout


def test_add_book_success():
    result = runner.invoke(app, ["add", "demian01"])
    assert result.exit_code == 0
    assert "Added to library: 1. Demian - Hermann Hesse" in result.stdout

    listed = runner.invoke(app, ["list"])
    assert "1. Demian - Hermann Hesse [0%]" in listed.stdout


def test_add_book_not_found():
    result = runner.invoke(app, ["add", "ghost"])
    assert result.exit_code == 1
    assert "Error: Catalog volume not found: ghost" in result.stdout


def test_log_session_and_progress(demian):
    result = runner.invoke(app, ["log", str(demian.id), "1", "50", "A strong start"])
    assert result.exit_code == 0
    assert "Session saved: pages 1-50" in result.stdout
    assert "Progress: 17%" in result.stdout
    assert "Finished" not in result.stdout

    reading = runner.invoke(app, ["reading", str(demian.id)])
    assert "Progress: 17% (50 / 300 pages)" in reading.stdout
    assert "Next session starts at page 51" in reading.stdout


def test_log_final_session_marks_book_read(demian):
    result = runner.invoke(app, ["log", str(demian.id), "1", "300", "All of it"])
    assert result.exit_code == 0
    assert "Progress: 100%" in result.stdout
    assert f"Finished 'Demian'! Run 'review {demian.id}' to see your review." in result.stdout

    listed = runner.invoke(app, ["list"])
    assert "[100%] (read)" in listed.stdout


def test_log_rejects_pages_beyond_the_book(demian):
    result = runner.invoke(app, ["log", str(demian.id), "290", "310", "Too far"])
    assert result.exit_code == 1
    assert "Error: endPage (310) cannot exceed the book's 300 pages." in result.stdout


def test_log_unknown_book(cli_db):
    result = runner.invoke(app, ["log", "9", "1", "10", "Nothing"])
    assert result.exit_code == 1
    assert "Error: Book 9 not found." in result.stdout


def test_sessions_and_review(cli_db, demian):
    reading_log = ReadingLog(cli_db)
    reading_log.record_session(demian.id, 1, 100, "note1")
    reading_log.record_session(demian.id, 101, 300, "note2")

    sessions = runner.invoke(app, ["sessions", str(demian.id)])
    assert sessions.exit_code == 0
    assert "p.1-100: note1" in sessions.stdout
    assert "p.101-300: note2" in sessions.stdout

    review = runner.invoke(app, ["review", str(demian.id)])
    assert review.exit_code == 0
    assert "Demian (" in review.stdout
    assert "note1\n\nnote2" in review.stdout


def test_review_without_sessions(demian):
    result = runner.invoke(app, ["review", str(demian.id)])
    assert result.exit_code == 0
    assert "Demian: no reading sessions recorded yet." in result.stdout


def test_sessions_json_output(cli_db, demian):
    ReadingLog(cli_db).record_session(demian.id, 1, 10, "short")
    result = runner.invoke(app, ["--output", "json", "sessions", str(demian.id)])
    assert result.exit_code == 0
    entries = json.loads(result.stdout)
    assert entries[0]["reflection"] == "short"
    assert entries[0]["end_page"] == 10


def test_rich_review_prints_brackets_literally(cli_db, demian):
    ReadingLog(cli_db).record_session(demian.id, 1, 10, "loved the [/b] part")
    result = runner.invoke(app, ["--output", "rich", "review", str(demian.id)])
    assert result.exit_code == 0
    assert "loved the [/b] part" in result.stdout


def test_rich_views_with_bracketed_title(cli_db):
    book = Library(cli_db).add_book({"title": "[bold]Notes[/i]", "authors": ["[red]"], "page_count": 50})
    ReadingLog(cli_db).record_session(book.id, 1, 5, "[link]")

    listed = runner.invoke(app, ["--output", "rich", "list"])
    assert listed.exit_code == 0
    assert "[bold]Notes[/i]" in listed.stdout

    reading = runner.invoke(app, ["--output", "rich", "reading", str(book.id)])
    assert reading.exit_code == 0
    assert "[bold]Notes[/i]" in reading.stdout

    review = runner.invoke(app, ["--output", "rich", "review", str(book.id)])
    assert review.exit_code == 0
    assert "[link]" in review.stdout


def test_remove_book_success(demian):
    result = runner.invoke(app, ["remove", str(demian.id), "--yes"])
    assert result.exit_code == 0
    assert f"Book {demian.id} has been removed." in result.stdout
    assert "No books in library." in runner.invoke(app, ["list"]).stdout


def test_remove_book_not_found(cli_db):
    result = runner.invoke(app, ["remove", "42", "-y"])
    assert result.exit_code == 0
    assert "Book 42 not found; nothing removed." in result.stdout


def test_remove_asks_for_confirmation(demian):
    result = runner.invoke(app, ["remove", str(demian.id)], input="n\n")
    assert result.exit_code == 0
    assert "Cancelled." in result.stdout
    assert "Demian" in runner.invoke(app, ["list"]).stdout


def test_stats(cli_db, demian):
    ReadingLog(cli_db).record_session(demian.id, 1, 30, "started")
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "Total Books: 1" in result.stdout
    assert "In Progress: 1" in result.stdout
    assert "Sessions: 1" in result.stdout


@patch("subprocess.run")
@patch("webbrowser.open")
def test_serve_command(mock_webbrowser_open, mock_subprocess_run):
    result = runner.invoke(app, ["serve"])
    assert result.exit_code == 0
    assert "Starting API on" in result.stdout
    mock_webbrowser_open.assert_called_once()
    args = mock_subprocess_run.call_args[0][0]
    assert "api:app" in args


@patch("subprocess.run")
@patch("webbrowser.open")
def test_serve_without_browser(mock_webbrowser_open, mock_subprocess_run):
    result = runner.invoke(app, ["serve", "--no-browser"])
    assert result.exit_code == 0
    mock_webbrowser_open.assert_not_called()
    mock_subprocess_run.assert_called_once()
