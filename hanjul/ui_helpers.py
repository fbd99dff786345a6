import json
import os
from typing import Any, Dict, List

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "HANJUL_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def print_library(books: List[Any]) -> None:
    """Print the library overview.
    - plain: 'ID. Title - Author [progress%]' lines, or 'No books in library.'
    - json: overview rows
    - rich: table with a progress column
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        _print_json([b.to_overview() for b in books])
    elif mode == "rich":
        table = Table(title="📚 My Library", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Progress", justify="right")
        for b in books:
            progress = "✓ done" if b.read else f"{b.progress_percent}%"
            table.add_row(str(b.id), escape(b.title), escape(b.author), progress)
        _console.print(table)
    else:
        for b in books:
            done = " (read)" if b.read else ""
            print(f"{b.id}. {b.title} - {b.author} [{b.progress_percent}%]{done}")


def print_catalog_results(volumes: List[Any]) -> None:
    mode = get_output_mode()

    if not volumes:
        print("No books found.")
        return

    if mode == "json":
        _print_json([v.to_dict() for v in volumes])
    elif mode == "rich":
        table = Table(title="🔍 Search Results", header_style="bold cyan")
        table.add_column("Volume ID", style="magenta", no_wrap=True)
        table.add_column("Title")
        table.add_column("Authors")
        table.add_column("ISBN")
        table.add_column("Pages", justify="right")
        for v in volumes:
            table.add_row(escape(v.volume_id or ""), escape(v.title or ""), escape(v.author), v.isbn13 or "-",
                          str(v.page_count) if v.page_count else "-")
        _console.print(table)
    else:
        for v in volumes:
            print(f"{v.volume_id} - {v.title} - {v.author} - ISBN: {v.isbn13 or 'n/a'}")


def print_volume(volume: Any) -> None:
    mode = get_output_mode()
    if mode == "json":
        _print_json(volume.to_dict())
        return
    lines = [
        f"Title: {volume.title or 'n/a'}",
        f"Authors: {volume.author}",
        f"ISBN: {volume.isbn13 or 'n/a'}",
        f"Pages: {volume.page_count or 'n/a'}",
    ]
    if volume.description:
        lines.append(f"Description: {volume.description}")
    if mode == "rich":
        _console.print(Panel.fit(escape("\n".join(lines)), title=f"📖 {escape(volume.volume_id or '')}", border_style="blue"))
    else:
        print("\n".join(lines))


def print_reading_page(book: Any) -> None:
    mode = get_output_mode()
    page = book.to_reading_page()
    if mode == "json":
        _print_json(page)
        return
    total = page["total_pages"] if page["total_pages"] is not None else "?"
    content = (
        f"{page['title']}\n"
        f"Progress: {page['progress_percent']}% ({page['last_read_page']} / {total} pages)\n"
        f"Next session starts at page {page['next_start_page']}"
    )
    if mode == "rich":
        _console.print(Panel.fit(escape(content), title="📖 Reading", border_style="green"))
    else:
        print(content)


def print_entries(entries: List[Any]) -> None:
    mode = get_output_mode()
    if not entries:
        print("No reading sessions yet.")
        return
    if mode == "json":
        _print_json([e.to_dict() for e in entries])
        return
    for e in entries:
        print(f"{e.date} p.{e.start_page}-{e.end_page}: {e.reflection}")


def print_review(review: Any) -> None:
    mode = get_output_mode()
    if mode == "json":
        _print_json(review.to_dict())
        return
    if review.is_empty:
        print(f"{review.title}: no reading sessions recorded yet.")
        return
    header = f"{review.title} ({review.start_date} ~ {review.end_date})"
    if mode == "rich":
        _console.print(Panel(escape(review.review_text), title=f"📝 {escape(header)}", border_style="magenta"))
    else:
        print(header)
        print()
        print(review.review_text)


def print_stats(stats: Dict[str, Any]) -> None:
    mode = get_output_mode()
    if mode == "json":
        _print_json(stats)
        return
    lines = [
        f"Total Books: {stats.get('total_books', 0)}",
        f"Completed: {stats.get('completed_books', 0)}",
        f"In Progress: {stats.get('in_progress_books', 0)}",
        f"Sessions: {stats.get('total_sessions', 0)}",
    ]
    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title="📊 Stats", border_style="blue"))
    else:
        print("\n".join(lines))
