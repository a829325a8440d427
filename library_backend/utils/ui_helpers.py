import json
import os
from typing import Any, Dict, List

from rich.console import Console
from rich.table import Table

# Environment variable controlling CLI output mode.
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_books(books: List[Any]) -> None:
    """Print the catalog in the current output mode.
    - plain: 'ID - Title by Author [available: N]' lines, or 'No books in library.'
    - json: JSON array of book dicts
    - rich: Rich table
    """
    if not books:
        print("No books in library.")
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Genre", style="white")
        table.add_column("Available", justify="right")
        for b in books:
            table.add_row(b.id, b.title, b.author, b.genre, str(b.available))
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author} [available: {b.available}]")


def print_transactions(transactions: List[Any]) -> None:
    """Print transactions in the current output mode (newest first, as given)."""
    if not transactions:
        print("No transactions recorded.")
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps([t.to_dict() for t in transactions], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="🔁 Transactions", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Book", style="white")
        table.add_column("Student", style="white")
        table.add_column("Due", style="white")
        table.add_column("Status", style="white")
        table.add_column("Fine", justify="right")
        for t in transactions:
            title = t.book.title if t.book else t.book_id
            fine = f"{t.fine_amount}{' (paid)' if t.fine_paid else ''}"
            table.add_row(t.id, title, t.student.student_id, t.due_date.date().isoformat(), t.status.value, fine)
        _console.print(table)
    else:
        for t in transactions:
            title = t.book.title if t.book else t.book_id
            paid = " paid" if t.fine_paid else ""
            print(f"{t.id} - {title} -> {t.student.student_id} [{t.status.value}] fine: {t.fine_amount}{paid}")


def print_record(title: str, record: Dict[str, Any]) -> None:
    """Print a single record as 'key: value' lines (plain/rich) or JSON."""
    if get_output_mode() == "json":
        print(json.dumps(record, ensure_ascii=False))
        return
    print(title)
    for key, value in record.items():
        if isinstance(value, dict):
            value = value.get("title") or value.get("name") or value.get("_id")
        print(f"  {key}: {value}")
