import sys
from functools import wraps
from typing import Optional

import typer
from rich.console import Console

from library_backend.config import configure_logging, settings
from library_backend.library import Library, LibraryError, return_message
from library_backend.utils.ui_helpers import print_books, print_record, print_transactions, set_output_mode


console = Console()

app = typer.Typer(help=f"{settings.app_name} CLI")


_library: Optional[Library] = None


def get_library() -> Library:
    """Shared Library instance for the current process."""
    global _library
    if _library is None:
        _library = Library()
    return _library


def reports_errors(func):
    """Print domain errors instead of dumping a traceback, and exit with status 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LibraryError as e:
            print(f"Error: {e}")
            raise typer.Exit(code=1)
    return wrapper


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global options for the CLI (e.g. output mode)."""
    if output:
        set_output_mode(output)


@app.command("books")
@reports_errors
def cli_books():
    """List every book in the catalog."""
    print_books(get_library().list_books())


@app.command("add-book")
@reports_errors
def cli_add_book(
    title: str,
    author: str,
    isbn: Optional[str] = typer.Option(None, help="Optional, must be unique"),
    genre: Optional[str] = typer.Option(None, help="Defaults to 'General'"),
):
    """Add a book to the catalog."""
    book = get_library().add_book(title, author, isbn=isbn, genre=genre)
    print(f"Book added: {book.title} by {book.author} ({book.id})")


@app.command("borrow")
@reports_errors
def cli_borrow(
    book_id: str,
    student_id: str,
    student_name: str,
    department: str,
    days: Optional[int] = typer.Option(None, help="Loan period in days"),
):
    """Issue a book to a student."""
    transaction = get_library().borrow_book(book_id, student_id, student_name, department, days=days)
    print(f"Book issued successfully: {transaction.id} due {transaction.due_date.date().isoformat()}")


@app.command("return")
@reports_errors
def cli_return(transaction_id: str):
    """Return a borrowed book and compute any fine."""
    transaction = get_library().return_book(transaction_id)
    print(return_message(transaction))


@app.command("transactions")
@reports_errors
def cli_transactions():
    """List transactions, newest first."""
    print_transactions(get_library().list_transactions())


@app.command("show-transaction")
@reports_errors
def cli_show_transaction(transaction_id: str):
    """Show a single transaction."""
    transaction = get_library().get_transaction(transaction_id)
    print_record("Transaction", transaction.to_dict())


@app.command("pay-fine")
@reports_errors
def cli_pay_fine(transaction_id: str):
    """Record a transaction's fine as paid without a payment record."""
    get_library().pay_fine(transaction_id)
    print("Fine payment recorded successfully!")


@app.command("mark-overdue")
@reports_errors
def cli_mark_overdue():
    """Flag borrowed books past their due date as overdue."""
    count = get_library().mark_overdue()
    print(f"Marked {count} transaction(s) as overdue.")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
):
    """Start the HTTP API with uvicorn."""
    import uvicorn

    configure_logging()
    host = host or settings.api_host
    port = int(port or settings.api_port)
    console.print(f"[green]Starting API on [link=http://{host}:{port}/]http://{host}:{port}/[/link][/]")
    uvicorn.run("library_backend.api:app", host=host, port=port, reload=reload)


def run() -> None:
    configure_logging()
    app()


if __name__ == "__main__":
    sys.exit(run())
