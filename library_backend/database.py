import logging
import os
import sqlite3
import tempfile
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from library_backend.config import settings

# Make sure .env is loaded before the database file is resolved from the environment.
load_dotenv()

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection state of the backing store."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


def resolve_database_file(db_file: Optional[str] = None) -> str:
    """Pick the database file to use.

    Priority:
    1) explicit argument
    2) LIBRARY_DB_FILE
    3) LIBRARY_DATA_FILE (legacy name)
    4) a per-process temp file
    """
    return (
        db_file
        or os.environ.get("LIBRARY_DB_FILE")
        or os.environ.get("LIBRARY_DATA_FILE")
        or os.path.join(tempfile.gettempdir(), f"library_{os.getpid()}.db")
    )


class Database:
    """SQLite storage for books, transactions and payments.

    Holds its own connection state instead of a process-wide flag, so callers
    ask the instance whether the store is usable.
    """

    def __init__(self, db_file: Optional[str] = None, name: Optional[str] = None) -> None:
        self.db_file = resolve_database_file(db_file)
        self.name = name or settings.database_name
        self.state = ConnectionState.CONNECTING

    def connect(self) -> bool:
        """Create the schema if needed and mark the store as connected."""
        try:
            self.create_tables()
        except sqlite3.Error as e:
            self.state = ConnectionState.DISCONNECTED
            logger.error(f"Database connection failed ({self.db_file}): {e}")
            return False
        self.state = ConnectionState.CONNECTED
        logger.info(f"Connected to database '{self.name}' at {self.db_file}")
        return True

    def close(self) -> None:
        # Connections are opened per operation, so there is nothing to release.
        self.state = ConnectionState.DISCONNECTED
        logger.info(f"Database '{self.name}' marked as disconnected")

    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def status_label(self) -> str:
        return "connected" if self.is_connected() else "connecting..."

    def health(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "database": self.status_label(),
            "databaseName": self.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def get_connection(self) -> sqlite3.Connection:
        """Open a new connection. Callers close it."""
        conn = sqlite3.connect(self.db_file)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def create_tables(self) -> None:
        """Create the tables and indexes if they do not exist yet."""
        conn = self.get_connection()
        try:
            cursor = conn.cursor()
            # isbn is UNIQUE but nullable: SQLite lets any number of NULLs coexist,
            # so books without an isbn never collide.
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS books (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    author TEXT NOT NULL,
                    isbn TEXT UNIQUE,
                    genre TEXT NOT NULL DEFAULT 'General',
                    available INTEGER NOT NULL DEFAULT 1 CHECK(available >= 0),
                    added_date TIMESTAMP NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    book_id TEXT NOT NULL,
                    student_id TEXT NOT NULL,
                    student_name TEXT NOT NULL,
                    student_department TEXT NOT NULL,
                    borrow_date TIMESTAMP NOT NULL,
                    due_date TIMESTAMP NOT NULL,
                    return_date TIMESTAMP,
                    status TEXT NOT NULL DEFAULT 'borrowed'
                        CHECK(status IN ('borrowed', 'returned', 'overdue', 'returned_late')),
                    fine_amount INTEGER NOT NULL DEFAULT 0,
                    fine_paid INTEGER NOT NULL DEFAULT 0,
                    fine_paid_date TIMESTAMP,
                    days_late INTEGER NOT NULL DEFAULT 0,
                    created_date TIMESTAMP NOT NULL,
                    FOREIGN KEY (book_id) REFERENCES books(id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS payments (
                    id TEXT PRIMARY KEY,
                    transaction_id TEXT NOT NULL,
                    student_id TEXT NOT NULL,
                    student_name TEXT NOT NULL,
                    amount REAL NOT NULL,
                    upi_id TEXT NOT NULL,
                    payment_status TEXT NOT NULL DEFAULT 'pending'
                        CHECK(payment_status IN ('pending', 'completed', 'failed', 'cancelled')),
                    payment_method TEXT NOT NULL DEFAULT 'UPI',
                    utr_number TEXT,
                    payment_date TIMESTAMP,
                    created_date TIMESTAMP NOT NULL
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_book_id ON transactions(book_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_created_date ON transactions(created_date DESC)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_status_due ON transactions(status, due_date)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_payments_transaction_id ON payments(transaction_id)")
            conn.commit()
        finally:
            conn.close()
