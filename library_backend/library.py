import logging
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional

from library_backend.book import Book
from library_backend.config import settings
from library_backend.database import Database
from library_backend.payment import Payment
from library_backend.transaction import Student, Transaction, TransactionStatus
from library_backend.utils.dates import to_iso, utcnow
from library_backend.utils.validators import TextValidator

logger = logging.getLogger(__name__)

BOOK_COLUMNS = "id, title, author, isbn, genre, available, added_date"

TRANSACTION_SELECT = """
    SELECT t.*,
           b.title AS book_title, b.author AS book_author, b.isbn AS book_isbn,
           b.genre AS book_genre, b.available AS book_available, b.added_date AS book_added_date
    FROM transactions t
    LEFT JOIN books b ON b.id = t.book_id
"""


class Library:
    """Runs the circulation workflow: catalog, borrow/return, fines and payments.

    Every storage operation opens its own connection. The availability
    decrement on borrow and the return guard are conditional UPDATEs, so two
    requests racing for the last copy (or returning the same loan twice)
    cannot both succeed.
    """

    def __init__(self, db_file: Optional[str] = None, clock: Optional[Callable[[], datetime]] = None,
                 fine_per_day: Optional[int] = None, default_loan_days: Optional[int] = None) -> None:
        self.db = Database(db_file)
        self.db.connect()
        self._now = clock or utcnow
        self.fine_per_day = settings.fine_per_day if fine_per_day is None else fine_per_day
        self.default_loan_days = settings.default_loan_days if default_loan_days is None else default_loan_days

    # ------------------------- Book catalog ------------------------- #
    def list_books(self) -> List[Book]:
        """All books in insertion order."""
        self._require_storage()
        conn = self.db.get_connection()
        try:
            rows = conn.execute(f"SELECT {BOOK_COLUMNS} FROM books ORDER BY rowid").fetchall()
            return [Book.from_row(row) for row in rows]
        finally:
            conn.close()

    def add_book(self, title: Optional[str], author: Optional[str], isbn: Optional[str] = None,
                 genre: Optional[str] = None) -> Book:
        self._require_storage()
        if not TextValidator.is_present(title) or not TextValidator.is_present(author):
            raise ValidationError("Title and author are required")

        book = Book(title=title, author=author, isbn=isbn, genre=genre, added_date=self._now())
        conn = self.db.get_connection()
        try:
            conn.execute(
                f"INSERT INTO books ({BOOK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (book.id, book.title, book.author, book.isbn, book.genre, book.available, to_iso(book.added_date)),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Book with ISBN {book.isbn} already exists.") from e
        finally:
            conn.close()
        logger.info(f"Book added: {book.title} by {book.author} ({book.id})")
        return book

    def find_book(self, book_id: str) -> Optional[Book]:
        conn = self.db.get_connection()
        try:
            row = conn.execute(f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
            return Book.from_row(row) if row else None
        finally:
            conn.close()

    # ------------------------- Borrow / return ------------------------- #
    def borrow_book(self, book_id: str, student_id: str, student_name: str, student_department: str,
                    days: Optional[int] = None) -> Transaction:
        """Lend a book to a student for `days` (default loan period when omitted)."""
        missing = TextValidator.missing(
            studentId=student_id, studentName=student_name, studentDepartment=student_department
        )
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        days = self.default_loan_days if days is None else int(days)
        if days < 1:
            raise ValidationError("Loan period must be at least 1 day")

        student = Student(student_id, student_name, student_department)
        try:
            transaction = Transaction.open(book_id, student, days, now=self._now())
        except OverflowError as e:
            raise ValidationError("Loan period is too long") from e

        conn = self.db.get_connection()
        try:
            if conn.execute("SELECT 1 FROM books WHERE id = ?", (book_id,)).fetchone() is None:
                raise NotFoundError("Book not found")

            cursor = conn.execute(
                "UPDATE books SET available = available - 1 WHERE id = ? AND available > 0", (book_id,)
            )
            if cursor.rowcount == 0:
                logger.warning(f"Borrow rejected, book {book_id} not available")
                raise InvalidStateError("Book not available")

            conn.execute(
                """
                INSERT INTO transactions (
                    id, book_id, student_id, student_name, student_department,
                    borrow_date, due_date, status, fine_amount, fine_paid, days_late, created_date
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    transaction.id, book_id, student.student_id, student.name, student.department,
                    to_iso(transaction.borrow_date), to_iso(transaction.due_date), transaction.status.value,
                    transaction.fine_amount, int(transaction.fine_paid), transaction.days_late,
                    to_iso(transaction.created_date),
                ),
            )
            # Decrement and insert commit together; an exception above rolls both back on close.
            conn.commit()
        finally:
            conn.close()

        logger.info(
            f"Book {book_id} borrowed by {student.student_id}, due {to_iso(transaction.due_date)} ({transaction.id})"
        )
        return self.get_transaction(transaction.id)

    def return_book(self, transaction_id: str) -> Transaction:
        """Close a loan, computing days late and the fine, and put the copy back."""
        transaction = self.get_transaction(transaction_id)
        if transaction.is_returned:
            logger.warning(f"Return rejected, transaction {transaction_id} already returned")
            raise InvalidStateError("Transaction already returned")

        transaction.close(self._now(), self.fine_per_day)
        conn = self.db.get_connection()
        try:
            cursor = conn.execute(
                """
                UPDATE transactions
                SET return_date = ?, days_late = ?, fine_amount = ?, status = ?
                WHERE id = ? AND status NOT IN (?, ?)
                """,
                (
                    to_iso(transaction.return_date), transaction.days_late, transaction.fine_amount,
                    transaction.status.value, transaction.id,
                    TransactionStatus.RETURNED.value, TransactionStatus.RETURNED_LATE.value,
                ),
            )
            if cursor.rowcount == 0:
                raise InvalidStateError("Transaction already returned")
            conn.execute("UPDATE books SET available = available + 1 WHERE id = ?", (transaction.book_id,))
            conn.commit()
        finally:
            conn.close()

        if transaction.fine_amount > 0:
            logger.info(
                f"Transaction {transaction.id} returned {transaction.days_late} day(s) late, "
                f"fine {transaction.fine_amount}"
            )
        else:
            logger.info(f"Transaction {transaction.id} returned on time")
        return self.get_transaction(transaction.id)

    def list_transactions(self) -> List[Transaction]:
        """All transactions with their book, newest first."""
        conn = self.db.get_connection()
        try:
            rows = conn.execute(TRANSACTION_SELECT + " ORDER BY t.created_date DESC, t.rowid DESC").fetchall()
            return [Transaction.from_row(row) for row in rows]
        finally:
            conn.close()

    def get_transaction(self, transaction_id: str) -> Transaction:
        conn = self.db.get_connection()
        try:
            row = conn.execute(TRANSACTION_SELECT + " WHERE t.id = ?", (transaction_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError("Transaction not found")
        return Transaction.from_row(row)

    def mark_overdue(self) -> int:
        """Flag borrowed loans past their due date as overdue. Returns how many changed."""
        conn = self.db.get_connection()
        try:
            # due_date is stored as UTC ISO text, so string order is time order
            cursor = conn.execute(
                "UPDATE transactions SET status = ? WHERE status = ? AND due_date < ?",
                (TransactionStatus.OVERDUE.value, TransactionStatus.BORROWED.value, to_iso(self._now())),
            )
            flagged = cursor.rowcount
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Overdue sweep flagged {flagged} transaction(s)")
        return flagged

    # ------------------------- Fines and payments ------------------------- #
    def pay_fine(self, transaction_id: str) -> Transaction:
        """Record a fine as paid directly, without a payment record."""
        transaction = self.get_transaction(transaction_id)
        transaction.settle_fine(self._now())
        conn = self.db.get_connection()
        try:
            conn.execute(
                "UPDATE transactions SET fine_paid = 1, fine_paid_date = ? WHERE id = ?",
                (to_iso(transaction.fine_paid_date), transaction.id),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Fine for transaction {transaction.id} recorded as paid")
        return transaction

    def create_payment(self, transaction_id: str, student_id: str, student_name: str, amount) -> Payment:
        """Open a pending UPI payment for a transaction.

        The amount is taken as given; it is not compared with the transaction's fine.
        """
        self.get_transaction(transaction_id)
        missing = TextValidator.missing(studentId=student_id, studentName=student_name)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if amount is None:
            raise ValidationError("Amount is required")
        try:
            amount = float(amount)
        except (TypeError, ValueError) as e:
            raise ValidationError("Amount must be a number") from e

        payment = Payment(transaction_id, student_id, student_name, amount, created_date=self._now())
        conn = self.db.get_connection()
        try:
            conn.execute(
                """
                INSERT INTO payments (
                    id, transaction_id, student_id, student_name, amount,
                    upi_id, payment_status, payment_method, created_date
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    payment.id, payment.transaction_id, payment.student_id, payment.student_name, payment.amount,
                    payment.upi_id, payment.payment_status.value, payment.payment_method,
                    to_iso(payment.created_date),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Payment {payment.id} created for transaction {transaction_id}, amount {payment.amount}")
        return payment

    def verify_payment(self, payment_id: str, utr_number: Optional[str] = None) -> Payment:
        """Complete a payment and mark the linked transaction's fine as paid.

        No check is made that the amount covers the fine.
        """
        payment = self.get_payment(payment_id)
        now = self._now()
        payment.complete(now, utr_number)
        conn = self.db.get_connection()
        try:
            conn.execute(
                "UPDATE payments SET payment_status = ?, utr_number = ?, payment_date = ? WHERE id = ?",
                (payment.payment_status.value, payment.utr_number, to_iso(payment.payment_date), payment.id),
            )
            cursor = conn.execute(
                "UPDATE transactions SET fine_paid = 1, fine_paid_date = ? WHERE id = ?",
                (to_iso(now), payment.transaction_id),
            )
            conn.commit()
        finally:
            conn.close()
        if cursor.rowcount == 0:
            logger.warning(f"Payment {payment.id} verified but transaction {payment.transaction_id} no longer exists")
        logger.info(f"Payment {payment.id} verified with UTR {payment.utr_number}")
        return payment

    def get_payment(self, payment_id: str) -> Payment:
        conn = self.db.get_connection()
        try:
            row = conn.execute("SELECT * FROM payments WHERE id = ?", (payment_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError("Payment not found")
        return Payment.from_row(row)

    # ------------------------- Utilities ------------------------- #
    def _require_storage(self) -> None:
        if not self.db.is_connected():
            raise StorageUnavailableError("Database connecting, please try again")

    def close(self) -> None:
        self.db.close()


def return_message(transaction: Transaction) -> str:
    fine = f" (Fine: ₹{transaction.fine_amount})" if transaction.fine_amount > 0 else ""
    return f"Book returned successfully{fine}"


class LibraryError(Exception):
    """Base class for failures reported back to the client."""
    status_code = 500


class NotFoundError(LibraryError, LookupError):
    status_code = 404


class ValidationError(LibraryError, ValueError):
    status_code = 400


class InvalidStateError(LibraryError):
    status_code = 400


class StorageUnavailableError(LibraryError):
    status_code = 503
