from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple

from library_backend.book import Book
from library_backend.utils.dates import parse_datetime, to_iso, utcnow, whole_days_between
from library_backend.utils.validators import TextValidator


class TransactionStatus(str, Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"
    OVERDUE = "overdue"
    RETURNED_LATE = "returned_late"


RETURNED_STATUSES = (TransactionStatus.RETURNED, TransactionStatus.RETURNED_LATE)


def calculate_fine(due_date: datetime, return_date: datetime, rate: int) -> Tuple[int, int]:
    """Return (days_late, fine_amount) for a book handed back at return_date.

    Only whole days count and early returns are never negative.
    """
    days_late = max(0, whole_days_between(due_date, return_date))
    return days_late, days_late * rate


class Student:
    """Student details copied onto the transaction at borrow time."""

    def __init__(self, student_id: str, name: str, department: str) -> None:
        self.student_id = TextValidator.clean(student_id)
        self.name = TextValidator.clean(name)
        self.department = TextValidator.clean(department)

    def to_dict(self) -> dict:
        return {"studentId": self.student_id, "name": self.name, "department": self.department}


class Transaction:
    """One borrow event and its lifecycle through return and fine settlement."""

    def __init__(self, book_id: str, student: Student, borrow_date: datetime, due_date: datetime,
                 return_date: datetime | None = None, status: TransactionStatus | str = TransactionStatus.BORROWED,
                 fine_amount: int = 0, fine_paid: bool = False, fine_paid_date: datetime | None = None,
                 days_late: int = 0, created_date: datetime | None = None, id: str | None = None,
                 book: Book | None = None) -> None:
        self.id = id or uuid.uuid4().hex
        self.book_id = book_id
        self.book = book
        self.student = student
        self.borrow_date = borrow_date
        self.due_date = due_date
        self.return_date = return_date
        self.status = TransactionStatus(status)
        self.fine_amount = fine_amount
        self.fine_paid = bool(fine_paid)
        self.fine_paid_date = fine_paid_date
        self.days_late = days_late
        self.created_date = created_date or utcnow()

    @classmethod
    def open(cls, book_id: str, student: Student, days: int, now: Optional[datetime] = None) -> "Transaction":
        """New borrow starting now and due `days` later."""
        borrow_date = now or utcnow()
        return cls(
            book_id=book_id,
            student=student,
            borrow_date=borrow_date,
            due_date=borrow_date + timedelta(days=days),
            created_date=borrow_date,
        )

    @property
    def is_returned(self) -> bool:
        return self.status in RETURNED_STATUSES

    def close(self, now: datetime, rate: int) -> None:
        """Record the return and the fine owed for it."""
        self.return_date = now
        self.days_late, self.fine_amount = calculate_fine(self.due_date, now, rate)
        self.status = TransactionStatus.RETURNED_LATE if self.days_late > 0 else TransactionStatus.RETURNED

    def settle_fine(self, now: datetime) -> None:
        self.fine_paid = True
        self.fine_paid_date = now

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "book": self.book.to_dict() if self.book else self.book_id,
            "student": self.student.to_dict(),
            "borrowDate": to_iso(self.borrow_date),
            "dueDate": to_iso(self.due_date),
            "returnDate": to_iso(self.return_date),
            "status": self.status.value,
            "fineAmount": self.fine_amount,
            "finePaid": self.fine_paid,
            "finePaidDate": to_iso(self.fine_paid_date),
            "daysLate": self.days_late,
            "createdDate": to_iso(self.created_date),
        }

    @staticmethod
    def from_row(row) -> "Transaction":
        """Build from a transactions row, optionally joined with book columns prefixed `book_`."""
        data = dict(row)
        book = None
        if data.get("book_title") is not None:
            book = Book.from_row({
                "id": data["book_id"],
                "title": data["book_title"],
                "author": data["book_author"],
                "isbn": data.get("book_isbn"),
                "genre": data.get("book_genre"),
                "available": data.get("book_available", 0),
                "added_date": data.get("book_added_date"),
            })
        return Transaction(
            id=data["id"],
            book_id=data["book_id"],
            book=book,
            student=Student(data["student_id"], data["student_name"], data["student_department"]),
            borrow_date=parse_datetime(data["borrow_date"]),
            due_date=parse_datetime(data["due_date"]),
            return_date=parse_datetime(data.get("return_date")),
            status=data["status"],
            fine_amount=data.get("fine_amount", 0),
            fine_paid=data.get("fine_paid", 0),
            fine_paid_date=parse_datetime(data.get("fine_paid_date")),
            days_late=data.get("days_late", 0),
            created_date=parse_datetime(data.get("created_date")),
        )
