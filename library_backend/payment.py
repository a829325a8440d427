from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from library_backend.config import settings
from library_backend.utils.dates import parse_datetime, to_iso, utcnow
from library_backend.utils.validators import TextValidator


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def fallback_utr(now: datetime) -> str:
    """Placeholder reference used when the payer does not supply a UTR."""
    return f"UTR{int(now.timestamp() * 1000)}"


class Payment:
    """A fine-payment attempt against a transaction."""

    def __init__(self, transaction_id: str, student_id: str, student_name: str, amount: float,
                 upi_id: str | None = None, payment_status: PaymentStatus | str = PaymentStatus.PENDING,
                 payment_method: str | None = None, utr_number: str | None = None,
                 payment_date: datetime | None = None, created_date: datetime | None = None,
                 id: str | None = None) -> None:
        self.id = id or uuid.uuid4().hex
        self.transaction_id = transaction_id
        self.student_id = TextValidator.clean(student_id)
        self.student_name = TextValidator.clean(student_name)
        self.amount = amount
        self.upi_id = upi_id or settings.upi_id
        self.payment_status = PaymentStatus(payment_status)
        self.payment_method = payment_method or settings.payment_method
        self.utr_number = utr_number
        self.payment_date = payment_date
        self.created_date = created_date or utcnow()

    def complete(self, now: datetime, utr_number: str | None = None) -> None:
        self.payment_status = PaymentStatus.COMPLETED
        self.utr_number = TextValidator.clean(utr_number) or fallback_utr(now)
        self.payment_date = now

    def summary(self) -> dict:
        """The short form returned when a payment is created."""
        return {
            "_id": self.id,
            "amount": self.amount,
            "upiId": self.upi_id,
            "status": self.payment_status.value,
        }

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "transactionId": self.transaction_id,
            "studentId": self.student_id,
            "studentName": self.student_name,
            "amount": self.amount,
            "upiId": self.upi_id,
            "paymentStatus": self.payment_status.value,
            "paymentMethod": self.payment_method,
            "utrNumber": self.utr_number,
            "paymentDate": to_iso(self.payment_date),
            "createdDate": to_iso(self.created_date),
        }

    @staticmethod
    def from_row(row) -> "Payment":
        data = dict(row)
        return Payment(
            id=data["id"],
            transaction_id=data["transaction_id"],
            student_id=data["student_id"],
            student_name=data["student_name"],
            amount=data["amount"],
            upi_id=data.get("upi_id"),
            payment_status=data.get("payment_status", PaymentStatus.PENDING),
            payment_method=data.get("payment_method"),
            utr_number=data.get("utr_number"),
            payment_date=parse_datetime(data.get("payment_date")),
            created_date=parse_datetime(data.get("created_date")),
        )
