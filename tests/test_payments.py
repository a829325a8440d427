import pytest

from library_backend.library import NotFoundError, ValidationError
from library_backend.payment import PaymentStatus


@pytest.fixture
def late_transaction(lib, book, student, clock):
    transaction = lib.borrow_book(book.id, days=1, **student)
    clock.advance(days=6)
    return lib.return_book(transaction.id)


def test_create_payment_is_pending(lib, late_transaction):
    payment = lib.create_payment(late_transaction.id, "RAIT-2024-017", "Asha Rao", late_transaction.fine_amount)

    assert payment.payment_status is PaymentStatus.PENDING
    assert payment.upi_id == "raitlibrary@axisbank"
    assert payment.payment_method == "UPI"
    assert payment.amount == 25
    assert payment.utr_number is None
    assert payment.summary() == {
        "_id": payment.id,
        "amount": 25.0,
        "upiId": "raitlibrary@axisbank",
        "status": "pending",
    }

    stored = lib.get_payment(payment.id)
    assert stored.transaction_id == late_transaction.id
    assert stored.student_name == "Asha Rao"


def test_create_payment_unknown_transaction(lib):
    with pytest.raises(NotFoundError, match="Transaction not found"):
        lib.create_payment("missing", "S1", "Someone", 10)


def test_create_payment_requires_student_and_amount(lib, late_transaction):
    with pytest.raises(ValidationError):
        lib.create_payment(late_transaction.id, "", "Asha Rao", 25)
    with pytest.raises(ValidationError, match="Amount is required"):
        lib.create_payment(late_transaction.id, "S1", "Asha Rao", None)
    with pytest.raises(ValidationError, match="Amount must be a number"):
        lib.create_payment(late_transaction.id, "S1", "Asha Rao", "twenty")


def test_create_payment_does_not_check_amount_against_fine(lib, late_transaction):
    payment = lib.create_payment(late_transaction.id, "S1", "Asha Rao", 1)

    assert payment.amount == 1
    assert late_transaction.fine_amount == 25


def test_verify_payment_with_utr(lib, late_transaction, clock):
    payment = lib.create_payment(late_transaction.id, "S1", "Asha Rao", 25)
    clock.advance(minutes=5)

    verified = lib.verify_payment(payment.id, "AXIS123456789")

    assert verified.payment_status is PaymentStatus.COMPLETED
    assert verified.utr_number == "AXIS123456789"
    assert verified.payment_date == clock.now

    transaction = lib.get_transaction(late_transaction.id)
    assert transaction.fine_paid is True
    assert transaction.fine_paid_date == clock.now


def test_verify_payment_generates_utr_when_missing(lib, late_transaction, clock):
    payment = lib.create_payment(late_transaction.id, "S1", "Asha Rao", 25)

    verified = lib.verify_payment(payment.id)

    assert verified.utr_number == f"UTR{int(clock.now.timestamp() * 1000)}"
    assert lib.get_payment(payment.id).utr_number == verified.utr_number


def test_verify_marks_fine_paid_even_when_amount_falls_short(lib, late_transaction):
    payment = lib.create_payment(late_transaction.id, "S1", "Asha Rao", 1)

    lib.verify_payment(payment.id, "UTR-SHORT")

    transaction = lib.get_transaction(late_transaction.id)
    assert transaction.fine_amount == 25
    assert transaction.fine_paid is True


def test_verify_unknown_payment(lib):
    with pytest.raises(NotFoundError, match="Payment not found"):
        lib.verify_payment("missing")
