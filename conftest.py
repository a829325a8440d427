import os
from datetime import datetime, timedelta, timezone

import pytest

from library_backend.library import Library


class FakeClock:
    """Deterministic clock; tests move it forward explicitly."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def lib(tmp_path, request, clock):
    # A separate database file for every test
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    lib = Library(db_file=db_file, clock=clock, fine_per_day=5, default_loan_days=14)
    yield lib
    try:
        lib.close()
    except Exception:
        pass
    if os.path.exists(db_file):
        os.remove(db_file)


@pytest.fixture
def book(lib):
    return lib.add_book("The Pragmatic Programmer", "Andrew Hunt", isbn="9780201616224", genre="Software")


@pytest.fixture
def student():
    return {"student_id": "RAIT-2024-017", "student_name": "Asha Rao", "student_department": "Computer Engineering"}
