from __future__ import annotations

import uuid
from datetime import datetime

from library_backend.utils.dates import parse_datetime, to_iso, utcnow
from library_backend.utils.validators import ISBNValidator, TextValidator

DEFAULT_GENRE = "General"


class Book:
    """A single book in the catalog, with its availability counter."""

    def __init__(self, title: str, author: str, isbn: str | None = None, genre: str | None = None,
                 available: int = 1, added_date: datetime | None = None, id: str | None = None) -> None:
        self.id = id or uuid.uuid4().hex
        self.title = TextValidator.clean(title)
        self.author = TextValidator.clean(author)
        self.isbn = ISBNValidator.normalize_isbn(isbn)
        self.genre = TextValidator.clean(genre) or DEFAULT_GENRE
        self.available = int(available)
        self.added_date = added_date or utcnow()

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        isbn = f" (ISBN: {self.isbn})" if self.isbn else ""
        return f"{self.title} by {self.author}{isbn}"

    @property
    def is_available(self) -> bool:
        return self.available > 0

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "genre": self.genre,
            "available": self.available,
            "addedDate": to_iso(self.added_date),
        }

    @staticmethod
    def from_row(row) -> "Book":
        data = dict(row)
        return Book(
            id=data["id"],
            title=data["title"],
            author=data["author"],
            isbn=data.get("isbn"),
            genre=data.get("genre"),
            available=data.get("available", 1),
            added_date=parse_datetime(data.get("added_date")),
        )
