import pytest

from library_backend.library import Library, StorageUnavailableError, ValidationError


def test_add_list_and_find(lib):
    assert lib.list_books() == []

    book = lib.add_book("Ulysses", "James Joyce", isbn="9780199535675")

    found = lib.find_book(book.id)
    assert found is not None
    assert found.title == "Ulysses"
    assert len(lib.list_books()) == 1


def test_add_book_trims_and_applies_defaults(lib, clock):
    book = lib.add_book("  Dune  ", "  Frank Herbert ")

    assert book.title == "Dune"
    assert book.author == "Frank Herbert"
    assert book.isbn is None
    assert book.genre == "General"
    assert book.available == 1
    assert book.added_date == clock.now


@pytest.mark.parametrize("title, author", [
    (None, "Author"),
    ("Title", None),
    ("   ", "Author"),
    ("Title", ""),
])
def test_add_book_requires_title_and_author(lib, title, author):
    with pytest.raises(ValidationError, match="Title and author are required"):
        lib.add_book(title, author)

    assert lib.list_books() == []


def test_add_duplicate_isbn(lib):
    lib.add_book("Test Book", "Test Author", isbn="1234567890")

    with pytest.raises(ValidationError, match="Book with ISBN 1234567890 already exists."):
        lib.add_book("Another Book", "Another Author", isbn=" 1234567890 ")

    assert len(lib.list_books()) == 1


def test_books_without_isbn_never_collide(lib):
    lib.add_book("First", "Author")
    lib.add_book("Second", "Author", isbn="")
    lib.add_book("Third", "Author", isbn="   ")

    books = lib.list_books()
    assert len(books) == 3
    assert all(b.isbn is None for b in books)


def test_list_books_keeps_insertion_order(lib):
    for title in ["Zebra", "Apple", "Mango"]:
        lib.add_book(title, "Author")

    assert [b.title for b in lib.list_books()] == ["Zebra", "Apple", "Mango"]


def test_persistence(tmp_path):
    db_file = str(tmp_path / "shared.db")
    lib = Library(db_file=db_file)
    book = lib.add_book("Sapiens", "Yuval Noah Harari", isbn="9780099590088")

    # New instance should read persisted data from SQLite
    lib2 = Library(db_file=db_file)
    assert len(lib2.list_books()) == 1
    assert lib2.find_book(book.id).title == "Sapiens"


def test_find_book_unknown_id(lib):
    assert lib.find_book("does-not-exist") is None


def test_catalog_requires_connected_storage(lib):
    lib.close()

    with pytest.raises(StorageUnavailableError):
        lib.list_books()
    with pytest.raises(StorageUnavailableError):
        lib.add_book("Title", "Author")
