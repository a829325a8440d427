"""Library Desk - circulation backend package

This package contains:
- HTTP API endpoints (api.py)
- Circulation workflow: catalog, borrow/return, fines, payments (library.py)
- CLI interface (main.py)
- Data models (book.py, transaction.py, payment.py)
- Storage layer (database.py)
"""

__version__ = "1.0.0"
