import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from library_backend.config import configure_logging, settings
from library_backend.library import Library, LibraryError, return_message

logger = logging.getLogger(__name__)


library = Library()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # A previous shutdown closed the library; reopen it for this run
    if not library.db.is_connected():
        library.db.connect()
    logger.info(f"{settings.app_name} {settings.app_version} starting, database {library.db.status_label()}")
    try:
        yield
    finally:
        library.close()

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.debug(f"Incoming request: {request.method} {request.url.path}")
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response


# --- Error envelope ---
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    return _error(exc.status_code, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())[1:]) or "body"
        problems.append(f"{field}: {err.get('msg')}")
    return _error(400, "; ".join(problems) or "Invalid request")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(500, str(exc))


# --- Models ---
class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BookCreateModel(_CamelModel):
    title: str | None = None
    author: str | None = None
    isbn: str | None = None
    genre: str | None = None


class BorrowRequest(_CamelModel):
    book_id: str = Field(alias="bookId")
    student_id: str | None = Field(default=None, alias="studentId")
    student_name: str | None = Field(default=None, alias="studentName")
    student_department: str | None = Field(default=None, alias="studentDepartment")
    days: int | None = Field(default=None, description="Loan period in days")


class PaymentCreateRequest(_CamelModel):
    transaction_id: str = Field(alias="transactionId")
    student_id: str | None = Field(default=None, alias="studentId")
    student_name: str | None = Field(default=None, alias="studentName")
    amount: float | None = None


class PaymentVerifyRequest(_CamelModel):
    payment_id: str = Field(alias="paymentId")
    utr_number: str | None = Field(default=None, alias="utrNumber")


# --- Diagnostics ---
def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@app.get("/api/test")
def api_test():
    return {
        "message": "Library API is working!",
        "status": "success",
        "database": library.db.status_label(),
        "timestamp": _timestamp(),
    }


@app.get("/api/health")
def health():
    db_health = library.db.health()
    return {
        "status": "healthy",
        "database": db_health["database"],
        "databaseName": db_health["databaseName"],
        "timestamp": db_health["timestamp"],
    }


# --- Books ---
@app.get("/api/books")
def list_books():
    books = library.list_books()
    return {"success": True, "count": len(books), "books": [b.to_dict() for b in books]}


@app.post("/api/books", status_code=201)
def add_book(payload: BookCreateModel):
    book = library.add_book(payload.title, payload.author, isbn=payload.isbn, genre=payload.genre)
    return {"success": True, "message": "Book added successfully!", "book": book.to_dict()}


# --- Transactions ---
@app.get("/api/transactions")
def list_transactions():
    return {"success": True, "transactions": [t.to_dict() for t in library.list_transactions()]}


@app.post("/api/transactions/borrow")
def borrow_book(payload: BorrowRequest):
    transaction = library.borrow_book(
        payload.book_id,
        payload.student_id,
        payload.student_name,
        payload.student_department,
        days=payload.days,
    )
    return {"success": True, "message": "Book issued successfully", "transaction": transaction.to_dict()}


@app.post("/api/transactions/return/{transaction_id}")
def return_book(transaction_id: str):
    transaction = library.return_book(transaction_id)
    return {"success": True, "message": return_message(transaction), "transaction": transaction.to_dict()}


@app.put("/api/transactions/{transaction_id}/pay-fine")
def pay_fine(transaction_id: str):
    transaction = library.pay_fine(transaction_id)
    return {
        "success": True,
        "message": "Fine payment recorded successfully!",
        "transaction": transaction.to_dict(),
    }


# --- Payments ---
@app.post("/api/payments/create-upi")
def create_upi_payment(payload: PaymentCreateRequest):
    payment = library.create_payment(
        payload.transaction_id, payload.student_id, payload.student_name, payload.amount
    )
    return {"success": True, "payment": payment.summary()}


@app.post("/api/payments/verify")
def verify_payment(payload: PaymentVerifyRequest):
    payment = library.verify_payment(payload.payment_id, payload.utr_number)
    return {"success": True, "message": "Payment verified successfully!", "payment": payment.to_dict()}
