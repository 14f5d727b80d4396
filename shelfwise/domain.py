from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional
import hashlib
import logging

from .outcomes import LendingError, Outcome, ValidationError

logger = logging.getLogger(__name__)


class Tier(Enum):
    STANDARD = auto()
    PREMIUM = auto()
    STUDENT = auto()
    FACULTY = auto()
    STAFF = auto()
    GUEST = auto()


class BookStatus(Enum):
    AVAILABLE = "Available"
    BORROWED = "Borrowed"
    RESERVED = "Reserved"
    LOST = "Lost"
    DAMAGED = "Damaged"
    UNDER_MAINTENANCE = "Under Maintenance"


class BookFormat(Enum):
    HARDCOVER = "Hardcover"
    PAPERBACK = "Paperback"
    EBOOK_PDF = "E-book (PDF)"
    EBOOK_EPUB = "E-book (EPUB)"
    EBOOK_MOBI = "E-book (MOBI)"
    AUDIOBOOK = "Audiobook"


class BookKind(Enum):
    FICTION = auto()
    NON_FICTION = auto()
    EBOOK = auto()
    PRINTED = auto()
    FANTASY = auto()
    TEXTBOOK = auto()


class TransactionType(Enum):
    BORROW = "borrow"
    RETURN = "return"
    RESERVE = "reserve"
    CANCEL = "cancel"
    RENEW = "renew"


class AccessLevel(Enum):
    FULL = "full"
    LIMITED = "limited"
    SUPPORT = "support"


class NotificationKind(Enum):
    DUE_DATE_REMINDER = "REMINDER"
    OVERDUE_NOTICE = "OVERDUE"
    RESERVATION_AVAILABLE = "RESERVATION"
    NEW_BOOK_ARRIVAL = "NEW BOOK"
    GENERAL_ANNOUNCEMENT = "ANNOUNCEMENT"


# ---- validation helpers

def normalize_isbn(raw: str) -> str:
    return "".join(ch for ch in (raw or "") if ch not in " -").upper()


def is_valid_isbn(isbn: str) -> bool:
    if len(isbn) == 13:
        return isbn.isdigit()
    if len(isbn) == 10:
        return isbn[:9].isdigit() and (isbn[9].isdigit() or isbn[9] == "X")
    return False


def is_strong_password(password: str) -> bool:
    if len(password) < 8:
        return False
    return (
        any(c.isupper() for c in password)
        and any(c.islower() for c in password)
        and any(c.isdigit() for c in password)
        and any(not c.isalnum() and not c.isspace() for c in password)
    )


def is_valid_email(email: str) -> bool:
    at = email.find("@")
    if at == -1:
        return False
    dot = email.find(".", at)
    return dot != -1 and dot > at + 1 and dot < len(email) - 1


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


# ---- book kinds

@dataclass(frozen=True)
class KindProfile:
    label: str
    genre: Callable[[Dict[str, Any]], str]
    reading_minutes: Callable[[Dict[str, Any]], int]
    default_format: Optional[BookFormat]
    default_location: str


def _pages(attrs: Dict[str, Any]) -> int:
    return int(attrs.get("pages", 0))


KIND_PROFILES: Dict[BookKind, KindProfile] = {
    BookKind.FICTION: KindProfile(
        "Fiction",
        lambda a: f"Fiction/{a.get('subgenre', 'General')}",
        lambda a: _pages(a) * 2,
        BookFormat.PAPERBACK,
        "Fiction",
    ),
    BookKind.NON_FICTION: KindProfile(
        "Non-Fiction",
        lambda a: f"Non-Fiction/{a.get('subject', 'General')}",
        lambda a: _pages(a) * 2,
        BookFormat.PAPERBACK,
        "Non-Fiction",
    ),
    BookKind.EBOOK: KindProfile(
        "E-Book",
        lambda a: "Digital",
        # 200 words per minute
        lambda a: int(a.get("word_count", 0)) // 200 + 1,
        BookFormat.EBOOK_PDF,
        "Digital",
    ),
    BookKind.PRINTED: KindProfile(
        "Printed Book",
        lambda a: "Physical",
        lambda a: _pages(a) * 2,
        BookFormat.PAPERBACK,
        "Stacks",
    ),
    BookKind.FANTASY: KindProfile(
        "Fantasy Novel",
        lambda a: f"Fantasy/{a.get('subgenre', 'General')}",
        lambda a: _pages(a) * 3,
        BookFormat.PAPERBACK,
        "Fantasy",
    ),
    BookKind.TEXTBOOK: KindProfile(
        "Science Textbook",
        lambda a: f"Education/{a.get('field', 'General')}",
        lambda a: _pages(a) * 5,
        BookFormat.HARDCOVER,
        "Textbooks",
    ),
}


@dataclass
class Review:
    username: str
    text: str
    rating: int
    created_at: datetime


@dataclass
class Book:
    """
    A catalog entry. ``reserved_by`` is the reservation queue, oldest first.

    Status changes go through the lending coordinator; callers outside the
    library only ever see copies.
    """

    title: str
    author: str
    isbn: str
    kind: BookKind = BookKind.PRINTED
    attributes: Dict[str, Any] = field(default_factory=dict)
    publication_date: str = ""
    publisher: str = "Unknown"
    language: str = "English"
    description: str = ""
    location: str = ""
    edition: str = "1st"
    year: int = 0
    tags: List[str] = field(default_factory=list)
    book_id: Optional[int] = None
    status: BookStatus = BookStatus.AVAILABLE
    borrow_count: int = 0
    reserved_by: List[str] = field(default_factory=list)
    borrow_history: List[str] = field(default_factory=list)
    reviews: List[Review] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.isbn = normalize_isbn(self.isbn)
        if not is_valid_isbn(self.isbn):
            raise ValidationError(
                LendingError.INVALID_ISBN, "ISBN must be 10 or 13 digits"
            )
        if not self.year:
            try:
                self.year = int(self.publication_date[:4])
            except ValueError:
                self.year = 1900
        if not self.location:
            self.location = self.profile.default_location
        self.tags = [t.strip() for t in self.tags if t.strip()]

    # ---- kind table lookups
    @property
    def profile(self) -> KindProfile:
        return KIND_PROFILES[self.kind]

    @property
    def book_type(self) -> str:
        return self.profile.label

    @property
    def genre(self) -> str:
        return self.profile.genre(self.attributes)

    @property
    def format(self) -> Optional[BookFormat]:
        return self.attributes.get("format") or self.profile.default_format

    def reading_time(self) -> int:
        """Estimated reading time in minutes."""
        return self.profile.reading_minutes(self.attributes)

    # ---- reservation queue
    @property
    def has_reservations(self) -> bool:
        return bool(self.reserved_by)

    @property
    def next_reserved_user(self) -> Optional[str]:
        return self.reserved_by[0] if self.reserved_by else None

    def reserve(self, username: str) -> Outcome[None]:
        if username in self.reserved_by:
            return Outcome.failure(
                LendingError.ALREADY_RESERVED_BY_CALLER,
                "You have already reserved this book.",
            )
        if self.status not in (
            BookStatus.AVAILABLE,
            BookStatus.RESERVED,
            BookStatus.BORROWED,
        ):
            return Outcome.failure(
                LendingError.NOT_AVAILABLE,
                f"Book is not available for reservation ({self.status.value}).",
            )
        self.reserved_by.append(username)
        if len(self.reserved_by) == 1 and self.status == BookStatus.AVAILABLE:
            self.update_status(BookStatus.RESERVED)
        return Outcome.success(message=f"Book reserved for {username}.")

    def cancel_reservation(self, username: str) -> Outcome[None]:
        if username not in self.reserved_by:
            return Outcome.failure(
                LendingError.NO_SUCH_RESERVATION, "No reservation found for this user."
            )
        self.reserved_by.remove(username)
        if not self.reserved_by and self.status == BookStatus.RESERVED:
            self.update_status(BookStatus.AVAILABLE)
        return Outcome.success(message=f"Reservation cancelled for {username}.")

    def hold_for_reservations(self) -> bool:
        """Switch a freshly returned book to RESERVED if anyone is queued."""
        if self.reserved_by and self.status == BookStatus.AVAILABLE:
            self.update_status(BookStatus.RESERVED)
            return True
        return False

    # ---- circulation
    def record_borrow(self, username: str, when: datetime) -> None:
        self.borrow_count += 1
        self.borrow_history.append(f"{username} borrowed on {when:%Y-%m-%d %H:%M:%S}")
        self.update_status(BookStatus.BORROWED)

    def record_return(self, username: str, when: datetime) -> None:
        self.borrow_history.append(f"{username} returned on {when:%Y-%m-%d %H:%M:%S}")
        self.update_status(BookStatus.AVAILABLE)

    def update_status(self, new_status: BookStatus) -> None:
        logger.debug("[book] %s (id=%s) status -> %s", self.title, self.book_id, new_status.value)
        self.status = new_status

    # ---- tags and reviews
    def add_tag(self, tag: str) -> None:
        tag = tag.strip()
        if tag:
            self.tags.append(tag)

    def has_tag(self, tag: str) -> bool:
        wanted = tag.strip().lower()
        return any(t.lower() == wanted for t in self.tags)

    def add_review(
        self, username: str, text: str, rating: int, when: datetime, max_length: int = 500
    ) -> Outcome[Review]:
        if len(text) > max_length:
            return Outcome.failure(
                LendingError.INVALID_REVIEW,
                f"Review exceeds maximum length of {max_length} characters.",
            )
        if rating < 1 or rating > 5:
            return Outcome.failure(
                LendingError.INVALID_REVIEW, "Rating must be between 1 and 5."
            )
        review = Review(username=username, text=text, rating=rating, created_at=when)
        self.reviews.append(review)
        return Outcome.success(review)

    @property
    def average_rating(self) -> float:
        if not self.reviews:
            return 0.0
        return sum(r.rating for r in self.reviews) / len(self.reviews)


@dataclass
class BorrowedItem:
    book_id: int
    borrowed_on: date
    due_on: date


@dataclass
class Member:
    username: str
    password_hash: str
    full_name: str
    email: str
    tier: Tier = Tier.STANDARD
    joined_at: Optional[datetime] = None
    active: bool = True
    login_attempts: int = 0
    last_login: Optional[datetime] = None
    balance_cents: int = 0
    total_books_borrowed: int = 0
    borrowed: List[BorrowedItem] = field(default_factory=list)
    reserved_books: List[int] = field(default_factory=list)
    reading_history: List[str] = field(default_factory=list)
    favorite_genres: List[str] = field(default_factory=list)
    wishlist: List[str] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        username: str,
        password: str,
        full_name: str,
        email: str,
        tier: Tier = Tier.STANDARD,
        joined_at: Optional[datetime] = None,
    ) -> "Member":
        if not is_strong_password(password):
            raise ValidationError(
                LendingError.INVALID_PASSWORD,
                "Password must be at least 8 characters with upper, lower, digit and special characters.",
            )
        if not is_valid_email(email):
            raise ValidationError(LendingError.INVALID_EMAIL, "Invalid email format.")
        return cls(
            username=username,
            password_hash=hash_password(password),
            full_name=full_name,
            email=email,
            tier=tier,
            joined_at=joined_at,
        )

    # index-aligned views over ``borrowed``
    @property
    def borrowed_books(self) -> List[int]:
        return [b.book_id for b in self.borrowed]

    @property
    def borrow_dates(self) -> List[date]:
        return [b.borrowed_on for b in self.borrowed]

    @property
    def due_dates(self) -> List[date]:
        return [b.due_on for b in self.borrowed]

    def holds(self, book_id: int) -> bool:
        return any(b.book_id == book_id for b in self.borrowed)

    def due_date_for(self, book_id: int) -> Optional[date]:
        for b in self.borrowed:
            if b.book_id == book_id:
                return b.due_on
        return None

    def can_borrow_more(self, limit: int) -> bool:
        return len(self.borrowed) < limit

    def add_borrow(self, book_id: int, borrowed_on: date, due_on: date) -> None:
        self.borrowed.append(BorrowedItem(book_id, borrowed_on, due_on))
        self.total_books_borrowed += 1
        self.reading_history.append(f"Borrowed book ID {book_id} on {borrowed_on}")

    def remove_borrow(self, book_id: int, on: date) -> Optional[BorrowedItem]:
        for i, b in enumerate(self.borrowed):
            if b.book_id == book_id:
                self.reading_history.append(f"Returned book ID {book_id} on {on}")
                return self.borrowed.pop(i)
        return None

    def set_due_date(self, book_id: int, due_on: date) -> None:
        for b in self.borrowed:
            if b.book_id == book_id:
                b.due_on = due_on
                return

    def add_reservation(self, book_id: int, on: date) -> None:
        if book_id not in self.reserved_books:
            self.reserved_books.append(book_id)
            self.reading_history.append(f"Reserved book ID {book_id} on {on}")

    def remove_reservation(self, book_id: int) -> None:
        if book_id in self.reserved_books:
            self.reserved_books.remove(book_id)

    # ---- account
    def authenticate(
        self, username: str, password: str, max_attempts: int, when: datetime
    ) -> bool:
        if not self.active:
            return False
        if username == self.username and hash_password(password) == self.password_hash:
            self.login_attempts = 0
            self.last_login = when
            return True
        self.login_attempts += 1
        if self.login_attempts >= max_attempts:
            self.active = False
            logger.warning("[auth] account %s locked after %d failed attempts", self.username, self.login_attempts)
        return False

    def activate(self) -> None:
        self.active = True
        self.login_attempts = 0

    def charge(self, cents: int) -> None:
        self.balance_cents += cents

    def pay_balance(self) -> int:
        paid, self.balance_cents = self.balance_cents, 0
        return paid

    def update_password(self, new_password: str) -> Outcome[None]:
        if not is_strong_password(new_password):
            return Outcome.failure(
                LendingError.INVALID_PASSWORD,
                "Password must be at least 8 characters with upper, lower, digit and special characters.",
            )
        self.password_hash = hash_password(new_password)
        return Outcome.success(message="Password updated successfully.")

    def update_email(self, new_email: str) -> Outcome[None]:
        if not is_valid_email(new_email):
            return Outcome.failure(LendingError.INVALID_EMAIL, "Invalid email format.")
        self.email = new_email
        return Outcome.success(message="Email updated successfully.")

    def add_favorite_genre(self, genre: str) -> None:
        genre = genre.strip().lower()
        if genre and genre not in self.favorite_genres:
            self.favorite_genres.append(genre)

    def add_to_wishlist(self, title: str) -> bool:
        title = title.strip()
        if not title or title in self.wishlist:
            return False
        self.wishlist.append(title)
        return True


@dataclass
class Transaction:
    transaction_id: int
    username: str
    book_id: int
    type: TransactionType
    created_at: datetime
    due_date: Optional[date] = None
    return_date: Optional[date] = None
    late_fee_cents: int = 0
    returned: bool = False

    @property
    def is_open(self) -> bool:
        return self.type == TransactionType.BORROW and not self.returned

    @property
    def late_fee(self) -> float:
        return self.late_fee_cents / 100.0

    def mark_returned(self, on: date, late_fee_cents: int = 0) -> None:
        self.return_date = on
        self.returned = True
        self.late_fee_cents = late_fee_cents

    def extend(self, additional_days: int) -> date:
        self.due_date = self.due_date + timedelta(days=additional_days)
        return self.due_date


@dataclass
class Notification:
    notification_id: int
    recipient: str
    message: str
    kind: NotificationKind
    created_at: datetime
    read: bool = False


@dataclass(frozen=True)
class Admin:
    username: str
    access_level: AccessLevel = AccessLevel.LIMITED

    @property
    def can_manage_catalog(self) -> bool:
        return self.access_level in (AccessLevel.FULL, AccessLevel.LIMITED)

    @property
    def can_manage_accounts(self) -> bool:
        return self.access_level in (AccessLevel.FULL, AccessLevel.SUPPORT)


@dataclass
class ActivityEntry:
    actor: str
    action: str
    at: datetime
