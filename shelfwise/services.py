from __future__ import annotations
from datetime import timedelta
from threading import RLock
from typing import List, NamedTuple, Optional
import logging

from .clock import SystemClock
from .config import Settings
from .domain import (
    Admin,
    Book,
    BookStatus,
    Member,
    NotificationKind,
    Tier,
    Transaction,
    TransactionType,
)
from .notifications import NotificationSink
from .outcomes import LendingError, Outcome, ValidationError
from .repositories import ActivityLog, BookRepo, MemberRepo, TransactionLedger

logger = logging.getLogger(__name__)


def _actor(admin: Optional[Admin]) -> str:
    return admin.username if admin is not None else "system"


def _check_access(admin: Optional[Admin], what: str, accounts: bool = False) -> Optional[Outcome]:
    """None when the call may proceed. Calls made without an admin are internal."""
    if admin is None:
        return None
    allowed = admin.can_manage_accounts if accounts else admin.can_manage_catalog
    if allowed:
        return None
    logger.warning("[admin] %s (%s) may not %s", admin.username, admin.access_level.value, what)
    return Outcome.failure(
        LendingError.PERMISSION_DENIED,
        f"{admin.username} does not have permission to {what}.",
    )


class MemberService:
    def __init__(
        self,
        members: MemberRepo,
        clock: SystemClock,
        settings: Settings,
        lock: RLock,
        activity: Optional[ActivityLog] = None,
    ) -> None:
        self.members = members
        self.clock = clock
        self.settings = settings
        self.lock = lock
        self.activity = activity if activity is not None else ActivityLog()

    def register(
        self,
        username: str,
        password: str,
        full_name: str,
        email: str,
        tier: Tier = Tier.STANDARD,
    ) -> Outcome[Member]:
        with self.lock:
            if self.members.is_full():
                return Outcome.failure(
                    LendingError.CAPACITY_EXCEEDED, "Maximum number of members reached."
                )
            if self.members.exists(username):
                return Outcome.failure(
                    LendingError.USERNAME_TAKEN, f"Username {username!r} already exists."
                )
            try:
                member = Member.create(
                    username, password, full_name, email, tier, joined_at=self.clock.now()
                )
            except ValidationError as e:
                logger.info("[register] rejected %s: %s", username, e)
                return Outcome.failure(e.error, str(e))
            self.members.add(member)
            logger.info("[register] %s (%s)", username, tier.name)
            return Outcome.success(member)

    def authenticate(self, username: str, password: str) -> Outcome[Member]:
        with self.lock:
            member = self.members.get(username)
            if member is None:
                return Outcome.failure(LendingError.AUTHENTICATION_FAILED, "Invalid credentials.")
            if not member.active:
                return Outcome.failure(
                    LendingError.INACTIVE_ACCOUNT,
                    "Account is deactivated. Please contact an administrator.",
                )
            if member.authenticate(
                username, password, self.settings.max_login_attempts, self.clock.now()
            ):
                return Outcome.success(member)
            remaining = self.settings.max_login_attempts - member.login_attempts
            if not member.active:
                return Outcome.failure(
                    LendingError.INACTIVE_ACCOUNT,
                    "Too many failed attempts. Account has been deactivated.",
                )
            return Outcome.failure(
                LendingError.AUTHENTICATION_FAILED,
                f"Invalid credentials. {remaining} attempt(s) remaining.",
            )

    def activate(self, username: str, admin: Optional[Admin] = None) -> Outcome[Member]:
        with self.lock:
            denied = _check_access(admin, "manage user accounts", accounts=True)
            if denied is not None:
                return denied
            member = self.members.get(username)
            if member is None:
                return Outcome.failure(LendingError.MEMBER_NOT_FOUND)
            member.activate()
            self.activity.record(_actor(admin), f"Activated user {username}", self.clock.now())
            logger.info("[admin] activated account %s", username)
            return Outcome.success(member)

    def update_password(self, username: str, new_password: str) -> Outcome[None]:
        with self.lock:
            member = self.members.get(username)
            if member is None:
                return Outcome.failure(LendingError.MEMBER_NOT_FOUND)
            updated = member.update_password(new_password)
            if updated:
                logger.info("[account] %s changed password", username)
            return updated

    def update_email(self, username: str, new_email: str) -> Outcome[None]:
        with self.lock:
            member = self.members.get(username)
            if member is None:
                return Outcome.failure(LendingError.MEMBER_NOT_FOUND)
            updated = member.update_email(new_email)
            if updated:
                logger.info("[account] %s changed email", username)
            return updated

    def add_to_wishlist(self, username: str, title: str) -> Outcome[bool]:
        """Succeeds with False when the title is blank or already listed."""
        with self.lock:
            member = self.members.get(username)
            if member is None:
                return Outcome.failure(LendingError.MEMBER_NOT_FOUND)
            return Outcome.success(member.add_to_wishlist(title))

    def upgrade(self, username: str, tier: Tier) -> Outcome[Member]:
        with self.lock:
            member = self.members.get(username)
            if member is None:
                return Outcome.failure(LendingError.MEMBER_NOT_FOUND)
            if len(member.borrowed) > self.settings.borrow_limit(tier):
                return Outcome.failure(
                    LendingError.BORROW_LIMIT_REACHED,
                    f"{username} holds more books than the {tier.name} limit allows.",
                )
            member.tier = tier
            logger.info("[admin] %s moved to tier %s", username, tier.name)
            return Outcome.success(member)

    def pay_balance(self, username: str) -> Outcome[int]:
        with self.lock:
            member = self.members.get(username)
            if member is None:
                return Outcome.failure(LendingError.MEMBER_NOT_FOUND)
            return Outcome.success(member.pay_balance())


class CatalogService:
    def __init__(
        self,
        books: BookRepo,
        members: MemberRepo,
        notifier: NotificationSink,
        clock: SystemClock,
        settings: Settings,
        lock: RLock,
        activity: Optional[ActivityLog] = None,
    ) -> None:
        self.books = books
        self.members = members
        self.notifier = notifier
        self.clock = clock
        self.settings = settings
        self.lock = lock
        self.activity = activity if activity is not None else ActivityLog()

    def add_book(self, book: Book, admin: Optional[Admin] = None) -> Outcome[int]:
        with self.lock:
            denied = _check_access(admin, "add books")
            if denied is not None:
                return denied
            if self.books.is_full():
                return Outcome.failure(
                    LendingError.CAPACITY_EXCEEDED, "Library has reached maximum capacity."
                )
            book_id = self.books.add(book)
            self.activity.record(_actor(admin), f"Added book ID {book_id}", self.clock.now())
            logger.info("[catalog] added %r as id=%d", book.title, book_id)

            # let members know about new arrivals in genres they follow
            for member in self.members.list_all():
                for genre in member.favorite_genres:
                    if book.has_tag(genre):
                        self.notifier.notify(
                            member.username,
                            f"New book added in your favorite genre ({genre}): {book.title}",
                            NotificationKind.NEW_BOOK_ARRIVAL,
                        )
                        break
            return Outcome.success(book_id)

    def remove_book(self, book_id: int, admin: Optional[Admin] = None) -> Outcome[Book]:
        with self.lock:
            denied = _check_access(admin, "remove books")
            if denied is not None:
                return denied
            book = self.books.get(book_id)
            if book is None:
                return Outcome.failure(LendingError.BOOK_NOT_FOUND, f"No book with ID {book_id}.")
            if book.status == BookStatus.BORROWED or book.has_reservations:
                return Outcome.failure(
                    LendingError.BOOK_IN_USE,
                    "Book is borrowed or reserved and cannot be removed.",
                )
            self.books.remove(book_id)
            self.activity.record(_actor(admin), f"Removed book ID {book_id}", self.clock.now())
            logger.info("[catalog] removed id=%d", book_id)
            return Outcome.success(book)

    def set_status(
        self, book_id: int, status: BookStatus, admin: Optional[Admin] = None
    ) -> Outcome[Book]:
        """Administrative override for the non-lending states."""
        with self.lock:
            denied = _check_access(admin, "update book status")
            if denied is not None:
                return denied
            book = self.books.get(book_id)
            if book is None:
                return Outcome.failure(LendingError.BOOK_NOT_FOUND, f"No book with ID {book_id}.")
            if status in (BookStatus.BORROWED, BookStatus.RESERVED):
                return Outcome.failure(
                    LendingError.INVALID_STATUS_CHANGE,
                    f"{status.value} is only reachable through lending.",
                )
            if book.status == BookStatus.BORROWED or book.has_reservations:
                return Outcome.failure(
                    LendingError.BOOK_IN_USE,
                    "Book is borrowed or reserved; status cannot be overridden.",
                )
            book.update_status(status)
            self.activity.record(
                _actor(admin), f"Updated status for book ID {book_id} to {status.value}", self.clock.now()
            )
            logger.info("[admin] book id=%d status set to %s", book_id, status.value)
            return Outcome.success(book)

    def add_review(self, username: str, book_id: int, text: str, rating: int) -> Outcome:
        with self.lock:
            if self.members.get(username) is None:
                return Outcome.failure(LendingError.MEMBER_NOT_FOUND)
            book = self.books.get(book_id)
            if book is None:
                return Outcome.failure(LendingError.BOOK_NOT_FOUND, f"No book with ID {book_id}.")
            return book.add_review(
                username, text, rating, self.clock.now(), self.settings.max_review_length
            )


class DueNotice(NamedTuple):
    username: str
    book_id: int
    kind: NotificationKind
    days_remaining: int


class LendingCoordinator:
    """
    Sole mutation path for lending. Every operation validates the member, the
    book and the ledger first and only then touches state, so a failed call
    leaves everything as it was.
    """

    def __init__(
        self,
        members: MemberRepo,
        books: BookRepo,
        ledger: TransactionLedger,
        notifier: NotificationSink,
        clock: SystemClock,
        settings: Settings,
        lock: RLock,
        activity: Optional[ActivityLog] = None,
    ) -> None:
        self.members = members
        self.books = books
        self.ledger = ledger
        self.notifier = notifier
        self.clock = clock
        self.settings = settings
        self.lock = lock
        self.activity = activity if activity is not None else ActivityLog()

    def _active_member(self, username: str) -> Outcome[Member]:
        member = self.members.get(username)
        if member is None:
            return Outcome.failure(LendingError.MEMBER_NOT_FOUND, f"Unknown member {username!r}.")
        if not member.active:
            return Outcome.failure(
                LendingError.INACTIVE_ACCOUNT,
                "Your account is inactive. Please contact an administrator.",
            )
        return Outcome.success(member)

    def _book(self, book_id: int) -> Outcome[Book]:
        book = self.books.get(book_id)
        if book is None:
            return Outcome.failure(LendingError.BOOK_NOT_FOUND, f"No book with ID {book_id}.")
        return Outcome.success(book)

    def _notify_held_for(self, book: Book) -> Optional[str]:
        """Tell the head of the queue that a RESERVED book is waiting for them."""
        if book.status != BookStatus.RESERVED or not book.has_reservations:
            return None
        next_user = book.next_reserved_user
        self.notifier.notify(
            next_user,
            f"The book you reserved (ID: {book.book_id}) is now available.",
            NotificationKind.RESERVATION_AVAILABLE,
        )
        return next_user

    # ---- borrow
    def borrow(self, username: str, book_id: int) -> Outcome[str]:
        with self.lock:
            found = self._active_member(username)
            if not found:
                logger.info("[borrow] %s: %s", username, found.message)
                return Outcome.failure(found.error, found.message)
            member = found.value
            located = self._book(book_id)
            if not located:
                return Outcome.failure(located.error, located.message)
            book = located.value

            # head of the reservation queue may claim a reserved book
            claiming = False
            if book.status == BookStatus.RESERVED:
                if book.next_reserved_user != username:
                    if username in book.reserved_by:
                        position = book.reserved_by.index(username) + 1
                        message = (
                            "Book is reserved by another member. "
                            f"You are number {position} in the reservation queue."
                        )
                    else:
                        message = "Book is reserved by another member. You can join the reservation queue."
                    return Outcome.failure(LendingError.BOOK_UNAVAILABLE, message)
                claiming = True
            elif book.status != BookStatus.AVAILABLE:
                return Outcome.failure(
                    LendingError.BOOK_UNAVAILABLE,
                    f"Book is not available ({book.status.value}).",
                )

            limit = self.settings.borrow_limit(member.tier)
            if not member.can_borrow_more(limit):
                return Outcome.failure(
                    LendingError.BORROW_LIMIT_REACHED,
                    f"You have reached your borrowing limit ({limit} books).",
                )
            if member.holds(book_id):
                return Outcome.failure(
                    LendingError.DUPLICATE_BORROW, "You have already borrowed this book."
                )

            today = self.clock.today()
            now = self.clock.now()
            due = today + timedelta(days=self.settings.loan_days(member.tier))

            if claiming:
                book.cancel_reservation(username)
                member.remove_reservation(book_id)
            book.record_borrow(username, now)
            member.add_borrow(book_id, today, due)
            self.ledger.append(username, book_id, TransactionType.BORROW, now, due_date=due)
            logger.info("[borrow] %s took %r (id=%d), due %s", username, book.title, book_id, due)
            return Outcome.success(due.isoformat(), f"Due on {due.isoformat()}.")

    # ---- return
    def return_book(self, username: str, book_id: int) -> Outcome[int]:
        """Returns the late fee in cents."""
        with self.lock:
            found = self._active_member(username)
            if not found:
                return Outcome.failure(found.error, found.message)
            member = found.value
            located = self._book(book_id)
            if not located:
                return Outcome.failure(located.error, located.message)
            book = located.value
            if not member.holds(book_id):
                return Outcome.failure(
                    LendingError.NOT_BORROWED_BY_USER, "You haven't borrowed this book."
                )

            today = self.clock.today()
            now = self.clock.now()
            member.remove_borrow(book_id, today)
            book.record_return(username, now)

            fee = 0
            txn = self.ledger.open_borrow(username, book_id)
            if txn is not None:
                days_late = self.clock.days_between(txn.due_date, today)
                fee = max(0, days_late) * self.settings.late_fee_per_day_cents
                txn.mark_returned(today, fee)
            if fee:
                member.charge(fee)
                logger.info("[return] late fee assessed: $%.2f", fee / 100)
            self.ledger.append(
                username,
                book_id,
                TransactionType.RETURN,
                now,
                due_date=txn.due_date if txn else None,
                return_date=today,
                late_fee_cents=fee,
                returned=True,
            )

            if book.hold_for_reservations():
                next_user = self._notify_held_for(book)
                logger.info("[return] holding %r for %s", book.title, next_user)
            logger.info("[return] %s returned %r (id=%d)", username, book.title, book_id)
            return Outcome.success(fee)

    # ---- reservations
    def reserve(self, username: str, book_id: int) -> Outcome[Transaction]:
        with self.lock:
            found = self._active_member(username)
            if not found:
                return Outcome.failure(found.error, found.message)
            member = found.value
            located = self._book(book_id)
            if not located:
                return Outcome.failure(located.error, located.message)
            book = located.value
            if member.holds(book_id):
                return Outcome.failure(
                    LendingError.DUPLICATE_BORROW, "You already have this book."
                )

            reserved = book.reserve(username)
            if not reserved:
                logger.info("[reserve] %s on id=%d: %s", username, book_id, reserved.message)
                return Outcome.failure(reserved.error, reserved.message)
            now = self.clock.now()
            member.add_reservation(book_id, now.date())
            txn = self.ledger.append(username, book_id, TransactionType.RESERVE, now)
            logger.info("[reserve] %s queued for %r (position %d)", username, book.title, len(book.reserved_by))
            return Outcome.success(txn, reserved.message)

    def cancel_reservation(self, username: str, book_id: int) -> Outcome[Transaction]:
        with self.lock:
            found = self._active_member(username)
            if not found:
                return Outcome.failure(found.error, found.message)
            member = found.value
            located = self._book(book_id)
            if not located:
                return Outcome.failure(located.error, located.message)
            book = located.value
            return self._drop_reservation(member, book)

    def force_cancel_reservation(
        self, username: str, book_id: int, admin: Optional[Admin] = None
    ) -> Outcome[Transaction]:
        """
        Administrative cancel. Works for inactive members too, so a locked
        account cannot keep a book on hold.
        """
        with self.lock:
            denied = _check_access(admin, "cancel reservations")
            if denied is not None:
                return denied
            member = self.members.get(username)
            if member is None:
                return Outcome.failure(LendingError.MEMBER_NOT_FOUND, f"Unknown member {username!r}.")
            located = self._book(book_id)
            if not located:
                return Outcome.failure(located.error, located.message)
            book = located.value

            dropped = self._drop_reservation(member, book)
            if not dropped:
                return dropped
            self.notifier.notify(
                username,
                f"Your reservation for book ID {book_id} was cancelled by the library.",
                NotificationKind.GENERAL_ANNOUNCEMENT,
            )
            self.activity.record(
                _actor(admin),
                f"Cancelled reservation of {username} on book ID {book_id}",
                self.clock.now(),
            )
            logger.warning("[admin] reservation of %s on id=%d cancelled", username, book_id)
            return dropped

    def _drop_reservation(self, member: Member, book: Book) -> Outcome[Transaction]:
        was_first = book.next_reserved_user == member.username
        cancelled = book.cancel_reservation(member.username)
        if not cancelled:
            return Outcome.failure(cancelled.error, cancelled.message)
        member.remove_reservation(book.book_id)
        txn = self.ledger.append(
            member.username, book.book_id, TransactionType.CANCEL, self.clock.now()
        )
        logger.info("[cancel] %s left the queue for %r", member.username, book.title)
        if was_first:
            next_user = self._notify_held_for(book)
            if next_user:
                logger.info("[cancel] holding %r for %s", book.title, next_user)
        return Outcome.success(txn, cancelled.message)

    # ---- renewal
    def renew(self, username: str, book_id: int) -> Outcome[str]:
        with self.lock:
            found = self._active_member(username)
            if not found:
                return Outcome.failure(found.error, found.message)
            member = found.value
            txn = self.ledger.open_borrow(username, book_id)
            if txn is None:
                return Outcome.failure(
                    LendingError.NOT_RENEWABLE, "No open loan to renew for this book."
                )
            due = txn.extend(self.settings.renewal_days)
            member.set_due_date(book_id, due)
            self.ledger.append(
                username, book_id, TransactionType.RENEW, self.clock.now(), due_date=due
            )
            logger.info("[renew] %s extended id=%d to %s", username, book_id, due)
            return Outcome.success(due.isoformat(), f"New due date {due.isoformat()}.")

    # ---- due-date sweep
    def sweep_due_dates(self) -> List[DueNotice]:
        """Send due-tomorrow reminders and overdue notices for open loans."""
        with self.lock:
            today = self.clock.today()
            notices: List[DueNotice] = []
            for txn in self.ledger.open_borrows():
                remaining = self.clock.days_between(today, txn.due_date)
                if remaining == 1:
                    kind = NotificationKind.DUE_DATE_REMINDER
                    message = f"Your borrowed book (ID: {txn.book_id}) is due tomorrow."
                elif remaining < 0:
                    kind = NotificationKind.OVERDUE_NOTICE
                    message = (
                        f"Your borrowed book (ID: {txn.book_id}) is overdue by {-remaining} days."
                    )
                else:
                    continue
                self.notifier.notify(txn.username, message, kind)
                notices.append(DueNotice(txn.username, txn.book_id, kind, remaining))
            return notices

    def overdue_loans(self) -> List[Transaction]:
        with self.lock:
            today = self.clock.today()
            return [
                t
                for t in self.ledger.open_borrows()
                if self.clock.days_between(t.due_date, today) > 0
            ]

    def open_loan(self, username: str, book_id: int) -> Optional[Transaction]:
        with self.lock:
            return self.ledger.open_borrow(username, book_id)
