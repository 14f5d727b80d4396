from __future__ import annotations
from collections import Counter
from copy import deepcopy
from threading import RLock
from typing import Dict, List, Optional, Tuple

from .clock import SystemClock
from .config import Settings, settings as default_settings
from .domain import (
    ActivityEntry,
    Admin,
    Book,
    BookStatus,
    Member,
    Notification,
    Tier,
    Transaction,
)
from .notifications import NotificationCenter, NotificationSink
from .outcomes import Outcome
from .repositories import ActivityLog, BookRepo, MemberRepo, TransactionLedger
from .services import CatalogService, DueNotice, LendingCoordinator, MemberService


class LibrarySystem:
    """
    A simple facade that wires repos + services and offers a compact API.

    Everything handed back to callers is a copy taken under the library lock,
    so entities can only change through the services. Admin operations take
    an optional ``admin``; without one they run as "system".
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[SystemClock] = None,
        notifier: Optional[NotificationSink] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.clock = clock or SystemClock()
        if isinstance(notifier, NotificationCenter):
            self.notifications = notifier
        else:
            self.notifications = NotificationCenter(now=self.clock.now)
        self.notifier = notifier or self.notifications
        self.lock = RLock()

        # repos
        self.members = MemberRepo(self.settings.max_members)
        self.books = BookRepo(self.settings.max_books)
        self.ledger = TransactionLedger()
        self.activity = ActivityLog()

        # services
        self.member_service = MemberService(
            self.members, self.clock, self.settings, self.lock, self.activity
        )
        self.catalog = CatalogService(
            self.books,
            self.members,
            self.notifier,
            self.clock,
            self.settings,
            self.lock,
            self.activity,
        )
        self.lending = LendingCoordinator(
            self.members,
            self.books,
            self.ledger,
            self.notifier,
            self.clock,
            self.settings,
            self.lock,
            self.activity,
        )

    def _snapshot(self, outcome: Outcome) -> Outcome:
        if outcome.ok and outcome.value is not None:
            with self.lock:
                return Outcome(value=deepcopy(outcome.value), message=outcome.message)
        return outcome

    # ---- member module
    def register_member(
        self,
        username: str,
        password: str,
        full_name: str,
        email: str,
        tier: Tier = Tier.STANDARD,
    ) -> Outcome[Member]:
        return self._snapshot(
            self.member_service.register(username, password, full_name, email, tier)
        )

    def login(self, username: str, password: str) -> Outcome[Member]:
        return self._snapshot(self.member_service.authenticate(username, password))

    def activate_member(self, username: str, admin: Optional[Admin] = None) -> Outcome[Member]:
        return self._snapshot(self.member_service.activate(username, admin))

    def upgrade_member(self, username: str, tier: Tier) -> Outcome[Member]:
        return self._snapshot(self.member_service.upgrade(username, tier))

    def update_password(self, username: str, new_password: str) -> Outcome[None]:
        return self.member_service.update_password(username, new_password)

    def update_email(self, username: str, new_email: str) -> Outcome[None]:
        return self.member_service.update_email(username, new_email)

    def add_favorite_genre(self, username: str, genre: str) -> bool:
        with self.lock:
            member = self.members.get(username)
            if member is None:
                return False
            member.add_favorite_genre(genre)
            return True

    def add_to_wishlist(self, username: str, title: str) -> bool:
        return bool(self.member_service.add_to_wishlist(username, title).value)

    def pay_balance(self, username: str) -> float:
        paid = self.member_service.pay_balance(username)
        return (paid.value or 0) / 100.0

    # ---- catalog module
    def add_book(self, book: Book, admin: Optional[Admin] = None) -> Outcome[int]:
        return self.catalog.add_book(deepcopy(book), admin)

    def remove_book(self, book_id: int, admin: Optional[Admin] = None) -> Outcome[Book]:
        return self.catalog.remove_book(book_id, admin)

    def set_book_status(
        self, book_id: int, status: BookStatus, admin: Optional[Admin] = None
    ) -> Outcome[Book]:
        return self._snapshot(self.catalog.set_status(book_id, status, admin))

    def add_review(self, username: str, book_id: int, text: str, rating: int) -> Outcome:
        return self._snapshot(self.catalog.add_review(username, book_id, text, rating))

    # ---- lending module
    def borrow(self, username: str, book_id: int) -> Outcome[str]:
        return self.lending.borrow(username, book_id)

    def return_book(self, username: str, book_id: int) -> Outcome[int]:
        return self.lending.return_book(username, book_id)

    def reserve(self, username: str, book_id: int) -> Outcome[Transaction]:
        return self._snapshot(self.lending.reserve(username, book_id))

    def cancel_reservation(self, username: str, book_id: int) -> Outcome[Transaction]:
        return self._snapshot(self.lending.cancel_reservation(username, book_id))

    def force_cancel_reservation(
        self, username: str, book_id: int, admin: Optional[Admin] = None
    ) -> Outcome[Transaction]:
        return self._snapshot(self.lending.force_cancel_reservation(username, book_id, admin))

    def renew(self, username: str, book_id: int) -> Outcome[str]:
        return self.lending.renew(username, book_id)

    def check_due_dates(self) -> List[DueNotice]:
        return self.lending.sweep_due_dates()

    # ---- queries
    def get_book(self, book_id: int) -> Optional[Book]:
        with self.lock:
            return deepcopy(self.books.get(book_id))

    def get_member(self, username: str) -> Optional[Member]:
        with self.lock:
            return deepcopy(self.members.get(username))

    def list_books(self) -> List[Book]:
        with self.lock:
            return deepcopy(self.books.list_all())

    def list_members(self) -> List[Member]:
        with self.lock:
            return deepcopy(self.members.list_all())

    def transactions_for(self, username: str) -> List[Transaction]:
        with self.lock:
            return deepcopy(self.ledger.list_by_member(username))

    def open_loan(self, username: str, book_id: int) -> Optional[Transaction]:
        with self.lock:
            return deepcopy(self.lending.open_loan(username, book_id))

    def notifications_for(self, username: str, unread_only: bool = False) -> List[Notification]:
        with self.lock:
            if unread_only:
                return deepcopy(self.notifications.unread_for(username))
            return deepcopy(self.notifications.all_for(username))

    def mark_notification_read(self, notification_id: int) -> bool:
        with self.lock:
            return self.notifications.mark_as_read(notification_id)

    def activity_log(self, limit: int = 20) -> List[ActivityEntry]:
        """Most recent administrative actions, oldest first."""
        with self.lock:
            return deepcopy(self.activity.recent(limit))

    # ---- reporting
    def report_overdue(self) -> List[Tuple[Transaction, int]]:
        """
        Returns tuples of (open borrow, days overdue)
        """
        with self.lock:
            today = self.clock.today()
            return [
                (t, self.clock.days_between(t.due_date, today))
                for t in deepcopy(self.lending.overdue_loans())
            ]

    def report_status_counts(self) -> Dict[BookStatus, int]:
        with self.lock:
            return dict(Counter(b.status for b in self.books.list_all()))

    def report_most_borrowed(self, limit: int = 10) -> List[Tuple[int, str, int]]:
        """
        Returns tuples of (book_id, title, borrow_count), most borrowed first
        """
        with self.lock:
            ranked = sorted(self.books.list_all(), key=lambda b: b.borrow_count, reverse=True)
            return [(b.book_id, b.title, b.borrow_count) for b in ranked[:limit]]
