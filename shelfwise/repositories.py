from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Optional

from .domain import ActivityEntry, Book, Member, Transaction, TransactionType


class BookRepo:
    def __init__(self, capacity: int) -> None:
        self._books: Dict[int, Book] = {}
        self._next_id = 1
        self.capacity = capacity

    def is_full(self) -> bool:
        return len(self._books) >= self.capacity

    def add(self, book: Book) -> int:
        book.book_id = self._next_id
        self._next_id += 1
        self._books[book.book_id] = book
        return book.book_id

    def get(self, book_id: int) -> Optional[Book]:
        return self._books.get(book_id)

    def remove(self, book_id: int) -> Optional[Book]:
        return self._books.pop(book_id, None)

    def list_all(self) -> List[Book]:
        return list(self._books.values())


class MemberRepo:
    def __init__(self, capacity: int) -> None:
        self._members: Dict[str, Member] = {}
        self.capacity = capacity

    def is_full(self) -> bool:
        return len(self._members) >= self.capacity

    def add(self, member: Member) -> None:
        self._members[member.username] = member

    def get(self, username: str) -> Optional[Member]:
        return self._members.get(username)

    def exists(self, username: str) -> bool:
        return username in self._members

    def list_all(self) -> List[Member]:
        return list(self._members.values())


class TransactionLedger:
    """Append-only log; borrow entries are closed in place on return."""

    def __init__(self) -> None:
        self._entries: List[Transaction] = []
        self._next_id = 1

    def append(
        self,
        username: str,
        book_id: int,
        type: TransactionType,
        created_at: datetime,
        **fields,
    ) -> Transaction:
        t = Transaction(
            transaction_id=self._next_id,
            username=username,
            book_id=book_id,
            type=type,
            created_at=created_at,
            **fields,
        )
        self._next_id += 1
        self._entries.append(t)
        return t

    def open_borrow(self, username: str, book_id: int) -> Optional[Transaction]:
        for t in self._entries:
            if t.is_open and t.username == username and t.book_id == book_id:
                return t
        return None

    def open_borrows(self) -> List[Transaction]:
        return [t for t in self._entries if t.is_open]

    def list_by_member(self, username: str) -> List[Transaction]:
        return [t for t in self._entries if t.username == username]


class ActivityLog:
    """Append-only record of administrative actions."""

    def __init__(self) -> None:
        self._entries: List[ActivityEntry] = []

    def record(self, actor: str, action: str, at: datetime) -> ActivityEntry:
        entry = ActivityEntry(actor=actor, action=action, at=at)
        self._entries.append(entry)
        return entry

    def recent(self, limit: int = 20) -> List[ActivityEntry]:
        return self._entries[-limit:] if limit > 0 else []

    def list_by_actor(self, actor: str) -> List[ActivityEntry]:
        return [e for e in self._entries if e.actor == actor]
