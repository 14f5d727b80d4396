from __future__ import annotations
from datetime import date
import logging

from shelfwise import FixedClock, LibrarySystem, seed_demo_data, settings


def demo_flow() -> None:
    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")
    clock = FixedClock(date(2024, 1, 1))
    sys = LibrarySystem(clock=clock)
    seed_demo_data(sys)

    # Report inventory
    print("\n[demo] inventory:")
    for book in sys.list_books():
        print(f"  - #{book.book_id} {book.title} [{book.book_type}, {book.genre}]: {book.status.value}")

    # Bob returns The Hobbit late -> fee, and Alice is next in line
    hobbit = next(b for b in sys.list_books() if b.title == "The Hobbit")
    clock.set(date(2024, 1, 26))
    fee = sys.return_book("bob", hobbit.book_id)
    print(f"\n[demo] bob returned The Hobbit, late fee: ${fee.value / 100:.2f}")
    print("[demo] hobbit status:", sys.get_book(hobbit.book_id).status.value)
    for note in sys.notifications_for("alice"):
        print(f"[demo] alice <- {note.kind.value}: {note.message}")

    # Carol tries to take a book Alice has claimed
    attempt = sys.borrow("carol", hobbit.book_id)
    print("\n[demo] carol tries The Hobbit:", "SUCCESS" if attempt else f"DENIED ({attempt.error.value})")
    print("[demo] alice claims it, due", sys.borrow("alice", hobbit.book_id).value)

    # Due-date sweep
    print("\n[demo] due-date sweep:")
    for notice in sys.check_due_dates():
        print(f"  - {notice.username} book={notice.book_id} {notice.kind.value} ({notice.days_remaining}d)")

    # Pay fines
    paid = sys.pay_balance("bob")
    if paid:
        print(f"\n[demo] bob paid fines: ${paid:.2f}")

    print("\n[demo] overdue loans:", [(t.username, t.book_id, days) for t, days in sys.report_overdue()])


if __name__ == "__main__":
    demo_flow()
