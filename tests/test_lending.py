from datetime import date

from shelfwise import AccessLevel, Admin, BookStatus, LendingError, NotificationKind, TransactionType


def assert_consistent(lib):
    """Book, member and ledger views must agree after every operation."""
    members = {m.username: m for m in lib.list_members()}
    books = {b.book_id: b for b in lib.list_books()}
    open_loans = [
        t for m in members for t in lib.transactions_for(m) if t.is_open
    ]
    for book in books.values():
        holders = [t for t in open_loans if t.book_id == book.book_id]
        if book.status == BookStatus.BORROWED:
            assert len(holders) == 1
        else:
            assert holders == []
        assert (book.status == BookStatus.RESERVED) == (
            bool(book.reserved_by) and book.status != BookStatus.BORROWED
        )
        for username in book.reserved_by:
            assert book.book_id in members[username].reserved_books
    for member in members.values():
        assert len(member.borrowed_books) <= lib.settings.borrow_limit(member.tier)
        assert len(set(member.borrowed_books)) == len(member.borrowed_books)
        mine = {t.book_id: t for t in open_loans if t.username == member.username}
        assert set(member.borrowed_books) == set(mine)
        for book_id, due in zip(member.borrowed_books, member.due_dates):
            assert mine[book_id].due_date == due
        for book_id in member.reserved_books:
            assert member.username in books[book_id].reserved_by


# ---- borrow

def test_borrow_sets_due_date_from_tier(lib, members, add_books):
    a, b = add_books(2)
    assert lib.borrow("alice", a).value == "2024-01-15"
    assert lib.borrow("pat", b).value == "2024-01-22"

    book = lib.get_book(a)
    assert book.status == BookStatus.BORROWED
    assert book.borrow_count == 1
    alice = lib.get_member("alice")
    assert alice.borrowed_books == [a]
    assert alice.borrow_dates == [date(2024, 1, 1)]
    assert alice.due_dates == [date(2024, 1, 15)]
    assert lib.open_loan("alice", a).due_date == date(2024, 1, 15)
    assert_consistent(lib)


def test_standard_member_limited_to_five_books(lib, members, add_books):
    ids = add_books(6)
    for book_id in ids[:5]:
        assert lib.borrow("alice", book_id).ok
    sixth = lib.borrow("alice", ids[5])
    assert sixth.error == LendingError.BORROW_LIMIT_REACHED
    assert lib.get_book(ids[5]).status == BookStatus.AVAILABLE
    assert len(lib.get_member("alice").borrowed_books) == 5
    assert_consistent(lib)


def test_guest_limited_to_two_books(lib, members, add_books):
    ids = add_books(3)
    assert lib.borrow("gus", ids[0]).ok
    assert lib.borrow("gus", ids[1]).ok
    assert lib.borrow("gus", ids[2]).error == LendingError.BORROW_LIMIT_REACHED


def test_borrow_precondition_order(lib, members, add_books, clock):
    (book_id,) = add_books(1)
    assert lib.borrow("nobody", book_id).error == LendingError.MEMBER_NOT_FOUND
    assert lib.borrow("alice", 999).error == LendingError.BOOK_NOT_FOUND

    assert lib.borrow("alice", book_id).ok
    # already borrowed: the book check comes before the duplicate check
    assert lib.borrow("alice", book_id).error == LendingError.BOOK_UNAVAILABLE
    assert lib.borrow("bob", book_id).error == LendingError.BOOK_UNAVAILABLE


def test_inactive_member_cannot_borrow(lib, members, add_books):
    (book_id,) = add_books(1)
    for _ in range(3):
        lib.login("bob", "wrong")
    outcome = lib.borrow("bob", 999)
    assert outcome.error == LendingError.INACTIVE_ACCOUNT
    assert lib.borrow("bob", book_id).error == LendingError.INACTIVE_ACCOUNT


def test_administrative_states_block_borrowing(lib, members, add_books):
    (book_id,) = add_books(1)
    assert lib.set_book_status(book_id, BookStatus.UNDER_MAINTENANCE).ok
    outcome = lib.borrow("alice", book_id)
    assert outcome.error == LendingError.BOOK_UNAVAILABLE
    assert "Under Maintenance" in outcome.message


# ---- return

def test_borrow_then_return_restores_availability(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.borrow("alice", book_id)
    outcome = lib.return_book("alice", book_id)
    assert outcome.ok
    assert outcome.value == 0
    assert lib.get_book(book_id).status == BookStatus.AVAILABLE
    assert lib.get_member("alice").borrowed_books == []
    assert lib.open_loan("alice", book_id) is None

    types = [t.type for t in lib.transactions_for("alice")]
    assert types == [TransactionType.BORROW, TransactionType.RETURN]
    borrow = lib.transactions_for("alice")[0]
    assert borrow.returned
    assert borrow.return_date == date(2024, 1, 1)
    assert_consistent(lib)


def test_late_return_charges_per_day(lib, members, add_books, clock):
    (book_id,) = add_books(1)
    assert lib.borrow("alice", book_id).value == "2024-01-15"
    clock.set(date(2024, 1, 20))
    outcome = lib.return_book("alice", book_id)
    assert outcome.value == 5 * lib.settings.late_fee_per_day_cents

    borrow = lib.transactions_for("alice")[0]
    assert borrow.late_fee_cents == 250
    assert borrow.late_fee == 2.5
    assert lib.get_member("alice").balance_cents == 250
    assert lib.pay_balance("alice") == 2.5
    assert lib.get_member("alice").balance_cents == 0


def test_return_on_due_date_is_free(lib, members, add_books, clock):
    (book_id,) = add_books(1)
    lib.borrow("alice", book_id)
    clock.set(date(2024, 1, 15))
    assert lib.return_book("alice", book_id).value == 0
    assert lib.get_member("alice").balance_cents == 0


def test_return_requires_holding_the_book(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.borrow("alice", book_id)
    assert lib.return_book("bob", book_id).error == LendingError.NOT_BORROWED_BY_USER
    assert lib.return_book("alice", 999).error == LendingError.BOOK_NOT_FOUND
    assert lib.get_book(book_id).status == BookStatus.BORROWED


def test_return_keeps_book_reserved_and_notifies_first_in_queue(lib, members, add_books):
    ids = add_books(7)
    book_id = ids[6]
    assert book_id == 7
    assert lib.borrow("bob", book_id).ok
    assert lib.reserve("alice", book_id).ok
    assert lib.reserve("pat", book_id).ok
    assert lib.get_book(book_id).status == BookStatus.BORROWED

    assert lib.return_book("bob", book_id).ok
    book = lib.get_book(book_id)
    assert book.status == BookStatus.RESERVED
    assert book.reserved_by == ["alice", "pat"]

    notes = lib.notifications_for("alice")
    assert [n.kind for n in notes] == [NotificationKind.RESERVATION_AVAILABLE]
    assert "(ID: 7)" in notes[0].message
    assert lib.notifications_for("pat") == []
    assert_consistent(lib)


# ---- reserve / cancel

def test_reserve_mirrors_into_member(lib, members, add_books):
    (book_id,) = add_books(1)
    outcome = lib.reserve("alice", book_id)
    assert outcome.ok
    assert outcome.value.type == TransactionType.RESERVE
    assert lib.get_book(book_id).status == BookStatus.RESERVED
    assert lib.get_member("alice").reserved_books == [book_id]

    again = lib.reserve("alice", book_id)
    assert again.error == LendingError.ALREADY_RESERVED_BY_CALLER
    assert lib.get_member("alice").reserved_books == [book_id]
    assert_consistent(lib)


def test_cancel_is_symmetric_and_second_cancel_fails(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.reserve("alice", book_id)
    cancelled = lib.cancel_reservation("alice", book_id)
    assert cancelled.ok
    assert cancelled.value.type == TransactionType.CANCEL
    assert lib.get_book(book_id).status == BookStatus.AVAILABLE
    assert lib.get_member("alice").reserved_books == []

    again = lib.cancel_reservation("alice", book_id)
    assert again.error == LendingError.NO_SUCH_RESERVATION
    assert lib.get_book(book_id).status == BookStatus.AVAILABLE
    assert_consistent(lib)


def test_reserve_rejected_when_lost(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.set_book_status(book_id, BookStatus.LOST)
    assert lib.reserve("alice", book_id).error == LendingError.NOT_AVAILABLE
    assert lib.get_member("alice").reserved_books == []


def test_cannot_reserve_a_book_you_hold(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.borrow("alice", book_id)
    assert lib.reserve("alice", book_id).error == LendingError.DUPLICATE_BORROW


def test_only_first_in_queue_may_borrow_reserved_book(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.reserve("alice", book_id)
    lib.reserve("bob", book_id)

    denied = lib.borrow("bob", book_id)
    assert denied.error == LendingError.BOOK_UNAVAILABLE
    assert "reserved" in denied.message

    assert lib.borrow("alice", book_id).ok
    book = lib.get_book(book_id)
    assert book.status == BookStatus.BORROWED
    assert book.reserved_by == ["bob"]
    assert lib.get_member("alice").reserved_books == []
    assert_consistent(lib)

    lib.return_book("alice", book_id)
    assert lib.get_book(book_id).status == BookStatus.RESERVED
    assert lib.borrow("bob", book_id).ok
    assert lib.get_book(book_id).reserved_by == []
    assert_consistent(lib)


def test_denied_borrower_is_told_their_queue_position(lib, members, add_books):
    (book_id,) = add_books(1)
    for username in ("alice", "bob", "pat"):
        lib.reserve(username, book_id)

    queued = lib.borrow("pat", book_id)
    assert queued.error == LendingError.BOOK_UNAVAILABLE
    assert "number 3 in the reservation queue" in queued.message

    outsider = lib.borrow("gus", book_id)
    assert outsider.error == LendingError.BOOK_UNAVAILABLE
    assert "join the reservation queue" in outsider.message


def test_cancel_by_first_in_queue_passes_hold_to_next(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.borrow("bob", book_id)
    lib.reserve("alice", book_id)
    lib.reserve("pat", book_id)
    lib.return_book("bob", book_id)

    assert lib.cancel_reservation("alice", book_id).ok
    book = lib.get_book(book_id)
    assert book.status == BookStatus.RESERVED
    assert book.reserved_by == ["pat"]
    notes = lib.notifications_for("pat")
    assert [n.kind for n in notes] == [NotificationKind.RESERVATION_AVAILABLE]
    assert f"(ID: {book_id})" in notes[0].message

    assert lib.borrow("pat", book_id).ok
    assert_consistent(lib)


def test_cancel_further_back_in_queue_sends_nothing(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.borrow("bob", book_id)
    lib.reserve("alice", book_id)
    lib.reserve("pat", book_id)
    lib.return_book("bob", book_id)

    assert lib.cancel_reservation("pat", book_id).ok
    assert lib.notifications_for("pat") == []
    assert len(lib.notifications_for("alice")) == 1
    assert lib.get_book(book_id).reserved_by == ["alice"]


def test_cancel_while_borrowed_sends_nothing(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.borrow("bob", book_id)
    lib.reserve("alice", book_id)
    lib.reserve("pat", book_id)

    lib.cancel_reservation("alice", book_id)
    assert lib.notifications_for("pat") == []
    assert lib.get_book(book_id).status == BookStatus.BORROWED


def test_admin_can_clear_hold_of_locked_out_member(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.reserve("alice", book_id)
    for _ in range(3):
        lib.login("alice", "nope")
    assert not lib.get_member("alice").active

    # the book is stuck until an admin steps in
    assert lib.borrow("bob", book_id).error == LendingError.BOOK_UNAVAILABLE
    assert lib.cancel_reservation("alice", book_id).error == LendingError.INACTIVE_ACCOUNT
    assert lib.remove_book(book_id).error == LendingError.BOOK_IN_USE
    assert lib.set_book_status(book_id, BookStatus.LOST).error == LendingError.BOOK_IN_USE

    admin = Admin("root", AccessLevel.FULL)
    cleared = lib.force_cancel_reservation("alice", book_id, admin=admin)
    assert cleared.ok
    assert cleared.value.type == TransactionType.CANCEL
    assert lib.get_book(book_id).status == BookStatus.AVAILABLE
    assert lib.get_member("alice").reserved_books == []
    assert lib.transactions_for("alice")[-1].type == TransactionType.CANCEL
    notes = lib.notifications_for("alice")
    assert [n.kind for n in notes] == [NotificationKind.GENERAL_ANNOUNCEMENT]
    assert lib.activity_log()[-1].actor == "root"
    assert "alice" in lib.activity_log()[-1].action

    assert lib.borrow("bob", book_id).ok
    assert_consistent(lib)


def test_force_cancel_hands_hold_to_next_in_queue(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.reserve("alice", book_id)
    lib.reserve("bob", book_id)

    assert lib.force_cancel_reservation("alice", book_id).ok
    assert lib.get_book(book_id).status == BookStatus.RESERVED
    assert [n.kind for n in lib.notifications_for("bob")] == [
        NotificationKind.RESERVATION_AVAILABLE
    ]
    assert_consistent(lib)


def test_force_cancel_failures(lib, members, add_books):
    (book_id,) = add_books(1)
    lib.reserve("alice", book_id)

    support = Admin("sam", AccessLevel.SUPPORT)
    denied = lib.force_cancel_reservation("alice", book_id, admin=support)
    assert denied.error == LendingError.PERMISSION_DENIED
    assert lib.force_cancel_reservation("ghost", book_id).error == LendingError.MEMBER_NOT_FOUND
    assert lib.force_cancel_reservation("bob", book_id).error == LendingError.NO_SUCH_RESERVATION
    assert lib.force_cancel_reservation("alice", 999).error == LendingError.BOOK_NOT_FOUND
    assert lib.get_book(book_id).reserved_by == ["alice"]
    assert lib.notifications_for("alice") == []
    assert [e.action for e in lib.activity_log()] == [f"Added book ID {book_id}"]


# ---- renew

def test_renew_extends_from_current_due_date(lib, members, add_books, clock):
    (book_id,) = add_books(1)
    lib.borrow("alice", book_id)
    clock.set(date(2024, 1, 10))
    first = lib.renew("alice", book_id)
    assert first.value == "2024-01-29"
    second = lib.renew("alice", book_id)
    assert second.value == "2024-02-12"

    assert lib.open_loan("alice", book_id).due_date == date(2024, 2, 12)
    assert lib.get_member("alice").due_dates == [date(2024, 2, 12)]
    assert lib.get_book(book_id).status == BookStatus.BORROWED
    assert_consistent(lib)


def test_renew_requires_open_loan(lib, members, add_books):
    (book_id,) = add_books(1)
    assert lib.renew("alice", book_id).error == LendingError.NOT_RENEWABLE
    lib.borrow("alice", book_id)
    lib.return_book("alice", book_id)
    assert lib.renew("alice", book_id).error == LendingError.NOT_RENEWABLE


def test_renewal_reduces_late_fee(lib, members, add_books, clock):
    (book_id,) = add_books(1)
    lib.borrow("alice", book_id)
    lib.renew("alice", book_id)
    clock.set(date(2024, 1, 20))
    assert lib.return_book("alice", book_id).value == 0


# ---- due-date sweep

def test_sweep_sends_reminders_and_overdue_notices(lib, members, add_books, clock):
    a, b, c = add_books(3)
    lib.borrow("alice", a)  # due 2024-01-15
    clock.set(date(2024, 1, 7))
    lib.borrow("bob", b)  # due 2024-01-21
    lib.borrow("pat", c)  # due 2024-01-28

    clock.set(date(2024, 1, 20))
    notices = lib.check_due_dates()
    assert {(n.username, n.kind, n.days_remaining) for n in notices} == {
        ("alice", NotificationKind.OVERDUE_NOTICE, -5),
        ("bob", NotificationKind.DUE_DATE_REMINDER, 1),
    }
    assert "overdue by 5 days" in lib.notifications_for("alice")[0].message
    assert "due tomorrow" in lib.notifications_for("bob")[0].message
    assert lib.notifications_for("pat") == []

    # read-only over the ledger
    assert lib.open_loan("alice", a).due_date == date(2024, 1, 15)
    assert lib.get_member("alice").balance_cents == 0


def test_sweep_skips_returned_loans(lib, members, add_books, clock):
    (book_id,) = add_books(1)
    lib.borrow("alice", book_id)
    lib.return_book("alice", book_id)
    clock.set(date(2024, 3, 1))
    assert lib.check_due_dates() == []


def test_overdue_report(lib, members, add_books, clock):
    a, b = add_books(2)
    lib.borrow("alice", a)
    lib.borrow("pat", b)
    clock.set(date(2024, 1, 18))
    report = lib.report_overdue()
    assert [(t.username, t.book_id, days) for t, days in report] == [("alice", a, 3)]

    report[0][0].due_date = date(2024, 3, 1)
    lib.open_loan("alice", a).due_date = date(2024, 3, 1)
    assert lib.open_loan("alice", a).due_date == date(2024, 1, 15)


# ---- encapsulation

def test_snapshots_cannot_mutate_library_state(lib, members, add_books):
    (book_id,) = add_books(1)
    snapshot = lib.get_book(book_id)
    snapshot.status = BookStatus.LOST
    snapshot.reserved_by.append("mallory")
    member = lib.get_member("alice")
    member.borrowed.clear()
    member.active = False

    assert lib.get_book(book_id).status == BookStatus.AVAILABLE
    assert lib.get_book(book_id).reserved_by == []
    assert lib.borrow("alice", book_id).ok


def test_mixed_workload_stays_consistent(lib, members, add_books, clock):
    ids = add_books(4)
    lib.borrow("alice", ids[0])
    lib.reserve("bob", ids[0])
    lib.reserve("pat", ids[1])
    lib.borrow("bob", ids[2])
    lib.reserve("alice", ids[2])
    lib.cancel_reservation("pat", ids[1])
    clock.advance(20)
    lib.renew("bob", ids[2])
    lib.return_book("alice", ids[0])
    lib.borrow("bob", ids[0])
    lib.return_book("bob", ids[2])
    lib.borrow("alice", ids[2])
    assert_consistent(lib)
    assert lib.report_status_counts() == {
        BookStatus.BORROWED: 2,
        BookStatus.AVAILABLE: 2,
    }
