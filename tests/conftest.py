from datetime import date

import pytest

from shelfwise import Book, FixedClock, LibrarySystem, Settings, Tier


@pytest.fixture
def clock():
    return FixedClock(date(2024, 1, 1))


@pytest.fixture
def lib(clock):
    return LibrarySystem(settings=Settings(), clock=clock)


@pytest.fixture
def make_book():
    def _make(title="Test Book", isbn="9780000000001", **kwargs):
        return Book(title, "Test Author", isbn, **kwargs)

    return _make


@pytest.fixture
def add_books(lib, make_book):
    def _add(count, **kwargs):
        ids = []
        for i in range(count):
            outcome = lib.add_book(make_book(f"Book {i}", f"978000000{i:04d}", **kwargs))
            assert outcome.ok
            ids.append(outcome.value)
        return ids

    return _add


@pytest.fixture
def members(lib):
    lib.register_member("alice", "Alice@123", "Alice Reader", "alice@example.com")
    lib.register_member("bob", "Bob#2024x", "Bob Borrower", "bob@example.com")
    lib.register_member("pat", "Pat!9999x", "Pat Premium", "pat@example.com", tier=Tier.PREMIUM)
    lib.register_member("gus", "Gus%1234", "Gus Guest", "gus@example.com", tier=Tier.GUEST)
    return ["alice", "bob", "pat", "gus"]
