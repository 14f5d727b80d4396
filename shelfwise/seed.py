from __future__ import annotations
import logging

from .api import LibrarySystem
from .domain import Book, BookFormat, BookKind, Tier

logger = logging.getLogger(__name__)


def seed_demo_data(sys: LibrarySystem) -> None:
    # members
    sys.register_member("alice", "Alice@123", "Alice Reader", "alice@example.com")
    sys.register_member("bob", "Bob#2024x", "Bob Borrower", "bob@example.com", tier=Tier.PREMIUM)
    sys.register_member("carol", "Carol$789", "Carol Faculty", "carol@example.com", tier=Tier.FACULTY)
    sys.add_favorite_genre("alice", "fantasy")

    # books
    dune = sys.add_book(
        Book(
            "Dune",
            "Frank Herbert",
            "9780441172719",
            kind=BookKind.FICTION,
            attributes={"subgenre": "Science Fiction", "pages": 412},
            publication_date="1965-08-01",
            tags=["sci-fi", "classic"],
        )
    )
    hobbit = sys.add_book(
        Book(
            "The Hobbit",
            "J.R.R. Tolkien",
            "9780547928227",
            kind=BookKind.FANTASY,
            attributes={"subgenre": "High Fantasy", "pages": 310, "world": "Middle-earth"},
            publication_date="1937-09-21",
            tags=["fantasy", "classic"],
        )
    )
    clean_code = sys.add_book(
        Book(
            "Clean Code",
            "Robert C. Martin",
            "9780132350884",
            kind=BookKind.EBOOK,
            attributes={"word_count": 128000, "format": BookFormat.EBOOK_EPUB},
            publication_date="2008-08-01",
            tags=["software", "craft"],
        )
    )
    physics = sys.add_book(
        Book(
            "University Physics",
            "Hugh D. Young, Roger A. Freedman",
            "9780135159552",
            kind=BookKind.TEXTBOOK,
            attributes={"field": "Physics", "pages": 1600, "course_code": "PHY101"},
            publication_date="2019-01-01",
        )
    )

    # loans and reservations
    sys.borrow("alice", dune.value)
    sys.borrow("alice", clean_code.value)
    sys.borrow("bob", hobbit.value)
    sys.reserve("alice", hobbit.value)  # Alice wants The Hobbit next
    sys.reserve("carol", physics.value)

    logger.info("[seed] members: %s", [m.username for m in sys.list_members()])
    logger.info("[seed] books: %s", [b.title for b in sys.list_books()])
