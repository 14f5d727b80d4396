"""
Shelfwise lending core.

Exports key modules for convenient imports.
"""

from .domain import (
    Tier,
    AccessLevel,
    BookStatus,
    BookFormat,
    BookKind,
    TransactionType,
    NotificationKind,
    Book,
    Member,
    Transaction,
    Notification,
    Admin,
    ActivityEntry,
)

from .outcomes import LendingError, Outcome, ValidationError
from .clock import SystemClock, FixedClock
from .config import Settings, settings
from .notifications import NotificationCenter

from .repositories import (
    BookRepo,
    MemberRepo,
    TransactionLedger,
    ActivityLog,
)

from .services import (
    MemberService,
    CatalogService,
    LendingCoordinator,
    DueNotice,
)

from .api import LibrarySystem
from .seed import seed_demo_data

__all__ = [
    # domain
    "Tier",
    "BookStatus",
    "BookFormat",
    "BookKind",
    "TransactionType",
    "NotificationKind",
    "Book",
    "Member",
    "Transaction",
    "Notification",
    "AccessLevel",
    "Admin",
    "ActivityEntry",
    # outcomes
    "LendingError",
    "Outcome",
    "ValidationError",
    # infrastructure
    "SystemClock",
    "FixedClock",
    "Settings",
    "settings",
    "NotificationCenter",
    # repos
    "BookRepo",
    "MemberRepo",
    "TransactionLedger",
    "ActivityLog",
    # services
    "MemberService",
    "CatalogService",
    "LendingCoordinator",
    "DueNotice",
    # api
    "LibrarySystem",
    # seed
    "seed_demo_data",
]
