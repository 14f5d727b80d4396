import os
from dataclasses import dataclass
from typing import Dict

from dotenv import load_dotenv

from .domain import Tier

load_dotenv()

# Per-tier borrowing rules
BORROW_LIMITS: Dict[Tier, int] = {
    Tier.STANDARD: 5,
    Tier.PREMIUM: 10,
    Tier.STUDENT: 5,
    Tier.FACULTY: 10,
    Tier.STAFF: 8,
    Tier.GUEST: 2,
}

LOAN_DAYS: Dict[Tier, int] = {
    Tier.STANDARD: 14,
    Tier.PREMIUM: 21,
    Tier.STUDENT: 14,
    Tier.FACULTY: 14,
    Tier.STAFF: 14,
    Tier.GUEST: 14,
}


@dataclass
class Settings:
    # Library
    library_name: str = os.getenv("LIBRARY_NAME", "City Central Library")
    max_books: int = int(os.getenv("MAX_BOOKS", "10000"))
    max_members: int = int(os.getenv("MAX_MEMBERS", "1000"))

    # Lending
    late_fee_per_day_cents: int = int(os.getenv("LATE_FEE_PER_DAY_CENTS", "50"))
    renewal_days: int = int(os.getenv("RENEWAL_DAYS", "14"))

    # Accounts
    max_login_attempts: int = int(os.getenv("MAX_LOGIN_ATTEMPTS", "3"))

    # Reviews
    max_review_length: int = int(os.getenv("MAX_REVIEW_LENGTH", "500"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def __post_init__(self) -> None:
        if self.renewal_days <= 0:
            raise ValueError(f"RENEWAL_DAYS must be positive, got {self.renewal_days}")
        if self.late_fee_per_day_cents < 0:
            raise ValueError(
                f"LATE_FEE_PER_DAY_CENTS must not be negative, got {self.late_fee_per_day_cents}"
            )
        if self.max_login_attempts < 1:
            raise ValueError(
                f"MAX_LOGIN_ATTEMPTS must be at least 1, got {self.max_login_attempts}"
            )

    def borrow_limit(self, tier: Tier) -> int:
        return BORROW_LIMITS[tier]

    def loan_days(self, tier: Tier) -> int:
        return LOAN_DAYS[tier]


settings = Settings()
