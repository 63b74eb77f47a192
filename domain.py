from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


@dataclass
class ShiftInput:
    """Raw values of one shift as entered in the form (already validated)."""
    work_date: date
    morning_cash: int
    evening_cash: int
    total_orders: int
    cash_orders: int
    online_tips: int = 0

    @property
    def online_orders(self) -> int:
        return self.total_orders - self.cash_orders


@dataclass
class EarningsRecord:
    """Represents a single day of earnings for one account."""
    account_id: str
    work_date: date
    morning_cash: int
    evening_cash: int
    total_orders: int
    cash_orders: int
    online_tips: int = 0
    cash_earnings: int = 0
    online_earnings: int = 0
    bonus_earnings: int = 0
    total_earnings: int = 0
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_with_tips(self) -> int:
        """Total shown to the user: derived earnings plus digital tips."""
        return self.total_earnings + self.online_tips


@dataclass
class Summary:
    total_online_earnings: int = 0
    total_bonus_earnings: int = 0
    total_cash_earnings: int = 0
    total_online_tips: int = 0
    grand_total_earnings: int = 0


@dataclass
class Account:
    id: str
    email: str
    created_at: datetime | None = None


@dataclass
class AuthSession:
    account: Account
    access_token: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionStatus(str, Enum):
    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


@dataclass
class SessionState:
    status: SessionStatus = SessionStatus.UNKNOWN
    session: AuthSession | None = field(default=None)

    @property
    def account(self) -> Account | None:
        return self.session.account if self.session else None

    @classmethod
    def from_session(cls, session: AuthSession | None) -> "SessionState":
        if session is None:
            return cls(status=SessionStatus.ANONYMOUS)
        return cls(status=SessionStatus.AUTHENTICATED, session=session)
