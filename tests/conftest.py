from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Generator

import pytest

from auth import AuthProvider
from domain import ShiftInput
from repository import EarningsRepository
from services import EarningsCalculator


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def calculator() -> EarningsCalculator:
    return EarningsCalculator()


@pytest.fixture
def repo() -> Generator[EarningsRepository, None, None]:
    repository = EarningsRepository("sqlite://")
    try:
        yield repository
    finally:
        repository.engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def auth(repo: EarningsRepository, clock: FakeClock) -> AuthProvider:
    return AuthProvider(repo.engine, session_ttl=timedelta(hours=1), iterations=1_000, clock=clock)


@pytest.fixture
def account_id(auth: AuthProvider) -> str:
    return auth.sign_up("driver@example.com", "s3cret-pass").id


@pytest.fixture
def other_account_id(auth: AuthProvider) -> str:
    return auth.sign_up("other@example.com", "s3cret-pass").id


def make_shift(d: date, *, morning=200, evening=850, total=25, cash=10, tips=0) -> ShiftInput:
    return ShiftInput(
        work_date=d,
        morning_cash=morning,
        evening_cash=evening,
        total_orders=total,
        cash_orders=cash,
        online_tips=tips,
    )
