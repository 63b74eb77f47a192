from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, List, Mapping

from domain import EarningsRecord, ShiftInput, Summary
from errors import ValidationError

INT_FIELDS = ("morning_cash", "evening_cash", "total_orders", "cash_orders", "online_tips")


@dataclass(frozen=True)
class EarningsBreakdown:
    cash_earnings: int
    online_earnings: int
    bonus_earnings: int
    total_earnings: int


class EarningsCalculator:
    """Business rules for turning shift counters into earnings."""
    def __init__(self, tier_threshold: int = 30, base_rate: int = 55,
                 high_rate: int = 75, bonus_rate: int = 20):
        self.tier_threshold = tier_threshold
        self.base_rate = base_rate
        self.high_rate = high_rate
        self.bonus_rate = bonus_rate

    def tier(self, orders: int) -> int:
        """Value of ``orders`` at the base rate up to the threshold, high rate beyond."""
        if orders <= self.tier_threshold:
            return orders * self.base_rate
        return self.tier_threshold * self.base_rate + (orders - self.tier_threshold) * self.high_rate

    def bonus(self, total_orders: int) -> int:
        """Flat bonus per order past the threshold, counted on the combined total."""
        return max(0, total_orders - self.tier_threshold) * self.bonus_rate

    def calculate(self, total_orders: int, cash_orders: int,
                  morning_cash: int, evening_cash: int) -> EarningsBreakdown:
        """Derives the four earnings figures.

        Inputs are not checked here (see ``validate_shift``); out-of-contract
        values still produce a result, and ``cash_earnings`` is negative when
        the drawer shrank by more than the expected cash.
        """
        expected_cash = self.tier(cash_orders)
        cash_diff = evening_cash - morning_cash
        cash_earnings = cash_diff + expected_cash
        online_earnings = self.tier(total_orders - cash_orders)
        bonus_earnings = self.bonus(total_orders)
        return EarningsBreakdown(
            cash_earnings=cash_earnings,
            online_earnings=online_earnings,
            bonus_earnings=bonus_earnings,
            total_earnings=cash_earnings + online_earnings + bonus_earnings,
        )

    def complete_record(self, shift: ShiftInput, account_id: str) -> EarningsRecord:
        """Builds a record for ``account_id`` with the derived fields filled in."""
        b = self.calculate(shift.total_orders, shift.cash_orders,
                           shift.morning_cash, shift.evening_cash)
        return EarningsRecord(
            account_id=account_id,
            work_date=shift.work_date,
            morning_cash=shift.morning_cash,
            evening_cash=shift.evening_cash,
            total_orders=shift.total_orders,
            cash_orders=shift.cash_orders,
            online_tips=shift.online_tips,
            cash_earnings=b.cash_earnings,
            online_earnings=b.online_earnings,
            bonus_earnings=b.bonus_earnings,
            total_earnings=b.total_earnings,
        )

    def summarize(self, records: Iterable[EarningsRecord]) -> Summary:
        """In-memory counterpart of ``EarningsRepository.summary``."""
        s = Summary()
        for r in records:
            s.total_online_earnings += r.online_earnings
            s.total_bonus_earnings += r.bonus_earnings
            s.total_cash_earnings += r.cash_earnings
            s.total_online_tips += r.online_tips
            s.grand_total_earnings += r.total_earnings + r.online_tips
        return s


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_shift(values: Mapping[str, Any], today: date | None = None) -> ShiftInput:
    """Checks raw form values and returns a ``ShiftInput``.

    Raises ``ValidationError`` with one message per failing field.
    """
    errors: dict[str, str] = {}
    today = today or date.today()

    work_date = values.get("work_date")
    if isinstance(work_date, datetime):
        work_date = work_date.date()
    if not isinstance(work_date, date):
        errors["work_date"] = "La fecha es obligatoria."
    elif work_date > today:
        errors["work_date"] = "La fecha no puede ser futura."

    parsed: dict[str, int] = {}
    for name in INT_FIELDS:
        raw = values.get(name, 0 if name == "online_tips" else None)
        n = _as_int(raw)
        if n is None:
            errors[name] = "Debe ser un número entero."
        elif n < 0:
            errors[name] = "El valor no puede ser negativo."
        else:
            parsed[name] = n

    if "cash_orders" in parsed and "total_orders" in parsed:
        if parsed["cash_orders"] > parsed["total_orders"]:
            errors["cash_orders"] = "Los pedidos en efectivo no pueden superar el total."

    if errors:
        raise ValidationError(errors)
    return ShiftInput(work_date=work_date, **parsed)


def validate_new_shift(values: Mapping[str, Any], exists: Callable[[date], bool],
                       today: date | None = None) -> ShiftInput:
    """Like ``validate_shift`` but also rejects a day that is already recorded.

    ``exists`` is asked only once the values are valid.
    """
    shift = validate_shift(values, today=today)
    if exists(shift.work_date):
        raise ValidationError({"work_date": "Ese día ya está registrado."})
    return shift


def last_days(records: Iterable[EarningsRecord], today: date, days: int = 7) -> List[EarningsRecord]:
    """Records dated within the last ``days`` days (today included), oldest first."""
    since = today - timedelta(days=days - 1)
    window = [r for r in records if since <= r.work_date <= today]
    return sorted(window, key=lambda r: r.work_date)
