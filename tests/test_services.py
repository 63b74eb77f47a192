from __future__ import annotations

from datetime import date, datetime

import pytest

from domain import EarningsRecord
from errors import ValidationError
from services import EarningsCalculator, last_days, validate_shift

from conftest import make_shift


@pytest.mark.parametrize("orders", [0, 1, 15, 29, 30])
def test_tier_uses_base_rate_up_to_threshold(calculator, orders):
    assert calculator.tier(orders) == orders * 55


@pytest.mark.parametrize("orders", [31, 35, 50, 100])
def test_tier_uses_high_rate_past_threshold(calculator, orders):
    assert calculator.tier(orders) == 1650 + (orders - 30) * 75


@pytest.mark.parametrize("total,expected", [(0, 0), (30, 0), (31, 20), (40, 200), (55, 500)])
def test_bonus_counts_orders_past_thirty(calculator, total, expected):
    assert calculator.bonus(total) == expected


def test_example_below_threshold(calculator):
    b = calculator.calculate(total_orders=25, cash_orders=10, morning_cash=200, evening_cash=850)
    assert b.cash_earnings == 1200
    assert b.online_earnings == 825
    assert b.bonus_earnings == 0
    assert b.total_earnings == 2025


def test_example_above_threshold(calculator):
    b = calculator.calculate(total_orders=40, cash_orders=35, morning_cash=100, evening_cash=500)
    assert b.cash_earnings == 2425
    assert b.online_earnings == 275
    assert b.bonus_earnings == 200
    assert b.total_earnings == 2900


def test_bonus_is_on_combined_total_not_per_channel(calculator):
    # 20 + 20 orders: neither channel crosses the tier, the total does
    b = calculator.calculate(total_orders=40, cash_orders=20, morning_cash=0, evening_cash=0)
    assert b.online_earnings == 20 * 55
    assert b.cash_earnings == 20 * 55
    assert b.bonus_earnings == 200


def test_cash_earnings_can_go_negative(calculator):
    b = calculator.calculate(total_orders=2, cash_orders=1, morning_cash=1000, evening_cash=100)
    assert b.cash_earnings == -900 + 55
    assert b.total_earnings == b.cash_earnings + b.online_earnings + b.bonus_earnings


@pytest.mark.parametrize("total,cash,morning,evening", [
    (0, 0, 0, 0),
    (12, 12, 500, 300),
    (31, 0, 50, 50),
    (60, 45, 0, 3000),
])
def test_total_is_sum_of_parts_and_repeatable(calculator, total, cash, morning, evening):
    first = calculator.calculate(total, cash, morning, evening)
    second = calculator.calculate(total, cash, morning, evening)
    assert first == second
    assert first.total_earnings == first.cash_earnings + first.online_earnings + first.bonus_earnings


def test_custom_rates():
    calc = EarningsCalculator(tier_threshold=10, base_rate=50, high_rate=80, bonus_rate=5)
    assert calc.tier(12) == 10 * 50 + 2 * 80
    assert calc.bonus(12) == 10


def test_complete_record_fills_derived_fields(calculator):
    record = calculator.complete_record(make_shift(date(2025, 7, 30), tips=40), "acc-1")
    assert record.account_id == "acc-1"
    assert record.online_tips == 40
    assert (record.cash_earnings, record.online_earnings, record.bonus_earnings) == (1200, 825, 0)
    assert record.total_earnings == 2025
    assert record.total_with_tips == 2065


def test_summarize_empty_is_zero(calculator):
    s = calculator.summarize([])
    assert s.grand_total_earnings == 0
    assert s.total_cash_earnings == 0


def test_summarize_adds_tips_to_grand_total(calculator):
    records = [
        calculator.complete_record(make_shift(date(2025, 7, 30), tips=40), "acc-1"),
        calculator.complete_record(
            make_shift(date(2025, 7, 31), morning=100, evening=500, total=40, cash=35, tips=10), "acc-1"
        ),
    ]
    s = calculator.summarize(records)
    assert s.total_online_earnings == 825 + 275
    assert s.total_bonus_earnings == 200
    assert s.total_cash_earnings == 1200 + 2425
    assert s.total_online_tips == 50
    assert s.grand_total_earnings == 2025 + 2900 + 50


# ---------------------------------------------------------------- validation

TODAY = date(2025, 8, 1)


def _values(**overrides):
    values = {
        "work_date": TODAY,
        "morning_cash": 200,
        "evening_cash": 850,
        "total_orders": 25,
        "cash_orders": 10,
        "online_tips": 0,
    }
    values.update(overrides)
    return values


def test_validate_accepts_good_values():
    shift = validate_shift(_values(), today=TODAY)
    assert shift.total_orders == 25
    assert shift.online_orders == 15


def test_validate_coerces_numeric_strings():
    shift = validate_shift(_values(total_orders="25", cash_orders=" 3 "), today=TODAY)
    assert (shift.total_orders, shift.cash_orders) == (25, 3)


def test_validate_defaults_online_tips_to_zero():
    values = _values()
    del values["online_tips"]
    assert validate_shift(values, today=TODAY).online_tips == 0


def test_validate_rejects_more_cash_orders_than_total():
    with pytest.raises(ValidationError) as exc:
        validate_shift(_values(total_orders=10, cash_orders=11), today=TODAY)
    assert set(exc.value.errors) == {"cash_orders"}


def test_validate_reports_every_bad_field():
    with pytest.raises(ValidationError) as exc:
        validate_shift(_values(morning_cash=-1, evening_cash="abc", online_tips=2.5), today=TODAY)
    assert set(exc.value.errors) == {"morning_cash", "evening_cash", "online_tips"}


def test_validate_rejects_missing_and_future_dates():
    with pytest.raises(ValidationError) as exc:
        validate_shift(_values(work_date=None), today=TODAY)
    assert "work_date" in exc.value.errors
    with pytest.raises(ValidationError):
        validate_shift(_values(work_date=date(2025, 8, 2)), today=TODAY)


def _blank(d: date) -> EarningsRecord:
    return EarningsRecord(account_id="a", work_date=d, morning_cash=0, evening_cash=0,
                          total_orders=0, cash_orders=0)


def test_last_days_keeps_seven_day_window_ascending():
    records = [_blank(date(2025, 8, 1)), _blank(date(2025, 7, 28)),
               _blank(date(2025, 7, 26)), _blank(date(2025, 7, 25))]
    window = last_days(records, TODAY, 7)
    assert [r.work_date for r in window] == [date(2025, 7, 26), date(2025, 7, 28), date(2025, 8, 1)]


def test_validate_accepts_datetime_as_its_date():
    shift = validate_shift(_values(work_date=datetime(2025, 7, 30, 10, 15)), today=TODAY)
    assert shift.work_date == date(2025, 7, 30)
    assert type(shift.work_date) is date

    with pytest.raises(ValidationError) as exc:
        validate_shift(_values(work_date=datetime(2025, 8, 2, 9)), today=TODAY)
    assert set(exc.value.errors) == {"work_date"}
