from datetime import date, datetime
from typing import Iterable
from zoneinfo import ZoneInfo

import pandas as pd

from domain import EarningsRecord
from services import last_days


def today_local(tz: str) -> date:
    return datetime.now(ZoneInfo(tz)).date()


def money(amount: int, currency: str) -> str:
    return f"{amount:,} {currency}".replace(",", " ")


def records_to_dataframe(records: Iterable[EarningsRecord]) -> pd.DataFrame:
    """History table, newest first."""
    rows = []
    for r in records:
        rows.append({
            "ID": r.id,
            "Fecha": r.work_date.isoformat(),
            "Pedidos": r.total_orders,
            "Pago por pedidos": r.online_earnings,
            "Bonus": r.bonus_earnings,
            "Propinas efectivo": r.cash_earnings,
            "Propinas online": r.online_tips,
            "Total": r.total_with_tips,
        })
    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values(["Fecha"], ascending=False).reset_index(drop=True)
    return df


def weekly_chart_dataframe(records: Iterable[EarningsRecord], today: date, days: int = 7) -> pd.DataFrame:
    """Bar chart data for the last ``days`` days, oldest first."""
    rows = [
        {"Fecha": pd.Timestamp(r.work_date), "Total": r.total_earnings, "Efectivo": r.cash_earnings}
        for r in last_days(records, today, days)
    ]
    return pd.DataFrame(rows, columns=["Fecha", "Total", "Efectivo"])
