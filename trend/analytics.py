"""
Tabular view of the analytics series.
"""
from typing import Sequence

import pandas as pd

from trend.domain import Period

COLUMNS = ["label", "start", "end", "amount", "discretionary_amount"]


def period_frame(periods: Sequence[Period]) -> pd.DataFrame:
    """One row per bucket, oldest first, plus the recurring share of each."""
    if not periods:
        return pd.DataFrame(columns=COLUMNS + ["recurring_amount"])
    df = pd.DataFrame([{c: getattr(p, c) for c in COLUMNS} for p in periods])
    df["start"] = pd.to_datetime(df["start"])
    df["end"] = pd.to_datetime(df["end"])
    df["recurring_amount"] = df["amount"] - df["discretionary_amount"]
    return df


def analytics_summary(periods: Sequence[Period]) -> dict:
    df = period_frame(periods)
    if df.empty:
        return {
            "total": 0.0,
            "discretionary_total": 0.0,
            "average": 0.0,
            "discretionary_average": 0.0,
            "highest": None,
            "change": 0.0,
        }

    amounts = df["discretionary_amount"]
    highest = df.loc[amounts.idxmax()]
    change = 0.0
    if len(df) > 1:
        change = float(amounts.iloc[-1] - amounts.iloc[-2])
    return {
        "total": float(df["amount"].sum()),
        "discretionary_total": float(amounts.sum()),
        "average": float(df["amount"].mean()),
        "discretionary_average": float(amounts.mean()),
        "highest": highest["label"],
        "change": change,
    }
