# backend/app/models/facts.py
from dataclasses import dataclass


@dataclass(frozen=True)
class DailyOrderFact:
    """Orders summed for one calendar day (YYYY-MM-DD)."""
    date: str
    order_count: int
    revenue: float
    new_subscriptions: int
    renewals: int = 0
    discounts: float = 0.0


@dataclass(frozen=True)
class DailyAdSpendFact:
    date: str
    ad_spend: float
