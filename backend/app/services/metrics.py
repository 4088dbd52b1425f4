# backend/app/services/metrics.py
"""
Marketing KPI derivation.

Order facts and ad-spend facts are joined by date (order dates only), each day
gets an M0..M5 revenue projection plus LTV/ROAS/CAC ratios, and the window is
rolled up into totals. Ratios for the window are always computed from totals,
never averaged from the per-day ratios.
"""
import asyncio
import datetime as dt
import logging
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Dict, Iterable, List, Optional, Sequence

from app.models import DailyAdSpendFact, DailyOrderFact
from app.schemas.metrics import AggregateKPIs, DailyMetric, MetricsParams, MetricsResponse

logger = logging.getLogger(__name__)

PROJECTION_PERIODS = 6  # M0..M5

DEFAULT_WINDOW_DAYS = 30
DEFAULT_LTV = 160.55
DEFAULT_AVG_PRICE = 40.24
DEFAULT_RETENTION_PERCENT = 78.0

# ---------- rounding ----------
def round_money(value: float, places: int = 2) -> float:
    """Round half away from zero (currency display), not Python's half-even."""
    if not math.isfinite(value):
        raise ValueError(f"cannot round non-finite value {value!r}")
    d = Decimal(repr(value))
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the decimals
        ctx.prec = max(ctx.prec, d.adjusted() + places + 2)
        return float(d.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))

def _ratio(num: float, den: float) -> Optional[float]:
    return num / den if den > 0 else None

# ---------- date-keyed join ----------
@dataclass(frozen=True)
class JoinedDay:
    order: DailyOrderFact
    ad_spend: float

    @property
    def date(self) -> str:
        return self.order.date

def index_ad_spend(facts: Iterable[DailyAdSpendFact]) -> Dict[str, DailyAdSpendFact]:
    """Date -> fact. Duplicate dates overwrite: the last fact wins."""
    out: Dict[str, DailyAdSpendFact] = {}
    for f in facts:
        out[f.date] = f
    return out

def join_daily(order_facts: Sequence[DailyOrderFact],
               ad_spend_facts: Sequence[DailyAdSpendFact]) -> List[JoinedDay]:
    """
    Left join on the order dates.
    Dates that only exist in the ad-spend feed are dropped; order days without
    spend get 0. Result is sorted by the parsed calendar date.
    """
    by_date = index_ad_spend(ad_spend_facts)
    joined = []
    for o in order_facts:
        spend = by_date.get(o.date)
        joined.append(JoinedDay(order=o, ad_spend=spend.ad_spend if spend else 0.0))
    joined.sort(key=lambda d: dt.date.fromisoformat(d.date))
    return joined

# ---------- LTV projection ----------
def project_ltv_curve(new_subscriptions: int, avg_price: float, retention: float) -> List[float]:
    """
    Geometric decay: mK = subs * price * retention**K for K in 0..5.

    `retention` is a fraction; percentages must be divided by 100 first.
    """
    if not 0.0 <= retention <= 1.0:
        raise ValueError(f"retention must be a fraction in [0, 1], got {retention}")
    base = new_subscriptions * avg_price
    return [round_money(base * retention ** k) for k in range(PROJECTION_PERIODS)]

# ---------- per-day derivation ----------
def derive_daily_metric(day: JoinedDay, ltv: float, avg_price: float, retention: float) -> DailyMetric:
    o = day.order
    spend = day.ad_spend
    ltv_revenue = o.new_subscriptions * ltv
    m = project_ltv_curve(o.new_subscriptions, avg_price, retention)

    cac = spend / o.new_subscriptions if spend > 0 and o.new_subscriptions > 0 else None
    roas_day1 = _ratio(o.revenue, spend)
    roas_ltv = _ratio(ltv_revenue, spend)

    return DailyMetric(
        date=o.date,
        orderCount=o.order_count,
        revenue=round_money(o.revenue),
        newSubscriptions=o.new_subscriptions,
        # unrounded, so the window total is rounded once
        adSpend=spend,
        m0=m[0], m1=m[1], m2=m[2], m3=m[3], m4=m[4], m5=m[5],
        ltvRevenue=round_money(ltv_revenue),
        cac=round_money(cac) if cac is not None else None,
        roasDay1=round_money(roas_day1) if roas_day1 is not None else None,
        roasLtv=round_money(roas_ltv) if roas_ltv is not None else None,
    )

# ---------- roll-up ----------
def roll_up(daily: Sequence[DailyMetric], ltv: float) -> AggregateKPIs:
    def total(field: str) -> float:
        return sum(getattr(d, field) for d in daily)

    total_orders = sum(d.orderCount for d in daily)
    total_subs = sum(d.newSubscriptions for d in daily)
    total_revenue = total("revenue")
    total_spend = total("adSpend")
    total_ltv_revenue = total("ltvRevenue")

    cac = total_spend / total_subs if total_spend > 0 and total_subs > 0 else None
    roas_day1 = _ratio(total_revenue, total_spend)
    roas_ltv = _ratio(total_ltv_revenue, total_spend)

    return AggregateKPIs(
        totalOrders=total_orders,
        totalNewSubscriptions=total_subs,
        totalRevenue=round_money(total_revenue),
        totalAdSpend=round_money(total_spend),
        cac=round_money(cac) if cac is not None else None,
        ltv=ltv,
        ltvRevenue=round_money(total_ltv_revenue),
        # LTV:CAC uses the assumed LTV parameter, not the ltvRevenue total
        ltvCacRatio=round_money(ltv / cac, 1) if cac else None,
        profitPerCustomer=round_money(ltv - cac) if cac else None,
        roasDay1=round_money(roas_day1) if roas_day1 is not None else None,
        roasLtv=round_money(roas_ltv) if roas_ltv is not None else None,
        **{f"m{k}": round_money(total(f"m{k}")) for k in range(PROJECTION_PERIODS)},
    )

def build_metrics(order_facts: Sequence[DailyOrderFact],
                  ad_spend_facts: Sequence[DailyAdSpendFact],
                  params: MetricsParams) -> MetricsResponse:
    retention = params.retention / 100.0
    daily = [
        derive_daily_metric(day, params.ltv, params.avgPrice, retention)
        for day in join_daily(order_facts, ad_spend_facts)
    ]
    return MetricsResponse(params=params, kpis=roll_up(daily, params.ltv), daily=daily)

# ---------- aggregator ----------
class MetricsAggregator:
    """
    Fetches both feeds concurrently and derives the KPI payload.

    order_source must provide `async fetch_order_facts(window_days)` and may
    raise UpstreamUnavailable / ParseError. ad_spend_source must provide
    `async fetch_ad_spend_facts()` and return [] instead of raising.
    """

    def __init__(self, order_source, ad_spend_source):
        self.order_source = order_source
        self.ad_spend_source = ad_spend_source

    async def compute_metrics(
        self,
        window_days: int = DEFAULT_WINDOW_DAYS,
        ltv: float = DEFAULT_LTV,
        avg_price: float = DEFAULT_AVG_PRICE,
        retention_percent: float = DEFAULT_RETENTION_PERCENT,
    ) -> MetricsResponse:
        params = MetricsParams(days=window_days, ltv=ltv, avgPrice=avg_price, retention=retention_percent)
        # validate before touching the network
        if not 0.0 <= retention_percent <= 100.0:
            raise ValueError(f"retention must be a percentage in [0, 100], got {retention_percent}")

        order_facts, ad_spend_facts = await asyncio.gather(
            self.order_source.fetch_order_facts(window_days),
            self.ad_spend_source.fetch_ad_spend_facts(),
        )
        logger.info(
            "Computing metrics",
            extra={"order_days": len(order_facts), "ad_spend_days": len(ad_spend_facts), "window_days": window_days},
        )
        return build_metrics(order_facts, ad_spend_facts, params)
