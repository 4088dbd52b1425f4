from pydantic import BaseModel
from typing import List, Optional

class MetricsParams(BaseModel):
    days: int
    ltv: float
    avgPrice: float
    retention: float  # percent, as supplied by the caller

class DailyMetric(BaseModel):
    date: str
    orderCount: int
    revenue: float
    newSubscriptions: int
    adSpend: float = 0.0
    # LTV curve: projected revenue per retention period
    m0: float
    m1: float
    m2: float
    m3: float
    m4: float
    m5: float
    ltvRevenue: float
    cac: Optional[float] = None
    roasDay1: Optional[float] = None
    roasLtv: Optional[float] = None

class AggregateKPIs(BaseModel):
    # Volume
    totalOrders: int
    totalNewSubscriptions: int
    totalRevenue: float
    # Ad metrics
    totalAdSpend: float
    cac: Optional[float] = None
    # LTV metrics
    ltv: float
    ltvRevenue: float
    ltvCacRatio: Optional[float] = None
    profitPerCustomer: Optional[float] = None
    # ROAS
    roasDay1: Optional[float] = None
    roasLtv: Optional[float] = None
    # Period totals
    m0: float
    m1: float
    m2: float
    m3: float
    m4: float
    m5: float

class MetricsResponse(BaseModel):
    success: bool = True
    params: MetricsParams
    kpis: AggregateKPIs
    daily: List[DailyMetric]
