# backend/app/api/metrics.py
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from app.api.deps import get_aggregator
from app.schemas.metrics import MetricsResponse
from app.services.errors import ParseError, UpstreamUnavailable
from app.services.metrics import (
    DEFAULT_AVG_PRICE,
    DEFAULT_LTV,
    DEFAULT_RETENTION_PERCENT,
    DEFAULT_WINDOW_DAYS,
    MetricsAggregator,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["metrics"])

# =====================================================
# Combined metrics: Shopify orders + ad-spend sheet
# =====================================================
@router.get("/metrics", response_model=MetricsResponse)
async def combined_metrics(
    days: int = Query(DEFAULT_WINDOW_DAYS, ge=1, le=365),
    ltv: float = Query(DEFAULT_LTV, ge=0, allow_inf_nan=False),
    avgPrice: float = Query(DEFAULT_AVG_PRICE, ge=0, allow_inf_nan=False),
    retention: float = Query(DEFAULT_RETENTION_PERCENT, ge=0, le=100, description="percent, e.g. 78"),
    aggregator: MetricsAggregator = Depends(get_aggregator),
):
    """
    KPIs for the trailing `days`: CAC, LTV:CAC, ROAS (day 1 and LTV) and the
    M0..M5 revenue projection, plus the per-day breakdown.
    A failing ad-spend feed only zeroes the ad metrics; a failing order feed
    fails the request.
    """
    try:
        return await aggregator.compute_metrics(
            window_days=days,
            ltv=ltv,
            avg_price=avgPrice,
            retention_percent=retention,
        )
    except (UpstreamUnavailable, ParseError) as e:
        logger.error("Metrics request failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        # finite inputs whose products overflow a float
        raise HTTPException(status_code=422, detail=str(e))
