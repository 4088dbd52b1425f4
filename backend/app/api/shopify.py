# backend/app/api/shopify.py
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import datetime as dt
import logging

from app.api.deps import get_order_source
from app.services.errors import ParseError, UpstreamUnavailable
from app.services.metrics import round_money
from app.services.shopify_orders import PAGE_LIMIT, ShopifyOrdersClient, flatten_order

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shopify", tags=["shopify"])

def _upstream_error(e: Exception) -> HTTPException:
    logger.error("Shopify request failed: %s", e)
    status = getattr(e, "status_code", None)
    # surface Shopify's own 4xx (bad filters, auth) as-is; everything else is a gateway error
    code = status if status and 400 <= status < 500 else 502
    return HTTPException(status_code=code, detail=str(e))

# =====================================================
# Daily breakdown (orders / revenue / new subs / renewals)
# =====================================================
@router.get("/daily")
async def shopify_daily(
    days: int = Query(30, ge=1, le=365),
    source: ShopifyOrdersClient = Depends(get_order_source),
):
    end = dt.datetime.now(dt.timezone.utc)
    start = end - dt.timedelta(days=days)
    try:
        facts = await source.fetch_order_facts(days, until=end)
    except (UpstreamUnavailable, ParseError) as e:
        raise _upstream_error(e)

    daily = [
        {
            "date": f.date,
            "orders": f.order_count,
            "revenue": f.revenue,
            "newSubs": f.new_subscriptions,
            "renewals": f.renewals,
            "discounts": f.discounts,
        }
        for f in facts
    ]
    totals = {
        "orders": sum(d["orders"] for d in daily),
        "revenue": round_money(sum(d["revenue"] for d in daily)),
        "newSubs": sum(d["newSubs"] for d in daily),
        "renewals": sum(d["renewals"] for d in daily),
        "discounts": round_money(sum(d["discounts"] for d in daily)),
    }
    return {
        "success": True,
        "period": {
            "start": start.date().isoformat(),
            "end": end.date().isoformat(),
            "days": days,
        },
        "totals": totals,
        "daily": daily,
    }

# =====================================================
# Order listing with subscription flags
# =====================================================
@router.get("/orders")
async def shopify_orders(
    created_at_min: Optional[str] = Query(None),
    created_at_max: Optional[str] = Query(None),
    limit: int = Query(PAGE_LIMIT, ge=1, le=PAGE_LIMIT),
    status: str = Query("any"),
    source: ShopifyOrdersClient = Depends(get_order_source),
):
    try:
        raw = await source.fetch_orders(
            created_at_min=created_at_min,
            created_at_max=created_at_max,
            limit=limit,
            status=status,
            all_pages=False,
        )
        s = source.settings
        orders = [flatten_order(o, s.new_subscription_tag, s.subscription_tag) for o in raw]
    except (UpstreamUnavailable, ParseError) as e:
        raise _upstream_error(e)

    summary = {
        "total_orders": len(orders),
        "total_revenue": round_money(sum(o["total_price"] for o in orders)),
        "subscription_orders": sum(1 for o in orders if o["is_subscription"]),
        "first_orders": sum(1 for o in orders if o["is_first_order"]),
        "renewals": sum(1 for o in orders if o["is_renewal"]),
        "total_discounts": round_money(sum(o["total_discounts"] for o in orders)),
    }
    return {"success": True, "summary": summary, "orders": orders}
