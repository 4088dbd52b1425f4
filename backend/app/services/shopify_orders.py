# backend/app/services/shopify_orders.py
"""
Shopify Admin REST client for orders, plus the per-day order summary.

An order is attributed to the date portion of `created_at` as Shopify sends
it (no timezone conversion). A new subscription is an order whose lowercased
`tags` string contains the configured marker; this is substring matching on
the whole tag string, so compound tags match too.
"""
import datetime as dt
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

import httpx

from app.models import DailyOrderFact
from app.services.errors import ParseError, UpstreamUnavailable
from app.services.metrics import round_money
from app.settings import Settings, DEFAULT_NEW_SUBSCRIPTION_TAG, DEFAULT_SUBSCRIPTION_TAG

logger = logging.getLogger(__name__)

PAGE_LIMIT = 250  # Shopify REST maximum

# ---------- classification ----------
def classify_tags(
    tags: Optional[str],
    new_subscription_tag: str = DEFAULT_NEW_SUBSCRIPTION_TAG,
    subscription_tag: str = DEFAULT_SUBSCRIPTION_TAG,
) -> Tuple[bool, bool, bool]:
    """Returns (is_subscription, is_first_order, is_renewal)."""
    lowered = tags.lower() if tags else ""
    is_first = new_subscription_tag.lower() in lowered
    is_sub = subscription_tag.lower() in lowered
    return is_sub, is_first, is_sub and not is_first

def _money(order: Dict[str, Any], field: str, required: bool = True) -> float:
    raw = order.get(field)
    if raw in (None, ""):
        if required:
            raise ParseError(f"order {order.get('id')} has no {field}")
        return 0.0
    return _to_float(raw, f"order {order.get('id')} {field}")

def _to_float(raw: Any, label: str) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ParseError(f"{label} is not a number: {raw!r}")
    if not math.isfinite(value):
        raise ParseError(f"{label} is not finite: {raw!r}")
    return value

def _order_date(order: Dict[str, Any]) -> str:
    created = order.get("created_at")
    if not created or not isinstance(created, str):
        raise ParseError(f"order {order.get('id')} has no created_at")
    date = created.split("T")[0]
    try:
        dt.date.fromisoformat(date)
    except ValueError:
        raise ParseError(f"order {order.get('id')} has unreadable created_at: {created!r}")
    return date

# ---------- per-day summary ----------
def summarize_orders(
    orders: List[Dict[str, Any]],
    new_subscription_tag: str = DEFAULT_NEW_SUBSCRIPTION_TAG,
    subscription_tag: str = DEFAULT_SUBSCRIPTION_TAG,
) -> List[DailyOrderFact]:
    """Sum raw orders per calendar day, sorted by date."""
    days: Dict[str, Dict[str, float]] = {}
    for order in orders:
        date = _order_date(order)
        _, is_first, is_renewal = classify_tags(order.get("tags"), new_subscription_tag, subscription_tag)
        slot = days.setdefault(date, {"orders": 0, "revenue": 0.0, "new_subs": 0, "renewals": 0, "discounts": 0.0})
        slot["orders"] += 1
        slot["revenue"] += _money(order, "total_price")
        slot["discounts"] += _money(order, "total_discounts", required=False)
        if is_first:
            slot["new_subs"] += 1
        elif is_renewal:
            slot["renewals"] += 1

    return [
        DailyOrderFact(
            date=date,
            order_count=int(s["orders"]),
            revenue=round_money(s["revenue"]),
            new_subscriptions=int(s["new_subs"]),
            renewals=int(s["renewals"]),
            discounts=round_money(s["discounts"]),
        )
        for date, s in sorted(days.items(), key=lambda kv: dt.date.fromisoformat(kv[0]))
    ]

def flatten_order(
    order: Dict[str, Any],
    new_subscription_tag: str = DEFAULT_NEW_SUBSCRIPTION_TAG,
    subscription_tag: str = DEFAULT_SUBSCRIPTION_TAG,
) -> Dict[str, Any]:
    """Order payload trimmed to the fields the dashboard lists."""
    is_sub, is_first, is_renewal = classify_tags(order.get("tags"), new_subscription_tag, subscription_tag)
    customer = order.get("customer")
    shipping = order.get("shipping_address") or {}
    return {
        "id": order.get("id"),
        "name": order.get("name"),
        "created_at": order.get("created_at"),
        "total_price": _money(order, "total_price"),
        "subtotal_price": _money(order, "subtotal_price", required=False),
        "total_discounts": _money(order, "total_discounts", required=False),
        "currency": order.get("currency"),
        "financial_status": order.get("financial_status"),
        "fulfillment_status": order.get("fulfillment_status"),
        "customer": {
            "id": customer.get("id"),
            "email": customer.get("email"),
            "first_name": customer.get("first_name"),
            "last_name": customer.get("last_name"),
            "orders_count": customer.get("orders_count"),
        } if customer else None,
        "shipping_country": shipping.get("country_code"),
        "tags": order.get("tags"),
        "is_subscription": is_sub,
        "is_first_order": is_first,
        "is_renewal": is_renewal,
        "line_items": [
            {
                "title": li.get("title"),
                "quantity": li.get("quantity"),
                "price": _to_float(li.get("price") or 0, f"order {order.get('id')} line item price"),
            }
            for li in order.get("line_items") or []
        ],
    }

# ---------- client ----------
class ShopifyOrdersClient:
    """
    Read-only client for /admin/api/{version}/orders.json.

    Every call opens its own httpx.AsyncClient; nothing is shared between
    requests. Each page is a single attempt, there are no retries.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    @property
    def orders_url(self) -> str:
        shop = (self.settings.store_endpoint or "").replace("https://", "").replace("http://", "").rstrip("/")
        return f"https://{shop}/admin/api/{self.settings.api_version}/orders.json"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.timeout_seconds, connect=10.0),
            headers={
                "X-Shopify-Access-Token": self.settings.access_token or "",
                "Content-Type": "application/json",
            },
            transport=self._transport,
        )

    async def _get_page(self, client: httpx.AsyncClient, url: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        try:
            response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.error("Shopify orders timeout", extra={"error": str(e)})
            raise UpstreamUnavailable(f"Shopify request timeout: {e}")
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.error("Shopify orders request error", extra={"error": str(e)})
            raise UpstreamUnavailable(f"Shopify request error: {e}")

        if not response.is_success:
            logger.error("Shopify API error", extra={
                "status_code": response.status_code,
                "response_text": response.text[:500],
            })
            raise UpstreamUnavailable(
                f"Shopify API error: {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def fetch_orders(
        self,
        created_at_min: Optional[str] = None,
        created_at_max: Optional[str] = None,
        limit: int = PAGE_LIMIT,
        status: str = "any",
        all_pages: bool = True,
    ) -> List[Dict[str, Any]]:
        """Orders matching the filters; with all_pages, follows `Link: rel="next"`."""
        if not self.settings.has_store_credentials:
            raise UpstreamUnavailable("Missing Shopify credentials")

        params: Optional[Dict[str, Any]] = {"status": status, "limit": limit}
        if created_at_min:
            params["created_at_min"] = created_at_min
        if created_at_max:
            params["created_at_max"] = created_at_max

        orders: List[Dict[str, Any]] = []
        url: Optional[str] = self.orders_url
        async with self._client() as client:
            while url:
                response = await self._get_page(client, url, params)
                try:
                    payload = response.json()
                except ValueError as e:
                    raise ParseError(f"Shopify returned invalid JSON: {e}")
                if not isinstance(payload, dict):
                    raise ParseError("Shopify payload is not a JSON object")
                page = payload.get("orders") or []
                if not isinstance(page, list):
                    raise ParseError("Shopify payload 'orders' is not a list")
                orders.extend(page)
                # the next-page URL already carries page_info and limit
                url = response.links.get("next", {}).get("url") if all_pages else None
                params = None

        logger.info("Fetched Shopify orders", extra={"count": len(orders)})
        return orders

    async def fetch_order_facts(self, window_days: int, until: Optional[dt.datetime] = None) -> List[DailyOrderFact]:
        """Daily facts for orders created in the trailing `window_days`."""
        end = until or dt.datetime.now(dt.timezone.utc)
        start = end - dt.timedelta(days=window_days)
        orders = await self.fetch_orders(
            created_at_min=start.isoformat(),
            created_at_max=end.isoformat() if until else None,
        )
        return summarize_orders(orders, self.settings.new_subscription_tag, self.settings.subscription_tag)
