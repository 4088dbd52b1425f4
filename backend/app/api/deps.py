# backend/app/api/deps.py
from fastapi import Depends

from app.services.ad_spend import AdSpendFeedClient
from app.services.metrics import MetricsAggregator
from app.services.shopify_orders import ShopifyOrdersClient
from app.settings import Settings, get_settings

# Request-scoped collaborators; tests swap them via app.dependency_overrides.

def get_order_source(settings: Settings = Depends(get_settings)) -> ShopifyOrdersClient:
    return ShopifyOrdersClient(settings)

def get_ad_spend_source(settings: Settings = Depends(get_settings)) -> AdSpendFeedClient:
    return AdSpendFeedClient(settings)

def get_aggregator(
    order_source=Depends(get_order_source),
    ad_spend_source=Depends(get_ad_spend_source),
) -> MetricsAggregator:
    return MetricsAggregator(order_source, ad_spend_source)
