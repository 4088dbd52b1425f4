# backend/app/settings.py
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

DEFAULT_API_VERSION = "2024-01"
DEFAULT_NEW_SUBSCRIPTION_TAG = "kaching subscription first order"
DEFAULT_SUBSCRIPTION_TAG = "kaching subscription"


@dataclass(frozen=True)
class Settings:
    """
    Upstream endpoints and credentials.
    Built once from the environment and handed to the clients; nothing below
    the API layer reads os.environ.
    """
    store_endpoint: Optional[str] = None
    access_token: Optional[str] = None
    ad_spend_feed_url: Optional[str] = None
    api_version: str = DEFAULT_API_VERSION
    new_subscription_tag: str = DEFAULT_NEW_SUBSCRIPTION_TAG
    subscription_tag: str = DEFAULT_SUBSCRIPTION_TAG
    timeout_seconds: float = 30.0

    @property
    def has_store_credentials(self) -> bool:
        return bool(self.store_endpoint and self.access_token)


def _env(name: str) -> Optional[str]:
    v = os.getenv(name)
    return v.strip() if v and v.strip() else None


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        store_endpoint=_env("SHOPIFY_STORE_URL"),
        access_token=_env("SHOPIFY_ACCESS_TOKEN"),
        ad_spend_feed_url=_env("GOOGLE_SHEET_CSV_URL"),
        api_version=os.getenv("SHOPIFY_API_VERSION", DEFAULT_API_VERSION),
        new_subscription_tag=os.getenv("NEW_SUBSCRIPTION_TAG", DEFAULT_NEW_SUBSCRIPTION_TAG),
        subscription_tag=os.getenv("SUBSCRIPTION_TAG", DEFAULT_SUBSCRIPTION_TAG),
        timeout_seconds=float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30")),
    )
