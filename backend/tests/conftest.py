# backend/tests/conftest.py
import sys, pathlib, pytest
from typing import List, Optional
from fastapi.testclient import TestClient

BACKEND_DIR = pathlib.Path(__file__).resolve().parents[1]   # .../backend

# Make `from app.*` importable
sys.path.insert(0, str(BACKEND_DIR))

from app.models import DailyAdSpendFact, DailyOrderFact  # noqa: E402
from app.settings import Settings  # noqa: E402


class FakeOrderSource:
    """Stands in for ShopifyOrdersClient.fetch_order_facts."""

    def __init__(self, facts: Optional[List[DailyOrderFact]] = None, error: Optional[Exception] = None):
        self.facts = facts or []
        self.error = error
        self.calls: List[int] = []

    async def fetch_order_facts(self, window_days: int) -> List[DailyOrderFact]:
        self.calls.append(window_days)
        if self.error is not None:
            raise self.error
        return list(self.facts)


class FakeAdSpendSource:
    def __init__(self, facts: Optional[List[DailyAdSpendFact]] = None):
        self.facts = facts or []

    async def fetch_ad_spend_facts(self) -> List[DailyAdSpendFact]:
        return list(self.facts)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        store_endpoint="test-store.myshopify.com",
        access_token="test-token",
        ad_spend_feed_url="https://sheets.example.com/adspend.csv",
    )


@pytest.fixture()
def app():
    from app.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    return TestClient(app)
