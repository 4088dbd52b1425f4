# backend/tests/test_ad_spend.py
import asyncio
import logging
import httpx
import pytest

from app.models import DailyAdSpendFact
from app.services.ad_spend import (
    AdSpendFeedClient,
    parse_ad_spend_csv,
    parse_ad_spend_table,
    summarize_ad_spend_table,
)
from app.services.errors import ParseError, UpstreamDegraded
from app.settings import Settings


CSV = """date,ad_spend
2025-01-01,20.00
2025-01-02,0
2025-01-03,n/a
2025-01-04, 15.5
,12.00
2025-01-05
2025-01-01,22.50
2025-01-06,NaN
"""


def test_parse_skips_header_and_drops_zero_or_unparseable_spend():
    facts = {f.date: f.ad_spend for f in parse_ad_spend_csv(CSV)}
    assert facts == {"2025-01-01": 22.5, "2025-01-04": 15.5}
    # zero-spend days are absent, not present as 0
    assert "2025-01-02" not in facts

def test_parse_duplicate_date_overwrites():
    facts = parse_ad_spend_csv("date,spend\n2025-01-01,10\n2025-01-01,5\n")
    assert facts == [DailyAdSpendFact("2025-01-01", 5.0)]

def test_parse_extra_columns_and_empty_feed():
    assert parse_ad_spend_csv("date,spend,clicks\n2025-01-01,9.99,120\n") == [DailyAdSpendFact("2025-01-01", 9.99)]
    assert parse_ad_spend_csv("") == []
    assert parse_ad_spend_csv("date,spend\n") == []

# a field past csv.field_size_limit() makes the reader raise csv.Error
OVERSIZED_CSV = "date,spend\n2025-01-01," + "9" * 200_000 + "\n"

def test_parse_malformed_csv_is_parse_error():
    with pytest.raises(ParseError):
        parse_ad_spend_csv(OVERSIZED_CSV)


def _client(settings: Settings, handler) -> AdSpendFeedClient:
    return AdSpendFeedClient(settings, transport=httpx.MockTransport(handler))

def test_fetch_parses_feed(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://sheets.example.com/adspend.csv"
        return httpx.Response(200, text=CSV)

    facts = asyncio.run(_client(settings, handler).fetch_ad_spend_facts())
    assert len(facts) == 2

def test_fetch_degrades_to_empty_on_error_status(settings, caplog):
    with caplog.at_level(logging.WARNING):
        facts = asyncio.run(_client(settings, lambda r: httpx.Response(500)).fetch_ad_spend_facts())
    assert facts == []
    assert "degraded" in caplog.text

def test_fetch_degrades_to_empty_on_network_error(settings):
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    assert asyncio.run(_client(settings, handler).fetch_ad_spend_facts()) == []

def test_unconfigured_feed_is_empty_without_a_request():
    def handler(request):
        raise AssertionError("no request expected")

    assert asyncio.run(_client(Settings(), handler).fetch_ad_spend_facts()) == []

def test_malformed_feed_url_degrades_to_empty(caplog):
    def handler(request):
        raise AssertionError("no request expected")

    client = _client(Settings(ad_spend_feed_url="http://[::1/x.csv"), handler)
    with caplog.at_level(logging.WARNING):
        assert asyncio.run(client.fetch_ad_spend_facts()) == []
    assert "degraded" in caplog.text

def test_malformed_csv_degrades_to_empty(settings):
    assert asyncio.run(_client(settings, lambda r: httpx.Response(200, text=OVERSIZED_CSV)).fetch_ad_spend_facts()) == []


# ========================= sheet summary =========================

SHEET = """Date,Ad Spend,Impressions,Clicks,Purchases,
2025-01-01,20.00,1000,30,2,x
2025-01-02,n/a,500,abc,0
,5.00,100,1,1
2025-01-03,10.5,12.7
"""

def test_table_normalizes_headers_and_skips_dateless_rows():
    rows = parse_ad_spend_table(SHEET)
    assert [r["date"] for r in rows] == ["2025-01-01", "2025-01-02", "2025-01-03"]
    assert rows[0] == {
        "date": "2025-01-01",
        "ad_spend": "20.00",
        "impressions": "1000",
        "clicks": "30",
        "purchases": "2",
        "col_5": "x",
    }
    assert rows[2]["clicks"] is None
    assert parse_ad_spend_table("") == []

def test_table_totals_and_averages():
    totals = summarize_ad_spend_table(parse_ad_spend_table(SHEET))
    assert totals["ad_spend"] == 30.5
    assert totals["impressions"] == 1512
    assert totals["clicks"] == 30
    assert totals["purchases"] == 2
    assert totals["days"] == 3
    assert totals["avg_cpa"] == 15.25
    assert totals["avg_ctr"] == pytest.approx(30 / 1512 * 100)
    assert totals["avg_cpm"] == pytest.approx(30.5 / 1512 * 1000)

def test_table_averages_are_zero_without_denominators():
    totals = summarize_ad_spend_table(parse_ad_spend_table("date,ad_spend\n2025-01-01,9\n"))
    assert totals["avg_cpa"] == 0 and totals["avg_ctr"] == 0 and totals["avg_cpm"] == 0

def test_table_fetch_raises_instead_of_degrading(settings):
    with pytest.raises(UpstreamDegraded):
        asyncio.run(_client(settings, lambda r: httpx.Response(503)).fetch_ad_spend_table())
    with pytest.raises(UpstreamDegraded, match="Missing"):
        asyncio.run(_client(Settings(), lambda r: httpx.Response(200)).fetch_ad_spend_table())
