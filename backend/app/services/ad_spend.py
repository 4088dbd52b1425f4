# backend/app/services/ad_spend.py
import csv
import io
import logging
import math
import re
from typing import Dict, List, Optional

import httpx

from app.models import DailyAdSpendFact
from app.services.errors import ParseError, UpstreamDegraded
from app.settings import Settings

logger = logging.getLogger(__name__)


def _parse_spend(raw: str) -> float:
    """Unparseable or non-finite spend counts as 0."""
    try:
        value = float(raw.strip())
    except (AttributeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def parse_ad_spend_csv(text: str) -> List[DailyAdSpendFact]:
    """
    Parse a (date, spend) CSV export. The first row is a header.

    Rows whose spend is 0 or not a number are dropped, not kept as zero, so
    such a date does not exist in the ad-spend set at all. A repeated date
    overwrites the earlier row.
    """
    by_date: Dict[str, DailyAdSpendFact] = {}
    rows = csv.reader(io.StringIO(text))
    try:
        next(rows, None)
        for cols in rows:
            if len(cols) < 2:
                continue
            date = cols[0].strip()
            spend = _parse_spend(cols[1])
            if date and spend:
                by_date[date] = DailyAdSpendFact(date=date, ad_spend=spend)
    except csv.Error as e:
        raise ParseError(f"Malformed ad-spend CSV: {e}")
    return list(by_date.values())


# ---------- sheet summary (/api/sheets/adspend) ----------
def _header_key(label: str, index: int) -> str:
    key = re.sub(r"\s+", "_", label.strip().lower())
    return key or f"col_{index}"

def _parse_count(raw: Optional[str]) -> int:
    """Whole-number columns; anything unparseable counts as 0."""
    try:
        value = float(raw.strip())
    except (AttributeError, ValueError):
        return 0
    return int(value) if math.isfinite(value) else 0

def parse_ad_spend_table(text: str) -> List[Dict[str, Optional[str]]]:
    """
    Rows of the sheet keyed by normalized header ("Ad Spend" -> "ad_spend").
    Rows without a date are skipped; missing cells are None.
    """
    rows = csv.reader(io.StringIO(text))
    try:
        header = next(rows, None)
        if not header:
            return []
        keys = [_header_key(h, i) for i, h in enumerate(header)]
        out = []
        for cols in rows:
            row = {k: (cols[i].strip() if i < len(cols) else None) for i, k in enumerate(keys)}
            if row.get("date"):
                out.append(row)
    except csv.Error as e:
        raise ParseError(f"Malformed ad-spend CSV: {e}")
    return out

def summarize_ad_spend_table(rows: List[Dict[str, Optional[str]]]) -> Dict[str, float]:
    ad_spend = sum(_parse_spend(r.get("ad_spend")) for r in rows)
    impressions = sum(_parse_count(r.get("impressions")) for r in rows)
    clicks = sum(_parse_count(r.get("clicks")) for r in rows)
    purchases = sum(_parse_count(r.get("purchases")) for r in rows)
    return {
        "ad_spend": ad_spend,
        "impressions": impressions,
        "clicks": clicks,
        "purchases": purchases,
        "days": len(rows),
        "avg_cpa": ad_spend / purchases if purchases > 0 else 0.0,
        "avg_ctr": clicks / impressions * 100 if impressions > 0 else 0.0,
        "avg_cpm": ad_spend / impressions * 1000 if impressions > 0 else 0.0,
    }


class AdSpendFeedClient:
    """
    Fetches the published ad-spend sheet.
    For the metrics join, failures never propagate: the caller gets [] and a
    warning is logged. The sheet summary raises instead.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    async def _download(self) -> str:
        url = self.settings.ad_spend_feed_url
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.timeout_seconds, connect=10.0),
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise UpstreamDegraded(f"Ad-spend feed request error: {e}")
        if not response.is_success:
            raise UpstreamDegraded(f"Ad-spend feed error: {response.status_code}")
        return response.text

    async def fetch_ad_spend_facts(self) -> List[DailyAdSpendFact]:
        if not self.settings.ad_spend_feed_url:
            logger.info("Ad-spend feed not configured; using zero ad spend")
            return []
        try:
            facts = parse_ad_spend_csv(await self._download())
        except (UpstreamDegraded, ParseError) as e:
            logger.warning("Ad-spend feed degraded; using zero ad spend", extra={"error": str(e)})
            return []
        logger.info("Fetched ad-spend feed", extra={"days": len(facts)})
        return facts

    async def fetch_ad_spend_table(self) -> List[Dict[str, Optional[str]]]:
        """All sheet rows for the summary view; raises UpstreamDegraded / ParseError."""
        if not self.settings.ad_spend_feed_url:
            raise UpstreamDegraded("Missing ad-spend feed URL")
        rows = parse_ad_spend_table(await self._download())
        logger.info("Fetched ad-spend sheet", extra={"rows": len(rows)})
        return rows
