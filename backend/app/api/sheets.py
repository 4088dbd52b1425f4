# backend/app/api/sheets.py
from fastapi import APIRouter, Depends, HTTPException
import datetime as dt
import logging

from app.api.deps import get_ad_spend_source
from app.services.ad_spend import AdSpendFeedClient, summarize_ad_spend_table
from app.services.errors import ParseError, UpstreamDegraded

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sheets", tags=["sheets"])

# =====================================================
# Ad-spend sheet: raw rows + totals (spend, CTR, CPM, CPA)
# =====================================================
@router.get("/adspend")
async def sheets_adspend(source: AdSpendFeedClient = Depends(get_ad_spend_source)):
    if not source.settings.ad_spend_feed_url:
        raise HTTPException(status_code=500, detail="Missing ad-spend feed URL")
    try:
        rows = await source.fetch_ad_spend_table()
    except (UpstreamDegraded, ParseError) as e:
        logger.error("Ad-spend sheet request failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "data": rows,
        "totals": summarize_ad_spend_table(rows),
        "fetched_at": dt.datetime.now(dt.timezone.utc).isoformat(),
    }
