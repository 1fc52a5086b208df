# ================================================================
# File     : handlers/graph/signins.py
# Purpose  : Pull sign-in logs for a lookback window from Graph
# Notes    : The client is passed in; anything with get/get_all
#            (GraphClient or a test fake) will do
# ================================================================

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from core.config import DEFAULT_LOOKBACK_DAYS
from core.utils import fncPrintMessage

GRAPH_MAX_LOOKBACK_DAYS = 30
LOG_ANALYTICS_MAX_LOOKBACK_DAYS = 90
PAGE_SIZE = 999


# ================================================================
# Function: fncClampLookback
# Purpose : Keep the lookback window inside what the source retains
# Notes   : <1 or missing -> default; above maximum -> maximum
# ================================================================
def fncClampLookback(days: Optional[int], maximum: int = GRAPH_MAX_LOOKBACK_DAYS,
                     default: int = DEFAULT_LOOKBACK_DAYS) -> int:
    if days is None or int(days) < 1:
        return min(default, maximum)
    if int(days) > maximum:
        fncPrintMessage(f"Lookback of {days} days exceeds the {maximum}-day limit; using {maximum}.", "warn")
        return maximum
    return int(days)


def fncBuildSignInFilter(days: int, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    since = (now - timedelta(days=days)).astimezone(timezone.utc).replace(microsecond=0)
    return f"createdDateTime ge {since.strftime('%Y-%m-%dT%H:%M:%SZ')}"


# ================================================================
# Function: fncFetchSignIns
# Purpose : Fetch every sign-in record in the window, all pages
# Notes   : Errors propagate; there is no partial-result mode
# ================================================================
def fncFetchSignIns(client, days: int, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    params = {
        "$filter": fncBuildSignInFilter(days, now),
        "$top": PAGE_SIZE,
    }
    fncPrintMessage(f"Fetching sign-in logs for the last {days} day(s)…", "info")
    records = client.get_all("auditLogs/signIns", params=params)
    fncPrintMessage(f"Retrieved {len(records)} sign-in record(s)", "info")
    return records


def fncGetOwnTenantId(client) -> str:
    """Tenant ID of the authenticated context, read once per run."""
    data = client.get("organization", params={"$select": "id,displayName"})
    orgs = data.get("value") or []
    if orgs and orgs[0].get("id"):
        fncPrintMessage(f"Own tenant: {orgs[0].get('displayName', '')} ({orgs[0]['id']})", "info")
        return orgs[0]["id"]
    fncPrintMessage("Organisation lookup returned nothing; using the configured tenant.", "warn")
    return client.tenant_id
