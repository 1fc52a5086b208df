# ================================================================
# File     : modules/entra/outbound_access.py
# Purpose  : Audit which external tenants our own users signed in to
# Notes    : fetch -> filter -> aggregate -> render -> export -> totals
#            Sources: Graph sign-in logs (default) or a Log Analytics
#            workspace through the Azure CLI
# ================================================================

from datetime import datetime, timezone
from typing import Any, Dict, List

from core.exports import (
    fncRenderOutboundReport,
    fncExportOutboundReport,
    fncPrintRunTotals,
    fncExportList,
)
from core.kql import fncBuildRawSignInQuery
from core.outbound import SignInEvent, fncFilterOutbound, fncBuildReport
from core.utils import fncPrintMessage, fncNewRunId
from handlers.graph.signins import (
    fncClampLookback,
    fncFetchSignIns,
    fncGetOwnTenantId,
    GRAPH_MAX_LOOKBACK_DAYS,
    LOG_ANALYTICS_MAX_LOOKBACK_DAYS,
)

REQUIRED_PERMS = ["AuditLog.Read.All", "Directory.Read.All"]
CLIENT = "graph"


def client_kind(args) -> str:
    return "loganalytics" if getattr(args, "source", "graph") == "loganalytics" else CLIENT


def _collect_graph(client, days: int):
    own = fncGetOwnTenantId(client)
    records = fncFetchSignIns(client, days)
    return own, [SignInEvent.from_graph(r) for r in records]


def _collect_loganalytics(client, days: int, cfg: dict):
    client.ensure_login()
    own = cfg["providers"]["entra"].get("tenant_id") or client.tenant_id()
    fncPrintMessage(f"Querying SigninLogs for the last {days} day(s)…", "info")
    rows = client.query_records(fncBuildRawSignInQuery(days))
    fncPrintMessage(f"Retrieved {len(rows)} sign-in row(s)", "info")
    return own, [SignInEvent.from_log_analytics(r) for r in rows]


# ================================================================
# Function: run
# Purpose : Entry point for the outbound access scan
# Notes   : Zero outbound events is a normal, successful outcome
# ================================================================
def run(client, args, cfg: dict) -> Dict[str, Any]:
    run_id = fncNewRunId("outbound")
    source = getattr(args, "source", "graph") or "graph"
    maximum = LOG_ANALYTICS_MAX_LOOKBACK_DAYS if source == "loganalytics" else GRAPH_MAX_LOOKBACK_DAYS
    days = fncClampLookback(cfg["defaults"].get("lookback_days"), maximum=maximum)
    sample_size = int(cfg["defaults"].get("sample_size") or 5)
    fncPrintMessage(f"Running outbound access audit (run={run_id}, source={source}, days={days})", "info")

    if source == "loganalytics":
        own_tenant, events = _collect_loganalytics(client, days, cfg)
    else:
        own_tenant, events = _collect_graph(client, days)

    outbound = fncFilterOutbound(events, own_tenant)
    fncPrintMessage(f"{len(outbound)} of {len(events)} sign-in(s) left tenant {own_tenant}", "info")

    report = fncBuildReport(outbound, sample_size=sample_size)
    fncRenderOutboundReport(report)

    meta = {
        "run_id": run_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": source,
        "own_tenant_id": own_tenant,
        "days": days,
    }

    formats = fncExportList(getattr(args, "export_format", None) or "csv")
    exported: List[str] = []
    if getattr(args, "export", None):
        exported = fncExportOutboundReport(report, args.export, formats, meta=meta)

    fncPrintRunTotals(report.totals)
    if report.empty:
        fncPrintMessage("Outbound access audit complete. Nobody wandered off.", "success")
    else:
        fncPrintMessage(
            f"Outbound access audit complete. {report.totals.external_tenant_count} external tenant(s) reached.",
            "success",
        )

    data = dict(meta)
    data.update(report.tables())
    data["totals"] = report.totals.as_dict()
    data["exported"] = exported
    return data
