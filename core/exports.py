# ================================================================
# File     : exports.py
# Purpose  : Console rendering and CSV/JSON export for TenantTrail
# Notes    : Export files are named <base>_<Suffix>.csv; the folder
#            holding <base> is created when missing
# ================================================================

import pathlib
from typing import Any, Dict, Iterable, List, Optional

from core.outbound import (
    OutboundReport, RunTotals, SignInEvent, TenantSummary, UserSummary,
    AppSummary, TimelineEntry, FailureSummary,
)
from core.utils import fncPrintMessage, fncEnsureFolder, fncExportCSV, fncWriteJSON, fncToTable

NO_OUTBOUND_MESSAGE = "No outbound access found"

# Header-only CSVs must carry the same columns as populated ones
_CSV_HEADERS = {
    "ExternalTenantSummary": list(TenantSummary("", 0, 0, (), 0, (), (), None, None).to_row()),
    "UserSummary": list(UserSummary("", 0, 0, (), (), None, None).to_row()),
    "AppSummary": list(AppSummary("", 0, 0, 0, (), None, None).to_row()),
    "Timeline": list(TimelineEntry("", None, None, 0, 0).to_row()),
    "FailedAccess": list(FailureSummary("", "", 0, ()).to_row()),
    "DetailedLogs": list(SignInEvent(None, "", "", "").to_row()),
}

# (table key, console title, console headers, max console rows)
_CONSOLE_TABLES = [
    ("ExternalTenantSummary", "External tenants accessed by your users",
     ["ExternalTenantId", "AccessCount", "UniqueUsers", "SampleUsers", "UniqueApps", "SampleApps", "FirstAccess", "LastAccess"], None),
    ("UserSummary", "Users accessing external tenants",
     ["UserPrincipalName", "ExternalTenantCount", "TotalSignIns", "SampleTenants", "LastAccess"], None),
    ("AppSummary", "Applications used for outbound access",
     ["AppDisplayName", "ExternalTenantCount", "SignInCount", "UniqueUsers", "SampleTenants"], None),
    ("Timeline", "Timeline: first and last access per tenant",
     ["ExternalTenantId", "FirstAccess", "LastAccess", "TotalAccesses", "UniqueUsers"], None),
    ("FailedAccess", "Failed outbound access attempts",
     ["ExternalTenantId", "AppDisplayName", "FailedAttempts", "ErrorCodes"], None),
]

_RECENT_HEADERS = ["TimeGenerated", "UserPrincipalName", "ResourceTenantId", "AppDisplayName", "IPAddress", "ResultType"]


# ================================================================
# Function: fncExportList
# Purpose  : Flatten --export-format values ("csv,json" / "csv json")
# ================================================================
def fncExportList(args_export) -> set:
    if not args_export:
        return set()
    if isinstance(args_export, str):
        args_export = [args_export]
    out = set()
    for chunk in args_export:
        for part in str(chunk).replace(",", " ").split():
            out.add(part.strip().lower())
    return out


def fncExportTarget(base: str) -> pathlib.Path:
    """Resolve an export base path and make sure its folder exists."""
    p = pathlib.Path(base).expanduser()
    fncEnsureFolder(p.parent)
    return p


def _with_suffix(base: pathlib.Path, suffix: str, ext: str) -> str:
    return str(base.parent / f"{base.name}_{suffix}.{ext}")


# ================================================================
# Function: fncPrintRunTotals
# Purpose  : Final counts; printed on every run, zeros included
# ================================================================
def fncPrintRunTotals(totals: RunTotals) -> None:
    fncPrintMessage("Run totals", "info")
    print(fncToTable(
        [
            {"Metric": "External tenants", "Value": totals.external_tenant_count},
            {"Metric": "Outbound sign-ins", "Value": totals.outbound_event_count},
            {"Metric": "Distinct users", "Value": totals.unique_user_count},
            {"Metric": "Distinct applications", "Value": totals.unique_app_count},
        ],
        headers=["Metric", "Value"],
    ))


# ================================================================
# Function: fncRenderOutboundReport
# Purpose  : Print every outbound table, or the no-results notice
# Notes    : Totals are printed separately (fncPrintRunTotals)
# ================================================================
def fncRenderOutboundReport(report: OutboundReport, recent_rows: int = 50) -> None:
    if report.empty:
        fncPrintMessage(NO_OUTBOUND_MESSAGE, "warn")
        return

    tables = report.tables()
    for key, title, headers, max_rows in _CONSOLE_TABLES:
        rows = tables[key]
        fncPrintMessage(f"{title} ({len(rows)})", "info")
        print(fncToTable(rows, headers=headers, max_rows=max_rows))
        print()

    fncPrintMessage(f"Most recent outbound sign-ins (top {recent_rows})", "info")
    print(fncToTable([e.to_row() for e in report.recent[:recent_rows]], headers=_RECENT_HEADERS))
    print()


# ================================================================
# Function: fncExportOutboundReport
# Purpose  : Write each outbound table to its own CSV, plus JSON
# Notes    : Empty tables still get a header-only CSV
# ================================================================
def fncExportOutboundReport(report: OutboundReport, base: str, formats: set,
                            meta: Optional[Dict[str, Any]] = None) -> List[str]:
    target = fncExportTarget(base)
    written: List[str] = []
    tables = report.tables()

    if "csv" in formats:
        for suffix, rows in tables.items():
            path = _with_suffix(target, suffix, "csv")
            fncExportCSV(path, rows, headers=_CSV_HEADERS[suffix])
            written.append(path)

    if "json" in formats:
        path = str(target.parent / f"{target.name}.json")
        payload = dict(meta or {})
        payload["totals"] = report.totals.as_dict()
        payload.update(tables)
        fncWriteJSON(path, payload)
        written.append(path)

    if written:
        fncPrintMessage(f"Exports written → {target.parent}", "success")
    return written


def fncExportRows(rows: Iterable[Dict[str, Any]], base: str, suffix: str, formats: set,
                  headers: Optional[List[str]] = None) -> List[str]:
    """Single-table export used by tenant_lookup and kql_queries."""
    target = fncExportTarget(base)
    rows = list(rows)
    written: List[str] = []
    if "csv" in formats:
        path = _with_suffix(target, suffix, "csv")
        fncExportCSV(path, rows, headers=headers)
        written.append(path)
    if "json" in formats:
        path = _with_suffix(target, suffix, "json")
        fncWriteJSON(path, {"rows": rows})
        written.append(path)
    return written


