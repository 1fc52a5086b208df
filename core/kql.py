# ================================================================
# File     : kql.py
# Purpose  : Canned KQL queries for outbound tenant access
# Notes    : Every query shares OUTBOUND_PREDICATE so the numbers
#            line up with the Graph-based outbound_access scan
# ================================================================

from typing import Dict, Optional, Tuple

OUTBOUND_PREDICATE = "where HomeTenantId != ResourceTenantId | where isnotempty(ResourceTenantId)"

_BASE = "SigninLogs | where TimeGenerated > ago({days}d) | " + OUTBOUND_PREDICATE

# number -> (title, default lookback days, query body after the base)
QUERIES: Dict[int, Tuple[str, int, str]] = {
    1: ("Summary: External tenants your users accessed", 30,
        "summarize AccessCount = count(), UniqueUsers = dcount(UserPrincipalName), "
        "Apps = make_set(AppDisplayName, 10) by ResourceTenantId | order by AccessCount desc"),
    2: ("Detailed: Recent outbound access logs", 30,
        "project TimeGenerated, UserPrincipalName, UserDisplayName, HomeTenantId, ResourceTenantId, "
        "AppDisplayName, ResourceDisplayName, IPAddress, ResultType | order by TimeGenerated desc | take 50"),
    3: ("By User: Which users access external tenants", 30,
        "summarize ExternalTenantCount = dcount(ResourceTenantId), TotalSignIns = count() by UserPrincipalName "
        "| where ExternalTenantCount > 0 | order by ExternalTenantCount desc"),
    4: ("By App: Which apps access external tenants", 30,
        "summarize SignInCount = count(), UniqueUsers = dcount(UserPrincipalName), "
        "ExternalTenants = make_set(ResourceTenantId, 10) by AppDisplayName | order by SignInCount desc"),
    5: ("Failed: Failed external access attempts", 30,
        "where ResultType != 0 | summarize FailedAttempts = count(), ErrorCodes = make_set(ResultType, 10) "
        "by ResourceTenantId, AppDisplayName | order by FailedAttempts desc"),
    6: ("Timeline: When external tenants were first accessed", 90,
        "summarize FirstAccess = min(TimeGenerated), LastAccess = max(TimeGenerated), TotalAccesses = count(), "
        "UniqueUsers = dcount(UserPrincipalName) by ResourceTenantId | order by FirstAccess asc"),
    7: ("By Resource: Which external resources were accessed", 30,
        "summarize AccessCount = count(), UniqueUsers = dcount(UserPrincipalName) "
        "by ResourceTenantId, ResourceDisplayName | order by AccessCount desc"),
    8: ("Trend: Daily outbound sign-ins", 30,
        "summarize SignIns = count(), UniqueUsers = dcount(UserPrincipalName), "
        "ExternalTenants = dcount(ResourceTenantId) by Day = bin(TimeGenerated, 1d) | order by Day asc"),
    9: ("New: External tenants first seen in the last 7 days", 30,
        "summarize FirstAccess = min(TimeGenerated), TotalAccesses = count(), "
        "Users = make_set(UserPrincipalName, 10) by ResourceTenantId "
        "| where FirstAccess > ago(7d) | order by FirstAccess desc"),
    10: ("By IP: Source addresses used for outbound access", 30,
         "summarize SignIns = count(), UniqueUsers = dcount(UserPrincipalName), "
         "ExternalTenants = dcount(ResourceTenantId) by IPAddress | order by SignIns desc"),
    11: ("Matrix: Users by external tenant", 30,
         "summarize SignIns = count(), Apps = make_set(AppDisplayName, 10), LastAccess = max(TimeGenerated) "
         "by UserPrincipalName, ResourceTenantId | order by SignIns desc"),
    12: ("Result codes: Outcome breakdown for outbound sign-ins", 30,
         "summarize SignIns = count(), ExternalTenants = dcount(ResourceTenantId) by ResultType "
         "| order by SignIns desc"),
}

# Raw rows for the outbound_access scan; filtering happens in Python
RAW_SIGNINS_QUERY = (
    "SigninLogs | where TimeGenerated > ago({days}d) | "
    "project TimeGenerated, UserPrincipalName, UserDisplayName, HomeTenantId, ResourceTenantId, "
    "AppDisplayName, ResourceDisplayName, IPAddress, ResultType"
)


def fncBuildQuery(number: int, days: Optional[int] = None) -> str:
    """Render query `number`; unknown numbers raise KeyError, days < 1 use the default."""
    title, default_days, body = QUERIES[int(number)]
    window = int(days) if days is not None and int(days) > 0 else default_days
    return f"{_BASE.format(days=window)} | {body}"


def fncBuildRawSignInQuery(days: int) -> str:
    return RAW_SIGNINS_QUERY.format(days=int(days))


def fncQueryCatalogue() -> list:
    return [
        {"#": n, "Title": title, "DefaultDays": days}
        for n, (title, days, _) in sorted(QUERIES.items())
    ]
