# ================================================================
# File     : outbound.py
# Purpose  : Sign-in event model, outbound filter and aggregators
# Notes    : Pure functions over lists; no I/O. Grouping keys and
#            predicates mirror the canned KQL queries in core/kql.py
# ================================================================

import re
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple

SAMPLE_SIZE = 5
ERROR_CODE_SAMPLE_SIZE = 10
RECENT_EVENTS_LIMIT = 50

_FRACTION = re.compile(r"\.(\d+)")


# ---------- parsing helpers ----------

def _parse_dt(val: Any) -> Optional[datetime]:
    """Lenient ISO-8601 parse; 'Z' suffix and 7-digit fractions accepted."""
    if not val:
        return None
    if isinstance(val, datetime):
        return val if val.tzinfo else val.replace(tzinfo=timezone.utc)
    s = str(val).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    s = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _text(val: Any) -> str:
    return "" if val is None else str(val).strip()


def _iso(dt: Optional[datetime]) -> str:
    if dt is None:
        return ""
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# ---------- data model ----------

@dataclass(frozen=True)
class SignInEvent:
    timestamp: Optional[datetime]
    user_principal_name: str
    home_tenant_id: str
    resource_tenant_id: str
    app_display_name: str = ""
    resource_display_name: str = ""
    ip_address: str = ""
    result_code: str = ""
    user_display_name: str = ""

    @classmethod
    def from_graph(cls, record: Dict[str, Any]) -> "SignInEvent":
        """Map a Graph /auditLogs/signIns item."""
        status = record.get("status") or {}
        return cls(
            timestamp=_parse_dt(record.get("createdDateTime")),
            user_principal_name=_text(record.get("userPrincipalName")),
            user_display_name=_text(record.get("userDisplayName")),
            home_tenant_id=_text(record.get("homeTenantId")),
            resource_tenant_id=_text(record.get("resourceTenantId")),
            app_display_name=_text(record.get("appDisplayName")),
            resource_display_name=_text(record.get("resourceDisplayName")),
            ip_address=_text(record.get("ipAddress")),
            result_code=_text(status.get("errorCode")),
        )

    @classmethod
    def from_log_analytics(cls, row: Dict[str, Any]) -> "SignInEvent":
        """Map a SigninLogs row (column names as Log Analytics returns them)."""
        return cls(
            timestamp=_parse_dt(row.get("TimeGenerated")),
            user_principal_name=_text(row.get("UserPrincipalName")),
            user_display_name=_text(row.get("UserDisplayName")),
            home_tenant_id=_text(row.get("HomeTenantId")),
            resource_tenant_id=_text(row.get("ResourceTenantId")),
            app_display_name=_text(row.get("AppDisplayName")),
            resource_display_name=_text(row.get("ResourceDisplayName")),
            ip_address=_text(row.get("IPAddress")),
            result_code=_text(row.get("ResultType")),
        )

    @property
    def failed(self) -> bool:
        return self.result_code not in ("", "0")

    def to_row(self) -> Dict[str, Any]:
        return {
            "TimeGenerated": _iso(self.timestamp),
            "UserPrincipalName": self.user_principal_name,
            "UserDisplayName": self.user_display_name,
            "HomeTenantId": self.home_tenant_id,
            "ResourceTenantId": self.resource_tenant_id,
            "AppDisplayName": self.app_display_name,
            "ResourceDisplayName": self.resource_display_name,
            "IPAddress": self.ip_address,
            "ResultType": self.result_code,
        }


@dataclass(frozen=True)
class TenantSummary:
    external_tenant_id: str
    access_count: int
    unique_user_count: int
    sample_users: Tuple[str, ...]
    unique_app_count: int
    sample_apps: Tuple[str, ...]
    sample_resources: Tuple[str, ...]
    first_access: Optional[datetime]
    last_access: Optional[datetime]

    def to_row(self) -> Dict[str, Any]:
        return {
            "ExternalTenantId": self.external_tenant_id,
            "AccessCount": self.access_count,
            "UniqueUsers": self.unique_user_count,
            "SampleUsers": "; ".join(self.sample_users),
            "UniqueApps": self.unique_app_count,
            "SampleApps": "; ".join(self.sample_apps),
            "SampleResources": "; ".join(self.sample_resources),
            "FirstAccess": _iso(self.first_access),
            "LastAccess": _iso(self.last_access),
        }


@dataclass(frozen=True)
class UserSummary:
    user_principal_name: str
    external_tenants_count: int
    sign_in_count: int
    sample_tenants: Tuple[str, ...]
    sample_apps: Tuple[str, ...]
    first_access: Optional[datetime]
    last_access: Optional[datetime]

    def to_row(self) -> Dict[str, Any]:
        return {
            "UserPrincipalName": self.user_principal_name,
            "ExternalTenantCount": self.external_tenants_count,
            "TotalSignIns": self.sign_in_count,
            "SampleTenants": "; ".join(self.sample_tenants),
            "SampleApps": "; ".join(self.sample_apps),
            "FirstAccess": _iso(self.first_access),
            "LastAccess": _iso(self.last_access),
        }


@dataclass(frozen=True)
class AppSummary:
    app_display_name: str
    external_tenants_count: int
    sign_in_count: int
    unique_user_count: int
    sample_tenants: Tuple[str, ...]
    first_access: Optional[datetime]
    last_access: Optional[datetime]

    def to_row(self) -> Dict[str, Any]:
        return {
            "AppDisplayName": self.app_display_name,
            "ExternalTenantCount": self.external_tenants_count,
            "SignInCount": self.sign_in_count,
            "UniqueUsers": self.unique_user_count,
            "SampleTenants": "; ".join(self.sample_tenants),
            "FirstAccess": _iso(self.first_access),
            "LastAccess": _iso(self.last_access),
        }


@dataclass(frozen=True)
class TimelineEntry:
    external_tenant_id: str
    first_access: Optional[datetime]
    last_access: Optional[datetime]
    total_accesses: int
    unique_user_count: int

    def to_row(self) -> Dict[str, Any]:
        return {
            "ExternalTenantId": self.external_tenant_id,
            "FirstAccess": _iso(self.first_access),
            "LastAccess": _iso(self.last_access),
            "TotalAccesses": self.total_accesses,
            "UniqueUsers": self.unique_user_count,
        }


@dataclass(frozen=True)
class FailureSummary:
    external_tenant_id: str
    app_display_name: str
    failed_attempts: int
    error_codes: Tuple[str, ...]

    def to_row(self) -> Dict[str, Any]:
        return {
            "ExternalTenantId": self.external_tenant_id,
            "AppDisplayName": self.app_display_name,
            "FailedAttempts": self.failed_attempts,
            "ErrorCodes": "; ".join(self.error_codes),
        }


@dataclass(frozen=True)
class RunTotals:
    external_tenant_count: int = 0
    outbound_event_count: int = 0
    unique_user_count: int = 0
    unique_app_count: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


# ---------- filter ----------

# ================================================================
# Function: fncFilterOutbound
# Purpose : Keep sign-ins where our own users left our tenant
# Notes   : home == own AND resource != own AND resource non-empty;
#           order preserved; an empty result is not an error
# ================================================================
def fncFilterOutbound(events: Iterable[SignInEvent], own_tenant_id: str) -> List[SignInEvent]:
    own = _text(own_tenant_id)
    return [
        e for e in events
        if e.home_tenant_id == own
        and e.resource_tenant_id
        and e.resource_tenant_id != own
    ]


# ---------- grouping helpers ----------

def fncGroupBy(events: Iterable[SignInEvent], key: Callable[[SignInEvent], Hashable]) -> Dict[Hashable, List[SignInEvent]]:
    """Partition events by key; groups keep first-seen order."""
    groups: Dict[Hashable, List[SignInEvent]] = {}
    for e in events:
        groups.setdefault(key(e), []).append(e)
    return groups


def _distinct_sample(values: Iterable[str], limit: int = SAMPLE_SIZE) -> Tuple[str, ...]:
    out: List[str] = []
    for v in values:
        if v and v not in out:
            out.append(v)
            if len(out) >= limit:
                break
    return tuple(out)


def _distinct_count(values: Iterable[str]) -> int:
    return len({v for v in values if v})


def _time_bounds(group: List[SignInEvent]) -> Tuple[Optional[datetime], Optional[datetime]]:
    stamps = [e.timestamp for e in group if e.timestamp is not None]
    if not stamps:
        return None, None
    return min(stamps), max(stamps)


# ---------- aggregators ----------

def fncAggregateByTenant(events: List[SignInEvent], sample_size: int = SAMPLE_SIZE) -> List[TenantSummary]:
    out = []
    for tenant_id, group in fncGroupBy(events, lambda e: e.resource_tenant_id).items():
        first, last = _time_bounds(group)
        out.append(TenantSummary(
            external_tenant_id=tenant_id,
            access_count=len(group),
            unique_user_count=_distinct_count(e.user_principal_name for e in group),
            sample_users=_distinct_sample((e.user_principal_name for e in group), sample_size),
            unique_app_count=_distinct_count(e.app_display_name for e in group),
            sample_apps=_distinct_sample((e.app_display_name for e in group), sample_size),
            sample_resources=_distinct_sample((e.resource_display_name for e in group), sample_size),
            first_access=first,
            last_access=last,
        ))
    return sorted(out, key=lambda s: s.access_count, reverse=True)


def fncAggregateByUser(events: List[SignInEvent], sample_size: int = SAMPLE_SIZE) -> List[UserSummary]:
    out = []
    for upn, group in fncGroupBy(events, lambda e: e.user_principal_name).items():
        first, last = _time_bounds(group)
        out.append(UserSummary(
            user_principal_name=upn,
            external_tenants_count=_distinct_count(e.resource_tenant_id for e in group),
            sign_in_count=len(group),
            sample_tenants=_distinct_sample((e.resource_tenant_id for e in group), sample_size),
            sample_apps=_distinct_sample((e.app_display_name for e in group), sample_size),
            first_access=first,
            last_access=last,
        ))
    return sorted(out, key=lambda s: s.external_tenants_count, reverse=True)


def fncAggregateByApp(events: List[SignInEvent], sample_size: int = SAMPLE_SIZE) -> List[AppSummary]:
    out = []
    for app, group in fncGroupBy(events, lambda e: e.app_display_name).items():
        first, last = _time_bounds(group)
        out.append(AppSummary(
            app_display_name=app,
            external_tenants_count=_distinct_count(e.resource_tenant_id for e in group),
            sign_in_count=len(group),
            unique_user_count=_distinct_count(e.user_principal_name for e in group),
            sample_tenants=_distinct_sample((e.resource_tenant_id for e in group), sample_size),
            first_access=first,
            last_access=last,
        ))
    return sorted(out, key=lambda s: s.external_tenants_count, reverse=True)


# ================================================================
# Function: fncBuildTimeline
# Purpose : When was each external tenant first/last reached
# Notes   : Oldest first; tenants without timestamps go last
# ================================================================
def fncBuildTimeline(events: List[SignInEvent]) -> List[TimelineEntry]:
    out = []
    for tenant_id, group in fncGroupBy(events, lambda e: e.resource_tenant_id).items():
        first, last = _time_bounds(group)
        out.append(TimelineEntry(
            external_tenant_id=tenant_id,
            first_access=first,
            last_access=last,
            total_accesses=len(group),
            unique_user_count=_distinct_count(e.user_principal_name for e in group),
        ))
    return sorted(out, key=lambda t: (t.first_access is None, t.first_access or datetime.min.replace(tzinfo=timezone.utc)))


def fncAggregateFailures(events: List[SignInEvent]) -> List[FailureSummary]:
    failed = [e for e in events if e.failed]
    out = []
    for (tenant_id, app), group in fncGroupBy(failed, lambda e: (e.resource_tenant_id, e.app_display_name)).items():
        out.append(FailureSummary(
            external_tenant_id=tenant_id,
            app_display_name=app,
            failed_attempts=len(group),
            error_codes=_distinct_sample((e.result_code for e in group), ERROR_CODE_SAMPLE_SIZE),
        ))
    return sorted(out, key=lambda f: f.failed_attempts, reverse=True)


def fncRecentEvents(events: List[SignInEvent], limit: int = RECENT_EVENTS_LIMIT) -> List[SignInEvent]:
    """Newest first; undated events sink to the bottom."""
    dated = sorted((e for e in events if e.timestamp is not None), key=lambda e: e.timestamp, reverse=True)
    undated = [e for e in events if e.timestamp is None]
    return (dated + undated)[:limit]


def fncRunTotals(events: List[SignInEvent]) -> RunTotals:
    return RunTotals(
        external_tenant_count=_distinct_count(e.resource_tenant_id for e in events),
        outbound_event_count=len(events),
        unique_user_count=_distinct_count(e.user_principal_name for e in events),
        unique_app_count=_distinct_count(e.app_display_name for e in events),
    )


@dataclass(frozen=True)
class OutboundReport:
    events: Tuple[SignInEvent, ...]
    tenants: Tuple[TenantSummary, ...]
    users: Tuple[UserSummary, ...]
    apps: Tuple[AppSummary, ...]
    timeline: Tuple[TimelineEntry, ...]
    failures: Tuple[FailureSummary, ...]
    recent: Tuple[SignInEvent, ...]
    totals: RunTotals

    @property
    def empty(self) -> bool:
        return not self.events

    def tables(self) -> Dict[str, List[Dict[str, Any]]]:
        """Row dicts per table, keyed by export suffix."""
        return {
            "ExternalTenantSummary": [t.to_row() for t in self.tenants],
            "UserSummary": [u.to_row() for u in self.users],
            "AppSummary": [a.to_row() for a in self.apps],
            "Timeline": [t.to_row() for t in self.timeline],
            "FailedAccess": [f.to_row() for f in self.failures],
            "DetailedLogs": [e.to_row() for e in self.events],
        }


def fncBuildReport(outbound_events: List[SignInEvent], sample_size: int = SAMPLE_SIZE) -> OutboundReport:
    events = list(outbound_events)
    return OutboundReport(
        events=tuple(events),
        tenants=tuple(fncAggregateByTenant(events, sample_size)),
        users=tuple(fncAggregateByUser(events, sample_size)),
        apps=tuple(fncAggregateByApp(events, sample_size)),
        timeline=tuple(fncBuildTimeline(events)),
        failures=tuple(fncAggregateFailures(events)),
        recent=tuple(fncRecentEvents(events)),
        totals=fncRunTotals(events),
    )
