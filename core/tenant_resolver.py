# ================================================================
# File     : tenant_resolver.py
# Purpose  : Resolve tenant IDs via the unauthenticated OpenID
#            discovery document
# Notes    : fncResolveTenant never raises; one bad ID yields an
#            "Invalid or Not Found" row and the batch carries on.
#            resolved_id is whatever authorization_endpoint carries
#            (normally the same GUID), not a friendly display name.
# ================================================================

import re
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import requests

from core.errors import MissingInputFile, UnreadableInputFile
from core.utils import fncPrintMessage

DISCOVERY_URL = "https://login.microsoftonline.com/{tenant_id}/.well-known/openid-configuration"
AUTHZ_TENANT_PATTERN = re.compile(r"login\.microsoftonline\.com/([^/]+)")

STATUS_VALID = "Valid"
STATUS_INVALID = "Invalid or Not Found"
REGION_COMMERCIAL = "Commercial"
REGION_US_GOV = "US Government"
REGION_UNKNOWN = "Unknown"
NOT_APPLICABLE = "N/A"


@dataclass(frozen=True)
class TenantLookupResult:
    tenant_id: str
    resolved_id: str = NOT_APPLICABLE
    issuer: str = NOT_APPLICABLE
    region: str = REGION_UNKNOWN
    region_scope: str = NOT_APPLICABLE
    token_endpoint: str = NOT_APPLICABLE
    status: str = STATUS_INVALID

    @property
    def valid(self) -> bool:
        return self.status == STATUS_VALID

    def to_row(self) -> Dict[str, Any]:
        return {
            "TenantId": self.tenant_id,
            "ResolvedIdentifier": self.resolved_id,
            "Region": self.region,
            "RegionScope": self.region_scope,
            "Issuer": self.issuer,
            "TokenEndpoint": self.token_endpoint,
            "Status": self.status,
        }


def fncClassifyRegion(issuer: str) -> str:
    """Substring heuristic, case-sensitive. Best effort only."""
    return REGION_US_GOV if ".us" in (issuer or "") else REGION_COMMERCIAL


def fncExtractTenantFromAuthzEndpoint(endpoint: str) -> Optional[str]:
    m = AUTHZ_TENANT_PATTERN.search(endpoint or "")
    return m.group(1) if m else None


# ================================================================
# Function: fncResolveTenant
# Purpose : Look one tenant ID up against the discovery endpoint
# Notes   : Input is not validated; anything is attempted. Network,
#           HTTP, JSON and missing-field failures all map to the
#           invalid sentinel row
# ================================================================
def fncResolveTenant(tenant_id: str, session: Optional[requests.Session] = None) -> TenantLookupResult:
    tenant_id = "" if tenant_id is None else str(tenant_id).strip()
    url = DISCOVERY_URL.format(tenant_id=tenant_id)
    http = session or requests
    fncPrintMessage(f"GET {url}", "debug")

    try:
        resp = http.get(url, headers={"Accept": "application/json"})
        if resp.status_code != 200:
            fncPrintMessage(f"{tenant_id}: discovery returned HTTP {resp.status_code}", "debug")
            return TenantLookupResult(tenant_id=tenant_id)
        doc = resp.json()
    except (requests.RequestException, ValueError) as ex:
        fncPrintMessage(f"{tenant_id}: discovery lookup failed: {ex}", "debug")
        return TenantLookupResult(tenant_id=tenant_id)

    if not isinstance(doc, dict):
        return TenantLookupResult(tenant_id=tenant_id)
    issuer = doc.get("issuer")
    authz = doc.get("authorization_endpoint")
    if not isinstance(issuer, str) or not isinstance(authz, str) or not issuer or not authz:
        fncPrintMessage(f"{tenant_id}: discovery document lacks issuer/authorization_endpoint", "debug")
        return TenantLookupResult(tenant_id=tenant_id)

    return TenantLookupResult(
        tenant_id=tenant_id,
        resolved_id=fncExtractTenantFromAuthzEndpoint(authz) or NOT_APPLICABLE,
        issuer=issuer,
        region=fncClassifyRegion(issuer),
        region_scope=str(doc.get("tenant_region_scope") or NOT_APPLICABLE),
        token_endpoint=str(doc.get("token_endpoint") or NOT_APPLICABLE),
        status=STATUS_VALID,
    )


def fncResolveTenants(tenant_ids: Iterable[str], session: Optional[requests.Session] = None) -> List[TenantLookupResult]:
    results = []
    for tid in tenant_ids:
        result = fncResolveTenant(tid, session=session)
        level = "success" if result.valid else "warn"
        fncPrintMessage(f"{result.tenant_id or '(empty)'} → {result.status}", level)
        results.append(result)
    return results


# ================================================================
# Function: fncReadTenantIds
# Purpose : Read one tenant ID per line from a text file
# Notes   : Lines trimmed; blanks skipped; missing file raises
#           MissingInputFile (exit code 1 at the CLI); undecodable
#           or unreadable files raise UnreadableInputFile
# ================================================================
def fncReadTenantIds(path: str) -> List[str]:
    p = pathlib.Path(path).expanduser()
    if not p.is_file():
        raise MissingInputFile(str(path))
    try:
        with open(p, "r", encoding="utf-8-sig") as f:
            return [line.strip() for line in f if line.strip()]
    except (UnicodeDecodeError, OSError) as ex:
        raise UnreadableInputFile(str(path), str(ex)) from ex
