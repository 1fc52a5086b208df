# ================================================================
# File     : modules/entra/tenant_lookup.py
# Purpose  : Resolve tenant IDs through the OpenID discovery endpoint
# Notes    : Unauthenticated; no client needed. IDs come from
#            --tenant-ids and/or --input-file (one per line)
# ================================================================

from typing import Any, Dict, List

from core.exports import fncExportRows, fncExportList
from core.module_loader import EXIT_FAILURE
from core.tenant_resolver import fncReadTenantIds, fncResolveTenants
from core.utils import fncPrintMessage, fncToTable, fncNewRunId

REQUIRED_PERMS: List[str] = []
CLIENT = None


def _gather_ids(args) -> List[str]:
    ids = [t.strip() for t in (getattr(args, "tenant_ids", None) or []) if t and t.strip()]
    if getattr(args, "input_file", None):
        from_file = fncReadTenantIds(args.input_file)
        fncPrintMessage(f"Read {len(from_file)} tenant ID(s) from {args.input_file}", "info")
        ids.extend(from_file)
    return ids


def run(client, args, cfg: dict) -> Dict[str, Any]:
    run_id = fncNewRunId("lookup")
    ids = _gather_ids(args)
    if not ids:
        fncPrintMessage("No tenant IDs supplied. Use --tenant-ids and/or --input-file.", "error")
        return {"exit_code": EXIT_FAILURE, "run_id": run_id, "results": []}

    fncPrintMessage(f"Resolving {len(ids)} tenant ID(s) (run={run_id})", "info")
    results = fncResolveTenants(ids)
    rows = [r.to_row() for r in results]

    print(fncToTable(rows, headers=["TenantId", "ResolvedIdentifier", "Region", "RegionScope", "TokenEndpoint", "Status"]))
    print()

    valid = sum(1 for r in results if r.valid)
    fncPrintMessage(f"Resolved {valid} valid, {len(results) - valid} invalid or not found.", "success")
    fncPrintMessage("ResolvedIdentifier is taken from the authorization endpoint; it is usually the tenant GUID, not a display name.", "debug")

    if getattr(args, "export", None):
        formats = fncExportList(getattr(args, "export_format", None) or "csv")
        fncExportRows(rows, args.export, "TenantLookup", formats)

    return {"run_id": run_id, "results": rows, "valid": valid, "invalid": len(results) - valid}
