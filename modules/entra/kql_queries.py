# ================================================================
# File     : modules/entra/kql_queries.py
# Purpose  : Run the canned outbound-access KQL queries (or a custom
#            one) against a Log Analytics workspace
# Notes    : Uses the operator's `az login`; --list-queries needs
#            no client at all
# ================================================================

from typing import Any, Dict

from core.exports import fncExportRows, fncExportList
from core.kql import fncBuildQuery, fncQueryCatalogue, QUERIES
from core.module_loader import EXIT_FAILURE
from core.utils import fncPrintMessage, fncToTable, fncNewRunId
from handlers.graph.signins import fncClampLookback, LOG_ANALYTICS_MAX_LOOKBACK_DAYS

REQUIRED_PERMS = ["Log Analytics Reader (workspace)"]
CLIENT = "loganalytics"


def client_kind(args):
    return None if getattr(args, "list_queries", False) else CLIENT


def _print_catalogue() -> None:
    fncPrintMessage("Outbound tenant access queries", "info")
    print(fncToTable(fncQueryCatalogue(), headers=["#", "Title", "DefaultDays"]))


def run(client, args, cfg: dict) -> Dict[str, Any]:
    if getattr(args, "list_queries", False):
        _print_catalogue()
        return {"queries": fncQueryCatalogue()}

    run_id = fncNewRunId("kql")
    custom = getattr(args, "custom_query", None)
    number = getattr(args, "query", None)

    if custom:
        kql, label, suffix = custom, "Custom query", "CustomQuery"
    elif number is not None and int(number) in QUERIES:
        days = fncClampLookback(getattr(args, "days", None), maximum=LOG_ANALYTICS_MAX_LOOKBACK_DAYS,
                                default=QUERIES[int(number)][1])
        kql = fncBuildQuery(number, days)
        label, suffix = QUERIES[int(number)][0], f"Query{int(number)}"
    else:
        fncPrintMessage(f"Invalid query number. Use 1-{len(QUERIES)} or --custom-query.", "error")
        _print_catalogue()
        return {"exit_code": EXIT_FAILURE, "run_id": run_id}

    client.ensure_login()
    fncPrintMessage(f"{label} (run={run_id})", "info")
    fncPrintMessage(kql, "debug")
    fncPrintMessage("Running query...", "info")

    columns, rows = client.query(kql)
    records = [dict(zip(columns, ["" if v is None else v for v in row])) for row in rows]

    if not records:
        fncPrintMessage("No results found.", "warn")
    else:
        print(fncToTable(records, headers=columns))
        print()
        fncPrintMessage(f"Total rows: {len(records)}", "success")

    if getattr(args, "export", None):
        formats = fncExportList(getattr(args, "export_format", None) or "csv")
        fncExportRows(records, args.export, suffix, formats, headers=columns)

    return {"run_id": run_id, "query": kql, "columns": columns, "rows": records}
