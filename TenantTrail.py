#!/usr/bin/env python3
# ================================================================
# Tool     : TenantTrail
# Purpose  : Outbound cross-tenant access audit for Entra ID
# Notes    : "Where did your users wander off to?"
# ================================================================

import sys
import argparse
from typing import List, Optional

from core.config import (
    fncInitConfig,
    fncApplyCliOverrides,
    fncIsDebug,
    fncCloudEndpoints,
    fncGetProviderConfig,
)
from core.utils import fncPrintMessage, fncSetDebug, fncDisplayBanner, fncBlurb, fncToTable
from core.module_loader import (
    fncLoadModule,
    fncRunModule,
    fncDiscoverModules,
    fncRequiredClient,
    EXIT_OK,
    EXIT_FAILURE,
)
from core.errors import TenantTrailError

PROVIDER = "entra"
VERSION = "v1.0"


# ================================================================
# Function: fncParseArguments
# Purpose  : Define and parse command-line arguments for TenantTrail
# Notes    : --help exits 0 through argparse
# ================================================================
def fncParseArguments(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        prog="TenantTrail",
        description="TenantTrail - outbound cross-tenant access audit for Entra ID",
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--scan",
        help="Scan to run: outbound_access, tenant_lookup or kql_queries",
    )
    group.add_argument(
        "--list-modules",
        action="store_true",
        help="List available scans and exit",
    )

    parser.add_argument("--days", type=int, default=None,
                        help="Lookback window in days (Graph max 30, Log Analytics max 90; default 30)")
    parser.add_argument("--source", choices=["graph", "loganalytics"], default="graph",
                        help="Sign-in source for outbound_access (default: graph)")

    parser.add_argument("--tenant-ids", nargs="*", metavar="ID", default=None,
                        help="Tenant IDs to resolve (tenant_lookup)")
    parser.add_argument("--input-file", metavar="PATH", default=None,
                        help="File with one tenant ID per line (tenant_lookup)")

    parser.add_argument("--query", type=int, metavar="N", default=None,
                        help="Canned KQL query number (kql_queries)")
    parser.add_argument("--custom-query", metavar="KQL", default=None,
                        help="Run a custom KQL query verbatim (kql_queries)")
    parser.add_argument("--list-queries", action="store_true",
                        help="List the canned KQL queries (kql_queries)")

    parser.add_argument("--export", metavar="BASE", default=None,
                        help="Export base path; files become BASE_<Table>.csv")
    parser.add_argument("--export-format", nargs="*", metavar="FMT[,FMT...]", default=None,
                        help="Export formats: csv, json (default: csv)")

    parser.add_argument("--config", metavar="PATH", default=None,
                        help="Config file (default: ~/.tenanttrail/config.json)")
    parser.add_argument("--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--no-banner", action="store_true", help="Skip the startup banner")

    return parser.parse_args(argv)


# ================================================================
# Function: fncInitClient
# Purpose  : Build only the client the selected scan needs
# Notes    : "graph" -> GraphClient (msal), "loganalytics" -> az CLI
# ================================================================
def fncInitClient(kind: Optional[str], cfg: dict):
    if kind is None:
        return None

    entra_cfg = fncGetProviderConfig(cfg, "entra")
    endpoints = fncCloudEndpoints(entra_cfg.get("cloud"))

    if kind == "graph":
        from handlers.graph.client import GraphClient

        if not all([entra_cfg.get("tenant_id"), entra_cfg.get("client_id"), entra_cfg.get("client_secret")]):
            fncPrintMessage("Missing Entra credentials, dropping into interactive mode…", "warn")
        return GraphClient(
            tenant_id=entra_cfg.get("tenant_id"),
            client_id=entra_cfg.get("client_id"),
            client_secret=entra_cfg.get("client_secret"),
            authority_host=endpoints["authority"],
            graph_host=endpoints["graph"],
        )

    if kind == "loganalytics":
        from handlers.loganalytics.client import LogAnalyticsClient

        la_cfg = fncGetProviderConfig(cfg, "loganalytics")
        return LogAnalyticsClient(
            workspace_id=la_cfg.get("workspace_id"),
            endpoint=endpoints["loganalytics"],
        )

    fncPrintMessage(f"Unsupported client type: {kind}", "error")
    return None


# ================================================================
# Function: main
# Purpose  : Main entry point for TenantTrail execution
# Notes    : Returns the process exit code
# ================================================================
def main(argv: Optional[List[str]] = None) -> int:
    args = fncParseArguments(argv)

    cfg = fncInitConfig(args.config)
    cfg = fncApplyCliOverrides(cfg, args)
    fncSetDebug(fncIsDebug(cfg))

    if args.list_modules:
        print(fncToTable([{"Scan": m} for m in fncDiscoverModules(PROVIDER)], headers=["Scan"]))
        return EXIT_OK

    if not args.no_banner:
        fncDisplayBanner(VERSION)
        fncBlurb(args.scan)
    fncPrintMessage("Debug output enabled.", "debug")

    mod = fncLoadModule(PROVIDER, args.scan)
    if mod is None or not hasattr(mod, "run"):
        fncPrintMessage(f"Available scans: {', '.join(fncDiscoverModules(PROVIDER))}", "info")
        return EXIT_FAILURE

    kind = fncRequiredClient(mod, args)
    try:
        client = fncInitClient(kind, cfg)
    except TenantTrailError as ex:
        fncPrintMessage(str(ex), "error")
        return EXIT_FAILURE
    if kind and client is None:
        fncPrintMessage("Unable to continue without a valid client.", "error")
        return EXIT_FAILURE

    outcome = fncRunModule(mod, client, args, cfg)
    return outcome["exit_code"]


if __name__ == "__main__":
    sys.exit(main())
