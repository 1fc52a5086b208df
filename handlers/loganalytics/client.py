# ================================================================
# File     : handlers/loganalytics/client.py
# Purpose  : Run KQL against a Log Analytics workspace via `az rest`
# Notes    : Piggybacks on the operator's `az login` session; no
#            credentials are handled here. One call per query.
# ================================================================

import json
import subprocess
from typing import Any, Dict, List, Optional, Tuple

from core.errors import AuthenticationError, LogAnalyticsError
from core.utils import fncPrintMessage

DEFAULT_ENDPOINT = "https://api.loganalytics.io"


class LogAnalyticsClient:
    def __init__(self, workspace_id: str, endpoint: str = DEFAULT_ENDPOINT, az_path: str = "az"):
        if not workspace_id:
            workspace_id = input("Enter Log Analytics Workspace ID: ").strip()
        self.workspace_id = workspace_id
        self.endpoint = endpoint.rstrip("/")
        self.az_path = az_path
        self.query_url = f"{self.endpoint}/v1/workspaces/{self.workspace_id}/query"
        self._account: Optional[Dict[str, Any]] = None

    def _az(self, *args: str) -> subprocess.CompletedProcess:
        cmd = [self.az_path, *args]
        fncPrintMessage(f"Running: {' '.join(cmd[:4])} …", "debug")
        try:
            return subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as ex:
            raise AuthenticationError(f"Azure CLI not found ('{self.az_path}'). Install it and run 'az login'.") from ex

    # ================================================================
    # Function: ensure_login
    # Purpose : Confirm the Azure CLI has a signed-in account
    # Notes   : Caches the `az account show` payload for tenant_id()
    # ================================================================
    def ensure_login(self) -> Dict[str, Any]:
        fncPrintMessage("Checking Azure CLI login status...", "debug")
        result = self._az("account", "show", "--output", "json")
        if result.returncode != 0:
            raise AuthenticationError("Not logged into Azure. Run 'az login' first.")
        try:
            self._account = json.loads(result.stdout or "{}")
        except ValueError as ex:
            raise AuthenticationError(f"Unreadable 'az account show' output: {ex}") from ex
        fncPrintMessage(f"Azure CLI signed in as {(self._account.get('user') or {}).get('name', '?')}", "debug")
        return self._account

    def tenant_id(self) -> str:
        account = self._account or self.ensure_login()
        return account.get("tenantId") or ""

    # ================================================================
    # Function: query
    # Purpose : POST a KQL query and return (columns, rows) of table 0
    # Notes   : CLI failure or an "error" payload -> LogAnalyticsError
    #           carrying the raw output
    # ================================================================
    def query(self, kql: str) -> Tuple[List[str], List[List[Any]]]:
        body = json.dumps({"query": kql})
        result = self._az("rest", "--method", "post", "--url", self.query_url, "--body", body)
        output = (result.stdout or "").strip()

        if result.returncode != 0:
            raise LogAnalyticsError(f"Query failed: {(result.stderr or output).strip()}")
        try:
            data = json.loads(output or "{}")
        except ValueError as ex:
            raise LogAnalyticsError(f"Query returned non-JSON output: {output[:500]}") from ex
        if "error" in data:
            raise LogAnalyticsError(f"Query failed: {json.dumps(data['error'], indent=2)}")

        tables = data.get("tables") or []
        if not tables:
            return [], []
        table = tables[0]
        columns = [c.get("name", "") for c in table.get("columns") or []]
        return columns, list(table.get("rows") or [])

    def query_records(self, kql: str) -> List[Dict[str, Any]]:
        columns, rows = self.query(kql)
        return [dict(zip(columns, row)) for row in rows]
