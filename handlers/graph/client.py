# ================================================================
# File     : client.py
# Purpose  : Microsoft Graph API read-only client for Entra (Azure AD)
# Notes    : Read-only: GET + nextLink pagination. Every request is
#            issued once; any failure raises GraphAPIError.
#            - Proactive refresh if token expires in <5 minutes
# ================================================================

import os
import time
import getpass
from typing import Dict, Any, List, Optional

import msal
import requests

from core.errors import AuthenticationError, GraphAPIError
from core.utils import fncPrintMessage, fncMask

DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"
DEFAULT_GRAPH_HOST = "https://graph.microsoft.com"


class GraphClient:
    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        authority_host: str = DEFAULT_AUTHORITY_HOST,
        graph_host: str = DEFAULT_GRAPH_HOST,
        api_version: str = "v1.0",
    ):
        tenant_id = tenant_id or os.getenv("TENANTTRAIL_TENANT_ID")
        client_id = client_id or os.getenv("TENANTTRAIL_CLIENT_ID")
        client_secret = client_secret or os.getenv("TENANTTRAIL_CLIENT_SECRET")

        # Prompt interactively if any credential is missing
        if not tenant_id:
            tenant_id = input("Enter Tenant ID: ").strip()
        if not client_id:
            client_id = input("Enter Application (Client) ID: ").strip()
        if not client_secret:
            fncPrintMessage(
                "No Client Secret found. It is kept in the environment for this session only.",
                "warn",
            )
            client_secret = getpass.getpass("Enter Client Secret (input hidden): ").strip()

        os.environ["TENANTTRAIL_TENANT_ID"] = tenant_id
        os.environ["TENANTTRAIL_CLIENT_ID"] = client_id
        os.environ["TENANTTRAIL_CLIENT_SECRET"] = client_secret

        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret

        # App-only; the registration needs AuditLog.Read.All + Directory.Read.All
        self.graph_root = f"{graph_host.rstrip('/')}/{api_version}"
        self.scope = [f"{graph_host.rstrip('/')}/.default"]
        self.authority = f"{authority_host.rstrip('/')}/{tenant_id}"

        fncPrintMessage("Initialising Microsoft Graph (read-only) client...", "info")
        fncPrintMessage(f"Authority={self.authority} client_id={fncMask(client_id)}", "debug")

        try:
            self.app = msal.ConfidentialClientApplication(
                client_id=self.client_id,
                client_credential=self.client_secret,
                authority=self.authority,
            )
        except (ValueError, requests.RequestException) as ex:
            raise AuthenticationError(f"Could not initialise MSAL for {self.authority}: {ex}") from ex

        self.token: str = ""
        self._token_expires_on: int = 0  # epoch seconds
        self._set_token(self._acquire_token())

        fncPrintMessage("GraphClient initialised (read-only).", "success")

    # ---------- Token helpers ----------

    def _acquire_token(self) -> Dict[str, Any]:
        """Acquire a token using MSAL (silent -> client creds). Returns MSAL result dict."""
        fncPrintMessage("Requesting Microsoft Graph access token...", "debug")
        result = self.app.acquire_token_silent(self.scope, account=None)
        if not result:
            result = self.app.acquire_token_for_client(scopes=self.scope)
        if "access_token" not in result:
            raise AuthenticationError(
                f"MSAL authentication failed: {result.get('error_description') or result.get('error') or 'Unknown error'}"
            )
        return result

    def _set_token(self, msal_result: Dict[str, Any]) -> None:
        self.token = msal_result["access_token"]
        try:
            self._token_expires_on = int(msal_result.get("expires_on") or 0)
        except (TypeError, ValueError):
            self._token_expires_on = 0
        if not self._token_expires_on:
            self._token_expires_on = int(time.time()) + int(msal_result.get("expires_in", 3600))

    def _ensure_fresh_token(self) -> None:
        """Proactively refresh token if it expires in <5 minutes."""
        if int(time.time()) >= (self._token_expires_on - 300):
            fncPrintMessage("Refreshing access token (nearing expiry)...", "debug")
            self._set_token(self._acquire_token())

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }

    # ---------- HTTP handling ----------

    def _handle_response(self, response: requests.Response) -> Dict[str, Any]:
        status = response.status_code
        if status == 200:
            return response.json()

        if status == 429:
            fncPrintMessage(
                f"Graph throttled the request (Retry-After={response.headers.get('Retry-After', '?')}s).",
                "error",
            )
        else:
            fncPrintMessage(f"Graph API Error [{status}] -> {response.text}", "error")
        raise GraphAPIError(f"Graph API request failed with status {status}: {response.text}", status=status)

    def _request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._ensure_fresh_token()
        try:
            resp = requests.request(method, url, headers=self._auth_headers(), params=params)
        except requests.RequestException as ex:
            raise GraphAPIError(f"Graph API request to {url} failed: {ex}") from ex
        return self._handle_response(resp)

    def _url(self, endpoint: str) -> str:
        return f"{self.graph_root}/{endpoint.strip().lstrip('/')}"

    # ---------- Public API ----------

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Perform a GET request to a Graph endpoint (single page).
        Use get_all for paginated resources.
        """
        url = self._url(endpoint)
        fncPrintMessage(f"GET {url}", "debug")
        return self._request("GET", url, params=params)

    def get_all(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Retrieve all items from a paginated Graph endpoint.

        Follows @odata.nextLink until absent and returns the concatenated
        `value` arrays in arrival order. A failure on any page raises and
        the pages already fetched are dropped.
        """
        url = self._url(endpoint)
        fncPrintMessage(f"GET (all pages) {url}", "debug")

        data = self._request("GET", url, params=params)
        if not isinstance(data, dict) or "value" not in data:
            return [data] if isinstance(data, dict) else []

        items: List[Dict[str, Any]] = list(data.get("value") or [])
        next_link = data.get("@odata.nextLink")
        pages = 1

        while next_link:
            fncPrintMessage(f"Following nextLink -> {next_link}", "debug")
            # nextLink already carries the original query string
            page = self._request("GET", next_link)
            items.extend(page.get("value") or [])
            next_link = page.get("@odata.nextLink")
            pages += 1

        fncPrintMessage(f"Fetched {len(items)} item(s) across {pages} page(s)", "debug")
        return items
