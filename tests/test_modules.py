import json
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from conftest import FakeGraphClient, OWN, load_fixture
from core.errors import GraphAPIError
from core.module_loader import (
    EXIT_FAILURE,
    EXIT_MISSING_INPUT,
    EXIT_OK,
    fncDiscoverModules,
    fncLoadModule,
    fncRequiredClient,
    fncRunModule,
)
from core.tenant_resolver import TenantLookupResult, STATUS_VALID
from modules.entra import kql_queries, outbound_access, tenant_lookup


def _args(**kw):
    base = dict(source="graph", export=None, export_format=None, tenant_ids=None, input_file=None,
                query=None, custom_query=None, list_queries=False, days=None)
    base.update(kw)
    return SimpleNamespace(**base)


def test_discover_and_load():
    assert fncDiscoverModules("entra") == ["kql_queries", "outbound_access", "tenant_lookup"]
    assert fncLoadModule("entra", "outbound_access") is outbound_access
    assert fncLoadModule("entra", "does_not_exist") is None


def test_required_client():
    assert fncRequiredClient(outbound_access, _args()) == "graph"
    assert fncRequiredClient(outbound_access, _args(source="loganalytics")) == "loganalytics"
    assert fncRequiredClient(tenant_lookup, _args()) is None
    assert fncRequiredClient(kql_queries, _args(list_queries=True)) is None
    assert fncRequiredClient(kql_queries, _args(query=1)) == "loganalytics"


# ---------- outbound_access ----------

def test_outbound_graph_end_to_end(fake_graph, cfg, tmp_path):
    result = fncRunModule(outbound_access, fake_graph, _args(export=str(tmp_path / "out" / "audit")), cfg)

    assert result["exit_code"] == EXIT_OK
    data = result["result"]
    assert data["own_tenant_id"] == OWN
    assert data["days"] == 30
    assert data["totals"] == {
        "external_tenant_count": 1,
        "outbound_event_count": 2,
        "unique_user_count": 2,
        "unique_app_count": 2,
    }
    summary = data["ExternalTenantSummary"]
    assert summary[0]["ExternalTenantId"] == "fabrikam-tenant"
    assert summary[0]["AccessCount"] == 2
    assert data["FailedAccess"][0]["ErrorCodes"] == "50076"
    assert (tmp_path / "out" / "audit_ExternalTenantSummary.csv").is_file()
    assert (tmp_path / "out" / "audit_DetailedLogs.csv").is_file()


def test_outbound_no_results_is_success(cfg, capsys):
    client = FakeGraphClient(records=[
        {"homeTenantId": OWN, "resourceTenantId": OWN, "userPrincipalName": "a@contoso.com"},
    ])
    result = fncRunModule(outbound_access, client, _args(), cfg)
    assert result["exit_code"] == EXIT_OK
    assert all(v == 0 for v in result["result"]["totals"].values())
    assert "No outbound access found" in capsys.readouterr().out


def test_outbound_lookback_is_clamped(fake_graph, cfg):
    cfg["defaults"]["lookback_days"] = 400
    result = fncRunModule(outbound_access, fake_graph, _args(), cfg)
    assert result["result"]["days"] == 30


def test_outbound_fetch_failure_is_fatal(cfg):
    client = FakeGraphClient()
    client.get_all = Mock(side_effect=GraphAPIError("Graph API request failed with status 403", status=403))
    result = fncRunModule(outbound_access, client, _args(), cfg)
    assert result["exit_code"] == EXIT_FAILURE
    assert "403" in result["error"]


def test_outbound_from_log_analytics(cfg):
    la = Mock()
    la.tenant_id.return_value = OWN
    table = load_fixture("la_query_response.json")["tables"][0]
    cols = [c["name"] for c in table["columns"]]
    la.query_records.return_value = [dict(zip(cols, r)) for r in table["rows"]]

    result = fncRunModule(outbound_access, la, _args(source="loganalytics"), cfg)

    la.ensure_login.assert_called_once()
    kql = la.query_records.call_args[0][0]
    assert "ago(30d)" in kql
    data = result["result"]
    assert data["source"] == "loganalytics"
    assert [r["ExternalTenantId"] for r in data["ExternalTenantSummary"]] == ["northwind-tenant"]


def test_outbound_log_analytics_prefers_configured_tenant(cfg):
    cfg["providers"]["entra"]["tenant_id"] = "configured"
    la = Mock()
    la.query_records.return_value = []
    result = fncRunModule(outbound_access, la, _args(source="loganalytics"), cfg)
    assert result["result"]["own_tenant_id"] == "configured"
    la.tenant_id.assert_not_called()


# ---------- tenant_lookup ----------

def test_tenant_lookup_merges_cli_and_file(cfg, tmp_path):
    ids_file = tmp_path / "ids.txt"
    ids_file.write_text("b\n\n c \n", encoding="utf-8")
    seen = []

    def fake_resolve(ids):
        ids = list(ids)
        seen.extend(ids)
        return [TenantLookupResult(tenant_id=i, status=STATUS_VALID, resolved_id=i) for i in ids]

    with patch("modules.entra.tenant_lookup.fncResolveTenants", side_effect=fake_resolve):
        result = fncRunModule(tenant_lookup, None, _args(tenant_ids=["a"], input_file=str(ids_file),
                                                          export=str(tmp_path / "lookup")), cfg)

    assert seen == ["a", "b", "c"]
    assert result["exit_code"] == EXIT_OK
    assert result["result"]["valid"] == 3
    assert (tmp_path / "lookup_TenantLookup.csv").is_file()


def test_tenant_lookup_missing_file_exit_one(cfg, tmp_path):
    result = fncRunModule(tenant_lookup, None, _args(input_file=str(tmp_path / "missing.txt")), cfg)
    assert result["exit_code"] == EXIT_MISSING_INPUT


def test_tenant_lookup_without_ids(cfg):
    assert fncRunModule(tenant_lookup, None, _args(), cfg)["exit_code"] == EXIT_FAILURE


# ---------- kql_queries ----------

def test_kql_list_queries(cfg, capsys):
    result = fncRunModule(kql_queries, None, _args(list_queries=True), cfg)
    assert result["exit_code"] == EXIT_OK
    assert "Summary: External tenants" in capsys.readouterr().out


def test_kql_runs_canned_query_and_exports(cfg, tmp_path, capsys):
    la = Mock()
    la.query.return_value = (["ResourceTenantId", "AccessCount"], [["t1", 5], ["t2", None]])
    result = fncRunModule(kql_queries, la, _args(query=1, export=str(tmp_path / "kql")), cfg)

    assert result["exit_code"] == EXIT_OK
    assert "summarize AccessCount" in la.query.call_args[0][0]
    assert result["result"]["rows"][1] == {"ResourceTenantId": "t2", "AccessCount": ""}
    assert "Total rows: 2" in capsys.readouterr().out
    assert (tmp_path / "kql_Query1.csv").is_file()


def test_kql_no_rows(cfg, capsys):
    la = Mock()
    la.query.return_value = (["ResourceTenantId"], [])
    fncRunModule(kql_queries, la, _args(custom_query="SigninLogs | take 0"), cfg)
    la.query.assert_called_once_with("SigninLogs | take 0")
    assert "No results found." in capsys.readouterr().out


@pytest.mark.parametrize("number", [None, 0, 13])
def test_kql_invalid_number(cfg, number):
    la = Mock()
    result = fncRunModule(kql_queries, la, _args(query=number), cfg)
    assert result["exit_code"] == EXIT_FAILURE
    la.query.assert_not_called()


@pytest.mark.parametrize("days, expected", [(-5, "ago(30d)"), (400, "ago(90d)"), (14, "ago(14d)")])
def test_kql_days_are_clamped(cfg, days, expected):
    la = Mock()
    la.query.return_value = ([], [])
    fncRunModule(kql_queries, la, _args(query=1, days=days), cfg)
    assert expected in la.query.call_args[0][0]
