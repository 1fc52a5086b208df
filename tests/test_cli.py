from unittest.mock import patch

import pytest

import TenantTrail
from core.errors import AuthenticationError
from core.tenant_resolver import TenantLookupResult


@pytest.fixture
def cfg_path(tmp_path):
    return str(tmp_path / "config.json")


def test_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as exc:
        TenantTrail.main(["--help"])
    assert exc.value.code == 0
    assert "--scan" in capsys.readouterr().out


def test_scan_is_required():
    with pytest.raises(SystemExit) as exc:
        TenantTrail.main([])
    assert exc.value.code == 2


def test_list_modules(cfg_path, capsys):
    assert TenantTrail.main(["--list-modules", "--config", cfg_path]) == 0
    assert "outbound_access" in capsys.readouterr().out


def test_missing_input_file_exits_one(cfg_path, tmp_path):
    code = TenantTrail.main([
        "--scan", "tenant_lookup", "--input-file", str(tmp_path / "absent.txt"),
        "--config", cfg_path, "--no-banner",
    ])
    assert code == 1


def test_tenant_lookup_success_exits_zero(cfg_path):
    with patch("modules.entra.tenant_lookup.fncResolveTenants",
               return_value=[TenantLookupResult(tenant_id="abc")]):
        code = TenantTrail.main(["--scan", "tenant_lookup", "--tenant-ids", "abc", "--config", cfg_path])
    assert code == 0


def test_unknown_scan(cfg_path):
    assert TenantTrail.main(["--scan", "nope", "--config", cfg_path, "--no-banner"]) == 2


def test_list_queries_needs_no_client(cfg_path, capsys):
    with patch("TenantTrail.fncInitClient", wraps=TenantTrail.fncInitClient) as init:
        code = TenantTrail.main(["--scan", "kql_queries", "--list-queries", "--config", cfg_path, "--no-banner"])
    assert code == 0
    init.assert_called_once()
    assert init.call_args[0][0] is None


def test_auth_failure_exits_two(cfg_path):
    with patch("TenantTrail.fncInitClient", side_effect=AuthenticationError("Not logged into Azure. Run 'az login' first.")):
        code = TenantTrail.main(["--scan", "kql_queries", "--query", "1", "--config", cfg_path, "--no-banner"])
    assert code == 2


def test_init_client_builds_log_analytics_for_usgov():
    cfg = {"providers": {"entra": {"cloud": "usgov"}, "loganalytics": {"workspace_id": "ws-1"}}}
    client = TenantTrail.fncInitClient("loganalytics", cfg)
    assert client.query_url == "https://api.loganalytics.us/v1/workspaces/ws-1/query"


def test_undecodable_input_file_exits_two(cfg_path, tmp_path, capsys):
    path = tmp_path / "ids.bin"
    path.write_bytes(b"abc\n\xff\xfe\xfa\n")
    code = TenantTrail.main([
        "--scan", "tenant_lookup", "--input-file", str(path), "--config", cfg_path, "--no-banner",
    ])
    assert code == 2
    assert "Cannot read input file" in capsys.readouterr().out


def test_init_client_reads_provider_sections():
    cfg = {"providers": {"loganalytics": {"workspace_id": "ws-2"}}}
    client = TenantTrail.fncInitClient("loganalytics", cfg)
    assert client.query_url == "https://api.loganalytics.io/v1/workspaces/ws-2/query"
