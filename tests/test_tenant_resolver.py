from unittest.mock import Mock, patch

import pytest
import requests

from conftest import load_fixture
from core.errors import MissingInputFile, UnreadableInputFile
from core.tenant_resolver import (
    DISCOVERY_URL,
    NOT_APPLICABLE,
    REGION_COMMERCIAL,
    REGION_UNKNOWN,
    REGION_US_GOV,
    STATUS_INVALID,
    STATUS_VALID,
    fncClassifyRegion,
    fncExtractTenantFromAuthzEndpoint,
    fncReadTenantIds,
    fncResolveTenant,
    fncResolveTenants,
)

MS_TENANT = "72f988bf-86f1-41af-91ab-2d7cd011db47"


def _response(status=200, payload=None, json_error=None):
    resp = Mock()
    resp.status_code = status
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = payload
    return resp


def test_region_classification_examples():
    assert fncClassifyRegion("https://sts.windows.net/abc.us/") == REGION_US_GOV
    assert fncClassifyRegion("https://sts.windows.net/abc123/") == REGION_COMMERCIAL


def test_region_classification_is_case_sensitive():
    assert fncClassifyRegion("https://login.microsoftonline.US/x/") == REGION_COMMERCIAL


def test_extract_tenant_from_authorization_endpoint():
    url = f"https://login.microsoftonline.com/{MS_TENANT}/oauth2/authorize"
    assert fncExtractTenantFromAuthzEndpoint(url) == MS_TENANT
    assert fncExtractTenantFromAuthzEndpoint("https://example.com/oauth2/authorize") is None


def test_resolve_valid_commercial_tenant():
    session = Mock()
    session.get.return_value = _response(payload=load_fixture("openid_commercial.json"))

    result = fncResolveTenant(MS_TENANT, session=session)

    session.get.assert_called_once()
    assert session.get.call_args[0][0] == DISCOVERY_URL.format(tenant_id=MS_TENANT)
    assert result.status == STATUS_VALID
    assert result.valid
    assert result.resolved_id == MS_TENANT
    assert result.region == REGION_COMMERCIAL
    assert result.region_scope == "WW"
    assert result.token_endpoint.endswith("/oauth2/token")


def test_resolve_us_government_tenant():
    session = Mock()
    session.get.return_value = _response(payload=load_fixture("openid_usgov.json"))
    result = fncResolveTenant("1b4e6a2c-3d5f-4e8a-9b7c-0d1e2f3a4b5c", session=session)
    assert result.region == REGION_US_GOV
    assert result.region_scope == "USGov"


def test_resolve_rejected_id_yields_invalid_sentinel():
    session = Mock()
    session.get.return_value = _response(status=400, payload={"error": "invalid_tenant"})
    result = fncResolveTenant("not-a-guid", session=session)
    assert result.status == STATUS_INVALID
    assert result.token_endpoint == NOT_APPLICABLE
    assert result.issuer == NOT_APPLICABLE
    assert result.resolved_id == NOT_APPLICABLE
    assert result.region == REGION_UNKNOWN
    assert result.tenant_id == "not-a-guid"


@pytest.mark.parametrize(
    "side_effect",
    [
        requests.ConnectionError("dns failure"),
        requests.Timeout("slow"),
        requests.exceptions.InvalidURL("bad url"),
    ],
)
def test_resolve_network_errors_never_raise(side_effect):
    session = Mock()
    session.get.side_effect = side_effect
    result = fncResolveTenant("whatever", session=session)
    assert result.status == STATUS_INVALID


def test_resolve_bad_json_is_invalid():
    session = Mock()
    session.get.return_value = _response(json_error=ValueError("Expecting value"))
    assert fncResolveTenant("x", session=session).status == STATUS_INVALID


@pytest.mark.parametrize(
    "payload",
    [
        {},
        [],
        {"issuer": "https://sts.windows.net/x/"},
        {"authorization_endpoint": "https://login.microsoftonline.com/x/oauth2/authorize"},
        {"issuer": None, "authorization_endpoint": None},
    ],
)
def test_resolve_incomplete_document_is_invalid(payload):
    session = Mock()
    session.get.return_value = _response(payload=payload)
    assert fncResolveTenant("x", session=session).status == STATUS_INVALID


def test_resolve_defaults_to_requests_module():
    with patch("core.tenant_resolver.requests.get") as mock_get:
        mock_get.return_value = _response(payload=load_fixture("openid_commercial.json"))
        result = fncResolveTenant(MS_TENANT)
    assert result.status == STATUS_VALID
    mock_get.assert_called_once()


def test_batch_failure_does_not_affect_siblings():
    good = _response(payload=load_fixture("openid_commercial.json"))
    session = Mock()
    session.get.side_effect = [good, requests.ConnectionError("boom"), good]

    results = fncResolveTenants([MS_TENANT, "broken", MS_TENANT], session=session)

    assert [r.status for r in results] == [STATUS_VALID, STATUS_INVALID, STATUS_VALID]
    assert [r.tenant_id for r in results] == [MS_TENANT, "broken", MS_TENANT]


def test_read_tenant_ids_trims_and_skips_blanks(tmp_path):
    path = tmp_path / "ids.txt"
    path.write_text(f"  {MS_TENANT}  \n\n   \nsecond-id\n", encoding="utf-8")
    assert fncReadTenantIds(str(path)) == [MS_TENANT, "second-id"]


def test_read_tenant_ids_missing_file(tmp_path):
    with pytest.raises(MissingInputFile):
        fncReadTenantIds(str(tmp_path / "nope.txt"))


def test_read_tenant_ids_rejects_undecodable_file(tmp_path):
    path = tmp_path / "ids.bin"
    path.write_bytes(b"abc\n\xff\xfe\xfa\n")
    with pytest.raises(UnreadableInputFile) as exc:
        fncReadTenantIds(str(path))
    assert str(path) in str(exc.value)
