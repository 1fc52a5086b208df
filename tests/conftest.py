import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from core.outbound import SignInEvent

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")

OWN = "home-tenant"
BASE_TIME = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


def load_fixture(name):
    with open(os.path.join(FIXTURES, name)) as f:
        return json.load(f)


def make_event(resource="ext-1", user="alice@contoso.com", home=OWN, app="Microsoft Teams",
               resource_name="Teams Services", hours=0, result="0", ip="203.0.113.1"):
    return SignInEvent(
        timestamp=None if hours is None else BASE_TIME + timedelta(hours=hours),
        user_principal_name=user,
        home_tenant_id=home,
        resource_tenant_id=resource,
        app_display_name=app,
        resource_display_name=resource_name,
        ip_address=ip,
        result_code=result,
    )


class FakeGraphClient:
    """Stands in for GraphClient: canned records, no network."""

    def __init__(self, records=None, org_id=OWN, tenant_id="configured-tenant"):
        self.records = records or []
        self.org_id = org_id
        self.tenant_id = tenant_id
        self.calls = []

    def get(self, endpoint, params=None):
        self.calls.append(("get", endpoint, params))
        return {"value": [{"id": self.org_id, "displayName": "Contoso"}] if self.org_id else []}

    def get_all(self, endpoint, params=None):
        self.calls.append(("get_all", endpoint, params))
        return list(self.records)


@pytest.fixture
def fake_graph():
    records = load_fixture("signins_page1.json")["value"] + load_fixture("signins_page2.json")["value"]
    return FakeGraphClient(records=records)


@pytest.fixture
def cfg():
    from core.config import fncDefaultConfig

    return fncDefaultConfig()


ENV_VARS = [
    "TENANTTRAIL_TENANT_ID",
    "TENANTTRAIL_CLIENT_ID",
    "TENANTTRAIL_CLIENT_SECRET",
    "TENANTTRAIL_CLOUD",
    "TENANTTRAIL_WORKSPACE_ID",
]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    # setenv first so monkeypatch restores the original (possibly unset) value
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def _reset_debug():
    from core.utils import fncSetDebug

    fncSetDebug(False)
    yield
    fncSetDebug(False)
