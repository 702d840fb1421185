"""
Host resolution tests.

resolve_tenant_host is total: every input maps to NoTenant or a single
subdomain label, and nothing raises.
"""

import pytest

from clinicdesk.services.tenant_service import (
    NoTenant,
    TenantSlug,
    is_root_path_allowed,
    resolve_tenant_host,
)

from conftest import ROOT_URL, clinic_url


ROOT = "clinicdesk.com"


class TestResolveTenantHost:

    @pytest.mark.parametrize("host", ["clinicdesk.com", "www.clinicdesk.com", "CLINICDESK.COM", "Www.ClinicDesk.com"])
    def test_root_and_www_are_platform(self, host):
        assert resolve_tenant_host(host, ROOT) == NoTenant()

    @pytest.mark.parametrize("host,slug", [
        ("acme.clinicdesk.com", "acme"),
        ("ACME.ClinicDesk.com", "acme"),
        ("city-ivf-2.clinicdesk.com", "city-ivf-2"),
    ])
    def test_single_label_is_clinic(self, host, slug):
        assert resolve_tenant_host(host, ROOT) == TenantSlug(slug)

    @pytest.mark.parametrize("host", [
        "a.b.clinicdesk.com",
        ".clinicdesk.com",
        "evilclinicdesk.com",
        "acme.other.com",
        "clinicdesk.com.evil.net",
        "",
    ])
    def test_everything_else_is_no_tenant(self, host):
        assert resolve_tenant_host(host, ROOT) == NoTenant()

    def test_port_in_root_domain(self):
        assert resolve_tenant_host("acme.localhost:5000", "localhost:5000") == TenantSlug("acme")
        assert resolve_tenant_host("localhost:5000", "localhost:5000") == NoTenant()

    @pytest.mark.parametrize("host,root", [(None, ROOT), (42, ROOT), ("acme.clinicdesk.com", None), ("acme.x", "")])
    def test_never_raises(self, host, root):
        assert resolve_tenant_host(host, root) == NoTenant()


class TestRootPathAllowList:

    @pytest.mark.parametrize("path", ["/api/auth/login", "/api/signup", "/api/platform/clinics", "/api/health"])
    def test_allowed(self, path):
        assert is_root_path_allowed(path)

    @pytest.mark.parametrize("path", ["/api/patients", "/api/inventory/1", "/api/authx", "/api/dashboard/stats"])
    def test_blocked(self, path):
        assert not is_root_path_allowed(path)


class TestRequestHook:

    def test_tenant_route_on_root_host_is_404(self, client, db_session):
        resp = client.get("/api/patients", base_url=ROOT_URL)
        assert resp.status_code == 404

    def test_tenant_route_on_subdomain_reaches_auth(self, client, db_session):
        resp = client.get("/api/patients", base_url=clinic_url("acme"))
        assert resp.status_code == 401

    def test_health_on_root(self, client, db_session):
        resp = client.get("/api/health", base_url=ROOT_URL)
        assert resp.status_code == 200
        assert resp.get_json()["database"]["status"] == "healthy"
