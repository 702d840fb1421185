"""
Clinic signup, public branding and platform administration.
"""

import pytest

from clinicdesk.constants import DEFAULT_TIME_SLOTS
from clinicdesk.models import Clinic, SecurityEvent, User
from clinicdesk.services import clinic_service
from clinicdesk.validation import ConflictError, ValidationError

from conftest import PASSWORD, ROOT_URL, clinic_url, session_headers


SIGNUP = {
    "clinicName": "Sunrise IVF",
    "slug": "sunrise",
    "abbreviation": "sif",
    "adminName": "Dr. Kavya",
    "adminEmail": "Kavya@Sunrise.test",
    "adminPassword": "secret1",
    "city": "Pune",
}


class TestSignupService:

    def test_creates_clinic_and_admin(self, db_session):
        clinic, admin = clinic_service.create_clinic_with_admin(dict(SIGNUP))

        assert clinic.slug == "sunrise"
        assert clinic.abbreviation == "SIF"
        assert clinic.is_active
        assert all(clinic.features.values())
        assert clinic.time_slots == DEFAULT_TIME_SLOTS
        assert admin.role == "ADMIN"
        assert admin.clinic_id == clinic.id
        assert admin.email == "kavya@sunrise.test"

    def test_feature_override_and_unknown_keys_dropped(self, db_session):
        payload = dict(SIGNUP, enabledFeatures={"inventory": False, "teleconsult": True})
        clinic, _ = clinic_service.create_clinic_with_admin(payload)

        assert clinic.features["inventory"] is False
        assert clinic.features["patients"] is True
        assert "teleconsult" not in clinic.enabled_features

    @pytest.mark.parametrize("slug", ["ab", "Sunrise", "sun_rise", "sun rise", "", "x" * 51])
    def test_bad_slug(self, db_session, slug):
        with pytest.raises(ValidationError):
            clinic_service.create_clinic_with_admin(dict(SIGNUP, slug=slug))

    def test_short_password(self, db_session):
        with pytest.raises(ValidationError):
            clinic_service.create_clinic_with_admin(dict(SIGNUP, adminPassword="12345"))
        assert db_session.query(Clinic).count() == 0

    def test_missing_admin_fields(self, db_session):
        payload = dict(SIGNUP)
        del payload["adminEmail"]
        with pytest.raises(ValidationError):
            clinic_service.create_clinic_with_admin(payload)

    def test_duplicate_slug(self, db_session, clinic_a):
        with pytest.raises(ConflictError):
            clinic_service.create_clinic_with_admin(dict(SIGNUP, slug="acme"))
        assert db_session.query(User).count() == 0


class TestSignupHttp:

    def test_signup_then_login_on_subdomain(self, client, db_session):
        resp = client.post("/api/signup", json=SIGNUP, base_url=ROOT_URL)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["clinic"]["slug"] == "sunrise"
        assert body["clinic"]["url"] == "https://sunrise.clinicdesk.test"

        login = client.post(
            "/api/auth/login",
            json={"email": "kavya@sunrise.test", "password": "secret1"},
            base_url=clinic_url("sunrise"),
        )
        assert login.status_code == 200
        assert login.get_json()["user"]["role"] == "ADMIN"

    def test_duplicate_slug_is_409(self, client, clinic_a):
        resp = client.post("/api/signup", json=dict(SIGNUP, slug="acme"), base_url=ROOT_URL)
        assert resp.status_code == 409

    def test_public_info(self, client, clinic_a):
        resp = client.get("/api/clinic/public-info", base_url=clinic_url(clinic_a))
        assert resp.status_code == 200
        assert resp.get_json()["clinic"] == {"name": "Acme Fertility Clinic", "abbreviation": "ACM", "logo_url": None}

    def test_public_info_on_root_is_404(self, client, db_session):
        assert client.get("/api/clinic/public-info", base_url=ROOT_URL).status_code == 404

    def test_public_info_hidden_for_inactive_clinic(self, client, db_session, clinic_a):
        clinic_a.is_active = False
        db_session.commit()
        assert client.get("/api/clinic/public-info", base_url=clinic_url(clinic_a)).status_code == 404


class TestPlatformAdministration:

    def test_list_clinics_with_counts(self, app, client, operator, clinic_a, clinic_b, admin_a, receptionist_a, patient_a):
        resp = client.get("/api/platform/clinics", headers=session_headers(app, operator), base_url=ROOT_URL)
        assert resp.status_code == 200
        by_slug = {c["slug"]: c for c in resp.get_json()["clinics"]}
        assert by_slug["acme"]["counts"] == {"users": 2, "patients": 1}
        assert by_slug["beta"]["counts"] == {"users": 0, "patients": 0}

    def test_create_clinic(self, app, client, operator):
        resp = client.post(
            "/api/platform/clinics",
            json=dict(SIGNUP, slug="metro", abbreviation="MET"),
            headers=session_headers(app, operator),
            base_url=ROOT_URL,
        )
        assert resp.status_code == 201
        assert resp.get_json()["clinic"]["slug"] == "metro"

    def test_update_features_merges(self, app, client, db_session, operator, clinic_a):
        resp = client.patch(
            f"/api/platform/clinics/{clinic_a.id}",
            json={"enabledFeatures": {"payments": False}, "plan": "pro"},
            headers=session_headers(app, operator),
            base_url=ROOT_URL,
        )
        assert resp.status_code == 200
        clinic = resp.get_json()["clinic"]
        assert clinic["plan"] == "PRO"
        assert clinic["enabled_features"]["payments"] is False
        assert clinic["enabled_features"]["inventory"] is True

    def test_slug_is_immutable(self, app, client, operator, clinic_a):
        resp = client.patch(
            f"/api/platform/clinics/{clinic_a.id}",
            json={"slug": "renamed"},
            headers=session_headers(app, operator),
            base_url=ROOT_URL,
        )
        assert resp.status_code == 400

    def test_deactivate_is_soft(self, app, client, db_session, operator, clinic_a, receptionist_a):
        resp = client.delete(
            f"/api/platform/clinics/{clinic_a.id}",
            headers=session_headers(app, operator),
            base_url=ROOT_URL,
        )
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.get(Clinic, clinic_a.id).is_active is False
        assert db_session.query(SecurityEvent).filter_by(event_type="CLINIC_DEACTIVATED").count() == 1

        # New logins fail; the clinic is gone from the subdomain
        login = client.post(
            "/api/auth/login",
            json={"email": "desk@acme.test", "password": PASSWORD},
            base_url=clinic_url(clinic_a),
        )
        assert login.status_code == 404

    def test_unknown_clinic_is_404(self, app, client, operator):
        resp = client.get("/api/platform/clinics/9999", headers=session_headers(app, operator), base_url=ROOT_URL)
        assert resp.status_code == 404

    @pytest.mark.parametrize("method", ["GET", "PATCH", "DELETE"])
    def test_clinic_id_beyond_column_range_is_404(self, app, client, operator, method):
        resp = client.open(
            f"/api/platform/clinics/{2**70}",
            method=method,
            json={"name": "Renamed"} if method == "PATCH" else None,
            headers=session_headers(app, operator),
            base_url=ROOT_URL,
        )
        assert resp.status_code == 404

    def test_stats(self, app, client, db_session, operator, clinic_a, clinic_b, admin_a, patient_a):
        clinic_b.is_active = False
        db_session.commit()
        resp = client.get("/api/platform/stats", headers=session_headers(app, operator), base_url=ROOT_URL)
        assert resp.get_json() == {
            "total_clinics": 2,
            "active_clinics": 1,
            "inactive_clinics": 1,
            "total_users": 2,
            "total_patients": 1,
        }
