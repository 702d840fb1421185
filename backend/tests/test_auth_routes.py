"""
Login, logout and /me over HTTP.

Login is resolved against the clinic addressed by the subdomain; on the
platform root only operators can sign in.
"""

from clinicdesk.models import SecurityEvent
from clinicdesk.services.auth_service import hash_password, verify_password

from conftest import PASSWORD, ROOT_URL, SESSION_COOKIE, clinic_url, session_token_from


class TestLogin:

    def test_clinic_staff_login_sets_http_only_cookie(self, client, clinic_a, receptionist_a):
        resp = client.post(
            "/api/auth/login",
            json={"email": "DESK@acme.test", "password": PASSWORD},
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["id"] == receptionist_a.id
        assert body["user"]["clinic_id"] == clinic_a.id
        assert body["user"]["clinic_slug"] == "acme"

        cookie = next(h for h in resp.headers.getlist("Set-Cookie") if h.startswith(SESSION_COOKIE))
        assert "HttpOnly" in cookie
        assert "SameSite=Lax" in cookie
        assert "Path=/" in cookie

    def test_me_returns_session_identity(self, client, clinic_a, receptionist_a):
        login = client.post(
            "/api/auth/login",
            json={"email": "desk@acme.test", "password": PASSWORD},
            base_url=clinic_url(clinic_a),
        )
        token = session_token_from(login)

        resp = client.get(
            "/api/auth/me",
            headers={"Cookie": f"{SESSION_COOKIE}={token}"},
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["role"] == "RECEPTIONIST"
        assert body["expires_at"] > body["issued_at"]

    def test_wrong_password_is_401_and_logged(self, client, db_session, clinic_a, receptionist_a):
        resp = client.post(
            "/api/auth/login",
            json={"email": "desk@acme.test", "password": "wrong-one"},
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 401
        assert session_token_from(resp) is None

        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.clinic_id == clinic_a.id
        assert event.user_id == receptionist_a.id

    def test_staff_of_other_clinic_cannot_log_in(self, client, clinic_a, clinic_b, admin_b):
        resp = client.post(
            "/api/auth/login",
            json={"email": "admin@beta.test", "password": PASSWORD},
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 401

    def test_inactive_user_is_401(self, client, db_session, clinic_a, receptionist_a):
        receptionist_a.is_active = False
        db_session.commit()
        resp = client.post(
            "/api/auth/login",
            json={"email": "desk@acme.test", "password": PASSWORD},
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 401

    def test_unknown_clinic_is_404(self, client, db_session):
        resp = client.post(
            "/api/auth/login",
            json={"email": "desk@acme.test", "password": PASSWORD},
            base_url=clinic_url("nowhere"),
        )
        assert resp.status_code == 404

    def test_missing_fields_is_400(self, client, clinic_a):
        resp = client.post("/api/auth/login", json={"email": "desk@acme.test"}, base_url=clinic_url(clinic_a))
        assert resp.status_code == 400

    def test_non_object_body_is_400(self, client, db_session, clinic_a, receptionist_a):
        resp = client.post("/api/auth/login", json=[1, 2], base_url=clinic_url(clinic_a))
        assert resp.status_code == 400
        assert session_token_from(resp) is None
        assert db_session.query(SecurityEvent).count() == 0

    def test_operator_logs_in_on_root(self, client, operator):
        resp = client.post(
            "/api/auth/login",
            json={"email": "ops@clinicdesk.test", "password": PASSWORD},
            base_url=ROOT_URL,
        )
        assert resp.status_code == 200
        assert resp.get_json()["user"]["clinic_id"] is None

    def test_clinic_staff_cannot_log_in_on_root(self, client, receptionist_a):
        resp = client.post(
            "/api/auth/login",
            json={"email": "desk@acme.test", "password": PASSWORD},
            base_url=ROOT_URL,
        )
        assert resp.status_code == 401


class TestLogoutAndSession:

    def test_logout_clears_cookie(self, client, clinic_a):
        resp = client.post("/api/auth/logout", base_url=clinic_url(clinic_a))
        assert resp.status_code == 200
        cookie = next(h for h in resp.headers.getlist("Set-Cookie") if h.startswith(SESSION_COOKIE))
        assert cookie.startswith(f"{SESSION_COOKIE}=;")
        assert "Max-Age=0" in cookie

    def test_auth_cookie_leaves_flask_session_cookie_alone(self, app):
        assert app.config["AUTH_COOKIE_NAME"] == SESSION_COOKIE
        assert app.config["SESSION_COOKIE_NAME"] == "session"

    def test_me_without_cookie_is_401(self, client, clinic_a):
        assert client.get("/api/auth/me", base_url=clinic_url(clinic_a)).status_code == 401

    def test_me_with_forged_cookie_is_401(self, client, clinic_a):
        resp = client.get(
            "/api/auth/me",
            headers={"Cookie": f"{SESSION_COOKIE}=eyJhbGciOiJIUzI1NiJ9.e30.bad"},
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 401


class TestPasswordHashing:

    def test_hash_and_verify(self):
        hashed = hash_password("abcdef")
        assert verify_password("abcdef", hashed)
        assert not verify_password("abcdeg", hashed)

    def test_malformed_hash_is_false(self):
        assert not verify_password("abcdef", "not-a-bcrypt-hash")
