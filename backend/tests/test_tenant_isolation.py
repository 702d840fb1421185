"""
Multi-Tenant Isolation Tests

SECURITY TESTS: an id that belongs to another clinic behaves exactly like an
id that does not exist, and the attempt is logged.

Coverage:
- Patients: read and update across tenants
- Appointments / follow-ups / payments: foreign patient references
- Inventory: foreign item transactions leave the foreign balance untouched
- Listings only ever return the caller's rows
"""

import pytest

from clinicdesk.extensions import db
from clinicdesk.models import InventoryItem, Patient, SecurityEvent
from clinicdesk.services import inventory_service, patient_service
from clinicdesk.services.tenant_service import (
    TenantAccessError,
    get_scoped_or_404,
    scoped_query,
)

from conftest import clinic_url, session_headers


@pytest.fixture
def item_b(clinic_b, admin_b):
    return inventory_service.create_item(
        clinic_b.id,
        {"name": "Gloves", "category": "CONSUMABLE", "unit": "boxes", "quantity": 10, "min_quantity": 2},
        actor_id=admin_b.id,
    )


class TestTenantServiceHelpers:

    def test_scoped_lookup_in_own_clinic(self, db_session, clinic_a, patient_a):
        assert get_scoped_or_404(Patient, patient_a.id, clinic_a.id).id == patient_a.id

    def test_foreign_row_raises(self, db_session, clinic_a, patient_b):
        with pytest.raises(TenantAccessError):
            get_scoped_or_404(Patient, patient_b.id, clinic_a.id)

    def test_nonexistent_row_raises_same_message(self, db_session, clinic_a, patient_b):
        with pytest.raises(TenantAccessError) as foreign:
            get_scoped_or_404(Patient, patient_b.id, clinic_a.id, label="Patient")
        with pytest.raises(TenantAccessError) as missing:
            get_scoped_or_404(Patient, 99999, clinic_a.id, label="Patient")
        assert str(foreign.value) == str(missing.value) == "Patient not found"

    def test_cross_tenant_access_logs_security_event(self, db_session, clinic_a, patient_b, receptionist_a):
        with pytest.raises(TenantAccessError):
            get_scoped_or_404(Patient, patient_b.id, clinic_a.id, user_id=receptionist_a.id)

        event = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").one()
        assert event.user_id == receptionist_a.id
        assert event.clinic_id == clinic_a.id
        assert event.success is False

    def test_id_beyond_column_range_raises_same_message(self, db_session, clinic_a):
        with pytest.raises(TenantAccessError) as exc:
            get_scoped_or_404(Patient, 2**70, clinic_a.id, label="Patient")
        assert str(exc.value) == "Patient not found"

    def test_nonexistent_row_is_not_logged(self, db_session, clinic_a):
        with pytest.raises(TenantAccessError):
            get_scoped_or_404(Patient, 424242, clinic_a.id)
        assert db_session.query(SecurityEvent).count() == 0

    def test_scoped_query_requires_clinic(self, db_session):
        with pytest.raises(TenantAccessError):
            scoped_query(Patient, None)

    def test_listing_is_scoped(self, db_session, clinic_a, patient_a, patient_b):
        names = [p.name for p in patient_service.list_patients(clinic_a.id)]
        assert names == ["Priya Sharma"]


class TestCrossTenantHttp:

    def test_read_foreign_patient_is_404(self, app, client, clinic_a, receptionist_a, patient_b):
        resp = client.get(
            f"/api/patients/{patient_b.id}",
            headers=session_headers(app, receptionist_a),
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 404

    def test_update_foreign_patient_is_404_and_unchanged(self, app, client, db_session, clinic_a, receptionist_a, patient_b):
        resp = client.patch(
            f"/api/patients/{patient_b.id}",
            json={"name": "Hijacked"},
            headers=session_headers(app, receptionist_a),
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 404
        db_session.expire_all()
        assert db_session.get(Patient, patient_b.id).name == "Meera Iyer"

    def test_appointment_for_foreign_patient_is_404(self, app, client, clinic_a, receptionist_a, patient_b):
        resp = client.post(
            "/api/appointments",
            json={"patientId": patient_b.id, "date": "2026-05-01", "time": "10:00", "type": "Consultation", "doctor": "Dr. Rao"},
            headers=session_headers(app, receptionist_a),
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 404

    def test_follow_up_for_foreign_patient_is_404(self, app, client, clinic_a, receptionist_a, patient_b):
        resp = client.post(
            "/api/follow-ups",
            json={"patientId": patient_b.id, "scheduledDate": "2026-05-10", "reason": "Scan review"},
            headers=session_headers(app, receptionist_a),
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 404

    def test_payment_for_foreign_patient_is_404(self, app, client, clinic_a, receptionist_a, patient_b):
        resp = client.post(
            "/api/payments",
            json={"patientId": patient_b.id, "amount": 500, "method": "CASH"},
            headers=session_headers(app, receptionist_a),
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 404

    def test_transaction_on_foreign_item_is_404_and_balance_unchanged(
        self, app, client, db_session, clinic_a, receptionist_a, item_b
    ):
        resp = client.post(
            f"/api/inventory/{item_b.id}/transactions",
            json={"type": "USED", "quantity": 5},
            headers=session_headers(app, receptionist_a),
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 404

        db_session.expire_all()
        assert db_session.get(InventoryItem, item_b.id).quantity == 10
        assert inventory_service.ledger_balance(item_b.clinic_id, item_b.id) == 10

    def test_staff_of_other_clinic_is_404(self, app, client, clinic_a, admin_a, admin_b):
        resp = client.get(
            f"/api/users/{admin_b.id}",
            headers=session_headers(app, admin_a),
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 404

    @pytest.mark.parametrize("method,path", [
        ("GET", f"/api/patients/{2**70}"),
        ("PATCH", f"/api/patients/{2**70}"),
        ("PATCH", f"/api/appointments/{2**70}"),
        ("PATCH", f"/api/follow-ups/{2**70}"),
        ("GET", f"/api/payments/{2**70}"),
        ("GET", f"/api/inventory/{2**70}"),
        ("GET", f"/api/users/{2**70}"),
        ("PATCH", f"/api/users/{2**70}"),
    ])
    def test_id_beyond_column_range_is_404(self, app, client, clinic_a, admin_a, method, path):
        resp = client.open(
            path,
            method=method,
            json={"notes": "x"} if method == "PATCH" else None,
            headers=session_headers(app, admin_a),
            base_url=clinic_url(clinic_a),
        )
        assert resp.status_code == 404

    def test_session_clinic_wins_over_host(self, app, client, clinic_a, clinic_b, receptionist_a, patient_a, patient_b):
        """A clinic A session sent to clinic B's subdomain still only sees clinic A."""
        resp = client.get(
            "/api/patients",
            headers=session_headers(app, receptionist_a),
            base_url=clinic_url(clinic_b),
        )
        assert resp.status_code == 200
        ids = {p["id"] for p in resp.get_json()["patients"]}
        assert ids == {patient_a.id}


def test_ledger_rows_carry_clinic(db_session, clinic_b, item_b):
    db.session.expire_all()
    tx = item_b.transactions.one()
    assert tx.clinic_id == clinic_b.id
