# Overview: Patient registry for one clinic.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Appointment, FollowUp, Patient, Payment
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_patient,
    validate_payload,
)
from .tenant_service import get_scoped_or_404, scoped_query


PATIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "age", "gender", "medical_notes"},
    required_on_create={"name", "phone"},
    aliases={"medicalNotes": "medical_notes"},
)


def list_patients(clinic_id: int, search: str | None = None) -> list[Patient]:
    query = scoped_query(Patient, clinic_id)
    if search:
        term = search.strip()
        query = query.filter(or_(Patient.name.ilike(f"%{term}%"), Patient.phone.contains(term)))
    return query.order_by(Patient.created_at.desc(), Patient.id.desc()).all()


def get_patient(clinic_id: int, patient_id, *, actor_id: int | None = None) -> Patient:
    return get_scoped_or_404(Patient, patient_id, clinic_id, label="Patient", user_id=actor_id)


def patient_detail(clinic_id: int, patient_id, *, actor_id: int | None = None) -> dict:
    """Patient with its appointments, payments and follow-ups, newest first."""
    patient = get_patient(clinic_id, patient_id, actor_id=actor_id)

    appointments = (
        scoped_query(Appointment, clinic_id)
        .filter(Appointment.patient_id == patient.id)
        .order_by(Appointment.date.desc(), Appointment.time.desc())
        .all()
    )
    payments = (
        scoped_query(Payment, clinic_id)
        .filter(Payment.patient_id == patient.id)
        .order_by(Payment.date.desc(), Payment.id.desc())
        .all()
    )
    follow_ups = (
        scoped_query(FollowUp, clinic_id)
        .filter(FollowUp.patient_id == patient.id)
        .order_by(FollowUp.scheduled_date.desc())
        .all()
    )

    data = patient.to_dict()
    data["appointments"] = [a.to_dict() for a in appointments]
    data["payments"] = [p.to_dict() for p in payments]
    data["follow_ups"] = [f.to_dict() for f in follow_ups]
    return data


def create_patient(clinic_id: int, payload: dict, *, actor_id: int) -> Patient:
    patch = validate_payload(model=Patient, payload=payload, policy=PATIENT_POLICY, partial=False)
    enforce_rules_patient(patch)

    patient = Patient(clinic_id=clinic_id, registered_by_id=actor_id, **patch)
    db.session.add(patient)
    db.session.commit()
    return patient


def update_patient(clinic_id: int, patient_id, payload: dict, *, actor_id: int | None = None) -> Patient:
    patient = get_patient(clinic_id, patient_id, actor_id=actor_id)

    patch = validate_payload(model=Patient, payload=payload, policy=PATIENT_POLICY, partial=True)
    enforce_rules_patient(patch)

    for key, value in patch.items():
        setattr(patient, key, value)
    db.session.commit()
    return patient
