# Overview: Appointment booking and status updates.

from __future__ import annotations

import re

from ..constants import AppointmentStatus
from ..extensions import db
from ..models import Appointment, Patient
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_choice,
    coerce_date,
    validate_payload,
)
from .tenant_service import get_scoped_or_404, scoped_query


SLOT_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

APPOINTMENT_POLICY = ModelValidationPolicy(
    writable_fields={"patient_id", "date", "time", "type", "doctor", "notes"},
    required_on_create={"patient_id", "date", "time", "type", "doctor"},
    aliases={"patientId": "patient_id"},
)

STATUS_POLICY = ModelValidationPolicy(writable_fields={"status", "notes"})


def list_appointments(clinic_id: int, *, day=None, status: str | None = None) -> list[Appointment]:
    query = scoped_query(Appointment, clinic_id)
    if day:
        query = query.filter(Appointment.date == coerce_date(day, "date"))
    if status and status.lower() != "all":
        query = query.filter(Appointment.status == coerce_choice(status, AppointmentStatus, "status"))
    return query.order_by(Appointment.date, Appointment.time, Appointment.id).all()


def create_appointment(clinic_id: int, payload: dict, *, actor_id: int) -> Appointment:
    patch = validate_payload(model=Appointment, payload=payload, policy=APPOINTMENT_POLICY, partial=False)
    if not SLOT_RE.match(patch["time"]):
        raise ValidationError("time must be HH:MM")

    # Cross-tenant reference check
    get_scoped_or_404(Patient, patch["patient_id"], clinic_id, label="Patient", user_id=actor_id)

    appointment = Appointment(clinic_id=clinic_id, created_by_id=actor_id, **patch)
    db.session.add(appointment)
    db.session.commit()
    return appointment


def update_appointment(clinic_id: int, appointment_id, payload: dict, *, actor_id: int | None = None) -> Appointment:
    appointment = get_scoped_or_404(Appointment, appointment_id, clinic_id, label="Appointment", user_id=actor_id)

    patch = validate_payload(model=Appointment, payload=payload, policy=STATUS_POLICY, partial=True)
    if not patch.get("status"):
        raise ValidationError("Status is required")
    patch["status"] = coerce_choice(patch["status"], AppointmentStatus, "status")

    for key, value in patch.items():
        setattr(appointment, key, value)
    db.session.commit()
    return appointment
