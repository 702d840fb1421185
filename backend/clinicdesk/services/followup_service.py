# Overview: Patient follow-up reminders.

from __future__ import annotations

from ..constants import FollowUpStatus
from ..extensions import db
from ..models import FollowUp, Patient
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_choice,
    validate_payload,
)
from .tenant_service import get_scoped_or_404, scoped_query


FOLLOW_UP_POLICY = ModelValidationPolicy(
    writable_fields={"patient_id", "scheduled_date", "reason", "notes"},
    required_on_create={"patient_id", "scheduled_date", "reason"},
    aliases={"patientId": "patient_id", "scheduledDate": "scheduled_date"},
)

STATUS_POLICY = ModelValidationPolicy(writable_fields={"status", "notes"})


def list_follow_ups(clinic_id: int, *, status: str | None = None) -> list[FollowUp]:
    query = scoped_query(FollowUp, clinic_id)
    if status and status.lower() != "all":
        query = query.filter(FollowUp.status == coerce_choice(status, FollowUpStatus, "status"))
    return query.order_by(FollowUp.scheduled_date, FollowUp.id).all()


def create_follow_up(clinic_id: int, payload: dict, *, actor_id: int) -> FollowUp:
    patch = validate_payload(model=FollowUp, payload=payload, policy=FOLLOW_UP_POLICY, partial=False)

    get_scoped_or_404(Patient, patch["patient_id"], clinic_id, label="Patient", user_id=actor_id)

    follow_up = FollowUp(clinic_id=clinic_id, created_by_id=actor_id, **patch)
    db.session.add(follow_up)
    db.session.commit()
    return follow_up


def update_follow_up(clinic_id: int, follow_up_id, payload: dict, *, actor_id: int | None = None) -> FollowUp:
    follow_up = get_scoped_or_404(FollowUp, follow_up_id, clinic_id, label="Follow-up", user_id=actor_id)

    patch = validate_payload(model=FollowUp, payload=payload, policy=STATUS_POLICY, partial=True)
    if not patch.get("status"):
        raise ValidationError("Status is required")
    patch["status"] = coerce_choice(patch["status"], FollowUpStatus, "status")

    for key, value in patch.items():
        setattr(follow_up, key, value)
    db.session.commit()
    return follow_up
