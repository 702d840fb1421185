# Overview: Payment recording, listing and receipts.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..constants import PaymentMethod, PaymentStatus
from ..extensions import db
from ..models import Appointment, Patient, Payment
from ..time_utils import utctoday
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    coerce_choice,
    coerce_date,
    enforce_rules_payment,
    validate_payload,
)
from .concurrency import run_with_retry
from .receipt_service import next_receipt_number
from .tenant_service import get_scoped_or_404, scoped_query


PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"patient_id", "appointment_id", "amount", "method", "description", "date"},
    required_on_create={"patient_id", "amount", "method"},
    aliases={"patientId": "patient_id", "appointmentId": "appointment_id"},
)


def list_payments(
    clinic_id: int,
    *,
    date_from=None,
    date_to=None,
    method: str | None = None,
) -> tuple[list[Payment], Decimal]:
    """Payments in an inclusive date range, newest first, plus their total."""
    query = scoped_query(Payment, clinic_id)
    if date_from:
        query = query.filter(Payment.date >= coerce_date(date_from, "from"))
    if date_to:
        query = query.filter(Payment.date <= coerce_date(date_to, "to"))
    if method and method.lower() != "all":
        query = query.filter(Payment.method == coerce_choice(method, PaymentMethod, "method"))

    payments = query.order_by(Payment.date.desc(), Payment.id.desc()).all()
    total = sum((p.amount for p in payments), Decimal("0.00"))
    return payments, total


def get_payment(clinic_id: int, payment_id, *, actor_id: int | None = None) -> Payment:
    return get_scoped_or_404(Payment, payment_id, clinic_id, label="Payment", user_id=actor_id)


def payment_detail(clinic_id: int, payment_id, *, actor_id: int | None = None) -> dict:
    payment = get_payment(clinic_id, payment_id, actor_id=actor_id)
    data = payment.to_dict()
    if payment.patient:
        data["patient"] = {
            "id": payment.patient.id,
            "name": payment.patient.name,
            "phone": payment.patient.phone,
            "email": payment.patient.email,
        }
    if payment.appointment:
        data["appointment"] = {"type": payment.appointment.type, "doctor": payment.appointment.doctor}
    return data


def create_payment(clinic_id: int, payload: dict, *, actor_id: int, today=None) -> Payment:
    """
    Record a payment and allocate its receipt code in the same transaction.

    patient_id and appointment_id must belong to the caller's clinic.
    """
    patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=False)
    patch["method"] = coerce_choice(patch["method"], PaymentMethod, "method")
    enforce_rules_payment(patch)

    patient = get_scoped_or_404(Patient, patch["patient_id"], clinic_id, label="Patient", user_id=actor_id)
    if patch.get("appointment_id") is not None:
        appointment = get_scoped_or_404(
            Appointment, patch["appointment_id"], clinic_id, label="Appointment", user_id=actor_id
        )
        if appointment.patient_id != patient.id:
            raise ValidationError("Appointment belongs to a different patient")

    today = today or utctoday()
    patch.setdefault("date", None)
    if patch["date"] is None:
        patch["date"] = today

    def _op() -> int:
        try:
            payment = Payment(
                clinic_id=clinic_id,
                received_by_id=actor_id,
                status=PaymentStatus.PAID.value,
                receipt=next_receipt_number(clinic_id, today),
                **patch,
            )
            db.session.add(payment)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Receipt number already in use, please retry")
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return payment.id

    payment_id = run_with_retry(_op)
    return db.session.get(Payment, payment_id)
