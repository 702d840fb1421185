# Overview: Clinic dashboard figures.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..constants import FollowUpStatus, PaymentMethod
from ..models import Appointment, FollowUp, Patient, Payment
from ..time_utils import to_iso_date, utctoday
from .inventory_service import low_stock_count
from .tenant_service import scoped_query


PENDING_FOLLOW_UPS_SHOWN = 10


def _money(value) -> str:
    return str(Decimal(value or 0).quantize(Decimal("0.01")))


def dashboard_stats(clinic_id: int, today=None) -> dict:
    """Today's schedule and takings plus open work for one clinic."""
    today = today or utctoday()

    appointments = (
        scoped_query(Appointment, clinic_id)
        .filter(Appointment.date == today)
        .order_by(Appointment.time, Appointment.id)
        .all()
    )

    total_patients = scoped_query(Patient, clinic_id).with_entities(func.count(Patient.id)).scalar() or 0

    takings = dict(
        scoped_query(Payment, clinic_id)
        .filter(Payment.date == today)
        .with_entities(Payment.method, func.coalesce(func.sum(Payment.amount), 0))
        .group_by(Payment.method)
        .all()
    )
    cash = Decimal(takings.get(PaymentMethod.CASH.value) or 0)
    online = Decimal(takings.get(PaymentMethod.ONLINE.value) or 0)

    pending_query = scoped_query(FollowUp, clinic_id).filter(FollowUp.status == FollowUpStatus.PENDING.value)
    pending_count = pending_query.with_entities(func.count(FollowUp.id)).scalar() or 0
    pending = pending_query.order_by(FollowUp.scheduled_date, FollowUp.id).limit(PENDING_FOLLOW_UPS_SHOWN).all()

    return {
        "date": to_iso_date(today),
        "today_appointments": [
            {
                "id": a.id,
                "time": a.time,
                "type": a.type,
                "status": a.status,
                "patient": {"id": a.patient.id, "name": a.patient.name} if a.patient else None,
            }
            for a in appointments
        ],
        "today_appointment_count": len(appointments),
        "total_patients": total_patients,
        "today_collection": _money(cash + online),
        "today_cash": _money(cash),
        "today_online": _money(online),
        "pending_follow_ups": [
            {
                "id": f.id,
                "scheduled_date": to_iso_date(f.scheduled_date),
                "reason": f.reason,
                "patient": {"id": f.patient.id, "name": f.patient.name} if f.patient else None,
            }
            for f in pending
        ],
        "pending_follow_up_count": pending_count,
        "low_stock_count": low_stock_count(clinic_id),
    }
