from __future__ import annotations

from ..constants import PaymentStatus
from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class Payment(db.Model):
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("clinic_id", "receipt", name="uq_payments_clinic_receipt"),
        db.Index("ix_payments_clinic_date", "clinic_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey("clinics.id"), nullable=False, index=True)
    patient_id = db.Column(db.Integer, db.ForeignKey("patients.id"), nullable=False, index=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey("appointments.id"), nullable=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PaymentStatus.PAID.value)
    receipt = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    date = db.Column(db.Date, nullable=False)

    received_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    patient = db.relationship("Patient", backref=db.backref("payments", lazy=True))
    appointment = db.relationship("Appointment")
    received_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clinic_id": self.clinic_id,
            "patient_id": self.patient_id,
            "patient": self.patient.to_summary() if self.patient else None,
            "appointment_id": self.appointment_id,
            "amount": str(self.amount),
            "method": self.method,
            "status": self.status,
            "receipt": self.receipt,
            "description": self.description,
            "date": to_iso_date(self.date),
            "received_by": self.received_by.name if self.received_by else None,
            "created_at": to_utc_z(self.created_at),
        }


class ReceiptSequence(db.Model):
    """
    Atomic per-clinic, per-day receipt counters.

    last_number is the highest sequence handed out for (clinic_id, day).
    """
    __tablename__ = "receipt_sequences"
    __table_args__ = (
        db.UniqueConstraint("clinic_id", "day", name="uq_receipt_sequences_clinic_day"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey("clinics.id"), nullable=False, index=True)
    day = db.Column(db.String(8), nullable=False)  # YYYYMMDD
    last_number = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
