from __future__ import annotations

from ..constants import AppointmentStatus, FollowUpStatus
from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class Patient(db.Model):
    __tablename__ = "patients"
    __table_args__ = (
        db.Index("ix_patients_clinic_created", "clinic_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey("clinics.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    age = db.Column(db.Integer, nullable=True)
    gender = db.Column(db.String(16), nullable=True)
    medical_notes = db.Column(db.Text, nullable=True)

    registered_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clinic_id": self.clinic_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "age": self.age,
            "gender": self.gender,
            "medical_notes": self.medical_notes,
            "registered_by_id": self.registered_by_id,
            "created_at": to_utc_z(self.created_at),
        }

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "phone": self.phone}


class Appointment(db.Model):
    __tablename__ = "appointments"
    __table_args__ = (
        db.Index("ix_appointments_clinic_date", "clinic_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey("clinics.id"), nullable=False, index=True)
    patient_id = db.Column(db.Integer, db.ForeignKey("patients.id"), nullable=False, index=True)

    date = db.Column(db.Date, nullable=False)
    time = db.Column(db.String(5), nullable=False)  # "HH:MM" slot
    type = db.Column(db.String(64), nullable=False)
    doctor = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=AppointmentStatus.SCHEDULED.value)
    notes = db.Column(db.Text, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    patient = db.relationship("Patient", backref=db.backref("appointments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clinic_id": self.clinic_id,
            "patient_id": self.patient_id,
            "patient": self.patient.to_summary() if self.patient else None,
            "date": to_iso_date(self.date),
            "time": self.time,
            "type": self.type,
            "doctor": self.doctor,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class FollowUp(db.Model):
    __tablename__ = "follow_ups"
    __table_args__ = (
        db.Index("ix_follow_ups_clinic_status", "clinic_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey("clinics.id"), nullable=False, index=True)
    patient_id = db.Column(db.Integer, db.ForeignKey("patients.id"), nullable=False, index=True)

    scheduled_date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.String(500), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=FollowUpStatus.PENDING.value)
    notes = db.Column(db.Text, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    patient = db.relationship("Patient", backref=db.backref("follow_ups", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clinic_id": self.clinic_id,
            "patient_id": self.patient_id,
            "patient": self.patient.to_summary() if self.patient else None,
            "scheduled_date": to_iso_date(self.scheduled_date),
            "reason": self.reason,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
