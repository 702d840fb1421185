from __future__ import annotations

from sqlalchemy.orm import validates

from ..constants import Role
from ..extensions import db
from ..time_utils import to_utc_z


class User(db.Model):
    """
    Principals: clinic staff and platform operators.

    MULTI-TENANT: a SUPER_ADMIN has no clinic; every other role belongs to
    exactly one clinic, and that reference never changes. Email is unique
    within a clinic, not globally.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("clinic_id", "email", name="uq_users_clinic_email"),
        db.CheckConstraint(
            "(role = 'SUPER_ADMIN' AND clinic_id IS NULL) OR "
            "(role <> 'SUPER_ADMIN' AND clinic_id IS NOT NULL)",
            name="ck_users_role_clinic",
        ),
        db.Index("ix_users_clinic_id", "clinic_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable only for platform operators
    clinic_id = db.Column(db.Integer, db.ForeignKey("clinics.id"), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(32), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    clinic = db.relationship("Clinic", backref=db.backref("users", lazy=True))

    @validates("clinic_id")
    def _clinic_is_immutable(self, key, value):
        if self.clinic_id is not None and value != self.clinic_id:
            raise ValueError("clinic_id cannot be changed")
        return value

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if isinstance(value, str) else value

    @property
    def is_platform_operator(self) -> bool:
        return self.role == Role.SUPER_ADMIN.value

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role} clinic_id={self.clinic_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clinic_id": self.clinic_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }
