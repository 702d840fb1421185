from __future__ import annotations

from sqlalchemy.orm import validates

from ..constants import Feature, Plan
from ..extensions import db
from ..time_utils import to_utc_z


class Clinic(db.Model):
    """
    Multi-tenant root: every tenant is a Clinic.

    - Clinics are the tenant boundary; all clinic-owned rows carry clinic_id.
    - slug is the routable subdomain label. Globally unique, immutable.
    - Clinics are soft-deleted (is_active=False) and never hard-deleted.
    """
    __tablename__ = "clinics"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(50), nullable=False, unique=True, index=True)
    abbreviation = db.Column(db.String(16), nullable=False)

    tagline = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    logo_url = db.Column(db.String(500), nullable=True)

    plan = db.Column(db.String(16), nullable=False, default=Plan.FREE.value)
    doctors = db.Column(db.JSON, nullable=False, default=list)
    time_slots = db.Column(db.JSON, nullable=False, default=list)
    enabled_features = db.Column(db.JSON, nullable=False, default=dict)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @validates("slug")
    def _slug_is_immutable(self, key, value):
        if self.slug is not None and value != self.slug:
            raise ValueError("slug cannot be changed after creation")
        return value

    @property
    def features(self) -> dict[str, bool]:
        return Feature.normalize_map(self.enabled_features)

    def has_feature(self, feature: Feature) -> bool:
        return self.features.get(Feature(feature).value, False)

    def __repr__(self) -> str:
        return f"<Clinic id={self.id} slug={self.slug!r}>"

    def to_public_dict(self) -> dict:
        return {
            "name": self.name,
            "abbreviation": self.abbreviation,
            "logo_url": self.logo_url,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "abbreviation": self.abbreviation,
            "tagline": self.tagline,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "city": self.city,
            "logo_url": self.logo_url,
            "plan": self.plan,
            "doctors": list(self.doctors or []),
            "time_slots": list(self.time_slots or []),
            "enabled_features": self.features,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
