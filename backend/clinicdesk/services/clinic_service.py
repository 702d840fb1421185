# Overview: Clinic signup, platform administration and public clinic info.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..constants import ALL_FEATURES_ENABLED, DEFAULT_TIME_SLOTS, Feature, Plan, Role
from ..extensions import db
from ..models import (
    Appointment,
    Clinic,
    FollowUp,
    InventoryItem,
    Patient,
    Payment,
    User,
)
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_choice,
    parse_id,
    validate_payload,
    validate_slug,
)
from .auth_service import hash_password
from .permission_service import log_security_event
from .tenant_service import get_clinic_by_slug


CLINIC_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "abbreviation", "tagline", "phone", "email", "address", "city",
        "logo_url", "plan", "doctors", "time_slots", "enabled_features", "is_active",
    },
    required_on_create={"name", "abbreviation"},
    aliases={
        "clinicName": "name",
        "logoUrl": "logo_url",
        "timeSlots": "time_slots",
        "enabledFeatures": "enabled_features",
        "isActive": "is_active",
    },
)

_ADMIN_KEYS = {
    "adminName": "admin_name",
    "adminEmail": "admin_email",
    "adminPassword": "admin_password",
}


def _normalize_features(raw, *, base: dict | None = None) -> dict[str, bool]:
    if not isinstance(raw, dict):
        raise ValidationError("enabled_features must be an object")
    unknown = Feature.unknown_keys(raw)
    if unknown:
        current_app.logger.warning("Dropping unknown feature keys: %s", ", ".join(unknown))
    merged = dict(base or {})
    merged.update({k: v for k, v in raw.items() if k not in unknown})
    return Feature.normalize_map(merged)


def _string_list(value, field: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field} must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def _clean_clinic_patch(patch: dict, *, base_features: dict | None = None) -> dict:
    if "abbreviation" in patch and patch["abbreviation"]:
        patch["abbreviation"] = patch["abbreviation"].upper()
    if "plan" in patch:
        patch["plan"] = coerce_choice(patch["plan"], Plan, "plan")
    if "doctors" in patch:
        patch["doctors"] = _string_list(patch["doctors"], "doctors")
    if "time_slots" in patch:
        patch["time_slots"] = _string_list(patch["time_slots"], "time_slots")
    if "enabled_features" in patch:
        patch["enabled_features"] = _normalize_features(patch["enabled_features"], base=base_features)
    return patch


def _split_admin_fields(payload: dict) -> tuple[dict, dict]:
    clinic_fields = {}
    admin = {}
    for key, value in (payload or {}).items():
        target = _ADMIN_KEYS.get(key, key)
        if target.startswith("admin_"):
            admin[target] = value
        elif key != "slug":
            clinic_fields[key] = value
    return clinic_fields, admin


def create_clinic_with_admin(payload: dict, *, default_slots: list[str] | None = None) -> tuple[Clinic, User]:
    """
    Create a clinic and its first ADMIN user in one transaction.

    Used by public signup and by platform operators. Features default to
    all enabled; submitted flags override individual features.

    Raises:
        ValidationError: missing fields, bad slug or short password
        ConflictError: slug already taken
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    clinic_fields, admin = _split_admin_fields(payload)
    missing = [k for k in ("admin_name", "admin_email", "admin_password") if not admin.get(k)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    slug = validate_slug(payload.get("slug"))

    patch = validate_payload(model=Clinic, payload=clinic_fields, policy=CLINIC_POLICY, partial=False)
    patch = _clean_clinic_patch(patch, base_features=ALL_FEATURES_ENABLED)
    patch.setdefault("enabled_features", dict(ALL_FEATURES_ENABLED))
    if not patch.get("time_slots"):
        patch["time_slots"] = list(default_slots or DEFAULT_TIME_SLOTS)
    patch.setdefault("doctors", [])
    patch.pop("is_active", None)

    password_hash = hash_password(admin["admin_password"])

    if db.session.query(Clinic.id).filter_by(slug=slug).first() is not None:
        raise ConflictError("This clinic URL is already taken. Please choose a different one.")

    clinic = Clinic(slug=slug, **patch)
    db.session.add(clinic)
    try:
        db.session.flush()
        owner = User(
            clinic_id=clinic.id,
            name=str(admin["admin_name"]).strip(),
            email=str(admin["admin_email"]),
            password_hash=password_hash,
            role=Role.ADMIN.value,
        )
        db.session.add(owner)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("This clinic URL is already taken. Please choose a different one.")

    current_app.logger.info("Created clinic %s (id=%s)", clinic.slug, clinic.id)
    return clinic, owner


def get_public_info(slug: str | None) -> dict:
    clinic = get_clinic_by_slug(slug)
    if clinic is None:
        raise NotFoundError("Clinic not found")
    return clinic.to_public_dict()


def list_clinics(search: str | None = None) -> list[dict]:
    users_count = (
        db.session.query(User.clinic_id, func.count(User.id).label("n"))
        .group_by(User.clinic_id)
        .subquery()
    )
    patients_count = (
        db.session.query(Patient.clinic_id, func.count(Patient.id).label("n"))
        .group_by(Patient.clinic_id)
        .subquery()
    )

    query = (
        db.session.query(Clinic, users_count.c.n, patients_count.c.n)
        .outerjoin(users_count, users_count.c.clinic_id == Clinic.id)
        .outerjoin(patients_count, patients_count.c.clinic_id == Clinic.id)
    )
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Clinic.name.ilike(like), Clinic.slug.ilike(like), Clinic.city.ilike(like)))

    rows = query.order_by(Clinic.created_at.desc(), Clinic.id.desc()).all()
    result = []
    for clinic, n_users, n_patients in rows:
        data = clinic.to_dict()
        data["counts"] = {"users": n_users or 0, "patients": n_patients or 0}
        result.append(data)
    return result


def get_clinic(clinic_id: int) -> Clinic:
    clinic_id = parse_id(clinic_id)
    clinic = db.session.get(Clinic, clinic_id) if clinic_id is not None else None
    if clinic is None:
        raise NotFoundError("Clinic not found")
    return clinic


def clinic_detail(clinic_id: int) -> dict:
    clinic = get_clinic(clinic_id)

    def _count(model) -> int:
        return db.session.query(func.count(model.id)).filter(model.clinic_id == clinic.id).scalar() or 0

    data = clinic.to_dict()
    data["users"] = [
        u.to_dict()
        for u in db.session.query(User).filter_by(clinic_id=clinic.id).order_by(User.created_at, User.id)
    ]
    data["counts"] = {
        "patients": _count(Patient),
        "appointments": _count(Appointment),
        "payments": _count(Payment),
        "follow_ups": _count(FollowUp),
        "inventory_items": _count(InventoryItem),
    }
    return data


def update_clinic(clinic_id: int, payload: dict) -> Clinic:
    """Platform-level edit. slug is immutable and rejected here."""
    clinic = get_clinic(clinic_id)
    if isinstance(payload, dict) and "slug" in payload:
        raise ValidationError("slug cannot be changed after creation")

    patch = validate_payload(model=Clinic, payload=payload, policy=CLINIC_POLICY, partial=True)
    patch = _clean_clinic_patch(patch, base_features=clinic.features)

    for key, value in patch.items():
        setattr(clinic, key, value)
    db.session.commit()
    return clinic


def deactivate_clinic(clinic_id: int, *, actor_id: int | None = None) -> Clinic:
    """
    Soft delete. Sessions already issued to the clinic's users stay valid
    until they expire.
    """
    clinic = get_clinic(clinic_id)
    clinic.is_active = False
    db.session.commit()

    log_security_event(
        user_id=actor_id,
        event_type="CLINIC_DEACTIVATED",
        success=True,
        reason=f"Clinic {clinic.slug} deactivated",
        clinic_id=clinic.id,
    )
    return clinic


def platform_stats() -> dict:
    total = db.session.query(func.count(Clinic.id)).scalar() or 0
    active = db.session.query(func.count(Clinic.id)).filter(Clinic.is_active.is_(True)).scalar() or 0
    users = db.session.query(func.count(User.id)).filter(User.clinic_id.isnot(None)).scalar() or 0
    patients = db.session.query(func.count(Patient.id)).scalar() or 0
    return {
        "total_clinics": total,
        "active_clinics": active,
        "inactive_clinics": total - active,
        "total_users": users,
        "total_patients": patients,
    }
