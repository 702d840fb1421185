# Overview: Clinic staff management (users inside one clinic).

from __future__ import annotations

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..constants import Role, StaffRole
from ..extensions import db
from ..models import Appointment, Patient, User
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    coerce_choice,
    parse_id,
    validate_payload,
)
from .auth_service import hash_password
from .permission_service import log_security_event
from .tenant_service import TenantAccessError, get_scoped_or_404, scoped_query


STAFF_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "role", "is_active"},
    required_on_create={"name", "email", "role"},
    aliases={"isActive": "is_active"},
)


class SelfModificationError(ValidationError):
    """An admin tried to edit their own record through staff management."""


def _staff_query(clinic_id: int):
    return scoped_query(User, clinic_id).filter(User.role != Role.SUPER_ADMIN.value)


def _email_taken(clinic_id: int, email: str, *, exclude_id: int | None = None) -> bool:
    query = _staff_query(clinic_id).filter(User.email == email.strip().lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def list_staff(clinic_id: int, search: str | None = None) -> list[User]:
    query = _staff_query(clinic_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like)))
    return query.order_by(User.created_at.desc(), User.id.desc()).all()


def get_staff(clinic_id: int, user_id, *, actor_id: int | None = None) -> User:
    user = get_scoped_or_404(User, user_id, clinic_id, label="User", user_id=actor_id)
    if user.is_platform_operator:
        raise TenantAccessError("User not found")
    return user


def staff_detail(clinic_id: int, user_id, *, actor_id: int | None = None) -> dict:
    user = get_staff(clinic_id, user_id, actor_id=actor_id)
    data = user.to_dict()
    data["counts"] = {
        "registered_patients": scoped_query(Patient, clinic_id)
        .filter(Patient.registered_by_id == user.id)
        .with_entities(func.count(Patient.id))
        .scalar(),
        "created_appointments": scoped_query(Appointment, clinic_id)
        .filter(Appointment.created_by_id == user.id)
        .with_entities(func.count(Appointment.id))
        .scalar(),
    }
    return data


def create_staff(clinic_id: int, payload: dict, *, actor_id: int) -> User:
    """
    Create a staff account in the actor's clinic.

    Only RECEPTIONIST, NURSE and LAB_TECHNICIAN can be granted here.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = dict(payload)
    password = payload.pop("password", None)
    if not password:
        raise ValidationError("Name, email, password, and role are required")

    patch = validate_payload(model=User, payload=payload, policy=STAFF_POLICY, partial=False)
    patch["role"] = coerce_choice(patch["role"], StaffRole, "role")

    if _email_taken(clinic_id, patch["email"]):
        raise ConflictError("A user with this email already exists in this clinic")

    user = User(clinic_id=clinic_id, password_hash=hash_password(password), **patch)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A user with this email already exists in this clinic")

    log_security_event(
        user_id=actor_id,
        event_type="USER_CREATED",
        success=True,
        reason=f"Created {user.role} {user.email}",
        clinic_id=clinic_id,
    )
    return user


def update_staff(clinic_id: int, user_id, payload: dict, *, actor_id: int) -> User:
    """
    Edit another staff member's name, email, role or active flag.

    Editing one's own record is refused before any lookup happens.
    """
    target_id = parse_id(user_id)
    if target_id is None:
        raise TenantAccessError("User not found")

    if target_id == actor_id:
        log_security_event(
            user_id=actor_id,
            event_type="SELF_MODIFICATION_DENIED",
            success=False,
            reason="Staff management cannot modify the caller's own account",
            clinic_id=clinic_id,
        )
        raise SelfModificationError("Cannot modify your own account from this page")

    user = get_staff(clinic_id, target_id, actor_id=actor_id)

    if isinstance(payload, dict) and "password" in payload:
        raise ValidationError("Field not allowed: password")

    patch = validate_payload(model=User, payload=payload, policy=STAFF_POLICY, partial=True)
    if "role" in patch:
        patch["role"] = coerce_choice(patch["role"], StaffRole, "role")
    if "email" in patch and _email_taken(clinic_id, patch["email"], exclude_id=user.id):
        raise ConflictError("A user with this email already exists in this clinic")

    for key, value in patch.items():
        setattr(user, key, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A user with this email already exists in this clinic")
    return user
