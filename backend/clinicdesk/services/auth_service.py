# Overview: Password hashing and login for clinic staff and platform operators.

"""
Authentication Service with Multi-Tenant Support

Users belong to exactly one clinic, except platform operators (SUPER_ADMIN)
who belong to none. Login is resolved against the clinic selected by the
request host: on a clinic subdomain only that clinic's staff can sign in, on
the platform root only operators can.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 6 characters required
- Unknown email, wrong password and inactive account give the same error
"""

from __future__ import annotations

import bcrypt

from ..extensions import db
from ..models import Clinic, User
from ..constants import Role
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError, validate_password
from .credential_service import SessionIdentity
from .permission_service import log_security_event
from .tenant_service import get_clinic_by_slug


class AuthenticationError(Exception):
    """Raised when credentials do not identify an active user."""
    pass


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password length is validated before hashing.
    """
    validate_password(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def identity_for(user: User, clinic: Clinic | None) -> SessionIdentity:
    return SessionIdentity(
        principal_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        clinic_id=clinic.id if clinic else None,
        clinic_slug=clinic.slug if clinic else None,
    )


def authenticate(email: str, password: str, clinic_slug: str | None) -> SessionIdentity:
    """
    Check credentials and return the identity to put in the session.

    clinic_slug is the subdomain the login was posted to (None on the
    platform root).

    Raises:
        ValidationError: email or password missing
        NotFoundError: clinic subdomain unknown or deactivated
        AuthenticationError: bad credentials or inactive user
    """
    if not email or not password or not isinstance(email, str) or not isinstance(password, str):
        raise ValidationError("Email and password are required")

    email = email.strip().lower()
    clinic = None

    if clinic_slug:
        clinic = get_clinic_by_slug(clinic_slug)
        if clinic is None:
            raise NotFoundError("Clinic not found or inactive")
        user = db.session.query(User).filter_by(clinic_id=clinic.id, email=email).first()
    else:
        user = (
            db.session.query(User)
            .filter_by(email=email, role=Role.SUPER_ADMIN.value)
            .filter(User.clinic_id.is_(None))
            .first()
        )

    clinic_id = clinic.id if clinic else None

    if not user or not user.is_active or not verify_password(password, user.password_hash):
        log_security_event(
            user_id=user.id if user else None,
            event_type="LOGIN_FAILED",
            success=False,
            reason="Invalid credentials" if not user or user.is_active else "User inactive",
            clinic_id=clinic_id,
        )
        raise AuthenticationError("Invalid email or password")

    user.last_login_at = utcnow()
    db.session.commit()

    log_security_event(
        user_id=user.id,
        event_type="LOGIN_SUCCEEDED",
        success=True,
        clinic_id=clinic_id,
    )

    return identity_for(user, clinic)
