# Overview: Security audit trail and permission errors.

"""
Security Event Logging with Tenant Context

Every denial the authorization gate produces, and every login attempt, is
written to the append-only security_events table with the clinic it was
aimed at. Grants are not logged.

event_type values:
- LOGIN_FAILED / LOGIN_SUCCEEDED
- PERMISSION_DENIED
- FEATURE_DISABLED
- CROSS_TENANT_ACCESS_DENIED
- SELF_MODIFICATION_DENIED
- CLINIC_DEACTIVATED
- USER_CREATED
"""

from __future__ import annotations

from flask import has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when the caller's role does not allow the operation."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    clinic_id: int | None = None,
) -> SecurityEvent:
    """
    Append a security event and commit it.

    Request metadata (path, method, IP, user agent) is filled in from the
    active request when the caller does not pass it explicitly.

    NOTE: commits the session. Call it before staging any tenant writes in
    the same unit of work.
    """
    if has_request_context():
        resource = resource or request.path
        action = action or request.method
        ip_address = ip_address or request.remote_addr
        user_agent = user_agent or request.headers.get("User-Agent")

    event = SecurityEvent(
        user_id=user_id,
        clinic_id=clinic_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or None) and user_agent[:512],
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def require_role(
    *,
    user_id: int | None,
    role: str,
    allowed: tuple[str, ...],
    clinic_id: int | None = None,
) -> None:
    """
    Raise PermissionDeniedError (and log it) unless `role` is in `allowed`.

    Fail closed: an empty allow-list denies everyone.
    """
    if role in allowed:
        return

    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        reason=f"Role {role} not in {', '.join(allowed) or '(none)'}",
        clinic_id=clinic_id,
    )
    raise PermissionDeniedError(f"Requires role: {' or '.join(allowed)}")
