# Overview: Request gate decorators for API routes.

"""
Authorization gate.

Decorators are stacked in this order on every protected route:

    @require_auth                       401 without a valid session
    @require_platform_operator          403 unless SUPER_ADMIN
      or
    @require_clinic_context             403 unless the session has a clinic
    @require_role(Role.ADMIN, ...)      403 unless the role is allowed
    @require_feature(Feature.X)         404 missing clinic, 403 feature off

Every failure is terminal for the request. Successful checks leave
g.claims (the verified Claims) and g.clinic_id for the handler.
"""

from functools import wraps

from flask import current_app, g, jsonify, request

from .constants import Feature, Role
from .services import permission_service
from .services.credential_service import get_credential_service
from .services.permission_service import PermissionDeniedError
from .services.tenant_service import FeatureDisabledError, check_feature
from .validation import NotFoundError


def _is_authenticated() -> bool:
    return getattr(g, "claims", None) is not None


def require_auth(f):
    """
    Require a valid session cookie.

    Sets:
    - g.claims: verified Claims
    - g.clinic_id: the session's clinic (None for platform operators)

    No database lookup happens here; see credential_service.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        claims = get_credential_service().verify(token)
        if claims is None:
            return jsonify({"error": "Invalid or expired session"}), 401

        g.claims = claims
        g.clinic_id = claims.clinic_id
        return f(*args, **kwargs)

    return decorated_function


def require_platform_operator(f):
    """Require the SUPER_ADMIN role. Must follow @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        claims = g.claims
        try:
            permission_service.require_role(
                user_id=claims.principal_id,
                role=claims.role,
                allowed=(Role.SUPER_ADMIN.value,),
            )
        except PermissionDeniedError:
            return jsonify({"error": "Forbidden"}), 403

        return f(*args, **kwargs)

    return decorated_function


def require_clinic_context(f):
    """Require a session bound to a clinic. Must follow @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        if g.claims.clinic_id is None:
            return jsonify({"error": "Forbidden"}), 403

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: Role):
    """
    Require one of `roles`.

    Security events include the clinic for tenant-scoped auditing.
    """
    allowed = tuple(Role(r).value for r in roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            claims = g.claims
            try:
                permission_service.require_role(
                    user_id=claims.principal_id,
                    role=claims.role,
                    allowed=allowed,
                    clinic_id=claims.clinic_id,
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Forbidden",
                    "required_roles": list(allowed),
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_feature(feature: Feature):
    """
    Require that the caller's clinic has `feature` enabled.

    Independent of role. Applying it without @require_auth in front is a
    programming error and raises at request time.
    """
    feature = Feature(feature)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                raise RuntimeError("require_feature used without require_auth")

            claims = g.claims
            try:
                check_feature(claims.clinic_id, feature)
            except NotFoundError as e:
                return jsonify({"error": str(e)}), 404
            except FeatureDisabledError as e:
                permission_service.log_security_event(
                    user_id=claims.principal_id,
                    event_type="FEATURE_DISABLED",
                    success=False,
                    reason=str(e),
                    clinic_id=claims.clinic_id,
                )
                return jsonify({"error": str(e), "feature": feature.value}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
