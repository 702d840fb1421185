# Overview: Flask API routes for login, logout and the current session.

"""
Authentication API routes

The session credential travels only in an HttpOnly, SameSite=Lax cookie
scoped to "/". On a clinic subdomain only that clinic's staff can log in;
on the platform root only platform operators can.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service
from ..services.auth_service import AuthenticationError
from ..services.credential_service import get_credential_service
from ..time_utils import to_utc_z
from ..validation import NotFoundError, ValidationError, require_json_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _set_session_cookie(response, token: str) -> None:
    ttl = get_credential_service().ttl
    response.set_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        token,
        max_age=int(ttl.total_seconds()),
        path="/",
        httponly=True,
        samesite="Lax",
        secure=current_app.config["AUTH_COOKIE_SECURE"],
    )


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and start a session.

    Body: {"email": ..., "password": ...}
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        identity = auth_service.authenticate(
            data.get("email"),
            data.get("password"),
            g.clinic_slug,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AuthenticationError as e:
        return {"error": str(e)}, 401

    token = get_credential_service().issue(identity)
    response = jsonify({"user": identity.to_dict()})
    _set_session_cookie(response, token)
    return response


@auth_bp.post("/logout")
def logout_route():
    """
    Clear the session cookie.

    Tokens are stateless: a copied token stays valid until it expires.
    """
    response = jsonify({"message": "Logged out"})
    response.set_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        "",
        max_age=0,
        expires=0,
        path="/",
        httponly=True,
        samesite="Lax",
        secure=current_app.config["AUTH_COOKIE_SECURE"],
    )
    return response


@auth_bp.get("/me")
@require_auth
def me_route():
    claims = g.claims
    return {
        "user": claims.identity.to_dict(),
        "issued_at": to_utc_z(claims.issued_at),
        "expires_at": to_utc_z(claims.expires_at),
    }
