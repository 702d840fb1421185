# Overview: Staff management routes for clinic administrators.

"""
Staff API

- Any clinic user can list and view staff in their clinic.
- Only ADMIN can create or edit staff, and never their own record here.
"""

from flask import Blueprint, g, request

from ..constants import Role
from ..decorators import require_auth, require_clinic_context, require_role
from ..services import staff_service
from ..validation import ConflictError, NotFoundError, ValidationError


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_clinic_context
def list_users_route():
    users = staff_service.list_staff(g.clinic_id, request.args.get("search"))
    return {"users": [u.to_dict() for u in users]}


@users_bp.post("")
@require_auth
@require_clinic_context
@require_role(Role.ADMIN)
def create_user_route():
    payload = request.get_json(silent=True) or {}
    try:
        user = staff_service.create_staff(g.clinic_id, payload, actor_id=g.claims.principal_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"user": user.to_dict()}, 201


@users_bp.get("/<int:user_id>")
@require_auth
@require_clinic_context
def get_user_route(user_id: int):
    try:
        user = staff_service.staff_detail(g.clinic_id, user_id, actor_id=g.claims.principal_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"user": user}


@users_bp.patch("/<int:user_id>")
@require_auth
@require_clinic_context
@require_role(Role.ADMIN)
def update_user_route(user_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        user = staff_service.update_staff(g.clinic_id, user_id, payload, actor_id=g.claims.principal_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"user": user.to_dict()}
