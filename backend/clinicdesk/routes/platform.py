# Overview: Platform operator routes. These are the only routes that see every clinic.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_platform_operator
from ..services import clinic_service
from ..validation import ConflictError, NotFoundError, ValidationError


platform_bp = Blueprint("platform", __name__, url_prefix="/api/platform")


@platform_bp.get("/clinics")
@require_auth
@require_platform_operator
def list_clinics_route():
    return {"clinics": clinic_service.list_clinics(request.args.get("search"))}


@platform_bp.post("/clinics")
@require_auth
@require_platform_operator
def create_clinic_route():
    payload = request.get_json(silent=True) or {}
    try:
        clinic, admin = clinic_service.create_clinic_with_admin(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {
        "clinic": clinic.to_dict(),
        "admin": {"id": admin.id, "name": admin.name, "email": admin.email},
    }, 201


@platform_bp.get("/clinics/<int:clinic_id>")
@require_auth
@require_platform_operator
def get_clinic_route(clinic_id: int):
    try:
        return {"clinic": clinic_service.clinic_detail(clinic_id)}
    except NotFoundError as e:
        return {"error": str(e)}, 404


@platform_bp.patch("/clinics/<int:clinic_id>")
@require_auth
@require_platform_operator
def update_clinic_route(clinic_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        clinic = clinic_service.update_clinic(clinic_id, payload)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"clinic": clinic.to_dict()}


@platform_bp.delete("/clinics/<int:clinic_id>")
@require_auth
@require_platform_operator
def deactivate_clinic_route(clinic_id: int):
    """Soft delete: the clinic is deactivated, never removed."""
    try:
        clinic = clinic_service.deactivate_clinic(clinic_id, actor_id=g.claims.principal_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"clinic": clinic.to_dict(), "message": "Clinic deactivated"}


@platform_bp.get("/stats")
@require_auth
@require_platform_operator
def stats_route():
    return clinic_service.platform_stats()
