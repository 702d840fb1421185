# Overview: Public clinic endpoints: subdomain branding and self-service signup.

from flask import Blueprint, current_app, g, request

from ..services import clinic_service
from ..validation import ConflictError, NotFoundError, ValidationError


clinic_bp = Blueprint("clinic", __name__, url_prefix="/api/clinic")
signup_bp = Blueprint("signup", __name__, url_prefix="/api/signup")


@clinic_bp.get("/public-info")
def public_info_route():
    """Name, abbreviation and logo of the clinic addressed by the subdomain."""
    try:
        clinic = clinic_service.get_public_info(g.clinic_slug)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"clinic": clinic}


def _clinic_url(slug: str) -> str:
    root = current_app.config["ROOT_DOMAIN"]
    scheme = "http" if "localhost" in root or "lvh.me" in root else "https"
    return f"{scheme}://{slug}.{root}"


@signup_bp.post("")
def signup_route():
    """
    Create a clinic and its administrator.

    Body: clinicName, slug, abbreviation, adminName, adminEmail,
    adminPassword, optional phone, city, doctors, enabledFeatures.
    """
    payload = request.get_json(silent=True) or {}

    try:
        clinic, admin = clinic_service.create_clinic_with_admin(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create clinic from signup")
        return {"error": "Internal server error"}, 500

    return {
        "message": "Clinic created successfully",
        "clinic": {
            "id": clinic.id,
            "name": clinic.name,
            "slug": clinic.slug,
            "url": _clinic_url(clinic.slug),
        },
        "admin": {"id": admin.id, "name": admin.name, "email": admin.email},
    }, 201
