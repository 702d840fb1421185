# Overview: Appointment routes; gated by the "appointments" feature.

from flask import Blueprint, g, request

from ..constants import Feature
from ..decorators import require_auth, require_clinic_context, require_feature
from ..services import appointment_service
from ..validation import NotFoundError, ValidationError


appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


@appointments_bp.get("")
@require_auth
@require_clinic_context
@require_feature(Feature.APPOINTMENTS)
def list_appointments_route():
    """Query params: date (YYYY-MM-DD), status (or "all")."""
    try:
        appointments = appointment_service.list_appointments(
            g.clinic_id,
            day=request.args.get("date"),
            status=request.args.get("status"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"appointments": [a.to_dict() for a in appointments]}


@appointments_bp.post("")
@require_auth
@require_clinic_context
@require_feature(Feature.APPOINTMENTS)
def create_appointment_route():
    payload = request.get_json(silent=True) or {}
    try:
        appointment = appointment_service.create_appointment(g.clinic_id, payload, actor_id=g.claims.principal_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"appointment": appointment.to_dict()}, 201


@appointments_bp.patch("/<int:appointment_id>")
@require_auth
@require_clinic_context
@require_feature(Feature.APPOINTMENTS)
def update_appointment_route(appointment_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        appointment = appointment_service.update_appointment(
            g.clinic_id, appointment_id, payload, actor_id=g.claims.principal_id
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"appointment": appointment.to_dict()}
