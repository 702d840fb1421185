# Overview: Follow-up routes; gated by the "followups" feature.

from flask import Blueprint, g, request

from ..constants import Feature
from ..decorators import require_auth, require_clinic_context, require_feature
from ..services import followup_service
from ..validation import NotFoundError, ValidationError


follow_ups_bp = Blueprint("follow_ups", __name__, url_prefix="/api/follow-ups")


@follow_ups_bp.get("")
@require_auth
@require_clinic_context
@require_feature(Feature.FOLLOWUPS)
def list_follow_ups_route():
    try:
        follow_ups = followup_service.list_follow_ups(g.clinic_id, status=request.args.get("status"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"follow_ups": [f.to_dict() for f in follow_ups]}


@follow_ups_bp.post("")
@require_auth
@require_clinic_context
@require_feature(Feature.FOLLOWUPS)
def create_follow_up_route():
    payload = request.get_json(silent=True) or {}
    try:
        follow_up = followup_service.create_follow_up(g.clinic_id, payload, actor_id=g.claims.principal_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"follow_up": follow_up.to_dict()}, 201


@follow_ups_bp.patch("/<int:follow_up_id>")
@require_auth
@require_clinic_context
@require_feature(Feature.FOLLOWUPS)
def update_follow_up_route(follow_up_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        follow_up = followup_service.update_follow_up(
            g.clinic_id, follow_up_id, payload, actor_id=g.claims.principal_id
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"follow_up": follow_up.to_dict()}
