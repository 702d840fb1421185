# Overview: Payment routes; gated by the "payments" feature.

from flask import Blueprint, current_app, g, request

from ..constants import Feature
from ..decorators import require_auth, require_clinic_context, require_feature
from ..services import payment_service
from ..validation import ConflictError, NotFoundError, ValidationError


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
@require_clinic_context
@require_feature(Feature.PAYMENTS)
def list_payments_route():
    """Query params: from, to (inclusive dates), method (or "all")."""
    try:
        payments, total = payment_service.list_payments(
            g.clinic_id,
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
            method=request.args.get("method"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"payments": [p.to_dict() for p in payments], "total": str(total)}


@payments_bp.post("")
@require_auth
@require_clinic_context
@require_feature(Feature.PAYMENTS)
def create_payment_route():
    """Record a payment. The receipt code is allocated server-side."""
    payload = request.get_json(silent=True) or {}
    try:
        payment = payment_service.create_payment(g.clinic_id, payload, actor_id=g.claims.principal_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        current_app.logger.warning("Receipt allocation conflict for clinic %s: %s", g.clinic_id, e)
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return {"error": "Internal server error"}, 500
    return {"payment": payment.to_dict()}, 201


@payments_bp.get("/<int:payment_id>")
@require_auth
@require_clinic_context
@require_feature(Feature.PAYMENTS)
def get_payment_route(payment_id: int):
    try:
        payment = payment_service.payment_detail(g.clinic_id, payment_id, actor_id=g.claims.principal_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"payment": payment}
