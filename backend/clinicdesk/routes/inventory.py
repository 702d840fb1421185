# backend/clinicdesk/routes/inventory.py
"""
Inventory routes; gated by the "inventory" feature.

Seeding the default catalogue is limited to clinic admins.

The item balance is never writable directly: stock moves only through
POST /api/inventory/<id>/transactions, which appends to the ledger.
"""
from flask import Blueprint, current_app, g, request

from ..constants import Feature, Role
from ..decorators import require_auth, require_clinic_context, require_feature, require_role
from ..services import inventory_service
from ..services.inventory_service import InsufficientStockError
from ..validation import ConflictError, NotFoundError, ValidationError, require_json_object


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_clinic_context
@require_feature(Feature.INVENTORY)
def list_items_route():
    """Query params: search, category, lowStock=true."""
    low_stock = (request.args.get("lowStock") or request.args.get("low_stock") or "").lower() == "true"
    try:
        items = inventory_service.list_items(
            g.clinic_id,
            search=request.args.get("search"),
            category=request.args.get("category"),
            low_stock=low_stock,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [i.to_dict() for i in items]}


@inventory_bp.post("")
@require_auth
@require_clinic_context
@require_feature(Feature.INVENTORY)
def create_item_route():
    payload = request.get_json(silent=True) or {}
    try:
        item = inventory_service.create_item(g.clinic_id, payload, actor_id=g.claims.principal_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return {"error": "Internal server error"}, 500
    return {"item": item.to_dict()}, 201


@inventory_bp.post("/seed")
@require_auth
@require_clinic_context
@require_role(Role.ADMIN)
@require_feature(Feature.INVENTORY)
def seed_items_route():
    """Load the default catalogue into an empty inventory (ADMIN only)."""
    try:
        items = inventory_service.seed_default_items(g.clinic_id, actor_id=g.claims.principal_id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to seed inventory")
        return {"error": "Failed to seed inventory"}, 500
    return {
        "message": f"Seeded {len(items)} inventory items",
        "items": [i.name for i in items],
    }, 201


@inventory_bp.get("/<int:item_id>")
@require_auth
@require_clinic_context
@require_feature(Feature.INVENTORY)
def get_item_route(item_id: int):
    try:
        item = inventory_service.item_detail(g.clinic_id, item_id, actor_id=g.claims.principal_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"item": item}


@inventory_bp.patch("/<int:item_id>")
@require_auth
@require_clinic_context
@require_feature(Feature.INVENTORY)
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        item = inventory_service.update_item(g.clinic_id, item_id, payload, actor_id=g.claims.principal_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"item": item.to_dict()}


@inventory_bp.get("/<int:item_id>/transactions")
@require_auth
@require_clinic_context
@require_feature(Feature.INVENTORY)
def list_transactions_route(item_id: int):
    try:
        transactions = inventory_service.list_transactions(g.clinic_id, item_id, actor_id=g.claims.principal_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"transactions": [t.to_dict() for t in transactions]}


@inventory_bp.post("/<int:item_id>/transactions")
@require_auth
@require_clinic_context
@require_feature(Feature.INVENTORY)
def create_transaction_route(item_id: int):
    """
    Apply a stock movement.

    Body: {"type": STOCK_IN|USED|ADJUSTED|RETURNED, "quantity": int, "reason": str?}
    """
    try:
        payload = require_json_object(request.get_json(silent=True))
        item, transaction = inventory_service.apply_transaction(
            clinic_id=g.clinic_id,
            item_id=item_id,
            kind=payload.get("type"),
            magnitude=payload.get("quantity"),
            reason=payload.get("reason"),
            actor_id=g.claims.principal_id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStockError as e:
        return {"error": str(e), "available": e.available}, 409
    except Exception:
        current_app.logger.exception("Failed to apply inventory transaction")
        return {"error": "Internal server error"}, 500
    return {"item": item.to_dict(), "transaction": transaction.to_dict()}, 201
