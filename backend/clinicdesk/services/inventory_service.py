# Overview: Inventory items and the stock ledger.

"""
Inventory Ledger Invariants (authoritative)

- InventoryItem.quantity is the running balance and is never negative
  (enforced by the WHERE clause below and by a DB check constraint).
- InventoryTransaction rows are append-only. quantity on a transaction is
  the signed delta that was applied.
- For every item: SUM(transactions.quantity) == item.quantity. Items created
  with stock get an "Initial stock" STOCK_IN in the same DB transaction.
- The balance update is a single conditional UPDATE, so two writers on the
  same item are serialised by the database and a writer can never apply a
  delta against a stale balance. Writers on different items never contend.
- A rejected transaction leaves no trace: no balance change, no log row.

Delta derivation:
- STOCK_IN, RETURNED -> +|magnitude|
- USED               -> -|magnitude|
- ADJUSTED           -> magnitude as given (signed)
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError

from ..constants import ItemCategory, TransactionType
from ..extensions import db
from ..models import InventoryItem, InventoryTransaction, User
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    coerce_choice,
    coerce_int,
    enforce_rules_inventory_item,
    parse_id,
    validate_payload,
)
from .concurrency import run_with_retry
from .tenant_service import TenantAccessError, get_scoped_or_404, scoped_query


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "unit", "quantity", "min_quantity",
        "cost", "supplier", "notes",
    },
    required_on_create={"name", "category", "unit", "quantity", "min_quantity"},
    aliases={"minQuantity": "min_quantity"},
)

ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "unit", "min_quantity", "cost", "supplier", "notes", "is_active"},
    aliases={"minQuantity": "min_quantity", "isActive": "is_active"},
)

INITIAL_STOCK_REASON = "Initial stock"
RECENT_TRANSACTIONS = 20

# Default catalogue for a new clinic: (name, category, unit, quantity, min_quantity, cost, supplier)
DEFAULT_ITEMS = [
    ("Progesterone Injection 50mg", "MEDICINE", "vials", 45, 10, "320", "Sun Pharma"),
    ("Folic Acid 5mg Tablets", "MEDICINE", "strips", 120, 30, "25", "Cipla"),
    ("Estradiol Valerate 2mg", "MEDICINE", "strips", 60, 15, "180", "Zydus Healthcare"),
    ("HCG Injection 5000 IU", "MEDICINE", "vials", 8, 10, "450", "Intas Pharmaceuticals"),
    ("Letrozole 2.5mg Tablets", "MEDICINE", "strips", 50, 20, "95", "Sun Pharma"),
    ("Clomiphene Citrate 50mg", "MEDICINE", "strips", 35, 15, "65", "Cipla"),
    ("Cabergoline 0.5mg Tablets", "MEDICINE", "strips", 12, 5, "280", "Sun Pharma"),
    ("Dydrogesterone 10mg", "MEDICINE", "strips", 80, 25, "210", "Abbott"),
    ("Metformin 500mg Tablets", "MEDICINE", "strips", 100, 30, "18", "USV Pvt Ltd"),
    ("Cetrotide 0.25mg Injection", "MEDICINE", "vials", 3, 5, "2800", "Merck"),
    ("Disposable Syringes 5ml", "CONSUMABLE", "boxes", 25, 10, "180", "Hindustan Syringes"),
    ("Surgical Gloves (Medium)", "CONSUMABLE", "boxes", 15, 8, "350", "Ansell Healthcare"),
    ("Sterile Cotton Rolls", "CONSUMABLE", "packs", 30, 10, "85", "Reliance Medical"),
    ("Ultrasound Gel 250ml", "CONSUMABLE", "bottles", 10, 5, "120", "Anagel"),
    ("Specimen Containers", "CONSUMABLE", "pcs", 200, 50, "8", "Polylab"),
    ("IV Cannula 20G", "CONSUMABLE", "boxes", 18, 5, "450", "BD Medical"),
    ("Face Masks (3-ply)", "CONSUMABLE", "boxes", 0, 10, "150", "Venus Safety"),
    ("Tissue Paper Rolls", "CONSUMABLE", "packs", 20, 8, "45", "Local Supplier"),
    ("Hand Sanitizer 500ml", "CLEANING", "bottles", 12, 5, "160", "Godrej Consumer"),
    ("Floor Cleaner (Disinfectant)", "CLEANING", "bottles", 6, 3, "220", "Reckitt Benckiser"),
    ("Surface Disinfectant Spray", "CLEANING", "cans", 4, 4, "350", "3M India"),
    ("Liquid Hand Wash 1L", "CLEANING", "bottles", 8, 4, "180", "Dettol"),
    ("Biohazard Disposal Bags", "CLEANING", "packs", 15, 5, "90", "Polylab"),
    ("Digital Thermometer", "EQUIPMENT", "pcs", 5, 2, "250", "Omron Healthcare"),
    ("BP Monitor Cuffs", "EQUIPMENT", "pcs", 3, 2, "600", "Omron Healthcare"),
    ("Examination Table Paper Roll", "EQUIPMENT", "rolls", 10, 4, "180", "Medline Industries"),
]


class InsufficientStockError(ConflictError):
    """The transaction would take the item's balance below zero."""

    def __init__(self, available: int, unit: str | None = None):
        self.available = available
        label = f"{available} {unit}" if unit else str(available)
        super().__init__(f"Insufficient stock: only {label} available")


def signed_delta(kind: str, magnitude: int) -> int:
    if magnitude == 0:
        raise ValidationError("quantity must be non-zero")
    if kind in (TransactionType.STOCK_IN.value, TransactionType.RETURNED.value):
        return abs(magnitude)
    if kind == TransactionType.USED.value:
        return -abs(magnitude)
    if kind == TransactionType.ADJUSTED.value:
        return magnitude
    raise ValidationError(f"Invalid transaction type: {kind}")


def _clean_reason(reason) -> str | None:
    if reason is None:
        return None
    if not isinstance(reason, str):
        raise ValidationError("reason must be a string")
    reason = reason.strip()
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255")
    return reason or None


def apply_transaction(
    *,
    clinic_id: int,
    item_id,
    kind,
    magnitude,
    reason=None,
    actor_id: int | None = None,
) -> tuple[InventoryItem, InventoryTransaction]:
    """
    Move stock on one item and append the matching log row atomically.

    Raises:
        ValidationError: unknown kind, zero or non-integer magnitude, inactive item
        TenantAccessError: item absent from this clinic
        InsufficientStockError: resulting balance would be negative
    """
    kind = coerce_choice(kind, TransactionType, "type")
    if magnitude is None:
        raise ValidationError("Type and a non-zero quantity are required")
    delta = signed_delta(kind, coerce_int(magnitude, "quantity"))
    reason = _clean_reason(reason)
    item_id = parse_id(item_id)
    if item_id is None:
        raise TenantAccessError("Item not found")

    def _op():
        try:
            result = db.session.execute(
                update(InventoryItem)
                .where(
                    InventoryItem.id == item_id,
                    InventoryItem.clinic_id == clinic_id,
                    InventoryItem.is_active.is_(True),
                    InventoryItem.quantity + delta >= 0,
                )
                .values(quantity=InventoryItem.quantity + delta, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 1:
                tx = InventoryTransaction(
                    clinic_id=clinic_id,
                    item_id=item_id,
                    type=kind,
                    quantity=delta,
                    reason=reason,
                    performed_by_id=actor_id,
                    created_at=utcnow(),
                )
                db.session.add(tx)
                db.session.commit()
                return tx.id
        except SQLAlchemyError:
            db.session.rollback()
            raise

        # Nothing was written; release the transaction before diagnosing
        db.session.rollback()
        return None

    tx_id = run_with_retry(_op)

    if tx_id is None:
        item = get_scoped_or_404(InventoryItem, item_id, clinic_id, label="Item", user_id=actor_id)
        if not item.is_active:
            raise ValidationError("Item is inactive")
        raise InsufficientStockError(item.quantity, item.unit)

    item = scoped_query(InventoryItem, clinic_id).filter(InventoryItem.id == item_id).one()
    tx = db.session.get(InventoryTransaction, tx_id)
    current_app.logger.info(
        "Inventory %s on item %s (clinic %s): delta=%s balance=%s",
        kind, item_id, clinic_id, delta, item.quantity,
    )
    return item, tx


def _build_item(clinic_id: int, patch: dict, actor_id: int | None) -> InventoryItem:
    patch = dict(patch)
    patch["category"] = coerce_choice(patch["category"], ItemCategory, "category")
    enforce_rules_inventory_item(patch)
    quantity = patch.pop("quantity")
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")

    item = InventoryItem(clinic_id=clinic_id, added_by_id=actor_id, quantity=quantity, **patch)
    db.session.add(item)
    if quantity > 0:
        db.session.flush()
        db.session.add(InventoryTransaction(
            clinic_id=clinic_id,
            item_id=item.id,
            type=TransactionType.STOCK_IN.value,
            quantity=quantity,
            reason=INITIAL_STOCK_REASON,
            performed_by_id=actor_id,
            created_at=utcnow(),
        ))
    return item


def create_item(clinic_id: int, payload: dict, *, actor_id: int | None = None) -> InventoryItem:
    """Create an item; opening stock is logged in the same transaction."""
    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=False)

    def _op():
        try:
            item = _build_item(clinic_id, patch, actor_id)
            db.session.commit()
        except (SQLAlchemyError, ValueError):
            db.session.rollback()
            raise
        return item

    return run_with_retry(_op)


def update_item(clinic_id: int, item_id, payload: dict, *, actor_id: int | None = None) -> InventoryItem:
    """Metadata only. The balance moves exclusively through apply_transaction."""
    if isinstance(payload, dict) and "quantity" in payload:
        raise ValidationError("quantity can only be changed through stock transactions")

    item = get_scoped_or_404(InventoryItem, item_id, clinic_id, label="Item", user_id=actor_id)
    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_UPDATE_POLICY, partial=True)
    if "category" in patch:
        patch["category"] = coerce_choice(patch["category"], ItemCategory, "category")
    enforce_rules_inventory_item(patch)

    for key, value in patch.items():
        setattr(item, key, value)
    db.session.commit()
    return item


def list_items(
    clinic_id: int,
    *,
    search: str | None = None,
    category: str | None = None,
    low_stock: bool = False,
) -> list[InventoryItem]:
    query = scoped_query(InventoryItem, clinic_id).filter(InventoryItem.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(InventoryItem.name.ilike(like), InventoryItem.supplier.ilike(like)))
    if category:
        query = query.filter(InventoryItem.category == coerce_choice(category, ItemCategory, "category"))
    if low_stock:
        query = query.filter(InventoryItem.quantity <= InventoryItem.min_quantity)
    return query.order_by(InventoryItem.name, InventoryItem.id).all()


def list_transactions(clinic_id: int, item_id, *, limit: int | None = None, actor_id: int | None = None) -> list[InventoryTransaction]:
    item = get_scoped_or_404(InventoryItem, item_id, clinic_id, label="Item", user_id=actor_id)
    query = (
        scoped_query(InventoryTransaction, clinic_id)
        .filter(InventoryTransaction.item_id == item.id)
        .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def item_detail(clinic_id: int, item_id, *, actor_id: int | None = None) -> dict:
    item = get_scoped_or_404(InventoryItem, item_id, clinic_id, label="Item", user_id=actor_id)
    added_by = db.session.get(User, item.added_by_id) if item.added_by_id else None

    data = item.to_dict()
    data["added_by"] = {"id": added_by.id, "name": added_by.name} if added_by else None
    data["transactions"] = [
        tx.to_dict()
        for tx in list_transactions(clinic_id, item.id, limit=RECENT_TRANSACTIONS, actor_id=actor_id)
    ]
    return data


def ledger_balance(clinic_id: int, item_id: int) -> int:
    """Sum of all logged deltas for an item; equals item.quantity."""
    total = (
        scoped_query(InventoryTransaction, clinic_id)
        .filter(InventoryTransaction.item_id == item_id)
        .with_entities(func.coalesce(func.sum(InventoryTransaction.quantity), 0))
        .scalar()
    )
    return int(total or 0)


def low_stock_count(clinic_id: int) -> int:
    return (
        scoped_query(InventoryItem, clinic_id)
        .filter(InventoryItem.is_active.is_(True), InventoryItem.quantity <= InventoryItem.min_quantity)
        .with_entities(func.count(InventoryItem.id))
        .scalar()
    ) or 0


def seed_default_items(clinic_id: int, *, actor_id: int | None = None) -> list[InventoryItem]:
    """
    Load the default catalogue into an empty clinic inventory.

    Every item with stock gets its opening STOCK_IN, so the ledger invariant
    holds for seeded items too.
    """
    existing = scoped_query(InventoryItem, clinic_id).with_entities(func.count(InventoryItem.id)).scalar()
    if existing:
        raise ConflictError(
            f"Inventory already has {existing} items. Delete them first if you want to re-seed."
        )

    created = []
    try:
        for name, category, unit, quantity, min_quantity, cost, supplier in DEFAULT_ITEMS:
            created.append(_build_item(clinic_id, {
                "name": name,
                "category": category,
                "unit": unit,
                "quantity": quantity,
                "min_quantity": min_quantity,
                "cost": Decimal(cost),
                "supplier": supplier,
            }, actor_id))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return created
