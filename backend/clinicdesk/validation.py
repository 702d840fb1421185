from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_date


# Maximum monetary amount accepted on payments and item costs (Numeric(10, 2))
MAX_AMOUNT = Decimal("99999999.99")

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 50

MIN_PASSWORD_LENGTH = 6

# Signed 32-bit range of an Integer column
MIN_INTEGER = -(2**31)
MAX_INTEGER = 2**31 - 1


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., slug already taken)."""


class NotFoundError(LookupError):
    """404-level: the resource is absent, or absent from the caller's clinic."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - aliases: camelCase request keys accepted for a column key
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    aliases: dict[str, str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion: rejects bools, floats and scientific notation.

    The result must fit an Integer column.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            number = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if not MIN_INTEGER <= number <= MAX_INTEGER:
        raise ValidationError(f"{field} is out of range")
    return number


def parse_id(value: Any) -> int | None:
    """Row id from a URL or payload, or None if it cannot name a row."""
    try:
        return coerce_int(value, "id")
    except ValidationError:
        return None


def coerce_amount(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount.quantize(Decimal("0.01"))


def coerce_date(value: Any, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")
    if parsed is None:
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")
    return parsed


def coerce_choice(value: Any, enum_cls: type[Enum], field: str) -> str:
    """Upper-case and check a value against a closed enumeration."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    candidate = value.strip().upper()
    allowed = [member.value for member in enum_cls]
    if candidate not in allowed:
        raise ValidationError(f"Invalid {field}. Allowed: {', '.join(allowed)}")
    return candidate


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Numeric):
        return coerce_amount(value, col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # DateTime before Date: both are date-ish but DateTime is not a Date subclass
    if isinstance(coltype, DateTime):
        raise ValidationError(f"{col.key} is read-only")

    if isinstance(coltype, Date):
        return coerce_date(value, col.key)

    if isinstance(coltype, JSON):
        if isinstance(value, (list, dict)):
            return value
        raise ValidationError(f"{col.key} must be a list or object")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    # Default: leave as-is
    return value


def require_json_object(payload: Any) -> dict:
    """Request body as a dict; a missing body is an empty one."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    aliases = policy.aliases or {}
    payload = {aliases.get(k, k): v for k, v in payload.items()}

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(
            f for f in required
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # Empty strings on optional text columns mean "clear"
        if isinstance(raw, str) and not raw.strip() and col.nullable:
            raw = None

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def validate_slug(slug: Any) -> str:
    if not isinstance(slug, str) or not slug:
        raise ValidationError("slug is required")
    if not SLUG_RE.match(slug):
        raise ValidationError("Slug must contain only lowercase letters, numbers, and hyphens")
    if len(slug) < SLUG_MIN_LENGTH or len(slug) > SLUG_MAX_LENGTH:
        raise ValidationError(
            f"Slug must be between {SLUG_MIN_LENGTH} and {SLUG_MAX_LENGTH} characters"
        )
    return slug


def validate_password(password: Any) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def enforce_rules_inventory_item(patch: dict) -> None:
    if patch.get("min_quantity") is not None and patch["min_quantity"] < 0:
        raise ValidationError("min_quantity must be >= 0")


def enforce_rules_payment(patch: dict) -> None:
    if "amount" in patch and patch["amount"] is not None and patch["amount"] <= 0:
        raise ValidationError("amount must be > 0")


def enforce_rules_patient(patch: dict) -> None:
    if patch.get("age") is not None and not 0 <= patch["age"] <= 150:
        raise ValidationError("age must be between 0 and 150")
