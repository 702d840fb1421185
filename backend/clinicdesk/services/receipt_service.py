# Overview: Per-clinic, per-day receipt numbering.

"""
Receipt codes look like ABBR-YYYYMMDD-NNN.

The counter lives in receipt_sequences, one row per (clinic, day), and is
advanced with a single atomic UPDATE. Two payments recorded at the same
moment for the same clinic therefore always get different numbers. The
first allocation of a day creates the row, seeded from the highest code
already stored under that prefix so older codes are never reused.

Allocation joins the caller's transaction: if the payment insert fails and
rolls back, the number is released with it.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Clinic, Payment, ReceiptSequence
from ..time_utils import day_key, utctoday
from ..validation import NotFoundError


SEQUENCE_PAD = 3


def receipt_prefix(clinic: Clinic, day: date) -> str:
    abbreviation = (clinic.abbreviation or "").strip().upper()
    if not abbreviation:
        abbreviation = current_app.config.get("RECEIPT_DEFAULT_ABBREVIATION", "CLI")
    return f"{abbreviation}-{day_key(day)}-"


def _highest_existing(clinic_id: int, prefix: str) -> int:
    """Largest numeric suffix already used under prefix (0 if none)."""
    rows = (
        db.session.query(Payment.receipt)
        .filter(Payment.clinic_id == clinic_id, Payment.receipt.startswith(prefix, autoescape=True))
        .all()
    )
    highest = 0
    for (receipt,) in rows:
        suffix = receipt[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def _advance(clinic_id: int, day: str) -> bool:
    result = db.session.execute(
        update(ReceiptSequence)
        .where(ReceiptSequence.clinic_id == clinic_id, ReceiptSequence.day == day)
        .values(last_number=ReceiptSequence.last_number + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def next_receipt_number(clinic_id: int, today: date | None = None) -> str:
    """
    Allocate the next receipt code for a clinic and day.

    Does not commit; the caller's commit makes the allocation durable.
    """
    clinic = db.session.get(Clinic, clinic_id)
    if clinic is None:
        raise NotFoundError("Clinic not found")

    today = today or utctoday()
    day = day_key(today)
    prefix = receipt_prefix(clinic, today)

    if not _advance(clinic_id, day):
        seed = _highest_existing(clinic_id, prefix)
        try:
            with db.session.begin_nested():
                db.session.add(ReceiptSequence(clinic_id=clinic_id, day=day, last_number=seed + 1))
        except IntegrityError:
            # Another writer created today's row first
            if not _advance(clinic_id, day):
                raise

    number = (
        db.session.query(ReceiptSequence.last_number)
        .filter(ReceiptSequence.clinic_id == clinic_id, ReceiptSequence.day == day)
        .scalar()
    )
    return f"{prefix}{number:0{SEQUENCE_PAD}d}"
