"""
Closed enumerations shared by models, services and routes.

Stored values are the upper-case enum values (feature keys are lower-case,
matching the keys persisted in Clinic.enabled_features).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"        # platform operator, no clinic
    ADMIN = "ADMIN"                    # clinic administrator
    RECEPTIONIST = "RECEPTIONIST"
    NURSE = "NURSE"
    LAB_TECHNICIAN = "LAB_TECHNICIAN"


class StaffRole(str, Enum):
    RECEPTIONIST = Role.RECEPTIONIST.value
    NURSE = Role.NURSE.value
    LAB_TECHNICIAN = Role.LAB_TECHNICIAN.value


class Feature(str, Enum):
    PATIENTS = "patients"
    APPOINTMENTS = "appointments"
    PAYMENTS = "payments"
    FOLLOWUPS = "followups"
    INVENTORY = "inventory"
    REPORTS = "reports"

    @classmethod
    def normalize_map(cls, raw: Mapping[str, Any] | None) -> dict[str, bool]:
        """
        Reduce a stored or submitted feature map to known keys.

        Unknown keys are dropped and only a literal True enables a feature,
        so a misspelled key can never switch anything on.
        """
        known = {f.value for f in cls}
        result = {f.value: False for f in cls}
        for key, value in (raw or {}).items():
            if key in known:
                result[key] = value is True
        return result

    @classmethod
    def unknown_keys(cls, raw: Mapping[str, Any] | None) -> list[str]:
        known = {f.value for f in cls}
        return sorted(k for k in (raw or {}) if k not in known)


ALL_FEATURES_ENABLED = {f.value: True for f in Feature}


class Plan(str, Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"


class ItemCategory(str, Enum):
    MEDICINE = "MEDICINE"
    CONSUMABLE = "CONSUMABLE"
    EQUIPMENT = "EQUIPMENT"
    CLEANING = "CLEANING"
    OTHER = "OTHER"


class TransactionType(str, Enum):
    STOCK_IN = "STOCK_IN"
    USED = "USED"
    ADJUSTED = "ADJUSTED"
    RETURNED = "RETURNED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    ONLINE = "ONLINE"


class PaymentStatus(str, Enum):
    PAID = "PAID"


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class FollowUpStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


DEFAULT_TIME_SLOTS = [
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30", "12:00", "12:30",
    "14:00", "14:30", "15:00", "15:30", "16:00", "16:30", "17:00", "17:30",
]
