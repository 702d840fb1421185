"""
Multi-Tenant Service: Host Resolution, Scoping and Feature Gating

Every clinic-owned row carries clinic_id, and every lookup made on behalf of
a clinic user goes through scoped_query / get_scoped_or_404 with the clinic
id taken from the verified session claims (never from the host or the body).

SECURITY INVARIANTS:
1. Ids from client input resolve only inside the caller's clinic
2. A row that exists in another clinic is reported exactly like a missing row
3. Cross-clinic lookups are logged as CROSS_TENANT_ACCESS_DENIED
4. The subdomain slug picks which clinic's login/public info is reachable;
   it is never an authorization decision

USAGE:
    patient = get_scoped_or_404(Patient, patient_id, claims.clinic_id)
    items = scoped_query(InventoryItem, claims.clinic_id).filter_by(is_active=True)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..constants import Feature
from ..extensions import db
from ..models import Clinic
from ..validation import NotFoundError, parse_id
from .permission_service import log_security_event


# API prefixes reachable on the platform root host (no clinic subdomain)
ROOT_ALLOWED_PREFIXES = (
    "/api/auth",
    "/api/signup",
    "/api/platform",
    "/api/clinic",
    "/api/health",
)


class TenantAccessError(NotFoundError):
    """Raised when an id is absent from the caller's clinic."""
    pass


class FeatureDisabledError(Exception):
    """Raised when the clinic has not enabled the requested feature."""

    def __init__(self, feature: Feature):
        self.feature = Feature(feature)
        super().__init__(f"Feature '{self.feature.value}' is not enabled for this clinic")


@dataclass(frozen=True)
class NoTenant:
    """The request targets the platform root."""


@dataclass(frozen=True)
class TenantSlug:
    slug: str


TenantHost = Union[NoTenant, TenantSlug]


def resolve_tenant_host(host, root_domain) -> TenantHost:
    """
    Map a request host to the clinic subdomain it addresses.

    - host == root, or "www." + root -> NoTenant
    - "<label>." + root with a single non-empty label -> TenantSlug(label)
    - anything else (unrelated hosts, nested subdomains, non-strings) -> NoTenant

    Comparison is case-insensitive. Never raises.
    """
    if not isinstance(host, str) or not isinstance(root_domain, str):
        return NoTenant()

    host = host.strip().lower()
    root = root_domain.strip().lower()
    if not host or not root:
        return NoTenant()

    if host == root or host == "www." + root:
        return NoTenant()

    suffix = "." + root
    if not host.endswith(suffix):
        return NoTenant()

    label = host[: -len(suffix)]
    if not label or "." in label:
        return NoTenant()

    return TenantSlug(label)


def is_root_path_allowed(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in ROOT_ALLOWED_PREFIXES)


def get_clinic_by_slug(slug: str | None, *, active_only: bool = True) -> Clinic | None:
    if not slug:
        return None
    query = db.session.query(Clinic).filter(Clinic.slug == slug.lower())
    if active_only:
        query = query.filter(Clinic.is_active.is_(True))
    return query.first()


def scoped_query(model, clinic_id: int):
    """
    Base query for a clinic-owned model, filtered to one clinic.

    The model must carry a clinic_id column.
    """
    if clinic_id is None:
        raise TenantAccessError("Clinic context not established")
    return db.session.query(model).filter(model.clinic_id == clinic_id)


def get_scoped_or_404(model, obj_id, clinic_id: int, *, label: str | None = None, user_id: int | None = None):
    """
    Fetch one clinic-owned row by id, or raise TenantAccessError.

    The error message is identical for "does not exist" and "belongs to
    another clinic".
    """
    label = label or model.__name__
    obj_id = parse_id(obj_id)
    if obj_id is None:
        raise TenantAccessError(f"{label} not found")

    obj = scoped_query(model, clinic_id).filter(model.id == obj_id).first()
    if obj is not None:
        return obj

    owner = db.session.query(model.clinic_id).filter(model.id == obj_id).scalar()
    if owner is not None:
        log_security_event(
            user_id=user_id,
            event_type="CROSS_TENANT_ACCESS_DENIED",
            success=False,
            reason=f"{label} {obj_id} belongs to clinic {owner}, not {clinic_id}",
            clinic_id=clinic_id,
        )
    raise TenantAccessError(f"{label} not found")


def check_feature(clinic_id: int, feature: Feature) -> Clinic:
    """
    Load the clinic and require that `feature` is enabled.

    Raises NotFoundError if the clinic is missing and FeatureDisabledError
    if the feature is absent or false in its feature map.
    """
    clinic = db.session.get(Clinic, clinic_id) if clinic_id is not None else None
    if clinic is None:
        raise NotFoundError("Clinic not found")
    if not clinic.has_feature(feature):
        raise FeatureDisabledError(feature)
    return clinic
