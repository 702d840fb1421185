"""
Session credential issue/verify.

Tokens are HS256 JWTs carrying the principal, its role and its clinic. They
are verified with signature and expiry checks only: no database lookup
happens, so a user or clinic deactivated after login keeps a valid session
until the token expires.

Claims is the trust boundary. Route code only ever sees identity data that
came out of CredentialService.verify; the Claims constructor refuses to run
without the module-private seal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from flask import current_app
from jose import JWTError, jwt

from ..constants import Role


_SEAL = object()

DEFAULT_TTL = timedelta(hours=8)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionIdentity:
    """What a session asserts about its bearer."""
    principal_id: int
    email: str
    name: str
    role: str
    clinic_id: Optional[int] = None
    clinic_slug: Optional[str] = None

    @property
    def is_platform_operator(self) -> bool:
        return self.role == Role.SUPER_ADMIN.value

    def to_dict(self) -> dict:
        return {
            "id": self.principal_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "clinic_id": self.clinic_id,
            "clinic_slug": self.clinic_slug,
        }


@dataclass(frozen=True)
class Claims:
    """Verified session claims. Only CredentialService.verify creates these."""
    identity: SessionIdentity
    issued_at: datetime
    expires_at: datetime
    _seal: object = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._seal is not _SEAL:
            raise TypeError("Claims can only be produced by CredentialService.verify")

    # Shortcuts used throughout the routes
    @property
    def principal_id(self) -> int:
        return self.identity.principal_id

    @property
    def role(self) -> str:
        return self.identity.role

    @property
    def clinic_id(self) -> Optional[int]:
        return self.identity.clinic_id

    @property
    def clinic_slug(self) -> Optional[str]:
        return self.identity.clinic_slug

    @property
    def is_platform_operator(self) -> bool:
        return self.identity.is_platform_operator


class CredentialService:
    def __init__(
        self,
        secret: str,
        *,
        ttl: timedelta = DEFAULT_TTL,
        algorithm: str = "HS256",
        now: Callable[[], datetime] = _utc_now,
    ):
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self.ttl = ttl
        self._now = now

    def issue(self, identity: SessionIdentity) -> str:
        issued_at = self._now()
        payload = {
            "sub": str(identity.principal_id),
            "email": identity.email,
            "name": identity.name,
            "role": identity.role,
            "clinic_id": identity.clinic_id,
            "clinic_slug": identity.clinic_slug,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token) -> Optional[Claims]:
        """
        Return the verified Claims, or None for any token that is malformed,
        tampered with, signed with another key, or expired. Never raises.
        """
        if not isinstance(token, str) or not token:
            return None

        try:
            # Expiry is checked below against the injected clock
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

        try:
            return self._claims_from_payload(payload)
        except (KeyError, TypeError, ValueError, OverflowError, OSError):
            return None

    def _claims_from_payload(self, payload: dict) -> Optional[Claims]:
        exp = payload["exp"]
        iat = payload["iat"]
        if isinstance(exp, bool) or not isinstance(exp, int):
            return None
        if isinstance(iat, bool) or not isinstance(iat, int):
            return None

        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        if self._now() >= expires_at:
            return None

        role = payload["role"]
        if role not in {r.value for r in Role}:
            return None

        clinic_id = payload.get("clinic_id")
        if clinic_id is not None and (isinstance(clinic_id, bool) or not isinstance(clinic_id, int)):
            return None
        clinic_slug = payload.get("clinic_slug")
        if clinic_slug is not None and not isinstance(clinic_slug, str):
            return None

        # Operators carry no clinic; everyone else must
        if (role == Role.SUPER_ADMIN.value) != (clinic_id is None):
            return None

        identity = SessionIdentity(
            principal_id=int(payload["sub"]),
            email=str(payload["email"]),
            name=str(payload["name"]),
            role=role,
            clinic_id=clinic_id,
            clinic_slug=clinic_slug,
        )
        return Claims(
            identity=identity,
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=expires_at,
            _seal=_SEAL,
        )


def build_credential_service(config) -> CredentialService:
    return CredentialService(
        config["JWT_SECRET"],
        ttl=timedelta(hours=int(config.get("SESSION_TTL_HOURS", 8))),
        algorithm=config.get("JWT_ALGORITHM", "HS256"),
    )


def get_credential_service() -> CredentialService:
    return current_app.extensions["credential_service"]
