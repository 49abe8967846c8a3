"""
License activation, verification and status caching.

A license key is activated once against the remote license server, which
binds it to this deployment's domain. The activation is then stored
locally and re-verified periodically.

Without an active license only SUPER_ADMIN accounts may sign in.

Failure policy: activation fails closed (a network error means no
activation); verification fails open (a network error keeps the current
license valid so an unreachable license server cannot lock an office out).
"""

import hashlib
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlparse

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from portal.core.config import settings
from portal.core.errors import ValidationFailed
from portal.core.logging import get_logger
from portal.models.audit import AuditAction
from portal.models.base import as_utc, utcnow
from portal.models.license import License
from portal.models.user import User, UserRole
from portal.services.audit_service import AuditService

logger = get_logger(__name__)


@dataclass
class LicenseStatus:
    has_active_license: bool
    package_type: Optional[str]
    expires_at: Optional[datetime]
    is_expired: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_NO_LICENSE = LicenseStatus(has_active_license=False, package_type=None, expires_at=None, is_expired=False)

_cached_status: Optional[LicenseStatus] = None
_cached_at: float = 0.0


def invalidate_license_cache() -> None:
    """Drop the cached status (call after activation or deactivation)."""
    global _cached_status, _cached_at
    _cached_status = None
    _cached_at = 0.0


def get_app_domain() -> str:
    """Hostname of this deployment, taken from APP_URL."""
    parsed = urlparse(settings.APP_URL or "")
    return parsed.hostname or settings.APP_URL or "localhost"


def generate_server_hash() -> str:
    """Fingerprint binding a license to this deployment's domain and secret."""
    secret = settings.LICENSE_SECRET or settings.SECRET_KEY
    return hashlib.sha256(f"{get_app_domain()}:{secret}".encode("utf-8")).hexdigest()[:32]


def mask_license_key(key: str) -> str:
    """NTRS-ABCD-EFGH-JKLM-NPQR -> NTRS-ABCD-****-****-NPQR"""
    parts = key.split("-")
    if len(parts) >= 5:
        return f"{parts[0]}-{parts[1]}-****-****-{parts[4]}"
    return key[:8] + "****" + key[-4:]


class LicenseServerClient:
    """Thin HTTP client for the remote license server."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or settings.LICENSE_SERVER_URL).rstrip("/")
        self.timeout = timeout or settings.LICENSE_HTTP_TIMEOUT_SECONDS

    def _payload(self, license_key: str) -> dict[str, str]:
        return {"licenseKey": license_key, "domain": get_app_domain(), "serverHash": generate_server_hash()}

    def activate(self, license_key: str) -> dict[str, Any]:
        try:
            response = requests.post(
                f"{self.base_url}/api/licenses/activate",
                json=self._payload(license_key),
                timeout=self.timeout,
            )
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"License activation request failed: {e}")
            return {"success": False, "error": "Could not reach the license server. Check the internet connection."}

    def verify(self, license_key: str) -> dict[str, Any]:
        try:
            response = requests.post(
                f"{self.base_url}/api/licenses/verify",
                json=self._payload(license_key),
                timeout=self.timeout,
            )
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"License verification request failed, keeping license valid: {e}")
            return {"valid": True, "error": "License server unreachable (offline mode)"}


class LicenseService:
    """Service class for license operations."""

    client_factory = LicenseServerClient

    @staticmethod
    def get_active(session: Session) -> Optional[License]:
        statement = (
            select(License)
            .where(License.is_active == True)  # noqa: E712
            .order_by(License.activated_at.desc())  # type: ignore[attr-defined]
        )
        return session.exec(statement).first()

    @staticmethod
    def get_status(session: Session) -> LicenseStatus:
        """Current license status, cached for LICENSE_CACHE_SECONDS."""
        global _cached_status, _cached_at

        now = time.monotonic()
        if _cached_status is not None and now - _cached_at < settings.LICENSE_CACHE_SECONDS:
            return _cached_status

        try:
            license = LicenseService.get_active(session)
        except SQLAlchemyError as e:
            logger.error(f"Failed to check license status: {e}")
            return _NO_LICENSE

        expires_at = as_utc(license.expires_at) if license else None
        is_expired = bool(expires_at and expires_at < utcnow())
        status = LicenseStatus(
            has_active_license=bool(license) and not is_expired,
            package_type=license.package_type if license else None,
            expires_at=expires_at,
            is_expired=is_expired,
        )
        _cached_status = status
        _cached_at = now
        return status

    @staticmethod
    def is_role_allowed_to_login(session: Session, role: UserRole) -> bool:
        if role == UserRole.SUPER_ADMIN or not settings.LICENSE_REQUIRED_FOR_LOGIN:
            return True
        return LicenseService.get_status(session).has_active_license

    @staticmethod
    def activate(session: Session, actor: User, license_key: Optional[str]) -> License:
        """
        Activate a key against the license server and store it locally.

        Raises:
            ValidationFailed: empty key, key already active here, or the
                server refused or could not be reached
        """
        if not license_key or not license_key.strip():
            raise ValidationFailed("License key is required")
        clean_key = license_key.strip().upper()

        existing = session.exec(select(License).where(License.license_key == clean_key)).first()
        if existing is not None and existing.is_active:
            raise ValidationFailed("This license key is already active on this server")

        result = LicenseService.client_factory().activate(clean_key)
        remote = result.get("license")
        if not result.get("success") or not remote:
            raise ValidationFailed(result.get("error") or "Activation failed")

        for active in session.exec(select(License).where(License.is_active == True)).all():  # noqa: E712
            active.is_active = False
            session.add(active)

        license = existing or License(license_key=clean_key, package_type="", domain="", holder_name="", server_hash="")
        license.package_type = remote.get("packageType") or "complete"
        license.domain = remote.get("domain") or get_app_domain()
        license.holder_name = remote.get("holderName") or ""
        license.office_name = remote.get("officeName")
        license.expires_at = _parse_datetime(remote.get("expiresAt"))
        license.server_hash = generate_server_hash()
        license.activated_at = utcnow()
        license.last_verified = utcnow()
        license.is_active = True
        session.add(license)
        session.flush()

        AuditService.record(
            session,
            AuditAction.LICENSE_ACTIVATE,
            "LICENSE",
            license.id,
            user_id=actor.id,
            details={"license_key": mask_license_key(clean_key), "package_type": license.package_type},
        )
        session.commit()
        session.refresh(license)
        invalidate_license_cache()
        logger.info(f"License {mask_license_key(clean_key)} activated ({license.package_type})")
        return license

    @staticmethod
    def deactivate(session: Session, actor: User) -> int:
        active = session.exec(select(License).where(License.is_active == True)).all()  # noqa: E712
        for license in active:
            license.is_active = False
            session.add(license)
        AuditService.record(session, AuditAction.LICENSE_DEACTIVATE, "LICENSE", user_id=actor.id)
        session.commit()
        invalidate_license_cache()
        return len(active)

    @staticmethod
    def verify(session: Session) -> dict[str, Any]:
        """Re-check the active license locally, then against the license server."""
        license = LicenseService.get_active(session)
        if license is None:
            return {"valid": False, "error": "No active license"}

        now = utcnow()
        expires_at = as_utc(license.expires_at)
        if expires_at and now > expires_at:
            license.is_active = False
            session.add(license)
            session.commit()
            invalidate_license_cache()
            return {"valid": False, "error": "License expired"}

        result = LicenseService.client_factory().verify(license.license_key)
        valid = bool(result.get("valid"))
        license.last_verified = now
        license.is_active = valid
        session.add(license)
        session.commit()
        invalidate_license_cache()

        return {
            "valid": valid,
            "package_type": license.package_type,
            "expires_at": expires_at,
            "last_verified": now,
            "error": result.get("error"),
        }


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
