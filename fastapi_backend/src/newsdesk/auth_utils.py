import hmac
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from bson import ObjectId
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from src.newsdesk.db import get_db
from src.newsdesk.documents import AdminAccount, AdminRole, registry
from src.newsdesk.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_bearer = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Verify a plaintext password against a stored hash."""
    if not password_hash:
        return False
    return _pwd_context.verify(password, password_hash)


# PUBLIC_INTERFACE
def create_admin_access_token(admin: Dict[str, Any], settings: Settings) -> str:
    """Create a signed access token for an admin account document."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expires_minutes)
    claims = {
        "sub": str(admin["_id"]),
        "email": admin["email"],
        "role": admin.get("role", AdminRole.admin.value),
        "exp": expire,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


# PUBLIC_INTERFACE
def public_admin(admin: Dict[str, Any]) -> Dict[str, Any]:
    """Admin document without credential material."""
    return {key: value for key, value in admin.items() if key != "passwordHash"}


# PUBLIC_INTERFACE
def is_trusted_admin_request(admin_secret: Optional[str], email: Optional[str], settings: Settings) -> bool:
    """
    Shared-secret check used by /admin/verify.

    Passes when the header carries the configured secret, or when the email
    matches the configured pattern or allowlist.
    """
    if admin_secret and hmac.compare_digest(admin_secret.encode(), settings.admin_secret.encode()):
        return True
    if not email:
        return False
    email = email.strip().lower()
    if email in settings.admin_email_allowlist:
        return True
    return bool(settings.admin_email_pattern) and re.search(settings.admin_email_pattern, email) is not None


def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


# PUBLIC_INTERFACE
def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    database: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Dependency that returns the authenticated, still-active admin document."""
    if credentials is None:
        raise _unauthorized("No token provided")

    try:
        payload = jwt.decode(credentials.credentials, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        sub = payload.get("sub")
        if not sub or not ObjectId.is_valid(sub):
            raise _unauthorized("Invalid token payload")
    except JWTError:
        raise _unauthorized("Invalid or expired token")

    admin = registry.collection(database, AdminAccount).find_one({"_id": ObjectId(sub)})
    if not admin or not admin.get("isActive", True):
        raise _unauthorized("Admin inactive or not found")
    return admin


# PUBLIC_INTERFACE
def has_permission(admin: Dict[str, Any], permission: str) -> bool:
    if admin.get("role") == AdminRole.superadmin.value:
        return True
    return permission in (admin.get("permissions") or [])


# PUBLIC_INTERFACE
def require_permission(permission: str) -> Callable[..., Dict[str, Any]]:
    """Dependency factory: the current admin must hold ``permission``."""

    def _dependency(admin: Dict[str, Any] = Depends(get_current_admin)) -> Dict[str, Any]:
        if not has_permission(admin, permission):
            logger.info("Admin %s denied permission '%s'", admin.get("email"), permission)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission '{permission}' required",
            )
        return admin

    return _dependency


# PUBLIC_INTERFACE
def get_user_identity(x_clerk_user_id: Optional[str] = Header(None)) -> str:
    """External identity id supplied by the identity provider's frontend SDK."""
    if not x_clerk_user_id:
        raise _unauthorized("Unauthorized")
    return x_clerk_user_id
