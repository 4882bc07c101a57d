"""
Authentication and role gates.

Users present `Authorization: Bearer <jwt>` issued by the identity provider
(HS256, AUTH_JWT_SECRET). The subject becomes the user id; unknown subjects are
created with no role. Scheduled jobs may instead present X-Service-Key.
"""
import hmac
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from retail_hub import config
from retail_hub.db import get_db
from retail_hub.errors import AuthError, ForbiddenError
from retail_hub.models import User

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

security = HTTPBearer(auto_error=False)
SERVICE_KEY_HEADER = APIKeyHeader(name="X-Service-Key", auto_error=False)


def decode_token(token: str) -> dict:
    secret = config.jwt_secret()
    if not secret:
        raise AuthError("Unauthorized")
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], options={"verify_aud": False})
    except JWTError:
        raise AuthError("Invalid or expired token")


def get_or_create_user(db: Session, user_id: str, email: Optional[str]) -> User:
    """Users are created on first authentication with no role."""
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email, role=None)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("user_created", extra={"user_id": user_id})
    elif email and user.email != email:
        user.email = email
        db.commit()
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthError("Unauthorized")
    claims = decode_token(credentials.credentials)
    subject = claims.get("sub")
    if not subject:
        raise AuthError("Invalid token structure")
    return get_or_create_user(db, str(subject), claims.get("email"))


def require_roles(*roles: str):
    """Dependency factory: the current user must hold one of `roles`."""
    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            if roles == ("admin",):
                raise ForbiddenError("Admin access required")
            raise ForbiddenError(f"Requires one of roles: {', '.join(roles)}")
        return user
    return dependency


def require_any_role(user: User = Depends(get_current_user)) -> User:
    if not user.role:
        raise ForbiddenError("No role assigned")
    return user


def require_service_or_admin(
    service_key: Optional[str] = Depends(SERVICE_KEY_HEADER),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Jobs accept the privileged service key; otherwise an admin user token."""
    expected = config.service_role_key()
    if service_key and expected and hmac.compare_digest(service_key, expected):
        return None
    user = get_current_user(credentials, db)
    if user.role != "admin":
        raise ForbiddenError("Admin access required")
    return user
