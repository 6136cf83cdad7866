"""Shared-password check and JWT for web access."""
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import bcrypt
import jwt

from pharmacy_reports.config import settings
from pharmacy_reports.core.permissions import Role


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


@lru_cache(maxsize=None)
def _hashed(password: str) -> str:
    return hash_password(password)


def role_for_password(password: str) -> Optional[Role]:
    """Dashboard password wins when both passwords are configured identically."""
    if not password:
        return None
    if settings.dashboard_password and verify_password(password, _hashed(settings.dashboard_password)):
        return Role.ROLE_MANAGER
    if settings.entry_password and verify_password(password, _hashed(settings.entry_password)):
        return Role.ROLE_PHARMACY
    return None


def create_access_token(role: Role, name: str) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": name,
        "role": role.value,
        "sid": uuid.uuid4().hex,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(
        payload,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.PyJWTError:
        return None
