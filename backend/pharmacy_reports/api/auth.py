"""Web access: shared password → JWT bearer token with a role."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from pharmacy_reports.core.logging_config import get_logger
from pharmacy_reports.core.permissions import Resource, Role, allowed_resources, can_access
from pharmacy_reports.services.auth_service import create_access_token, decode_token, role_for_password

router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)
logger = get_logger(__name__)

LOGIN_NAMES = {
    Role.ROLE_PHARMACY: "pharmacy",
    Role.ROLE_MANAGER: "manager",
}


class UserInfo(BaseModel):
    name: str
    role: str
    session_id: str = ""


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[UserInfo]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    payload = decode_token(credentials.credentials)
    if not payload or "sub" not in payload:
        logger.warning("Token rejected (invalid or expired)")
        return None
    return UserInfo(
        name=str(payload["sub"]),
        role=payload.get("role", ""),
        session_id=payload.get("sid", ""),
    )


def require_access(resource: Resource):
    async def _check(
        current_user: Optional[UserInfo] = Depends(get_current_user),
    ) -> UserInfo:
        if not current_user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not can_access(current_user.role, resource):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user
    return _check


RequireEntryAccess = require_access(Resource.ENTRY)
RequireDashboardAccess = require_access(Resource.DASHBOARD)
RequireEmailAccess = require_access(Resource.EMAIL)


@router.post("/login", response_model=LoginResponse)
async def login(password: str = Form(...)):
    role = role_for_password(password)
    if role is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect password")
    name = LOGIN_NAMES[role]
    logger.info("Login: %s", name)
    return LoginResponse(
        access_token=create_access_token(role, name),
        user=UserInfo(name=name, role=role.value),
    )


class MeResponse(BaseModel):
    name: str
    role: str
    resources: List[str]


@router.get("/me", response_model=MeResponse)
async def me(current_user: UserInfo = Depends(RequireEntryAccess)):
    return MeResponse(
        name=current_user.name,
        role=current_user.role,
        resources=allowed_resources(current_user.role),
    )
