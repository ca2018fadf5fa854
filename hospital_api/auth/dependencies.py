from collections.abc import Callable
from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hospital_api.auth import jwt_handler

security = HTTPBearer(auto_error=False)

STAFF_ROLES = frozenset({"receptionist", "admin"})


@dataclass(frozen=True)
class StaffUser:
    subject: str
    role: str


def get_current_staff(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> StaffUser:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    return StaffUser(subject=subject, role=str(payload.get("role") or ""))


def require_roles(*roles: str) -> Callable[..., StaffUser]:
    allowed = frozenset(roles)

    def dependency(user: StaffUser = Depends(get_current_staff)) -> StaffUser:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. This endpoint requires {' or '.join(sorted(allowed))} role.",
            )
        return user

    return dependency


require_staff = require_roles(*STAFF_ROLES)
require_admin = require_roles("admin")
