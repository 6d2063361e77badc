"""
tutorhub/core/security.py
Authentication and security utilities

Tokens are issued by the identity provider; this module only verifies them
and exposes the role checks the endpoints depend on.
"""
from datetime import datetime
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from tutorhub.core.config import settings
from tutorhub.models.schemas import UserRole, TokenPayload
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

def verify_token(token: str) -> TokenPayload:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str = payload.get("sub")
        role: str = payload.get("role")

        if user_id is None or role is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token payload"
            )

        return TokenPayload(
            sub=user_id,
            role=UserRole(role),
            exp=datetime.fromtimestamp(payload.get("exp"))
        )
    except (JWTError, ValueError, TypeError) as e:
        logger.error(f"JWT verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials"
        )

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """Get current authenticated user from token"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
    return verify_token(credentials.credentials)

# Role-based dependencies

async def require_admin(current_user: TokenPayload = Depends(get_current_user)):
    """Require admin role"""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admins only."
        )
    return current_user

async def require_staff(current_user: TokenPayload = Depends(get_current_user)):
    """Require teacher or admin role"""
    if current_user.role not in [UserRole.TEACHER, UserRole.ADMIN]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admins and tutors only."
        )
    return current_user
