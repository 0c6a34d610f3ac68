"""
Authentication utilities - JWT handling and permission checks
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict
from jose import JWTError, jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config.settings import settings
from app.database.db_operations import db_ops
from app.config.database import Collections

logger = logging.getLogger(__name__)

# JWT Bearer token
security = HTTPBearer()

ADMIN_ROLE = "admin"
AGENCY_ROLE = "agency"


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access_token(token: str) -> Dict:
    """Decode and verify a JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning("JWT verification failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict:
    """Get current authenticated user from JWT token"""
    payload = decode_access_token(credentials.credentials)

    # Admin tokens carry 'sub'; agency tokens carry 'agency_id' (and usually 'sub' too)
    if payload.get("role") == AGENCY_ROLE and not payload.get("agency_id"):
        payload["agency_id"] = payload.get("sub")

    if payload.get("sub") or payload.get("agency_id"):
        return payload

    logger.warning("AUTH REJECTED: invalid token payload %s", payload)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials"
    )

def is_admin(current_user: Dict) -> bool:
    return current_user.get("role") == ADMIN_ROLE and bool(current_user.get("sub"))

async def require_admin(current_user: Dict = Depends(get_current_user)) -> Dict:
    """Dependency to require a platform administrator"""
    if is_admin(current_user):
        admin = await db_ops.get_by_id(Collections.ADMINS, current_user["sub"])
        if admin and admin.get("is_active", True):
            return current_user

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Only administrators can perform this action"
    )

def require_agency_access(current_user: Dict, agency_id: str) -> None:
    """Allow admins, or the agency reading its own data"""
    if is_admin(current_user):
        return
    if current_user.get("role") == AGENCY_ROLE and str(current_user.get("agency_id")) == str(agency_id):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Not authorized to access this agency"
    )
