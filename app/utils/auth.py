"""
Authentication utilities - JWT verification, remote auth fallback and permission checks
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict
import httpx
from jose import ExpiredSignatureError, JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config.settings import settings
from app.utils.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

# JWT Bearer token, missing header handled below so dev bypass still works
security = HTTPBearer(auto_error=False)

DEV_USER = {
    "id": "dev-user-id",
    "username": "devuser",
    "role": "admin",
    "permissions": ["*"],
}

REMOTE_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "X-Requested-With": "XMLHttpRequest",
}

def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def decode_access_token(token: str) -> Optional[Dict]:
    """Verify a JWT locally. Expired tokens are rejected outright, other failures return None"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise UnauthorizedError("Token has expired. Please log in again.")
    except JWTError as e:
        logger.warning("Local JWT verification failed: %s", e)
        return None

async def verify_remote_token(token: str) -> Optional[Dict]:
    """Ask the external auth service to verify a token"""
    if not settings.AUTH_SERVICE_URL:
        return None
    url = f"{settings.AUTH_SERVICE_URL.rstrip('/')}/api/auth/verify-token"
    try:
        async with httpx.AsyncClient(timeout=settings.AUTH_SERVICE_TIMEOUT) as client:
            resp = await client.post(url, json={"token": token}, headers=REMOTE_HEADERS)
        if resp.status_code >= 500:
            logger.warning("Auth service returned %s", resp.status_code)
            return None
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Error contacting auth service at %s: %s", url, e)
        return None

    if data.get("success") and data.get("user"):
        return data["user"]
    logger.warning("Auth service rejected token (status %s)", resp.status_code)
    return None

async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Dict:
    """Get current authenticated user from the bearer token"""
    if settings.auth_bypass:
        return dict(DEV_USER)

    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authentication required. Please provide a valid token.")

    token = credentials.credentials
    if len(token.split(".")) != 3:
        raise UnauthorizedError("Invalid token format. Token must be a valid JWT.")

    payload = decode_access_token(token)
    if payload is not None:
        return payload

    user = await verify_remote_token(token)
    if user is not None:
        return user

    raise UnauthorizedError("Authentication failed. Please log in again.")

def get_user_id(current_user: Dict) -> Optional[str]:
    """User id regardless of which issuer produced the token"""
    if not current_user:
        return None
    return current_user.get("id") or current_user.get("sub") or current_user.get("_id")

def check_local_permission(current_user: Dict, permission: str) -> bool:
    """Check whether the user holds a permission like 'division:create'.

    Accepts the global wildcard '*', an exact match, a category wildcard
    ('division:*') and the admin role.
    """
    if not current_user:
        return False

    perms = current_user.get("permissions") or []
    if "*" in perms or permission in perms:
        return True

    category = permission.split(":")[0]
    if category and f"{category}:*" in perms:
        return True

    return current_user.get("role") == "admin"

async def check_remote_permission(current_user: Dict, permission: str) -> bool:
    if not settings.AUTH_SERVICE_URL:
        return False
    url = f"{settings.AUTH_SERVICE_URL.rstrip('/')}/api/auth/check-permission"
    try:
        async with httpx.AsyncClient(timeout=settings.AUTH_SERVICE_TIMEOUT) as client:
            resp = await client.post(
                url,
                json={"userId": get_user_id(current_user), "permission": permission},
                headers=REMOTE_HEADERS,
            )
        data = resp.json() if resp.status_code < 500 else {}
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Error contacting auth service for permission %s: %s", permission, e)
        return False
    return bool(data.get("success") and data.get("hasPermission"))

def require_permission(permission: str):
    """Dependency factory guarding a route with a permission string"""
    async def checker(current_user: Dict = Depends(get_current_user)) -> Dict:
        if settings.auth_bypass:
            return current_user
        if check_local_permission(current_user, permission):
            return current_user
        if await check_remote_permission(current_user, permission):
            return current_user
        raise ForbiddenError()
    return checker
