"""
Core dependencies for route protection and role checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.modules.auth.service import AuthStore
from app.modules.auth.schemas import UserRole
from typing import Optional
import secrets
import logging

logger = logging.getLogger(__name__)

# Missing credentials are answered with 401 by require_authenticated
security = HTTPBearer(auto_error=False)


def get_auth_store(request: Request) -> AuthStore:
    """Return the process-wide auth store created at startup"""
    auth_store = getattr(request.app.state, "auth_store", None)
    if auth_store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not initialized"
        )
    return auth_store


def get_current_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> Optional[str]:
    """Extract JWT token from Authorization header"""
    return credentials.credentials if credentials else None


def holds_session(auth_store: AuthStore, token: Optional[str]) -> bool:
    """True if token is the access token of the store's current session"""
    session = auth_store.session
    if session is None or not session.access_token or not token:
        return False
    return secrets.compare_digest(token, session.access_token)


def require_authenticated(
    token: Optional[str] = Depends(get_current_token),
    auth_store: AuthStore = Depends(get_auth_store)
) -> AuthStore:
    """Require the caller's bearer token to match the signed-in session; 503 while loading"""
    if auth_store.loading:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication state is still loading"
        )
    if not holds_session(auth_store, token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_store


def require_admin(auth_store: AuthStore = Depends(require_authenticated)) -> AuthStore:
    """Require the current profile to carry the admin role"""
    if auth_store.profile is None or auth_store.profile.role != UserRole.ADMIN:
        logger.info(f"Admin access denied for {auth_store.session.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required"
        )
    return auth_store
