from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import List, Union
import logging

from .firebase_auth import firebase_auth
from .role_resolver import resolve_role
from ..bindings.query import IdentityContext
from ..database.store import DocumentStore
from ..database.store_factory import get_store
from ..models.user import Identity, UserRole

security = HTTPBearer()
logger = logging.getLogger(__name__)


def get_document_store() -> DocumentStore:
    """Store used by request handlers (overridable in tests)"""
    return get_store()


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Identity:
    """
    Verify Firebase authentication token and return the signed-in identity.
    Raises 401 if token is invalid.
    """
    try:
        token = credentials.credentials
        user_data = await firebase_auth.verify_token(token)

        if not user_data:
            logger.warning("[Auth] Token verification failed - invalid token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        identity = Identity.from_token(user_data)
        logger.info(f"[Auth] ✅ Authenticated user: {identity.email or identity.uid}")
        return identity
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[Auth] ❌ Authentication error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Authentication failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_role(
    current_user: Identity = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
) -> UserRole:
    """Role from the user's profile document (fails open to resident)"""
    return await resolve_role(store, current_user.uid)


async def get_identity_context(
    current_user: Identity = Depends(get_current_user),
    role: UserRole = Depends(get_current_role),
) -> IdentityContext:
    return IdentityContext(uid=current_user.uid, role=role)


def require_role(required_roles: List[Union[UserRole, str]]):
    allowed = {UserRole(r) for r in required_roles}

    async def role_checker(identity: IdentityContext = Depends(get_identity_context)) -> IdentityContext:
        logger.info(f"[Auth] Checking role: user has '{identity.role.value}', required: {[r.value for r in allowed]}")

        if identity.role not in allowed:
            logger.warning(f"[Auth] Role check failed: user role '{identity.role.value}' not in required roles")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {sorted(r.value for r in allowed)}, current role: {identity.role.value}"
            )
        return identity
    return role_checker


def can_modify(identity: IdentityContext, record: dict, owner_field: str) -> bool:
    """Admins modify any record; everyone else only records they own"""
    if identity.role == UserRole.ADMIN:
        return True
    if not owner_field:
        return False
    return record.get(owner_field) == identity.uid
