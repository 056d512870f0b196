from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from stock_ledger.core.database import get_async_session
from stock_ledger.auth.jwt_handler import decode_access_token
from stock_ledger.models.auth.user import User
from stock_ledger.models.shared.enums import UserRole
from stock_ledger.services.notification.stock_broadcaster import StockUpdateBroadcaster, stock_broadcaster
import logging

security = HTTPBearer()
logger = logging.getLogger(__name__)

def _unauthorized(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

async def get_user_from_token(token: str, session: AsyncSession) -> User:
    """Resolve an access token to an active user"""
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized()

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized()

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    return user

async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_async_session)
) -> User:
    """Get current authenticated user"""
    user = await get_user_from_token(credentials.credentials, session)

    # Add request info to context
    request.state.current_user = user
    return user

def require_roles(*roles: UserRole):
    """
    Dependency restricting an endpoint to the given roles

    Examples:
        require_roles(UserRole.ADMIN, UserRole.SUPERADMIN)
    """
    allowed = {UserRole(role) for role in roles}

    async def role_dependency(current_user: User = Depends(get_current_user)) -> User:
        if UserRole(current_user.role) not in allowed:
            logger.info(f"User {current_user.id} with role {current_user.role} denied, needs one of {sorted(r.value for r in allowed)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions"
            )
        return current_user

    return role_dependency

def get_stock_broadcaster() -> StockUpdateBroadcaster:
    return stock_broadcaster
