from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.db import get_session
from slotbook.core.security import decode_access_token
from slotbook.models.provider import Provider
from slotbook.services.auth_service import get_provider
from slotbook.services.holiday_service import HolidayProvider, get_holiday_provider

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_provider(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Provider:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing or invalid authorization header")
    provider_id = decode_access_token(credentials.credentials)
    if not provider_id:
        raise _unauthorized("Invalid or expired token")
    try:
        pid = int(provider_id)
    except ValueError:
        raise _unauthorized("Invalid token")
    provider = await get_provider(session, pid)
    if not provider:
        raise _unauthorized("Provider not found")
    return provider


def holiday_provider() -> HolidayProvider:
    """Overridable in tests via app.dependency_overrides."""
    return get_holiday_provider()
