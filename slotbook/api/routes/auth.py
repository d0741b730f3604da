from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps import get_current_provider
from slotbook.api.schemas.auth import AccessToken, LoginRequest, SignupRequest
from slotbook.core.db import get_session
from slotbook.models.provider import Provider, ProviderPublic
from slotbook.services.auth_service import login_provider, provider_to_public, signup_provider

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=AccessToken)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
) -> AccessToken:
    result = await login_provider(session, body.email, body.password)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    _, access, expires_in = result
    return AccessToken(access_token=access, expires_in=expires_in)


@router.post("/signup", response_model=AccessToken, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    session: AsyncSession = Depends(get_session),
) -> AccessToken:
    _, access, expires_in = await signup_provider(
        session, body.email, body.password, body.full_name or body.name
    )
    return AccessToken(access_token=access, expires_in=expires_in)


@router.get("/me", response_model=ProviderPublic)
async def me(current_provider: Provider = Depends(get_current_provider)) -> ProviderPublic:
    return provider_to_public(current_provider)
