import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.db import datastore_errors
from slotbook.core.errors import ConflictError
from slotbook.core.security import create_access_token, hash_password, verify_password
from slotbook.models.provider import Provider, ProviderCreate, ProviderPublic
from slotbook.services.working_hours_service import populate_defaults

logger = logging.getLogger(__name__)


async def get_provider(session: AsyncSession, provider_id: int) -> Provider | None:
    with datastore_errors("load provider"):
        return await session.get(Provider, provider_id)


async def get_provider_by_email(session: AsyncSession, email: str) -> Provider | None:
    with datastore_errors("load provider"):
        result = await session.execute(select(Provider).where(Provider.email == email.lower()))
    return result.scalar_one_or_none()


async def create_provider(session: AsyncSession, data: ProviderCreate) -> Provider:
    provider = Provider(
        email=data.email.lower(),
        full_name=data.full_name,
        hashed_password=hash_password(data.password),
    )
    session.add(provider)
    with datastore_errors("create provider"):
        await session.flush()
        await session.refresh(provider)
    return provider


def provider_to_public(provider: Provider) -> ProviderPublic:
    return ProviderPublic(id=provider.id, email=provider.email, full_name=provider.full_name)


async def login_provider(
    session: AsyncSession, email: str, password: str
) -> tuple[Provider, str, int] | None:
    provider = await get_provider_by_email(session, email)
    if not provider or not verify_password(password, provider.hashed_password):
        return None
    access, expires_in = create_access_token(provider.id)
    return provider, access, expires_in


async def signup_provider(
    session: AsyncSession, email: str, password: str, full_name: str | None = None
) -> tuple[Provider, str, int]:
    """Create a provider with the default weekly schedule."""
    if await get_provider_by_email(session, email):
        raise ConflictError("An account with this email already exists")
    try:
        provider = await create_provider(
            session, ProviderCreate(email=email, password=password, full_name=full_name)
        )
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError("An account with this email already exists") from e
    await populate_defaults(session, provider.id)
    logger.info("Provider %s signed up", provider.id)
    access, expires_in = create_access_token(provider.id)
    return provider, access, expires_in
