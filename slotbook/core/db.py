import logging
from collections.abc import AsyncGenerator, Iterator
from contextlib import contextmanager

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from slotbook.core.config import settings
from slotbook.core.errors import UnavailableError

logger = logging.getLogger(__name__)


def async_database_url(url: str) -> str:
    """Map a sync URL to its async driver. asyncpg does not accept psycopg params
    like sslmode/channel_binding, so those are stripped; SSL goes via connect_args."""
    parsed = make_url(url)
    if parsed.drivername in ("postgresql", "postgres"):
        parsed = parsed.set(drivername="postgresql+asyncpg")
    elif parsed.drivername == "sqlite":
        parsed = parsed.set(drivername="sqlite+aiosqlite")
    parsed = parsed.difference_update_query(["sslmode", "channel_binding"])
    return parsed.render_as_string(hide_password=False)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"echo": False}
    kwargs: dict = {
        "echo": settings.env == "development",
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
    }
    if settings.database_ssl:
        kwargs["connect_args"] = {"ssl": True}
    return kwargs


_async_url = async_database_url(settings.database_url)
engine = create_async_engine(_async_url, **_engine_kwargs(_async_url))

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            with datastore_errors("commit"):
                await session.commit()
        except Exception:
            with datastore_errors("rollback"):
                await session.rollback()
            raise


@contextmanager
def datastore_errors(operation: str) -> Iterator[None]:
    """Translate driver/connection failures into UnavailableError.

    IntegrityError is left alone: callers that write decide what a constraint
    violation means for them.
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        logger.error("Datastore failure during %s: %s", operation, type(e).__name__)
        raise UnavailableError() from e


async def upsert(
    session: AsyncSession,
    model: type[SQLModel],
    rows: list[dict],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
) -> None:
    """INSERT .. ON CONFLICT on a natural key. With no update_columns, conflicting
    rows are left untouched (DO NOTHING)."""
    if not rows:
        return
    dialect = session.bind.dialect.name
    insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = insert_fn(model).values(rows)
    if update_columns:
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_columns,
            set_={col: stmt.excluded[col] for col in update_columns},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)
    await session.execute(stmt)


async def init_db() -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
