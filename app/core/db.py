from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.core.config import settings

# Query params libpq understands but asyncpg rejects; TLS goes through connect_args
_LIBPQ_ONLY_PARAMS = ("sslmode", "channel_binding")


def to_asyncpg_url(database_url: str) -> str:
    """Point a plain postgres:// or postgresql:// URL at the asyncpg driver."""
    parsed = urlparse(database_url)
    scheme = parsed.scheme
    if scheme in ("postgres", "postgresql"):
        scheme = "postgresql+asyncpg"
    query = {
        k: v
        for k, v in parse_qs(parsed.query, keep_blank_values=True).items()
        if k not in _LIBPQ_ONLY_PARAMS
    }
    return urlunparse(parsed._replace(scheme=scheme, query=urlencode(query, doseq=True)))


engine = create_async_engine(
    to_asyncpg_url(settings.database_url),
    echo=settings.env == "development",
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
    connect_args={"ssl": True} if settings.database_ssl else {},
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: committed when the handler returns, rolled back if it raises."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables directly; migrations/ is the normal path."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
