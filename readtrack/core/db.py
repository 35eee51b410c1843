from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from readtrack.core.config import get_settings
import logging

logger = logging.getLogger(__name__)
settings = get_settings()

# Use the asyncpg driver for plain postgresql:// URLs
database_url = settings.DATABASE_URL
if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

engine_options = {"echo": settings.DB_ECHO}
if not database_url.startswith("sqlite"):
    engine_options["pool_size"] = settings.DB_POOL_SIZE
    engine_options["max_overflow"] = settings.DB_MAX_OVERFLOW

engine = create_async_engine(database_url, **engine_options)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    """
    Database session dependency.
    Usage in FastAPI: db: AsyncSession = Depends(get_db)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Create all tables that do not exist yet"""
    # Import models so they register with Base.metadata
    from readtrack import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


async def close_db():
    """Dispose the database engine"""
    try:
        await engine.dispose()
    except Exception as e:
        logger.warning(f"Could not dispose database engine: {e}")
