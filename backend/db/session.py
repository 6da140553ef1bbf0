from sqlalchemy.orm import declarative_base
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy import event
from core.config import settings
import logging
from typing import Optional

Base = declarative_base()
logger = logging.getLogger("otp_service")

def _to_async_database_url(url: str) -> str:
    if not url:
        return url
    if url.startswith("mysql+pymysql://"):
        return url.replace("mysql+pymysql://", "mysql+aiomysql://", 1)
    if url.startswith("mysql://"):
        return url.replace("mysql://", "mysql+aiomysql://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url

ASYNC_DATABASE_URL = _to_async_database_url(settings.DATABASE_URL)


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine; pool tuning only applies to server databases."""
    url = _to_async_database_url(url)
    if url.startswith("sqlite"):
        return create_async_engine(url, future=True, echo=False)
    # - pool_recycle < DB wait_timeout (often 600s)
    # - pool_timeout short-ish (10-30s)
    return create_async_engine(
        url,
        future=True,
        echo=False,
        pool_pre_ping=bool(settings.DB_PRE_PING),
        pool_recycle=int(settings.DB_POOL_RECYCLE),
        pool_size=int(settings.DB_POOL_SIZE),
        max_overflow=int(settings.DB_MAX_OVERFLOW),
        pool_timeout=int(settings.DB_POOL_TIMEOUT),
        connect_args={
            "connect_timeout": int(settings.DB_CONNECT_TIMEOUT),
        },
    )


engine: Optional[AsyncEngine] = None
SessionLocal: Optional[async_sessionmaker] = None

if not settings.USE_MONGO:
    engine = build_engine(ASYNC_DATABASE_URL)
    SessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        logger.debug("DB connect: id=%s", id(connection_record))

    @event.listens_for(engine.sync_engine, "close")
    def _on_close(dbapi_connection, connection_record):
        logger.debug("DB close: id=%s", id(connection_record))
