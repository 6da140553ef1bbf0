from db.session import Base, engine
from db.models.otp import OtpRecordModel  # noqa: F401  (registers the table)
import logging
from sqlalchemy.ext.asyncio import AsyncEngine
from typing import Optional

logger = logging.getLogger(__name__)

async def initialize_database(target: Optional[AsyncEngine] = None):
    """Create the OTP tables if they do not exist yet."""
    target = target or engine
    if target is None:
        raise RuntimeError("SQL engine is not configured (USE_MONGO=true)")
    try:
        async with target.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
