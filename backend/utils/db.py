import logging

from sqlalchemy.exc import SQLAlchemyError

from core.errors import StoreError

logger = logging.getLogger(__name__)


async def safe_commit(session, error_message: str = "Could not persist OTP record"):
    try:
        await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"{error_message}: {e}")
        try:
            await session.rollback()
        finally:
            pass
        raise StoreError(error_message) from e
