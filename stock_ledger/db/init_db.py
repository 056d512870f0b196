import logging
from stock_ledger.core.database import engine
from stock_ledger.models.base import Base
import stock_ledger.models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)

async def create_tables():
    """Create all database tables that do not exist yet"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("✅ Database tables created successfully")

    except Exception as e:
        logger.error(f"❌ Error creating tables: {str(e)}")
        raise
