from db.session import Base, engine
import db.models.user  # noqa: F401
import db.models.product  # noqa: F401
import db.models.curated_share  # noqa: F401
import db.models.iso  # noqa: F401
import db.models.shortlist  # noqa: F401
import logging

logger = logging.getLogger(__name__)


async def initialize_database():
    """Create tables that do not exist yet."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
