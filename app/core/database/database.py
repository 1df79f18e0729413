from typing import Optional

from tortoise import Tortoise
from loguru import logger
from app.core.config import settings

MODELS = {"models": ["app.models"]}


class DatabaseManager:
    @staticmethod
    async def init(db_url: Optional[str] = None, generate_schemas: bool = True):
        """Initialize database connections and, optionally, the schema"""
        await Tortoise.init(
            db_url=db_url or settings.database_url,
            modules=MODELS,
            use_tz=True,
            timezone="UTC",
        )
        if generate_schemas:
            await Tortoise.generate_schemas(safe=True)
            logger.info("✅ Database schema initialized")

    @staticmethod
    async def close():
        """Close database connections"""
        await Tortoise.close_connections()
        logger.info("🛑 Database connections closed")
