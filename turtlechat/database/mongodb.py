"""
MongoDB 연결 및 Beanie ODM 초기화
"""

import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from turtlechat.core.config import settings
from turtlechat.models.chats import ChatDocument

logger = logging.getLogger(__name__)

# MongoDB Client
mongo_client: Optional[AsyncIOMotorClient] = None


async def init_mongodb():
    """MongoDB 연결 및 Beanie 초기화"""
    global mongo_client

    mongo_client = AsyncIOMotorClient(
        settings.mongo_url,
        maxPoolSize=10,
        minPoolSize=1,
        maxIdleTimeMS=30000,
        waitQueueTimeoutMS=5000,
    )

    await init_beanie(
        database=mongo_client[settings.mongodb_db_name],
        document_models=[ChatDocument]
    )

    logger.info(f"MongoDB connected: {settings.mongodb_db_name}")


async def check_mongo_connection() -> bool:
    """Check MongoDB connection"""
    try:
        if mongo_client:
            await mongo_client.admin.command('ping')
            return True
        return False
    except Exception as e:
        logger.error(f"MongoDB connection check failed: {e}")
        return False


async def close_mongodb():
    """MongoDB 연결 종료"""
    global mongo_client

    if mongo_client:
        mongo_client.close()
        mongo_client = None
        logger.info("MongoDB connection closed")
