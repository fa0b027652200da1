"""数据库连接管理"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.core.db.provider import get_database_provider
from taskhub.core.logging import get_logger

logger = get_logger("database")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """获取会话工厂"""
    return get_database_provider().session_factory


@asynccontextmanager
async def get_db_context(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话（上下文管理器），正常退出时提交，异常时回滚"""
    factory = session_factory or get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except (Exception, asyncio.CancelledError):
            await session.rollback()
            raise


async def init_db() -> None:
    """初始化数据库（创建表）"""
    from taskhub.core.config import settings
    from taskhub.models.base import Base

    settings.ensure_data_dir()
    provider = get_database_provider()
    await provider.init_db(Base)
    logger.info("数据库表初始化完成", backend=provider.backend_name)
