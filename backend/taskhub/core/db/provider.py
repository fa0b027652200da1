"""数据库 Provider

封装 SQLite 异步引擎与会话工厂，进程内单例。
"""

from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import DeclarativeBase

from taskhub.core.logging import get_logger

logger = get_logger("db.provider")


class DatabaseProvider:
    """SQLite 数据库提供者

    文件库启用 WAL；内存库（:memory:）跳过 journal 设置。
    """

    backend_name = "sqlite"

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine: AsyncEngine = create_async_engine(
            database_url,
            connect_args={"timeout": 30, "check_same_thread": False},
            echo=False,
        )
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @property
    def in_memory(self) -> bool:
        return ":memory:" in self.database_url

    async def init_db(self, base: "type[DeclarativeBase]") -> None:
        """创建表"""
        async with self.engine.begin() as conn:
            if not self.in_memory:
                await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.run_sync(base.metadata.create_all)
        logger.info("SQLite 数据库初始化完成", url=self.database_url)

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("SQLite 连接已关闭")


_provider: DatabaseProvider | None = None


def get_database_provider() -> DatabaseProvider:
    """获取数据库提供者（单例）"""
    global _provider
    if _provider is None:
        from taskhub.core.config import settings

        _provider = DatabaseProvider(settings.database_url)
        logger.info("数据库 Provider 初始化", backend=_provider.backend_name, path=settings.DATABASE_PATH)
    return _provider


async def close_database_provider() -> None:
    """关闭数据库提供者"""
    global _provider
    if _provider is not None:
        await _provider.close()
        _provider = None
