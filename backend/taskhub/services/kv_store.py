"""KV 存储

TaskService 只依赖 get / set 两个能力，默认落在 app_metadata 表。
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.core.database import get_db_context
from taskhub.repositories.app_metadata import AppMetadataRepository


class KeyValueStore(ABC):
    """KV 存储接口

    实现类直接抛出底层异常，由调用方统一包装。
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """读取值，不存在或已过期返回 None"""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int = 0) -> None:
        """写入值，ttl 为 0 表示永不过期"""


class SqlKeyValueStore(KeyValueStore):
    """基于 app_metadata 表的 KV 存储"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with get_db_context(self._session_factory) as session:
            return await AppMetadataRepository(session).get_value(key)

    async def set(self, key: str, value: str, ttl: int = 0) -> None:
        async with get_db_context(self._session_factory) as session:
            await AppMetadataRepository(session).set_value(key, value, ttl)


class InMemoryKeyValueStore(KeyValueStore):
    """进程内 KV 存储（测试使用）"""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, datetime | None]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= datetime.now():
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: int = 0) -> None:
        expires_at = datetime.now() + timedelta(seconds=ttl) if ttl > 0 else None
        self._data[key] = (value, expires_at)
