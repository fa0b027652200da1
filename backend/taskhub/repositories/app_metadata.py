"""应用元数据 Repository"""

from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.models.app_metadata import AppMetadata
from taskhub.repositories.base import BaseRepository


class AppMetadataRepository(BaseRepository[AppMetadata]):
    """KV 元数据访问"""

    model = AppMetadata

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def get_value(self, key: str, now: datetime | None = None) -> str | None:
        """读取配置值，已过期视为不存在"""
        stmt = select(AppMetadata).where(AppMetadata.key == key)
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            return None

        now = now or datetime.now()
        if row.expires_at is not None and row.expires_at <= now:
            return None
        return row.value

    async def set_value(self, key: str, value: str, ttl: int = 0) -> None:
        """写入配置值

        Args:
            key: 键
            value: 值
            ttl: 过期秒数，0 表示永不过期
        """
        now = datetime.now()
        expires_at = now + timedelta(seconds=ttl) if ttl > 0 else None

        stmt = select(AppMetadata).where(AppMetadata.key == key)
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()

        if row:
            row.value = value
            row.expires_at = expires_at
            row.updated_at = now
        else:
            self.session.add(
                AppMetadata(key=key, value=value, expires_at=expires_at, updated_at=now)
            )
        await self.session.flush()
