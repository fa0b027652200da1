"""商品目录 Repository"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.models.catalog_item import CatalogItem
from taskhub.repositories.base import BaseRepository


class CatalogItemRepository(BaseRepository[CatalogItem]):
    """商品目录数据访问"""

    model = CatalogItem

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def scan(self, limit: int, start_after: str | None = None) -> list[CatalogItem]:
        """按主键顺序分页扫描（keyset 分页）

        Args:
            limit: 最多返回条数
            start_after: 上一页最后一条的 ID，为 None 时从头开始

        Returns:
            按 ID 升序排列的商品
        """
        stmt = select(CatalogItem).order_by(CatalogItem.id).limit(limit)
        if start_after is not None:
            stmt = stmt.where(CatalogItem.id > start_after)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        """统计商品总数"""
        result = await self.session.execute(select(func.count()).select_from(CatalogItem))
        return int(result.scalar_one())

    async def bulk_create(self, items: list[CatalogItem]) -> int:
        """批量写入商品"""
        self.session.add_all(items)
        await self.session.flush()
        return len(items)
