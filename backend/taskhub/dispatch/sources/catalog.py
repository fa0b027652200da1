"""商品目录数据源

CatalogBatchSource 通过 CatalogScanner 分页扫描商品目录，
并校验每一页扫描结果的完整性。
"""

import json
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.core.database import get_db_context
from taskhub.core.errors import ServerError
from taskhub.core.logging import get_logger
from taskhub.dispatch.sources.base import BatchSource, Item
from taskhub.models.catalog_item import CatalogItem
from taskhub.repositories.catalog_item import CatalogItemRepository

logger = get_logger("dispatch.sources.catalog")

DATA_SOURCE_ERROR = "DataSourceError"


@dataclass
class ScanPage:
    """单页扫描结果

    Attributes:
        items: 本页商品
        count: 目录上报的本页条数
        final: 是否为最后一页
        next_cursor: 下一页起点（final 为 False 时必须存在）
    """

    items: list[Item] = field(default_factory=list)
    count: int = 0
    final: bool = True
    next_cursor: str | None = None


class CatalogScanner(Protocol):
    """商品目录分页扫描接口"""

    async def scan(self, limit: int, start_after: str | None = None) -> ScanPage: ...


class CatalogBatchSource(BatchSource):
    """基于商品目录的数据源（生产环境使用）"""

    def __init__(self, scanner: CatalogScanner):
        self._scanner = scanner
        self.scan_cursor: str | None = None
        self._exhausted = False

    def is_exhausted(self) -> bool:
        return self._exhausted

    async def next_batch(self, max_size: int) -> list[Item]:
        page = await self._scanner.scan(max_size, self.scan_cursor)

        if page.count != len(page.items):
            raise ServerError(
                "not matching fetched items count",
                DATA_SOURCE_ERROR,
                data={"reported": page.count, "received": len(page.items)},
            )

        if page.final:
            self._exhausted = True
        else:
            if not page.next_cursor:
                raise ServerError(
                    "missing 'next_cursor' value in scan result",
                    DATA_SOURCE_ERROR,
                    data={"scan_cursor": self.scan_cursor},
                )
            self.scan_cursor = page.next_cursor

        logger.debug(
            "扫描商品目录",
            count=page.count,
            final=page.final,
            next_cursor=page.next_cursor,
        )
        return list(page.items)


def catalog_item_to_item(row: CatalogItem) -> Item:
    """ORM 行转换为队列任务"""
    data = {"name": row.name}
    if row.payload:
        try:
            payload = json.loads(row.payload)
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict):
            data.update(payload)
    return Item(id=row.id, data=data)


class SqlCatalogScanner:
    """基于 catalog_items 表的分页扫描

    每页单独开会话；多读一条判断是否还有下一页。
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    async def scan(self, limit: int, start_after: str | None = None) -> ScanPage:
        async with get_db_context(self._session_factory) as session:
            rows = await CatalogItemRepository(session).scan(limit + 1, start_after)

        final = len(rows) <= limit
        items = [catalog_item_to_item(row) for row in rows[:limit]]
        return ScanPage(
            items=items,
            count=len(items),
            final=final,
            next_cursor=None if final else items[-1].id,
        )
