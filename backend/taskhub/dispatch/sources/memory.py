"""内存数据源（测试与压测使用）"""

from collections import deque
from collections.abc import Iterable, Mapping
from typing import Any

from taskhub.dispatch.sources.base import BatchSource, Item
from taskhub.dispatch.sources.catalog import ScanPage


def _as_item(value: Item | Mapping[str, Any]) -> Item:
    if isinstance(value, Item):
        return value
    data = dict(value)
    item_id = str(data.pop("id"))
    return Item(id=item_id, data=data)


def synthetic_items(count: int = 2000, start: int = 1000) -> list[Item]:
    """生成测试商品：id 为数字字符串，name 为 Item_<id>"""
    return [Item(id=str(i), data={"name": f"Item_{i}"}) for i in range(start, start + count)]


class InMemoryBatchSource(BatchSource):
    """预加载的有限数据源，取空即耗尽"""

    def __init__(self, items: Iterable[Item | Mapping[str, Any]]):
        self._items: deque[Item] = deque(_as_item(item) for item in items)

    @classmethod
    def synthetic(cls, count: int = 2000, start: int = 1000) -> "InMemoryBatchSource":
        return cls(synthetic_items(count, start))

    def is_exhausted(self) -> bool:
        return not self._items

    async def next_batch(self, max_size: int) -> list[Item]:
        size = min(max(max_size, 0), len(self._items))
        return [self._items.popleft() for _ in range(size)]


class InMemoryCatalogScanner:
    """内存版商品目录扫描，游标为上一页最后一条的 ID

    记录每次返回的 ScanPage，便于断言分页行为。
    """

    def __init__(self, items: Iterable[Item | Mapping[str, Any]]):
        self._items = sorted((_as_item(item) for item in items), key=lambda item: item.id)
        self.pages: list[ScanPage] = []

    async def scan(self, limit: int, start_after: str | None = None) -> ScanPage:
        remaining = [item for item in self._items if start_after is None or item.id > start_after]
        items = remaining[:limit]
        final = len(remaining) <= limit
        page = ScanPage(
            items=items,
            count=len(items),
            final=final,
            next_cursor=None if final else items[-1].id,
        )
        self.pages.append(page)
        return page
