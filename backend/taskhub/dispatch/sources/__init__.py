"""批次数据源

- BatchSource: 数据源抽象基类
- CatalogBatchSource: 商品目录数据源（生产）
- InMemoryBatchSource: 预加载内存数据源（测试/压测）
"""

from taskhub.dispatch.sources.base import BatchSource, Item
from taskhub.dispatch.sources.catalog import (
    CatalogBatchSource,
    CatalogScanner,
    ScanPage,
    SqlCatalogScanner,
)
from taskhub.dispatch.sources.memory import (
    InMemoryBatchSource,
    InMemoryCatalogScanner,
    synthetic_items,
)

__all__ = [
    "BatchSource",
    "CatalogBatchSource",
    "CatalogScanner",
    "InMemoryBatchSource",
    "InMemoryCatalogScanner",
    "Item",
    "ScanPage",
    "SqlCatalogScanner",
    "synthetic_items",
]
