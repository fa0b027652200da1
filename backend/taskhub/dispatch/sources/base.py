"""批次数据源抽象

TaskManager 每次运行持有一个 BatchSource，按批拉取商品直到数据源耗尽。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Item:
    """队列中的单条任务

    Attributes:
        id: 商品 ID，如 "cat_42"
        data: 其他字段（只读使用）
    """

    id: str
    data: dict[str, Any] = field(default_factory=dict, compare=False)

    def get(self, key: str, default: Any = None) -> Any:
        if key == "id":
            return self.id
        return self.data.get(key, default)


class BatchSource(ABC):
    """批次数据源

    子类维护自己的扫描游标，数据取完后 is_exhausted() 返回 True，且不再变回 False。
    """

    @abstractmethod
    def is_exhausted(self) -> bool:
        """数据源是否已耗尽"""

    @abstractmethod
    async def next_batch(self, max_size: int) -> list[Item]:
        """从当前游标拉取最多 max_size 条

        Raises:
            ServerError: 扫描结果不完整（DataSourceError）
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} exhausted={self.is_exhausted()}>"
