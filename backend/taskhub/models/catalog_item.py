"""商品目录模型"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from taskhub.models.base import Base


class CatalogItem(Base):
    """商品目录表

    定时扫描的数据源。按主键顺序分页扫描，id 形如 "cat_42"，
    下划线后的部分作为二级 ID 下发给 agent。

    - payload: 其他字段，JSON 对象格式
    """

    __tablename__ = "catalog_items"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    payload: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="扩展字段（JSON 对象）"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=func.now(),
        nullable=False,
    )
