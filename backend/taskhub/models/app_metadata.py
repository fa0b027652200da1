"""应用元数据模型 - KV 存储"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from taskhub.models.base import Base


class AppMetadata(Base):
    """应用元数据表（KV 存储）

    用于存储：
    - clientVersion: 下发给客户端的版本号

    expires_at 为空表示永不过期。
    """

    __tablename__ = "app_metadata"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, comment="过期时间，空为永久"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
