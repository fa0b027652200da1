"""数据库抽象层"""

from taskhub.core.db.provider import (
    DatabaseProvider,
    close_database_provider,
    get_database_provider,
)

__all__ = [
    "DatabaseProvider",
    "close_database_provider",
    "get_database_provider",
]
