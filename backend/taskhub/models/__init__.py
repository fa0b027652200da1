"""数据模型"""

from taskhub.models.app_metadata import AppMetadata
from taskhub.models.base import Base
from taskhub.models.catalog_item import CatalogItem

__all__ = [
    "AppMetadata",
    "Base",
    "CatalogItem",
]
