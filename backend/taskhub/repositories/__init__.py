"""数据访问层"""

from taskhub.repositories.app_metadata import AppMetadataRepository
from taskhub.repositories.catalog_item import CatalogItemRepository

__all__ = [
    "AppMetadataRepository",
    "CatalogItemRepository",
]
