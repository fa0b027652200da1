"""BaseRepository 测试

基于内存 SQLite 测试通用 CRUD。
"""

from typing import Generic, TypeVar

import pytest

from taskhub.core.database import get_db_context
from taskhub.models.catalog_item import CatalogItem
from taskhub.repositories.base import BaseRepository, ModelT
from taskhub.repositories.catalog_item import CatalogItemRepository


class TestBaseRepositoryTypeHints:
    """测试 BaseRepository 类型定义"""

    def test_is_generic_class(self):
        assert issubclass(BaseRepository, Generic)

    def test_model_type_var(self):
        assert isinstance(ModelT, TypeVar)


class TestBaseRepositoryCrud:
    """测试 CRUD"""

    @pytest.mark.anyio
    async def test_create_get_delete(self, session_factory, create_tables):
        await create_tables(session_factory)

        async with get_db_context(session_factory) as session:
            repo = CatalogItemRepository(session)
            created = await repo.create(CatalogItem(id="cat_1", name="Item_1"))
            assert created.created_at is not None

        async with get_db_context(session_factory) as session:
            repo = CatalogItemRepository(session)
            item = await repo.get_by_id("cat_1")
            assert item.name == "Item_1"

            item.name = "Item_1b"
            await repo.update(item)
            assert [row.name for row in await repo.get_all()] == ["Item_1b"]

            await repo.delete(item)
            assert await repo.get_by_id("cat_1") is None
