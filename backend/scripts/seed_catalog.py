"""商品目录初始化脚本 - 写入测试商品

使用方法：
    python scripts/seed_catalog.py --count 5000 --prefix cat
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# 添加项目根目录到 Python 路径
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskhub.core.database import get_db_context, init_db
from taskhub.core.logging import get_logger
from taskhub.models.catalog_item import CatalogItem
from taskhub.repositories.catalog_item import CatalogItemRepository

logger = get_logger("scripts.seed_catalog")


async def seed(count: int, prefix: str, start: int) -> int:
    await init_db()

    async with get_db_context() as session:
        repo = CatalogItemRepository(session)
        existing = await repo.count()
        items = [
            CatalogItem(
                id=f"{prefix}_{i}",
                name=f"Item_{i}",
                payload=json.dumps({"index": i}, ensure_ascii=False),
            )
            for i in range(start, start + count)
        ]
        created = await repo.bulk_create(items)

    logger.info("商品目录已写入", created=created, before=existing, prefix=prefix)
    return created


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="写入测试商品")
    parser.add_argument("--count", type=int, default=1000, help="写入条数")
    parser.add_argument("--prefix", default="cat", help="ID 前缀")
    parser.add_argument("--start", type=int, default=1, help="起始编号")
    args = parser.parse_args()

    asyncio.run(seed(args.count, args.prefix, args.start))
