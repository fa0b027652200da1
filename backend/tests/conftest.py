"""Pytest 配置"""

import asyncio
import os
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

# 测试环境下日志只写临时目录，避免污染工作目录
os.environ.setdefault("LOG_MODE", "simple")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("LOG_FILE", str(Path(tempfile.gettempdir()) / "taskhub-tests" / "app.log"))
os.environ.setdefault("DATABASE_PATH", str(Path(tempfile.gettempdir()) / "taskhub-tests" / "app.db"))


class FakeRecurrence:
    """替代 APScheduler 的定时引擎，手动 fire 触发回调"""

    def __init__(self, next_time: datetime | None = None):
        self.rule: str | None = None
        self.callback = None
        self.started = False
        self.next_time = next_time or datetime(2030, 1, 1, 12, 0, 0)

    def register(self, rule, callback, job_id="dispatch_wakeup"):
        self.rule = rule
        self.callback = callback
        return self

    def next_invocation(self):
        return self.next_time

    def start(self):
        self.started = True

    def shutdown(self):
        self.started = False

    async def fire(self):
        await self.callback()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def recurrence():
    return FakeRecurrence()


@pytest.fixture
def make_manager(recurrence):
    """创建使用假定时引擎、零轮询间隔的 TaskManager"""
    from taskhub.dispatch.manager import TaskManager
    from taskhub.dispatch.sources import InMemoryBatchSource

    def _make(source_factory=None, **kwargs):
        kwargs.setdefault("scan_interval", 0)
        return TaskManager(
            source_factory or (lambda: InMemoryBatchSource([])),
            recurrence,
            **kwargs,
        )

    return _make


@pytest.fixture
def wait_for():
    """轮询等待条件成立"""

    async def _wait_for(predicate, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("等待条件超时")
            await asyncio.sleep(0.001)

    return _wait_for


@pytest.fixture
def session_factory():
    """内存 SQLite 会话工厂（单连接共享同一个库）"""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def create_tables():
    """在会话工厂对应的库中建表"""
    from taskhub.models.base import Base

    async def _create(factory):
        engine = factory.kw["bind"]
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    return _create
