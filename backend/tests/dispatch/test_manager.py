"""TaskManager 测试

覆盖运行生命周期、软背压、FIFO 领取和拉取异常处理。
"""

import asyncio

import pytest

from taskhub.core.errors import ServerError
from taskhub.dispatch.manager import TaskManager
from taskhub.dispatch.sources import (
    CatalogBatchSource,
    InMemoryBatchSource,
    InMemoryCatalogScanner,
    Item,
    ScanPage,
)
from taskhub.dispatch.state import RunPhase


def _items(*ids: str) -> list[Item]:
    return [Item(id=item_id) for item_id in ids]


class TestTaskManagerInit:
    """测试初始化与参数校验"""

    def test_registers_hourly_schedule(self, make_manager, recurrence):
        """测试构造时注册每小时整点的定时触发"""
        make_manager()
        assert recurrence.rule == "0 * * * *"
        assert recurrence.callback is not None

    def test_custom_cron_expression(self, make_manager, recurrence):
        """测试自定义 cron 表达式"""
        make_manager(cron_expression="*/5 * * * *")
        assert recurrence.rule == "*/5 * * * *"

    def test_invalid_scan_size(self, make_manager):
        """测试非法的批次大小"""
        with pytest.raises(ValueError):
            make_manager(scan_size=0)
        with pytest.raises(ValueError):
            make_manager(max_queue_size=100, scan_size=200)

    def test_initial_state(self, make_manager):
        """测试初始状态为空闲"""
        manager = make_manager()
        assert manager.is_busy() is False
        assert manager.started_at is None
        assert manager.finished_at is None
        assert manager.exhausted_at is None
        assert manager.scheduled_at is None
        assert manager.fetched == 0
        assert manager.consumed == 0
        assert manager.available == 0
        assert manager.state.phase == RunPhase.IDLE

    def test_start_starts_recurrence(self, make_manager, recurrence):
        """测试 start 启动定时引擎"""
        manager = make_manager()
        manager.start()
        assert recurrence.started is True


class TestRunLifecycle:
    """测试完整运行流程"""

    @pytest.mark.anyio
    async def test_full_run_two_batches(self, make_manager, wait_for):
        """测试 250 条商品分两批（200 + 50）拉取并取空"""
        scanner = InMemoryCatalogScanner(_items(*(f"cat_{i:03d}" for i in range(250))))
        manager = make_manager(scan_size=200)

        assert await manager.force_trigger(CatalogBatchSource(scanner)) is True
        assert manager.is_busy() is True
        assert manager.started_at is not None

        await wait_for(lambda: manager.finished_at is not None)

        assert [page.count for page in scanner.pages] == [200, 50]
        assert [page.final for page in scanner.pages] == [False, True]
        assert manager.fetched == 250
        assert manager.available == 250
        assert manager.state.phase == RunPhase.DRAINING
        assert manager.is_busy() is True

        items = await manager.pop_tasks(250)
        assert len(items) == 250
        assert items[0].id == "cat_000"
        assert items[-1].id == "cat_249"
        assert manager.fetched == 250
        assert manager.consumed == 250
        assert manager.exhausted_at is not None
        assert manager.exhausted_at > manager.finished_at > manager.started_at
        assert manager.is_busy() is False
        assert manager.state.phase == RunPhase.EXHAUSTED

    @pytest.mark.anyio
    async def test_scheduled_wakeup_uses_source_factory(self, make_manager, recurrence, wait_for):
        """测试定时触发使用默认数据源，并记录下次触发时间"""
        manager = make_manager(lambda: InMemoryBatchSource(_items("a_1", "a_2")))

        await recurrence.fire()

        assert manager.started_at is not None
        assert manager.scheduled_at == recurrence.next_time
        await wait_for(lambda: manager.finished_at is not None)
        assert [item.id for item in await manager.pop_tasks(5)] == ["a_1", "a_2"]

    @pytest.mark.anyio
    async def test_scheduled_wakeup_ignored_while_busy(self, make_manager, recurrence, wait_for):
        """测试运行中定时触发被忽略"""
        calls = []

        def factory():
            calls.append(1)
            return InMemoryBatchSource(_items("b_1"))

        manager = make_manager(factory)
        await recurrence.fire()
        await wait_for(lambda: manager.finished_at is not None)
        run_id = manager.state.run_id

        await recurrence.fire()

        assert len(calls) == 1
        assert manager.state.run_id == run_id

    @pytest.mark.anyio
    async def test_force_trigger_while_busy_is_noop(self, make_manager, wait_for):
        """测试运行中手动触发不产生任何变化"""
        manager = make_manager()
        await manager.force_trigger(InMemoryBatchSource(_items("c_1", "c_2", "c_3")))
        await wait_for(lambda: manager.finished_at is not None)
        before = manager.state

        started = await manager.force_trigger(InMemoryBatchSource(_items("d_1")))

        assert started is False
        assert manager.state == before
        assert manager.available == 3

    @pytest.mark.anyio
    async def test_new_run_after_drain(self, make_manager, wait_for):
        """测试取空后可开始新一轮运行，计数重置"""
        manager = make_manager()
        await manager.force_trigger(InMemoryBatchSource(_items("e_1", "e_2")))
        await wait_for(lambda: manager.finished_at is not None)
        await manager.pop_tasks(2)
        first_run = manager.state.run_id

        assert await manager.force_trigger(InMemoryBatchSource(_items("f_1"))) is True
        assert manager.fetched == 0
        assert manager.consumed == 0
        assert manager.finished_at is None
        assert manager.exhausted_at is None

        await wait_for(lambda: manager.finished_at is not None)
        assert manager.fetched == 1

        history = manager.history()
        assert len(history) == 1
        assert history[0].run_id == first_run
        assert history[0].consumed == 2

    @pytest.mark.anyio
    async def test_history_limit(self, make_manager, wait_for):
        """测试历史记录条数上限"""
        manager = make_manager(history_limit=2)
        for i in range(4):
            await manager.force_trigger(InMemoryBatchSource(_items(f"h_{i}")))
            await wait_for(lambda: manager.finished_at is not None)
            await manager.pop_tasks(1)

        assert len(manager.history()) == 2
        assert len(manager.history(limit=1)) == 1

    @pytest.mark.anyio
    async def test_empty_source_exhausts_on_finish(self, make_manager, wait_for):
        """测试空目录运行结束时直接记录取空时间，无需等待领取"""
        manager = make_manager()

        await manager.force_trigger(InMemoryBatchSource([]))
        await wait_for(lambda: manager.finished_at is not None)

        assert manager.exhausted_at is not None
        assert manager.exhausted_at > manager.finished_at > manager.started_at
        assert manager.state.phase == RunPhase.EXHAUSTED
        assert manager.is_busy() is False

    @pytest.mark.anyio
    async def test_aborted_run_after_drain_exhausts(self, make_manager, wait_for):
        """测试队列已被取空后拉取中止，同样记录取空时间"""
        manager = make_manager()

        await manager.force_trigger(_FailingSource([]))
        await wait_for(lambda: manager.finished_at is not None)

        assert manager.last_error == "RuntimeError: catalog unavailable"
        assert manager.exhausted_at > manager.finished_at


class TestBackpressure:
    """测试软背压"""

    @pytest.mark.anyio
    async def test_skips_fetch_when_queue_is_full(self, make_manager, wait_for):
        """测试队列超过阈值时暂停拉取，消费后恢复"""
        manager = make_manager(max_queue_size=300, scan_size=200)
        await manager.force_trigger(InMemoryBatchSource.synthetic(1000))

        try:
            await wait_for(lambda: manager.fetched == 200)
            # 200 > 300 - 200，后续 tick 全部跳过
            for _ in range(20):
                await asyncio.sleep(0)
            assert manager.fetched == 200
            assert manager.available == 200

            await manager.pop_tasks(150)
            await wait_for(lambda: manager.fetched == 400)
            assert manager.available == 250
        finally:
            await manager.close()


class TestConsume:
    """测试领取"""

    @pytest.mark.anyio
    async def test_pop_from_idle_manager_returns_empty(self, make_manager):
        """测试空闲时领取返回空列表而不是报错"""
        manager = make_manager()
        assert await manager.pop_tasks(5) == []
        assert manager.exhausted_at is None

    @pytest.mark.anyio
    async def test_fifo_and_over_consumption(self, make_manager, wait_for):
        """测试 FIFO 顺序，超量领取只返回现有条数"""
        manager = make_manager()
        await manager.force_trigger(InMemoryBatchSource(_items("k_1", "k_2", "k_3", "k_4", "k_5")))
        await wait_for(lambda: manager.finished_at is not None)

        first = await manager.pop_tasks(3)
        rest = await manager.pop_tasks(10)

        assert [item.id for item in first] == ["k_1", "k_2", "k_3"]
        assert [item.id for item in rest] == ["k_4", "k_5"]
        assert manager.consumed == 5

    @pytest.mark.anyio
    async def test_exhausted_set_once(self, make_manager, wait_for):
        """测试取空时间只记录一次"""
        manager = make_manager()
        await manager.force_trigger(InMemoryBatchSource(_items("m_1")))
        await wait_for(lambda: manager.finished_at is not None)

        await manager.pop_tasks(1)
        exhausted_at = manager.exhausted_at
        assert exhausted_at is not None

        await asyncio.sleep(0.01)
        await manager.pop_tasks(1)
        assert manager.exhausted_at == exhausted_at

    @pytest.mark.anyio
    async def test_exhausted_not_set_while_fetching(self, make_manager, wait_for):
        """测试拉取未结束时队列被取空不记录取空时间"""
        manager = make_manager(max_queue_size=300, scan_size=200)
        await manager.force_trigger(InMemoryBatchSource.synthetic(1000))
        try:
            await wait_for(lambda: manager.fetched >= 200)
            await manager.pop_tasks(1000)
            assert manager.finished_at is None
            assert manager.exhausted_at is None
        finally:
            await manager.close()

    @pytest.mark.anyio
    async def test_concurrent_consumers_never_exceed_fetched(self, make_manager):
        """测试多个 agent 并发领取时 consumed 不超过 fetched，且无重复下发"""
        manager = make_manager(max_queue_size=100, scan_size=20)
        await manager.force_trigger(InMemoryBatchSource.synthetic(500))
        received: list[str] = []
        violations = []

        async def consumer():
            while manager.is_busy() or manager.started_at is None:
                items = await manager.pop_tasks(7)
                received.extend(item.id for item in items)
                if manager.consumed > manager.fetched:
                    violations.append((manager.consumed, manager.fetched))
                await asyncio.sleep(0)

        await asyncio.wait_for(asyncio.gather(*(consumer() for _ in range(5))), timeout=5)

        assert violations == []
        assert len(received) == 500
        assert len(set(received)) == 500
        assert received == sorted(received)
        assert manager.fetched == manager.consumed == 500

    @pytest.mark.anyio
    async def test_pop_after_close_raises(self, make_manager):
        """测试关闭后领取抛出 ServerError"""
        manager = make_manager()
        await manager.close()

        with pytest.raises(ServerError) as exc_info:
            await manager.pop_tasks(1)
        assert exc_info.value.kind == "TaskManagerError"

    @pytest.mark.anyio
    async def test_trigger_after_close_ignored(self, make_manager):
        """测试关闭后触发被忽略"""
        manager = make_manager()
        await manager.close()
        assert await manager.force_trigger(InMemoryBatchSource(_items("z_1"))) is False
        assert manager.started_at is None


class _BrokenScanner:
    """返回不完整扫描结果的目录"""

    def __init__(self, page: ScanPage):
        self.page = page

    async def scan(self, limit, start_after=None):
        return self.page


class _FailingSource(InMemoryBatchSource):
    async def next_batch(self, max_size):
        raise RuntimeError("catalog unavailable")


class TestFetchErrors:
    """测试拉取异常"""

    @pytest.mark.anyio
    async def test_count_mismatch_aborts_run(self, make_manager, wait_for):
        """测试条数不一致时中止拉取并记录错误"""
        scanner = _BrokenScanner(ScanPage(items=_items("x_1"), count=2, final=False, next_cursor="x_1"))
        manager = make_manager()

        await manager.force_trigger(CatalogBatchSource(scanner))
        await wait_for(lambda: manager.finished_at is not None)

        assert manager.fetched == 0
        assert manager.last_error.startswith("DataSourceError")
        assert manager.is_busy() is False

    @pytest.mark.anyio
    async def test_missing_cursor_aborts_run(self, make_manager, wait_for):
        """测试非最后一页缺少游标时中止拉取"""
        scanner = _BrokenScanner(ScanPage(items=_items("y_1"), count=1, final=False))
        manager = make_manager()

        await manager.force_trigger(CatalogBatchSource(scanner))
        await wait_for(lambda: manager.finished_at is not None)

        assert "next_cursor" in manager.last_error
        assert manager.is_busy() is False

    @pytest.mark.anyio
    async def test_unexpected_error_is_recorded(self, make_manager, wait_for):
        """测试数据源意外异常被记录，不影响后续运行"""
        manager = make_manager()

        await manager.force_trigger(_FailingSource(_items("q_1")))
        await wait_for(lambda: manager.finished_at is not None)
        assert manager.last_error == "RuntimeError: catalog unavailable"

        assert await manager.force_trigger(InMemoryBatchSource(_items("q_2"))) is True
        assert manager.last_error is None


class TestTaskManagerDefaults:
    """测试默认常量"""

    def test_default_constants(self):
        from taskhub.dispatch import manager as manager_module

        assert manager_module.MAX_QUEUE_SIZE == 1000
        assert manager_module.SCAN_SIZE == 200
        assert manager_module.SCAN_INTERVAL_MSEC == 500

    def test_manager_defaults(self, recurrence):
        manager = TaskManager(lambda: InMemoryBatchSource([]), recurrence)
        assert manager.max_queue_size == 1000
        assert manager.scan_size == 200
        assert manager.scan_interval == 0.5
