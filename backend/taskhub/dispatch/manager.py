"""任务管理器

负责拉取与下发：
1. 定时（或手动）触发一次运行，从 BatchSource 分批拉取商品到内存队列
2. 队列接近上限时暂停拉取（软背压），等待 agent 消费
3. agent 按 FIFO 顺序领取任务
4. 记录每次运行的时间点与计数，供统计使用

所有对队列和 RunState 的修改都在同一把锁内完成。
"""

import asyncio
import uuid
from collections import deque
from collections.abc import Callable
from datetime import datetime

from taskhub.core.errors import ServerError
from taskhub.core.logging import get_logger
from taskhub.dispatch.recurrence import CronRecurrence, RecurrenceEngine
from taskhub.dispatch.sources.base import BatchSource, Item
from taskhub.dispatch.state.models import RunState

logger = get_logger("dispatch.manager")

# 队列不超过 (1000 - 200) 时，每 0.5 秒拉取 200 条
MAX_QUEUE_SIZE = 1000
SCAN_SIZE = 200
SCAN_INTERVAL_MSEC = 500
DEFAULT_CRON = "0 * * * *"

TASK_MANAGER_ERROR = "TaskManagerError"


class TaskManager:
    """任务管理器

    Example:
        manager = TaskManager(lambda: CatalogBatchSource(SqlCatalogScanner()))
        manager.start()
        await manager.force_trigger()
        items = await manager.pop_tasks(10)
        await manager.close()
    """

    def __init__(
        self,
        source_factory: Callable[[], BatchSource],
        recurrence: RecurrenceEngine | None = None,
        *,
        cron_expression: str = DEFAULT_CRON,
        max_queue_size: int = MAX_QUEUE_SIZE,
        scan_size: int = SCAN_SIZE,
        scan_interval: float = SCAN_INTERVAL_MSEC / 1000,
        history_limit: int = 20,
    ):
        if scan_size <= 0:
            raise ValueError("scan_size 必须大于 0")
        if scan_size > max_queue_size:
            raise ValueError("scan_size 不能超过 max_queue_size")
        if scan_interval < 0:
            raise ValueError("scan_interval 不能为负数")

        self._source_factory = source_factory
        self.max_queue_size = max_queue_size
        self.scan_size = scan_size
        self.scan_interval = scan_interval

        self._lock = asyncio.Lock()
        self._queue: deque[Item] = deque()
        self._state = RunState()
        self._history: deque[RunState] = deque(maxlen=history_limit)
        self._fetch_task: asyncio.Task | None = None
        self._closed = False

        # 默认每小时整点触发
        self._recurrence = recurrence or CronRecurrence()
        self._schedule = self._recurrence.register(cron_expression, self._on_schedule)

    @property
    def started_at(self) -> datetime | None:
        return self._state.started

    @property
    def finished_at(self) -> datetime | None:
        return self._state.finished

    @property
    def exhausted_at(self) -> datetime | None:
        return self._state.exhausted

    @property
    def scheduled_at(self) -> datetime | None:
        return self._state.scheduled

    @property
    def fetched(self) -> int:
        return self._state.fetched

    @property
    def consumed(self) -> int:
        return self._state.consumed

    @property
    def available(self) -> int:
        return len(self._queue)

    @property
    def last_error(self) -> str | None:
        return self._state.last_error

    @property
    def state(self) -> RunState:
        """当前运行状态的副本"""
        return self._state.snapshot()

    def next_invocation(self) -> datetime | None:
        """定时引擎给出的下次触发时间"""
        return self._schedule.next_invocation()

    def history(self, limit: int | None = None) -> list[RunState]:
        """已结束的历史运行（最新在前）"""
        records = list(self._history)
        return records[:limit] if limit is not None else records

    def is_busy(self) -> bool:
        """正在拉取，或队列中仍有未领取的任务"""
        return self._fetch_task is not None or bool(self._queue)

    def start(self) -> None:
        """启动定时引擎"""
        self._recurrence.start()

    async def close(self) -> None:
        """停止定时引擎和拉取任务，之后不再接受领取请求"""
        self._closed = True
        self._recurrence.shutdown()

        task = self._fetch_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("任务管理器已关闭", run_id=self._state.run_id)

    async def force_trigger(self, source: BatchSource | None = None) -> bool:
        """手动触发一次运行

        正在运行时直接忽略，不抛异常。

        Returns:
            是否开始了新的运行
        """
        return await self._wakeup(source, trigger="manual")

    async def pop_tasks(self, size: int = 1) -> list[Item]:
        """从队首领取最多 size 条任务

        队列为空时返回空列表。

        Raises:
            ServerError: 管理器已关闭（TaskManagerError）
        """
        if self._closed:
            raise ServerError("no handler for consume requests", TASK_MANAGER_ERROR)

        async with self._lock:
            count = min(max(size, 0), len(self._queue))
            items = [self._queue.popleft() for _ in range(count)]
            self._state.consumed += len(items)

            if not self._queue and self._state.mark_exhausted(datetime.now()):
                logger.info(
                    "队列已取空",
                    run_id=self._state.run_id,
                    fetched=self._state.fetched,
                    consumed=self._state.consumed,
                )

        return items

    # ==================== 内部方法 ====================

    async def _on_schedule(self) -> None:
        """定时引擎回调"""
        await self._wakeup(None, trigger="schedule")

    async def _wakeup(self, source: BatchSource | None, *, trigger: str) -> bool:
        async with self._lock:
            if self._closed:
                logger.warning("任务管理器已关闭，忽略触发", trigger=trigger)
                return False

            # 防止两次运行重叠
            if self.is_busy():
                logger.debug(
                    "正在运行，忽略触发",
                    trigger=trigger,
                    run_id=self._state.run_id,
                    available=self.available,
                )
                return False

            if self._state.started is not None:
                self._history.appendleft(self._state.snapshot())

            if source is None:
                source = self._source_factory()

            self._state = RunState(
                run_id=uuid.uuid4().hex,
                started=datetime.now(),
                scheduled=self._schedule.next_invocation(),
            )
            self._queue.clear()
            self._fetch_task = asyncio.create_task(self._fetch_loop(self._state, source))

        logger.info(
            "开始运行",
            trigger=trigger,
            run_id=self._state.run_id,
            source=repr(source),
            next_run=self._state.scheduled,
        )
        return True

    async def _fetch_loop(self, state: RunState, source: BatchSource) -> None:
        try:
            while True:
                await asyncio.sleep(self.scan_interval)

                # 队列已足够多，等 agent 消费
                if self.available > self.max_queue_size - self.scan_size:
                    continue

                items = await source.next_batch(self.scan_size)

                async with self._lock:
                    self._queue.extend(items)
                    state.fetched += len(items)

                if source.is_exhausted():
                    break
        except ServerError as exc:
            state.last_error = f"{exc.kind}: {exc.error_message}"
            logger.error(
                "拉取中止",
                run_id=state.run_id,
                kind=exc.kind,
                error=exc.error_message,
                fetched=state.fetched,
            )
        except Exception as exc:
            error = ServerError(str(exc), type(exc).__name__)
            state.last_error = f"{error.kind}: {error.error_message}"
            logger.exception(
                "拉取异常中止",
                run_id=state.run_id,
                kind=error.kind,
                fetched=state.fetched,
            )
        finally:
            async with self._lock:
                self._suspend(state)

    def _suspend(self, state: RunState) -> None:
        """停止拉取，记录结束时间

        队列此时已为空（空目录，或拉取中止前已被取空）则同时记录取空时间。
        """
        now = datetime.now()
        state.mark_finished(now)
        self._fetch_task = None
        if not self._queue:
            state.mark_exhausted(now)
        logger.info(
            "拉取结束",
            run_id=state.run_id,
            fetched=state.fetched,
            available=self.available,
            exhausted=state.exhausted,
            error=state.last_error,
        )
