"""任务服务 - TaskManager 的对外门面

职责：
1. 校验 agent 请求参数，并把队列中的商品转换为下发格式
2. 根据运行状态计算耗时与吞吐量
3. 读写客户端版本号
"""

from datetime import datetime
from typing import Any

from taskhub.core.config import settings
from taskhub.core.errors import InvalidArgument, ServerError
from taskhub.core.logging import get_logger
from taskhub.dispatch.manager import TaskManager
from taskhub.dispatch.sources import CatalogBatchSource, SqlCatalogScanner
from taskhub.dispatch.state.models import RunState
from taskhub.services.kv_store import KeyValueStore, SqlKeyValueStore

logger = get_logger("services.task")


def _elapsed_msec(start: datetime | None, end: datetime | None, now: datetime) -> int:
    if start is None:
        return 0
    return max(int(((end or now) - start).total_seconds() * 1000), 0)


class TaskService:
    """任务服务"""

    def __init__(
        self,
        manager: TaskManager,
        store: KeyValueStore,
        *,
        id_separator: str = "_",
        version_key: str = "clientVersion",
        version_default: int = 1,
    ):
        self.manager = manager
        self._store = store
        self._id_separator = id_separator
        self._version_key = version_key
        self._version_default = version_default

    async def request_tasks(self, agent: str | None, size: int = 1) -> list[dict[str, str]]:
        """为 agent 分配任务

        Args:
            agent: 请求方标识（必填）
            size: 最多领取条数

        Returns:
            [{"id": ..., "secondary_id": ...}]，队列为空时为空列表

        Raises:
            InvalidArgument: 缺少 agent
        """
        if not agent:
            raise InvalidArgument("missing required parameter (agent)")

        items = await self.manager.pop_tasks(size)
        logger.debug("下发任务", agent=agent, requested=size, assigned=len(items))
        return [
            {"id": item.id, "secondary_id": self.split_secondary_id(item.id)}
            for item in items
        ]

    def get_stats(self, now: datetime | None = None) -> dict[str, Any]:
        """当前运行的统计快照

        elapsed 为本次运行的总耗时：started 到 exhausted，尚未取空时到 now 为止。
        运行取空后 elapsed 固定，不再随当前时间增长。
        fetch 吞吐量按 started 到 finished 计算。
        """
        now = now or datetime.now()
        state = self.manager.state

        fetch_elapsed = _elapsed_msec(state.started, state.finished, now)
        consume_elapsed = _elapsed_msec(state.started, state.exhausted, now)

        return {
            "status": "running" if self.manager.is_busy() else "idle",
            "current_event": {
                "run_id": state.run_id,
                "started": state.started,
                "finished": state.finished,
                "exhausted": state.exhausted,
                "elapsed": self.ms_to_string(consume_elapsed),
            },
            "next_event": state.scheduled or self.manager.next_invocation(),
            "count": {
                "fetched": state.fetched,
                "consumed": state.consumed,
                "available": self.manager.available,
            },
            "throughput": {
                "fetch": self.throughput(state.fetched, fetch_elapsed),
                "consume": self.throughput(state.consumed, consume_elapsed),
            },
            "last_error": state.last_error,
        }

    async def get_stats_async(self) -> dict[str, Any]:
        return self.get_stats()

    def get_history(self, limit: int = 10) -> list[dict[str, Any]]:
        """历史运行记录（最新在前）"""
        return [self._run_summary(state) for state in self.manager.history(limit)]

    async def force_trigger(self) -> bool:
        """手动触发一次商品目录扫描"""
        return await self.manager.force_trigger()

    async def get_client_version(self) -> str | int:
        """读取客户端版本号，未设置时返回默认值

        Raises:
            ServerError: 存储读取失败
        """
        try:
            value = await self._store.get(self._version_key)
        except Exception as e:
            logger.error("读取客户端版本失败", error=str(e), kind=type(e).__name__)
            raise ServerError(str(e), type(e).__name__) from e

        if value is None:
            return self._version_default
        return int(value) if value.isdigit() else value

    async def set_client_version(self, version: str | int | None) -> None:
        """写入客户端版本号（永不过期）

        Raises:
            InvalidArgument: 缺少 version
            ServerError: 存储写入失败
        """
        if not version:
            raise InvalidArgument("missing required parameter (version)")

        try:
            await self._store.set(self._version_key, str(version), 0)
        except Exception as e:
            logger.error("写入客户端版本失败", error=str(e), kind=type(e).__name__)
            raise ServerError(str(e), type(e).__name__) from e

        logger.info("客户端版本已更新", version=str(version))

    def split_secondary_id(self, item_id: str) -> str:
        """按分隔符拆分 ID，取第二段，如 "cat_42" -> "42" """
        parts = item_id.split(self._id_separator)
        return parts[1] if len(parts) > 1 else ""

    def _run_summary(self, state: RunState) -> dict[str, Any]:
        fetch_elapsed = _elapsed_msec(state.started, state.finished, state.finished or state.started)
        consume_elapsed = _elapsed_msec(
            state.started, state.exhausted, state.exhausted or state.finished or state.started
        )
        return {
            **state.to_dict(),
            "elapsed": self.ms_to_string(consume_elapsed),
            "throughput": {
                "fetch": self.throughput(state.fetched, fetch_elapsed),
                "consume": self.throughput(state.consumed, consume_elapsed),
            },
        }

    @staticmethod
    def ms_to_string(msec: int) -> str:
        """毫秒转 HH:MM:SS.mmm，小时位不设上限"""
        seconds, ms = divmod(int(msec), 1000)
        minutes, s = divmod(seconds, 60)
        h, m = divmod(minutes, 60)
        return f"{h:02d}:{m:02d}:{s:02d}.{ms:03d}"

    @staticmethod
    def throughput(count: int, msec: int) -> float:
        """每秒处理条数，保留两位小数；耗时为 0 时返回 0"""
        if not msec:
            return 0
        return round(count / msec * 1000, 2)


def build_task_service() -> TaskService:
    """按配置组装 TaskService（生产环境）"""
    manager = TaskManager(
        lambda: CatalogBatchSource(SqlCatalogScanner()),
        cron_expression=settings.TASK_CRON_EXPRESSION,
        max_queue_size=settings.TASK_MAX_QUEUE_SIZE,
        scan_size=settings.TASK_SCAN_SIZE,
        scan_interval=settings.scan_interval_seconds,
        history_limit=settings.TASK_HISTORY_LIMIT,
    )
    return TaskService(
        manager,
        SqlKeyValueStore(),
        id_separator=settings.TASK_ID_SEPARATOR,
        version_key=settings.CLIENT_VERSION_KEY,
        version_default=settings.CLIENT_VERSION_DEFAULT,
    )
