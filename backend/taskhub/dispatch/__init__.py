"""任务分发模块

定时扫描商品目录，分批缓存到内存队列，供多个 agent 按需领取：
- TaskManager: 拉取/下发引擎，持有队列与运行状态
- CronRecurrence: 基于 APScheduler 的定时触发
- BatchSource: 批次数据源（商品目录 / 内存）

使用方式：
    from taskhub.dispatch import TaskManager
    from taskhub.dispatch.sources import CatalogBatchSource, SqlCatalogScanner

    manager = TaskManager(lambda: CatalogBatchSource(SqlCatalogScanner()))
    manager.start()
"""

from taskhub.dispatch.manager import TaskManager
from taskhub.dispatch.recurrence import CronRecurrence, calculate_next_run
from taskhub.dispatch.state import RunPhase, RunState

__all__ = [
    "CronRecurrence",
    "RunPhase",
    "RunState",
    "TaskManager",
    "calculate_next_run",
]
