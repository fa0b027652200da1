"""定时触发

基于 APScheduler 的 cron 调度，TaskManager 只依赖 register / next_invocation 两个能力。
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from croniter import croniter

from taskhub.core.logging import get_logger

logger = get_logger("dispatch.recurrence")

WakeupCallback = Callable[[], Awaitable[None]]


class ScheduleHandle(Protocol):
    """已注册的定时任务句柄"""

    def next_invocation(self) -> datetime | None: ...


class RecurrenceEngine(Protocol):
    """定时引擎接口"""

    def register(
        self, rule: str, callback: WakeupCallback, job_id: str = "dispatch_wakeup"
    ) -> ScheduleHandle: ...

    def start(self) -> None: ...

    def shutdown(self) -> None: ...


def calculate_next_run(cron_expression: str, base_time: datetime | None = None) -> datetime:
    """计算 cron 表达式的下次触发时间"""
    if base_time is None:
        base_time = datetime.now()
    return croniter(cron_expression, base_time).get_next(datetime)


class CronScheduleHandle:
    """APScheduler job 句柄"""

    def __init__(self, scheduler: AsyncIOScheduler, job_id: str, cron_expression: str):
        self._scheduler = scheduler
        self.job_id = job_id
        self.cron_expression = cron_expression

    def next_invocation(self) -> datetime | None:
        """下次触发时间（本地时间，不带时区）

        调度器未启动时 job 尚未计算 next_run_time，改用 croniter 推算。
        """
        job = self._scheduler.get_job(self.job_id)
        if job is None:
            return None
        next_run = getattr(job, "next_run_time", None)
        if next_run is not None:
            return next_run.replace(tzinfo=None)
        if self._scheduler.running:
            # 已启动但 next_run_time 为空：job 被暂停
            return None
        return calculate_next_run(self.cron_expression)


class CronRecurrence:
    """cron 定时引擎

    Example:
        recurrence = CronRecurrence()
        handle = recurrence.register("0 * * * *", manager_wakeup)
        recurrence.start()
        handle.next_invocation()
    """

    def __init__(self, scheduler: AsyncIOScheduler | None = None):
        self._scheduler = scheduler or AsyncIOScheduler()
        self._stopped = False

    @property
    def running(self) -> bool:
        # AsyncIOScheduler 3.11 起 shutdown 延迟到下一次事件循环回调才真正停止
        return self._scheduler.running and not self._stopped

    def register(
        self, rule: str, callback: WakeupCallback, job_id: str = "dispatch_wakeup"
    ) -> CronScheduleHandle:
        """注册 cron 定时任务

        Raises:
            ValueError: cron 表达式无效
        """
        if not croniter.is_valid(rule):
            raise ValueError(f"无效的 cron 表达式: {rule}")

        job = self._scheduler.add_job(
            callback,
            trigger=CronTrigger.from_crontab(rule),
            id=job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        logger.info("注册定时触发", cron=rule, job_id=job.id)
        return CronScheduleHandle(self._scheduler, job.id, rule)

    def start(self) -> None:
        if self.running:
            logger.warning("定时引擎已在运行")
            return
        self._scheduler.start()
        self._stopped = False
        logger.info("定时引擎已启动")

    def shutdown(self) -> None:
        """停止调度器，重复调用无副作用"""
        if not self.running:
            return
        self._stopped = True
        self._scheduler.shutdown(wait=False)
        logger.info("定时引擎停止中")
