"""运行状态模型

一次运行（run）= 从触发开始，到拉取停止且队列被取空为止。
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any


class RunPhase(str, Enum):
    """运行阶段"""

    IDLE = "idle"  # 尚未运行过
    FETCHING = "fetching"  # 正在拉取
    DRAINING = "draining"  # 拉取已停止，队列尚未取空
    EXHAUSTED = "exhausted"  # 已取空，等待下次触发


# 同一时刻的时间点依次后移 1 微秒，保证 started < finished < exhausted
_TICK = timedelta(microseconds=1)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class RunState:
    """单次运行的时间点与计数

    Attributes:
        run_id: 运行 ID
        started: 运行开始时间
        finished: 拉取停止时间
        exhausted: 拉取停止后队列首次被取空的时间
        scheduled: 下次定时触发时间（运行开始时计算）
        fetched: 已拉取条数
        consumed: 已下发条数
        last_error: 拉取中止时的错误信息
    """

    run_id: str | None = None
    started: datetime | None = None
    finished: datetime | None = None
    exhausted: datetime | None = None
    scheduled: datetime | None = None
    fetched: int = 0
    consumed: int = 0
    last_error: str | None = None

    @property
    def phase(self) -> RunPhase:
        if self.started is None:
            return RunPhase.IDLE
        if self.finished is None:
            return RunPhase.FETCHING
        if self.exhausted is None:
            return RunPhase.DRAINING
        return RunPhase.EXHAUSTED

    def mark_finished(self, when: datetime) -> bool:
        """记录拉取停止时间，每次运行只记录一次，且严格晚于 started"""
        if self.started is None or self.finished is not None:
            return False
        self.finished = max(when, self.started + _TICK)
        return True

    def mark_exhausted(self, when: datetime) -> bool:
        """记录队列取空时间，必须在拉取停止之后，且只记录一次，严格晚于 finished"""
        if self.finished is None or self.exhausted is not None:
            return False
        self.exhausted = max(when, self.finished + _TICK)
        return True

    def snapshot(self) -> "RunState":
        return dataclasses.replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "phase": self.phase.value,
            "started": _iso(self.started),
            "finished": _iso(self.finished),
            "exhausted": _iso(self.exhausted),
            "scheduled": _iso(self.scheduled),
            "fetched": self.fetched,
            "consumed": self.consumed,
            "last_error": self.last_error,
        }
