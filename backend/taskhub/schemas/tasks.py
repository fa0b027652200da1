"""任务分发相关 Schema"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class TaskRequest(BaseModel):
    """领取任务请求"""

    agent: str | None = Field(None, description="agent 标识")
    size: int = Field(1, ge=1, le=1000, description="最多领取条数")


class TaskAssignment(BaseModel):
    """下发给 agent 的任务"""

    id: str
    secondary_id: str = Field("", description="ID 按分隔符拆分后的第二段")


class CurrentEvent(BaseModel):
    """当前运行的时间点"""

    run_id: str | None = None
    started: datetime | None = None
    finished: datetime | None = None
    exhausted: datetime | None = None
    elapsed: str = "00:00:00.000"


class TaskCount(BaseModel):
    """计数"""

    fetched: int = 0
    consumed: int = 0
    available: int = 0


class Throughput(BaseModel):
    """吞吐量（条/秒）"""

    fetch: float = 0
    consume: float = 0


class TaskStatsResponse(BaseModel):
    """统计快照"""

    status: str
    current_event: CurrentEvent
    next_event: datetime | None = None
    count: TaskCount
    throughput: Throughput
    last_error: str | None = None


class RunRecordResponse(BaseModel):
    """历史运行记录"""

    run_id: str | None
    phase: str
    started: str | None
    finished: str | None
    exhausted: str | None
    scheduled: str | None
    fetched: int
    consumed: int
    last_error: str | None
    elapsed: str
    throughput: Throughput


class TriggerResponse(BaseModel):
    """触发响应"""

    success: bool
    message: str


class ClientVersion(BaseModel):
    """客户端版本号"""

    version: str | int | None = None
