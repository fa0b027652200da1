"""任务分发 API 路由

提供 agent 领取任务、统计查询、手动触发和客户端版本读写接口。
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from taskhub.core.dependencies import get_task_service
from taskhub.core.logging import get_logger
from taskhub.schemas.tasks import (
    ClientVersion,
    RunRecordResponse,
    TaskAssignment,
    TaskRequest,
    TaskStatsResponse,
    TriggerResponse,
)
from taskhub.services.task_service import TaskService

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])
logger = get_logger("api.tasks")

TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]


@router.post("/request", response_model=list[TaskAssignment])
async def request_tasks(body: TaskRequest, service: TaskServiceDep):
    """领取任务

    队列为空时返回空列表。
    """
    return await service.request_tasks(body.agent, body.size)


@router.get("/stats", response_model=TaskStatsResponse)
async def get_stats(service: TaskServiceDep):
    """获取当前运行的统计快照"""
    return await service.get_stats_async()


@router.get("/history", response_model=list[RunRecordResponse])
async def get_history(
    service: TaskServiceDep,
    limit: int = Query(10, ge=1, le=100, description="返回条数"),
):
    """获取历史运行记录"""
    return service.get_history(limit)


@router.post("/trigger", response_model=TriggerResponse)
async def trigger(service: TaskServiceDep):
    """手动触发一次商品目录扫描

    正在运行时不会重复触发。
    """
    started = await service.force_trigger()
    logger.info("手动触发扫描", started=started)
    if started:
        return TriggerResponse(success=True, message="扫描已开始")
    return TriggerResponse(success=False, message="正在运行，已忽略本次触发")


@router.get("/client-version", response_model=ClientVersion)
async def get_client_version(service: TaskServiceDep):
    """获取客户端版本号"""
    return ClientVersion(version=await service.get_client_version())


@router.put("/client-version", response_model=ClientVersion)
async def set_client_version(body: ClientVersion, service: TaskServiceDep):
    """设置客户端版本号"""
    await service.set_client_version(body.version)
    return ClientVersion(version=body.version)
