"""FastAPI 依赖注入"""

from typing import TYPE_CHECKING

from fastapi import Request

from taskhub.core.errors import ServerError

if TYPE_CHECKING:
    from taskhub.services.task_service import TaskService


def get_task_service(request: Request) -> "TaskService":
    """获取应用生命周期内的 TaskService 实例"""
    service = getattr(request.app.state, "task_service", None)
    if service is None:
        raise ServerError("task service is not initialized", "TaskManagerError")
    return service
