"""统一错误处理

提供标准化的错误响应结构和自定义异常类。

- InvalidArgument: 调用方缺少必填参数（4xx，不重试）
- ServerError: 数据完整性问题或外部依赖故障（5xx，不自动重试，记录日志）
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorPayload(BaseModel):
    """标准错误响应结构"""

    code: str
    message: str
    data: dict[str, Any] | None = None
    timestamp: str


class AppError(HTTPException):
    """应用自定义异常

    使用示例:
        raise AppError(
            code="queue_not_ready",
            message="任务队列未初始化",
            status_code=500,
        )
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        data: dict[str, Any] | None = None,
    ):
        self.code = code
        self.error_message = message
        self.data = data
        super().__init__(status_code=status_code, detail=message)

    def __str__(self) -> str:
        return self.error_message


class InvalidArgument(AppError):
    """请求参数缺失或为空"""

    def __init__(self, message: str, *, data: dict[str, Any] | None = None):
        super().__init__(
            code="invalid_argument",
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            data=data,
        )


class ServerError(AppError):
    """服务端错误

    kind 标记错误来源，如 DataSourceError / TaskManagerError，
    或外部存储抛出的原始异常类名。
    """

    def __init__(
        self,
        message: str,
        kind: str = "ServerError",
        *,
        data: dict[str, Any] | None = None,
    ):
        self.kind = kind
        super().__init__(
            code="server_error",
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            data={"kind": kind, **(data or {})},
        )


def create_error_response(
    code: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """创建标准错误响应"""
    payload = ErrorPayload(
        code=code,
        message=message,
        data=data,
        timestamp=datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
    )
    return {"error": payload.model_dump()}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """FastAPI 异常处理器：把 AppError 渲染成标准错误结构"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.code, exc.error_message, exc.data),
    )
