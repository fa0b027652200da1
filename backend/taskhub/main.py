"""FastAPI 应用入口"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskhub.core.config import settings
from taskhub.core.database import init_db
from taskhub.core.db import close_database_provider
from taskhub.core.errors import AppError, app_error_handler
from taskhub.core.logging import logger
from taskhub.routers import tasks
from taskhub.services.task_service import build_task_service

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理"""
    # 启动时配置日志（确保最先执行）
    logger.configure()

    logger.info("启动应用...", module="app")
    await init_db()

    service = build_task_service()
    app.state.task_service = service

    if settings.TASK_SCHEDULER_ENABLED:
        service.manager.start()
        logger.info(
            "定时扫描已启用",
            module="app",
            cron=settings.TASK_CRON_EXPRESSION,
            next_run=service.manager.next_invocation(),
        )
    else:
        logger.info("定时扫描未启用，仅支持手动触发", module="app")

    if settings.TASK_RUN_ON_START:
        await service.force_trigger()

    logger.info("应用启动完成", module="app", host=settings.API_HOST, port=settings.API_PORT)

    yield

    logger.info("正在关闭应用...", module="app")

    await service.manager.close()
    logger.debug("任务管理器已关闭", module="app")

    try:
        await close_database_provider()
        logger.debug("数据库引擎已关闭", module="app")
    except Exception as e:
        logger.warning("关闭数据库引擎时出错", module="app", error=str(e))

    logger.info("应用已关闭", module="app")


app = FastAPI(
    title="商品任务分发",
    description="定时扫描商品目录，按需向 agent 分发任务",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppError, app_error_handler)

app.include_router(tasks.router)


@app.get("/health")
async def health_check():
    """健康检查"""
    return {"status": "ok", "version": VERSION}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "taskhub.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=True,
    )
