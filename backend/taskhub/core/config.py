"""应用配置管理"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 数据库配置
    DATABASE_PATH: str = "./data/app.db"

    # 服务配置
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:3000"

    # 日志配置
    LOG_LEVEL: str = "DEBUG"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_MODE: str = "detailed"  # simple, detailed, json
    LOG_FILE: str = "./logs/app.log"  # 日志文件路径，留空则使用默认路径
    LOG_FILE_ROTATION: str = "10 MB"  # 日志文件轮转大小
    LOG_FILE_RETENTION: str = "7 days"  # 日志文件保留时间

    # ========== 任务分发配置 ==========
    # 按 cron 定时扫描商品目录，分批拉取到内存队列，供多个 agent 按需领取
    TASK_SCHEDULER_ENABLED: bool = True  # 是否启用定时扫描
    TASK_CRON_EXPRESSION: str = "0 * * * *"  # 默认每小时整点
    TASK_RUN_ON_START: bool = False  # 应用启动时是否立即扫描一次
    TASK_MAX_QUEUE_SIZE: int = 1000  # 内存队列软上限
    TASK_SCAN_SIZE: int = 200  # 每批扫描条数
    TASK_SCAN_INTERVAL_MS: int = 500  # 拉取轮询间隔（毫秒）
    TASK_ID_SEPARATOR: str = "_"  # 拆分二级 ID 的分隔符
    TASK_HISTORY_LIMIT: int = 20  # 保留的历史运行记录条数

    # ========== 客户端版本 ==========
    CLIENT_VERSION_KEY: str = "clientVersion"
    CLIENT_VERSION_DEFAULT: int = 1

    @property
    def database_url(self) -> str:
        """SQLite 数据库 URL"""
        return f"sqlite+aiosqlite:///{self.DATABASE_PATH}"

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS 允许的源列表（逗号分隔）"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def scan_interval_seconds(self) -> float:
        """拉取轮询间隔（秒）"""
        return self.TASK_SCAN_INTERVAL_MS / 1000

    def ensure_data_dir(self) -> None:
        """确保数据目录存在"""
        Path(self.DATABASE_PATH).parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()


settings = get_settings()
