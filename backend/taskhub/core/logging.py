"""日志系统 - 使用 loguru + rich

支持配置模式:
- simple: 简洁模式，只显示模块和消息
- detailed: 详细模式，显示调用位置、上下文和 Rich 堆栈
- json: JSON 格式，适合生产环境日志收集

使用方式:
    from taskhub.core.logging import get_logger

    logger = get_logger("dispatch.manager")
    logger.info("开始拉取", run_id=run_id, scan_size=200)
"""

import asyncio
import json
import sys
import traceback
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger
from rich.console import Console
from rich.traceback import install as install_rich_traceback

from taskhub.core.config import settings
from taskhub.core.paths import get_project_root


class LogLevel(str, Enum):
    """日志级别"""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogMode(str, Enum):
    """日志模式"""

    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"


console = Console(force_terminal=True, color_system="auto")


def _safe_for_logging(value: Any, *, _level: int = 0) -> Any:
    """把上下文值转换为可序列化结构，避免 loguru enqueue/serialize 报错"""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, (datetime, date)):
        return value.isoformat()

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, dict):
        if _level >= 4:
            return "{...}"
        return {str(k): _safe_for_logging(v, _level=_level + 1) for k, v in value.items()}

    if isinstance(value, (list, tuple, set)):
        if _level >= 4:
            return ["..."]
        return [_safe_for_logging(v, _level=_level + 1) for v in value]

    if isinstance(value, Path):
        return str(value)

    if hasattr(value, "model_dump"):
        return _safe_for_logging(value.model_dump(), _level=_level + 1)

    text = repr(value)
    if len(text) > 2000:
        return text[:2000] + "..."
    return text


def _escape_markup(text: str) -> str:
    """转义 loguru colorizer 会解析的字符"""
    return text.replace("<", "\\<").replace(">", "\\>").replace("{", "{{").replace("}", "}}")


def _relative_file(record: dict) -> str | None:
    file_obj = record.get("file")
    file_path_str = getattr(file_obj, "path", None)
    if not file_path_str:
        return getattr(file_obj, "name", None)
    try:
        return str(Path(file_path_str).resolve().relative_to(get_project_root()))
    except ValueError:
        return getattr(file_obj, "name", None)


def format_simple(record: dict) -> str:
    """简洁格式"""
    level = record["level"].name
    module = record.get("extra", {}).get("module", "app")

    color_map = {
        "DEBUG": "dim",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold red",
    }
    color = color_map.get(level, "white")

    return f"<{color}>[{module}]</{color}> {_escape_markup(record['message'])}\n"


def format_detailed(record: dict) -> str:
    """详细格式"""
    level = record["level"].name
    time = record["time"].strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    extra = record.get("extra", {})
    module = extra.get("module", "app")
    file = _relative_file(record) or ""
    line = record.get("line", "")
    function = record.get("function", "")

    color_map = {
        "DEBUG": "dim cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold red on white",
    }
    color = color_map.get(level, "white")

    header = f"<dim>{time}</dim> <{color}>{level:8}</{color}>"
    location = f"<cyan>{file}:{line}</cyan> in <blue>{function}</blue>"
    module_tag = f"<magenta>[{module}]</magenta>"

    context = ""
    context_keys = [k for k in extra if k != "module"]
    if context_keys:
        ctx_parts = [f"{k}={_escape_markup(repr(extra[k]))}" for k in context_keys]
        context = f" <dim>| {', '.join(ctx_parts)}</dim>"

    result = f"{header} {module_tag} {location}{context}\n    → {_escape_markup(record['message'])}\n"

    if record.get("exception"):
        exc_type, exc_value, exc_tb = record["exception"]
        if exc_value:
            tb_str = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
            result += f"\n<red>{_escape_markup(tb_str)}</red>\n"

    return result


def format_json(record: dict) -> str:
    """JSON 格式"""
    extra = record.get("extra", {})

    log_entry = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": extra.get("module", "app"),
        "file": _relative_file(record),
        "line": record.get("line", 0),
        "function": record.get("function", ""),
    }

    for k, v in extra.items():
        if k in ("module", "file", "line", "function"):
            continue
        try:
            json.dumps(v)
            log_entry[k] = v
        except (TypeError, ValueError):
            log_entry[k] = str(v)

    if record.get("exception"):
        exc_type, exc_value, exc_tb = record["exception"]
        if exc_value:
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
            }

    # 返回值仍会经过 format_map，需要转义大括号
    return json.dumps(log_entry, ensure_ascii=False, default=str).replace("{", "{{").replace("}", "}}") + "\n"


class Logger:
    """统一日志接口"""

    def __init__(self) -> None:
        self._configured = False
        self._mode = LogMode.DETAILED
        self._level = LogLevel.DEBUG

    @property
    def mode(self) -> LogMode:
        return self._mode

    def configure(
        self,
        mode: LogMode | str | None = None,
        level: LogLevel | str | None = None,
        log_file: str | None = None,
    ) -> None:
        """配置日志系统

        Args:
            mode: 日志模式 (simple, detailed, json)
            level: 日志级别 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: 日志文件路径，留空则写入 logs/app.log
        """
        if mode is None:
            mode = settings.LOG_MODE
        if level is None:
            level = settings.LOG_LEVEL
        if log_file is None:
            log_file = settings.LOG_FILE

        if isinstance(mode, str):
            mode = LogMode(mode.lower())
        if isinstance(level, str):
            level = LogLevel(level.upper())

        self._mode = mode
        self._level = level

        loguru_logger.remove()

        if mode == LogMode.SIMPLE:
            formatter = format_simple
        elif mode == LogMode.JSON:
            formatter = format_json
        else:
            formatter = format_detailed
            install_rich_traceback(console=console, show_locals=False, width=120)

        loguru_logger.add(
            sys.stderr,
            format=formatter,
            level=level.value,
            colorize=mode != LogMode.JSON,
            backtrace=mode == LogMode.DETAILED,
            diagnose=mode == LogMode.DETAILED,
            enqueue=True,
        )

        log_path = Path(log_file) if log_file else Path("logs/app.log")
        log_path.parent.mkdir(parents=True, exist_ok=True)

        loguru_logger.add(
            str(log_path),
            format="{message}",
            level=level.value,
            rotation=settings.LOG_FILE_ROTATION,
            retention=settings.LOG_FILE_RETENTION,
            compression="gz",
            enqueue=False,
            serialize=True,
        )

        # 必须在记录日志之前设置，避免递归
        self._configured = True

        def _global_excepthook(exc_type, exc, tb):
            loguru_logger.bind(module="runtime").opt(exception=(exc_type, exc, tb)).critical(
                "Uncaught exception"
            )

        sys.excepthook = _global_excepthook

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop:

            def _asyncio_exception_handler(loop, context):
                msg = context.get("message", "Unhandled asyncio exception")
                exception = context.get("exception")
                bound = loguru_logger.bind(module="asyncio")
                if exception:
                    bound.opt(
                        exception=(type(exception), exception, exception.__traceback__)
                    ).critical(f"Asyncio error: {msg}")
                else:
                    bound.critical(f"Asyncio error: {msg}")

            loop.set_exception_handler(_asyncio_exception_handler)

        loguru_logger.bind(module="logging").info(
            f"日志系统已配置: mode={mode.value}, level={level.value}, file={log_path}"
        )

    def _ensure_configured(self) -> None:
        if not self._configured:
            self.configure()

    def _log(
        self,
        level: str,
        message: str,
        *,
        module: str = "app",
        exc_info: bool = False,
        _depth: int = 0,
        **extra: Any,
    ) -> None:
        self._ensure_configured()

        context = {"module": module}
        for k, v in extra.items():
            context[str(k)] = _safe_for_logging(v)

        # user -> Logger.info -> _log -> loguru；经 BoundLogger 调用时再加一层
        opt_depth = 2 + _depth
        loguru_logger.bind(**context).opt(depth=opt_depth, exception=exc_info).log(
            level.upper(),
            message,
        )

    def debug(self, message: str, *, module: str = "app", _depth: int = 0, **extra: Any) -> None:
        self._log("debug", message, module=module, _depth=_depth, **extra)

    def info(self, message: str, *, module: str = "app", _depth: int = 0, **extra: Any) -> None:
        self._log("info", message, module=module, _depth=_depth, **extra)

    def warning(self, message: str, *, module: str = "app", _depth: int = 0, **extra: Any) -> None:
        self._log("warning", message, module=module, _depth=_depth, **extra)

    def error(
        self,
        message: str,
        *,
        module: str = "app",
        exc_info: bool = False,
        _depth: int = 0,
        **extra: Any,
    ) -> None:
        self._log("error", message, module=module, exc_info=exc_info, _depth=_depth, **extra)

    def exception(
        self, message: str, *, module: str = "app", _depth: int = 0, **extra: Any
    ) -> None:
        """异常日志（自动包含堆栈）"""
        self._log("error", message, module=module, exc_info=True, _depth=_depth, **extra)

    def bind(self, **context: Any) -> "BoundLogger":
        """创建绑定上下文的日志器"""
        return BoundLogger(self, context)


class BoundLogger:
    """绑定上下文的日志器"""

    def __init__(self, parent: Logger, context: dict[str, Any]) -> None:
        self._parent = parent
        self._context = context

    def debug(self, message: str, **extra: Any) -> None:
        self._parent.debug(message, _depth=1, **{**self._context, **extra})

    def info(self, message: str, **extra: Any) -> None:
        self._parent.info(message, _depth=1, **{**self._context, **extra})

    def warning(self, message: str, **extra: Any) -> None:
        self._parent.warning(message, _depth=1, **{**self._context, **extra})

    def error(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        self._parent.error(message, exc_info=exc_info, _depth=1, **{**self._context, **extra})

    def exception(self, message: str, **extra: Any) -> None:
        self._parent.exception(message, _depth=1, **{**self._context, **extra})


logger = Logger()


def get_logger(module: str) -> BoundLogger:
    """获取模块专用日志器

    Example:
        logger = get_logger("dispatch.manager")
        logger.info("运行开始")
    """
    return logger.bind(module=module)
