"""统一日志系统 - 单一接口，智能路由

traywatch 的统一日志系统，提供：
- 单一清晰的API接口
- 智能输出路由（控制台 + 文件）
- 按类别过滤（bus / watcher / registry / resolver / menu / command）
- 性能记录

使用示例:
    from traywatch.utils import logger

    logger.info("Watcher started", LogCategory.WATCHER)
    logger.performance("resolve_item", 0.012, details={"address": ":1.52/StatusNotifierItem"})
"""

import os
import sys
import time
import threading
import json
import traceback
from typing import Dict, Any, Union, Optional
from pathlib import Path
from enum import Enum


class LogLevel(Enum):
    """日志级别"""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class LogCategory(Enum):
    """日志类别（用于过滤和路由）"""
    BUS = "bus"
    WATCHER = "watcher"
    REGISTRY = "registry"
    RESOLVER = "resolver"
    MENU = "menu"
    COMMAND = "command"
    STARTUP = "startup"
    ERROR = "error"
    PERFORMANCE = "performance"


def default_log_dir() -> Path:
    """日志目录：$XDG_STATE_HOME/traywatch/logs"""
    state_home = os.getenv("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(state_home) / "traywatch" / "logs"


class UnifiedLogger:
    """统一日志系统 - 单例模式"""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, '_initialized'):
            return

        self._initialized = True
        self._config_service = None  # 延迟设置
        self._min_level = LogLevel.DEBUG if self._is_dev_mode() else LogLevel.INFO
        self._console_output_enabled = False
        self._enabled_categories = set(LogCategory)
        self._lock = threading.RLock()

        # 日志文件延迟创建，首次写入时才建目录
        self._log_file = default_log_dir() / 'traywatch.log'
        self._file_output_enabled = True

    @staticmethod
    def _is_dev_mode() -> bool:
        """检查是否为开发模式"""
        return "--dev" in sys.argv or bool(os.getenv("TRAYWATCH_DEV"))

    def set_config_service(self, config_service) -> None:
        """设置配置服务并从配置中加载日志设置

        Args:
            config_service: 配置服务实例
        """
        self._config_service = config_service
        self._load_settings_from_config()

    def _load_settings_from_config(self) -> None:
        """从配置中加载日志设置"""
        if not self._config_service:
            return

        try:
            level_str = self._config_service.get_setting("logging.level", "INFO")
            self._min_level = self._string_to_log_level(level_str)

            self._console_output_enabled = self._config_service.get_setting("logging.console_output", False)

            enabled_categories_str = self._config_service.get_setting("logging.enabled_categories", [])
            if enabled_categories_str:
                self._enabled_categories = set(
                    LogCategory(cat) for cat in enabled_categories_str
                )
            else:
                self._enabled_categories = set(LogCategory)

        except (ValueError, TypeError, AttributeError) as e:
            print(f"[LOG WARNING] Failed to load logger settings from config: {e}", file=sys.stderr)

    def _string_to_log_level(self, level_str: str) -> LogLevel:
        """将字符串转换为 LogLevel 枚举"""
        try:
            return LogLevel[str(level_str).upper()]
        except KeyError:
            return LogLevel.INFO

    def set_log_level(self, level: 'Union[str, LogLevel]') -> None:
        """动态修改日志级别

        Args:
            level: 日志级别，可以是字符串或 LogLevel 枚举
        """
        with self._lock:
            if isinstance(level, str):
                self._min_level = self._string_to_log_level(level)
            else:
                self._min_level = level

    def set_console_output(self, enabled: bool) -> None:
        """动态修改控制台输出设置"""
        with self._lock:
            self._console_output_enabled = enabled

    def set_log_file(self, path: Optional[Path]) -> None:
        """修改日志文件位置；None 表示关闭文件输出"""
        with self._lock:
            if path is None:
                self._file_output_enabled = False
            else:
                self._file_output_enabled = True
                self._log_file = Path(path)

    def get_log_level(self) -> LogLevel:
        """获取当前日志级别"""
        return self._min_level

    def _should_log(self, level: LogLevel) -> bool:
        return level.value >= self._min_level.value

    def _format_console_message(self, level: LogLevel, category: LogCategory,
                                message: str, context: Dict[str, Any] = None) -> str:
        """格式化控制台消息"""
        timestamp = time.strftime('%H:%M:%S')

        colors = {
            LogLevel.DEBUG: '\033[36m',
            LogLevel.INFO: '\033[32m',
            LogLevel.WARNING: '\033[33m',
            LogLevel.ERROR: '\033[31m',
            LogLevel.CRITICAL: '\033[35m'
        }
        reset = '\033[0m'
        color = colors.get(level, '')

        parts = [f"[{timestamp}] {color}{level.name}{reset} | {category.value} | {message}"]

        if context and level.value >= LogLevel.WARNING.value:
            parts.append(f"\n  {self._format_context_readable(context)}")

        return "".join(parts)

    def _format_context_readable(self, context: Dict[str, Any]) -> str:
        parts = []
        for key, value in context.items():
            if isinstance(value, dict):
                parts.append(f"{key}: {json.dumps(value, ensure_ascii=False, default=str)}")
            elif isinstance(value, (list, tuple)):
                parts.append(f"{key}: {', '.join(str(v) for v in value)}")
            else:
                parts.append(f"{key}: {value}")
        return " | ".join(parts)

    @staticmethod
    def _safe_json_serialize(obj):
        """安全的 JSON 序列化，处理枚举和其他特殊类型"""
        if hasattr(obj, 'value') and hasattr(obj, 'name'):
            return f"{type(obj).__name__}.{obj.name}"
        if hasattr(obj, '__name__'):
            return obj.__name__
        return str(obj)

    def _format_file_message(self, level: LogLevel, category: LogCategory,
                             message: str, context: Dict[str, Any] = None,
                             component: str = None) -> str:
        """格式化文件日志消息（详细JSON格式）"""
        timestamp = time.strftime('%Y-%m-%d %H:%M:%S')

        parts = [timestamp, level.name.ljust(8), category.value.ljust(12)]
        if component:
            parts.append(f"[{component}]")
        parts.append(message)

        if context:
            context_json = json.dumps(context, ensure_ascii=False,
                                      separators=(',', ':'),
                                      default=self._safe_json_serialize)
            parts.append(f"| {context_json}")

        return " | ".join(parts)

    def _write_log(self, level: LogLevel, category: LogCategory, message: str,
                   context: Dict[str, Any] = None, component: str = None) -> None:
        """写入日志（控制台 + 文件）"""
        # PERFORMANCE 类别绕过级别检查
        if category != LogCategory.PERFORMANCE:
            if not self._should_log(level):
                return

        if category not in self._enabled_categories:
            return

        with self._lock:
            if self._console_output_enabled and self._should_output_to_console(level):
                console_msg = self._format_console_message(level, category, message, context)
                output_stream = sys.stderr if level.value >= LogLevel.ERROR.value else sys.stdout
                print(console_msg, file=output_stream, flush=True)

            if not self._file_output_enabled:
                return

            try:
                file_msg = self._format_file_message(level, category, message, context, component)
                self._log_file.parent.mkdir(parents=True, exist_ok=True)
                with open(self._log_file, 'a', encoding='utf-8') as f:
                    f.write(file_msg + '\n')
            except OSError as e:
                print(f"[LOG ERROR] Failed to write to log file: {e}", file=sys.stderr)

    def _should_output_to_console(self, level: LogLevel) -> bool:
        """WARNING以上总是输出；开发模式下输出全部"""
        if level.value >= LogLevel.WARNING.value:
            return True
        return self._is_dev_mode() or self._min_level == LogLevel.DEBUG

    # ============ 公开API ============

    def debug(self, message: str, category: LogCategory = LogCategory.STARTUP,
              context: Dict[str, Any] = None, component: str = None) -> None:
        self._write_log(LogLevel.DEBUG, category, message, context, component)

    def info(self, message: str, category: LogCategory = LogCategory.STARTUP,
             context: Dict[str, Any] = None, component: str = None) -> None:
        self._write_log(LogLevel.INFO, category, message, context, component)

    def warning(self, message: str, category: LogCategory = LogCategory.ERROR,
                context: Dict[str, Any] = None, component: str = None) -> None:
        self._write_log(LogLevel.WARNING, category, message, context, component)

    def error(self, message: str, exception: Exception = None,
              category: LogCategory = LogCategory.ERROR,
              context: Dict[str, Any] = None, component: str = None) -> None:
        ctx = context or {}
        if exception:
            ctx['exception'] = str(exception)
            ctx['exception_type'] = type(exception).__name__
        self._write_log(LogLevel.ERROR, category, message, ctx, component)

    def critical(self, message: str, exception: Exception = None,
                 category: LogCategory = LogCategory.ERROR,
                 context: Dict[str, Any] = None, component: str = None) -> None:
        ctx = context or {}
        if exception:
            ctx['exception'] = str(exception)
            ctx['exception_type'] = type(exception).__name__
        self._write_log(LogLevel.CRITICAL, category, message, ctx, component)

    def performance(self, operation: str, duration: float,
                    details: Dict[str, Any] = None) -> None:
        """记录性能指标（自动格式化）"""
        ctx = details or {}
        ctx['duration'] = f"{duration:.3f}s"
        self.info(f"Performance: {operation} - {duration:.3f}s",
                  LogCategory.PERFORMANCE, ctx, "performance")


# ============ 全局单例和便捷接口 ============

logger = UnifiedLogger()
unified_logger = logger


class TrayLoggerAdapter:
    """按组件划分的便捷接口，供引擎各服务使用"""

    def __init__(self, logger_instance: UnifiedLogger):
        self._logger = logger_instance

    def debug(self, message: str, category: LogCategory = LogCategory.STARTUP,
              context: Dict[str, Any] = None, component: str = None) -> None:
        self._logger.debug(message, category, context, component)

    def info(self, message: str, category: LogCategory = LogCategory.STARTUP,
             context: Dict[str, Any] = None, component: str = None) -> None:
        self._logger.info(message, category, context, component)

    def warning(self, message: str, category: LogCategory = LogCategory.ERROR,
                context: Dict[str, Any] = None, component: str = None) -> None:
        self._logger.warning(message, category, context, component)

    def log_bus_event(self, event: str, details: Dict[str, Any] = None) -> None:
        self._logger.debug(f"Bus: {event}", LogCategory.BUS, details, "bus")

    def log_watcher_event(self, event: str, details: Dict[str, Any] = None) -> None:
        self._logger.info(f"Watcher: {event}", LogCategory.WATCHER, details, "watcher")

    def log_registry_event(self, event: str, details: Dict[str, Any] = None) -> None:
        self._logger.info(f"Registry: {event}", LogCategory.REGISTRY, details, "registry")

    def log_resolution(self, address: str, duration: float, success: bool,
                       error: str = None) -> None:
        context = {'address': address, 'success': success}
        if error:
            context['error'] = error
            self._logger.warning(f"Resolution failed: {address}", LogCategory.RESOLVER,
                                 context, "resolver")
        self._logger.performance("resolve_item", duration, context)

    def log_command(self, command: str, details: Dict[str, Any] = None,
                    level: str = "INFO") -> None:
        level = level.upper()
        if level in ("ERROR", "CRITICAL"):
            log_func = getattr(self._logger, level.lower())
            log_func(f"Command: {command}", category=LogCategory.COMMAND,
                     context=details, component="command")
            return
        log_func = getattr(self._logger, level.lower(), self._logger.info)
        log_func(f"Command: {command}", LogCategory.COMMAND, details, "command")

    def log_error(self, error: Exception, context: str) -> None:
        tb_lines = traceback.format_exception(type(error), error, error.__traceback__)
        self._logger.error(
            f"Error in {context}",
            error,
            LogCategory.ERROR,
            context={'traceback': ''.join(tb_lines), 'error_details': str(error)},
            component=context
        )

    def log_startup(self) -> None:
        self._logger.info("traywatch starting up", LogCategory.STARTUP, component="startup")

    def log_shutdown(self) -> None:
        self._logger.info("traywatch shutting down", LogCategory.STARTUP, component="shutdown")


app_logger_compat = TrayLoggerAdapter(logger)


__all__ = [
    'logger',
    'unified_logger',
    'app_logger_compat',
    'LogLevel',
    'LogCategory',
    'UnifiedLogger',
    'TrayLoggerAdapter',
    'default_log_dir',
]
