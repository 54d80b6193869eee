"""traywatch - StatusNotifierWatcher/Host 引擎

发现、跟踪会话总线上的托盘条目（StatusNotifierItem），
输出有序的条目消息流，并把前端的点击命令转发给对应的应用。
"""

__version__ = "0.3.0"
__description__ = "traywatch"

from .core.tray_engine import TrayEngine
from .core.services.config import ConfigService, EngineSettings
from .utils import app_logger

__all__ = ["TrayEngine", "ConfigService", "EngineSettings", "app_logger"]
