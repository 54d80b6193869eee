"""配置服务模块 - 读取 / 写入 / 验证分离的模块化结构"""

from .app_constants import AppInfo, DBusNames, Paths, Protocol
from .config_defaults import get_default_config
from .config_keys import ConfigKeys
from .config_reader import ConfigReader
from .config_service import ConfigService
from .config_validator import ConfigValidator
from .config_writer import ConfigWriter
from .engine_settings import EngineSettings

__all__ = [
    "AppInfo",
    "DBusNames",
    "Paths",
    "Protocol",
    "get_default_config",
    "ConfigReader",
    "ConfigWriter",
    "ConfigValidator",
    "ConfigService",
    "ConfigKeys",
    "EngineSettings",
]
