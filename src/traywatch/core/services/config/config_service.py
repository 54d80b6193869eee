"""配置服务 - 门面模式协调读取、写入和验证"""

import copy
from pathlib import Path
from typing import Dict, Any, Optional, TypeVar, Union

from ...base.lifecycle_component import LifecycleComponent
from ...interfaces.config import IConfigService
from ....utils import ConfigurationError, app_logger

from .app_constants import Paths
from .config_reader import ConfigReader
from .config_validator import ConfigValidator
from .config_writer import ConfigWriter

T = TypeVar("T")


class ConfigService(LifecycleComponent, IConfigService):
    """配置服务 - 门面模式

    协调 ConfigReader / ConfigWriter / ConfigValidator 提供统一的配置管理接口。
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """初始化配置服务

        Args:
            config_path: 配置文件路径，None 表示使用 $XDG_CONFIG_HOME/traywatch/config.json
        """
        super().__init__("ConfigService")

        self.config_path = Path(config_path) if config_path else Paths.config_file()

        self._reader = ConfigReader(self.config_path)
        self._writer = ConfigWriter(self.config_path)
        self._validator = ConfigValidator()

    def _do_start(self) -> bool:
        """加载并验证配置

        Raises:
            ConfigurationError: 配置存在无法使用的值
        """
        self.load_config()

        result = self._validator.validate_config(self._reader.get_all_settings())
        if not result["valid"]:
            raise ConfigurationError(
                "Invalid configuration: " + "; ".join(result["issues"]),
                context={"config_path": str(self.config_path)},
            )
        return True

    def _do_stop(self) -> bool:
        return True

    def load_config(self) -> bool:
        """从文件加载配置并同步到写入器"""
        success = self._reader.load_config()
        self._writer.set_config(self._reader.get_all_settings())
        return success

    def get_setting(self, key: str, default: Optional[T] = None) -> T:
        """获取配置项

        Args:
            key: 配置项键名，支持嵌套路径 (例如: "menu.max_depth")
            default: 默认值
        """
        return self._reader.get_setting(key, default)

    def set_setting(self, key: str, value: Any, immediate: bool = False) -> None:
        """设置配置项

        Args:
            key: 配置项键名，支持嵌套路径
            value: 要设置的值
            immediate: 是否立即保存

        Raises:
            ConfigurationError: 保存失败时
        """
        self._writer.set_setting(key, value)
        self._reader._config = copy.deepcopy(self._writer._config)

        app_logger.debug("Setting updated", context={"key": key, "value_type": type(value).__name__})

        if immediate and not self._writer.save_config():
            raise ConfigurationError(
                f"Failed to save configuration after setting '{key}'", config_key=key
            )

    def save_config(self) -> bool:
        """保存配置到文件"""
        return self._writer.save_config()

    def get_all_settings(self) -> Dict[str, Any]:
        return self._reader.get_all_settings()

    def validate(self) -> Dict[str, Any]:
        """验证当前配置"""
        return self._validator.validate_config(self._reader.get_all_settings())
