"""配置写入服务 - 单一职责：配置写入和持久化"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Any

from ....utils import app_logger, ConfigurationError


class ConfigWriter:
    """配置写入器 - 只负责写入配置"""

    def __init__(self, config_path: Path):
        """初始化配置写入器

        Args:
            config_path: 配置文件路径
        """
        self.config_path = config_path
        self._config: Dict[str, Any] = {}

    def set_config(self, config: Dict[str, Any]) -> None:
        """设置完整配置字典"""
        self._config = config

    def set_setting(self, key: str, value: Any) -> None:
        """设置配置项

        Args:
            key: 配置项键名，支持嵌套路径
            value: 要设置的值

        Raises:
            ConfigurationError: 键名为空时
        """
        keys = [k for k in key.split(".") if k]
        if not keys:
            raise ConfigurationError("Empty configuration key", config_key=key)

        config = self._config

        # 导航到正确的嵌套位置，非字典节点被替换为字典
        for i, k in enumerate(keys[:-1]):
            if k not in config:
                config[k] = {}
            elif not isinstance(config[k], dict):
                app_logger.warning(
                    "Config auto-repaired type conflict",
                    context={
                        "path": ".".join(keys[: i + 1]),
                        "old_type": type(config[k]).__name__,
                    },
                )
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def save_config(self) -> bool:
        """原子地保存配置到文件（临时文件 + os.replace）

        Returns:
            是否保存成功
        """
        tmp_name = None
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=str(self.config_path.parent),
                prefix=".config-",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(self._config, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())

            os.replace(tmp_name, self.config_path)
            tmp_name = None

            app_logger.info(
                "Configuration saved",
                context={"config_path": str(self.config_path), "keys_saved": len(self._config)},
            )
            return True

        except (OSError, TypeError, ValueError) as e:
            app_logger.log_error(e, "config_writer_save")
            return False

        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
