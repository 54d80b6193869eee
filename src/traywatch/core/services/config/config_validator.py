"""配置验证服务 - 单一职责：配置验证"""

from typing import Any, Dict

from ....utils import app_logger
from ....utils.unified_logger import LogCategory, LogLevel
from .config_keys import ConfigKeys


class ConfigValidator:
    """配置验证器 - 只负责验证配置"""

    VALID_BUS_TYPES = ("session", "system")
    VALID_ICON_PREFERENCES = ("pixmap", "name")

    def validate_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """验证配置完整性

        Args:
            config: 要验证的配置字典

        Returns:
            验证结果：{"valid": bool, "issues": [...], "warnings": [...]}
        """
        issues = []
        warnings = []

        bus_name = self._get_nested(config, ConfigKeys.WATCHER_BUS_NAME, "")
        if not isinstance(bus_name, str) or not bus_name:
            issues.append("watcher.bus_name must be a non-empty bus name")

        object_path = self._get_nested(config, ConfigKeys.WATCHER_OBJECT_PATH, "")
        if not isinstance(object_path, str) or not object_path.startswith("/"):
            issues.append("watcher.object_path must be an absolute object path")

        unique_id = self._get_nested(config, ConfigKeys.HOST_UNIQUE_ID, "")
        if not isinstance(unique_id, str) or not unique_id:
            issues.append("host.unique_id must be a non-empty string")

        bus_type = self._get_nested(config, ConfigKeys.BUS_TYPE, "session")
        if bus_type not in self.VALID_BUS_TYPES:
            issues.append(f"Unknown bus type: {bus_type}")

        timeout = self._get_nested(config, ConfigKeys.BUS_CALL_TIMEOUT, 5.0)
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
            issues.append(f"bus.call_timeout must be a positive number, got {timeout!r}")
        elif timeout > 60:
            warnings.append(f"Very long bus call timeout: {timeout}s")

        preference = self._get_nested(config, ConfigKeys.ICON_PREFERENCE, "pixmap")
        if preference not in self.VALID_ICON_PREFERENCES:
            warnings.append(f"Unknown icon preference: {preference}")

        target_size = self._get_nested(config, ConfigKeys.ICON_TARGET_SIZE, None)
        if target_size is not None and (
            not isinstance(target_size, int) or isinstance(target_size, bool) or target_size <= 0
        ):
            issues.append(f"icon.target_size must be a positive integer or null, got {target_size!r}")

        max_depth = self._get_nested(config, ConfigKeys.MENU_MAX_DEPTH, 16)
        if not isinstance(max_depth, int) or isinstance(max_depth, bool) or max_depth < 1:
            issues.append(f"menu.max_depth must be a positive integer, got {max_depth!r}")
        elif max_depth > 64:
            warnings.append(f"Very deep menu ceiling: {max_depth}")

        queue_size = self._get_nested(config, ConfigKeys.COMMANDS_QUEUE_SIZE, 64)
        if not isinstance(queue_size, int) or isinstance(queue_size, bool) or queue_size < 1:
            issues.append(f"commands.queue_size must be a positive integer, got {queue_size!r}")

        level = self._get_nested(config, ConfigKeys.LOGGING_LEVEL, "INFO")
        if str(level).upper() not in LogLevel.__members__:
            warnings.append(f"Unknown log level: {level}")

        categories = self._get_nested(config, ConfigKeys.LOGGING_ENABLED_CATEGORIES, [])
        known_categories = {c.value for c in LogCategory}
        for category in categories or []:
            if category not in known_categories:
                warnings.append(f"Unknown log category: {category}")

        result = {"valid": not issues, "issues": issues, "warnings": warnings}

        if issues or warnings:
            app_logger.warning(
                "Configuration validation found problems",
                context={"issues": issues, "warnings": warnings},
            )

        return result

    def _get_nested(self, config: Dict[str, Any], key: str, default: Any = None) -> Any:
        value = config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value
