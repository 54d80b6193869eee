"""引擎运行参数 - 从配置字典构建的类型化设置"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .app_constants import DBusNames, Protocol
from .config_defaults import get_default_config


@dataclass
class EngineSettings:
    """TrayEngine 及其服务使用的设置"""

    watcher_name: str = DBusNames.WATCHER_NAME
    watcher_path: str = DBusNames.WATCHER_PATH
    fallback_to_host: bool = True
    register_host: bool = True
    host_id: str = "traywatch"
    bus_type: str = "session"
    bus_address: Optional[str] = None
    call_timeout: float = Protocol.DEFAULT_CALL_TIMEOUT
    menu_max_depth: int = Protocol.DEFAULT_MENU_MAX_DEPTH
    icon_preference: str = "pixmap"
    icon_target_size: Optional[int] = None
    default_icon: Optional[str] = Protocol.DEFAULT_ICON_NAME
    command_queue_size: int = 64

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "EngineSettings":
        """从嵌套配置字典构建设置；缺失的分组使用默认值

        Args:
            config: ConfigService.get_all_settings() 的结果，None 表示全部默认
        """
        defaults = get_default_config()
        config = config or {}

        def section(name: str) -> Dict[str, Any]:
            merged = dict(defaults.get(name, {}))
            merged.update(config.get(name) or {})
            return merged

        watcher = section("watcher")
        host = section("host")
        bus = section("bus")
        icon = section("icon")
        menu = section("menu")
        commands = section("commands")

        return cls(
            watcher_name=watcher["bus_name"],
            watcher_path=watcher["object_path"],
            fallback_to_host=bool(watcher["fallback_to_host"]),
            register_host=bool(host["register"]),
            host_id=str(host["unique_id"]),
            bus_type=bus["type"],
            bus_address=bus["address"],
            call_timeout=float(bus["call_timeout"]),
            menu_max_depth=int(menu["max_depth"]),
            icon_preference=icon["preference"],
            icon_target_size=icon["target_size"],
            default_icon=icon["default_name"],
            command_queue_size=int(commands["queue_size"]),
        )
