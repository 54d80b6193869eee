"""配置默认值定义 - 单一职责：提供默认配置"""

from typing import Dict, Any

from .app_constants import DBusNames, Protocol


def get_default_config() -> Dict[str, Any]:
    """获取默认配置

    Returns:
        默认配置字典（每次调用返回新对象）
    """
    return {
        "watcher": {
            "bus_name": DBusNames.WATCHER_NAME,
            "object_path": DBusNames.WATCHER_PATH,
            "fallback_to_host": True,  # 名字被占用时以 host 身份接入已有 watcher
        },
        "host": {
            "register": True,
            "unique_id": "traywatch",
        },
        "bus": {
            "type": "session",  # "session" | "system"
            "address": None,  # 覆盖 DBUS_SESSION_BUS_ADDRESS
            "call_timeout": Protocol.DEFAULT_CALL_TIMEOUT,
        },
        "icon": {
            "preference": "pixmap",  # "pixmap" | "name"
            "target_size": None,
            "default_name": Protocol.DEFAULT_ICON_NAME,
        },
        "menu": {
            "max_depth": Protocol.DEFAULT_MENU_MAX_DEPTH,
        },
        "commands": {
            "queue_size": 64,
        },
        "logging": {
            "level": "INFO",
            "console_output": False,
            "enabled_categories": [],
        },
    }
