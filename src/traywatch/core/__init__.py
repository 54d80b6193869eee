"""核心逻辑模块：数据模型、服务组件和引擎"""

from .models import (
    ItemActivated,
    MenuItemClicked,
    NotifierAddress,
    NotifierItem,
    Remove,
    TrayMenu,
    Update,
    command_from_dict,
)
from .services import ConfigService, EngineSettings, NotifierHost
from .tray_engine import TrayEngine

__all__ = [
    "ItemActivated",
    "MenuItemClicked",
    "NotifierAddress",
    "NotifierItem",
    "Remove",
    "TrayMenu",
    "Update",
    "command_from_dict",
    "ConfigService",
    "EngineSettings",
    "NotifierHost",
    "TrayEngine",
]
