"""核心服务模块

- bus_transport: dbus-fast 总线传输
- item_registry: 托盘条目注册表
- property_resolver / menu_resolver: 条目属性与菜单解析
- watcher_service: StatusNotifierWatcher
- message_hub / command_dispatcher: 对外消息流与命令通道
- notifier_host: StatusNotifierHost
"""

from .bus_transport import DbusFastTransport, SignalSubscription
from .command_dispatcher import CommandChannel, CommandDispatcher
from .config import ConfigService, EngineSettings
from .item_registry import EntryState, ItemRegistry
from .menu_resolver import MenuLayoutParser, MenuResolver
from .message_hub import MessageHub, MessageStream
from .notifier_host import NotifierHost
from .property_resolver import IconPolicy, PropertyResolver
from .watcher_service import WatcherMode, WatcherService

__all__ = [
    "DbusFastTransport",
    "SignalSubscription",
    "CommandChannel",
    "CommandDispatcher",
    "ConfigService",
    "EngineSettings",
    "EntryState",
    "ItemRegistry",
    "MenuLayoutParser",
    "MenuResolver",
    "MessageHub",
    "MessageStream",
    "NotifierHost",
    "IconPolicy",
    "PropertyResolver",
    "WatcherMode",
    "WatcherService",
]
