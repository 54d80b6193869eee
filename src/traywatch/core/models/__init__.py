"""数据模型：地址、条目快照、菜单树、消息与命令"""

from .address import DEFAULT_ITEM_PATH, NotifierAddress
from .menu import (
    Disposition,
    MenuItemType,
    MenuNode,
    ToggleState,
    ToggleType,
    TrayMenu,
)
from .messages import (
    ItemActivated,
    MenuItemClicked,
    NotifierItemCommand,
    NotifierItemMessage,
    Remove,
    Update,
    command_from_dict,
)
from .notifier_item import (
    Category,
    Icon,
    IconPixmap,
    NamedIcon,
    NoIcon,
    NotifierItem,
    PixmapIcon,
    Status,
    ToolTip,
)

__all__ = [
    "DEFAULT_ITEM_PATH",
    "NotifierAddress",
    "Disposition",
    "MenuItemType",
    "MenuNode",
    "ToggleState",
    "ToggleType",
    "TrayMenu",
    "ItemActivated",
    "MenuItemClicked",
    "NotifierItemCommand",
    "NotifierItemMessage",
    "Remove",
    "Update",
    "command_from_dict",
    "Category",
    "Icon",
    "IconPixmap",
    "NamedIcon",
    "NoIcon",
    "NotifierItem",
    "PixmapIcon",
    "Status",
    "ToolTip",
]
