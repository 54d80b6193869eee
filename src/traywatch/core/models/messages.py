"""引擎对外的消息与命令

消息（引擎 → 前端）:
    Update(address, item, menu)   条目完成一次解析
    Remove(address)               条目已消失

命令（前端 → 引擎）:
    MenuItemClicked               点击菜单项
    ItemActivated                 点击图标本身（Activate / SecondaryActivate）
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .address import NotifierAddress
from .menu import TrayMenu
from .notifier_item import NotifierItem


@dataclass(frozen=True)
class Update:
    address: NotifierAddress
    item: NotifierItem
    menu: Optional[TrayMenu] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "update",
            "address": self.address.service_string,
            "item": self.item.to_dict(),
            "menu": self.menu.to_dict() if self.menu else None,
        }


@dataclass(frozen=True)
class Remove:
    address: NotifierAddress

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "remove", "address": self.address.service_string}


NotifierItemMessage = Union[Update, Remove]


@dataclass(frozen=True)
class MenuItemClicked:
    """请求激活某个菜单项

    notifier_address 是条目所在的总线名字（Update.address.destination），
    menu_path 是条目的菜单对象路径（NotifierItem.menu_path）。
    """

    submenu_id: int
    menu_path: str
    notifier_address: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "menu_item_clicked",
            "submenu_id": self.submenu_id,
            "menu_path": self.menu_path,
            "notifier_address": self.notifier_address,
        }


@dataclass(frozen=True)
class ItemActivated:
    """请求激活条目本身；secondary 为 True 时调用 SecondaryActivate

    item_path 为 None 时按 notifier_address 找到的唯一条目处理。
    """

    notifier_address: str
    x: int = 0
    y: int = 0
    secondary: bool = False
    item_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "activate",
            "notifier_address": self.notifier_address,
            "x": self.x,
            "y": self.y,
            "secondary": self.secondary,
            "item_path": self.item_path,
        }


NotifierItemCommand = Union[MenuItemClicked, ItemActivated]


def command_from_dict(data: Dict[str, Any]) -> NotifierItemCommand:
    """把前端发来的 JSON 对象解析为命令

    Raises:
        ValueError: 类型未知或缺少字段
    """
    if not isinstance(data, dict):
        raise ValueError(f"Command must be an object, got {type(data).__name__}")

    kind = data.get("type")
    try:
        if kind == "menu_item_clicked":
            return MenuItemClicked(
                submenu_id=int(data["submenu_id"]),
                menu_path=str(data["menu_path"]),
                notifier_address=str(data["notifier_address"]),
            )
        if kind == "activate":
            item_path = data.get("item_path")
            return ItemActivated(
                notifier_address=str(data["notifier_address"]),
                x=int(data.get("x", 0)),
                y=int(data.get("y", 0)),
                secondary=bool(data.get("secondary", False)),
                item_path=str(item_path) if item_path else None,
            )
    except KeyError as e:
        raise ValueError(f"Command '{kind}' is missing field {e}") from e
    except (TypeError, ValueError) as e:
        raise ValueError(f"Command '{kind}' has an invalid field: {e}") from e

    raise ValueError(f"Unknown command type: {kind!r}")
