"""com.canonical.dbusmenu 菜单树模型"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple


class MenuItemType(Enum):
    NORMAL = "normal"
    SEPARATOR = "separator"
    SUBMENU = "submenu"


class ToggleType(Enum):
    CHECKMARK = "checkmark"
    RADIO = "radio"
    NONE = "none"


class ToggleState(Enum):
    ON = "on"
    OFF = "off"
    INDETERMINATE = "indeterminate"


class Disposition(Enum):
    NORMAL = "normal"
    INFORMATIVE = "informative"
    WARNING = "warning"
    ALERT = "alert"


@dataclass(frozen=True)
class MenuNode:
    """菜单中的一项

    id 只在所属条目的菜单内唯一；children 按服务端给出的顺序排列。
    """

    id: int
    label: str = ""
    enabled: bool = True
    visible: bool = True
    item_type: MenuItemType = MenuItemType.NORMAL
    icon_name: Optional[str] = None
    toggle_type: ToggleType = ToggleType.NONE
    toggle_state: ToggleState = ToggleState.INDETERMINATE
    disposition: Disposition = Disposition.NORMAL
    children: Tuple["MenuNode", ...] = ()

    def walk(self) -> Iterator["MenuNode"]:
        """深度优先遍历本节点及其所有子孙"""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "enabled": self.enabled,
            "visible": self.visible,
            "type": self.item_type.value,
            "icon_name": self.icon_name,
            "toggle_type": self.toggle_type.value,
            "toggle_state": self.toggle_state.value,
            "disposition": self.disposition.value,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class TrayMenu:
    """一个条目的完整菜单，每次解析整体重建"""

    revision: int = 0
    root_id: int = 0
    children: Tuple[MenuNode, ...] = ()

    def walk(self) -> Iterator[MenuNode]:
        for child in self.children:
            yield from child.walk()

    def find(self, node_id: int) -> Optional[MenuNode]:
        for node in self.walk():
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "revision": self.revision,
            "root_id": self.root_id,
            "children": [child.to_dict() for child in self.children],
        }
