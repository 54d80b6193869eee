"""菜单解析 - com.canonical.dbusmenu.GetLayout → TrayMenu

布局格式 (u(ia{sv}av))：修订号 + 根节点 (id, 属性, 子节点列表)。
解析有深度上限，遇到引用祖先的节点直接截断，格式错误的子节点被跳过。
"""

import re
from typing import Any, Dict, List, Optional, Set

from dbus_fast import Variant

from ...utils import BusCallError, app_logger
from ...utils.unified_logger import LogCategory
from ..interfaces.bus import IBusTransport
from ..models import (
    Disposition,
    MenuItemType,
    MenuNode,
    NotifierAddress,
    ToggleState,
    ToggleType,
    TrayMenu,
)
from .config.app_constants import DBusNames, Protocol

_MNEMONIC = re.compile(r"_(_?)")


def strip_mnemonic(label: str) -> str:
    """去掉助记符下划线；"__" 保留为字面的 "_" """
    return _MNEMONIC.sub(r"\1", label)


def _shallow(value: Any) -> Any:
    while isinstance(value, Variant):
        value = value.value
    return value


def _props(raw: Any) -> Optional[Dict[str, Any]]:
    raw = _shallow(raw)
    if not isinstance(raw, dict):
        return None
    return {str(k): _shallow(v) for k, v in raw.items()}


def _toggle_state(value: Any) -> ToggleState:
    if isinstance(value, bool):
        return ToggleState.ON if value else ToggleState.OFF
    if value == 1:
        return ToggleState.ON
    if value == 0:
        return ToggleState.OFF
    return ToggleState.INDETERMINATE


def _enum_value(enum_cls, value: Any, default):
    for member in enum_cls:
        if member.value == value:
            return member
    return default


class MenuLayoutParser:
    """把 GetLayout 的返回值转换为菜单树"""

    def __init__(self, max_depth: int = Protocol.DEFAULT_MENU_MAX_DEPTH):
        self.max_depth = max(1, int(max_depth))

    def parse(self, revision: Any, layout: Any) -> Optional[TrayMenu]:
        layout = _shallow(layout)
        if not isinstance(layout, (list, tuple)) or len(layout) != 3:
            return None
        root_id, _root_props, children = layout
        if not isinstance(root_id, int):
            return None

        return TrayMenu(
            revision=revision if isinstance(revision, int) else 0,
            root_id=root_id,
            children=self._children(children, 1, {root_id}, {id(layout)}),
        )

    def _children(
        self, raw_children: Any, depth: int, ancestor_ids: Set[int], ancestor_objs: Set[int]
    ) -> tuple:
        raw_children = _shallow(raw_children)
        if depth > self.max_depth or not isinstance(raw_children, (list, tuple)):
            return ()

        nodes: List[MenuNode] = []
        for raw in raw_children:
            node = self._node(raw, depth, ancestor_ids, ancestor_objs)
            if node is not None:
                nodes.append(node)
        return tuple(nodes)

    def _node(
        self, raw: Any, depth: int, ancestor_ids: Set[int], ancestor_objs: Set[int]
    ) -> Optional[MenuNode]:
        raw = _shallow(raw)
        if not isinstance(raw, (list, tuple)) or len(raw) != 3:
            return None

        node_id, raw_props, raw_children = raw
        props = _props(raw_props)
        if not isinstance(node_id, int) or isinstance(node_id, bool) or props is None:
            return None
        # 引用祖先的节点会形成环
        if node_id in ancestor_ids or id(raw) in ancestor_objs:
            return None

        children = self._children(
            raw_children, depth + 1, ancestor_ids | {node_id}, ancestor_objs | {id(raw)}
        )

        type_value = props.get("type")
        if type_value == "separator":
            item_type = MenuItemType.SEPARATOR
        elif children or props.get("children-display") == "submenu":
            item_type = MenuItemType.SUBMENU
        else:
            item_type = MenuItemType.NORMAL

        label = props.get("label")
        icon_name = props.get("icon-name")
        enabled = props.get("enabled", True)
        visible = props.get("visible", True)

        return MenuNode(
            id=node_id,
            label=strip_mnemonic(label) if isinstance(label, str) else "",
            enabled=enabled if isinstance(enabled, bool) else True,
            visible=visible if isinstance(visible, bool) else True,
            item_type=item_type,
            icon_name=icon_name if isinstance(icon_name, str) and icon_name else None,
            toggle_type=_enum_value(ToggleType, props.get("toggle-type"), ToggleType.NONE),
            toggle_state=_toggle_state(props.get("toggle-state")),
            disposition=_enum_value(Disposition, props.get("disposition"), Disposition.NORMAL),
            children=children,
        )


class MenuResolver:
    """读取条目菜单"""

    def __init__(
        self,
        transport: IBusTransport,
        max_depth: int = Protocol.DEFAULT_MENU_MAX_DEPTH,
        call_timeout: Optional[float] = None,
    ):
        self._transport = transport
        self._parser = MenuLayoutParser(max_depth)
        self._call_timeout = call_timeout

    @property
    def max_depth(self) -> int:
        return self._parser.max_depth

    async def resolve(self, address: NotifierAddress, menu_path: str) -> Optional[TrayMenu]:
        """获取并解析菜单；获取失败返回 None

        Raises:
            BusConnectionError: 连接丢失
        """
        try:
            body = await self._transport.call(
                address.destination,
                menu_path,
                DBusNames.MENU_INTERFACE,
                "GetLayout",
                "iias",
                [0, self._parser.max_depth, []],
                timeout=self._call_timeout,
            )
        except BusCallError as e:
            app_logger.warning(
                "Menu fetch failed",
                LogCategory.MENU,
                {"address": str(address), "menu_path": menu_path, "error": e.message},
            )
            return None

        if len(body) != 2:
            app_logger.warning(
                "Unexpected GetLayout reply",
                LogCategory.MENU,
                {"address": str(address), "menu_path": menu_path, "fields": len(body)},
            )
            return None

        menu = self._parser.parse(body[0], body[1])
        if menu is None:
            app_logger.warning(
                "Malformed menu layout",
                LogCategory.MENU,
                {"address": str(address), "menu_path": menu_path},
            )
        return menu


__all__ = ["MenuLayoutParser", "MenuResolver", "strip_mnemonic"]
