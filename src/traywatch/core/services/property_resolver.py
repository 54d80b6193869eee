"""条目属性解析 - GetAll + 图标回退策略

把 org.kde.StatusNotifierItem 的属性字典转换为 NotifierItem 快照。
单个属性格式错误只会忽略该属性，不影响整个条目。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dbus_fast import Variant

from ...utils import (
    BusCallError,
    BusTimeoutError,
    ResolutionError,
    app_logger,
)
from ...utils.unified_logger import LogCategory
from ..interfaces.bus import IBusTransport
from ..models import (
    Category,
    Icon,
    IconPixmap,
    NamedIcon,
    NoIcon,
    NotifierAddress,
    NotifierItem,
    PixmapIcon,
    Status,
    ToolTip,
)
from .config.app_constants import DBusNames

# 表示"没有菜单"的路径
_NO_MENU_PATHS = ("", "/", "/NO_DBUSMENU")


def unwrap(value: Any) -> Any:
    """递归展开 dbus-fast 的 Variant"""
    if isinstance(value, Variant):
        return unwrap(value.value)
    if isinstance(value, dict):
        return {k: unwrap(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [unwrap(v) for v in value]
    return value


def parse_pixmaps(value: Any) -> Tuple[IconPixmap, ...]:
    """解析 a(iiay)；格式错误的单项被跳过，尺寸与数据不符的也一并丢弃"""
    if not isinstance(value, (list, tuple)):
        return ()

    pixmaps = []
    for entry in value:
        if not isinstance(entry, (list, tuple)) or len(entry) != 3:
            continue
        width, height, data = entry
        if not isinstance(width, int) or not isinstance(height, int):
            continue
        if not isinstance(data, (bytes, bytearray, list)):
            continue
        try:
            pixmap = IconPixmap(width, height, bytes(data))
        except (TypeError, ValueError):
            continue
        if pixmap.is_valid:
            pixmaps.append(pixmap)
    return tuple(pixmaps)


def _string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def parse_tooltip(value: Any) -> Optional[ToolTip]:
    """解析 (sa(iiay)ss)"""
    if not isinstance(value, (list, tuple)) or len(value) != 4:
        return None
    icon_name, _pixmaps, title, description = value
    if not all(isinstance(v, str) for v in (icon_name, title, description)):
        return None
    if not (icon_name or title or description):
        return None
    return ToolTip(icon_name=icon_name, title=title, description=description)


@dataclass(frozen=True)
class IconPolicy:
    """图标回退策略

    Attributes:
        preference: "pixmap" 优先像素图，"name" 优先图标名
        target_size: 目标尺寸；None 时取面积最大的像素图
        default_icon: 都不可用时的兜底图标名；None 表示 NoIcon
    """

    preference: str = "pixmap"
    target_size: Optional[int] = None
    default_icon: Optional[str] = None

    def pick_pixmap(self, pixmaps: Sequence[IconPixmap]) -> Optional[IconPixmap]:
        valid = [p for p in pixmaps if p.is_valid]
        if not valid:
            return None
        if self.target_size:
            # 距离相同时取较大的
            return min(
                valid,
                key=lambda p: (abs(max(p.width, p.height) - self.target_size), -p.area),
            )
        return max(valid, key=lambda p: p.area)

    def _choose(
        self,
        name: Optional[str],
        pixmaps: Sequence[IconPixmap],
        theme_path: Optional[str],
    ) -> Optional[Icon]:
        pixmap = self.pick_pixmap(pixmaps)
        named = NamedIcon(name, theme_path) if name else None
        by_pixmap = PixmapIcon(pixmap) if pixmap else None

        if self.preference == "name":
            return named or by_pixmap
        return by_pixmap or named

    def choose(
        self,
        status: Status,
        icon_name: Optional[str],
        pixmaps: Sequence[IconPixmap],
        attention_name: Optional[str] = None,
        attention_pixmaps: Sequence[IconPixmap] = (),
        theme_path: Optional[str] = None,
    ) -> Icon:
        icon = None
        if status == Status.NEEDS_ATTENTION:
            icon = self._choose(attention_name, attention_pixmaps, theme_path)
        if icon is None:
            icon = self._choose(icon_name, pixmaps, theme_path)
        if icon is None:
            icon = NamedIcon(self.default_icon) if self.default_icon else NoIcon()
        return icon


class PropertyResolver:
    """读取条目属性并构建 NotifierItem"""

    def __init__(
        self,
        transport: IBusTransport,
        icon_policy: Optional[IconPolicy] = None,
        call_timeout: Optional[float] = None,
    ):
        self._transport = transport
        self.icon_policy = icon_policy or IconPolicy()
        self._call_timeout = call_timeout

    async def fetch_properties(self, address: NotifierAddress) -> Dict[str, Any]:
        """GetAll 条目属性，依次尝试 kde 与 freedesktop 接口名

        Raises:
            ResolutionError: 调用失败或超时
            BusConnectionError: 连接丢失
        """
        last_error: Optional[BusCallError] = None
        for interface in DBusNames.ITEM_INTERFACES:
            try:
                body = await self._transport.call(
                    address.destination,
                    address.path,
                    DBusNames.PROPERTIES_INTERFACE,
                    "GetAll",
                    "s",
                    [interface],
                    timeout=self._call_timeout,
                )
            except BusTimeoutError as e:
                raise ResolutionError(
                    f"Timed out reading properties of {address}", address=address,
                    original_exception=e,
                ) from e
            except BusCallError as e:
                last_error = e
                app_logger.debug(
                    "GetAll failed, trying next interface",
                    LogCategory.RESOLVER,
                    {"address": str(address), "interface": interface, "error": e.error_name},
                )
                continue

            props = unwrap(body[0]) if body else {}
            if isinstance(props, dict):
                return props
            last_error = BusCallError(
                f"GetAll returned {type(props).__name__}",
                error_name=DBusNames.ERROR_INVALID_ARGS,
            )

        raise ResolutionError(
            f"Failed to read properties of {address}: {last_error.message if last_error else ''}",
            address=address,
            original_exception=last_error,
        )

    async def resolve(self, address: NotifierAddress) -> NotifierItem:
        props = await self.fetch_properties(address)
        return self.build_item(address, props)

    def build_item(self, address: NotifierAddress, props: Dict[str, Any]) -> NotifierItem:
        """从已展开的属性字典构建快照"""
        status = Status.parse(props.get("Status"))
        icon_name = _string(props.get("IconName"))
        pixmaps = parse_pixmaps(props.get("IconPixmap"))
        attention_name = _string(props.get("AttentionIconName"))
        attention_pixmaps = parse_pixmaps(props.get("AttentionIconPixmap"))
        theme_path = _string(props.get("IconThemePath"))

        menu_path = _string(props.get("Menu"))
        if menu_path in _NO_MENU_PATHS:
            menu_path = None

        item_is_menu = props.get("ItemIsMenu")
        item_id = props.get("Id")

        return NotifierItem(
            address=address,
            id=item_id if isinstance(item_id, str) else "",
            title=_string(props.get("Title")),
            status=status,
            category=Category.parse(props.get("Category")),
            icon=self.icon_policy.choose(
                status, icon_name, pixmaps, attention_name, attention_pixmaps, theme_path
            ),
            icon_name=icon_name,
            icon_pixmaps=pixmaps,
            attention_icon_name=attention_name,
            attention_pixmaps=attention_pixmaps,
            icon_theme_path=theme_path,
            tooltip=parse_tooltip(props.get("ToolTip")),
            menu_path=menu_path,
            item_is_menu=item_is_menu if isinstance(item_is_menu, bool) else False,
        )


__all__ = [
    "IconPolicy",
    "PropertyResolver",
    "parse_pixmaps",
    "parse_tooltip",
    "unwrap",
]
