"""托盘条目的不可变快照"""

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from .address import NotifierAddress


class Status(Enum):
    """条目状态"""

    ACTIVE = "Active"
    PASSIVE = "Passive"
    NEEDS_ATTENTION = "NeedsAttention"

    @classmethod
    def parse(cls, value: Any) -> "Status":
        """未知值按 Active 处理"""
        for member in cls:
            if member.value == value:
                return member
        return cls.ACTIVE


class Category(Enum):
    """条目类别"""

    APPLICATION_STATUS = "ApplicationStatus"
    COMMUNICATIONS = "Communications"
    SYSTEM_SERVICES = "SystemServices"
    HARDWARE = "Hardware"

    @classmethod
    def parse(cls, value: Any) -> "Category":
        """未知值按 ApplicationStatus 处理"""
        for member in cls:
            if member.value == value:
                return member
        return cls.APPLICATION_STATUS


@dataclass(frozen=True)
class IconPixmap:
    """一张原始图标像素图：网络字节序 ARGB32"""

    width: int
    height: int
    data: bytes = b""

    @property
    def is_valid(self) -> bool:
        return (
            self.width > 0
            and self.height > 0
            and len(self.data) == self.width * self.height * 4
        )

    @property
    def area(self) -> int:
        return self.width * self.height

    def to_rgba_array(self) -> np.ndarray:
        """转换为 (height, width, 4) 的 RGBA uint8 数组

        Raises:
            ValueError: 像素图尺寸与数据长度不符
        """
        if not self.is_valid:
            raise ValueError(
                f"Invalid pixmap {self.width}x{self.height} with {len(self.data)} bytes"
            )
        argb = np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)
        return argb[..., [1, 2, 3, 0]].copy()

    def to_rgba(self) -> bytes:
        """转换为 RGBA 字节串，供渲染端直接使用"""
        return self.to_rgba_array().tobytes()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "data": base64.b64encode(self.data).decode("ascii"),
        }


@dataclass(frozen=True)
class NamedIcon:
    """按主题图标名显示"""

    name: str
    theme_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "named", "name": self.name, "theme_path": self.theme_path}


@dataclass(frozen=True)
class PixmapIcon:
    """按像素图显示"""

    pixmap: IconPixmap

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "pixmap", **self.pixmap.to_dict()}


@dataclass(frozen=True)
class NoIcon:
    """没有可用图标"""

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "none"}


Icon = Union[NamedIcon, PixmapIcon, NoIcon]


@dataclass(frozen=True)
class ToolTip:
    icon_name: str = ""
    title: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "icon_name": self.icon_name,
            "title": self.title,
            "description": self.description,
        }


@dataclass(frozen=True)
class NotifierItem:
    """一个托盘条目在某次解析完成时的状态

    icon 是图标回退策略的结果；icon_name / icon_pixmaps 等原始值也一并保留，
    渲染端可以自行选择。
    """

    address: NotifierAddress
    id: str = ""
    title: Optional[str] = None
    status: Status = Status.ACTIVE
    category: Category = Category.APPLICATION_STATUS
    icon: Icon = field(default_factory=NoIcon)
    icon_name: Optional[str] = None
    icon_pixmaps: Tuple[IconPixmap, ...] = ()
    attention_icon_name: Optional[str] = None
    attention_pixmaps: Tuple[IconPixmap, ...] = ()
    icon_theme_path: Optional[str] = None
    tooltip: Optional[ToolTip] = None
    menu_path: Optional[str] = None
    item_is_menu: bool = False

    def to_dict(self, include_pixmaps: bool = False) -> Dict[str, Any]:
        """转换为可 JSON 序列化的字典

        Args:
            include_pixmaps: 是否输出原始像素图列表（体积较大）
        """
        result = {
            "address": self.address.to_dict(),
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "category": self.category.value,
            "icon": self.icon.to_dict(),
            "icon_name": self.icon_name,
            "attention_icon_name": self.attention_icon_name,
            "icon_theme_path": self.icon_theme_path,
            "tooltip": self.tooltip.to_dict() if self.tooltip else None,
            "menu_path": self.menu_path,
            "item_is_menu": self.item_is_menu,
        }
        if include_pixmaps:
            result["icon_pixmaps"] = [p.to_dict() for p in self.icon_pixmaps]
            result["attention_pixmaps"] = [p.to_dict() for p in self.attention_pixmaps]
        return result
