"""托盘条目地址 - (总线名字, 对象路径)"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ...utils import NotifierAddressError

DEFAULT_ITEM_PATH = "/StatusNotifierItem"


@dataclass(frozen=True)
class NotifierAddress:
    """一个 StatusNotifierItem 在总线上的稳定标识

    destination 是条目所在连接的名字（通常是唯一名字 ":1.52"），
    path 是条目对象路径。两者一起作为注册表的键。
    """

    destination: str
    path: str = DEFAULT_ITEM_PATH

    @classmethod
    def from_notifier_service(
        cls, service: str, sender: Optional[str] = None
    ) -> "NotifierAddress":
        """把 RegisterStatusNotifierItem 的参数规范化为地址

        接受三种形式:
            "/org/ayatana/NotificationItem/foo"  只有路径，名字取调用者 sender
            ":1.52" / "org.foo.Name"             只有名字，路径为 /StatusNotifierItem
            ":1.52/org/foo"                      名字 + 路径，在第一个 "/" 处切开

        众所周知的名字（不以 ":" 开头）在 sender 已知时替换为 sender 的唯一名字，
        这样名字丢失时能按唯一名字移除条目。

        Raises:
            NotifierAddressError: 参数为空，或只有路径却没有 sender
        """
        if not isinstance(service, str) or not service.strip():
            raise NotifierAddressError("Empty notifier service", service=str(service))

        service = service.strip()

        if service.startswith("/"):
            if not sender:
                raise NotifierAddressError(
                    "Object path registration requires a known sender", service=service
                )
            return cls(sender, service)

        name, sep, rest = service.partition("/")
        path = "/" + rest if sep else DEFAULT_ITEM_PATH
        if path != "/":
            path = path.rstrip("/")

        if not name.startswith(":") and sender:
            name = sender

        return cls(name, path)

    @classmethod
    def parse(cls, value: str) -> "NotifierAddress":
        """解析 service_string 形式的地址（"destination/path"）"""
        return cls.from_notifier_service(value)

    @property
    def service_string(self) -> str:
        """总线上使用的形式：destination + path"""
        return f"{self.destination}{self.path}"

    def to_dict(self) -> Dict[str, Any]:
        return {"destination": self.destination, "path": self.path}

    def __str__(self) -> str:
        return self.service_string
