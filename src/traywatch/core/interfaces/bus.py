"""总线传输接口定义

引擎所有组件只依赖这个接口，不直接接触 dbus-fast。
测试中用内存实现替换（tests/mocks/bus_mock.py）。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence


@dataclass(frozen=True)
class BusSignal:
    """收到的一个信号"""

    sender: str
    path: str
    interface: str
    member: str
    body: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class NameOwnerChange:
    """org.freedesktop.DBus.NameOwnerChanged 的参数

    new_owner 为空字符串表示名字已丢失。
    """

    name: str
    old_owner: str
    new_owner: str

    @property
    def is_lost(self) -> bool:
        return bool(self.old_owner) and not self.new_owner


@dataclass(frozen=True)
class MethodCall:
    """远端对本进程导出对象的一次方法调用"""

    sender: str
    path: str
    interface: str
    member: str
    signature: str = ""
    body: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class MethodReply:
    """方法调用的返回值"""

    signature: str = ""
    body: List[Any] = field(default_factory=list)


# 导出对象的处理函数：同步返回 MethodReply，出错时抛出 BusMethodError
MethodHandler = Callable[[MethodCall], MethodReply]


class ISignalSubscription(ABC):
    """信号订阅：异步迭代收到的信号，close() 后迭代结束"""

    @abstractmethod
    def __aiter__(self):
        pass

    @abstractmethod
    async def __anext__(self):
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class IBusTransport(ABC):
    """总线传输接口

    所有操作都可能抛出 BusError（单次调用失败，调用方按单个条目处理），
    或 BusConnectionError（连接本身丢失，对整个引擎是致命的）。
    """

    @property
    @abstractmethod
    def unique_name(self) -> str:
        """本连接在总线上的唯一名字（例如 ":1.42"）"""
        pass

    @property
    @abstractmethod
    def connected(self) -> bool:
        pass

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def call(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Optional[Sequence[Any]] = None,
        timeout: Optional[float] = None,
    ) -> List[Any]:
        """调用远端方法并返回回复的 body

        Raises:
            BusCallError: 远端返回错误
            BusTimeoutError: 超时
            BusConnectionError: 连接已断开
        """
        pass

    @abstractmethod
    async def subscribe_signal(
        self,
        interface: str,
        member: Optional[str] = None,
        path: Optional[str] = None,
        sender: Optional[str] = None,
    ) -> ISignalSubscription:
        """订阅信号，返回 BusSignal 的异步迭代器"""
        pass

    @abstractmethod
    async def watch_name_owner(self, name: Optional[str] = None) -> ISignalSubscription:
        """订阅名字归属变化，返回 NameOwnerChange 的异步迭代器"""
        pass

    @abstractmethod
    async def request_name(self, name: str) -> bool:
        """申请总线名字；成为主拥有者时返回 True"""
        pass

    @abstractmethod
    async def release_name(self, name: str) -> None:
        pass

    @abstractmethod
    def export_object(self, path: str, handler: MethodHandler) -> None:
        """在 path 上导出对象，方法调用交给 handler 处理"""
        pass

    @abstractmethod
    def unexport_object(self, path: str) -> None:
        pass

    @abstractmethod
    async def emit_signal(
        self,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Optional[Sequence[Any]] = None,
    ) -> None:
        pass

    @abstractmethod
    async def wait_for_disconnect(self) -> None:
        """连接正常关闭时返回；异常断开时抛出 BusConnectionError"""
        pass


__all__ = [
    "BusSignal",
    "NameOwnerChange",
    "MethodCall",
    "MethodReply",
    "MethodHandler",
    "ISignalSubscription",
    "IBusTransport",
]
