"""核心接口定义模块

所有服务和组件都依赖接口而不是具体实现。
"""

from .bus import (
    BusSignal,
    IBusTransport,
    ISignalSubscription,
    MethodCall,
    MethodHandler,
    MethodReply,
    NameOwnerChange,
)
from .config import IConfigService

__all__ = [
    "BusSignal",
    "IBusTransport",
    "ISignalSubscription",
    "MethodCall",
    "MethodHandler",
    "MethodReply",
    "NameOwnerChange",
    "IConfigService",
]
