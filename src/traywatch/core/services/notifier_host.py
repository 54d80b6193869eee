"""StatusNotifierHost - 一个拥有独立消息流的消费者"""

from typing import Awaitable, Callable, Optional

from ...utils import BusCallError, BusConnectionError, app_logger
from ...utils.unified_logger import LogCategory
from ..interfaces.bus import IBusTransport
from ..models import NotifierItemMessage
from .message_hub import MessageStream


class NotifierHost:
    """通过 TrayEngine.create_notifier_host() 创建

    持有总线名字 org.freedesktop.StatusNotifierHost-<pid>-<id>，
    消息流在创建时先收到注册表中所有条目的当前状态。
    """

    def __init__(
        self,
        name: str,
        unique_id: str,
        stream: MessageStream,
        transport: IBusTransport,
        on_destroy: Optional[Callable[["NotifierHost"], Awaitable[None]]] = None,
        owns_stream: bool = True,
    ):
        self.name = name
        self.unique_id = unique_id
        self._stream = stream
        self._transport = transport
        self._on_destroy = on_destroy
        self._owns_stream = owns_stream
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def __aiter__(self):
        return self

    async def __anext__(self) -> NotifierItemMessage:
        return await self._stream.__anext__()

    async def recv(self) -> NotifierItemMessage:
        """等待下一条消息

        Raises:
            StopAsyncIteration: host 已销毁或引擎已停止
            BusConnectionError: 连接丢失
        """
        return await self._stream.__anext__()

    async def destroy(self) -> None:
        """结束消息流并释放 host 名字

        与引擎共用的消息流（默认 host）不会被关闭。
        """
        if self._destroyed:
            return
        self._destroyed = True
        if self._owns_stream:
            self._stream.close()

        if self._on_destroy is not None:
            await self._on_destroy(self)

        try:
            await self._transport.release_name(self.name)
        except (BusCallError, BusConnectionError) as e:
            app_logger.warning(
                "Failed to release host name", LogCategory.WATCHER,
                {"host": self.name, "error": str(e)},
            )
        app_logger.log_watcher_event("host destroyed", {"host": self.name})

    def __repr__(self) -> str:
        return f"NotifierHost(name={self.name!r})"
