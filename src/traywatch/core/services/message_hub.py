"""对外消息分发 - 每个订阅者一个 asyncio.Queue"""

import asyncio
from typing import Iterable, List, Optional

from loguru import logger

from ..models import NotifierItemMessage

_END = object()


class MessageStream:
    """一个订阅者的消息流

    按发布顺序异步迭代；hub 关闭后迭代结束，
    若 hub 因错误关闭则迭代抛出该错误。
    """

    def __init__(self, hub: "MessageHub", name: str):
        self._hub = hub
        self.name = name
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _put(self, message: NotifierItemMessage) -> None:
        if not self._closed:
            self._queue.put_nowait(message)

    def _finish(self, error: Optional[BaseException] = None) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(error if error is not None else _END)

    def __aiter__(self):
        return self

    async def __anext__(self) -> NotifierItemMessage:
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        """停止接收消息，并从 hub 中注销"""
        self._finish()
        self._hub._unsubscribe(self)


class MessageHub:
    """把注册表发布的消息按顺序扇出给所有订阅者"""

    def __init__(self):
        self._streams: List[MessageStream] = []
        self._closed = False
        self._error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._streams)

    def subscribe(
        self, name: str = "default", initial: Iterable[NotifierItemMessage] = ()
    ) -> MessageStream:
        """创建新的消息流

        Args:
            name: 订阅者名字（日志用）
            initial: 先于后续发布放入流中的消息，用于同步当前状态
        """
        stream = MessageStream(self, name)
        if self._closed:
            stream._finish(self._error)
            return stream

        for message in initial:
            stream._put(message)
        self._streams.append(stream)
        logger.debug(f"MessageHub subscriber added: {name}")
        return stream

    def _unsubscribe(self, stream: MessageStream) -> None:
        if stream in self._streams:
            self._streams.remove(stream)
            logger.debug(f"MessageHub subscriber removed: {stream.name}")

    def publish(self, message: NotifierItemMessage) -> None:
        if self._closed:
            logger.debug(f"Dropping message after hub close: {type(message).__name__}")
            return
        for stream in self._streams:
            stream._put(message)

    def close(self, error: Optional[BaseException] = None) -> None:
        """结束所有消息流；error 不为 None 时各流以该错误结束"""
        if self._closed:
            return
        self._closed = True
        self._error = error
        for stream in self._streams:
            stream._finish(error)
        self._streams.clear()
        logger.debug(f"MessageHub closed (error={type(error).__name__ if error else None})")
