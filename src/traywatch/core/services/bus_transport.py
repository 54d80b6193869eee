"""dbus-fast 总线传输实现

一个 MessageBus 连接，一个消息处理函数：
- 信号按匹配条件分发给各个订阅
- 对已导出对象路径的方法调用交给对应的 MethodHandler
- 远端方法调用带单次超时
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence

from dbus_fast import BusType, Message, MessageType, NameFlag, RequestNameReply
from dbus_fast.aio import MessageBus
from loguru import logger

from ...utils import (
    BusCallError,
    BusConnectionError,
    BusMethodError,
    BusTimeoutError,
    wrap_exception,
)
from ..interfaces.bus import (
    BusSignal,
    IBusTransport,
    ISignalSubscription,
    MethodCall,
    MethodHandler,
    NameOwnerChange,
)
from .config.app_constants import DBusNames

_CLOSED = object()

ERROR_FAILED = "org.freedesktop.DBus.Error.Failed"


def _match_rule(**fields: Optional[str]) -> str:
    parts = ["type='signal'"]
    for key, value in fields.items():
        if value:
            parts.append(f"{key}='{value}'")
    return ",".join(parts)


class SignalSubscription(ISignalSubscription):
    """一个信号订阅

    收到的信号放入自己的队列，按到达顺序异步迭代。
    close() 之后迭代结束；连接丢失时迭代抛出 BusConnectionError。
    """

    def __init__(
        self,
        transport: "DbusFastTransport",
        match_rule: str,
        predicate: Callable[[Message], bool],
        convert: Callable[[Message], Any],
    ):
        self._transport = transport
        self.match_rule = match_rule
        self._predicate = predicate
        self._convert = convert
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def matches(self, msg: Message) -> bool:
        return not self._closed and self._predicate(msg)

    def feed(self, msg: Message) -> None:
        self._queue.put_nowait(self._convert(msg))

    def fail(self, error: Exception) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(error)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        await self._transport._drop_subscription(self)


class DbusFastTransport(IBusTransport):
    """IBusTransport 的 dbus-fast 实现"""

    def __init__(
        self,
        bus_type: str = "session",
        bus_address: Optional[str] = None,
        call_timeout: float = 5.0,
    ):
        self._bus_type = BusType.SYSTEM if bus_type == "system" else BusType.SESSION
        self._bus_address = bus_address
        self._call_timeout = call_timeout

        self._bus: Optional[MessageBus] = None
        self._subscriptions: List[SignalSubscription] = []
        self._exported: Dict[str, MethodHandler] = {}
        self._monitor_task: Optional[asyncio.Task] = None
        self._disconnect_error: Optional[BusConnectionError] = None
        self._closing = False

    # ============ 连接 ============

    @property
    def unique_name(self) -> str:
        return self._bus.unique_name if self._bus else ""

    @property
    def connected(self) -> bool:
        return bool(self._bus and self._bus.connected) and self._disconnect_error is None

    async def connect(self) -> None:
        """连接到总线

        Raises:
            BusConnectionError: 无法连接
        """
        if self._bus is not None:
            return

        try:
            bus = MessageBus(bus_address=self._bus_address, bus_type=self._bus_type)
            self._bus = await bus.connect()
        except (OSError, EOFError, ValueError) as e:
            self._bus = None
            raise BusConnectionError(
                f"Failed to connect to the {self._bus_type.name.lower()} bus: {e}",
                original_exception=e,
            ) from e

        self._bus.add_message_handler(self._on_message)
        self._monitor_task = asyncio.ensure_future(self._monitor_disconnect())
        logger.debug(f"Connected to bus as {self._bus.unique_name}")

    async def close(self) -> None:
        if self._bus is None:
            return

        self._closing = True
        for subscription in list(self._subscriptions):
            subscription.fail(BusConnectionError("Bus transport closed"))
        self._subscriptions.clear()
        self._exported.clear()

        self._bus.remove_message_handler(self._on_message)
        self._bus.disconnect()

        if self._monitor_task is not None:
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
        logger.debug("Bus transport closed")

    async def _monitor_disconnect(self) -> None:
        try:
            await self._bus.wait_for_disconnect()
            if self._closing:
                return
            error = BusConnectionError("Bus connection closed by peer")
        except Exception as e:  # dbus-fast 以原始异常结束连接
            error = wrap_exception(e, f"Bus connection lost: {e}", BusConnectionError)

        self._disconnect_error = error
        logger.error(f"Bus connection lost: {error.message}")
        for subscription in list(self._subscriptions):
            subscription.fail(error)
        self._subscriptions.clear()

    async def wait_for_disconnect(self) -> None:
        if self._monitor_task is None:
            raise BusConnectionError("Bus transport is not connected")
        await asyncio.shield(self._monitor_task)
        if self._disconnect_error is not None:
            raise self._disconnect_error

    def _require_bus(self) -> MessageBus:
        if self._disconnect_error is not None:
            raise self._disconnect_error
        if self._bus is None or not self._bus.connected:
            raise BusConnectionError("Bus transport is not connected")
        return self._bus

    # ============ 方法调用 ============

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
        bus = self._require_bus()
        timeout = self._call_timeout if timeout is None else timeout
        target = f"{destination}{path} {interface}.{member}"

        try:
            msg = Message(
                destination=destination,
                path=path,
                interface=interface,
                member=member,
                signature=signature,
                body=list(body or []),
            )
            reply = await asyncio.wait_for(bus.call(msg), timeout)
        except asyncio.TimeoutError as e:
            raise BusTimeoutError(f"Call timed out: {target}", timeout=timeout) from e
        except (EOFError, ConnectionError) as e:
            raise wrap_exception(
                e, f"Connection lost during call: {target}", BusConnectionError
            ) from e
        except (TypeError, ValueError) as e:
            raise BusCallError(
                f"Invalid call arguments for {target}: {e}",
                error_name=DBusNames.ERROR_INVALID_ARGS,
                original_exception=e,
            ) from e

        if reply is None:
            return []

        if reply.message_type == MessageType.ERROR:
            text = reply.body[0] if reply.body and isinstance(reply.body[0], str) else ""
            raise BusCallError(
                f"{target} failed: {reply.error_name} {text}".strip(),
                error_name=reply.error_name or "",
            )

        return list(reply.body)

    # ============ 信号 ============

    async def _add_match(self, rule: str) -> None:
        await self.call(
            DBusNames.BUS_NAME,
            DBusNames.BUS_PATH,
            DBusNames.BUS_INTERFACE,
            "AddMatch",
            "s",
            [rule],
        )

    async def _drop_subscription(self, subscription: SignalSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        if not self.connected:
            return
        try:
            await self.call(
                DBusNames.BUS_NAME,
                DBusNames.BUS_PATH,
                DBusNames.BUS_INTERFACE,
                "RemoveMatch",
                "s",
                [subscription.match_rule],
            )
        except BusCallError as e:
            logger.debug(f"RemoveMatch failed for {subscription.match_rule}: {e.message}")

    async def subscribe_signal(
        self,
        interface: str,
        member: Optional[str] = None,
        path: Optional[str] = None,
        sender: Optional[str] = None,
    ) -> ISignalSubscription:
        rule = _match_rule(sender=sender, interface=interface, member=member, path=path)

        def predicate(msg: Message) -> bool:
            return (
                msg.interface == interface
                and (member is None or msg.member == member)
                and (path is None or msg.path == path)
                and (sender is None or msg.sender == sender)
            )

        def convert(msg: Message) -> BusSignal:
            return BusSignal(
                sender=msg.sender or "",
                path=msg.path or "",
                interface=msg.interface or "",
                member=msg.member or "",
                body=list(msg.body),
            )

        return await self._subscribe(rule, predicate, convert)

    async def watch_name_owner(self, name: Optional[str] = None) -> ISignalSubscription:
        rule = _match_rule(
            sender=DBusNames.BUS_NAME,
            interface=DBusNames.BUS_INTERFACE,
            member="NameOwnerChanged",
            arg0=name,
        )

        def predicate(msg: Message) -> bool:
            return (
                msg.interface == DBusNames.BUS_INTERFACE
                and msg.member == "NameOwnerChanged"
                and len(msg.body) == 3
                and (name is None or msg.body[0] == name)
            )

        def convert(msg: Message) -> NameOwnerChange:
            return NameOwnerChange(*msg.body)

        return await self._subscribe(rule, predicate, convert)

    async def _subscribe(self, rule, predicate, convert) -> SignalSubscription:
        self._require_bus()
        subscription = SignalSubscription(self, rule, predicate, convert)
        # 先登记再 AddMatch，避免漏掉 AddMatch 返回前到达的信号
        self._subscriptions.append(subscription)
        try:
            await self._add_match(rule)
        except BusCallError:
            self._subscriptions.remove(subscription)
            raise
        logger.debug(f"Subscribed: {rule}")
        return subscription

    async def emit_signal(
        self,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Optional[Sequence[Any]] = None,
    ) -> None:
        bus = self._require_bus()
        msg = Message.new_signal(path, interface, member, signature, list(body or []))
        await bus.send(msg)

    # ============ 名字与导出对象 ============

    async def request_name(self, name: str) -> bool:
        bus = self._require_bus()
        reply = await bus.request_name(name, NameFlag.DO_NOT_QUEUE)
        owned = reply in (RequestNameReply.PRIMARY_OWNER, RequestNameReply.ALREADY_OWNER)
        logger.debug(f"RequestName {name}: {reply.name}")
        return owned

    async def release_name(self, name: str) -> None:
        if not self.connected:
            return
        await self._bus.release_name(name)

    def export_object(self, path: str, handler: MethodHandler) -> None:
        self._exported[path] = handler

    def unexport_object(self, path: str) -> None:
        self._exported.pop(path, None)

    # ============ 消息分发 ============

    def _on_message(self, msg: Message):
        if msg.message_type == MessageType.SIGNAL:
            for subscription in list(self._subscriptions):
                if subscription.matches(msg):
                    subscription.feed(msg)
            return None

        if msg.message_type != MessageType.METHOD_CALL:
            return None

        handler = self._exported.get(msg.path)
        if handler is None:
            return None

        call = MethodCall(
            sender=msg.sender or "",
            path=msg.path,
            interface=msg.interface or "",
            member=msg.member or "",
            signature=msg.signature or "",
            body=list(msg.body),
        )
        try:
            reply = handler(call)
        except BusMethodError as e:
            return Message.new_error(msg, e.error_name, e.message)
        except Exception as e:
            logger.exception(f"Handler for {msg.path} {call.interface}.{call.member} failed")
            return Message.new_error(msg, ERROR_FAILED, str(e))

        return Message.new_method_return(msg, reply.signature, list(reply.body))
