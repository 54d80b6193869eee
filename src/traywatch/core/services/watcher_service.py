"""StatusNotifierWatcher 服务

两种工作模式:
- watcher: 拥有 org.kde.StatusNotifierWatcher，应用直接向本进程注册条目
- host:    名字已被其他进程拥有时，读取已有 watcher 的条目列表并跟踪其信号
"""

import asyncio
from typing import Any, Dict, List, Optional, Set, Tuple

from dbus_fast import Variant

from ...utils import (
    BusCallError,
    BusConnectionError,
    BusMethodError,
    NotifierAddressError,
    WatcherUnavailableError,
    app_logger,
)
from ...utils.unified_logger import LogCategory
from ..base.lifecycle_component import AsyncLifecycleComponent
from ..interfaces.bus import IBusTransport, ISignalSubscription, MethodCall, MethodReply
from ..models import NotifierAddress
from .config.app_constants import DBusNames, Protocol
from .item_registry import ItemRegistry

WATCHER_INTROSPECTION = """<!DOCTYPE node PUBLIC "-//freedesktop//DTD D-BUS Object Introspection 1.0//EN"
 "http://www.freedesktop.org/standards/dbus/1.0/introspect.dtd">
<node>
  <interface name="org.kde.StatusNotifierWatcher">
    <method name="RegisterStatusNotifierItem">
      <arg name="service" type="s" direction="in"/>
    </method>
    <method name="UnregisterStatusNotifierItem">
      <arg name="service" type="s" direction="in"/>
    </method>
    <method name="RegisterStatusNotifierHost">
      <arg name="service" type="s" direction="in"/>
    </method>
    <signal name="StatusNotifierItemRegistered">
      <arg type="s"/>
    </signal>
    <signal name="StatusNotifierItemUnregistered">
      <arg type="s"/>
    </signal>
    <signal name="StatusNotifierHostRegistered"/>
    <signal name="StatusNotifierHostUnregistered"/>
    <property name="RegisteredStatusNotifierItems" type="as" access="read"/>
    <property name="IsStatusNotifierHostRegistered" type="b" access="read"/>
    <property name="ProtocolVersion" type="i" access="read"/>
  </interface>
  <interface name="org.freedesktop.DBus.Properties">
    <method name="Get">
      <arg name="interface_name" type="s" direction="in"/>
      <arg name="property_name" type="s" direction="in"/>
      <arg name="value" type="v" direction="out"/>
    </method>
    <method name="GetAll">
      <arg name="interface_name" type="s" direction="in"/>
      <arg name="properties" type="a{sv}" direction="out"/>
    </method>
    <signal name="PropertiesChanged">
      <arg name="interface_name" type="s"/>
      <arg name="changed_properties" type="a{sv}"/>
      <arg name="invalidated_properties" type="as"/>
    </signal>
  </interface>
  <interface name="org.freedesktop.DBus.Introspectable">
    <method name="Introspect">
      <arg name="xml_data" type="s" direction="out"/>
    </method>
  </interface>
</node>
"""


class WatcherMode:
    WATCHER = "watcher"
    HOST = "host"


class WatcherService(AsyncLifecycleComponent):
    """StatusNotifierWatcher 服务"""

    def __init__(
        self,
        transport: IBusTransport,
        registry: ItemRegistry,
        bus_name: str = DBusNames.WATCHER_NAME,
        object_path: str = DBusNames.WATCHER_PATH,
        fallback_to_host: bool = True,
    ):
        super().__init__("WatcherService")
        self._transport = transport
        self._registry = registry
        self.bus_name = bus_name
        self.object_path = object_path
        self.fallback_to_host = fallback_to_host

        self.mode: Optional[str] = None
        self._hosts: Set[str] = set()
        self._remote_owner: Optional[str] = None
        self._remote_items: Dict[str, NotifierAddress] = {}
        self._subscriptions: List[ISignalSubscription] = []
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_watcher(self) -> bool:
        return self.mode == WatcherMode.WATCHER

    @property
    def hosts(self) -> Set[str]:
        return set(self._hosts)

    # ============ 生命周期 ============

    async def _do_start(self) -> bool:
        # 先订阅名字变化，避免 RequestName 之后丢失早期的名字丢失通知
        owner_changes = await self._transport.watch_name_owner()
        self._subscriptions.append(owner_changes)
        self._spawn(self._pump_name_owner(owner_changes))

        if await self._transport.request_name(self.bus_name):
            self._transport.export_object(self.object_path, self.handle_call)
            self.mode = WatcherMode.WATCHER
            app_logger.log_watcher_event(
                "serving", {"bus_name": self.bus_name, "path": self.object_path}
            )
            return True

        if not self.fallback_to_host:
            await self._close_subscriptions()
            raise WatcherUnavailableError(
                f"{self.bus_name} is owned by another process",
                context={"bus_name": self.bus_name},
            )

        await self._attach_to_existing()
        self.mode = WatcherMode.HOST
        return True

    async def _do_stop(self) -> bool:
        for task in list(self._tasks):
            task.cancel()
        await self._close_subscriptions()

        if self.mode == WatcherMode.WATCHER:
            self._transport.unexport_object(self.object_path)
            try:
                await self._transport.release_name(self.bus_name)
            except (BusCallError, BusConnectionError) as e:
                app_logger.warning(
                    "Failed to release watcher name", LogCategory.WATCHER, {"error": str(e)}
                )

        self.mode = None
        self._hosts.clear()
        self._remote_items.clear()
        return True

    async def _close_subscriptions(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            try:
                await subscription.close()
            except (BusCallError, BusConnectionError) as e:
                app_logger.debug("Closing subscription failed", LogCategory.WATCHER,
                                 {"error": str(e)})

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ============ 名字归属 ============

    async def _pump_name_owner(self, subscription: ISignalSubscription) -> None:
        try:
            async for change in subscription:
                if change.is_lost:
                    self.on_name_lost(change.name)
        except BusConnectionError:
            # 连接丢失由注册表和引擎统一处理
            pass

    def on_name_lost(self, name: str) -> None:
        """某个总线名字失去拥有者：移除其条目，注销其 host"""
        removed = self._registry.remove_owner(name)
        if removed:
            app_logger.log_watcher_event(
                "owner vanished", {"name": name, "items": [str(a) for a in removed]}
            )

        for service, address in list(self._remote_items.items()):
            if address.destination == name:
                del self._remote_items[service]

        self.remove_host(name)

        if self.mode == WatcherMode.HOST and name == self._remote_owner:
            app_logger.warning(
                "Remote StatusNotifierWatcher vanished",
                LogCategory.WATCHER,
                {"bus_name": self.bus_name, "owner": name},
            )

    def on_item_removed(self, address: NotifierAddress) -> None:
        """注册表移除条目后的回调"""
        if self.is_watcher:
            self._emit("StatusNotifierItemUnregistered", "s", [address.service_string])

    # ============ 信号发送 ============

    def _emit(self, member: str, signature: str = "", body: Optional[list] = None) -> None:
        self._spawn(self._emit_now(DBusNames.WATCHER_INTERFACE, member, signature, body or []))

    def _emit_host_registered_changed(self) -> None:
        self._spawn(
            self._emit_now(
                DBusNames.PROPERTIES_INTERFACE,
                "PropertiesChanged",
                "sa{sv}as",
                [
                    DBusNames.WATCHER_INTERFACE,
                    {"IsStatusNotifierHostRegistered": Variant("b", bool(self._hosts))},
                    [],
                ],
            )
        )

    async def _emit_now(self, interface: str, member: str, signature: str, body: list) -> None:
        try:
            await self._transport.emit_signal(self.object_path, interface, member, signature, body)
        except (BusCallError, BusConnectionError) as e:
            app_logger.warning(
                f"Failed to emit {member}", LogCategory.WATCHER, {"error": str(e)}
            )

    # ============ 导出的方法 ============

    def properties(self) -> Dict[str, Tuple[str, Any]]:
        """当前属性值：名字 → (签名, 值)"""
        return {
            "RegisteredStatusNotifierItems": (
                "as",
                [address.service_string for address in self._registry.addresses()],
            ),
            "IsStatusNotifierHostRegistered": ("b", bool(self._hosts)),
            "ProtocolVersion": ("i", Protocol.PROTOCOL_VERSION),
        }

    def handle_call(self, call: MethodCall) -> MethodReply:
        """处理对 watcher 对象的方法调用

        Raises:
            BusMethodError: 返回给调用方的错误
        """
        if call.interface == DBusNames.PROPERTIES_INTERFACE:
            return self._handle_properties(call)

        if call.interface == DBusNames.INTROSPECTABLE_INTERFACE and call.member == "Introspect":
            return MethodReply("s", [WATCHER_INTROSPECTION])

        if call.interface in (DBusNames.WATCHER_INTERFACE, ""):
            handler = {
                "RegisterStatusNotifierItem": self._register_item,
                "UnregisterStatusNotifierItem": self._unregister_item,
                "RegisterStatusNotifierHost": self._register_host,
            }.get(call.member)
            if handler is not None:
                return handler(call)

        raise BusMethodError(
            DBusNames.ERROR_UNKNOWN_METHOD,
            f"Unknown method {call.interface}.{call.member}",
        )

    def _service_arg(self, call: MethodCall) -> str:
        if len(call.body) != 1 or not isinstance(call.body[0], str):
            raise BusMethodError(
                DBusNames.ERROR_INVALID_ARGS, f"{call.member} expects a single string"
            )
        return call.body[0]

    def _normalize(self, service: str, sender: str) -> NotifierAddress:
        try:
            return NotifierAddress.from_notifier_service(service, sender or None)
        except NotifierAddressError as e:
            raise BusMethodError(DBusNames.ERROR_INVALID_ARGS, e.message) from e

    def _register_item(self, call: MethodCall) -> MethodReply:
        address = self._normalize(self._service_arg(call), call.sender)
        if self._registry.register(address):
            app_logger.log_watcher_event(
                "item registered", {"service": address.service_string, "sender": call.sender}
            )
            self._emit("StatusNotifierItemRegistered", "s", [address.service_string])
        return MethodReply()

    def _unregister_item(self, call: MethodCall) -> MethodReply:
        address = self._normalize(self._service_arg(call), call.sender)
        if not self._registry.remove(address):
            app_logger.debug("Unregister of unknown item", LogCategory.WATCHER,
                             {"service": address.service_string})
        return MethodReply()

    def _register_host(self, call: MethodCall) -> MethodReply:
        service = self._service_arg(call)
        host = call.sender if not service or service.startswith("/") else service
        if not host:
            raise BusMethodError(DBusNames.ERROR_INVALID_ARGS, "Cannot determine host name")

        self.add_host(host)
        return MethodReply()

    def add_host(self, host: str) -> bool:
        """登记一个 StatusNotifierHost；返回是否为新 host"""
        if host in self._hosts:
            return False
        first = not self._hosts
        self._hosts.add(host)
        app_logger.log_watcher_event("host registered", {"host": host})
        if self.is_watcher:
            self._emit("StatusNotifierHostRegistered")
            if first:
                self._emit_host_registered_changed()
        return True

    def remove_host(self, host: str) -> bool:
        if host not in self._hosts:
            return False
        self._hosts.discard(host)
        app_logger.log_watcher_event("host unregistered", {"host": host})
        if self.is_watcher:
            self._emit("StatusNotifierHostUnregistered")
            if not self._hosts:
                self._emit_host_registered_changed()
        return True

    def _handle_properties(self, call: MethodCall) -> MethodReply:
        if not call.body or call.body[0] != DBusNames.WATCHER_INTERFACE:
            raise BusMethodError(
                DBusNames.ERROR_UNKNOWN_INTERFACE,
                f"No such interface: {call.body[0] if call.body else ''}",
            )

        props = self.properties()

        if call.member == "GetAll":
            return MethodReply(
                "a{sv}", [{name: Variant(sig, value) for name, (sig, value) in props.items()}]
            )

        if call.member == "Get" and len(call.body) == 2:
            name = call.body[1]
            if name not in props:
                raise BusMethodError(
                    DBusNames.ERROR_UNKNOWN_PROPERTY, f"No such property: {name}"
                )
            sig, value = props[name]
            return MethodReply("v", [Variant(sig, value)])

        if call.member == "Set":
            raise BusMethodError(
                DBusNames.ERROR_PROPERTY_READ_ONLY, "Watcher properties are read-only"
            )

        raise BusMethodError(
            DBusNames.ERROR_UNKNOWN_METHOD, f"Unknown method Properties.{call.member}"
        )

    # ============ host 模式 ============

    async def _get_name_owner(self, name: str) -> str:
        body = await self._transport.call(
            DBusNames.BUS_NAME,
            DBusNames.BUS_PATH,
            DBusNames.BUS_INTERFACE,
            "GetNameOwner",
            "s",
            [name],
        )
        return body[0]

    async def _attach_to_existing(self) -> None:
        """以 host 身份接入已有的 watcher

        Raises:
            WatcherUnavailableError: 已有 watcher 无法访问
        """
        try:
            self._remote_owner = await self._get_name_owner(self.bus_name)
            signals = await self._transport.subscribe_signal(
                DBusNames.WATCHER_INTERFACE, sender=self._remote_owner, path=self.object_path
            )
            self._subscriptions.append(signals)
            self._spawn(self._pump_remote_signals(signals))

            body = await self._transport.call(
                self._remote_owner,
                self.object_path,
                DBusNames.PROPERTIES_INTERFACE,
                "Get",
                "ss",
                [DBusNames.WATCHER_INTERFACE, "RegisteredStatusNotifierItems"],
            )
        except BusCallError as e:
            await self._close_subscriptions()
            raise WatcherUnavailableError(
                f"Cannot attach to existing {self.bus_name}: {e.message}",
                original_exception=e,
            ) from e

        services = body[0].value if isinstance(body[0], Variant) else body[0]
        app_logger.log_watcher_event(
            "attached as host",
            {"bus_name": self.bus_name, "owner": self._remote_owner, "items": len(services)},
        )
        for service in services:
            await self._track_remote_item(service)

    async def _pump_remote_signals(self, subscription: ISignalSubscription) -> None:
        try:
            async for signal in subscription:
                if not signal.body or not isinstance(signal.body[0], str):
                    continue
                if signal.member == "StatusNotifierItemRegistered":
                    await self._track_remote_item(signal.body[0])
                elif signal.member == "StatusNotifierItemUnregistered":
                    self._untrack_remote_item(signal.body[0])
        except BusConnectionError:
            pass

    async def _track_remote_item(self, service: str) -> None:
        try:
            address = NotifierAddress.from_notifier_service(service)
            if not address.destination.startswith(":"):
                owner = await self._get_name_owner(address.destination)
                address = NotifierAddress(owner, address.path)
        except (NotifierAddressError, BusCallError) as e:
            app_logger.warning(
                "Skipping remote item", LogCategory.WATCHER, {"service": service, "error": str(e)}
            )
            return

        self._remote_items[service] = address
        self._registry.register(address)

    def _untrack_remote_item(self, service: str) -> None:
        address = self._remote_items.pop(service, None)
        if address is None:
            try:
                address = NotifierAddress.from_notifier_service(service)
            except NotifierAddressError:
                return
        self._registry.remove(address)


__all__ = ["WatcherService", "WatcherMode", "WATCHER_INTROSPECTION"]
