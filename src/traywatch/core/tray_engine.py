"""托盘引擎 - 对外的唯一入口

组装 watcher、注册表、解析器、消息分发和命令通道:

    async with await TrayEngine.connect(settings) as engine:
        async for message in engine.messages():
            ...
        engine.commands.send(MenuItemClicked(...))
"""

import asyncio
import os
from typing import AsyncIterator, List, Optional

from ..utils import (
    BusCallError,
    BusConnectionError,
    BusError,
    TrayWatchError,
    app_logger,
)
from ..utils.unified_logger import LogCategory
from .base.lifecycle_component import AsyncLifecycleComponent
from .interfaces.bus import IBusTransport
from .models import NotifierAddress, NotifierItemCommand, NotifierItemMessage
from .services.bus_transport import DbusFastTransport
from .services.command_dispatcher import CommandChannel, CommandDispatcher
from .services.config.app_constants import DBusNames
from .services.config.engine_settings import EngineSettings
from .services.item_registry import ItemRegistry
from .services.menu_resolver import MenuResolver
from .services.message_hub import MessageHub, MessageStream
from .services.notifier_host import NotifierHost
from .services.property_resolver import IconPolicy, PropertyResolver
from .services.watcher_service import WatcherService


class TrayEngine(AsyncLifecycleComponent):
    """StatusNotifierWatcher/Host 引擎"""

    def __init__(
        self,
        transport: IBusTransport,
        settings: Optional[EngineSettings] = None,
        owns_transport: bool = False,
    ):
        super().__init__("TrayEngine")
        self.settings = settings or EngineSettings()
        self.transport = transport
        self._owns_transport = owns_transport

        timeout = self.settings.call_timeout
        self.hub = MessageHub()
        self.property_resolver = PropertyResolver(
            transport,
            IconPolicy(
                preference=self.settings.icon_preference,
                target_size=self.settings.icon_target_size,
                default_icon=self.settings.default_icon,
            ),
            call_timeout=timeout,
        )
        self.menu_resolver = MenuResolver(transport, self.settings.menu_max_depth, timeout)
        self.registry = ItemRegistry(
            transport,
            self.property_resolver,
            self.menu_resolver,
            self.hub,
            on_removed=self._on_item_removed,
            on_connection_lost=self._on_connection_lost,
        )
        self.watcher = WatcherService(
            transport,
            self.registry,
            bus_name=self.settings.watcher_name,
            object_path=self.settings.watcher_path,
            fallback_to_host=self.settings.fallback_to_host,
        )
        self.commands = CommandChannel(self.settings.command_queue_size)
        self.dispatcher = CommandDispatcher(transport, self.registry, timeout)

        self.default_host: Optional[NotifierHost] = None
        self._hosts: List[NotifierHost] = []
        self._stream: Optional[MessageStream] = None
        self._tasks: List[asyncio.Task] = []
        self._connection_error: Optional[BusConnectionError] = None
        self._stopping = False

    @classmethod
    async def connect(cls, settings: Optional[EngineSettings] = None) -> "TrayEngine":
        """连接总线并启动引擎

        Raises:
            BusConnectionError: 无法连接总线
            WatcherUnavailableError: watcher 名字被占用且不允许回退
        """
        settings = settings or EngineSettings()
        transport = DbusFastTransport(
            bus_type=settings.bus_type,
            bus_address=settings.bus_address,
            call_timeout=settings.call_timeout,
        )
        await transport.connect()

        engine = cls(transport, settings, owns_transport=True)
        if not await engine.start():
            await transport.close()
            raise engine.last_error or TrayWatchError("Tray engine failed to start")
        return engine

    async def __aenter__(self) -> "TrayEngine":
        if not await self.start():
            raise self.last_error or TrayWatchError("Tray engine failed to start")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def connection_error(self) -> Optional[BusConnectionError]:
        return self._connection_error

    @property
    def hosts(self) -> List[NotifierHost]:
        return list(self._hosts)

    # ============ 生命周期 ============

    async def _do_start(self) -> bool:
        if not self.transport.connected:
            await self.transport.connect()
        app_logger.log_bus_event(
            "connected",
            {"unique_name": self.transport.unique_name, "bus_type": self.settings.bus_type},
        )

        self._stopping = False
        self._connection_error = None
        # 在注册表开始发布之前订阅，保证不丢消息
        self._stream = self.hub.subscribe("engine")

        if not await self.registry.start():
            self.hub.close()
            raise self.registry.last_error

        if not await self.watcher.start():
            await self.registry.stop()
            self.hub.close()
            raise self.watcher.last_error

        self._tasks.append(asyncio.ensure_future(self._watch_connection()))
        self._tasks.append(asyncio.ensure_future(self.dispatcher.run(self.commands)))

        if self.settings.register_host:
            # 默认 host 读的是引擎自己的消息流，销毁它不能结束 messages()
            self.default_host = await self._open_host(
                self.settings.host_id, self._stream, owns_stream=False
            )

        app_logger.info(
            "Tray engine started",
            LogCategory.STARTUP,
            {"mode": self.watcher.mode, "unique_name": self.transport.unique_name},
        )
        return True

    async def _do_stop(self) -> bool:
        if self._stopping:
            return True
        self._stopping = True

        self.commands.close()
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

        for host in list(self._hosts):
            await host.destroy()
        self.default_host = None

        watcher_stopped = await self.watcher.stop()
        registry_stopped = await self.registry.stop()
        self.hub.close(self._connection_error)

        if self._owns_transport:
            await self.transport.close()

        app_logger.info("Tray engine stopped", LogCategory.STARTUP)
        return watcher_stopped and registry_stopped

    async def _watch_connection(self) -> None:
        try:
            await self.transport.wait_for_disconnect()
        except BusConnectionError as e:
            self._on_connection_lost(e)

    def _on_connection_lost(self, error: BusConnectionError) -> None:
        if self._connection_error is not None or self._stopping:
            return
        self._connection_error = error
        app_logger.log_error(error, "tray_engine_connection")
        self.commands.close()
        self.hub.close(error)

    def _on_item_removed(self, address: NotifierAddress) -> None:
        self.watcher.on_item_removed(address)

    # ============ 消息与命令 ============

    async def messages(self) -> AsyncIterator[NotifierItemMessage]:
        """按地址有序的消息流，直到引擎停止

        连接丢失时抛出 BusConnectionError。离开迭代（关闭生成器）会停止引擎。
        """
        if not self.is_running and not await self.start():
            raise self.last_error or TrayWatchError("Tray engine failed to start")

        stream = self._stream
        try:
            async for message in stream:
                yield message
        finally:
            await self.stop()

    async def dispatch(self, command: NotifierItemCommand) -> bool:
        """立即执行一条命令；失败只记录日志"""
        return await self.dispatcher.dispatch(command)

    # ============ host ============

    async def create_notifier_host(self, unique_id: str) -> NotifierHost:
        """创建一个拥有独立消息流的 StatusNotifierHost

        新 host 的消息流先收到所有已解析条目的当前状态。

        Raises:
            BusError: host 名字已被占用
        """
        stream = self.hub.subscribe(
            f"{DBusNames.HOST_NAME_PREFIX}-{os.getpid()}-{unique_id}",
            initial=self.registry.snapshots(),
        )
        return await self._open_host(unique_id, stream)

    async def _open_host(
        self, unique_id: str, stream: MessageStream, owns_stream: bool = True
    ) -> NotifierHost:
        name = f"{DBusNames.HOST_NAME_PREFIX}-{os.getpid()}-{unique_id}"
        if not await self.transport.request_name(name):
            if owns_stream:
                stream.close()
            raise BusError(f"{name} is already owned", context={"host": name})

        host = NotifierHost(
            name, unique_id, stream, self.transport,
            on_destroy=self._forget_host, owns_stream=owns_stream,
        )
        self._hosts.append(host)
        await self._announce_host(name)
        return host

    async def _announce_host(self, name: str) -> None:
        if self.watcher.is_watcher:
            self.watcher.add_host(name)
            return

        try:
            await self.transport.call(
                self.settings.watcher_name,
                self.settings.watcher_path,
                DBusNames.WATCHER_INTERFACE,
                "RegisterStatusNotifierHost",
                "s",
                [name],
            )
        except BusCallError as e:
            app_logger.warning(
                "Failed to register host with watcher",
                LogCategory.WATCHER,
                {"host": name, "error": e.message},
            )

    async def _forget_host(self, host: NotifierHost) -> None:
        if host in self._hosts:
            self._hosts.remove(host)
        if host is self.default_host:
            self.default_host = None
        if self.watcher.is_watcher:
            self.watcher.remove_host(host.name)


__all__ = ["TrayEngine"]
