"""托盘条目注册表

每个地址一个条目，状态 REGISTERING → ACTIVE → REMOVED（终态）。

解析请求按地址串行执行（每个条目一把 asyncio.Lock），每个请求领取一个
递增的票号。开始解析前票号已过期的请求直接丢弃，排队的请求因此合并为一次；
已经开始且成功的解析总会发布结果（条目被移除时除外）。串行保证了最后一个信号
触发的解析最后发布，持续发信号的条目也能得到 Update。

条目属性变化通过三个全局信号订阅路由到对应条目:
    org.kde.StatusNotifierItem.*           NewIcon / NewTitle / ...
    org.freedesktop.DBus.Properties        PropertiesChanged
    com.canonical.dbusmenu                 LayoutUpdated / ItemsPropertiesUpdated
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from ...utils import (
    BusCallError,
    BusConnectionError,
    ResolutionError,
    app_logger,
)
from ...utils.unified_logger import LogCategory
from ..base.lifecycle_component import AsyncLifecycleComponent
from ..interfaces.bus import BusSignal, IBusTransport, ISignalSubscription
from ..models import NotifierAddress, NotifierItem, Remove, TrayMenu, Update
from .config.app_constants import DBusNames
from .menu_resolver import MenuResolver
from .message_hub import MessageHub
from .property_resolver import PropertyResolver


class EntryState(Enum):
    REGISTERING = "registering"
    ACTIVE = "active"
    REMOVED = "removed"


@dataclass
class RegistryEntry:
    """注册表中的一个条目（可变，仅注册表内部使用）"""

    address: NotifierAddress
    state: EntryState = EntryState.REGISTERING
    ticket: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    item: Optional[NotifierItem] = None
    menu: Optional[TrayMenu] = None
    registered_at: float = field(default_factory=time.time)
    tasks: Set[asyncio.Task] = field(default_factory=set)

    @property
    def menu_path(self) -> Optional[str]:
        return self.item.menu_path if self.item else None


class ItemRegistry(AsyncLifecycleComponent):
    """托盘条目注册表"""

    def __init__(
        self,
        transport: IBusTransport,
        property_resolver: PropertyResolver,
        menu_resolver: MenuResolver,
        hub: MessageHub,
        on_removed: Optional[Callable[[NotifierAddress], None]] = None,
        on_connection_lost: Optional[Callable[[BusConnectionError], None]] = None,
    ):
        super().__init__("ItemRegistry")
        self._transport = transport
        self._property_resolver = property_resolver
        self._menu_resolver = menu_resolver
        self._hub = hub
        self._on_removed = on_removed
        self._on_connection_lost = on_connection_lost

        self._entries: Dict[NotifierAddress, RegistryEntry] = {}
        self._subscriptions: List[ISignalSubscription] = []
        self._pump_tasks: List[asyncio.Task] = []

    # ============ 生命周期 ============

    async def _do_start(self) -> bool:
        interfaces = list(DBusNames.ITEM_INTERFACES) + [
            DBusNames.PROPERTIES_INTERFACE,
            DBusNames.MENU_INTERFACE,
        ]
        try:
            for interface in interfaces:
                member = "PropertiesChanged" if interface == DBusNames.PROPERTIES_INTERFACE else None
                subscription = await self._transport.subscribe_signal(interface, member)
                self._subscriptions.append(subscription)
                self._pump_tasks.append(asyncio.ensure_future(self._pump(subscription)))
        except BusCallError:
            await self._close_subscriptions()
            raise
        return True

    async def _do_stop(self) -> bool:
        for entry in self._entries.values():
            entry.state = EntryState.REMOVED
            for task in entry.tasks:
                task.cancel()
        self._entries.clear()
        await self._close_subscriptions()
        return True

    async def _close_subscriptions(self) -> None:
        for task in self._pump_tasks:
            task.cancel()
        self._pump_tasks.clear()
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            try:
                await subscription.close()
            except (BusCallError, BusConnectionError) as e:
                app_logger.debug("Closing signal subscription failed", LogCategory.REGISTRY,
                                 {"error": str(e)})

    async def _pump(self, subscription: ISignalSubscription) -> None:
        try:
            async for signal in subscription:
                self.handle_signal(signal)
        except BusConnectionError as e:
            self._connection_lost(e)

    def _connection_lost(self, error: BusConnectionError) -> None:
        app_logger.log_error(error, "item_registry")
        if self._on_connection_lost:
            self._on_connection_lost(error)

    # ============ 信号路由 ============

    def handle_signal(self, signal: BusSignal) -> None:
        """把条目或菜单的变化信号转换为刷新请求"""
        if signal.interface == DBusNames.PROPERTIES_INTERFACE:
            changed_interface = signal.body[0] if signal.body else None
            if changed_interface not in DBusNames.ITEM_INTERFACES:
                return
        elif signal.interface == DBusNames.MENU_INTERFACE:
            if signal.member not in DBusNames.MENU_SIGNALS:
                return
        elif signal.member not in DBusNames.ITEM_SIGNALS:
            return

        for address in self.routes_for(signal.sender, signal.path):
            app_logger.debug(
                f"Signal {signal.member} triggers refresh",
                LogCategory.REGISTRY,
                {"address": str(address)},
            )
            self.refresh(address)

    def routes_for(self, sender: str, path: str) -> List[NotifierAddress]:
        """找到信号（sender, path）对应的条目：条目路径或其菜单路径"""
        return [
            entry.address
            for entry in self._entries.values()
            if entry.address.destination == sender
            and (entry.address.path == path or entry.menu_path == path)
        ]

    # ============ 注册与刷新 ============

    def register(self, address: NotifierAddress) -> bool:
        """注册条目并安排首次解析

        Returns:
            True 表示新条目；已存在的条目只会安排一次刷新
        """
        if address in self._entries:
            app_logger.debug("Re-registration of live item", LogCategory.REGISTRY,
                             {"address": str(address)})
            self.refresh(address)
            return False

        entry = RegistryEntry(address)
        self._entries[address] = entry
        app_logger.log_registry_event("item registered", {"address": str(address)})
        self.refresh(address)
        return True

    def refresh(self, address: NotifierAddress) -> bool:
        """安排一次解析；最新的请求会取代之前所有未完成的请求

        Returns:
            条目不存在时返回 False
        """
        entry = self._entries.get(address)
        if entry is None or entry.state == EntryState.REMOVED:
            return False

        entry.ticket += 1
        task = asyncio.ensure_future(self._resolve(entry, entry.ticket))
        entry.tasks.add(task)
        task.add_done_callback(entry.tasks.discard)
        return True

    def _is_live(self, entry: RegistryEntry) -> bool:
        return self._entries.get(entry.address) is entry and entry.state != EntryState.REMOVED

    def _is_current(self, entry: RegistryEntry, ticket: int) -> bool:
        return self._is_live(entry) and entry.ticket == ticket

    async def _resolve(self, entry: RegistryEntry, ticket: int) -> None:
        async with entry.lock:
            if not self._is_current(entry, ticket):
                return

            address = entry.address
            start_time = time.perf_counter()
            try:
                item = await self._property_resolver.resolve(address)
                menu = None
                if item.menu_path:
                    menu = await self._menu_resolver.resolve(address, item.menu_path)
            except ResolutionError as e:
                app_logger.log_resolution(
                    str(address), time.perf_counter() - start_time, False, e.message
                )
                return
            except BusConnectionError as e:
                self._connection_lost(e)
                return

            # 同一地址的解析串行执行，完成的结果总比已存快照新；只丢弃已移除条目的结果
            if not self._is_live(entry):
                app_logger.debug("Resolution for removed item dropped", LogCategory.REGISTRY,
                                 {"address": str(address), "ticket": ticket})
                return

            app_logger.log_resolution(str(address), time.perf_counter() - start_time, True)
            self._commit(entry, item, menu)

    def _commit(self, entry: RegistryEntry, item: NotifierItem, menu: Optional[TrayMenu]) -> None:
        first = entry.state == EntryState.REGISTERING
        entry.item = item
        entry.menu = menu
        entry.state = EntryState.ACTIVE
        if first:
            app_logger.log_registry_event("item active", {"address": str(entry.address), "id": item.id})
        self._hub.publish(Update(entry.address, item, menu))

    # ============ 移除 ============

    def remove(self, address: NotifierAddress) -> bool:
        """移除条目：取消未完成的解析并发布一次 Remove

        Returns:
            条目不存在时返回 False
        """
        entry = self._entries.pop(address, None)
        if entry is None:
            return False

        entry.state = EntryState.REMOVED
        for task in entry.tasks:
            task.cancel()

        app_logger.log_registry_event("item removed", {"address": str(address)})
        self._hub.publish(Remove(address))
        if self._on_removed:
            self._on_removed(address)
        return True

    def remove_owner(self, bus_name: str) -> List[NotifierAddress]:
        """移除某个总线名字下的所有条目（名字丢失时调用）"""
        removed = [a for a in list(self._entries) if a.destination == bus_name]
        for address in removed:
            self.remove(address)
        return removed

    # ============ 查询 ============

    def get(self, address: NotifierAddress) -> Optional[NotifierItem]:
        entry = self._entries.get(address)
        return entry.item if entry else None

    def get_menu(self, address: NotifierAddress) -> Optional[TrayMenu]:
        entry = self._entries.get(address)
        return entry.menu if entry else None

    def state_of(self, address: NotifierAddress) -> Optional[EntryState]:
        entry = self._entries.get(address)
        return entry.state if entry else None

    def find(self, notifier_address: str, menu_path: str) -> Optional[NotifierAddress]:
        """按命令中的 (notifier_address, menu_path) 找到已解析的条目

        notifier_address 可以是总线名字，也可以是完整的 service_string。
        """
        for entry in self._entries.values():
            if entry.state != EntryState.ACTIVE or entry.menu_path != menu_path:
                continue
            if notifier_address in (entry.address.destination, entry.address.service_string):
                return entry.address
        return None

    def find_item(
        self, notifier_address: str, item_path: Optional[str] = None
    ) -> Optional[NotifierAddress]:
        """按总线名字（和可选的条目路径）找到已解析的条目；不唯一时返回 None"""
        matches = [
            entry.address
            for entry in self._entries.values()
            if entry.state == EntryState.ACTIVE
            and notifier_address in (entry.address.destination, entry.address.service_string)
            and (item_path is None or entry.address.path == item_path)
        ]
        return matches[0] if len(matches) == 1 else None

    def addresses(self) -> List[NotifierAddress]:
        return list(self._entries)

    def snapshots(self) -> List[Update]:
        """所有已解析条目的当前状态，按注册顺序"""
        return [
            Update(entry.address, entry.item, entry.menu)
            for entry in self._entries.values()
            if entry.state == EntryState.ACTIVE and entry.item is not None
        ]

    def __contains__(self, address: NotifierAddress) -> bool:
        return address in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["EntryState", "RegistryEntry", "ItemRegistry"]
