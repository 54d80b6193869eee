"""前端命令 → 远端调用

命令是"发出即忘"的：找不到目标条目时静默忽略，调用失败只记录日志。
"""

import asyncio
import time
from typing import Optional, Set

from dbus_fast import Variant

from ...utils import BusCallError, BusConnectionError, app_logger
from ..interfaces.bus import IBusTransport
from ..models import ItemActivated, MenuItemClicked, NotifierItemCommand
from .config.app_constants import DBusNames
from .item_registry import ItemRegistry

_CLOSED = object()


class CommandChannel:
    """有界的命令队列；队列满时丢弃新命令"""

    def __init__(self, maxsize: int = 64):
        if maxsize < 1:
            raise ValueError(f"Command queue size must be at least 1, got {maxsize}")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, command: NotifierItemCommand) -> bool:
        """投递命令，不等待执行

        Returns:
            命令是否进入队列
        """
        if self._closed:
            app_logger.log_command(
                "dropped after close", {"command": type(command).__name__}, "WARNING"
            )
            return False
        try:
            self._queue.put_nowait(command)
        except asyncio.QueueFull:
            app_logger.log_command(
                "queue full, dropped",
                {"command": type(command).__name__, "queue_size": self._queue.maxsize},
                "WARNING",
            )
            return False
        return True

    async def receive(self) -> Optional[NotifierItemCommand]:
        """取出下一条命令；通道关闭后返回 None"""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # 队列满时唤醒消费者的办法是丢掉最早的一条命令
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)


class CommandDispatcher:
    """把命令翻译为对目标条目的总线调用"""

    def __init__(
        self,
        transport: IBusTransport,
        registry: ItemRegistry,
        call_timeout: Optional[float] = None,
    ):
        self._transport = transport
        self._registry = registry
        self._call_timeout = call_timeout
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """尚未完成的远端调用数"""
        return len(self._tasks)

    async def run(self, channel: CommandChannel) -> None:
        """处理通道中的命令直到通道关闭

        每条命令在独立任务中执行，挂起的条目不会拖慢发给其他条目的命令。
        通道关闭（或 run 被取消）时取消所有未完成的调用。
        """
        try:
            while True:
                command = await channel.receive()
                if command is None:
                    return
                self._spawn(self.dispatch(command))
        finally:
            self.cancel_pending()

    def cancel_pending(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def dispatch(self, command: NotifierItemCommand) -> bool:
        """执行一条命令

        Returns:
            是否成功发出了远端调用；找不到目标或调用失败时返回 False
        """
        if isinstance(command, MenuItemClicked):
            return await self._menu_item_clicked(command)
        if isinstance(command, ItemActivated):
            return await self._item_activated(command)

        app_logger.log_command("unsupported", {"command": type(command).__name__}, "WARNING")
        return False

    async def _menu_item_clicked(self, command: MenuItemClicked) -> bool:
        address = self._registry.find(command.notifier_address, command.menu_path)
        if address is None:
            app_logger.log_command("menu click for unknown item ignored", command.to_dict(), "DEBUG")
            return False

        timestamp = int(time.time()) & 0xFFFFFFFF
        return await self._call(
            command,
            address.destination,
            command.menu_path,
            DBusNames.MENU_INTERFACE,
            "Event",
            "isvu",
            [command.submenu_id, "clicked", Variant("i", 0), timestamp],
        )

    async def _item_activated(self, command: ItemActivated) -> bool:
        address = self._registry.find_item(command.notifier_address, command.item_path)
        if address is None:
            app_logger.log_command("activation for unknown item ignored", command.to_dict(), "DEBUG")
            return False

        member = "SecondaryActivate" if command.secondary else "Activate"
        return await self._call(
            command,
            address.destination,
            address.path,
            DBusNames.ITEM_INTERFACE,
            member,
            "ii",
            [command.x, command.y],
        )

    async def _call(self, command, destination, path, interface, member, signature, body) -> bool:
        try:
            await self._transport.call(
                destination, path, interface, member, signature, body,
                timeout=self._call_timeout,
            )
        except (BusCallError, BusConnectionError) as e:
            app_logger.log_command(
                f"{member} failed",
                {"command": command.to_dict(), "error": e.message},
                "ERROR",
            )
            return False

        app_logger.log_command(member, {"destination": destination, "path": path})
        return True


__all__ = ["CommandChannel", "CommandDispatcher"]
