"""TrayEngine Tests

End-to-end scenarios against the in-memory bus: registration, menus,
commands, additional hosts and connection loss.
"""

import asyncio
import os

import pytest

from mocks import FakeBusTransport, layout_node, next_message, settle
from traywatch.core.models import MenuItemClicked, NotifierAddress, Remove, Update
from traywatch.core.services.config import EngineSettings
from traywatch.core.tray_engine import TrayEngine
from traywatch.utils import BusConnectionError, BusError, WatcherUnavailableError

WATCHER_NAME = "org.kde.StatusNotifierWatcher"
WATCHER_PATH = "/StatusNotifierWatcher"
WATCHER = "org.kde.StatusNotifierWatcher"
MENU = "com.canonical.dbusmenu"
DEFAULT_HOST = f"org.freedesktop.StatusNotifierHost-{os.getpid()}-traywatch"


def register(bus, service, sender=":1.52"):
    bus.call_exported(sender, WATCHER_PATH, WATCHER, "RegisterStatusNotifierItem", [service])


class TestEngineScenarios:
    """Scenarios seen by a tray widget consuming engine.messages()"""

    def test_register_then_update(self, settings):
        async def run():
            bus = FakeBusTransport()
            bus.add_item(":1.52", props={"Id": "nm-applet", "IconName": "network-wireless"})
            async with TrayEngine(bus, settings) as engine:
                messages = engine.messages()
                register(bus, ":1.52")
                message = await next_message(messages)
                await messages.aclose()
            return message

        message = asyncio.run(run())

        assert isinstance(message, Update)
        assert message.address == NotifierAddress(":1.52")
        assert message.item.id == "nm-applet"
        assert message.item.icon.name == "network-wireless"

    def test_unregister_produces_remove(self, settings):
        async def run():
            bus = FakeBusTransport()
            bus.add_item(":1.52", props={"Id": "a"})
            async with TrayEngine(bus, settings) as engine:
                messages = engine.messages()
                register(bus, ":1.52")
                first = await next_message(messages)
                bus.lose_name(":1.52")
                second = await next_message(messages)
                await messages.aclose()
            return first, second

        first, second = asyncio.run(run())

        assert isinstance(first, Update)
        assert second == Remove(NotifierAddress(":1.52"))

    def test_menu_click_reaches_application(self, settings):
        async def run():
            bus = FakeBusTransport()
            bus.add_item(
                ":1.52",
                props={"Id": "a", "Menu": "/MenuBar"},
                layout=layout_node(0, {}, [layout_node(5, {"label": "_Quit"})]),
            )
            bus.set_reply(":1.52", "/MenuBar", MENU, "Event", [])
            async with TrayEngine(bus, settings) as engine:
                messages = engine.messages()
                register(bus, ":1.52")
                update = await next_message(messages)

                assert engine.commands.send(
                    MenuItemClicked(5, update.item.menu_path, update.address.destination)
                )
                await settle()
                await messages.aclose()
            return update, bus

        update, bus = asyncio.run(run())

        assert update.menu.find(5).label == "Quit"
        assert bus.calls_to("Event")[0][4][:2] == [5, "clicked"]

    def test_connection_loss_ends_stream_with_error(self, settings):
        async def run():
            bus = FakeBusTransport()
            engine = TrayEngine(bus, settings)
            messages = engine.messages()
            first = asyncio.ensure_future(next_message(messages))
            await settle()
            bus.drop_connection()
            with pytest.raises(BusConnectionError):
                await first
            return engine

        engine = asyncio.run(run())

        assert isinstance(engine.connection_error, BusConnectionError)
        assert engine.commands.closed


class TestEngineStartup:
    def test_default_host_registered_with_own_watcher(self, settings):
        async def run():
            bus = FakeBusTransport()
            async with TrayEngine(bus, settings) as engine:
                hosts = engine.watcher.hosts
                owned = list(bus.owned_names)
            return hosts, owned, bus

        hosts, owned, bus = asyncio.run(run())

        assert hosts == {DEFAULT_HOST}
        assert WATCHER_NAME in owned and DEFAULT_HOST in owned
        assert bus.owned_names == []

    def test_destroying_default_host_keeps_engine_running(self, settings):
        async def run():
            bus = FakeBusTransport()
            bus.add_item(":1.52", props={"Id": "a"})
            async with TrayEngine(bus, settings) as engine:
                messages = engine.messages()
                await engine.default_host.destroy()
                register(bus, ":1.52")
                message = await next_message(messages)
                running = engine.is_running
                owned = list(bus.owned_names)
                await messages.aclose()
            return engine, message, running, owned

        engine, message, running, owned = asyncio.run(run())

        assert isinstance(message, Update)
        assert running is True
        assert DEFAULT_HOST not in owned
        assert engine.default_host is None

    def test_watcher_unavailable_without_fallback(self):
        async def run():
            bus = FakeBusTransport()
            bus.taken_names[WATCHER_NAME] = ":1.5"
            engine = TrayEngine(bus, EngineSettings(fallback_to_host=False))
            async with engine:
                pass

        with pytest.raises(WatcherUnavailableError):
            asyncio.run(run())

    def test_host_mode_registers_with_existing_watcher(self, settings):
        async def run():
            bus = FakeBusTransport()
            bus.taken_names[WATCHER_NAME] = ":1.5"
            bus.name_owners[WATCHER_NAME] = ":1.5"
            bus.set_reply(":1.5", WATCHER_PATH, "org.freedesktop.DBus.Properties", "Get", [[]])
            bus.set_reply(WATCHER_NAME, WATCHER_PATH, WATCHER, "RegisterStatusNotifierHost", [])
            async with TrayEngine(bus, settings) as engine:
                mode = engine.watcher.mode
            return mode, bus

        mode, bus = asyncio.run(run())

        assert mode == "host"
        assert bus.calls_to("RegisterStatusNotifierHost")[0][4] == [DEFAULT_HOST]


class TestNotifierHosts:
    """Test hosts created with create_notifier_host()"""

    def test_new_host_is_primed_with_current_items(self, settings):
        async def run():
            bus = FakeBusTransport()
            bus.add_item(":1.52", props={"Id": "first"})
            async with TrayEngine(bus, settings) as engine:
                messages = engine.messages()
                register(bus, ":1.52")
                await next_message(messages)

                host = await engine.create_notifier_host("panel-2")
                primed = await asyncio.wait_for(host.recv(), 1.0)
                name = host.name
                registered = name in engine.watcher.hosts

                await host.destroy()
                released = name not in bus.owned_names
                await messages.aclose()
            return primed, name, registered, released

        primed, name, registered, released = asyncio.run(run())

        assert primed.item.id == "first"
        assert name == f"org.freedesktop.StatusNotifierHost-{os.getpid()}-panel-2"
        assert registered
        assert released

    def test_hosts_receive_same_messages(self, settings):
        async def run():
            bus = FakeBusTransport()
            bus.add_item(":1.52", props={"Id": "a"})
            async with TrayEngine(bus, settings) as engine:
                host = await engine.create_notifier_host("second")
                register(bus, ":1.52")
                from_default = await asyncio.wait_for(engine.default_host.recv(), 1.0)
                from_second = await asyncio.wait_for(host.recv(), 1.0)
            return from_default, from_second

        from_default, from_second = asyncio.run(run())

        assert from_default == from_second

    def test_taken_host_name(self, settings):
        async def run():
            bus = FakeBusTransport()
            async with TrayEngine(bus, settings) as engine:
                bus.taken_names[f"org.freedesktop.StatusNotifierHost-{os.getpid()}-dup"] = ":1.9"
                with pytest.raises(BusError):
                    await engine.create_notifier_host("dup")
                return len(engine.hosts)

        assert asyncio.run(run()) == 1

    def test_stop_ends_host_streams(self, settings):
        async def run():
            bus = FakeBusTransport()
            engine = TrayEngine(bus, settings)
            await engine.start()
            host = await engine.create_notifier_host("short-lived")
            await engine.stop()
            with pytest.raises(StopAsyncIteration):
                await host.recv()
            return host

        assert asyncio.run(run()).destroyed
