"""ItemRegistry Tests

Tests for resolution ordering, supersession, signal routing and removal.
"""

import asyncio

from mocks import FakeBusTransport, layout_node, next_message, settle
from traywatch.core.models import NotifierAddress, Remove, Update
from traywatch.core.services.item_registry import EntryState, ItemRegistry
from traywatch.core.services.menu_resolver import MenuResolver
from traywatch.core.services.message_hub import MessageHub
from traywatch.core.services.property_resolver import PropertyResolver
from traywatch.utils import BusCallError, BusConnectionError

PROPS = "org.freedesktop.DBus.Properties"
ITEM = "org.kde.StatusNotifierItem"
MENU = "com.canonical.dbusmenu"
ADDRESS = NotifierAddress(":1.52", "/StatusNotifierItem")


class Harness:
    """Registry wired to a fake bus, with a test subscriber"""

    def __init__(self):
        self.bus = FakeBusTransport()
        self.hub = MessageHub()
        self.removed = []
        self.lost = []
        self.registry = ItemRegistry(
            self.bus,
            PropertyResolver(self.bus),
            MenuResolver(self.bus),
            self.hub,
            on_removed=self.removed.append,
            on_connection_lost=self.lost.append,
        )
        self.stream = self.hub.subscribe("test")

    async def start(self):
        assert await self.registry.start()
        return self

    def drain(self):
        """Messages already delivered to the test stream"""
        messages = []
        while self.stream.pending:
            messages.append(self.stream._queue.get_nowait())
        return messages


def gated_reply(responses):
    """GetAll reply that returns responses in order, each waiting on its own gate"""
    gates = [asyncio.Event() for _ in responses]
    calls = {"count": 0}

    async def reply(_body):
        index = min(calls["count"], len(responses) - 1)
        calls["count"] += 1
        await gates[index].wait()
        return [responses[index]]

    return reply, gates


class TestRegistration:
    """Test first resolution and re-registration"""

    def test_register_publishes_update(self):
        async def run():
            h = await Harness().start()
            h.bus.add_item(":1.52", props={"Id": "nm-applet", "Title": "Network"})

            assert h.registry.register(ADDRESS) is True
            assert h.registry.state_of(ADDRESS) == EntryState.REGISTERING

            message = await next_message(h.stream)
            return h, message

        h, message = asyncio.run(run())

        assert isinstance(message, Update)
        assert message.address == ADDRESS
        assert message.item.title == "Network"
        assert h.registry.state_of(ADDRESS) == EntryState.ACTIVE
        assert h.registry.get(ADDRESS).id == "nm-applet"

    def test_re_registration_keeps_single_entry(self):
        """Test registering a live address again does not duplicate it"""
        async def run():
            h = await Harness().start()
            h.bus.add_item(":1.52", props={"Id": "a"})

            assert h.registry.register(ADDRESS) is True
            assert h.registry.register(ADDRESS) is False
            await settle()
            return h

        h = asyncio.run(run())

        assert len(h.registry) == 1
        updates = h.drain()
        assert len(updates) == 1
        assert isinstance(updates[0], Update)

    def test_menu_is_resolved_with_item(self):
        async def run():
            h = await Harness().start()
            h.bus.add_item(
                ":1.52",
                props={"Id": "a", "Menu": "/MenuBar"},
                layout=layout_node(0, {}, [layout_node(1, {"label": "_Quit"})]),
                revision=7,
            )
            h.registry.register(ADDRESS)
            return await next_message(h.stream)

        message = asyncio.run(run())

        assert message.menu.revision == 7
        assert message.menu.find(1).label == "Quit"

    def test_menu_failure_still_publishes_item(self):
        async def run():
            h = await Harness().start()
            h.bus.add_item(":1.52", props={"Id": "a", "Menu": "/MenuBar"})
            h.bus.set_reply(":1.52", "/MenuBar", MENU, "GetLayout", BusCallError("no menu"))
            h.registry.register(ADDRESS)
            return await next_message(h.stream)

        message = asyncio.run(run())

        assert message.item.menu_path == "/MenuBar"
        assert message.menu is None

    def test_failed_resolution_publishes_nothing(self):
        async def run():
            h = await Harness().start()
            h.bus.set_reply(":1.52", "/StatusNotifierItem", PROPS, "GetAll", BusCallError("gone"))
            h.registry.register(ADDRESS)
            await settle()
            return h

        h = asyncio.run(run())

        assert h.drain() == []
        assert h.registry.state_of(ADDRESS) == EntryState.REGISTERING
        assert h.registry.snapshots() == []


class TestSupersession:
    """Test queued refreshes coalesce and every started resolution publishes"""

    def test_queued_refreshes_coalesce(self):
        """Test refreshes queued behind a running resolution collapse into one"""
        async def run():
            h = await Harness().start()
            reply, gates = gated_reply([{"Title": "old"}, {"Title": "new"}])
            h.bus.set_reply(":1.52", "/StatusNotifierItem", PROPS, "GetAll", reply)

            h.registry.register(ADDRESS)
            await settle()
            h.registry.refresh(ADDRESS)
            h.registry.refresh(ADDRESS)
            await settle()

            gates[0].set()
            first = await next_message(h.stream)
            gates[1].set()
            second = await next_message(h.stream)
            await settle()
            return h, first, second

        h, first, second = asyncio.run(run())

        assert first.item.title == "old"
        assert second.item.title == "new"
        assert len(h.bus.calls_to("GetAll")) == 2
        assert h.drain() == []

    def test_item_with_continuous_signals_is_published(self):
        """Test an item signalling faster than one round-trip still reaches the stream"""
        async def run():
            h = await Harness().start()
            state = {"frame": 0}

            async def slow_get_all(_body):
                frame = state["frame"]
                await asyncio.sleep(0.05)
                return [{"Title": f"frame-{frame}"}]

            h.bus.set_reply(":1.52", "/StatusNotifierItem", PROPS, "GetAll", slow_get_all)
            h.registry.register(ADDRESS)

            for frame in range(1, 26):
                await asyncio.sleep(0.02)
                state["frame"] = frame
                h.bus.inject_signal(":1.52", "/StatusNotifierItem", ITEM, "NewIcon")
            published_while_signalling = h.drain()

            await asyncio.sleep(0.3)
            return h, published_while_signalling, h.drain()

        h, during, after = asyncio.run(run())

        assert during, "item never published while signals kept arriving"
        assert all(isinstance(message, Update) for message in during + after)
        assert h.registry.state_of(ADDRESS) == EntryState.ACTIVE
        assert (during + after)[-1].item.title == "frame-25"
        assert h.registry.get(ADDRESS).title == "frame-25"

    def test_resolutions_for_one_address_do_not_overlap(self):
        """Test the second GetAll only starts after the first finished"""
        async def run():
            h = await Harness().start()
            reply, gates = gated_reply([{"Title": "one"}, {"Title": "two"}])
            h.bus.set_reply(":1.52", "/StatusNotifierItem", PROPS, "GetAll", reply)

            h.registry.register(ADDRESS)
            await settle()
            h.registry.refresh(ADDRESS)
            await settle()
            in_flight = len(h.bus.calls_to("GetAll"))
            gates[0].set()
            gates[1].set()
            await settle()
            return in_flight, len(h.bus.calls_to("GetAll"))

        in_flight, total = asyncio.run(run())

        assert in_flight == 1
        assert total == 2


class TestSignalRouting:
    """Test item and menu signals trigger a refresh"""

    def _registered(self, props):
        async def run():
            h = await Harness().start()
            h.bus.add_item(":1.52", props=props, layout=layout_node(0), revision=1)
            h.registry.register(ADDRESS)
            await next_message(h.stream)
            return h

        return run()

    def test_item_signal_refreshes(self):
        async def run():
            h = await self._registered({"Title": "before"})
            h.bus.add_item(":1.52", props={"Title": "after"})
            h.bus.inject_signal(":1.52", "/StatusNotifierItem", ITEM, "NewTitle")
            return await next_message(h.stream)

        assert asyncio.run(run()).item.title == "after"

    def test_properties_changed_refreshes(self):
        async def run():
            h = await self._registered({"Status": "Active"})
            h.bus.add_item(":1.52", props={"Status": "NeedsAttention"})
            h.bus.inject_signal(":1.52", "/StatusNotifierItem", PROPS, "PropertiesChanged",
                                [ITEM, {}, ["Status"]])
            return await next_message(h.stream)

        assert asyncio.run(run()).item.status.value == "NeedsAttention"

    def test_menu_signal_on_menu_path_refreshes(self):
        async def run():
            h = await self._registered({"Menu": "/MenuBar"})
            h.bus.inject_signal(":1.52", "/MenuBar", MENU, "LayoutUpdated", [2, 0])
            return await next_message(h.stream)

        assert isinstance(asyncio.run(run()), Update)

    def test_unrelated_signals_are_ignored(self):
        async def run():
            h = await self._registered({"Title": "x"})
            before = len(h.bus.calls_to("GetAll"))
            h.bus.inject_signal(":1.99", "/StatusNotifierItem", ITEM, "NewTitle")
            h.bus.inject_signal(":1.52", "/Elsewhere", ITEM, "NewIcon")
            h.bus.inject_signal(":1.52", "/StatusNotifierItem", PROPS, "PropertiesChanged",
                                ["org.example.Other", {}, []])
            h.bus.inject_signal(":1.52", "/StatusNotifierItem", ITEM, "SomethingElse")
            await settle()
            return before, len(h.bus.calls_to("GetAll")), h.drain()

        before, after, messages = asyncio.run(run())

        assert after == before
        assert messages == []


class TestRemoval:
    """Test removal publishes exactly one Remove"""

    def test_remove_active_item(self):
        async def run():
            h = await Harness().start()
            h.bus.add_item(":1.52", props={"Id": "a"})
            h.registry.register(ADDRESS)
            await next_message(h.stream)

            assert h.registry.remove(ADDRESS) is True
            assert h.registry.remove(ADDRESS) is False
            await settle()
            return h

        h = asyncio.run(run())

        assert h.drain() == [Remove(ADDRESS)]
        assert h.removed == [ADDRESS]
        assert ADDRESS not in h.registry

    def test_remove_during_resolution_suppresses_update(self):
        async def run():
            h = await Harness().start()
            reply, gates = gated_reply([{"Title": "late"}])
            h.bus.set_reply(":1.52", "/StatusNotifierItem", PROPS, "GetAll", reply)

            h.registry.register(ADDRESS)
            await settle()
            h.registry.remove(ADDRESS)
            gates[0].set()
            await settle()
            return h

        h = asyncio.run(run())

        assert h.drain() == [Remove(ADDRESS)]

    def test_remove_owner(self):
        async def run():
            h = await Harness().start()
            other_path = NotifierAddress(":1.52", "/org/ayatana/NotificationItem/b")
            other_owner = NotifierAddress(":1.60")
            for address in (ADDRESS, other_path, other_owner):
                h.bus.add_item(address.destination, address.path, {"Id": address.path})
                h.registry.register(address)
            await settle()
            h.drain()

            removed = h.registry.remove_owner(":1.52")
            return h, removed, other_owner

        h, removed, other_owner = asyncio.run(run())

        assert len(removed) == 2
        assert h.registry.addresses() == [other_owner]
        assert sum(isinstance(m, Remove) for m in h.drain()) == 2

    def test_refresh_after_remove_is_ignored(self):
        async def run():
            h = await Harness().start()
            h.bus.add_item(":1.52", props={})
            h.registry.register(ADDRESS)
            h.registry.remove(ADDRESS)
            return h.registry.refresh(ADDRESS)

        assert asyncio.run(run()) is False


class TestLookups:
    """Test command target lookups"""

    def _two_items(self):
        async def run():
            h = await Harness().start()
            h.bus.add_item(":1.52", props={"Menu": "/MenuBar"}, layout=layout_node(0))
            second = NotifierAddress(":1.52", "/Second")
            h.bus.add_item(":1.52", "/Second", {"Menu": "/SecondMenu"}, layout=layout_node(0))
            h.registry.register(ADDRESS)
            h.registry.register(second)
            await settle()
            return h, second

        return asyncio.run(run())

    def test_find_by_menu_path(self):
        h, second = self._two_items()

        assert h.registry.find(":1.52", "/MenuBar") == ADDRESS
        assert h.registry.find(":1.52/Second", "/SecondMenu") == second
        assert h.registry.find(":1.52", "/Unknown") is None
        assert h.registry.find(":1.99", "/MenuBar") is None

    def test_find_item_requires_unique_match(self):
        h, second = self._two_items()

        assert h.registry.find_item(":1.52") is None
        assert h.registry.find_item(":1.52", "/Second") == second

    def test_snapshots_in_registration_order(self):
        h, second = self._two_items()

        assert [u.address for u in h.registry.snapshots()] == [ADDRESS, second]


class TestConnectionLoss:
    def test_connection_loss_during_resolution_is_reported(self):
        async def run():
            h = await Harness().start()
            h.bus.set_reply(":1.52", "/StatusNotifierItem", PROPS, "GetAll", BusConnectionError("reset"))
            h.registry.register(ADDRESS)
            await settle()
            return h

        h = asyncio.run(run())

        assert len(h.lost) == 1
        assert isinstance(h.lost[0], BusConnectionError)

    def test_subscription_failure_is_reported(self):
        async def run():
            h = await Harness().start()
            h.bus.drop_connection()
            await settle()
            return h

        h = asyncio.run(run())

        assert h.lost
