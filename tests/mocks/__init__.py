"""Mock 对象库"""
from .bus_mock import FakeBusTransport, FakeSubscription, layout_node, next_message, settle

__all__ = [
    'FakeBusTransport',
    'FakeSubscription',
    'layout_node',
    'next_message',
    'settle',
]
