"""NotifierAddress Tests

Tests for normalizing RegisterStatusNotifierItem arguments into item addresses.
"""

import pytest

from traywatch.core.models import NotifierAddress
from traywatch.utils import NotifierAddressError


class TestRegistrationForms:
    """Test the three accepted registration argument forms"""

    def test_object_path_uses_sender(self):
        """Test a bare object path is paired with the caller's unique name"""
        address = NotifierAddress.from_notifier_service("/org/ayatana/NotificationItem/foo", ":1.52")

        assert address.destination == ":1.52"
        assert address.path == "/org/ayatana/NotificationItem/foo"

    def test_unique_name_gets_default_path(self):
        """Test a unique bus name alone maps to /StatusNotifierItem"""
        address = NotifierAddress.from_notifier_service(":1.52")

        assert address == NotifierAddress(":1.52", "/StatusNotifierItem")

    def test_well_known_name_without_sender(self):
        """Test a well-known name is kept when the sender is unknown"""
        address = NotifierAddress.from_notifier_service("org.kde.StatusNotifierItem-1234-1")

        assert address.destination == "org.kde.StatusNotifierItem-1234-1"
        assert address.path == "/StatusNotifierItem"

    def test_well_known_name_resolves_to_sender(self):
        """Test a well-known name is replaced by the sender's unique name"""
        address = NotifierAddress.from_notifier_service("org.kde.StatusNotifierItem-1234-1", ":1.77")

        assert address == NotifierAddress(":1.77", "/StatusNotifierItem")

    def test_name_and_path_split_at_first_slash(self):
        """Test 'name/path' splits at the first slash"""
        address = NotifierAddress.from_notifier_service(":1.52/org/foo/Item")

        assert address.destination == ":1.52"
        assert address.path == "/org/foo/Item"

    def test_unique_name_is_not_replaced(self):
        """Test an explicit unique name wins over the sender"""
        address = NotifierAddress.from_notifier_service(":1.52/Item", ":1.99")

        assert address.destination == ":1.52"


class TestInvalidRegistrations:
    """Test rejected registration arguments"""

    @pytest.mark.parametrize("service", ["", "   "])
    def test_empty_service_rejected(self, service):
        """Test empty strings raise NotifierAddressError"""
        with pytest.raises(NotifierAddressError):
            NotifierAddress.from_notifier_service(service, ":1.52")

    def test_path_without_sender_rejected(self):
        """Test a bare path needs a sender"""
        with pytest.raises(NotifierAddressError) as exc_info:
            NotifierAddress.from_notifier_service("/StatusNotifierItem")

        assert exc_info.value.service == "/StatusNotifierItem"


class TestAddressIdentity:
    """Test hashing and rendering"""

    def test_equal_addresses_share_registry_key(self):
        """Test addresses are hashable value objects"""
        first = NotifierAddress.from_notifier_service(":1.52")
        second = NotifierAddress(":1.52", "/StatusNotifierItem")

        assert first == second
        assert len({first, second}) == 1

    def test_service_string(self):
        """Test service_string is destination followed by path"""
        address = NotifierAddress(":1.52", "/StatusNotifierItem")

        assert address.service_string == ":1.52/StatusNotifierItem"
        assert str(address) == address.service_string
        assert NotifierAddress.parse(address.service_string) == address
