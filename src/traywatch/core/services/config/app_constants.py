"""Application identity, path and bus protocol constants."""

import os
from pathlib import Path


class AppInfo:
    """Application metadata constants."""

    NAME = "traywatch"
    VERSION = "0.3.0"
    DESCRIPTION = "StatusNotifierWatcher/Host engine for desktop tray widgets"


class Paths:
    """Path and filename constants."""

    CONFIG_DIR_NAME = "traywatch"
    CONFIG_FILE_NAME = "config.json"

    @staticmethod
    def config_dir() -> Path:
        config_home = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(config_home) / Paths.CONFIG_DIR_NAME

    @staticmethod
    def config_file() -> Path:
        return Paths.config_dir() / Paths.CONFIG_FILE_NAME


class DBusNames:
    """Protocol-level names; stable across implementations."""

    WATCHER_NAME = "org.kde.StatusNotifierWatcher"
    WATCHER_PATH = "/StatusNotifierWatcher"
    WATCHER_INTERFACE = "org.kde.StatusNotifierWatcher"
    HOST_NAME_PREFIX = "org.freedesktop.StatusNotifierHost"

    ITEM_INTERFACE = "org.kde.StatusNotifierItem"
    ITEM_INTERFACES = ("org.kde.StatusNotifierItem", "org.freedesktop.StatusNotifierItem")
    ITEM_SIGNALS = (
        "NewIcon",
        "NewTitle",
        "NewStatus",
        "NewAttentionIcon",
        "NewOverlayIcon",
        "NewToolTip",
        "NewMenu",
    )

    MENU_INTERFACE = "com.canonical.dbusmenu"
    MENU_SIGNALS = ("LayoutUpdated", "ItemsPropertiesUpdated")

    BUS_NAME = "org.freedesktop.DBus"
    BUS_PATH = "/org/freedesktop/DBus"
    BUS_INTERFACE = "org.freedesktop.DBus"
    PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
    INTROSPECTABLE_INTERFACE = "org.freedesktop.DBus.Introspectable"

    ERROR_UNKNOWN_METHOD = "org.freedesktop.DBus.Error.UnknownMethod"
    ERROR_UNKNOWN_PROPERTY = "org.freedesktop.DBus.Error.UnknownProperty"
    ERROR_UNKNOWN_INTERFACE = "org.freedesktop.DBus.Error.UnknownInterface"
    ERROR_PROPERTY_READ_ONLY = "org.freedesktop.DBus.Error.PropertyReadOnly"
    ERROR_INVALID_ARGS = "org.freedesktop.DBus.Error.InvalidArgs"


class Protocol:
    """Tray protocol defaults."""

    PROTOCOL_VERSION = 0
    DEFAULT_MENU_MAX_DEPTH = 16
    DEFAULT_CALL_TIMEOUT = 5.0
    DEFAULT_ICON_NAME = "application-x-executable"
