"""配置键常量定义 - 类型安全的配置访问

使用示例:
    config.get_setting(ConfigKeys.WATCHER_BUS_NAME)
    config.get_setting(ConfigKeys.MENU_MAX_DEPTH)
"""


class ConfigKeys:
    """配置键常量类 - 所有配置路径的中央定义"""

    # ==================== Watcher ====================
    WATCHER_BUS_NAME = "watcher.bus_name"
    """Watcher 申请的总线名字 (str)"""

    WATCHER_OBJECT_PATH = "watcher.object_path"
    """Watcher 对象路径 (str)"""

    WATCHER_FALLBACK_TO_HOST = "watcher.fallback_to_host"
    """名字被占用时是否以 host 身份接入 (bool)"""

    # ==================== Host ====================
    HOST_REGISTER = "host.register"
    """启动时注册默认 StatusNotifierHost (bool)"""

    HOST_UNIQUE_ID = "host.unique_id"
    """默认 host 名字后缀 (str)"""

    # ==================== Bus ====================
    BUS_TYPE = "bus.type"
    """总线类型 (str): "session" | "system" """

    BUS_ADDRESS = "bus.address"
    """总线地址覆盖 (str | None)"""

    BUS_CALL_TIMEOUT = "bus.call_timeout"
    """单次远端调用超时 (float): 秒"""

    # ==================== Icon ====================
    ICON_PREFERENCE = "icon.preference"
    """同时存在像素图和图标名时的优先级 (str): "pixmap" | "name" """

    ICON_TARGET_SIZE = "icon.target_size"
    """像素图目标尺寸 (int | None)；None 表示取最大"""

    ICON_DEFAULT_NAME = "icon.default_name"
    """兜底图标名 (str | None)"""

    # ==================== Menu ====================
    MENU_MAX_DEPTH = "menu.max_depth"
    """菜单树最大深度 (int)"""

    # ==================== Commands ====================
    COMMANDS_QUEUE_SIZE = "commands.queue_size"
    """命令队列容量 (int)：至少为 1"""

    # ==================== Logging ====================
    LOGGING_LEVEL = "logging.level"
    LOGGING_CONSOLE_OUTPUT = "logging.console_output"
    LOGGING_ENABLED_CATEGORIES = "logging.enabled_categories"

