"""pytest 配置和全局 fixtures"""
import sys
from pathlib import Path

import pytest

# 添加 src 和 tests 到 path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from traywatch.core.models import IconPixmap, NotifierAddress  # noqa: E402
from traywatch.core.services.config import EngineSettings  # noqa: E402
from traywatch.utils import logger  # noqa: E402


@pytest.fixture(autouse=True)
def quiet_logging():
    """测试期间不写日志文件、不输出到控制台"""
    logger.set_log_file(None)
    logger.set_console_output(False)
    yield


# ============= 数据 Fixtures =============

@pytest.fixture
def item_address():
    return NotifierAddress(":1.52", "/StatusNotifierItem")


@pytest.fixture
def settings():
    """测试用引擎设置：没有兜底图标，方便断言 NoIcon"""
    return EngineSettings(default_icon=None, call_timeout=1.0)


def make_pixmap(width: int, height: int, argb=(0xFF, 0x10, 0x20, 0x30)) -> IconPixmap:
    """生成纯色 ARGB 像素图"""
    return IconPixmap(width, height, bytes(argb) * (width * height))


@pytest.fixture
def pixmap_factory():
    return make_pixmap
