#!/usr/bin/env python3
"""
traywatch - Application Entry Point

Thin launcher around TrayEngine:
- prints every tray message as one JSON line on stdout
- reads JSON commands from stdin, one per line

Usage:
  python app.py                          # Run with $XDG_CONFIG_HOME/traywatch/config.json
  python app.py --config path/to.json    # Use another configuration file
  python app.py --dev --log-level DEBUG  # Verbose console logging

Command examples (stdin):
  {"type": "menu_item_clicked", "submenu_id": 3, "menu_path": "/MenuBar", "notifier_address": ":1.52"}
  {"type": "activate", "notifier_address": ":1.52", "x": 0, "y": 0}
"""

import argparse
import asyncio
import json
import os
import signal
import sys
import threading

from loguru import logger as loguru_logger

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "src"))

from traywatch import ConfigService, EngineSettings, TrayEngine  # noqa: E402
from traywatch.core.models import command_from_dict  # noqa: E402
from traywatch.utils import TrayWatchError, app_logger, logger  # noqa: E402


def setup_logging(config: ConfigService, level: str = None, dev: bool = False) -> None:
    """配置两层日志：统一日志系统读取配置，loguru 输出底层调试信息"""
    logger.set_config_service(config)
    if level:
        logger.set_log_level(level)
    if dev:
        logger.set_console_output(True)

    loguru_logger.remove()
    loguru_logger.add(
        sys.stderr,
        level="DEBUG" if dev else logger.get_log_level().name,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{function} - {message}",
    )


def start_stdin_reader(loop: asyncio.AbstractEventLoop) -> asyncio.Queue:
    """后台守护线程读取 stdin，行通过队列交给事件循环；EOF 时放入 None"""
    lines: asyncio.Queue = asyncio.Queue()

    def reader():
        try:
            for line in sys.stdin:
                loop.call_soon_threadsafe(lines.put_nowait, line)
            loop.call_soon_threadsafe(lines.put_nowait, None)
        except RuntimeError:
            # 事件循环已关闭
            return

    # 守护线程：退出时不等待阻塞中的 readline
    threading.Thread(target=reader, name="stdin-reader", daemon=True).start()
    return lines


async def read_commands(engine: TrayEngine) -> None:
    """逐行读取 stdin 上的 JSON 命令并投递到命令通道"""
    lines = start_stdin_reader(asyncio.get_running_loop())
    while True:
        line = await lines.get()
        if line is None:
            return
        line = line.strip()
        if not line:
            continue
        try:
            command = command_from_dict(json.loads(line))
        except ValueError as e:
            print(f"[WARN] Ignoring command: {e}", file=sys.stderr)
            continue
        engine.commands.send(command)


async def run(settings: EngineSettings) -> int:
    engine = await TrayEngine.connect(settings)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, engine.hub.close)

    reader = asyncio.ensure_future(read_commands(engine))
    try:
        async for message in engine.messages():
            print(json.dumps(message.to_dict(), ensure_ascii=False), flush=True)
    finally:
        reader.cancel()
    return 0


def main():
    """Main application entry point"""
    parser = argparse.ArgumentParser(description="StatusNotifierWatcher/Host engine")
    parser.add_argument("--config", help="Path to the JSON configuration file")
    parser.add_argument("--dev", action="store_true", help="Development mode: console logging")
    parser.add_argument("--log-level", help="Override logging.level (DEBUG, INFO, ...)")

    args = parser.parse_args()

    config = ConfigService(args.config)
    if not config.start():
        print(f"[ERROR] {config.last_error}", file=sys.stderr)
        sys.exit(2)

    setup_logging(config, args.log_level, args.dev)
    app_logger.log_startup()

    settings = EngineSettings.from_config(config.get_all_settings())
    try:
        exit_code = asyncio.run(run(settings))
    except TrayWatchError as e:
        app_logger.log_error(e, "main")
        print(f"[ERROR] {e.message}", file=sys.stderr)
        for suggestion in e.recovery_suggestions:
            print(f"        - {suggestion}", file=sys.stderr)
        exit_code = 1
    finally:
        app_logger.log_shutdown()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
