#!/usr/bin/env python3
"""notchdeck — Entry point.

A hover-activated panel hanging from the top of the screen: move the
pointer into the small zone at the top-center and it expands with now
playing, system stats, weather, network, reminders and a focus timer.
Move away and it collapses again.

Usage:
    python3 main.py                     # Tk panel, panel.yaml in cwd
    python3 main.py --config my.yaml    # Another preferences file
    python3 main.py --headless --serve  # No window, web status only
    python3 main.py --log-level DEBUG   # Verbose logging
"""

__version__ = "1.0.0"

import argparse
import asyncio
import logging
import signal

from core.event_bus import EventBus
from core.geometry import Point
from core.models import ActivationMode
from core.panel import LoggingPanelController
from core.preferences import Preferences
from core.runtime import PanelRuntime

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="notchdeck — hover-activated status panel",
    )
    parser.add_argument(
        "--config", default="panel.yaml",
        help="Path to preferences YAML (default: panel.yaml)",
    )
    parser.add_argument(
        "--headless", action="store_true",
        help="No window: log panel commands instead of drawing them",
    )
    parser.add_argument(
        "--expanded", action="store_true",
        help="Start expanded instead of collapsed",
    )
    parser.add_argument(
        "--serve", action="store_true",
        help="Also run the web status server",
    )
    parser.add_argument(
        "--host", default="127.0.0.1",
        help="Web status bind address (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port", type=int, default=8765,
        help="Web status port (default: 8765)",
    )
    parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--version", action="version",
        version=f"notchdeck {__version__}",
    )
    return parser.parse_args(argv)


def setup_logging(level_name: str) -> None:
    """Configure root logger with a consistent format."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )


async def run_panel(args, prefs: Preferences):
    bus = EventBus()
    initial = ActivationMode.EXPANDED if args.expanded else ActivationMode.COLLAPSED
    root = None

    if args.headless:
        controller = LoggingPanelController()
        runtime = PanelRuntime(
            prefs, controller,
            pointer=lambda: Point(0, 0),
            buttons=lambda: False,
            displays=lambda: [],
            bus=bus,
            initial_mode=initial,
        )
    else:
        import tkinter as tk
        from ui.panel_window import TkDisplays, TkPanelController, TkPointer

        root = tk.Tk()
        controller = TkPanelController(root, bus)
        pointer = TkPointer(root)
        runtime = PanelRuntime(
            prefs, controller,
            pointer=pointer.position,
            buttons=pointer.buttons,
            displays=TkDisplays(root),
            bus=bus,
            initial_mode=initial,
        )
        controller.bind_runtime(runtime)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runtime.stop)
        except NotImplementedError:
            pass

    if args.serve:
        from web_app import serve_in_background
        serve_in_background(runtime, host=args.host, port=args.port)

    try:
        await runtime.run()
    finally:
        if root is not None:
            root.destroy()


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level)
    logger.info("notchdeck v%s starting", __version__)

    prefs = Preferences.load(args.config)
    try:
        asyncio.run(run_panel(args, prefs))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
