import logging
from collections import deque
from typing import Deque, Optional

from core.events import ACTIVITY_LOG, event_bus


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ANSI colors per subsystem tag
COLOR_MAP = {
    "PROOF": "\033[35m",
    "CALLDATA": "\033[34m",
    "CHAIN": "\033[36m",
    "WALLET": "\033[33m",
    "NULLIFIER": "\033[31m",
    "HISTORY": "\033[32m",
}
RESET = "\033[0m"


def colorize(msg: str) -> str:
    for key, color in COLOR_MAP.items():
        if f"[{key}]" in msg:
            return f"{color}{msg}{RESET}"
    return msg


class ActivityLogHandler(logging.Handler):
    """Logging handler that buffers records and pushes them to the event bus."""

    def __init__(self, buffer: Optional[Deque[str]] = None, maxlen: int = 1000):
        super().__init__()
        self.buffer: Deque[str] = buffer if buffer is not None else deque(maxlen=maxlen)

    def emit(self, record: logging.LogRecord) -> None:
        # Records about failing subscribers would re-enter the bus
        if record.name == "core.events":
            return
        try:
            msg = self.format(record)
            self.buffer.append(msg)
            event_bus.publish_nowait(ACTIVITY_LOG, {"message": msg, "level": record.levelname})
        except Exception:
            self.handleError(record)


class ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return colorize(super().format(record))


def setup_logging(verbose: bool = False, color: bool = True) -> ActivityLogHandler:
    """Configure root logging for the CLI and attach the activity handler."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    console = logging.StreamHandler()
    formatter_cls = ColorFormatter if color else logging.Formatter
    console.setFormatter(formatter_cls(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console)

    activity = ActivityLogHandler()
    activity.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    activity.setLevel(logging.INFO)
    root.addHandler(activity)

    # Third-party chatter
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)
    return activity
