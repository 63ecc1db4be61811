"""
Logging setup for camtool.

Every module logs through logging.getLogger(__name__); this module only
wires the package logger to a handler and installs the de-duplication
filter. Per-frame callbacks re-evaluate the same conditions over and over,
so a repeated message is dropped while it is still inside the cooldown
window.
"""

import logging
import time
from typing import Callable, Dict, Optional, Tuple

PACKAGE_LOGGER = "camtool"

DEFAULT_COOLDOWN = 2.0

# DevMode option value -> logging level
DEV_LEVELS: Dict[int, int] = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: logging.DEBUG,
}

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


class CooldownFilter(logging.Filter):
    """
    Drop records whose (level, message) was already emitted within `cooldown` seconds.
    """

    def __init__(self, cooldown: float = DEFAULT_COOLDOWN, clock: Optional[Callable[[], float]] = None):
        super().__init__()
        self.cooldown = cooldown
        self._clock = clock or time.monotonic
        self._last_seen: Dict[Tuple[int, str], float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        if self.cooldown <= 0:
            return True

        now = self._clock()
        key = (record.levelno, record.getMessage())
        last = self._last_seen.get(key)
        if last is not None and now - last < self.cooldown:
            return False

        self._last_seen[key] = now
        # Forget stale entries so the table does not grow without bound
        if len(self._last_seen) > 512:
            horizon = now - self.cooldown
            self._last_seen = {k: t for k, t in self._last_seen.items() if t >= horizon}
        return True

    def reset(self) -> None:
        self._last_seen.clear()


def level_for_dev_mode(dev_mode: int) -> int:
    """Clamp a DevMode value into 0..3 and return the matching logging level."""
    return DEV_LEVELS[max(0, min(3, int(dev_mode)))]


def configure_logging(
    dev_mode: int = 0,
    cooldown: float = DEFAULT_COOLDOWN,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Safe to call repeatedly (e.g. when DevMode changes): previously installed
    handlers are replaced, never stacked.

    Args:
        dev_mode: 0 (errors only) to 3 (everything)
        cooldown: De-duplication window in seconds; 0 disables it
        handler: Handler to attach (default: StreamHandler on stderr)

    Returns:
        The configured "camtool" logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(logger.handlers):
        if getattr(existing, "_camtool_handler", False):
            logger.removeHandler(existing)

    if handler is None:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._camtool_handler = True
    handler.addFilter(CooldownFilter(cooldown))

    logger.addHandler(handler)
    logger.setLevel(level_for_dev_mode(dev_mode))
    return logger
