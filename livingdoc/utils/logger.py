"""Logging setup shared by all LivingDoc modules"""
import logging
import os
import sys
from typing import Optional

from colorama import Fore, Style, init as colorama_init

ROOT_LOGGER = "livingdoc"
DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LEVEL_COLORS = {
    logging.DEBUG: Fore.CYAN,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name for console output"""

    def __init__(self, fmt: str = DEFAULT_FORMAT, colored: bool = True):
        super().__init__(fmt, datefmt="%H:%M:%S")
        self.colored = colored

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if not self.colored:
            return message
        color = _LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{message}{Style.RESET_ALL}"


def _configure_root(level: Optional[str] = None, colored: bool = True) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        colorama_init()
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredFormatter(colored=colored))
        root.addHandler(handler)
        root.setLevel(os.environ.get("LIVINGDOC_LOG_LEVEL", "INFO").upper())
    if level:
        root.setLevel(level.upper())
    return root


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Return a logger under the livingdoc namespace"""
    _configure_root()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(level.upper())
    return logger


def configure_logging(level: str = "INFO", colored: bool = True) -> None:
    """Apply the logging section of the configuration"""
    root = _configure_root(level)
    for handler in root.handlers:
        if isinstance(handler.formatter, ColoredFormatter):
            handler.formatter.colored = colored
