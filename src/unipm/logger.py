import logging
import os


class Colors:
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"


class ColorFormatter(logging.Formatter):
    COLOR_MAP = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.RED + Colors.BOLD,
    }

    def format(self, record):
        color = self.COLOR_MAP.get(record.levelno, Colors.RESET)
        message = super().format(record)
        return f"{color}{message}{Colors.RESET}"


def _default_level() -> int:
    # UNIPM_DEBUG doubles as the verbose switch
    if os.environ.get("UNIPM_DEBUG"):
        return logging.DEBUG
    return logging.INFO


def setup_logger(name="unipm", level=None):
    logger = logging.getLogger(name)
    if level is None:
        level = _default_level()
    logger.setLevel(level)
    # Prevent adding multiple handlers in case of repeated calls
    if not logger.hasHandlers():
        ch = logging.StreamHandler()
        ch.setFormatter(ColorFormatter("%(message)s"))
        logger.addHandler(ch)
    return logger


def set_verbose(verbose: bool) -> None:
    setup_logger().setLevel(logging.DEBUG if verbose else logging.INFO)
