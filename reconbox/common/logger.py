import logging
import os


class CustomFormatter(logging.Formatter):
    grey = "\x1b[38;20m"
    cyan = "\x1b[36;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    reset = "\x1b[0m"
    format = "\x1b[1m%(asctime)s [%(levelname)s]\x1b[0m - %(name)s - %(message)s"

    FORMATS = {
        logging.DEBUG: cyan + format + reset,
        logging.INFO: grey + format + reset,
        logging.WARNING: yellow + format + reset,
        logging.ERROR: red + format + reset,
        logging.CRITICAL: bold_red + format + reset,
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def resolve_level(level=None) -> int:
    """
    Turn a level name (or None) into a logging level.

    Falls back to RECONBOX_LOG_LEVEL, then INFO. Unknown names map to INFO.
    """
    if level is None:
        level = os.getenv("RECONBOX_LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    name = str(level).upper()
    if name not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        return logging.INFO
    return getattr(logging, name)


def setup_logger(level=None):
    ColorfulHandler = logging.StreamHandler()
    ColorfulHandler.setFormatter(CustomFormatter())

    logging.addLevelName(logging.ERROR, "ERRR")
    logging.addLevelName(logging.WARNING, "WARN")

    logging.basicConfig(level=resolve_level(level), handlers=[ColorfulHandler])
