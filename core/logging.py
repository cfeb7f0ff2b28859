import logging
import os
from logging.handlers import TimedRotatingFileHandler
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s"


def configure_logging(
    log_file: Optional[str] = "logs/signal_log.txt",
    level: Union[int, str] = logging.INFO,
) -> logging.Logger:
    """
    Route the root logger to the console and, if `log_file` is set, to a file
    rotated at midnight with 7 days kept. `level` may be a name like "DEBUG".
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = []

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        rotating = TimedRotatingFileHandler(log_file, when="midnight", backupCount=7, encoding="utf-8")
        rotating.setFormatter(formatter)
        handlers.append(rotating)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    handlers.append(console)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    return logging.getLogger()
