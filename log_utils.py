import logging
import os
from datetime import datetime
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def _make_file_handler(log_dir: str) -> logging.FileHandler:
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    handler = logging.FileHandler(os.path.join(log_dir, f"run_{timestamp}.log"))
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(name: str = __name__, level: Union[int, str] = logging.INFO,
                  log_dir: Optional[str] = None) -> logging.Logger:
    if isinstance(level, str):
        name_of_level, level = level, logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level {name_of_level!r}")

    root = logging.getLogger()
    if not root.handlers:
        handlers = [logging.StreamHandler()]
        if log_dir:
            handlers.append(_make_file_handler(log_dir))
        logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)
    else:
        # logging is already configured; only add the requested log file
        root.setLevel(level)
        if log_dir:
            root.addHandler(_make_file_handler(log_dir))
    return logging.getLogger(name)
