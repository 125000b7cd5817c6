import logging
import os
from logging.handlers import RotatingFileHandler
import sys
from typing import Optional

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_log_file: Optional[str] = None

def setup_logging(level=logging.WARNING, log_file: Optional[str] = None) -> None:
    """Console logging on stderr (stdout carries script output) plus an optional rotating file."""
    global _log_file

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG if log_file else level)

    fmt = logging.Formatter(_FORMAT)

    ch = logging.StreamHandler(stream=sys.stderr)
    ch.setFormatter(fmt)
    ch.setLevel(level)
    root.addHandler(ch)

    _log_file = None
    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        fh = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=3)
        fh.setFormatter(fmt)
        fh.setLevel(logging.DEBUG)
        root.addHandler(fh)
        _log_file = os.path.abspath(log_file)

    # Tame noisy libs
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.INFO)

def log_path() -> Optional[str]:
    return _log_file
