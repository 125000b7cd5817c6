from __future__ import annotations
import faulthandler
import functools
import os
import sys
import threading
import traceback
from datetime import datetime, timezone
from typing import Callable, Optional
import logging

logger = logging.getLogger("Errors")


class FxError(Exception):
    """Base class for errors that end a script with exit status 1."""


class UsageError(FxError):
    """Bad flags, bad option values or wrong number of file arguments."""

    def __init__(self, message: str, usage: str = ""):
        super().__init__(message)
        self.usage = usage


class InputError(FxError):
    """An input image could not be read."""


class OutputError(FxError):
    """The result could not be written where the caller asked."""


class EffectError(FxError):
    """The inputs are readable but cannot be processed as requested."""


class PresetError(FxError):
    """A preset file is unreadable or does not match the script."""


# Keep a strong ref so it isn't GC'd
_faulthandler_file: Optional[object] = None
_dump_dir: Optional[str] = None


def _write_dump(prefix: str, exc_text: str) -> None:
    if not _dump_dir:
        return
    os.makedirs(_dump_dir, exist_ok=True)
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    path = os.path.join(_dump_dir, f"{prefix}_{ts}.dump")
    with open(path, "w", encoding="utf-8") as f:
        f.write(exc_text)
    logger.error("Wrote exception dump: %s", path)


def install_global_exception_hooks(dump_dir: Optional[str] = None) -> None:
    """
    Capture: sys.excepthook, threading.excepthook, and native crashes via
    faulthandler. Dump files are written only when ``dump_dir`` is set.
    """
    global _faulthandler_file, _dump_dir
    _dump_dir = dump_dir

    # 1) Python uncaught exceptions
    def excepthook(exc_type, exc, tb):
        buf = "".join(traceback.format_exception(exc_type, exc, tb))
        logger.critical("Uncaught exception:\n%s", buf)
        _write_dump("uncaught", buf)

    sys.excepthook = excepthook

    # 2) Threading exceptions (watchdog observer threads)
    def threading_hook(args: threading.ExceptHookArgs):
        buf = "".join(traceback.format_exception(args.exc_type, args.exc_value, args.exc_traceback))
        logger.critical("Thread exception in %s:\n%s", getattr(args.thread, "name", "<unknown>"), buf)
        _write_dump("thread", buf)

    threading.excepthook = threading_hook

    # 3) Faulthandler for native crashes: requires a *binary* file kept alive
    if dump_dir and _faulthandler_file is None:
        try:
            os.makedirs(dump_dir, exist_ok=True)
            _faulthandler_file = open(os.path.join(dump_dir, "crash.dump"), "ab", buffering=0)
            faulthandler.enable(file=_faulthandler_file, all_threads=True)
            logger.debug("Faulthandler enabled in %s", dump_dir)
        except OSError as e:
            logger.warning("Failed to enable faulthandler: %s", e)


def safe_callback(fn: Callable) -> Callable:
    """Decorator for watcher callbacks: logs exceptions instead of letting them kill the observer."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except FxError as e:
            logger.error("%s failed: %s", getattr(fn, "__name__", str(fn)), e)
        except Exception:
            buf = traceback.format_exc()
            logger.error("Exception in callback %s:\n%s", getattr(fn, "__name__", str(fn)), buf)
            _write_dump("callback", buf)
        return None
    return wrapper
