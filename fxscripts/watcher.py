from __future__ import annotations
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
from typing import Callable, List, Optional
import logging
import os

from .io_utils import is_image_path

logger = logging.getLogger(__name__)


class _EnqueueHandler(FileSystemEventHandler):
    """Forwards image files that appear in the watched folder."""

    def __init__(self, callback: Callable[[List[str]], None]):
        self.cb = callback

    def on_created(self, event):
        if event.is_directory:
            return
        if is_image_path(event.src_path):
            self.cb([event.src_path])

    def on_moved(self, event):
        # editors and downloaders often write a temp file, then rename it
        if event.is_directory:
            return
        if is_image_path(event.dest_path):
            self.cb([event.dest_path])


class FolderWatcher:
    """Runs a watchdog observer on one input folder (not recursive)."""

    def __init__(self, callback: Callable[[List[str]], None]):
        self._obs: Optional[Observer] = None
        self._path: Optional[str] = None
        self._cb = callback

    def start(self, path: str):
        self.stop()
        self._path = os.path.abspath(path)
        self._obs = Observer()
        self._obs.schedule(_EnqueueHandler(self._cb), self._path, recursive=False)
        self._obs.start()
        logger.debug("Observer started on %s", self._path)

    def stop(self):
        if self._obs:
            self._obs.stop()
            self._obs.join(timeout=2.0)
            logger.debug("Observer on %s stopped", self._path)
            self._obs = None
            self._path = None

    def is_running(self) -> bool:
        return self._obs is not None

    def path(self) -> Optional[str]:
        """Absolute path of the watched folder, or None when stopped."""
        return self._path
