from __future__ import annotations
import logging
import threading
import time
from typing import Callable, Optional


class EventLogger:
    """Session logger shared by the capture thread, the worker and the UI.

    Every record goes to the `logging` logger of the same name; it can also be
    forwarded to a UI callback and appended to a session log file.
    """

    def __init__(self, name: str = "face_guidance", ui_logger: Optional[Callable[[str], None]] = None,
                 log_file_path: Optional[str] = None):
        self.name = name
        self.ui_logger = ui_logger
        self.log_file_path = log_file_path
        self._std = logging.getLogger(name)
        self._file = None
        self._lock = threading.Lock()
        if log_file_path:
            try:
                self._file = open(log_file_path, "a", encoding="utf-8")
            except OSError as e:
                self._std.warning("cannot open session log %s: %s", log_file_path, e)
                self._file = None

    def _emit(self, level: int, msg: str):
        self._std.log(level, msg)
        ts = time.strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{ts}] {self.name} {logging.getLevelName(level)}: {msg}"
        if self.ui_logger:
            try:
                self.ui_logger(line)
            except Exception:
                pass
        if self._file:
            with self._lock:
                try:
                    self._file.write(line + "\n")
                    self._file.flush()
                except (OSError, ValueError):
                    pass

    def info(self, msg: str):
        self._emit(logging.INFO, msg)

    def debug(self, msg: str):
        self._emit(logging.DEBUG, msg)

    def warning(self, msg: str):
        self._emit(logging.WARNING, msg)

    def error(self, msg: str):
        self._emit(logging.ERROR, msg)

    def close(self):
        with self._lock:
            if self._file:
                try:
                    self._file.close()
                except OSError:
                    pass
                self._file = None
