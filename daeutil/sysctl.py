"""Read and write kernel parameters, restoring watched ones when something else changes them."""

from __future__ import annotations

import logging
import os
import threading

log = logging.getLogger(__name__)

SYSCTL_PREFIX_PATH = "/proc/sys/"


class SysctlManager:
    """Sets sysctl values and keeps watched values at what was set."""

    def __init__(self, prefix: str = SYSCTL_PREFIX_PATH, poll_interval: float | None = 1.0) -> None:
        self._prefix = prefix
        self._lock = threading.Lock()
        self._expectations: dict[str, str] = {}
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        if poll_interval:
            self._thread = threading.Thread(
                target=self._watch, args=(poll_interval,), name="sysctl-watch", daemon=True
            )
            self._thread.start()

    def __enter__(self) -> "SysctlManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def key(self, fmt: str, *args: object) -> str:
        """Path of a dotted sysctl name; dots in ``args`` are kept as they are."""
        name = fmt.replace(".", "/")
        if args:
            name = name % args
        return os.path.join(self._prefix, name)

    def get(self, path: str) -> str:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read().strip()

    def set(self, path: str, value: str, watch: bool = False) -> None:
        """Write ``value``; if ``watch``, restore it whenever it is changed later."""
        if watch:
            with self._lock:
                self._expectations[path] = value
        with open(path, "w", encoding="utf-8") as f:
            f.write(value)

    def check(self) -> list[str]:
        """Restore every watched value that differs; return the paths restored."""
        with self._lock:
            expectations = dict(self._expectations)
        restored = []
        for path, expected in expectations.items():
            try:
                value = self.get(path)
            except OSError as exc:
                log.error("failed to read sysctl file %s: %s", path, exc)
                value = ""
            if value == expected:
                continue
            log.info("sysctl %s has unexpected value %s, expected %s", path, value, expected)
            try:
                with open(path, "w", encoding="utf-8") as f:
                    f.write(expected)
            except OSError as exc:
                log.error("failed to write sysctl file %s: %s", path, exc)
                continue
            restored.append(path)
        return restored

    def close(self) -> None:
        """Stop watching."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None

    def _watch(self, interval: float) -> None:
        while not self._stop.wait(interval):
            try:
                self.check()
            except Exception:
                log.exception("sysctl watcher error")