"""Per-key task queues so that packets of one flow are handled in order."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

log = logging.getLogger(__name__)

DEFAULT_NAT_TIMEOUT = 180.0
UDP_TASK_QUEUE_LENGTH = 128

UdpTask = Callable[[], None]

_reemit_workers = ThreadPoolExecutor(
    max_workers=UDP_TASK_QUEUE_LENGTH // 2, thread_name_prefix="udp-reemit"
)


def _noop() -> None:
    pass


class UdpTaskQueue:
    """Runs the tasks of one key one after another; retires itself when idle."""

    def __init__(self, key: str, pool: "UdpTaskPool", aging_time: float) -> None:
        self.key = key
        self._pool = pool
        self._aging_time = aging_time
        self._tasks: queue.Queue[UdpTask] = queue.Queue(maxsize=UDP_TASK_QUEUE_LENGTH)
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._closed = False
        self._freed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    def _start(self) -> None:
        with self._lock:
            self._reset_timer()
        threading.Thread(
            target=self._convoy, name=f"udp-task-{self.key}", daemon=True
        ).start()

    def _reset_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        timer = threading.Timer(self._aging_time, self._expire)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def push(self, task: UdpTask) -> bool:
        """Queue a task and postpone retirement; False if the queue is already retired."""
        with self._lock:
            if self._closed:
                return False
            self._reset_timer()
            self._tasks.put(task)
        return True

    def _expire(self) -> None:
        with self._lock:
            # A timer replaced by a later reset must not retire the queue.
            if self._closed or self._timer is not threading.current_thread():
                return
            self._closed = True
        self._pool._retire(self)

    def _convoy(self) -> None:
        while True:
            if self._closed:
                while True:
                    try:
                        task = self._tasks.get_nowait()
                    except queue.Empty:
                        break
                    _reemit_workers.submit(self._pool.emit_task, self.key, task)
                self._freed.set()
                return
            task = self._tasks.get()
            try:
                task()
            except Exception:
                log.exception("udp task for %s failed", self.key)


class UdpTaskPool:
    """Dispatches tasks to per-key queues, creating and retiring them as needed."""

    def __init__(self, aging_time: float = DEFAULT_NAT_TIMEOUT) -> None:
        self._aging_time = aging_time
        self._lock = threading.Lock()
        self._queues: dict[str, UdpTaskQueue] = {}

    def emit_task(self, key: str, task: UdpTask) -> None:
        """Run ``task`` after every task emitted earlier with the same key."""
        while True:
            with self._lock:
                q = self._queues.get(key)
                if q is None or q.closed:
                    q = UdpTaskQueue(key, self, self._aging_time)
                    self._queues[key] = q
                    q._start()
            if q.push(task):
                return

    def __len__(self) -> int:
        with self._lock:
            return len(self._queues)

    def _retire(self, q: UdpTaskQueue) -> None:
        with self._lock:
            if self._queues.get(q.key) is q:
                del self._queues[q.key]
        # Wake the convoy so it notices the queue is closed.
        q._tasks.put(_noop)
        q._freed.wait()


DEFAULT_UDP_TASK_POOL = UdpTaskPool()