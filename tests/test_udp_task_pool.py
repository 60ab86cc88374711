import threading
import time

from daeutil.udp_task_pool import UdpTaskPool


def _wait_until(pred, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


def test_short_aging_runs_every_task_once():
    pool = UdpTaskPool(aging_time=0.001)
    lock = threading.Lock()
    counter = [0]

    def task():
        with lock:
            counter[0] += 1

    for _ in range(100):
        pool.emit_task("testkey", task)
        time.sleep(0.000099)

    assert _wait_until(lambda: counter[0] == 100)
    assert _wait_until(lambda: len(pool) == 0)
    time.sleep(0.05)
    assert counter[0] == 100
    assert len(pool) == 0


def test_tasks_of_one_key_run_in_order():
    pool = UdpTaskPool(aging_time=60)
    results = []
    for i in range(50):
        pool.emit_task("k", lambda i=i: results.append(i))
    assert _wait_until(lambda: len(results) == 50)
    assert results == list(range(50))
    assert len(pool) == 1


def test_each_key_has_its_own_queue():
    pool = UdpTaskPool(aging_time=60)
    done = threading.Event()
    pool.emit_task("a", _noop_task)
    pool.emit_task("b", done.set)
    assert done.wait(5)
    assert len(pool) == 2


def test_failing_task_does_not_stop_queue():
    pool = UdpTaskPool(aging_time=60)
    results = []

    def boom():
        raise RuntimeError("boom")

    pool.emit_task("k", boom)
    pool.emit_task("k", lambda: results.append("after"))
    assert _wait_until(lambda: results == ["after"])
    assert len(pool) == 1


def test_queue_is_recreated_after_retirement():
    pool = UdpTaskPool(aging_time=0.01)
    results = []
    pool.emit_task("k", lambda: results.append(1))
    assert _wait_until(lambda: len(pool) == 0)
    assert len(pool) == 0
    pool.emit_task("k", lambda: results.append(2))
    assert _wait_until(lambda: results == [1, 2])
    assert _wait_until(lambda: len(pool) == 0)
    assert len(pool) == 0


def _noop_task():
    pass