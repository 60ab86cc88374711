import os
import time

import pytest

from daeutil.sysctl import SysctlManager


def _wait_until(pred, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


@pytest.fixture
def manager(tmp_path):
    m = SysctlManager(prefix=str(tmp_path), poll_interval=None)
    yield m
    m.close()


def test_key_replaces_dots(manager, tmp_path):
    path = manager.key("net.ipv4.conf.%s.forwarding", "eth0")
    assert path == os.path.join(str(tmp_path), "net/ipv4/conf/eth0/forwarding")


def test_key_keeps_dots_in_arguments(manager, tmp_path):
    path = manager.key("net.ipv6.conf.%s.disable_ipv6", "eth0.100")
    assert path.endswith(os.path.join("conf", "eth0.100", "disable_ipv6"))
    assert path.startswith(str(tmp_path))


def test_key_without_arguments(manager, tmp_path):
    assert manager.key("net.ipv4.tcp_early_demux") == os.path.join(
        str(tmp_path), "net/ipv4/tcp_early_demux"
    )


def test_set_get_round_trip(manager, tmp_path):
    path = str(tmp_path / "value")
    manager.set(path, "1")
    assert manager.get(path) == "1"


def test_get_missing(manager, tmp_path):
    with pytest.raises(FileNotFoundError):
        manager.get(str(tmp_path / "missing"))


def test_check_restores_watched_value(manager, tmp_path):
    path = str(tmp_path / "forwarding")
    manager.set(path, "1", watch=True)
    (tmp_path / "forwarding").write_text("0\n")
    assert manager.check() == [path]
    assert manager.get(path) == "1"
    assert manager.check() == []


def test_check_ignores_unwatched_value(manager, tmp_path):
    path = str(tmp_path / "accept_local")
    manager.set(path, "1", watch=False)
    (tmp_path / "accept_local").write_text("0")
    assert manager.check() == []
    assert manager.get(path) == "0"


def test_polling_restores_value(tmp_path):
    path = str(tmp_path / "forwarding")
    with SysctlManager(prefix=str(tmp_path), poll_interval=0.01) as m:
        m.set(path, "1", watch=True)
        (tmp_path / "forwarding").write_text("0")
        assert _wait_until(lambda: m.get(path) == "1")
    (tmp_path / "forwarding").write_text("0")
    time.sleep(0.05)
    assert (tmp_path / "forwarding").read_text() == "0"