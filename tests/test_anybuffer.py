import sys

import pytest

from daeutil.anybuffer import Buffer, BufferTooLargeError


def test_default_capacity():
    buf = Buffer(0)
    assert buf.cap() == 64
    assert len(buf) == 0
    assert buf.slice() == []


def test_explicit_capacity():
    buf = Buffer(10)
    assert buf.cap() == 10
    assert len(buf) == 0


def test_extend_within_capacity_keeps_storage():
    buf = Buffer(10)
    buf.extend(5)
    assert len(buf) == 5
    assert buf.cap() == 10
    assert buf.slice() == [0] * 5


def test_extend_beyond_capacity_preserves_contents():
    buf = Buffer.from_sequence([1, 2, 3])
    buf.extend(10)
    assert len(buf) == 13
    assert buf.cap() >= 13
    assert buf.slice()[:3] == [1, 2, 3]


def test_grow_keeps_length_and_adds_room():
    buf = Buffer.from_sequence([4, 5])
    buf.grow(20)
    assert len(buf) == 2
    assert buf.cap() - len(buf) >= 20
    assert buf.slice() == [4, 5]


def test_grow_negative_raises():
    with pytest.raises(ValueError):
        Buffer(4).grow(-1)


def test_grow_too_large_raises():
    buf = Buffer(10)
    with pytest.raises(BufferTooLargeError):
        buf.grow(sys.maxsize)


def test_small_buffer_path_from_empty():
    buf = Buffer.from_sequence([])
    buf.extend(3)
    assert len(buf) == 3
    assert buf.cap() == 16


def test_truncate():
    buf = Buffer.from_sequence([1, 2, 3, 4])
    buf.truncate(2)
    assert buf.slice() == [1, 2]
    assert buf.cap() == 4


def test_truncate_zero_resets():
    buf = Buffer.from_sequence([1, 2, 3])
    buf.truncate(0)
    assert len(buf) == 0
    assert buf.cap() == 3


@pytest.mark.parametrize("n", [-1, 5])
def test_truncate_out_of_range(n):
    buf = Buffer.from_sequence([1, 2, 3])
    with pytest.raises(ValueError):
        buf.truncate(n)


def test_reset_retains_storage_and_reuses_it():
    buf = Buffer(8)
    buf.extend(6)
    buf.reset()
    assert len(buf) == 0
    assert buf.cap() == 8
    buf.extend(8)
    assert buf.cap() == 8


def test_item_access():
    buf = Buffer(4)
    buf.extend(3)
    buf[0] = 7
    buf[-1] = 9
    assert buf.slice() == [7, 0, 9]
    assert buf[0] == 7
    assert list(buf) == [7, 0, 9]
    with pytest.raises(IndexError):
        buf[3]


def test_negative_value_rejected():
    buf = Buffer(2)
    buf.extend(1)
    with pytest.raises(ValueError):
        buf[0] = -1
    assert buf.slice() == [0]


def test_extend_negative_shrinks_and_rejects_underflow():
    buf = Buffer.from_sequence([1, 2, 3])
    buf.extend(-1)
    assert buf.slice() == [1, 2]
    with pytest.raises(ValueError):
        buf.extend(-5)