# tests/test_bits.py
import pytest

from bitemit import iter_bits, mask


def test_mask_builds_code():
    assert mask() == 0
    assert mask(0, 2) == 0b101
    assert mask(3, 3) == 0b1000


def test_mask_rejects_negative_position():
    with pytest.raises(ValueError):
        mask(-1)


def test_iter_bits_ascending_and_limited():
    assert list(iter_bits(0b101101, 32)) == [0, 2, 3, 5]
    assert list(iter_bits(0b101101, 3)) == [0, 2]
    assert list(iter_bits(0b1, 0)) == []
    assert list(iter_bits(0b1, -5)) == []
    assert list(iter_bits(-1, 4)) == [0, 1, 2, 3]
