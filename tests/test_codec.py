"""Unit tests for base62 code generation."""

import pytest

from shortlink.codec import BASE62_ALPHABET, base62_encode


def test_base62_encode_basic():
    assert base62_encode(0) == "0"
    assert base62_encode(1) == "1"
    assert base62_encode(61) == "Z"
    assert base62_encode(62) == "10"


def test_base62_encode_large_numbers():
    assert base62_encode(12345) == "3d7"
    assert base62_encode(999999) == "4c91"
    assert base62_encode(1_000_000) == "4c92"


def test_base62_encode_negative():
    with pytest.raises(ValueError, match="Number must be non-negative"):
        base62_encode(-1)


def test_alphabet_has_62_distinct_symbols():
    assert len(BASE62_ALPHABET) == 62
    assert len(set(BASE62_ALPHABET)) == 62


def test_encode_is_injective_over_a_counter_range():
    codes = [base62_encode(n) for n in range(1, 200_000)]
    assert len(set(codes)) == len(codes)


def test_code_length_never_decreases_as_counter_grows():
    lengths = [len(base62_encode(n)) for n in range(1, 10_000)]
    assert lengths == sorted(lengths)


@pytest.mark.parametrize(
    "number, length",
    [(1, 1), (61, 1), (62, 2), (62**2 - 1, 2), (62**2, 3), (62**6, 7), (2**63 - 1, 11)],
)
def test_code_length_boundaries(number, length):
    assert len(base62_encode(number)) == length


def test_codes_only_use_alphabet_symbols():
    for n in (1, 999, 123456789, 2**40):
        assert all(c in BASE62_ALPHABET for c in base62_encode(n))
