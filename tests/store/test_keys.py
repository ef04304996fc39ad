"""Tests for the order-preserving key encoding."""

import random

import pytest

from userkv.store import MAX_KEY_SIZE, decode_key, encode_key


def test_mixed_key_decodes_to_same_tuple() -> None:
    key = ("users", b"\x00\x01", -7, 3.25, True, "a\x00b", "é")
    assert decode_key(encode_key(key)) == key


def test_encoded_order_matches_tuple_order() -> None:
    expected = [
        (b"x",),
        ("users",),
        ("users", ""),
        ("users", "a"),
        ("users", "a\x00"),
        ("users", "ab"),
        ("users", "b"),
        (-5,),
        (1,),
        (-0.5,),
        (2.5,),
        (False,),
        (True,),
    ]
    shuffled = expected.copy()
    random.Random(7).shuffle(shuffled)

    assert sorted(shuffled, key=encode_key) == expected


def test_integers_sort_numerically() -> None:
    numbers = [-(2**63), -256, -1, 0, 1, 255, 256, 2**63 - 1]
    assert sorted(reversed(numbers), key=lambda n: encode_key((n,))) == numbers


def test_floats_sort_numerically() -> None:
    numbers = [float("-inf"), -1e10, -1.5, 0.0, 1e-300, 1.5, 1e10, float("inf")]
    assert sorted(reversed(numbers), key=lambda n: encode_key((n,))) == numbers


def test_strings_sort_by_utf8_bytes() -> None:
    assert encode_key(("z",)) < encode_key(("é",))


@pytest.mark.parametrize(
    ("key", "error"),
    [
        ((), ValueError),
        (["users", "a"], ValueError),
        ((2**63,), ValueError),
        ((float("nan"),), ValueError),
        ((None,), TypeError),
        (("x" * MAX_KEY_SIZE,), ValueError),
    ],
)
def test_invalid_keys_are_rejected(key: object, error: type[Exception]) -> None:
    with pytest.raises(error):
        encode_key(key)  # type: ignore[arg-type]


@pytest.mark.parametrize("data", [b"", b"\x02abc", b"\x14\x00\x01", b"\x99"])
def test_malformed_bytes_fail_to_decode(data: bytes) -> None:
    with pytest.raises(ValueError):  # noqa: PT011
        decode_key(data)
