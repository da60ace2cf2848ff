import uuid as std_uuid

import pytest

from titandb.util import (
    decode_float64,
    encode_float64,
    init_cursor,
    now,
    redis_bitpos,
    redis_popcount,
    uuid,
    uuid_string,
)


@pytest.mark.parametrize(
    "begin, end, length, want",
    [
        (-11, -12, 10, (0, 0)),
        (-11, 12, 10, (0, 9)),
    ],
)
def test_init_cursor(begin, end, length, want):
    assert init_cursor(begin, end, length) == want


@pytest.mark.parametrize(
    "data, bit, want",
    [
        (bytes([255] * 6), 1, 0),
        (bytes([255] * 6), 0, 48),
        (bytes([0] * 5), 1, -1),
        (bytes([0] * 5), 0, 0),
    ],
)
def test_redis_bitpos(data, bit, want):
    assert redis_bitpos(data, bit) == want


@pytest.mark.parametrize(
    "data, want",
    [
        (bytes([255] * 6), 48),
        (bytes([0] * 4), 0),
    ],
)
def test_redis_popcount(data, want):
    assert redis_popcount(data) == want


def test_bitpos_on_string_one():
    assert redis_bitpos(b"1", 1) == 2


def test_uuid_is_unique_and_sixteen_bytes():
    first, second = uuid(), uuid()
    assert len(first) == 16
    assert first != second


def test_uuid_string_round_trip():
    object_id = uuid()
    assert std_uuid.UUID(uuid_string(object_id)).bytes == object_id


def test_uuid_string_invalid_is_nil():
    assert uuid_string(b"bad") == "00000000-0000-0000-0000-000000000000"


def test_now_is_nanoseconds_and_non_decreasing():
    first = now()
    second = now()
    assert second >= first
    assert first > 10**18


@pytest.mark.parametrize("value", [0.0, 1.0, -1.0, 3.5, -1e300, 1e-300, float("inf")])
def test_float_round_trip(value):
    encoded = encode_float64(value)
    assert len(encoded) == 8
    assert decode_float64(encoded) == value


def test_float_encoding_preserves_order():
    values = [-1e10, -2.5, -1.0, 0.0, 0.5, 1.0, 2.0, 1e10]
    encoded = [encode_float64(v) for v in values]
    assert sorted(encoded) == encoded


def test_float_encoding_rejects_nan():
    with pytest.raises(ValueError):
        encode_float64(float("nan"))


def test_decode_float_rejects_bad_length():
    with pytest.raises(ValueError):
        decode_float64(b"\x00\x01")