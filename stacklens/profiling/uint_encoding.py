# stacklens/profiling/uint_encoding.py
"""URL-safe encoding for arrays of unsigned integers.

Each number is written as a variable-length quantity of 6-bit digits: one
continuation bit and five value bits per digit, most significant digit
first. Digits use 64 of the characters that need no percent-encoding in a
URL component, leaving ``-`` and ``~`` free for the transform grammar:

    0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ._

No separators are needed between numbers. The digit ``w`` (continuation bit
set, value zero) is a redundant leading zero; it is used as a range marker,
so a run of three or more consecutive numbers going up or down by one is
written as its first number, ``w`` and its last number.

Examples
--------
>>> encode_uint_array([0])
'0'
>>> encode_uint_array([9, 10])
'9a'
>>> encode_uint_array([31, 167, 32, 33, 34, 35])
'vB7x0wx3'
"""

from __future__ import annotations

from typing import Iterable, Sequence


ENCODING_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ._"
_DIGIT_VALUES = {c: i for i, c in enumerate(ENCODING_DIGITS)}

_CONTINUATION_BIT = 0b100000
_VALUE_MASK = 0b011111
LEADING_ZERO_DIGIT = ENCODING_DIGITS[_CONTINUATION_BIT]


def encode_uint(value: int) -> str:
    """Encode a single unsigned integer without leading zero digits."""
    if value < 0:
        raise ValueError(f"Only unsigned integers can be encoded, got {value}")
    digits = [ENCODING_DIGITS[value & _VALUE_MASK]]
    value >>= 5
    while value:
        digits.append(ENCODING_DIGITS[_CONTINUATION_BIT | (value & _VALUE_MASK)])
        value >>= 5
    return "".join(reversed(digits))


def _count_skippable_consecutive_numbers_at(numbers: Sequence[int], start: int) -> int:
    """Number of items at ``numbers[start:]`` that a range marker can replace.

    A non-zero result ``n`` means ``numbers[start - 1]`` through
    ``numbers[start + n]`` (inclusive) all go up, or all go down, by one.
    """
    if start < 1 or start + 1 >= len(numbers):
        return 0
    previous = numbers[start - 1]
    current = numbers[start]
    following = numbers[start + 1]

    if current == previous + 1 and following == current + 1:
        step = 1
    elif current == previous - 1 and following == current - 1:
        step = -1
    else:
        return 0

    skip_count = 1
    while (
        start + skip_count + 1 < len(numbers)
        and numbers[start + skip_count + 1] == current + step * (skip_count + 1)
    ):
        skip_count += 1
    return skip_count


def encode_uint_array(numbers: Sequence[int]) -> str:
    parts = []
    i = 0
    while i < len(numbers):
        skip_count = _count_skippable_consecutive_numbers_at(numbers, i)
        if skip_count:
            i += skip_count
            parts.append(LEADING_ZERO_DIGIT)
        parts.append(encode_uint(numbers[i]))
        i += 1
    return "".join(parts)


def encode_uint_set(numbers: Iterable[int]) -> str:
    """Encode a set in ascending order so consecutive runs collapse."""
    return encode_uint_array(sorted(set(numbers)))


def _decode_uint(s: str, start: int) -> tuple[int, bool, int]:
    """Decode the number at ``s[start]``.

    Returns the value, whether its first digit was a leading zero (the range
    marker), and the index where the next number begins. Characters outside
    the alphabet decode as zero.
    """
    i = start
    bits = _DIGIT_VALUES.get(s[i], 0)
    has_continuation = bool(bits & _CONTINUATION_BIT)
    value = bits & _VALUE_MASK
    has_leading_zero = has_continuation and value == 0
    i += 1
    while has_continuation and i < len(s):
        bits = _DIGIT_VALUES.get(s[i], 0)
        has_continuation = bool(bits & _CONTINUATION_BIT)
        value = (value << 5) | (bits & _VALUE_MASK)
        i += 1
    return value, has_leading_zero, i


def decode_uint_array(s: str) -> list[int]:
    result: list[int] = []
    i = 0
    while i < len(s):
        value, has_leading_zero, i = _decode_uint(s, i)
        if has_leading_zero and result:
            start_value = result[-1]
            if value > start_value:
                result.extend(range(start_value + 1, value))
            else:
                result.extend(range(start_value - 1, value, -1))
        result.append(value)
    return result
