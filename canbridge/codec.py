"""Bit-level encoding and decoding of CAN signals.

Signals are described the way DBC files describe them: a start bit, a bit
length, a byte order and a signedness, plus a linear scaling
``physical = raw * factor + offset``.

For big-endian (Motorola) signals the start bit is the position of the least
significant bit, counted from bit 0 of byte 0 upward.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import MutableSequence

__all__ = [
    "to_physical_value",
    "from_physical_value",
    "extract_signal",
    "store_signal",
    "decode",
    "encode",
    "extract_iq",
    "store_iq",
]

_UINT64_SIGN = 1 << 63
_UINT64_RANGE = 1 << 64


def _mask(nbits: int) -> int:
    return (1 << nbits) - 1


def _layout(
    frame_len: int, start_bit: int, length: int, is_big_endian: bool
) -> tuple[int, int, range]:
    """Return the start byte, the bit offset in it and the remaining byte indices."""
    if not 1 <= length <= 64:
        raise ValueError(f"signal length must be between 1 and 64 bits, got {length}")
    if start_bit < 0:
        raise ValueError(f"start bit must not be negative, got {start_bit}")

    start_byte, bit_in_byte = divmod(start_bit, 8)
    if is_big_endian:
        spare_bits = start_byte * 8 + 8 - bit_in_byte - length
        if spare_bits < 0:
            raise ValueError("big-endian signal runs past the start of the frame")
        end_byte = spare_bits // 8
        following = range(start_byte - 1, end_byte - 1, -1)
    else:
        end_byte = (start_bit + length - 1) // 8
        following = range(start_byte + 1, end_byte + 1)

    if max(start_byte, end_byte) >= frame_len:
        raise ValueError(
            f"signal at bit {start_bit} with length {length} does not fit "
            f"in a frame of {frame_len} bytes"
        )
    return start_byte, bit_in_byte, following


def to_physical_value(target: int, factor: float, offset: float, is_signed: bool) -> float:
    """Scale a raw signal value to its physical value.

    When ``is_signed`` is set, a raw value given as an unsigned 64-bit pattern
    is read as two's complement.
    """
    if is_signed and target >= _UINT64_SIGN:
        target -= _UINT64_RANGE
    return target * factor + offset


def from_physical_value(physical_value: float, factor: float, offset: float) -> int:
    """Convert a physical value to a raw integer, truncating toward zero."""
    if factor == 0:
        raise ValueError("factor must be non-zero")
    return int((physical_value - offset) / factor)


def extract_signal(
    frame: Sequence[int],
    start_bit: int,
    length: int,
    is_big_endian: bool,
    is_signed: bool,
) -> int:
    """Read the raw value of a signal from ``frame``.

    Signed signals are sign-extended and returned as negative integers where
    their top bit is set.
    """
    start_byte, shift, following = _layout(len(frame), start_bit, length, is_big_endian)

    target = frame[start_byte] >> shift
    width = 8 - shift
    for index in following:
        target |= frame[index] << width
        width += 8

    target &= _mask(length)
    if is_signed:
        sign = 1 << (length - 1)
        target = (target ^ sign) - sign
    return target


def store_signal(
    frame: MutableSequence[int],
    value: int,
    start_bit: int,
    length: int,
    is_big_endian: bool,
    is_signed: bool,
) -> None:
    """Write the raw ``value`` of a signal into ``frame`` in place.

    Only the bits belonging to the signal are changed; ``value`` is cut to
    ``length`` bits, so negative values are stored in two's complement.
    """
    start_byte, shift, following = _layout(len(frame), start_bit, length, is_big_endian)

    value &= _mask(length)
    first = min(8 - shift, length)
    kept = frame[start_byte] & ~(_mask(first) << shift)
    frame[start_byte] = (kept | (value << shift)) & 0xFF
    remaining = length - first

    width = 8 - shift
    for index in following:
        count = min(8, remaining)
        kept = frame[index] & ~_mask(count) & 0xFF
        frame[index] = (kept | (value >> width)) & 0xFF
        remaining -= count
        width += 8


def decode(
    frame: Sequence[int],
    start_bit: int,
    length: int,
    is_big_endian: bool,
    is_signed: bool,
    factor: float,
    offset: float,
) -> float:
    """Read a signal from ``frame`` and return its physical value."""
    raw = extract_signal(frame, start_bit, length, is_big_endian, is_signed)
    return to_physical_value(raw, factor, offset, is_signed)


def encode(
    frame: MutableSequence[int],
    value: float,
    start_bit: int,
    length: int,
    is_big_endian: bool,
    is_signed: bool,
    factor: float,
    offset: float,
) -> None:
    """Write the physical ``value`` of a signal into ``frame`` in place."""
    raw = from_physical_value(value, factor, offset)
    store_signal(frame, raw, start_bit, length, is_big_endian, is_signed)


def extract_iq(
    frame: Sequence[int],
    start_bit: int,
    length: int,
    float_length: int,
    is_big_endian: bool,
    is_signed: bool,
) -> float:
    """Read a fixed-point (IQ notation) value with ``float_length`` fraction bits."""
    raw = extract_signal(frame, start_bit, length, is_big_endian, is_signed)
    return raw / 2.0**float_length


def store_iq(
    frame: MutableSequence[int],
    value: float,
    start_bit: int,
    length: int,
    float_length: int,
    is_big_endian: bool,
    is_signed: bool,
) -> None:
    """Write a fixed-point (IQ notation) value with ``float_length`` fraction bits."""
    raw = int(value * 2.0**float_length)
    store_signal(frame, raw, start_bit, length, is_big_endian, is_signed)