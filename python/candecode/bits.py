"""Bit-level extraction of signals from CAN payloads

Two addressing conventions locate a signal inside a frame. Global bit
index ``b*8 + n`` names bit ``n`` (0 = LSB) of byte ``b``::

                 Bits
      7  6  5  4  3  2  1  0

  0   7  6  5  4  3  2  1  0
b 1   15 14 13 12 11 10 9  8
y 2   23 22 21 20 19 18 17 16
t 3   31 30 29 28 27 26 25 24
e 4   39 38 37 36 35 34 33 32
s 5   47 46 45 44 43 42 41 40
  6   55 54 53 52 51 50 49 48
  7   63 62 61 60 59 58 57 56

INTEL walks upward: start 10, length 10 reads 10..19 with bit 10 as
the LSB.

MOTOROLA walks downward inside a byte, then resumes at bit 7 of the next
byte: start 10, length 10 reads 10, 9, 8, 23, 22, ..., 17 with bit 10
as the MSB.
"""

from __future__ import annotations

import struct
from collections.abc import Iterator

from .protocols import ByteOrder

MAX_SIGNAL_BITS: int = 64


def iter_signal_bits(start_bit: int, length: int, byte_order: ByteOrder) -> Iterator[int]:
    """Yield the global bit indices a signal consumes, in consumption order.

    The first index yielded is the LSB of the result for INTEL and the MSB
    for MOTOROLA.
    """
    bit = start_bit
    for _ in range(length):
        yield bit
        if byte_order is ByteOrder.INTEL:
            bit += 1
        elif bit % 8 == 0:
            bit += 15
        else:
            bit -= 1


def extract_integer(
    data: bytes | bytearray,
    start_bit: int,
    length: int,
    byte_order: ByteOrder,
    signed: bool,
) -> int | None:
    """Pull a ``length``-bit integer out of ``data``.

    Args:
        data: Frame payload
        start_bit: Global index of the first consumed bit
        length: Signal size in bits (1..64)
        byte_order: INTEL or MOTOROLA addressing
        signed: Sign-extend from bit ``length - 1`` of the magnitude

    Returns:
        The extracted integer, or None when the bit range does not fit
        inside ``data`` or ``length`` is out of range. Never reads outside
        ``data``.
    """
    if not 1 <= length <= MAX_SIGNAL_BITS or start_bit < 0:
        return None
    total_bits = len(data) * 8
    if start_bit + length > total_bits:
        return None

    result = 0
    for position, bit in enumerate(iter_signal_bits(start_bit, length, byte_order)):
        # MOTOROLA can walk past the end even when start+length fits
        if bit >= total_bits:
            return None
        if not data[bit // 8] & (1 << (bit % 8)):
            continue
        if byte_order is ByteOrder.INTEL:
            result |= 1 << position
        else:
            result |= 1 << (length - position - 1)

    if signed and result & (1 << (length - 1)):
        result -= 1 << length
    return result


def float32_from_bits(raw: int) -> float:
    """Reinterpret a 32-bit unsigned pattern as an IEEE-754 single."""
    return struct.unpack(">f", struct.pack(">I", raw & 0xFFFFFFFF))[0]


def float64_from_bits(raw: int) -> float:
    """Reinterpret a 64-bit unsigned pattern as an IEEE-754 double."""
    return struct.unpack(">d", struct.pack(">Q", raw & 0xFFFFFFFFFFFFFFFF))[0]
