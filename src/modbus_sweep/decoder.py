from __future__ import annotations

import math
import struct
from decimal import Decimal
from enum import Enum

from modbus_sweep.errors import DecodeError


class DecodeType(Enum):
    """Numeric interpretation of a payload, with its width and struct format"""
    UINT16 = ("uint16", ">H")
    INT16 = ("int16", ">h")
    UINT32 = ("uint32", ">I")
    INT32 = ("int32", ">i")
    UINT64 = ("uint64", ">Q")
    INT64 = ("int64", ">q")
    FLOAT32 = ("float32", ">f")
    FLOAT64 = ("float64", ">d")

    def __init__(self, tag: str, fmt: str):
        self.tag = tag
        self.fmt = fmt

    @property
    def width(self) -> int:
        return struct.calcsize(self.fmt)

    @property
    def is_float(self) -> bool:
        return self.fmt[-1] in "fd"

    @classmethod
    def from_tag(cls, tag: str) -> DecodeType | None:
        """Returns the matching member, or None if the tag is not recognised."""
        for member in cls:
            if member.tag == tag:
                return member
        return None


DECODE_TAGS = [member.tag for member in DecodeType]


def _shortest_float32(value: float) -> str:
    # Fewest significant digits that still read back as the same single
    for precision in range(1, 10):
        text = f"{value:.{precision}g}"
        try:
            if struct.unpack(">f", struct.pack(">f", float(text)))[0] == value:
                return text
        except OverflowError:
            continue
    return repr(value)


def format_float(value: float, single: bool = False) -> str:
    """Render a float in positional notation with round-trip precision.

    1.0 renders as "1", 1e20 as "100000000000000000000". Non finite values
    render as "NaN", "+Inf" and "-Inf".
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"

    text = _shortest_float32(value) if single else repr(value)
    text = format(Decimal(text), "f")

    if "." in text:
        text = text.rstrip("0").rstrip(".")

    return text


def decode(payload: bytes, decode_type: DecodeType | str) -> str:
    """Render the first value held in the payload as decimal text.

    :param payload: Raw bytes of a successful read
    :param decode_type: A DecodeType or its tag
    :return: The value as text, or "" if the decode type is not recognised
    :raises DecodeError: If the payload is shorter than the decode type
    """
    if not isinstance(decode_type, DecodeType):
        decode_type = DecodeType.from_tag(decode_type)

        if decode_type is None:
            return ""

    width = decode_type.width

    if len(payload) < width:
        raise DecodeError(
            f"insufficient data: {decode_type.tag} needs {width} bytes, got {len(payload)}"
        )

    (value,) = struct.unpack(decode_type.fmt, bytes(payload[:width]))

    if decode_type.is_float:
        return format_float(value, single=(decode_type is DecodeType.FLOAT32))

    return str(value)
