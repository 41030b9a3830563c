"""Type definitions for structured data

Defines the Enums shared by the decode engine and the TypedDict shapes of
definition documents exchanged with loaders and the CLI (YAML / JSON).
"""

from __future__ import annotations

from enum import Enum
from typing import TypedDict, NotRequired


class ByteOrder(str, Enum):
    """Bit addressing convention of a signal inside a frame"""
    INTEL = "intel"  # little-endian bit stream
    MOTOROLA = "motorola"  # sawtooth, big-endian-like


class ValueType(str, Enum):
    """Numeric interpretation of a signal's raw bits"""
    SIGNED_INT = "signed_int"
    UNSIGNED_INT = "unsigned_int"
    SINGLE_FLOAT = "single_float"
    DOUBLE_FLOAT = "double_float"
    STRING = "string"


class DecodeStatus(str, Enum):
    """Outcome of a decode call

    Everything other than OK is an expected, non-exceptional result.
    """
    OK = "ok"
    MULTIPLEX_MISMATCH = "multiplex_mismatch"
    MULTIPLEX_UNAVAILABLE = "multiplex_unavailable"
    INSUFFICIENT_FRAME_LENGTH = "insufficient_frame_length"
    UNSUPPORTED_CONVERSION = "unsupported_conversion"


# Accepted spellings for byte order in YAML / Excel / CLI input
BYTE_ORDER_ALIASES: dict[str, ByteOrder] = {
    "intel": ByteOrder.INTEL,
    "little_endian": ByteOrder.INTEL,
    "motorola": ByteOrder.MOTOROLA,
    "big_endian": ByteOrder.MOTOROLA,
}


# ============================================================================
# Definition document types
# ============================================================================

class ValueDescriptionDocument(TypedDict):
    """One value-table entry"""
    value: int
    description: str


class AttributeDocument(TypedDict):
    """One named attribute value"""
    name: str
    value: str | int | float


class SignalDocument(TypedDict):
    """Signal definition as found in YAML / JSON documents"""
    name: str
    startBit: int
    length: int
    byteOrder: str  # "intel" | "motorola"
    valueType: str  # ValueType value
    factor: float
    offset: float
    minimum: NotRequired[float]
    maximum: NotRequired[float]
    unit: NotRequired[str]
    values: NotRequired[list[ValueDescriptionDocument]]
    multiplexed: NotRequired[bool]
    multiplexValue: NotRequired[int]
    multiplexor: NotRequired[str]  # extended multiplexing override
    receivers: NotRequired[list[str]]
    comment: NotRequired[str]
    attributes: NotRequired[list[AttributeDocument]]


class MessageDocument(TypedDict):
    """Message definition document"""
    id: int
    name: str
    dlc: int
    senders: NotRequired[list[str]]
    extended: NotRequired[bool]
    multiplexor: NotRequired[str | None]
    comment: NotRequired[str]
    attributes: NotRequired[list[AttributeDocument]]
    signals: list[SignalDocument]


class NodeDocument(TypedDict):
    """Node (ECU) definition document"""
    name: str
    comment: NotRequired[str]
    attributes: NotRequired[list[AttributeDocument]]


class DefinitionDocument(TypedDict):
    """Complete definition set document"""
    version: str
    messages: list[MessageDocument]
    nodes: NotRequired[list[NodeDocument]]
