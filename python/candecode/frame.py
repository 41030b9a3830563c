"""CAN frame value type"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Frame:
    """An immutable CAN frame.

    Attributes:
        can_id: Arbitration identifier (11 or 29 bit)
        data: Payload bytes (0..8 for classic CAN, up to 64 for CAN FD)
        timestamp: Receive time in seconds
    """

    can_id: int
    data: bytes
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            # bytearray / list input is frozen into bytes
            object.__setattr__(self, "data", bytes(self.data))
        if not 0 <= self.can_id <= 0x1FFFFFFF:
            raise ValueError(f"CAN ID out of range: 0x{self.can_id:X}")

    @property
    def length(self) -> int:
        """Payload length in bytes."""
        return len(self.data)

    @property
    def bit_length(self) -> int:
        """Payload length in bits."""
        return len(self.data) * 8

    def __repr__(self) -> str:
        data_hex = " ".join(f"{b:02X}" for b in self.data)
        return f"Frame(t={self.timestamp:.6f}, id=0x{self.can_id:X}, data=[{data_hex}])"
