"""Immutable signal, message and node definitions

Definitions are built once by a loader (cantools, YAML, Excel) and never
mutated afterwards, so any number of threads may decode against the same
DefinitionSet. Reloading publishes a new DefinitionSet.

A signal does not hold a reference to its message. MessageDefinition
stamps each of its signals with a handle (``message_id`` plus the
signal's ``index`` in the message), and multiplexors are addressed by
index into the same signal tuple.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .attributes import AttributeLookup, AttributeValue
from .bits import MAX_SIGNAL_BITS, iter_signal_bits
from .errors import DefinitionError
from .protocols import ByteOrder, ValueType


@dataclass(frozen=True)
class ValueDescription:
    """Value-table entry (``VAL_``): raw integer -> description"""

    value: int
    description: str


# ============================================================================
# Signals
# ============================================================================

@dataclass(frozen=True)
class SignalDefinition(AttributeLookup):
    """A signal inside a CAN message.

    Attributes:
        name: Signal name
        start_bit: Global index of the first consumed bit
        size: Length in bits (1..64; multiple of 8 for STRING)
        byte_order: INTEL or MOTOROLA addressing
        value_type: Numeric interpretation of the raw bits
        factor: Linear scale
        bias: Linear offset
        unit: Engineering unit label
        values: Value table, searched in order
        is_multiplexed: Present only when its multiplexor matches
        multiplex_value: Multiplexor value selecting this signal
        multiplexor_name: Extended multiplexing: the signal that selects
            this one, when it is not the message's multiplexor
        message_id: Handle of the owning message (set by MessageDefinition)
        index: Position in the owning message's signal tuple
        multiplexor_index: Resolved ``multiplexor_name``
    """

    name: str
    start_bit: int
    size: int
    byte_order: ByteOrder = ByteOrder.INTEL
    value_type: ValueType = ValueType.UNSIGNED_INT
    factor: float = 1.0
    bias: float = 0.0
    unit: str = ""
    values: tuple[ValueDescription, ...] = ()
    is_multiplexed: bool = False
    multiplex_value: int = 0
    multiplexor_name: str | None = None
    minimum: float | None = None
    maximum: float | None = None
    receivers: tuple[str, ...] = ()
    comment: str = ""
    attributes: tuple[AttributeValue, ...] = ()
    message_id: int | None = field(default=None, compare=False)
    index: int = field(default=-1, compare=False)
    multiplexor_index: int | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "byte_order", ByteOrder(self.byte_order))
        object.__setattr__(self, "value_type", ValueType(self.value_type))
        object.__setattr__(self, "values", tuple(self.values))
        object.__setattr__(self, "receivers", tuple(self.receivers))
        object.__setattr__(self, "attributes", tuple(self.attributes))

        if not self.name:
            raise DefinitionError("Signal name cannot be empty")
        if not 1 <= self.size <= MAX_SIGNAL_BITS:
            raise DefinitionError(
                f"Signal '{self.name}': size must be 1..{MAX_SIGNAL_BITS} bits, got {self.size}"
            )
        if self.start_bit < 0:
            raise DefinitionError(
                f"Signal '{self.name}': start bit must be non-negative, got {self.start_bit}"
            )
        if self.value_type is ValueType.STRING and self.size % 8 != 0:
            raise DefinitionError(
                f"Signal '{self.name}': string size must be a multiple of 8, got {self.size}"
            )

    @property
    def is_signed(self) -> bool:
        return self.value_type is ValueType.SIGNED_INT

    @property
    def is_float(self) -> bool:
        return self.value_type in (ValueType.SINGLE_FLOAT, ValueType.DOUBLE_FLOAT)

    def describe(self, value: int) -> str | None:
        """Look up ``value`` in the value table."""
        for entry in self.values:
            if entry.value == value:
                return entry.description
        return None

    def bits(self) -> list[int]:
        """Global bit indices this signal occupies, in consumption order."""
        return list(iter_signal_bits(self.start_bit, self.size, self.byte_order))


# ============================================================================
# Messages
# ============================================================================

@dataclass(frozen=True)
class MessageDefinition(AttributeLookup):
    """A CAN message and its signals.

    Attributes:
        frame_id: Arbitration identifier
        name: Message name
        signals: Signals in definition order
        length: DLC in bytes
        multiplexor_index: Index of the multiplexor in ``signals``
    """

    frame_id: int
    name: str
    signals: tuple[SignalDefinition, ...] = ()
    length: int = 8
    multiplexor_index: int | None = None
    senders: tuple[str, ...] = ()
    is_extended: bool = False
    comment: str = ""
    attributes: tuple[AttributeValue, ...] = ()
    _by_name: Mapping[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "senders", tuple(self.senders))
        object.__setattr__(self, "attributes", tuple(self.attributes))

        by_name: dict[str, int] = {}
        for i, sig in enumerate(self.signals):
            if sig.name in by_name:
                raise DefinitionError(
                    f"Message '{self.name}': duplicate signal name '{sig.name}'"
                )
            by_name[sig.name] = i
        object.__setattr__(self, "_by_name", MappingProxyType(by_name))

        if self.multiplexor_index is not None and not 0 <= self.multiplexor_index < len(self.signals):
            raise DefinitionError(
                f"Message '{self.name}': multiplexor index {self.multiplexor_index} out of range"
            )

        stamped: list[SignalDefinition] = []
        for i, sig in enumerate(self.signals):
            mux_index: int | None = None
            if sig.multiplexor_name is not None:
                if sig.multiplexor_name not in by_name:
                    raise DefinitionError(
                        f"Message '{self.name}': signal '{sig.name}' names unknown "
                        + f"multiplexor '{sig.multiplexor_name}'"
                    )
                mux_index = by_name[sig.multiplexor_name]
            stamped.append(dataclasses.replace(
                sig, message_id=self.frame_id, index=i, multiplexor_index=mux_index,
            ))
        object.__setattr__(self, "signals", tuple(stamped))

    @classmethod
    def create(
        cls,
        frame_id: int,
        name: str,
        signals: Iterable[SignalDefinition],
        *,
        multiplexor: str | None = None,
        length: int = 8,
        senders: Iterable[str] = (),
        is_extended: bool = False,
        comment: str = "",
        attributes: Iterable[AttributeValue] = (),
    ) -> MessageDefinition:
        """Build a message, resolving the multiplexor by signal name.

        Raises:
            DefinitionError: Unknown multiplexor or invalid signals
        """
        signal_tuple = tuple(signals)
        mux_index: int | None = None
        if multiplexor is not None:
            names = [s.name for s in signal_tuple]
            if multiplexor not in names:
                raise DefinitionError(
                    f"Message '{name}': unknown multiplexor signal '{multiplexor}'"
                )
            mux_index = names.index(multiplexor)
        return cls(
            frame_id=frame_id,
            name=name,
            signals=signal_tuple,
            length=length,
            multiplexor_index=mux_index,
            senders=tuple(senders),
            is_extended=is_extended,
            comment=comment,
            attributes=tuple(attributes),
        )

    @property
    def multiplexor(self) -> SignalDefinition | None:
        """The message-level multiplexor signal, if any."""
        if self.multiplexor_index is None:
            return None
        return self.signals[self.multiplexor_index]

    def multiplexor_for(self, signal: SignalDefinition) -> SignalDefinition | None:
        """The signal selecting ``signal``: its own override, else the message's."""
        if signal.multiplexor_index is not None:
            return self.signals[signal.multiplexor_index]
        return self.multiplexor

    def signal(self, name: str) -> SignalDefinition:
        """Get a signal by name.

        Raises:
            KeyError: No such signal in this message
        """
        try:
            return self.signals[self._by_name[name]]
        except KeyError:
            raise KeyError(f"Message '{self.name}' has no signal '{name}'") from None

    def owns(self, signal: SignalDefinition) -> bool:
        """Whether ``signal``'s handle points into this message."""
        return (
            signal.message_id == self.frame_id
            and 0 <= signal.index < len(self.signals)
            and self.signals[signal.index].name == signal.name
        )

    def validate(self) -> list[str]:
        """Report non-fatal problems (empty list if none)."""
        problems: list[str] = []
        for sig in self.signals:
            if sig.is_multiplexed and self.multiplexor_for(sig) is None:
                problems.append(
                    f"Message '{self.name}': signal '{sig.name}' is multiplexed "
                    + "but the message has no multiplexor"
                )
            if sig.byte_order is ByteOrder.INTEL and sig.start_bit + sig.size > self.length * 8:
                problems.append(
                    f"Message '{self.name}': signal '{sig.name}' extends past DLC {self.length}"
                )
        mux = self.multiplexor
        if mux is not None and mux.value_type not in (ValueType.SIGNED_INT, ValueType.UNSIGNED_INT):
            problems.append(
                f"Message '{self.name}': multiplexor '{mux.name}' is not an integer signal"
            )
        return problems

    def __iter__(self) -> Iterator[SignalDefinition]:
        return iter(self.signals)

    def __len__(self) -> int:
        return len(self.signals)


# ============================================================================
# Nodes
# ============================================================================

@dataclass(frozen=True)
class NodeDefinition(AttributeLookup):
    """A bus node (ECU, ``BU_``)"""

    name: str
    comment: str = ""
    attributes: tuple[AttributeValue, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", tuple(self.attributes))


# ============================================================================
# Snapshot
# ============================================================================

@dataclass(frozen=True)
class DefinitionSet:
    """Read-only snapshot of every message and node of one database."""

    messages: tuple[MessageDefinition, ...] = ()
    nodes: tuple[NodeDefinition, ...] = ()
    version: str = ""
    _by_id: Mapping[int, MessageDefinition] = field(init=False, repr=False, compare=False)
    _by_name: Mapping[str, MessageDefinition] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "messages", tuple(self.messages))
        object.__setattr__(self, "nodes", tuple(self.nodes))

        by_id: dict[int, MessageDefinition] = {}
        by_name: dict[str, MessageDefinition] = {}
        for msg in self.messages:
            if msg.frame_id in by_id:
                raise DefinitionError(
                    f"Duplicate message ID 0x{msg.frame_id:X} "
                    + f"('{by_id[msg.frame_id].name}' and '{msg.name}')"
                )
            by_id[msg.frame_id] = msg
            by_name[msg.name] = msg
        object.__setattr__(self, "_by_id", MappingProxyType(by_id))
        object.__setattr__(self, "_by_name", MappingProxyType(by_name))

    def message_by_id(self, frame_id: int) -> MessageDefinition | None:
        return self._by_id.get(frame_id)

    def message_by_name(self, name: str) -> MessageDefinition | None:
        return self._by_name.get(name)

    def node_by_name(self, name: str) -> NodeDefinition | None:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def message_for(self, signal: SignalDefinition) -> MessageDefinition | None:
        """Resolve a signal's handle to its owning message."""
        if signal.message_id is None:
            return None
        msg = self._by_id.get(signal.message_id)
        if msg is None or not msg.owns(signal):
            return None
        return msg

    def validate(self) -> list[str]:
        """Collect non-fatal problems from every message."""
        problems: list[str] = []
        for msg in self.messages:
            problems.extend(msg.validate())
        return problems

    def __iter__(self) -> Iterator[MessageDefinition]:
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self.messages)
