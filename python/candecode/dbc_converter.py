"""
Convert .dbc files into candecode definition snapshots.

Uses cantools to parse the DBC grammar and converts its in-memory
database into immutable MessageDefinition / SignalDefinition objects.
Also serialises a DefinitionSet back to the JSON document layout shared
with the YAML loader.
"""

import json
import logging
from pathlib import Path
from typing import Any

try:
    import cantools
except ImportError:
    raise ImportError(
        "cantools is required for DBC conversion. "
        "Install it with: pip install cantools"
    )

from .attributes import AttributeValue
from .definitions import (
    DefinitionSet,
    MessageDefinition,
    NodeDefinition,
    SignalDefinition,
    ValueDescription,
)
from .errors import DefinitionError
from .protocols import (
    AttributeDocument,
    ByteOrder,
    DefinitionDocument,
    MessageDocument,
    SignalDocument,
    ValueType,
)

logger = logging.getLogger(__name__)

_FLOAT_TYPES = {32: ValueType.SINGLE_FLOAT, 64: ValueType.DOUBLE_FLOAT}


def _attributes_of(item: Any) -> tuple[AttributeValue, ...]:
    """Collect DBC attribute assignments of a cantools object."""
    dbc = getattr(item, "dbc", None)
    if dbc is None or not dbc.attributes:
        return ()
    return tuple(
        AttributeValue(name=str(name), value=attr.value)
        for name, attr in dbc.attributes.items()
    )


def _value_type(signal: cantools.database.can.Signal) -> ValueType:
    if signal.is_float:
        try:
            return _FLOAT_TYPES[signal.length]
        except KeyError:
            raise DefinitionError(
                f"Signal '{signal.name}': unsupported float length {signal.length}"
            ) from None
    return ValueType.SIGNED_INT if signal.is_signed else ValueType.UNSIGNED_INT


def signal_from_cantools(
    signal: cantools.database.can.Signal,
    message_multiplexor: str | None = None,
) -> SignalDefinition:
    """Convert a cantools Signal to a SignalDefinition."""

    # cantools keeps a list of selector values; the first one selects the signal
    is_multiplexed = False
    multiplex_value = 0
    multiplexor_name: str | None = None
    if signal.multiplexer_ids:
        is_multiplexed = True
        multiplex_value = int(signal.multiplexer_ids[0])
        if len(signal.multiplexer_ids) > 1:
            logger.debug(
                "Signal %s: using multiplexer value %d of %s",
                signal.name, multiplex_value, list(signal.multiplexer_ids),
            )
        if signal.multiplexer_signal != message_multiplexor:
            multiplexor_name = signal.multiplexer_signal

    values = tuple(
        ValueDescription(value=int(raw), description=str(description))
        for raw, description in (signal.choices or {}).items()
    )

    byte_order = ByteOrder.INTEL if signal.byte_order == "little_endian" else ByteOrder.MOTOROLA

    return SignalDefinition(
        name=signal.name,
        start_bit=signal.start,
        size=signal.length,
        byte_order=byte_order,
        value_type=_value_type(signal),
        factor=float(signal.scale),
        bias=float(signal.offset),
        unit=signal.unit or "",
        values=values,
        is_multiplexed=is_multiplexed,
        multiplex_value=multiplex_value,
        multiplexor_name=multiplexor_name,
        minimum=signal.minimum,
        maximum=signal.maximum,
        receivers=tuple(signal.receivers or ()),
        comment=signal.comment or "",
        attributes=_attributes_of(signal),
    )


def _top_level_multiplexor(message: cantools.database.can.Message) -> str | None:
    """Name of the multiplexor that is not itself multiplexed."""
    for signal in message.signals:
        if signal.is_multiplexer and not signal.multiplexer_ids:
            return signal.name
    return None


def _drop_orphans(
    message_name: str,
    signals: list[SignalDefinition],
    multiplexor: str | None,
    skipped: set[str],
) -> list[SignalDefinition]:
    """Remove signals gated, directly or through a chain, by a skipped multiplexor."""
    kept = signals
    while skipped:
        gated = [
            s for s in kept
            if s.is_multiplexed and (s.multiplexor_name or multiplexor) in skipped
        ]
        if not gated:
            break
        for s in gated:
            logger.warning(
                "Message %s: skipping signal '%s': its multiplexor was skipped",
                message_name, s.name,
            )
        skipped = {s.name for s in gated}
        kept = [s for s in kept if s.name not in skipped]
    return kept


def message_from_cantools(message: cantools.database.can.Message) -> MessageDefinition:
    """Convert a cantools Message to a MessageDefinition."""
    multiplexor = _top_level_multiplexor(message)

    signals: list[SignalDefinition] = []
    skipped: set[str] = set()
    for signal in message.signals:
        try:
            signals.append(signal_from_cantools(signal, multiplexor))
        except DefinitionError as exc:
            logger.warning("Message %s: skipping signal: %s", message.name, exc)
            skipped.add(signal.name)

    signals = _drop_orphans(message.name, signals, multiplexor, skipped)
    if multiplexor in skipped:
        multiplexor = None

    return MessageDefinition.create(
        frame_id=message.frame_id,
        name=message.name,
        signals=signals,
        multiplexor=multiplexor,
        length=message.length,
        senders=message.senders or (),
        is_extended=message.is_extended_frame,
        comment=message.comment or "",
        attributes=_attributes_of(message),
    )


def database_to_definitions(db: cantools.database.can.Database) -> DefinitionSet:
    """Convert a loaded cantools Database to a DefinitionSet."""
    nodes = tuple(
        NodeDefinition(name=node.name, comment=node.comment or "", attributes=_attributes_of(node))
        for node in db.nodes
    )
    definitions = DefinitionSet(
        messages=tuple(message_from_cantools(msg) for msg in db.messages),
        nodes=nodes,
        version=db.version or "",
    )
    for problem in definitions.validate():
        logger.warning(problem)
    return definitions


def load_dbc(dbc_path: str | Path) -> DefinitionSet:
    """
    Load a .dbc file into a DefinitionSet.

    Args:
        dbc_path: Path to the .dbc file

    Returns:
        Immutable definition snapshot

    Raises:
        FileNotFoundError: File doesn't exist
    """
    path = Path(dbc_path)
    if not path.exists():
        raise FileNotFoundError(f"DBC file not found: {dbc_path}")

    db = cantools.database.load_file(str(path), database_format="dbc")
    definitions = database_to_definitions(db)
    logger.info("Loaded %d messages from %s", len(definitions), path)
    return definitions


# ============================================================================
# JSON export
# ============================================================================

def _attributes_to_json(attributes: tuple[AttributeValue, ...]) -> list[AttributeDocument]:
    return [{"name": a.name, "value": a.value} for a in attributes]


def signal_to_json(signal: SignalDefinition) -> SignalDocument:
    """Convert a SignalDefinition to its document form."""
    doc: SignalDocument = {
        "name": signal.name,
        "startBit": signal.start_bit,
        "length": signal.size,
        "byteOrder": signal.byte_order.value,
        "valueType": signal.value_type.value,
        "factor": signal.factor,
        "offset": signal.bias,
        "unit": signal.unit,
    }
    if signal.minimum is not None:
        doc["minimum"] = signal.minimum
    if signal.maximum is not None:
        doc["maximum"] = signal.maximum
    if signal.values:
        doc["values"] = [{"value": v.value, "description": v.description} for v in signal.values]
    if signal.is_multiplexed:
        doc["multiplexed"] = True
        doc["multiplexValue"] = signal.multiplex_value
    if signal.multiplexor_name is not None:
        doc["multiplexor"] = signal.multiplexor_name
    if signal.receivers:
        doc["receivers"] = list(signal.receivers)
    if signal.comment:
        doc["comment"] = signal.comment
    if signal.attributes:
        doc["attributes"] = _attributes_to_json(signal.attributes)
    return doc


def message_to_json(message: MessageDefinition) -> MessageDocument:
    """Convert a MessageDefinition to its document form."""
    mux = message.multiplexor
    doc: MessageDocument = {
        "id": message.frame_id,
        "name": message.name,
        "dlc": message.length,
        "senders": list(message.senders),
        "multiplexor": mux.name if mux is not None else None,
        "signals": [signal_to_json(sig) for sig in message.signals],
    }

    # Add extended field if needed
    if message.is_extended:
        doc["extended"] = True
    if message.comment:
        doc["comment"] = message.comment
    if message.attributes:
        doc["attributes"] = _attributes_to_json(message.attributes)
    return doc


def definitions_to_json(definitions: DefinitionSet) -> DefinitionDocument:
    """Convert a DefinitionSet to a JSON-serialisable document."""
    doc: DefinitionDocument = {
        "version": definitions.version,
        "messages": [message_to_json(msg) for msg in definitions.messages],
    }
    if definitions.nodes:
        doc["nodes"] = [
            {
                "name": node.name,
                "comment": node.comment,
                "attributes": _attributes_to_json(node.attributes),
            }
            for node in definitions.nodes
        ]
    return doc


def convert_dbc_file(dbc_path: str | Path, output_path: str | Path | None = None) -> str:
    """
    Convert a .dbc file to JSON and optionally write to file.

    Args:
        dbc_path: Path to the .dbc file
        output_path: Optional path to write JSON output. If None, returns JSON string.

    Returns:
        JSON string representation of the DBC file
    """
    doc = definitions_to_json(load_dbc(dbc_path))
    json_str = json.dumps(doc, indent=2)

    if output_path:
        Path(output_path).write_text(json_str)

    return json_str
