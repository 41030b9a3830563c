"""YAML loader for signal definitions

Loads message and signal definitions from YAML files or strings into an
immutable DefinitionSet. The layout matches the JSON produced by
candecode.dbc_converter.definitions_to_json.

Usage:
    from candecode import load_definitions

    # From a file
    definitions = load_definitions("vehicle.yaml")

    # From a YAML string
    definitions = load_definitions('''
    messages:
      - id: 0x100
        name: EngineStatus
        dlc: 8
        signals:
          - name: EngineSpeed
            startBit: 0
            length: 16
            factor: 0.25
    ''')

YAML Schema
============

::

    version: "1.0"                    # optional
    messages:
      - id: 0x153                     # integer or hex string
        name: Gearbox
        dlc: 8                        # optional, default 8
        senders: [TCU]                # optional
        extended: false               # optional
        multiplexor: Mode             # optional, signal name
        attributes:                   # optional
          - {name: GenMsgCycleTime, value: 100}
        signals:
          - name: Mode
            startBit: 0
            length: 8
          - name: Gear
            startBit: 8
            length: 4
            byteOrder: motorola       # intel (default) | motorola
            valueType: unsigned_int   # signed_int | unsigned_int |
                                      # single_float | double_float | string
            factor: 1                 # optional, default 1
            offset: 0                 # optional, default 0
            unit: ""                  # optional
            multiplexed: true         # optional
            multiplexValue: 1         # required when multiplexed
            multiplexor: SubMode      # optional, extended multiplexing
            values:                   # optional value table
              - {value: 0, description: PARK}
    nodes:                            # optional
      - name: TCU
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TypeGuard

import yaml  # type: ignore[import-untyped]

from .attributes import AttributeValue
from .definitions import (
    DefinitionSet,
    MessageDefinition,
    NodeDefinition,
    SignalDefinition,
    ValueDescription,
)
from .protocols import BYTE_ORDER_ALIASES, ByteOrder, ValueType

logger = logging.getLogger(__name__)


# ============================================================================
# Type guards: runtime narrowing for YAML-parsed data
# ============================================================================

def _is_str_dict(val: object) -> TypeGuard[dict[str, object]]:
    """Narrow an unknown value to ``dict[str, object]``.

    YAML ``safe_load`` always produces dicts with string keys, so an
    ``isinstance(val, dict)`` check is sufficient at runtime.
    """
    return isinstance(val, dict)


def _is_object_list(val: object) -> TypeGuard[list[object]]:
    """Narrow an unknown value to ``list[object]``."""
    return isinstance(val, list)


# ============================================================================
# Field accessors with runtime type checking
# ============================================================================

def _get_str(d: dict[str, object], key: str, where: str) -> str:
    """Extract a required string field from a dict."""
    val = d.get(key)
    if not isinstance(val, str):
        raise ValueError(f"{where}: missing or invalid '{key}' (expected string)")
    return val


def _get_number(d: dict[str, object], key: str, where: str, default: float) -> float:
    """Extract an optional numeric field from a dict."""
    val = d.get(key, default)
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return float(val)
    raise ValueError(f"{where}: invalid '{key}' (expected number)")


def _get_optional_number(d: dict[str, object], key: str, where: str) -> float | None:
    if d.get(key) is None:
        return None
    return _get_number(d, key, where, 0.0)


def _get_int(d: dict[str, object], key: str, where: str, default: int | None = None) -> int:
    """Extract an integer field; hex strings such as ``"0x100"`` are accepted."""
    val = d.get(key, default)
    if isinstance(val, int) and not isinstance(val, bool):
        return val
    if isinstance(val, str):
        stripped = val.strip()
        try:
            return int(stripped, 16) if stripped.lower().startswith("0x") else int(stripped)
        except ValueError:
            pass
    raise ValueError(f"{where}: missing or invalid '{key}' (expected integer)")


def _get_bool(d: dict[str, object], key: str, where: str) -> bool:
    val = d.get(key, False)
    if isinstance(val, bool):
        return val
    raise ValueError(f"{where}: invalid '{key}' (expected true/false)")


def _get_list(d: dict[str, object], key: str, where: str) -> list[object]:
    val = d.get(key, [])
    if not _is_object_list(val):
        raise ValueError(f"{where}: invalid '{key}' (expected list)")
    return val


def _get_str_list(d: dict[str, object], key: str, where: str) -> tuple[str, ...]:
    items = _get_list(d, key, where)
    if not all(isinstance(item, str) for item in items):
        raise ValueError(f"{where}: '{key}' must be a list of strings")
    return tuple(str(item) for item in items)


def _get_enum_value(d: dict[str, object], key: str, where: str, default: str) -> str:
    val = d.get(key, default)
    if not isinstance(val, str):
        raise ValueError(f"{where}: invalid '{key}' (expected string)")
    return val.strip().lower()


# ============================================================================
# Public API
# ============================================================================

def load_definitions(source: str | Path) -> DefinitionSet:
    """Load message definitions from a YAML file or YAML string.

    Args:
        source: Path to .yaml/.yml file, or a YAML string

    Returns:
        Immutable DefinitionSet

    Raises:
        ValueError: Invalid definition (missing fields, unknown enum value)
        FileNotFoundError: File path doesn't exist
    """
    raw = _load_yaml(source)

    if not _is_str_dict(raw) or "messages" not in raw:
        raise ValueError("YAML must contain a 'messages' list")

    definitions = definitions_from_document(raw)
    for problem in definitions.validate():
        logger.warning(problem)
    logger.info("Loaded %d messages from YAML", len(definitions))
    return definitions


def definitions_from_document(doc: dict[str, object]) -> DefinitionSet:
    """Build a DefinitionSet from an already-parsed document (YAML or JSON)."""
    messages_raw = doc.get("messages")
    if not _is_object_list(messages_raw):
        raise ValueError("Document must contain a 'messages' list")

    messages: list[MessageDefinition] = []
    for entry in messages_raw:
        if not _is_str_dict(entry):
            raise ValueError("Each message must be a mapping")
        messages.append(_parse_message(entry))

    nodes: list[NodeDefinition] = []
    for entry in _get_list(doc, "nodes", "Document"):
        if not _is_str_dict(entry):
            raise ValueError("Each node must be a mapping")
        where = f"Node '{entry.get('name', '<unnamed>')}'"
        nodes.append(NodeDefinition(
            name=_get_str(entry, "name", where),
            comment=str(entry.get("comment") or ""),
            attributes=_parse_attributes(entry, where),
        ))

    version = doc.get("version", "")
    return DefinitionSet(
        messages=tuple(messages),
        nodes=tuple(nodes),
        version=str(version) if version is not None else "",
    )


# ============================================================================
# Internal helpers
# ============================================================================

def _load_yaml(source: str | Path) -> object:
    """Load YAML from a file path or string.

    Returns the raw parsed object; the caller must validate structure.
    """
    if isinstance(source, Path):
        if not source.exists():
            raise FileNotFoundError(f"YAML file not found: {source}")
        with open(source, encoding="utf-8") as f:
            return yaml.safe_load(f)  # type: ignore[no-any-return]

    # String: detect whether it's a file path or inline YAML
    if "\n" in source or source.lstrip().startswith("messages:"):
        return yaml.safe_load(source)  # type: ignore[no-any-return]

    # Treat as file path
    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {source}")
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)  # type: ignore[no-any-return]


def _parse_attributes(entry: dict[str, object], where: str) -> tuple[AttributeValue, ...]:
    attributes: list[AttributeValue] = []
    for item in _get_list(entry, "attributes", where):
        if not _is_str_dict(item):
            raise ValueError(f"{where}: each attribute must be a mapping")
        value = item.get("value")
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValueError(f"{where}: attribute value must be a string or number")
        attributes.append(AttributeValue(name=_get_str(item, "name", where), value=value))
    return tuple(attributes)


def _parse_values(entry: dict[str, object], where: str) -> tuple[ValueDescription, ...]:
    values: list[ValueDescription] = []
    for item in _get_list(entry, "values", where):
        if not _is_str_dict(item):
            raise ValueError(f"{where}: each value-table entry must be a mapping")
        values.append(ValueDescription(
            value=_get_int(item, "value", where),
            description=_get_str(item, "description", where),
        ))
    return tuple(values)


def _parse_signal(entry: dict[str, object], message_name: str) -> SignalDefinition:
    """Parse a single signal entry."""
    name = entry.get("name")
    where = f"Message '{message_name}', signal '{name if isinstance(name, str) else '<unnamed>'}'"

    order = _get_enum_value(entry, "byteOrder", where, ByteOrder.INTEL.value)
    if order not in BYTE_ORDER_ALIASES:
        raise ValueError(f"{where}: unknown byteOrder '{order}'")

    value_type = _get_enum_value(entry, "valueType", where, ValueType.UNSIGNED_INT.value)
    try:
        vtype = ValueType(value_type)
    except ValueError:
        raise ValueError(f"{where}: unknown valueType '{value_type}'") from None

    multiplexed = _get_bool(entry, "multiplexed", where)
    if multiplexed and "multiplexValue" not in entry:
        raise ValueError(f"{where}: multiplexed signals require 'multiplexValue'")

    multiplexor = entry.get("multiplexor")
    if multiplexor is not None and not isinstance(multiplexor, str):
        raise ValueError(f"{where}: 'multiplexor' must be a signal name")

    return SignalDefinition(
        name=_get_str(entry, "name", where),
        start_bit=_get_int(entry, "startBit", where),
        size=_get_int(entry, "length", where),
        byte_order=BYTE_ORDER_ALIASES[order],
        value_type=vtype,
        factor=_get_number(entry, "factor", where, 1.0),
        bias=_get_number(entry, "offset", where, 0.0),
        unit=str(entry.get("unit") or ""),
        values=_parse_values(entry, where),
        is_multiplexed=multiplexed,
        multiplex_value=_get_int(entry, "multiplexValue", where, 0),
        multiplexor_name=multiplexor,
        minimum=_get_optional_number(entry, "minimum", where),
        maximum=_get_optional_number(entry, "maximum", where),
        receivers=_get_str_list(entry, "receivers", where),
        comment=str(entry.get("comment") or ""),
        attributes=_parse_attributes(entry, where),
    )


def _parse_message(entry: dict[str, object]) -> MessageDefinition:
    """Parse a single message entry."""
    name = entry.get("name")
    where = f"Message '{name if isinstance(name, str) else '<unnamed>'}'"
    message_name = _get_str(entry, "name", where)

    signals: list[SignalDefinition] = []
    for item in _get_list(entry, "signals", where):
        if not _is_str_dict(item):
            raise ValueError(f"{where}: each signal must be a mapping")
        signals.append(_parse_signal(item, message_name))

    multiplexor = entry.get("multiplexor")
    if multiplexor is not None and not isinstance(multiplexor, str):
        raise ValueError(f"{where}: 'multiplexor' must be a signal name")

    return MessageDefinition.create(
        frame_id=_get_int(entry, "id", where),
        name=message_name,
        signals=signals,
        multiplexor=multiplexor,
        length=_get_int(entry, "dlc", where, 8),
        senders=_get_str_list(entry, "senders", where),
        is_extended=_get_bool(entry, "extended", where),
        comment=str(entry.get("comment") or ""),
        attributes=_parse_attributes(entry, where),
    )
