"""Unit tests for the YAML definition loader

Tests cover:
- Loading from YAML strings, Path objects and string paths
- Field defaults and hex message IDs
- Byte order aliases and value types
- Multiplexing: message multiplexor and per-signal override
- Value tables, attributes and nodes
- Error handling: missing fields, unknown enum values, missing files
"""

import logging
from pathlib import Path

import pytest

from candecode import (
    ByteOrder,
    DefinitionError,
    Frame,
    ValueType,
    decode_as_text,
    load_definitions,
)

_VEHICLE_YAML = """\
version: "2.0"
messages:
  - id: 0x100
    name: EngineStatus
    senders: [ECU1]
    attributes:
      - {name: GenMsgCycleTime, value: 10}
    signals:
      - name: EngineSpeed
        startBit: 0
        length: 16
        factor: 0.25
        unit: rpm
        minimum: 0
        maximum: 8000
      - name: Gear
        startBit: 16
        length: 4
        values:
          - {value: 0, description: PARK}
          - {value: 1, description: REVERSE}
  - id: "0x200"
    name: Multiplexed
    dlc: 4
    multiplexor: Mode
    signals:
      - name: Mode
        startBit: 0
        length: 8
      - name: SubMode
        startBit: 8
        length: 8
        multiplexed: true
        multiplexValue: 1
      - name: Deep
        startBit: 23
        length: 8
        byteOrder: big_endian
        valueType: signed_int
        multiplexed: true
        multiplexValue: 2
        multiplexor: SubMode
nodes:
  - name: ECU1
    comment: Engine controller
"""


def _minimal(signal_yaml: str) -> str:
    """One message wrapping the given signal entry (already indented)."""
    return (
        "messages:\n"
        + "  - id: 1\n"
        + "    name: M\n"
        + "    signals:\n"
        + signal_yaml
    )


# ============================================================================
# Sources
# ============================================================================

class TestSources:
    """Test YAML string vs file inputs."""

    def test_yaml_string(self) -> None:
        defs = load_definitions(_VEHICLE_YAML)
        assert len(defs) == 2

    def test_path_object(self, tmp_path: Path) -> None:
        path = tmp_path / "vehicle.yaml"
        path.write_text(_VEHICLE_YAML)
        assert load_definitions(path).message_by_id(0x100) is not None

    def test_string_path(self, tmp_path: Path) -> None:
        path = tmp_path / "vehicle.yml"
        path.write_text(_VEHICLE_YAML)
        assert load_definitions(str(path)).version == "2.0"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="YAML file not found"):
            load_definitions(tmp_path / "missing.yaml")

    def test_missing_string_path(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_definitions("missing.yaml")


# ============================================================================
# Fields
# ============================================================================

class TestFields:
    """Test parsed field values and defaults."""

    def test_hex_ids(self) -> None:
        defs = load_definitions(_VEHICLE_YAML)
        assert defs.message_by_name("EngineStatus").frame_id == 0x100
        assert defs.message_by_name("Multiplexed").frame_id == 0x200

    def test_defaults(self) -> None:
        defs = load_definitions(_VEHICLE_YAML)
        message = defs.message_by_id(0x100)
        assert message.length == 8
        sig = message.signal("Gear")
        assert sig.byte_order is ByteOrder.INTEL
        assert sig.value_type is ValueType.UNSIGNED_INT
        assert sig.factor == 1.0
        assert sig.bias == 0.0
        assert sig.unit == ""

    def test_scaling_and_range(self) -> None:
        sig = load_definitions(_VEHICLE_YAML).message_by_id(0x100).signal("EngineSpeed")
        assert sig.factor == 0.25
        assert sig.unit == "rpm"
        assert sig.minimum == 0.0
        assert sig.maximum == 8000.0

    def test_byte_order_alias_and_value_type(self) -> None:
        sig = load_definitions(_VEHICLE_YAML).message_by_id(0x200).signal("Deep")
        assert sig.byte_order is ByteOrder.MOTOROLA
        assert sig.value_type is ValueType.SIGNED_INT

    def test_value_table(self) -> None:
        defs = load_definitions(_VEHICLE_YAML)
        message = defs.message_by_id(0x100)
        frame = Frame(0x100, [0, 0, 1, 0, 0, 0, 0, 0])
        assert decode_as_text(frame, message, "Gear").value == "Gear: REVERSE"

    def test_attributes_senders_nodes(self) -> None:
        defs = load_definitions(_VEHICLE_YAML)
        message = defs.message_by_id(0x100)
        assert message.senders == ("ECU1",)
        assert message.find_attribute_by_name("GenMsgCycleTime").value == 10  # type: ignore[union-attr]
        assert defs.node_by_name("ECU1").comment == "Engine controller"  # type: ignore[union-attr]

    def test_string_value_type(self) -> None:
        defs = load_definitions(_minimal(
            "      - {name: Code, startBit: 0, length: 16, valueType: string}\n"
        ))
        assert defs.message_by_id(1).signal("Code").value_type is ValueType.STRING


# ============================================================================
# Multiplexing
# ============================================================================

class TestMultiplexing:
    """Test message multiplexor and per-signal overrides."""

    def test_message_multiplexor(self) -> None:
        message = load_definitions(_VEHICLE_YAML).message_by_id(0x200)
        assert message.multiplexor is not None
        assert message.multiplexor.name == "Mode"

    def test_override(self) -> None:
        message = load_definitions(_VEHICLE_YAML).message_by_id(0x200)
        assert message.multiplexor_for(message.signal("Deep")).name == "SubMode"  # type: ignore[union-attr]

    def test_chain_decodes(self) -> None:
        message = load_definitions(_VEHICLE_YAML).message_by_id(0x200)
        frame = Frame(0x200, [1, 2, 0xFF, 0])
        assert decode_as_text(frame, message, "Deep").value == "Deep: -1"

    def test_missing_multiplex_value(self) -> None:
        with pytest.raises(ValueError, match="require 'multiplexValue'"):
            load_definitions(_minimal(
                "      - {name: A, startBit: 0, length: 8, multiplexed: true}\n"
            ))

    def test_unknown_multiplexor(self) -> None:
        text = (
            "messages:\n"
            + "  - {id: 1, name: M, multiplexor: Ghost, signals: [{name: A, startBit: 0, length: 8}]}\n"
        )
        with pytest.raises(DefinitionError, match="unknown multiplexor signal 'Ghost'"):
            load_definitions(text)

    def test_validate_problems_logged(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="candecode.yaml_loader"):
            load_definitions(_minimal(
                "      - {name: A, startBit: 0, length: 8, multiplexed: true, multiplexValue: 0}\n"
            ))
        assert "has no multiplexor" in caplog.text


# ============================================================================
# Error handling
# ============================================================================

class TestErrors:
    """Test rejected documents."""

    def test_no_messages_key(self) -> None:
        with pytest.raises(ValueError, match="'messages' list"):
            load_definitions("version: 1\nnodes: []\n")

    def test_missing_signal_name(self) -> None:
        with pytest.raises(ValueError, match="missing or invalid 'name'"):
            load_definitions(_minimal("      - {startBit: 0, length: 8}\n"))

    def test_missing_start_bit(self) -> None:
        with pytest.raises(ValueError, match="signal 'A': missing or invalid 'startBit'"):
            load_definitions(_minimal("      - {name: A, length: 8}\n"))

    def test_unknown_byte_order(self) -> None:
        with pytest.raises(ValueError, match="unknown byteOrder 'middle'"):
            load_definitions(_minimal(
                "      - {name: A, startBit: 0, length: 8, byteOrder: middle}\n"
            ))

    def test_unknown_value_type(self) -> None:
        with pytest.raises(ValueError, match="unknown valueType 'complex'"):
            load_definitions(_minimal(
                "      - {name: A, startBit: 0, length: 8, valueType: complex}\n"
            ))

    def test_non_numeric_factor(self) -> None:
        with pytest.raises(ValueError, match="invalid 'factor'"):
            load_definitions(_minimal(
                "      - {name: A, startBit: 0, length: 8, factor: fast}\n"
            ))

    def test_structural_error_from_definition(self) -> None:
        with pytest.raises(DefinitionError, match="size must be 1..64"):
            load_definitions(_minimal("      - {name: A, startBit: 0, length: 65}\n"))

    def test_duplicate_ids(self) -> None:
        text = (
            "messages:\n"
            + "  - {id: 1, name: A, signals: []}\n"
            + "  - {id: 1, name: B, signals: []}\n"
        )
        with pytest.raises(DefinitionError, match="Duplicate message ID"):
            load_definitions(text)
