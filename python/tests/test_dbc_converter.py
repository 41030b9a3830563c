"""Unit tests for DBC conversion (cantools -> definitions)

Tests cover:
- Signals: byte order, signedness, floats, scaling, value tables
- Multiplexing: M / mN signals become multiplexor + gated signals
- Metadata: senders, comments, nodes, attributes
- End-to-end decoding against a loaded DBC
- JSON export and round trip through the document loader
- Error handling: missing files
"""

import json
import struct
from pathlib import Path

import cantools
import pytest

from candecode import (
    ByteOrder,
    DecodeStatus,
    Frame,
    SignalDefinition,
    ValueType,
    decode_as_double,
    decode_as_text,
)
from candecode.dbc_converter import (
    _drop_orphans,
    convert_dbc_file,
    database_to_definitions,
    definitions_to_json,
    load_dbc,
    signal_from_cantools,
)
from candecode.yaml_loader import definitions_from_document


# ============================================================================
# Shared DBC content
# ============================================================================

_DBC_TEXT = (
    'VERSION "1.2"\n\n'
    + "NS_ :\n\n"
    + "BS_:\n\n"
    + "BU_: ECU1 TCU\n\n"
    + "BO_ 256 EngineStatus: 8 ECU1\n"
    + ' SG_ EngineSpeed : 0|16@1+ (0.25,0) [0|8000] "rpm" TCU\n'
    + ' SG_ EngineTemp : 16|8@1+ (1,-40) [-40|215] "degC" Vector__XXX\n'
    + ' SG_ Gear : 24|4@1+ (1,0) [0|15] "" Vector__XXX\n'
    + ' SG_ Torque : 39|16@0- (1,0) [-1000|1000] "Nm" Vector__XXX\n'
    + "\n"
    + "BO_ 512 Multiplexed: 8 TCU\n"
    + ' SG_ Mode M : 0|8@1+ (1,0) [0|255] "" Vector__XXX\n'
    + ' SG_ SignalA m0 : 8|8@1+ (1,0) [0|255] "" Vector__XXX\n'
    + ' SG_ SignalB m1 : 8|8@1+ (1,0) [0|255] "" Vector__XXX\n'
    + "\n"
    + "BO_ 768 Floats: 8 ECU1\n"
    + ' SG_ Ratio : 0|32@1- (1,0) [0|0] "" Vector__XXX\n'
    + "\n"
    + 'CM_ BU_ ECU1 "Engine controller";\n'
    + 'CM_ BO_ 256 "Engine state";\n'
    + 'CM_ SG_ 256 EngineSpeed "Crankshaft speed";\n'
    + 'BA_DEF_ BO_ "GenMsgCycleTime" INT 0 10000;\n'
    + 'BA_DEF_DEF_ "GenMsgCycleTime" 0;\n'
    + 'BA_ "GenMsgCycleTime" BO_ 256 100;\n'
    + 'VAL_ 256 Gear 0 "PARK" 1 "REVERSE" 2 "NEUTRAL" 3 "DRIVE" ;\n'
    + "SIG_VALTYPE_ 768 Ratio : 1;\n"
)


_DBC_HEADER_ONLY = (
    'VERSION ""\n\n'
    + "NS_ :\n\n"
    + "BS_:\n\n"
    + "BU_: ECU1\n\n"
)


def _write_dbc(path: Path, text: str = _DBC_TEXT) -> Path:
    """Write a .dbc file and return its path."""
    path.write_text(text)
    return path


@pytest.fixture
def dbc_path(tmp_path: Path) -> Path:
    return _write_dbc(tmp_path / "vehicle.dbc")


@pytest.fixture
def loaded(dbc_path: Path):
    return load_dbc(dbc_path)


# ============================================================================
# Signal conversion
# ============================================================================

class TestSignalConversion:
    """Test cantools signals -> SignalDefinition."""

    def test_basic_signal(self, loaded) -> None:
        sig = loaded.message_by_id(256).signal("EngineSpeed")
        assert sig.start_bit == 0
        assert sig.size == 16
        assert sig.byte_order is ByteOrder.INTEL
        assert sig.value_type is ValueType.UNSIGNED_INT
        assert sig.factor == 0.25
        assert sig.bias == 0.0
        assert sig.unit == "rpm"
        assert sig.minimum == 0
        assert sig.maximum == 8000

    def test_offset(self, loaded) -> None:
        assert loaded.message_by_id(256).signal("EngineTemp").bias == -40.0

    def test_big_endian_signed(self, loaded) -> None:
        sig = loaded.message_by_id(256).signal("Torque")
        assert sig.byte_order is ByteOrder.MOTOROLA
        assert sig.value_type is ValueType.SIGNED_INT
        assert sig.start_bit == 39

    def test_value_table(self, loaded) -> None:
        sig = loaded.message_by_id(256).signal("Gear")
        assert sig.describe(1) == "REVERSE"
        assert sig.describe(3) == "DRIVE"
        assert len(sig.values) == 4

    def test_single_float(self, loaded) -> None:
        sig = loaded.message_by_id(768).signal("Ratio")
        assert sig.value_type is ValueType.SINGLE_FLOAT

    def test_receivers(self, loaded) -> None:
        assert loaded.message_by_id(256).signal("EngineSpeed").receivers == ("TCU",)

    def test_comment(self, loaded) -> None:
        assert loaded.message_by_id(256).signal("EngineSpeed").comment == "Crankshaft speed"

    def test_standalone_conversion(self) -> None:
        db = cantools.database.load_string(_DBC_TEXT, database_format="dbc")
        sig = signal_from_cantools(db.get_message_by_name("EngineStatus").get_signal_by_name("Gear"))
        assert sig.name == "Gear"
        assert sig.message_id is None


# ============================================================================
# Multiplexing
# ============================================================================

class TestMultiplexConversion:
    """Test M / mN multiplexing."""

    def test_multiplexor(self, loaded) -> None:
        message = loaded.message_by_id(512)
        assert message.multiplexor is not None
        assert message.multiplexor.name == "Mode"
        assert not message.multiplexor.is_multiplexed

    def test_multiplexed_signals(self, loaded) -> None:
        message = loaded.message_by_id(512)
        a = message.signal("SignalA")
        b = message.signal("SignalB")
        assert a.is_multiplexed and a.multiplex_value == 0
        assert b.is_multiplexed and b.multiplex_value == 1
        # gated by the message multiplexor, no override needed
        assert a.multiplexor_name is None

    def test_plain_message_has_no_multiplexor(self, loaded) -> None:
        assert loaded.message_by_id(256).multiplexor is None

    def test_loaded_definitions_validate(self, loaded) -> None:
        assert loaded.validate() == []

    def test_unconvertible_multiplexor_drops_gated_signals(self, tmp_path: Path) -> None:
        text = (
            _DBC_HEADER_ONLY
            + "BO_ 1024 Broken: 8 ECU1\n"
            + ' SG_ Mode M : 0|16@1+ (1,0) [0|0] "" Vector__XXX\n'
            + ' SG_ SignalA m0 : 16|8@1+ (1,0) [0|255] "" Vector__XXX\n'
            + ' SG_ SignalB m1 : 16|8@1+ (1,0) [0|255] "" Vector__XXX\n'
            + ' SG_ Plain : 32|8@1+ (1,0) [0|255] "" Vector__XXX\n'
            + "\n"
            + "SIG_VALTYPE_ 1024 Mode : 1;\n"
        )
        defs = load_dbc(_write_dbc(tmp_path / "broken.dbc", text))
        message = defs.message_by_id(1024)
        assert [s.name for s in message] == ["Plain"]
        assert message.multiplexor is None

    def test_orphans_dropped_through_chain(self) -> None:
        signals = [
            SignalDefinition("Plain", start_bit=0, size=8),
            SignalDefinition("SubMode", start_bit=8, size=8,
                             is_multiplexed=True, multiplex_value=1),
            SignalDefinition("Deep", start_bit=16, size=8, is_multiplexed=True,
                             multiplex_value=2, multiplexor_name="SubMode"),
        ]
        kept = _drop_orphans("M", signals, "Mode", {"Mode"})
        assert [s.name for s in kept] == ["Plain"]

    def test_no_orphans_without_skips(self) -> None:
        signals = [SignalDefinition("Plain", start_bit=0, size=8)]
        assert _drop_orphans("M", signals, None, set()) == signals


# ============================================================================
# Metadata
# ============================================================================

class TestMetadata:
    """Test senders, comments, nodes, attributes, version."""

    def test_senders(self, loaded) -> None:
        assert loaded.message_by_id(512).senders == ("TCU",)

    def test_message_comment(self, loaded) -> None:
        assert loaded.message_by_id(256).comment == "Engine state"

    def test_nodes(self, loaded) -> None:
        assert [n.name for n in loaded.nodes] == ["ECU1", "TCU"]
        assert loaded.node_by_name("ECU1").comment == "Engine controller"

    def test_message_attribute(self, loaded) -> None:
        attribute = loaded.message_by_id(256).find_attribute_by_name("genmsgcycletime")
        assert attribute is not None
        assert attribute.value == 100

    def test_version(self, loaded) -> None:
        assert loaded.version == "1.2"

    def test_database_to_definitions(self) -> None:
        db = cantools.database.load_string(_DBC_TEXT, database_format="dbc")
        defs = database_to_definitions(db)
        assert len(defs) == 3


# ============================================================================
# Decoding a loaded DBC
# ============================================================================

class TestDecodeLoadedDbc:
    """Decode frames against definitions loaded from a .dbc file."""

    def test_value_table_text(self, loaded) -> None:
        message = loaded.message_by_name("EngineStatus")
        frame = Frame(256, [0, 0, 0, 0x01, 0, 0, 0, 0])
        assert decode_as_text(frame, message, "Gear").value == "Gear: REVERSE"

    def test_big_endian_signed_value(self, loaded) -> None:
        message = loaded.message_by_name("EngineStatus")
        # Torque: bytes 4..5 big-endian = -2
        frame = Frame(256, [0, 0, 0, 0, 0xFF, 0xFE, 0, 0])
        assert decode_as_double(frame, message, "Torque").value == -2.0

    def test_matches_cantools(self, loaded, dbc_path: Path) -> None:
        db = cantools.database.load_file(str(dbc_path))
        data = bytes([0x40, 0x1F, 100, 0x02, 0x00, 0x64, 0, 0])
        expected = db.decode_message(256, data, decode_choices=False)
        message = loaded.message_by_id(256)
        for name, value in expected.items():
            assert decode_as_double(Frame(256, data), message, name).value == pytest.approx(value)

    def test_multiplexed(self, loaded) -> None:
        message = loaded.message_by_name("Multiplexed")
        frame = Frame(512, [1, 9, 0, 0, 0, 0, 0, 0])
        assert decode_as_double(frame, message, "SignalB").value == 9.0
        assert decode_as_double(frame, message, "SignalA").status is DecodeStatus.MULTIPLEX_MISMATCH

    def test_float(self, loaded) -> None:
        message = loaded.message_by_name("Floats")
        frame = Frame(768, struct.pack("<f", 0.5) + bytes(4))
        assert decode_as_double(frame, message, "Ratio").value == 0.5


# ============================================================================
# JSON export
# ============================================================================

class TestJsonExport:
    """Test definitions_to_json and convert_dbc_file."""

    def test_document_layout(self, loaded) -> None:
        doc = definitions_to_json(loaded)
        assert doc["version"] == "1.2"
        engine = doc["messages"][0]
        assert engine["id"] == 256
        assert engine["name"] == "EngineStatus"
        assert engine["dlc"] == 8
        assert engine["multiplexor"] is None
        gear = engine["signals"][2]
        assert gear["values"][1] == {"value": 1, "description": "REVERSE"}

    def test_multiplexed_document(self, loaded) -> None:
        mux = definitions_to_json(loaded)["messages"][1]
        assert mux["multiplexor"] == "Mode"
        assert mux["signals"][2]["multiplexed"] is True
        assert mux["signals"][2]["multiplexValue"] == 1

    def test_serialisable(self, loaded) -> None:
        json.dumps(definitions_to_json(loaded))

    def test_round_trip(self, loaded) -> None:
        doc = json.loads(json.dumps(definitions_to_json(loaded)))
        assert definitions_from_document(doc) == loaded

    def test_convert_dbc_file(self, dbc_path: Path, tmp_path: Path) -> None:
        output = tmp_path / "vehicle.json"
        text = convert_dbc_file(dbc_path, output)
        assert json.loads(output.read_text()) == json.loads(text)
        assert json.loads(text)["messages"][2]["name"] == "Floats"

    def test_convert_without_output(self, dbc_path: Path) -> None:
        assert "EngineStatus" in convert_dbc_file(dbc_path)


# ============================================================================
# Error handling
# ============================================================================

class TestErrors:
    """Test error paths."""

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="DBC file not found"):
            load_dbc(tmp_path / "missing.dbc")
