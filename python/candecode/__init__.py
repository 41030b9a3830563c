"""candecode - CAN signal decoding from DBC-style definitions

Decoding a single signal
========================

    from candecode import Frame, load_dbc, decode_as_text

    definitions = load_dbc("vehicle.dbc")
    message = definitions.message_by_name("Gearbox")
    frame = Frame(can_id=0x153, data=bytes.fromhex("0102000000000000"))

    result = decode_as_text(frame, message, "GearPosition")
    if result.ok:
        print(result.value)          # "GearPosition: REVERSE"
    elif result.absent:
        print("not in this frame")   # multiplexed out

Failures never raise; every call returns a DecodeResult carrying a
DecodeStatus.

Decoding whole frames
=====================

    from candecode import SignalExtractor, iter_can_log

    extractor = SignalExtractor(definitions)
    for frame, result in extractor.extract_all(iter_can_log("drive.asc")):
        print(frame.timestamp, result.values)
"""

from candecode.attributes import AttributeValue
from candecode.can_log import iter_can_log, load_can_log
from candecode.config import DecoderConfig, Settings, load_settings
from candecode.dbc_converter import definitions_to_json, load_dbc
from candecode.decoder import (
    DecodeResult,
    SignalDecoder,
    decode_as_double,
    decode_as_int,
    decode_as_text,
)
from candecode.definitions import (
    DefinitionSet,
    MessageDefinition,
    NodeDefinition,
    SignalDefinition,
    ValueDescription,
)
from candecode.errors import CanDecodeError, ConfigurationError, DefinitionError
from candecode.excel_loader import create_template, load_definitions_from_excel
from candecode.frame import Frame
from candecode.protocols import ByteOrder, DecodeStatus, ValueType
from candecode.signals import SignalExtractionResult, SignalExtractor
from candecode.yaml_loader import load_definitions

__version__ = "0.1.0"
__all__ = [
    "AttributeValue",
    "ByteOrder",
    "CanDecodeError",
    "ConfigurationError",
    "DecodeResult",
    "DecodeStatus",
    "DecoderConfig",
    "DefinitionError",
    "DefinitionSet",
    "Frame",
    "MessageDefinition",
    "NodeDefinition",
    "Settings",
    "SignalDecoder",
    "SignalDefinition",
    "SignalExtractionResult",
    "SignalExtractor",
    "ValueDescription",
    "ValueType",
    "create_template",
    "decode_as_double",
    "decode_as_int",
    "decode_as_text",
    "definitions_to_json",
    "iter_can_log",
    "load_can_log",
    "load_dbc",
    "load_definitions",
    "load_definitions_from_excel",
    "load_settings",
]
