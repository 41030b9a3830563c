"""Shared test fixtures for all test modules

Provides the small message definitions most decoder tests are built on.
"""

import pytest

from candecode import (
    ByteOrder,
    DefinitionSet,
    MessageDefinition,
    SignalDefinition,
    ValueDescription,
    ValueType,
)
from candecode.config import LOG_LEVEL_ENV


@pytest.fixture(autouse=True)
def _clear_log_level_env(monkeypatch):
    """Keep a developer's CANDECODE_LOG_LEVEL out of the tests"""
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)


@pytest.fixture
def engine_message():
    """Plain message: no multiplexing, mixed scaling and a value table"""
    return MessageDefinition.create(
        frame_id=0x100,
        name="EngineStatus",
        signals=[
            SignalDefinition("EngineSpeed", start_bit=0, size=16, factor=0.25, unit="rpm"),
            SignalDefinition("EngineTemp", start_bit=16, size=8, bias=-40.0, unit="C"),
            SignalDefinition(
                "Gear",
                start_bit=24,
                size=4,
                values=(
                    ValueDescription(0, "PARK"),
                    ValueDescription(1, "REVERSE"),
                    ValueDescription(2, "NEUTRAL"),
                    ValueDescription(3, "DRIVE"),
                ),
            ),
            SignalDefinition(
                "Torque", start_bit=32, size=16, value_type=ValueType.SIGNED_INT, unit="Nm",
            ),
        ],
        senders=["ECU1"],
    )


@pytest.fixture
def mux_message():
    """Multiplexed message: Mode selects SignalA (0) or SignalB (1)"""
    return MessageDefinition.create(
        frame_id=0x200,
        name="Multiplexed",
        signals=[
            SignalDefinition("Mode", start_bit=0, size=8),
            SignalDefinition("SignalA", start_bit=8, size=8, is_multiplexed=True, multiplex_value=0),
            SignalDefinition("SignalB", start_bit=8, size=8, is_multiplexed=True, multiplex_value=1),
            SignalDefinition("Counter", start_bit=16, size=8),
        ],
        multiplexor="Mode",
    )


@pytest.fixture
def string_message():
    """Message carrying a 3-character STRING signal in bytes 1..3"""
    return MessageDefinition.create(
        frame_id=0x300,
        name="Identity",
        signals=[
            SignalDefinition("Version", start_bit=0, size=8),
            SignalDefinition("Code", start_bit=8, size=24, value_type=ValueType.STRING),
        ],
    )


@pytest.fixture
def motorola_message():
    """Message with a big-endian 16-bit signal starting at bit 7"""
    return MessageDefinition.create(
        frame_id=0x400,
        name="BigEndian",
        signals=[
            SignalDefinition("Pressure", start_bit=7, size=16, byte_order=ByteOrder.MOTOROLA),
        ],
    )


@pytest.fixture
def definitions(engine_message, mux_message, string_message):
    return DefinitionSet(messages=(engine_message, mux_message, string_message))
