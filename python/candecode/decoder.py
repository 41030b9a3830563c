"""Signal decode engine

Three entry points share the multiplex and extraction machinery:

    decode_as_text    "<name>: <description-or-number><unit>"  (any type)
    decode_as_int     scaled value truncated to int32   (integer signals only)
    decode_as_double  scaled value as float             (all but STRING)

None of them raise for expected conditions. Every call returns a
DecodeResult whose ``status`` tells apart a valid zero from a signal that
is absent (multiplex mismatch), unavailable, truncated or of the wrong type:

    result = decode_as_double(frame, message, "EngineSpeed")
    if result.ok:
        plot(result.value)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Generic, TypeVar

from .bits import extract_integer, float32_from_bits, float64_from_bits
from .config import DEFAULT_DECODER_CONFIG, DecoderConfig
from .definitions import MessageDefinition, SignalDefinition
from .frame import Frame
from .protocols import ByteOrder, DecodeStatus, ValueType

logger = logging.getLogger(__name__)

T = TypeVar("T")

_INT32_SPAN = 1 << 32
_INT32_MIN = -(1 << 31)

_INTEGER_TYPES = frozenset({ValueType.SIGNED_INT, ValueType.UNSIGNED_INT})


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Outcome of a decode call.

    ``value`` is None unless ``status`` is OK. Truthiness follows ``ok``.
    """

    status: DecodeStatus
    value: T | None = None

    @property
    def ok(self) -> bool:
        return self.status is DecodeStatus.OK

    @property
    def absent(self) -> bool:
        """The signal is not carried by this frame variant."""
        return self.status is DecodeStatus.MULTIPLEX_MISMATCH

    def __bool__(self) -> bool:
        return self.ok


def _wrap_int32(value: int) -> int:
    """Wrap an integer into the signed 32-bit range."""
    return (value - _INT32_MIN) % _INT32_SPAN + _INT32_MIN


class SignalDecoder:
    """Decodes signals of a message out of CAN frames.

    Stateless apart from its configuration; safe to share between threads.

    Example:
        >>> decoder = SignalDecoder()
        >>> result = decoder.decode_as_text(frame, message, "GearPosition")
        >>> result.value
        'GearPosition: PARK'
    """

    def __init__(self, config: DecoderConfig | None = None):
        self.config: DecoderConfig = config or DEFAULT_DECODER_CONFIG

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def decode_as_text(
        self,
        frame: Frame,
        message: MessageDefinition,
        signal: SignalDefinition | str,
    ) -> DecodeResult[str]:
        """Decode a signal into display text.

        STRING signals return their raw characters. Every other type
        returns ``"<name>: "`` followed by the value-table description
        for the truncated scaled value, or the formatted number and unit.
        """
        sig = _resolve_signal(message, signal)

        status = self._resolve_multiplex(frame, message, sig, frozenset())
        if status is not DecodeStatus.OK:
            return DecodeResult(status)

        if sig.value_type is ValueType.STRING:
            return self._decode_string(frame, sig)

        status, scaled = _scaled_value(frame, sig)
        if scaled is None:
            return DecodeResult(status)
        return DecodeResult(DecodeStatus.OK, self.format_value(sig, scaled))

    def format_value(self, signal: SignalDefinition, scaled: float) -> str:
        """Render a scaled numeric value the way ``decode_as_text`` does."""
        description = None
        if signal.values and math.isfinite(scaled):
            description = signal.describe(int(scaled))
        if description is None:
            description = format(scaled, self.config.number_format) + signal.unit
        return f"{signal.name}: {description}"

    def decode_as_int(
        self,
        frame: Frame,
        message: MessageDefinition,
        signal: SignalDefinition | str,
    ) -> DecodeResult[int]:
        """Decode an integer signal, scaled and truncated to int32."""
        sig = _resolve_signal(message, signal)
        return self._decode_int(frame, message, sig, frozenset())

    def decode_as_double(
        self,
        frame: Frame,
        message: MessageDefinition,
        signal: SignalDefinition | str,
    ) -> DecodeResult[float]:
        """Decode any non-STRING signal as a scaled float."""
        sig = _resolve_signal(message, signal)
        if sig.value_type is ValueType.STRING:
            logger.debug("Signal %s: STRING has no numeric value", sig.name)
            return DecodeResult(DecodeStatus.UNSUPPORTED_CONVERSION)

        status = self._resolve_multiplex(frame, message, sig, frozenset())
        if status is not DecodeStatus.OK:
            return DecodeResult(status)

        status, scaled = _scaled_value(frame, sig)
        if scaled is None:
            return DecodeResult(status)
        return DecodeResult(DecodeStatus.OK, scaled)

    # ------------------------------------------------------------------
    # Multiplex resolution
    # ------------------------------------------------------------------

    def _resolve_multiplex(
        self,
        frame: Frame,
        message: MessageDefinition,
        signal: SignalDefinition,
        chain: frozenset[int],
    ) -> DecodeStatus:
        """Decide whether ``signal`` is carried by ``frame``.

        ``chain`` holds the indexes of the signals already being resolved
        further up a multiplexor chain.
        """
        if not signal.is_multiplexed:
            return DecodeStatus.OK

        mux = message.multiplexor_for(signal)
        if mux is None:
            logger.debug(
                "Signal %s is multiplexed but message %s has no multiplexor",
                signal.name, message.name,
            )
            return DecodeStatus.MULTIPLEX_UNAVAILABLE

        chain = chain | {signal.index}
        if mux.index in chain:
            logger.warning(
                "Multiplexor cycle in message %s at signal %s", message.name, mux.name,
            )
            return DecodeStatus.MULTIPLEX_UNAVAILABLE
        if len(chain) > self.config.max_multiplex_depth:
            logger.warning(
                "Multiplexor chain in message %s exceeds %d levels at signal %s",
                message.name, self.config.max_multiplex_depth, signal.name,
            )
            return DecodeStatus.MULTIPLEX_UNAVAILABLE

        selector = self._decode_int(frame, message, mux, chain)
        if not selector.ok:
            if selector.status is DecodeStatus.MULTIPLEX_MISMATCH:
                return DecodeStatus.MULTIPLEX_MISMATCH
            return DecodeStatus.MULTIPLEX_UNAVAILABLE
        if selector.value != signal.multiplex_value:
            return DecodeStatus.MULTIPLEX_MISMATCH
        return DecodeStatus.OK

    def _decode_int(
        self,
        frame: Frame,
        message: MessageDefinition,
        signal: SignalDefinition,
        chain: frozenset[int],
    ) -> DecodeResult[int]:
        if signal.value_type not in _INTEGER_TYPES:
            logger.debug(
                "Signal %s: %s cannot be decoded as int", signal.name, signal.value_type.name,
            )
            return DecodeResult(DecodeStatus.UNSUPPORTED_CONVERSION)

        status = self._resolve_multiplex(frame, message, signal, chain)
        if status is not DecodeStatus.OK:
            return DecodeResult(status)

        status, scaled = _scaled_value(frame, signal)
        if scaled is None:
            return DecodeResult(status)
        if not math.isfinite(scaled):
            logger.debug("Signal %s: scaled value %r is not finite", signal.name, scaled)
            return DecodeResult(DecodeStatus.UNSUPPORTED_CONVERSION)
        return DecodeResult(DecodeStatus.OK, _wrap_int32(int(scaled)))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _decode_string(self, frame: Frame, signal: SignalDefinition) -> DecodeResult[str]:
        start_byte = signal.start_bit // 8
        end_byte = start_byte + signal.size // 8
        if end_byte > frame.length:
            logger.debug(
                "Signal %s: needs bytes %d..%d, frame has %d",
                signal.name, start_byte, end_byte - 1, frame.length,
            )
            return DecodeResult(DecodeStatus.INSUFFICIENT_FRAME_LENGTH)
        raw = frame.data[start_byte:end_byte]
        return DecodeResult(
            DecodeStatus.OK, raw.decode(self.config.string_encoding, errors="replace"),
        )


def _resolve_signal(message: MessageDefinition, signal: SignalDefinition | str) -> SignalDefinition:
    """Accept a signal name or a signal belonging to ``message``.

    Raises:
        KeyError: Unknown signal name
        ValueError: Signal handle points to a different message
    """
    if isinstance(signal, str):
        return message.signal(signal)
    if not message.owns(signal):
        raise ValueError(
            f"Signal '{signal.name}' does not belong to message '{message.name}'"
        )
    return signal


def _scaled_value(frame: Frame, signal: SignalDefinition) -> tuple[DecodeStatus, float | None]:
    """Extract and scale a numeric (non-STRING) signal."""
    if signal.value_type is ValueType.SINGLE_FLOAT:
        raw = extract_integer(frame.data, signal.start_bit, 32, signal.byte_order, False)
        value = None if raw is None else float32_from_bits(raw)
    elif signal.value_type is ValueType.DOUBLE_FLOAT:
        # whole-payload reinterpretation: bits 0..63, start bit is ignored
        raw = None
        if frame.length >= 8:
            raw = extract_integer(frame.data, 0, 64, ByteOrder.INTEL, False)
        value = None if raw is None else float64_from_bits(raw)
    else:
        raw = extract_integer(
            frame.data, signal.start_bit, signal.size, signal.byte_order, signal.is_signed,
        )
        value = None if raw is None else float(raw)

    if value is None:
        logger.debug(
            "Signal %s: bits do not fit in %d-byte frame 0x%X",
            signal.name, frame.length, frame.can_id,
        )
        return DecodeStatus.INSUFFICIENT_FRAME_LENGTH, None
    return DecodeStatus.OK, value * signal.factor + signal.bias


# ============================================================================
# Module-level shortcuts using the default configuration
# ============================================================================

_DEFAULT_DECODER = SignalDecoder()


def decode_as_text(
    frame: Frame, message: MessageDefinition, signal: SignalDefinition | str,
) -> DecodeResult[str]:
    """Shortcut for ``SignalDecoder().decode_as_text``."""
    return _DEFAULT_DECODER.decode_as_text(frame, message, signal)


def decode_as_int(
    frame: Frame, message: MessageDefinition, signal: SignalDefinition | str,
) -> DecodeResult[int]:
    """Shortcut for ``SignalDecoder().decode_as_int``."""
    return _DEFAULT_DECODER.decode_as_int(frame, message, signal)


def decode_as_double(
    frame: Frame, message: MessageDefinition, signal: SignalDefinition | str,
) -> DecodeResult[float]:
    """Shortcut for ``SignalDecoder().decode_as_double``."""
    return _DEFAULT_DECODER.decode_as_double(frame, message, signal)
