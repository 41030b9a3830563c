"""
Batch signal extraction for CAN frames.

Decodes every signal of a frame's message in one call. Single-signal
decoding lives in candecode.decoder; this module builds on it.

Classes:
    SignalExtractionResult: Rich result object for batch extraction
    SignalExtractor: Extract all signals of known messages from frames
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import override

from .config import DecoderConfig
from .decoder import DecodeResult, SignalDecoder
from .definitions import DefinitionSet, MessageDefinition
from .frame import Frame
from .protocols import DecodeStatus, ValueType

logger = logging.getLogger(__name__)


class SignalExtractionResult:
    """
    Rich result object for signal extraction.

    Partitions extraction results into categories:
    - values: Successfully decoded numeric signal values
    - texts: Display text of every decoded signal (raw text for STRING)
    - errors: Decode failures (signal name -> DecodeStatus)
    - absent: Multiplexed signals not present in this frame
    """

    values: dict[str, float]
    texts: dict[str, str]
    errors: dict[str, DecodeStatus]
    absent: list[str]

    def __init__(
        self,
        values: dict[str, float],
        texts: dict[str, str],
        errors: dict[str, DecodeStatus],
        absent: list[str],
    ):
        """
        Initialize extraction result.

        Args:
            values: Successfully decoded numeric values (name -> value)
            texts: Display text (name -> text)
            errors: Decode failures (signal name -> status)
            absent: Multiplexed signals not present (signal names)
        """
        self.values = values
        self.texts = texts
        self.errors = errors
        self.absent = absent

    def get(self, signal_name: str, default: float = 0.0) -> float:
        """
        Get signal value with default fallback.

        Args:
            signal_name: Name of the signal
            default: Default value if signal not in values

        Returns:
            Signal value or default
        """
        return self.values.get(signal_name, default)

    def has_errors(self) -> bool:
        """Check if any decode errors occurred."""
        return len(self.errors) > 0

    @override
    def __repr__(self) -> str:
        return (
            f"SignalExtractionResult("
            f"values={len(self.values)}, "
            f"texts={len(self.texts)}, "
            f"errors={len(self.errors)}, "
            f"absent={len(self.absent)})"
        )


class SignalExtractor:
    """
    Extract all signals of known messages from CAN frames.

    Holds an immutable DefinitionSet; one extractor may be shared by
    several threads.

    Example:
        >>> extractor = SignalExtractor(load_dbc("vehicle.dbc"))
        >>> result = extractor.extract(frame)
        >>> if result.has_errors():
        ...     print(f"Errors: {result.errors}")
        >>> speed = result.get("EngineSpeed", default=0.0)
    """

    def __init__(self, definitions: DefinitionSet, config: DecoderConfig | None = None):
        """
        Args:
            definitions: Message definitions to decode against
            config: Decoder settings (defaults if None)
        """
        self._definitions: DefinitionSet = definitions
        self._decoder: SignalDecoder = SignalDecoder(config)

    @property
    def definitions(self) -> DefinitionSet:
        return self._definitions

    def extract(self, frame: Frame) -> SignalExtractionResult:
        """
        Decode every signal of the frame's message.

        Args:
            frame: CAN frame

        Returns:
            SignalExtractionResult with values/texts/errors/absent partitioning

        Raises:
            ValueError: No message defined for the frame's CAN ID
        """
        message = self._definitions.message_by_id(frame.can_id)
        if message is None:
            raise ValueError(f"No message defined for CAN ID 0x{frame.can_id:X}")
        return self._extract_message(frame, message)

    def extract_all(
        self, frames: Iterable[Frame]
    ) -> Iterator[tuple[Frame, SignalExtractionResult]]:
        """
        Lazily decode a stream of frames, skipping unknown CAN IDs.

        Yields:
            (frame, result) pairs
        """
        for frame in frames:
            message = self._definitions.message_by_id(frame.can_id)
            if message is None:
                logger.debug("Skipping frame with unknown CAN ID 0x%X", frame.can_id)
                continue
            yield frame, self._extract_message(frame, message)

    def _extract_message(self, frame: Frame, message: MessageDefinition) -> SignalExtractionResult:
        values: dict[str, float] = {}
        texts: dict[str, str] = {}
        errors: dict[str, DecodeStatus] = {}
        absent: list[str] = []

        for signal in message.signals:
            # STRING signals only have text; everything else is decoded once
            result: DecodeResult[str] | DecodeResult[float]
            if signal.value_type is ValueType.STRING:
                result = self._decoder.decode_as_text(frame, message, signal)
            else:
                result = self._decoder.decode_as_double(frame, message, signal)

            if result.absent:
                absent.append(signal.name)
            elif not result.ok or result.value is None:
                errors[signal.name] = result.status
            elif isinstance(result.value, str):
                texts[signal.name] = result.value
            else:
                values[signal.name] = result.value
                texts[signal.name] = self._decoder.format_value(signal, result.value)

        return SignalExtractionResult(values=values, texts=texts, errors=errors, absent=absent)

    @override
    def __repr__(self) -> str:
        return f"SignalExtractor(messages={len(self._definitions)})"
