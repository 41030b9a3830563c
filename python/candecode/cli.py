"""Command-line interface for candecode

Subcommands:
    signals  - list all signals defined in a definition file
    extract  - decode signals from a single CAN frame
    decode   - decode every known frame of a CAN log file

Definition files may be .dbc, .yaml/.yml or .xlsx.

Usage:
    python -m candecode signals --dbc vehicle.dbc
    python -m candecode extract --dbc vehicle.dbc 0x100 401F820000000000
    python -m candecode decode --dbc vehicle.dbc drive.blf --limit 100
    python -m candecode --config settings.yaml --log-level DEBUG decode --dbc vehicle.yaml drive.asc
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import NoReturn, TypedDict

from .can_log import iter_can_log
from .config import Settings, load_settings
from .dbc_converter import definitions_to_json, load_dbc
from .definitions import DefinitionSet, SignalDefinition
from .errors import ConfigurationError
from .excel_loader import load_definitions_from_excel
from .frame import Frame
from .protocols import ByteOrder
from .signals import SignalExtractionResult, SignalExtractor
from .yaml_loader import load_definitions

logger = logging.getLogger(__name__)


# ============================================================================
# Exit codes
# ============================================================================

_EXIT_OK = 0
_EXIT_ERRORS = 1
_EXIT_ERROR = 2


class _FrameReport(TypedDict):
    timestamp: float
    can_id: int
    message: str
    values: dict[str, float]
    texts: dict[str, str]
    errors: dict[str, str]
    absent: list[str]


# ============================================================================
# Helpers
# ============================================================================

def _die(msg: str) -> NoReturn:
    """Print error to stderr and exit with code 2."""
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(_EXIT_ERROR)


def parse_can_id(s: str) -> int:
    """Parse a CAN ID from hex (0x100) or decimal (256) string.

    Raises:
        ValueError: If *s* is not a valid integer.
    """
    s = s.strip()
    try:
        if s.lower().startswith("0x"):
            return int(s, 16)
        return int(s)
    except ValueError as exc:
        raise ValueError(f"invalid CAN ID: {s!r}") from exc


def parse_hex_data(s: str) -> bytes:
    """Parse hex data string into bytes.

    Accepts:
        "401F820000000000"
        "40 1F 82 00 00 00 00 00"
        "40:1F:82:00:00:00:00:00"

    Raises:
        ValueError: If *s* contains non-hex characters or has odd length.
    """
    cleaned = s.replace(" ", "").replace(":", "")
    if cleaned.lower().startswith("0x"):
        cleaned = cleaned[2:]
    if len(cleaned) % 2 != 0:
        raise ValueError(f"hex data has odd number of characters: {s!r}")
    try:
        return bytes.fromhex(cleaned)
    except ValueError as exc:
        raise ValueError(f"invalid hex data: {s!r}") from exc


def _load_definitions(path_str: str) -> DefinitionSet:
    """Load definitions from a .dbc, .yaml/.yml or .xlsx file."""
    p = Path(path_str)
    if not p.exists():
        _die(f"definition file not found: {path_str}")
    suffix = p.suffix.lower()
    if suffix == ".xlsx":
        return load_definitions_from_excel(p)
    if suffix in (".yaml", ".yml"):
        return load_definitions(p)
    return load_dbc(p)


def _configure_logging(args: argparse.Namespace, settings: Settings) -> None:
    level: str = args.log_level or settings.log_level
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _status_names(result: SignalExtractionResult) -> dict[str, str]:
    return {name: status.value for name, status in result.errors.items()}


def _display_lines(result: SignalExtractionResult) -> list[str]:
    """Decoded text per signal; STRING signals carry no name prefix of their own."""
    return [
        text if name in result.values else f"{name}: {text}"
        for name, text in result.texts.items()
    ]


# ============================================================================
# Subcommand: signals
# ============================================================================

def _format_signal_line(sig: SignalDefinition) -> str:
    """Format a single signal as a one-line summary."""
    order = "LE" if sig.byte_order is ByteOrder.INTEL else "BE"
    offset_str = f"+{sig.bias:g}" if sig.bias >= 0 else f"{sig.bias:g}"
    mux_part = ""
    if sig.is_multiplexed:
        mux_part = f"  mux={sig.multiplex_value}"
    range_str = ""
    if sig.minimum is not None or sig.maximum is not None:
        range_str = f"  [{sig.minimum}, {sig.maximum}]"

    return (
        f"  {sig.name:<20s} bits[{sig.start_bit}:{sig.size}]"
        + f"   {order}  {sig.value_type.value:<12s}"
        + f"  x{sig.factor:g} {offset_str}"
        + f"  {sig.unit:>6s}{range_str}{mux_part}"
    )


def _print_signals_text(definitions: DefinitionSet) -> None:
    """Print definitions in human-readable text format."""
    total_signals = 0

    for msg in definitions:
        sender_part = f", sender {', '.join(msg.senders)}" if msg.senders else ""
        mux = msg.multiplexor
        mux_part = f", multiplexor {mux.name}" if mux is not None else ""
        print(f"Message 0x{msg.frame_id:X} {msg.name} (DLC {msg.length}{sender_part}{mux_part})")

        for sig in msg:
            total_signals += 1
            print(_format_signal_line(sig))

        print()

    print(f"{len(definitions)} messages, {total_signals} signals")


def _cmd_signals(args: argparse.Namespace, settings: Settings) -> int:
    """List signals defined in a definition file."""
    definitions = _load_definitions(args.dbc)

    if getattr(args, "json", False):
        print(json.dumps(definitions_to_json(definitions), indent=2))
    else:
        _print_signals_text(definitions)

    return _EXIT_OK


# ============================================================================
# Subcommand: extract
# ============================================================================

def _print_extract_text(
    frame: Frame, message_name: str, result: SignalExtractionResult,
) -> None:
    """Print extraction results in human-readable text format."""
    print(f"CAN ID 0x{frame.can_id:X} ({message_name}):")
    print()

    if result.texts:
        for line in _display_lines(result):
            print(f"  {line}")
    else:
        print("  (no signals)")

    print()
    _print_extract_errors(result)


def _print_extract_errors(result: SignalExtractionResult) -> None:
    """Print extraction error/absent sections."""
    if result.errors:
        print("Errors:")
        for name, status in result.errors.items():
            print(f"  {name}: {status.value}")
    else:
        print("Errors: none")

    if result.absent:
        print(f"Absent: {', '.join(result.absent)}")
    else:
        print("Absent: none")


def _cmd_extract(args: argparse.Namespace, settings: Settings) -> int:
    """Decode signals from a single CAN frame."""
    definitions = _load_definitions(args.dbc)
    frame = Frame(can_id=parse_can_id(args.can_id), data=parse_hex_data(args.data))

    message = definitions.message_by_id(frame.can_id)
    if message is None:
        _die(f"no message defined for CAN ID 0x{frame.can_id:X}")

    extractor = SignalExtractor(definitions, settings.decoder)
    result = extractor.extract(frame)

    if getattr(args, "json", False):
        out = {
            "can_id": frame.can_id,
            "message": message.name,
            "values": result.values,
            "texts": result.texts,
            "errors": _status_names(result),
            "absent": result.absent,
        }
        print(json.dumps(out, indent=2))
    else:
        _print_extract_text(frame, message.name, result)

    return _EXIT_ERRORS if result.has_errors() else _EXIT_OK


# ============================================================================
# Subcommand: decode
# ============================================================================

def _print_frame_text(frame: Frame, message_name: str, result: SignalExtractionResult) -> None:
    texts = "  ".join(_display_lines(result))
    errors = "".join(f"  {name}={status.value}" for name, status in result.errors.items())
    print(f"{frame.timestamp:.6f} 0x{frame.can_id:X} {message_name}  {texts}{errors}")


def _cmd_decode(args: argparse.Namespace, settings: Settings) -> int:
    """Decode every known frame of a CAN log file."""
    definitions = _load_definitions(args.dbc)
    logfile: str = args.logfile

    if not Path(logfile).exists():
        _die(f"log file not found: {logfile}")

    limit: int | None = args.limit
    if limit is not None and limit < 1:
        _die(f"--limit must be positive, got {limit}")

    extractor = SignalExtractor(definitions, settings.decoder)
    reports: list[_FrameReport] = []
    decoded = 0
    with_errors = 0

    for frame, result in extractor.extract_all(iter_can_log(logfile)):
        message = definitions.message_by_id(frame.can_id)
        message_name = message.name if message is not None else ""
        decoded += 1
        if result.has_errors():
            with_errors += 1

        if args.json:
            reports.append({
                "timestamp": frame.timestamp,
                "can_id": frame.can_id,
                "message": message_name,
                "values": result.values,
                "texts": result.texts,
                "errors": _status_names(result),
                "absent": result.absent,
            })
        else:
            _print_frame_text(frame, message_name, result)

        if limit is not None and decoded >= limit:
            break

    if args.json:
        print(json.dumps({
            "decoded_frames": decoded,
            "frames_with_errors": with_errors,
            "frames": reports,
        }, indent=2))
    else:
        print()
        print(f"Summary: {decoded} frames decoded, {with_errors} with errors")

    logger.info("Decoded %d frames from %s", decoded, logfile)
    return _EXIT_OK


# ============================================================================
# Argument parser
# ============================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="candecode",
        description="Decode CAN signals using DBC-style definitions",
    )
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="logging level (overrides settings and CANDECODE_LOG_LEVEL)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # -- signals -------------------------------------------------------------
    p_signals = subparsers.add_parser(
        "signals",
        help="list signals defined in a definition file",
    )
    p_signals.add_argument("--dbc", required=True, help=".dbc, .yaml or .xlsx file")
    p_signals.add_argument("--json", action="store_true", help="output as JSON")

    # -- extract -------------------------------------------------------------
    p_extract = subparsers.add_parser(
        "extract",
        help="decode signals from a single CAN frame",
    )
    p_extract.add_argument("can_id", help="CAN ID (hex 0x100 or decimal 256)")
    p_extract.add_argument("data", help="frame data as hex bytes")
    p_extract.add_argument("--dbc", required=True, help=".dbc, .yaml or .xlsx file")
    p_extract.add_argument("--json", action="store_true", help="output as JSON")

    # -- decode --------------------------------------------------------------
    p_decode = subparsers.add_parser(
        "decode",
        help="decode a CAN log file",
    )
    p_decode.add_argument("logfile", help="CAN log file (.asc, .blf, .csv, .log, .mf4, .trc)")
    p_decode.add_argument("--dbc", required=True, help=".dbc, .yaml or .xlsx file")
    p_decode.add_argument("--json", action="store_true", help="output as JSON")
    p_decode.add_argument("--limit", type=int, help="stop after N decoded frames")

    return parser


# ============================================================================
# Entry point
# ============================================================================

_COMMANDS = {
    "signals": _cmd_signals,
    "extract": _cmd_extract,
    "decode": _cmd_decode,
}


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code."""
    parser = _build_parser()

    try:
        args = parser.parse_args(argv)
        settings = load_settings(args.config)
        _configure_logging(args, settings)
        handler = _COMMANDS[args.command]
        return handler(args, settings)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else _EXIT_ERROR
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        for problem in e.problems:
            print(f"  - {problem}", file=sys.stderr)
        return _EXIT_ERROR
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return _EXIT_ERROR
