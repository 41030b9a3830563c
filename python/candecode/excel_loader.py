"""Excel loader for signal definitions

Loads message and signal definitions from the DBC sheet of an Excel
workbook (.xlsx), so signal tables can be maintained in a spreadsheet
instead of a .dbc file.

Usage:
    from candecode import load_definitions_from_excel, create_template

    definitions = load_definitions_from_excel("vehicle.xlsx")

    # Create a blank template
    create_template("template.xlsx")

Excel Template Layout
=====================

**DBC**: one row per signal::

    Message ID | Message Name | DLC | Signal | Start Bit | Length |
    Byte Order | Value Type | Factor | Offset | Min | Max | Unit |
    Multiplexor | Multiplex Value | Values

Byte Order is ``intel``/``motorola`` (``little_endian``/``big_endian`` are
accepted too) and defaults to intel. Value Type defaults to unsigned_int.
Multiplexor and Multiplex Value are optional; if both are filled in, the
signal is multiplexed. The message multiplexor is the signal whose name
appears in the Multiplexor column. Values holds a value table such as
``0=PARK; 1=REVERSE``.
"""

from __future__ import annotations

import dataclasses
import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias, TypeGuard

import openpyxl
from openpyxl.styles import Font
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .definitions import (
    DefinitionSet,
    MessageDefinition,
    SignalDefinition,
    ValueDescription,
)
from .protocols import BYTE_ORDER_ALIASES, ByteOrder, ValueType

logger = logging.getLogger(__name__)

# Excel cell values: str, numbers, booleans, or None (empty)
CellValue: TypeAlias = str | int | float | bool | None

# A row of cell values as returned by openpyxl iter_rows(values_only=True)
ExcelRow: TypeAlias = tuple[CellValue, ...]


@dataclass(frozen=True)
class _MessageKey:
    """Grouping key for DBC message rows."""

    msg_id: int
    name: str
    dlc: int


# ============================================================================
# Sheet headers
# ============================================================================

_DBC_HEADERS = [
    "Message ID", "Message Name", "DLC", "Signal", "Start Bit", "Length",
    "Byte Order", "Value Type", "Factor", "Offset", "Min", "Max", "Unit",
    "Multiplexor", "Multiplex Value", "Values",
]


# ============================================================================
# Type guards and field accessors
# ============================================================================

def _is_str(val: object) -> TypeGuard[str]:
    return isinstance(val, str)


def _is_number(val: object) -> TypeGuard[int | float]:
    return isinstance(val, (int, float)) and not isinstance(val, bool)


def _get_str(d: dict[str, object], key: str, row_num: int) -> str:
    """Extract a required string field, with row-number error context."""
    val = d.get(key)
    if not _is_str(val):
        raise ValueError(f"Row {row_num}: missing or invalid '{key}' (expected string)")
    return val


def _get_number(d: dict[str, object], key: str, row_num: int, default: float) -> float:
    """Extract an optional numeric field, with row-number error context."""
    val = d.get(key, default)
    if _is_number(val):
        return float(val)
    raise ValueError(f"Row {row_num}: invalid '{key}' (expected number)")


def _get_optional_number(d: dict[str, object], key: str, row_num: int) -> float | None:
    if key not in d:
        return None
    return _get_number(d, key, row_num, 0.0)


def _get_int(d: dict[str, object], key: str, row_num: int) -> int:
    """Extract a required integer field, with row-number error context."""
    val = d.get(key)
    if isinstance(val, int) and not isinstance(val, bool):
        return val
    # Excel stores whole numbers typed into numeric cells as floats
    if isinstance(val, float) and val.is_integer():
        return int(val)
    raise ValueError(f"Row {row_num}: missing or invalid '{key}' (expected integer)")


# ============================================================================
# Row helpers
# ============================================================================

def _row_to_dict(headers: list[str], row: ExcelRow) -> dict[str, object]:
    """Zip headers with cell values, skipping empty cells."""
    return {
        h: v for h, v in zip(headers, row, strict=False)
        if v is not None and not (_is_str(v) and not v.strip())
    }


def _headers_from_row(row: ExcelRow) -> list[str]:
    """Extract header strings from the first row of a sheet."""
    return [str(c).strip() if c is not None else "" for c in row]


def _parse_message_id(val: object, row_num: int) -> int:
    """Parse a message ID from an int or hex-string cell value."""
    if isinstance(val, int) and not isinstance(val, bool):
        return val
    if _is_str(val):
        stripped = val.strip()
        try:
            if stripped.lower().startswith("0x"):
                return int(stripped, 16)
            return int(stripped)
        except ValueError:
            pass
    raise ValueError(
        f"Row {row_num}: invalid 'Message ID', expected integer or hex string (e.g. 0x100)"
    )


def _parse_value_table(val: object, row_num: int) -> tuple[ValueDescription, ...]:
    """Parse ``"0=PARK; 1=REVERSE"`` into value descriptions."""
    if val is None:
        return ()
    if not _is_str(val):
        raise ValueError(f"Row {row_num}: 'Values' must be text like '0=OFF; 1=ON'")

    entries: list[ValueDescription] = []
    for part in val.split(";"):
        part = part.strip()
        if not part:
            continue
        raw, sep, description = part.partition("=")
        if not sep:
            raise ValueError(f"Row {row_num}: value table entry '{part}' has no '='")
        try:
            value = int(raw.strip(), 0)
        except ValueError:
            raise ValueError(
                f"Row {row_num}: value table key '{raw.strip()}' is not an integer"
            ) from None
        entries.append(ValueDescription(value=value, description=description.strip()))
    return tuple(entries)


# ============================================================================
# Public API
# ============================================================================

def load_definitions_from_excel(
    path: str | Path,
    *,
    sheet: str = "DBC",
) -> DefinitionSet:
    """Load message definitions from the DBC sheet of an Excel workbook.

    Args:
        path: Path to a .xlsx workbook
        sheet: Name of the DBC sheet

    Returns:
        Immutable DefinitionSet

    Raises:
        FileNotFoundError: File doesn't exist
        ValueError: Invalid or missing data
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Excel file not found: {path}")

    wb = openpyxl.load_workbook(p, read_only=True, data_only=True)
    try:
        if sheet not in wb.sheetnames:
            raise ValueError(f"Workbook has no '{sheet}' sheet")

        ws = wb[sheet]
        rows: list[ExcelRow] = list(ws.iter_rows(values_only=True))
        if len(rows) < 2:
            raise ValueError("DBC sheet must have a header row and at least one data row")

        headers = _headers_from_row(rows[0])
        data_rows = [
            (row_num, _row_to_dict(headers, r))
            for row_num, r in enumerate(rows[1:], start=2)
        ]
        # Filter out completely empty rows
        data_rows = [(n, r) for n, r in data_rows if r]

        if not data_rows:
            raise ValueError("DBC sheet has no data rows")

        definitions = _parse_dbc_rows(data_rows)
    finally:
        wb.close()

    for problem in definitions.validate():
        logger.warning(problem)
    logger.info("Loaded %d messages from %s", len(definitions), p)
    return definitions


def create_template(path: str | Path) -> None:
    """Create a blank Excel template with a bold DBC header row.

    Does not overwrite existing files.

    Args:
        path: Output path for the .xlsx file

    Raises:
        FileExistsError: File already exists
    """
    p = Path(path)
    if p.exists():
        raise FileExistsError(f"File already exists: {path}")

    wb = Workbook()

    # DBC sheet (rename the default sheet)
    ws_dbc = wb.active
    assert ws_dbc is not None
    ws_dbc.title = "DBC"
    _write_header_row(ws_dbc, _DBC_HEADERS)

    wb.save(str(p))


# ============================================================================
# Internal
# ============================================================================

def _write_header_row(ws: Worksheet, headers: list[str]) -> None:
    """Write bold header row to a worksheet."""
    bold = Font(bold=True)
    for col_idx, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = bold


def _parse_dbc_signal(row: dict[str, object], row_num: int) -> SignalDefinition:
    """Parse a single DBC signal row into a SignalDefinition."""
    byte_order = str(row.get("Byte Order", ByteOrder.INTEL.value)).strip().lower()
    if byte_order not in BYTE_ORDER_ALIASES:
        raise ValueError(
            f"Row {row_num}: 'Byte Order' must be one of {', '.join(sorted(BYTE_ORDER_ALIASES))}"
        )

    value_type = str(row.get("Value Type", ValueType.UNSIGNED_INT.value)).strip().lower()
    try:
        vtype = ValueType(value_type)
    except ValueError:
        raise ValueError(f"Row {row_num}: unknown 'Value Type' '{value_type}'") from None

    unit = row.get("Unit")
    unit_str = str(unit) if _is_str(unit) else ""

    has_muxor = "Multiplexor" in row
    has_mux_val = "Multiplex Value" in row

    if has_muxor != has_mux_val:
        msg = "must both be provided or both be empty"
        raise ValueError(
            f"Row {row_num}: 'Multiplexor' and 'Multiplex Value' {msg}"
        )

    return SignalDefinition(
        name=_get_str(row, "Signal", row_num),
        start_bit=_get_int(row, "Start Bit", row_num),
        size=_get_int(row, "Length", row_num),
        byte_order=BYTE_ORDER_ALIASES[byte_order],
        value_type=vtype,
        factor=_get_number(row, "Factor", row_num, 1.0),
        bias=_get_number(row, "Offset", row_num, 0.0),
        unit=unit_str,
        values=_parse_value_table(row.get("Values"), row_num),
        is_multiplexed=has_muxor,
        multiplex_value=_get_int(row, "Multiplex Value", row_num) if has_mux_val else 0,
        multiplexor_name=_get_str(row, "Multiplexor", row_num) if has_muxor else None,
        minimum=_get_optional_number(row, "Min", row_num),
        maximum=_get_optional_number(row, "Max", row_num),
    )


def _top_level_multiplexor(signals: list[SignalDefinition]) -> str | None:
    """Pick the referenced multiplexor that is not itself multiplexed."""
    referenced = {s.multiplexor_name for s in signals if s.multiplexor_name is not None}
    for signal in signals:
        if signal.name in referenced and not signal.is_multiplexed:
            return signal.name
    return None


def _parse_dbc_rows(rows: list[tuple[int, dict[str, object]]]) -> DefinitionSet:
    """Group DBC rows by message and build a DefinitionSet."""
    groups: dict[_MessageKey, list[tuple[int, dict[str, object]]]] = defaultdict(list)
    insertion_order: list[_MessageKey] = []

    for row_num, row in rows:
        key = _MessageKey(
            msg_id=_parse_message_id(row.get("Message ID"), row_num),
            name=_get_str(row, "Message Name", row_num),
            dlc=_get_int(row, "DLC", row_num),
        )
        if key not in groups:
            insertion_order.append(key)
        groups[key].append((row_num, row))

    messages: list[MessageDefinition] = []
    for key in insertion_order:
        signals = [_parse_dbc_signal(row, row_num) for row_num, row in groups[key]]
        multiplexor = _top_level_multiplexor(signals)
        # Signals gated by the message multiplexor need no per-signal override
        signals = [
            dataclasses.replace(s, multiplexor_name=None)
            if multiplexor is not None and s.multiplexor_name == multiplexor else s
            for s in signals
        ]
        messages.append(MessageDefinition.create(
            frame_id=key.msg_id,
            name=key.name,
            signals=signals,
            multiplexor=multiplexor,
            length=key.dlc,
        ))

    return DefinitionSet(messages=tuple(messages))

