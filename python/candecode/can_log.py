"""CAN log file reader

Read industry-standard CAN log files into candecode Frames.
Supports ASC, BLF, CSV, candump .log, MF4, and TRC formats via python-can.

Example:
    from candecode import SignalExtractor, iter_can_log, load_dbc

    extractor = SignalExtractor(load_dbc("vehicle.dbc"))

    # Eager: load entire file
    frames = load_can_log("drive.blf")

    # Lazy: iterate one frame at a time
    for frame, result in extractor.extract_all(iter_can_log("highway.asc")):
        print(frame.timestamp, result.values)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Literal

import can

from .frame import Frame

logger = logging.getLogger(__name__)

_SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({
    ".asc", ".blf", ".csv", ".db", ".log", ".mf4", ".trc",
})


def load_can_log(
    path: str | Path,
    *,
    skip_error_frames: bool = True,
    skip_remote_frames: bool = True,
    on_error: Literal["skip", "raise"] = "skip",
) -> list[Frame]:
    """Load all CAN frames from a log file into memory.

    Args:
        path: Path to a CAN log file (.asc, .blf, .csv, .log, .mf4, .trc)
        skip_error_frames: Skip CAN error frames (default True)
        skip_remote_frames: Skip remote transmission request frames (default True)
        on_error: "skip" to skip corrupt frames, "raise" to propagate

    Returns:
        List of Frames in file order
    """
    return list(iter_can_log(
        path,
        skip_error_frames=skip_error_frames,
        skip_remote_frames=skip_remote_frames,
        on_error=on_error,
    ))


def iter_can_log(
    path: str | Path,
    *,
    skip_error_frames: bool = True,
    skip_remote_frames: bool = True,
    on_error: Literal["skip", "raise"] = "skip",
) -> Iterator[Frame]:
    """Lazily iterate CAN frames from a log file.

    Payloads are kept at their logged length; short frames are not padded,
    so signals beyond the payload decode as INSUFFICIENT_FRAME_LENGTH.

    Args:
        path: Path to a CAN log file (.asc, .blf, .csv, .log, .mf4, .trc)
        skip_error_frames: Skip CAN error frames (default True)
        skip_remote_frames: Skip remote transmission request frames (default True)
        on_error: "skip" to skip corrupt frames, "raise" to propagate

    Yields:
        Frames in file order
    """
    resolved = Path(path)
    _validate_path(resolved)

    reader = can.LogReader(str(resolved))
    skipped = 0
    try:
        for msg in reader:
            try:
                result = _convert_message(
                    msg,
                    skip_error_frames=skip_error_frames,
                    skip_remote_frames=skip_remote_frames,
                )
            except (ValueError, TypeError, AttributeError) as exc:
                if on_error == "raise":
                    raise
                logger.debug("Skipping corrupt frame in %s: %s", resolved, exc)
                skipped += 1
                continue

            if result is not None:
                yield result
    finally:
        reader.stop()
        if skipped:
            logger.info("Skipped %d corrupt frames in %s", skipped, resolved)


def _validate_path(path: Path) -> None:
    """Validate that the file exists and has a supported extension."""
    if not path.exists():
        raise FileNotFoundError(f"CAN log file not found: {path}")

    ext = _effective_extension(path)
    if ext not in _SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported CAN log format '{ext}'. " +
            f"Supported: {', '.join(sorted(_SUPPORTED_EXTENSIONS))}"
        )


def _effective_extension(path: Path) -> str:
    """Get the effective file extension, stripping .gz if present."""
    suffixes = path.suffixes
    if len(suffixes) >= 2 and suffixes[-1] == ".gz":
        return suffixes[-2]
    return path.suffix


def _convert_message(
    msg: can.Message,
    *,
    skip_error_frames: bool,
    skip_remote_frames: bool,
) -> Frame | None:
    """Convert a python-can Message to a Frame.

    Returns None if the message should be skipped.
    """
    if skip_error_frames and msg.is_error_frame:
        return None
    if skip_remote_frames and msg.is_remote_frame:
        return None

    data = bytes(msg.data) if msg.data is not None else b""
    return Frame(can_id=msg.arbitration_id, data=data, timestamp=float(msg.timestamp))
