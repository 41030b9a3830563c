"""Settings for the decoder and the command-line front end

Sources, highest priority first:
1. ``CANDECODE_LOG_LEVEL`` environment variable (log level only)
2. YAML settings file
3. Defaults

Example settings file::

    log_level: INFO
    decoder:
      max_multiplex_depth: 8
      number_format: ".3f"
      string_encoding: ascii
"""

from __future__ import annotations

import codecs
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml  # type: ignore[import-untyped]

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "CANDECODE_LOG_LEVEL"

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DecoderConfig:
    """Decode engine settings.

    Attributes:
        max_multiplex_depth: Longest multiplexor chain followed before
            giving up with MULTIPLEX_UNAVAILABLE
        number_format: ``format()`` format string for numbers in text output
        string_encoding: Codec for STRING signals
    """

    max_multiplex_depth: int = 16
    number_format: str = "g"
    string_encoding: str = "latin-1"

    def validate(self) -> list[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors: list[str] = []
        depth = self.max_multiplex_depth
        if not isinstance(depth, int) or isinstance(depth, bool) or depth < 1:
            errors.append("max_multiplex_depth must be an integer >= 1")
        try:
            format(1.5, self.number_format)
        except (ValueError, TypeError):
            errors.append(f"number_format {self.number_format!r} is not a valid float format")
        try:
            codecs.lookup(self.string_encoding)
        except (LookupError, TypeError):
            errors.append(f"string_encoding {self.string_encoding!r} is not a known codec")
        return errors


@dataclass(frozen=True)
class Settings:
    """Top-level settings."""

    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    log_level: str = "WARNING"

    def validate(self) -> list[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors = self.decoder.validate()
        if not isinstance(self.log_level, str) or self.log_level.upper() not in _VALID_LOG_LEVELS:
            errors.append(f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}")
        return errors


DEFAULT_DECODER_CONFIG = DecoderConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from an optional YAML file plus the environment.

    Args:
        path: YAML settings file, or None for defaults

    Returns:
        Validated Settings

    Raises:
        FileNotFoundError: Settings file doesn't exist
        ConfigurationError: Unknown keys or invalid values
    """
    raw: dict[str, object] = {}
    if path is not None:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Settings file not found: {path}")
        with open(p, encoding="utf-8") as f:
            loaded: object = yaml.safe_load(f)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError("Settings file must contain a YAML mapping")
        raw = loaded
        logger.info("Loaded settings from %s", p)

    unknown = set(raw) - {"decoder", "log_level"}
    if unknown:
        raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")

    decoder_raw = raw.get("decoder", {}) or {}
    if not isinstance(decoder_raw, dict):
        raise ConfigurationError("'decoder' must be a mapping")
    try:
        decoder = DecoderConfig(**decoder_raw)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid decoder settings: {exc}") from exc

    log_level = os.environ.get(LOG_LEVEL_ENV) or raw.get("log_level", "WARNING")
    settings = Settings(decoder=decoder, log_level=str(log_level).upper())

    problems = settings.validate()
    if problems:
        raise ConfigurationError("Invalid settings: " + "; ".join(problems), problems)
    return settings
