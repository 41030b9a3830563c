"""Exception hierarchy

Decode outcomes are reported through DecodeStatus, never raised. These
exceptions cover invalid definitions and settings.
"""


class CanDecodeError(Exception):
    """Base exception for all candecode errors"""


class DefinitionError(CanDecodeError, ValueError):
    """Structurally invalid signal or message definition"""


class ConfigurationError(CanDecodeError, ValueError):
    """Invalid settings

    Attributes:
        problems: Every problem found while validating
    """

    def __init__(self, message: str, problems: list[str] | None = None):
        super().__init__(message)
        self.problems: list[str] = problems or []
