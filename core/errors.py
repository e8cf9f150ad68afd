"""
Exception hierarchy shared by the reconstruction layers.
"""

from typing import Optional


class ReconError(Exception):
    """Base class for all reconstruction errors."""


class ConfigurationError(ReconError, ValueError):
    """
    A configuration precondition was violated.

    Attributes:
        field: Name of the offending configuration field (or None).
        message: Human readable description of the violated condition.
    """

    def __init__(self, field: Optional[str], message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


class EngineError(ReconError, RuntimeError):
    """The reconstruction engine rejected a mandatory configuration step."""
