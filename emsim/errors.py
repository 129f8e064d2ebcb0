"""
Exception Hierarchy

Gate failures (range, altitude, field of view, masking, signal level) are
reported through the interaction status bitmasks and never raise. The
exceptions below cover the remaining error kinds: configuration faults found
while loading a scenario and programming faults found at run time.
"""

from typing import Optional


class EMSimError(Exception):
    """Base class for all errors raised by the interaction engine."""


class ConfigurationError(EMSimError, ValueError):
    """
    Invalid user input.

    Raised for an out-of-range scalar, an unknown enumeration string, a
    reference to an undefined pattern or model, or an inconsistent table.

    Attributes:
        command: Input keyword that was being processed (if known)
        source: File name and line number of the offending input (if known)
    """

    def __init__(
        self, message: str, command: Optional[str] = None, source: Optional[str] = None
    ) -> None:
        self.command = command
        self.source = source
        prefix = ""
        if source:
            prefix += f"{source}: "
        if command:
            prefix += f"'{command}': "
        super().__init__(prefix + message)


class ProgrammingError(EMSimError, RuntimeError):
    """Run-time misuse: uninitialized antenna, missing part, NaN input."""
