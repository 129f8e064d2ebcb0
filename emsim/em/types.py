"""
Electromagnetic Enumerations

Shared enumerations for the interaction engine: polarizations, transmitter
and receiver functions, antenna scan/stabilization/steering modes, the
geometry selector used by attenuation models, and the interaction status
bits.
"""

from enum import Enum, IntEnum, IntFlag
from typing import Type, TypeVar

from emsim.errors import ConfigurationError

E = TypeVar("E", bound=Enum)


class Polarization(IntEnum):
    """Signal/antenna polarization."""

    DEFAULT = 0
    HORIZONTAL = 1
    VERTICAL = 2
    SLANT_45 = 3
    SLANT_135 = 4
    LEFT_CIRCULAR = 5
    RIGHT_CIRCULAR = 6


class XmtrFunction(Enum):
    """Purpose of a transmitter."""

    COMM = "comm"
    SENSOR = "sensor"
    INTERFERER = "interferer"


class RcvrFunction(Enum):
    """Purpose of a receiver."""

    COMM = "comm"
    SENSOR = "sensor"
    PASSIVE_SENSOR = "passive_sensor"
    INTERFERER = "interferer"


class ScanMode(IntFlag):
    """Mechanical scan freedom of an antenna."""

    FIXED = 0
    AZIMUTH = 1
    ELEVATION = 2
    BOTH = 3


class ScanStabilization(IntFlag):
    """Attitude components removed from the scan frame."""

    NONE = 0
    PITCH = 1
    ROLL = 2
    PITCH_AND_ROLL = 3


class EBSMode(IntFlag):
    """Electronic beam steering axes."""

    NONE = 0
    AZIMUTH = 1
    ELEVATION = 2
    BOTH = 3


class Geometry(Enum):
    """Leg of an interaction to which an attenuation model is applied."""

    XMTR_TO_TARGET = "xmtr_to_target"
    TARGET_TO_RCVR = "target_to_rcvr"
    XMTR_TO_RCVR = "xmtr_to_rcvr"


class Status(IntFlag):
    """
    Interaction gate bits.

    The base gates occupy bits 0-15. Derived subsystems allocate bits from
    16 upward (see ``DERIVED_STATUS_SHIFT``).
    """

    NONE = 0
    RCVR_RANGE_LIMITS = 0x0001
    RCVR_ALTITUDE_LIMITS = 0x0002
    RCVR_ANGLE_LIMITS = 0x0004
    RCVR_HORIZON_MASKING = 0x0008
    RCVR_TERRAIN_MASKING = 0x0010
    XMTR_RANGE_LIMITS = 0x0020
    XMTR_ALTITUDE_LIMITS = 0x0040
    XMTR_ANGLE_LIMITS = 0x0080
    XMTR_HORIZON_MASKING = 0x0100
    XMTR_TERRAIN_MASKING = 0x0200
    SIGNAL_LEVEL = 0x0400
    MASKING_FACTOR = 0x0800


STATUS_MASK: int = 0xFFFF
"""Bits owned by the base interaction"""

DERIVED_STATUS_SHIFT: int = 16
"""First bit available to derived subsystems"""

CONCEALMENT: int = 1 << DERIVED_STATUS_SHIFT
"""Target concealed (e.g. inside a building or under foliage)"""

DOPPLER_LIMITS: int = 1 << (DERIVED_STATUS_SHIFT + 1)
"""Target Doppler outside the processed band"""

_ALIASES = {
    "azimuth_and_elevation": "both",
}


def parse_enum(enum_cls: Type[E], text: str, command: str = "") -> E:
    """
    Convert an input string to an enumeration member.

    Matching is case-insensitive against member names and (for string-valued
    enums) member values.

    Raises:
        ConfigurationError: If the string names no member
    """
    key = _ALIASES.get(str(text).strip().lower(), str(text).strip().lower())
    members = list(enum_cls.__members__.values())
    for member in members:
        if member.name.lower() == key:
            return member
        if isinstance(member.value, str) and member.value == key:
            return member
    choices = ", ".join(m.name.lower() for m in members)
    raise ConfigurationError(f"unknown value '{text}' (expected one of: {choices})", command)
