"""
Physical Constants for RF Interaction Modeling

All constants are in SI units as per IEEE Std 686-2008 and CODATA 2018.

References:
    - CODATA 2018: Fundamental Physical Constants
    - NIMA TR8350.2: Department of Defense World Geodetic System 1984
    - IEEE Std 686-2008: Standard Radar Definitions
"""

import math
from typing import Final

# =============================================================================
# FUNDAMENTAL CONSTANTS (CODATA 2018 - Exact definitions)
# =============================================================================

SPEED_OF_LIGHT: Final[float] = 299_792_458.0
"""Speed of light in vacuum [m/s] - Exact SI definition"""

BOLTZMANN_CONSTANT: Final[float] = 1.380649e-23
"""Boltzmann constant [J/K] - Exact SI definition (2019 redefinition)"""

# =============================================================================
# NOISE / ENVIRONMENT REFERENCE VALUES
# =============================================================================

STANDARD_TEMPERATURE: Final[float] = 290.0
"""Standard reference temperature T0 [K] - IEEE noise figure reference"""

STANDARD_PRESSURE: Final[float] = 1013.25
"""Standard sea-level atmospheric pressure [hPa]"""

STANDARD_WATER_VAPOR_DENSITY: Final[float] = 7.5
"""Standard water vapor density [g/m³] - ITU-R P.676"""

DEFAULT_NOISE_POWER: Final[float] = 1.0e-16
"""Noise power used when a receiver has no usable bandwidth [W]"""

# =============================================================================
# EARTH PARAMETERS (WGS-84)
# =============================================================================

WGS84_SEMI_MAJOR_AXIS: Final[float] = 6_378_137.0
"""WGS-84 equatorial radius a [m]"""

WGS84_FLATTENING: Final[float] = 1.0 / 298.257223563
"""WGS-84 flattening f"""

WGS84_ECCENTRICITY_SQUARED: Final[float] = WGS84_FLATTENING * (2.0 - WGS84_FLATTENING)
"""WGS-84 first eccentricity squared e² = f(2 - f)"""

EARTH_RADIUS: Final[float] = 6_366_707.0194937
"""Spherical Earth radius [m] - equal-area radius used by propagation models"""

EARTH_RADIUS_MULTIPLIER_RF: Final[float] = 4.0 / 3.0
"""Effective Earth radius factor k for standard RF refraction"""

EARTH_RADIUS_EFFECTIVE: Final[float] = EARTH_RADIUS * EARTH_RADIUS_MULTIPLIER_RF
"""Effective Earth radius for 4/3 Earth model [m] - Standard radar refraction"""

# =============================================================================
# CONVERSIONS
# =============================================================================

FOUR_PI: Final[float] = 4.0 * math.pi
"""4π, the isotropic spreading constant"""

DEG_TO_RAD: Final[float] = math.pi / 180.0
"""Degrees to radians"""

RAD_TO_DEG: Final[float] = 180.0 / math.pi
"""Radians to degrees"""

METERS_PER_NM: Final[float] = 1852.0
"""International nautical mile [m]"""

METERS_PER_FOOT: Final[float] = 0.3048
"""International foot [m]"""


def db_to_linear(value_db: float) -> float:
    """Convert a power ratio in dB to a linear ratio."""
    return 10.0 ** (0.1 * value_db)


def linear_to_db(value: float) -> float:
    """Convert a linear power ratio to dB (values ≤ 0 map to -inf)."""
    if value <= 0.0:
        return -math.inf
    return 10.0 * math.log10(value)


def normalize_angle_minus_pi_pi(angle: float) -> float:
    """Wrap an angle to (-π, π]."""
    wrapped = math.fmod(angle + math.pi, 2.0 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


def normalize_angle_0_two_pi(angle: float) -> float:
    """Wrap an angle to [0, 2π)."""
    wrapped = math.fmod(angle, 2.0 * math.pi)
    if wrapped < 0.0:
        wrapped += 2.0 * math.pi
    return wrapped
