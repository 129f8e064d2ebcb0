"""
Blake Tropospheric Absorption Model

Two-way tropospheric absorption from Blake's curve fits
L_dB = A·(1 - exp(-B·R_nm)), tabulated for seven frequencies between
100 MHz and 10 GHz and six beam elevations between 0° and 10°. The table
corners are converted to linear loss and interpolated bilinearly (elevation
first, then frequency). The one-way factor is the square root of the
two-way factor.

References:
    - Blake, "Radar Range-Performance Analysis", Artech House, 1986,
      Chapter 5 (Atmospheric absorption)
    - Blake, "Radar-Absorption Curves", NRL Report 7098, 1970
"""

from typing import Final

import numba
import numpy as np

from emsim.em.attenuation import AttenuationModel, register_attenuation_type
from emsim.physics.constants import METERS_PER_NM, RAD_TO_DEG

BLAKE_ELEVATIONS_DEG: Final[np.ndarray] = np.array([0.0, 0.5, 1.0, 2.0, 5.0, 10.0])
"""Table elevation angles [deg]"""

BLAKE_FREQUENCIES_HZ: Final[np.ndarray] = np.array([0.1e9, 0.2e9, 0.3e9, 0.6e9, 1.0e9, 3.0e9, 10.0e9])
"""Table frequencies [Hz]"""

BLAKE_A_COEFFICIENTS: Final[np.ndarray] = np.array(
    [
        [0.2739, 0.1881, 0.1605, 0.1031, 0.07371, 0.04119],
        [0.6848, 0.5533, 0.4282, 0.3193, 0.2158, 0.1017],
        [1.199, 0.9917, 0.7498, 0.5186, 0.3029, 0.1522],
        [2.210, 1.830, 1.314, 0.9499, 0.4724, 0.2512],
        [2.758, 2.177, 1.798, 1.168, 0.5732, 0.3007],
        [3.484, 2.592, 1.964, 1.345, 0.6478, 0.3408],
        [4.935, 3.450, 2.601, 1.718, 0.9130, 0.4420],
    ]
)
"""Asymptotic two-way loss A [dB], rows = frequency, columns = elevation"""

BLAKE_B_COEFFICIENTS: Final[np.ndarray] = np.array(
    [
        [0.008648, 0.008644, 0.01106, 0.01723, 0.02313, 0.04076],
        [0.008648, 0.008644, 0.01104, 0.01374, 0.02213, 0.04886],
        [0.006837, 0.008795, 0.01110, 0.01474, 0.03116, 0.05360],
        [0.008499, 0.009737, 0.01221, 0.01623, 0.03677, 0.07204],
        [0.01030, 0.01223, 0.01163, 0.01831, 0.03927, 0.08056],
        [0.009745, 0.01225, 0.01455, 0.02055, 0.04500, 0.08280],
        [0.00999, 0.01340, 0.01620, 0.02240, 0.03750, 0.08470],
    ]
)
"""Range rate constant B [1/nmi], rows = frequency, columns = elevation"""

MAX_RANGE_NM: Final[float] = 300.0
"""Range beyond which the curves are flat [nmi]"""


@numba.jit(nopython=True, cache=True)
def _search_jit(value: float, table: np.ndarray):
    """Binary search for the bracketing interval; returns (low index, fraction)."""
    lo = 0
    hi = table.shape[0] - 1
    while hi > lo + 1:
        mid = (lo + hi) // 2
        if value >= table[mid]:
            lo = mid
        else:
            hi = mid
    return lo, (value - table[lo]) / (table[hi] - table[lo])


@numba.jit(nopython=True, cache=True)
def _two_way_attenuation_jit(
    range_m: float,
    elevation_rad: float,
    frequency: float,
    frequencies: np.ndarray,
    elevations: np.ndarray,
    a_table: np.ndarray,
    b_table: np.ndarray,
) -> float:
    """
    JIT-compiled two-way Blake attenuation factor.

    Args:
        range_m: Slant range [m]
        elevation_rad: Beam elevation [rad]
        frequency: Frequency [Hz]

    Returns:
        Two-way attenuation factor (1 / linear loss)
    """
    range_nm = min(range_m / METERS_PER_NM, MAX_RANGE_NM)

    if frequency < 0.1e9:
        frequency = 0.10001e9
    elif frequency > 10.0e9:
        frequency = 9.99999e9
    fi, f_frac = _search_jit(frequency, frequencies)

    elevation = elevation_rad * RAD_TO_DEG
    elevation = min(max(elevation, elevations[0]), elevations[elevations.shape[0] - 1])
    ei, e_frac = _search_jit(elevation, elevations)

    loss = np.empty((2, 2))
    for i in range(2):
        for j in range(2):
            a = a_table[fi + i, ei + j]
            b = b_table[fi + i, ei + j]
            loss[i, j] = 10.0 ** (0.1 * a * (1.0 - np.exp(-b * range_nm)))

    x1 = loss[0, 0] + e_frac * (loss[0, 1] - loss[0, 0])
    x2 = loss[1, 0] + e_frac * (loss[1, 1] - loss[1, 0])
    return 1.0 / (x1 + f_frac * (x2 - x1))


def blake_two_way_attenuation(range_m: float, elevation: float, frequency: float) -> float:
    """
    Two-way tropospheric attenuation factor from Blake's curves.

    Frequencies outside 100 MHz - 10 GHz and elevations outside 0° - 10° are
    clamped to the table; range is capped at 300 nmi.

    Args:
        range_m: Slant range [m]
        elevation: Beam elevation [rad]
        frequency: Frequency [Hz]

    Returns:
        Two-way attenuation factor in (0, 1]
    """
    return float(
        _two_way_attenuation_jit(
            float(range_m),
            float(elevation),
            float(frequency),
            BLAKE_FREQUENCIES_HZ,
            BLAKE_ELEVATIONS_DEG,
            BLAKE_A_COEFFICIENTS,
            BLAKE_B_COEFFICIENTS,
        )
    )


class BlakeAttenuation(AttenuationModel):
    """Blake tropospheric absorption; the altitude of the path is not used."""

    model_type = "blake"

    def compute_attenuation_factor_p(self, path_range, elevation, altitude, frequency):
        return float(np.sqrt(blake_two_way_attenuation(path_range, elevation, frequency)))


register_attenuation_type(BlakeAttenuation.model_type, BlakeAttenuation)
