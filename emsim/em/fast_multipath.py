"""
Fast Multipath Propagation Model

Closed-form two-ray (direct + specular reflection) pattern-propagation
factor over a smooth spherical earth of effective radius k·Re.

Algorithm:
    1. Solve Blake's cubic for the specular point: ground ranges G1/G2,
       path lengths R1/R2, grazing angle ψ and path-length difference δ
    2. Fresnel reflection coefficient ρ₀·e^(-jφ) from the complex
       relative permittivity of moist soil (or sea/lake water)
    3. Specular roughness factor ρₛ = exp(-2(2πσ·sinψ/λ)²)
    4. Per antenna F² = 1 + (ρr)² + 2ρr·cos(2πδ/λ + φ) with
       r = √(G_reflect / G_direct)

The returned F⁴ is the product of the transmit and receive factors.

References:
    - Blake, "Radar Range-Performance Analysis", Artech House, 1986,
      Chapter 6 (equations 6.9, 6.48-6.58 and 6.74)
    - Ulaby, Moore & Fung, "Microwave Remote Sensing", Vol. III, 1986
      (dielectric constant of moist soil)
    - Saxton & Lane, "Electrical properties of sea water", Radio Science,
      Vol. 87, 1952
"""

import logging
from typing import Any, Optional, Tuple

import numba
import numpy as np

from emsim.em.propagation import PropagationModel, register_propagation_type
from emsim.em.types import Polarization, RcvrFunction
from emsim.errors import ConfigurationError
from emsim.physics.constants import SPEED_OF_LIGHT

logger = logging.getLogger(__name__)

# =============================================================================
# SURFACE DIELECTRIC TABLES
# =============================================================================

SOIL_FREQUENCIES_HZ = np.array([0.3e9, 3.0e9, 8.0e9, 14.0e9, 24.0e9])
"""Soil table frequencies [Hz]"""

SOIL_MOISTURES = np.array([0.003, 0.1, 0.2, 0.3])
"""Soil table volumetric moisture fractions"""

SOIL_EPSILON_REAL = np.array(
    [
        [2.9, 6.0, 10.5, 16.7],
        [2.9, 6.0, 10.5, 16.7],
        [2.8, 5.8, 10.3, 15.3],
        [2.8, 5.6, 9.4, 12.6],
        [2.6, 4.9, 7.7, 9.6],
    ]
)
"""Real part of the soil relative permittivity (frequency × moisture)"""

SOIL_EPSILON_IMAG = np.array(
    [
        [0.071, 0.45, 0.75, 1.2],
        [0.027, 0.4, 1.1, 2.0],
        [0.032, 0.87, 2.25, 4.1],
        [0.035, 1.14, 3.7, 6.3],
        [0.03, 1.15, 4.8, 8.5],
    ]
)
"""Imaginary part of the soil relative permittivity (frequency × moisture)"""

WATER_FREQUENCIES_HZ = np.array([0.1e9, 1.0e9, 2.0e9, 3.0e9, 4.0e9, 6.0e9, 8.0e9])
"""Water table frequencies [Hz]"""

WATER_TEMPERATURES_C = np.array([0.0, 10.0, 20.0])
"""Water table temperatures [°C]"""

SEA_EPSILON_REAL = np.array(
    [
        [77.8, 75.6, 72.5],
        [77.0, 75.2, 72.3],
        [74.6, 74.0, 71.6],
        [71.0, 72.1, 70.5],
        [66.5, 69.5, 69.1],
        [56.5, 63.2, 65.4],
        [47.0, 56.2, 60.8],
    ]
)
"""Relative permittivity of sea water (frequency × temperature)"""

SEA_CONDUCTIVITY = np.array(
    [
        [2.9, 3.8, 4.8],
        [3.3, 4.1, 5.0],
        [4.6, 5.0, 5.6],
        [6.4, 6.4, 6.7],
        [8.8, 8.2, 8.0],
        [14.0, 13.0, 12.0],
        [19.0, 18.0, 16.0],
    ]
)
"""Conductivity of sea water [S/m] (frequency × temperature)"""

LAKE_EPSILON_REAL = np.array(
    [
        [85.9, 83.0, 79.1],
        [84.9, 82.5, 78.8],
        [82.1, 81.1, 78.1],
        [77.9, 78.9, 76.9],
        [72.6, 75.9, 75.3],
        [61.1, 68.7, 71.0],
        [50.3, 60.7, 65.9],
    ]
)
"""Relative permittivity of fresh water (frequency × temperature)"""

LAKE_CONDUCTIVITY = np.array(
    [
        [0.38, 0.51, 0.64],
        [0.87, 0.84, 0.88],
        [2.30, 1.80, 1.60],
        [4.40, 3.40, 2.70],
        [7.00, 5.50, 4.30],
        [13.0, 11.0, 8.30],
        [18.0, 16.0, 13.0],
    ]
)
"""Conductivity of fresh water [S/m] (frequency × temperature)"""


@numba.jit(nopython=True, cache=True)
def _bracket_jit(value: float, table: np.ndarray):
    """Clamped interval search: (lower index, fraction in [0, 1])."""
    n = table.shape[0]
    if value <= table[0]:
        return 0, 0.0
    if value >= table[n - 1]:
        return n - 2, 1.0
    i = 0
    while value >= table[i + 1]:
        i += 1
    return i, (value - table[i]) / (table[i + 1] - table[i])


@numba.jit(nopython=True, cache=True)
def _bilinear_jit(x: float, y: float, xs: np.ndarray, ys: np.ndarray, table: np.ndarray) -> float:
    ix, fx = _bracket_jit(x, xs)
    iy, fy = _bracket_jit(y, ys)
    left = (1.0 - fx) * table[ix, iy] + fx * table[ix + 1, iy]
    right = (1.0 - fx) * table[ix, iy + 1] + fx * table[ix + 1, iy + 1]
    return (1.0 - fy) * left + fy * right


def soil_dielectric(frequency: float, moisture_fraction: float) -> complex:
    """
    Complex relative permittivity of moist soil.

    Args:
        frequency: Frequency [Hz] (clamped to 0.3-24 GHz)
        moisture_fraction: Volumetric water fraction (clamped to 0.003-0.3)

    Returns:
        ε = ε' + jε''
    """
    eps_real = _bilinear_jit(frequency, moisture_fraction, SOIL_FREQUENCIES_HZ, SOIL_MOISTURES, SOIL_EPSILON_REAL)
    eps_imag = _bilinear_jit(frequency, moisture_fraction, SOIL_FREQUENCIES_HZ, SOIL_MOISTURES, SOIL_EPSILON_IMAG)
    return complex(eps_real, eps_imag)


def water_dielectric(frequency: float, sea_water: bool = True, temperature_c: float = 10.0) -> complex:
    """
    Complex relative permittivity of sea or fresh water.

    The imaginary part is 60·λ·σ, interpolated between the table
    frequencies.

    Args:
        frequency: Frequency [Hz] (clamped to 0.1-8 GHz)
        sea_water: Sea water (True) or lake water (False)
        temperature_c: Water temperature [°C] (clamped to 0-20)
    """
    eps_table = SEA_EPSILON_REAL if sea_water else LAKE_EPSILON_REAL
    sigma_table = SEA_CONDUCTIVITY if sea_water else LAKE_CONDUCTIVITY
    loss_table = 60.0 * (SPEED_OF_LIGHT / WATER_FREQUENCIES_HZ)[:, np.newaxis] * sigma_table
    eps_real = _bilinear_jit(frequency, temperature_c, WATER_FREQUENCIES_HZ, WATER_TEMPERATURES_C, eps_table)
    eps_imag = _bilinear_jit(frequency, temperature_c, WATER_FREQUENCIES_HZ, WATER_TEMPERATURES_C, loss_table)
    return complex(eps_real, eps_imag)


# =============================================================================
# REFLECTION GEOMETRY AND COEFFICIENT
# =============================================================================

REFLECT_HORIZONTAL: int = 0
REFLECT_VERTICAL: int = 1
REFLECT_AVERAGE: int = 2


@numba.jit(nopython=True, cache=True)
def _reflection_coefficient_jit(grazing: float, epsilon: complex, mode: int) -> complex:
    """Fresnel reflection coefficient of a smooth dielectric surface."""
    sin_g = np.sin(grazing)
    cos_g = np.cos(grazing)
    radical = np.sqrt(epsilon - cos_g * cos_g)
    h_coeff = (sin_g - radical) / (sin_g + radical)
    if mode == REFLECT_HORIZONTAL:
        return h_coeff
    v_coeff = (epsilon * sin_g - radical) / (epsilon * sin_g + radical)
    if mode == REFLECT_VERTICAL:
        return v_coeff
    return 0.5 * (h_coeff + v_coeff)


def reflection_coefficient(grazing: float, epsilon: complex, mode: int = REFLECT_HORIZONTAL) -> complex:
    """
    Complex Fresnel reflection coefficient.

    Args:
        grazing: Grazing angle ψ [rad]
        epsilon: Complex relative permittivity of the surface
        mode: REFLECT_HORIZONTAL, REFLECT_VERTICAL or REFLECT_AVERAGE
    """
    return complex(_reflection_coefficient_jit(float(grazing), complex(epsilon), int(mode)))


@numba.jit(nopython=True, cache=True)
def _reflection_geometry_jit(earth_radius: float, h1: float, direct_range: float, sin_elevation: float):
    """
    JIT-compiled specular-point geometry over a sphere (Blake ch. 6).

    Args:
        earth_radius: Effective earth radius ae [m]
        h1: Antenna height above the surface [m]
        direct_range: Slant range to the target Rd [m]
        sin_elevation: Sine of the target elevation at the antenna

    Returns:
        Tuple of (valid, R1, R2, reflection elevation, grazing angle,
        path-length difference)
    """
    if h1 <= 0.0 or direct_range <= 0.0:
        return False, 0.0, 0.0, 0.0, 0.0, 0.0
    ae = earth_radius
    ah1 = ae + h1
    ah2 = np.sqrt(direct_range * direct_range + ah1 * ah1 + 2.0 * direct_range * ah1 * sin_elevation)
    if ah2 < ae:
        return False, 0.0, 0.0, 0.0, 0.0, 0.0
    h2 = ah2 - ae

    ground = direct_range
    dh = h2 - h1
    if direct_range > abs(dh):
        ground = np.sqrt((direct_range * direct_range - dh * dh) / (1.0 + (h1 + h2) / ae))

    p = (2.0 / np.sqrt(3.0)) * np.sqrt(ae * (h1 + h2) + 0.25 * ground * ground)
    arg = 2.0 * ae * ground * dh / (p * p * p)
    zeta = np.arcsin(min(max(arg, -1.0), 1.0))
    g1 = 0.5 * ground - p * np.sin(zeta / 3.0)
    g2 = ground - g1
    phi1 = g1 / ae
    phi2 = g2 / ae

    s1 = np.sin(0.5 * phi1)
    s2 = np.sin(0.5 * phi2)
    r1 = np.sqrt(h1 * h1 + 4.0 * ae * ah1 * s1 * s1)
    r2 = np.sqrt(h2 * h2 + 4.0 * ae * ah2 * s2 * s2)
    if r1 <= 0.0:
        return False, 0.0, 0.0, 0.0, 0.0, 0.0

    sin_theta = (2.0 * ae * h1 + h1 * h1 + r1 * r1) / (2.0 * ah1 * r1)
    theta_r = np.arcsin(min(max(sin_theta, -1.0), 1.0))
    psi = theta_r - phi1
    sin_psi = np.sin(psi)
    delta = 4.0 * r1 * r2 * sin_psi * sin_psi / (r1 + r2 + direct_range)
    return True, r1, r2, -theta_r, psi, delta


def compute_reflection_geometry(
    earth_radius: float, antenna_height: float, direct_range: float, elevation: float
) -> Optional[Tuple[float, float, float, float, float]]:
    """
    Specular reflection geometry between an antenna and a target.

    Args:
        earth_radius: Effective earth radius k·Re [m]
        antenna_height: Antenna height above the surface [m]
        direct_range: Slant range to the target [m]
        elevation: Target elevation seen from the antenna [rad]

    Returns:
        Tuple of (antenna-to-reflection range, reflection-to-target range,
        elevation of the reflection point (negative), grazing angle,
        path-length difference) or None when there is no reflection
    """
    valid, r1, r2, ref_el, psi, delta = _reflection_geometry_jit(
        float(earth_radius), float(antenna_height), float(direct_range), float(np.sin(elevation))
    )
    if not valid:
        return None
    return float(r1), float(r2), float(ref_el), float(psi), float(delta)


def specular_roughness_factor(roughness: float, grazing: float, wavelength: float) -> float:
    """Specular scattering factor exp(-2(2πσ·sinψ/λ)²); 0 when it underflows."""
    x = 2.0 * np.pi * roughness * np.sin(grazing) / wavelength
    exponent = -2.0 * x * x
    if exponent <= -700.0:
        return 0.0
    return float(np.exp(exponent))


def compute_reflection_gain(
    xmtr_rcvr, beam, unit_vec_wcs: np.ndarray, depression: float, frequency: float, polarization
) -> float:
    """
    Antenna gain toward the reflection point.

    The reflected ray keeps the horizontal direction of the target and
    points below the horizon by the depression angle.
    """
    antenna = xmtr_rcvr.antenna
    wcs_to_ned = antenna.wcs_to_ned_transform()
    ned = wcs_to_ned @ unit_vec_wcs
    down = -np.sin(depression)
    old_ne = max(1.0, float(np.hypot(ned[0], ned[1])))
    new_ne = np.sqrt(1.0 - down * down)
    ref_ned = np.array([new_ne * ned[0] / old_ne, new_ne * ned[1] / old_ne, down])
    az, el = antenna.compute_beam_aspect(beam.wcs_to_beam, wcs_to_ned.T @ ref_ned)
    return xmtr_rcvr.get_antenna_gain(polarization, frequency, az, el, beam.ebs_az, beam.ebs_el)


def antenna_height_above_surface(xmtr_rcvr) -> float:
    """Height of the antenna phase center above the local terrain [m]."""
    antenna = xmtr_rcvr.antenna
    platform = antenna.part.platform
    return antenna.get_altitude() - platform.get_terrain_height()


def local_elevation(xmtr_rcvr, unit_vec_wcs: np.ndarray) -> float:
    """Elevation of a WCS direction above the antenna's local horizontal [rad]."""
    ned = xmtr_rcvr.antenna.wcs_to_ned_transform() @ unit_vec_wcs
    return float(np.arctan2(-ned[2], np.hypot(ned[0], ned[1])))


# =============================================================================
# MODEL
# =============================================================================


class FastMultipath(PropagationModel):
    """
    Two-ray multipath over a smooth spherical earth.

    Keywords:
        soil_moisture_fraction: Volumetric soil water fraction [0, 1] (0.15)
        soil_moisture: Same as a percentage [0, 100]
        surface_roughness / stddev_surface_height: RMS surface height [m] (3)
        sea_water: Reflect from sea water instead of soil
        water_temperature: Water temperature for sea_water [°C] (10)
    """

    model_type = "fast_multipath"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.soil_moisture_fraction = 0.15
        self.surface_roughness = 3.0
        self.sea_water = False
        self.water_temperature = 10.0

    def process_input(self, command: str, value: Any) -> bool:
        if command == "soil_moisture_fraction":
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError("must be in [0, 1]", command)
            self.soil_moisture_fraction = float(value)
        elif command == "soil_moisture":
            if not 0.0 <= value <= 100.0:
                raise ConfigurationError("must be in [0, 100]", command)
            self.soil_moisture_fraction = 0.01 * float(value)
        elif command in ("surface_roughness", "stddev_surface_height"):
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.surface_roughness = float(value)
        elif command == "sea_water":
            self.sea_water = bool(value)
        elif command in ("water_temperature", "water_temp"):
            self.water_temperature = float(value)
        else:
            return super().process_input(command, value)
        return True

    def get_dielectric_constant(self, frequency: float) -> complex:
        if self.sea_water:
            return water_dielectric(frequency, True, self.water_temperature)
        return soil_dielectric(frequency, self.soil_moisture_fraction)

    def compute_propagation_factor(self, interaction, environment) -> float:
        xmtr = interaction.xmtr
        if xmtr is None:
            return 1.0
        rcvr = interaction.rcvr
        frequency = xmtr.frequency
        if rcvr is not None and rcvr.function is not RcvrFunction.PASSIVE_SENSOR:
            frequency = rcvr.frequency

        # One-way xmtr->rcvr interactions reflect along the direct leg
        two_way = interaction.target is not None
        leg = interaction.xmtr_to_tgt if two_way else interaction.xmtr_to_rcvr

        epsilon = self.get_dielectric_constant(frequency)
        rcvr_loc = interaction.rcvr_loc if interaction.rcvr_loc.is_valid else interaction.xmtr_loc
        local_radius = float(np.linalg.norm(rcvr_loc.loc_wcs)) - rcvr_loc.alt
        earth_radius = xmtr.earth_radius_multiplier * local_radius
        wavelength = SPEED_OF_LIGHT / frequency

        geometry = compute_reflection_geometry(
            earth_radius,
            antenna_height_above_surface(xmtr),
            leg.range,
            local_elevation(xmtr, leg.true_unit_vec_wcs),
        )
        if geometry is None:
            return 1.0
        _, _, depression, grazing, path_difference = geometry

        mode = REFLECT_VERTICAL if xmtr.polarization == Polarization.VERTICAL else REFLECT_HORIZONTAL
        gamma = reflection_coefficient(grazing, epsilon, mode)
        rho_0 = abs(gamma)
        phi = -float(np.angle(gamma))
        rho = specular_roughness_factor(self.surface_roughness, grazing, wavelength) * rho_0
        two_cos = 2.0 * np.cos(2.0 * np.pi * path_difference / wavelength + phi)

        xmtr_factor = self._antenna_factor(
            xmtr, interaction.xmtr_beam, leg.true_unit_vec_wcs, depression, frequency, xmtr.polarization, rho, two_cos
        )
        rcvr_factor = 1.0
        if rcvr is not None and two_way:
            rcvr_factor = self._antenna_factor(
                rcvr,
                interaction.rcvr_beam,
                interaction.rcvr_to_tgt.true_unit_vec_wcs,
                depression,
                frequency,
                xmtr.polarization,
                rho,
                two_cos,
            )
        if self.debug:
            logger.debug(
                "%s: psi=%.6g rad, delta=%.6g m, rho=%.6g, phi=%.6g, F2_xmtr=%.6g, F2_rcvr=%.6g",
                self.name,
                grazing,
                path_difference,
                rho,
                phi,
                xmtr_factor,
                rcvr_factor,
            )
        return float(xmtr_factor * rcvr_factor)

    @staticmethod
    def _antenna_factor(xmtr_rcvr, beam, unit_vec_wcs, depression, frequency, polarization, rho, two_cos) -> float:
        if abs(rho) <= 1.0e-100:
            return 1.0
        gain_direct = beam.gain
        ratio = 1.0
        if gain_direct > 0.0:
            gain_reflect = compute_reflection_gain(
                xmtr_rcvr, beam, unit_vec_wcs, depression, frequency, polarization
            )
            ratio = np.sqrt(gain_reflect / gain_direct)
        term = rho * ratio
        return 1.0 + term * term + term * two_cos


register_propagation_type(FastMultipath.model_type, FastMultipath)
