"""
ALARM Terrain Propagation Model

Pattern-propagation factor over a terrain profile in the manner of the
Advanced Low Altitude Radar Model. For each radar leg (transmitter to
target, and target to receiver when bistatic) the terrain profile is
sampled every 3 arc-seconds of ground range and the mechanism is chosen
from the Fresnel clearance of the line of sight:

    clearance ratio ≥ 0.75   multipath only
    0.5 ≤ ratio < 0.75       multipath magnitude blended with diffraction
    ratio < 0.5              diffraction only

The diffraction term itself is spherical-earth (smooth profile), knife-edge
(sharp dominant obstacle), or a blend of both, selected by the height of the
dominant obstacle above the best-fit terrain line in Fresnel-zone units.

Mechanisms:
    - Smooth spherical-earth diffraction (ITU-R P.526 §3.1.1)
    - Single knife-edge diffraction over the minimum-clearance point
      (ITU-R P.526 §4.1)
    - Two-ray multipath off the best-fit terrain plane with Fresnel
      reflection, land-form or sea-state roughness and visibility of the
      specular point

References:
    - ALARM 4.x Technical Description, SAIC for WL/AAWA-1, 2000
    - ITU-R P.526-15: Propagation by diffraction
    - Blake, "Radar Range-Performance Analysis", Artech House, 1986, Ch. 6
    - Meeks, "Radar Propagation at Low Altitudes", Artech House, 1982
"""

import logging
from typing import Any, Tuple

import numba
import numpy as np

from emsim.em.fast_multipath import (
    REFLECT_AVERAGE,
    REFLECT_HORIZONTAL,
    REFLECT_VERTICAL,
    compute_reflection_gain,
    reflection_coefficient,
    soil_dielectric,
    specular_roughness_factor,
    water_dielectric,
)
from emsim.em.propagation import PropagationModel, register_propagation_type
from emsim.em.types import Polarization, RcvrFunction, Status
from emsim.errors import ConfigurationError
from emsim.physics.constants import SPEED_OF_LIGHT
from emsim.physics.terrain import ALARM_PROFILE_STEP
from emsim.simulation.environment import LandCover, LandForm

logger = logging.getLogger(__name__)

# Mechanism selection thresholds
_MULTIPATH_ONLY_CLEARANCE = 0.75
_DIFFRACTION_ONLY_CLEARANCE = 0.5
_SPHERICAL_ONLY_HEIGHT = 0.25
_KNIFE_EDGE_ONLY_HEIGHT = 0.5

SEA_STATE_WAVE_HEIGHTS: np.ndarray = np.array([0.0, 0.152, 0.457, 0.762, 1.22, 1.82, 3.049])
"""Significant wave height by Douglas sea state 0-6 [m]"""

LAND_FORM_ROUGHNESS = {
    LandForm.LEVEL: 0.0,
    LandForm.INCLINED: 6.10,
    LandForm.UNDULATING: 15.24,
    LandForm.ROLLING_HILLS: 19.81,
    LandForm.MOUNTAINS: 45.72,
}
"""RMS terrain height by land form [m]"""

LAND_COVER_GROUND = {
    LandCover.GENERAL: (3.0, 0.000075),
    LandCover.URBAN: (3.0, 0.000075),
    LandCover.AGRICULTURE: (10.0, 0.0005),
    LandCover.GRASS: (10.0, 0.0005),
    LandCover.SHRUB: (10.0, 0.0005),
    LandCover.FOREST: (14.0, 0.001),
    LandCover.WETLAND_FORESTED: (16.0, 0.001),
    LandCover.WETLAND_NONFORESTED: (14.0, 0.001),
    LandCover.BARREN: (12.0, 0.001),
    LandCover.DESERT: (12.0, 0.001),
    LandCover.ICE_SNOW: (24.0, 0.005),
    LandCover.WATER: (24.0, 0.005),
    LandCover.SEA: (3.0, 0.000075),
}
"""Relative permittivity and conductivity [S/m] by land cover (ALARM data set)"""


# =============================================================================
# PROFILE KERNELS
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _fresnel_clearance_jit(
    x: np.ndarray, z: np.ndarray, antenna_z: float, slope: float, path_length: float, wavelength: float
):
    """
    Clearance of the line of sight over each interior profile point in
    units of the first Fresnel-zone radius.

    Returns:
        Tuple of (ratios, minimum ratio, index of the minimum)
    """
    n = x.shape[0]
    ratios = np.full(n, np.inf)
    min_ratio = np.inf
    min_index = -1
    for i in range(1, n - 1):
        d1 = x[i]
        d2 = path_length - d1
        if d1 <= 0.0 or d2 <= 0.0:
            continue
        clearance = antenna_z + slope * d1 - z[i]
        zone = np.sqrt(wavelength * d1 * d2 / path_length)
        ratios[i] = clearance / zone
        if ratios[i] < min_ratio:
            min_ratio = ratios[i]
            min_index = i
    return ratios, min_ratio, min_index


@numba.jit(nopython=True, cache=True)
def _linear_fit_jit(x: np.ndarray, y: np.ndarray):
    """Least-squares line y = a0 + a1·x."""
    n = x.shape[0]
    sx = 0.0
    sy = 0.0
    sxx = 0.0
    sxy = 0.0
    for i in range(n):
        sx += x[i]
        sy += y[i]
        sxx += x[i] * x[i]
        sxy += x[i] * y[i]
    denom = n * sxx - sx * sx
    if denom == 0.0:
        return sy / max(n, 1), 0.0
    a1 = (n * sxy - sx * sy) / denom
    return (sy - a1 * sx) / n, a1


@numba.jit(nopython=True, cache=True)
def _segment_clear_jit(x: np.ndarray, z: np.ndarray, x0: float, z0: float, x1: float, z1: float) -> bool:
    """True if no profile point strictly between x0 and x1 rises above the segment."""
    if x1 <= x0:
        return True
    slope = (z1 - z0) / (x1 - x0)
    for i in range(x.shape[0]):
        if x0 < x[i] < x1 and z[i] > z0 + slope * (x[i] - x0) + 1.0e-3:
            return False
    return True


@numba.jit(nopython=True, cache=True)
def _knife_edge_loss_db_jit(v: float) -> float:
    """Single knife-edge diffraction loss J(v) [dB] (ITU-R P.526 eq. 31)."""
    if v <= -0.78:
        return 0.0
    w = v - 0.1
    return 6.9 + 20.0 * np.log10(np.sqrt(w * w + 1.0) + w)


@numba.jit(nopython=True, cache=True)
def _height_gain_db_jit(b: float, k: float) -> float:
    if b > 2.0:
        gain = 17.6 * np.sqrt(b - 1.1) - 5.0 * np.log10(b - 1.1) - 8.0
    else:
        gain = 20.0 * np.log10(b + 0.1 * b * b * b)
    return max(gain, 2.0 + 20.0 * np.log10(k))


@numba.jit(nopython=True, cache=True)
def _smooth_earth_diffraction_db_jit(
    distance: float, h1: float, h2: float, frequency: float, earth_radius: float, k: float
) -> float:
    """
    JIT-compiled smooth spherical-earth diffraction (ITU-R P.526 §3.1.1.2).

    Args:
        distance: Path ground length [m]
        h1, h2: Terminal heights above the smooth surface [m]
        frequency: Frequency [Hz]
        earth_radius: Effective earth radius [m]
        k: Normalized surface admittance factor

    Returns:
        Field strength relative to free space [dB] (<= 0)
    """
    f_mhz = frequency * 1.0e-6
    ae_km = earth_radius * 1.0e-3
    k2 = k * k
    beta = (1.0 + 1.6 * k2 + 0.67 * k2 * k2) / (1.0 + 4.5 * k2 + 1.53 * k2 * k2)
    x = 2.188 * beta * f_mhz ** (1.0 / 3.0) * ae_km ** (-2.0 / 3.0) * distance * 1.0e-3
    y_scale = 9.575e-3 * beta * f_mhz ** (2.0 / 3.0) * ae_km ** (-1.0 / 3.0)
    if x >= 1.6:
        f_x = 11.0 + 10.0 * np.log10(x) - 17.6 * x
    else:
        f_x = -20.0 * np.log10(x) - 5.6488 * x**1.425
    g1 = _height_gain_db_jit(beta * y_scale * max(h1, 0.1), k)
    g2 = _height_gain_db_jit(beta * y_scale * max(h2, 0.1), k)
    return min(f_x + g1 + g2, 0.0)


def surface_admittance_factor(
    frequency: float, earth_radius: float, permittivity: float, conductivity: float, vertical: bool
) -> float:
    """Normalized surface admittance K of ITU-R P.526 (eqs. 15-16)."""
    f_mhz = frequency * 1.0e-6
    loss = 18000.0 * conductivity / f_mhz
    k_h = 0.36 * (earth_radius * 1.0e-3 * f_mhz) ** (-1.0 / 3.0) * (
        (permittivity - 1.0) ** 2 + loss * loss
    ) ** (-0.25)
    if vertical:
        return float(k_h * np.sqrt(permittivity * permittivity + loss * loss))
    return float(k_h)


def rough_surface_reflection(
    rms_height: float, grazing: float, wavelength: float
) -> float:
    """
    Specular roughness factor of land or sea.

    Very rough surfaces use the empirical linear law; otherwise the
    Gaussian specular factor applies. The result is never below 0.01.
    """
    sin_psi = np.sin(grazing)
    frequency_mhz = SPEED_OF_LIGHT / wavelength * 1.0e-6
    roughness = frequency_mhz * rms_height * sin_psi
    rho = 0.0
    if roughness * 3.28 >= 100.0:
        rho = 0.6674 - 0.0078 * roughness
    else:
        x = 2.0 * np.pi * rms_height * sin_psi / wavelength
        if 2.0 * x * x <= 5.0:
            rho = float(np.exp(-2.0 * x * x))
    return max(rho, 0.01)


# =============================================================================
# MODEL
# =============================================================================


class AlarmPropagation(PropagationModel):
    """
    Terrain-profile propagation (multipath and diffraction).

    Keywords:
        propagation: Enable the model (True)
        diffraction: Enable the diffraction terms (True)
        terrain_dielectric_constant / epsilon_one: Land permittivity (6)
        terrain_conductivity / sigma_zero: Land conductivity [S/m] (0.006)
        soil_moisture: Soil moisture percentage (15)
        soil_moisture_fraction: Soil moisture fraction
        surface_roughness / stddev_surface_height: RMS surface height [m];
            selects the moist-soil reflection model
        water_type: 'sea' or 'lake'
        water_temperature: Water temperature [°C] (10)
        use_environment_ground: Take the land permittivity, conductivity and
            roughness from the environment (True)
        use_calculation_shortcuts: Return a small factor immediately when a
            terrain-masking gate already failed (True)
    """

    model_type = "alarm"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.propagation_enabled = True
        self.diffraction_enabled = True
        self.permittivity = 6.0
        self.conductivity = 0.006
        self.soil_moisture = 15.0
        self.surface_height = 3.0
        self.use_surface_height = False
        self.sea_water = True
        self.water_temperature = 10.0
        self.use_environment_ground = True
        self.allow_shortcuts = True

    def process_input(self, command: str, value: Any) -> bool:
        if command in ("propagation", "propagation_sw"):
            self.propagation_enabled = bool(value)
        elif command in ("diffraction", "diffraction_sw"):
            self.diffraction_enabled = bool(value)
        elif command in ("epsilon_one", "terrain_dielectric_constant"):
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.permittivity = float(value)
        elif command in ("sigma_zero", "terrain_conductivity"):
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.conductivity = float(value)
        elif command == "soil_moisture":
            if not 0.0 <= value <= 100.0:
                raise ConfigurationError("must be in [0, 100]", command)
            self.soil_moisture = float(value)
        elif command == "soil_moisture_fraction":
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError("must be in [0, 1]", command)
            self.soil_moisture = 100.0 * float(value)
        elif command in ("stddev_surface_height", "surface_roughness"):
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.surface_height = float(value)
            self.use_surface_height = True
            self.use_environment_ground = False
        elif command == "water_type":
            if value not in ("lake", "sea"):
                raise ConfigurationError("must be 'lake' or 'sea'", command)
            self.sea_water = value == "sea"
        elif command in ("water_temperature", "water_temp"):
            self.water_temperature = float(value)
        elif command == "use_environment_ground":
            self.use_environment_ground = bool(value)
        elif command == "use_calculation_shortcuts":
            self.allow_shortcuts = bool(value)
        else:
            return super().process_input(command, value)
        return True

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def compute_propagation_factor(self, interaction, environment) -> float:
        xmtr = interaction.xmtr
        rcvr = interaction.rcvr
        target = interaction.target
        if xmtr is None or rcvr is None or target is None:
            return 1.0

        terrain_bits = Status.RCVR_TERRAIN_MASKING | Status.XMTR_TERRAIN_MASKING
        if self.allow_shortcuts and interaction.failed_status & terrain_bits:
            return 1.0e-4

        frequency = xmtr.frequency
        if rcvr.function is not RcvrFunction.PASSIVE_SENSOR:
            frequency = rcvr.frequency
        wavelength = SPEED_OF_LIGHT / frequency

        if self.use_environment_ground:
            self.permittivity, self.conductivity = LAND_COVER_GROUND[environment.land_cover]
        water_cover = xmtr.platform is not None and xmtr.platform.spatial_domain in ("surface", "subsurface")
        water_cover = water_cover or environment.land_cover in (LandCover.WATER, LandCover.SEA)

        f2_xmtr = self._one_way_factor(
            xmtr, interaction.xmtr_beam, interaction.xmtr_loc, interaction.tgt_loc,
            interaction.xmtr_to_tgt.true_unit_vec_wcs, environment, wavelength, water_cover,
        )
        if xmtr.antenna is rcvr.antenna:
            f2_rcvr = f2_xmtr
        else:
            f2_rcvr = self._one_way_factor(
                rcvr, interaction.rcvr_beam, interaction.rcvr_loc, interaction.tgt_loc,
                interaction.rcvr_to_tgt.true_unit_vec_wcs, environment, wavelength, water_cover,
            )
        f4 = abs(f2_xmtr * f2_rcvr)
        if self.debug:
            logger.debug("%s: F^4 = %.6g (%.2f dB)", self.name, f4, 10.0 * np.log10(max(f4, 1.0e-30)))
        return float(f4)

    def _one_way_factor(
        self, xmtr_rcvr, beam, ant_loc, tgt_loc, unit_vec_wcs, environment, wavelength, water_cover
    ) -> complex:
        """Complex F² for the path between an antenna and the target."""
        if not self.propagation_enabled:
            return 1.0 + 0.0j
        terrain = environment.get_terrain()
        x, heights = terrain.get_profile(ant_loc.lat, ant_loc.lon, tgt_loc.lat, tgt_loc.lon, ALARM_PROFILE_STEP)
        path_length = float(x[-1])
        if x.shape[0] < 3 or path_length <= 0.0:
            return 1.0 + 0.0j

        radius = float(np.linalg.norm(ant_loc.loc_wcs)) - ant_loc.alt
        earth_radius = xmtr_rcvr.earth_radius_multiplier * radius
        # Flat-earth coordinates with the curvature drop folded into the profile
        z = heights - x * x / (2.0 * earth_radius)
        antenna_z = ant_loc.alt
        target_z = tgt_loc.alt - path_length * path_length / (2.0 * earth_radius)
        slope = (target_z - antenna_z) / path_length

        _, min_ratio, min_index = _fresnel_clearance_jit(x, z, antenna_z, slope, path_length, wavelength)
        if min_index < 0:
            return 1.0 + 0.0j

        if min_ratio >= _MULTIPATH_ONLY_CLEARANCE or not self.diffraction_enabled:
            return self._multipath(
                xmtr_rcvr, beam, x, z, heights, antenna_z, target_z, unit_vec_wcs, environment, wavelength, water_cover
            )

        a0, a1 = _linear_fit_jit(x, heights)
        obstacle_x = x[min_index]
        zone = np.sqrt(wavelength * obstacle_x * (path_length - obstacle_x) / path_length)
        relative_height = (heights[min_index] - (a0 + a1 * obstacle_x)) / zone

        diffraction = self._diffraction(
            xmtr_rcvr, x, z, heights, min_index, relative_height, antenna_z, target_z,
            tgt_loc.alt, slope, earth_radius, wavelength, water_cover, a0, a1,
        )
        if min_ratio < _DIFFRACTION_ONLY_CLEARANCE:
            return complex(diffraction)

        multipath = self._multipath(
            xmtr_rcvr, beam, x, z, heights, antenna_z, target_z, unit_vec_wcs, environment, wavelength, water_cover
        )
        alpha = (min_ratio - _DIFFRACTION_ONLY_CLEARANCE) / (_MULTIPATH_ONLY_CLEARANCE - _DIFFRACTION_ONLY_CLEARANCE)
        magnitude = abs(alpha * multipath) + (1.0 - alpha) * diffraction
        return magnitude * np.exp(1.0j * np.angle(multipath))

    # -------------------------------------------------------------------------
    # Diffraction
    # -------------------------------------------------------------------------

    def _diffraction(
        self, xmtr_rcvr, x, z, heights, index, relative_height, antenna_z, target_z,
        target_alt, slope, earth_radius, wavelength, water_cover, a0, a1,
    ) -> float:
        """Diffraction power factor F² blended between spherical and knife edge."""
        if relative_height < _KNIFE_EDGE_ONLY_HEIGHT:
            spherical = self._spherical_earth(
                xmtr_rcvr, x, antenna_z, target_alt, earth_radius, wavelength, water_cover, a0, a1
            )
            if relative_height < _SPHERICAL_ONLY_HEIGHT:
                return spherical
        knife = self._knife_edge(x, z, index, antenna_z, slope, wavelength)
        if relative_height >= _KNIFE_EDGE_ONLY_HEIGHT:
            return knife
        alpha = (relative_height - _SPHERICAL_ONLY_HEIGHT) / (_KNIFE_EDGE_ONLY_HEIGHT - _SPHERICAL_ONLY_HEIGHT)
        return alpha * knife + (1.0 - alpha) * spherical

    def _spherical_earth(
        self, xmtr_rcvr, x, antenna_z, target_alt, earth_radius, wavelength, water_cover, a0, a1
    ) -> float:
        path_length = float(x[-1])
        frequency = SPEED_OF_LIGHT / wavelength
        h1 = antenna_z - a0
        h2 = target_alt - (a0 + a1 * path_length)
        if water_cover:
            epsilon = water_dielectric(frequency, self.sea_water, self.water_temperature)
            permittivity = epsilon.real
            conductivity = epsilon.imag / (60.0 * wavelength)
        else:
            permittivity, conductivity = self.permittivity, self.conductivity
        k = surface_admittance_factor(
            frequency, earth_radius, permittivity, conductivity,
            xmtr_rcvr.polarization == Polarization.VERTICAL,
        )
        loss_db = _smooth_earth_diffraction_db_jit(path_length, h1, h2, frequency, earth_radius, k)
        return float(10.0 ** (0.1 * loss_db))

    @staticmethod
    def _knife_edge(x, z, index, antenna_z, slope, wavelength) -> float:
        path_length = float(x[-1])
        d1 = float(x[index])
        d2 = path_length - d1
        obstruction = z[index] - (antenna_z + slope * d1)
        v = obstruction * np.sqrt(2.0 / wavelength * (1.0 / d1 + 1.0 / d2))
        return float(10.0 ** (-0.1 * _knife_edge_loss_db_jit(v)))

    # -------------------------------------------------------------------------
    # Multipath
    # -------------------------------------------------------------------------

    def _surface_epsilon(self, frequency: float, wavelength: float, water_cover: bool) -> complex:
        if water_cover:
            return water_dielectric(frequency, self.sea_water, self.water_temperature)
        if self.use_surface_height:
            return soil_dielectric(frequency, 0.01 * self.soil_moisture)
        return complex(self.permittivity, 60.0 * wavelength * self.conductivity)

    def _roughness_factor(self, x, heights, a0, a1, environment, grazing, wavelength, water_cover) -> float:
        if water_cover:
            sea_state = int(np.clip(environment.sea_state, 0, SEA_STATE_WAVE_HEIGHTS.shape[0] - 1))
            return rough_surface_reflection(0.5 * SEA_STATE_WAVE_HEIGHTS[sea_state], grazing, wavelength)
        if self.use_surface_height:
            return specular_roughness_factor(self.surface_height, grazing, wavelength)
        if self.use_environment_ground:
            return rough_surface_reflection(LAND_FORM_ROUGHNESS[environment.land_form], grazing, wavelength)
        residual = heights - (a0 + a1 * x)
        return rough_surface_reflection(float(np.std(residual)), grazing, wavelength)

    def _multipath(
        self, xmtr_rcvr, beam, x, z, heights, antenna_z, target_z, unit_vec_wcs, environment, wavelength, water_cover
    ) -> complex:
        """Complex F² of the direct ray plus the reflection off the best-fit terrain plane."""
        path_length = float(x[-1])
        a0, a1 = _linear_fit_jit(x, z)
        h1 = antenna_z - a0
        h2 = target_z - (a0 + a1 * path_length)
        if h1 <= 0.0 or h2 <= 0.0:
            return 1.0 + 0.0j

        reflect_x = path_length * h1 / (h1 + h2)
        reflect_z = a0 + a1 * reflect_x
        if not (
            _segment_clear_jit(x, z, 0.0, antenna_z, reflect_x, reflect_z)
            and _segment_clear_jit(x, z, reflect_x, reflect_z, path_length, target_z)
        ):
            return 1.0 + 0.0j

        grazing = float(np.arctan2(h1 + h2, path_length))
        path_difference = float(
            np.hypot(path_length, h1 + h2) - np.hypot(path_length, h2 - h1)
        )
        pulse_width = getattr(xmtr_rcvr, "pulse_width", 0.0)
        if pulse_width > 0.0 and path_difference > SPEED_OF_LIGHT * pulse_width:
            return 1.0 + 0.0j

        frequency = SPEED_OF_LIGHT / wavelength
        if xmtr_rcvr.polarization == Polarization.HORIZONTAL:
            mode = REFLECT_HORIZONTAL
        elif xmtr_rcvr.polarization == Polarization.VERTICAL:
            mode = REFLECT_VERTICAL
        else:
            mode = REFLECT_AVERAGE
        gamma = reflection_coefficient(grazing, self._surface_epsilon(frequency, wavelength, water_cover), mode)
        rho_s = self._roughness_factor(x, heights, a0, a1, environment, grazing, wavelength, water_cover)

        ratio = 1.0
        if beam.gain > 0.0:
            depression = -float(np.arctan2(antenna_z - reflect_z, reflect_x))
            gain_reflect = compute_reflection_gain(
                xmtr_rcvr, beam, unit_vec_wcs, depression, frequency, xmtr_rcvr.polarization
            )
            ratio = float(np.sqrt(gain_reflect / beam.gain))

        field = 1.0 + rho_s * ratio * gamma * np.exp(-2.0j * np.pi * path_difference / wavelength)
        return complex(field * field)


register_propagation_type(AlarmPropagation.model_type, AlarmPropagation)
