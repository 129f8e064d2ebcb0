"""
ITU-R Atmospheric Attenuation Model

Line-by-line gaseous absorption (oxygen and water vapor), rain and cloud/fog
attenuation integrated along a bent ray through a layered reference
atmosphere.

For a given frequency the model builds a table of specific attenuation γ(h)
at 1 km altitude steps (gas + rain below the rain ceiling + cloud inside the
cloud layer). The path is then traced layer by layer over a spherical earth
with the law of sines, and the trapezoidal mean of γ at each layer boundary
is multiplied by the path length inside the layer.

The elevation supplied is the apparent elevation (refraction is already
folded into it), so the unscaled earth radius is used for the ray trace.

References:
    - ITU-R P.676-8: Attenuation by atmospheric gases
    - ITU-R P.835-4: Reference standard atmospheres
    - ITU-R P.838-3: Specific attenuation model for rain
    - ITU-R P.840-4: Attenuation due to clouds and fog
"""

import logging
from typing import Final, Tuple

import numba
import numpy as np

from emsim.em.attenuation import AttenuationModel, register_attenuation_type
from emsim.em.types import Geometry, Polarization
from emsim.physics.constants import EARTH_RADIUS, STANDARD_PRESSURE, STANDARD_WATER_VAPOR_DENSITY
from emsim.simulation.environment import Environment

logger = logging.getLogger(__name__)

# =============================================================================
# SPECTROSCOPIC DATA (ITU-R P.676-8, Tables 1 and 2)
# =============================================================================

OXYGEN_LINES: Final[np.ndarray] = np.array(
    [
        [50.474238, 0.94, 9.694, 8.90, 0.0, 2.400, 7.900],
        [50.987749, 2.46, 8.694, 9.10, 0.0, 2.200, 7.800],
        [51.503350, 6.08, 7.744, 9.40, 0.0, 1.970, 7.740],
        [52.021410, 14.14, 6.844, 9.70, 0.0, 1.660, 7.640],
        [52.542394, 31.02, 6.004, 9.90, 0.0, 1.360, 7.510],
        [53.066907, 64.10, 5.224, 10.20, 0.0, 1.310, 7.140],
        [53.595749, 124.70, 4.484, 10.50, 0.0, 2.300, 5.840],
        [54.130000, 228.00, 3.814, 10.70, 0.0, 3.350, 4.310],
        [54.671159, 391.80, 3.194, 11.00, 0.0, 3.740, 3.050],
        [55.221367, 631.60, 2.624, 11.30, 0.0, 2.580, 3.390],
        [55.783802, 953.50, 2.119, 11.70, 0.0, -1.660, 7.050],
        [56.264775, 548.90, 0.015, 17.30, 0.0, 3.900, -1.130],
        [56.363389, 1344.00, 1.660, 12.00, 0.0, -2.970, 7.530],
        [56.968206, 1763.00, 1.260, 12.40, 0.0, -4.160, 7.420],
        [57.612484, 2141.00, 0.915, 12.80, 0.0, -6.130, 6.970],
        [58.323877, 2386.00, 0.626, 13.30, 0.0, -2.050, 0.510],
        [58.446590, 1457.00, 0.084, 15.20, 0.0, 7.480, -1.460],
        [59.164207, 2404.00, 0.391, 13.90, 0.0, -7.220, 2.660],
        [59.590983, 2112.00, 0.212, 14.30, 0.0, 7.650, -0.900],
        [60.306061, 2124.00, 0.212, 14.50, 0.0, -7.050, 0.810],
        [60.434776, 2461.00, 0.391, 13.60, 0.0, 6.970, -3.240],
        [61.150560, 2504.00, 0.626, 13.10, 0.0, 1.040, -0.670],
        [61.800154, 2298.00, 0.915, 12.70, 0.0, 5.700, -7.610],
        [62.411215, 1933.00, 1.260, 12.30, 0.0, 3.600, -7.770],
        [62.486260, 1517.00, 0.083, 15.40, 0.0, -4.980, 0.970],
        [62.997977, 1503.00, 1.665, 12.00, 0.0, 2.390, -7.680],
        [63.568518, 1087.00, 2.115, 11.70, 0.0, 1.080, -7.060],
        [64.127767, 733.50, 2.620, 11.30, 0.0, -3.110, -3.320],
        [64.678903, 463.50, 3.195, 11.00, 0.0, -4.210, -2.980],
        [65.224071, 274.80, 3.815, 10.70, 0.0, -3.750, -4.230],
        [65.764772, 153.00, 4.485, 10.50, 0.0, -2.670, -5.750],
        [66.302091, 80.09, 5.225, 10.20, 0.0, -1.680, -7.000],
        [66.836830, 39.46, 6.005, 9.90, 0.0, -1.690, -7.350],
        [67.369598, 18.32, 6.845, 9.70, 0.0, -2.000, -7.440],
        [67.900867, 8.01, 7.745, 9.40, 0.0, -2.280, -7.530],
        [68.431005, 3.30, 8.695, 9.20, 0.0, -2.400, -7.600],
        [68.960311, 1.28, 9.695, 9.00, 0.0, -2.500, -7.650],
        [118.750343, 945.00, 0.009, 16.30, 0.0, -0.360, 0.090],
        [368.498350, 67.90, 0.049, 19.20, 0.6, 0.000, 0.000],
        [424.763124, 638.00, 0.044, 19.30, 0.6, 0.000, 0.000],
        [487.249370, 235.00, 0.049, 19.20, 0.6, 0.000, 0.000],
        [715.393150, 99.60, 0.145, 18.10, 0.6, 0.000, 0.000],
        [773.839675, 671.00, 0.130, 18.20, 0.6, 0.000, 0.000],
        [834.145330, 180.00, 0.147, 18.10, 0.6, 0.000, 0.000],
    ]
)
"""Oxygen lines: f_i [GHz], a1..a6"""

WATER_VAPOR_LINES: Final[np.ndarray] = np.array(
    [
        [22.235080, 0.1130, 2.143, 28.11, 0.69, 4.800, 1.00],
        [67.803960, 0.0012, 8.735, 28.58, 0.69, 4.930, 0.82],
        [119.995940, 0.0008, 8.356, 29.48, 0.70, 4.780, 0.79],
        [183.310091, 2.4200, 0.668, 30.50, 0.64, 5.300, 0.85],
        [321.225644, 0.0483, 6.181, 23.03, 0.67, 4.690, 0.54],
        [325.152919, 1.4990, 1.540, 27.83, 0.68, 4.850, 0.74],
        [336.222601, 0.0011, 9.829, 26.93, 0.69, 4.740, 0.61],
        [380.197372, 11.5200, 1.048, 28.73, 0.54, 5.380, 0.89],
        [390.134508, 0.0046, 7.350, 21.52, 0.63, 4.810, 0.55],
        [437.346667, 0.0650, 5.050, 18.45, 0.60, 4.230, 0.48],
        [439.150812, 0.9218, 3.596, 21.00, 0.63, 4.290, 0.52],
        [443.018295, 0.1976, 5.050, 18.60, 0.60, 4.230, 0.50],
        [448.001075, 10.3200, 1.405, 26.32, 0.66, 4.840, 0.67],
        [470.888947, 0.3297, 3.599, 21.52, 0.66, 4.570, 0.65],
        [474.689127, 1.2620, 2.381, 23.55, 0.65, 4.650, 0.64],
        [488.491133, 0.2520, 2.853, 26.02, 0.69, 5.040, 0.72],
        [503.568532, 0.0390, 6.733, 16.12, 0.61, 3.980, 0.43],
        [504.482692, 0.0130, 6.733, 16.12, 0.61, 4.010, 0.45],
        [547.676440, 9.7010, 0.114, 26.00, 0.70, 4.500, 1.00],
        [552.020960, 14.7700, 0.114, 26.00, 0.70, 4.500, 1.00],
        [556.936002, 487.4000, 0.159, 32.10, 0.69, 4.110, 1.00],
        [620.700807, 5.0120, 2.200, 24.38, 0.71, 4.680, 0.68],
        [645.866155, 0.0713, 8.580, 18.00, 0.60, 4.000, 0.50],
        [658.005280, 0.3022, 7.820, 32.10, 0.69, 4.140, 1.00],
        [752.033227, 239.6000, 0.396, 30.60, 0.68, 4.090, 0.84],
        [841.053973, 0.0140, 8.180, 15.90, 0.33, 5.760, 0.45],
        [859.962313, 0.1472, 7.989, 30.60, 0.68, 4.090, 0.84],
        [899.306675, 0.0605, 7.917, 29.85, 0.68, 4.530, 0.90],
        [902.616173, 0.0426, 8.432, 28.65, 0.70, 5.100, 0.95],
        [906.207325, 0.1876, 5.111, 24.08, 0.70, 4.700, 0.53],
        [916.171582, 8.3400, 1.442, 26.70, 0.70, 4.780, 0.78],
        [923.118427, 0.0869, 10.220, 29.00, 0.70, 5.000, 0.80],
        [970.315022, 8.9720, 1.920, 25.50, 0.64, 4.940, 0.67],
        [987.926764, 132.1000, 0.258, 29.85, 0.68, 4.550, 0.90],
        [1780.000000, 22300.0000, 0.952, 176.20, 0.50, 30.500, 5.00],
    ]
)
"""Water vapor lines: f_i [GHz], b1..b6"""

# =============================================================================
# RAIN COEFFICIENTS (ITU-R P.838-3, Tables 1-4); index 0 horizontal, 1 vertical
# =============================================================================

RAIN_K_COEFFICIENTS: Final[np.ndarray] = np.array(
    [
        [[-5.33980, -0.10008, 1.13098], [-0.35351, 1.26970, 0.45400],
         [-0.23789, 0.86036, 0.15354], [-0.94158, 0.64552, 0.16817]],
        [[-3.80595, 0.56934, 0.81061], [-3.44965, -0.22911, 0.51059],
         [-0.39902, 0.73042, 0.11899], [0.50167, 1.07319, 0.27195]],
    ]
)
"""(a_j, b_j, c_j) Gaussian terms of log10(k)"""

RAIN_K_LINEAR: Final[np.ndarray] = np.array([[-0.18961, 0.71147], [-0.16398, 0.63297]])
"""(m_k, c_k) linear terms of log10(k)"""

RAIN_ALPHA_COEFFICIENTS: Final[np.ndarray] = np.array(
    [
        [[-0.14318, 1.82442, -0.55187], [0.29591, 0.77564, 0.19822],
         [0.32177, 0.62773, 0.13164], [-5.37610, -0.96230, 1.47828],
         [16.1721, -3.29980, 3.43990]],
        [[-0.07771, 2.33840, -0.76284], [0.56727, 0.95545, 0.54039],
         [-0.20238, 1.14520, 0.26809], [-48.2991, 0.791669, 0.116226],
         [48.5833, 0.791459, 0.116479]],
    ]
)
"""(a_j, b_j, c_j) Gaussian terms of α"""

RAIN_ALPHA_LINEAR: Final[np.ndarray] = np.array([[0.67849, -1.95537], [-0.053739, 0.83433]])
"""(m_α, c_α) linear terms of α"""

# =============================================================================
# REFERENCE ATMOSPHERE (ITU-R P.835-4, mean annual global)
# =============================================================================

_LAYER_BASES_KM = np.array([0.0, 11.0, 20.0, 32.0, 47.0, 51.0, 71.0, 85.0])
_LAPSE_RATES = np.array([-6.5, 0.0, 1.0, 2.8, 0.0, -2.8, -2.0, 999.0])


def _layer_pressure(h, temperature, h_i, p_i, t_i, l_i):
    if l_i != 0.0:
        return p_i * (t_i / temperature) ** (34.163 / l_i)
    return p_i * np.exp(-34.163 * (h - h_i) / t_i)


def _build_layer_bases() -> Tuple[np.ndarray, np.ndarray]:
    temperatures = np.zeros(8)
    pressures = np.zeros(8)
    temperatures[0] = 288.15
    pressures[0] = STANDARD_PRESSURE
    for i in range(1, 8):
        h = _LAYER_BASES_KM[i]
        temperatures[i] = temperatures[i - 1] + _LAPSE_RATES[i - 1] * (h - _LAYER_BASES_KM[i - 1])
        pressures[i] = _layer_pressure(
            h, temperatures[i], _LAYER_BASES_KM[i - 1], pressures[i - 1],
            temperatures[i - 1], _LAPSE_RATES[i - 1],
        )
    return temperatures, pressures


_LAYER_TEMPERATURES, _LAYER_PRESSURES = _build_layer_bases()


def reference_atmosphere(altitude: float) -> Tuple[float, float, float]:
    """
    Pressure, temperature and water vapor density at an altitude.

    Args:
        altitude: Altitude [m] (negative altitudes are treated as 0)

    Returns:
        Tuple of (pressure [hPa], temperature [K], water vapor density [g/m³]);
        all zero above 85 km
    """
    h = max(altitude * 0.001, 0.0)
    if h >= _LAYER_BASES_KM[-1]:
        return 0.0, 0.0, 0.0
    i = int(np.searchsorted(_LAYER_BASES_KM, h, side="right")) - 1
    temperature = _LAYER_TEMPERATURES[i] + _LAPSE_RATES[i] * (h - _LAYER_BASES_KM[i])
    pressure = _layer_pressure(
        h, temperature, _LAYER_BASES_KM[i], _LAYER_PRESSURES[i],
        _LAYER_TEMPERATURES[i], _LAPSE_RATES[i],
    )
    density = STANDARD_WATER_VAPOR_DENSITY * np.exp(-h / 2.0)
    return float(pressure), float(temperature), float(density)


class ITU_R_P676:
    """
    ITU-R Recommendation P.676-8
    Attenuation by atmospheric gases, line-by-line method (Annex 1)

    Sums 44 oxygen lines and 35 water vapor lines plus the dry-air
    continuum. Valid from 1 to 1000 GHz.
    """

    @staticmethod
    @numba.jit(nopython=True, cache=True)
    def _specific_attenuation_jit(
        f: float,
        p: float,
        temperature: float,
        rho: float,
        oxygen: np.ndarray,
        water: np.ndarray,
    ) -> float:
        """
        JIT-compiled gaseous specific attenuation γ = 0.182·f·N''(f)

        Args:
            f: Frequency [GHz]
            p: Dry air pressure [hPa]
            temperature: Temperature [K]
            rho: Water vapor density [g/m³]

        Returns:
            Specific attenuation [dB/km]
        """
        theta = 300.0 / temperature
        e = rho * temperature / 216.7

        sum_sf = 0.0
        for i in range(oxygen.shape[0]):
            f_i = oxygen[i, 0]
            s_i = oxygen[i, 1] * 1.0e-7 * p * theta**3 * np.exp(oxygen[i, 2] * (1.0 - theta))
            delta_f = oxygen[i, 3] * 1.0e-4 * (p * theta ** (0.8 - oxygen[i, 4]) + 1.1 * e * theta)
            delta_f = np.sqrt(delta_f * delta_f + 2.25e-6)
            delta = (oxygen[i, 5] + oxygen[i, 6] * theta) * 1.0e-4 * (p + e) * theta**0.8
            f_dif = f_i - f
            f_sum = f_i + f
            line = (f / f_i) * (
                (delta_f - delta * f_dif) / (f_dif * f_dif + delta_f * delta_f)
                + (delta_f - delta * f_sum) / (f_sum * f_sum + delta_f * delta_f)
            )
            sum_sf += s_i * line

        for i in range(water.shape[0]):
            f_i = water[i, 0]
            s_i = water[i, 1] * 1.0e-1 * e * theta**3.5 * np.exp(water[i, 2] * (1.0 - theta))
            delta_f = water[i, 3] * 1.0e-4 * (p * theta ** water[i, 4] + water[i, 5] * e * theta ** water[i, 6])
            delta_f = 0.535 * delta_f + np.sqrt(0.217 * delta_f * delta_f + 2.1316e-12 * f_i * f_i / theta)
            f_dif = f_i - f
            f_sum = f_i + f
            line = (f / f_i) * (
                delta_f / (f_dif * f_dif + delta_f * delta_f)
                + delta_f / (f_sum * f_sum + delta_f * delta_f)
            )
            sum_sf += s_i * line

        # Debye dry continuum
        d = 5.6e-4 * p * theta**0.8
        ratio = f / d
        continuum = (
            f * p * theta * theta
            * (6.14e-5 / (d * (1.0 + ratio * ratio)) + 1.4e-12 * p * theta**1.5 / (1.0 + 1.9e-5 * f**1.5))
        )
        return 0.182 * f * (sum_sf + continuum)

    @classmethod
    def specific_attenuation(
        cls,
        frequency_ghz: float,
        pressure_hpa: float = STANDARD_PRESSURE,
        temperature_k: float = 288.15,
        water_vapor_density: float = STANDARD_WATER_VAPOR_DENSITY,
    ) -> float:
        """
        Specific attenuation due to oxygen and water vapor

        Args:
            frequency_ghz: Frequency [GHz] (limited to 1-1000 GHz)
            pressure_hpa: Dry air pressure [hPa]
            temperature_k: Temperature [K]
            water_vapor_density: Water vapor density [g/m³]

        Returns:
            Specific attenuation γ [dB/km]
        """
        f = min(max(frequency_ghz, 1.0), 1000.0)
        return float(
            cls._specific_attenuation_jit(
                f, pressure_hpa, temperature_k, water_vapor_density, OXYGEN_LINES, WATER_VAPOR_LINES
            )
        )


# =============================================================================
# RAIN (ITU-R P.838-3) AND CLOUD (ITU-R P.840-4)
# =============================================================================


def _gaussian_sum(coefficients: np.ndarray, log10_f: float) -> float:
    t = (log10_f - coefficients[:, 1]) / coefficients[:, 2]
    return float(np.sum(coefficients[:, 0] * np.exp(-(t * t))))


def rain_specific_attenuation(
    frequency: float, polarization: Polarization, rain_rate_mm_hr: float
) -> float:
    """
    Specific attenuation due to rain γ_R = k·R^α.

    Args:
        frequency: Frequency [Hz] (limited to 1-200 GHz)
        polarization: Vertical uses the vertical coefficients; anything
            else uses the horizontal ones
        rain_rate_mm_hr: Rain rate [mm/hr]

    Returns:
        Specific attenuation [dB/km]
    """
    f = min(max(frequency * 1.0e-9, 1.0), 200.0)
    pol = 1 if polarization == Polarization.VERTICAL else 0
    log10_f = np.log10(f)

    m_k, c_k = RAIN_K_LINEAR[pol]
    log10_k = _gaussian_sum(RAIN_K_COEFFICIENTS[pol], log10_f) + m_k * log10_f + c_k
    m_a, c_a = RAIN_ALPHA_LINEAR[pol]
    alpha = _gaussian_sum(RAIN_ALPHA_COEFFICIENTS[pol], log10_f) + m_a * log10_f + c_a
    return float(10.0**log10_k * rain_rate_mm_hr**alpha)


def cloud_specific_attenuation(frequency: float, temperature: float, water_density: float) -> float:
    """
    Specific attenuation due to cloud or fog liquid water (Rayleigh regime).

    Args:
        frequency: Frequency [Hz] (limited to 1-200 GHz)
        temperature: Temperature [K]
        water_density: Liquid water density [g/m³]

    Returns:
        Specific attenuation [dB/km]
    """
    f = min(max(frequency * 1.0e-9, 1.0), 200.0)
    theta_m1 = 300.0 / temperature - 1.0
    f_p = 20.09 - 142.0 * theta_m1 + 294.0 * theta_m1 * theta_m1
    f_s = 590.0 - 1500.0 * theta_m1
    eps_0 = 77.6 + 103.3 * theta_m1
    eps_1 = 5.48
    eps_2 = 3.51

    term_p = (eps_0 - eps_1) / (1.0 + (f / f_p) ** 2)
    term_s = (eps_1 - eps_2) / (1.0 + (f / f_s) ** 2)
    eps_imag = (f / f_p) * term_p + (f / f_s) * term_s
    eps_real = term_p + term_s + eps_2
    eta = (2.0 + eps_real) / eps_imag
    k_l = 0.819 * f / (eps_imag * (1.0 + eta * eta))
    return float(k_l * water_density)


# =============================================================================
# PATH INTEGRATION
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _integrate_path_jit(
    path_range: float,
    elevation: float,
    altitude: float,
    altitudes: np.ndarray,
    gammas: np.ndarray,
    earth_radius: float,
) -> float:
    """
    JIT-compiled layer-by-layer attenuation along a ray.

    The ray starts at altitude with the given elevation. For each layer the
    law of sines gives the slant range to the top of the layer; the path
    stops at path_range or at the top of the table.

    Returns:
        Total attenuation [dB]
    """
    n = altitudes.shape[0]
    index = 0
    while index < n - 1 and altitudes[index + 1] <= altitude:
        index += 1

    side_a = earth_radius + altitude
    angle_b = elevation + 0.5 * np.pi
    sin_b = np.sin(angle_b)

    # Starting mid-layer
    frac = (altitude - altitudes[index]) / (altitudes[index + 1] - altitudes[index])
    lower_gamma = gammas[index] + frac * (gammas[index + 1] - gammas[index])

    atten_db = 0.0
    slant = 0.0
    last_slant = 0.0
    while slant < path_range and index < n - 1:
        side_b = earth_radius + altitudes[index + 1]
        angle_a = np.arcsin(min(side_a / side_b * sin_b, 1.0))
        angle_c = np.pi - angle_a - angle_b
        slant = side_a * np.sin(angle_c) / sin_b

        upper_gamma = gammas[index + 1]
        if slant > path_range:
            frac = (path_range - last_slant) / (slant - last_slant)
            upper_gamma = lower_gamma + frac * (upper_gamma - lower_gamma)
            slant = path_range

        atten_db += 0.5 * (lower_gamma + upper_gamma) * (slant - last_slant) * 0.001
        lower_gamma = upper_gamma
        last_slant = slant
        index += 1
    return atten_db


class ItuAttenuation(AttenuationModel):
    """
    ITU-R gas, rain and cloud attenuation along a bent ray.

    Rain and cloud parameters come from the scenario environment:
    rain_rate_mm_hr up to rain_upper_level (default: the cloud base, or
    10 km), and cloud_water_density between cloud_lower_level and
    cloud_upper_level.
    """

    model_type = "itu"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self._frequency = -1.0
        self._table_key = None
        self._altitudes = np.zeros(0)
        self._gammas = np.zeros(0)

    def compute_attenuation_factor(self, interaction, environment, geometry: Geometry) -> float:
        path_range, elevation, altitude = self.get_range_elevation_altitude(interaction, geometry)
        xmtr = interaction.xmtr
        return self.compute_attenuation(
            path_range, elevation, altitude, xmtr.frequency, xmtr.polarization, environment
        )

    def compute_attenuation_factor_p(self, path_range, elevation, altitude, frequency):
        return self.compute_attenuation(
            path_range, elevation, altitude, frequency, Polarization.DEFAULT, Environment()
        )

    def compute_attenuation(
        self,
        path_range: float,
        elevation: float,
        altitude: float,
        frequency: float,
        polarization: Polarization,
        environment,
    ) -> float:
        """
        Attenuation factor for a path described by its lower end point.

        Args:
            path_range: Slant range [m]
            elevation: Apparent elevation at the lower end point [rad]
            altitude: Altitude of the lower end point [m]
            frequency: Frequency [Hz] (limited to 1-1000 GHz)
            polarization: Signal polarization (rain coefficients)
            environment: Scenario environment (rain and cloud layers)

        Returns:
            Attenuation factor in [0, 1] (may underflow to 0)
        """
        frequency = min(max(frequency, 1.0e9), 1000.0e9)
        self._update_table(frequency, polarization, environment)
        if path_range < 1.0 or altitude >= self._altitudes[-1]:
            return 1.0
        elevation = min(max(elevation, 0.0), np.radians(89.9))
        altitude = max(altitude, 0.0)
        atten_db = _integrate_path_jit(
            float(path_range), float(elevation), float(altitude),
            self._altitudes, self._gammas, EARTH_RADIUS,
        )
        return float(10.0 ** (-0.1 * atten_db))

    def _update_table(self, frequency: float, polarization: Polarization, environment) -> None:
        key = (
            polarization,
            environment.rain_rate_mm_hr,
            environment.rain_upper_level,
            environment.cloud_lower_level,
            environment.cloud_upper_level,
            environment.cloud_water_density,
        )
        if abs(frequency - self._frequency) > 0.01 * frequency or key != self._table_key:
            self.generate_table(frequency, polarization, environment)
            self._table_key = key

    def generate_table(self, frequency: float, polarization: Polarization, environment) -> None:
        """Tabulate specific attenuation [dB/km] at 1 km altitude steps."""
        gamma_rain = 0.0
        upper_rain = 0.0
        if environment.rain_rate_mm_hr > 0.0:
            gamma_rain = rain_specific_attenuation(frequency, polarization, environment.rain_rate_mm_hr)
            upper_rain = environment.rain_upper_level
            if upper_rain <= 0.0:
                upper_rain = environment.cloud_lower_level
                if upper_rain <= 0.0:
                    upper_rain = 10000.0

        lower_cloud = environment.cloud_lower_level
        upper_cloud = environment.cloud_upper_level
        cloud_density = environment.cloud_water_density
        if cloud_density <= 0.0 or upper_cloud <= lower_cloud:
            lower_cloud = upper_cloud = cloud_density = 0.0

        max_alt = min(max(upper_rain, upper_cloud, 30000.0), 100000.0)
        max_alt = 1000.0 * np.ceil(max_alt / 1000.0)

        altitudes = []
        gammas = []
        for altitude in np.arange(0.0, max_alt + 1.0, 1000.0):
            pressure, temperature, density = reference_atmosphere(altitude)
            if pressure <= 0.0 or temperature <= 0.0:
                break
            gamma = ITU_R_P676.specific_attenuation(frequency * 1.0e-9, pressure, temperature, density)
            if altitude <= upper_rain:
                gamma += gamma_rain
            if cloud_density > 0.0 and lower_cloud <= altitude <= upper_cloud:
                gamma += cloud_specific_attenuation(frequency, temperature, cloud_density)
            altitudes.append(altitude)
            gammas.append(gamma)

        self._frequency = frequency
        self._altitudes = np.array(altitudes)
        self._gammas = np.array(gammas)
        logger.debug(
            "%s: generated %d-level attenuation table at %.4g GHz (surface %.4g dB/km)",
            self.name,
            len(altitudes),
            frequency * 1.0e-9,
            gammas[0],
        )


register_attenuation_type(ItuAttenuation.model_type, ItuAttenuation)


# =============================================================================
# VALIDATION FUNCTIONS (Reference: ITU-R P.676-8)
# =============================================================================


def validate_itu_water_vapor_line() -> dict:
    """
    Validate the 22.235 GHz water vapor line per ITU-R P.676-8

    At sea level (1013.25 hPa, 288.15 K) with 7.5 g/m³ water vapor the total
    specific attenuation is about 0.2 dB/km.

    Returns:
        Dict containing computed values, expected values, and validation status
    """
    frequency_ghz = 22.235
    gamma = ITU_R_P676.specific_attenuation(frequency_ghz)
    lower, upper = 0.18, 0.22

    return {
        "test_parameters": {
            "frequency_ghz": frequency_ghz,
            "pressure_hpa": STANDARD_PRESSURE,
            "water_vapor_gpm3": STANDARD_WATER_VAPOR_DENSITY,
        },
        "computed_values": {
            "gamma_dB_per_km": gamma,
            "attenuation_factor_1km": 10.0 ** (-0.1 * gamma),
        },
        "expected_values": {
            "gamma_min_dB_per_km": lower,
            "gamma_max_dB_per_km": upper,
        },
        "validation": {
            "is_valid": lower <= gamma <= upper,
            "reference": "ITU-R P.676-8, Figure 1 - Water vapor resonance",
        },
    }
