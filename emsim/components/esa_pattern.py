"""
Electronically Scanned Array Pattern

Planar Nx × Ny array of cosine-power elements with a uniform or Taylor
aperture distribution. The beam is steered electronically: the array factor
is evaluated in direction-cosine space about the steering direction, so the
requested angles are first moved from the beam frame to the array face
frame by the EBS angles and the steering direction is then subtracted.

The element-pattern scan loss is normalized out of the gain (it is the
antenna's beam-steering loss, applied by the antenna itself).

References:
    - Mailloux, "Phased Array Antenna Handbook", Artech House, 2005
    - Taylor, "Design of Line-Source Antennas for Narrow Beamwidth and Low
      Sidelobes", IRE Transactions on Antennas and Propagation, 1955
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 13
"""

from typing import Any

import numba
import numpy as np

from emsim.components.antenna_pattern import AntennaPattern, register_pattern_type
from emsim.errors import ConfigurationError
from emsim.physics.constants import SPEED_OF_LIGHT


def taylor_weights(n_elements: int, sidelobe_db: float) -> np.ndarray:
    """
    Taylor aperture weights normalized to a unit maximum.

    Args:
        n_elements: Number of elements along the axis
        sidelobe_db: Design sidelobe level [dB] (negative)

    Returns:
        Array of element weights
    """
    if n_elements < 3:
        return np.ones(n_elements)
    n_centered = np.arange(n_elements) - (n_elements - 1) / 2

    r = 10 ** (-sidelobe_db / 20)
    A = np.arccosh(r) / np.pi
    n_bar = int(2 * A**2 + 0.5)
    n_bar = max(2, min(n_bar, n_elements // 2))

    weights = np.ones(n_elements)
    for m in range(1, n_bar):
        numerator = 1.0
        for n_idx in range(1, n_bar):
            if n_idx != m:
                numerator *= 1 - (m / n_idx) ** 2

        denominator = 1.0
        for n_idx in range(1, n_bar):
            if n_idx != m:
                x = A**2 + (n_idx - 0.5) ** 2
                y = A**2 + (m - 0.5) ** 2
                denominator *= 1 - x / y

        F_m = ((-1) ** (m + 1)) * numerator / (2 * denominator) if denominator != 0 else 0
        weights *= 1 + 2 * F_m * np.cos(2 * np.pi * m * n_centered / n_elements)

    return weights / np.max(weights)


@numba.jit(nopython=True, cache=True)
def _array_factor_jit(weights: np.ndarray, kd: float, delta: float) -> float:
    """
    Normalized power array factor of a linear array.

    AF = |Σ w_n exp(j·k·d·n·Δ)|² / (Σ w_n)², with Δ the direction-cosine
    offset from the steering direction.
    """
    n = weights.shape[0]
    offset = 0.5 * (n - 1)
    re = 0.0
    im = 0.0
    total = 0.0
    for i in range(n):
        phase = kd * (i - offset) * delta
        re += weights[i] * np.cos(phase)
        im += weights[i] * np.sin(phase)
        total += weights[i]
    if total == 0.0:
        return 0.0
    return (re * re + im * im) / (total * total)


class EsaPattern(AntennaPattern):
    """
    Planar phased-array pattern.

    Keywords:
        number_elements_x, number_elements_y: Elements along azimuth / elevation
        element_spacing_x, element_spacing_y: Element spacing [m]
        distribution_type: 'uniform' or 'taylor'
        sidelobe_level_db: Taylor design sidelobe level (default -30 dB)
        element_pattern_exponent: n in the cos^n element pattern (default 1)
        aperture_efficiency: Overrides the taper efficiency
        design_frequency: Frequency used when the caller supplies none [Hz]
    """

    pattern_type = "esa_pattern"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.nx = 1
        self.ny = 1
        self.dx = 0.0
        self.dy = 0.0
        self.distribution = "uniform"
        self.sidelobe_db = -30.0
        self.element_exponent = 1.0
        self.aperture_efficiency = None
        self.design_frequency = 0.0
        self._weights_x = np.ones(1)
        self._weights_y = np.ones(1)
        self._efficiency = 1.0

    def process_input(self, command: str, value: Any) -> bool:
        if command == "number_elements_x":
            self.nx = self._positive_int(command, value)
        elif command == "number_elements_y":
            self.ny = self._positive_int(command, value)
        elif command == "element_spacing_x":
            self.dx = self._positive(command, value)
        elif command == "element_spacing_y":
            self.dy = self._positive(command, value)
        elif command == "distribution_type":
            if value not in ("uniform", "taylor"):
                raise ConfigurationError(f"unknown distribution '{value}'", command)
            self.distribution = value
        elif command == "sidelobe_level_db":
            if value >= 0.0:
                raise ConfigurationError("must be < 0 dB", command)
            self.sidelobe_db = float(value)
        elif command == "element_pattern_exponent":
            self.element_exponent = float(value)
        elif command == "aperture_efficiency":
            self.aperture_efficiency = self._positive(command, value)
        elif command == "design_frequency":
            self.design_frequency = self._positive(command, value)
        else:
            return super().process_input(command, value)
        return True

    @staticmethod
    def _positive(command: str, value: float) -> float:
        if value <= 0.0:
            raise ConfigurationError("must be > 0", command)
        return float(value)

    @staticmethod
    def _positive_int(command: str, value) -> int:
        if int(value) < 1:
            raise ConfigurationError("must be >= 1", command)
        return int(value)

    def _initialize(self) -> None:
        if (self.nx > 1 and self.dx <= 0.0) or (self.ny > 1 and self.dy <= 0.0):
            raise ConfigurationError("element spacing is required for multi-element axes", "esa_pattern")
        if self.distribution == "taylor":
            self._weights_x = taylor_weights(self.nx, self.sidelobe_db)
            self._weights_y = taylor_weights(self.ny, self.sidelobe_db)
        else:
            self._weights_x = np.ones(self.nx)
            self._weights_y = np.ones(self.ny)
        if self.aperture_efficiency is not None:
            self._efficiency = self.aperture_efficiency
        else:
            self._efficiency = self._taper_efficiency(self._weights_x) * self._taper_efficiency(
                self._weights_y
            )

    @staticmethod
    def _taper_efficiency(weights: np.ndarray) -> float:
        return float(np.sum(weights) ** 2 / (len(weights) * np.sum(weights**2)))

    def _wavelength(self, frequency: float) -> float:
        if frequency > 0.0:
            return SPEED_OF_LIGHT / frequency
        if self.design_frequency > 0.0:
            return SPEED_OF_LIGHT / self.design_frequency
        # Half-wavelength spacing
        return 2.0 * max(self.dx, self.dy, 1.0e-3)

    def get_peak_gain(self, frequency: float) -> float:
        """Broadside directivity π·Nx·Ny·(2dx/λ)·(2dy/λ)·η."""
        wavelength = self._wavelength(frequency)
        gain = np.pi * self.nx * self.ny
        if self.nx > 1:
            gain *= 2.0 * self.dx / wavelength
        if self.ny > 1:
            gain *= 2.0 * self.dy / wavelength
        return float(gain * self._efficiency)

    def _element_gain(self, az: float, el: float) -> float:
        c = np.cos(az) * np.cos(el)
        if c <= 0.0:
            return 0.0
        return c**self.element_exponent

    def _compute_gain(self, frequency, az, el, ebs_az, ebs_el):
        wavelength = self._wavelength(frequency)
        k = 2.0 * np.pi / wavelength
        face_az = az + ebs_az
        face_el = el + ebs_el

        steer_element = self._element_gain(ebs_az, ebs_el)
        if steer_element <= 0.0:
            return 0.0
        element = self._element_gain(face_az, face_el) / steer_element

        u = np.cos(face_el) * np.sin(face_az) - np.cos(ebs_el) * np.sin(ebs_az)
        v = np.sin(face_el) - np.sin(ebs_el)
        af_x = _array_factor_jit(self._weights_x, k * self.dx, u)
        af_y = _array_factor_jit(self._weights_y, k * self.dy, v)
        return self.get_peak_gain(frequency) * element * af_x * af_y

    def _broadside_beamwidth(self, n: int, spacing: float, frequency: float) -> float:
        if n <= 1 or spacing <= 0.0:
            return np.pi
        factor = 0.886 if self.distribution == "uniform" else 1.0
        return factor * self._wavelength(frequency) / (n * spacing)

    def get_azimuth_beamwidth(self, frequency, ebs_az=0.0, ebs_el=0.0):
        return self.apply_ebs(self._broadside_beamwidth(self.nx, self.dx, frequency), ebs_az, 0.0)

    def get_elevation_beamwidth(self, frequency, ebs_az=0.0, ebs_el=0.0):
        return self.apply_ebs(self._broadside_beamwidth(self.ny, self.dy, frequency), 0.0, ebs_el)


register_pattern_type(EsaPattern.pattern_type, EsaPattern)
