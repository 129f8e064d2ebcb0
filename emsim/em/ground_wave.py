"""
Ground-Wave Propagation Model

Propagation factor of the vertically or horizontally polarized field over a
smooth, homogeneous spherical earth, for HF/VHF paths where the surface wave
dominates (over-the-horizon radar, low antennas over sea).

Two regimes are evaluated:

    Line of sight (and short ranges):
        Norton flat-earth form with the surface-wave attenuation function

            F = 1 + R·e^{-jkΔR} + (1 - R)·A(w)·e^{-jkΔR}
            A(w) = 1 - j·sqrt(πw)·e^{-w}·erfc(j·sqrt(w))

    Beyond the horizon:
        Fock residue series over the roots t_s of w1'(t) - q·w1(t) = 0

            V = 2·sqrt(πx)·|Σ e^{jxt_s}/(t_s - q²)·w1(t_s - y1)·w1(t_s - y2)/w1(t_s)²|

The effective earth radius comes from an exponential troposphere
(surface refractivity N_s and scale height H): k = 1/(1 + a·dN/dh·1e-6)
with dN/dh = -N_s/H.

References:
    - ITU-R P.368-9: Ground-wave propagation curves for frequencies
      between 10 kHz and 30 MHz (GRWAVE)
    - Fock, "Electromagnetic Diffraction and Propagation Problems",
      Pergamon, 1965
    - Norton, "The Propagation of Radio Waves over the Surface of the Earth",
      Proc. IRE, Vol. 24, 1936
    - Rotheram, "Ground-wave propagation", IEE Proc. F, Vol. 128, 1981
"""

import logging
from typing import Any, Optional, Tuple

import numpy as np
from scipy.special import ai_zeros, airy, wofz

from emsim.em.fast_multipath import antenna_height_above_surface
from emsim.em.propagation import PropagationModel, register_propagation_type
from emsim.em.types import Polarization
from emsim.errors import ConfigurationError
from emsim.physics.constants import EARTH_RADIUS, SPEED_OF_LIGHT
from emsim.physics.geodesy import central_angle

logger = logging.getLogger(__name__)

MAX_RESIDUES = 40
"""Maximum number of residue-series terms"""

_RESIDUE_TOLERANCE = 1.0e-6
_NEWTON_ITERATIONS = 50

# Airy zeros a_s (zeros of Ai) and a'_s (zeros of Ai')
_AI_ZEROS, _AIP_ZEROS, _, _ = ai_zeros(MAX_RESIDUES)


# =============================================================================
# SURFACE PARAMETERS
# =============================================================================


def surface_refractive_index_squared(frequency: float, permittivity: float, conductivity: float) -> complex:
    """Complex n² = εr + j·60λσ (time dependence e^{-jωt})."""
    wavelength = SPEED_OF_LIGHT / frequency
    return complex(permittivity, 60.0 * wavelength * conductivity)


def surface_impedance(n_squared: complex, vertical: bool) -> complex:
    """Normalized surface impedance Δ at grazing incidence."""
    delta = np.sqrt(n_squared - 1.0)
    if vertical:
        delta = delta / n_squared
    return complex(delta)


def effective_earth_radius_factor(refractivity: float, scale_height: float) -> float:
    """k for an exponential troposphere with the given surface refractivity and scale height [m]."""
    gradient = -refractivity / scale_height
    return 1.0 / (1.0 + EARTH_RADIUS * gradient * 1.0e-6)


# =============================================================================
# RESIDUE SERIES
# =============================================================================


def _w1(t: complex) -> Tuple[complex, complex]:
    """Fock Airy function w1 = √π(Bi + j·Ai) and its derivative."""
    ai, aip, bi, bip = airy(t)
    root_pi = np.sqrt(np.pi)
    return root_pi * (bi + 1j * ai), root_pi * (bip + 1j * aip)


def residue_roots(q: complex, count: int = MAX_RESIDUES) -> np.ndarray:
    """
    Roots of w1'(t) = q·w1(t) in the upper half plane.

    Newton iteration starts from the zeros of Ai' (|q| small) or Ai
    (|q| large), rotated by e^{jπ/3}.
    """
    rotation = np.exp(1j * np.pi / 3.0)
    starts = _AIP_ZEROS if abs(q) < 1.0 else _AI_ZEROS
    roots = []
    for s in range(min(count, MAX_RESIDUES)):
        t = complex(-starts[s] * rotation)
        if abs(q) >= 1.0:
            t += 1.0 / q
        elif abs(t) > 0.0:
            t += q / t
        for _ in range(_NEWTON_ITERATIONS):
            w, wp = _w1(t)
            f = wp - q * w
            fp = t * w - q * wp
            if fp == 0.0:
                break
            step = f / fp
            t -= step
            if abs(step) < 1.0e-10 * max(1.0, abs(t)):
                break
        if t.imag > 0.0:
            roots.append(t)
    return np.array(roots, dtype=complex)


def residue_series_factor(
    distance: float, h1: float, h2: float, wavelength: float, earth_radius: float, q_delta: complex
) -> float:
    """
    Field strength relative to free space beyond the horizon.

    Args:
        distance: Ground distance [m]
        h1, h2: Terminal heights above the surface [m]
        wavelength: Wavelength [m]
        earth_radius: Effective earth radius [m]
        q_delta: Normalized surface impedance Δ

    Returns:
        |E/E0|
    """
    k0 = 2.0 * np.pi / wavelength
    m = (k0 * earth_radius / 2.0) ** (1.0 / 3.0)
    x = m * distance / earth_radius
    y1 = k0 * max(h1, 0.0) / m
    y2 = k0 * max(h2, 0.0) / m
    q = -1j * m * q_delta

    total = 0.0 + 0.0j
    for t in residue_roots(q):
        w, _ = _w1(t)
        w_1, _ = _w1(t - y1)
        w_2, _ = _w1(t - y2)
        term = np.exp(1j * x * t) / (t - q * q) * w_1 * w_2 / (w * w)
        total += term
        if abs(term) < _RESIDUE_TOLERANCE * max(abs(total), 1.0e-300):
            break
    return float(2.0 * np.sqrt(np.pi * x) * abs(total))


def norton_factor(
    distance: float, h1: float, h2: float, wavelength: float, n_squared: complex, vertical: bool
) -> float:
    """
    Field strength relative to free space from direct, reflected and surface
    waves over a flat earth.
    """
    k0 = 2.0 * np.pi / wavelength
    # e^{+jωt} convention in the flat-earth form
    n2 = np.conj(n_squared)
    direct = np.hypot(distance, h2 - h1)
    reflected = np.hypot(distance, h1 + h2)
    sin_psi = (h1 + h2) / reflected
    cos_sq = 1.0 - sin_psi * sin_psi
    root = np.sqrt(n2 - cos_sq)
    delta = root / n2 if vertical else root
    r = (sin_psi - delta) / (sin_psi + delta)
    w = (-1j * k0 * reflected / 2.0) * (sin_psi + delta) ** 2
    sqrt_w = np.sqrt(w)
    attenuation = 1.0 - 1j * np.sqrt(np.pi * w) * wofz(-sqrt_w)
    phase = np.exp(-1j * k0 * (reflected - direct))
    field = 1.0 + r * phase + (1.0 - r) * attenuation * phase
    return float(abs(field))


# =============================================================================
# MODEL
# =============================================================================


class GroundWavePropagation(PropagationModel):
    """
    Smooth-earth ground-wave propagation.

    Keywords:
        relative_permittivity: Surface εr (70)
        conductivity: Surface conductivity [S/m] (5.0)
        troposphere_refractivity: Surface refractivity N_s (315)
        troposphere_height_scale: Refractivity scale height [m] (7350)
        minimum_computation_distance: Below this distance [m] F = 1 (10000)
        use_environment_ground: Use the environment's land-cover ground
            constants unless the surface is set explicitly (False)
    """

    model_type = "ground_wave"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.permittivity = 70.0
        self.conductivity = 5.0
        self.refractivity = 315.0
        self.scale_height = 7350.0
        self.minimum_distance = 10000.0
        self.use_environment_ground = False

    def process_input(self, command: str, value: Any) -> bool:
        if command == "relative_permittivity":
            if value < 1.0:
                raise ConfigurationError("must be >= 1", command)
            self.permittivity = float(value)
        elif command == "conductivity":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.conductivity = float(value)
        elif command == "troposphere_refractivity":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.refractivity = float(value)
        elif command == "troposphere_height_scale":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.scale_height = float(value)
        elif command == "minimum_computation_distance":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.minimum_distance = float(value)
        elif command == "use_environment_ground":
            self.use_environment_ground = bool(value)
        else:
            return super().process_input(command, value)
        return True

    def get_earth_radius_factor(self) -> float:
        return effective_earth_radius_factor(self.refractivity, self.scale_height)

    def path_factor(
        self, distance: float, h1: float, h2: float, frequency: float, polarization: Polarization,
        permittivity: Optional[float] = None, conductivity: Optional[float] = None,
    ) -> float:
        """
        One-way power factor F² between two terminals.

        Args:
            distance: Ground distance [m]
            h1, h2: Terminal heights above the surface [m]
            frequency: Frequency [Hz]
            polarization: Polarization (vertical unless HORIZONTAL)

        Returns:
            F²
        """
        if distance < self.minimum_distance:
            return 1.0
        permittivity = self.permittivity if permittivity is None else permittivity
        conductivity = self.conductivity if conductivity is None else conductivity
        wavelength = SPEED_OF_LIGHT / frequency
        vertical = polarization != Polarization.HORIZONTAL
        n_squared = surface_refractive_index_squared(frequency, permittivity, conductivity)
        earth_radius = self.get_earth_radius_factor() * EARTH_RADIUS

        k0 = 2.0 * np.pi / wavelength
        m = (k0 * earth_radius / 2.0) ** (1.0 / 3.0)
        x = m * distance / earth_radius
        y1 = k0 * max(h1, 0.0) / m
        y2 = k0 * max(h2, 0.0) / m
        if x > np.sqrt(y1) + np.sqrt(y2) + 1.0:
            factor = residue_series_factor(
                distance, h1, h2, wavelength, earth_radius, surface_impedance(n_squared, vertical)
            )
        else:
            # Heights above the tangent plane at the midpoint
            drop = distance * distance / (8.0 * earth_radius)
            factor = norton_factor(
                distance, max(h1 - drop, 0.0), max(h2 - drop, 0.0), wavelength, n_squared, vertical
            )
        return factor * factor

    def compute_propagation_factor(self, interaction, environment) -> float:
        xmtr = interaction.xmtr
        if xmtr is None:
            return 1.0
        frequency = self.get_frequency(interaction)

        permittivity = conductivity = None
        if self.use_environment_ground and environment is not None:
            permittivity, conductivity = environment.get_rf_ground_parameters()

        h_xmtr = antenna_height_above_surface(xmtr)
        rcvr = interaction.rcvr
        target = interaction.target
        if target is None:
            if rcvr is None:
                return 1.0
            distance = central_angle(interaction.xmtr_loc.loc_wcs, interaction.rcvr_loc.loc_wcs) * EARTH_RADIUS
            f4 = self.path_factor(
                distance, h_xmtr, antenna_height_above_surface(rcvr),
                frequency, xmtr.polarization, permittivity, conductivity,
            )
        else:
            h_target = interaction.tgt_loc.alt - target.get_terrain_height()
            distance = central_angle(interaction.xmtr_loc.loc_wcs, interaction.tgt_loc.loc_wcs) * EARTH_RADIUS
            f4 = self.path_factor(
                distance, h_xmtr, h_target, frequency, xmtr.polarization, permittivity, conductivity
            )
            if rcvr is not None:
                if rcvr.antenna is xmtr.antenna:
                    f4 *= f4
                else:
                    distance = central_angle(interaction.rcvr_loc.loc_wcs, interaction.tgt_loc.loc_wcs) * EARTH_RADIUS
                    f4 *= self.path_factor(
                        distance, antenna_height_above_surface(rcvr), h_target,
                        frequency, rcvr.polarization, permittivity, conductivity,
                    )
        if self.debug:
            logger.debug("%s: F^4 = %.6g", self.name, f4)
        return float(f4)


register_propagation_type(GroundWavePropagation.model_type, GroundWavePropagation)
