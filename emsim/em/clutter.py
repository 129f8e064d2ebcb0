"""
Surface Clutter Models

Clutter power seen by a radar receiver from the ground or sea surface in the
resolution cell that contains the target. Models return the total clutter
power after the sensor's clutter suppression, given a processing factor in
[0, 1] (0 = fully suppressed, 1 = no suppression).

Surface reflectivity σ⁰ comes either from a user table (frequency × grazing
angle, per land cover) or from the constant-γ model σ⁰ = γ·sin(ψ) with γ
taken from the land cover or, over water, from the sea state.

The clutter cell is the smaller of the pulse-limited and beam-limited patch:

    A_pulse = R·θ_az·(c·τ/2)·sec(ψ)
    A_beam  = R·θ_az·R·θ_el / sin(ψ)

and range-ambiguous rings at R + n·c/(2·PRF) inside the radar horizon are
summed.

References:
    - Barton, "Radar Equations for Modern Radar", Artech House, 2013,
      Chapter 9 (surface clutter)
    - Nathanson, "Radar Design Principles", 2nd Ed., McGraw-Hill, 1991,
      Chapter 7
    - Skolnik, "Radar Handbook", 3rd Ed., Chapters 15-16
"""

import logging
from typing import Any, Callable, Dict, Optional

import numpy as np
from scipy.interpolate import RegularGridInterpolator

from emsim.errors import ConfigurationError
from emsim.physics.constants import FOUR_PI, SPEED_OF_LIGHT, db_to_linear
from emsim.simulation.environment import LandCover

logger = logging.getLogger(__name__)

MAX_AMBIGUOUS_RINGS = 100
"""Upper bound on range-ambiguous clutter rings summed per cell"""

LAND_COVER_GAMMA_DB: Dict[LandCover, float] = {
    LandCover.GENERAL: -15.0,
    LandCover.URBAN: -5.0,
    LandCover.AGRICULTURE: -15.0,
    LandCover.GRASS: -15.0,
    LandCover.SHRUB: -13.0,
    LandCover.FOREST: -10.0,
    LandCover.WETLAND_FORESTED: -12.0,
    LandCover.WETLAND_NONFORESTED: -18.0,
    LandCover.BARREN: -20.0,
    LandCover.DESERT: -20.0,
    LandCover.ICE_SNOW: -20.0,
}
"""Constant-γ surface reflectivity by land cover [dB]"""


def sea_gamma_db(sea_state: int, wavelength: float) -> float:
    """Constant-γ sea reflectivity: γ = 6·SS - 10·log10(λ) - 64 dB."""
    return 6.0 * max(sea_state, 0) - 10.0 * np.log10(wavelength) - 64.0


def grazing_angle(slant_range: float, height: float, earth_radius: float) -> float:
    """
    Grazing angle at a surface point seen from a given height.

    Returns:
        ψ [rad]; 0 at or beyond the horizon
    """
    if slant_range <= 0.0 or height <= 0.0:
        return 0.0
    sin_psi = (height * (2.0 * earth_radius + height) - slant_range * slant_range) / (
        2.0 * slant_range * earth_radius
    )
    return float(np.arcsin(np.clip(sin_psi, 0.0, 1.0)))


def depression_angle(slant_range: float, height: float, earth_radius: float) -> float:
    """Depression angle of a surface point below the local horizontal [rad]."""
    if slant_range <= 0.0:
        return 0.0
    sin_d = (height * (2.0 * earth_radius + height) + slant_range * slant_range) / (
        2.0 * slant_range * (earth_radius + height)
    )
    return float(np.arcsin(np.clip(sin_d, -1.0, 1.0)))


class ClutterModel:
    """
    Base clutter model.

    Attributes:
        name: Model name (used in log output)
        debug: Log each evaluation
    """

    model_type = "base"

    def __init__(self, name: str = "") -> None:
        self.name = name or self.model_type
        self.debug = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.name}')"

    def process_input(self, command: str, value: Any) -> bool:
        if command == "debug":
            self.debug = bool(value)
            return True
        return False

    def initialize(self, rcvr) -> None:
        """Called once by the owning sensor beam."""

    def is_null_model(self) -> bool:
        return False

    def compute_clutter_power(self, interaction, environment, processing_factor: float) -> float:
        """
        Clutter power for an interaction [W].

        Args:
            interaction: Interaction with geometry and beam data set
            environment: Scenario environment (land cover, sea state)
            processing_factor: Fraction of the raw clutter that survives
                the sensor's suppression [0, 1]
        """
        return 0.0


class NullClutter(ClutterModel):
    """No clutter."""

    model_type = "none"

    def is_null_model(self) -> bool:
        return True


class SurfaceClutterTable(ClutterModel):
    """
    Surface clutter integrated over the radar resolution cell.

    Keywords:
        sigma0_table: {land_cover: {frequencies: [Hz], grazing_angles: [deg],
            sigma0_db: [[dB per grazing angle] per frequency]}}
        gamma_db: Constant-γ override [dB]
        range_ambiguities: Sum range-ambiguous rings (True)
    """

    model_type = "surface_clutter_table"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.gamma_db: Optional[float] = None
        self.range_ambiguities = True
        self._tables: Dict[LandCover, Callable[[float, float], float]] = {}

    def process_input(self, command: str, value: Any) -> bool:
        if command == "sigma0_table":
            for cover_name, table in value.items():
                try:
                    cover = LandCover(str(cover_name).lower())
                except ValueError:
                    raise ConfigurationError(f"unknown land cover '{cover_name}'", command) from None
                self.set_sigma0_table(
                    cover, table["frequencies"], np.radians(table["grazing_angles"]), table["sigma0_db"]
                )
        elif command == "gamma_db":
            self.gamma_db = float(value)
        elif command == "range_ambiguities":
            self.range_ambiguities = bool(value)
        else:
            return super().process_input(command, value)
        return True

    def set_sigma0_table(self, land_cover: LandCover, frequencies, grazing_angles, sigma0_db) -> None:
        """
        Define σ⁰ [dB] over (frequency [Hz], grazing angle [rad]) for a land cover.

        Raises:
            ConfigurationError: If the axes are not ascending or the shape
                does not match
        """
        freqs = np.atleast_1d(np.asarray(frequencies, dtype=np.float64))
        angles = np.atleast_1d(np.asarray(grazing_angles, dtype=np.float64))
        values = np.asarray(sigma0_db, dtype=np.float64)
        if values.size != freqs.size * angles.size:
            raise ConfigurationError(
                f"expected {freqs.size}x{angles.size} sigma0 values, got {values.size}", "sigma0_table"
            )
        values = values.reshape(freqs.size, angles.size)
        if np.any(np.diff(freqs) <= 0.0) or np.any(np.diff(angles) <= 0.0) or angles.size < 2:
            raise ConfigurationError("table axes must be ascending (>= 2 grazing angles)", "sigma0_table")
        if freqs.size == 1:
            row = values[0]
            self._tables[land_cover] = lambda f, psi: float(np.interp(psi, angles, row))
            return
        interp = RegularGridInterpolator((np.log10(freqs), angles), values)
        log_lo, log_hi = np.log10(freqs[0]), np.log10(freqs[-1])

        def lookup(frequency: float, psi: float) -> float:
            point = [np.clip(np.log10(frequency), log_lo, log_hi), np.clip(psi, angles[0], angles[-1])]
            return float(interp(point)[0])

        self._tables[land_cover] = lookup

    def get_sigma0(self, frequency: float, psi: float, environment) -> float:
        """Surface reflectivity σ⁰ (linear, m²/m²)."""
        if psi <= 0.0:
            return 0.0
        table = self._tables.get(environment.land_cover)
        if table is not None:
            return db_to_linear(table(frequency, psi))
        wavelength = SPEED_OF_LIGHT / frequency
        if self.gamma_db is not None:
            gamma = self.gamma_db
        elif environment.land_cover in (LandCover.WATER, LandCover.SEA):
            gamma = sea_gamma_db(environment.sea_state, wavelength)
        else:
            gamma = LAND_COVER_GAMMA_DB[environment.land_cover]
        return db_to_linear(gamma) * np.sin(psi)

    def compute_clutter_power(self, interaction, environment, processing_factor: float) -> float:
        xmtr = interaction.xmtr
        rcvr = interaction.rcvr
        if xmtr is None or rcvr is None or interaction.target is None:
            return 0.0
        slant_range = interaction.rcvr_to_tgt.range
        if slant_range <= 0.0:
            return 0.0

        antenna = rcvr.antenna
        height = antenna.get_altitude() - rcvr.platform.get_terrain_height()
        radius = float(np.linalg.norm(interaction.rcvr_loc.loc_wcs)) - interaction.rcvr_loc.alt
        earth_radius = rcvr.earth_radius_multiplier * radius
        horizon = np.sqrt(max(height, 0.0) * (2.0 * earth_radius + max(height, 0.0)))
        if height <= 0.0:
            return 0.0

        frequency = xmtr.frequency
        wavelength = SPEED_OF_LIGHT / frequency
        az_beamwidth = rcvr.get_azimuth_beamwidth()
        el_beamwidth = rcvr.get_elevation_beamwidth()
        pulse_width = xmtr.pulse_width
        if pulse_width <= 0.0 and rcvr.bandwidth > 0.0:
            pulse_width = 1.0 / rcvr.bandwidth
        pulse_width /= max(xmtr.pulse_compression_ratio, 1.0)
        prf = xmtr.get_pulse_repetition_frequency()
        unambiguous_range = 0.5 * SPEED_OF_LIGHT / prf if prf > 0.0 else np.inf

        # Elevation of the target in the NED frame and relative to each beam
        target_el = interaction.rcvr_to_tgt.el
        peak_power = xmtr.get_peak_power()
        ambiguous = self.range_ambiguities and np.isfinite(unambiguous_range)
        ring_range = slant_range % unambiguous_range if ambiguous else slant_range
        total = 0.0
        for _ in range(MAX_AMBIGUOUS_RINGS):
            if ring_range > horizon:
                break
            if ring_range > 0.0:
                total += self._ring_power(
                    interaction, xmtr, rcvr, environment, ring_range, height, earth_radius,
                    frequency, wavelength, az_beamwidth, el_beamwidth, pulse_width, peak_power, target_el,
                )
            if not ambiguous:
                break
            ring_range += unambiguous_range

        power = total * processing_factor
        if self.debug:
            logger.debug("%s: clutter power %.4g W (processing factor %.3g)", self.name, power, processing_factor)
        return float(power)

    def _ring_power(
        self, interaction, xmtr, rcvr, environment, ring_range, height, earth_radius,
        frequency, wavelength, az_beamwidth, el_beamwidth, pulse_width, peak_power, target_el,
    ) -> float:
        psi = grazing_angle(ring_range, height, earth_radius)
        if psi <= 0.0:
            return 0.0
        sigma0 = self.get_sigma0(frequency, psi, environment)
        pulse_area = ring_range * az_beamwidth * 0.5 * SPEED_OF_LIGHT * pulse_width / max(np.cos(psi), 1.0e-6)
        beam_area = ring_range * az_beamwidth * ring_range * el_beamwidth / max(np.sin(psi), 1.0e-6)
        area = min(pulse_area, beam_area) if pulse_width > 0.0 else beam_area

        # Clutter sits in the target's azimuth, below the target by (depression + target elevation)
        offset = -depression_angle(ring_range, height, earth_radius) - target_el
        xmtr_gain = self._beam_gain(xmtr, interaction.xmtr_beam, offset)
        rcvr_gain = self._beam_gain(rcvr, interaction.rcvr_beam, offset)
        return (
            peak_power * xmtr_gain * rcvr_gain * wavelength * wavelength * sigma0 * area
            / (FOUR_PI**3 * ring_range**4 * xmtr.internal_loss * rcvr.internal_loss)
        )

    @staticmethod
    def _beam_gain(xmtr_rcvr, beam, el_offset: float) -> float:
        return xmtr_rcvr.get_antenna_gain(
            xmtr_rcvr.polarization, xmtr_rcvr.frequency, beam.az, beam.el + el_offset, beam.ebs_az, beam.ebs_el
        )


# =============================================================================
# REGISTRY
# =============================================================================

_MODEL_FACTORIES: Dict[str, Callable[[str], ClutterModel]] = {}


def register_clutter_type(model_type: str, factory: Callable[[str], ClutterModel]) -> None:
    """Register a factory for a clutter model type string."""
    _MODEL_FACTORIES[model_type] = factory


def create_clutter_model(model_type: str, name: str = "") -> ClutterModel:
    """
    Create a clutter model from its type string.

    Raises:
        ConfigurationError: If the type is not registered
    """
    factory = _MODEL_FACTORIES.get(model_type)
    if factory is None:
        raise ConfigurationError(
            f"unknown clutter model type '{model_type}' (known: {', '.join(sorted(_MODEL_FACTORIES))})",
            "clutter_model",
        )
    return factory(name)


def clutter_model_from_input(value: Any) -> Optional[ClutterModel]:
    """Build a clutter model from a model object, a type string or a keyword dict."""
    if value is None:
        return None
    if isinstance(value, ClutterModel):
        return value
    if isinstance(value, str):
        return create_clutter_model(value)
    if isinstance(value, dict):
        model = create_clutter_model(value.get("type", "none"), value.get("name", ""))
        for key, item in value.items():
            if key in ("type", "name", "end_clutter_model"):
                continue
            if not model.process_input(key, item):
                raise ConfigurationError(f"unknown clutter keyword '{key}'", "clutter_model")
        return model
    raise ConfigurationError(f"expected a model type or definition, got {type(value).__name__}", "clutter_model")


register_clutter_type(NullClutter.model_type, NullClutter)
register_clutter_type(SurfaceClutterTable.model_type, SurfaceClutterTable)
