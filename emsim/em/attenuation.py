"""
Atmospheric Attenuation Models

Base class and registry for models that return the fraction of signal power
[0, 1] that survives atmospheric absorption along one leg of an interaction.

The base class resolves the leg selected by a Geometry value into a
(range, elevation, altitude) triple, orients the path from the lower end
point to the higher one, picks the frequency, and delegates to
compute_attenuation_factor_p(). Derived models only implement the latter
unless they need the full interaction.

Provided here:
    - none: No attenuation (factor 1)
    - simple: Constant factor or specific attenuation times range

Other models (blake, itu, tabular) register themselves on import.

References:
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 2.8 (Atmospheric attenuation)
    - Blake, "Radar Range-Performance Analysis", Artech House, 1986
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from emsim.em.types import Geometry, RcvrFunction
from emsim.errors import ConfigurationError, ProgrammingError
from emsim.physics.constants import METERS_PER_NM
from emsim.physics.geodesy import central_angle, local_earth_radius, wcs_to_ned_transform

logger = logging.getLogger(__name__)

_SPECIFIC_ATTENUATION_UNITS: Dict[str, float] = {
    "db/m": 1.0,
    "db/km": 1.0e-3,
    "db/nm": 1.0 / METERS_PER_NM,
}
"""Multipliers converting a specific attenuation to dB/m"""


class AttenuationModel:
    """
    Base atmospheric attenuation model.

    Attributes:
        name: Model name (used in log output)
        sort_end_points: Orient the path from the lower to the higher end point
    """

    model_type = "base"
    accepts_inline_block_input = True

    def __init__(self, name: str = "") -> None:
        self.name = name or self.model_type
        self.sort_end_points = True

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.name}')"

    def process_input(self, command: str, value: Any) -> bool:
        if command == "sort_end_points":
            self.sort_end_points = bool(value)
            return True
        return False

    def initialize(self, xmtr_rcvr) -> None:
        """Called once by the owning transmitter or receiver."""

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def compute_attenuation_factor(self, interaction, environment, geometry: Geometry) -> float:
        """
        Attenuation factor for one leg of an interaction.

        Args:
            interaction: Interaction with the relevant location/relative data set
            environment: Scenario environment
            geometry: Which leg of the interaction to evaluate

        Returns:
            Fraction of power surviving the path [0, 1]
        """
        path_range, elevation, altitude = self.get_range_elevation_altitude(interaction, geometry)
        if path_range <= 1.0:
            return 1.0
        frequency = self.get_frequency(interaction)
        return self.compute_attenuation_factor_p(path_range, elevation, altitude, frequency)

    def compute_attenuation_factor_p(
        self, path_range: float, elevation: float, altitude: float, frequency: float
    ) -> float:
        """
        Attenuation factor for a path described by its lower end point.

        Args:
            path_range: Slant range [m]
            elevation: Elevation of the path at the lower end point [rad]
            altitude: Altitude of the lower end point [m]
            frequency: Signal frequency [Hz]
        """
        return 1.0

    # -------------------------------------------------------------------------
    # Geometry helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def get_leg(interaction, geometry: Geometry):
        """
        End points of the leg selected by geometry.

        Returns:
            Tuple of (source location, destination location,
            source-to-destination relative data, destination-to-source
            relative data)

        Raises:
            ProgrammingError: If the selector is not a Geometry member
        """
        if geometry is Geometry.XMTR_TO_TARGET:
            return (
                interaction.xmtr_loc,
                interaction.tgt_loc,
                interaction.xmtr_to_tgt,
                interaction.tgt_to_xmtr,
            )
        if geometry is Geometry.TARGET_TO_RCVR:
            return (
                interaction.rcvr_loc,
                interaction.tgt_loc,
                interaction.rcvr_to_tgt,
                interaction.tgt_to_rcvr,
            )
        if geometry is Geometry.XMTR_TO_RCVR:
            return (
                interaction.xmtr_loc,
                interaction.rcvr_loc,
                interaction.xmtr_to_rcvr,
                interaction.rcvr_to_xmtr,
            )
        raise ProgrammingError(f"invalid attenuation geometry: {geometry!r}")

    def get_range_elevation_altitude(
        self, interaction, geometry: Geometry
    ) -> Tuple[float, float, float]:
        """Slant range, elevation and altitude at the (sorted) start of the leg."""
        src_loc, dst_loc, src_to_dst, dst_to_src = self.get_leg(interaction, geometry)
        location = src_loc
        unit_vec = src_to_dst.true_unit_vec_wcs
        if self.sort_end_points and src_loc.alt > dst_loc.alt:
            location = dst_loc
            unit_vec = dst_to_src.true_unit_vec_wcs
        ned = wcs_to_ned_transform(location.lat, location.lon) @ unit_vec
        horizontal = np.hypot(ned[0], ned[1])
        if horizontal > 0.0:
            elevation = float(np.arctan2(-ned[2], horizontal))
        else:
            elevation = np.pi / 2.0 if ned[2] <= 0.0 else -np.pi / 2.0
        return float(src_to_dst.range), elevation, float(location.alt)

    def get_altitudes_and_ground_range(
        self, interaction, geometry: Geometry
    ) -> Tuple[float, float, float]:
        """
        Altitudes of both end points and the ground range between them.

        Returns:
            Tuple of (altitude 1, altitude 2, ground range [m]); with end point
            sorting altitude 1 is the lower of the two
        """
        src_loc, dst_loc, _, _ = self.get_leg(interaction, geometry)
        if self.sort_end_points and src_loc.alt > dst_loc.alt:
            src_loc, dst_loc = dst_loc, src_loc
        radius = 0.5 * (
            local_earth_radius(src_loc.loc_wcs, src_loc.alt)
            + local_earth_radius(dst_loc.loc_wcs, dst_loc.alt)
        )
        ground_range = central_angle(src_loc.loc_wcs, dst_loc.loc_wcs) * radius
        return float(src_loc.alt), float(dst_loc.alt), float(ground_range)

    @staticmethod
    def get_frequency(interaction) -> float:
        """Receiver frequency, or the transmitter's for passive receivers."""
        rcvr = interaction.rcvr
        xmtr = interaction.xmtr
        if rcvr is not None and rcvr.function is not RcvrFunction.PASSIVE_SENSOR:
            return rcvr.frequency
        if xmtr is not None:
            return xmtr.frequency
        return 0.0 if rcvr is None else rcvr.frequency


class NullAttenuation(AttenuationModel):
    """No atmospheric attenuation."""

    model_type = "none"

    def compute_attenuation_factor(self, interaction, environment, geometry: Geometry) -> float:
        return 1.0


class SimpleAttenuation(AttenuationModel):
    """
    Constant attenuation factor, or a specific attenuation applied over range.

    Keywords:
        attenuation_factor: Constant factor in [0, 1]
        specific_attenuation: [value, unit] with unit dB/m, dB/km or dB/nm
    """

    model_type = "simple"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.attenuation_factor = 0.0
        self.specific_attenuation = 0.0  # dB/m

    def process_input(self, command: str, value: Any) -> bool:
        if command == "specific_attenuation":
            if isinstance(value, (list, tuple)):
                amount, units = value
            else:
                amount, units = value, "db/m"
            multiplier = _SPECIFIC_ATTENUATION_UNITS.get(str(units).lower())
            if multiplier is None:
                raise ConfigurationError(f"unknown units '{units}'", command)
            if amount < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.specific_attenuation = float(amount) * multiplier
            self.attenuation_factor = 0.0
        elif command == "attenuation_factor":
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError("must be in [0, 1]", command)
            self.attenuation_factor = float(value)
        else:
            return super().process_input(command, value)
        return True

    def compute_attenuation_factor_p(self, path_range, elevation, altitude, frequency):
        if self.attenuation_factor > 0.0:
            return self.attenuation_factor
        return 10.0 ** (-0.1 * self.specific_attenuation * path_range)


# =============================================================================
# REGISTRY
# =============================================================================

_MODEL_FACTORIES: Dict[str, Callable[[str], AttenuationModel]] = {}


def register_attenuation_type(model_type: str, factory: Callable[[str], AttenuationModel]) -> None:
    """Register a factory for an attenuation model type string."""
    _MODEL_FACTORIES[model_type] = factory


def create_attenuation_model(model_type: str, name: str = "") -> AttenuationModel:
    """
    Create an (uninitialized) attenuation model from its type string.

    Raises:
        ConfigurationError: If the type is not registered
    """
    factory = _MODEL_FACTORIES.get(model_type)
    if factory is None:
        raise ConfigurationError(
            f"unknown attenuation model type '{model_type}' "
            f"(known: {', '.join(sorted(_MODEL_FACTORIES))})",
            "attenuation_model",
        )
    return factory(name)


def attenuation_model_from_input(value: Any) -> Optional[AttenuationModel]:
    """
    Build an attenuation model from configuration.

    Accepts a model object, a type string, or a dict with 'type' (and
    optionally 'name') plus model keywords. The inline terminator
    'end_attenuation_model' is accepted and ignored.
    """
    if value is None:
        return None
    if isinstance(value, AttenuationModel):
        return value
    if isinstance(value, str):
        return create_attenuation_model(value)
    if isinstance(value, dict):
        model = create_attenuation_model(value.get("type", "none"), value.get("name", ""))
        for key, item in value.items():
            if key in ("type", "name", "end_attenuation_model"):
                continue
            if not model.process_input(key, item):
                raise ConfigurationError(f"unknown attenuation keyword '{key}'", "attenuation_model")
        logger.debug("Created attenuation model %r", model)
        return model
    raise ConfigurationError(
        f"expected a model type or definition, got {type(value).__name__}", "attenuation_model"
    )


for _cls in (NullAttenuation, SimpleAttenuation):
    register_attenuation_type(_cls.model_type, _cls)
