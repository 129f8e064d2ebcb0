"""
EM Interaction

The interaction object carries everything computed for one sensing
attempt: end-point locations, relative geometry for each leg, beam data,
the gate bitmasks and the power budget.

Typical sequence (a radar detection attempt):

    interaction = Interaction(environment)
    interaction.begin_two_way(xmtr, target, rcvr)
    if interaction.failed_status == 0:
        interaction.set_transmitter_beam_position()
        interaction.set_receiver_beam_position()
        interaction.compute_rf_two_way_power()

Gates are evaluated in a fixed order and the first failure ends the begin
call:

    receiver range, receiver altitude, receiver field of view,
    transmitter range, transmitter altitude, transmitter field of view,
    receiver horizon, transmitter horizon, masking factor, signal level,
    receiver terrain, transmitter terrain

The signal level can only be judged once the power is known, so callers that
want the cheap signal gate ahead of terrain pass ``defer_terrain=True`` and
call check_signal_level() and check_terrain_masking() after the power
calculation.

Power budget:
    One-way:  S  = Pt·Gt·L_ebs·A / (4π·R²)
              Pr = S·λ²/(4π)·Gr·L_ebs / L_rcvr · F⁴ · X_pol · X_bw · M
    Two-way:  Pr = Pt·Gt·A_t / (4π·Rt²) · σ · A_r / (4π·Rr²) · λ²/(4π)·Gr · F⁴ · M

where A is the atmospheric absorption of each leg, F⁴ the
pattern-propagation factor and M the structural masking factor.

References:
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 1 (radar equation)
    - Willis, "Bistatic Radar", SciTech, 2005, Chapter 4
    - Blake, "Radar Range-Performance Analysis", Artech House, 1986
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, TextIO

import numpy as np

from emsim.em.types import STATUS_MASK, Geometry, RcvrFunction, Status, XmtrFunction
from emsim.errors import ProgrammingError
from emsim.physics.constants import FOUR_PI, RAD_TO_DEG, SPEED_OF_LIGHT, linear_to_db
from emsim.physics.geodesy import (
    compute_apparent_unit_vector,
    compute_refraction_corrections,
    masked_by_horizon,
    wcs_to_lla,
    wcs_to_ned_transform,
)
from emsim.simulation.environment import Environment

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CONTAINERS
# =============================================================================


@dataclass
class LocationData:
    """Location of one end point of an interaction."""

    loc_wcs: np.ndarray = field(default_factory=lambda: np.zeros(3))
    lat: float = 0.0
    lon: float = 0.0
    alt: float = 0.0
    is_valid: bool = False


@dataclass
class RelativeData:
    """
    Geometry of one end point as seen from another.

    Attributes:
        range: Slant range [m] (-1 until computed)
        true_unit_vec_wcs: Geometric line of sight
        true_az, true_el: Line of sight in the observer's frame [rad]
        unit_vec_wcs: Apparent (refracted) line of sight
        az, el: Apparent line of sight in the observer's frame [rad]
    """

    range: float = -1.0
    true_unit_vec_wcs: np.ndarray = field(default_factory=lambda: np.zeros(3))
    true_az: float = 0.0
    true_el: float = 0.0
    unit_vec_wcs: np.ndarray = field(default_factory=lambda: np.zeros(3))
    az: float = 0.0
    el: float = 0.0

    def copy(self) -> "RelativeData":
        return RelativeData(
            self.range,
            self.true_unit_vec_wcs.copy(),
            self.true_az,
            self.true_el,
            self.unit_vec_wcs.copy(),
            self.az,
            self.el,
        )


@dataclass
class BeamData:
    """
    Beam pointing for one antenna.

    A gain of -1 means the beam has not been positioned; 0 means the
    beam-relative aspect is known but the gain has not been looked up.
    """

    wcs_to_beam: np.ndarray = field(default_factory=lambda: np.eye(3))
    az: float = 0.0
    el: float = 0.0
    ebs_az: float = 0.0
    ebs_el: float = 0.0
    gain: float = -1.0


@dataclass
class InteractionEvent:
    """Start or end of an interaction, for display collaborators."""

    sim_time: float
    source_id: int
    target_id: int
    is_start: bool
    type_tag: str
    unique_id: int
    aux_text: str = ""


# =============================================================================
# INTERACTION
# =============================================================================


class Interaction:
    """
    Geometry, gates and power budget of one transmitter/target/receiver set.

    Attributes:
        environment: Surface, weather and terrain used by the models
        observer: Object with on_interaction_event(event), or None
        masking_factor_floor: Lower clamp on the masking factor; when > 0 a
            zero masking factor becomes a large loss instead of a failed gate
        checked_status: Gates that were evaluated
        failed_status: Gates that failed (subset of checked_status)
        interference_factor: Fractional degradation of the probability of
            detection applied by interference effects (0 = none)
    """

    def __init__(self, environment: Optional[Environment] = None, observer=None) -> None:
        self.environment = environment if environment is not None else Environment()
        self.observer = observer
        self.masking_factor_floor = 0.0
        self.reset()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Restore every result to its not-computed value."""
        self.xmtr = None
        self.rcvr = None
        self.target = None
        self.checked_status = Status.NONE
        self.failed_status = Status.NONE
        self.bistatic = False
        self.earth_radius_scale = 1.0

        self.xmtr_loc = LocationData()
        self.rcvr_loc = LocationData()
        self.tgt_loc = LocationData()

        self.xmtr_to_tgt = RelativeData()
        self.tgt_to_xmtr = RelativeData()
        self.rcvr_to_tgt = RelativeData()
        self.tgt_to_rcvr = RelativeData()
        self.xmtr_to_rcvr = RelativeData()
        self.rcvr_to_xmtr = RelativeData()

        self.xmtr_beam = BeamData()
        self.rcvr_beam = BeamData()

        self.xmtd_power = 0.0
        self.power_density_at_target = 0.0
        self.rcvd_power = 0.0
        self.rcvr_noise_power = 0.0
        self.clutter_power = 0.0
        self.interference_power = 0.0
        self.interference_factor = 0.0
        self.signal_to_noise = 0.0
        self.detection_threshold = 0.0
        self.propagation_factor = 0.0
        self.absorption_factor = 0.0
        self.polarization_effect = 0.0
        self.bandwidth_effect = 0.0
        self.masking_factor = 1.0
        self.pixel_count = 0.0

        self.radar_sig = -1.0
        self.radar_sig_az = 0.0
        self.radar_sig_el = 0.0
        self.optical_sig = -1.0
        self.infrared_sig = -1.0

        self._reflection_loc: Optional[LocationData] = None

    def _start(self, xmtr, rcvr, target) -> None:
        self.reset()
        self.xmtr = xmtr
        self.rcvr = rcvr
        self.target = target
        if rcvr is not None:
            self.rcvr_noise_power = rcvr.noise_power
            self.detection_threshold = rcvr.detection_threshold
        source = xmtr if xmtr is not None else rcvr
        self.earth_radius_scale = source.earth_radius_multiplier

    # -------------------------------------------------------------------------
    # Begin methods
    # -------------------------------------------------------------------------

    def begin_passive_one_way(self, rcvr, target, defer_terrain: bool = False) -> Status:
        """
        Geometry and gates for a receiver observing a target's own emission.

        Returns:
            The checked-status bitmask
        """
        self._start(None, rcvr, target)
        antenna = _require_antenna(rcvr)

        self.rcvr_loc = _antenna_location(antenna)
        self.tgt_loc = _platform_location(target)
        self.rcvr_to_tgt, self.tgt_to_rcvr = _relative(self.rcvr_loc, self.tgt_loc)

        if not self._gate(Status.RCVR_RANGE_LIMITS, antenna.within_range(self.rcvr_to_tgt.range)):
            return self.checked_status
        if not self._gate(Status.RCVR_ALTITUDE_LIMITS, antenna.within_altitude(self.tgt_loc.alt)):
            return self.checked_status
        visible = self.within_field_of_view(
            antenna, self.rcvr_loc, self.tgt_loc, self.rcvr_to_tgt, self.tgt_to_rcvr
        )
        self._target_aspect(self.tgt_to_rcvr)
        if not self._gate(Status.RCVR_ANGLE_LIMITS, visible):
            return self.checked_status

        masked = self._horizon_masked(self.rcvr_loc, antenna.part.platform, self.tgt_loc, target)
        if not self._gate(Status.RCVR_HORIZON_MASKING, not masked):
            return self.checked_status

        self.masking_factor = antenna.part.get_masking_pattern_factor(self.rcvr_to_tgt.az, self.rcvr_to_tgt.el)
        if not self._masking_gate():
            return self.checked_status

        if not defer_terrain:
            self.check_terrain_masking()
        self._notify(True)
        return self.checked_status

    def begin_one_way(
        self,
        xmtr,
        rcvr,
        check_xmtr_limits: bool = True,
        check_rcvr_limits: bool = True,
        check_masking_factor: bool = True,
        defer_terrain: bool = False,
    ) -> Status:
        """
        Geometry and gates for a direct transmitter to receiver path.

        Args:
            xmtr: Transmitter
            rcvr: Receiver
            check_xmtr_limits: Apply the transmitter range, altitude and
                field-of-view gates
            check_rcvr_limits: Apply the receiver range, altitude and
                field-of-view gates
            check_masking_factor: Compute and apply the structural masking
                factor of both platforms
            defer_terrain: Leave the terrain gates to check_terrain_masking()

        Returns:
            The checked-status bitmask
        """
        self._start(xmtr, rcvr, None)
        xmtr_antenna = _require_antenna(xmtr)
        rcvr_antenna = _require_antenna(rcvr)
        self.bistatic = True

        self.xmtr_loc = _antenna_location(xmtr_antenna)
        self.rcvr_loc = _antenna_location(rcvr_antenna)
        self.xmtr_to_rcvr, self.rcvr_to_xmtr = _relative(self.xmtr_loc, self.rcvr_loc)
        path_range = self.xmtr_to_rcvr.range

        if not self._gate(
            Status.RCVR_RANGE_LIMITS, not check_rcvr_limits or rcvr_antenna.within_range(path_range)
        ):
            return self.checked_status
        if not self._gate(
            Status.RCVR_ALTITUDE_LIMITS,
            not check_rcvr_limits or rcvr_antenna.within_altitude(self.xmtr_loc.alt),
        ):
            return self.checked_status
        visible = self.within_field_of_view(
            rcvr_antenna, self.rcvr_loc, self.xmtr_loc, self.rcvr_to_xmtr, self.xmtr_to_rcvr,
            ignore_limits=not check_rcvr_limits,
        )
        if not self._gate(Status.RCVR_ANGLE_LIMITS, visible):
            return self.checked_status

        if not self._gate(
            Status.XMTR_RANGE_LIMITS, not check_xmtr_limits or xmtr_antenna.within_range(path_range)
        ):
            return self.checked_status
        if not self._gate(
            Status.XMTR_ALTITUDE_LIMITS,
            not check_xmtr_limits or xmtr_antenna.within_altitude(self.rcvr_loc.alt),
        ):
            return self.checked_status
        visible = self.within_field_of_view(
            xmtr_antenna, self.xmtr_loc, self.rcvr_loc, self.xmtr_to_rcvr, self.rcvr_to_xmtr,
            ignore_limits=not check_xmtr_limits,
        )
        if not self._gate(Status.XMTR_ANGLE_LIMITS, visible):
            return self.checked_status

        # One line of sight: the receiver bit carries the result
        masked = self._horizon_masked(
            self.rcvr_loc, rcvr_antenna.part.platform, self.xmtr_loc, xmtr_antenna.part.platform
        )
        if not self._gate(Status.RCVR_HORIZON_MASKING, not masked):
            return self.checked_status
        self._gate(Status.XMTR_HORIZON_MASKING, True)

        if check_masking_factor:
            self.masking_factor = xmtr_antenna.part.get_masking_pattern_factor(
                self.xmtr_to_rcvr.az, self.xmtr_to_rcvr.el
            ) * rcvr_antenna.part.get_masking_pattern_factor(self.rcvr_to_xmtr.az, self.rcvr_to_xmtr.el)
            if not self._masking_gate():
                return self.checked_status

        if not defer_terrain:
            self.check_terrain_masking()
        self._notify(True)
        return self.checked_status

    def begin_two_way(self, xmtr, target, rcvr, defer_terrain: bool = False) -> Status:
        """
        Geometry and gates for a monostatic or bistatic radar.

        The pair is monostatic when the transmitter and receiver share an
        antenna; the transmitter legs then reuse the receiver geometry.

        Returns:
            The checked-status bitmask
        """
        self._begin_two_way_geometry(xmtr, target, rcvr)
        xmtr_antenna = xmtr.antenna
        rcvr_antenna = rcvr.antenna

        if not self._check_two_way_limits(xmtr_antenna, rcvr_antenna):
            return self.checked_status

        masked = self._horizon_masked(self.rcvr_loc, rcvr_antenna.part.platform, self.tgt_loc, target)
        if not self._gate(Status.RCVR_HORIZON_MASKING, not masked):
            return self.checked_status
        if self.bistatic:
            masked = self._horizon_masked(self.xmtr_loc, xmtr_antenna.part.platform, self.tgt_loc, target)
        if not self._gate(Status.XMTR_HORIZON_MASKING, not masked):
            return self.checked_status

        self._compute_two_way_masking_factor()
        if not self._masking_gate():
            return self.checked_status

        if not defer_terrain:
            self.check_terrain_masking()
        self._notify(True)
        return self.checked_status

    def begin_two_way_oth(
        self, xmtr, target, rcvr, reflection_wcs: np.ndarray, defer_terrain: bool = False
    ) -> Status:
        """
        Two-way radar whose paths bounce off an ionospheric reflection point.

        The horizon and terrain gates are applied to the antenna to
        reflection point and reflection point to target legs instead of the
        direct lines of sight. A reflection point below the surface masks the
        path.

        Args:
            reflection_wcs: WCS location of the reflection point [m]
        """
        self._begin_two_way_geometry(xmtr, target, rcvr)
        xmtr_antenna = xmtr.antenna
        rcvr_antenna = rcvr.antenna

        reflection = LocationData(np.asarray(reflection_wcs, dtype=float).copy())
        reflection.lat, reflection.lon, reflection.alt = wcs_to_lla(reflection.loc_wcs)
        reflection.is_valid = True
        self._reflection_loc = reflection

        if not self._check_two_way_limits(xmtr_antenna, rcvr_antenna):
            return self.checked_status

        masked = self._oth_masked(self.rcvr_loc, rcvr_antenna.part.platform, reflection, target)
        if not self._gate(Status.RCVR_HORIZON_MASKING, not masked):
            return self.checked_status
        if self.bistatic:
            masked = self._oth_masked(self.xmtr_loc, xmtr_antenna.part.platform, reflection, target)
        if not self._gate(Status.XMTR_HORIZON_MASKING, not masked):
            return self.checked_status

        self._compute_two_way_masking_factor()
        if not self._masking_gate():
            return self.checked_status

        if not defer_terrain:
            self.check_terrain_masking()
        self._notify(True)
        return self.checked_status

    def begin_generic(self, xmtr, target, rcvr) -> Status:
        """Geometry only; no gate is evaluated."""
        self._begin_two_way_geometry(xmtr, target, rcvr)
        self.within_field_of_view(
            rcvr.antenna, self.rcvr_loc, self.tgt_loc, self.rcvr_to_tgt, self.tgt_to_rcvr, ignore_limits=True
        )
        self._target_aspect(self.tgt_to_rcvr)
        if self.bistatic:
            self.within_field_of_view(
                xmtr.antenna, self.xmtr_loc, self.tgt_loc, self.xmtr_to_tgt, self.tgt_to_xmtr,
                ignore_limits=True,
            )
            self._target_aspect(self.tgt_to_xmtr)
        else:
            self.xmtr_to_tgt = self.rcvr_to_tgt.copy()
            self.tgt_to_xmtr = self.tgt_to_rcvr.copy()
        return self.checked_status

    def _begin_two_way_geometry(self, xmtr, target, rcvr) -> None:
        self._start(xmtr, rcvr, target)
        xmtr_antenna = _require_antenna(xmtr)
        rcvr_antenna = _require_antenna(rcvr)
        self.bistatic = xmtr_antenna is not rcvr_antenna

        self.rcvr_loc = _antenna_location(rcvr_antenna)
        self.tgt_loc = _platform_location(target)
        self.rcvr_to_tgt, self.tgt_to_rcvr = _relative(self.rcvr_loc, self.tgt_loc)
        if self.bistatic:
            self.xmtr_loc = _antenna_location(xmtr_antenna)
            self.xmtr_to_tgt, self.tgt_to_xmtr = _relative(self.xmtr_loc, self.tgt_loc)
            self.xmtr_to_rcvr, self.rcvr_to_xmtr = _relative(self.xmtr_loc, self.rcvr_loc)
        else:
            self.xmtr_loc = LocationData(
                self.rcvr_loc.loc_wcs.copy(), self.rcvr_loc.lat, self.rcvr_loc.lon, self.rcvr_loc.alt, True
            )
            self.xmtr_to_tgt = self.rcvr_to_tgt.copy()
            self.tgt_to_xmtr = self.tgt_to_rcvr.copy()

    def _check_two_way_limits(self, xmtr_antenna, rcvr_antenna) -> bool:
        """Range, altitude and field-of-view gates of both antennas."""
        if not self._gate(Status.RCVR_RANGE_LIMITS, rcvr_antenna.within_range(self.rcvr_to_tgt.range)):
            return False
        if not self._gate(Status.RCVR_ALTITUDE_LIMITS, rcvr_antenna.within_altitude(self.tgt_loc.alt)):
            return False
        visible = self.within_field_of_view(
            rcvr_antenna, self.rcvr_loc, self.tgt_loc, self.rcvr_to_tgt, self.tgt_to_rcvr
        )
        self._target_aspect(self.tgt_to_rcvr)
        if not self._gate(Status.RCVR_ANGLE_LIMITS, visible):
            return False

        if not self.bistatic:
            # Shared antenna: the transmitter legs are the receiver legs
            self.xmtr_to_tgt = self.rcvr_to_tgt.copy()
            self.tgt_to_xmtr = self.tgt_to_rcvr.copy()
            self._gate(Status.XMTR_RANGE_LIMITS, True)
            self._gate(Status.XMTR_ALTITUDE_LIMITS, True)
            self._gate(Status.XMTR_ANGLE_LIMITS, True)
            return True

        if not self._gate(Status.XMTR_RANGE_LIMITS, xmtr_antenna.within_range(self.xmtr_to_tgt.range)):
            return False
        if not self._gate(Status.XMTR_ALTITUDE_LIMITS, xmtr_antenna.within_altitude(self.tgt_loc.alt)):
            return False
        visible = self.within_field_of_view(
            xmtr_antenna, self.xmtr_loc, self.tgt_loc, self.xmtr_to_tgt, self.tgt_to_xmtr
        )
        self._target_aspect(self.tgt_to_xmtr)
        # Direct-path geometry between the two sites, for interference and timing
        self.within_field_of_view(
            rcvr_antenna, self.rcvr_loc, self.xmtr_loc, self.rcvr_to_xmtr, self.xmtr_to_rcvr, ignore_limits=True
        )
        self.within_field_of_view(
            xmtr_antenna, self.xmtr_loc, self.rcvr_loc, self.xmtr_to_rcvr, self.rcvr_to_xmtr, ignore_limits=True
        )
        return self._gate(Status.XMTR_ANGLE_LIMITS, visible)

    # -------------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------------

    def _gate(self, bit: Status, passed: bool) -> bool:
        self.checked_status |= bit
        if not passed:
            self.failed_status |= bit
            logger.debug("Interaction %s: failed %s", self._label(), bit.name)
        return passed

    def _masking_gate(self) -> bool:
        """Zero masking is a structural occlusion unless a floor is set."""
        if self.masking_factor_floor > 0.0:
            return self._gate(Status.MASKING_FACTOR, True)
        return self._gate(Status.MASKING_FACTOR, self.masking_factor > 0.0)

    def within_field_of_view(
        self,
        antenna,
        src_loc: LocationData,
        tgt_loc: LocationData,
        src_to_tgt: RelativeData,
        tgt_to_src: RelativeData,
        ignore_limits: bool = False,
    ) -> bool:
        """
        Fill in the true and apparent aspects of a leg and test the antenna
        field of view.

        The apparent line of sight is bent by the refraction correction for
        the earth radius scale; with a scale of 1 it equals the true one.

        Args:
            antenna: Antenna at the source end
            src_loc, tgt_loc: End points
            src_to_tgt, tgt_to_src: Relative data updated in place (range and
                true unit vector must already be set)
            ignore_limits: Compute the aspects but always return True
        """
        src_to_tgt.true_az, src_to_tgt.true_el = antenna.compute_aspect(src_to_tgt.true_unit_vec_wcs)
        tgt_to_src.true_unit_vec_wcs = -src_to_tgt.true_unit_vec_wcs
        tgt_to_src.range = src_to_tgt.range

        if self.earth_radius_scale != 1.0:
            src_corr, tgt_corr = compute_refraction_corrections(
                src_loc.loc_wcs, src_loc.alt, tgt_loc.loc_wcs, tgt_loc.alt, self.earth_radius_scale
            )
            src_to_tgt.unit_vec_wcs = compute_apparent_unit_vector(
                src_to_tgt.true_unit_vec_wcs, wcs_to_ned_transform(src_loc.lat, src_loc.lon), src_corr
            )
            tgt_to_src.unit_vec_wcs = compute_apparent_unit_vector(
                tgt_to_src.true_unit_vec_wcs, wcs_to_ned_transform(tgt_loc.lat, tgt_loc.lon), tgt_corr
            )
            src_to_tgt.az, src_to_tgt.el = antenna.compute_aspect(src_to_tgt.unit_vec_wcs)
        else:
            src_to_tgt.unit_vec_wcs = src_to_tgt.true_unit_vec_wcs.copy()
            tgt_to_src.unit_vec_wcs = tgt_to_src.true_unit_vec_wcs.copy()
            src_to_tgt.az = src_to_tgt.true_az
            src_to_tgt.el = src_to_tgt.true_el

        if ignore_limits:
            return True
        return antenna.within_field_of_view(src_to_tgt.az, src_to_tgt.el)

    def _target_aspect(self, tgt_to_src: RelativeData) -> None:
        if self.target is None:
            return
        tgt_to_src.true_az, tgt_to_src.true_el = self.target.compute_aspect(tgt_to_src.true_unit_vec_wcs)
        tgt_to_src.az, tgt_to_src.el = self.target.compute_aspect(tgt_to_src.unit_vec_wcs)

    def _horizon_masked(self, loc1: LocationData, platform1, loc2: LocationData, platform2) -> bool:
        return masked_by_horizon(
            loc1.loc_wcs,
            loc1.alt,
            platform1.get_terrain_height() if platform1 is not None else 0.0,
            loc2.loc_wcs,
            loc2.alt,
            platform2.get_terrain_height() if platform2 is not None else 0.0,
            self.earth_radius_scale,
        )

    def _oth_masked(self, ant_loc: LocationData, platform, reflection: LocationData, target) -> bool:
        if reflection.alt < 0.0:
            return True
        if self._horizon_masked(ant_loc, platform, reflection, None):
            return True
        return self._horizon_masked(reflection, None, self.tgt_loc, target)

    def _compute_two_way_masking_factor(self) -> None:
        xmtr_part = self.xmtr.antenna.part
        rcvr_part = self.rcvr.antenna.part
        xmtr_factor = xmtr_part.get_masking_pattern_factor(self.xmtr_to_tgt.az, self.xmtr_to_tgt.el)
        if self.bistatic:
            rcvr_factor = rcvr_part.get_masking_pattern_factor(self.rcvr_to_tgt.az, self.rcvr_to_tgt.el)
        else:
            rcvr_factor = xmtr_factor
        self.masking_factor = xmtr_factor * rcvr_factor

    def check_signal_level(self, threshold: Optional[float] = None, value: Optional[float] = None) -> bool:
        """
        Signal-level gate.

        By default the signal-to-noise ratio is compared with the receiver's
        detection threshold; a sensor using a probability of detection passes
        the Pd as the value and the required Pd as the threshold.
        """
        if threshold is None:
            threshold = self.detection_threshold
        if value is None:
            value = self.signal_to_noise
        return self._gate(Status.SIGNAL_LEVEL, value >= threshold)

    def check_terrain_masking(self) -> bool:
        """
        Terrain gates, receiver side first.

        Without a target the direct transmitter to receiver line is checked.
        For an over-the-horizon interaction the antenna to reflection point
        legs are checked.
        """
        terrain = self.environment.get_terrain()
        k = self.earth_radius_scale
        rcvr_loc = self.rcvr_loc
        reflection = self._reflection_loc

        if self.target is None:
            visible = terrain.is_target_visible(
                self.xmtr_loc.loc_wcs, self.xmtr_loc.alt, rcvr_loc.loc_wcs, rcvr_loc.alt, k
            )
            if not self._gate(Status.RCVR_TERRAIN_MASKING, visible):
                return False
            return self._gate(Status.XMTR_TERRAIN_MASKING, True)

        far = reflection if reflection is not None else self.tgt_loc
        visible = terrain.is_target_visible(rcvr_loc.loc_wcs, rcvr_loc.alt, far.loc_wcs, far.alt, k)
        if not self._gate(Status.RCVR_TERRAIN_MASKING, visible):
            return False
        if self.xmtr is not None and self.bistatic:
            xmtr_loc = self.xmtr_loc
            visible = terrain.is_target_visible(xmtr_loc.loc_wcs, xmtr_loc.alt, far.loc_wcs, far.alt, k)
        return self._gate(Status.XMTR_TERRAIN_MASKING, visible)

    # -------------------------------------------------------------------------
    # Beam positions
    # -------------------------------------------------------------------------

    def set_transmitter_beam_position(self, beam: Optional[BeamData] = None) -> None:
        """
        Point the transmitter beam at the target (or the receiver).

        Args:
            beam: Externally computed beam data with gain >= 0

        Raises:
            ProgrammingError: If the supplied beam data has no aspect
        """
        if beam is not None:
            self.xmtr_beam = _checked_beam(beam)
            return
        if self.target is not None:
            relative = self.xmtr_to_tgt
        else:
            relative = self.xmtr_to_rcvr
        self.xmtr_beam = _position_beam(self.xmtr, relative)

    def set_receiver_beam_position(self, beam: Optional[BeamData] = None) -> None:
        """Point the receiver beam at the target (or the transmitter)."""
        if beam is not None:
            self.rcvr_beam = _checked_beam(beam)
            return
        if self.target is not None:
            relative = self.rcvr_to_tgt
        else:
            relative = self.rcvr_to_xmtr
        self.rcvr_beam = _position_beam(self.rcvr, relative)

    # -------------------------------------------------------------------------
    # Power
    # -------------------------------------------------------------------------

    def compute_transmitted_power(self, frequency: float = 0.0) -> float:
        """Effective radiated power toward the transmitter beam aspect [W]."""
        xmtr = self.xmtr
        if self.xmtr_beam.gain < 0.0:
            self.set_transmitter_beam_position()
        beam = self.xmtr_beam
        power, beam.gain = xmtr.compute_radiated_power(beam.az, beam.el, beam.ebs_az, beam.ebs_el, frequency)
        self.xmtd_power = power * xmtr.antenna.compute_beam_steering_loss(beam.ebs_az, beam.ebs_el)
        return self.xmtd_power

    def compute_rf_one_way_power(self) -> float:
        """
        Received power for a direct transmitter to receiver path [W].

        Raises:
            ProgrammingError: If the interaction has no transmitter
        """
        xmtr = self.xmtr
        rcvr = self.rcvr
        if xmtr is None or rcvr is None:
            raise ProgrammingError("one-way RF power requires a transmitter and a receiver")
        if self.rcvr_beam.gain < 0.0:
            self.set_receiver_beam_position()

        self.compute_transmitted_power(rcvr.frequency)
        if self.target is not None:
            path_range = max(self.xmtr_to_tgt.range, 1.0)
            geometry = Geometry.XMTR_TO_TARGET
        else:
            path_range = max(self.xmtr_to_rcvr.range, 1.0)
            geometry = Geometry.XMTR_TO_RCVR
        self.absorption_factor = self.compute_attenuation_factor(geometry)
        self.power_density_at_target = self.xmtd_power * self.absorption_factor / (FOUR_PI * path_range * path_range)

        beam = self.rcvr_beam
        power, beam.gain = rcvr.compute_received_power(
            beam.az, beam.el, beam.ebs_az, beam.ebs_el,
            self.power_density_at_target, xmtr.polarization, xmtr.frequency,
        )
        power *= rcvr.antenna.compute_beam_steering_loss(beam.ebs_az, beam.ebs_el)

        self.propagation_factor = self.compute_propagation_factor()
        self.polarization_effect = rcvr.get_polarization_effect(xmtr.polarization)
        self.bandwidth_effect = rcvr.get_bandwidth_effect(xmtr.frequency, xmtr.bandwidth)
        power *= self.propagation_factor * self.polarization_effect * self.bandwidth_effect
        self.rcvd_power = power * self._effective_masking_factor()
        self.rcvr_noise_power = rcvr.noise_power
        return self.rcvd_power

    def compute_rf_two_way_power(self) -> float:
        """
        Received power of the target echo [W].

        Raises:
            ProgrammingError: If transmitter, receiver or target is missing
        """
        xmtr = self.xmtr
        rcvr = self.rcvr
        target = self.target
        if xmtr is None or rcvr is None or target is None:
            raise ProgrammingError("two-way RF power requires a transmitter, a target and a receiver")
        if self.rcvr_beam.gain < 0.0:
            self.set_receiver_beam_position()

        self.compute_transmitted_power(rcvr.frequency)
        xmtr_range = max(self.xmtr_to_tgt.range, 1.0)
        rcvr_range = max(self.rcvr_to_tgt.range, 1.0)

        xmtr_absorption = self.compute_attenuation_factor(Geometry.XMTR_TO_TARGET)
        if self.bistatic:
            rcvr_absorption = self.compute_attenuation_factor(Geometry.TARGET_TO_RCVR)
        else:
            rcvr_absorption = xmtr_absorption
        self.absorption_factor = xmtr_absorption * rcvr_absorption

        self.power_density_at_target = self.xmtd_power * xmtr_absorption / (FOUR_PI * xmtr_range * xmtr_range)
        self.compute_radar_sig_az_el()
        self.radar_sig = target.get_radar_cross_section(
            xmtr.frequency, xmtr.polarization.name.lower(), self.radar_sig_az, self.radar_sig_el
        )
        reflected_power = self.power_density_at_target * self.radar_sig
        density_at_rcvr = reflected_power * rcvr_absorption / (FOUR_PI * rcvr_range * rcvr_range)

        beam = self.rcvr_beam
        power, beam.gain = rcvr.compute_received_power(
            beam.az, beam.el, beam.ebs_az, beam.ebs_el, density_at_rcvr, xmtr.polarization, xmtr.frequency
        )
        power *= rcvr.antenna.compute_beam_steering_loss(beam.ebs_az, beam.ebs_el)

        self.propagation_factor = self.compute_propagation_factor()
        self.rcvd_power = power * self.propagation_factor * self._effective_masking_factor()
        self.rcvr_noise_power = rcvr.noise_power
        return self.rcvd_power

    def _effective_masking_factor(self) -> float:
        return max(self.masking_factor, self.masking_factor_floor)

    def compute_radar_sig_az_el(self) -> None:
        """Target aspect used for the signature lookup (bisector when bistatic)."""
        if self.bistatic and self.tgt_to_xmtr.range > 0.0:
            bisector = self.tgt_to_xmtr.unit_vec_wcs + self.tgt_to_rcvr.unit_vec_wcs
            norm = np.linalg.norm(bisector)
            if norm > 0.0:
                self.radar_sig_az, self.radar_sig_el = self.target.compute_aspect(bisector / norm)
                return
        self.radar_sig_az = self.tgt_to_rcvr.az
        self.radar_sig_el = self.tgt_to_rcvr.el

    def compute_attenuation_factor(self, geometry: Geometry) -> float:
        """Absorption along one leg from the transmitter's model, else the receiver's."""
        model = None
        if self.xmtr is not None:
            model = self.xmtr.attenuation_model
        if model is None and self.rcvr is not None:
            model = self.rcvr.attenuation_model
        if model is None:
            return 1.0
        return model.compute_attenuation_factor(self, self.environment, geometry)

    def compute_propagation_factor(self) -> float:
        """F⁴ from the transmitter's propagation model (1 without one)."""
        if self.xmtr is None or self.rcvr is None:
            return 1.0
        model = self.xmtr.propagation_model
        if model is None:
            return 1.0
        return model.compute_propagation_factor(self, self.environment)

    def compute_clutter_power(self, clutter_model, processing_factor: float = 1.0) -> float:
        """Surface clutter power at the receiver [W] (0 without a model)."""
        if clutter_model is None:
            self.clutter_power = 0.0
        else:
            self.clutter_power = clutter_model.compute_clutter_power(self, self.environment, processing_factor)
        return self.clutter_power

    def compute_interference_power(self, effect_factor: float = 1.0) -> float:
        """
        Power received from the receiver's active interferers [W].

        Each interferer is evaluated as a one-way interaction against the
        receiver beam of this interaction; the bandwidth overlap is applied
        by the one-way budget.

        Args:
            effect_factor: Fraction of the interfering power that survives
                the receiver processing
        """
        rcvr = self.rcvr
        total = 0.0
        if rcvr is not None:
            for interferer in rcvr.get_interferers():
                if interferer is self.xmtr or not interferer.active:
                    continue
                total += self._interferer_power(interferer)
        self.interference_power = total * effect_factor
        return self.interference_power

    def _interferer_power(self, interferer) -> float:
        sub = Interaction(self.environment)
        sub.masking_factor_floor = self.masking_factor_floor
        sub.begin_one_way(interferer, self.rcvr, check_rcvr_limits=False)
        if sub.failed_status:
            return 0.0
        sub.set_transmitter_beam_position()
        if self.rcvr_beam.gain >= 0.0:
            # Received through the beam pointed at the primary signal
            az, el = self.rcvr.antenna.compute_beam_aspect(self.rcvr_beam.wcs_to_beam, sub.rcvr_to_xmtr.unit_vec_wcs)
            sub.set_receiver_beam_position(
                BeamData(self.rcvr_beam.wcs_to_beam, az, el, self.rcvr_beam.ebs_az, self.rcvr_beam.ebs_el, 0.0)
            )
        return sub.compute_rf_one_way_power()

    def compute_signal_to_noise(self) -> float:
        """S/(N+C+I) using the receiver's noise power."""
        if self.rcvr is None:
            raise ProgrammingError("signal-to-noise requires a receiver")
        self.rcvr_noise_power = self.rcvr.noise_power
        self.signal_to_noise = self.rcvr.compute_signal_to_noise(
            self.rcvd_power, self.clutter_power, self.interference_power
        )
        return self.signal_to_noise

    # -------------------------------------------------------------------------
    # Doppler
    # -------------------------------------------------------------------------

    def compute_target_doppler_speed(self, filter_ownship: bool = False) -> float:
        """
        Speed of the target along the receiver line of sight [m/s].

        Negative when closing. With filter_ownship the receiver platform's
        own velocity is not removed from the target velocity.
        """
        if self.target is None or self.rcvr is None:
            return 0.0
        if not self.tgt_loc.is_valid or not self.rcvr_loc.is_valid:
            self.compute_undefined_geometry()
        return _range_rate(self.target, self.rcvr.platform, self.tgt_loc, self.rcvr_loc, filter_ownship)

    def compute_target_doppler_frequency(self, filter_ownship: bool = False) -> float:
        """
        Doppler shift of the target echo [Hz].

        Monostatic: f_d = -2·v_r/λ. Bistatic: the range rates of the two legs
        are summed, f_d = -(v_rx + v_rr)/λ.
        """
        if self.target is None or self.xmtr is None or self.rcvr is None:
            return 0.0
        if not self.tgt_loc.is_valid or not self.rcvr_loc.is_valid or not self.xmtr_to_tgt.range > 0.0:
            self.compute_undefined_geometry()
        wavelength = SPEED_OF_LIGHT / self.xmtr.frequency
        rcvr_rate = _range_rate(self.target, self.rcvr.platform, self.tgt_loc, self.rcvr_loc, filter_ownship)
        if not self.bistatic:
            return -2.0 * rcvr_rate / wavelength
        xmtr_rate = _range_rate(self.target, self.xmtr.platform, self.tgt_loc, self.xmtr_loc, filter_ownship)
        return -(xmtr_rate + rcvr_rate) / wavelength

    # -------------------------------------------------------------------------
    # Geometry back-fill
    # -------------------------------------------------------------------------

    def compute_undefined_geometry(self) -> None:
        """
        Fill in geometry that a failed gate left uncomputed.

        Locations are taken from the antennas and target; relative data is
        recomputed (without limits) for the legs whose gates did not all
        pass.
        """
        if self.rcvr is None:
            return
        if self.target is not None and not self.tgt_loc.is_valid:
            self.tgt_loc = _platform_location(self.target)
        if self.xmtr is not None and not self.xmtr_loc.is_valid and self.xmtr.antenna.part is not None:
            self.xmtr_loc = _antenna_location(self.xmtr.antenna)
        if not self.rcvr_loc.is_valid and self.rcvr.antenna.part is not None:
            self.rcvr_loc = _antenna_location(self.rcvr.antenna)

        rcvr_mask = Status.RCVR_RANGE_LIMITS | Status.RCVR_ANGLE_LIMITS | Status.RCVR_HORIZON_MASKING
        full_mask = rcvr_mask | Status.XMTR_RANGE_LIMITS | Status.XMTR_ANGLE_LIMITS | Status.XMTR_HORIZON_MASKING

        if self.target is None:
            if self.xmtr is None or not (self.xmtr_loc.is_valid and self.rcvr_loc.is_valid):
                self.xmtr_to_rcvr.range = -1.0
                self.rcvr_to_xmtr.range = -1.0
                return
            if self._gates_incomplete(full_mask):
                self.xmtr_to_rcvr, self.rcvr_to_xmtr = _relative(self.xmtr_loc, self.rcvr_loc)
                self.within_field_of_view(
                    self.rcvr.antenna, self.rcvr_loc, self.xmtr_loc, self.rcvr_to_xmtr, self.xmtr_to_rcvr, True
                )
                self.within_field_of_view(
                    self.xmtr.antenna, self.xmtr_loc, self.rcvr_loc, self.xmtr_to_rcvr, self.rcvr_to_xmtr, True
                )
            return

        if self.xmtr is None:
            if not (self.rcvr_loc.is_valid and self.tgt_loc.is_valid):
                self.rcvr_to_tgt.range = -1.0
                self.tgt_to_rcvr.range = -1.0
                return
            if self._gates_incomplete(rcvr_mask):
                self.rcvr_to_tgt, self.tgt_to_rcvr = _relative(self.rcvr_loc, self.tgt_loc)
                self.within_field_of_view(
                    self.rcvr.antenna, self.rcvr_loc, self.tgt_loc, self.rcvr_to_tgt, self.tgt_to_rcvr, True
                )
                self._target_aspect(self.tgt_to_rcvr)
            return

        if not (self.xmtr_loc.is_valid and self.tgt_loc.is_valid and self.rcvr_loc.is_valid):
            for relative in (self.xmtr_to_tgt, self.tgt_to_xmtr, self.rcvr_to_tgt, self.tgt_to_rcvr):
                relative.range = -1.0
            return
        if self._gates_incomplete(full_mask):
            self.rcvr_to_tgt, self.tgt_to_rcvr = _relative(self.rcvr_loc, self.tgt_loc)
            self.within_field_of_view(
                self.rcvr.antenna, self.rcvr_loc, self.tgt_loc, self.rcvr_to_tgt, self.tgt_to_rcvr, True
            )
            self._target_aspect(self.tgt_to_rcvr)
            if self.bistatic:
                self.xmtr_to_tgt, self.tgt_to_xmtr = _relative(self.xmtr_loc, self.tgt_loc)
                self.within_field_of_view(
                    self.xmtr.antenna, self.xmtr_loc, self.tgt_loc, self.xmtr_to_tgt, self.tgt_to_xmtr, True
                )
                self._target_aspect(self.tgt_to_xmtr)
            else:
                self.xmtr_to_tgt = self.rcvr_to_tgt.copy()
                self.tgt_to_xmtr = self.tgt_to_rcvr.copy()

    def _gates_incomplete(self, mask: Status) -> bool:
        return (self.checked_status & mask) != mask or (self.failed_status & mask) != 0

    # -------------------------------------------------------------------------
    # Observer
    # -------------------------------------------------------------------------

    def end(self, sim_time: Optional[float] = None) -> None:
        """Report the end of the interaction to the observer."""
        self._notify(False, sim_time)

    def get_type_tag(self) -> str:
        if self.xmtr is None:
            return "passive"
        if self.xmtr.function is XmtrFunction.INTERFERER:
            return "jammer"
        if self.xmtr.function is XmtrFunction.COMM:
            return "comm"
        if self.rcvr is not None and self.rcvr.function is RcvrFunction.PASSIVE_SENSOR:
            return "passive"
        return "sensor"

    def _notify(self, is_start: bool, sim_time: Optional[float] = None) -> None:
        if self.observer is None or self.rcvr is None:
            return
        source = self.xmtr if self.xmtr is not None else self.rcvr
        if self.target is not None:
            target_platform = self.target
        elif self.xmtr is not None:
            target_platform = self.rcvr.platform
        else:
            target_platform = None
        if sim_time is None:
            sim_time = source.get_sim_time()
        event = InteractionEvent(
            sim_time=sim_time,
            source_id=source.platform.index if source.platform is not None else 0,
            target_id=target_platform.index if target_platform is not None else 0,
            is_start=is_start,
            type_tag=self.get_type_tag(),
            unique_id=source.unique_id,
        )
        self.observer.on_interaction_event(event)

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _label(self) -> str:
        parts = [str(device.name) for device in (self.xmtr, self.target, self.rcvr) if device is not None]
        return " -> ".join(parts)

    def format_lines(self) -> List[str]:
        """Human-readable record of everything computed so far."""
        lines = [f"Interaction: {self._label()}"]
        if self.xmtr is not None and self.xmtr_loc.is_valid:
            lines.append(_format_location("Xmtr", self.xmtr_loc))
        if self.rcvr_loc.is_valid:
            lines.append(_format_location("Rcvr", self.rcvr_loc))
        if self.target is not None and self.tgt_loc.is_valid:
            lines.append(_format_location("Tgt", self.tgt_loc))

        if self.target is not None:
            if self.xmtr is not None and self.bistatic:
                lines.append(_format_relative("Xmtr->Tgt", self.xmtr_to_tgt))
                lines.append(_format_relative("Tgt->Xmtr", self.tgt_to_xmtr))
            lines.append(_format_relative("Rcvr->Tgt", self.rcvr_to_tgt))
            lines.append(_format_relative("Tgt->Rcvr", self.tgt_to_rcvr))
        elif self.xmtr is not None:
            lines.append(_format_relative("Xmtr->Rcvr", self.xmtr_to_rcvr))
            lines.append(_format_relative("Rcvr->Xmtr", self.rcvr_to_xmtr))

        for label, beam in (("Xmtr_Beam", self.xmtr_beam), ("Rcvr_Beam", self.rcvr_beam)):
            if beam.gain >= 0.0:
                lines.append(
                    f"  {label}: Az: {beam.az * RAD_TO_DEG:.4f} deg El: {beam.el * RAD_TO_DEG:.4f} deg "
                    f"Gain: {_db(beam.gain)} EBS_Az: {beam.ebs_az * RAD_TO_DEG:.4f} deg "
                    f"EBS_El: {beam.ebs_el * RAD_TO_DEG:.4f} deg"
                )

        if self.radar_sig >= 0.0:
            lines.append(
                f"  Radar_Sig: {_db(self.radar_sig)}sm (Az: {self.radar_sig_az * RAD_TO_DEG:.4f} deg "
                f"El: {self.radar_sig_el * RAD_TO_DEG:.4f} deg)"
            )
        if self.optical_sig >= 0.0:
            lines.append(f"  Optical_Sig: {_db(self.optical_sig)}sm")
        if self.infrared_sig >= 0.0:
            lines.append(f"  Infrared_Sig: {self.infrared_sig:.6g} w/sr")

        print_masking = 0.0 <= self.masking_factor < 1.0
        if self.absorption_factor > 0.0 or self.propagation_factor > 0.0 or print_masking:
            factors = []
            if self.absorption_factor > 0.0:
                factors.append(f"Absorption_factor: {_db(self.absorption_factor)}")
            if self.propagation_factor > 0.0:
                factors.append(f"Propagation_factor_F^4: {_db(self.propagation_factor)}")
            if print_masking:
                factors.append(f"Masking_Factor: {self.masking_factor:.6g}")
            lines.append("  " + " ".join(factors))

        if self.xmtd_power > 0.0:
            lines.append(f"  Xmtd_Power: {_dbw(self.xmtd_power)}")
        if self.power_density_at_target > 0.0:
            lines.append(f"  Power_Density_At_Target: {_dbw(self.power_density_at_target)}/m^2")
        if self.rcvd_power > 0.0:
            lines.append(f"  Rcvd_Power: {_dbw(self.rcvd_power)}")
        if self.rcvr_noise_power > 0.0:
            lines.append(f"  Rcvr_Noise: {_dbw(self.rcvr_noise_power)}")
        if self.clutter_power > 0.0:
            lines.append(f"  Clutter_Power: {_dbw(self.clutter_power)}")
        if self.interference_power > 0.0:
            lines.append(f"  Interference_Power: {_dbw(self.interference_power)}")

        if self.rcvd_power > 0.0 and self.rcvr_noise_power > 0.0:
            noise = self.rcvr_noise_power
            clutter = max(self.clutter_power, 0.0)
            intf = max(self.interference_power, 0.0)
            ratios = []
            if intf > 0.0:
                ratios.append(f"S/I: {_db(self.rcvd_power / intf)}")
            if self.detection_threshold > 0.0:
                ratios.append(f"Threshold: {_db(self.detection_threshold)}")
            ratios.append(f"S/N: {_db(self.rcvd_power / noise)}")
            ratios.append(f"S/(N+C): {_db(self.rcvd_power / (noise + clutter))}")
            ratios.append(f"S/(N+C+I): {_db(self.rcvd_power / (noise + clutter + intf))}")
            lines.append("  " + " ".join(ratios))

        lines.append(f"  Status: {format_status(self.checked_status, self.failed_status)}")
        return lines

    def print(self, stream: Optional[TextIO] = None) -> None:
        """Write the record to a stream, or to the module logger."""
        lines = self.format_lines()
        if stream is not None:
            stream.write("\n".join(lines) + "\n")
        else:
            logger.info("\n".join(lines))


# =============================================================================
# HELPERS
# =============================================================================


def _require_antenna(xmtr_rcvr):
    antenna = xmtr_rcvr.antenna
    if antenna is None or antenna.part is None:
        raise ProgrammingError(f"{xmtr_rcvr!r}: antenna is not attached to an articulated part")
    return antenna


def _antenna_location(antenna) -> LocationData:
    lat, lon, alt = antenna.get_location_lla()
    return LocationData(antenna.get_location_wcs(), lat, lon, alt, True)


def _platform_location(platform) -> LocationData:
    lat, lon, alt = platform.get_location_lla()
    return LocationData(np.array(platform.get_location_wcs(), dtype=float), lat, lon, alt, True)


def _relative(src: LocationData, dst: LocationData):
    """Range and true unit vectors between two end points."""
    delta = dst.loc_wcs - src.loc_wcs
    distance = float(np.linalg.norm(delta))
    if not np.isfinite(distance):
        raise ProgrammingError("non-finite interaction geometry")
    unit = delta / distance if distance > 0.0 else np.zeros(3)
    forward = RelativeData(range=distance, true_unit_vec_wcs=unit, unit_vec_wcs=unit.copy())
    reverse = RelativeData(range=distance, true_unit_vec_wcs=-unit, unit_vec_wcs=-unit)
    return forward, reverse


def _position_beam(xmtr_rcvr, relative: RelativeData) -> BeamData:
    antenna = _require_antenna(xmtr_rcvr)
    wcs_to_beam, ebs_az, ebs_el = antenna.compute_beam_position(xmtr_rcvr.beam_tilt, relative.az, relative.el)
    az, el = antenna.compute_beam_aspect(wcs_to_beam, relative.unit_vec_wcs)
    # Gain 0 marks the aspect as computed
    return BeamData(wcs_to_beam, az, el, ebs_az, ebs_el, 0.0)


def _checked_beam(beam: BeamData) -> BeamData:
    if beam.gain < 0.0:
        raise ProgrammingError("beam data supplied without a computed aspect (gain < 0)")
    return beam


def _range_rate(target, platform, tgt_loc: LocationData, loc: LocationData, filter_ownship: bool) -> float:
    rel_loc = tgt_loc.loc_wcs - loc.loc_wcs
    rel_vel = np.array(target.get_velocity_wcs(), dtype=float)
    if not filter_ownship and platform is not None:
        rel_vel = rel_vel - platform.get_velocity_wcs()
    return float(np.dot(rel_vel, rel_loc) / max(np.linalg.norm(rel_loc), 1.0))


def _db(value: float) -> str:
    return f"{linear_to_db(max(value, 1.0e-300)):.4f} dB"


def _dbw(value: float) -> str:
    return f"{linear_to_db(max(value, 1.0e-300)):.4f} dBW"


def _format_location(label: str, loc: LocationData) -> str:
    return f"  {label}: Lat: {loc.lat:.6f} Lon: {loc.lon:.6f} Alt: {loc.alt:.2f} m"


def _format_relative(label: str, rel: RelativeData) -> str:
    return (
        f"  {label}: Range: {rel.range:.2f} m "
        f"Az: {rel.true_az * RAD_TO_DEG:.4f} deg El: {rel.true_el * RAD_TO_DEG:.4f} deg "
        f"Apparent: Az: {rel.az * RAD_TO_DEG:.4f} deg El: {rel.el * RAD_TO_DEG:.4f} deg"
    )


def format_status(checked: int, failed: int) -> str:
    """Names of the failed base gates, or 'passed'."""
    failed_bits = int(failed) & STATUS_MASK
    if failed_bits == 0:
        if int(failed) != 0:
            return f"failed derived status 0x{int(failed):x}"
        return "passed" if int(checked) != 0 else "not evaluated"
    names = [member.name for member in Status if member.value and failed_bits & member.value]
    return "failed " + " ".join(names)
