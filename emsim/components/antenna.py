"""
Physical Antenna Mount

An antenna is attached to an articulated part and owns everything about the
physical installation that is independent of the radiation pattern: the
offset of the phase center, the fixed tilt of the face, the mechanical scan
and stabilization modes, electronic beam steering (EBS) limits and losses,
the field of view, and the range/altitude gates.

Coordinate systems:
    PCS  - part coordinate system (includes the current cue)
    ACS  - antenna face frame: the uncued part frame pitched by the tilt
    SSCS - stabilized scan frame: PCS with pitch and/or roll removed
    BCS  - beam frame: the PCS rotated to the instantaneous beam position

References:
    - Mailloux, "Phased Array Antenna Handbook", Artech House, 2005, Ch. 1
      (scan loss of a planar array)
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 13 (scan stabilization)
"""

import logging
from typing import Any, Optional, Tuple

import numpy as np

from emsim.components.field_of_view import (
    FieldOfView,
    RectangularFieldOfView,
    create_field_of_view,
)
from emsim.em.types import EBSMode, ScanMode, ScanStabilization, parse_enum
from emsim.errors import ConfigurationError, ProgrammingError
from emsim.physics.constants import normalize_angle_0_two_pi, normalize_angle_minus_pi_pi
from emsim.physics.geodesy import (
    azimuth_elevation,
    euler_to_matrix,
    unit_vector_from_az_el,
    wcs_to_lla,
    wcs_to_ned_transform,
)

logger = logging.getLogger(__name__)

# cos(89.9°): steering beyond this is treated as pointing back into the face
_MIN_EBS_COS_PRODUCT = 0.001745328366


class Antenna:
    """
    Physical antenna attached to an articulated part.

    Derived quantities (phase-center location, WCS->ACS/NED/SSCS transforms)
    are cached and recomputed whenever the host part or platform moves.

    Attributes:
        offset: Phase-center offset in the part frame [m]
        pitch: Fixed tilt of the antenna face [rad]
        scan_mode: Mechanical scan freedom
        scan_stabilization: Attitude removed from the scan frame
        min_az_scan, max_az_scan: Azimuth scan limits [rad]
        min_el_scan, max_el_scan: Elevation scan limits [rad]
        ebs_mode: Electronic beam steering axes
        ebs_az_cos_limit, ebs_el_cos_limit: Cosine of the steering limits
        ebs_az_loss_exponent, ebs_el_loss_exponent: Scan loss exponents
        field_of_view: Angular field of view
        min_range, max_range: Range gate [m]
        min_alt, max_alt: Relative altitude gate (target - antenna) [m]
    """

    def __init__(self) -> None:
        self.part = None
        self.offset = np.zeros(3)
        self.pitch = 0.0
        self.scan_mode = ScanMode.FIXED
        self.scan_stabilization = ScanStabilization.NONE
        self.min_az_scan = -np.pi
        self.max_az_scan = np.pi
        self.min_el_scan = -np.pi / 2.0
        self.max_el_scan = np.pi / 2.0
        self.ebs_mode = EBSMode.NONE
        self.ebs_az_cos_limit = 0.0
        self.ebs_el_cos_limit = 0.0
        self.ebs_az_loss_exponent = 1.0
        self.ebs_el_loss_exponent = 1.0
        self.field_of_view: FieldOfView = RectangularFieldOfView()
        self.default_field_of_view = True
        self.min_range = 0.0
        self.max_range = np.inf
        self.min_alt = -np.inf
        self.max_alt = np.inf

        self._cache_revision: Optional[Tuple[int, int]] = None
        self._cache = {}

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def process_input(self, command: str, value: Any) -> bool:
        """
        Apply one configuration keyword.

        Angles are in degrees and lengths in meters.

        Returns:
            True if the keyword belongs to the antenna
        """
        if command == "antenna_height":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.set_height(float(value))
        elif command in ("antenna_pitch", "antenna_tilt"):
            pitch = np.radians(value)
            if not -np.pi / 2.0 <= pitch <= np.pi / 2.0:
                raise ConfigurationError("must be in [-90, 90] deg", command)
            self.pitch = float(pitch)
            self._invalidate()
        elif self.field_of_view.process_input(command, value):
            self.default_field_of_view = False
        elif command == "azimuth_scan_limits":
            lo, hi = np.radians(value[0]), np.radians(value[1])
            if not -np.pi <= lo <= hi <= np.pi:
                raise ConfigurationError("must satisfy -180 <= min <= max <= 180 deg", command)
            self.set_azimuth_scan_limits(lo, hi)
        elif command == "elevation_scan_limits":
            lo, hi = np.radians(value[0]), np.radians(value[1])
            if not -np.pi / 2.0 <= lo <= hi <= np.pi / 2.0:
                raise ConfigurationError("must satisfy -90 <= min <= max <= 90 deg", command)
            self.set_elevation_scan_limits(lo, hi)
        elif command == "minimum_range":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.set_range_limits(float(value), self.max_range)
        elif command == "maximum_range":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.set_range_limits(self.min_range, float(value))
        elif command == "minimum_altitude":
            self.set_altitude_limits(float(value), self.max_alt)
        elif command == "maximum_altitude":
            self.set_altitude_limits(self.min_alt, float(value))
        elif command == "field_of_view":
            # {"type": "polygonal", "azimuth_elevation": [...]} or a bare type name
            if isinstance(value, dict):
                fov = create_field_of_view(value.get("type", "rectangular"))
                for key, item in value.items():
                    if key != "type" and not fov.process_input(key, item):
                        raise ConfigurationError(f"unknown field_of_view keyword '{key}'", command)
            else:
                fov = create_field_of_view(str(value))
            self.field_of_view = fov
            self.default_field_of_view = False
        elif command == "scan_mode":
            self.scan_mode = parse_enum(ScanMode, value, command)
        elif command == "scan_stabilization":
            self.scan_stabilization = parse_enum(ScanStabilization, value, command)
            self._invalidate()
        elif command == "electronic_beam_steering":
            self.ebs_mode = parse_enum(EBSMode, value, command)
        elif command == "electronic_beam_steering_limit":
            cos_limit = self._cos_steering_limit(command, value)
            self.ebs_az_cos_limit = cos_limit
            self.ebs_el_cos_limit = cos_limit
        elif command == "electronic_beam_steering_limit_azimuth":
            self.ebs_az_cos_limit = self._cos_steering_limit(command, value)
        elif command == "electronic_beam_steering_limit_elevation":
            self.ebs_el_cos_limit = self._cos_steering_limit(command, value)
        elif command == "electronic_beam_steering_loss_exponent":
            self.ebs_az_loss_exponent = float(value)
            self.ebs_el_loss_exponent = float(value)
        elif command == "electronic_beam_steering_loss_exponent_azimuth":
            self.ebs_az_loss_exponent = float(value)
        elif command == "electronic_beam_steering_loss_exponent_elevation":
            self.ebs_el_loss_exponent = float(value)
        else:
            return False
        return True

    @staticmethod
    def _cos_steering_limit(command: str, value: float) -> float:
        limit = np.radians(value)
        if not 0.0 <= limit <= np.pi / 2.0:
            raise ConfigurationError("must be in [0, 90] deg", command)
        return float(np.cos(limit))

    def set_height(self, height: float) -> None:
        self.offset = np.array([0.0, 0.0, -height])
        self._invalidate()

    def set_azimuth_scan_limits(self, min_az: float, max_az: float) -> None:
        self.min_az_scan, self.max_az_scan = float(min_az), float(max_az)

    def set_elevation_scan_limits(self, min_el: float, max_el: float) -> None:
        self.min_el_scan, self.max_el_scan = float(min_el), float(max_el)

    def set_range_limits(self, min_range: float, max_range: float) -> None:
        if min_range > max_range:
            raise ConfigurationError(
                f"minimum_range ({min_range}) exceeds maximum_range ({max_range})", "maximum_range"
            )
        self.min_range, self.max_range = min_range, max_range

    def set_altitude_limits(self, min_alt: float, max_alt: float) -> None:
        if min_alt > max_alt:
            raise ConfigurationError(
                f"minimum_altitude ({min_alt}) exceeds maximum_altitude ({max_alt})",
                "maximum_altitude",
            )
        self.min_alt, self.max_alt = min_alt, max_alt

    def set_field_of_view(self, field_of_view: FieldOfView) -> None:
        self.field_of_view = field_of_view
        self.default_field_of_view = False

    def _scan_limits_are_default(self) -> bool:
        return (
            self.min_az_scan == -np.pi
            and self.max_az_scan == np.pi
            and self.min_el_scan == -np.pi / 2.0
            and self.max_el_scan == np.pi / 2.0
        )

    def initialize(self, part) -> None:
        """
        Attach the antenna to its articulated part and validate the limits.

        Raises:
            ProgrammingError: If no articulated part is supplied
            ConfigurationError: If the field of view does not contain the scan limits
        """
        if part is None:
            raise ProgrammingError("an antenna must be attached to an articulated part")
        self.part = part
        self._invalidate()
        if self._scan_limits_are_default():
            return
        if self.default_field_of_view:
            self.field_of_view = RectangularFieldOfView(
                self.min_az_scan, self.max_az_scan, self.min_el_scan, self.max_el_scan
            )
        elif not self.field_of_view.contains_limits(
            self.min_az_scan, self.max_az_scan, self.min_el_scan, self.max_el_scan
        ):
            logger.error("Field of view does not contain the scan limits on %s", part.name)
            raise ConfigurationError(
                "field of view must contain the azimuth and elevation scan limits",
                "field_of_view",
            )

    # -------------------------------------------------------------------------
    # Cached location and transforms
    # -------------------------------------------------------------------------

    def _require_part(self):
        if self.part is None:
            raise ProgrammingError("antenna used before initialize()")
        return self.part

    def _invalidate(self) -> None:
        self._cache_revision = None
        self._cache = {}

    def _cached(self, key: str, compute):
        part = self._require_part()
        revision = part.revision
        if revision != self._cache_revision:
            self._cache = {}
            self._cache_revision = revision
        value = self._cache.get(key)
        if value is None:
            value = compute()
            self._cache[key] = value
        return value

    def get_location_wcs(self) -> np.ndarray:
        """WCS location of the phase center."""

        def compute():
            part = self.part
            return part.get_location_wcs() + part.wcs_to_pcs_transform().T @ self.offset

        return self._cached("location_wcs", compute).copy()

    def get_location_lla(self) -> Tuple[float, float, float]:
        return self._cached("location_lla", lambda: wcs_to_lla(self.get_location_wcs()))

    def get_altitude(self) -> float:
        return self.get_location_lla()[2]

    def wcs_to_ned_transform(self) -> np.ndarray:
        def compute():
            lat, lon, _ = self.get_location_lla()
            return wcs_to_ned_transform(lat, lon)

        return self._cached("wcs_to_ned", compute)

    def wcs_to_acs_transform(self) -> np.ndarray:
        """WCS to antenna face frame (uncued part frame pitched by the tilt)."""
        return self._cached(
            "wcs_to_acs",
            lambda: euler_to_matrix(0.0, self.pitch, 0.0) @ self.part.wcs_to_mount_transform(),
        )

    def wcs_to_sscs_transform(self) -> np.ndarray:
        """WCS to stabilized scan frame."""
        return self._cached("wcs_to_sscs", self._compute_wcs_to_sscs)

    def _compute_wcs_to_sscs(self) -> np.ndarray:
        part = self.part
        platform = part.platform
        heading, _, _ = platform.get_orientation_ned()
        ecs_to_pcs = part.ecs_to_pcs_transform()
        ned_to_pcs_full = ecs_to_pcs @ euler_to_matrix(heading, 0.0, 0.0)

        if self.scan_stabilization == ScanStabilization.PITCH_AND_ROLL:
            ned_to_sscs = ned_to_pcs_full
        else:
            h, p, r = platform.get_orientation_ned()
            ned_to_pcs_none = ecs_to_pcs @ euler_to_matrix(h, p, r)
            ned_to_sscs = np.zeros((3, 3))
            if self.scan_stabilization == ScanStabilization.PITCH:
                ned_to_sscs[0] = ned_to_pcs_full[0]
                z = np.cross(ned_to_pcs_full[0], ned_to_pcs_none[1])
                if np.linalg.norm(z) < 1.0e-8:
                    z = np.cross(ned_to_pcs_full[0], ned_to_pcs_none[0])
                ned_to_sscs[2] = z / np.linalg.norm(z)
                ned_to_sscs[1] = np.cross(ned_to_sscs[2], ned_to_sscs[0])
            elif self.scan_stabilization == ScanStabilization.ROLL:
                ned_to_sscs[1] = ned_to_pcs_full[1]
                z = np.cross(ned_to_pcs_none[0], ned_to_pcs_full[1])
                if np.linalg.norm(z) < 1.0e-8:
                    z = np.cross(ned_to_pcs_none[1], ned_to_pcs_full[1])
                ned_to_sscs[2] = z / np.linalg.norm(z)
                ned_to_sscs[0] = np.cross(ned_to_sscs[1], ned_to_sscs[2])
            else:
                ned_to_sscs = ned_to_pcs_none

        return ned_to_sscs @ platform.wcs_to_ned_transform()

    # -------------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------------

    def compute_aspect(self, unit_vec_wcs: np.ndarray) -> Tuple[float, float]:
        """Azimuth/elevation of a WCS direction in the cued part frame."""
        return self._require_part().compute_aspect(unit_vec_wcs)

    def within_range(self, slant_range: float) -> bool:
        return self.min_range <= slant_range <= self.max_range

    def within_altitude(self, target_alt: float) -> bool:
        relative_alt = target_alt - self.get_altitude()
        return self.min_alt <= relative_alt <= self.max_alt

    def within_field_of_view(self, azimuth: float, elevation: float) -> bool:
        """Check part-relative angles against the field of view."""
        if self.scan_stabilization != ScanStabilization.NONE:
            azimuth, elevation = self.convert_angles_pcs_to_sscs(azimuth, elevation)
        return self.field_of_view.within_field_of_view(azimuth, elevation)

    def convert_angles_pcs_to_sscs(self, azimuth: float, elevation: float) -> Tuple[float, float]:
        direction_wcs = self.part.wcs_to_pcs_transform().T @ unit_vector_from_az_el(azimuth, elevation)
        return azimuth_elevation(self.wcs_to_sscs_transform() @ direction_wcs)

    def convert_angles_sscs_to_pcs(self, azimuth: float, elevation: float) -> Tuple[float, float]:
        direction_wcs = self.wcs_to_sscs_transform().T @ unit_vector_from_az_el(azimuth, elevation)
        return self.part.compute_aspect(direction_wcs)

    # -------------------------------------------------------------------------
    # Beam position and steering
    # -------------------------------------------------------------------------

    def compute_beam_position(
        self, beam_tilt: float, azimuth: float, elevation: float
    ) -> Tuple[np.ndarray, float, float]:
        """
        Position the beam for a target at the given part-relative angles.

        The beam points at the target where the scan mode allows, clipped to
        the scan limits and then to the part's slew limits. An azimuth-only
        scanner without elevation steering holds the beam at the tilt angle.

        Args:
            beam_tilt: Additional beam tilt of the transmitter/receiver [rad]
            azimuth: Target azimuth relative to the cued part [rad]
            elevation: Target elevation relative to the cued part [rad]

        Returns:
            Tuple of (WCS->beam transform, EBS azimuth, EBS elevation)
        """
        part = self._require_part()
        beam_az = 0.0
        beam_el = 0.0
        if self.scan_mode == ScanMode.AZIMUTH and self.ebs_mode in (EBSMode.NONE, EBSMode.AZIMUTH):
            beam_el = self.pitch + beam_tilt

        stabilized = self.scan_stabilization != ScanStabilization.NONE
        tgt_az, tgt_el = azimuth, elevation
        if stabilized:
            tgt_az, tgt_el = self.convert_angles_pcs_to_sscs(tgt_az, tgt_el)

        check_az = bool(self.scan_mode & ScanMode.AZIMUTH)
        if check_az:
            if tgt_az < self.min_az_scan or tgt_az > self.max_az_scan:
                delta_min = normalize_angle_0_two_pi(self.min_az_scan - tgt_az)
                delta_max = normalize_angle_0_two_pi(tgt_az - self.max_az_scan)
                beam_az = self.min_az_scan if delta_min <= delta_max else self.max_az_scan
            else:
                beam_az = tgt_az

        check_el = bool(self.scan_mode & ScanMode.ELEVATION)
        if check_el:
            beam_el = float(np.clip(tgt_el, self.min_el_scan, self.max_el_scan))

        if stabilized:
            beam_az, beam_el = self.convert_angles_sscs_to_pcs(beam_az, beam_el)

        if check_az or check_el:
            cued_az, cued_el = part.get_actual_cued_orientation()
            if check_az:
                final_az = normalize_angle_minus_pi_pi(cued_az + beam_az)
                if final_az < part.min_az_slew or final_az > part.max_az_slew:
                    delta_min = normalize_angle_0_two_pi(part.min_az_slew - final_az)
                    delta_max = normalize_angle_0_two_pi(final_az - part.max_az_slew)
                    limit = part.min_az_slew if delta_min <= delta_max else part.max_az_slew
                    beam_az = limit - cued_az
            if check_el:
                final_el = cued_el + beam_el
                if final_el < part.min_el_slew:
                    beam_el = part.min_el_slew - cued_el
                elif final_el > part.max_el_slew:
                    beam_el = part.max_el_slew - cued_el

        wcs_to_beam = part.compute_rotational_transform(beam_az, beam_el, 0.0)

        ebs_az = 0.0
        ebs_el = 0.0
        if self.ebs_mode != EBSMode.NONE:
            # Beam boresight (first row of WCS->BCS) expressed in the face frame
            steer_az, steer_el = azimuth_elevation(self.wcs_to_acs_transform() @ wcs_to_beam[0])
            if self.ebs_mode & EBSMode.AZIMUTH:
                ebs_az = steer_az
            if self.ebs_mode & EBSMode.ELEVATION:
                ebs_el = steer_el
        return wcs_to_beam, ebs_az, ebs_el

    def compute_beam_steering_loss(self, ebs_az: float, ebs_el: float) -> float:
        """
        Gain multiplier for electronic beam steering.

        The loss is cos(az)^nAz · cos(el)^nEl inside the steering cone and
        zero outside it (or beyond 89.9° off the face normal).

        Returns:
            Factor in [0, 1]; 1 when the antenna does not steer electronically
        """
        if self.ebs_mode == EBSMode.NONE:
            return 1.0
        cos_az = np.cos(ebs_az)
        cos_el = np.cos(ebs_el)
        if cos_az < 0.0:
            # Rear hemisphere: fold the angle back onto the face
            folded_az = abs(normalize_angle_minus_pi_pi(ebs_az))
            cos_az = np.cos(np.pi - folded_az)
            theta = np.arccos(np.clip(cos_az * cos_el, -1.0, 1.0))
            if cos_el != 0.0:
                cos_az = np.cos(np.pi - theta) / cos_el
        if (
            cos_az * cos_el > _MIN_EBS_COS_PRODUCT
            and cos_az >= self.ebs_az_cos_limit
            and cos_el >= self.ebs_el_cos_limit
        ):
            if self.ebs_az_loss_exponent != 1.0 or self.ebs_el_loss_exponent != 1.0:
                return float(cos_az**self.ebs_az_loss_exponent * cos_el**self.ebs_el_loss_exponent)
            return float(cos_az * cos_el)
        return 0.0

    @staticmethod
    def compute_beam_aspect(wcs_to_beam: np.ndarray, vector_wcs: np.ndarray) -> Tuple[float, float]:
        """Azimuth/elevation of a WCS vector relative to the beam frame."""
        beam = wcs_to_beam @ vector_wcs
        horizontal = np.hypot(beam[0], beam[1])
        azimuth = float(np.arctan2(beam[1], beam[0]))
        if horizontal != 0.0:
            return azimuth, float(-np.arctan2(beam[2], horizontal))
        return azimuth, -np.pi / 2.0 if beam[2] > 0.0 else np.pi / 2.0
