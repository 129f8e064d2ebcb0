"""
Platforms and Articulated Parts

Minimal concrete implementations of the platform and articulated-part
contracts the interaction engine reads: time-tagged location, velocity and
orientation, a terrain handle, side and spatial-domain tags, named
signatures, and a part frame with a cue and slew limits.

The engine never mutates a platform. Every setter bumps a revision counter
so antennas can invalidate their cached transforms.
"""

import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np

from emsim.physics.geodesy import (
    azimuth_elevation,
    euler_to_matrix,
    lla_to_wcs,
    wcs_to_lla,
    wcs_to_ned_transform,
)

SignatureFunction = Callable[[float, str, float, float], float]
"""Signature lookup: (frequency, polarization name, az, el) -> value"""

_platform_ids = itertools.count(1)


class Platform:
    """
    A simulated entity that carries antennas or acts as a target.

    Attributes:
        name: Platform name
        index: Unique id (used for deterministic ordering of emissions)
        side: Team/side tag
        spatial_domain: 'land', 'air', 'surface', 'subsurface' or 'space'
        terrain: Terrain handle providing get_height(lat, lon) (optional)
        concealment_factor: Fraction of the platform hidden from sensors
            (above 0.99 it cannot be detected)
    """

    def __init__(
        self,
        name: str,
        lat: float = 0.0,
        lon: float = 0.0,
        alt: float = 0.0,
        heading: float = 0.0,
        pitch: float = 0.0,
        roll: float = 0.0,
        side: str = "",
        spatial_domain: str = "land",
        terrain=None,
    ) -> None:
        self.name = name
        self.index = next(_platform_ids)
        self.side = side
        self.spatial_domain = spatial_domain
        self.terrain = terrain
        self.concealment_factor = 0.0
        self.time = 0.0
        self.revision = 0

        self._location_wcs = lla_to_wcs(lat, lon, alt)
        self._lla = (float(lat), float(lon), float(alt))
        self._velocity_wcs = np.zeros(3)
        self._orientation = (float(heading), float(pitch), float(roll))
        self._wcs_to_ecs: Optional[np.ndarray] = None
        self._signatures: Dict[str, Union[float, SignatureFunction]] = {}

    # -------------------------------------------------------------------------
    # Kinematic state
    # -------------------------------------------------------------------------

    def _changed(self) -> None:
        self.revision += 1
        self._wcs_to_ecs = None

    def set_location_lla(self, lat: float, lon: float, alt: float) -> None:
        self._location_wcs = lla_to_wcs(lat, lon, alt)
        self._lla = (float(lat), float(lon), float(alt))
        self._changed()

    def set_location_wcs(self, location_wcs: np.ndarray) -> None:
        self._location_wcs = np.asarray(location_wcs, dtype=np.float64).copy()
        self._lla = wcs_to_lla(self._location_wcs)
        self._changed()

    def get_location_wcs(self) -> np.ndarray:
        return self._location_wcs.copy()

    def get_location_lla(self) -> Tuple[float, float, float]:
        return self._lla

    def set_orientation_ned(self, heading: float, pitch: float, roll: float) -> None:
        """Set the platform attitude relative to the local NED frame [rad]."""
        self._orientation = (float(heading), float(pitch), float(roll))
        self._changed()

    def get_orientation_ned(self) -> Tuple[float, float, float]:
        return self._orientation

    def set_velocity_ned(self, velocity_ned: np.ndarray) -> None:
        ned = wcs_to_ned_transform(self._lla[0], self._lla[1])
        self._velocity_wcs = ned.T @ np.asarray(velocity_ned, dtype=np.float64)

    def set_velocity_wcs(self, velocity_wcs: np.ndarray) -> None:
        self._velocity_wcs = np.asarray(velocity_wcs, dtype=np.float64).copy()

    def get_velocity_wcs(self) -> np.ndarray:
        return self._velocity_wcs.copy()

    def get_speed(self) -> float:
        return float(np.linalg.norm(self._velocity_wcs))

    def update(self, sim_time: float) -> None:
        """Advance the platform to sim_time using constant velocity."""
        dt = sim_time - self.time
        if dt > 0.0 and np.any(self._velocity_wcs):
            self.set_location_wcs(self._location_wcs + self._velocity_wcs * dt)
        self.time = sim_time

    # -------------------------------------------------------------------------
    # Frames
    # -------------------------------------------------------------------------

    def wcs_to_ned_transform(self) -> np.ndarray:
        return wcs_to_ned_transform(self._lla[0], self._lla[1])

    def wcs_to_ecs_transform(self) -> np.ndarray:
        """WCS to entity coordinate system (body frame) rotation."""
        if self._wcs_to_ecs is None:
            heading, pitch, roll = self._orientation
            self._wcs_to_ecs = euler_to_matrix(heading, pitch, roll) @ self.wcs_to_ned_transform()
        return self._wcs_to_ecs

    def compute_aspect(self, unit_vec_wcs: np.ndarray) -> Tuple[float, float]:
        """Azimuth/elevation of a WCS direction in the platform body frame."""
        return azimuth_elevation(self.wcs_to_ecs_transform() @ unit_vec_wcs)

    def get_terrain_height(self) -> float:
        if self.terrain is None:
            return 0.0
        height = self.terrain.get_height(self._lla[0], self._lla[1])
        return 0.0 if height is None else float(height)

    # -------------------------------------------------------------------------
    # Signatures
    # -------------------------------------------------------------------------

    def set_signature(self, name: str, value: Union[float, SignatureFunction]) -> None:
        """Define a named signature as a constant or a lookup function."""
        self._signatures[name] = value

    def get_signature(
        self, name: str, frequency: float, polarization: str, az: float, el: float
    ) -> float:
        value = self._signatures.get(name, 0.0)
        if callable(value):
            return float(value(frequency, polarization, az, el))
        return float(value)

    def get_radar_cross_section(
        self, frequency: float, polarization: str, az: float, el: float
    ) -> float:
        return self.get_signature("radar", frequency, polarization, az, el)

    def __repr__(self) -> str:
        return f"Platform({self.name!r}, index={self.index})"


@dataclass
class ArticulatedPart:
    """
    A platform-attached frame (PCS) that hosts an antenna.

    The part is mounted at location_ecs with yaw/pitch/roll relative to the
    platform body. A cue rotates the part within its slew limits; the
    WCS->PCS transform includes the actual cued orientation.

    Attributes:
        platform: Host platform
        name: Part name
        location_ecs: Mount location in the platform body frame [m]
        yaw, pitch, roll: Mount orientation relative to the body [rad]
        min_az_slew, max_az_slew: Azimuth slew limits [rad]
        min_el_slew, max_el_slew: Elevation slew limits [rad]
        masking_pattern: Optional (az, el) -> factor ∈ [0, 1] structural mask
    """

    platform: Platform
    name: str = "part"
    location_ecs: np.ndarray = field(default_factory=lambda: np.zeros(3))
    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0
    min_az_slew: float = -np.pi
    max_az_slew: float = np.pi
    min_el_slew: float = -np.pi / 2.0
    max_el_slew: float = np.pi / 2.0
    masking_pattern: Optional[Callable[[float, float], float]] = None

    def __post_init__(self) -> None:
        self.location_ecs = np.asarray(self.location_ecs, dtype=np.float64)
        self._cued: Optional[Tuple[float, float]] = None
        self._revision = 0

    @property
    def revision(self) -> Tuple[int, int]:
        """Changes whenever the part or its platform moves."""
        return (self.platform.revision, self._revision)

    def set_orientation(self, yaw: float, pitch: float, roll: float) -> None:
        self.yaw, self.pitch, self.roll = float(yaw), float(pitch), float(roll)
        self._revision += 1

    def set_cued_orientation(self, azimuth: float, elevation: float) -> None:
        self._cued = (float(azimuth), float(elevation))
        self._revision += 1

    def clear_cue(self) -> None:
        self._cued = None
        self._revision += 1

    def is_cued(self) -> bool:
        return self._cued is not None

    def get_actual_cued_orientation(self) -> Tuple[float, float]:
        """Cued azimuth/elevation clipped to the slew limits (0, 0 if uncued)."""
        if self._cued is None:
            return 0.0, 0.0
        az, el = self._cued
        return (
            float(np.clip(az, self.min_az_slew, self.max_az_slew)),
            float(np.clip(el, self.min_el_slew, self.max_el_slew)),
        )

    def wcs_to_mount_transform(self) -> np.ndarray:
        """WCS to uncued part frame."""
        return euler_to_matrix(self.yaw, self.pitch, self.roll) @ self.platform.wcs_to_ecs_transform()

    def ecs_to_pcs_transform(self) -> np.ndarray:
        """Body frame to part frame, including the actual cue."""
        cue_az, cue_el = self.get_actual_cued_orientation()
        return euler_to_matrix(cue_az, cue_el, 0.0) @ euler_to_matrix(self.yaw, self.pitch, self.roll)

    def wcs_to_pcs_transform(self) -> np.ndarray:
        """WCS to part coordinate system, including the actual cue."""
        return self.ecs_to_pcs_transform() @ self.platform.wcs_to_ecs_transform()

    def get_location_wcs(self) -> np.ndarray:
        ecs = self.platform.wcs_to_ecs_transform()
        return self.platform.get_location_wcs() + ecs.T @ self.location_ecs

    def compute_aspect(self, unit_vec_wcs: np.ndarray) -> Tuple[float, float]:
        """Azimuth/elevation of a WCS direction in the (cued) part frame."""
        return azimuth_elevation(self.wcs_to_pcs_transform() @ unit_vec_wcs)

    def compute_rotational_transform(self, azimuth: float, elevation: float, roll: float) -> np.ndarray:
        """WCS to a frame rotated by (az, el, roll) from the cued part frame."""
        return euler_to_matrix(azimuth, elevation, roll) @ self.wcs_to_pcs_transform()

    def get_masking_pattern_factor(self, azimuth: float, elevation: float) -> float:
        if self.masking_pattern is None:
            return 1.0
        return float(np.clip(self.masking_pattern(azimuth, elevation), 0.0, 1.0))
