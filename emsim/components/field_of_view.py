"""
Antenna Fields of View

Angular regions, expressed in the (optionally stabilized) part frame, inside
which an antenna can see. The rectangular form bounds azimuth and elevation
independently; the polygonal form accepts an arbitrary closed az/el outline.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from emsim.errors import ConfigurationError

logger = logging.getLogger(__name__)


class FieldOfView:
    """Base class for angular fields of view."""

    fov_type = ""

    def process_input(self, command: str, value: Any) -> bool:
        return False

    def within_field_of_view(self, azimuth: float, elevation: float) -> bool:
        raise NotImplementedError

    def get_azimuth_limits(self) -> Tuple[float, float]:
        raise NotImplementedError

    def get_elevation_limits(self) -> Tuple[float, float]:
        raise NotImplementedError

    def contains_limits(
        self, min_az: float, max_az: float, min_el: float, max_el: float
    ) -> bool:
        """True if the angular box lies entirely inside this field of view."""
        fov_min_az, fov_max_az = self.get_azimuth_limits()
        fov_min_el, fov_max_el = self.get_elevation_limits()
        return (
            fov_min_az <= min_az
            and max_az <= fov_max_az
            and fov_min_el <= min_el
            and max_el <= fov_max_el
        )


class RectangularFieldOfView(FieldOfView):
    """
    Independent azimuth and elevation bounds.

    Defaults to the full sphere (360° × 180°).
    """

    fov_type = "rectangular"

    def __init__(
        self,
        min_az: float = -np.pi,
        max_az: float = np.pi,
        min_el: float = -np.pi / 2.0,
        max_el: float = np.pi / 2.0,
    ) -> None:
        self.set_azimuth_limits(min_az, max_az)
        self.set_elevation_limits(min_el, max_el)

    def set_azimuth_limits(self, min_az: float, max_az: float) -> None:
        if not -np.pi <= min_az <= max_az <= np.pi:
            raise ConfigurationError(
                f"azimuth limits must satisfy -180 <= min <= max <= 180 deg, got "
                f"[{np.degrees(min_az):.3f}, {np.degrees(max_az):.3f}]",
                "azimuth_field_of_view",
            )
        self.min_az = float(min_az)
        self.max_az = float(max_az)

    def set_elevation_limits(self, min_el: float, max_el: float) -> None:
        if not -np.pi / 2.0 <= min_el <= max_el <= np.pi / 2.0:
            raise ConfigurationError(
                f"elevation limits must satisfy -90 <= min <= max <= 90 deg, got "
                f"[{np.degrees(min_el):.3f}, {np.degrees(max_el):.3f}]",
                "elevation_field_of_view",
            )
        self.min_el = float(min_el)
        self.max_el = float(max_el)

    def process_input(self, command: str, value: Any) -> bool:
        if command == "azimuth_field_of_view":
            lo, hi = value
            self.set_azimuth_limits(np.radians(lo), np.radians(hi))
        elif command == "elevation_field_of_view":
            lo, hi = value
            self.set_elevation_limits(np.radians(lo), np.radians(hi))
        else:
            return False
        return True

    def within_field_of_view(self, azimuth: float, elevation: float) -> bool:
        return (
            self.min_az <= azimuth <= self.max_az
            and self.min_el <= elevation <= self.max_el
        )

    def get_azimuth_limits(self) -> Tuple[float, float]:
        return self.min_az, self.max_az

    def get_elevation_limits(self) -> Tuple[float, float]:
        return self.min_el, self.max_el


class PolygonalFieldOfView(FieldOfView):
    """
    Closed polygon in (azimuth, elevation) space.

    Points are given in degrees as ``[[az, el], ...]`` (YAML key
    ``azimuth_elevation``); the polygon is closed implicitly.
    """

    fov_type = "polygonal"

    def __init__(self, points: Optional[Sequence[Tuple[float, float]]] = None) -> None:
        self.points = np.zeros((0, 2))
        if points is not None:
            self.set_points(points)

    def set_points(self, points: Sequence[Tuple[float, float]]) -> None:
        """Set polygon vertices (radians)."""
        pts = np.asarray(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 2 or len(pts) < 3:
            raise ConfigurationError(
                "a polygonal field of view needs at least three (az, el) points",
                "azimuth_elevation",
            )
        self.points = pts

    def process_input(self, command: str, value: Any) -> bool:
        if command == "azimuth_elevation":
            self.set_points(np.radians(np.asarray(value, dtype=np.float64)))
            return True
        return False

    def within_field_of_view(self, azimuth: float, elevation: float) -> bool:
        # Even-odd ray casting along +azimuth
        pts = self.points
        inside = False
        n = len(pts)
        j = n - 1
        for i in range(n):
            az_i, el_i = pts[i]
            az_j, el_j = pts[j]
            if (el_i > elevation) != (el_j > elevation):
                az_cross = az_i + (elevation - el_i) * (az_j - az_i) / (el_j - el_i)
                if azimuth < az_cross:
                    inside = not inside
            j = i
        return inside

    def get_azimuth_limits(self) -> Tuple[float, float]:
        return float(self.points[:, 0].min()), float(self.points[:, 0].max())

    def get_elevation_limits(self) -> Tuple[float, float]:
        return float(self.points[:, 1].min()), float(self.points[:, 1].max())


_FOV_TYPES = {
    RectangularFieldOfView.fov_type: RectangularFieldOfView,
    PolygonalFieldOfView.fov_type: PolygonalFieldOfView,
}


def create_field_of_view(fov_type: str) -> FieldOfView:
    """Create a field of view from its type name."""
    try:
        return _FOV_TYPES[fov_type]()
    except KeyError:
        raise ConfigurationError(
            f"unknown field_of_view type '{fov_type}'", "field_of_view"
        ) from None


def field_of_view_types() -> List[str]:
    return sorted(_FOV_TYPES)
