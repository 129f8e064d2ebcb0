"""
Terrain Handles and Terrain Masking

Terrain elevation sources and the line-of-sight test used by the receiver
and transmitter terrain-masking gates.

Terrain sources implement ``get_height(lat, lon) -> Optional[float]``;
``None`` means no data at that point. Missing data is treated as flat earth
at mean sea level and reported by a single warning per query object.

Features:
    - Flat terrain and gridded (DTED-like) elevation tables
    - Procedural terrain using multi-octave value noise
    - Refracted-ray terrain masking sampled at a configurable spacing
    - Terrain profiles at fixed ground-range increments (ALARM style)

References:
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 2.12 (Radar Horizon)
    - ITU-R P.526: Propagation by diffraction
    - MIL-PRF-89020B: Digital Terrain Elevation Data (DTED)
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numba
import numpy as np
from scipy.interpolate import RegularGridInterpolator

from .constants import EARTH_RADIUS
from .geodesy import central_angle, lla_to_wcs, local_earth_radius, wcs_to_lla

logger = logging.getLogger(__name__)

ALARM_PROFILE_STEP: float = np.pi * EARTH_RADIUS / (180.0 * 1200.0)
"""Ground-range increment of terrain profiles: 3 arc-seconds [m] (~93 m)"""

# =============================================================================
# PROCEDURAL TERRAIN GENERATION
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _lattice_hash_jit(ix: int, iy: int, seed: int) -> float:
    """Reproducible pseudo-random value in [-1, 1] for a lattice point."""
    h = (ix * 374761393 + iy * 668265263 + seed) ^ (seed * 1013904223)
    h = ((h >> 13) ^ h) * 1274126177
    return ((h & 0x7FFFFFFF) / 0x7FFFFFFF) * 2.0 - 1.0


@numba.jit(nopython=True, cache=True)
def _value_noise_jit(x: float, y: float, seed: int) -> float:
    """Smoothstep-interpolated value noise in [-1, 1]."""
    xi = int(np.floor(x))
    yi = int(np.floor(y))
    xf = x - xi
    yf = y - yi
    u = xf * xf * (3.0 - 2.0 * xf)
    v = yf * yf * (3.0 - 2.0 * yf)
    n00 = _lattice_hash_jit(xi, yi, seed)
    n10 = _lattice_hash_jit(xi + 1, yi, seed)
    n01 = _lattice_hash_jit(xi, yi + 1, seed)
    n11 = _lattice_hash_jit(xi + 1, yi + 1, seed)
    nx0 = n00 * (1.0 - u) + n10 * u
    nx1 = n01 * (1.0 - u) + n11 * u
    return nx0 * (1.0 - v) + nx1 * v


@numba.jit(nopython=True, cache=True)
def _fractal_height_jit(
    x: float,
    y: float,
    octaves: int,
    persistence: float,
    lacunarity: float,
    seed: int,
) -> float:
    """Multi-octave noise normalized to [-1, 1]."""
    total = 0.0
    amplitude = 1.0
    frequency = 1.0
    norm = 0.0
    for i in range(octaves):
        total += amplitude * _value_noise_jit(x * frequency, y * frequency, seed + i * 1000)
        norm += amplitude
        amplitude *= persistence
        frequency *= lacunarity
    return total / norm


@dataclass
class ProceduralTerrainConfig:
    """
    Procedural terrain configuration.

    Attributes:
        origin_lat, origin_lon: Reference point of the local east/north grid [deg]
        seed: Random seed for reproducible terrain
        scale: Horizontal scale of terrain features [m]
        max_height: Maximum terrain height [m]
        octaves: Noise detail levels
        persistence: Amplitude decay per octave
        lacunarity: Frequency increase per octave
        peaks: Explicit (east_m, north_m, height_m) Gaussian peaks
    """

    origin_lat: float = 0.0
    origin_lon: float = 0.0
    seed: int = 12345
    scale: float = 50000.0
    max_height: float = 2000.0
    octaves: int = 4
    persistence: float = 0.5
    lacunarity: float = 2.0
    peaks: List[Tuple[float, float, float]] = field(default_factory=list)


class FlatTerrain:
    """Constant-height terrain (MSL by default)."""

    def __init__(self, height: float = 0.0) -> None:
        self.height = float(height)

    def get_height(self, lat: float, lon: float) -> Optional[float]:
        return self.height


class ProceduralTerrain:
    """
    Terrain synthesized from fractal noise around an origin.

    Reference: Ebert et al., "Texturing and Modeling: A Procedural Approach"
    """

    def __init__(self, config: Optional[ProceduralTerrainConfig] = None) -> None:
        self.config = config or ProceduralTerrainConfig()
        self._meters_per_deg_lat = np.pi * EARTH_RADIUS / 180.0
        self._meters_per_deg_lon = self._meters_per_deg_lat * np.cos(
            np.radians(self.config.origin_lat)
        )

    def get_height(self, lat: float, lon: float) -> Optional[float]:
        cfg = self.config
        north = (lat - cfg.origin_lat) * self._meters_per_deg_lat
        east = (lon - cfg.origin_lon) * self._meters_per_deg_lon
        noise = _fractal_height_jit(
            east / cfg.scale,
            north / cfg.scale,
            cfg.octaves,
            cfg.persistence,
            cfg.lacunarity,
            cfg.seed,
        )
        height = (noise + 1.0) * 0.5 * cfg.max_height
        for px, py, peak_height in cfg.peaks:
            dist2 = (east - px) ** 2 + (north - py) ** 2
            height += peak_height * np.exp(-dist2 / (2.0 * 10000.0**2))
        return float(height)


class GridTerrain:
    """
    Elevation posts on a regular latitude/longitude grid.

    Queries outside the grid return None (no data).

    Args:
        latitudes: Ascending post latitudes [deg]
        longitudes: Ascending post longitudes [deg]
        heights: Elevations [m], shape (len(latitudes), len(longitudes))
    """

    def __init__(
        self, latitudes: Sequence[float], longitudes: Sequence[float], heights: np.ndarray
    ) -> None:
        self._lat = np.asarray(latitudes, dtype=np.float64)
        self._lon = np.asarray(longitudes, dtype=np.float64)
        self._interp = RegularGridInterpolator(
            (self._lat, self._lon), np.asarray(heights, dtype=np.float64), bounds_error=False,
            fill_value=None,
        )

    def get_height(self, lat: float, lon: float) -> Optional[float]:
        if not (self._lat[0] <= lat <= self._lat[-1] and self._lon[0] <= lon <= self._lon[-1]):
            return None
        return float(self._interp((lat, lon)))


# =============================================================================
# TERRAIN QUERIES (MASKING AND PROFILES)
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _ray_height_jit(r1: float, r2: float, theta: float, phi: float, ae: float) -> float:
    """
    Height above a sphere of radius ae of the straight ray from (r1, 0) to
    (r2, theta), evaluated on the radial at central angle phi.
    """
    denom = r1 * np.sin(phi) + r2 * np.sin(theta - phi)
    if denom <= 0.0:
        return r1 - ae
    return r1 * r2 * np.sin(theta) / denom - ae


class TerrainQuery:
    """
    Terrain access for one simulation.

    Wraps a terrain source with the missing-data policy (flat earth at MSL,
    warned once) and provides the line-of-sight and profile services used by
    the interaction and propagation models.

    Args:
        terrain: Terrain source (None means no terrain: always visible)
        sample_spacing: Ray sampling distance for masking checks [m]
    """

    def __init__(self, terrain=None, sample_spacing: float = 100.0) -> None:
        self.terrain = terrain
        self.sample_spacing = float(sample_spacing)
        self._warned_missing = False

    @property
    def enabled(self) -> bool:
        return self.terrain is not None

    def get_height(self, lat: float, lon: float) -> float:
        if self.terrain is None:
            return 0.0
        height = self.terrain.get_height(lat, lon)
        if height is None:
            if not self._warned_missing:
                logger.warning(
                    "Terrain data unavailable at lat=%.6f lon=%.6f; using flat earth at MSL",
                    lat,
                    lon,
                )
                self._warned_missing = True
            return 0.0
        return float(height)

    def is_target_visible(
        self,
        loc1_wcs: np.ndarray,
        alt1: float,
        loc2_wcs: np.ndarray,
        alt2: float,
        earth_radius_scale: float = 1.0,
    ) -> bool:
        """
        Check whether terrain blocks the refracted ray between two points.

        The ray is straight over an earth of radius k·Re. It is sampled every
        sample_spacing meters of ground range; the end points are excluded.

        Returns:
            True if no terrain sample rises above the ray
        """
        if self.terrain is None:
            return True
        radius = 0.5 * (local_earth_radius(loc1_wcs, alt1) + local_earth_radius(loc2_wcs, alt2))
        angle = central_angle(loc1_wcs, loc2_wcs)
        ground_range = angle * radius
        num_steps = int(ground_range / self.sample_spacing)
        if num_steps < 2:
            return True
        ae = earth_radius_scale * radius
        theta = ground_range / ae
        r1 = ae + alt1
        r2 = ae + alt2
        u1 = loc1_wcs / np.linalg.norm(loc1_wcs)
        u2 = loc2_wcs / np.linalg.norm(loc2_wcs)
        for i in range(1, num_steps):
            frac = i / num_steps
            ray_height = _ray_height_jit(r1, r2, theta, frac * theta, ae)
            direction = (1.0 - frac) * u1 + frac * u2
            lat, lon, _ = wcs_to_lla(direction / np.linalg.norm(direction) * radius)
            if ray_height < self.get_height(lat, lon):
                logger.debug("Terrain masks ray at %.1f m ground range", frac * ground_range)
                return False
        return True

    def get_profile(
        self,
        lat1: float,
        lon1: float,
        lat2: float,
        lon2: float,
        step: float = ALARM_PROFILE_STEP,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Terrain heights along the great circle between two points.

        Returns:
            Tuple of (ground_ranges, heights) including both end points
        """
        p1 = lla_to_wcs(lat1, lon1, 0.0)
        p2 = lla_to_wcs(lat2, lon2, 0.0)
        radius = 0.5 * (np.linalg.norm(p1) + np.linalg.norm(p2))
        ground_range = central_angle(p1, p2) * radius
        count = max(int(np.ceil(ground_range / step)), 1)
        ranges = np.linspace(0.0, ground_range, count + 1)
        heights = np.empty(count + 1)
        u1 = p1 / np.linalg.norm(p1)
        u2 = p2 / np.linalg.norm(p2)
        for i in range(count + 1):
            frac = i / count
            direction = (1.0 - frac) * u1 + frac * u2
            lat, lon, _ = wcs_to_lla(direction / np.linalg.norm(direction) * radius)
            heights[i] = self.get_height(lat, lon)
        return ranges, heights
