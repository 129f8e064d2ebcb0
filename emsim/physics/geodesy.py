"""
Geodesy and Coordinate Frames

WGS-84 conversions between geodetic (LLA) and Earth-centered Earth-fixed
(WCS) coordinates, local north-east-down (NED) frames, Euler rotations and
the spherical-Earth horizon and refraction geometry used by the interaction
gates.

Conventions:
    - Latitude/longitude in degrees, altitude in meters above the ellipsoid
    - All other angles in radians
    - Azimuth is measured from +x toward +y, elevation is positive up (-z)

References:
    - NIMA TR8350.2, "World Geodetic System 1984", 3rd Ed., 2000
    - Bowring, "Transformation from spatial to geographical coordinates",
      Survey Review, Vol. 23, 1976
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 2.12 (Radar Horizon)
"""

from typing import Tuple

import numba
import numpy as np

from .constants import (
    DEG_TO_RAD,
    RAD_TO_DEG,
    WGS84_ECCENTRICITY_SQUARED,
    WGS84_SEMI_MAJOR_AXIS,
)

# =============================================================================
# LLA <-> WCS
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _lla_to_wcs_jit(lat_deg: float, lon_deg: float, alt: float) -> np.ndarray:
    """JIT-compiled geodetic to ECEF conversion."""
    lat = lat_deg * DEG_TO_RAD
    lon = lon_deg * DEG_TO_RAD
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    n = WGS84_SEMI_MAJOR_AXIS / np.sqrt(1.0 - WGS84_ECCENTRICITY_SQUARED * sin_lat * sin_lat)
    out = np.empty(3)
    out[0] = (n + alt) * cos_lat * np.cos(lon)
    out[1] = (n + alt) * cos_lat * np.sin(lon)
    out[2] = (n * (1.0 - WGS84_ECCENTRICITY_SQUARED) + alt) * sin_lat
    return out


@numba.jit(nopython=True, cache=True)
def _wcs_to_lla_jit(x: float, y: float, z: float) -> Tuple[float, float, float]:
    """
    JIT-compiled ECEF to geodetic conversion (Bowring iteration).

    Converges to sub-millimeter accuracy in a handful of iterations for any
    point outside the Earth's core.
    """
    e2 = WGS84_ECCENTRICITY_SQUARED
    p = np.sqrt(x * x + y * y)
    lon = np.arctan2(y, x)
    if p < 1.0e-9:
        # On the polar axis
        lat = np.pi / 2.0 if z >= 0.0 else -np.pi / 2.0
        b = WGS84_SEMI_MAJOR_AXIS * np.sqrt(1.0 - e2)
        return lat * RAD_TO_DEG, 0.0, abs(z) - b

    lat = np.arctan2(z, p * (1.0 - e2))
    alt = 0.0
    for _ in range(6):
        sin_lat = np.sin(lat)
        n = WGS84_SEMI_MAJOR_AXIS / np.sqrt(1.0 - e2 * sin_lat * sin_lat)
        alt = p / np.cos(lat) - n
        lat = np.arctan2(z, p * (1.0 - e2 * n / (n + alt)))
    return lat * RAD_TO_DEG, lon * RAD_TO_DEG, alt


def lla_to_wcs(lat_deg: float, lon_deg: float, alt: float) -> np.ndarray:
    """
    Convert a geodetic location to WCS (ECEF).

    Args:
        lat_deg: Geodetic latitude [deg]
        lon_deg: Longitude [deg]
        alt: Height above the WGS-84 ellipsoid [m]

    Returns:
        WCS position vector [m]
    """
    return _lla_to_wcs_jit(float(lat_deg), float(lon_deg), float(alt))


def wcs_to_lla(location_wcs: np.ndarray) -> Tuple[float, float, float]:
    """
    Convert a WCS (ECEF) position to geodetic latitude, longitude, altitude.

    Returns:
        Tuple of (lat_deg, lon_deg, alt_m)
    """
    return _wcs_to_lla_jit(
        float(location_wcs[0]), float(location_wcs[1]), float(location_wcs[2])
    )


# =============================================================================
# FRAME ROTATIONS
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _wcs_to_ned_jit(lat_deg: float, lon_deg: float) -> np.ndarray:
    """JIT-compiled WCS->NED rotation matrix (rows are N, E, D in WCS)."""
    lat = lat_deg * DEG_TO_RAD
    lon = lon_deg * DEG_TO_RAD
    sl = np.sin(lat)
    cl = np.cos(lat)
    so = np.sin(lon)
    co = np.cos(lon)
    m = np.empty((3, 3))
    m[0, 0] = -sl * co
    m[0, 1] = -sl * so
    m[0, 2] = cl
    m[1, 0] = -so
    m[1, 1] = co
    m[1, 2] = 0.0
    m[2, 0] = -cl * co
    m[2, 1] = -cl * so
    m[2, 2] = -sl
    return m


@numba.jit(nopython=True, cache=True)
def _euler_to_matrix_jit(yaw: float, pitch: float, roll: float) -> np.ndarray:
    """
    JIT-compiled 3-2-1 (yaw, pitch, roll) rotation matrix.

    The result transforms a vector from the parent frame to the rotated
    frame: v_child = M @ v_parent.
    """
    cy = np.cos(yaw)
    sy = np.sin(yaw)
    cp = np.cos(pitch)
    sp = np.sin(pitch)
    cr = np.cos(roll)
    sr = np.sin(roll)
    m = np.empty((3, 3))
    m[0, 0] = cp * cy
    m[0, 1] = cp * sy
    m[0, 2] = -sp
    m[1, 0] = sr * sp * cy - cr * sy
    m[1, 1] = sr * sp * sy + cr * cy
    m[1, 2] = sr * cp
    m[2, 0] = cr * sp * cy + sr * sy
    m[2, 1] = cr * sp * sy - sr * cy
    m[2, 2] = cr * cp
    return m


def wcs_to_ned_transform(lat_deg: float, lon_deg: float) -> np.ndarray:
    """WCS->NED rotation matrix at a geodetic location."""
    return _wcs_to_ned_jit(float(lat_deg), float(lon_deg))


def euler_to_matrix(yaw: float, pitch: float, roll: float) -> np.ndarray:
    """
    Rotation matrix from parent frame to a frame rotated by yaw, pitch, roll.

    Args:
        yaw: Rotation about the parent z axis [rad]
        pitch: Rotation about the intermediate y axis [rad]
        roll: Rotation about the final x axis [rad]

    Returns:
        3x3 matrix M such that v_child = M @ v_parent
    """
    return _euler_to_matrix_jit(float(yaw), float(pitch), float(roll))


def matrix_to_euler(m: np.ndarray) -> Tuple[float, float, float]:
    """Extract (yaw, pitch, roll) from a 3-2-1 rotation matrix."""
    pitch = float(np.arcsin(np.clip(-m[0, 2], -1.0, 1.0)))
    yaw = float(np.arctan2(m[0, 1], m[0, 0]))
    roll = float(np.arctan2(m[1, 2], m[2, 2]))
    return yaw, pitch, roll


def azimuth_elevation(vector: np.ndarray) -> Tuple[float, float]:
    """
    Azimuth and elevation of a vector expressed in an x-forward, z-down frame.

    Returns:
        Tuple of (azimuth, elevation) [rad]; (0, 0) for a zero vector
    """
    x = float(vector[0])
    y = float(vector[1])
    z = float(vector[2])
    horizontal = np.hypot(x, y)
    if horizontal == 0.0 and z == 0.0:
        return 0.0, 0.0
    return float(np.arctan2(y, x)), float(np.arctan2(-z, horizontal))


def unit_vector_from_az_el(azimuth: float, elevation: float) -> np.ndarray:
    """Unit vector in an x-forward, z-down frame pointing at (az, el)."""
    ce = np.cos(elevation)
    return np.array([ce * np.cos(azimuth), ce * np.sin(azimuth), -np.sin(elevation)])


# =============================================================================
# SPHERICAL EARTH GEOMETRY (HORIZON AND REFRACTION)
# =============================================================================


def local_earth_radius(location_wcs: np.ndarray, altitude: float) -> float:
    """Geocentric radius of the ellipsoid surface beneath a WCS point [m]."""
    return float(np.linalg.norm(location_wcs)) - altitude


@numba.jit(nopython=True, cache=True)
def _masked_by_horizon_jit(
    central_angle: float, earth_radius: float, h1: float, h2: float, k: float
) -> bool:
    """
    JIT-compiled horizon test over a spherical earth of radius k·Re.

    The two points are placed at radii (k·Re + h) separated by the central
    angle rescaled to preserve ground distance. The line is masked iff the
    straight segment between them passes below the scaled surface.
    """
    ae = k * earth_radius
    theta = central_angle * earth_radius / ae
    r1 = ae + max(h1, 0.0)
    r2 = ae + max(h2, 0.0)
    x1 = r1
    y1 = 0.0
    x2 = r2 * np.cos(theta)
    y2 = r2 * np.sin(theta)
    dx = x2 - x1
    dy = y2 - y1
    d2 = dx * dx + dy * dy
    if d2 <= 0.0:
        return False
    t = -(x1 * dx + y1 * dy) / d2
    if t <= 0.0 or t >= 1.0:
        return False
    px = x1 + t * dx
    py = y1 + t * dy
    return np.sqrt(px * px + py * py) < ae


def central_angle(loc1_wcs: np.ndarray, loc2_wcs: np.ndarray) -> float:
    """Geocentric angle between two WCS points [rad]."""
    n1 = np.linalg.norm(loc1_wcs)
    n2 = np.linalg.norm(loc2_wcs)
    if n1 == 0.0 or n2 == 0.0:
        return 0.0
    cos_angle = float(np.dot(loc1_wcs, loc2_wcs) / (n1 * n2))
    return float(np.arccos(np.clip(cos_angle, -1.0, 1.0)))


def masked_by_horizon(
    loc1_wcs: np.ndarray,
    alt1: float,
    terrain_height1: float,
    loc2_wcs: np.ndarray,
    alt2: float,
    terrain_height2: float,
    earth_radius_scale: float,
) -> bool:
    """
    Determine whether the Earth's horizon blocks the line between two points.

    An object more than 1 m below the local terrain is always considered
    masked. Otherwise heights above terrain are used over a spherical earth
    whose radius is scaled by the refraction multiplier.

    Args:
        loc1_wcs, loc2_wcs: WCS positions [m]
        alt1, alt2: Altitudes above the ellipsoid [m]
        terrain_height1, terrain_height2: Terrain heights beneath each point [m]
        earth_radius_scale: Effective Earth radius multiplier k

    Returns:
        True if the line of sight is blocked by the horizon
    """
    agl1 = alt1 - terrain_height1
    agl2 = alt2 - terrain_height2
    if agl1 < -1.0 or agl2 < -1.0:
        return True
    radius = 0.5 * (local_earth_radius(loc1_wcs, alt1) + local_earth_radius(loc2_wcs, alt2))
    angle = central_angle(loc1_wcs, loc2_wcs)
    return bool(
        _masked_by_horizon_jit(
            angle, radius, agl1, agl2, max(float(earth_radius_scale), 1.0e-6)
        )
    )


def _scaled_elevations(
    angle: float, radius: float, alt1: float, alt2: float, k: float
) -> Tuple[float, float]:
    ae = k * radius
    theta = angle * radius / ae
    r1 = ae + alt1
    r2 = ae + alt2
    el12 = float(np.arctan2(r2 * np.cos(theta) - r1, r2 * np.sin(theta)))
    el21 = float(np.arctan2(r1 * np.cos(theta) - r2, r1 * np.sin(theta)))
    return el12, el21


def compute_refraction_corrections(
    loc1_wcs: np.ndarray,
    alt1: float,
    loc2_wcs: np.ndarray,
    alt2: float,
    earth_radius_scale: float,
) -> Tuple[float, float]:
    """
    Elevation corrections for atmospheric refraction between two points.

    The refracted ray is modeled as a straight line over an earth of radius
    k·Re with ground distance and heights preserved. The correction is the
    difference between the elevation over the scaled earth and over the
    unscaled earth, so k = 1 yields exactly zero.

    Returns:
        Tuple of (correction at point 1 looking at 2, correction at point 2
        looking at 1) [rad]; add to the true local elevation
    """
    if earth_radius_scale == 1.0:
        return 0.0, 0.0
    angle = central_angle(loc1_wcs, loc2_wcs)
    if angle == 0.0:
        return 0.0, 0.0
    radius = 0.5 * (local_earth_radius(loc1_wcs, alt1) + local_earth_radius(loc2_wcs, alt2))
    true12, true21 = _scaled_elevations(angle, radius, alt1, alt2, 1.0)
    app12, app21 = _scaled_elevations(angle, radius, alt1, alt2, float(earth_radius_scale))
    return app12 - true12, app21 - true21


def compute_apparent_unit_vector(
    true_unit_wcs: np.ndarray, wcs_to_ned: np.ndarray, elevation_correction: float
) -> np.ndarray:
    """
    Rotate a true line-of-sight vector by an elevation correction.

    Azimuth in the local NED frame is preserved; only the elevation changes.
    A vertical line of sight is returned unchanged.
    """
    ned = wcs_to_ned @ true_unit_wcs
    horizontal = np.hypot(ned[0], ned[1])
    if horizontal < 1.0e-12 or elevation_correction == 0.0:
        return true_unit_wcs.copy()
    elevation = np.arctan2(-ned[2], horizontal) + elevation_correction
    ce = np.cos(elevation)
    apparent_ned = np.array(
        [ce * ned[0] / horizontal, ce * ned[1] / horizontal, -np.sin(elevation)]
    )
    return wcs_to_ned.T @ apparent_ned
