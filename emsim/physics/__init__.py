"""
Physics Package

Constants, geodesy and terrain services shared by the EM models.

Modules:
    - constants: Physical constants (SI units) and dB/angle helpers
    - geodesy: WGS-84 conversions, rotations, horizon masking, refraction
    - terrain: Terrain sources and line-of-sight/profile queries
"""

from .constants import (
    BOLTZMANN_CONSTANT,
    EARTH_RADIUS,
    EARTH_RADIUS_MULTIPLIER_RF,
    SPEED_OF_LIGHT,
    STANDARD_TEMPERATURE,
    db_to_linear,
    linear_to_db,
)
from .geodesy import (
    azimuth_elevation,
    central_angle,
    euler_to_matrix,
    lla_to_wcs,
    masked_by_horizon,
    wcs_to_lla,
    wcs_to_ned_transform,
)
from .terrain import FlatTerrain, GridTerrain, ProceduralTerrain, ProceduralTerrainConfig, TerrainQuery

__all__ = [
    # Constants
    "SPEED_OF_LIGHT",
    "BOLTZMANN_CONSTANT",
    "STANDARD_TEMPERATURE",
    "EARTH_RADIUS",
    "EARTH_RADIUS_MULTIPLIER_RF",
    "db_to_linear",
    "linear_to_db",
    # Geodesy
    "lla_to_wcs",
    "wcs_to_lla",
    "wcs_to_ned_transform",
    "euler_to_matrix",
    "azimuth_elevation",
    "central_angle",
    "masked_by_horizon",
    # Terrain
    "TerrainQuery",
    "FlatTerrain",
    "GridTerrain",
    "ProceduralTerrain",
    "ProceduralTerrainConfig",
]
