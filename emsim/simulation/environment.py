"""
Scenario Environment

Global environmental state read by the attenuation, propagation and clutter
models: land form and land cover, sea state, wind, rain and cloud layers.

References:
    - ITU-R P.527-6: Electrical characteristics of the surface of the Earth
    - Embleton et al., "Outdoor sound propagation over ground of finite
      impedance", J. Acoust. Soc. Am., Vol. 59, 1976
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from emsim.physics.constants import EARTH_RADIUS_MULTIPLIER_RF
from emsim.physics.terrain import TerrainQuery


class LandForm(Enum):
    """Large-scale terrain relief."""

    LEVEL = "level"
    INCLINED = "inclined"
    UNDULATING = "undulating"
    ROLLING_HILLS = "rolling_hills"
    MOUNTAINS = "mountains"


class LandCover(Enum):
    """Surface cover type."""

    GENERAL = "general"
    URBAN = "urban"
    AGRICULTURE = "agriculture"
    GRASS = "grass"
    SHRUB = "shrub"
    FOREST = "forest"
    WETLAND_FORESTED = "wetland_forested"
    WETLAND_NONFORESTED = "wetland_nonforested"
    BARREN = "barren"
    DESERT = "desert"
    ICE_SNOW = "ice_snow"
    WATER = "water"
    SEA = "sea"


# (relative permittivity, conductivity [S/m]) - ITU-R P.527 style classes
RF_GROUND_PARAMETERS: Dict[LandCover, Tuple[float, float]] = {
    LandCover.GENERAL: (15.0, 0.005),
    LandCover.URBAN: (5.0, 0.001),
    LandCover.AGRICULTURE: (15.0, 0.005),
    LandCover.GRASS: (15.0, 0.005),
    LandCover.SHRUB: (13.0, 0.002),
    LandCover.FOREST: (13.0, 0.005),
    LandCover.WETLAND_FORESTED: (30.0, 0.01),
    LandCover.WETLAND_NONFORESTED: (30.0, 0.01),
    LandCover.BARREN: (3.0, 0.0001),
    LandCover.DESERT: (3.0, 0.0001),
    LandCover.ICE_SNOW: (3.0, 0.0001),
    LandCover.WATER: (80.0, 0.01),
    LandCover.SEA: (70.0, 5.0),
}

# (effective flow resistivity [kPa·s/m²], inverse depth [1/m]) - Embleton
ACOUSTIC_GROUND_PARAMETERS: Dict[LandCover, Tuple[float, float]] = {
    LandCover.GENERAL: (300.0, 0.0),
    LandCover.URBAN: (30000.0, 0.0),
    LandCover.AGRICULTURE: (200.0, 0.0),
    LandCover.GRASS: (200.0, 0.0),
    LandCover.SHRUB: (150.0, 0.0),
    LandCover.FOREST: (50.0, 0.0),
    LandCover.WETLAND_FORESTED: (40.0, 0.0),
    LandCover.WETLAND_NONFORESTED: (100.0, 0.0),
    LandCover.BARREN: (1500.0, 0.0),
    LandCover.DESERT: (1500.0, 0.0),
    LandCover.ICE_SNOW: (20.0, 0.0),
    LandCover.WATER: (100000.0, 0.0),
    LandCover.SEA: (100000.0, 0.0),
}


@dataclass
class Environment:
    """
    Environmental conditions for a simulation.

    Attributes:
        land_form: Terrain relief class
        land_cover: Surface cover class
        sea_state: Douglas sea state (0-9)
        wind_speed: Surface wind speed [m/s]
        wind_direction: Direction the wind blows from [rad]
        rain_rate_mm_hr: Rain rate [mm/hr]
        rain_upper_level: Top of the rain layer [m]
        cloud_lower_level: Cloud base [m]
        cloud_upper_level: Cloud top [m]
        cloud_water_density: Liquid water density in the cloud [g/m³]
        earth_radius_multiplier: Effective earth radius factor k for RF paths
        terrain: Terrain access shared by the masking and propagation models
    """

    land_form: LandForm = LandForm.LEVEL
    land_cover: LandCover = LandCover.GENERAL
    sea_state: int = 0
    wind_speed: float = 0.0
    wind_direction: float = 0.0
    rain_rate_mm_hr: float = 0.0
    rain_upper_level: float = 0.0
    cloud_lower_level: float = 0.0
    cloud_upper_level: float = 0.0
    cloud_water_density: float = 0.0
    earth_radius_multiplier: float = EARTH_RADIUS_MULTIPLIER_RF
    terrain: Optional[TerrainQuery] = None

    def get_terrain(self) -> TerrainQuery:
        """Terrain access; a disabled query (flat earth, always visible) if none is set."""
        if self.terrain is None:
            self.terrain = TerrainQuery()
        return self.terrain

    def get_rf_ground_parameters(self) -> Tuple[float, float]:
        """Relative permittivity and conductivity [S/m] of the surface."""
        return RF_GROUND_PARAMETERS[self.land_cover]

    def get_acoustic_ground_parameters(self) -> Tuple[float, float]:
        """Flow resistivity [kPa·s/m²] and inverse depth [1/m] of the surface."""
        return ACOUSTIC_GROUND_PARAMETERS[self.land_cover]
