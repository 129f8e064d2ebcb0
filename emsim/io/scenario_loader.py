"""
Scenario Loader

YAML-based scenario configuration parser.

Loads a scenario file and creates a configured Simulation with its
platforms, radar modes and stand-alone transmitters/receivers. Component
blocks are passed through the components' own process_input() keywords, so
the YAML vocabulary is the keyword vocabulary of the components.

Supported scenario elements:
    - Scenario metadata (name, duration, time step, random seed)
    - Environment (land form/cover, sea state, rain, clouds, k factor)
    - Terrain (flat, procedural or gridded)
    - Platforms with location, orientation, velocity and signatures
    - Radar modes, transmitters and receivers on articulated parts

Usage:
    loader = ScenarioLoader('scenarios/two_radars.yaml')
    simulation = loader.create_simulation()
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from emsim.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class PartConfig:
    """Articulated part of a device (angles in degrees)."""

    name: str = "part"
    location_ecs: np.ndarray = field(default_factory=lambda: np.zeros(3))
    yaw_deg: float = 0.0
    pitch_deg: float = 0.0
    roll_deg: float = 0.0


@dataclass
class DeviceConfig:
    """
    A radar mode, transmitter or receiver.

    Attributes:
        kind: 'sensor', 'transmitter' or 'receiver'
        name: Device name
        part: Articulated part hosting the antenna
        keywords: Component keywords applied in file order
    """

    kind: str
    name: str
    part: PartConfig
    keywords: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PlatformConfig:
    """Platform configuration from scenario file."""

    name: str
    lat_deg: float
    lon_deg: float
    alt_m: float
    heading_deg: float = 0.0
    pitch_deg: float = 0.0
    roll_deg: float = 0.0
    velocity_ned: np.ndarray = field(default_factory=lambda: np.zeros(3))
    side: str = ""
    spatial_domain: str = "land"
    rcs_m2: float = 0.0
    concealment_factor: float = 0.0
    devices: List[DeviceConfig] = field(default_factory=list)


@dataclass
class ScenarioConfig:
    """Complete scenario configuration."""

    name: str
    description: str
    duration_s: float
    time_step_s: float
    seed: Optional[int]
    environment: Dict[str, Any]
    terrain: Optional[Dict[str, Any]]
    interaction_timeouts: Dict[str, float]
    platforms: List[PlatformConfig]


class ScenarioLoader:
    """
    Loads scenarios from YAML files.

    Usage:
        loader = ScenarioLoader('scenarios/two_radars.yaml')
        config = loader.get_config()
        simulation = loader.create_simulation()
    """

    def __init__(self, filepath: Optional[str] = None):
        """
        Initialize scenario loader.

        Args:
            filepath: Path to YAML scenario file (optional)
        """
        self.filepath = filepath
        self.data: Dict[str, Any] = {}
        self._config: Optional[ScenarioConfig] = None

        if filepath:
            self.load(filepath)

    def load(self, filepath: str) -> bool:
        """
        Load scenario from YAML file.

        Raises:
            FileNotFoundError: If file doesn't exist
            ConfigurationError: If the file is not valid YAML or the scenario
                is malformed
        """
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Scenario file not found: {filepath}")

        self.filepath = filepath
        with open(filepath, "r", encoding="utf-8") as f:
            text = f.read()
        return self.load_string(text)

    def load_string(self, text: str) -> bool:
        """Load scenario from a YAML string."""
        try:
            self.data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            source = f"{self.filepath or '<string>'}:{mark.line + 1}" if mark is not None else self.filepath
            logger.error("Invalid scenario YAML: %s", exc)
            raise ConfigurationError(str(exc), source=source) from exc
        if not isinstance(self.data, dict):
            raise ConfigurationError("scenario must be a mapping", source=self.filepath)
        self._config = self._parse_config()
        return True

    def _parse_config(self) -> ScenarioConfig:
        scenario = self.data.get("scenario", {})
        time_step = float(scenario.get("time_step_s", 1.0))
        if time_step <= 0.0:
            raise ConfigurationError("must be > 0", "time_step_s", self.filepath)
        seed = scenario.get("seed")
        return ScenarioConfig(
            name=scenario.get("name", "Unnamed Scenario"),
            description=scenario.get("description", ""),
            duration_s=float(scenario.get("duration_seconds", 60.0)),
            time_step_s=time_step,
            seed=int(seed) if seed is not None else None,
            environment=dict(self.data.get("environment", {})),
            terrain=self.data.get("terrain"),
            interaction_timeouts={k: float(v) for k, v in self.data.get("interaction_timeouts", {}).items()},
            platforms=[self._parse_platform(idx, p) for idx, p in enumerate(self.data.get("platforms", []))],
        )

    def _parse_platform(self, idx: int, data: Dict[str, Any]) -> PlatformConfig:
        position = data.get("position", {})
        orientation = data.get("orientation", {})
        devices = []
        for kind, key in (("sensor", "sensors"), ("transmitter", "transmitters"), ("receiver", "receivers")):
            for dev_idx, block in enumerate(data.get(key, [])):
                devices.append(self._parse_device(kind, dev_idx, block))
        velocity = data.get("velocity_ned", [0.0, 0.0, 0.0])
        if len(velocity) != 3:
            raise ConfigurationError("expected [north, east, down]", "velocity_ned", self.filepath)
        return PlatformConfig(
            name=data.get("name", f"Platform_{idx}"),
            lat_deg=float(position.get("lat_deg", 0.0)),
            lon_deg=float(position.get("lon_deg", 0.0)),
            alt_m=float(position.get("alt_m", 0.0)),
            heading_deg=float(orientation.get("heading_deg", 0.0)),
            pitch_deg=float(orientation.get("pitch_deg", 0.0)),
            roll_deg=float(orientation.get("roll_deg", 0.0)),
            velocity_ned=np.array([float(v) for v in velocity]),
            side=data.get("side", ""),
            spatial_domain=data.get("spatial_domain", "land"),
            rcs_m2=float(data.get("rcs_m2", 0.0)),
            concealment_factor=float(data.get("concealment_factor", 0.0)),
            devices=devices,
        )

    def _parse_device(self, kind: str, idx: int, data: Dict[str, Any]) -> DeviceConfig:
        if not isinstance(data, dict):
            raise ConfigurationError(f"{kind} entry must be a mapping", kind, self.filepath)
        data = dict(data)
        part = data.pop("part", {})
        name = data.pop("name", f"{kind}_{idx}")
        return DeviceConfig(
            kind=kind,
            name=name,
            part=PartConfig(
                name=part.get("name", name),
                location_ecs=np.array([float(v) for v in part.get("location_ecs", [0.0, 0.0, 0.0])]),
                yaw_deg=float(part.get("yaw_deg", 0.0)),
                pitch_deg=float(part.get("pitch_deg", 0.0)),
                roll_deg=float(part.get("roll_deg", 0.0)),
            ),
            keywords=data,
        )

    def get_config(self) -> Optional[ScenarioConfig]:
        return self._config

    def get_scenario_name(self) -> str:
        if self._config:
            return self._config.name
        return "Unknown"

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def create_environment(self):
        """Environment (with terrain) described by the scenario."""
        from emsim.em.types import parse_enum
        from emsim.physics.terrain import TerrainQuery
        from emsim.simulation.environment import Environment, LandCover, LandForm

        config = self._require_config()
        env = Environment()
        for key, value in config.environment.items():
            if key == "land_form":
                env.land_form = parse_enum(LandForm, value, key)
            elif key == "land_cover":
                env.land_cover = parse_enum(LandCover, value, key)
            elif key == "sea_state":
                if not 0 <= int(value) <= 9:
                    raise ConfigurationError("must be in [0, 9]", key, self.filepath)
                env.sea_state = int(value)
            elif key == "wind_direction_deg":
                env.wind_direction = float(np.radians(value))
            elif key in (
                "wind_speed",
                "rain_rate_mm_hr",
                "rain_upper_level",
                "cloud_lower_level",
                "cloud_upper_level",
                "cloud_water_density",
                "earth_radius_multiplier",
            ):
                if float(value) < 0.0:
                    raise ConfigurationError("must be >= 0", key, self.filepath)
                setattr(env, key, float(value))
            else:
                raise ConfigurationError(f"unknown environment keyword '{key}'", key, self.filepath)
        if config.terrain is not None:
            env.terrain = TerrainQuery(self._create_terrain(config.terrain))
        return env

    def _create_terrain(self, data: Dict[str, Any]):
        from emsim.physics.terrain import FlatTerrain, GridTerrain, ProceduralTerrain, ProceduralTerrainConfig

        data = dict(data)
        terrain_type = data.pop("type", "flat")
        if terrain_type == "flat":
            return FlatTerrain(float(data.get("height", 0.0)))
        if terrain_type == "procedural":
            peaks = [tuple(float(v) for v in peak) for peak in data.pop("peaks", [])]
            try:
                config = ProceduralTerrainConfig(peaks=peaks, **data)
            except TypeError as exc:
                raise ConfigurationError(str(exc), "terrain", self.filepath) from exc
            return ProceduralTerrain(config)
        if terrain_type == "grid":
            try:
                return GridTerrain(data["latitudes"], data["longitudes"], np.asarray(data["heights"], dtype=float))
            except (KeyError, ValueError) as exc:
                raise ConfigurationError(f"invalid grid terrain: {exc}", "terrain", self.filepath) from exc
        raise ConfigurationError(f"unknown terrain type '{terrain_type}'", "terrain", self.filepath)

    def create_simulation(self):
        """
        Create a Simulation from the loaded scenario.

        Raises:
            ValueError: If no scenario is loaded
            ConfigurationError: If a component rejects its keywords
        """
        # Import here to avoid circular dependencies
        from emsim.components.rcvr import Rcvr
        from emsim.components.xmtr import Xmtr
        from emsim.sensors.radar_mode import RadarMode
        from emsim.simulation.platform import ArticulatedPart, Platform
        from emsim.simulation.simulation import Simulation

        config = self._require_config()
        simulation = Simulation(
            environment=self.create_environment(),
            dt=config.time_step_s,
            seed=config.seed,
            interaction_timeouts=config.interaction_timeouts,
        )

        for p_config in config.platforms:
            platform = Platform(
                p_config.name,
                p_config.lat_deg,
                p_config.lon_deg,
                p_config.alt_m,
                np.radians(p_config.heading_deg),
                np.radians(p_config.pitch_deg),
                np.radians(p_config.roll_deg),
                side=p_config.side,
                spatial_domain=p_config.spatial_domain,
            )
            platform.set_velocity_ned(p_config.velocity_ned)
            platform.set_signature("radar", p_config.rcs_m2)
            platform.concealment_factor = p_config.concealment_factor
            simulation.add_platform(platform)

            for device in p_config.devices:
                part = ArticulatedPart(
                    platform,
                    name=device.part.name,
                    location_ecs=device.part.location_ecs,
                    yaw=np.radians(device.part.yaw_deg),
                    pitch=np.radians(device.part.pitch_deg),
                    roll=np.radians(device.part.roll_deg),
                )
                if device.kind == "sensor":
                    mode = RadarMode(device.name)
                    self._apply(mode, device)
                    simulation.add_sensor(mode, part)
                elif device.kind == "transmitter":
                    xmtr = Xmtr(name=device.name)
                    self._apply(xmtr, device)
                    simulation.add_transmitter(xmtr, part)
                else:
                    rcvr = Rcvr(name=device.name)
                    self._apply(rcvr, device)
                    simulation.add_receiver(rcvr, part)

        logger.info("Created simulation '%s' with %d platforms", config.name, len(simulation.platforms))
        return simulation

    def _apply(self, component, device: DeviceConfig) -> None:
        for key, value in device.keywords.items():
            try:
                accepted = component.process_input(key, value)
            except ConfigurationError as exc:
                logger.error("%s '%s': %s", device.kind, device.name, exc)
                raise ConfigurationError(str(exc), source=self.filepath) from exc
            if not accepted:
                logger.error("%s '%s': unknown keyword '%s'", device.kind, device.name, key)
                raise ConfigurationError(f"unknown {device.kind} keyword '{key}'", key, self.filepath)

    def _require_config(self) -> ScenarioConfig:
        if not self._config:
            raise ValueError("No scenario loaded. Call load() first.")
        return self._config


def load_scenario(filepath: str) -> ScenarioConfig:
    """
    Convenience function to load a scenario file.

    Args:
        filepath: Path to YAML scenario file

    Returns:
        ScenarioConfig instance
    """
    loader = ScenarioLoader(filepath)
    return loader.get_config()
