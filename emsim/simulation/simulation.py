"""
Simulation

Time-stepping driver tying the EM engine together:

    1. Platforms are advanced to the new time (constant velocity).
    2. Events due by the new time are processed (alternate-frequency
       settling, transmission end, interaction-line timeouts).
    3. Every selected radar mode attempts to detect every other platform;
       close targets are merged and the results are logged.

Devices are registered with one EM manager per simulation, so receivers see
only transmitters of the same simulation.

Reference: Skolnik, "Radar Handbook", 3rd Ed., Chapter 2
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from emsim.em.manager import EMManager
from emsim.errors import ConfigurationError
from emsim.physics.constants import EARTH_RADIUS, RAD_TO_DEG, linear_to_db
from emsim.simulation.environment import Environment
from emsim.simulation.events import EventQueue, InteractionLineObserver

logger = logging.getLogger(__name__)


@dataclass
class DetectionRecord:
    """
    Outcome of one detection attempt.

    Contains both truth and (for detections) measured data.
    """

    time: float
    sensor: str
    sensor_platform: int
    target_id: int
    target_name: str
    detected: bool
    pd: float
    snr_db: float
    true_range_m: float
    true_azimuth_rad: float
    true_elevation_rad: float
    failed_status: int
    measurement: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "sensor": self.sensor,
            "sensor_platform": self.sensor_platform,
            "target_id": self.target_id,
            "target_name": self.target_name,
            "detected": self.detected,
            "pd": self.pd,
            "snr_db": self.snr_db,
            "true_range_m": self.true_range_m,
            "true_azimuth_rad": self.true_azimuth_rad,
            "true_elevation_rad": self.true_elevation_rad,
            "failed_status": self.failed_status,
            "measurement": self.measurement,
        }


@dataclass
class SimulationLog:
    """All detection records of a run."""

    records: List[DetectionRecord] = field(default_factory=list)
    total_opportunities: int = 0
    total_detections: int = 0

    @property
    def detection_ratio(self) -> float:
        if self.total_opportunities == 0:
            return 0.0
        return self.total_detections / self.total_opportunities

    def add_record(self, record: DetectionRecord) -> None:
        self.records.append(record)
        self.total_opportunities += 1
        if record.detected:
            self.total_detections += 1

    def get_target_history(self, target_id: int) -> List[DetectionRecord]:
        return [r for r in self.records if r.target_id == target_id]


@dataclass
class _SensorEntry:
    mode: Any
    platform: Any
    selected: bool = True


class Simulation:
    """
    Owner of the platforms, devices and shared services of one run.

    Attributes:
        environment: Shared environmental conditions
        manager: EM manager for this simulation
        event_queue: Timed events processed at step boundaries
        observer: Interaction-line observer receiving begin/end events
        rng: Random stream for detection draws and measurement errors
        dt: Default time step [s]
    """

    def __init__(
        self,
        environment: Optional[Environment] = None,
        dt: float = 1.0,
        seed: Optional[int] = None,
        interaction_timeouts: Optional[Dict[str, float]] = None,
    ) -> None:
        if dt <= 0.0:
            raise ConfigurationError("time step must be > 0", "dt")
        self.environment = environment if environment is not None else Environment()
        self.dt = dt
        self.current_time = 0.0
        self.manager = EMManager()
        self.event_queue = EventQueue()
        self.observer = InteractionLineObserver(self.event_queue, interaction_timeouts)
        self.rng = np.random.default_rng(seed)
        self.platforms: list = []
        self._sensors: List[_SensorEntry] = []
        self.log = SimulationLog()

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def add_platform(self, platform) -> None:
        if platform in self.platforms:
            return
        if platform.terrain is None:
            platform.terrain = self.environment.get_terrain()
        self.platforms.append(platform)

    def add_sensor(self, mode, part, select: bool = True) -> None:
        """
        Initialize a radar mode on an articulated part and (optionally)
        select it.

        Raises:
            ConfigurationError: If the mode fails to initialize
        """
        self.add_platform(part.platform)
        mode.environment = self.environment
        mode.event_queue = self.event_queue
        mode.rng = self.rng
        mode.observer = self.observer
        mode.initialize(part, self.current_time)
        entry = _SensorEntry(mode, part.platform, False)
        self._sensors.append(entry)
        if select:
            self.select_sensor(mode)

    def select_sensor(self, mode) -> None:
        entry = self._entry(mode)
        if not entry.selected:
            mode.select(self.current_time, self.manager)
            entry.selected = True

    def deselect_sensor(self, mode) -> None:
        entry = self._entry(mode)
        if entry.selected:
            mode.deselect(self.current_time)
            entry.selected = False

    def _entry(self, mode) -> _SensorEntry:
        for entry in self._sensors:
            if entry.mode is mode:
                return entry
        raise ConfigurationError(f"{mode!r} is not part of the simulation", "sensor")

    def add_transmitter(self, xmtr, part=None) -> None:
        """Initialize and activate a stand-alone (comm or interferer) transmitter."""
        if part is not None:
            self.add_platform(part.platform)
        xmtr.initialize(part)
        xmtr.activate(self.manager)
        if xmtr.transmission_end_time is not None:
            self.schedule_transmission_end(xmtr, xmtr.transmission_end_time)

    def add_receiver(self, rcvr, part=None) -> None:
        """Initialize and activate a stand-alone (comm or passive) receiver."""
        if part is not None:
            self.add_platform(part.platform)
        rcvr.initialize(part)
        rcvr.activate(self.manager)

    def schedule_transmission_end(self, xmtr, end_time: float):
        """Deactivate a transmitter when its transmission ends."""
        xmtr.transmission_end_time = end_time
        return self.event_queue.schedule(end_time, self._end_transmission, xmtr, name="transmission_end")

    def _end_transmission(self, sim_time: float, xmtr) -> None:
        if xmtr.transmission_end_time is None or xmtr.transmission_end_time > sim_time:
            return
        xmtr.transmission_end_time = None
        xmtr.deactivate()
        logger.debug("Transmission of %s ended at t=%.3f", xmtr, sim_time)

    # -------------------------------------------------------------------------
    # Time stepping
    # -------------------------------------------------------------------------

    def step(self, dt: Optional[float] = None) -> List[DetectionRecord]:
        """
        Advance the simulation by one time step.

        Returns:
            Records of the detection attempts made during the step
        """
        if dt is None:
            dt = self.dt
        self.current_time += dt
        now = self.current_time

        for platform in self.platforms:
            platform.update(now)
        self.event_queue.process(now)

        records = []
        for entry in self._sensors:
            if not entry.selected:
                continue
            mode = entry.mode
            results = []
            for target in self.platforms:
                if target is entry.platform:
                    continue
                _, result = mode.attempt_to_detect(now, target)
                results.append(result)
            reported = {id(result) for result in mode.resolve_close_targets(results)}
            for result in results:
                record = self._record(now, mode, entry.platform, result, id(result) in reported)
                self.log.add_record(record)
                records.append(record)
        return records

    def run(self, duration_s: float) -> SimulationLog:
        """Run for a duration and return the log."""
        n_steps = int(round(duration_s / self.dt))
        for _ in range(n_steps):
            self.step()
        logger.info(
            "Simulation ran %d steps to t=%.3f: %d/%d detections",
            n_steps,
            self.current_time,
            self.log.total_detections,
            self.log.total_opportunities,
        )
        return self.log

    def _record(self, now: float, mode, platform, result, reported: bool) -> DetectionRecord:
        target = result.target
        detected = bool(result.detected and reported)
        snr = result.signal_to_noise
        return DetectionRecord(
            time=now,
            sensor=mode.name,
            sensor_platform=platform.index,
            target_id=target.index if target is not None else -1,
            target_name=target.name if target is not None else "",
            detected=detected,
            pd=float(result.pd),
            snr_db=linear_to_db(snr) if snr > 0.0 else float("-inf"),
            true_range_m=float(result.rcvr_to_tgt.range),
            true_azimuth_rad=float(result.rcvr_to_tgt.true_az),
            true_elevation_rad=float(result.rcvr_to_tgt.true_el),
            failed_status=int(result.failed_status),
            measurement=result.measurement.to_dict() if detected else None,
        )


# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================


def validate_detection_range(simulation: Simulation, mode, target, ranges_m: List[float]) -> dict:
    """
    Record Pd and detection outcome against a target placed at several
    ranges due north of the sensor platform.

    Pd should not increase with range.
    """
    sensor_platform = simulation._entry(mode).platform
    lat, lon, alt = sensor_platform.get_location_lla()
    pds = []
    for range_m in ranges_m:
        target.set_location_lla(lat + range_m / EARTH_RADIUS * RAD_TO_DEG, lon, target.get_location_lla()[2])
        _, result = mode.attempt_to_detect(simulation.current_time, target)
        pds.append(float(result.pd))
    is_monotonic = all(a >= b - 1.0e-9 for a, b in zip(pds, pds[1:]))
    return {
        "parameters": {"ranges_m": list(ranges_m), "sensor_altitude_m": alt},
        "computed_values": {"pd": pds},
        "validation": {
            "is_valid": is_monotonic,
            "reference": "Pd is non-increasing with range for a fixed RCS",
        },
    }
