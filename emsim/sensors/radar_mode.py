"""
Radar Mode

A set of beams operated together, with the decision logic applied on top of
the beams' probability of detection:

    1. Concealed targets (concealment factor > 0.99) cannot be detected.
    2. Beam 1 is evaluated, then any further beams; the beam with the best
       signal-to-noise provides the result.
    3. The terrain gates run once the signal gate has passed.
    4. A detection is declared when Pd exceeds a uniform draw and, if
       'hits_to_establish_track M N' is set, at least M of the last N
       attempts on the target were hits.
    5. Measurement errors are sampled for declared detections.

Frequency agility: a change to an alternate frequency is applied after the
'frequency_change_delay' settling time, counted from the later of now and
the last change. All beams switch together and the change listeners of the
first beam's transmitter are notified.

Close targets: detections whose azimuth, elevation and range separations
are all inside the 'close_target_resolution' cell are reported as one
(the strongest). The separations are taken from truth or from the
measurements depending on 'close_target_use_truth'.

References:
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 7 (tracking, M-of-N)
    - Barton, "Radar System Analysis and Modeling", Artech House, 2005
"""

import copy
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

import numpy as np

from emsim.em.types import CONCEALMENT, STATUS_MASK, Status
from emsim.errors import ConfigurationError
from emsim.sensors.radar_beam import RadarBeam, SensorResult

logger = logging.getLogger(__name__)

CONCEALMENT_THRESHOLD: float = 0.99
"""Concealment factor above which a target cannot be detected"""


@dataclass
class CloseTargetResolution:
    """
    Resolution cell for distinguishing adjacent targets.

    A separation of 0 on an axis means that axis never separates targets.
    """

    azimuth: float = 0.0
    elevation: float = 0.0
    range: float = 0.0

    def is_set(self) -> bool:
        return self.azimuth > 0.0 or self.elevation > 0.0 or self.range > 0.0


class RadarMode:
    """
    Operating mode of a radar sensor.

    Attributes:
        name: Mode name
        beams: Beams of the mode (beam 1 is created implicitly)
        required_pd: Pd needed to pass the signal gate
        hits_to_establish_track: (M, N) history criterion, or None
        frame_time: Time to complete one scan [s]
        dwell_time: Time on target for a tracking mode [s] (0 = scanning)
        can_transmit: False for a receive-only (bistatic) mode
        can_receive: False for a transmit-only mode
        frequency_change_delay: Settling time before an alternate frequency
            takes effect [s]
        compute_measurement_errors: Sample measurement errors for detections
        override_measurement_with_truth: Report sigmas but apply no error
        close_target_resolution: Resolution cell for close targets
        close_target_use_truth: Judge close-target separation on truth
    """

    def __init__(
        self,
        name: str = "default",
        environment=None,
        event_queue=None,
        rng: Optional[np.random.Generator] = None,
        observer=None,
    ) -> None:
        self.name = name
        self.environment = environment
        self.event_queue = event_queue
        self.rng = rng if rng is not None else np.random.default_rng()
        self.observer = observer

        self.beams: List[RadarBeam] = [RadarBeam(index=0)]
        self._implicit_beam_used = False
        self._explicit_beam_used = False

        self.required_pd = 0.5
        self.hits_to_establish_track: Optional[Tuple[int, int]] = None
        self.frame_time = 0.0
        self.dwell_time = 0.0
        self.can_transmit = True
        self.can_receive = True
        self.frequency_change_delay = 0.0
        self.compute_measurement_errors = True
        self.override_measurement_with_truth = False
        self.masking_factor_floor = 0.0

        self.close_target_resolution = CloseTargetResolution()
        self.close_target_use_truth = False

        self.maximum_range = 0.0
        self.is_frequency_agile = False
        self.alt_freq_change_scheduled = False
        self.last_alt_freq_select_time = 0.0

        self._histories: Dict[int, Deque[bool]] = {}
        self._established: Dict[int, bool] = {}

    def __repr__(self) -> str:
        return f"RadarMode('{self.name}', beams={len(self.beams)})"

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def process_input(self, command: str, value: Any) -> bool:
        """
        Apply one mode keyword.

        'beam' takes {'number': n, ...keywords}; a new beam (number one past
        the last, the default) starts as a copy of beam 1. Any other keyword
        not known to the mode is applied to the implicit beam 1, which
        cannot be mixed with explicit beams.
        """
        if command == "beam":
            self._process_beam_input(value)
        elif command == "beams":
            for block in value:
                self._process_beam_input(block)
        elif command == "required_pd":
            if not 0.0 < value <= 1.0:
                raise ConfigurationError("must be in (0, 1]", command)
            self.required_pd = float(value)
        elif command == "hits_to_establish_track":
            hits, window = int(value[0]), int(value[1])
            if hits < 1 or window < hits:
                raise ConfigurationError("expected M N with 1 <= M <= N", command)
            self.hits_to_establish_track = (hits, window)
        elif command == "frame_time":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.frame_time = float(value)
        elif command == "dwell_time":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.dwell_time = float(value)
        elif command == "receive_only":
            self.can_transmit, self.can_receive = False, True
        elif command == "transmit_only":
            self.can_transmit, self.can_receive = True, False
        elif command in ("frequency_change_delay", "frequency_select_delay"):
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.frequency_change_delay = float(value)
        elif command == "compute_measurement_errors":
            self.compute_measurement_errors = bool(value)
        elif command == "override_measurement_with_truth":
            self.override_measurement_with_truth = bool(value)
        elif command == "masking_factor_floor":
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError("must be in [0, 1]", command)
            self.masking_factor_floor = float(value)
        elif command == "close_target_resolution":
            self.close_target_resolution = CloseTargetResolution(
                azimuth=float(np.radians(value.get("azimuth", 0.0))),
                elevation=float(np.radians(value.get("elevation", 0.0))),
                range=float(value.get("range", 0.0)),
            )
        elif command == "close_target_use_truth":
            self.close_target_use_truth = bool(value)
        elif self.beams[0].process_input(command, value):
            if self._explicit_beam_used:
                raise ConfigurationError(
                    "implicit beam keywords cannot be used once an explicit 'beam' is defined", command
                )
            self._implicit_beam_used = True
        else:
            return False
        return True

    def _process_beam_input(self, block: Any) -> None:
        if self._implicit_beam_used:
            raise ConfigurationError(
                "'beam' cannot be used after beam keywords were given at mode level", "beam"
            )
        if not isinstance(block, dict):
            raise ConfigurationError("expected a mapping", "beam")
        default_number = len(self.beams) + 1 if self._explicit_beam_used else 1
        self._explicit_beam_used = True
        number = int(block.get("number", default_number))
        if not 1 <= number <= len(self.beams) + 1:
            raise ConfigurationError(f"beam number must be in [1, {len(self.beams) + 1}]", "beam")
        if number == len(self.beams) + 1:
            beam = copy.deepcopy(self.beams[0])
            beam.index = number - 1
            self.beams.append(beam)
        beam = self.beams[number - 1]
        for key, value in block.items():
            if key == "number":
                continue
            if not beam.process_input(key, value):
                raise ConfigurationError(f"unknown beam keyword '{key}'", "beam")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self, part, sim_time: float = 0.0) -> None:
        """
        Initialize every beam on the articulated part.

        Raises:
            ConfigurationError: If a beam fails to initialize
        """
        if not self.can_receive and self.frame_time == 0.0:
            self.frame_time = 1000.0
        self.maximum_range = 0.0
        self.is_frequency_agile = False
        for beam in self.beams:
            beam.initialize(part, self.required_pd, self.can_transmit, self.can_receive)
            self.maximum_range = max(self.maximum_range, beam.antenna.max_range)
            if self.can_transmit and beam.xmtr.get_alternate_frequency_count() > 0:
                self.is_frequency_agile = True
        self.last_alt_freq_select_time = sim_time
        logger.info("Initialized %r: max range %.1f m, agile=%s", self, self.maximum_range, self.is_frequency_agile)

    def select(self, sim_time: float, manager) -> None:
        """Activate the beams' devices with the EM manager."""
        for beam in self.beams:
            if self.can_receive:
                beam.rcvr.activate(manager)
            if self.can_transmit:
                beam.xmtr.activate(manager)
        if self.can_transmit:
            self._notify_frequency_change(sim_time)

    def deselect(self, sim_time: float = 0.0) -> None:
        for beam in self.beams:
            if self.can_receive:
                beam.rcvr.deactivate()
            if self.can_transmit:
                beam.xmtr.deactivate()

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    def attempt_to_detect(self, sim_time: float, target, lockon_time: float = -1.0) -> Tuple[bool, SensorResult]:
        """
        Attempt to detect a target with every beam of the mode.

        Returns:
            Tuple of (detected, result of the best beam)
        """
        result = self._new_result(0)
        if not self.can_receive:
            return False, result

        first = self.beams[0]
        if getattr(target, "concealment_factor", 0.0) > CONCEALMENT_THRESHOLD:
            result.begin_generic(first.xmtr, target, first.rcvr)
            result.checked_status |= CONCEALMENT
            result.failed_status |= CONCEALMENT
            self._update_history(target, False)
            return False, result

        first.attempt_to_detect(sim_time, target, result, lockon_time)
        self._finish_beam(sim_time, result)
        for beam in self.beams[1:]:
            trial = self._new_result(beam.index)
            beam.attempt_to_detect(sim_time, target, trial, lockon_time)
            self._finish_beam(sim_time, trial)
            if trial.signal_to_noise > result.signal_to_noise:
                result = trial

        detected = result.failed_status == 0 and result.pd > self.rng.random()
        detected = self._update_history(target, detected)
        result.detected = detected
        if detected:
            self.apply_measurement_errors(sim_time, result)
        logger.debug(
            "%r t=%.3f target %s: %s (Pd %.3f, S/N %.2f)",
            self,
            sim_time,
            getattr(target, "name", target),
            "detected" if detected else "not detected",
            result.pd,
            result.signal_to_noise,
        )
        return detected, result

    def _new_result(self, beam_index: int) -> SensorResult:
        result = SensorResult(self.environment, self.observer, self.required_pd, beam_index)
        result.masking_factor_floor = self.masking_factor_floor
        return result

    def _finish_beam(self, sim_time: float, result: SensorResult) -> None:
        terrain_bits = Status.RCVR_TERRAIN_MASKING | Status.XMTR_TERRAIN_MASKING
        if result.failed_status == 0 and not result.checked_status & terrain_bits:
            result.check_terrain_masking()
        if result.xmtr is not None and result.xmtr_loc.is_valid:
            result.xmtr.notify_listeners(sim_time, result)

    def _update_history(self, target, hit: bool) -> bool:
        """Record the attempt; True if the M-of-N criterion allows a report."""
        if self.hits_to_establish_track is None:
            return hit
        hits, window = self.hits_to_establish_track
        history = self._histories.setdefault(target.index, deque(maxlen=window))
        history.append(hit)
        if not hit:
            if sum(history) == 0:
                self._established[target.index] = False
            return False
        if not self._established.get(target.index, False) and sum(history) >= hits:
            self._established[target.index] = True
        return self._established.get(target.index, False)

    def is_track_established(self, target) -> bool:
        return self._established.get(target.index, False)

    def reset_history(self, target=None) -> None:
        if target is None:
            self._histories.clear()
            self._established.clear()
        else:
            self._histories.pop(target.index, None)
            self._established.pop(target.index, None)

    def apply_measurement_errors(self, sim_time: float, result: SensorResult) -> None:
        """
        Fill in the measurement of a detection.

        Errors are sampled from the beam's error model and added to the
        true receiver-relative range and angles.
        """
        az_error = el_error = range_error = rr_error = 0.0
        beam = self.beams[result.beam_index]
        if self.compute_measurement_errors and result.signal_to_noise > 0.0:
            az_error, el_error, range_error, rr_error = beam.compute_measurement_errors(result, self.rng)
        if self.override_measurement_with_truth:
            az_error = el_error = range_error = rr_error = 0.0

        measurement = result.measurement
        measurement.update_time = sim_time
        measurement.range = result.rcvr_to_tgt.range + range_error
        measurement.azimuth = result.rcvr_to_tgt.true_az + az_error
        measurement.elevation = result.rcvr_to_tgt.true_el + el_error
        antenna = result.rcvr.antenna
        direction_pcs = np.array(
            [
                np.cos(measurement.elevation) * np.cos(measurement.azimuth),
                np.cos(measurement.elevation) * np.sin(measurement.azimuth),
                -np.sin(measurement.elevation),
            ]
        )
        measurement.location_wcs = (
            antenna.get_location_wcs() + antenna.part.wcs_to_pcs_transform().T @ direction_pcs * measurement.range
        )
        if beam.doppler_resolution > 0.0:
            measurement.range_rate = result.compute_target_doppler_speed() + rr_error
            measurement.range_rate_valid = True

    # -------------------------------------------------------------------------
    # Close targets
    # -------------------------------------------------------------------------

    def resolve_close_targets(self, results: List[SensorResult]) -> List[SensorResult]:
        """
        Merge detections that fall inside one resolution cell.

        Detections are visited strongest first; a weaker detection inside
        the cell of an already reported one is dropped.

        Returns:
            The detections that remain reportable
        """
        detections = [result for result in results if result.detected]
        if not self.close_target_resolution.is_set():
            return detections
        detections.sort(key=lambda result: result.signal_to_noise, reverse=True)
        reported: List[SensorResult] = []
        for result in detections:
            if any(self._unresolved(result, other) for other in reported):
                logger.debug("%r: %s merged with a stronger close target", self, result.target)
                continue
            reported.append(result)
        return reported

    def _position(self, result: SensorResult) -> Tuple[float, float, float]:
        if self.close_target_use_truth:
            return result.rcvr_to_tgt.true_az, result.rcvr_to_tgt.true_el, result.rcvr_to_tgt.range
        measurement = result.measurement
        return measurement.azimuth, measurement.elevation, measurement.range

    def _unresolved(self, first: SensorResult, second: SensorResult) -> bool:
        cell = self.close_target_resolution
        az1, el1, r1 = self._position(first)
        az2, el2, r2 = self._position(second)
        d_az = abs((az1 - az2 + np.pi) % (2.0 * np.pi) - np.pi)
        checks = (
            (cell.azimuth, d_az),
            (cell.elevation, abs(el1 - el2)),
            (cell.range, abs(r1 - r2)),
        )
        return all(delta < limit for limit, delta in checks if limit > 0.0)

    # -------------------------------------------------------------------------
    # Frequency agility
    # -------------------------------------------------------------------------

    def schedule_alternate_frequency_change(self, sim_time: float, alt_id: int = -1) -> float:
        """
        Queue a change to an alternate frequency after the settling delay.

        Without an event queue the change is applied immediately.

        Returns:
            Simulation time at which the change takes effect
        """
        change_time = max(sim_time, self.last_alt_freq_select_time) + self.frequency_change_delay
        self.alt_freq_change_scheduled = True
        if self.event_queue is None:
            self.select_alternate_frequency(change_time, alt_id)
        else:
            self.event_queue.schedule(change_time, self.select_alternate_frequency, alt_id, name="alt_frequency_change")
        return change_time

    def select_alternate_frequency(self, sim_time: float, alt_id: int = -1) -> None:
        """Switch every beam to an alternate frequency (next one if alt_id < 0)."""
        for beam in self.beams:
            xmtr = beam.xmtr
            beam_id = alt_id if alt_id >= 0 else xmtr.current_alternate_frequency_id + 1
            xmtr.select_alternate_frequency(beam_id)
        self._notify_frequency_change(sim_time)
        self.last_alt_freq_select_time = sim_time
        self.alt_freq_change_scheduled = False
        logger.debug("%r: frequency %.6g Hz at t=%.3f", self, self.beams[0].xmtr.frequency, sim_time)

    def _notify_frequency_change(self, sim_time: float) -> None:
        xmtr = self.beams[0].xmtr
        platform = xmtr.platform
        xmtr.notify_change_listeners(sim_time, platform.index if platform is not None else None)


def failed_gates(result: SensorResult) -> List[str]:
    """Names of the failed gates of a result, including concealment."""
    failed = int(result.failed_status)
    names = [member.name for member in Status if member.value and failed & STATUS_MASK & member.value]
    if failed & CONCEALMENT:
        names.append("CONCEALMENT")
    return names
