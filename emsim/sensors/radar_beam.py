"""
Radar Beam

One transmitter/receiver pair of a radar mode and the policy that turns an
interaction into a probability of detection.

Detection attempt:
    Pr' = Pr · PCR · G_int · K_adj          (pulse compression, integration,
                                              general adjustment)
    SNR = Pr' / (N + C·K_clutter + I)
    Pd  = detector(SNR) · (1 − interference_factor)

The signal gate fails when Pd is below the mode's required Pd.

Calibration (noise power derived from a reference performance):
    one_m2_detect_range R₁:  N = Pt·Gt/Lt/(4πR₁²) · 1 m² /(4πR₁²) · λ²/(4π)·Gr/Lr
                                 · PCR · G_int · K_adj / SNR_threshold
    loop_gain L:             N = λ²/(4π)³ · Pt·Gt·Gr/(Lt·Lr) / L

Integration gain: with a statistical detector the threshold SNR is solved
twice, for N integrated pulses and for a single pulse; the ratio of the two
is the integration gain applied to the single-pulse signal, and the
single-pulse threshold becomes the receiver detection threshold.

Measurement errors (Gaussian, σ scaled by the integrated SNR):
    σ_az = θ_az / √(2N·SNR)     σ_el = θ_el / √(2N·SNR)
    σ_R  = τ·c / (2√(2N·SNR))   σ_Ṙ  = Δv_doppler / (2√(2N·SNR))

References:
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 2 (detection) and
      Chapter 1 (radar equation)
    - Barton, "Radar System Analysis and Modeling", Artech House, 2005,
      Chapter 18 (measurement accuracy)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

import numpy as np

from emsim.components.rcvr import Rcvr
from emsim.components.xmtr import Xmtr
from emsim.em.clutter import clutter_model_from_input
from emsim.em.interaction import Interaction
from emsim.em.types import RcvrFunction, ScanMode, Status, XmtrFunction
from emsim.errors import ConfigurationError, ProgrammingError
from emsim.physics.constants import FOUR_PI, SPEED_OF_LIGHT, db_to_linear, linear_to_db
from emsim.sensors.detection import (
    BinaryDetector,
    DetectionProbabilityTable,
    MarcumSwerlingDetector,
    clamp_required_pd,
    detector_from_input,
    solve_detection_threshold,
)

logger = logging.getLogger(__name__)

# Keywords applied to both the transmitter and the receiver of a beam
_SHARED_KEYWORDS = (
    "antenna_pattern",
    "antenna_pattern_table",
    "beam_tilt",
    "bandwidth",
    "earth_radius_multiplier",
)


# =============================================================================
# RESULT CONTAINERS
# =============================================================================


@dataclass
class Measurement:
    """
    Reported target measurement and its one-sigma errors.

    Angles are receiver-relative true az/el plus the sampled error; the
    reported location is the receiver antenna location offset along the
    measured direction.
    """

    update_time: float = 0.0
    range: float = 0.0
    azimuth: float = 0.0
    elevation: float = 0.0
    range_rate: float = 0.0
    range_rate_valid: bool = False
    location_wcs: np.ndarray = field(default_factory=lambda: np.zeros(3))

    range_error: float = 0.0
    azimuth_error: float = 0.0
    elevation_error: float = 0.0
    range_rate_error: float = 0.0

    def to_dict(self) -> dict:
        return {
            "time": self.update_time,
            "range_m": self.range,
            "azimuth_deg": np.degrees(self.azimuth),
            "elevation_deg": np.degrees(self.elevation),
            "range_rate_mps": self.range_rate if self.range_rate_valid else None,
            "range_sigma_m": self.range_error,
            "azimuth_sigma_deg": np.degrees(self.azimuth_error),
            "elevation_sigma_deg": np.degrees(self.elevation_error),
        }


class SensorResult(Interaction):
    """
    Interaction extended with the detection outcome.

    Attributes:
        pd: Probability of detection of the attempt
        required_pd: Pd needed to pass the signal gate
        beam_index: Beam that produced the result
        detected: True once the mode declared a detection
        measurement: Measured position (valid when detected)
    """

    def __init__(self, environment=None, observer=None, required_pd: float = 0.5, beam_index: int = 0) -> None:
        super().__init__(environment, observer)
        self.required_pd = required_pd
        self.beam_index = beam_index

    def reset(self) -> None:
        super().reset()
        self.pd = 0.0
        self.detected = False
        self.measurement = Measurement()

    def format_lines(self):
        lines = super().format_lines()
        if self.pd > 0.0 or self.checked_status & Status.SIGNAL_LEVEL:
            lines.insert(-1, f"  Pd: {self.pd:.4f} Required_Pd: {self.required_pd:.4f}")
        return lines


# =============================================================================
# RADAR BEAM
# =============================================================================


class RadarBeam:
    """
    Transmitter/receiver pair of a radar mode plus its detection policy.

    The transmitter and receiver share one antenna (monostatic). A beam of a
    receive-only mode listens to the sensor transmitters the EM manager
    links to its receiver (bistatic).

    Attributes:
        xmtr: Transmitter of the beam
        rcvr: Receiver of the beam
        one_m2_detect_range: Free-space range at which a 1 m² target reaches
            the detection threshold (calibrates the noise power; 0 = unused)
        loop_gain: Radar loop gain used to calibrate the noise power
        integration_gain: Gain applied to the single-pulse signal
        adjustment_factor: General post-reception adjustment
        number_of_pulses_integrated: Pulses integrated by the detector
        doppler_resolution: Velocity resolution [m/s] (0 = no range rate)
        clutter_model: Surface clutter model, or None
        clutter_attenuation_factor: Clutter suppression (MTI/Doppler) ∈ [0, 1]
        look_down_factor: Signal factor when the target is below the antenna
        prf_factor: Signal factor when the target is in the mainlobe clutter
            Doppler region (|closing speed| < own speed)
    """

    def __init__(self, xmtr: Optional[Xmtr] = None, rcvr: Optional[Rcvr] = None, index: int = 0) -> None:
        self.index = index
        self.xmtr = xmtr if xmtr is not None else Xmtr(XmtrFunction.SENSOR, name=f"beam_{index + 1}_xmtr")
        if rcvr is None:
            rcvr = Rcvr(RcvrFunction.SENSOR, antenna=self.xmtr.antenna, name=f"beam_{index + 1}_rcvr")
        self.rcvr = rcvr
        self.xmtr.set_linked_receiver(self.rcvr)

        self.can_transmit = True
        self.can_receive = True

        self.one_m2_detect_range = 0.0
        self.loop_gain = 0.0
        self.integration_gain = 1.0
        self.adjustment_factor = 1.0
        self.number_of_pulses_integrated = 1
        self.doppler_resolution = 0.0
        self.look_down_factor = 1.0
        self.prf_factor = 1.0
        self.post_lockon_detection_threshold_adjustment = 1.0
        self.post_lockon_adjustment_delay_time = 0.0

        self.detector = MarcumSwerlingDetector()
        self.use_detector = False
        self.probability_table: Optional[DetectionProbabilityTable] = None

        self.clutter_model = None
        self.clutter_attenuation_factor = 1.0

        # Error model overrides (< 0 = derive from the beam)
        self.error_model_azimuth_beamwidth = -1.0
        self.error_model_elevation_beamwidth = -1.0
        self.error_model_pulse_width = -1.0
        self.error_model_doppler_resolution = -1.0

    def __repr__(self) -> str:
        return f"RadarBeam({self.index + 1}, xmtr={self.xmtr!r})"

    @property
    def antenna(self):
        return self.rcvr.antenna

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def process_input(self, command: str, value: Any) -> bool:
        """
        Apply one beam keyword.

        Unknown keywords are offered to the transmitter, then the receiver
        (and through them the antenna). 'transmitter' and 'receiver' take a
        mapping of keywords for that side only.
        """
        if command == "transmitter":
            _apply_block(self.xmtr, value, command)
        elif command == "receiver":
            _apply_block(self.rcvr, value, command)
        elif command in _SHARED_KEYWORDS:
            self.xmtr.process_input(command, value)
            self.rcvr.process_input(command, value)
        elif command == "clutter_model":
            self.clutter_model = clutter_model_from_input(value)
        elif command == "doppler_resolution":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.doppler_resolution = float(value)
        elif command == "integration_gain":
            if value < 1.0:
                raise ConfigurationError("must be >= 1", command)
            self.integration_gain = float(value)
            self.use_detector = False
        elif command == "integration_gain_db":
            if value < 0.0:
                raise ConfigurationError("must be >= 0 dB", command)
            self.integration_gain = db_to_linear(value)
            self.use_detector = False
        elif command == "adjustment_factor":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.adjustment_factor = float(value)
        elif command == "operating_loss":
            if value < 1.0:
                raise ConfigurationError("must be >= 1", command)
            self.adjustment_factor = 1.0 / value
        elif command in ("detection_threshold", "detection_threshold_db"):
            threshold = db_to_linear(value) if command.endswith("_db") else value
            if threshold <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.rcvr.detection_threshold = float(threshold)
            self.use_detector = False
            self.probability_table = None
        elif command == "post_lockon_detection_threshold_adjustment":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.post_lockon_detection_threshold_adjustment = float(value)
        elif command == "post_lockon_adjustment_delay_time":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.post_lockon_adjustment_delay_time = float(value)
        elif command == "number_of_pulses_integrated":
            if int(value) < 1:
                raise ConfigurationError("must be >= 1", command)
            self.number_of_pulses_integrated = int(value)
        elif command == "detection_probability":
            self.probability_table = DetectionProbabilityTable()
            self.probability_table.process_input(command, value)
            self.use_detector = False
        elif command == "probability_of_false_alarm":
            self.detector.process_input(command, value)
        elif command == "swerling_case":
            self.detector.process_input(command, value)
            self.use_detector = True
            self.probability_table = None
        elif command == "no_swerling_case":
            self.use_detector = False
            self.probability_table = None
        elif command == "detector":
            self._set_detector(detector_from_input(value))
        elif command == "error_model_parameters":
            self._process_error_model_input(value)
        elif command == "one_m2_detect_range":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.one_m2_detect_range = float(value)
            self.loop_gain = 0.0
        elif command in ("range_product", "range_product_db"):
            # rcs · detect_range⁴ [m⁴]
            product = db_to_linear(value) if command.endswith("_db") else value
            if product <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.one_m2_detect_range = float(product) ** 0.25
            self.loop_gain = 0.0
        elif command in ("loop_gain", "loop_gain_db"):
            gain = db_to_linear(value) if command.endswith("_db") else value
            if gain <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.loop_gain = float(gain)
            self.one_m2_detect_range = 0.0
        elif command == "look_down_factor":
            self.look_down_factor = float(value)
        elif command == "prf_factor":
            self.prf_factor = float(value)
        elif command == "clutter_attenuation_factor":
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError("must be in [0, 1]", command)
            self.clutter_attenuation_factor = float(value)
        elif self.xmtr.process_input(command, value):
            pass
        else:
            return self.rcvr.process_input(command, value)
        return True

    def _set_detector(self, detector) -> None:
        if isinstance(detector, DetectionProbabilityTable):
            self.probability_table = detector
            self.use_detector = False
        elif isinstance(detector, BinaryDetector):
            self.rcvr.detection_threshold = detector.detection_threshold
            self.probability_table = None
            self.use_detector = False
        else:
            self.detector = detector
            self.number_of_pulses_integrated = detector.number_of_pulses_integrated
            self.probability_table = None
            self.use_detector = True

    def _process_error_model_input(self, block: Any) -> None:
        if not isinstance(block, dict):
            raise ConfigurationError("expected a mapping", "error_model_parameters")
        for key, value in block.items():
            if value <= 0.0:
                raise ConfigurationError("must be > 0", key)
            if key == "azimuth_beamwidth":
                self.error_model_azimuth_beamwidth = float(np.radians(value))
            elif key == "elevation_beamwidth":
                self.error_model_elevation_beamwidth = float(np.radians(value))
            elif key == "pulse_width":
                self.error_model_pulse_width = float(value)
            elif key == "receiver_bandwidth":
                # Matched filter
                self.error_model_pulse_width = 1.0 / value
            elif key == "doppler_resolution":
                self.error_model_doppler_resolution = float(value)
            else:
                raise ConfigurationError(f"unknown error model keyword '{key}'", "error_model_parameters")

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def initialize(
        self, part, required_pd: float = 0.5, can_transmit: bool = True, can_receive: bool = True
    ) -> None:
        """
        Initialize the devices, the detector and the calibration.

        Raises:
            ConfigurationError: If a device or the clutter model is invalid
        """
        self.can_transmit = can_transmit
        self.can_receive = can_receive
        if not can_transmit:
            # Receive-only: the receiver listens to other sensor transmitters
            self.xmtr.linked_rcvr = None
            self.rcvr.linked_xmtr = None
        if part is not None:
            self.antenna.initialize(part)
        if can_transmit:
            self.xmtr.initialize()
        if can_receive:
            self.rcvr.initialize()
            self.rcvr.update_noise_power(self.xmtr.pulse_width)
            self.initialize_detector(required_pd)
            if self.clutter_model is not None:
                if self.clutter_model.is_null_model():
                    self.clutter_model = None
                else:
                    self.clutter_model.initialize(self.rcvr)
        if can_transmit and can_receive:
            self.calibrate()

    def initialize_detector(self, required_pd: float) -> None:
        """
        Solve the detection threshold and the integration gain.

        Only statistical detectors (Marcum-Swerling or a Pd table) are
        solved; a binary detector keeps the receiver threshold as given.
        """
        if self.probability_table is None and not self.use_detector:
            return
        required_pd = clamp_required_pd(required_pd)
        self.detector.number_of_pulses_integrated = self.number_of_pulses_integrated
        multi_pulse = solve_detection_threshold(self._detector_pd, required_pd)
        single_pulse = multi_pulse
        # Received power carries the integration gain, so Pd is evaluated single-pulse
        self.detector.number_of_pulses_integrated = 1
        if self.number_of_pulses_integrated > 1 and self.probability_table is None:
            single_pulse = solve_detection_threshold(self._detector_pd, required_pd)
        self.rcvr.detection_threshold = single_pulse
        self.integration_gain = single_pulse / multi_pulse if multi_pulse > 0.0 else 1.0
        logger.debug(
            "%r: threshold %.3f dB, integration gain %.3f dB",
            self,
            linear_to_db(max(single_pulse, 1.0e-30)),
            linear_to_db(max(self.integration_gain, 1.0e-30)),
        )

    def _detector_pd(self, signal_to_noise: float) -> float:
        if self.probability_table is not None:
            return self.probability_table.compute_probability_of_detection(signal_to_noise)
        return self.detector.compute_probability_of_detection(signal_to_noise)

    def calibrate(self) -> dict:
        """
        Derive the receiver noise power from the reference performance.

        Returns:
            Dictionary with the calibrated noise power, the free-space 1 m²
            detection range and the loop gain
        """
        xmtr = self.xmtr
        rcvr = self.rcvr
        wavelength = SPEED_OF_LIGHT / xmtr.frequency
        threshold = rcvr.detection_threshold
        processing_gain = xmtr.pulse_compression_ratio * self.integration_gain * self.adjustment_factor
        xmtr_gain = xmtr.get_peak_antenna_gain()
        rcvr_gain = rcvr.get_peak_antenna_gain()

        if self.one_m2_detect_range > 0.0:
            r = self.one_m2_detect_range
            distance_factor = 1.0 / (FOUR_PI * r * r)
            p_radiated = xmtr.get_power() * xmtr_gain / xmtr.internal_loss
            p_rcvr_area = p_radiated * distance_factor * 1.0 * distance_factor
            p_received = p_rcvr_area * wavelength * wavelength / FOUR_PI * rcvr_gain / rcvr.internal_loss
            rcvr.set_noise_power(p_received * processing_gain / threshold)
        elif self.loop_gain > 0.0:
            temp = wavelength * wavelength / (FOUR_PI * FOUR_PI * FOUR_PI)
            temp *= xmtr.get_power() * xmtr_gain * rcvr_gain / (xmtr.internal_loss * rcvr.internal_loss)
            rcvr.set_noise_power(temp / self.loop_gain)

        temp = wavelength * wavelength / (FOUR_PI * FOUR_PI * FOUR_PI)
        temp *= xmtr.get_power() * xmtr_gain * rcvr_gain / (xmtr.internal_loss * rcvr.internal_loss)
        temp *= processing_gain
        noise = rcvr.noise_power
        calibration = {
            "noise_power_w": noise,
            "one_m2_detect_range_m": (temp / (noise * threshold)) ** 0.25,
            "loop_gain_db": linear_to_db(temp / noise),
            "threshold_db": linear_to_db(threshold),
        }
        logger.debug(
            "%r calibrated: noise %.4f dBW, 1 m^2 range %.1f m, loop gain %.2f dB",
            self,
            linear_to_db(noise),
            calibration["one_m2_detect_range_m"],
            calibration["loop_gain_db"],
        )
        return calibration

    def compute_integrated_pulse_count(self, frame_time: float, dwell_time: float = 0.0) -> float:
        """
        Pulses on target per look (1 for continuous wave).

        A searching beam's time on target is the frame time scaled by the
        beamwidth over the scan extent; a tracker uses its dwell time.
        """
        prf = self.xmtr.get_pulse_repetition_frequency()
        if prf == 0.0:
            return 1.0
        if dwell_time > 0.0:
            return dwell_time * prf
        antenna = self.antenna
        if antenna.scan_mode == ScanMode.ELEVATION:
            extent = antenna.max_el_scan - antenna.min_el_scan
            beamwidth = self.xmtr.get_elevation_beamwidth()
        else:
            extent = antenna.max_az_scan - antenna.min_az_scan
            beamwidth = self.xmtr.get_azimuth_beamwidth()
        if extent <= 0.0:
            return frame_time * prf
        return frame_time * min(beamwidth / extent, 1.0) * prf

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    def attempt_to_detect(self, sim_time: float, target, result: SensorResult, lockon_time: float = -1.0) -> None:
        """
        Evaluate this beam against a target.

        A transmitting beam is monostatic. A receive-only beam tries every
        linked sensor transmitter (except one carried by the target itself)
        and keeps the attempt with the best signal-to-noise.
        """
        result.begin_generic(self.xmtr, target, self.rcvr)
        result.beam_index = self.index
        if result.failed_status:
            return
        if self.can_transmit:
            self._attempt_with_xmtr(sim_time, target, self.xmtr, result, lockon_time)
            return

        best: Optional[SensorResult] = None
        for xmtr in self.rcvr.get_interactors():
            if xmtr.function is not XmtrFunction.SENSOR or xmtr.platform is target:
                continue
            trial = SensorResult(result.environment, result.observer, result.required_pd, self.index)
            trial.masking_factor_floor = result.masking_factor_floor
            self._attempt_with_xmtr(sim_time, target, xmtr, trial, lockon_time)
            if best is None or trial.signal_to_noise > best.signal_to_noise:
                best = trial
        if best is None:
            result.checked_status |= Status.SIGNAL_LEVEL
            result.failed_status |= Status.SIGNAL_LEVEL
            return
        result.__dict__.update(best.__dict__)

    def _attempt_with_xmtr(
        self, sim_time: float, target, xmtr, result: SensorResult, lockon_time: float
    ) -> None:
        result.begin_two_way(xmtr, target, self.rcvr, defer_terrain=True)
        if result.failed_status:
            return
        result.set_transmitter_beam_position()
        result.set_receiver_beam_position()
        result.compute_rf_two_way_power()

        result.rcvd_power *= xmtr.pulse_compression_ratio * self.integration_gain * self.adjustment_factor
        if self.prf_factor != 1.0 and self._in_mainlobe_clutter_region(target):
            result.rcvd_power *= self.prf_factor
        if self.look_down_factor != 1.0 and result.rcvr_loc.alt >= result.tgt_loc.alt:
            result.rcvd_power *= self.look_down_factor

        result.compute_clutter_power(self.clutter_model, self.clutter_attenuation_factor)
        result.compute_interference_power()
        result.compute_signal_to_noise()

        adjustment = 1.0
        if lockon_time >= 0.0 and lockon_time + self.post_lockon_adjustment_delay_time <= sim_time:
            adjustment = self.post_lockon_detection_threshold_adjustment
            result.detection_threshold *= adjustment

        snr = result.signal_to_noise / adjustment
        if self.probability_table is not None:
            result.pd = self.probability_table.compute_probability_of_detection(snr)
        elif self.use_detector:
            result.pd = self.detector.compute_probability_of_detection(snr)
        else:
            result.pd = 0.0 if result.signal_to_noise < self.rcvr.detection_threshold * adjustment else 1.0
        result.pd *= 1.0 - result.interference_factor
        result.check_signal_level(threshold=result.required_pd, value=result.pd)

    def _in_mainlobe_clutter_region(self, target) -> bool:
        platform = self.rcvr.platform
        to_target = np.asarray(target.get_location_wcs(), dtype=float) - platform.get_location_wcs()
        norm = np.linalg.norm(to_target)
        if norm <= 0.0:
            return False
        to_target /= norm
        own_velocity = platform.get_velocity_wcs()
        closing = float(np.dot(own_velocity, to_target) - np.dot(target.get_velocity_wcs(), to_target))
        own_speed = float(np.linalg.norm(own_velocity))
        return -own_speed < closing < own_speed

    # -------------------------------------------------------------------------
    # Measurement errors
    # -------------------------------------------------------------------------

    def compute_measurement_errors(
        self, result: SensorResult, rng: np.random.Generator
    ) -> Tuple[float, float, float, float]:
        """
        Sample az, el, range and range-rate errors for a detection.

        The one-sigma values are stored in result.measurement.

        Returns:
            Tuple of (az error [rad], el error [rad], range error [m],
            range-rate error [m/s])

        Raises:
            ProgrammingError: If the result has no signal-to-noise
        """
        if result.signal_to_noise <= 0.0:
            raise ProgrammingError("measurement errors require a positive signal-to-noise")
        temp = np.sqrt(2.0 * self.number_of_pulses_integrated * result.signal_to_noise)
        rcvr = result.rcvr
        xmtr = result.xmtr if result.xmtr is not None else self.xmtr

        az_beamwidth = self.error_model_azimuth_beamwidth
        if az_beamwidth < 0.0:
            az_beamwidth = rcvr.get_azimuth_beamwidth()
        el_beamwidth = self.error_model_elevation_beamwidth
        if el_beamwidth < 0.0:
            el_beamwidth = rcvr.get_elevation_beamwidth()

        pulse_width = self.error_model_pulse_width
        if pulse_width < 0.0:
            if xmtr.pulse_width > 0.0:
                pulse_width = xmtr.pulse_width
            elif rcvr.bandwidth > 0.0:
                pulse_width = 1.0 / rcvr.bandwidth
            else:
                pulse_width = 0.0
            pulse_width /= xmtr.pulse_compression_ratio

        doppler_resolution = self.error_model_doppler_resolution
        if doppler_resolution < 0.0:
            doppler_resolution = self.doppler_resolution

        measurement = result.measurement
        measurement.azimuth_error = az_beamwidth / temp
        measurement.elevation_error = el_beamwidth / temp
        measurement.range_error = pulse_width * SPEED_OF_LIGHT / (2.0 * temp) if pulse_width > 0.0 else 0.0
        measurement.range_rate_error = doppler_resolution / (2.0 * temp) if doppler_resolution > 0.0 else 0.0

        az_error = rng.normal(0.0, measurement.azimuth_error) if measurement.azimuth_error > 0.0 else 0.0
        el_error = rng.normal(0.0, measurement.elevation_error) if measurement.elevation_error > 0.0 else 0.0
        range_error = rng.normal(0.0, measurement.range_error) if measurement.range_error > 0.0 else 0.0
        rr_error = (
            rng.normal(0.0, measurement.range_rate_error) if measurement.range_rate_error > 0.0 else 0.0
        )
        return float(az_error), float(el_error), float(range_error), float(rr_error)


def _apply_block(device, block: Any, command: str) -> None:
    if not isinstance(block, dict):
        raise ConfigurationError("expected a mapping of keywords", command)
    for key, value in block.items():
        if not device.process_input(key, value):
            raise ConfigurationError(f"unknown {command} keyword '{key}'", command)
