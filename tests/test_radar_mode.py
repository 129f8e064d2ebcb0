"""
Radar Beam and Mode Tests

Validates calibration, detector initialization, measurement errors and the
decision logic of a radar mode (beam selection, M-of-N, concealment, close
targets, frequency agility).

Test ID | Description                               | Reference            | Tolerance
--------|-------------------------------------------|----------------------|-----------
RDR-001 | 1 m² detect range calibration round trip  | Radar equation       | 1e-9
RDR-002 | SNR scales as (R₁/R)⁴ after calibration   | Skolnik Eq. 1.11     | 1e-6
RDR-003 | Non-coherent integration gain in (1, N)   | Skolnik Ch. 2        | Bound
RDR-004 | Measurement sigmas θ/√(2N·SNR)            | Barton Ch. 18        | 1e-12
RDR-005 | 2-of-3 track establishment                | Skolnik Ch. 7        | Exact
RDR-006 | Alternate frequency after settling delay  | Event ordering       | Exact

References:
    [1] Skolnik, M. I., "Radar Handbook", 3rd Ed., McGraw-Hill, 2008
    [2] Barton, D. K., "Radar System Analysis and Modeling", Artech House,
        2005
"""

import os
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from emsim.components.antenna_pattern import GaussianPattern
from emsim.em.types import CONCEALMENT, Status
from emsim.errors import ConfigurationError, ProgrammingError
from emsim.physics.constants import SPEED_OF_LIGHT, db_to_linear
from emsim.sensors import RadarBeam, RadarMode, SensorResult
from emsim.sensors.radar_beam import Measurement
from emsim.sensors.radar_mode import failed_gates
from emsim.simulation import ArticulatedPart, Platform
from emsim.simulation.events import EventQueue

FREQUENCY = 1.0e9
POWER = 1.0e4
DETECT_RANGE = 50.0e3
THRESHOLD_DB = 13.0


# =============================================================================
# HELPERS
# =============================================================================


def make_part(name="radar", lat=0.0, lon=0.0, alt=100.0):
    platform = Platform(name, lat, lon, alt)
    return ArticulatedPart(platform, name=f"{name}_part")


def make_target(part, north=0.0, east=0.0, rcs=1.0, name="target"):
    """Target displaced in the tangent plane at lat 0, lon 0 (WCS y east, z north)."""
    target = Platform(name)
    target.set_location_wcs(part.platform.get_location_wcs() + np.array([0.0, east, north]))
    target.set_signature("radar", rcs)
    return target


def make_beam(**inputs):
    beam = RadarBeam()
    beam.process_input("frequency", FREQUENCY)
    beam.process_input("power", POWER)
    for command, value in inputs.items():
        beam.process_input(command, value)
    return beam


def make_mode(part=None, event_queue=None, **inputs):
    """Binary-detector mode calibrated so a 1 m² target is at threshold at 50 km."""
    mode = RadarMode("search", event_queue=event_queue, rng=np.random.default_rng(7))
    mode.process_input("frequency", FREQUENCY)
    mode.process_input("power", POWER)
    mode.process_input("one_m2_detect_range", DETECT_RANGE)
    mode.process_input("detection_threshold_db", THRESHOLD_DB)
    for command, value in inputs.items():
        mode.process_input(command, value)
    mode.initialize(part if part is not None else make_part())
    return mode


class ChangeSpy:
    """Records signal change notifications."""

    def __init__(self):
        self.calls = []

    def signal_change_callback(self, sim_time, target_index):
        self.calls.append((sim_time, target_index))


# =============================================================================
# TEST 1: BEAM CONFIGURATION AND CALIBRATION
# =============================================================================


class TestBeamKeywords:
    """Keyword routing of a beam to its detector and devices."""

    def test_shared_keyword_reaches_both_devices(self):
        beam = make_beam(earth_radius_multiplier=1.5)
        assert beam.xmtr.earth_radius_multiplier == 1.5
        assert beam.rcvr.earth_radius_multiplier == 1.5

    def test_receiver_block(self):
        beam = make_beam(receiver={"noise_figure_db": 3.0})
        assert beam.rcvr.noise_figure == pytest.approx(db_to_linear(3.0))

    def test_unknown_block_keyword(self):
        with pytest.raises(ConfigurationError, match="unknown transmitter keyword"):
            make_beam(transmitter={"bogus": 1})

    def test_unknown_keyword_is_not_consumed(self):
        assert not make_beam().process_input("bogus", 1)

    def test_swerling_case_selects_detector(self):
        beam = make_beam(swerling_case=1)
        assert beam.use_detector
        beam.process_input("detection_threshold_db", 12.0)
        assert not beam.use_detector
        assert beam.rcvr.detection_threshold == pytest.approx(db_to_linear(12.0))

    def test_detector_mapping(self):
        beam = make_beam(detector={"swerling_case": 3, "number_of_pulses_integrated": 6})
        assert beam.use_detector
        assert beam.detector.swerling_case == 3
        assert beam.number_of_pulses_integrated == 6

    def test_range_product(self):
        beam = make_beam(range_product_db=160.0)
        assert beam.one_m2_detect_range == pytest.approx(1.0e4, rel=1e-9)
        assert beam.loop_gain == 0.0

    @pytest.mark.parametrize(
        "command,value",
        [
            ("integration_gain", 0.5),
            ("operating_loss", 0.5),
            ("clutter_attenuation_factor", 2.0),
            ("one_m2_detect_range", 0.0),
            ("doppler_resolution", -1.0),
            ("error_model_parameters", {"azimuth_beamwidth": -1.0}),
            ("error_model_parameters", {"bogus": 1.0}),
        ],
    )
    def test_invalid_values(self, command, value):
        with pytest.raises(ConfigurationError):
            make_beam().process_input(command, value)


class TestCalibration:
    """
    Reference: Radar equation solved for the noise power
    Problem: Noise power from a 1 m² detection range or a loop gain
    Expected: Calibration reports back the inputs
    """

    def test_one_m2_detect_range_round_trip(self):
        beam = make_beam(one_m2_detect_range=DETECT_RANGE, detection_threshold_db=THRESHOLD_DB)
        beam.initialize(make_part())
        calibration = beam.calibrate()
        assert calibration["one_m2_detect_range_m"] == pytest.approx(DETECT_RANGE, rel=1e-9)
        assert calibration["threshold_db"] == pytest.approx(THRESHOLD_DB)
        assert calibration["noise_power_w"] == beam.rcvr.noise_power

    def test_loop_gain_round_trip(self):
        beam = make_beam(loop_gain_db=150.0)
        beam.initialize(make_part())
        assert beam.calibrate()["loop_gain_db"] == pytest.approx(150.0, abs=1e-9)

    def test_longer_range_lowers_noise(self):
        near = make_beam(one_m2_detect_range=10.0e3)
        far = make_beam(one_m2_detect_range=20.0e3)
        near.initialize(make_part())
        far.initialize(make_part())
        assert far.rcvr.noise_power == pytest.approx(near.rcvr.noise_power / 16.0, rel=1e-9)


class TestDetectorInitialization:
    """
    Reference: Skolnik, Radar Handbook, Chapter 2
    Problem: Threshold and integration gain from the detector
    Expected: Single-pulse threshold on the receiver, gain in (1, N)
    """

    def test_single_pulse_threshold(self):
        beam = make_beam(swerling_case=1)
        beam.initialize(make_part(), required_pd=0.5)
        expected = -np.log(1.0e-6) / np.log(2.0) - 1.0
        assert beam.rcvr.detection_threshold == pytest.approx(expected, rel=5e-3)
        assert beam.integration_gain == pytest.approx(1.0)

    def test_integration_gain(self):
        beam = make_beam(swerling_case=0, number_of_pulses_integrated=10)
        beam.initialize(make_part(), required_pd=0.5)
        assert 1.0 < beam.integration_gain < 10.0
        assert beam.detector.number_of_pulses_integrated == 1

    def test_table_has_no_integration_gain(self):
        beam = make_beam(detection_probability=[[0.0, 0.0], [20.0, 1.0]], number_of_pulses_integrated=10)
        beam.initialize(make_part(), required_pd=0.5)
        assert beam.integration_gain == pytest.approx(1.0)
        assert beam.rcvr.detection_threshold == pytest.approx(10.0, rel=1e-2)

    def test_binary_threshold_untouched(self):
        beam = make_beam(detection_threshold=5.0)
        beam.initialize(make_part(), required_pd=0.9)
        assert beam.rcvr.detection_threshold == 5.0


class TestPulseCount:
    def test_dwell(self):
        beam = make_beam(pulse_repetition_frequency=1000.0)
        assert beam.compute_integrated_pulse_count(10.0, dwell_time=0.05) == pytest.approx(50.0)

    def test_continuous_wave(self):
        assert make_beam().compute_integrated_pulse_count(10.0) == 1.0

    def test_scanning(self):
        """Time on target is frame time × beamwidth / scan extent."""
        pattern = GaussianPattern()
        pattern.process_input("azimuth_beamwidth", 3.6)
        beam = make_beam(pulse_repetition_frequency=1000.0, antenna_pattern=pattern)
        beam.process_input("azimuth_scan_limits", [-90.0, 90.0])
        assert beam.compute_integrated_pulse_count(10.0) == pytest.approx(200.0)


# =============================================================================
# TEST 2: MEASUREMENT ERRORS
# =============================================================================


class TestMeasurementErrors:
    """
    Reference: Barton, Radar System Analysis and Modeling, Chapter 18
    Problem: Errors for N = 5 pulses at SNR = 50
    Expected: σ_az = θ/√(2N·SNR), σ_R = τc/(2√(2N·SNR))
    """

    @pytest.fixture
    def beam(self):
        beam = make_beam(number_of_pulses_integrated=5)
        beam.process_input(
            "error_model_parameters",
            {"azimuth_beamwidth": 2.0, "elevation_beamwidth": 3.0, "pulse_width": 1.0e-6, "doppler_resolution": 10.0},
        )
        return beam

    @staticmethod
    def result(snr):
        result = SensorResult()
        result.signal_to_noise = snr
        return result

    def test_sigmas(self, beam):
        result = self.result(50.0)
        beam.compute_measurement_errors(result, np.random.default_rng(1))
        root = np.sqrt(2.0 * 5 * 50.0)
        measurement = result.measurement
        assert measurement.azimuth_error == pytest.approx(np.radians(2.0) / root, rel=1e-12)
        assert measurement.elevation_error == pytest.approx(np.radians(3.0) / root, rel=1e-12)
        assert measurement.range_error == pytest.approx(1.0e-6 * SPEED_OF_LIGHT / (2.0 * root), rel=1e-12)
        assert measurement.range_rate_error == pytest.approx(10.0 / (2.0 * root), rel=1e-12)

    def test_sample_spread(self, beam):
        rng = np.random.default_rng(3)
        result = self.result(50.0)
        samples = np.array([beam.compute_measurement_errors(result, rng)[2] for _ in range(4000)])
        assert np.std(samples) == pytest.approx(result.measurement.range_error, rel=0.1)
        assert abs(np.mean(samples)) < 0.1 * result.measurement.range_error

    def test_requires_signal(self, beam):
        with pytest.raises(ProgrammingError):
            beam.compute_measurement_errors(self.result(0.0), np.random.default_rng(1))

    def test_measurement_dict(self):
        measurement = Measurement(range=1000.0, azimuth=np.radians(30.0))
        record = measurement.to_dict()
        assert record["range_m"] == 1000.0
        assert record["azimuth_deg"] == pytest.approx(30.0)
        assert record["range_rate_mps"] is None


# =============================================================================
# TEST 3: MODE DETECTION
# =============================================================================


class TestModeDetection:
    """
    Reference: Skolnik, Radar Handbook, Eq. 1.11
    Problem: Binary detector at 13 dB calibrated to 50 km for 1 m²
    Expected: Detection at 25 km with SNR 16× threshold, none at 80 km
    """

    @pytest.fixture
    def part(self):
        return make_part()

    def test_detects_inside_calibrated_range(self, part):
        mode = make_mode(part)
        detected, result = mode.attempt_to_detect(0.0, make_target(part, north=25.0e3))
        assert detected
        assert result.detected
        assert result.pd == 1.0
        assert result.signal_to_noise == pytest.approx(16.0 * db_to_linear(THRESHOLD_DB), rel=1e-6)
        assert result.checked_status & Status.RCVR_TERRAIN_MASKING
        assert "Pd:" in "\n".join(result.format_lines())

    def test_no_detection_beyond_range(self, part):
        mode = make_mode(part)
        detected, result = mode.attempt_to_detect(0.0, make_target(part, north=80.0e3))
        assert not detected
        assert result.pd == 0.0
        assert "SIGNAL_LEVEL" in failed_gates(result)

    def test_concealed_target(self, part):
        mode = make_mode(part)
        target = make_target(part, north=25.0e3)
        target.concealment_factor = 1.0
        detected, result = mode.attempt_to_detect(0.0, target)
        assert not detected
        assert result.failed_status & CONCEALMENT
        assert "CONCEALMENT" in failed_gates(result)

    def test_truth_measurement(self, part):
        mode = make_mode(part, override_measurement_with_truth=True)
        target = make_target(part, north=25.0e3, east=5.0e3)
        detected, result = mode.attempt_to_detect(3.0, target)
        assert detected
        measurement = result.measurement
        assert measurement.update_time == 3.0
        assert measurement.range == pytest.approx(result.rcvr_to_tgt.range)
        np.testing.assert_allclose(measurement.location_wcs, target.get_location_wcs(), atol=1e-3)
        assert not measurement.range_rate_valid

    def test_transmit_only_never_detects(self, part):
        mode = make_mode(part, transmit_only=True)
        detected, _ = mode.attempt_to_detect(0.0, make_target(part, north=25.0e3))
        assert not detected

    def test_receive_only_without_transmitters(self, part):
        mode = make_mode(part, receive_only=True)
        detected, result = mode.attempt_to_detect(0.0, make_target(part, north=25.0e3))
        assert not detected
        assert result.failed_status & Status.SIGNAL_LEVEL


class TestBeams:
    """Explicit beams start as copies of beam 1; the best S/N wins."""

    def test_best_beam_wins(self):
        part = make_part()
        mode = RadarMode("multi", rng=np.random.default_rng(7))
        mode.process_input(
            "beam",
            {
                "frequency": FREQUENCY,
                "power": POWER,
                "one_m2_detect_range": DETECT_RANGE,
                "detection_threshold_db": THRESHOLD_DB,
            },
        )
        mode.process_input("beam", {"one_m2_detect_range": 2.0 * DETECT_RANGE})
        mode.initialize(part)
        assert len(mode.beams) == 2
        assert mode.beams[1].xmtr is not mode.beams[0].xmtr
        detected, result = mode.attempt_to_detect(0.0, make_target(part, north=25.0e3))
        assert detected
        assert result.beam_index == 1
        assert result.signal_to_noise == pytest.approx(256.0 * db_to_linear(THRESHOLD_DB), rel=1e-6)

    def test_implicit_then_explicit(self):
        mode = RadarMode()
        mode.process_input("power", POWER)
        with pytest.raises(ConfigurationError):
            mode.process_input("beam", {"power": POWER})

    def test_explicit_then_implicit(self):
        mode = RadarMode()
        mode.process_input("beam", {"power": POWER})
        with pytest.raises(ConfigurationError, match="implicit"):
            mode.process_input("power", POWER)

    def test_beam_number_out_of_range(self):
        mode = RadarMode()
        with pytest.raises(ConfigurationError, match="beam number"):
            mode.process_input("beam", {"number": 3})

    def test_unknown_beam_keyword(self):
        with pytest.raises(ConfigurationError, match="unknown beam keyword"):
            RadarMode().process_input("beam", {"bogus": 1})


class TestModeKeywords:
    @pytest.mark.parametrize(
        "command,value",
        [
            ("required_pd", 0.0),
            ("hits_to_establish_track", [3, 2]),
            ("frame_time", 0.0),
            ("dwell_time", -1.0),
            ("frequency_change_delay", -1.0),
            ("masking_factor_floor", 1.5),
        ],
    )
    def test_invalid_values(self, command, value):
        with pytest.raises(ConfigurationError):
            RadarMode().process_input(command, value)

    def test_close_target_resolution_in_degrees(self):
        mode = RadarMode()
        mode.process_input("close_target_resolution", {"azimuth": 2.0, "range": 150.0})
        assert mode.close_target_resolution.azimuth == pytest.approx(np.radians(2.0))
        assert mode.close_target_resolution.elevation == 0.0
        assert mode.close_target_resolution.is_set()


# =============================================================================
# TEST 4: M-OF-N
# =============================================================================


class TestTrackEstablishment:
    """
    Reference: Skolnik, Radar Handbook, Chapter 7
    Problem: 2-of-3 criterion with a target moved in and out of range
    Expected: Reports start on the second hit and survive single misses
    """

    def test_two_of_three(self):
        part = make_part()
        mode = make_mode(part, hits_to_establish_track=[2, 3])
        target = make_target(part, north=25.0e3)
        near = target.get_location_wcs()
        far = part.platform.get_location_wcs() + np.array([0.0, 0.0, 80.0e3])

        assert not mode.attempt_to_detect(0.0, target)[0]
        assert not mode.is_track_established(target)
        assert mode.attempt_to_detect(1.0, target)[0]
        assert mode.is_track_established(target)

        target.set_location_wcs(far)
        assert not mode.attempt_to_detect(2.0, target)[0]
        assert mode.is_track_established(target)

        target.set_location_wcs(near)
        assert mode.attempt_to_detect(3.0, target)[0]

    def test_track_drops_after_all_misses(self):
        part = make_part()
        mode = make_mode(part, hits_to_establish_track=[1, 2])
        target = make_target(part, north=25.0e3)
        assert mode.attempt_to_detect(0.0, target)[0]
        target.set_location_wcs(part.platform.get_location_wcs() + np.array([0.0, 0.0, 80.0e3]))
        mode.attempt_to_detect(1.0, target)
        mode.attempt_to_detect(2.0, target)
        assert not mode.is_track_established(target)

    def test_reset_history(self):
        part = make_part()
        mode = make_mode(part, hits_to_establish_track=[2, 2])
        target = make_target(part, north=25.0e3)
        mode.attempt_to_detect(0.0, target)
        mode.attempt_to_detect(1.0, target)
        mode.reset_history(target)
        assert not mode.is_track_established(target)
        assert not mode.attempt_to_detect(2.0, target)[0]


# =============================================================================
# TEST 5: CLOSE TARGETS
# =============================================================================


class TestCloseTargets:
    """Detections within one resolution cell are reported once."""

    @staticmethod
    def detections(mode, part, offsets):
        results = []
        for index, (north, east) in enumerate(offsets):
            target = make_target(part, north=north, east=east, name=f"t{index}")
            results.append(mode.attempt_to_detect(0.0, target)[1])
        return results

    def test_same_cell_merged(self):
        part = make_part()
        mode = make_mode(part, close_target_resolution={"range": 200.0}, close_target_use_truth=True)
        results = self.detections(mode, part, [(25.05e3, 0.0), (25.0e3, 0.0)])
        reported = mode.resolve_close_targets(results)
        assert len(reported) == 1
        assert reported[0] is results[1]

    def test_separated_in_range(self):
        part = make_part()
        mode = make_mode(part, close_target_resolution={"range": 10.0}, close_target_use_truth=True)
        results = self.detections(mode, part, [(25.05e3, 0.0), (25.0e3, 0.0)])
        assert len(mode.resolve_close_targets(results)) == 2

    def test_separated_in_azimuth(self):
        part = make_part()
        mode = make_mode(
            part, close_target_resolution={"azimuth": 5.0, "range": 200.0}, close_target_use_truth=True
        )
        results = self.detections(mode, part, [(25.0e3, 0.0), (0.0, 25.0e3)])
        assert len(mode.resolve_close_targets(results)) == 2

    def test_no_resolution_reports_all(self):
        part = make_part()
        mode = make_mode(part)
        results = self.detections(mode, part, [(25.05e3, 0.0), (25.0e3, 0.0), (90.0e3, 0.0)])
        assert len(mode.resolve_close_targets(results)) == 2


# =============================================================================
# TEST 6: FREQUENCY AGILITY
# =============================================================================


class TestFrequencyAgility:
    """
    Reference: Event ordering
    Problem: 1.0/1.2 GHz agile radar with a 2 s settling delay
    Expected: The change lands at max(now, last change) + delay
    """

    INPUTS = {"alternate_frequency": [1, 1.2e9], "frequency_change_delay": 2.0}

    def test_agile_after_initialize(self):
        mode = make_mode(**self.INPUTS)
        assert mode.is_frequency_agile
        assert not make_mode().is_frequency_agile

    def test_immediate_without_queue(self):
        mode = make_mode(**self.INPUTS)
        change_time = mode.schedule_alternate_frequency_change(5.0)
        assert change_time == pytest.approx(7.0)
        beam = mode.beams[0]
        assert beam.xmtr.frequency == 1.2e9
        assert beam.rcvr.frequency == 1.2e9
        assert mode.last_alt_freq_select_time == pytest.approx(7.0)
        assert not mode.alt_freq_change_scheduled

    def test_cycles_back_to_nominal(self):
        mode = make_mode(**self.INPUTS)
        mode.select_alternate_frequency(1.0)
        mode.select_alternate_frequency(2.0)
        assert mode.beams[0].xmtr.frequency == FREQUENCY

    def test_queued_change(self):
        queue = EventQueue()
        mode = make_mode(event_queue=queue, **self.INPUTS)
        spy = ChangeSpy()
        mode.beams[0].xmtr.add_change_listener(spy)

        assert mode.schedule_alternate_frequency_change(1.0) == pytest.approx(3.0)
        assert mode.alt_freq_change_scheduled
        assert queue.process(2.9) == 0
        assert mode.beams[0].xmtr.frequency == FREQUENCY
        assert queue.process(3.0) == 1
        assert mode.beams[0].xmtr.frequency == 1.2e9
        assert not mode.alt_freq_change_scheduled
        assert spy.calls and spy.calls[-1][0] == pytest.approx(3.0)

    def test_delay_counts_from_last_change(self):
        mode = make_mode(**self.INPUTS)
        mode.schedule_alternate_frequency_change(5.0)
        assert mode.schedule_alternate_frequency_change(6.0) == pytest.approx(9.0)
