"""
Component Tests: Antenna Patterns, Antennas, Transmitters and Receivers

Test ID | Description                               | Reference          | Tolerance
--------|-------------------------------------------|--------------------|-----------
CMP-001 | Gaussian/sinc -3 dB at half beamwidth     | Pattern definition | 1e-6
CMP-002 | Cosecant-squared skirt                    | Skolnik fan beam   | 1e-9
CMP-003 | Tabular cuts and half-power width         | Interpolation      | 0.01 deg
CMP-004 | Gain adjustment table (log-f interp)      | Definition         | 1e-9
CMP-005 | ESA broadside directivity                 | Mailloux Eq. 1.9   | 1e-9
CMP-006 | ALARM rectangular pattern file            | ALARM format       | 1e-9
CMP-007 | Field of view and EBS scan loss           | cos(θ) scan loss   | 1e-12
CMP-008 | Transmitter power/PRF/frequency tables    | Definition         | Exact
CMP-009 | Receiver noise N = k·T0·B·F               | Skolnik Eq. 1.5    | 1e-25 W
CMP-010 | Blake system noise temperature            | Blake Table 7.1    | 1e-9 K
CMP-011 | Polarization and bandwidth coupling       | Definition         | Exact

References:
    [1] Skolnik, M. I., "Radar Handbook", 3rd Ed., McGraw-Hill, 2008
    [2] Blake, L. V., "Radar Range-Performance Analysis", Artech House, 1986
    [3] Mailloux, R. J., "Phased Array Antenna Handbook", Artech House, 2005
"""

import os
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from emsim.components import (
    AlarmAntennaPattern,
    Antenna,
    EsaPattern,
    PolygonalFieldOfView,
    Rcvr,
    Xmtr,
    create_antenna_pattern,
)
from emsim.components.antenna_pattern import (
    CosecantSquaredPattern,
    GaussianPattern,
    SincPattern,
    TabularPattern,
    UniformPattern,
)
from emsim.components.rcvr import compute_system_noise_temperature
from emsim.em.types import EBSMode, Polarization, ScanMode, ScanStabilization, parse_enum
from emsim.errors import ConfigurationError
from emsim.physics.constants import BOLTZMANN_CONSTANT, DEFAULT_NOISE_POWER, STANDARD_TEMPERATURE
from emsim.simulation import ArticulatedPart, Platform


def make_part(name="site", alt=10.0):
    return ArticulatedPart(Platform(name, 0.0, 0.0, alt), name=f"{name}_part")


def configure(obj, **inputs):
    for command, value in inputs.items():
        assert obj.process_input(command, value), f"keyword {command} not accepted"
    return obj


# =============================================================================
# TEST 1: Analytic Patterns
# =============================================================================


class TestAnalyticPatterns:
    """
    Reference: Closed-form main-beam models
    Problem: 20 dB peak, 10° beamwidth
    Expected: Half power at ±5°
    """

    def test_gaussian_half_power(self):
        """Gaussian pattern is 3 dB down at half the beamwidth"""
        pattern = configure(GaussianPattern(), peak_gain_db=20.0, beamwidth=10.0)
        pattern.initialize()
        assert pattern.get_gain(1.0e9, 0.0, 0.0) == pytest.approx(100.0)
        assert pattern.get_gain(1.0e9, np.radians(5.0), 0.0) == pytest.approx(50.0, rel=1.0e-6)
        assert pattern.get_gain(1.0e9, 0.0, np.radians(-5.0)) == pytest.approx(50.0, rel=1.0e-6)

    def test_sinc_half_power(self):
        """sin(x)/x pattern is 3 dB down at half the beamwidth"""
        pattern = configure(SincPattern(), peak_gain=10.0, azimuth_beamwidth=6.0, elevation_beamwidth=20.0)
        pattern.initialize()
        assert pattern.get_gain(1.0e9, np.radians(3.0), 0.0) == pytest.approx(5.0, rel=1.0e-5)
        assert pattern.get_gain(1.0e9, 0.0, np.radians(10.0)) == pytest.approx(5.0, rel=1.0e-5)

    def test_uniform_box_and_minimum_gain(self):
        """Uniform beam: peak inside the box, minimum gain outside"""
        pattern = configure(UniformPattern(), peak_gain=4.0, beamwidth=20.0, minimum_gain=1.0e-3)
        pattern.initialize()
        assert pattern.get_gain(1.0e9, np.radians(9.9), 0.0) == 4.0
        assert pattern.get_gain(1.0e9, np.radians(10.1), 0.0) == 1.0e-3

    def test_default_uniform_is_isotropic(self):
        """Default uniform pattern has unit gain in every direction"""
        pattern = create_antenna_pattern("uniform")
        pattern.initialize()
        for az, el in [(0.0, 0.0), (3.0, 1.5), (-3.1, -1.5)]:
            assert pattern.get_gain(1.0e9, az, el) == 1.0

    def test_beamwidth_validation(self):
        """Beamwidths must be positive and bounded"""
        with pytest.raises(ConfigurationError):
            GaussianPattern().process_input("beamwidth", 0.0)
        with pytest.raises(ConfigurationError):
            GaussianPattern().process_input("elevation_beamwidth", 181.0)

    def test_ebs_broadens_beamwidth(self):
        """Steered beamwidth grows as 1/cos(steering angle)"""
        pattern = configure(GaussianPattern(), beamwidth=2.0)
        broadside = pattern.get_azimuth_beamwidth(1.0e9)
        steered = pattern.get_azimuth_beamwidth(1.0e9, np.radians(60.0), 0.0)
        assert steered == pytest.approx(2.0 * broadside)

    def test_unknown_pattern_type(self):
        """Unregistered pattern types are rejected"""
        with pytest.raises(ConfigurationError, match="unknown antenna pattern type"):
            create_antenna_pattern("parabolic_dish")


class TestCosecantSquared:
    """
    Reference: Skolnik, fan-beam search antennas
    Problem: Peak at 2°, csc² skirt to 40°
    Expected: G(el)/G(peak) = (sin 2° / sin el)² in the skirt, 0 above 40°
    """

    @pytest.fixture
    def pattern(self):
        pattern = configure(
            CosecantSquaredPattern(),
            peak_gain_db=30.0,
            beamwidth=3.0,
            minimum_elevation_for_peak_gain=2.0,
            maximum_elevation_for_csc2=40.0,
            minimum_gain=1.0e-6,
        )
        pattern.initialize()
        return pattern

    def test_peak_at_design_elevation(self, pattern):
        assert pattern.get_gain(1.0e9, 0.0, np.radians(2.0)) == pytest.approx(1000.0)

    def test_skirt(self, pattern):
        """csc² falloff above the peak"""
        expected = 1000.0 * (np.sin(np.radians(2.0)) / np.sin(np.radians(10.0))) ** 2
        assert pattern.get_gain(1.0e9, 0.0, np.radians(10.0)) == pytest.approx(expected, rel=1.0e-9)

    def test_above_skirt_is_floor(self, pattern):
        assert pattern.get_gain(1.0e9, 0.0, np.radians(45.0)) == 1.0e-6

    def test_invalid_limits(self):
        """The peak elevation must lie below the top of the skirt"""
        pattern = configure(
            CosecantSquaredPattern(),
            minimum_elevation_for_peak_gain=50.0,
            maximum_elevation_for_csc2=40.0,
        )
        with pytest.raises(ConfigurationError):
            pattern.initialize()


# =============================================================================
# TEST 2: Tabular Patterns and Gain Adjustment
# =============================================================================


class TestTabularPattern:
    """
    Reference: Linear interpolation of dB cuts
    Problem: Triangular cuts, 0 dB peak, -20 dB at ±10°
    Expected: -10 dB at 5°, half-power width 3°
    """

    CUT = [[-10.0, -20.0], [0.0, 0.0], [10.0, -20.0]]

    @pytest.fixture
    def pattern(self):
        pattern = configure(TabularPattern(), azimuth_pattern=self.CUT, elevation_pattern=self.CUT)
        pattern.initialize()
        return pattern

    def test_interpolated_gain(self, pattern):
        assert pattern.get_gain(1.0e9, 0.0, 0.0) == pytest.approx(1.0)
        assert pattern.get_gain(1.0e9, np.radians(5.0), 0.0) == pytest.approx(0.1)
        assert pattern.get_gain(1.0e9, np.radians(5.0), np.radians(5.0)) == pytest.approx(0.01)

    def test_half_power_width(self, pattern):
        width = np.degrees(pattern.get_azimuth_beamwidth(1.0e9))
        assert width == pytest.approx(3.0, abs=0.01)

    def test_frequency_selection(self):
        """The cut set with the greatest frequency not above f is used"""
        narrow = [[-1.0, -30.0], [0.0, 10.0], [1.0, -30.0]]
        pattern = configure(
            TabularPattern(),
            frequencies=[
                {"frequency": 1.0e9, "azimuth_pattern": self.CUT, "elevation_pattern": self.CUT},
                {"frequency": 5.0e9, "azimuth_pattern": narrow, "elevation_pattern": narrow},
            ],
        )
        pattern.initialize()
        assert pattern.get_peak_gain(3.0e9) == pytest.approx(1.0)
        assert pattern.get_peak_gain(6.0e9) == pytest.approx(10.0)

    def test_missing_cut(self):
        pattern = configure(TabularPattern(), azimuth_pattern=self.CUT)
        with pytest.raises(ConfigurationError):
            pattern.initialize()

    def test_descending_angles_rejected(self):
        pattern = configure(
            TabularPattern(), azimuth_pattern=list(reversed(self.CUT)), elevation_pattern=self.CUT
        )
        with pytest.raises(ConfigurationError):
            pattern.initialize()


class TestGainAdjustment:
    """
    Reference: Frequency-dependent gain correction
    Problem: 0 dB at 1 GHz, 10 dB at 10 GHz
    Expected: 5 dB at 3.162 GHz (interpolated in log10 f)
    """

    def test_log_frequency_interpolation(self):
        pattern = configure(UniformPattern(), gain_adjustment_table=[[1.0e9, 0.0], [1.0e10, 10.0]])
        assert pattern.get_gain(10.0**9.5, 0.0, 0.0) == pytest.approx(10.0**0.5)

    def test_scalar_adjustment(self):
        pattern = configure(UniformPattern(), gain_adjustment_db=-3.0)
        assert pattern.get_gain(1.0e9, 0.0, 0.0) == pytest.approx(0.501187, rel=1.0e-5)

    def test_table_validation(self):
        """At least two entries in ascending frequency order"""
        with pytest.raises(ConfigurationError, match="at least two"):
            UniformPattern().process_input("gain_adjustment_table", [[1.0e9, 0.0]])
        with pytest.raises(ConfigurationError, match="ascending"):
            UniformPattern().process_input("gain_adjustment_table", [[2.0e9, 0.0], [1.0e9, 1.0]])

    def test_threshold_fraction(self):
        """Fraction of an azimuth sector meeting a gain threshold"""
        pattern = UniformPattern()
        assert pattern.get_gain_threshold_fraction(0.5, -np.pi / 2.0, np.pi / 2.0) == 1.0
        assert pattern.get_gain_threshold_fraction(2.0, -np.pi / 2.0, np.pi / 2.0) == 0.0


# =============================================================================
# TEST 3: Phased Array and ALARM Patterns
# =============================================================================


class TestEsaPattern:
    """
    Reference: Mailloux, planar array directivity
    Problem: 10 × 10 half-wavelength array at 3 GHz
    Expected: D = π·N·M = 314.16; steering keeps the peak on the beam axis
    """

    @pytest.fixture
    def pattern(self):
        pattern = configure(
            EsaPattern(),
            number_elements_x=10,
            number_elements_y=10,
            element_spacing_x=0.05,
            element_spacing_y=0.05,
        )
        pattern.initialize()
        return pattern

    def test_broadside_directivity(self, pattern):
        assert pattern.get_peak_gain(2.99792458e9) == pytest.approx(100.0 * np.pi, rel=1.0e-9)
        assert pattern.get_gain(2.99792458e9, 0.0, 0.0) == pytest.approx(100.0 * np.pi, rel=1.0e-9)

    def test_steered_beam_peak(self, pattern):
        """Gain on the steered beam axis equals the broadside peak"""
        steered = pattern.get_gain(2.99792458e9, 0.0, 0.0, np.radians(30.0), 0.0)
        assert steered == pytest.approx(100.0 * np.pi, rel=1.0e-9)

    def test_taylor_taper_reduces_gain(self):
        taylor = configure(
            EsaPattern(),
            number_elements_x=16,
            element_spacing_x=0.05,
            distribution_type="taylor",
            sidelobe_level_db=-30.0,
        )
        taylor.initialize()
        uniform = configure(EsaPattern(), number_elements_x=16, element_spacing_x=0.05)
        uniform.initialize()
        assert taylor.get_peak_gain(3.0e9) < uniform.get_peak_gain(3.0e9)

    def test_spacing_required(self):
        pattern = configure(EsaPattern(), number_elements_x=4)
        with pytest.raises(ConfigurationError):
            pattern.initialize()


ALARM_RECTANGULAR = """UNCLASSIFIED
Test pattern
0.1 30.0 -40.0 db 2d rect
10.0 3 -10.0 10.0
10.0 3 -10.0 10.0
AZCUT
-3.0 0.0 -3.0
ELCUT
-3.0 0.0 -3.0
"""


class TestAlarmPattern:
    """
    Reference: ALARM antenna pattern file format
    Problem: Rectangular aperture, 30 dB peak, -3 dB at ±10°
    Expected: Separable linear interpolation of the normalized cuts
    """

    @pytest.fixture
    def pattern(self):
        pattern = AlarmAntennaPattern()
        pattern.parse(ALARM_RECTANGULAR)
        pattern.initialize()
        return pattern

    def test_header(self, pattern):
        assert pattern.title == "Test pattern"
        assert pattern.get_peak_gain(1.0e9) == pytest.approx(1000.0)
        assert np.degrees(pattern.get_azimuth_beamwidth(1.0e9)) == pytest.approx(10.0)

    def test_interpolation(self, pattern):
        half = 10.0**-0.3
        assert pattern.get_gain(1.0e9, 0.0, 0.0) == pytest.approx(1000.0)
        expected = 1000.0 * 0.5 * (1.0 + half)
        assert pattern.get_gain(1.0e9, np.radians(5.0), 0.0) == pytest.approx(expected, rel=1.0e-9)

    def test_outside_table(self, pattern):
        assert pattern.get_gain(1.0e9, np.radians(20.0), 0.0) == pattern.minimum_gain

    def test_bad_units(self):
        with pytest.raises(ConfigurationError, match="unsupported units"):
            AlarmAntennaPattern().parse(ALARM_RECTANGULAR.replace(" db ", " watts "))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AlarmAntennaPattern().process_input("file", tmp_path / "missing.pat")


# =============================================================================
# TEST 4: Antenna Field of View and Beam Steering
# =============================================================================


class TestAntenna:
    """
    Reference: Antenna gates
    Problem: ±30° azimuth field of view, EBS with a 60° limit
    Expected: Angle gate, range/altitude gates and cos(θ) scan loss
    """

    def test_rectangular_field_of_view(self):
        antenna = configure(Antenna(), azimuth_field_of_view=[-30.0, 30.0])
        antenna.initialize(make_part())
        assert antenna.within_field_of_view(np.radians(29.0), 0.0)
        assert not antenna.within_field_of_view(np.radians(31.0), 0.0)

    def test_polygonal_field_of_view(self):
        antenna = configure(
            Antenna(),
            field_of_view={"type": "polygonal", "azimuth_elevation": [[-20, 0], [20, 0], [0, 30]]},
        )
        antenna.initialize(make_part())
        assert isinstance(antenna.field_of_view, PolygonalFieldOfView)
        assert antenna.within_field_of_view(0.0, np.radians(10.0))
        assert not antenna.within_field_of_view(np.radians(15.0), np.radians(20.0))

    def test_field_of_view_must_contain_scan_limits(self):
        antenna = configure(
            Antenna(),
            azimuth_field_of_view=[-30.0, 30.0],
            scan_mode="azimuth",
            azimuth_scan_limits=[-45.0, 45.0],
        )
        with pytest.raises(ConfigurationError, match="field of view"):
            antenna.initialize(make_part())

    def test_scan_limits_become_field_of_view(self):
        """Without an explicit field of view the scan limits bound the gate"""
        antenna = configure(Antenna(), scan_mode="azimuth", azimuth_scan_limits=[-45.0, 45.0])
        antenna.initialize(make_part())
        assert antenna.within_field_of_view(np.radians(44.0), 0.0)
        assert not antenna.within_field_of_view(np.radians(46.0), 0.0)

    def test_range_and_altitude_gates(self):
        antenna = configure(
            Antenna(),
            minimum_range=100.0,
            maximum_range=5.0e4,
            minimum_altitude=-50.0,
            maximum_altitude=1.0e4,
        )
        antenna.initialize(make_part(alt=10.0))
        assert antenna.within_range(1.0e3)
        assert not antenna.within_range(50.0)
        assert not antenna.within_range(6.0e4)
        assert antenna.within_altitude(500.0)
        assert not antenna.within_altitude(-100.0)

    def test_inverted_range_limits(self):
        antenna = configure(Antenna(), maximum_range=100.0)
        with pytest.raises(ConfigurationError):
            antenna.process_input("minimum_range", 200.0)

    def test_steering_loss(self):
        """cos(θ) inside the steering limit, zero beyond it"""
        antenna = configure(
            Antenna(), electronic_beam_steering="azimuth", electronic_beam_steering_limit=60.0
        )
        assert antenna.ebs_mode == EBSMode.AZIMUTH
        assert antenna.compute_beam_steering_loss(np.radians(30.0), 0.0) == pytest.approx(np.cos(np.radians(30.0)))
        assert antenna.compute_beam_steering_loss(np.radians(70.0), 0.0) == 0.0

    def test_steering_loss_exponent(self):
        antenna = configure(
            Antenna(),
            electronic_beam_steering="both",
            electronic_beam_steering_limit=80.0,
            electronic_beam_steering_loss_exponent=2.0,
        )
        loss = antenna.compute_beam_steering_loss(np.radians(30.0), np.radians(20.0))
        expected = (np.cos(np.radians(30.0)) * np.cos(np.radians(20.0))) ** 2
        assert loss == pytest.approx(expected, rel=1.0e-12)

    def test_no_steering_no_loss(self):
        assert Antenna().compute_beam_steering_loss(1.0, 1.0) == 1.0


class TestModeKeywords:
    """
    Reference: Antenna keyword values
    Problem: Flag enumerations include zero and combined members
    Expected: Every member name parses, including none/fixed and both
    """

    @pytest.mark.parametrize(
        "enum_cls,member",
        [(cls, member) for cls in (ScanMode, ScanStabilization, EBSMode) for member in cls.__members__.values()],
    )
    def test_every_member_parses(self, enum_cls, member):
        assert parse_enum(enum_cls, member.name.lower()) is member
        assert parse_enum(enum_cls, member.name.upper()) is member

    def test_azimuth_and_elevation_alias(self):
        assert parse_enum(EBSMode, "azimuth_and_elevation") is EBSMode.BOTH

    @pytest.mark.parametrize(
        "command,value,attribute,expected",
        [
            ("scan_mode", "fixed", "scan_mode", ScanMode.FIXED),
            ("scan_mode", "both", "scan_mode", ScanMode.BOTH),
            ("scan_stabilization", "none", "scan_stabilization", ScanStabilization.NONE),
            ("scan_stabilization", "pitch_and_roll", "scan_stabilization", ScanStabilization.PITCH_AND_ROLL),
            ("electronic_beam_steering", "none", "ebs_mode", EBSMode.NONE),
            ("electronic_beam_steering", "both", "ebs_mode", EBSMode.BOTH),
        ],
    )
    def test_antenna_keywords(self, command, value, attribute, expected):
        antenna = Antenna()
        assert antenna.process_input(command, value)
        assert getattr(antenna, attribute) == expected

    def test_unknown_value_lists_all_members(self):
        with pytest.raises(ConfigurationError, match="none, azimuth, elevation, both"):
            parse_enum(EBSMode, "diagonal")


# =============================================================================
# TEST 5: Transmitter
# =============================================================================


class TestXmtr:
    """
    Reference: Transmitter inputs
    Problem: Power tables, pulse parameters and alternate frequencies
    Expected: Values as configured, configuration errors at initialize
    """

    def test_power_dbw(self):
        xmtr = configure(Xmtr(), power_dbw=40.0, frequency=1.0e9)
        assert xmtr.get_peak_power() == pytest.approx(1.0e4)

    def test_frequency_power_table(self):
        """Highest table frequency not above f; first entry below the table"""
        xmtr = configure(Xmtr(), frequency=1.5e9, powers=[[1.0e9, 100.0], [2.0e9, 200.0]])
        assert xmtr.get_peak_power() == 100.0
        assert xmtr.get_peak_power(2.5e9) == 200.0
        assert xmtr.get_peak_power(0.5e9) == 100.0

    def test_average_power(self):
        xmtr = configure(Xmtr(), power=1.0e3, duty_cycle=0.1)
        assert xmtr.get_power(1.0e9) == pytest.approx(100.0)

    def test_prf_list_average(self):
        """Entry 0 holds the average PRF; PRI = 1/PRF element-wise"""
        xmtr = configure(Xmtr(), pulse_repetition_frequencies=[1000.0, 2000.0])
        assert xmtr.get_pulse_repetition_frequency() == pytest.approx(1500.0)
        assert xmtr.get_pulse_repetition_interval() == pytest.approx(1.0 / 1500.0)
        assert xmtr.get_pulse_repetition_intervals() == pytest.approx([1.0e-3, 5.0e-4])

    def test_missing_power(self):
        xmtr = configure(Xmtr(), frequency=1.0e9)
        with pytest.raises(ConfigurationError, match="power"):
            xmtr.initialize(make_part())

    def test_pulse_width_requires_prf(self):
        xmtr = configure(Xmtr(), frequency=1.0e9, power=1.0, pulse_width=1.0e-6)
        with pytest.raises(ConfigurationError, match="pulse_repetition"):
            xmtr.initialize(make_part())

    def test_duty_cycle_above_one(self):
        xmtr = configure(
            Xmtr(), frequency=1.0e9, power=1.0, pulse_width=1.0e-3, pulse_repetition_frequency=2000.0
        )
        with pytest.raises(ConfigurationError):
            xmtr.initialize(make_part())

    def test_alternate_frequencies(self):
        """Id 0 is the nominal frequency; unknown ids select it"""
        xmtr = configure(Xmtr(), frequency=1.0e9, power=1.0)
        xmtr.process_input("alternate_frequency", [1, 1.1e9])
        xmtr.process_input("alternate_frequency", [2, 1.2e9])
        xmtr.initialize(make_part())
        assert xmtr.get_alternate_frequency_count() == 3
        assert xmtr.get_alternate_frequency(0) == 1.0e9
        xmtr.select_alternate_frequency(2)
        assert xmtr.frequency == 1.2e9
        xmtr.select_alternate_frequency(7)
        assert xmtr.frequency == 1.0e9
        assert xmtr.current_alternate_frequency_id == 0

    def test_alternate_frequency_ids_are_sequential(self):
        with pytest.raises(ConfigurationError):
            Xmtr().process_input("alternate_frequency", [3, 1.1e9])

    def test_frequency_channels(self):
        """Channel list [first, step, last]; the first channel is the initial frequency"""
        xmtr = configure(Xmtr(), power=1.0, frequency_channels=[1.0e9, 1.0e8, 1.3e9])
        xmtr.initialize(make_part())
        assert xmtr.get_alternate_frequency_count() == 4
        assert xmtr.frequency == 1.0e9
        assert xmtr.get_alternate_frequency(3) == pytest.approx(1.3e9)

    def test_linked_receiver_follows_frequency(self):
        xmtr = configure(Xmtr(), frequency=1.0e9, power=1.0)
        rcvr = Rcvr()
        xmtr.set_linked_receiver(rcvr)
        assert rcvr.antenna is xmtr.antenna
        xmtr.set_frequency(2.0e9)
        assert rcvr.frequency == 2.0e9

    def test_radiated_power_includes_internal_loss(self):
        xmtr = configure(Xmtr(), frequency=1.0e9, power=100.0, internal_loss_db=3.0103)
        erp, gain = xmtr.compute_radiated_power(0.0, 0.0, 0.0, 0.0)
        assert gain == 1.0
        assert erp == pytest.approx(50.0, rel=1.0e-4)


# =============================================================================
# TEST 6: Receiver Noise and Coupling
# =============================================================================


class TestRcvrNoise:
    """
    Reference: Skolnik Eq. 1.5; Blake Chapter 7
    Problem: 1 MHz noise bandwidth, 3 dB noise figure
    Expected: N = k·290·1e6·1.995 = 7.989e-15 W
    """

    def test_kt0bf(self):
        rcvr = configure(Rcvr(), frequency=1.0e9, instantaneous_bandwidth=1.0e6, noise_figure_db=3.0)
        rcvr.initialize(make_part())
        expected = BOLTZMANN_CONSTANT * STANDARD_TEMPERATURE * 1.0e6 * 10.0**0.3
        assert rcvr.noise_power == pytest.approx(expected, rel=1.0e-12)
        assert rcvr.bandwidth == 1.0e6

    def test_default_noise_without_bandwidth(self):
        rcvr = configure(Rcvr(), frequency=1.0e9)
        rcvr.initialize(make_part())
        assert rcvr.noise_power == DEFAULT_NOISE_POWER
        assert rcvr.detection_threshold == pytest.approx(10.0**0.3)

    def test_bandwidth_from_linked_pulse_width(self):
        """Noise bandwidth falls back to 1 / pulse width"""
        xmtr = configure(
            Xmtr(), frequency=1.0e9, power=1.0, pulse_width=1.0e-6, pulse_repetition_frequency=1000.0
        )
        rcvr = Rcvr()
        xmtr.set_linked_receiver(rcvr)
        xmtr.initialize(make_part())
        rcvr.initialize()
        assert rcvr.instantaneous_bandwidth == pytest.approx(1.0e6)

    def test_explicit_noise_power(self):
        rcvr = configure(Rcvr(), frequency=1.0e9, noise_power_dbw=-140.0, instantaneous_bandwidth=1.0e6)
        rcvr.initialize(make_part())
        assert rcvr.noise_power == pytest.approx(1.0e-14)

    def test_blake_temperature(self):
        """Horizon-pointing antenna at 1 GHz, 2:1 line loss, ideal receiver"""
        temperature = compute_system_noise_temperature(0.0, 1.0, 2.0, 1.0, 1.0e9)
        expected = (0.876 * 89.1 - 254.0) + 290.0 + 290.0
        assert temperature == pytest.approx(expected, rel=1.0e-9)

    def test_losses_select_blake_noise(self):
        rcvr = configure(Rcvr(), frequency=1.0e9, instantaneous_bandwidth=1.0e6, receive_line_loss=2.0)
        rcvr.initialize(make_part())
        expected = BOLTZMANN_CONSTANT * compute_system_noise_temperature(0.0, 1.0, 2.0, 1.0, 1.0e9) * 1.0e6
        assert rcvr.noise_power == pytest.approx(expected, rel=1.0e-9)

    def test_missing_frequency(self):
        with pytest.raises(ConfigurationError, match="frequency"):
            Rcvr().initialize(make_part())

    def test_signal_to_noise(self):
        rcvr = configure(Rcvr(), frequency=1.0e9, noise_power=1.0e-14)
        assert rcvr.compute_signal_to_noise(3.0e-14, 1.0e-14, 1.0e-14) == pytest.approx(1.0)


class TestRcvrCoupling:
    """
    Reference: Polarization mismatch and passband overlap
    Problem: Horizontal receiver, 1 MHz passband at 1 GHz
    Expected: Orthogonal 0, other 0.5; in-band bandwidth fraction
    """

    @pytest.fixture
    def rcvr(self):
        return configure(Rcvr(), frequency=1.0e9, bandwidth=1.0e6, polarization="horizontal")

    def test_polarization_effects(self, rcvr):
        assert rcvr.get_polarization_effect(Polarization.HORIZONTAL) == 1.0
        assert rcvr.get_polarization_effect(Polarization.VERTICAL) == 0.0
        assert rcvr.get_polarization_effect(Polarization.SLANT_45) == 0.5
        assert rcvr.get_polarization_effect(Polarization.DEFAULT) == 1.0

    def test_explicit_polarization_effect(self, rcvr):
        rcvr.process_input("polarization_effect", ["vertical", 0.2])
        assert rcvr.get_polarization_effect(Polarization.VERTICAL) == pytest.approx(0.2)

    def test_default_polarization_couples_fully(self):
        rcvr = configure(Rcvr(), frequency=1.0e9)
        assert rcvr.get_polarization_effect(Polarization.VERTICAL) == 1.0

    def test_bandwidth_effect(self, rcvr):
        assert rcvr.get_bandwidth_effect(1.0e9, 4.0e6) == pytest.approx(0.25)
        assert rcvr.get_bandwidth_effect(1.0e9, 0.0) == 1.0
        assert rcvr.get_bandwidth_effect(1.1e9, 0.0) == 0.0

    def test_zero_bandwidth_receiver(self):
        rcvr = configure(Rcvr(), frequency=1.0e9)
        assert rcvr.get_bandwidth_effect(1.0e9, 0.0) == 1.0
        assert rcvr.get_bandwidth_effect(1.0e9, 2.0e6) == 1.0
        assert rcvr.get_bandwidth_effect(1.01e9, 2.0e6) == 0.0

    def test_passband_overlap(self, rcvr):
        near = configure(Xmtr(), frequency=1.0004e9, bandwidth=1.0e6)
        far = configure(Xmtr(), frequency=1.01e9)
        assert rcvr.can_interact_with(near)
        assert not rcvr.can_interact_with(far)
