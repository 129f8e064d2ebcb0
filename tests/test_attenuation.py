"""
Atmospheric Attenuation Tests

Test ID | Description                               | Reference          | Tolerance
--------|-------------------------------------------|--------------------|-----------
ATT-001 | Specific attenuation over range           | 10^(-0.1·γ·R)      | 1e-12
ATT-002 | Leg end points sorted low to high         | Definition         | 1e-6 m
ATT-003 | Blake two-way curve fit                   | Blake NRL 7098     | 1e-9
ATT-004 | ITU-R P.676 oxygen and water vapor lines  | ITU-R P.676-8      | Band
ATT-005 | ITU-R P.838 rain, P.835 atmosphere        | ITU-R P.838-3/P.835| Band
ATT-006 | Tabular lookup, clamping, two-way root    | Definition         | 1e-12
ATT-007 | Spectral dump -> table conversion         | MODTRAN reduction  | 1e-12

References:
    [1] Blake, L. V., "Radar-Absorption Curves", NRL Report 7098, 1970
    [2] ITU-R P.676-8, "Attenuation by atmospheric gases", 2009
    [3] ITU-R P.838-3, "Specific attenuation model for rain", 2005
    [4] ITU-R P.835-4, "Reference standard atmospheres", 2005
"""

import os
import sys

import numpy as np
import pytest
import yaml

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from emsim.components import Rcvr, Xmtr
from emsim.em.attenuation import (
    NullAttenuation,
    SimpleAttenuation,
    attenuation_model_from_input,
    create_attenuation_model,
)
from emsim.em.blake import BLAKE_A_COEFFICIENTS, BLAKE_B_COEFFICIENTS, BlakeAttenuation, blake_two_way_attenuation
from emsim.em.interaction import Interaction
from emsim.em.itu_attenuation import (
    ITU_R_P676,
    ItuAttenuation,
    cloud_specific_attenuation,
    rain_specific_attenuation,
    reference_atmosphere,
    validate_itu_water_vapor_line,
)
from emsim.em.tabular_attenuation import TabularAttenuation, convert_spectral_data
from emsim.em.types import Geometry, Polarization
from emsim.errors import ConfigurationError
from emsim.physics.constants import FOUR_PI, SPEED_OF_LIGHT
from emsim.physics.geodesy import lla_to_wcs
from emsim.simulation import ArticulatedPart, Environment, Platform


def make_link(rcvr_inputs=None, xmtr_alt=100.0, rcvr_alt=100.0, distance=1.0e4):
    """One-way 1 GHz link; the receiver is displaced `distance` meters north in WCS."""
    xmtr_part = ArticulatedPart(Platform("tx", 0.0, 0.0, xmtr_alt), name="tx_part")
    xmtr = Xmtr(name="tx")
    xmtr.process_input("frequency", 1.0e9)
    xmtr.process_input("power", 1.0e4)
    xmtr.initialize(xmtr_part)

    rcvr_platform = Platform("rx")
    rcvr_platform.set_location_wcs(lla_to_wcs(0.0, 0.0, rcvr_alt) + np.array([0.0, 0.0, distance]))
    rcvr = Rcvr(name="rx")
    rcvr.process_input("frequency", 1.0e9)
    for command, value in (rcvr_inputs or {}).items():
        rcvr.process_input(command, value)
    rcvr.initialize(ArticulatedPart(rcvr_platform, name="rx_part"))

    interaction = Interaction(Environment())
    interaction.begin_one_way(xmtr, rcvr)
    return interaction


# =============================================================================
# TEST 1: Simple Attenuation
# =============================================================================


class TestSimpleAttenuation:
    """
    Reference: Uniform specific attenuation
    Problem: 1 dB/km over 10 km
    Expected: Factor 0.1
    """

    def test_specific_attenuation_units(self):
        model = SimpleAttenuation()
        model.process_input("specific_attenuation", [1.0, "dB/km"])
        assert model.compute_attenuation_factor_p(1.0e4, 0.0, 0.0, 1.0e9) == pytest.approx(0.1, rel=1.0e-12)
        model.process_input("specific_attenuation", [1.0, "db/nm"])
        assert model.compute_attenuation_factor_p(1852.0, 0.0, 0.0, 1.0e9) == pytest.approx(10.0**-0.1)

    def test_constant_factor(self):
        model = SimpleAttenuation()
        model.process_input("attenuation_factor", 0.5)
        assert model.compute_attenuation_factor_p(1.0e5, 0.0, 0.0, 1.0e9) == 0.5

    def test_input_validation(self):
        model = SimpleAttenuation()
        with pytest.raises(ConfigurationError, match="units"):
            model.process_input("specific_attenuation", [1.0, "db/furlong"])
        with pytest.raises(ConfigurationError):
            model.process_input("attenuation_factor", 1.5)

    def test_factory(self):
        model = attenuation_model_from_input({"type": "simple", "specific_attenuation": [2.0, "db/km"]})
        assert isinstance(model, SimpleAttenuation)
        assert model.specific_attenuation == pytest.approx(2.0e-3)
        assert isinstance(create_attenuation_model("none"), NullAttenuation)
        with pytest.raises(ConfigurationError, match="unknown attenuation model type"):
            create_attenuation_model("fog_machine")
        with pytest.raises(ConfigurationError, match="keyword"):
            attenuation_model_from_input({"type": "simple", "colour": "blue"})

    def test_link_absorption(self):
        """Receiver-side model attenuates a 10 km link by 10 dB"""
        interaction = make_link({"attenuation_model": {"type": "simple", "specific_attenuation": [1.0, "db/km"]}})
        power = interaction.compute_rf_one_way_power()
        wavelength = SPEED_OF_LIGHT / 1.0e9
        friis = 1.0e4 / (FOUR_PI * 1.0e8) * wavelength**2 / FOUR_PI
        assert interaction.absorption_factor == pytest.approx(0.1, rel=1.0e-9)
        assert power == pytest.approx(0.1 * friis, rel=1.0e-9)


class TestLegGeometry:
    """
    Reference: Attenuation path orientation
    Problem: Transmitter at 5 km altitude, receiver at 100 m
    Expected: Sorted path starts at the receiver looking up
    """

    @pytest.fixture
    def interaction(self):
        return make_link(xmtr_alt=5000.0, rcvr_alt=100.0, distance=2.0e4)

    def test_sorted_end_points(self, interaction):
        model = SimpleAttenuation()
        path_range, elevation, altitude = model.get_range_elevation_altitude(interaction, Geometry.XMTR_TO_RCVR)
        assert altitude == pytest.approx(interaction.rcvr_loc.alt, abs=1.0e-3)
        assert altitude < 200.0
        assert elevation > 0.0
        assert path_range == pytest.approx(interaction.xmtr_to_rcvr.range)

    def test_unsorted_end_points(self, interaction):
        model = SimpleAttenuation()
        model.process_input("sort_end_points", False)
        _, elevation, altitude = model.get_range_elevation_altitude(interaction, Geometry.XMTR_TO_RCVR)
        assert altitude == pytest.approx(5000.0, abs=1.0e-3)
        assert elevation < 0.0

    def test_ground_range(self, interaction):
        model = SimpleAttenuation()
        alt1, alt2, ground_range = model.get_altitudes_and_ground_range(interaction, Geometry.XMTR_TO_RCVR)
        assert alt1 < alt2
        assert 1.9e4 < ground_range < 2.1e4


# =============================================================================
# TEST 2: Blake Absorption
# =============================================================================


class TestBlake:
    """
    Reference: Blake, NRL Report 7098
    Problem: 1 GHz, 0° elevation
    Expected: L = A·(1 − exp(−B·R_nm)) dB two-way, flat beyond 300 nmi
    """

    def test_table_corner(self):
        a = BLAKE_A_COEFFICIENTS[4, 0]
        b = BLAKE_B_COEFFICIENTS[4, 0]
        expected = 10.0 ** (-0.1 * a * (1.0 - np.exp(-b * 100.0)))
        assert blake_two_way_attenuation(100.0 * 1852.0, 0.0, 1.0e9) == pytest.approx(expected, rel=1.0e-9)

    def test_zero_range(self):
        assert blake_two_way_attenuation(0.0, 0.0, 3.0e9) == pytest.approx(1.0)

    def test_range_cap(self):
        at_cap = blake_two_way_attenuation(300.0 * 1852.0, np.radians(1.0), 3.0e9)
        beyond = blake_two_way_attenuation(600.0 * 1852.0, np.radians(1.0), 3.0e9)
        assert beyond == pytest.approx(at_cap)

    def test_higher_elevation_attenuates_less(self):
        low = blake_two_way_attenuation(1.0e5, 0.0, 3.0e9)
        high = blake_two_way_attenuation(1.0e5, np.radians(10.0), 3.0e9)
        assert high > low

    def test_one_way_is_square_root(self):
        model = BlakeAttenuation()
        two_way = blake_two_way_attenuation(5.0e4, np.radians(2.0), 2.0e9)
        assert model.compute_attenuation_factor_p(5.0e4, np.radians(2.0), 0.0, 2.0e9) == pytest.approx(np.sqrt(two_way))


# =============================================================================
# TEST 3: ITU-R Gas, Rain and Cloud Attenuation
# =============================================================================


class TestItuSpecificAttenuation:
    """
    Reference: ITU-R P.676-8 Annex 1, Figure 1
    Problem: Sea-level standard atmosphere
    Expected: ~15 dB/km oxygen at 60 GHz, ~0.2 dB/km at 22.235 GHz
    """

    def test_reference_atmosphere_sea_level(self):
        pressure, temperature, density = reference_atmosphere(0.0)
        assert pressure == pytest.approx(1013.25)
        assert temperature == pytest.approx(288.15)
        assert density == pytest.approx(7.5)

    def test_reference_atmosphere_tropopause(self):
        pressure, temperature, _ = reference_atmosphere(11000.0)
        assert temperature == pytest.approx(216.65)
        assert pressure == pytest.approx(226.3, rel=0.01)
        assert reference_atmosphere(90000.0) == (0.0, 0.0, 0.0)

    def test_oxygen_60ghz_peak(self):
        gamma = ITU_R_P676.specific_attenuation(60.0, 1013.25, 288.15, 0.0)
        assert 10.0 < gamma < 20.0, f"60 GHz oxygen attenuation: {gamma:.2f} dB/km"

    def test_water_vapor_line(self):
        """7.5 g/m³ at sea level: γ in [0.18, 0.22] dB/km, A(1 km) = 10^(−γ/10)"""
        result = validate_itu_water_vapor_line()
        gamma = result["computed_values"]["gamma_dB_per_km"]
        assert result["validation"]["is_valid"], f"22.235 GHz attenuation: {gamma:.4f} dB/km"
        assert 0.18 <= gamma <= 0.22

        path_factor = ItuAttenuation().compute_attenuation_factor_p(1000.0, 0.0, 0.0, 22.235e9)
        assert path_factor == pytest.approx(result["computed_values"]["attenuation_factor_1km"], rel=1.0e-3)
        assert gamma > ITU_R_P676.specific_attenuation(15.0)
        assert gamma > ITU_R_P676.specific_attenuation(30.0)

    def test_rain(self):
        """10 mm/h at 10 GHz: k·R^α ≈ 0.01217·10^1.2571 dB/km"""
        gamma = rain_specific_attenuation(10.0e9, Polarization.HORIZONTAL, 10.0)
        assert 0.15 < gamma < 0.3
        assert rain_specific_attenuation(10.0e9, Polarization.HORIZONTAL, 50.0) > gamma

    def test_cloud_grows_with_frequency(self):
        low = cloud_specific_attenuation(10.0e9, 273.15, 0.5)
        high = cloud_specific_attenuation(30.0e9, 273.15, 0.5)
        assert 0.0 < low < high


class TestItuPathAttenuation:
    """
    Reference: Layer-by-layer integration along a bent ray
    Problem: Horizontal 10 GHz paths at sea level
    Expected: Factor below one, decreasing with range and with rain
    """

    def test_horizontal_path(self):
        model = ItuAttenuation()
        short = model.compute_attenuation_factor_p(1.0e4, 0.0, 0.0, 10.0e9)
        long = model.compute_attenuation_factor_p(5.0e4, 0.0, 0.0, 10.0e9)
        assert 0.9 < short < 1.0
        assert long < short

    def test_rain_layer(self):
        model = ItuAttenuation()
        dry = model.compute_attenuation(2.0e4, 0.0, 0.0, 10.0e9, Polarization.DEFAULT, Environment())
        wet = model.compute_attenuation(
            2.0e4, 0.0, 0.0, 10.0e9, Polarization.DEFAULT, Environment(rain_rate_mm_hr=25.0)
        )
        assert wet < dry

    def test_table_regenerated_on_frequency_change(self):
        """Tables are rebuilt only when the frequency moves more than 1%"""
        model = ItuAttenuation()
        model.compute_attenuation_factor_p(1.0e4, 0.0, 0.0, 10.0e9)
        model.compute_attenuation_factor_p(1.0e4, 0.0, 0.0, 10.05e9)
        assert model._frequency == 10.0e9
        model.compute_attenuation_factor_p(1.0e4, 0.0, 0.0, 11.0e9)
        assert model._frequency == 11.0e9

    def test_short_path(self):
        assert ItuAttenuation().compute_attenuation_factor_p(0.5, 0.0, 0.0, 10.0e9) == 1.0


# =============================================================================
# TEST 4: Tabular Attenuation
# =============================================================================


TABLE = {
    "independent_variables": [
        {"name": "altitude", "values": [0.0, 1000.0]},
        {"name": "slant_range", "values": [0.0, 10000.0]},
    ],
    "values": [[1.0, 0.5], [1.0, 0.8]],
}


class TestTabularAttenuation:
    """
    Reference: Table lookup
    Problem: Factor linear in slant range, 1 -> 0.5 over 10 km at sea level
    Expected: Linear interpolation, edge clamping, optional two-way root
    """

    @pytest.fixture
    def model(self):
        model = TabularAttenuation()
        model.process_input("attenuation", TABLE)
        model.initialize(None)
        return model

    def test_interpolation(self, model):
        assert model.compute_attenuation_factor_p(5000.0, 0.0, 0.0, 1.0e9) == pytest.approx(0.75)
        assert model.compute_attenuation_factor_p(5000.0, 0.0, 500.0, 1.0e9) == pytest.approx(0.825)

    def test_clamping(self, model):
        assert model.compute_attenuation_factor_p(2.0e4, 0.0, -10.0, 1.0e9) == pytest.approx(0.5)

    def test_two_way_and_adjustment(self, model):
        model.process_input("two_way_attenuation", True)
        assert model.compute_attenuation_factor_p(1.0e4, 0.0, 0.0, 1.0e9) == pytest.approx(np.sqrt(0.5))
        model.process_input("adjustment_factor", 3.0)
        assert model.compute_attenuation_factor_p(1.0e4, 0.0, 0.0, 1.0e9) == 1.0

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "table.yaml"
        path.write_text(yaml.safe_dump(TABLE))
        model = TabularAttenuation()
        model.process_input("attenuation", str(path))
        model.initialize(None)
        assert model.compute_attenuation_factor_p(1.0e4, 0.0, 1000.0, 1.0e9) == pytest.approx(0.8)

    def test_inconsistent_variables(self):
        model = TabularAttenuation()
        model.process_input(
            "attenuation",
            {
                "independent_variables": {"slant_range": [0.0, 1.0], "ground_range": [0.0, 1.0]},
                "values": [[1.0, 1.0], [1.0, 1.0]],
            },
        )
        with pytest.raises(ConfigurationError, match="independent variables"):
            model.initialize(None)

    def test_missing_table(self):
        with pytest.raises(ConfigurationError):
            TabularAttenuation().initialize(None)

    def test_shape_mismatch(self):
        with pytest.raises(ConfigurationError, match="shape"):
            TabularAttenuation().process_input(
                "attenuation", {"independent_variables": {"slant_range": [0.0, 1.0]}, "values": [1.0]}
            )


class TestSpectralConversion:
    """
    Reference: Band-averaged transmittance
    Problem: 2 × 2 × 2 geometry grid with flat spectral transmittance
    Expected: Each table entry equals its block transmittance
    """

    def test_convert_and_load(self, tmp_path):
        lines = ["header one", "header two", "header three"]
        expected = {}
        value = 0.95
        for altitude in (0.0, 1000.0):
            for elevation in (0.0, 10.0):
                for slant_range in (1000.0, 5000.0):
                    lines.append(f"%{{ {altitude} {elevation} {slant_range}")
                    for wavenumber in (2000.0, 2010.0, 2020.0):
                        lines.append(f"  {wavenumber} {value}")
                    lines.append("%}")
                    expected[(altitude, elevation, slant_range)] = value
                    value -= 0.05
        source = tmp_path / "spectral.txt"
        source.write_text("\n".join(lines) + "\n")
        output = tmp_path / "table.yaml"

        table = convert_spectral_data(str(source), str(output))
        assert table["values"][0][0][0] == pytest.approx(0.95, rel=1.0e-12)
        assert table["values"][1][1][1] == pytest.approx(expected[(1000.0, 10.0, 5000.0)], rel=1.0e-12)

        model = TabularAttenuation()
        model.process_input("attenuation", str(output))
        model.initialize(None)
        factor = model.compute_attenuation_factor_p(5000.0, np.radians(10.0), 1000.0, 1.0e9)
        assert factor == pytest.approx(expected[(1000.0, 10.0, 5000.0)], rel=1.0e-9)

    def test_unsorted_blocks_rejected(self, tmp_path):
        lines = ["h", "h", "h", "%{ 1000 0 1000", "  2000 0.9", "%}", "%{ 0 0 1000", "  2000 0.9", "%}"]
        source = tmp_path / "spectral.txt"
        source.write_text("\n".join(lines) + "\n")
        with pytest.raises(ConfigurationError, match="non-ascending"):
            convert_spectral_data(str(source), str(tmp_path / "out.yaml"))
