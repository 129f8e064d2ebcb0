"""
Pattern-Propagation and Clutter Tests

Test ID | Description                                 | Reference            | Tolerance
--------|---------------------------------------------|----------------------|-----------
PRP-001 | Null model forces F⁴ = 0                    | Definition           | Exact
PRP-002 | Fresnel coefficient at grazing incidence    | Blake Eq. 6.48       | 1e-3
PRP-003 | Specular path difference over a flat earth  | δ = 4·h1·h2/(R1+R2+Rd)| 1e-3
PRP-004 | First multipath null at δ = λ               | Blake Ch. 6          | F² < 1e-3
PRP-005 | Ground-wave k factor and surface wave       | ITU-R P.368          | Band
PRP-006 | Knife-edge loss J(0) ≈ 6 dB                 | ITU-R P.526 Eq. 31   | 0.05 dB
PRP-007 | ALARM multipath null over flat terrain      | Two-ray model        | F⁴ < 1e-3
CLT-001 | Grazing angle and constant-γ reflectivity   | Barton Ch. 9         | 1e-6
CLT-002 | Clutter power scales with processing factor | Definition           | 1e-12

References:
    [1] Blake, L. V., "Radar Range-Performance Analysis", Artech House, 1986
    [2] ITU-R P.526-15, "Propagation by diffraction", 2019
    [3] ITU-R P.368-9, "Ground-wave propagation curves", 2007
    [4] Barton, D. K., "Radar Equations for Modern Radar", Artech House, 2013
"""

import os
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from emsim.components import Rcvr, Xmtr
from emsim.em.alarm_propagation import (
    AlarmPropagation,
    _knife_edge_loss_db_jit,
    rough_surface_reflection,
    surface_admittance_factor,
)
from emsim.em.clutter import (
    NullClutter,
    SurfaceClutterTable,
    clutter_model_from_input,
    grazing_angle,
    sea_gamma_db,
)
from emsim.em.fast_multipath import (
    REFLECT_HORIZONTAL,
    REFLECT_VERTICAL,
    FastMultipath,
    compute_reflection_geometry,
    reflection_coefficient,
    soil_dielectric,
    specular_roughness_factor,
    water_dielectric,
)
from emsim.em.ground_wave import (
    GroundWavePropagation,
    _w1,
    effective_earth_radius_factor,
    residue_roots,
)
from emsim.em.interaction import Interaction
from emsim.em.propagation import NullPropagation, create_propagation_model, propagation_model_from_input
from emsim.em.types import Polarization
from emsim.errors import ConfigurationError
from emsim.physics.constants import EARTH_RADIUS, SPEED_OF_LIGHT
from emsim.physics.geodesy import lla_to_wcs
from emsim.simulation import ArticulatedPart, Environment, LandCover, Platform

FREQUENCY = 1.0e9
WAVELENGTH = SPEED_OF_LIGHT / FREQUENCY
MAST = 30.0


# =============================================================================
# HELPERS
# =============================================================================


def make_part(name, lat=0.0, lon=0.0, alt=MAST):
    return ArticulatedPart(Platform(name, lat, lon, alt), name=f"{name}_part")


def make_xmtr(part, **inputs):
    xmtr = Xmtr(name=f"{part.platform.name}_xmtr")
    xmtr.process_input("frequency", FREQUENCY)
    xmtr.process_input("power", 1.0e4)
    for command, value in inputs.items():
        xmtr.process_input(command, value)
    xmtr.initialize(part)
    return xmtr


def make_radar(part, **inputs):
    xmtr = Xmtr(name=f"{part.platform.name}_radar")
    rcvr = Rcvr(name=f"{part.platform.name}_radar_rcvr")
    xmtr.process_input("frequency", FREQUENCY)
    xmtr.process_input("power", 1.0e4)
    for command, value in inputs.items():
        xmtr.process_input(command, value)
    xmtr.set_linked_receiver(rcvr)
    xmtr.initialize(part)
    rcvr.initialize()
    return xmtr, rcvr


def flat_link(distance, **xmtr_inputs):
    """One-way link between equal masts with the receiver on the transmitter's tangent plane."""
    xmtr = make_xmtr(make_part("tx"), **xmtr_inputs)
    rcvr_platform = Platform("rx")
    rcvr_platform.set_location_wcs(lla_to_wcs(0.0, 0.0, MAST) + np.array([0.0, 0.0, distance]))
    rcvr = Rcvr(name="rx")
    rcvr.process_input("frequency", FREQUENCY)
    rcvr.initialize(ArticulatedPart(rcvr_platform, name="rx_part"))
    interaction = Interaction(Environment())
    interaction.begin_one_way(xmtr, rcvr)
    interaction.compute_rf_one_way_power()
    return interaction


def null_distance(h1, h2, wavelength):
    """Ground range at which the reflected path is one wavelength longer."""
    return ((h1 + h2) ** 2 - (h2 - h1) ** 2 - wavelength**2) / (2.0 * wavelength)


def peak_distance(h1, h2, wavelength):
    """Ground range at which the reflected path is half a wavelength longer."""
    return ((h1 + h2) ** 2 - (h2 - h1) ** 2 - 0.25 * wavelength**2) / wavelength


# =============================================================================
# TEST 1: Model Registry
# =============================================================================


class TestPropagationRegistry:
    """
    Reference: Model factory
    Problem: Build models from type strings and keyword blocks
    Expected: Known types resolve, the null model forces F⁴ = 0
    """

    def test_null_model(self):
        model = create_propagation_model("none")
        assert isinstance(model, NullPropagation)
        assert model.is_null_model()
        assert model.compute_propagation_factor(None, None) == 0.0

    def test_keyword_block(self):
        model = propagation_model_from_input(
            {"type": "fast_multipath", "soil_moisture": 30.0, "surface_roughness": 0.5}
        )
        assert isinstance(model, FastMultipath)
        assert model.soil_moisture_fraction == pytest.approx(0.3)
        assert model.surface_roughness == 0.5

    def test_rejects_unknown(self):
        with pytest.raises(ConfigurationError, match="unknown propagation model type"):
            create_propagation_model("ducting")
        with pytest.raises(ConfigurationError, match="keyword"):
            propagation_model_from_input({"type": "alarm", "flux_capacitor": 1})
        with pytest.raises(ConfigurationError):
            propagation_model_from_input({"type": "fast_multipath", "soil_moisture_fraction": 2.0})


# =============================================================================
# TEST 2: Fast Multipath
# =============================================================================


class TestReflection:
    """
    Reference: Blake Ch. 6, Fresnel equations
    Problem: Smooth soil and sea water near grazing incidence
    Expected: |Γ| → 1 with phase π; vertical |Γ| dips below horizontal
    """

    def test_grazing_limit(self):
        gamma = reflection_coefficient(1.0e-4, soil_dielectric(FREQUENCY, 0.15), REFLECT_HORIZONTAL)
        assert abs(gamma) == pytest.approx(1.0, abs=1.0e-3)
        assert abs(abs(np.angle(gamma)) - np.pi) < 1.0e-3

    def test_vertical_below_horizontal(self):
        epsilon = water_dielectric(3.0e9, sea_water=True)
        horizontal = abs(reflection_coefficient(np.radians(5.0), epsilon, REFLECT_HORIZONTAL))
        vertical = abs(reflection_coefficient(np.radians(5.0), epsilon, REFLECT_VERTICAL))
        assert vertical < horizontal

    def test_dielectric_tables(self):
        dry = soil_dielectric(FREQUENCY, 0.003)
        wet = soil_dielectric(FREQUENCY, 0.3)
        assert wet.real > dry.real > 1.0
        sea = water_dielectric(FREQUENCY, sea_water=True)
        lake = water_dielectric(FREQUENCY, sea_water=False)
        assert sea.imag > lake.imag > 0.0

    def test_roughness_factor(self):
        assert specular_roughness_factor(0.0, 0.1, WAVELENGTH) == 1.0
        smooth = specular_roughness_factor(0.01, 0.1, WAVELENGTH)
        rough = specular_roughness_factor(1.0, 0.1, WAVELENGTH)
        assert rough < smooth < 1.0
        assert specular_roughness_factor(100.0, 1.0, 0.01) == 0.0


class TestReflectionGeometry:
    """
    Reference: Blake Eq. 6.9 (flat-earth limit)
    Problem: 10 m antenna, target at 100 m, 10 km ground range
    Expected: δ ≈ 2·h1·h2/d, reflection point below the horizon
    """

    def test_flat_earth_limit(self):
        ground = 1.0e4
        direct = np.hypot(ground, 90.0)
        geometry = compute_reflection_geometry(1.0e11, 10.0, direct, np.arcsin(90.0 / direct))
        assert geometry is not None
        r1, r2, depression, grazing, delta = geometry
        assert delta == pytest.approx(np.hypot(ground, 110.0) - direct, rel=1.0e-3)
        assert r1 + r2 == pytest.approx(np.hypot(ground, 110.0), rel=1.0e-6)
        assert grazing == pytest.approx(np.arctan(110.0 / ground), rel=1.0e-3)
        assert depression < 0.0

    def test_no_reflection_for_buried_antenna(self):
        assert compute_reflection_geometry(8.5e6, 0.0, 1.0e4, 0.0) is None


class TestMultipathNull:
    """
    Reference: Two-ray interference over a smooth surface
    Problem: 30 m masts at 1 GHz over moist soil
    Expected: Null where δ = λ (d ≈ 2·ht·hr/λ), near 4x where δ = λ/2
    """

    INPUTS = {
        "propagation_model": {"type": "fast_multipath", "surface_roughness": 1.0e-3},
        "earth_radius_multiplier": 1.0e6,
    }

    def test_first_null(self):
        distance = null_distance(MAST, MAST, WAVELENGTH)
        assert distance == pytest.approx(2.0 * MAST * MAST / WAVELENGTH, rel=1.0e-4)
        interaction = flat_link(distance, **self.INPUTS)
        assert interaction.propagation_factor < 1.0e-3

    def test_first_peak(self):
        interaction = flat_link(peak_distance(MAST, MAST, WAVELENGTH), **self.INPUTS)
        assert 3.5 < interaction.propagation_factor <= 4.0

    def test_power_carries_factor(self):
        free = flat_link(peak_distance(MAST, MAST, WAVELENGTH))
        multipath = flat_link(peak_distance(MAST, MAST, WAVELENGTH), **self.INPUTS)
        assert free.propagation_factor == 1.0
        ratio = multipath.rcvd_power / free.rcvd_power
        assert ratio == pytest.approx(multipath.propagation_factor, rel=1.0e-9)


# =============================================================================
# TEST 3: Ground Wave
# =============================================================================


class TestGroundWave:
    """
    Reference: ITU-R P.368 (GRWAVE), Norton 1936, Fock 1965
    Problem: 10 MHz over sea water (εr 70, σ 5 S/m)
    Expected: k ≈ 4/3 for N_s = 315, vertical surface wave dominates
    """

    @pytest.fixture
    def model(self):
        return GroundWavePropagation()

    def test_effective_earth_radius(self, model):
        k = effective_earth_radius_factor(315.0, 7350.0)
        assert 1.3 < k < 1.45
        assert model.get_earth_radius_factor() == pytest.approx(k)
        assert effective_earth_radius_factor(0.0, 7350.0) == 1.0

    def test_minimum_distance(self, model):
        assert model.path_factor(5.0e3, 10.0, 10.0, 10.0e6, Polarization.VERTICAL) == 1.0

    def test_vertical_surface_wave(self, model):
        vertical = model.path_factor(2.0e4, 5.0, 5.0, 10.0e6, Polarization.VERTICAL)
        horizontal = model.path_factor(2.0e4, 5.0, 5.0, 10.0e6, Polarization.HORIZONTAL)
        assert vertical > 10.0 * horizontal
        assert 0.0 < vertical <= 4.0

    def test_beyond_horizon_decay(self, model):
        near = model.path_factor(1.5e5, 5.0, 5.0, 10.0e6, Polarization.VERTICAL)
        far = model.path_factor(3.0e5, 5.0, 5.0, 10.0e6, Polarization.VERTICAL)
        assert np.isfinite(near) and np.isfinite(far)
        assert 0.0 < far < near

    def test_residue_roots(self):
        q = 0.3 + 0.0j
        roots = residue_roots(q, 5)
        assert len(roots) == 5
        for t in roots:
            w, wp = _w1(t)
            assert abs(wp - q * w) < 1.0e-6 * max(abs(w), 1.0)
            assert t.imag > 0.0

    def test_input_validation(self, model):
        with pytest.raises(ConfigurationError):
            model.process_input("relative_permittivity", 0.5)
        assert model.process_input("use_environment_ground", True)


# =============================================================================
# TEST 4: ALARM Terrain Propagation
# =============================================================================


class TestAlarmKernels:
    """
    Reference: ITU-R P.526 §4.1 and §3.1
    Problem: Knife edge grazing the line of sight
    Expected: J(0) ≈ 6.0 dB, J(v ≤ -0.78) = 0
    """

    def test_knife_edge_loss(self):
        assert _knife_edge_loss_db_jit(0.0) == pytest.approx(6.03, abs=0.05)
        assert _knife_edge_loss_db_jit(-1.0) == 0.0
        assert _knife_edge_loss_db_jit(2.0) > _knife_edge_loss_db_jit(1.0)

    def test_surface_admittance(self):
        horizontal = surface_admittance_factor(1.0e9, 8.5e6, 15.0, 0.005, vertical=False)
        vertical = surface_admittance_factor(1.0e9, 8.5e6, 15.0, 0.005, vertical=True)
        assert 0.0 < horizontal < vertical

    def test_rough_surface_floor(self):
        assert rough_surface_reflection(0.0, 0.01, WAVELENGTH) == 1.0
        assert rough_surface_reflection(50.0, 0.3, WAVELENGTH) == pytest.approx(0.01)


class TestAlarmMultipath:
    """
    Reference: Two-ray model over the best-fit terrain plane
    Problem: Monostatic radar and target on 30 m masts over flat terrain
    Expected: Two-way null where δ = λ, strong enhancement where δ = λ/2
    """

    @staticmethod
    def two_way_factor(ground_range, **model_inputs):
        model = AlarmPropagation()
        for command, value in model_inputs.items():
            model.process_input(command, value)
        xmtr, rcvr = make_radar(make_part("radar"), propagation_model=model, earth_radius_multiplier=1.0e6)
        target = Platform("target", np.degrees(ground_range / EARTH_RADIUS), 0.0, MAST)
        target.set_signature("radar", 1.0)
        interaction = Interaction(Environment())
        interaction.begin_two_way(xmtr, target, rcvr)
        interaction.compute_rf_two_way_power()
        return interaction.propagation_factor

    def test_null_and_peak(self):
        null = self.two_way_factor(null_distance(MAST, MAST, WAVELENGTH))
        peak = self.two_way_factor(peak_distance(MAST, MAST, WAVELENGTH))
        assert null < 1.0e-3
        assert peak > 8.0

    def test_disabled(self):
        assert self.two_way_factor(5.0e3, propagation=False) == pytest.approx(1.0)

    def test_input_validation(self):
        model = AlarmPropagation()
        with pytest.raises(ConfigurationError):
            model.process_input("water_type", "pond")
        model.process_input("surface_roughness", 2.0)
        assert model.use_surface_height and not model.use_environment_ground


# =============================================================================
# TEST 5: Surface Clutter
# =============================================================================


class TestClutterReflectivity:
    """
    Reference: Barton Ch. 9, constant-γ model
    Problem: 100 m radar, surface at 1 km; sea state 3 at 10 GHz
    Expected: ψ ≈ h/R, γ = 6·SS - 10·log10(λ) - 64 dB
    """

    def test_grazing_angle(self):
        assert grazing_angle(1000.0, 100.0, 1.0e12) == pytest.approx(np.arcsin(0.1), rel=1.0e-6)
        assert grazing_angle(5.0e4, 100.0, 8.5e6) == 0.0
        assert grazing_angle(1000.0, 0.0, 8.5e6) == 0.0

    def test_sea_gamma(self):
        wavelength = SPEED_OF_LIGHT / 10.0e9
        assert sea_gamma_db(3, wavelength) == pytest.approx(18.0 - 10.0 * np.log10(wavelength) - 64.0)

    def test_sigma0_sources(self):
        model = SurfaceClutterTable()
        psi = np.radians(2.0)
        land = model.get_sigma0(FREQUENCY, psi, Environment())
        assert land == pytest.approx(10.0**-1.5 * np.sin(psi))

        model.process_input(
            "sigma0_table",
            {"general": {"frequencies": [FREQUENCY], "grazing_angles": [0.0, 10.0], "sigma0_db": [-40.0, -20.0]}},
        )
        assert model.get_sigma0(FREQUENCY, np.radians(5.0), Environment()) == pytest.approx(1.0e-3)
        assert model.get_sigma0(FREQUENCY, 0.0, Environment()) == 0.0

    def test_table_validation(self):
        model = SurfaceClutterTable()
        with pytest.raises(ConfigurationError, match="land cover"):
            model.process_input("sigma0_table", {"lava": {"frequencies": [1.0], "grazing_angles": [0, 1], "sigma0_db": [0, 0]}})
        with pytest.raises(ConfigurationError):
            model.set_sigma0_table(LandCover.GENERAL, [1.0e9], [0.0, 0.1], [-20.0])

    def test_factory(self):
        assert isinstance(clutter_model_from_input("none"), NullClutter)
        model = clutter_model_from_input({"type": "surface_clutter_table", "gamma_db": -20.0})
        assert model.gamma_db == -20.0


class TestClutterPower:
    """
    Reference: Surface clutter radar equation
    Problem: 100 m radar, target at 5 km
    Expected: Positive power, linear in the processing factor, none beyond the horizon
    """

    @staticmethod
    def interaction(north, alt):
        xmtr, rcvr = make_radar(
            make_part("radar", alt=100.0), pulse_width=1.0e-6, pulse_repetition_frequency=1000.0
        )
        target = Platform("target", np.degrees(north / EARTH_RADIUS), 0.0, alt)
        target.set_signature("radar", 1.0)
        interaction = Interaction(Environment())
        interaction.begin_two_way(xmtr, target, rcvr)
        interaction.compute_rf_two_way_power()
        return interaction

    def test_processing_factor(self):
        interaction = self.interaction(5.0e3, 100.0)
        model = SurfaceClutterTable()
        full = interaction.compute_clutter_power(model, 1.0)
        half = interaction.compute_clutter_power(model, 0.5)
        assert full > 0.0
        assert half == pytest.approx(0.5 * full, rel=1.0e-12)
        assert interaction.clutter_power == half

    def test_beyond_horizon(self):
        interaction = self.interaction(6.0e4, 5000.0)
        assert interaction.compute_clutter_power(SurfaceClutterTable(), 1.0) == 0.0

    def test_no_model(self):
        interaction = self.interaction(5.0e3, 100.0)
        assert interaction.compute_clutter_power(None) == 0.0
