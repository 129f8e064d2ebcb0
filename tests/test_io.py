"""
Input/Output Test Suite

Tests for the YAML scenario loader and the antenna pattern plot function.

Test ID | Description                               | Reference          | Tolerance
--------|-------------------------------------------|--------------------|-----------
IO-001  | Scenario builds a detecting simulation    | Radar equation     | Exact
IO-002  | Malformed scenarios raise with a source   | Loader contract    | Exact
IO-003  | Uniform pattern grid is constant          | Pattern definition | 1e-9 dB
IO-004  | Gaussian cut is -3 dB at half beamwidth   | Pattern definition | 0.01 dB
IO-005  | Plot file layout and column wrapping      | Plot file format   | Exact
IO-006  | Command line entry point                  | CLI contract       | Exact

References:
    - PyYAML documentation, safe_load
    - gnuplot 5 manual, "splot ... with pm3d"
"""

import os
import sys
import textwrap

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import antenna_plot
from emsim.components.antenna_pattern import create_antenna_pattern
from emsim.em.types import EBSMode, RcvrFunction, XmtrFunction
from emsim.errors import ConfigurationError
from emsim.io.pattern_plot import AntennaPlot, load_pattern_file
from emsim.io.scenario_loader import ScenarioLoader, load_scenario
from emsim.physics.terrain import FlatTerrain, TerrainQuery
from emsim.simulation.environment import LandCover

RADAR_SCENARIO = textwrap.dedent(
    """
    scenario:
      name: "Single Search Radar"
      description: "One radar, one target"
      duration_seconds: 3.0
      time_step_s: 1.0
      seed: 42

    environment:
      sea_state: 3
      rain_rate_mm_hr: 5.0
      land_cover: grass

    interaction_timeouts:
      sensor: 5.0

    platforms:
      - name: "radar_site"
        side: blue
        position: {lat_deg: 0.0, lon_deg: 0.0, alt_m: 10.0}
        sensors:
          - name: search
            part: {name: mast, location_ecs: [0.0, 0.0, -5.0]}
            frequency: 1.0e+9
            power: 1.0e+4
            one_m2_detect_range: 50000.0
            detection_threshold_db: 13.0

      - name: "target"
        side: red
        spatial_domain: air
        position: {lat_deg: 0.2, lon_deg: 0.0, alt_m: 1000.0}
        orientation: {heading_deg: 180.0}
        velocity_ned: [-100.0, 0.0, 0.0]
        rcs_m2: 1.0
    """
)

COMM_SCENARIO = textwrap.dedent(
    """
    scenario:
      name: "Comm Link"

    platforms:
      - name: "tx_site"
        position: {lat_deg: 0.0, lon_deg: 0.0, alt_m: 20.0}
        transmitters:
          - name: uplink
            function: comm
            frequency: 3.0e+8
            power: 10.0
      - name: "rx_site"
        position: {lat_deg: 0.1, lon_deg: 0.0, alt_m: 20.0}
        receivers:
          - name: downlink
            function: comm
            frequency: 3.0e+8
    """
)


def load(text):
    loader = ScenarioLoader()
    loader.load_string(text)
    return loader


def write(path, text):
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return str(path)


# =============================================================================
# TEST 1: SCENARIO LOADER
# =============================================================================


class TestScenarioConfig:
    """
    Reference: Scenario YAML schema
    Problem: Parse metadata, environment and platforms
    Expected: Typed configuration with degrees kept as given
    """

    def test_metadata(self):
        config = load(RADAR_SCENARIO).get_config()
        assert config.name == "Single Search Radar"
        assert config.duration_s == 3.0
        assert config.time_step_s == 1.0
        assert config.seed == 42
        assert config.interaction_timeouts == {"sensor": 5.0}

    def test_platforms(self):
        config = load(RADAR_SCENARIO).get_config()
        radar, target = config.platforms
        assert radar.name == "radar_site"
        assert len(radar.devices) == 1
        sensor = radar.devices[0]
        assert sensor.kind == "sensor"
        assert sensor.name == "search"
        assert sensor.part.name == "mast"
        np.testing.assert_allclose(sensor.part.location_ecs, [0.0, 0.0, -5.0])
        assert sensor.keywords["frequency"] == 1.0e9
        assert target.heading_deg == 180.0
        assert target.rcs_m2 == 1.0
        np.testing.assert_allclose(target.velocity_ned, [-100.0, 0.0, 0.0])

    def test_defaults(self):
        loader = load("platforms:\n  - position: {lat_deg: 1.0}\n")
        assert loader.get_scenario_name() == "Unnamed Scenario"
        platform = loader.get_config().platforms[0]
        assert platform.name == "Platform_0"
        assert platform.spatial_domain == "land"

    def test_unloaded(self):
        loader = ScenarioLoader()
        assert loader.get_scenario_name() == "Unknown"
        with pytest.raises(ValueError, match="No scenario loaded"):
            loader.create_simulation()

    def test_load_scenario_from_file(self, tmp_path):
        path = tmp_path / "radar.yaml"
        path.write_text(RADAR_SCENARIO, encoding="utf-8")
        config = load_scenario(str(path))
        assert config.name == "Single Search Radar"


class TestScenarioErrors:
    """
    Reference: Loader error contract
    Problem: Malformed input of every kind
    Expected: ConfigurationError (FileNotFoundError for a missing file)
    """

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ScenarioLoader(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml_reports_line(self, tmp_path):
        path = write(tmp_path / "bad.yaml", "scenario:\n  name: [unclosed\n")
        with pytest.raises(ConfigurationError) as info:
            ScenarioLoader(path)
        assert info.value.source.startswith(path)

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError, match="mapping"):
            load("- one\n- two\n")

    def test_time_step(self):
        with pytest.raises(ConfigurationError, match="time_step_s"):
            load("scenario:\n  time_step_s: 0.0\n")

    def test_velocity_length(self):
        with pytest.raises(ConfigurationError, match="velocity_ned"):
            load("platforms:\n  - velocity_ned: [1.0, 2.0]\n")

    def test_device_entry_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="mapping"):
            load("platforms:\n  - sensors: [search]\n")

    def test_unknown_sensor_keyword(self):
        text = RADAR_SCENARIO.replace("detection_threshold_db: 13.0", "detection_thresold_db: 13.0")
        with pytest.raises(ConfigurationError, match="detection_thresold_db"):
            load(text).create_simulation()

    def test_rejected_value_carries_file(self, tmp_path):
        path = tmp_path / "radar.yaml"
        path.write_text(RADAR_SCENARIO.replace("power: 1.0e+4", "power: -1.0"), encoding="utf-8")
        with pytest.raises(ConfigurationError) as info:
            ScenarioLoader(str(path)).create_simulation()
        assert info.value.source == str(path)

    @pytest.mark.parametrize(
        "environment",
        ["sea_state: 12", "rain_rate_mm_hr: -1.0", "humidity: 50.0", "land_cover: lava"],
    )
    def test_environment(self, environment):
        with pytest.raises(ConfigurationError):
            load(f"environment:\n  {environment}\n").create_environment()

    def test_unknown_terrain(self):
        with pytest.raises(ConfigurationError, match="terrain type"):
            load("terrain:\n  type: lidar\n").create_environment()

    def test_grid_terrain_requires_tables(self):
        with pytest.raises(ConfigurationError, match="grid terrain"):
            load("terrain:\n  type: grid\n  latitudes: [0.0, 1.0]\n").create_environment()


class TestScenarioConstruction:
    """
    Reference: Skolnik, Radar Handbook, Eq. 1.11
    Problem: 1 m² target ~22 km from a radar calibrated to 50 km
    Expected: The built simulation detects it on the first step
    """

    def test_environment(self):
        env = load(RADAR_SCENARIO).create_environment()
        assert env.sea_state == 3
        assert env.rain_rate_mm_hr == 5.0
        assert env.land_cover is LandCover.GRASS
        assert env.terrain is None

    def test_flat_terrain(self):
        env = load("terrain:\n  type: flat\n  height: 250.0\n").create_environment()
        assert isinstance(env.terrain, TerrainQuery)
        assert isinstance(env.terrain.terrain, FlatTerrain)
        assert env.terrain.get_height(0.5, 0.5) == 250.0

    def test_simulation(self):
        simulation = load(RADAR_SCENARIO).create_simulation()
        assert simulation.dt == 1.0
        assert simulation.environment.sea_state == 3
        assert simulation.observer.timeouts == {"sensor": 5.0}
        assert [p.name for p in simulation.platforms] == ["radar_site", "target"]
        target = simulation.platforms[1]
        assert target.get_radar_cross_section(1.0e9, "default", 0.0, 0.0) == pytest.approx(1.0)

        records = simulation.step()
        assert len(records) == 1
        assert records[0].detected
        assert records[0].target_name == "target"
        assert records[0].sensor == "search"

    def test_target_moves_south(self):
        simulation = load(RADAR_SCENARIO).create_simulation()
        target = simulation.platforms[1]
        lat0 = target.get_location_lla()[0]
        simulation.run(3.0)
        assert target.get_location_lla()[0] < lat0

    def test_comm_devices_linked(self):
        simulation = load(COMM_SCENARIO).create_simulation()
        xmtr = simulation.manager.get_xmtr_entry(0)
        rcvr = simulation.manager.get_rcvr_entry(0)
        assert xmtr.function is XmtrFunction.COMM
        assert rcvr.function is RcvrFunction.COMM
        assert rcvr.get_interactors() == [xmtr]


# =============================================================================
# TEST 2: ANTENNA PLOT
# =============================================================================


def uniform_plot(peak_gain_db=10.0):
    pattern = create_antenna_pattern("uniform", "omni")
    pattern.process_input("peak_gain_db", peak_gain_db)
    plot = AntennaPlot({"omni": pattern})
    plot.process_line("pattern_name omni")
    return plot


def gaussian_plot(beamwidth_deg=10.0):
    pattern = create_antenna_pattern("gaussian", "pencil")
    pattern.process_input("beamwidth", beamwidth_deg)
    plot = AntennaPlot({"pencil": pattern})
    plot.process_line("pattern_name pencil")
    return plot


class TestAntennaPlotCommands:
    """
    Reference: Antenna plot command vocabulary
    Problem: Textual commands with optional units
    Expected: Angles default to degrees; bad input raises
    """

    def test_angle_units(self):
        plot = AntennaPlot()
        plot.process_line("azimuth_range -30 30")
        assert plot.azimuth_max == pytest.approx(np.radians(30.0))
        plot.process_line("azimuth_range -0.5 rad 0.5 rad")
        assert plot.azimuth_min == pytest.approx(-0.5)
        plot.process_line("elevation_step 2 deg")
        assert plot.elevation_step == pytest.approx(np.radians(2.0))

    @pytest.mark.parametrize(
        "line,expected", [("frequency 3 ghz", 3.0e9), ("frequency 450 MHz", 4.5e8), ("frequency 1000", 1000.0)]
    )
    def test_frequency_units(self, line, expected):
        plot = AntennaPlot()
        plot.process_line(line)
        assert plot.frequency == pytest.approx(expected)

    def test_axes(self):
        plot = AntennaPlot()
        plot.process_line("axes both")
        assert plot.plot_type == "b"
        plot.process_line("axes horizontal")
        assert plot.plot_type == "h"

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("electronic_beam_steering none", EBSMode.NONE),
            ("electronic_beam_steering azimuth", EBSMode.AZIMUTH),
            ("electronic_beam_steering both", EBSMode.BOTH),
        ],
    )
    def test_beam_steering_mode(self, line, expected):
        plot = AntennaPlot()
        plot.process_line(line)
        assert plot.ebs_mode == expected

    def test_headers_keep_spaces(self):
        plot = AntennaPlot()
        plot.process_line("header_line_2   Search beam at 3 GHz")
        assert plot.header_lines[1] == "Search beam at 3 GHz"

    def test_comments_and_blank_lines(self):
        plot = AntennaPlot()
        plot.process_line("# a comment")
        plot.process_line("   ")
        assert plot.pattern_name == ""

    @pytest.mark.parametrize(
        "line",
        [
            "plot_everything now",
            "axes diagonal",
            "azimuth_range 30 -30",
            "elevation_range -100 10",
            "azimuth_step 0",
            "frequency 3 thz",
            "frequency -1",
            "header_line_4 text",
            "output_column_limit 0",
            "azimuth_range -30",
        ],
    )
    def test_bad_commands(self, line):
        with pytest.raises(ConfigurationError):
            AntennaPlot().process_line(line)

    def test_unknown_pattern(self):
        plot = AntennaPlot()
        plot.process_line("pattern_name nothing")
        with pytest.raises(ConfigurationError, match="unable to find antenna_pattern"):
            plot.compute_grid()


class TestAntennaPlotGains:
    """
    Reference: Pattern definitions
    Problem: Gain tables of uniform and Gaussian patterns
    Expected: Constant 10 dB; Gaussian -3.01 dB at half beamwidth
    """

    def test_uniform_grid(self):
        plot = uniform_plot(10.0)
        for line in ("azimuth_range -10 10", "azimuth_step 5", "elevation_range -4 4", "elevation_step 2"):
            plot.process_line(line)
        rows, cols, gains = plot.compute_grid()
        np.testing.assert_allclose(rows, [-10.0, -5.0, 0.0, 5.0, 10.0], atol=1e-9)
        np.testing.assert_allclose(cols, [-4.0, -2.0, 0.0, 2.0, 4.0], atol=1e-9)
        assert gains.shape == (5, 5)
        np.testing.assert_allclose(gains, 10.0, atol=1e-9)

    def test_gaussian_half_power(self):
        plot = gaussian_plot(10.0)
        for line in ("axes horizontal", "azimuth_range -5 5", "azimuth_step 5"):
            plot.process_line(line)
        angles, gains = plot.compute_cut()
        np.testing.assert_allclose(angles, [-5.0, 0.0, 5.0], atol=1e-9)
        assert gains[1] == pytest.approx(0.0, abs=1e-9)
        assert gains[0] == pytest.approx(-3.01, abs=0.01)
        assert gains[2] == pytest.approx(-3.01, abs=0.01)

    def test_tilt_moves_peak(self):
        plot = gaussian_plot(10.0)
        for line in ("axes vertical", "elevation_range -5 5", "elevation_step 5", "tilt_angle 5"):
            plot.process_line(line)
        _, gains = plot.compute_cut()
        assert gains[2] == pytest.approx(0.0, abs=1e-9)
        assert gains[1] == pytest.approx(-3.01, abs=0.01)


class TestAntennaPlotOutput:
    """
    Reference: Plot file format
    Problem: Write the grid, gnuplot and cut outputs
    Expected: Headers, "NROWS NCOLS", wrapped rows, blank lines between blocks
    """

    def grid_plot(self, tmp_path):
        plot = uniform_plot(10.0)
        for line in (
            "axes both",
            "azimuth_range -2 2",
            "azimuth_step 1",
            "elevation_range -2 2",
            "elevation_step 1",
            "output_column_limit 3",
            "header_line_1 Uniform test pattern",
            "header_line_2 second",
            "header_line_3 third",
            f"output_file {tmp_path / 'grid.plt'}",
            f"gnuplot_file {tmp_path / 'grid.gnu'}",
        ):
            plot.process_line(line)
        return plot

    def test_plot_file_layout(self, tmp_path):
        assert self.grid_plot(tmp_path).execute()
        lines = (tmp_path / "grid.plt").read_text(encoding="utf-8").splitlines()
        assert lines[:3] == ["Uniform test pattern", "second", "third"]
        assert lines[3].split() == ["5", "5"]
        # 5 columns wrapped at 3 per line: header block and every row take two lines
        assert len(lines) == 4 + 2 + 5 * 2
        assert [float(v) for v in lines[4].split()] == [-2.0, -1.0, 0.0]
        assert [float(v) for v in lines[5].split()] == [1.0, 2.0]
        first_row = [float(v) for v in lines[6].split()]
        assert first_row[0] == -2.0
        assert first_row[1:] == pytest.approx([10.0, 10.0, 10.0])
        assert [float(v) for v in lines[7].split()] == pytest.approx([10.0, 10.0])

    def test_gnuplot_file(self, tmp_path):
        assert self.grid_plot(tmp_path).execute()
        lines = (tmp_path / "grid.gnu").read_text(encoding="utf-8").splitlines()
        assert lines[0] == "# Uniform test pattern"
        assert any("with pm3d" in line for line in lines)
        data = [line for line in lines if line and not line.startswith("#")]
        assert len(data) == 25
        assert sum(1 for line in lines if line == "") == 5
        az, el, gain = (float(v) for v in data[0].split())
        assert (az, el) == (-2.0, -2.0)
        assert gain == pytest.approx(10.0)

    def test_png(self, tmp_path):
        plot = self.grid_plot(tmp_path)
        plot.process_line(f"png_file {tmp_path / 'grid.png'}")
        assert plot.execute()
        assert (tmp_path / "grid.png").stat().st_size > 0

    def test_cut_file(self, tmp_path):
        plot = uniform_plot(10.0)
        for line in ("axes horizontal", "azimuth_range -90 90", "azimuth_step 45", f"output_file {tmp_path / 'cut.txt'}"):
            plot.process_line(line)
        assert plot.execute()
        lines = (tmp_path / "cut.txt").read_text(encoding="utf-8").splitlines()
        assert lines[0] == "# omni - horizontal plot"
        assert lines[1:] == ["-90 10", "-45 10", "0 10", "45 10", "90 10"]

    def test_cut_requires_output_file(self):
        plot = uniform_plot(10.0)
        plot.process_line("axes vertical")
        assert not plot.execute()


class TestPatternFiles:
    """Named patterns read from YAML and command files read from disk."""

    def test_load_pattern_file(self, tmp_path):
        path = write(
            tmp_path / "patterns.yaml",
            """
            omni:
              type: uniform
              peak_gain_db: 3.0
            pencil:
              type: gaussian
              azimuth_beamwidth: 2.0
              elevation_beamwidth: 4.0
            """,
        )
        patterns = load_pattern_file(path)
        assert sorted(patterns) == ["omni", "pencil"]
        assert patterns["pencil"].azimuth_beamwidth == pytest.approx(np.radians(2.0))

    @pytest.mark.parametrize(
        "text,message",
        [
            ("- omni\n", "map names"),
            ("omni: uniform\n", "must be a mapping"),
            ("omni:\n  type: uniform\n  sparkle: 1.0\n", "sparkle"),
            ("omni:\n  type: fractal\n", "unknown antenna pattern type"),
        ],
    )
    def test_bad_pattern_file(self, tmp_path, text, message):
        path = write(tmp_path / "patterns.yaml", text)
        with pytest.raises(ConfigurationError, match=message):
            load_pattern_file(path)

    def test_command_file_relative_paths(self, tmp_path):
        write(tmp_path / "patterns.yaml", "omni:\n  type: uniform\n  peak_gain_db: 6.0\n")
        command_file = write(
            tmp_path / "plot.txt",
            """
            # horizontal cut of the omni pattern
            pattern_file patterns.yaml
            pattern_name omni
            axes horizontal
            azimuth_range -10 10
            azimuth_step 10
            output_file omni.txt
            """,
        )
        plot = AntennaPlot()
        plot.process_command_file(command_file)
        assert plot.output_file == str(tmp_path / "omni.txt")
        assert plot.execute()
        assert (tmp_path / "omni.txt").read_text(encoding="utf-8").splitlines()[1] == "-10 6"

    def test_command_file_error_has_line(self, tmp_path):
        command_file = write(tmp_path / "plot.txt", "axes both\nazimuth_step -1\n")
        with pytest.raises(ConfigurationError) as info:
            AntennaPlot().process_command_file(command_file)
        assert info.value.source == f"{command_file}:2"


class TestAntennaPlotMain:
    """Command line entry point exit codes."""

    def test_success(self, tmp_path):
        patterns = write(tmp_path / "patterns.yaml", "beam:\n  type: sinc\n  beamwidth: 5.0\n")
        command_file = write(
            tmp_path / "plot.txt",
            """
            pattern_name beam
            axes both
            azimuth_range -10 10
            azimuth_step 5
            elevation_range -10 10
            elevation_step 5
            frequency 3 ghz
            output_file beam.plt
            """,
        )
        assert antenna_plot.main([command_file, "--patterns", patterns]) == 0
        assert (tmp_path / "beam.plt").exists()

    def test_bad_command(self, tmp_path):
        command_file = write(tmp_path / "plot.txt", "pattern_name beam\nspin_rate 10\n")
        assert antenna_plot.main([command_file]) == 1

    def test_missing_pattern(self, tmp_path):
        command_file = write(tmp_path / "plot.txt", "pattern_name beam\naxes both\n")
        assert antenna_plot.main([command_file]) == 1

    def test_missing_command_file(self, tmp_path):
        assert antenna_plot.main([str(tmp_path / "absent.txt")]) == 1
