"""
Antenna Pattern Plotting

Tabulates the gain of a named antenna pattern over an azimuth/elevation grid
and writes it as:

    - a plot file: three header lines, "NROWS NCOLS", the (wrapped) column
      values, then one wrapped row per azimuth with the gains in dB;
    - a gnuplot file: a commented pm3d recipe followed by "az el gain"
      triples, one block per azimuth separated by blank lines;
    - optionally a PNG rendered with matplotlib.

A single-axis plot ('horizontal' or 'vertical') writes "angle gain" pairs
to the output file instead of the grid.

Commands are textual, one per line:

    pattern_name <name>
    axes {vertical|horizontal|both}
    azimuth_range <min> <max> [deg|rad]
    elevation_step <step> [deg|rad]
    frequency <value> [hz|khz|mhz|ghz]
    header_line_1 <text to end of line>
    ...

Every file written is recorded through an "OutputLogEntry" log record.
"""

import logging
import math
import os
from typing import Dict, List, Optional, Tuple

import numpy as np
import yaml

from emsim.components.antenna_pattern import AntennaPattern, create_antenna_pattern, describe_pattern
from emsim.components.esa_pattern import EsaPattern
from emsim.components.rcvr import Rcvr
from emsim.em.types import EBSMode, Polarization, parse_enum
from emsim.errors import ConfigurationError
from emsim.physics.constants import DEG_TO_RAD, RAD_TO_DEG, linear_to_db

logger = logging.getLogger(__name__)

_ANGLE_UNITS = {"deg": DEG_TO_RAD, "degrees": DEG_TO_RAD, "rad": 1.0, "radians": 1.0}
_FREQUENCY_UNITS = {"hz": 1.0, "khz": 1.0e3, "mhz": 1.0e6, "ghz": 1.0e9}

_AXES = {"vertical": "v", "horizontal": "h", "both": "b"}


def write_output_log_entry(kind: str, path: str) -> None:
    """Record a written output file in the system log."""
    logger.info("OutputLogEntry %s: %s", kind, path)


def load_pattern_file(path: str) -> Dict[str, AntennaPattern]:
    """
    Read named pattern definitions from YAML.

    The file maps pattern names to definitions of the form
    {type: <pattern type>, <keyword>: <value>, ...}.

    Raises:
        ConfigurationError: For a malformed file or an unknown keyword
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("pattern file must map names to definitions", "pattern_file", path)
    patterns = {}
    for name, definition in data.items():
        if not isinstance(definition, dict):
            raise ConfigurationError(f"pattern '{name}' must be a mapping", "pattern_file", path)
        pattern = create_antenna_pattern(definition.get("type", "uniform"), str(name))
        for key, value in definition.items():
            if key != "type" and not pattern.process_input(key, value):
                raise ConfigurationError(f"unknown antenna pattern keyword '{key}'", str(name), path)
        patterns[str(name)] = pattern
    return patterns


def _clean(value: float) -> float:
    return 0.0 if abs(value) < 1.0e-8 else value


def _fmt(value: float) -> str:
    return f"{value:10.6g}"


class AntennaPlot:
    """
    Antenna pattern plot function.

    Attributes:
        patterns: Patterns available by name
        pattern_name: Pattern to plot
        plot_type: 'v' (vertical cut), 'h' (horizontal cut) or 'b' (grid)
        output_file, gnuplot_file, png_file: Output paths ('' to skip)
        header_lines: The three plot file header lines
        output_column_limit: Values per line before wrapping
    """

    def __init__(self, patterns: Optional[Dict[str, AntennaPattern]] = None) -> None:
        self.patterns: Dict[str, AntennaPattern] = dict(patterns or {})
        self.pattern_name = ""
        self.output_file = ""
        self.gnuplot_file = ""
        self.png_file = ""
        self.header_lines = ["", "", ""]
        self.output_column_limit = 100
        self.plot_type = "v"
        self.azimuth_min = -math.pi
        self.azimuth_max = math.pi
        self.azimuth_step = DEG_TO_RAD
        self.elevation_min = -math.pi / 2.0
        self.elevation_max = math.pi / 2.0
        self.elevation_step = DEG_TO_RAD
        self.tilt_angle = 0.0
        self.frequency = 0.0
        self.polarization = Polarization.DEFAULT
        self.ebs_mode = EBSMode.NONE
        self.ebs_az_cos_limit = 0.0
        self.ebs_el_cos_limit = 0.0
        self.ebs_az_loss_exponent = 1.0
        self.ebs_el_loss_exponent = 1.0
        self.ebs_az = 0.0
        self.ebs_el = 0.0
        self.base_directory = ""

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def process_command_file(self, path: str) -> None:
        """
        Apply every command of a command file.

        Relative file names are resolved against the command file's directory.
        """
        self.base_directory = os.path.dirname(os.path.abspath(path))
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                try:
                    self.process_line(line)
                except ConfigurationError as exc:
                    logger.error("%s:%d: %s", path, line_number, exc)
                    raise ConfigurationError(str(exc), source=f"{path}:{line_number}") from exc

    def process_line(self, line: str) -> None:
        text = line.strip()
        if not text or text.startswith("#"):
            return
        command, _, rest = text.partition(" ")
        if command.startswith("header_line_"):
            index = command[len("header_line_"):]
            if index not in ("1", "2", "3"):
                raise ConfigurationError("expected header_line_1, _2 or _3", command)
            self.header_lines[int(index) - 1] = rest.strip()
            return
        if not self.process_input(command, rest.split()):
            raise ConfigurationError(f"unknown command '{command}'", command)

    def process_input(self, command: str, args: List[str]) -> bool:
        if command == "pattern_name":
            self.pattern_name = _one(command, args)
        elif command == "pattern_file":
            self.patterns.update(load_pattern_file(self._path(_one(command, args))))
        elif command == "axes":
            axes = _one(command, args)
            if axes not in _AXES:
                raise ConfigurationError(f"bad value '{axes}'", command)
            self.plot_type = _AXES[axes]
        elif command == "azimuth_range":
            lo, hi = _angles(command, args, 2)
            _check(lo >= -math.pi and hi <= math.pi and lo <= hi, command, "must satisfy -180 <= min <= max <= 180 deg")
            self.azimuth_min, self.azimuth_max = lo, hi
        elif command == "azimuth_step":
            (self.azimuth_step,) = _angles(command, args, 1)
            _check(self.azimuth_step > 0.0, command, "must be > 0")
        elif command == "elevation_range":
            lo, hi = _angles(command, args, 2)
            _check(lo >= -math.pi / 2.0 and hi <= math.pi / 2.0 and lo <= hi, command, "must satisfy -90 <= min <= max <= 90 deg")
            self.elevation_min, self.elevation_max = lo, hi
        elif command == "elevation_step":
            (self.elevation_step,) = _angles(command, args, 1)
            _check(self.elevation_step > 0.0, command, "must be > 0")
        elif command == "tilt_angle":
            (self.tilt_angle,) = _angles(command, args, 1)
            _check(abs(self.tilt_angle) <= math.pi / 2.0, command, "must be in [-90, 90] deg")
        elif command == "azimuth_steering_angle":
            (self.ebs_az,) = _angles(command, args, 1)
            _check(abs(self.ebs_az) <= math.pi / 2.0, command, "must be in [-90, 90] deg")
        elif command == "elevation_steering_angle":
            (self.ebs_el,) = _angles(command, args, 1)
            _check(abs(self.ebs_el) <= math.pi / 2.0, command, "must be in [-90, 90] deg")
        elif command == "electronic_beam_steering":
            self.ebs_mode = parse_enum(EBSMode, _one(command, args), command)
        elif command in (
            "electronic_beam_steering_limit",
            "electronic_beam_steering_limit_azimuth",
            "electronic_beam_steering_limit_elevation",
        ):
            (limit,) = _angles(command, args, 1)
            _check(0.0 <= limit <= math.pi / 2.0, command, "must be in [0, 90] deg")
            if not command.endswith("_elevation"):
                self.ebs_az_cos_limit = math.cos(limit)
            if not command.endswith("_azimuth"):
                self.ebs_el_cos_limit = math.cos(limit)
        elif command in (
            "electronic_beam_steering_loss_exponent",
            "electronic_beam_steering_loss_exponent_azimuth",
            "electronic_beam_steering_loss_exponent_elevation",
        ):
            exponent = _number(command, _one(command, args))
            if not command.endswith("_elevation"):
                self.ebs_az_loss_exponent = exponent
            if not command.endswith("_azimuth"):
                self.ebs_el_loss_exponent = exponent
        elif command == "frequency":
            self.frequency = _frequency(command, args)
            _check(self.frequency > 0.0, command, "must be > 0")
        elif command == "polarization":
            self.polarization = parse_enum(Polarization, _one(command, args), command)
        elif command == "output_file":
            self.output_file = self._path(_one(command, args))
        elif command == "gnuplot_file":
            self.gnuplot_file = self._path(_one(command, args))
        elif command == "png_file":
            self.png_file = self._path(_one(command, args))
        elif command == "output_column_limit":
            value = int(_number(command, _one(command, args)))
            _check(value > 0, command, "must be > 0")
            self.output_column_limit = value
        else:
            return False
        return True

    def _path(self, name: str) -> str:
        name = os.path.expandvars(name.strip('"'))
        if self.base_directory and not os.path.isabs(name):
            return os.path.join(self.base_directory, name)
        return name

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _make_receiver(self) -> Rcvr:
        pattern = self.patterns.get(self.pattern_name)
        if pattern is None:
            raise ConfigurationError(f"unable to find antenna_pattern '{self.pattern_name}'", "pattern_name")
        # ESA patterns need initialization since the receiver is not initialized
        pattern.initialize()
        rcvr = Rcvr(name="antenna_plot")
        rcvr.set_antenna_pattern(pattern, self.polarization, self.frequency)
        antenna = rcvr.antenna
        antenna.ebs_mode = self.ebs_mode
        antenna.ebs_az_cos_limit = self.ebs_az_cos_limit
        antenna.ebs_el_cos_limit = self.ebs_el_cos_limit
        antenna.ebs_az_loss_exponent = self.ebs_az_loss_exponent
        antenna.ebs_el_loss_exponent = self.ebs_el_loss_exponent

        if not self.ebs_mode & EBSMode.AZIMUTH and self.ebs_az > 0.0:
            logger.warning(
                "Ignoring azimuth_steering_angle %.3f deg: incompatible with electronic_beam_steering",
                self.ebs_az * RAD_TO_DEG,
            )
            self.ebs_az = 0.0
        if not self.ebs_mode & EBSMode.ELEVATION and self.ebs_el > 0.0:
            logger.warning(
                "Ignoring elevation_steering_angle %.3f deg: incompatible with electronic_beam_steering",
                self.ebs_el * RAD_TO_DEG,
            )
            self.ebs_el = 0.0

        peak_db, az_bw, el_bw = describe_pattern(pattern, self.frequency)
        logger.info(
            "Plotting '%s': peak %.2f dB, beamwidth %.2f x %.2f deg", self.pattern_name, peak_db, az_bw, el_bw
        )
        return rcvr

    def _gain_db(self, rcvr: Rcvr, az: float, el: float) -> float:
        # Angles may creep past the limits by rounding
        az_angle = min(az, self.azimuth_max)
        el_angle = min(el - self.tilt_angle, self.elevation_max)
        if isinstance(rcvr.get_antenna_pattern(self.polarization, self.frequency), EsaPattern):
            az_angle -= self.ebs_az
            el_angle -= self.ebs_el
        gain = rcvr.get_antenna_gain(self.polarization, self.frequency, az_angle, el_angle, self.ebs_az, self.ebs_el)
        return _clean(linear_to_db(max(gain, 1.0e-30)))

    @staticmethod
    def _angles_between(lo: float, hi: float, step: float) -> List[float]:
        values = []
        angle = lo
        while angle <= hi + 0.01 * step:
            values.append(angle)
            angle += step
        return values

    def compute_grid(self, rcvr: Optional[Rcvr] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Gain over the azimuth x elevation grid.

        Returns:
            Tuple of (azimuths [deg], elevations [deg], gains [dB] with one
            row per azimuth)
        """
        rcvr = rcvr if rcvr is not None else self._make_receiver()
        azimuths = self._angles_between(self.azimuth_min, self.azimuth_max, self.azimuth_step)
        elevations = self._angles_between(self.elevation_min, self.elevation_max, self.elevation_step)
        gains = np.array([[self._gain_db(rcvr, az, el) for el in elevations] for az in azimuths])
        rows = np.array([_clean(az * RAD_TO_DEG) for az in azimuths])
        cols = np.array([_clean(el * RAD_TO_DEG) for el in elevations])
        return rows, cols, gains

    def compute_cut(self, rcvr: Optional[Rcvr] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Gain along the azimuth cut (el 0) or elevation cut (az 0)."""
        rcvr = rcvr if rcvr is not None else self._make_receiver()
        if self.plot_type == "h":
            angles = self._angles_between(self.azimuth_min, self.azimuth_max, self.azimuth_step)
            gains = [self._gain_db(rcvr, az, 0.0) for az in angles]
        else:
            angles = self._angles_between(self.elevation_min, self.elevation_max, self.elevation_step)
            gains = [self._gain_db(rcvr, 0.0, el) for el in angles]
        return np.array([_clean(a * RAD_TO_DEG) for a in angles]), np.array(gains)

    def execute(self) -> bool:
        """
        Produce the requested outputs.

        Returns:
            False if a single-axis plot has no output file to write
        """
        rcvr = self._make_receiver()
        if self.plot_type == "b":
            rows, cols, gains = self.compute_grid(rcvr)
            if self.output_file:
                logger.info("Writing output file %s", self.output_file)
                self.write_plot_file(self.output_file, rows, cols, gains)
            if self.gnuplot_file:
                logger.info("Writing gnuplot file %s", self.gnuplot_file)
                self.write_gnuplot_file(self.gnuplot_file, rows, cols, gains)
            if self.png_file:
                self.write_png_grid(self.png_file, rows, cols, gains)
            return True

        if not self.output_file:
            logger.error("Unable to open output file: no output_file given")
            return False
        angles, gains = self.compute_cut(rcvr)
        label = "horizontal" if self.plot_type == "h" else "vertical"
        logger.info("Writing output file %s", self.output_file)
        with open(self.output_file, "w", encoding="utf-8") as f:
            f.write(f"# {self.pattern_name} - {label} plot\n")
            for angle, gain in zip(angles, gains):
                f.write(f"{angle:g} {gain:g}\n")
        if self.png_file:
            self.write_png_cut(self.png_file, angles, gains, label)
        return True

    # -------------------------------------------------------------------------
    # Writers
    # -------------------------------------------------------------------------

    def write_plot_file(self, path: str, rows: np.ndarray, cols: np.ndarray, gains: np.ndarray) -> None:
        limit = self.output_column_limit
        lines = [*self.header_lines, f"   {len(rows)}  {len(cols)}"]

        def wrapped(values) -> str:
            text = ""
            for i, value in enumerate(values):
                if i and i % limit == 0:
                    text += "\n          "
                text += " " + _fmt(value)
            return text

        lines.append("          " + wrapped(cols))
        for row, data in zip(rows, gains):
            lines.append(_fmt(row) + wrapped(data))
        with open(path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        write_output_log_entry("Antenna Plot", path)

    def write_gnuplot_file(self, path: str, rows: np.ndarray, cols: np.ndarray, gains: np.ndarray) -> None:
        lines = [f"# {header}" for header in self.header_lines if header]
        lines += [
            "# plot using: ",
            "#",
            "# unset surface",
            "# set pm3d",
            "# set view 0,0",
            "# set zrange [-299:299] #ignore hard limits",
            '# set xlabel "Azimuth Angle"',
            '# set ylabel "Elevation Angle"',
            f'# splot "{path}" with pm3d',
            "#",
            "# Column 1: Azimuth Angle",
            "# Column 2: Elevation Angle",
        ]
        for row, data in zip(rows, gains):
            for col, gain in zip(cols, data):
                lines.append(f"{_fmt(row)} {_fmt(col)} {_fmt(gain)}")
            lines.append("")
        with open(path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        write_output_log_entry("GNU Plot", path)

    def write_png_grid(self, path: str, rows: np.ndarray, cols: np.ndarray, gains: np.ndarray) -> None:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        fig, ax = plt.subplots(figsize=(10, 6))
        mesh = ax.pcolormesh(rows, cols, gains.T, shading="nearest", cmap="viridis")
        fig.colorbar(mesh, ax=ax, label="Gain (dB)")
        ax.set_xlabel("Azimuth Angle (deg)")
        ax.set_ylabel("Elevation Angle (deg)")
        ax.set_title(self.header_lines[0] or self.pattern_name)
        fig.tight_layout()
        fig.savefig(path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        write_output_log_entry("Antenna Plot PNG", path)

    def write_png_cut(self, path: str, angles: np.ndarray, gains: np.ndarray, label: str) -> None:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        fig, ax = plt.subplots(figsize=(10, 6))
        ax.plot(angles, gains, "-", color="#00d4ff", linewidth=2)
        ax.set_xlabel("Azimuth Angle (deg)" if label == "horizontal" else "Elevation Angle (deg)")
        ax.set_ylabel("Gain (dB)")
        ax.set_title(f"{self.pattern_name} - {label} plot")
        ax.grid(True, alpha=0.3)
        fig.tight_layout()
        fig.savefig(path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        write_output_log_entry("Antenna Plot PNG", path)


# =============================================================================
# ARGUMENT PARSING
# =============================================================================


def _check(condition: bool, command: str, message: str) -> None:
    if not condition:
        raise ConfigurationError(message, command)


def _one(command: str, args: List[str]) -> str:
    if len(args) != 1:
        raise ConfigurationError("expected one value", command)
    return args[0]


def _number(command: str, text: str) -> float:
    try:
        return float(text)
    except ValueError as exc:
        raise ConfigurationError(f"bad number '{text}'", command) from exc


def _angles(command: str, args: List[str], count: int) -> List[float]:
    """Read count angles, each optionally followed by a unit (default deg)."""
    values = []
    tokens = list(args)
    while tokens:
        value = _number(command, tokens.pop(0))
        scale = DEG_TO_RAD
        if tokens and tokens[0].lower() in _ANGLE_UNITS:
            scale = _ANGLE_UNITS[tokens.pop(0).lower()]
        values.append(value * scale)
    if len(values) != count:
        raise ConfigurationError(f"expected {count} angle value(s)", command)
    return values


def _frequency(command: str, args: List[str]) -> float:
    if not 1 <= len(args) <= 2:
        raise ConfigurationError("expected <value> [hz|khz|mhz|ghz]", command)
    value = _number(command, args[0])
    if len(args) == 2:
        unit = args[1].lower()
        if unit not in _FREQUENCY_UNITS:
            raise ConfigurationError(f"unknown frequency unit '{args[1]}'", command)
        value *= _FREQUENCY_UNITS[unit]
    return value
