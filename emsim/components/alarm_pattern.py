"""
ALARM Antenna Pattern Files

Reads the ASCII two-dimensional antenna pattern format used by the ALARM
and SUPPRESSOR models and evaluates it for circular, elliptical and
rectangular apertures.

File layout:
    <classification line>
    <title line>
    <wavelength> <peak_gain> <min_gain> {DB|LIN} 2D [RECT|ELLIP|CIRC] [HORIZ] [VERT]
    <az_beamwidth_deg> <az_points> [<az_min_deg> <az_increment_deg>]
    <el_beamwidth_deg> <el_points> [<el_min_deg> <el_increment_deg>]
    AZCUT
    <az_deg> <gain> ...   (or only gains when an increment is given)
    ELCUT                 (absent for a circular aperture)
    <el_deg> <gain> ...
    [HORIZ|VERT label, peak gain line, then the block above, per extra polarization]

References:
    - ALARM 5.x Programmer's Manual, antenna pattern file description
    - SUPPRESSOR antenna gain extrapolation (circular / elliptical /
      rectangular aperture shapes)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

from emsim.components.antenna_pattern import AntennaPattern, register_pattern_type
from emsim.em.types import Polarization, parse_enum
from emsim.errors import ConfigurationError
from emsim.physics.constants import db_to_linear

logger = logging.getLogger(__name__)


class ApertureShape(Enum):
    RECTANGULAR = "rect"
    ELLIPTICAL = "ellip"
    CIRCULAR = "circ"


@dataclass
class AlarmPatternData:
    """Pattern cuts for one polarization (angles in radians, gains linear and normalized)."""

    peak_gain: float = 1.0
    az_beamwidth: float = 0.0
    el_beamwidth: float = 0.0
    az_angles: np.ndarray = field(default_factory=lambda: np.zeros(0))
    az_gains: np.ndarray = field(default_factory=lambda: np.zeros(0))
    el_angles: np.ndarray = field(default_factory=lambda: np.zeros(0))
    el_gains: np.ndarray = field(default_factory=lambda: np.zeros(0))
    az_min: float = 0.0
    az_max: float = 0.0
    el_min: float = 0.0
    el_max: float = np.pi / 2.0


def _lower_index(table: np.ndarray, value: float) -> int:
    """Lower index of the interval containing value (right endpoint maps to the last interval)."""
    index = int(np.searchsorted(table, value, side="right")) - 1
    return min(max(index, 0), len(table) - 2)


def _interpolate(angles: np.ndarray, gains: np.ndarray, value: float) -> float:
    i = _lower_index(angles, value)
    frac = (value - angles[i]) / (angles[i + 1] - angles[i])
    return float(gains[i] * (1.0 - frac) + gains[i + 1] * frac)


class _LineReader:
    """Line and token access over an ALARM text file."""

    def __init__(self, text: str, source: str) -> None:
        self._lines = text.splitlines()
        self._pos = 0
        self.source = source

    def line(self) -> str:
        if self._pos >= len(self._lines):
            raise ConfigurationError("unexpected end-of-file", "file", self.source)
        text = self._lines[self._pos]
        self._pos += 1
        return text

    def words(self) -> List[str]:
        return self.line().replace(",", " ").split()

    def numbers(self, count: int) -> List[float]:
        """Read count numbers spanning as many lines as needed; the rest of the last line is skipped."""
        values: List[float] = []
        while len(values) < count:
            for word in self.words():
                if len(values) < count:
                    values.append(_to_float(word, self.source))
        return values


def _to_float(word: str, source: str) -> float:
    try:
        return float(word)
    except ValueError:
        raise ConfigurationError(f"invalid numeric value: {word}", "file", source) from None


class AlarmAntennaPattern(AntennaPattern):
    """
    Two-dimensional ALARM antenna pattern.

    Keywords:
        file: Path of the ALARM pattern file
        polarization: Which polarization table to use (when the file has several)
        gain_correction: Alias of gain_adjustment
    """

    pattern_type = "alarm_pattern"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.file_name = ""
        self.classification = ""
        self.title = ""
        self.wavelength = 0.0
        self.aperture_shape = ApertureShape.RECTANGULAR
        self.min_gain = 0.0
        self.polarization = Polarization.DEFAULT
        self.patterns: Dict[Polarization, AlarmPatternData] = {}
        self._one_minus_e2 = 0.0

    def process_input(self, command: str, value: Any) -> bool:
        if command == "file":
            self.read_pattern(value)
        elif command == "polarization":
            self.polarization = parse_enum(Polarization, value, command)
        elif command == "gain_correction":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.gain_adjustment = float(value)
        else:
            return super().process_input(command, value)
        return True

    # -------------------------------------------------------------------------
    # File input
    # -------------------------------------------------------------------------

    def read_pattern(self, file_name) -> None:
        path = Path(file_name)
        if not path.exists():
            raise FileNotFoundError(f"ALARM antenna pattern file not found: {path}")
        self.file_name = str(path)
        self.parse(path.read_text(), str(path))
        logger.info("file %s", path)
        logger.info("version %s", self.title)

    def parse(self, text: str, source: str = "<string>") -> None:
        """Parse the contents of an ALARM pattern file."""
        reader = _LineReader(text, source)
        self.classification = reader.line().strip()
        self.title = reader.line().strip()

        words = reader.words()
        if len(words) < 5:
            raise ConfigurationError("invalid header", "file", source)
        self.wavelength = _to_float(words[0], source)
        peak_gain = _to_float(words[1], source)
        self.min_gain = _to_float(words[2], source)
        units = words[3].lower()
        if units == "db":
            is_db = True
            peak_gain = db_to_linear(peak_gain)
            self.min_gain = db_to_linear(self.min_gain)
        elif units == "lin":
            is_db = False
        else:
            raise ConfigurationError(f"unsupported units: {words[3]}", "file", source)
        if words[4].lower() != "2d":
            raise ConfigurationError(f"unsupported pattern type: {words[4]}", "file", source)

        self.aperture_shape = ApertureShape.RECTANGULAR
        if len(words) > 5:
            try:
                self.aperture_shape = ApertureShape(words[5].lower())
            except ValueError:
                raise ConfigurationError(
                    f"unsupported aperture shape: {words[5]}", "file", source
                ) from None

        polarizations: List[Polarization] = []
        for word in words[6:]:
            if word == "HORIZ":
                polarizations.append(Polarization.HORIZONTAL)
            elif word == "VERT":
                polarizations.append(Polarization.VERTICAL)
            else:
                raise ConfigurationError(f"unsupported polarization type: {word}", "file", source)
        if not polarizations:
            polarizations.append(Polarization.DEFAULT)

        self.patterns = {}
        for index, polarization in enumerate(polarizations):
            if index > 0:
                label = reader.words()
                expected = "HORIZ" if polarization == Polarization.HORIZONTAL else "VERT"
                if not label or expected not in label[0]:
                    raise ConfigurationError(
                        f"unmatched polarization type: {label[0] if label else ''}", "file", source
                    )
                peak_gain = _to_float(reader.words()[0], source)
                if is_db:
                    peak_gain = db_to_linear(peak_gain)
            data = self._read_cuts(reader, is_db)
            data.peak_gain = peak_gain
            self.patterns[polarization] = data

    def _read_cuts(self, reader: _LineReader, is_db: bool) -> AlarmPatternData:
        source = reader.source
        data = AlarmPatternData()
        headers = []
        for label in ("azimuth", "elevation"):
            words = reader.words()
            if len(words) < 2 or len(words) == 3:
                raise ConfigurationError(f"invalid {label} header", "file", source)
            beamwidth = np.radians(_to_float(words[0], source))
            points = int(_to_float(words[1], source))
            start = _to_float(words[2], source) if len(words) > 2 else 0.0
            increment = _to_float(words[3], source) if len(words) > 3 else 0.0
            headers.append((beamwidth, points, start, increment))

        data.az_beamwidth = headers[0][0]
        data.el_beamwidth = headers[1][0]

        cuts = [("az", headers[0])]
        if self.aperture_shape != ApertureShape.CIRCULAR:
            cuts.append(("el", headers[1]))
        for axis, (_, points, start, increment) in cuts:
            if points < 2:
                raise ConfigurationError(
                    f"table must have at least 2 {'azimuth' if axis == 'az' else 'elevation'} points",
                    "file",
                    source,
                )
            reader.line()  # AZCUT / ELCUT
            if increment != 0.0:
                gains = np.array(reader.numbers(points))
                angles = start + increment * np.arange(points)
            else:
                pairs = np.array(reader.numbers(2 * points)).reshape(points, 2)
                angles = pairs[:, 0]
                gains = pairs[:, 1]
            if is_db:
                gains = 10.0 ** (gains / 10.0)
            angles = np.radians(angles)
            if abs(angles[0]) < 0.0001:
                angles[0] = 0.0
            elif abs(angles[-1]) < 0.0001:
                angles[-1] = 0.0
            if axis == "az":
                data.az_angles, data.az_gains = angles, gains
            else:
                data.el_angles, data.el_gains = angles, gains
        return data

    # -------------------------------------------------------------------------
    # Initialization and gain
    # -------------------------------------------------------------------------

    def _initialize(self) -> None:
        if self.polarization not in self.patterns:
            if set(self.patterns) == {Polarization.DEFAULT}:
                raise ConfigurationError(
                    f"ALARM antenna file {self.file_name} does not define specific polarizations; "
                    f"remove the 'polarization {self.polarization.name.lower()}' input",
                    "polarization",
                )
            choices = ", ".join(p.name.lower() for p in self.patterns)
            raise ConfigurationError(
                f"ALARM antenna file {self.file_name} defines polarizations ({choices}); "
                "select one with 'polarization'",
                "polarization",
            )
        data = self.patterns[self.polarization]
        data.az_min = float(data.az_angles[0])
        data.az_max = float(data.az_angles[-1])
        data.el_min = 0.0
        data.el_max = np.pi / 2.0
        if len(data.el_angles):
            data.el_min = float(data.el_angles[0])
            data.el_max = float(data.el_angles[-1])

        if self.aperture_shape == ApertureShape.ELLIPTICAL:
            if data.az_beamwidth <= 0.0 or data.el_beamwidth <= 0.0:
                raise ConfigurationError(
                    "azimuth and elevation beamwidth must be > 0 for an elliptical pattern",
                    "file",
                    self.file_name,
                )
            a = 0.5 * max(data.az_beamwidth, data.el_beamwidth)
            b = 0.5 * min(data.az_beamwidth, data.el_beamwidth)
            e = np.sqrt(a * a - b * b) / a
            self._one_minus_e2 = 1.0 - e * e

    @property
    def data(self) -> AlarmPatternData:
        return self.patterns[self.polarization]

    def get_gain(self, frequency, az, el, ebs_az=0.0, ebs_el=0.0):
        data = self.data
        az_look = az
        if data.az_min == 0.0:
            az_look = abs(az)
        elif data.az_max == 0.0:
            az_look = -abs(az)
        el_look = el
        if data.el_min == 0.0:
            el_look = abs(el)
        elif data.el_max == 0.0:
            el_look = -abs(el)

        if not (data.az_min <= az_look <= data.az_max and data.el_min <= el_look <= data.el_max):
            return self.minimum_gain

        if self.aperture_shape == ApertureShape.CIRCULAR:
            gain = self._circular_gain(data, az_look, el_look)
        elif self.aperture_shape == ApertureShape.ELLIPTICAL:
            gain = self._elliptical_gain(data, az_look, el_look)
        else:
            gain = self._rectangular_gain(data, az_look, el_look)
        return self.perform_gain_adjustment(frequency, gain * data.peak_gain)

    def _circular_gain(self, data: AlarmPatternData, az: float, el: float) -> float:
        angle = np.hypot(az, el)
        if az < 0.0:
            angle = -angle
        if data.az_min <= angle <= data.az_max:
            return _interpolate(data.az_angles, data.az_gains, angle)
        return self.min_gain

    def _elliptical_gain(self, data: AlarmPatternData, az: float, el: float) -> float:
        # Project onto the principal axes using the beamwidth eccentricity
        if data.el_beamwidth <= data.az_beamwidth:
            a = np.sqrt(az * az + el * el / self._one_minus_e2)
            b = np.sqrt(a * a * self._one_minus_e2)
            t_az, t_el = np.copysign(a, az), np.copysign(b, el)
        else:
            a = np.sqrt(el * el + az * az / self._one_minus_e2)
            b = np.sqrt(a * a * self._one_minus_e2)
            t_az, t_el = np.copysign(b, az), np.copysign(a, el)
        if az == 0.0:
            t_az = abs(t_az)
        if el == 0.0:
            t_el = abs(t_el)

        if not (data.az_min <= t_az <= data.az_max and data.el_min <= t_el <= data.el_max):
            return self.min_gain

        i = _lower_index(data.az_angles, t_az)
        j = _lower_index(data.el_angles, t_el)
        az_frac = (az - data.az_angles[i]) / (data.az_angles[i + 1] - data.az_angles[i])
        el_frac = (el - data.el_angles[j]) / (data.el_angles[j + 1] - data.el_angles[j])

        angle = np.pi / 2.0 if az == 0.0 else abs(np.arctan(el / az))
        corner = np.empty((2, 2))
        for di in range(2):
            for dj in range(2):
                taz = data.az_gains[i + di]
                tel = data.el_gains[j + dj]
                if taz > tel:
                    exponent = abs((np.pi / 2.0 - angle) / (np.pi / 2.0))
                    corner[di, dj] = tel * (taz / tel) ** exponent
                else:
                    exponent = angle / (np.pi / 2.0)
                    corner[di, dj] = taz * (tel / taz) ** exponent
        corner = np.maximum(corner, self.min_gain)

        gain_lo = corner[0, 0] * (1.0 - az_frac) + corner[1, 0] * az_frac
        gain_hi = corner[0, 1] * (1.0 - az_frac) + corner[1, 1] * az_frac
        return max(float(gain_lo * (1.0 - el_frac) + gain_hi * el_frac), self.min_gain)

    def _rectangular_gain(self, data: AlarmPatternData, az: float, el: float) -> float:
        az_gain = _interpolate(data.az_angles, data.az_gains, az)
        el_gain = _interpolate(data.el_angles, data.el_gains, el)
        return max(az_gain * el_gain, self.min_gain)

    def get_peak_gain(self, frequency: float) -> float:
        return self.perform_gain_adjustment(frequency, self.data.peak_gain)

    def get_azimuth_beamwidth(self, frequency, ebs_az=0.0, ebs_el=0.0):
        return self.apply_ebs(self.data.az_beamwidth, ebs_az, 0.0)

    def get_elevation_beamwidth(self, frequency, ebs_az=0.0, ebs_el=0.0):
        return self.apply_ebs(self.data.el_beamwidth, 0.0, ebs_el)


register_pattern_type(AlarmAntennaPattern.pattern_type, AlarmAntennaPattern)
