"""
Tabular Attenuation Model

Attenuation factor looked up from a regular table. The independent
variables are taken, by name, from one of two families:

    - altitude, elevation_angle, slant_range (geometry at the lower end)
    - altitude_1, altitude_2, ground_range (both end points)

either of which may be combined with frequency. Lookups outside the table
are clamped to the edge breakpoints.

Tables are usually built offline from MODTRAN spectral output; the helpers
at the bottom of this module reduce spectral transmittance to a band
average over a sensor response curve and write the result as a table
definition this model can load.

References:
    - Berk et al., "MODTRAN4 User's Manual", Air Force Research Laboratory, 1999
"""

import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO, Tuple

import numpy as np
import yaml
from scipy.interpolate import RegularGridInterpolator

from emsim.em.attenuation import AttenuationModel, register_attenuation_type
from emsim.em.types import Geometry
from emsim.errors import ConfigurationError

logger = logging.getLogger(__name__)

VARIABLE_NAMES = (
    "frequency",
    "altitude",
    "elevation_angle",
    "slant_range",
    "altitude_1",
    "altitude_2",
    "ground_range",
)
"""Independent variables recognized in a table"""

_SLANT_FAMILY = {"altitude", "elevation_angle", "slant_range"}
_GROUND_FAMILY = {"altitude_1", "altitude_2", "ground_range"}


class AttenuationTable:
    """
    Regular table of attenuation factors.

    Args:
        variables: Ordered (name, breakpoints) pairs; elevation_angle
            breakpoints are in degrees
        values: Array shaped by the breakpoint counts, all values >= 0
    """

    def __init__(self, variables: Sequence[Tuple[str, Sequence[float]]], values) -> None:
        self.names: List[str] = []
        axes = []
        for name, breakpoints in variables:
            if name not in VARIABLE_NAMES:
                raise ConfigurationError(f"unknown independent variable '{name}'", "attenuation")
            if name in self.names:
                raise ConfigurationError(f"duplicate independent variable '{name}'", "attenuation")
            points = np.asarray(breakpoints, dtype=np.float64)
            if points.ndim != 1 or len(points) < 2 or np.any(np.diff(points) <= 0.0):
                raise ConfigurationError(
                    f"'{name}' needs at least 2 strictly ascending breakpoints", "attenuation"
                )
            if name == "elevation_angle":
                points = np.radians(points)
            self.names.append(name)
            axes.append(points)
        self.values = np.asarray(values, dtype=np.float64)
        if self.values.shape != tuple(len(a) for a in axes):
            raise ConfigurationError(
                f"table shape {self.values.shape} does not match breakpoints "
                f"{tuple(len(a) for a in axes)}",
                "attenuation",
            )
        if np.any(self.values < 0.0):
            raise ConfigurationError("attenuation values must be >= 0", "attenuation")
        self._axes = axes
        self._interpolator = (
            RegularGridInterpolator(axes, self.values, method="linear") if axes else None
        )

    @classmethod
    def from_input(cls, value: Any) -> "AttenuationTable":
        """
        Build a table from a mapping or the path of a YAML file holding one.

        The mapping has 'independent_variables' (a list of {name, values}
        entries, or a name -> values mapping) and 'values' (nested lists).
        """
        if isinstance(value, (str, Path)):
            with open(value, "r", encoding="utf-8") as stream:
                value = yaml.safe_load(stream)
        if not isinstance(value, dict) or "values" not in value:
            raise ConfigurationError("expected a table definition with 'values'", "attenuation")
        variables = value.get("independent_variables", [])
        if isinstance(variables, dict):
            pairs = list(variables.items())
        else:
            pairs = [(entry["name"], entry["values"]) for entry in variables]
        return cls(pairs, value["values"])

    def lookup(self, arguments: Dict[str, float]) -> float:
        if self._interpolator is None:
            return float(self.values)
        point = [
            min(max(arguments.get(name, 0.0), axis[0]), axis[-1])
            for name, axis in zip(self.names, self._axes)
        ]
        return float(self._interpolator(point)[0])


class TabularAttenuation(AttenuationModel):
    """
    Table-driven attenuation.

    Keywords:
        attenuation: Table definition (mapping or YAML file path)
        two_way_attenuation: Table holds two-way values (square root taken)
        adjustment_factor: Multiplier applied to the looked-up factor
        sort_end_points: Orient the path low-to-high (default off)
    """

    model_type = "tabular"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.sort_end_points = False
        self.table: Optional[AttenuationTable] = None
        self.two_way_attenuation = False
        self.adjustment_factor = 1.0
        self._need_frequency = False
        self._need_slant_range = False
        self._need_ground_range = False

    def process_input(self, command: str, value: Any) -> bool:
        if command == "attenuation":
            self.table = AttenuationTable.from_input(value)
        elif command == "two_way_attenuation":
            self.two_way_attenuation = bool(value)
        elif command == "adjustment_factor":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.adjustment_factor = float(value)
        else:
            return super().process_input(command, value)
        return True

    def initialize(self, xmtr_rcvr) -> None:
        """
        Raises:
            ConfigurationError: If the table is missing or its variables do not
                form a usable set
        """
        if self.table is None:
            logger.error("%s: attenuation table not defined", self.name)
            raise ConfigurationError("attenuation table not defined", "attenuation")
        names = set(self.table.names)
        self._need_frequency = "frequency" in names
        names.discard("frequency")
        if not names:
            return
        if names <= _SLANT_FAMILY and "slant_range" in names and len(names) > 1:
            self._need_slant_range = True
        elif names <= _GROUND_FAMILY and "ground_range" in names and len(names) > 1:
            self._need_ground_range = True
        else:
            logger.error(
                "%s: insufficient or inconsistent independent variables %s",
                self.name,
                sorted(self.table.names),
            )
            raise ConfigurationError(
                "insufficient or inconsistent independent variables", "attenuation"
            )

    def compute_attenuation_factor(self, interaction, environment, geometry: Geometry) -> float:
        arguments: Dict[str, float] = {}
        if self._need_frequency:
            if interaction.xmtr is not None:
                arguments["frequency"] = interaction.xmtr.frequency
            elif interaction.rcvr is not None:
                arguments["frequency"] = interaction.rcvr.frequency
        if self._need_slant_range:
            path_range, elevation, altitude = self.get_range_elevation_altitude(interaction, geometry)
            arguments.update(slant_range=path_range, elevation_angle=elevation, altitude=altitude)
        elif self._need_ground_range:
            alt1, alt2, ground_range = self.get_altitudes_and_ground_range(interaction, geometry)
            arguments.update(altitude_1=alt1, altitude_2=alt2, ground_range=ground_range)
        return self._finish(self.table.lookup(arguments))

    def compute_attenuation_factor_p(self, path_range, elevation, altitude, frequency):
        return self._finish(
            self.table.lookup(
                {
                    "frequency": frequency,
                    "slant_range": path_range,
                    "elevation_angle": elevation,
                    "altitude": altitude,
                }
            )
        )

    def _finish(self, atten: float) -> float:
        if self.two_way_attenuation:
            atten = math.sqrt(atten)
        return min(atten * self.adjustment_factor, 1.0)


register_attenuation_type(TabularAttenuation.model_type, TabularAttenuation)


# =============================================================================
# SPECTRAL DATA CONVERSION (MODTRAN -> band-averaged table)
# =============================================================================


def _bin_widths(wavenumbers: np.ndarray) -> np.ndarray:
    n = len(wavenumbers)
    widths = np.empty(n)
    widths[0] = 0.5 * (wavenumbers[1] - wavenumbers[0])
    widths[-1] = 0.5 * (wavenumbers[-1] - wavenumbers[-2])
    if n > 2:
        widths[1:-1] = 0.5 * (wavenumbers[2:] - wavenumbers[:-2])
    return widths


def build_response_vector(
    wavenumbers: Sequence[float],
    response_curve: Optional[Tuple[Sequence[float], Sequence[float]]] = None,
) -> np.ndarray:
    """
    Sensor response at each spectral bin.

    Args:
        wavenumbers: Bin wavenumbers [1/cm]
        response_curve: (wavelengths [m], responses [0-1]) or None for a
            flat unit response

    Returns:
        Response per bin; bins outside the curve get a small negative value
        so they are excluded from averages
    """
    wavenumbers = np.asarray(wavenumbers, dtype=np.float64)
    if response_curve is None:
        return np.ones(len(wavenumbers))
    curve_wavelengths = np.asarray(response_curve[0], dtype=np.float64)
    curve_responses = np.asarray(response_curve[1], dtype=np.float64)
    wavelengths = 1.0e-2 / wavenumbers
    inside = (wavelengths >= curve_wavelengths[0]) & (wavelengths <= curve_wavelengths[-1])
    return np.where(inside, np.interp(wavelengths, curve_wavelengths, curve_responses), -1.0e-10)


def compute_average_transmittance(
    wavenumbers: Sequence[float], transmittances: Sequence[float], response: Sequence[float]
) -> float:
    """
    Band-average transmittance weighted by the sensor response.

    A single bin is returned as is. Two bins that fall within the same
    1 nm wavelength interval are linearly interpolated.
    """
    wavenumbers = np.asarray(wavenumbers, dtype=np.float64)
    transmittances = np.asarray(transmittances, dtype=np.float64)
    response = np.asarray(response, dtype=np.float64)
    n = len(wavenumbers)
    if n == 1:
        return float(transmittances[0])
    if n == 2:
        lower_nm = 1.0e7 / wavenumbers[1]
        upper_nm = 1.0e7 / wavenumbers[0]
        if math.floor(lower_nm) < math.floor(upper_nm):
            f = (math.floor(upper_nm) - lower_nm) / (upper_nm - lower_nm)
            return float(transmittances[1] + f * (transmittances[0] - transmittances[1]))

    widths = _bin_widths(wavenumbers)
    used = response >= 0.0
    denom = float(np.sum(widths[used]))
    if denom == 0.0:
        return 1.0
    absorption = float(np.sum((1.0 - transmittances[used]) * response[used] * widths[used])) / denom
    return 1.0 - absorption


def compute_average_contrast_transmittance(
    wavenumbers: Sequence[float],
    transmittances: Sequence[float],
    background_radiances: Sequence[float],
    response: Sequence[float],
) -> float:
    """Band-average transmittance weighted by target-to-background radiance."""
    wavenumbers = np.asarray(wavenumbers, dtype=np.float64)
    radiances = np.asarray(background_radiances, dtype=np.float64)
    response = np.asarray(response, dtype=np.float64)
    widths = _bin_widths(wavenumbers)
    used = response >= 0.0
    weights = radiances[used] * response[used] * widths[used]
    return float(np.sum(weights * np.asarray(transmittances)[used]) / np.sum(weights))


def read_spectral_block(stream: TextIO):
    """
    Read one geometry block of a MODTRAN-style spectral dump.

    A block opens with '%{ altitude elevation_deg slant_range', holds
    indented 'wavenumber value' lines, and closes with '%}'.

    Returns:
        (altitude, elevation, slant_range, wavenumbers, values), or None at
        end of file

    Raises:
        ConfigurationError: On malformed or out-of-range data
    """
    geometry = None
    wavenumbers: List[float] = []
    values: List[float] = []
    for line in stream:
        line = line.rstrip("\n")
        if len(line) < 2:
            continue
        if line[0] == " ":
            fields = line.split()
            if len(fields) < 2:
                raise ConfigurationError("error reading spectral data", "spectral_data_conversion")
            wavenumbers.append(float(fields[0]))
            values.append(float(fields[1]))
        elif line.startswith("%{"):
            if wavenumbers:
                raise ConfigurationError("data sequence error", "spectral_data_conversion")
            fields = line.split()
            altitude, elevation, slant_range = (float(v) for v in fields[1:4])
            if altitude < 0.0 or not -90.0 <= elevation <= 90.0 or slant_range < 0.0:
                raise ConfigurationError("invalid geometry values", "spectral_data_conversion")
            geometry = (altitude, elevation, slant_range)
        elif line.startswith("%}"):
            if geometry is None:
                raise ConfigurationError("block closed before it was opened", "spectral_data_conversion")
            return (*geometry, np.array(wavenumbers), np.array(values))
        else:
            raise ConfigurationError(f"unknown data: {line!r}", "spectral_data_conversion")
    if geometry is not None:
        raise ConfigurationError("unclosed block", "spectral_data_conversion")
    return None


def convert_spectral_data(
    transmittance_file: str,
    output_file: str,
    response_curve: Optional[Tuple[Sequence[float], Sequence[float]]] = None,
) -> Dict[str, Any]:
    """
    Reduce a spectral transmittance dump to a tabular attenuation definition.

    The dump starts with three header lines followed by geometry blocks
    ordered by altitude, then elevation, then slant range, each ascending
    and forming a regular grid. The result is written as YAML.

    Returns:
        The table definition that was written
    """
    with open(transmittance_file, "r", encoding="utf-8") as stream:
        headers = [stream.readline().rstrip("\n") for _ in range(3)]
        grid: Dict[float, Dict[float, Dict[float, float]]] = {}
        response = None
        last = None
        while True:
            block = read_spectral_block(stream)
            if block is None:
                break
            altitude, elevation, slant_range, wavenumbers, values = block
            if last is not None and (altitude, elevation, slant_range) <= last:
                raise ConfigurationError("non-ascending geometry", "spectral_data_conversion")
            last = (altitude, elevation, slant_range)
            if response is None:
                response = build_response_vector(wavenumbers, response_curve)
            result = compute_average_transmittance(wavenumbers, values, response)
            grid.setdefault(altitude, {}).setdefault(elevation, {})[slant_range] = result

    altitudes = sorted(grid)
    elevations = sorted(grid[altitudes[0]]) if altitudes else []
    ranges = sorted(grid[altitudes[0]][elevations[0]]) if elevations else []
    if len(altitudes) < 2 or len(elevations) < 2 or len(ranges) < 2:
        raise ConfigurationError(
            "must have at least 2 breakpoints for each dimension", "spectral_data_conversion"
        )
    try:
        values = [[[grid[a][e][r] for r in ranges] for e in elevations] for a in altitudes]
    except KeyError as exc:
        raise ConfigurationError(
            f"mismatched breakpoints ({exc})", "spectral_data_conversion"
        ) from exc

    table = {
        "independent_variables": [
            {"name": "altitude", "values": altitudes},
            {"name": "elevation_angle", "values": elevations},
            {"name": "slant_range", "values": ranges},
        ],
        "values": values,
    }
    with open(output_file, "w", encoding="utf-8") as stream:
        for header in headers:
            if header:
                stream.write(f"# {header}\n")
        yaml.safe_dump(table, stream, default_flow_style=None)
    logger.info(
        "OutputLogEntry %s (%d altitudes, %d elevations, %d ranges)",
        output_file,
        len(altitudes),
        len(elevations),
        len(ranges),
    )
    return table
