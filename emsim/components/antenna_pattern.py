"""
Antenna Gain Patterns

Every pattern maps (frequency, azimuth, elevation, EBS azimuth, EBS
elevation) to a linear gain. Patterns are shared between transmitters and
receivers and are read-only after initialization; the only lazily built
state, the azimuth average-gain histogram, is guarded by a lock.

Angles passed to get_gain() are relative to the beam boresight.

References:
    - Balanis, "Antenna Theory: Analysis and Design", 4th Ed., Wiley, 2016
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 12 (cosecant-squared
      fan beams)
    - Barton, "Radar Equations for Modern Radar", Artech House, 2013,
      Section 5.3 (Gaussian beam approximation)
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numba
import numpy as np

from emsim.errors import ConfigurationError
from emsim.physics.constants import db_to_linear, linear_to_db

logger = logging.getLogger(__name__)

# |sin(x)/x|² = 0.5 at x = 1.39156
_SINC_HALF_POWER_ARG = 1.3915573
# 4·ln(2): Gaussian beam exponent for a full half-power beamwidth
_GAUSSIAN_FACTOR = 2.772588722239781


# =============================================================================
# JIT KERNELS
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _sinc_gain_jit(angle: float, beamwidth: float) -> float:
    """Normalized sin(x)/x power pattern of a uniformly illuminated aperture."""
    half = 0.5 * beamwidth
    if half <= 0.0:
        return 1.0
    x = _SINC_HALF_POWER_ARG * np.sin(angle) / np.sin(min(half, 0.5 * np.pi))
    if abs(x) < 1.0e-9:
        return 1.0
    s = np.sin(x) / x
    return s * s


@numba.jit(nopython=True, cache=True)
def _gaussian_gain_jit(angle: float, beamwidth: float) -> float:
    """Normalized Gaussian power pattern, -3 dB at ±beamwidth/2."""
    if beamwidth <= 0.0:
        return 1.0
    ratio = angle / beamwidth
    return np.exp(-_GAUSSIAN_FACTOR * ratio * ratio)


# =============================================================================
# BASE PATTERN
# =============================================================================


class AntennaPattern:
    """
    Base antenna pattern: unity gain with optional adjustments.

    Common keywords:
        minimum_gain / minimum_gain_db: Floor for returned gain (default 1e-30)
        gain_adjustment / gain_adjustment_db: Scalar multiplier
        gain_adjustment_table: [[frequency_hz, adjustment_db], ...] in
            ascending frequency, interpolated in log10(frequency)
    """

    pattern_type = "base"

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.minimum_gain = 1.0e-30
        self.gain_adjustment = 1.0
        self._adjust_log_freq: Optional[np.ndarray] = None
        self._adjust_db: Optional[np.ndarray] = None
        self.initialized = False

        self._avg_gain_lock = threading.Lock()
        self._avg_gain: Optional[np.ndarray] = None
        self._sampled_peak_gain = -1.0e30

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def process_input(self, command: str, value: Any) -> bool:
        if command == "minimum_gain":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.minimum_gain = float(value)
        elif command == "minimum_gain_db":
            self.minimum_gain = db_to_linear(value)
        elif command == "gain_adjustment":
            self.gain_adjustment = float(value)
        elif command == "gain_adjustment_db":
            self.gain_adjustment = db_to_linear(value)
        elif command == "gain_adjustment_table":
            self.set_gain_adjustment_table(value)
        else:
            return False
        return True

    def set_gain_adjustment_table(self, entries: Sequence[Sequence[float]]) -> None:
        """Set the (frequency [Hz], adjustment [dB]) table."""
        freqs = []
        adjustments = []
        for frequency, adjustment_db in entries:
            if frequency <= 0.0:
                raise ConfigurationError("frequency must be > 0", "gain_adjustment_table")
            log_freq = np.log10(frequency)
            if freqs and log_freq <= freqs[-1]:
                raise ConfigurationError(
                    "entries must be in order of ascending frequency", "gain_adjustment_table"
                )
            freqs.append(log_freq)
            adjustments.append(float(adjustment_db))
        if len(freqs) < 2:
            raise ConfigurationError("at least two entries must be given", "gain_adjustment_table")
        self._adjust_log_freq = np.array(freqs)
        self._adjust_db = np.array(adjustments)

    def initialize(self) -> None:
        """Validate inputs. Safe to call more than once."""
        if not self.initialized:
            self._initialize()
            self.initialized = True

    def _initialize(self) -> None:
        pass

    # -------------------------------------------------------------------------
    # Gain
    # -------------------------------------------------------------------------

    def _compute_gain(
        self, frequency: float, az: float, el: float, ebs_az: float, ebs_el: float
    ) -> float:
        return 1.0

    def get_gain(
        self,
        frequency: float,
        az: float,
        el: float,
        ebs_az: float = 0.0,
        ebs_el: float = 0.0,
    ) -> float:
        """
        Linear gain toward (az, el) relative to the beam boresight.

        Args:
            frequency: Frequency [Hz]
            az, el: Target angles relative to the beam [rad]
            ebs_az, ebs_el: Electronic steering angles of the beam [rad]

        Returns:
            Gain (absolute ratio, not dB), never below minimum_gain
        """
        gain = self._compute_gain(frequency, az, el, ebs_az, ebs_el)
        return self.perform_gain_adjustment(frequency, gain)

    def perform_gain_adjustment(self, frequency: float, gain: float) -> float:
        table_adjustment = 1.0
        if self._adjust_log_freq is not None:
            log_freq = np.log10(max(frequency, 1.0e-37))
            table_adjustment = db_to_linear(
                float(np.interp(log_freq, self._adjust_log_freq, self._adjust_db))
            )
        return max(gain * self.gain_adjustment * table_adjustment, self.minimum_gain)

    def get_peak_gain(self, frequency: float) -> float:
        return 1.0

    @staticmethod
    def apply_ebs(beamwidth: float, ebs_az: float, ebs_el: float) -> float:
        """Broaden a beamwidth by the electronic steering angles."""
        if ebs_az != 0.0:
            effect = np.cos(ebs_az)
            if effect > 0.0:
                beamwidth /= effect
        if ebs_el != 0.0:
            effect = np.cos(ebs_el)
            if effect > 0.0:
                beamwidth /= effect
        return beamwidth

    def get_azimuth_beamwidth(
        self, frequency: float, ebs_az: float = 0.0, ebs_el: float = 0.0
    ) -> float:
        """Azimuth half-power beamwidth [rad]."""
        return self.apply_ebs(np.radians(1.0), ebs_az, 0.0)

    def get_elevation_beamwidth(
        self, frequency: float, ebs_az: float = 0.0, ebs_el: float = 0.0
    ) -> float:
        """Elevation half-power beamwidth [rad]."""
        return self.apply_ebs(np.radians(1.0), 0.0, ebs_el)

    # -------------------------------------------------------------------------
    # Average gain
    # -------------------------------------------------------------------------

    def initialize_average_gain(self, frequency: float) -> np.ndarray:
        """
        Build the 361-bin azimuth average-gain table (once).

        Each bin holds the RMS gain of 0.05° samples across a 1° window
        centered on an integral azimuth from -180° to 180°.
        """
        if self._avg_gain is not None:
            return self._avg_gain
        with self._avg_gain_lock:
            if self._avg_gain is None:
                avg_gain = np.empty(361)
                peak = -1.0e30
                for index, az_deg in enumerate(range(-180, 181)):
                    lo = max(az_deg - 0.5, -180.0)
                    hi = min(az_deg + 0.5, 180.0)
                    samples = np.arange(lo, hi + 1.0e-9, 0.05)
                    gains = np.array(
                        [self.get_gain(frequency, np.radians(a), 0.0, 0.0, 0.0) for a in samples]
                    )
                    peak = max(peak, float(gains.max()))
                    avg_gain[index] = np.sqrt(np.mean(gains * gains))
                self._sampled_peak_gain = peak
                self._avg_gain = avg_gain
                logger.debug("Built average gain table for pattern '%s'", self.name)
        return self._avg_gain

    def get_gain_threshold_fraction(
        self,
        threshold: float,
        min_az: float,
        max_az: float,
        peak_gain: Optional[float] = None,
        frequency: float = 0.0,
    ) -> float:
        """
        Fraction of an azimuth sector whose average gain meets a threshold.

        Args:
            threshold: Gain threshold (linear)
            min_az, max_az: Sector limits in [-π, π] [rad]
            peak_gain: Peak gain at the elevation in question (defaults to
                the boresight gain)
            frequency: Frequency [Hz]

        Returns:
            Fraction in [0, 1]
        """
        if peak_gain is None:
            peak_gain = self.get_gain(frequency, 0.0, 0.0, 0.0, 0.0)
        if threshold / peak_gain > 1.00001:
            return 0.0
        threshold = min(threshold, peak_gain)
        avg_gain = self.initialize_average_gain(frequency)

        min_index = int(np.clip(int(np.degrees(min_az) + 180.5), 0, 360))
        max_index = int(np.clip(int(np.degrees(max_az) + 180.499999), 0, 360))
        if max_index < min_index:
            return 0.0
        gain_scale = min(peak_gain / self._sampled_peak_gain, 1.0)
        gains = np.maximum(gain_scale * avg_gain[min_index : max_index + 1], self.minimum_gain)
        return float(np.count_nonzero(gains >= threshold)) / float(max_index - min_index + 1)


# =============================================================================
# ANALYTIC PATTERNS
# =============================================================================


class _AnalyticPattern(AntennaPattern):
    """Shared peak gain and beamwidth keywords for the closed-form patterns."""

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.peak_gain = 1.0
        self.azimuth_beamwidth = np.radians(1.0)
        self.elevation_beamwidth = np.radians(1.0)

    def process_input(self, command: str, value: Any) -> bool:
        if command == "peak_gain":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.peak_gain = float(value)
        elif command == "peak_gain_db":
            self.peak_gain = db_to_linear(value)
        elif command == "azimuth_beamwidth":
            self.azimuth_beamwidth = self._read_beamwidth(command, value, 360.0)
        elif command == "elevation_beamwidth":
            self.elevation_beamwidth = self._read_beamwidth(command, value, 180.0)
        elif command == "beamwidth":
            self.azimuth_beamwidth = self._read_beamwidth(command, value, 180.0)
            self.elevation_beamwidth = self.azimuth_beamwidth
        else:
            return super().process_input(command, value)
        return True

    @staticmethod
    def _read_beamwidth(command: str, value_deg: float, upper: float) -> float:
        if not 0.0 < value_deg <= upper:
            raise ConfigurationError(f"must be in (0, {upper:g}] deg", command)
        return float(np.radians(value_deg))

    def get_peak_gain(self, frequency: float) -> float:
        return self.peak_gain

    def get_azimuth_beamwidth(self, frequency, ebs_az=0.0, ebs_el=0.0):
        return self.apply_ebs(self.azimuth_beamwidth, ebs_az, 0.0)

    def get_elevation_beamwidth(self, frequency, ebs_az=0.0, ebs_el=0.0):
        return self.apply_ebs(self.elevation_beamwidth, 0.0, ebs_el)


class UniformPattern(_AnalyticPattern):
    """
    Constant peak gain inside the beamwidth box, minimum gain outside.

    With the default 360° × 180° beamwidths this is an isotropic antenna.
    """

    pattern_type = "uniform"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.azimuth_beamwidth = 2.0 * np.pi
        self.elevation_beamwidth = np.pi

    def _compute_gain(self, frequency, az, el, ebs_az, ebs_el):
        if abs(az) <= 0.5 * self.azimuth_beamwidth and abs(el) <= 0.5 * self.elevation_beamwidth:
            return self.peak_gain
        return 0.0


class SincPattern(_AnalyticPattern):
    """Separable sin(x)/x pattern of a rectangular uniformly illuminated aperture."""

    pattern_type = "sinc"

    def _compute_gain(self, frequency, az, el, ebs_az, ebs_el):
        return (
            self.peak_gain
            * _sinc_gain_jit(az, self.azimuth_beamwidth)
            * _sinc_gain_jit(el, self.elevation_beamwidth)
        )


class GaussianPattern(_AnalyticPattern):
    """Separable Gaussian main-beam approximation."""

    pattern_type = "gaussian"

    def _compute_gain(self, frequency, az, el, ebs_az, ebs_el):
        return (
            self.peak_gain
            * _gaussian_gain_jit(az, self.azimuth_beamwidth)
            * _gaussian_gain_jit(el, self.elevation_beamwidth)
        )


class CosecantSquaredPattern(_AnalyticPattern):
    """
    Fan beam with a cosecant-squared elevation skirt.

    Below the peak elevation the beam is Gaussian. From the peak up to
    maximum_elevation_for_csc2 the gain falls as (sin(el_peak)/sin(el))²,
    giving constant received power from a target at constant altitude.

    Keywords (degrees):
        minimum_elevation_for_peak_gain: Elevation of the peak (> 0)
        maximum_elevation_for_csc2: Upper edge of the csc² region
    """

    pattern_type = "cosecant_squared"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.peak_elevation = np.radians(2.0)
        self.max_csc2_elevation = np.radians(40.0)

    def process_input(self, command: str, value: Any) -> bool:
        if command == "minimum_elevation_for_peak_gain":
            self.peak_elevation = float(np.radians(value))
        elif command == "maximum_elevation_for_csc2":
            self.max_csc2_elevation = float(np.radians(value))
        else:
            return super().process_input(command, value)
        return True

    def _initialize(self) -> None:
        if not 0.0 < self.peak_elevation < self.max_csc2_elevation <= np.pi / 2.0:
            raise ConfigurationError(
                "require 0 < minimum_elevation_for_peak_gain < maximum_elevation_for_csc2 <= 90 deg",
                "maximum_elevation_for_csc2",
            )

    def _compute_gain(self, frequency, az, el, ebs_az, ebs_el):
        az_gain = _gaussian_gain_jit(az, self.azimuth_beamwidth)
        if el <= self.peak_elevation:
            el_gain = _gaussian_gain_jit(el - self.peak_elevation, self.elevation_beamwidth)
        elif el <= self.max_csc2_elevation:
            ratio = np.sin(self.peak_elevation) / np.sin(el)
            el_gain = ratio * ratio
        else:
            return 0.0
        return self.peak_gain * az_gain * el_gain


# =============================================================================
# TABULAR PATTERN
# =============================================================================


def _half_power_width(angles: np.ndarray, gains_db: np.ndarray) -> float:
    """Width of the contiguous region around the peak within 3 dB of it."""
    fine = np.linspace(angles[0], angles[-1], 7201)
    values = np.interp(fine, angles, gains_db)
    peak_index = int(np.argmax(values))
    cutoff = values[peak_index] - 3.0
    lo = peak_index
    while lo > 0 and values[lo - 1] >= cutoff:
        lo -= 1
    hi = peak_index
    while hi < len(fine) - 1 and values[hi + 1] >= cutoff:
        hi += 1
    return float(fine[hi] - fine[lo])


class _PatternCuts:
    """Azimuth and elevation cuts (radians, dB) for one frequency."""

    def __init__(self, azimuth: Sequence[Sequence[float]], elevation: Sequence[Sequence[float]]):
        az = np.asarray(azimuth, dtype=np.float64)
        el = np.asarray(elevation, dtype=np.float64)
        for cut, label in ((az, "azimuth_pattern"), (el, "elevation_pattern")):
            if cut.ndim != 2 or cut.shape[1] != 2 or len(cut) < 2:
                raise ConfigurationError("needs at least two [angle_deg, gain_db] rows", label)
            if np.any(np.diff(cut[:, 0]) <= 0.0):
                raise ConfigurationError("angles must be strictly ascending", label)
        self.az = np.radians(az[:, 0])
        self.az_db = az[:, 1]
        self.el = np.radians(el[:, 0])
        self.el_db = el[:, 1]
        self.peak_db = float(max(self.az_db.max(), self.el_db.max()))
        self.az_peak_db = float(self.az_db.max())
        self.el_peak_db = float(self.el_db.max())
        self.az_beamwidth = _half_power_width(self.az, self.az_db)
        self.el_beamwidth = _half_power_width(self.el, self.el_db)

    def gain_db(self, az: float, el: float) -> float:
        az_db = float(np.interp(az, self.az, self.az_db)) - self.az_peak_db
        el_db = float(np.interp(el, self.el, self.el_db)) - self.el_peak_db
        return self.peak_db + az_db + el_db


class TabularPattern(AntennaPattern):
    """
    Pattern built from azimuth and elevation cuts.

    G(az, el) = G_peak · g_az(az) · g_el(el), with each cut normalized to
    its own maximum. Cuts may be keyed by frequency; the set with the
    greatest frequency not above the requested one is used.

    Keywords:
        azimuth_pattern: [[az_deg, gain_db], ...]
        elevation_pattern: [[el_deg, gain_db], ...]
        frequencies: [{frequency: f, azimuth_pattern: ..., elevation_pattern: ...}, ...]
    """

    pattern_type = "tabular"

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self._pending: Dict[str, Any] = {}
        self._frequencies: List[float] = []
        self._cuts: List[_PatternCuts] = []

    def process_input(self, command: str, value: Any) -> bool:
        if command in ("azimuth_pattern", "elevation_pattern"):
            self._pending[command] = value
        elif command == "frequencies":
            for entry in value:
                self.add_cuts(
                    float(entry["frequency"]), entry["azimuth_pattern"], entry["elevation_pattern"]
                )
        else:
            return super().process_input(command, value)
        return True

    def add_cuts(self, frequency: float, azimuth, elevation) -> None:
        cuts = _PatternCuts(azimuth, elevation)
        index = int(np.searchsorted(self._frequencies, frequency))
        self._frequencies.insert(index, frequency)
        self._cuts.insert(index, cuts)

    def _initialize(self) -> None:
        if self._pending:
            if "azimuth_pattern" not in self._pending or "elevation_pattern" not in self._pending:
                raise ConfigurationError(
                    "both azimuth_pattern and elevation_pattern are required", "tabular"
                )
            self.add_cuts(0.0, self._pending["azimuth_pattern"], self._pending["elevation_pattern"])
            self._pending = {}
        if not self._cuts:
            raise ConfigurationError("no pattern data defined", "tabular")

    def _select(self, frequency: float) -> _PatternCuts:
        index = int(np.searchsorted(self._frequencies, frequency, side="right")) - 1
        return self._cuts[max(index, 0)]

    def _compute_gain(self, frequency, az, el, ebs_az, ebs_el):
        return db_to_linear(self._select(frequency).gain_db(az, el))

    def get_peak_gain(self, frequency: float) -> float:
        return db_to_linear(self._select(frequency).peak_db)

    def get_azimuth_beamwidth(self, frequency, ebs_az=0.0, ebs_el=0.0):
        return self.apply_ebs(self._select(frequency).az_beamwidth, ebs_az, 0.0)

    def get_elevation_beamwidth(self, frequency, ebs_az=0.0, ebs_el=0.0):
        return self.apply_ebs(self._select(frequency).el_beamwidth, 0.0, ebs_el)


# =============================================================================
# REGISTRY
# =============================================================================

_PATTERN_FACTORIES: Dict[str, Callable[[str], AntennaPattern]] = {}


def register_pattern_type(pattern_type: str, factory: Callable[[str], AntennaPattern]) -> None:
    """Register a factory for a pattern type string."""
    _PATTERN_FACTORIES[pattern_type] = factory


def create_antenna_pattern(pattern_type: str, name: str = "") -> AntennaPattern:
    """
    Create an (uninitialized) antenna pattern from its type string.

    Raises:
        ConfigurationError: If the type is not registered
    """
    factory = _PATTERN_FACTORIES.get(pattern_type)
    if factory is None:
        raise ConfigurationError(
            f"unknown antenna pattern type '{pattern_type}' "
            f"(known: {', '.join(sorted(_PATTERN_FACTORIES))})",
            "antenna_pattern",
        )
    return factory(name)


def antenna_pattern_types() -> List[str]:
    return sorted(_PATTERN_FACTORIES)


for _cls in (UniformPattern, SincPattern, GaussianPattern, CosecantSquaredPattern, TabularPattern):
    register_pattern_type(_cls.pattern_type, _cls)


def describe_pattern(pattern: AntennaPattern, frequency: float) -> Tuple[float, float, float]:
    """Peak gain [dB] and az/el beamwidths [deg] (used in log output)."""
    return (
        linear_to_db(pattern.get_peak_gain(frequency)),
        float(np.degrees(pattern.get_azimuth_beamwidth(frequency))),
        float(np.degrees(pattern.get_elevation_beamwidth(frequency))),
    )
