"""
Transmitter/Receiver Common Base

State shared by transmitters and receivers: the antenna, the antenna
pattern table (keyed by polarization and then by frequency), the tuned
frequency and bandwidth, polarization, beam tilt, internal loss, the
earth-radius multiplier used for horizon and refraction calculations, and
the optional attenuation and propagation models.

References:
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 1 (radar equation terms)
    - Blake, "Radar Range-Performance Analysis", Artech House, 1986
"""

import itertools
import logging
from bisect import bisect_right
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from emsim.components.antenna import Antenna
from emsim.components.antenna_pattern import AntennaPattern, create_antenna_pattern
from emsim.em.attenuation import AttenuationModel, attenuation_model_from_input
from emsim.em.propagation import PropagationModel, propagation_model_from_input
from emsim.em.types import Polarization, parse_enum
from emsim.errors import ConfigurationError, ProgrammingError
from emsim.physics.constants import EARTH_RADIUS_MULTIPLIER_RF, SPEED_OF_LIGHT, db_to_linear

logger = logging.getLogger(__name__)

_unique_ids = itertools.count(1)


class XmtrRcvr:
    """
    Base for transmitters and receivers.

    Attributes:
        name: Identifier used in log output
        antenna: Physical antenna (shared between a linked pair)
        frequency: Tuned frequency [Hz]
        bandwidth: Bandwidth [Hz]
        polarization: Polarization of the system
        beam_tilt: Elevation tilt of the beam above the antenna face [rad]
        internal_loss: Internal loss (ratio >= 1)
        earth_radius_multiplier: k for horizon and refraction calculations
        attenuation_model: Atmospheric attenuation (None for free space)
        propagation_model: Pattern-propagation model (None for F⁴ = 1)
    """

    def __init__(self, antenna: Optional[Antenna] = None, name: str = "") -> None:
        self.name = name
        self.unique_id = next(_unique_ids)
        self.antenna = antenna if antenna is not None else Antenna()
        self.frequency = 0.0
        self.bandwidth = 0.0
        self.polarization = Polarization.DEFAULT
        self.beam_tilt = 0.0
        self.internal_loss = 1.0
        self.earth_radius_multiplier = EARTH_RADIUS_MULTIPLIER_RF
        self.attenuation_model: Optional[AttenuationModel] = None
        self.propagation_model: Optional[PropagationModel] = None
        self.manager = None
        self.active = False

        # polarization -> sorted [(frequency, pattern)]
        self._patterns: Dict[Polarization, List[Tuple[float, AntennaPattern]]] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.name}', f={self.frequency:.6g} Hz)"

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def process_input(self, command: str, value: Any) -> bool:
        """
        Apply one configuration keyword common to transmitters and receivers.

        Returns:
            True if the keyword was recognized
        """
        if command == "frequency":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.set_frequency(float(value))
        elif command == "bandwidth":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.set_bandwidth(float(value))
        elif command == "polarization":
            self.set_polarization(parse_enum(Polarization, value, command))
        elif command == "beam_tilt":
            tilt = np.radians(value)
            if not -np.pi / 2.0 <= tilt <= np.pi / 2.0:
                raise ConfigurationError("must be in [-90, 90] deg", command)
            self.beam_tilt = float(tilt)
        elif command == "internal_loss":
            if value < 1.0:
                raise ConfigurationError("must be >= 1", command)
            self.internal_loss = float(value)
        elif command == "internal_loss_db":
            if value < 0.0:
                raise ConfigurationError("must be >= 0 dB", command)
            self.internal_loss = db_to_linear(value)
        elif command == "earth_radius_multiplier":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.earth_radius_multiplier = float(value)
        elif command == "attenuation_model":
            self.attenuation_model = attenuation_model_from_input(value)
        elif command == "propagation_model":
            self.propagation_model = propagation_model_from_input(value)
        elif command == "antenna_pattern":
            self.set_antenna_pattern(self._pattern_from_input(value))
        elif command == "antenna_pattern_table":
            # {polarization: [[frequency, pattern], ...]}
            for pol_name, entries in value.items():
                polarization = parse_enum(Polarization, pol_name, command)
                for frequency, pattern in entries:
                    self.set_antenna_pattern(self._pattern_from_input(pattern), polarization, frequency)
        else:
            return self.antenna.process_input(command, value)
        return True

    @staticmethod
    def _pattern_from_input(value: Any) -> AntennaPattern:
        if isinstance(value, AntennaPattern):
            return value
        if isinstance(value, dict):
            pattern = create_antenna_pattern(value.get("type", "uniform"), value.get("name", ""))
            for key, item in value.items():
                if key not in ("type", "name") and not pattern.process_input(key, item):
                    raise ConfigurationError(f"unknown antenna pattern keyword '{key}'", "antenna_pattern")
            return pattern
        raise ConfigurationError(
            f"expected a pattern definition or object, got {type(value).__name__}", "antenna_pattern"
        )

    def set_antenna_pattern(
        self,
        pattern: AntennaPattern,
        polarization: Polarization = Polarization.DEFAULT,
        frequency: float = 0.0,
    ) -> None:
        """
        Add a pattern to the table.

        A pattern applies from its frequency up to the next entry's frequency
        for the same polarization.
        """
        entries = self._patterns.setdefault(polarization, [])
        entries[:] = [e for e in entries if e[0] != frequency]
        entries.append((float(frequency), pattern))
        entries.sort(key=lambda e: e[0])

    def get_antenna_pattern(
        self, polarization: Polarization, frequency: float
    ) -> Optional[AntennaPattern]:
        """Select the pattern for a polarization and frequency (None if the table is empty)."""
        entries = self._patterns.get(polarization)
        if not entries:
            entries = self._patterns.get(Polarization.DEFAULT)
        if not entries:
            entries = next(iter(self._patterns.values()), None)
            if not entries:
                return None
        index = bisect_right([e[0] for e in entries], frequency) - 1
        return entries[max(index, 0)][1]

    # -------------------------------------------------------------------------
    # Pattern accessors
    # -------------------------------------------------------------------------

    def get_antenna_gain(
        self,
        polarization: Polarization,
        frequency: float,
        azimuth: float,
        elevation: float,
        ebs_az: float = 0.0,
        ebs_el: float = 0.0,
    ) -> float:
        """Linear gain toward beam-relative (azimuth, elevation); 1 with no pattern."""
        pattern = self.get_antenna_pattern(polarization, frequency)
        if pattern is None:
            return 1.0
        return pattern.get_gain(frequency, azimuth, elevation, ebs_az, ebs_el)

    def get_peak_antenna_gain(self, frequency: float = 0.0) -> float:
        frequency = frequency if frequency > 0.0 else self.frequency
        pattern = self.get_antenna_pattern(self.polarization, frequency)
        return 1.0 if pattern is None else pattern.get_peak_gain(frequency)

    def get_azimuth_beamwidth(self, ebs_az: float = 0.0, ebs_el: float = 0.0) -> float:
        pattern = self.get_antenna_pattern(self.polarization, self.frequency)
        if pattern is None:
            return 2.0 * np.pi
        return pattern.get_azimuth_beamwidth(self.frequency, ebs_az, ebs_el)

    def get_elevation_beamwidth(self, ebs_az: float = 0.0, ebs_el: float = 0.0) -> float:
        pattern = self.get_antenna_pattern(self.polarization, self.frequency)
        if pattern is None:
            return np.pi
        return pattern.get_elevation_beamwidth(self.frequency, ebs_az, ebs_el)

    # -------------------------------------------------------------------------
    # Setters
    # -------------------------------------------------------------------------

    def set_frequency(self, frequency: float) -> None:
        self.frequency = frequency

    def set_bandwidth(self, bandwidth: float) -> None:
        self.bandwidth = bandwidth

    def set_polarization(self, polarization: Polarization) -> None:
        self.polarization = Polarization(polarization)

    def get_wavelength(self) -> float:
        if self.frequency <= 0.0:
            raise ProgrammingError(f"{self!r} has no frequency")
        return SPEED_OF_LIGHT / self.frequency

    @property
    def platform(self):
        part = self.antenna.part
        return None if part is None else part.platform

    def get_sim_time(self) -> float:
        platform = self.platform
        return 0.0 if platform is None else platform.time

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self, part=None) -> None:
        """
        Attach the antenna and initialize patterns and models.

        Raises:
            ProgrammingError: If the antenna has no articulated part
        """
        if part is not None or self.antenna.part is None:
            self.antenna.initialize(part)
        for entries in self._patterns.values():
            for _, pattern in entries:
                pattern.initialize()
        if self.attenuation_model is not None:
            self.attenuation_model.initialize(self)
        if self.propagation_model is not None:
            self.propagation_model.initialize(self)
