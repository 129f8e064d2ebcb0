"""
RF Receiver

Noise, bandwidth and polarization bookkeeping of a receiver, plus the
interactor lists maintained by the EM manager.

Noise power:
    N = k·T₀·B·F                      (no losses given)
    N = k·Tₛ·B                        (antenna ohmic or line loss given)
    Tₛ = Tₐ + T₀(L_r − 1) + L_r·T₀(F − 1)

where the antenna temperature Tₐ comes from Blake's sky-noise table as a
function of frequency and beam elevation, corrected for the antenna ohmic
loss.

References:
    - Blake, "Radar Range-Performance Analysis", Artech House, 1986,
      Chapter 7 (system noise temperature) and Table 7.1
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 1
"""

import logging
from typing import Any, List, Optional, Tuple

import numba
import numpy as np

from emsim.components.xmtr_rcvr import XmtrRcvr
from emsim.em.types import Polarization, RcvrFunction, ScanMode, XmtrFunction, parse_enum
from emsim.errors import ConfigurationError
from emsim.physics.constants import (
    BOLTZMANN_CONSTANT,
    DEFAULT_NOISE_POWER,
    FOUR_PI,
    SPEED_OF_LIGHT,
    STANDARD_TEMPERATURE,
    db_to_linear,
)

logger = logging.getLogger(__name__)

# =============================================================================
# BLAKE SKY-NOISE TABLE
# =============================================================================

_NOISE_ANGLES = np.array([0.0000, 0.0175, 0.0349, 0.0873, 0.1745, 0.5236, 1.5708])
"""Beam elevation break points [rad] (0, 1, 2, 5, 10, 30, 90 deg)"""

_NOISE_FREQUENCIES_MHZ = np.array(
    [
        0.0, 10.0, 100.0, 200.0, 300.0, 400.0, 500.0, 600.0, 700.0, 800.0,
        900.0, 1000.0, 2000.0, 3000.0, 4000.0, 5000.0, 6000.0, 7000.0, 8000.0,
        9000.0, 10000.0, 12000.0, 16000.0, 20000.0, 22000.0, 30000.0,
    ]
)
"""Frequency break points [MHz]"""

# Antenna noise temperature [K] for a lossless antenna (Blake Table 7.1)
_NOISE_TEMPERATURES = np.array(
    [
        [10.0e6, 10.0e6, 10.0e6, 10.0e6, 10.0e6, 10.0e6, 10.0e6],
        [1.0e6, 1.0e6, 1.0e6, 1.0e6, 1.0e6, 1.0e6, 1.0e6],
        [3.0e3, 3.0e3, 3.0e3, 3.0e3, 3.0e3, 3.0e3, 3.0e3],
        [545.0, 545.0, 545.0, 545.0, 545.0, 545.0, 545.0],
        [225.0, 225.0, 225.0, 225.0, 225.0, 225.0, 225.0],
        [150.0, 150.0, 150.0, 150.0, 150.0, 150.0, 150.0],
        [120.0, 110.0, 110.0, 110.0, 110.0, 110.0, 110.0],
        [100.0, 90.0, 82.0, 72.0, 71.0, 70.0, 70.0],
        [93.0, 75.0, 69.1, 55.0, 51.0, 45.7, 45.7],
        [90.0, 70.0, 60.0, 48.0, 42.0, 35.5, 35.0],
        [90.0, 68.0, 54.0, 41.0, 33.0, 29.0, 28.0],
        [89.1, 65.0, 52.0, 38.0, 30.0, 24.0, 23.0],
        [95.5, 63.0, 46.0, 27.0, 18.0, 11.0, 9.0],
        [100.0, 63.5, 46.0, 26.0, 17.0, 9.0, 7.0],
        [104.7, 66.1, 48.0, 26.0, 16.0, 8.3, 6.2],
        [110.0, 68.0, 50.0, 27.0, 16.0, 8.0, 6.0],
        [114.8, 70.5, 50.0, 28.0, 17.0, 8.0, 6.0],
        [120.2, 72.0, 52.0, 29.0, 17.5, 8.1, 6.0],
        [126.0, 75.0, 53.0, 30.0, 18.0, 8.2, 6.0],
        [130.0, 80.0, 58.0, 31.0, 18.5, 8.5, 6.0],
        [135.0, 85.0, 61.0, 32.0, 19.0, 9.0, 6.2],
        [160.0, 100.0, 70.0, 39.0, 21.5, 10.0, 6.5],
        [230.0, 150.0, 125.0, 64.0, 45.0, 16.0, 9.0],
        [280.0, 250.0, 220.0, 140.0, 90.0, 40.0, 20.0],
        [280.0, 280.0, 275.0, 210.0, 150.0, 70.0, 40.0],
        [275.0, 240.0, 190.0, 110.0, 70.0, 29.0, 17.0],
    ]
)


@numba.jit(nopython=True, cache=True)
def _antenna_temperature_jit(
    elevation: float,
    frequency_mhz: float,
    angles: np.ndarray,
    frequencies: np.ndarray,
    temperatures: np.ndarray,
) -> float:
    """Log-linear interpolation of the sky-noise table."""
    n_freq = frequencies.shape[0]
    n_ang = angles.shape[0]

    # Above the table: extrapolate from the last interval
    i_freq = n_freq - 2
    freq_factor = 1.0
    if frequency_mhz <= frequencies[n_freq - 1]:
        lo = 0
        hi = n_freq - 1
        while lo + 1 < hi:
            mid = (lo + hi) // 2
            if frequency_mhz < frequencies[mid]:
                hi = mid
            else:
                lo = mid
        i_freq = lo
        freq_factor = (frequency_mhz - frequencies[lo]) / (frequencies[hi] - frequencies[lo])

    i_ang = 0
    ang_factor = 0.0
    if elevation >= angles[n_ang - 1]:
        i_ang = n_ang - 2
        ang_factor = 1.0
    elif elevation > 0.0:
        while i_ang < n_ang - 2 and elevation >= angles[i_ang + 1]:
            i_ang += 1
        ang_factor = (elevation - angles[i_ang]) / (angles[i_ang + 1] - angles[i_ang])

    lower = freq_factor * np.log10(temperatures[i_freq + 1, i_ang]) + (
        1.0 - freq_factor
    ) * np.log10(temperatures[i_freq, i_ang])
    upper = freq_factor * np.log10(temperatures[i_freq + 1, i_ang + 1]) + (
        1.0 - freq_factor
    ) * np.log10(temperatures[i_freq, i_ang + 1])
    return 10.0 ** (ang_factor * upper + (1.0 - ang_factor) * lower)


def compute_system_noise_temperature(
    elevation: float,
    antenna_ohmic_loss: float,
    receive_line_loss: float,
    noise_figure: float,
    frequency: float,
) -> float:
    """
    Blake system noise temperature.

    Args:
        elevation: Beam elevation above the horizon [rad]
        antenna_ohmic_loss: Antenna ohmic loss (ratio >= 1)
        receive_line_loss: Receive line loss (ratio >= 1)
        noise_figure: Receiver noise figure (ratio >= 1)
        frequency: Frequency [Hz]

    Returns:
        System noise temperature Tₛ [K]
    """
    sky = _antenna_temperature_jit(
        elevation, frequency * 1.0e-6, _NOISE_ANGLES, _NOISE_FREQUENCIES_MHZ, _NOISE_TEMPERATURES
    )
    t0 = STANDARD_TEMPERATURE
    antenna_temp = (0.876 * sky - 254.0) / antenna_ohmic_loss + t0
    line_temp = t0 * (receive_line_loss - 1.0)
    receiver_temp = t0 * (noise_figure - 1.0)
    return antenna_temp + line_temp + receive_line_loss * receiver_temp


# =============================================================================
# POLARIZATION
# =============================================================================

_ORTHOGONAL = {
    Polarization.HORIZONTAL: Polarization.VERTICAL,
    Polarization.VERTICAL: Polarization.HORIZONTAL,
    Polarization.SLANT_45: Polarization.SLANT_135,
    Polarization.SLANT_135: Polarization.SLANT_45,
    Polarization.LEFT_CIRCULAR: Polarization.RIGHT_CIRCULAR,
    Polarization.RIGHT_CIRCULAR: Polarization.LEFT_CIRCULAR,
}
"""Receiver polarization -> orthogonal polarization"""


def default_polarization_effects(polarization: Polarization) -> np.ndarray:
    """
    Fraction of a signal of each polarization accepted by a receiver.

    Matched 1, orthogonal 0, anything else 0.5; a default-polarized signal
    or receiver couples fully.
    """
    effects = np.ones(len(Polarization))
    if polarization == Polarization.DEFAULT:
        return effects
    for other in Polarization:
        if other in (Polarization.DEFAULT, polarization):
            continue
        effects[other] = 0.0 if _ORTHOGONAL[polarization] == other else 0.5
    return effects


# =============================================================================
# RECEIVER
# =============================================================================


class Rcvr(XmtrRcvr):
    """
    RF receiver.

    Attributes:
        function: Role of the receiver
        detection_threshold: Linear SNR required for detection (default 3 dB)
        noise_figure: Noise figure (ratio >= 1)
        instantaneous_bandwidth: Noise bandwidth [Hz]
        antenna_ohmic_loss: Antenna ohmic loss (0 = not given)
        receive_line_loss: Receive line loss (0 = not given)
        noise_multiplier: Scale applied to the noise power in the SNR
        check_xmtr_masking: Evaluate transmitter-side terrain masking
        linked_xmtr: Transmitter sharing this antenna
    """

    def __init__(self, function: RcvrFunction = RcvrFunction.SENSOR, antenna=None, name: str = "") -> None:
        super().__init__(antenna, name)
        self.function = function
        self.detection_threshold = 10.0**0.3
        self.noise_figure = 1.0
        self.noise_power = 0.0
        self.instantaneous_bandwidth = 0.0
        self.antenna_ohmic_loss = 0.0
        self.receive_line_loss = 0.0
        self.noise_multiplier = 1.0
        self.check_xmtr_masking = True
        self.linked_xmtr = None

        self._explicit_noise_power = False
        self._explicit_bandwidth = False
        self._explicit_instantaneous_bandwidth = False
        self._explicit_polarization_effects = np.full(len(Polarization), -1.0)
        self._polarization_effects = np.ones(len(Polarization))

        self._comm_interactors: list = []
        self._sensor_interactors: list = []
        self._interference_interactors: list = []

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def process_input(self, command: str, value: Any) -> bool:
        if command == "function":
            self.function = parse_enum(RcvrFunction, value, command)
        elif command == "detection_threshold":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.detection_threshold = float(value)
        elif command == "detection_threshold_db":
            self.detection_threshold = db_to_linear(value)
        elif command in ("instantaneous_bandwidth", "analysis_bandwidth"):
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self.set_instantaneous_bandwidth(float(value))
        elif command == "noise_power":
            self.set_noise_power(float(value))
        elif command == "noise_power_dbw":
            self.set_noise_power(db_to_linear(value))
        elif command == "noise_figure":
            if value < 1.0:
                raise ConfigurationError("must be >= 1", command)
            self.set_noise_figure(float(value))
        elif command == "noise_figure_db":
            if value < 0.0:
                raise ConfigurationError("must be >= 0 dB", command)
            self.set_noise_figure(db_to_linear(value))
        elif command == "polarization_effect":
            # [signal polarization, fraction]
            polarization = parse_enum(Polarization, value[0], command)
            fraction = float(value[1])
            if not 0.0 <= fraction <= 1.0:
                raise ConfigurationError("fraction must be in [0, 1]", command)
            self.set_polarization_effect(polarization, fraction)
        elif command in ("antenna_ohmic_loss", "receive_line_loss"):
            # Zero means not specified
            if value != 0.0 and value < 1.0:
                raise ConfigurationError("must be >= 1 (or 0)", command)
            if command == "antenna_ohmic_loss":
                self.set_antenna_ohmic_loss(float(value))
            else:
                self.set_receive_line_loss(float(value))
        elif command == "check_transmitter_masking":
            self.check_xmtr_masking = bool(value)
        else:
            return super().process_input(command, value)
        return True

    # -------------------------------------------------------------------------
    # Setters
    # -------------------------------------------------------------------------

    def set_frequency(self, frequency: float) -> None:
        self.frequency = frequency
        if self.manager is not None:
            self.manager.update_rcvr(self)

    def set_bandwidth(self, bandwidth: float) -> None:
        self.bandwidth = bandwidth
        self._explicit_bandwidth = True
        if not self._explicit_instantaneous_bandwidth:
            self.instantaneous_bandwidth = bandwidth
        self.update_noise_power()
        if self.manager is not None:
            self.manager.update_rcvr(self)

    def set_instantaneous_bandwidth(self, bandwidth: float) -> None:
        self.instantaneous_bandwidth = bandwidth
        self._explicit_instantaneous_bandwidth = True
        if not self._explicit_bandwidth:
            self.bandwidth = bandwidth
        self.update_noise_power()
        if self.manager is not None:
            self.manager.update_rcvr(self)

    def set_noise_figure(self, noise_figure: float) -> None:
        self.noise_figure = noise_figure
        self.update_noise_power()

    def set_noise_power(self, noise_power: float) -> None:
        """Set an explicit noise power; a value <= 0 reverts to the derived value."""
        self.noise_power = noise_power
        self._explicit_noise_power = noise_power > 0.0
        if not self._explicit_noise_power:
            self.update_noise_power()

    def set_antenna_ohmic_loss(self, loss: float) -> None:
        self.antenna_ohmic_loss = loss
        self.update_noise_power()

    def set_receive_line_loss(self, loss: float) -> None:
        self.receive_line_loss = loss
        self.update_noise_power()

    def set_polarization(self, polarization) -> None:
        super().set_polarization(polarization)
        self._update_polarization_effects()

    def set_polarization_effect(self, polarization: Polarization, fraction: float) -> None:
        self._explicit_polarization_effects[polarization] = fraction
        self._update_polarization_effects()

    def _update_polarization_effects(self) -> None:
        effects = default_polarization_effects(self.polarization)
        explicit = self._explicit_polarization_effects >= 0.0
        effects[explicit] = self._explicit_polarization_effects[explicit]
        self._polarization_effects = effects

    # -------------------------------------------------------------------------
    # Signal calculations
    # -------------------------------------------------------------------------

    def can_interact_with(self, xmtr) -> bool:
        """True if the transmitter's passband overlaps this receiver's."""
        rcvr_lo = self.frequency - 0.5 * self.bandwidth
        rcvr_hi = rcvr_lo + self.bandwidth
        xmtr_lo = xmtr.frequency - 0.5 * xmtr.bandwidth
        xmtr_hi = xmtr_lo + xmtr.bandwidth
        return not (xmtr_lo > rcvr_hi or xmtr_hi < rcvr_lo)

    def get_bandwidth_effect(self, signal_frequency: float, signal_bandwidth: float) -> float:
        """
        Fraction of a signal's bandwidth that falls inside the receiver passband.

        A receiver with no bandwidth accepts the whole signal when its tuned
        frequency lies in the signal band; a signal with no bandwidth is
        accepted whole when it lies inside the receiver band.
        """
        signal_lo = signal_frequency - 0.5 * signal_bandwidth
        signal_hi = signal_frequency + 0.5 * signal_bandwidth

        rcvr_bw = self.bandwidth
        if rcvr_bw == 0.0:
            if signal_lo <= self.frequency <= signal_hi:
                rcvr_bw = signal_bandwidth
            else:
                return 0.0

        rcvr_lo = self.frequency - 0.5 * rcvr_bw
        rcvr_hi = self.frequency + 0.5 * rcvr_bw
        if signal_lo > rcvr_hi or signal_hi < rcvr_lo:
            return 0.0
        if signal_bandwidth <= 0.0:
            return 1.0
        inband = max(min(rcvr_hi, signal_hi) - max(rcvr_lo, signal_lo), 0.0)
        return min(inband / signal_bandwidth, 1.0)

    def get_polarization_effect(self, polarization: Polarization) -> float:
        if self.polarization == Polarization.DEFAULT:
            return 1.0
        return float(self._polarization_effects[polarization])

    def compute_received_power(
        self,
        source_az: float,
        source_el: float,
        ebs_az: float,
        ebs_el: float,
        power_density: float,
        polarization: Polarization,
        frequency: float,
    ) -> Tuple[float, float]:
        """
        Power delivered by an incident power density.

        P = S · λ²/(4π) · G / L_internal, with λ from the tuned frequency.
        The polarization mismatch factor is applied by the caller.

        Returns:
            Tuple of (received power [W], antenna gain)
        """
        gain = self.get_antenna_gain(polarization, self.frequency, source_az, source_el, ebs_az, ebs_el)
        wavelength = SPEED_OF_LIGHT / self.frequency
        power = power_density * (wavelength * wavelength / FOUR_PI) * gain / self.internal_loss
        return power, gain

    def compute_signal_to_noise(
        self, signal_power: float, clutter_power: float, interference_power: float
    ) -> float:
        return signal_power / (clutter_power + interference_power + self.noise_power * self.noise_multiplier)

    # -------------------------------------------------------------------------
    # Noise
    # -------------------------------------------------------------------------

    def update_noise_power(self, pulse_width: float = 0.0) -> None:
        """
        Derive the noise power unless one was given explicitly.

        The noise bandwidth falls back from the instantaneous bandwidth to
        the bandwidth and then to 1 / pulse width.
        """
        if self._explicit_noise_power:
            return
        if self._explicit_instantaneous_bandwidth and self.instantaneous_bandwidth > 0.0:
            if not self._explicit_bandwidth:
                self.bandwidth = self.instantaneous_bandwidth
        elif self._explicit_bandwidth and self.bandwidth > 0.0:
            if not self._explicit_instantaneous_bandwidth:
                self.instantaneous_bandwidth = self.bandwidth
        elif pulse_width > 0.0:
            self.instantaneous_bandwidth = 1.0 / pulse_width
            self.bandwidth = self.instantaneous_bandwidth

        if self.instantaneous_bandwidth <= 0.0:
            self.noise_power = DEFAULT_NOISE_POWER
            return

        noise_figure = self.noise_figure if self.noise_figure > 0.0 else 1.0
        if self.antenna_ohmic_loss <= 0.0 and self.receive_line_loss <= 0.0:
            self.noise_power = (
                BOLTZMANN_CONSTANT * STANDARD_TEMPERATURE * self.instantaneous_bandwidth * noise_figure
            )
            return

        temperature = compute_system_noise_temperature(
            self._noise_elevation(),
            self.antenna_ohmic_loss if self.antenna_ohmic_loss > 0.0 else 1.0,
            self.receive_line_loss if self.receive_line_loss > 0.0 else 1.0,
            noise_figure,
            self.frequency,
        )
        self.noise_power = BOLTZMANN_CONSTANT * temperature * self.instantaneous_bandwidth

    def _noise_elevation(self) -> float:
        """Representative beam elevation for the sky-noise lookup."""
        antenna = self.antenna
        part = antenna.part
        if part is None:
            return self.beam_tilt + antenna.pitch
        elevation = self.beam_tilt + antenna.pitch + part.pitch
        if part.min_el_slew > -np.pi / 2.0 or part.max_el_slew < np.pi / 2.0:
            return 0.5 * (part.min_el_slew + part.max_el_slew)
        if antenna.scan_mode & ScanMode.ELEVATION:
            return 0.5 * (antenna.min_el_scan + antenna.max_el_scan)
        return elevation

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self, part=None) -> None:
        """
        Validate the receiver and derive its noise power.

        Raises:
            ConfigurationError: If no frequency was given
        """
        super().initialize(part)
        if self.frequency == 0.0:
            logger.error("Receiver '%s': frequency not specified", self.name)
            raise ConfigurationError("receiver frequency not specified", "frequency")
        pulse_width = self.linked_xmtr.pulse_width if self.linked_xmtr is not None else 0.0
        self.update_noise_power(pulse_width)
        self._update_polarization_effects()
        logger.debug(
            "Initialized receiver '%s': f=%.6g Hz, B=%.6g Hz, N=%.4g W",
            self.name,
            self.frequency,
            self.instantaneous_bandwidth,
            self.noise_power,
        )

    def activate(self, manager) -> None:
        """Register with the EM manager (idempotent)."""
        self.manager = manager
        manager.activate_rcvr(self)

    def deactivate(self) -> None:
        if self.manager is not None:
            self.manager.deactivate_rcvr(self)

    # -------------------------------------------------------------------------
    # Interactors
    # -------------------------------------------------------------------------

    def _interactor_list(self, xmtr) -> Optional[list]:
        if xmtr.function == XmtrFunction.COMM:
            return self._comm_interactors
        if xmtr.function == XmtrFunction.SENSOR:
            return self._sensor_interactors
        if xmtr.function == XmtrFunction.INTERFERER:
            return self._interference_interactors
        return None

    def add_interactor(self, xmtr) -> bool:
        """Add a potentially interacting transmitter; False if already present."""
        interactors = self._interactor_list(xmtr)
        if interactors is None or xmtr in interactors:
            return False
        interactors.append(xmtr)
        return True

    def remove_interactor(self, xmtr) -> bool:
        interactors = self._interactor_list(xmtr)
        if interactors is None or xmtr not in interactors:
            return False
        interactors.remove(xmtr)
        return True

    def clear_interactors(self) -> None:
        self._comm_interactors.clear()
        self._sensor_interactors.clear()
        self._interference_interactors.clear()

    def update_interactions(self, xmtr) -> None:
        if self.can_interact_with(xmtr) and xmtr.allow_interaction_with(self):
            self.add_interactor(xmtr)
        else:
            self.remove_interactor(xmtr)

    def get_interactors(self) -> List:
        """Comm, then sensor, then interferer transmitters (a copy)."""
        return self._comm_interactors + self._sensor_interactors + self._interference_interactors

    def get_interactor_count(self) -> int:
        return (
            len(self._comm_interactors)
            + len(self._sensor_interactors)
            + len(self._interference_interactors)
        )

    def get_interactor_entry(self, index: int):
        return self.get_interactors()[index]

    def get_interferers(self) -> List:
        return list(self._interference_interactors)

    # -------------------------------------------------------------------------
    # Listener callbacks
    # -------------------------------------------------------------------------

    def emitter_active_callback(self, sim_time: float, interaction) -> None:
        """Called by a transmitter this receiver listens to on every emission."""
        logger.debug("%s: emission from %s at t=%.3f", self.name, interaction.xmtr, sim_time)

    def signal_change_callback(self, sim_time: float, target_index: Optional[int]) -> None:
        """Called when a listened-to transmitter changes its parameters."""
        logger.debug("%s: signal change at t=%.3f (target %s)", self.name, sim_time, target_index)
