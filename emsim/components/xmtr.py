"""
RF Transmitter

Power schedule, pulse parameters, alternate frequencies and the listener
lists of a transmitter.

Power may be a single value or a frequency-keyed table; the table entry
with the highest frequency not above the operating frequency applies (the
first entry applies below the table). Average power is peak power times
duty cycle.

The PRF and PRI lists hold the average in element 0 and the user entries
in elements 1..n; PRI = 1 / PRF element-wise.

References:
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 1
    - Richards, "Fundamentals of Radar Signal Processing", 2nd Ed., Ch. 1
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from emsim.components.xmtr_rcvr import XmtrRcvr
from emsim.em.types import XmtrFunction, parse_enum
from emsim.errors import ConfigurationError
from emsim.physics.constants import db_to_linear

logger = logging.getLogger(__name__)


class Xmtr(XmtrRcvr):
    """
    RF transmitter.

    Attributes:
        function: Role of the transmitter (comm, sensor or interferer)
        pulse_width: Pulse width [s] (0 for continuous wave)
        duty_cycle: Fraction of time transmitting
        pulse_compression_ratio: Pulse compression ratio (>= 1 typical)
        transmission_end_time: Simulation time the current transmission
            ends (bursty comms), or None
        linked_rcvr: Receiver sharing this antenna (monostatic pairing)
    """

    def __init__(self, function: XmtrFunction = XmtrFunction.SENSOR, antenna=None, name: str = "") -> None:
        super().__init__(antenna, name)
        self.function = function
        self.pulse_width = 0.0
        self.duty_cycle = 1.0
        self.pulse_compression_ratio = 1.0
        self.transmission_end_time: Optional[float] = None
        self.allow_zero_frequency = False
        self.use_default_frequency = False
        self.linked_rcvr = None

        self._power_list: List[Tuple[float, float]] = []
        self._alternate_frequencies: Dict[int, float] = {}
        self._explicit_frequency_list = False
        self.current_alternate_frequency_id = 0
        self._prfs: List[float] = [0.0]
        self._pris: List[float] = [0.0]

        self._listeners: list = []
        self._change_listeners: list = []

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def process_input(self, command: str, value: Any) -> bool:
        if command == "function":
            self.function = parse_enum(XmtrFunction, value, command)
        elif command == "allow_zero_frequency_input":
            self.allow_zero_frequency = bool(value)
        elif command == "use_default_frequency":
            self.use_default_frequency = bool(value)
        elif command == "frequency":
            if value < 0.0:
                raise ConfigurationError("must be >= 0", command)
            self._alternate_frequencies.clear()
            self._explicit_frequency_list = False
            self.set_frequency(float(value))
        elif command == "alternate_frequency":
            # [id, frequency]; ids are sequential from 1, id 0 is the nominal frequency
            if self._explicit_frequency_list:
                self._alternate_frequencies.clear()
                self._explicit_frequency_list = False
            alt_id, frequency = int(value[0]), float(value[1])
            if not 1 <= alt_id <= len(self._alternate_frequencies) + 1:
                raise ConfigurationError(
                    f"id must be in [1, {len(self._alternate_frequencies) + 1}]", command
                )
            self._alternate_frequencies[alt_id] = frequency
        elif command == "frequency_list":
            self._alternate_frequencies.clear()
            self._explicit_frequency_list = True
            for alt_id, frequency in value:
                if not 1 <= int(alt_id) <= len(self._alternate_frequencies) + 1:
                    raise ConfigurationError("ids must be sequential from 1", command)
                self._alternate_frequencies[int(alt_id) - 1] = float(frequency)
        elif command == "frequency_channels":
            # [first, step, last]
            first, step, last = (float(v) for v in value)
            if last <= first:
                raise ConfigurationError("last channel must exceed the first", command)
            if step <= 0.0 or step > last - first:
                raise ConfigurationError("step must be in (0, last - first]", command)
            self._alternate_frequencies.clear()
            self._explicit_frequency_list = True
            num_channels = int((last - first) / step) + 1
            for index in range(num_channels):
                self._alternate_frequencies[index] = first + index * step
        elif command == "power":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.set_power(float(value))
        elif command == "power_dbw":
            self.set_power(db_to_linear(value))
        elif command == "powers":
            # [[frequency, power], ...]
            self._power_list.clear()
            for frequency, power in value:
                if frequency <= 0.0 or power <= 0.0:
                    raise ConfigurationError("frequency and power must be > 0", command)
                if not self.set_power_at_frequency(float(power), float(frequency)):
                    raise ConfigurationError(
                        f"power previously defined for frequency {frequency}", command
                    )
        elif command == "pulse_compression_ratio":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.pulse_compression_ratio = float(value)
        elif command == "pulse_repetition_frequency":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.set_pulse_repetition_frequency(float(value))
        elif command == "pulse_repetition_frequencies":
            for number, prf in enumerate(value, start=1):
                if prf <= 0.0:
                    raise ConfigurationError("must be > 0", command)
                self.set_pulse_repetition_frequency(float(prf), number)
        elif command == "pulse_repetition_interval":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.set_pulse_repetition_interval(float(value))
        elif command == "pulse_repetition_intervals":
            for number, pri in enumerate(value, start=1):
                if pri <= 0.0:
                    raise ConfigurationError("must be > 0", command)
                self.set_pulse_repetition_interval(float(pri), number)
        elif command == "pulse_width":
            if value <= 0.0:
                raise ConfigurationError("must be > 0", command)
            self.pulse_width = float(value)
        elif command in ("duty_cycle", "duty-cycle"):
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError("must be in [0, 1]", command)
            self.duty_cycle = float(value)
        else:
            return super().process_input(command, value)
        return True

    # -------------------------------------------------------------------------
    # Power
    # -------------------------------------------------------------------------

    def set_power(self, power: float) -> None:
        """Set a single power that applies at all frequencies."""
        self._power_list = [(0.0, power)]
        self._changed()

    def set_power_at_frequency(self, power: float, frequency: float) -> bool:
        """
        Insert a frequency-specific power.

        Returns:
            False if a power already exists at exactly this frequency
        """
        if any(f == frequency for f, _ in self._power_list):
            return False
        self._power_list.append((frequency, power))
        self._power_list.sort(key=lambda e: e[0])
        self._changed()
        return True

    def get_peak_power(self, frequency: float = 0.0) -> float:
        if not self._power_list:
            return 0.0
        frequency = frequency if frequency > 0.0 else self.frequency
        selected = self._power_list[0][1]
        for entry_freq, power in self._power_list:
            if frequency < entry_freq:
                break
            selected = power
        return selected

    def get_power(self, frequency: float = 0.0) -> float:
        """Average power (peak × duty cycle) [W]."""
        return self.get_peak_power(frequency) * self.duty_cycle

    def compute_radiated_power(
        self,
        target_az: float,
        target_el: float,
        ebs_az: float,
        ebs_el: float,
        frequency: float = 0.0,
    ) -> Tuple[float, float]:
        """
        Power radiated toward a beam-relative direction.

        Args:
            target_az, target_el: Direction relative to the beam [rad]
            ebs_az, ebs_el: Electronic steering angles [rad]
            frequency: Signal frequency (0 for the tuned frequency) [Hz]

        Returns:
            Tuple of (effective radiated power [W], antenna gain)
        """
        freq = frequency if frequency > 0.0 else self.frequency
        gain = self.get_antenna_gain(self.polarization, freq, target_az, target_el, ebs_az, ebs_el)
        return self.get_power(freq) * gain / self.internal_loss, gain

    # -------------------------------------------------------------------------
    # Frequency
    # -------------------------------------------------------------------------

    def set_frequency(self, frequency: float) -> None:
        self.frequency = frequency
        if self.manager is not None:
            self.manager.update_xmtr(self)
        if self.linked_rcvr is not None:
            self.linked_rcvr.set_frequency(frequency)
        self._changed()

    def set_bandwidth(self, bandwidth: float) -> None:
        self.bandwidth = bandwidth
        if self.manager is not None:
            self.manager.update_xmtr(self)

    def set_polarization(self, polarization) -> None:
        super().set_polarization(polarization)
        if self.linked_rcvr is not None:
            self.linked_rcvr.set_polarization(self.polarization)
        self._changed()

    def get_alternate_frequency(self, alt_id: int) -> float:
        return self._alternate_frequencies.get(alt_id, 0.0)

    def get_alternate_frequency_count(self) -> int:
        return len(self._alternate_frequencies)

    def select_alternate_frequency(self, alt_id: int) -> None:
        """Switch to an alternate frequency; an unknown id selects entry 0."""
        if alt_id == self.current_alternate_frequency_id or not self._alternate_frequencies:
            return
        if alt_id not in self._alternate_frequencies:
            alt_id = 0
        self.set_frequency(self._alternate_frequencies[alt_id])
        self.current_alternate_frequency_id = alt_id

    # -------------------------------------------------------------------------
    # Pulse parameters
    # -------------------------------------------------------------------------

    def _resize_pulse_lists(self, number: int) -> None:
        if len(self._prfs) != number + 1:
            self._prfs = (self._prfs + [0.0] * (number + 1))[: number + 1]
            self._pris = (self._pris + [0.0] * (number + 1))[: number + 1]

    def set_pulse_repetition_frequency(self, prf: float, number: int = 1) -> None:
        """Set PRF entry `number` (1-based); entry 0 becomes the average."""
        self._resize_pulse_lists(number)
        self._prfs[number] = prf
        self._pris[number] = 1.0 / prf if prf > 0.0 else 0.0
        if len(self._prfs) > 1:
            self._prfs[0] = float(np.mean(self._prfs[1:]))
        if self._prfs[0] > 0.0:
            self._pris[0] = 1.0 / self._prfs[0]
        self._changed()

    def set_pulse_repetition_interval(self, pri: float, number: int = 1) -> None:
        """Set PRI entry `number` (1-based); entry 0 becomes the average."""
        self._resize_pulse_lists(number)
        self._pris[number] = pri
        self._prfs[number] = 1.0 / pri if pri > 0.0 else 0.0
        if len(self._pris) > 1:
            self._pris[0] = float(np.mean(self._pris[1:]))
        if self._pris[0] > 0.0:
            self._prfs[0] = 1.0 / self._pris[0]
        self._changed()

    def get_pulse_repetition_frequency(self, index: int = 0) -> float:
        return self._prfs[index] if 0 <= index < len(self._prfs) else 0.0

    def get_pulse_repetition_frequencies(self) -> List[float]:
        return list(self._prfs[1:])

    def get_pulse_repetition_interval(self, index: int = 0) -> float:
        return self._pris[index] if 0 <= index < len(self._pris) else 0.0

    def get_pulse_repetition_intervals(self) -> List[float]:
        return list(self._pris[1:])

    def set_pulse_width(self, pulse_width: float) -> None:
        self.pulse_width = pulse_width
        self._changed()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self, part=None) -> None:
        """
        Validate the transmitter and resolve the alternate-frequency list.

        Raises:
            ConfigurationError: For missing power/frequency, a pulse width
                without a PRF, or pulse_width × PRF > 1
        """
        super().initialize(part)

        if self._alternate_frequencies:
            if self._explicit_frequency_list:
                if not self.use_default_frequency or self.frequency == 0.0:
                    self.frequency = self._alternate_frequencies[0]
                    self.current_alternate_frequency_id = 0
            else:
                self._alternate_frequencies[0] = self.frequency
            if self.use_default_frequency:
                self._alternate_frequencies.clear()
                self._explicit_frequency_list = False

        if self.get_power() == 0.0 or self.frequency == 0.0:
            if not self.allow_zero_frequency:
                logger.error("Transmitter '%s': 'power' and 'frequency' must be provided", self.name)
                raise ConfigurationError("transmitter 'power' and 'frequency' must be provided", "transmitter")
            if self.get_power() == 0.0:
                logger.warning("Transmitter '%s' initialized with a power of 0", self.name)
            if self.frequency == 0.0:
                logger.warning("Transmitter '%s' initialized with a frequency of 0", self.name)

        prf = self.get_pulse_repetition_frequency()
        if self.pulse_width > 0.0:
            if prf <= 0.0:
                logger.error("Transmitter '%s': pulse_width given without a PRF", self.name)
                raise ConfigurationError(
                    "'pulse_repetition_frequency' or 'pulse_repetition_interval' must be "
                    "provided if 'pulse_width' is specified",
                    "pulse_width",
                )
            if self.pulse_width * prf > 1.0:
                raise ConfigurationError(
                    f"pulse_width × PRF = {self.pulse_width * prf:.4g} exceeds 1", "pulse_width"
                )
        logger.debug(
            "Initialized transmitter '%s': f=%.6g Hz, P=%.6g W", self.name, self.frequency, self.get_power()
        )

    def activate(self, manager) -> None:
        """Register with the EM manager (idempotent)."""
        self.manager = manager
        manager.activate_xmtr(self)

    def deactivate(self) -> None:
        if self.manager is not None:
            self.manager.deactivate_xmtr(self)

    def set_linked_receiver(self, rcvr) -> None:
        """Pair with a receiver that shares this antenna (monostatic)."""
        self.linked_rcvr = rcvr
        if rcvr is not None:
            rcvr.linked_xmtr = self
            rcvr.antenna = self.antenna
            rcvr.set_frequency(self.frequency)
            rcvr.set_polarization(self.polarization)

    def allow_interaction_with(self, rcvr) -> bool:
        return True

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, rcvr) -> bool:
        """Add an emit listener; False if already present."""
        if rcvr in self._listeners:
            return False
        self._listeners.append(rcvr)
        return True

    def remove_listener(self, rcvr) -> bool:
        if rcvr not in self._listeners:
            return False
        self._listeners.remove(rcvr)
        return True

    def notify_listeners(self, sim_time: float, interaction) -> None:
        """Deliver an emission to every emit listener, in registration order."""
        for listener in list(self._listeners):
            listener.emitter_active_callback(sim_time, interaction)

    def add_change_listener(self, rcvr) -> bool:
        if rcvr in self._change_listeners:
            return False
        self._change_listeners.append(rcvr)
        return True

    def remove_change_listener(self, rcvr) -> bool:
        if rcvr not in self._change_listeners:
            return False
        self._change_listeners.remove(rcvr)
        return True

    def notify_change_listeners(self, sim_time: float, target_index: Optional[int] = None) -> None:
        for listener in list(self._change_listeners):
            listener.signal_change_callback(sim_time, target_index)

    def get_listener_count(self) -> int:
        return len(self._listeners)

    def _changed(self) -> None:
        if self.active:
            self.notify_change_listeners(self.get_sim_time())
