"""
Detectors

Probability of detection as a function of the (linear) signal-to-noise
ratio, for a square-law detector integrating N pulses non-coherently:

    Threshold:  Pfa = Γ(N, T) / Γ(N)               (regularized upper gamma)
    Case 0:     Pd  = Q_ncx2(2T; 2N, 2N·SNR)        (Marcum, non-fluctuating)
    Case 1:     Pd  = ∫ Pd₀(N·SNR·x) · Exp(x) dx    (scan-to-scan, χ² 2 dof)
    Case 2:     Pd  = Γ(N, T/(1 + SNR)) / Γ(N)      (pulse-to-pulse, χ² 2 dof)
    Case 3:     Pd  = ∫ Pd₀(N·SNR·x) · Gamma(2) dx  (scan-to-scan, χ² 4 dof)
    Case 4:     Pd  = ∫ Pd₀(N·SNR·x) · Gamma(2N) dx (pulse-to-pulse, χ² 4 dof)

The fluctuating cases average the Marcum result over the chi-square RCS
distribution (Swerling's χ² family); case 4 uses the 2N-degree-of-freedom
equivalent.

Three detector flavours are provided: the analytic Marcum-Swerling detector,
a user Pd-vs-SNR table and a binary threshold detector. Any of them can be
inverted by bisection to find the SNR that yields a required Pd.

References:
    - Marcum, J.I., "A Statistical Theory of Target Detection by Pulsed
      Radar", IRE Trans. IT-6, 1960
    - Swerling, P., "Probability of Detection for Fluctuating Targets",
      IRE Trans. IT-6, 1960
    - Shnidman, D.A., "Expanded Swerling Target Models", IEEE Trans. AES,
      2003
"""

import logging
from typing import Any, Callable, Sequence

import numpy as np
from scipy import integrate, special, stats

from emsim.errors import ConfigurationError
from emsim.physics.constants import db_to_linear, linear_to_db

logger = logging.getLogger(__name__)

MIN_REQUIRED_PD: float = 0.002
"""Lower clamp on the required Pd used for threshold inversion"""

MAX_REQUIRED_PD: float = 0.998
"""Upper clamp on the required Pd used for threshold inversion"""

DEFAULT_REQUIRED_PD: float = 0.5
"""Required Pd used when none (or an invalid one) is given"""

MAX_THRESHOLD_SNR: float = 1000.0
"""Upper bound of the bisection interval (linear SNR)"""

THRESHOLD_TOLERANCE: float = 0.001
"""Bisection stops when the interval or the Pd error falls below this"""


# =============================================================================
# MARCUM-SWERLING
# =============================================================================


def detection_threshold_for_pfa(pfa: float, n_pulses: int) -> float:
    """Normalized square-law threshold T for a false-alarm probability."""
    return float(special.gammainccinv(n_pulses, pfa))


def marcum_pd(snr: float, threshold: float, n_pulses: int) -> float:
    """Pd of a non-fluctuating target (per-pulse SNR, N pulses)."""
    if snr <= 0.0:
        return float(special.gammaincc(n_pulses, threshold))
    return float(stats.ncx2.sf(2.0 * threshold, 2 * n_pulses, 2.0 * n_pulses * snr))


def _chi_square_average_pd(snr: float, threshold: float, n_pulses: int, dof_half: float) -> float:
    """Marcum Pd averaged over a unit-mean gamma RCS distribution of shape dof_half."""
    shape = dof_half

    def integrand(x: float) -> float:
        return marcum_pd(snr * x, threshold, n_pulses) * stats.gamma.pdf(x, shape, scale=1.0 / shape)

    # Split at the mean so quad resolves the peak for large shapes
    upper = 1.0 + 20.0 / np.sqrt(shape)
    lo_part, _ = integrate.quad(integrand, 0.0, 1.0, limit=200)
    hi_part, _ = integrate.quad(integrand, 1.0, upper, limit=200)
    tail, _ = integrate.quad(integrand, upper, np.inf, limit=200)
    return float(np.clip(lo_part + hi_part + tail, 0.0, 1.0))


def swerling_pd(snr: float, pfa: float, n_pulses: int = 1, case: int = 0) -> float:
    """
    Probability of detection for a Swerling fluctuation case.

    Args:
        snr: Per-pulse signal-to-noise ratio (linear)
        pfa: Probability of false alarm
        n_pulses: Number of pulses integrated non-coherently
        case: Swerling case 0-4

    Returns:
        Probability of detection in [0, 1]
    """
    threshold = detection_threshold_for_pfa(pfa, n_pulses)
    if snr <= 0.0:
        return float(pfa)
    if case == 0:
        return marcum_pd(snr, threshold, n_pulses)
    if case == 1:
        if n_pulses == 1:
            return float(np.exp(-threshold / (1.0 + snr)))
        return _chi_square_average_pd(snr, threshold, n_pulses, 1.0)
    if case == 2:
        return float(special.gammaincc(n_pulses, threshold / (1.0 + snr)))
    if case == 3:
        return _chi_square_average_pd(snr, threshold, n_pulses, 2.0)
    if case == 4:
        return _chi_square_average_pd(snr, threshold, n_pulses, 2.0 * n_pulses)
    raise ConfigurationError(f"invalid Swerling case {case}", "swerling_case")


class MarcumSwerlingDetector:
    """
    Analytic detector.

    Attributes:
        number_of_pulses_integrated: Pulses integrated non-coherently (>= 1)
        probability_of_false_alarm: Pfa (0, 1)
        swerling_case: Target fluctuation case 0-4
    """

    detector_type = "marcum_swerling"

    def __init__(self) -> None:
        self.number_of_pulses_integrated = 1
        self.probability_of_false_alarm = 1.0e-6
        self.swerling_case = 0

    def process_input(self, command: str, value: Any) -> bool:
        if command == "number_of_pulses_integrated":
            if int(value) < 1:
                raise ConfigurationError("must be >= 1", command)
            self.number_of_pulses_integrated = int(value)
        elif command == "probability_of_false_alarm":
            if not 0.0 < value < 1.0:
                raise ConfigurationError("must be in (0, 1)", command)
            self.probability_of_false_alarm = float(value)
        elif command in ("swerling_case", "case"):
            if int(value) not in (0, 1, 2, 3, 4):
                raise ConfigurationError("must be 0-4", command)
            self.swerling_case = int(value)
        else:
            return False
        return True

    def compute_probability_of_detection(self, signal_to_noise: float) -> float:
        return swerling_pd(
            signal_to_noise, self.probability_of_false_alarm, self.number_of_pulses_integrated, self.swerling_case
        )


# =============================================================================
# TABLE AND BINARY DETECTORS
# =============================================================================


class DetectionProbabilityTable:
    """
    Pd interpolated from a signal-to-noise table.

    The table is held in dB (ascending) and looked up linearly with
    clamping at both ends.
    """

    detector_type = "detection_probability"

    def __init__(self) -> None:
        self.snr_db = np.zeros(0)
        self.pd = np.zeros(0)

    def set_table(self, snr_db: Sequence[float], pd: Sequence[float]) -> None:
        """
        Raises:
            ConfigurationError: On fewer than two entries, a non-ascending
                SNR axis or a Pd outside [0, 1]
        """
        snr_db = np.asarray(snr_db, dtype=float)
        pd = np.asarray(pd, dtype=float)
        if snr_db.size < 2 or snr_db.size != pd.size:
            raise ConfigurationError("table must have at least two entries", self.detector_type)
        if np.any(np.diff(snr_db) <= 0.0):
            raise ConfigurationError("signal-to-noise values must be monotonically ascending", self.detector_type)
        if np.any(pd < 0.0) or np.any(pd > 1.0):
            raise ConfigurationError("probabilities must be in [0, 1]", self.detector_type)
        self.snr_db = snr_db
        self.pd = pd

    def process_input(self, command: str, value: Any) -> bool:
        """detection_probability: [[snr_db, pd], ...]"""
        if command != "detection_probability":
            return False
        rows = [(float(row[0]), float(row[1])) for row in value]
        self.set_table([row[0] for row in rows], [row[1] for row in rows])
        return True

    def compute_probability_of_detection(self, signal_to_noise: float) -> float:
        if self.snr_db.size == 0:
            raise ConfigurationError("detection_probability table not defined", self.detector_type)
        snr_db = linear_to_db(max(signal_to_noise, 1.0e-30))
        return float(np.interp(snr_db, self.snr_db, self.pd))


class BinaryDetector:
    """Pd = 1 at or above the threshold, else 0."""

    detector_type = "binary"

    def __init__(self, detection_threshold: float = db_to_linear(3.0)) -> None:
        self.detection_threshold = detection_threshold

    def compute_probability_of_detection(self, signal_to_noise: float) -> float:
        return 0.0 if signal_to_noise < self.detection_threshold else 1.0


# =============================================================================
# THRESHOLD INVERSION
# =============================================================================


def clamp_required_pd(required_pd: float) -> float:
    """Invalid values become 0.5; valid ones are clamped to [0.002, 0.998]."""
    if required_pd <= 0.0 or required_pd > 1.0:
        required_pd = DEFAULT_REQUIRED_PD
    return min(max(required_pd, MIN_REQUIRED_PD), MAX_REQUIRED_PD)


def solve_detection_threshold(pd_function: Callable[[float], float], required_pd: float) -> float:
    """
    Linear SNR at which pd_function reaches the required Pd.

    Bisection over [0, 1000] until the interval or the Pd error is below
    0.001.
    """
    required_pd = clamp_required_pd(required_pd)
    lo = 0.0
    hi = MAX_THRESHOLD_SNR
    threshold = 0.0
    while abs(hi - lo) > THRESHOLD_TOLERANCE:
        threshold = 0.5 * (lo + hi)
        pd = pd_function(threshold)
        if abs(pd - required_pd) < THRESHOLD_TOLERANCE:
            break
        if pd < required_pd:
            lo = threshold
        else:
            hi = threshold
    logger.debug("Detection threshold for Pd=%.3f: %.4f dB", required_pd, linear_to_db(max(threshold, 1.0e-30)))
    return threshold


def detector_from_input(value: Any):
    """
    Build a detector from configuration.

    Accepts 'binary', a dict with 'type: marcum_swerling' plus keywords, or a
    dict/list defining a detection_probability table.
    """
    if isinstance(value, str):
        if value == BinaryDetector.detector_type:
            return BinaryDetector()
        if value == MarcumSwerlingDetector.detector_type:
            return MarcumSwerlingDetector()
        raise ConfigurationError(f"unknown detector '{value}'", "detector")
    if isinstance(value, list):
        table = DetectionProbabilityTable()
        table.process_input("detection_probability", value)
        return table
    if isinstance(value, dict):
        detector_type = value.get("type", MarcumSwerlingDetector.detector_type)
        if detector_type == DetectionProbabilityTable.detector_type:
            table = DetectionProbabilityTable()
            table.process_input("detection_probability", value["table"])
            return table
        if detector_type == BinaryDetector.detector_type:
            return BinaryDetector(float(value.get("detection_threshold", db_to_linear(3.0))))
        if detector_type != MarcumSwerlingDetector.detector_type:
            raise ConfigurationError(f"unknown detector '{detector_type}'", "detector")
        detector = MarcumSwerlingDetector()
        for key, item in value.items():
            if key == "type":
                continue
            if not detector.process_input(key, item):
                raise ConfigurationError(f"unknown detector keyword '{key}'", "detector")
        return detector
    raise ConfigurationError(f"expected a detector definition, got {type(value).__name__}", "detector")
