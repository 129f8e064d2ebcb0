"""
Sensors Package

Radar detection policy layered on the interaction engine.

Modules:
    - detection: Marcum-Swerling, Pd table and binary detectors
    - radar_beam: One transmit/receive beam and its sensor result
    - radar_mode: Beams, M-of-N, measurement errors, frequency agility
"""

from .detection import (
    BinaryDetector,
    DetectionProbabilityTable,
    MarcumSwerlingDetector,
    solve_detection_threshold,
    swerling_pd,
)
from .radar_beam import Measurement, RadarBeam, SensorResult
from .radar_mode import RadarMode

__all__ = [
    "MarcumSwerlingDetector",
    "DetectionProbabilityTable",
    "BinaryDetector",
    "swerling_pd",
    "solve_detection_threshold",
    "Measurement",
    "SensorResult",
    "RadarBeam",
    "RadarMode",
]
