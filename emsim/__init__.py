"""
emsim - RF Electromagnetic Interaction Engine

Computes whether a radio-frequency signal from a transmitter, optionally
reflected by a target, can be detected by a receiver:
- Antenna gain patterns and electronic beam steering
- Atmospheric attenuation (simple, Blake, ITU-R P.676, tabular)
- Pattern-propagation factor (fast multipath, ALARM, ground wave)
- Surface clutter and receiver noise
- Radar detection (Marcum-Swerling, Pd tables, M-of-N)
"""

from emsim.components import Rcvr, Xmtr
from emsim.em.interaction import Interaction
from emsim.em.manager import EMManager
from emsim.errors import ConfigurationError, EMSimError, ProgrammingError
from emsim.sensors import RadarBeam, RadarMode
from emsim.simulation import ArticulatedPart, Environment, Platform
from emsim.simulation.simulation import Simulation

__version__ = "1.0.0"

__all__ = [
    "Xmtr",
    "Rcvr",
    "Interaction",
    "EMManager",
    "RadarBeam",
    "RadarMode",
    "Environment",
    "Platform",
    "ArticulatedPart",
    "Simulation",
    "EMSimError",
    "ConfigurationError",
    "ProgrammingError",
]
