"""
Components Package

Antennas, antenna patterns, transmitters and receivers.

Importing the package registers every antenna pattern type
('uniform', 'sinc', 'gaussian', 'cosecant_squared', 'tabular',
'alarm_pattern', 'esa_pattern').
"""

from .alarm_pattern import AlarmAntennaPattern
from .antenna import Antenna
from .antenna_pattern import AntennaPattern, antenna_pattern_types, create_antenna_pattern
from .esa_pattern import EsaPattern
from .field_of_view import PolygonalFieldOfView, RectangularFieldOfView
from .rcvr import Rcvr
from .xmtr import Xmtr

__all__ = [
    "Antenna",
    "AntennaPattern",
    "AlarmAntennaPattern",
    "EsaPattern",
    "create_antenna_pattern",
    "antenna_pattern_types",
    "RectangularFieldOfView",
    "PolygonalFieldOfView",
    "Xmtr",
    "Rcvr",
]
