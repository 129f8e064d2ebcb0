"""
EM Package

Interaction engine and the physical effect models it composes.

Importing the package registers every attenuation ('none', 'simple',
'blake', 'itu', 'tabular'), propagation ('none', 'fast_multipath', 'alarm',
'ground_wave') and clutter ('none', 'surface_clutter_table') model type.
The interaction and the EM manager are imported from their modules.

Modules:
    - types: Enumerations and the interaction status bits
    - attenuation, blake, itu_attenuation, tabular_attenuation
    - propagation, fast_multipath, alarm_propagation, ground_wave
    - clutter: Surface clutter
    - interaction: Xmtr/target/rcvr interaction orchestrator
    - manager: Registry of active transmitters and receivers
"""

from .types import Geometry, Polarization, RcvrFunction, Status, XmtrFunction
from .attenuation import AttenuationModel, create_attenuation_model
from .blake import BlakeAttenuation
from .itu_attenuation import ItuAttenuation
from .tabular_attenuation import TabularAttenuation
from .propagation import PropagationModel, create_propagation_model
from .fast_multipath import FastMultipath
from .alarm_propagation import AlarmPropagation
from .ground_wave import GroundWavePropagation
from .clutter import ClutterModel, create_clutter_model

__all__ = [
    # Types
    "Geometry",
    "Polarization",
    "RcvrFunction",
    "XmtrFunction",
    "Status",
    # Attenuation
    "AttenuationModel",
    "create_attenuation_model",
    "BlakeAttenuation",
    "ItuAttenuation",
    "TabularAttenuation",
    # Propagation
    "PropagationModel",
    "create_propagation_model",
    "FastMultipath",
    "AlarmPropagation",
    "GroundWavePropagation",
    # Clutter
    "ClutterModel",
    "create_clutter_model",
]
