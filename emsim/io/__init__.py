"""
I/O Package

Scenario loading and antenna pattern plotting.
"""

from .pattern_plot import AntennaPlot, load_pattern_file
from .scenario_loader import ScenarioConfig, ScenarioLoader, load_scenario

__all__ = [
    "ScenarioLoader",
    "ScenarioConfig",
    "load_scenario",
    "AntennaPlot",
    "load_pattern_file",
]
