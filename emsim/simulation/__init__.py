"""
Simulation Package

Environment, platforms and event scheduling. The time-stepping driver is
in emsim.simulation.simulation.
"""

from .environment import Environment, LandCover, LandForm
from .events import Event, EventQueue, InteractionLineObserver
from .platform import ArticulatedPart, Platform

__all__ = [
    "Environment",
    "LandForm",
    "LandCover",
    "Platform",
    "ArticulatedPart",
    "Event",
    "EventQueue",
    "InteractionLineObserver",
]
