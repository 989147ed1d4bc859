"""Artifact generators for trackscan"""

from artifacts.generators.events import EventsGenerator
from artifacts.generators.tracking_calls import TrackingCallsGenerator

__all__ = [
    "EventsGenerator",
    "TrackingCallsGenerator",
]
