"""
Selection services.

Event-level cuts applied before any accumulation.
"""

from .event_selector import EventSelector, SelectionDecision

__all__ = [
    "EventSelector",
    "SelectionDecision",
]
