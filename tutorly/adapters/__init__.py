"""Adapters package - bridge between the conversation engine and UI frontends."""
from __future__ import annotations

__all__ = [
    "EventBus",
    "TutorBridge",
    "TutorEvent",
    "dict_to_event",
    "event_to_dict",
]

from tutorly.adapters.event_bus import EventBus
from tutorly.adapters.events import TutorEvent, dict_to_event, event_to_dict
from tutorly.adapters.tutor_bridge import TutorBridge
