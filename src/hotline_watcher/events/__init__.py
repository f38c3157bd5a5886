"""
Report events and the models they carry.
"""

from .codec import decode_event, dumps, encode_event, loads
from .models import (
    Action,
    Category,
    Consumer,
    Event,
    EventPayload,
    EventType,
    Report,
    Subscription,
    Tag,
    User,
)

__all__ = [
    "Action",
    "Category",
    "Consumer",
    "Event",
    "EventPayload",
    "EventType",
    "Report",
    "Subscription",
    "Tag",
    "User",
    "decode_event",
    "encode_event",
    "dumps",
    "loads",
]
