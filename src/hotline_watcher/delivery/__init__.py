"""
Subscriber delivery: formatting, transports, fan-out and retries.
"""

from .fanout import DeliveryOutcome, DeliveryStatus, FanOutEngine, FanOutResult, Verdict
from .formatter import Embed, format_report, relative_time
from .retry import RetryScheduler
from .transport import DeliveryResponse, DeliveryTransport

__all__ = [
    "DeliveryOutcome",
    "DeliveryResponse",
    "DeliveryStatus",
    "DeliveryTransport",
    "Embed",
    "FanOutEngine",
    "FanOutResult",
    "RetryScheduler",
    "Verdict",
    "format_report",
    "relative_time",
]
