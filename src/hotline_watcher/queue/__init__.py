"""Message broker access."""

from .channel import Publisher, QueueChannel

__all__ = ["Publisher", "QueueChannel"]
