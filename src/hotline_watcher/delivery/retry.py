"""
Delayed retry scheduling.

A failed delivery becomes a new queue event aimed at the single
subscriber that failed. The event carries a ``notBefore`` timestamp and
the consumer keeps requeueing it until that instant has passed.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from ..events.codec import encode_event
from ..events.models import Action, EntityId, Event, EventPayload, Report
from ..queue.channel import Publisher

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetryScheduler:
    """Publishes per-subscriber retry events back onto the report queue."""

    def __init__(
        self,
        publisher: Publisher,
        routing_key: str = "report",
        delay_seconds: float = 300.0,
        max_attempts: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize retry scheduler.

        Args:
            publisher: Queue publisher shared with the consumer
            routing_key: Routing key retries are published with
            delay_seconds: Delay before a retry becomes due
            max_attempts: Highest attempt number that is still published,
                None for no ceiling
            clock: Source of the current time
        """
        self._publisher = publisher
        self.routing_key = routing_key
        self.delay = timedelta(seconds=delay_seconds)
        self.max_attempts = max_attempts
        self._clock = clock

    async def schedule_retry(
        self,
        action: Action,
        report: Report,
        old_report: Optional[Report],
        subscription_id: EntityId,
        attempt: int,
    ) -> Optional[Event]:
        """
        Publish a delayed retry for one subscriber.

        Args:
            action: Action of the failed delivery
            report: Report to redeliver
            old_report: Previous report, if any
            subscription_id: Subscriber to redeliver to
            attempt: Attempt number of the retry (already incremented)

        Returns:
            The published event, or None if the retry ceiling was reached
        """
        if self.max_attempts is not None and attempt > self.max_attempts:
            logger.error(
                "Delivery abandoned after reaching retry ceiling",
                report_id=report.id,
                subscription_id=subscription_id,
                attempt=attempt,
                max_attempts=self.max_attempts,
            )
            return None

        event = Event(
            type=action.event_type,
            data=EventPayload(
                report=report,
                old_report=old_report,
                subscription_id=subscription_id,
                attempt=attempt,
            ),
            not_before=self._clock() + self.delay,
        )

        await self._publisher.publish(encode_event(event), routing_key=self.routing_key)

        logger.info(
            "Scheduled delivery retry",
            report_id=report.id,
            subscription_id=subscription_id,
            attempt=attempt,
            not_before=event.not_before.isoformat(),
        )
        return event
