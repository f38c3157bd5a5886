"""
Report fan-out.

Delivers one report event to every interested subscriber and turns each
individual failure into its own delayed retry, so a broken endpoint
never blocks or cancels delivery to the others.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import structlog

from ..client.directory import DirectoryClient
from ..errors import DirectoryError
from ..events.models import Action, EntityId, Report, Subscription
from .retry import RetryScheduler
from .transport import DeliveryTransport

logger = structlog.get_logger(__name__)


class Verdict(str, Enum):
    """Outcome of a fan-out for the event as a whole."""

    ABORT = "abort"
    COMPLETED = "completed"


class DeliveryStatus(str, Enum):
    """Outcome for a single subscriber."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeliveryOutcome:
    """Record of one subscriber delivery."""

    subscription_id: EntityId
    status: DeliveryStatus
    status_code: Optional[int] = None
    expected_status: Optional[int] = None
    error: Optional[str] = None
    retry_scheduled: bool = False
    response_time_ms: float = 0.0
    # Raised while handling this subscriber; re-raised once all are attempted
    exception: Optional[Exception] = field(default=None, repr=False, compare=False)


@dataclass
class FanOutResult:
    """Verdict plus per-subscriber outcomes, in resolver order."""

    verdict: Verdict
    outcomes: List[DeliveryOutcome] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == DeliveryStatus.FAILED)


class FanOutEngine:
    """
    Drives delivery of one report to its subscribers.

    Subscribers are handled one at a time by default. With
    ``max_concurrent_deliveries > 1`` they run through a bounded pool;
    outcomes keep resolver order either way.
    """

    def __init__(
        self,
        directory: DirectoryClient,
        transport: DeliveryTransport,
        retry_scheduler: RetryScheduler,
        max_concurrent_deliveries: int = 1,
    ):
        self.directory = directory
        self.transport = transport
        self.retry_scheduler = retry_scheduler
        self.max_concurrent_deliveries = max_concurrent_deliveries

    async def fan_out(
        self,
        action: Action,
        report: Report,
        old_report: Optional[Report] = None,
        subscription_id: Optional[EntityId] = None,
        attempt: int = 0,
    ) -> FanOutResult:
        """
        Deliver a report to its subscribers.

        Args:
            action: Change being announced
            report: Current report
            old_report: Report before the change, if any
            subscription_id: Only deliver to this subscriber (retries)
            attempt: Attempt number of this delivery

        Returns:
            ABORT if subscribers could not be resolved, otherwise COMPLETED
            with one outcome per subscriber

        Raises:
            Exception: The first error raised while handling a subscriber
                (e.g. publishing its retry), after every subscriber has
                been attempted
        """
        try:
            subscriptions = await self.directory.resolve(report, subscription_id)
        except DirectoryError as e:
            logger.warning(
                "Subscription lookup failed",
                report_id=report.id,
                subscription_id=subscription_id,
                status_code=e.status_code,
                error=e.message,
            )
            return FanOutResult(verdict=Verdict.ABORT)

        if self.max_concurrent_deliveries > 1 and len(subscriptions) > 1:
            semaphore = asyncio.Semaphore(self.max_concurrent_deliveries)

            async def bounded(subscription: Subscription) -> DeliveryOutcome:
                async with semaphore:
                    return await self._deliver_one(
                        action, report, old_report, subscription, attempt
                    )

            results = await asyncio.gather(
                *(bounded(sub) for sub in subscriptions), return_exceptions=True
            )
        else:
            results = []
            for subscription in subscriptions:
                try:
                    results.append(
                        await self._deliver_one(action, report, old_report, subscription, attempt)
                    )
                except Exception as e:
                    results.append(e)

        outcomes = [
            self._as_outcome(subscription, item)
            for subscription, item in zip(subscriptions, results)
        ]
        result = FanOutResult(verdict=Verdict.COMPLETED, outcomes=outcomes)
        logger.info(
            "Report fan-out completed",
            report_id=report.id,
            action=action.value,
            attempt=attempt,
            subscribers=len(outcomes),
            failed=result.failed_count,
        )

        errors = [outcome.exception for outcome in outcomes if outcome.exception is not None]
        if errors:
            logger.error(
                "Errors during report fan-out",
                report_id=report.id,
                action=action.value,
                errors=len(errors),
            )
            raise errors[0]
        return result

    @staticmethod
    def _as_outcome(subscription: Subscription, item: object) -> DeliveryOutcome:
        if isinstance(item, DeliveryOutcome):
            return item
        if not isinstance(item, Exception):
            # CancelledError and other BaseExceptions are not ours to absorb
            raise item
        logger.error(
            "Delivery raised unexpectedly",
            subscription_id=subscription.id,
            error=str(item),
            exc_info=item,
        )
        return DeliveryOutcome(
            subscription_id=subscription.id,
            status=DeliveryStatus.FAILED,
            error=str(item),
            exception=item,
        )

    async def _deliver_one(
        self,
        action: Action,
        report: Report,
        old_report: Optional[Report],
        subscription: Subscription,
        attempt: int,
    ) -> DeliveryOutcome:
        if not subscription.accepts(action):
            logger.debug(
                "Skipping webhook subscriber for deletion",
                report_id=report.id,
                subscription_id=subscription.id,
            )
            return DeliveryOutcome(subscription_id=subscription.id, status=DeliveryStatus.SKIPPED)

        response = await self.transport.deliver(subscription, report, old_report, action)
        expected = subscription.expected_status

        if response.matches(expected):
            logger.info(
                "Subscription posted successfully",
                report_id=report.id,
                subscription_id=subscription.id,
                status_code=response.status_code,
                response_time_ms=response.response_time_ms,
            )
            return DeliveryOutcome(
                subscription_id=subscription.id,
                status=DeliveryStatus.SUCCESS,
                status_code=response.status_code,
                expected_status=expected,
                response_time_ms=response.response_time_ms,
            )

        logger.warning(
            "Subscription did not respond as expected",
            report_id=report.id,
            subscription_id=subscription.id,
            attempt=attempt,
            status_code=response.status_code,
            expected_status=expected,
            error=response.error,
            response_time_ms=response.response_time_ms,
        )
        outcome = DeliveryOutcome(
            subscription_id=subscription.id,
            status=DeliveryStatus.FAILED,
            status_code=response.status_code,
            expected_status=expected,
            error=response.error,
            response_time_ms=response.response_time_ms,
        )

        try:
            retry = await self.retry_scheduler.schedule_retry(
                action, report, old_report, subscription.id, attempt + 1
            )
        except Exception as e:
            logger.error(
                "Failed to schedule retry",
                report_id=report.id,
                subscription_id=subscription.id,
                attempt=attempt + 1,
                error=str(e),
            )
            outcome.exception = e
            return outcome

        outcome.retry_scheduled = retry is not None
        return outcome
