"""
Report event consumer.

Decides what happens to every queue message:

* malformed or unknown events are dropped (nack, no requeue)
* events whose ``notBefore`` lies in the future are requeued untouched
* due events are fanned out; a failed subscriber lookup requeues the
  whole message, a completed fan-out acknowledges it even when single
  subscribers failed, since those already have their own retry events
* any other error drops the message so it cannot loop forever
"""

from enum import Enum
from typing import Union

import structlog
from aio_pika.abc import AbstractIncomingMessage

from .context import WorkerContext
from .delivery.fanout import Verdict
from .errors import EventDecodeError
from .events.codec import decode_event

logger = structlog.get_logger(__name__)


class Disposition(str, Enum):
    """What to tell the broker about a message."""

    ACK = "ack"
    REQUEUE = "requeue"
    DROP = "drop"


class ReportConsumer:
    """Turns queue messages into fan-outs and broker acknowledgements."""

    def __init__(self, context: WorkerContext):
        self.context = context

    async def handle(self, body: Union[bytes, str]) -> Disposition:
        """
        Process one raw message body.

        Args:
            body: Encoded event

        Returns:
            Disposition for the message
        """
        try:
            event = decode_event(body)
        except EventDecodeError as e:
            logger.error("Dropping malformed event", error=e.message)
            return Disposition.DROP

        report_id = event.data.report.id

        if not event.is_due(self.context.clock()):
            logger.debug(
                "Event not yet due, requeueing",
                report_id=report_id,
                not_before=event.not_before.isoformat(),
            )
            return Disposition.REQUEUE

        logger.info(
            "Processing event",
            event_type=event.type.value,
            report_id=report_id,
            subscription_id=event.data.subscription_id,
            attempt=event.data.attempt,
        )

        try:
            result = await self.context.fan_out.fan_out(
                event.action,
                event.data.report,
                old_report=event.data.old_report,
                subscription_id=event.data.subscription_id,
                attempt=event.data.attempt,
            )
        except Exception as e:
            logger.error(
                "Event processing failed, dropping message",
                report_id=report_id,
                error=str(e),
                exc_info=True,
            )
            return Disposition.DROP

        if result.verdict == Verdict.ABORT:
            logger.warning("Subscriber lookup failed, requeueing event", report_id=report_id)
            return Disposition.REQUEUE

        return Disposition.ACK

    async def on_message(self, message: AbstractIncomingMessage) -> None:
        """aio-pika consumer callback."""
        try:
            disposition = await self.handle(message.body)
        except Exception as e:
            logger.error("Unhandled error, dropping message", error=str(e), exc_info=True)
            disposition = Disposition.DROP

        if disposition == Disposition.ACK:
            await message.ack()
        elif disposition == Disposition.REQUEUE:
            await message.nack(requeue=True)
        else:
            await message.reject(requeue=False)
