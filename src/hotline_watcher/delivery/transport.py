"""
Subscriber delivery transport.

Sends one report to one subscriber, either as a chat webhook push or as
a generic JSON callback, and reduces the outcome to a status code. The
transport never retries; retry policy belongs to the fan-out engine.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import aiohttp
import structlog

from ..events.codec import dumps
from ..events.models import Action, Report, Subscription
from .formatter import format_report

logger = structlog.get_logger(__name__)


@dataclass
class DeliveryResponse:
    """Normalized result of a single delivery call."""

    status_code: Optional[int] = None
    error: Optional[str] = None
    response_time_ms: float = 0.0

    def matches(self, expected_status: int) -> bool:
        """Whether the subscriber answered with its expected status."""
        return self.status_code is not None and self.status_code == expected_status


class DeliveryTransport:
    """
    Delivers formatted reports to subscriber endpoints.

    Webhook subscribers receive ``{username, avatar_url, embeds}``;
    everyone else receives ``{embed, report, oldReport?, action}`` with
    the structured fields encoded by the cycle-safe codec.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        webhook_username: str = "Watcher",
        webhook_avatar_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        clock: Optional[Callable[[], Any]] = None,
    ):
        """
        Initialize delivery transport.

        Args:
            session: Shared HTTP session
            webhook_username: Display name used for webhook pushes
            webhook_avatar_url: Avatar used for webhook pushes
            timeout_seconds: HTTP request timeout
            clock: Clock passed to the formatter for relative times
        """
        self._session = session
        self.webhook_username = webhook_username
        self.webhook_avatar_url = webhook_avatar_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._clock = clock

    async def deliver(
        self,
        subscription: Subscription,
        report: Report,
        old_report: Optional[Report],
        action: Action,
    ) -> DeliveryResponse:
        """
        Deliver a report to one subscriber.

        Args:
            subscription: Target subscriber
            report: Current report
            old_report: Report before the change, if any
            action: Change that triggered delivery

        Returns:
            Response carrying the status code, or an error without one
        """
        if subscription.discord_webhook:
            payload = self._webhook_payload(report)
        else:
            payload = self._generic_payload(report, old_report, action)

        return await self._post(subscription, payload)

    def _webhook_payload(self, report: Report) -> Dict[str, Any]:
        embed = format_report(report, webhook=True, now=self._clock)
        return {
            "username": self.webhook_username,
            "avatar_url": self.webhook_avatar_url,
            "embeds": [embed.to_dict()],
        }

    def _generic_payload(
        self, report: Report, old_report: Optional[Report], action: Action
    ) -> Dict[str, Any]:
        embed = format_report(report, webhook=True, now=self._clock)
        payload: Dict[str, Any] = {
            "embed": dumps(embed.to_dict()),
            "report": dumps(report.to_dict()),
        }
        if old_report is not None:
            payload["oldReport"] = dumps(old_report.to_dict())
        payload["action"] = action.value
        return payload

    async def _post(self, subscription: Subscription, payload: Dict[str, Any]) -> DeliveryResponse:
        start_time = time.time()

        try:
            async with self._session.post(
                subscription.url, json=payload, timeout=self._timeout
            ) as response:
                await response.read()
                return DeliveryResponse(
                    status_code=response.status,
                    response_time_ms=(time.time() - start_time) * 1000,
                )

        except asyncio.TimeoutError:
            logger.warning(
                "Delivery timed out",
                subscription_id=subscription.id,
                timeout_seconds=self._timeout.total,
            )
            return DeliveryResponse(
                error="Request timeout", response_time_ms=(time.time() - start_time) * 1000
            )

        except (aiohttp.ClientError, ValueError) as e:
            status_code = e.status if isinstance(e, aiohttp.ClientResponseError) else None
            logger.warning(
                "Delivery request failed",
                subscription_id=subscription.id,
                status_code=status_code,
                error=str(e),
            )
            return DeliveryResponse(
                status_code=status_code,
                error=str(e),
                response_time_ms=(time.time() - start_time) * 1000,
            )
