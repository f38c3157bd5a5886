"""
Worker context.

Everything a message handler needs is built once at startup and handed
down explicitly: the shared HTTP session, the queue channel, the
directory client, the transport, the retry scheduler and the fan-out
engine.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import aiohttp
import structlog

from .client.directory import DirectoryClient
from .config.secrets import QueueSecrets
from .config.settings import Config
from .delivery.fanout import FanOutEngine
from .delivery.retry import RetryScheduler
from .delivery.transport import DeliveryTransport
from .queue.channel import Publisher

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class WorkerContext:
    """Collaborators shared by every in-flight message."""

    config: Config
    publisher: Publisher
    session: aiohttp.ClientSession
    directory: DirectoryClient
    transport: DeliveryTransport
    retry_scheduler: RetryScheduler
    fan_out: FanOutEngine
    clock: Callable[[], datetime] = _utcnow

    @classmethod
    def create(
        cls,
        config: Config,
        secrets: QueueSecrets,
        publisher: Publisher,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> "WorkerContext":
        """
        Wire the worker's collaborators together.

        Must be called with a running event loop when no session is given.
        """
        if session is None:
            session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=100, ttl_dns_cache=300),
                headers={"User-Agent": "Hotline-Watcher/1.0"},
            )

        directory = DirectoryClient(
            session,
            api_url=config.directory.api_url,
            api_key=secrets.api_key,
            fallback_tag_id=config.directory.fallback_tag_id,
            timeout_seconds=config.directory.timeout_seconds,
        )
        transport = DeliveryTransport(
            session,
            webhook_username=config.delivery.webhook_username,
            webhook_avatar_url=config.delivery.webhook_avatar_url,
            timeout_seconds=config.delivery.timeout_seconds,
            clock=clock,
        )
        retry_scheduler = RetryScheduler(
            publisher,
            routing_key=config.queue.routing_key,
            delay_seconds=config.delivery.retry_delay_seconds,
            max_attempts=config.delivery.max_attempts,
            clock=clock,
        )
        fan_out = FanOutEngine(
            directory,
            transport,
            retry_scheduler,
            max_concurrent_deliveries=config.delivery.max_concurrent_deliveries,
        )

        return cls(
            config=config,
            publisher=publisher,
            session=session,
            directory=directory,
            transport=transport,
            retry_scheduler=retry_scheduler,
            fan_out=fan_out,
            clock=clock,
        )

    async def close(self) -> None:
        """Release the HTTP session."""
        if not self.session.closed:
            await self.session.close()
