"""
AMQP channel wrapper.

Owns the broker connection, declares the report exchange and queue,
and exposes the two operations the worker needs: publish and consume.
"""

from typing import Awaitable, Callable, Optional, Protocol

import aio_pika
import structlog
from aio_pika.abc import (
    AbstractExchange,
    AbstractIncomingMessage,
    AbstractQueue,
    AbstractRobustChannel,
    AbstractRobustConnection,
)
from aio_pika.exceptions import AMQPError

from ..config.secrets import QueueSecrets
from ..config.settings import QueueConfig

logger = structlog.get_logger(__name__)

MessageCallback = Callable[[AbstractIncomingMessage], Awaitable[None]]


class Publisher(Protocol):
    """Anything that can put an encoded event on the report exchange."""

    async def publish(self, body: bytes, routing_key: str) -> None: ...


class QueueChannel:
    """
    Robust AMQP connection shared by the consumer and the retry scheduler.

    aio-pika channels are safe to use from concurrent tasks, so one
    channel serves every in-flight message.
    """

    def __init__(self, config: QueueConfig, secrets: QueueSecrets):
        self.config = config
        self._secrets = secrets
        self._connection: Optional[AbstractRobustConnection] = None
        self._channel: Optional[AbstractRobustChannel] = None
        self._exchange: Optional[AbstractExchange] = None
        self._queue: Optional[AbstractQueue] = None
        self._consumer_tag: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self) -> None:
        """Connect to the broker and prepare the exchange and queue."""
        if self.connected:
            return

        self._connection = await aio_pika.connect_robust(
            host=self._secrets.host,
            port=self._secrets.port,
            login=self._secrets.username,
            password=self._secrets.password,
            virtualhost=self.config.vhost,
        )
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=self.config.prefetch_count)

        if self.config.declare_topology:
            self._exchange = await self._channel.declare_exchange(
                self.config.exchange, aio_pika.ExchangeType.DIRECT, durable=True
            )
            self._queue = await self._channel.declare_queue(self.config.queue, durable=True)
            await self._queue.bind(self._exchange, routing_key=self.config.routing_key)
        else:
            self._exchange = await self._channel.get_exchange(self.config.exchange)
            self._queue = await self._channel.get_queue(self.config.queue)

        logger.info(
            "Connected to message broker",
            host=self._secrets.host,
            vhost=self.config.vhost,
            queue=self.config.queue,
            prefetch_count=self.config.prefetch_count,
        )

    async def publish(self, body: bytes, routing_key: str) -> None:
        """Publish a persistent JSON message to the report exchange."""
        if self._exchange is None:
            raise RuntimeError("Queue channel is not connected")

        message = aio_pika.Message(
            body=body,
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
        )
        await self._exchange.publish(message, routing_key=routing_key)

    async def consume(self, callback: MessageCallback) -> None:
        """Start delivering queue messages to ``callback`` with manual acks."""
        if self._queue is None:
            raise RuntimeError("Queue channel is not connected")

        self._consumer_tag = await self._queue.consume(callback, no_ack=False)
        logger.info("Consuming messages", queue=self.config.queue)

    async def close(self) -> None:
        """Stop consuming and close the connection."""
        if self._queue is not None and self._consumer_tag is not None:
            try:
                await self._queue.cancel(self._consumer_tag)
            except AMQPError as e:
                logger.warning("Error cancelling consumer", error=str(e))
            self._consumer_tag = None

        if self._connection is not None:
            await self._connection.close()
            logger.info("Disconnected from message broker")

        self._connection = None
        self._channel = None
        self._exchange = None
        self._queue = None
