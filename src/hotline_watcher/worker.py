"""
Hotline report watcher worker.

Connects to the broker, wires the delivery components into a
``WorkerContext`` and consumes report events until asked to stop.
"""

import asyncio
import signal
import sys
from typing import Optional

import structlog

from .config.secrets import QueueSecrets, load_secrets
from .config.settings import Config
from .consumer import ReportConsumer
from .context import WorkerContext
from .queue.channel import QueueChannel

logger = structlog.get_logger(__name__)


class ReportWorker:
    """
    Long-running report delivery worker.

    Owns the queue channel and the worker context and ties their
    lifecycle to process signals.
    """

    def __init__(self, config: Config, secrets: Optional[QueueSecrets] = None):
        """
        Initialize the worker.

        Args:
            config: Worker configuration
            secrets: Queue secrets; loaded from the configured source if omitted
        """
        self.config = config
        self._secrets = secrets
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.channel: Optional[QueueChannel] = None
        self.context: Optional[WorkerContext] = None
        self.consumer: Optional[ReportConsumer] = None

    async def start(self) -> None:
        """Connect to the broker and start consuming."""
        if self._running:
            return

        logger.info("Starting Hotline report watcher")

        try:
            if self._secrets is None:
                self._secrets = load_secrets(self.config)

            self.channel = QueueChannel(self.config.queue, self._secrets)
            await self.channel.connect()

            self.context = WorkerContext.create(self.config, self._secrets, self.channel)
            self.consumer = ReportConsumer(self.context)

            await self.channel.consume(self.consumer.on_message)
            self._running = True

            logger.info(
                "Worker started successfully",
                queue=self.config.queue.queue,
                prefetch_count=self.config.queue.prefetch_count,
                retry_delay_seconds=self.config.delivery.retry_delay_seconds,
                max_attempts=self.config.delivery.max_attempts,
            )

        except Exception as e:
            logger.error("Failed to start worker", error=str(e), exc_info=True)
            await self._release()
            raise

    async def stop(self) -> None:
        """Stop consuming and release connections."""
        if not self._running:
            return

        logger.info("Stopping Hotline report watcher")

        self._running = False
        self._shutdown_event.set()
        await self._release()

        logger.info("Worker stopped")

    async def _release(self) -> None:
        if self.channel is not None:
            await self.channel.close()
            self.channel = None

        if self.context is not None:
            await self.context.close()
            self.context = None

    async def run(self) -> None:
        """Run until SIGINT/SIGTERM."""
        try:
            await self.start()
            self._setup_signal_handlers()

            try:
                await self._shutdown_event.wait()
            except asyncio.CancelledError:
                logger.info("Worker operation cancelled")

        finally:
            await self.stop()

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            return

        loop = asyncio.get_running_loop()

        def signal_handler(signum: int) -> None:
            logger.info("Received signal, initiating shutdown", signal=signum)
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, signal_handler, signum)

    @property
    def running(self) -> bool:
        """Check if worker is running."""
        return self._running
