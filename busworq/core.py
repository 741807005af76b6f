import asyncio
import functools
import logging
from typing import Dict, List, Optional

from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict

from . import app_insights
from .actions import execute_action, get_registered_action
from .log_config import get_uvicorn_log_config, setup_logging
from .messaging import MessageReceiver
from .schemas import ReceiverCreate, ReceiverStatus, Settings

logger = logging.getLogger(__name__)


class Worker(BaseModel):
    """
    Runs a set of message receivers, each bound to a registered action.

    The worker connects every configured receiver on start and keeps running
    until stopped or until a receiver fails. A receiver failure is not
    retried: the worker closes all connections and re-raises the error, so
    the process supervisor decides what happens next. An optional FastAPI
    status service reports receiver health.

    Example:
        With context manager:
        ```python
        settings = Settings(api_on=True)
        receivers = [
            ReceiverCreate(config=MessageConfig.from_env("orders"), action="store_order"),
        ]

        async with Worker(settings=settings, receivers=receivers) as worker:
            await worker.wait()
        ```

        Direct usage:
        ```python
        await Worker(settings=settings, receivers=receivers).run()
        ```

    Attributes:
        settings (Settings): Worker configuration
        receivers (List[ReceiverCreate]): Receivers to connect on start
    """

    settings: Settings
    receivers: List[ReceiverCreate] = []

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __init__(self, **data):
        super().__init__(**data)
        self._running: bool = False
        self._connections: Dict[str, MessageReceiver] = {}
        self._api_task: Optional[asyncio.Task] = None
        self._api: Optional[FastAPI] = None
        setup_logging(self.settings.log_path, self.settings.debug)

    async def _init_api(self) -> FastAPI:
        """Initialize and configure FastAPI instance."""
        from .api import create_api

        return create_api(self)

    async def _start_api_server(self) -> None:
        """Start the status API server if enabled in settings."""
        if not self.settings.api_on:
            logger.debug("API server disabled")
            return

        import uvicorn

        self._api = await self._init_api()
        config = uvicorn.Config(
            self._api,
            host=self.settings.api_host,
            port=self.settings.api_port,
            log_config=get_uvicorn_log_config(),
            log_level="debug" if self.settings.debug else "info",
        )
        server = uvicorn.Server(config)
        self._api_task = asyncio.create_task(server.serve())
        logger.info(
            "API server started at http://%s:%d",
            self.settings.api_host,
            self.settings.api_port,
        )

    async def _connect_receiver(self, receiver_create: ReceiverCreate) -> None:
        action = get_registered_action(receiver_create.action)
        receiver = MessageReceiver(
            receiver_create.config,
            functools.partial(execute_action, action.name),
        )
        if receiver.connection_name in self._connections:
            raise ValueError(f"Duplicate receiver '{receiver.connection_name}'")

        await receiver.connect()
        self._connections[receiver.connection_name] = receiver
        logger.info(
            "Receiver %s bound to action '%s'",
            receiver.connection_name,
            action.name,
        )

    async def start(self) -> None:
        """Start telemetry, all receivers and the optional API server."""
        if self._running:
            return

        app_insights.setup(self.settings)

        try:
            for receiver_create in self.receivers:
                await self._connect_receiver(receiver_create)
        except Exception:
            await self._close_receivers()
            app_insights.shutdown()
            raise

        if self.settings.api_on:
            await self._start_api_server()

        self._running = True
        logger.info("Worker started with %d receiver(s)", len(self._connections))

    async def _close_receivers(self) -> None:
        for name, receiver in list(self._connections.items()):
            try:
                await receiver.close_connection()
            except Exception as e:
                logger.error("Error closing %s: %s", name, str(e), exc_info=True)
        self._connections.clear()

    async def stop(self) -> None:
        """Close all receivers, stop the API server and flush telemetry."""
        if not self._running:
            return

        self._running = False
        await self._close_receivers()

        if self._api_task:
            self._api_task.cancel()
            try:
                await self._api_task
            except asyncio.CancelledError:
                pass
            self._api_task = None

        app_insights.shutdown()
        logger.info("Worker stopped")

    async def wait(self) -> None:
        """
        Wait until every receiver has stopped.

        The first receiver error is re-raised as soon as it happens.
        """
        tasks = [
            asyncio.create_task(receiver.wait(), name=name)
            for name, receiver in self._connections.items()
        ]
        if not tasks:
            return

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                if task.exception() is not None:
                    logger.error("Receiver %s failed", task.get_name())
                    raise task.exception()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def run(self) -> None:
        """
        Start the worker and run until all receivers stop or one fails.

        Example:
            ```python
            asyncio.run(Worker(settings=settings, receivers=receivers).run())
            ```
        """
        await self.start()
        try:
            await self.wait()
        except KeyboardInterrupt:
            logger.info("Shutdown initiated...")
        except asyncio.CancelledError:
            logger.info("Shutdown initiated...")
            raise
        finally:
            await self.stop()

    def run_sync(self) -> None:
        """Synchronous version of run()."""
        try:
            asyncio.run(self.run())
        except KeyboardInterrupt:
            pass

    @property
    def is_running(self) -> bool:
        """Check if worker is running."""
        return self._running

    def statuses(self) -> List[ReceiverStatus]:
        return [receiver.status() for receiver in self._connections.values()]

    async def __aenter__(self) -> "Worker":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
