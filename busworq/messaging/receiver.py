import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from ..app_insights import log_trace_message
from ..exceptions import NotConnectedError
from ..schemas import MessageConfig, ReceiveMode, ReceiverStatus
from .base import MessageBase

logger = logging.getLogger(__name__)

MessageAction = Callable[[Any], Awaitable[Any]]


class MessageReceiver(MessageBase):
    """
    Subscribes an action to a queue or topic subscription.

    Every received message is traced and handed to ``action``. In peek-lock
    mode the message is completed once the action returns and abandoned if it
    raises, so the broker redelivers it. Errors are logged and re-raised; they
    end the receive loop and surface from ``wait()``.

    Example:
        ```python
        async def action(message):
            print(decode_body(message))

        receiver = MessageReceiver(MessageConfig.from_env("orders"), action)
        await receiver.connect()
        await receiver.wait()
        ```
    """

    def __init__(self, config: MessageConfig, action: MessageAction):
        config = config.model_copy(update={"name": f"{config.address}-receiver"})
        super().__init__(config)
        self.action = action
        self.receiver = None
        self._receive_task: Optional[asyncio.Task] = None
        self.messages_received = 0
        self.messages_failed = 0
        self.last_message_at: Optional[datetime] = None

    async def connect(self) -> None:
        await super().connect()
        try:
            self.receiver = self.get_receiver()
            self.register_message_handler(self.receiver_handler, self.receiver_error)
        except Exception:
            await self.close_connection()
            raise

    def register_message_handler(
        self,
        on_message: MessageAction,
        on_error: Callable[[Exception], None],
    ) -> None:
        """Start receiving messages in a background task."""
        if self.receiver is None:
            raise NotConnectedError(f"{self.connection_name} has no receiver")

        self._receive_task = asyncio.create_task(
            self._receive_loop(on_message, on_error),
            name=self.connection_name,
        )

    async def _receive_loop(
        self,
        on_message: MessageAction,
        on_error: Callable[[Exception], None],
    ) -> None:
        try:
            async for message in self.receiver:
                await self._process(message, on_message)
        except Exception as e:
            on_error(e)

        logger.debug("%s stopped receiving", self.connection_name)

    @property
    def _settles_messages(self) -> bool:
        return (
            self.config.receive_mode == ReceiveMode.PEEK_LOCK
            and self.config.auto_complete
        )

    async def _process(self, message: Any, on_message: MessageAction) -> None:
        try:
            await on_message(message)
        except Exception:
            self.messages_failed += 1
            if self._settles_messages:
                try:
                    await self.receiver.abandon_message(message)
                except Exception as settle_error:
                    logger.error(
                        "%s could not abandon message %s: %s",
                        self.connection_name,
                        getattr(message, "message_id", None),
                        settle_error,
                    )
            raise

        if self._settles_messages:
            await self.receiver.complete_message(message)

    def receiver_error(self, err: Exception) -> None:
        logger.error("%s receive error: %s", self.connection_name, err, exc_info=err)
        raise err

    async def receiver_handler(self, message: Any) -> None:
        log_trace_message(
            self.connection_name,
            properties={"message_id": str(getattr(message, "message_id", None))},
        )
        logger.debug(
            "%s received message %s",
            self.connection_name,
            getattr(message, "message_id", None),
        )
        self.messages_received += 1
        self.last_message_at = datetime.now(timezone.utc)
        await self.action(message)

    async def wait(self) -> None:
        """Block until the receive loop ends, re-raising its error if any."""
        if self._receive_task is None:
            raise NotConnectedError(f"{self.connection_name} is not receiving")
        await self._receive_task

    @property
    def is_receiving(self) -> bool:
        return self._receive_task is not None and not self._receive_task.done()

    async def close_connection(self) -> None:
        if self._receive_task is not None:
            if not self._receive_task.done():
                self._receive_task.cancel()
                try:
                    await self._receive_task
                except asyncio.CancelledError:
                    pass
            self._receive_task = None

        if self.receiver is not None:
            await self.receiver.close()
            self.receiver = None

        await super().close_connection()

    def status(self) -> ReceiverStatus:
        return ReceiverStatus(
            name=self.connection_name,
            address=self.config.address,
            type=self.config.type,
            connected=self.is_connected and self.is_receiving,
            messages_received=self.messages_received,
            messages_failed=self.messages_failed,
            last_message_at=self.last_message_at,
        )
