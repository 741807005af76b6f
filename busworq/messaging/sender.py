import logging
from typing import Any, Dict, Union

from azure.servicebus import ServiceBusMessage

from ..app_insights import log_trace_message
from ..exceptions import NotConnectedError
from ..schemas import MessageConfig, OutboundMessage
from ..serialization import serialize
from .base import MessageBase

logger = logging.getLogger(__name__)


def create_message(message: Union[OutboundMessage, Dict[str, Any]]) -> ServiceBusMessage:
    """Build an SDK message with a JSON body."""
    if not isinstance(message, OutboundMessage):
        message = OutboundMessage(body=message)

    return ServiceBusMessage(
        serialize(message.body),
        content_type=message.content_type,
        correlation_id=message.correlation_id,
        subject=message.subject,
        application_properties=message.application_properties or None,
    )


class MessageSender(MessageBase):
    """Sends JSON messages to a queue or topic."""

    def __init__(self, config: MessageConfig):
        config = config.model_copy(update={"name": f"{config.address}-sender"})
        super().__init__(config)
        self.sender = None

    async def connect(self) -> None:
        await super().connect()
        try:
            self.sender = self.get_sender()
        except Exception:
            await self.close_connection()
            raise

    async def send_message(
        self, message: Union[OutboundMessage, Dict[str, Any]]
    ) -> ServiceBusMessage:
        """
        Send a single message.

        Args:
            message: An OutboundMessage, or a dict used as the message body

        Returns:
            ServiceBusMessage: The message as sent
        """
        if self.sender is None:
            raise NotConnectedError(f"{self.connection_name} is not connected")

        sb_message = create_message(message)
        await self.sender.send_messages(sb_message)
        log_trace_message(self.connection_name)
        logger.debug("%s sent message to %s", self.connection_name, self.config.address)
        return sb_message

    async def close_connection(self) -> None:
        if self.sender is not None:
            await self.sender.close()
            self.sender = None
        await super().close_connection()
