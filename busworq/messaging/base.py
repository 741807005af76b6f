import logging
from typing import Any, Optional

from azure.identity.aio import DefaultAzureCredential
from azure.servicebus import ServiceBusReceiveMode
from azure.servicebus.aio import ServiceBusClient

from ..exceptions import BusConnectionError, EntityTypeError, NotConnectedError
from ..schemas import EntityType, MessageConfig, ReceiveMode

logger = logging.getLogger(__name__)

RECEIVE_MODES = {
    ReceiveMode.PEEK_LOCK: ServiceBusReceiveMode.PEEK_LOCK,
    ReceiveMode.RECEIVE_AND_DELETE: ServiceBusReceiveMode.RECEIVE_AND_DELETE,
}


class MessageBase:
    """
    Shared connection handling for receivers and senders.

    Owns the Service Bus client (and token credential, when one is used) and
    knows how to open an SDK receiver or sender for the configured entity.
    Can be used as an async context manager:

    Example:
        ```python
        async with MessageSender(config) as sender:
            await sender.send_message({"id": 1})
        ```
    """

    def __init__(self, config: MessageConfig):
        self.config = config
        self.connection_name = config.name or config.address
        self.sb_client: Optional[ServiceBusClient] = None
        self.credential: Optional[Any] = None

    @property
    def is_connected(self) -> bool:
        return self.sb_client is not None

    async def connect(self) -> None:
        """Create the Service Bus client for this connection."""
        if self.is_connected:
            return

        try:
            if self.config.use_credential:
                self.credential = DefaultAzureCredential()
                self.sb_client = ServiceBusClient(
                    fully_qualified_namespace=self.config.host,
                    credential=self.credential,
                )
            else:
                self.sb_client = ServiceBusClient.from_connection_string(
                    self.config.get_connection_string()
                )
        except Exception as e:
            logger.error(
                "Failed to create client for %s: %s",
                self.connection_name,
                str(e),
            )
            raise BusConnectionError(self.connection_name, e) from e

        logger.info("%s connected to %s", self.connection_name, self.config.address)

    def _require_client(self) -> ServiceBusClient:
        if self.sb_client is None:
            raise NotConnectedError(f"{self.connection_name} is not connected")
        return self.sb_client

    def get_receiver(self):
        """Open an SDK receiver for the configured queue or subscription."""
        client = self._require_client()
        options = {
            "receive_mode": RECEIVE_MODES[self.config.receive_mode],
            "max_wait_time": self.config.max_wait_time,
            "prefetch_count": self.config.prefetch_count,
        }

        if self.config.type == EntityType.QUEUE:
            return client.get_queue_receiver(queue_name=self.config.address, **options)
        if self.config.type == EntityType.SUBSCRIPTION:
            return client.get_subscription_receiver(
                topic_name=self.config.topic,
                subscription_name=self.config.address,
                **options,
            )
        raise EntityTypeError(self.config.type.value, "receive")

    def get_sender(self):
        """Open an SDK sender for the configured queue or topic."""
        client = self._require_client()

        if self.config.type == EntityType.QUEUE:
            return client.get_queue_sender(queue_name=self.config.address)
        if self.config.type == EntityType.TOPIC:
            return client.get_topic_sender(topic_name=self.config.address)
        raise EntityTypeError(self.config.type.value, "send")

    async def close_connection(self) -> None:
        """Close the Service Bus client and credential."""
        if self.sb_client is not None:
            await self.sb_client.close()
            self.sb_client = None

        if self.credential is not None:
            await self.credential.close()
            self.credential = None

        logger.info("%s connection closed", self.connection_name)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close_connection()
