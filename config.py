import logging
from typing import Any

from busworq import (
    EntityType,
    MessageConfig,
    ReceiverCreate,
    Settings,
    Worker,
    register_action,
)
from busworq.serialization import decode_body

logger = logging.getLogger("config")


@register_action(title="Store order")
async def store_order(message: Any) -> None:
    """
    Handle an order placed on the orders queue.

    Args:
        message: Received Service Bus message
    """
    order = decode_body(message)
    logger.info("Order %s received", order.get("id"))


@register_action(title="Audit event")
async def audit_event(message: Any) -> None:
    """Log every event published to the events topic."""
    logger.info("Event %s: %s", message.subject, decode_body(message))


# Connection details come from SERVICE_BUS_HOST / SERVICE_BUS_USER /
# SERVICE_BUS_PASSWORD, or SERVICE_BUS_CONNECTION_STRING
receivers = [
    ReceiverCreate(
        config=MessageConfig.from_env("orders"),
        action="store_order",
    ),
    ReceiverCreate(
        config=MessageConfig.from_env(
            "audit",
            type=EntityType.SUBSCRIPTION,
            topic="events",
        ),
        action="audit_event",
    ),
]

settings = Settings.from_env(
    api_on=True,  # Enable the status API
    api_host="localhost",
    api_port=8000,
)


if __name__ == "__main__":
    Worker(settings=settings, receivers=receivers).run_sync()
