from .actions import register_action
from .core import Worker
from .messaging import MessageReceiver, MessageSender
from .schemas import (
    EntityType,
    MessageConfig,
    OutboundMessage,
    ReceiveMode,
    ReceiverCreate,
    Settings,
)

__all__ = [
    "EntityType",
    "MessageConfig",
    "MessageReceiver",
    "MessageSender",
    "OutboundMessage",
    "ReceiveMode",
    "ReceiverCreate",
    "Settings",
    "Worker",
    "register_action",
]
