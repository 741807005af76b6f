from .base import MessageBase
from .receiver import MessageReceiver
from .sender import MessageSender, create_message

__all__ = ["MessageBase", "MessageReceiver", "MessageSender", "create_message"]
