class MessagingError(Exception):
    """Base exception for messaging operations"""

    pass


class BusConnectionError(MessagingError):
    """Raised when a Service Bus connection cannot be established"""

    def __init__(self, connection_name: str, original_error: Exception):
        self.connection_name = connection_name
        self.original_error = original_error
        super().__init__(
            f"Connection '{connection_name}' failed: {str(original_error)}"
        )


class EntityTypeError(MessagingError):
    """Raised when an entity type does not support the requested operation"""

    def __init__(self, entity_type: str, operation: str):
        self.entity_type = entity_type
        self.operation = operation
        super().__init__(f"Cannot {operation} on entity of type '{entity_type}'")


class NotConnectedError(MessagingError):
    """Raised when a client is used before connect() or after close"""

    pass
