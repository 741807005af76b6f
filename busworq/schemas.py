import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .actions import get_registered_actions


class EntityType(str, Enum):
    QUEUE = "queue"
    TOPIC = "topic"
    SUBSCRIPTION = "subscription"


class ReceiveMode(str, Enum):
    PEEK_LOCK = "peek_lock"
    RECEIVE_AND_DELETE = "receive_and_delete"


class Settings(BaseModel):
    api_on: bool = Field(
        False,
        description="Enable/disable status web service",
    )
    api_host: str = Field(
        "localhost",
        description="Host address for API server",
    )
    api_port: int = Field(
        8000,
        description="Port for API server",
    )
    debug: bool = Field(False, description="Enable debug mode")
    log_path: Optional[str] = Field(
        None,
        description="Path to log file (default: log to stdout)",
    )
    appinsights_key: Optional[str] = Field(
        None,
        description="Application Insights instrumentation key (telemetry off if unset)",
    )
    cloud_role_name: Optional[str] = Field(
        None,
        description="Cloud role name reported with telemetry",
    )

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        """Build settings from APPINSIGHTS_* environment variables."""
        values: Dict[str, Any] = {
            "appinsights_key": os.getenv("APPINSIGHTS_INSTRUMENTATIONKEY"),
            "cloud_role_name": os.getenv("APPINSIGHTS_CLOUDROLE"),
            "debug": os.getenv("BUSWORQ_DEBUG", "").lower() in ("1", "true", "yes"),
        }
        values.update(overrides)
        return cls(**values)


class MessageConfig(BaseModel):
    """
    Connection and entity details for a single receiver or sender.

    Authentication is resolved in this order: an explicit connection string,
    a token credential (``use_credential``), then a shared access key built
    from ``host``, ``username`` and ``password``.
    """

    address: str = Field(
        ...,
        min_length=1,
        description="Queue, topic or subscription name",
    )
    type: EntityType = Field(EntityType.QUEUE, description="Entity type")
    topic: Optional[str] = Field(
        None,
        description="Topic name (subscriptions only)",
    )
    host: Optional[str] = Field(
        None,
        description="Fully qualified namespace, e.g. myns.servicebus.windows.net",
    )
    username: Optional[str] = Field(None, description="Shared access key name")
    password: Optional[str] = Field(None, description="Shared access key")
    connection_string: Optional[str] = Field(
        None,
        description="Full connection string (overrides host/username/password)",
    )
    use_credential: bool = Field(
        False,
        description="Authenticate with DefaultAzureCredential instead of SAS keys",
    )
    name: Optional[str] = Field(
        None,
        description="Connection name, derived by receivers and senders",
    )
    receive_mode: ReceiveMode = ReceiveMode.PEEK_LOCK
    auto_complete: bool = Field(
        True,
        description="Settle messages after the action returns or raises",
    )
    max_wait_time: Optional[float] = Field(
        None,
        gt=0,
        description="Seconds to wait for a message before the receiver stops (None waits forever)",
    )
    prefetch_count: int = Field(0, ge=0)

    @field_validator("host")
    @classmethod
    def strip_scheme(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        for scheme in ("sb://", "https://"):
            if v.startswith(scheme):
                v = v[len(scheme) :]
        return v.rstrip("/")

    @model_validator(mode="after")
    def check_connection(self) -> "MessageConfig":
        if self.type == EntityType.SUBSCRIPTION and not self.topic:
            raise ValueError("'topic' is required for subscription entities")
        if self.connection_string:
            return self
        if not self.host:
            raise ValueError("Either 'connection_string' or 'host' must be defined")
        if not self.use_credential and not (self.username and self.password):
            raise ValueError(
                "'username' and 'password' are required unless 'use_credential' is set"
            )
        return self

    def get_connection_string(self) -> str:
        if self.connection_string:
            return self.connection_string
        return (
            f"Endpoint=sb://{self.host}/;"
            f"SharedAccessKeyName={self.username};"
            f"SharedAccessKey={self.password}"
        )

    @classmethod
    def from_env(
        cls,
        address: str,
        prefix: str = "SERVICE_BUS",
        **overrides: Any,
    ) -> "MessageConfig":
        """
        Build a config from environment variables.

        Reads ``<prefix>_HOST``, ``<prefix>_USER``, ``<prefix>_PASSWORD``,
        ``<prefix>_CONNECTION_STRING`` and ``<prefix>_USE_CREDENTIAL``.
        Keyword overrides win over the environment.
        """
        values: Dict[str, Any] = {
            "address": address,
            "host": os.getenv(f"{prefix}_HOST"),
            "username": os.getenv(f"{prefix}_USER"),
            "password": os.getenv(f"{prefix}_PASSWORD"),
            "connection_string": os.getenv(f"{prefix}_CONNECTION_STRING"),
            "use_credential": os.getenv(f"{prefix}_USE_CREDENTIAL", "").lower()
            in ("1", "true", "yes"),
        }
        values.update(overrides)
        return cls(**values)


class ReceiverCreate(BaseModel):
    config: MessageConfig
    action: str

    @field_validator("action")
    @classmethod
    def validate_action(cls, v: str) -> str:
        if v in get_registered_actions():
            return v
        keys = list(get_registered_actions().keys())
        raise ValueError(f"Action '{v}' is not registered. Available actions: {keys}")


class OutboundMessage(BaseModel):
    body: Any
    correlation_id: Optional[str] = None
    subject: Optional[str] = None
    content_type: str = "application/json"
    application_properties: Dict[str, Any] = Field(default_factory=dict)


class ReceiverStatus(BaseModel):
    name: str
    address: str
    type: EntityType
    connected: bool
    messages_received: int = 0
    messages_failed: int = 0
    last_message_at: Optional[datetime] = None
