import asyncio
import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from busworq import actions, app_insights
from busworq.messaging import base


class FakeMessage:
    def __init__(
        self,
        body: Any,
        message_id: str = "msg-1",
        subject: Optional[str] = None,
    ) -> None:
        if isinstance(body, dict):
            body = [json.dumps(body).encode("utf-8")]
        self._body = body
        self.message_id = message_id
        self.subject = subject

    @property
    def body(self) -> Any:
        # The SDK hands out a fresh section generator on every access
        if isinstance(self._body, list):
            return (section for section in self._body)
        return self._body


class FakeReceiver:
    def __init__(self, messages: List[Any], hold_open: bool, **options: Any) -> None:
        self.messages = list(messages)
        self.hold_open = hold_open
        self.options = options
        self.completed: List[Any] = []
        self.abandoned: List[Any] = []
        self.closed = False
        self.error: Optional[Exception] = None

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
        if self.error is not None:
            raise self.error
        if self.hold_open:
            await asyncio.Event().wait()

    async def complete_message(self, message: Any) -> None:
        self.completed.append(message)

    async def abandon_message(self, message: Any) -> None:
        self.abandoned.append(message)

    async def close(self) -> None:
        self.closed = True


class FakeSender:
    def __init__(self, entity: str) -> None:
        self.entity = entity
        self.sent: List[Any] = []
        self.closed = False

    async def send_messages(self, message: Any) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True


class FakeBus:
    """In-memory stand-in for the Service Bus namespace."""

    def __init__(self) -> None:
        self.messages: Dict[str, List[Any]] = {}
        self.errors: Dict[str, Exception] = {}
        self.hold_open = False
        self.clients: List["FakeServiceBusClient"] = []
        self.receivers: Dict[str, FakeReceiver] = {}
        self.senders: Dict[str, FakeSender] = {}

    def receiver_for(self, entity: str, **options: Any) -> FakeReceiver:
        receiver = FakeReceiver(
            self.messages.get(entity, []),
            hold_open=self.hold_open,
            **options,
        )
        receiver.error = self.errors.get(entity)
        self.receivers[entity] = receiver
        return receiver


class FakeServiceBusClient:
    bus: FakeBus

    def __init__(self, fully_qualified_namespace=None, credential=None, **kwargs):
        self.fully_qualified_namespace = fully_qualified_namespace
        self.credential = credential
        self.connection_string: Optional[str] = None
        self.closed = False
        self.bus.clients.append(self)

    @classmethod
    def from_connection_string(cls, conn_str: str, **kwargs):
        if not conn_str.startswith("Endpoint="):
            raise ValueError("Connection string is malformed")
        client = cls()
        client.connection_string = conn_str
        return client

    def get_queue_receiver(self, queue_name: str, **options):
        return self.bus.receiver_for(queue_name, **options)

    def get_subscription_receiver(self, topic_name: str, subscription_name: str, **options):
        return self.bus.receiver_for(f"{topic_name}/{subscription_name}", **options)

    def get_queue_sender(self, queue_name: str):
        sender = FakeSender(queue_name)
        self.bus.senders[queue_name] = sender
        return sender

    def get_topic_sender(self, topic_name: str):
        sender = FakeSender(topic_name)
        self.bus.senders[topic_name] = sender
        return sender

    async def close(self) -> None:
        self.closed = True


class FakeCredential:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_bus(monkeypatch: pytest.MonkeyPatch) -> FakeBus:
    bus = FakeBus()
    client_cls = type("BoundFakeServiceBusClient", (FakeServiceBusClient,), {"bus": bus})
    monkeypatch.setattr(base, "ServiceBusClient", client_cls)
    monkeypatch.setattr(base, "DefaultAzureCredential", FakeCredential)
    return bus


@pytest.fixture
def traces(monkeypatch: pytest.MonkeyPatch) -> List[Dict[str, Any]]:
    """Capture trace telemetry instead of sending it."""
    captured: List[Dict[str, Any]] = []

    class FakeTelemetryClient:
        def __init__(self, key: str) -> None:
            self.key = key
            self.context = SimpleNamespace(cloud=SimpleNamespace(role=None))
            self.flushed = 0

        def track_trace(self, name, properties=None, severity=None):
            captured.append({"name": name, "properties": properties})

        def flush(self) -> None:
            self.flushed += 1

    monkeypatch.setattr(app_insights, "TelemetryClient", FakeTelemetryClient)
    monkeypatch.setattr(app_insights, "default_client", FakeTelemetryClient("test-key"))
    return captured


@pytest.fixture(autouse=True)
def clean_state(monkeypatch: pytest.MonkeyPatch):
    saved = dict(actions._REGISTRY)
    monkeypatch.setattr(app_insights, "default_client", None)
    yield
    actions._REGISTRY.clear()
    actions._REGISTRY.update(saved)


@pytest.fixture
def connection_string() -> str:
    return "Endpoint=sb://test.servicebus.windows.net/;SharedAccessKeyName=key;SharedAccessKey=secret"
