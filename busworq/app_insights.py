"""Application Insights trace telemetry.

Telemetry is opt-in: nothing is sent until ``setup`` is called with settings
that carry an instrumentation key. Until then ``log_trace_message`` is a no-op,
so receivers and senders can trace unconditionally.
"""

import logging
from typing import Any, Dict, Optional

from applicationinsights import TelemetryClient

from .schemas import Settings

logger = logging.getLogger(__name__)

default_client: Optional[TelemetryClient] = None


def setup(settings: Settings) -> bool:
    """
    Create the default telemetry client.

    Args:
        settings: Worker settings holding the instrumentation key

    Returns:
        bool: True if telemetry is enabled
    """
    global default_client

    if not settings.appinsights_key:
        logger.debug("Application Insights disabled (no instrumentation key)")
        return False

    client = TelemetryClient(settings.appinsights_key)
    if settings.cloud_role_name:
        client.context.cloud.role = settings.cloud_role_name
    default_client = client
    logger.info("Application Insights telemetry enabled")
    return True


def log_trace_message(
    message: str,
    properties: Optional[Dict[str, Any]] = None,
) -> None:
    """Track a trace on the default client, if one is configured."""
    if default_client is not None:
        default_client.track_trace(message, properties=properties)


def flush() -> None:
    if default_client is not None:
        default_client.flush()


def shutdown() -> None:
    """Flush pending telemetry and drop the default client."""
    global default_client

    flush()
    default_client = None
