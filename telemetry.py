"""
Transition telemetry: log every outcome and optionally forward it to a webhook.
Settings from environment only: STATE_EVENTS_WEBHOOK_URL, STATE_EVENTS_WEBHOOK_TIMEOUT,
STATE_EVENTS_LOG_LEVEL.
"""
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import httpx
from dotenv import load_dotenv

from simple_state import LoggingSink, notifications

logger = logging.getLogger(__name__)

load_dotenv(Path(__file__).resolve().parent / ".env")

_WEBHOOK_URL = os.getenv("STATE_EVENTS_WEBHOOK_URL")
_WEBHOOK_TIMEOUT = float(os.getenv("STATE_EVENTS_WEBHOOK_TIMEOUT", "5"))
_LOG_LEVEL = os.getenv("STATE_EVENTS_LOG_LEVEL", "INFO").upper()


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class WebhookSink:
    """POSTs each event as JSON. Best effort: transport errors are logged and dropped."""

    def __init__(self, url: str, timeout: float = _WEBHOOK_TIMEOUT, client: Optional[httpx.Client] = None):
        self.url = url
        self.timeout = timeout
        self.client = client

    def emit(self, name: str, payload: dict) -> None:
        # The ORM record itself is not serializable; record_id identifies it.
        body = {k: _jsonable(v) for k, v in payload.items() if k != "record"}
        body["transition"] = body.pop("event", None)
        body["event"] = name
        try:
            if self.client is not None:
                r = self.client.post(self.url, json=body, timeout=self.timeout)
            else:
                r = httpx.post(self.url, json=body, timeout=self.timeout)
            r.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Webhook delivery of %s failed: %s", name, e)


_handles: list = []


def configure(webhook_url: Optional[str] = _WEBHOOK_URL) -> list:
    """Subscribe the logging sink (and the webhook sink when configured) to every outcome."""
    for handle in _handles:
        notifications.unsubscribe(handle)
    _handles.clear()

    log_sink = LoggingSink(logger, level=getattr(logging, _LOG_LEVEL, logging.INFO))
    _handles.append(notifications.subscribe("*", log_sink.emit))
    if webhook_url:
        _handles.append(notifications.subscribe("*", WebhookSink(webhook_url).emit))
        logger.info("Forwarding transition events to %s", webhook_url)
    return list(_handles)
