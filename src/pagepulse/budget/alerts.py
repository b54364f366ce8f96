"""
Alert sinks for budget escalation.

A sink implements ``send(alert)``, synchronously or as a coroutine. The
validator never awaits a sink inline and never lets a sink failure escape.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from .models import Alert, Severity

logger = logging.getLogger(__name__)


@runtime_checkable
class AlertSink(Protocol):
    def send(self, alert: Alert) -> Any: ...


class LoggingAlertSink:
    """Writes alerts to the pagepulse.alerts logger."""

    _LEVELS = {
        Severity.LOW: logging.INFO,
        Severity.MEDIUM: logging.WARNING,
        Severity.HIGH: logging.ERROR,
    }

    def __init__(self, logger_name: str = "pagepulse.alerts") -> None:
        self._logger = logging.getLogger(logger_name)

    def send(self, alert: Alert) -> None:
        self._logger.log(
            self._LEVELS.get(alert.severity, logging.WARNING),
            "%s: %s=%.2f (threshold %.2f, %s)",
            alert.type,
            alert.metric,
            alert.value,
            alert.threshold,
            alert.severity.value,
            extra={"component": "ALERT", "context": alert.to_dict()},
        )


class HttpAlertSink:
    """
    Posts alerts as JSON to an alerting webhook.

    Failures are logged and dropped; alerts are not retried.

    Args:
        url: Webhook URL
        client: Optional shared httpx.AsyncClient (owned by the caller)
        timeout_s: Request timeout when the sink creates its own client
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 5.0,
    ) -> None:
        self._url = url
        self._client = client
        self._timeout = timeout_s
        self.sent = 0
        self.failed = 0

    async def send(self, alert: Alert) -> bool:
        try:
            if self._client is not None:
                resp = await self._client.post(self._url, json=alert.to_dict())
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._url, json=alert.to_dict())
        except httpx.HTTPError as e:
            self.failed += 1
            logger.warning("Alert delivery to %s failed: %s", self._url, e)
            return False

        if resp.is_success:
            self.sent += 1
            return True
        self.failed += 1
        logger.warning("Alert delivery to %s rejected: HTTP %s", self._url, resp.status_code)
        return False
