"""
Automation / notification providers.

Background jobs report noteworthy conditions (ending trials, overdue invoices,
finished backups) through a provider. Delivery is best-effort: a provider logs
delivery failures and never raises them into the caller's loop.
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from billing_jobs.config import settings
from billing_jobs.utils import utcnow

logger = logging.getLogger(__name__)


class AutomationEvents:
    """Event type names understood by notification receivers."""
    INVOICE_CREATED = "InvoiceCreated"
    PAYMENT_OVERDUE = "PaymentOverdue"
    TRIAL_ENDING = "TrialEnding"
    TENANT_SUSPENDED = "TenantSuspended"
    LOW_STOCK = "LowStock"
    BACKUP_COMPLETED = "BackupCompleted"


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class AutomationProvider:
    """Base class for notification sinks."""

    async def notify(
        self,
        event_type: str,
        tenant_id: Optional[int],
        payload: Optional[dict] = None
    ) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class LogOnlyAutomationProvider(AutomationProvider):
    """Writes events to the application log."""

    async def notify(
        self,
        event_type: str,
        tenant_id: Optional[int],
        payload: Optional[dict] = None
    ) -> None:
        body = json.dumps(payload, default=_json_default) if payload is not None else None
        logger.info(f"Automation event: {event_type} tenant_id={tenant_id} payload={body}")


class WebhookAutomationProvider(AutomationProvider):
    """POSTs events as JSON to a webhook endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Args:
            url: Webhook endpoint
            timeout: Request timeout in seconds
            client: Pre-built client (tests pass one with a mock transport)
        """
        self.url = url
        self.timeout = timeout
        self._client = client

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self.timeout
            )
        return self._client

    async def notify(
        self,
        event_type: str,
        tenant_id: Optional[int],
        payload: Optional[dict] = None
    ) -> None:
        body = {
            "event": event_type,
            "tenant_id": tenant_id,
            "payload": payload,
            "sent_at": utcnow(),
        }
        client = await self._ensure_client()
        try:
            response = await client.post(
                self.url,
                content=json.dumps(body, default=_json_default)
            )
            response.raise_for_status()
            logger.info(f"Delivered {event_type} event for tenant {tenant_id}")
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Webhook rejected {event_type} event for tenant {tenant_id}: "
                f"HTTP {e.response.status_code}"
            )
        except httpx.RequestError as e:
            logger.error(f"Webhook delivery failed for {event_type} event: {e}")

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def get_automation_provider() -> AutomationProvider:
    """
    Factory function to create the configured provider.

    Returns:
        WebhookAutomationProvider when AUTOMATION_WEBHOOK_URL is set,
        otherwise LogOnlyAutomationProvider
    """
    if settings.AUTOMATION_WEBHOOK_URL:
        return WebhookAutomationProvider(
            settings.AUTOMATION_WEBHOOK_URL,
            timeout=settings.AUTOMATION_WEBHOOK_TIMEOUT
        )
    return LogOnlyAutomationProvider()
