"""
Services module for collaborators used by the background jobs.
"""

from billing_jobs.services.settings_store import (
    SettingsStore,
    get_settings_store
)
from billing_jobs.services.tenants import (
    TenantRegistry,
    get_tenant_registry
)
from billing_jobs.services.storage import (
    BackupStorage,
    BackupError,
    get_backup_storage
)
from billing_jobs.services.backup import (
    BackupService
)
from billing_jobs.services.automation import (
    AutomationEvents,
    AutomationProvider,
    LogOnlyAutomationProvider,
    WebhookAutomationProvider,
    get_automation_provider
)
from billing_jobs.services.subscription import (
    SubscriptionService
)

__all__ = [
    "SettingsStore",
    "get_settings_store",
    "TenantRegistry",
    "get_tenant_registry",
    "BackupStorage",
    "BackupError",
    "get_backup_storage",
    "BackupService",
    "AutomationEvents",
    "AutomationProvider",
    "LogOnlyAutomationProvider",
    "WebhookAutomationProvider",
    "get_automation_provider",
    "SubscriptionService",
]
