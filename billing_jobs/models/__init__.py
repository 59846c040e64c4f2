"""
Database models for the billing maintenance jobs.

This module exports all SQLAlchemy models and the status enums
used throughout the application.
"""

from billing_jobs.models.tenant import Tenant, TenantStatus, BACKUP_ELIGIBLE_STATUSES
from billing_jobs.models.subscription import Subscription, SubscriptionStatus
from billing_jobs.models.sale import Sale, SalePaymentStatus, UNPAID_STATUSES
from billing_jobs.models.setting import Setting, SYSTEM_OWNER_ID

# Export all models
__all__ = [
    "Tenant",
    "TenantStatus",
    "BACKUP_ELIGIBLE_STATUSES",
    "Subscription",
    "SubscriptionStatus",
    "Sale",
    "SalePaymentStatus",
    "UNPAID_STATUSES",
    "Setting",
    "SYSTEM_OWNER_ID",
]
