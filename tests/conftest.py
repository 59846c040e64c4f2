"""
Pytest fixtures and configuration for the billing maintenance job tests.

This module provides shared fixtures for:
- Test database setup/teardown with async support
- Model factories for tenants, subscriptions, sales and settings
- Fake backup storage and automation providers
- Test authentication headers
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator, List
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from faker import Faker
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from billing_jobs.config import settings
from billing_jobs.database import Base
from billing_jobs.models import (
    Sale,
    SalePaymentStatus,
    Setting,
    Subscription,
    SubscriptionStatus,
    SYSTEM_OWNER_ID,
    Tenant,
    TenantStatus,
)
from billing_jobs.schemas import BackupArtifact
from billing_jobs.services.automation import AutomationProvider

# Initialize Faker for generating test data
fake = Faker()

# Monday 2026-10-19 20:00, used wherever a test needs a fixed clock
FIXED_NOW = datetime(2026, 10, 19, 20, 0, 0)

# Single shared in-memory database per test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Create test database engine with in-memory SQLite.

    Each test gets a fresh database instance.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def empty_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Engine for a database where no migrations have been applied."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to the test engine, as the jobs expect."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Database model factory fixtures
@pytest.fixture
def create_tenant(session_factory: async_sessionmaker):
    """
    Factory fixture for creating test tenants.

    Returns a function that creates and persists a Tenant.
    """
    async def _create_tenant(**kwargs) -> Tenant:
        defaults = {
            "name": fake.company(),
            "status": TenantStatus.ACTIVE,
        }
        defaults.update(kwargs)

        async with session_factory() as session:
            tenant = Tenant(**defaults)
            session.add(tenant)
            await session.commit()
            await session.refresh(tenant)
            return tenant

    return _create_tenant


@pytest.fixture
def create_subscription(session_factory: async_sessionmaker):
    """Factory fixture for creating test subscriptions."""
    async def _create_subscription(tenant_id: int, **kwargs) -> Subscription:
        defaults = {
            "tenant_id": tenant_id,
            "status": SubscriptionStatus.TRIAL,
            "start_date": FIXED_NOW - timedelta(days=10),
            "created_at": FIXED_NOW - timedelta(days=10),
        }
        defaults.update(kwargs)

        async with session_factory() as session:
            subscription = Subscription(**defaults)
            session.add(subscription)
            await session.commit()
            await session.refresh(subscription)
            return subscription

    return _create_subscription


@pytest.fixture
def create_sale(session_factory: async_sessionmaker):
    """Factory fixture for creating test sales."""
    async def _create_sale(tenant_id: int, **kwargs) -> Sale:
        defaults = {
            "tenant_id": tenant_id,
            "invoice_no": f"INV-{fake.unique.random_int(min=1000, max=999999)}",
            "grand_total": Decimal("250.00"),
            "paid_amount": Decimal("0.00"),
            "payment_status": SalePaymentStatus.PENDING,
            "is_deleted": False,
        }
        defaults.update(kwargs)

        async with session_factory() as session:
            sale = Sale(**defaults)
            session.add(sale)
            await session.commit()
            await session.refresh(sale)
            return sale

    return _create_sale


@pytest.fixture
def set_setting(session_factory: async_sessionmaker):
    """Factory fixture for writing settings rows (system owner by default)."""
    async def _set_setting(key: str, value: str, owner_id: int = SYSTEM_OWNER_ID) -> Setting:
        async with session_factory() as session:
            setting = Setting(owner_id=owner_id, key=key, value=value)
            session.add(setting)
            await session.commit()
            return setting

    return _set_setting


# Collaborator fakes
class FakeBackupStorage:
    """In-memory stand-in for BackupStorage used by pruning tests."""

    def __init__(self, artifacts: List[BackupArtifact] = None):
        self.artifacts = list(artifacts or [])
        self.deleted: List[str] = []
        self.fail_on: set = set()

    def list_backups(self) -> List[BackupArtifact]:
        return list(self.artifacts)

    def delete_backup(self, file_name: str) -> bool:
        if file_name in self.fail_on:
            raise PermissionError(f"cannot delete {file_name}")
        self.deleted.append(file_name)
        self.artifacts = [a for a in self.artifacts if a.file_name != file_name]
        return True


@pytest.fixture
def fake_storage() -> FakeBackupStorage:
    return FakeBackupStorage()


@pytest.fixture
def mock_automation() -> AutomationProvider:
    """Automation provider whose notify/close calls are recorded."""
    provider = AutomationProvider()
    provider.notify = AsyncMock()
    provider.close = AsyncMock()
    return provider


# Authentication fixtures
@pytest.fixture
def auth_header(monkeypatch) -> dict:
    """Test authentication header for API tests."""
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", "test_password")
    return {"X-Admin-Password": "test_password"}


@pytest.fixture
def invalid_auth_header(monkeypatch) -> dict:
    """Invalid authentication header for testing auth failures."""
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", "test_password")
    return {"X-Admin-Password": "wrong_password"}
