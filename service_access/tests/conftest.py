"""
Shared fixtures for access service tests.
"""

from datetime import datetime, timedelta

import pytest

from shared.config import get_config
from service_access.app.accounts.models import Account, ApiCallUsage, SubscriptionPlan
from service_access.app.accounts.passwords import PasswordHasher
from service_access.app.accounts.store import InMemoryAccountStore
from service_access.tests.support import NOW, PASSWORD, MonotonicClock, MutableClock


@pytest.fixture
def clock():
    return MutableClock(NOW)


@pytest.fixture
def monotonic():
    return MonotonicClock()


@pytest.fixture
def hasher():
    # Minimum cost factor keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def store():
    return InMemoryAccountStore()


@pytest.fixture
def config():
    return get_config(
        "access",
        8000,
        jwt_secret="test-access-secret",
        jwt_refresh_secret="test-refresh-secret",
        bcrypt_rounds=4,
        rate_limit_backend="memory",
    )


@pytest.fixture
def make_account(store, hasher):
    """Seed an account into the in-memory store."""

    def _make(
        email: str = "user@example.com",
        plan: SubscriptionPlan = SubscriptionPlan.FREE,
        daily: int = 0,
        monthly: int = 0,
        last_reset: datetime = NOW,
        **fields,
    ) -> Account:
        account = Account(
            email=email,
            first_name="Test",
            last_name="User",
            password_hash=hasher.hash_sync(PASSWORD),
            plan=plan,
            usage=ApiCallUsage(total=monthly, daily=daily, monthly=monthly, last_reset=last_reset),
            created_at=NOW - timedelta(days=30),
            **fields,
        )
        return store.put(account)

    return _make
