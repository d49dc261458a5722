"""
Account store interface and the in-process implementation.

Every mutation is a single atomic operation against the backing store; no
method reads an account and writes it back. Callers never get a reference to
stored state, only copies.
"""

import asyncio
import copy
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

from ..domain.clock import as_utc
from .models import PROFILE_FIELDS, Account


class AccountStoreError(Exception):
    """The account store could not be reached or failed an operation."""


class DuplicateAccountError(AccountStoreError):
    """An account with this e-mail already exists."""


class AccountStore(ABC):
    """Durable account storage used by the gate, the ledger and the routes."""

    @abstractmethod
    async def load_by_id(self, account_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def create(self, account: Account) -> Account:
        """Insert a new account; raises DuplicateAccountError on e-mail clash."""
        pass

    @abstractmethod
    async def increment_usage_counters(
        self,
        account_id: str,
        *,
        now: datetime,
        day_start: datetime,
        month_start: datetime,
        delta: int = 1,
    ) -> bool:
        """
        Count ``delta`` calls in one atomic update.

        Counters whose window began after the stored ``lastReset`` restart at
        ``delta``; ``lastReset`` becomes ``now``. Returns False if the account
        does not exist.
        """
        pass

    @abstractmethod
    async def set_lockout(self, account_id: str, until: Optional[datetime]) -> None:
        pass

    @abstractmethod
    async def reset_login_attempts(self, account_id: str) -> None:
        """Clear the failed-attempt counter and any lockout."""
        pass

    @abstractmethod
    async def increment_login_attempts(self, account_id: str) -> int:
        """Add one failed attempt and return the new count."""
        pass

    @abstractmethod
    async def touch_last_seen(self, account_id: str, now: datetime) -> None:
        pass

    @abstractmethod
    async def record_login(self, account_id: str, now: datetime) -> None:
        """Clear failed attempts and lockout, stamp the login time."""
        pass

    @abstractmethod
    async def update_password(self, account_id: str, password_hash: str) -> None:
        pass

    @abstractmethod
    async def update_profile(self, account_id: str, changes: Dict[str, str]) -> Optional[Account]:
        """Set the given PROFILE_FIELDS attributes; returns the updated account."""
        pass

    @abstractmethod
    async def deactivate(self, account_id: str, now: datetime) -> None:
        """Deactivate and release the e-mail address for re-registration."""
        pass

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


def released_email(email: str, now: datetime) -> str:
    return f"deleted_{int(now.timestamp() * 1000)}_{email}"


class InMemoryAccountStore(AccountStore):
    """Process-local store, used by tests and single-instance local runs."""

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._lock = asyncio.Lock()

    async def load_by_id(self, account_id: str) -> Optional[Account]:
        account = self._accounts.get(account_id)
        return copy.deepcopy(account) if account else None

    async def find_by_email(self, email: str) -> Optional[Account]:
        email = email.lower()
        for account in self._accounts.values():
            if account.email == email:
                return copy.deepcopy(account)
        return None

    async def create(self, account: Account) -> Account:
        async with self._lock:
            if any(existing.email == account.email for existing in self._accounts.values()):
                raise DuplicateAccountError(account.email)
            self._accounts[account.id] = copy.deepcopy(account)
        return copy.deepcopy(account)

    async def increment_usage_counters(self, account_id, *, now, day_start, month_start, delta=1) -> bool:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return False
            usage = account.usage
            last_reset = as_utc(usage.last_reset)
            usage.daily = delta if last_reset < day_start else usage.daily + delta
            usage.monthly = delta if last_reset < month_start else usage.monthly + delta
            usage.total += delta
            usage.last_reset = now
            return True

    async def set_lockout(self, account_id: str, until: Optional[datetime]) -> None:
        async with self._lock:
            if account_id in self._accounts:
                self._accounts[account_id].lockout_until = until

    async def reset_login_attempts(self, account_id: str) -> None:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account:
                account.login_attempts = 0
                account.lockout_until = None

    async def increment_login_attempts(self, account_id: str) -> int:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return 0
            account.login_attempts += 1
            return account.login_attempts

    async def touch_last_seen(self, account_id: str, now: datetime) -> None:
        async with self._lock:
            if account_id in self._accounts:
                self._accounts[account_id].last_seen_at = now

    async def record_login(self, account_id: str, now: datetime) -> None:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account:
                account.login_attempts = 0
                account.lockout_until = None
                account.last_login_at = now

    async def update_password(self, account_id: str, password_hash: str) -> None:
        async with self._lock:
            if account_id in self._accounts:
                self._accounts[account_id].password_hash = password_hash

    async def update_profile(self, account_id: str, changes: Dict[str, str]) -> Optional[Account]:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return None
            for attribute, value in changes.items():
                if attribute in PROFILE_FIELDS:
                    setattr(account, attribute, value)
            return copy.deepcopy(account)

    async def deactivate(self, account_id: str, now: datetime) -> None:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account:
                account.is_active = False
                account.deactivated_at = now
                account.email = released_email(account.email, now)

    def put(self, account: Account) -> Account:
        """Seed an account directly, bypassing uniqueness checks."""
        self._accounts[account.id] = copy.deepcopy(account)
        return account
