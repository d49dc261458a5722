"""
Account gate: admission predicates over stored account state, plus
login-attempt bookkeeping.

``admit`` runs the checks for every authenticated request in a fixed order
(exists, active, not locked, e-mail verified where required) and reports the
first failure as a ``GateFailure``. Nothing here raises for an expected
outcome; the pipeline maps failures to HTTP errors.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..domain.clock import Clock, as_utc, utcnow
from .models import Account
from .passwords import PasswordHasher
from .store import AccountStore, AccountStoreError


class GateFailure(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    DEACTIVATED = "DEACTIVATED"
    LOCKED = "LOCKED"
    EMAIL_UNVERIFIED = "EMAIL_UNVERIFIED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    UNAVAILABLE = "UNAVAILABLE"


@dataclass(frozen=True)
class GateResult:
    account: Optional[Account] = None
    failure: Optional[GateFailure] = None
    locked_until: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def admitted(cls, account: Account) -> "GateResult":
        return cls(account=account)

    @classmethod
    def rejected(cls, failure: GateFailure, locked_until: Optional[datetime] = None) -> "GateResult":
        return cls(failure=failure, locked_until=locked_until)


class AccountGate:
    """Evaluates whether an account may proceed."""

    def __init__(
        self,
        store: AccountStore,
        *,
        hasher: Optional[PasswordHasher] = None,
        email_verification_enabled: bool = False,
        max_login_attempts: int = 5,
        lockout_seconds: int = 15 * 60,
        clock: Clock = utcnow,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.hasher = hasher or PasswordHasher()
        self.email_verification_enabled = email_verification_enabled
        self.max_login_attempts = max_login_attempts
        self.lockout = timedelta(seconds=lockout_seconds)
        self._clock = clock
        self.metrics = metrics
        self.logger = get_logger("access.gate")

    async def admit(self, account_id: str, require_email_verification: bool = False) -> GateResult:
        try:
            account = await self.store.load_by_id(account_id)
        except AccountStoreError as e:
            self.logger.error("Account lookup failed", account_id=account_id, error=str(e))
            return GateResult.rejected(GateFailure.UNAVAILABLE)

        if account is None:
            return GateResult.rejected(GateFailure.NOT_FOUND)
        if not account.is_active:
            return GateResult.rejected(GateFailure.DEACTIVATED)

        now = self._clock()
        if account.is_locked(now):
            return GateResult.rejected(GateFailure.LOCKED, as_utc(account.lockout_until))

        if (
            require_email_verification
            and self.email_verification_enabled
            and not account.is_email_verified
        ):
            return GateResult.rejected(GateFailure.EMAIL_UNVERIFIED)

        try:
            await self.store.touch_last_seen(account.id, now)
            account.last_seen_at = now
        except Exception as e:
            self.logger.warning("Failed to record last seen", account_id=account.id, error=str(e))

        return GateResult.admitted(account)

    async def record_failed_attempt(self, account: Account) -> Optional[datetime]:
        """Count a failed login; returns the lockout expiry if one was set."""
        now = self._clock()
        lockout_until = as_utc(account.lockout_until)

        if lockout_until is not None and lockout_until <= now:
            # Lockout expired: start a fresh count with this failure
            await self.store.reset_login_attempts(account.id)
            attempts = await self.store.increment_login_attempts(account.id)
            lockout_until = None
        else:
            attempts = await self.store.increment_login_attempts(account.id)

        if attempts >= self.max_login_attempts and lockout_until is None:
            until = now + self.lockout
            await self.store.set_lockout(account.id, until)
            self.logger.warning("Account locked", account_id=account.id, attempts=attempts)
            if self.metrics:
                self.metrics.record_lockout()
            return until
        return None

    async def record_success(self, account: Account) -> None:
        await self.store.record_login(account.id, self._clock())

    async def authenticate(self, email: str, password: str) -> GateResult:
        """Credential check for the login route, with attempt bookkeeping."""
        try:
            account = await self.store.find_by_email(email.strip().lower())
        except AccountStoreError as e:
            self.logger.error("Account lookup failed", error=str(e))
            return GateResult.rejected(GateFailure.UNAVAILABLE)

        if account is None:
            self._login_failed("unknown_email")
            return GateResult.rejected(GateFailure.INVALID_CREDENTIALS)

        now = self._clock()
        if account.is_locked(now):
            self._login_failed("locked")
            return GateResult.rejected(GateFailure.LOCKED, as_utc(account.lockout_until))
        if not account.is_active:
            self._login_failed("deactivated")
            return GateResult.rejected(GateFailure.DEACTIVATED)

        if not account.password_hash or not await self.hasher.verify(password, account.password_hash):
            self._login_failed("bad_password")
            # The attempt that trips the lockout still reports bad credentials;
            # LOCKED is returned from the next attempt on.
            locked_until = await self.record_failed_attempt(account)
            return GateResult.rejected(GateFailure.INVALID_CREDENTIALS, locked_until)

        await self.record_success(account)
        account.login_attempts = 0
        account.lockout_until = None
        account.last_login_at = now
        return GateResult.admitted(account)

    def _login_failed(self, reason: str) -> None:
        if self.metrics:
            self.metrics.record_login_failure(reason)
