"""
Accounts: model, stores, admission gate and password hashing.
"""

from .gate import AccountGate, GateFailure, GateResult
from .models import Account, ApiCallUsage, SubscriptionPlan
from .passwords import PasswordHasher
from .store import AccountStore, AccountStoreError, DuplicateAccountError, InMemoryAccountStore

__all__ = [
    "Account",
    "AccountGate",
    "AccountStore",
    "AccountStoreError",
    "ApiCallUsage",
    "DuplicateAccountError",
    "GateFailure",
    "GateResult",
    "InMemoryAccountStore",
    "PasswordHasher",
    "SubscriptionPlan",
]
