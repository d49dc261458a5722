"""
MongoDB account store on the motor async driver.

Usage counters are advanced with a single pipeline-style ``update_one`` so
that the window reset and the increment happen atomically on the server.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from shared.logging import get_logger
from .models import PROFILE_FIELDS, Account
from .store import AccountStore, AccountStoreError, DuplicateAccountError, released_email

USERS_COLLECTION = "users"


def _counter(field: str, window_start: datetime, delta: int) -> Dict[str, Any]:
    """Restart ``field`` at ``delta`` if the stored lastReset predates the window."""
    return {
        "$cond": [
            {"$lt": ["$usage.apiCalls.lastReset", window_start]},
            delta,
            {"$add": [{"$ifNull": [f"$usage.apiCalls.{field}", 0]}, delta]},
        ]
    }


class MongoAccountStore(AccountStore):
    """Account store backed by the ``users`` collection."""

    def __init__(self, client: AsyncIOMotorClient, db_name: str):
        self.client = client
        self.database = client[db_name]
        self.collection = self.database[USERS_COLLECTION]
        self.logger = get_logger("access.accounts")

    @classmethod
    def from_uri(cls, uri: str, db_name: str) -> "MongoAccountStore":
        return cls(AsyncIOMotorClient(uri, tz_aware=True), db_name)

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("email", ASCENDING)], unique=True)

    async def _update(self, account_id: str, update: Any) -> Any:
        try:
            return await self.collection.update_one({"_id": account_id}, update)
        except PyMongoError as e:
            self.logger.error("Account update failed", account_id=account_id, error=str(e))
            raise AccountStoreError(str(e)) from e

    async def load_by_id(self, account_id: str) -> Optional[Account]:
        try:
            doc = await self.collection.find_one({"_id": account_id})
        except PyMongoError as e:
            raise AccountStoreError(str(e)) from e
        return Account.from_document(doc) if doc else None

    async def find_by_email(self, email: str) -> Optional[Account]:
        try:
            doc = await self.collection.find_one({"email": email.lower()})
        except PyMongoError as e:
            raise AccountStoreError(str(e)) from e
        return Account.from_document(doc) if doc else None

    async def create(self, account: Account) -> Account:
        try:
            await self.collection.insert_one(account.to_document())
        except DuplicateKeyError as e:
            raise DuplicateAccountError(account.email) from e
        except PyMongoError as e:
            raise AccountStoreError(str(e)) from e
        return account

    async def increment_usage_counters(self, account_id, *, now, day_start, month_start, delta=1) -> bool:
        result = await self._update(account_id, [
            {
                "$set": {
                    "usage.apiCalls.daily": _counter("daily", day_start, delta),
                    "usage.apiCalls.monthly": _counter("monthly", month_start, delta),
                    "usage.apiCalls.total": {
                        "$add": [{"$ifNull": ["$usage.apiCalls.total", 0]}, delta]
                    },
                    "usage.apiCalls.lastReset": now,
                }
            }
        ])
        return result.matched_count == 1

    async def set_lockout(self, account_id: str, until: Optional[datetime]) -> None:
        await self._update(account_id, {"$set": {"lockoutUntil": until}})

    async def reset_login_attempts(self, account_id: str) -> None:
        await self._update(account_id, {
            "$set": {"loginAttempts": 0},
            "$unset": {"lockoutUntil": ""},
        })

    async def increment_login_attempts(self, account_id: str) -> int:
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": account_id},
                {"$inc": {"loginAttempts": 1}},
                projection={"loginAttempts": 1},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise AccountStoreError(str(e)) from e
        return int(doc["loginAttempts"]) if doc else 0

    async def touch_last_seen(self, account_id: str, now: datetime) -> None:
        await self._update(account_id, {"$set": {"lastSeenAt": now}})

    async def record_login(self, account_id: str, now: datetime) -> None:
        await self._update(account_id, {
            "$set": {"loginAttempts": 0, "lastLoginAt": now},
            "$unset": {"lockoutUntil": ""},
        })

    async def update_password(self, account_id: str, password_hash: str) -> None:
        await self._update(account_id, {"$set": {"password": password_hash}})

    async def update_profile(self, account_id: str, changes: Dict[str, str]) -> Optional[Account]:
        fields = {PROFILE_FIELDS[name]: value for name, value in changes.items() if name in PROFILE_FIELDS}
        if not fields:
            return await self.load_by_id(account_id)
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": account_id},
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise AccountStoreError(str(e)) from e
        return Account.from_document(doc) if doc else None

    async def deactivate(self, account_id: str, now: datetime) -> None:
        # Pipeline update so the released address is derived from the stored one.
        await self._update(account_id, [
            {
                "$set": {
                    "isActive": False,
                    "deactivatedAt": now,
                    "email": {"$concat": [released_email("", now), "$email"]},
                }
            }
        ])

    async def ping(self) -> bool:
        try:
            await self.database.command("ping")
            return True
        except PyMongoError as e:
            self.logger.warning("MongoDB ping failed", error=str(e))
            return False

    async def close(self) -> None:
        self.client.close()
