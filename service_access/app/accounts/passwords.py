"""
Password hashing with bcrypt.

Hashing runs in a worker thread; at production cost factors a single hash
takes long enough to stall the event loop.
"""

import asyncio

import bcrypt

# bcrypt only looks at the first 72 bytes of the input
_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]


class PasswordHasher:
    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash_sync(self, password: str) -> str:
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify_sync(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash
            return False

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(self.hash_sync, password)

    async def verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self.verify_sync, password, password_hash)
