"""
Session token helpers for the access service.
"""

from .codec import TokenCodec, TokenFailure, TokenPair, TokenPurpose, TokenResult

__all__ = [
    "TokenCodec",
    "TokenFailure",
    "TokenPair",
    "TokenPurpose",
    "TokenResult",
]
