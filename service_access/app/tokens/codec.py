"""
Token codec for session access and refresh tokens.

Tokens are HS256 JWTs carrying ``sub`` (account id), ``type`` (purpose),
``iat`` and ``exp``. Access and refresh tokens are signed with independent
secrets so a leaked access key cannot mint refresh tokens.

``verify`` never raises: it returns a ``TokenResult`` tagged with one of the
``TokenFailure`` kinds.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from jose import jwt
from jose.exceptions import JOSEError

from shared.config import BaseConfig
from shared.logging import get_logger
from ..domain.clock import Clock, utcnow


class TokenPurpose(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenFailure(str, Enum):
    MALFORMED = "MALFORMED"
    EXPIRED = "EXPIRED"
    WRONG_PURPOSE = "WRONG_PURPOSE"


@dataclass(frozen=True)
class TokenResult:
    """Outcome of a verification: an account id or a failure kind."""

    account_id: Optional[str] = None
    failure: Optional[TokenFailure] = None
    expires_at: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, account_id: str, expires_at: int) -> "TokenResult":
        return cls(account_id=account_id, expires_at=expires_at)

    @classmethod
    def failed(cls, failure: TokenFailure) -> "TokenResult":
        return cls(failure=failure)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresIn": self.expires_in,
        }


class TokenCodec:
    """Issues and verifies purpose-tagged session tokens."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        *,
        algorithm: str = "HS256",
        access_ttl_seconds: int = 7 * 24 * 3600,
        refresh_ttl_seconds: int = 30 * 24 * 3600,
        clock: Clock = utcnow,
    ) -> None:
        if access_secret == refresh_secret:
            raise ValueError("access and refresh tokens must use different secrets")
        self._secrets = {
            TokenPurpose.ACCESS: access_secret,
            TokenPurpose.REFRESH: refresh_secret,
        }
        self._ttls = {
            TokenPurpose.ACCESS: access_ttl_seconds,
            TokenPurpose.REFRESH: refresh_ttl_seconds,
        }
        self.algorithm = algorithm
        self._clock = clock
        self.logger = get_logger("access.tokens")

    @classmethod
    def from_config(cls, config: BaseConfig, clock: Clock = utcnow) -> "TokenCodec":
        return cls(
            config.jwt_secret,
            config.jwt_refresh_secret,
            algorithm=config.jwt_algorithm,
            access_ttl_seconds=config.jwt_access_ttl_seconds,
            refresh_ttl_seconds=config.jwt_refresh_ttl_seconds,
            clock=clock,
        )

    @property
    def access_ttl_seconds(self) -> int:
        return self._ttls[TokenPurpose.ACCESS]

    def issue(self, account_id: str, purpose: TokenPurpose) -> str:
        """Sign a token for ``account_id`` with an absolute expiry."""
        purpose = TokenPurpose(purpose)
        issued_at = int(self._clock().timestamp())
        claims = {
            "sub": account_id,
            "type": purpose.value,
            "iat": issued_at,
            "exp": issued_at + self._ttls[purpose],
        }
        return jwt.encode(claims, self._secrets[purpose], algorithm=self.algorithm)

    def issue_pair(self, account_id: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue(account_id, TokenPurpose.ACCESS),
            refresh_token=self.issue(account_id, TokenPurpose.REFRESH),
            expires_in=self.access_ttl_seconds,
        )

    def verify(self, token: Optional[str], expected: TokenPurpose) -> TokenResult:
        """Check signature, purpose and expiry, in that order."""
        expected = TokenPurpose(expected)
        if not token:
            return TokenResult.failed(TokenFailure.MALFORMED)

        try:
            unverified = jwt.get_unverified_claims(token)
        except JOSEError:
            return TokenResult.failed(TokenFailure.MALFORMED)
        if not isinstance(unverified, dict):
            return TokenResult.failed(TokenFailure.MALFORMED)

        try:
            purpose = TokenPurpose(unverified.get("type"))
        except ValueError:
            return TokenResult.failed(TokenFailure.MALFORMED)

        # Signature is checked with the key of the claimed purpose; expiry is
        # evaluated below against the injected clock.
        try:
            claims = jwt.decode(
                token,
                self._secrets[purpose],
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JOSEError as exc:
            self.logger.debug("Token signature rejected", error=str(exc))
            return TokenResult.failed(TokenFailure.MALFORMED)

        if purpose is not expected:
            return TokenResult.failed(TokenFailure.WRONG_PURPOSE)

        subject = claims.get("sub")
        expires_at = claims.get("exp")
        if not isinstance(subject, str) or not subject:
            return TokenResult.failed(TokenFailure.MALFORMED)
        if not isinstance(expires_at, int) or isinstance(expires_at, bool):
            return TokenResult.failed(TokenFailure.MALFORMED)

        if self._clock().timestamp() >= expires_at:
            return TokenResult.failed(TokenFailure.EXPIRED)

        return TokenResult.success(subject, expires_at)
