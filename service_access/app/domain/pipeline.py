"""
Admission pipeline for API routes.

Stages run in a fixed order and the first failure ends the run:

    address-keyed rate limit -> token verification -> identity-keyed rate
    limit -> account gate -> quota check -> admitted

Each route declares what it needs with ``RouteRequirements``; stages a route
does not ask for are skipped. Routes with ``optional_auth`` accept anonymous
callers but key identity-scoped limits by account when a valid token comes
along. ``admission`` wraps the pipeline as a FastAPI
dependency that also commits metered usage after the handler returns.
"""

from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Request

from shared.logging import get_logger, set_user_context
from shared.metrics import MetricsCollector
from ..accounts.gate import AccountGate
from ..accounts.models import Account
from ..quota.ledger import QuotaLedger, QuotaResult
from ..ratelimit.limiter import RateLimiter, RateLimitResult
from ..ratelimit.middleware import get_client_address
from ..ratelimit.policies import KeyStrategy
from ..tokens.codec import TokenCodec, TokenPurpose
from .clock import Clock, utcnow
from .rejections import (
    AUTH_HEADER_MISSING,
    TOKEN_MISSING,
    Rejection,
    from_gate,
    from_quota,
    from_rate_limit,
    from_token_failure,
)


@dataclass(frozen=True)
class RouteRequirements:
    requires_auth: bool = False
    # Identify the caller when a usable token is sent; never reject for it
    optional_auth: bool = False
    rate_limit_policy: Optional[str] = None
    metered: bool = False
    require_email_verification: bool = False


@dataclass(frozen=True)
class RequestContext:
    address: str
    authorization: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        return cls(
            address=get_client_address(request),
            authorization=request.headers.get("Authorization"),
        )


@dataclass
class AdmittedContext:
    account_id: Optional[str] = None
    account: Optional[Account] = None
    quota: Optional[QuotaResult] = None
    rate_limit: Optional[RateLimitResult] = None


PipelineOutcome = Union[AdmittedContext, Rejection]


def bearer_token(authorization: str) -> str:
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip()
    return authorization.strip()


class AccessPipeline:
    """Composes codec, limiter, gate and ledger into one admission decision."""

    def __init__(
        self,
        codec: TokenCodec,
        gate: AccountGate,
        limiter: RateLimiter,
        ledger: QuotaLedger,
        *,
        clock: Clock = utcnow,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.codec = codec
        self.gate = gate
        self.limiter = limiter
        self.ledger = ledger
        self._clock = clock
        self.metrics = metrics
        self.logger = get_logger("access.pipeline")

    async def run(self, ctx: RequestContext, requirements: RouteRequirements) -> PipelineOutcome:
        outcome = await self._run(ctx, requirements)
        if isinstance(outcome, Rejection) and self.metrics:
            self.metrics.record_rejection(outcome.code)
        return outcome

    async def _run(self, ctx: RequestContext, requirements: RouteRequirements) -> PipelineOutcome:
        admitted = AdmittedContext()
        policy = None
        if requirements.rate_limit_policy:
            policy = self.limiter.policy(requirements.rate_limit_policy)

        if not requirements.requires_auth and requirements.optional_auth:
            await self._identify(ctx, admitted)

        # Address-keyed policies, and every policy on anonymous routes, run first
        if policy and (policy.key_strategy is KeyStrategy.ADDRESS or not requirements.requires_auth):
            admitted.rate_limit = await self.limiter.consume(
                policy.name, self.limiter.resolve_key(policy, ctx.address, admitted.account_id)
            )
            if not admitted.rate_limit.allowed:
                return from_rate_limit(admitted.rate_limit)

        if not requirements.requires_auth:
            return admitted

        if ctx.authorization is None:
            return AUTH_HEADER_MISSING
        token = bearer_token(ctx.authorization)
        if not token:
            return TOKEN_MISSING

        verified = self.codec.verify(token, TokenPurpose.ACCESS)
        if not verified.ok:
            self.logger.info("Token rejected", failure=verified.failure.value)
            return from_token_failure(verified.failure)
        admitted.account_id = verified.account_id

        if policy and policy.key_strategy is KeyStrategy.IDENTITY:
            admitted.rate_limit = await self.limiter.consume(
                policy.name, self.limiter.resolve_key(policy, ctx.address, verified.account_id)
            )
            if not admitted.rate_limit.allowed:
                return from_rate_limit(admitted.rate_limit)

        gate_result = await self.gate.admit(verified.account_id, requirements.require_email_verification)
        if not gate_result.ok:
            return from_gate(gate_result)
        admitted.account = gate_result.account

        if requirements.metered:
            quota = self.ledger.check(gate_result.account)
            if not quota.ok:
                return from_quota(quota, self._clock())
            admitted.quota = quota

        return admitted

    async def _identify(self, ctx: RequestContext, admitted: AdmittedContext) -> None:
        """Attach the caller's account when the token and account check out."""
        if not ctx.authorization:
            return
        token = bearer_token(ctx.authorization)
        if not token:
            return

        verified = self.codec.verify(token, TokenPurpose.ACCESS)
        if not verified.ok:
            self.logger.debug("Optional token ignored", failure=verified.failure.value)
            return

        gate_result = await self.gate.admit(verified.account_id)
        if not gate_result.ok:
            self.logger.debug("Optional account ignored", failure=gate_result.failure.value)
            return

        admitted.account_id = verified.account_id
        admitted.account = gate_result.account

    async def commit(self, admitted: AdmittedContext) -> None:
        """Record usage for a completed metered call; never raises."""
        if admitted.account_id is None or admitted.quota is None:
            return
        await self.ledger.commit(admitted.account_id)


def admission(pipeline: AccessPipeline, requirements: RouteRequirements):
    """Build a FastAPI dependency enforcing ``requirements``."""

    async def dependency(request: Request):
        outcome = await pipeline.run(RequestContext.from_request(request), requirements)
        if isinstance(outcome, Rejection):
            raise outcome.to_exception()

        if outcome.account_id:
            set_user_context(outcome.account_id)
        request.state.admitted = outcome

        # Code after the yield only runs when the handler returned normally
        yield outcome

        if requirements.metered:
            await pipeline.commit(outcome)

    return dependency
