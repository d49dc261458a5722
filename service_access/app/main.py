"""
Access service: account flows and the metered AI-proxy endpoints.
"""

from typing import Dict, Optional

from fastapi import Depends

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from .accounts.gate import AccountGate
from .accounts.mongo_store import MongoAccountStore
from .accounts.passwords import PasswordHasher
from .accounts.service import AccountService
from .accounts.store import AccountStore
from .adapters.ai_provider_client import AIProviderClient
from .domain.clock import Clock, utcnow
from .tokens.codec import TokenCodec
from .domain.pipeline import AccessPipeline, AdmittedContext, RouteRequirements, admission
from .quota.ledger import QuotaLedger
from .ratelimit.limiter import RateLimiter
from .ratelimit.middleware import RateLimitMiddleware
from .ratelimit.policies import AI_PROXY, AUTH, GENERAL, REGISTRATION, default_policies
from .ratelimit.stores import MemoryRateLimitStore, RateLimitStore, RedisRateLimitStore
from .schemas import (
    ChangePasswordRequest,
    ChatCompletionRequest,
    DeleteAccountRequest,
    LoginRequest,
    MoodAnalysisRequest,
    RefreshRequest,
    RegisterRequest,
    UpdateProfileRequest,
)

REGISTRATION_ROUTE = RouteRequirements(rate_limit_policy=REGISTRATION)
LOGIN_ROUTE = RouteRequirements(rate_limit_policy=AUTH)
AUTHENTICATED = RouteRequirements(requires_auth=True)
CHAT_ROUTE = RouteRequirements(requires_auth=True, rate_limit_policy=AI_PROXY, metered=True)
MOOD_ROUTE = RouteRequirements(
    requires_auth=True,
    rate_limit_policy=AI_PROXY,
    metered=True,
    require_email_verification=True,
)


class AccessService(BaseService):
    """Access service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        account_store: Optional[AccountStore] = None,
        rate_limit_store: Optional[RateLimitStore] = None,
        ai_client: Optional[AIProviderClient] = None,
        clock: Clock = utcnow,
    ):
        self.account_store = account_store
        self.rate_limit_store = rate_limit_store
        self.ai_client = ai_client
        self.clock = clock
        super().__init__("access", 8000, config)

        self._setup_auth_routes()
        self._setup_user_routes()
        self._setup_ai_routes()
        self._setup_lifecycle()

    def _setup_components(self):
        config = self.config
        if self.account_store is None:
            self.account_store = MongoAccountStore.from_uri(config.mongodb_uri, config.mongodb_db_name)
        if self.rate_limit_store is None:
            if config.rate_limit_backend == "redis":
                self.rate_limit_store = RedisRateLimitStore(config.redis_url)
            else:
                self.rate_limit_store = MemoryRateLimitStore()
        if self.ai_client is None:
            self.ai_client = AIProviderClient.from_config(config)

        self.hasher = PasswordHasher(config.bcrypt_rounds)
        self.codec = TokenCodec.from_config(config, clock=self.clock)
        self.gate = AccountGate(
            self.account_store,
            hasher=self.hasher,
            email_verification_enabled=config.enable_email_verification,
            max_login_attempts=config.max_login_attempts,
            lockout_seconds=config.lockout_seconds,
            clock=self.clock,
            metrics=self.metrics,
        )
        self.ledger = QuotaLedger(self.account_store, clock=self.clock, metrics=self.metrics)
        self.limiter = RateLimiter(self.rate_limit_store, default_policies(config), metrics=self.metrics)
        self.pipeline = AccessPipeline(
            self.codec,
            self.gate,
            self.limiter,
            self.ledger,
            clock=self.clock,
            metrics=self.metrics,
        )
        self.accounts = AccountService(
            self.account_store,
            self.gate,
            self.codec,
            self.hasher,
            registration_enabled=config.enable_registration,
            email_verification_enabled=config.enable_email_verification,
            clock=self.clock,
        )

    def _setup_middleware(self):
        # Added first so it runs inside the request id and CORS middleware
        self.app.add_middleware(RateLimitMiddleware, limiter=self.limiter, policy_name=GENERAL)
        super()._setup_middleware()

    def _setup_lifecycle(self):
        @self.app.on_event("startup")
        async def startup():
            if isinstance(self.account_store, MongoAccountStore):
                try:
                    await self.account_store.ensure_indexes()
                except Exception as e:
                    self.logger.error("Failed to ensure account indexes", error=str(e))
            self.logger.info("Access service started", rate_limit_backend=self.config.rate_limit_backend)

        @self.app.on_event("shutdown")
        async def shutdown():
            await self.ai_client.close()
            await self.rate_limit_store.close()
            await self.account_store.close()

    def _setup_auth_routes(self):
        """Set up registration, login and session routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "access",
                "message": "AI companion API - Access Service",
                "version": "1.0.0"
            }

        @self.app.post("/api/auth/register", status_code=201)
        async def register(
            body: RegisterRequest,
            _: AdmittedContext = Depends(admission(self.pipeline, REGISTRATION_ROUTE)),
        ):
            return await self.accounts.register(body.email, body.password, body.first_name, body.last_name)

        @self.app.post("/api/auth/login")
        async def login(
            body: LoginRequest,
            _: AdmittedContext = Depends(admission(self.pipeline, LOGIN_ROUTE)),
        ):
            return await self.accounts.login(body.email, body.password)

        @self.app.post("/api/auth/refresh")
        async def refresh(body: RefreshRequest):
            tokens = await self.accounts.refresh(body.refresh_token)
            return {"message": "Token refreshed successfully", "tokens": tokens.to_dict()}

        @self.app.get("/api/auth/me")
        async def me(admitted: AdmittedContext = Depends(admission(self.pipeline, AUTHENTICATED))):
            return {"user": admitted.account.to_public_dict()}

        @self.app.post("/api/auth/logout")
        async def logout(admitted: AdmittedContext = Depends(admission(self.pipeline, AUTHENTICATED))):
            # Tokens are stateless; the client discards them
            self.logger.info("User logged out", account_id=admitted.account_id)
            return {"message": "Logged out successfully"}

        @self.app.put("/api/auth/profile")
        async def update_profile(
            body: UpdateProfileRequest,
            admitted: AdmittedContext = Depends(admission(self.pipeline, AUTHENTICATED)),
        ):
            return await self.accounts.update_profile(admitted.account, body.model_dump(exclude_none=True))

        @self.app.put("/api/auth/password")
        async def change_password(
            body: ChangePasswordRequest,
            admitted: AdmittedContext = Depends(admission(self.pipeline, AUTHENTICATED)),
        ):
            await self.accounts.change_password(admitted.account, body.current_password, body.new_password)
            return {"message": "Password changed successfully"}

        @self.app.delete("/api/auth/account")
        async def delete_account(
            body: Optional[DeleteAccountRequest] = None,
            admitted: AdmittedContext = Depends(admission(self.pipeline, AUTHENTICATED)),
        ):
            body = body or DeleteAccountRequest()
            await self.accounts.delete(admitted.account, body.password, body.confirmation)
            return {"message": "Account deleted successfully"}

    def _setup_user_routes(self):
        """Set up account usage routes."""

        @self.app.get("/api/user/usage")
        async def usage(admitted: AdmittedContext = Depends(admission(self.pipeline, AUTHENTICATED))):
            return self.ledger.snapshot(admitted.account)

    def _setup_ai_routes(self):
        """Set up metered AI-proxy routes."""

        @self.app.post("/api/chat/completions")
        async def chat_completions(
            body: ChatCompletionRequest,
            admitted: AdmittedContext = Depends(admission(self.pipeline, CHAT_ROUTE)),
        ):
            response = await self.ai_client.chat_completion(
                [message.model_dump() for message in body.messages],
                model=body.model,
                temperature=body.temperature,
                max_tokens=body.max_tokens,
            )
            choice = response["choices"][0]
            return {
                "message": choice.get("message"),
                "model": response.get("model"),
                "usage": response.get("usage"),
            }

        @self.app.post("/api/mood/analyze")
        async def analyze_mood(
            body: MoodAnalysisRequest,
            admitted: AdmittedContext = Depends(admission(self.pipeline, MOOD_ROUTE)),
        ):
            analysis = await self.ai_client.analyze_mood(body.text)
            return {"message": "Mood analyzed successfully", "analysis": analysis}

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check account and rate limit stores."""
        dependencies = {
            "account_store": "ok" if await self.account_store.ping() else "error",
            "rate_limit_store": "ok" if await self.rate_limit_store.ping() else "error",
        }
        if dependencies["account_store"] != "ok":
            raise RuntimeError("account store unavailable")
        return dependencies


def create_app(config: Optional[ServiceConfig] = None, **components):
    """Create FastAPI application."""
    service = AccessService(config or get_config("access", 8000), **components)
    return service.app


if __name__ == "__main__":
    service = AccessService()
    service.run()
