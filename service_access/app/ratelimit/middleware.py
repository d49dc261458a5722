"""
HTTP middleware applying the general rate limit to every API path.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.logging import get_logger, get_request_id
from ..domain.rejections import from_rate_limit
from .limiter import RateLimiter
from .policies import GENERAL


def get_client_address(request: Request) -> str:
    """Client address, honouring proxy headers."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Refuses over-limit requests under ``path_prefix`` before routing."""

    def __init__(self, app, limiter: RateLimiter, policy_name: str = GENERAL, path_prefix: str = "/api/"):
        super().__init__(app)
        self.limiter = limiter
        self.policy_name = policy_name
        self.path_prefix = path_prefix
        self.logger = get_logger("access.rate_limit_middleware")

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        address = get_client_address(request)
        result = await self.limiter.consume(self.policy_name, f"ip:{address}")
        if not result.allowed:
            exc = from_rate_limit(result).to_exception()
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response(get_request_id()).render(),
                headers=exc.headers,
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(result.policy.capacity)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_in_seconds)
        return response
