"""
Access service for the AI companion API.

The service fronts the AI-proxy endpoints and the account flows, enforcing:
- Session authentication: signed access/refresh tokens
- Account admission: active, not locked, e-mail verified where required
- Usage quotas: per-plan daily/monthly call budgets
- Rate limiting: fixed-window-with-block policies per endpoint class

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.tokens: Token codec for access and refresh tokens.
- app.accounts: Account model, stores (memory, MongoDB), gate, credentials.
- app.quota: Plan limits, calendar windows and the usage ledger.
- app.ratelimit: Policies, counter stores (memory, Redis), limiter, middleware.
- app.domain: The admission pipeline and its FastAPI dependency.
- app.adapters: HTTP client for the AI provider.
"""
