"""
Shared utilities for the access layer.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and the error envelope
- circuit_breaker: Resilient external call protection
- base_service: FastAPI app skeleton with health, metrics and error handlers

Do not import from service packages into shared/.
"""
