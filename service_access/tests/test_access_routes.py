"""
Tests for the access service HTTP routes.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from shared.errors import ExternalServiceError
from service_access.app.main import AccessService
from service_access.app.ratelimit.stores import MemoryRateLimitStore
from service_access.app.tokens.codec import TokenPurpose
from service_access.tests.support import NOW, PASSWORD

CHAT_BODY = {"messages": [{"role": "user", "content": "Hello there"}]}


@pytest.fixture
def ai_client():
    client = AsyncMock()
    client.chat_completion.return_value = {
        "model": "gpt-4o-mini",
        "choices": [{"message": {"role": "assistant", "content": "Hi!"}}],
        "usage": {"total_tokens": 12},
    }
    client.analyze_mood.return_value = {"primaryEmotion": "joy", "moodScore": 80}
    return client


@pytest.fixture
def service(config, store, clock, monotonic, ai_client):
    return AccessService(
        config,
        account_store=store,
        rate_limit_store=MemoryRateLimitStore(clock=monotonic),
        ai_client=ai_client,
        clock=clock,
    )


@pytest.fixture
def client(service):
    return TestClient(service.app)


def auth_headers(service, account_id, purpose=TokenPurpose.ACCESS):
    return {"Authorization": f"Bearer {service.codec.issue(account_id, purpose)}"}


def load(store, account_id):
    return asyncio.run(store.load_by_id(account_id))


class TestServiceEndpoints:
    """Test cases for root, health and metrics."""

    def test_root_endpoint(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "access"
        assert data["version"] == "1.0.0"

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"account_store": "ok", "rate_limit_store": "ok"}

    def test_metrics_endpoint(self, client):
        client.get("/")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestAuthRoutes:
    """Test cases for /api/auth routes."""

    def test_register(self, client, store):
        response = client.post("/api/auth/register", json={
            "email": "New@Example.com",
            "password": "long-enough-password",
            "firstName": "Ada",
            "lastName": "Lovelace",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["subscription"] == {"plan": "free"}
        assert data["tokens"]["expiresIn"] == 7 * 24 * 3600
        assert "password" not in data["user"]

    def test_register_duplicate_email(self, client, make_account):
        make_account(email="taken@example.com")

        response = client.post("/api/auth/register", json={
            "email": "taken@example.com",
            "password": "long-enough-password",
            "firstName": "A",
            "lastName": "B",
        })

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EMAIL_EXISTS"

    def test_register_missing_fields(self, client):
        response = client.post("/api/auth/register", json={"email": "a@example.com"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_FIELDS"

    def test_register_weak_password(self, client):
        response = client.post("/api/auth/register", json={
            "email": "a@example.com",
            "password": "short",
            "firstName": "A",
            "lastName": "B",
        })

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "WEAK_PASSWORD"

    def test_registration_disabled(self, config, store, clock, ai_client):
        config.enable_registration = False
        client = TestClient(AccessService(config, account_store=store, ai_client=ai_client, clock=clock).app)

        response = client.post("/api/auth/register", json={
            "email": "a@example.com",
            "password": "long-enough-password",
            "firstName": "A",
            "lastName": "B",
        })

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "REGISTRATION_DISABLED"

    def test_registration_rate_limited(self, client):
        body = {"email": "a@example.com", "password": "short"}
        for _ in range(3):
            assert client.post("/api/auth/register", json=body).status_code == 400

        response = client.post("/api/auth/register", json=body)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3600"
        error = response.json()["error"]
        assert error["code"] == "RATE_LIMIT_EXCEEDED"
        assert error["retryAfter"] == 3600
        assert "suggestion" in error

    def test_login(self, client, store, make_account):
        account = make_account(login_attempts=2)

        response = client.post("/api/auth/login", json={"email": "user@example.com", "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["user"]["id"] == account.id
        stored = load(store, account.id)
        assert stored.login_attempts == 0
        assert stored.last_login_at == NOW

    def test_login_wrong_password(self, client, store, make_account):
        account = make_account()

        response = client.post("/api/auth/login", json={"email": "user@example.com", "password": "nope-nope"})

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "INVALID_CREDENTIALS"
        assert error["suggestion"] == "Please check your authentication token and try again"
        assert load(store, account.id).login_attempts == 1

    def test_login_locked_account(self, client, make_account):
        make_account(login_attempts=5, lockout_until=NOW + timedelta(minutes=10))

        response = client.post("/api/auth/login", json={"email": "user@example.com", "password": PASSWORD})

        assert response.status_code == 423
        assert response.json()["error"]["code"] == "ACCOUNT_LOCKED"

    def test_refresh(self, client, service, make_account):
        account = make_account()
        refresh_token = service.codec.issue(account.id, TokenPurpose.REFRESH)

        response = client.post("/api/auth/refresh", json={"refreshToken": refresh_token})

        assert response.status_code == 200
        tokens = response.json()["tokens"]
        assert service.codec.verify(tokens["accessToken"], TokenPurpose.ACCESS).account_id == account.id

    def test_refresh_rejects_access_token(self, client, service, make_account):
        account = make_account()
        access_token = service.codec.issue(account.id, TokenPurpose.ACCESS)

        response = client.post("/api/auth/refresh", json={"refreshToken": access_token})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_REFRESH_TOKEN"

    def test_refresh_for_deactivated_account(self, client, service, make_account):
        account = make_account(is_active=False)

        response = client.post("/api/auth/refresh", json={
            "refreshToken": service.codec.issue(account.id, TokenPurpose.REFRESH),
        })

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"

    def test_me(self, client, service, make_account):
        account = make_account()

        response = client.get("/api/auth/me", headers=auth_headers(service, account.id))

        assert response.status_code == 200
        assert response.json()["user"]["email"] == "user@example.com"

    def test_me_without_token(self, client):
        response = client.get("/api/auth/me", headers={"X-Request-ID": "req-9"})

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "AUTH_HEADER_MISSING"
        assert error["requestId"] == "req-9"

    def test_me_deactivated(self, client, service, make_account):
        account = make_account(is_active=False)

        response = client.get("/api/auth/me", headers=auth_headers(service, account.id))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "ACCOUNT_DEACTIVATED"

    def test_logout(self, client, service, make_account):
        account = make_account()

        response = client.post("/api/auth/logout", headers=auth_headers(service, account.id))

        assert response.status_code == 200

    def test_update_profile(self, client, service, store, make_account):
        account = make_account()

        response = client.put(
            "/api/auth/profile",
            json={"firstName": " Ada ", "lastName": "Lovelace", "email": "evil@example.com", "plan": "enterprise"},
            headers=auth_headers(service, account.id),
        )

        assert response.status_code == 200
        user = response.json()["user"]
        assert (user["firstName"], user["lastName"]) == ("Ada", "Lovelace")
        stored = load(store, account.id)
        assert stored.email == "user@example.com"
        assert stored.plan.value == "free"
        assert stored.first_name == "Ada"

    def test_update_profile_without_allowed_fields(self, client, service, make_account):
        account = make_account()

        for body in ({}, {"email": "evil@example.com"}, {"firstName": "   "}):
            response = client.put("/api/auth/profile", json=body, headers=auth_headers(service, account.id))

            assert response.status_code == 400
            assert response.json()["error"]["code"] == "NO_UPDATES"

    def test_update_profile_requires_token(self, client):
        response = client.put("/api/auth/profile", json={"firstName": "Ada"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_HEADER_MISSING"

    def test_change_password(self, client, service, make_account):
        account = make_account()

        response = client.put(
            "/api/auth/password",
            json={"currentPassword": PASSWORD, "newPassword": "a-brand-new-password"},
            headers=auth_headers(service, account.id),
        )

        assert response.status_code == 200
        login = client.post("/api/auth/login", json={"email": "user@example.com", "password": "a-brand-new-password"})
        assert login.status_code == 200

    def test_change_password_wrong_current(self, client, service, make_account):
        account = make_account()

        response = client.put(
            "/api/auth/password",
            json={"currentPassword": "not-it-at-all", "newPassword": "a-brand-new-password"},
            headers=auth_headers(service, account.id),
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INCORRECT_PASSWORD"

    def test_delete_requires_confirmation(self, client, service, make_account):
        account = make_account()

        response = client.request("DELETE", "/api/auth/account", json={}, headers=auth_headers(service, account.id))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CONFIRMATION_REQUIRED"

    def test_delete_checks_password_when_given(self, client, service, store, make_account):
        account = make_account()

        response = client.request(
            "DELETE",
            "/api/auth/account",
            json={"password": "not-it-at-all", "confirmation": "DELETE_MY_ACCOUNT"},
            headers=auth_headers(service, account.id),
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INCORRECT_PASSWORD"
        assert load(store, account.id).is_active

    def test_delete_with_confirmation_only(self, client, service, store, make_account):
        account = make_account()

        response = client.request(
            "DELETE",
            "/api/auth/account",
            json={"confirmation": "DELETE_MY_ACCOUNT"},
            headers=auth_headers(service, account.id),
        )

        assert response.status_code == 200
        assert not load(store, account.id).is_active

    def test_delete_account(self, client, service, store, make_account):
        account = make_account()
        headers = auth_headers(service, account.id)

        response = client.request(
            "DELETE",
            "/api/auth/account",
            json={"password": PASSWORD, "confirmation": "DELETE_MY_ACCOUNT"},
            headers=headers,
        )

        assert response.status_code == 200
        stored = load(store, account.id)
        assert not stored.is_active
        assert stored.email == f"deleted_{int(NOW.timestamp() * 1000)}_user@example.com"
        assert client.get("/api/auth/me", headers=headers).json()["error"]["code"] == "ACCOUNT_DEACTIVATED"


class TestMeteredRoutes:
    """Test cases for the AI-proxy routes."""

    def test_chat_completion_commits_usage(self, client, service, store, ai_client, make_account):
        account = make_account(daily=5, monthly=5)

        response = client.post("/api/chat/completions", json=CHAT_BODY, headers=auth_headers(service, account.id))

        assert response.status_code == 200
        assert response.json()["message"]["content"] == "Hi!"
        ai_client.chat_completion.assert_awaited_once()
        usage = load(store, account.id).usage
        assert (usage.daily, usage.monthly, usage.total) == (6, 6, 6)

    def test_daily_quota_exceeded(self, client, service, store, ai_client, make_account):
        account = make_account(daily=50, monthly=50)

        response = client.post("/api/chat/completions", json=CHAT_BODY, headers=auth_headers(service, account.id))

        assert response.status_code == 429
        assert response.headers["Retry-After"] == str(12 * 3600)
        error = response.json()["error"]
        assert error["code"] == "DAILY_API_LIMIT_EXCEEDED"
        assert error["limits"] == {"daily": 50, "monthly": 1000}
        assert error["current"] == {"daily": 50, "monthly": 50}
        assert error["resetTime"].startswith("2024-05-16T00:00:00")
        ai_client.chat_completion.assert_not_awaited()
        assert load(store, account.id).usage.daily == 50

    def test_failed_handler_does_not_commit(self, client, service, store, ai_client, make_account):
        account = make_account(daily=5, monthly=5)
        ai_client.chat_completion.side_effect = ExternalServiceError(
            "ai_provider", "AI chat service error", code="AI_SERVICE_ERROR"
        )

        response = client.post("/api/chat/completions", json=CHAT_BODY, headers=auth_headers(service, account.id))

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "AI_SERVICE_ERROR"
        assert load(store, account.id).usage.daily == 5

    def test_invalid_body_is_validation_error(self, client, service, make_account):
        account = make_account()

        response = client.post("/api/chat/completions", json={"messages": []}, headers=auth_headers(service, account.id))

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_mood_analysis(self, client, service, make_account):
        account = make_account(is_email_verified=True)

        response = client.post("/api/mood/analyze", json={"text": "Feeling great"}, headers=auth_headers(service, account.id))

        assert response.status_code == 200
        assert response.json()["analysis"]["primaryEmotion"] == "joy"

    def test_mood_requires_verified_email_when_enabled(self, config, store, clock, ai_client, make_account):
        config.enable_email_verification = True
        service = AccessService(config, account_store=store, ai_client=ai_client, clock=clock)
        account = make_account(is_email_verified=False)

        response = TestClient(service.app).post(
            "/api/mood/analyze", json={"text": "Feeling great"}, headers=auth_headers(service, account.id)
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "EMAIL_VERIFICATION_REQUIRED"

    def test_usage_endpoint(self, client, service, make_account):
        account = make_account(daily=10, monthly=20)

        response = client.get("/api/user/usage", headers=auth_headers(service, account.id))

        assert response.status_code == 200
        data = response.json()
        assert data["usage"]["daily"] == 10
        assert data["remaining"] == {"daily": 40, "monthly": 980}


class TestGeneralRateLimit:
    """Test cases for the general /api/ rate limit middleware."""

    def test_general_limit_applies_to_api_paths(self, config, store, clock, monotonic, ai_client):
        config.rate_limit_max_requests = 2
        service = AccessService(
            config,
            account_store=store,
            rate_limit_store=MemoryRateLimitStore(clock=monotonic),
            ai_client=ai_client,
            clock=clock,
        )
        client = TestClient(service.app)

        first = client.get("/api/auth/me")
        assert first.headers["X-RateLimit-Limit"] == "2"
        client.get("/api/auth/me")
        response = client.get("/api/auth/me")

        assert response.status_code == 429
        error = response.json()["error"]
        assert error["code"] == "RATE_LIMIT_EXCEEDED"
        assert error["retryAfter"] == 60
        assert error["limits"] == {"capacity": 2, "windowSeconds": 900}
        assert client.get("/health").status_code == 200

    def test_forwarded_address_is_the_key(self, config, store, clock, monotonic, ai_client):
        config.rate_limit_max_requests = 1
        client = TestClient(AccessService(
            config,
            account_store=store,
            rate_limit_store=MemoryRateLimitStore(clock=monotonic),
            ai_client=ai_client,
            clock=clock,
        ).app)

        client.get("/api/auth/me", headers={"X-Forwarded-For": "198.51.100.1, 10.0.0.1"})

        assert client.get("/api/auth/me", headers={"X-Forwarded-For": "198.51.100.1"}).status_code == 429
        assert client.get("/api/auth/me", headers={"X-Forwarded-For": "198.51.100.2"}).status_code == 401
