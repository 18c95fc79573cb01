"""
Tests for core/rate_limiter.py - Rate limiting functionality.
"""
import json
from unittest.mock import MagicMock, patch

import pytest


class TestGetRealClientIP:
    """Test real client IP extraction."""

    def test_extracts_from_x_forwarded_for(self):
        """Should extract first IP from X-Forwarded-For header."""
        from stripe_assistant.core.rate_limiter import get_real_client_ip

        mock_request = MagicMock()
        mock_request.headers = {"X-Forwarded-For": "203.0.113.1, 198.51.100.1, 192.0.2.1"}

        assert get_real_client_ip(mock_request) == "203.0.113.1"

    def test_extracts_from_x_real_ip(self):
        from stripe_assistant.core.rate_limiter import get_real_client_ip

        mock_request = MagicMock()
        mock_request.headers = {"X-Real-IP": "203.0.113.2"}

        assert get_real_client_ip(mock_request) == "203.0.113.2"

    def test_falls_back_to_direct_ip(self):
        """Should fall back to direct connection IP."""
        from stripe_assistant.core.rate_limiter import get_real_client_ip

        mock_request = MagicMock()
        mock_request.headers = {}

        with patch("stripe_assistant.core.rate_limiter.get_remote_address", return_value="192.168.1.100"):
            ip = get_real_client_ip(mock_request)

        assert ip == "192.168.1.100"


class TestGetUserIdentifier:
    """Test user identifier extraction for rate limiting."""

    def test_uses_user_id_when_authenticated(self):
        from stripe_assistant.core.rate_limiter import get_user_identifier

        mock_request = MagicMock()
        mock_request.state.user.id = 123

        assert get_user_identifier(mock_request) == "user:123"

    def test_uses_ip_when_not_authenticated(self):
        """Should use IP prefix when no user authenticated."""
        from stripe_assistant.core.rate_limiter import get_user_identifier

        mock_request = MagicMock()
        mock_request.state = MagicMock(spec=[])  # No user attribute
        mock_request.headers = {"X-Forwarded-For": "203.0.113.5"}

        assert get_user_identifier(mock_request) == "ip:203.0.113.5"


class TestRateLimits:

    def test_login_is_strictest(self):
        from stripe_assistant.core.rate_limiter import RateLimits

        assert RateLimits.AUTH_LOGIN == "5/minute"
        assert RateLimits.AI_CHAT == "30/minute"


class TestRateLimitExceededHandler:
    """Test custom rate limit exceeded handler."""

    @pytest.fixture
    def limited_request(self):
        mock_request = MagicMock()
        mock_request.method = "POST"
        mock_request.url.path = "/api/v1/chat"
        mock_request.headers = {}
        mock_request.state = MagicMock(spec=[])
        return mock_request

    def test_returns_429_with_retry_after(self, limited_request):
        from stripe_assistant.core.rate_limiter import rate_limit_exceeded_handler

        exc = MagicMock()
        exc.retry_after = 45

        with patch("stripe_assistant.core.rate_limiter.get_user_identifier", return_value="user:1"):
            response = rate_limit_exceeded_handler(limited_request, exc)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "45"
        body = json.loads(response.body)
        assert body["error"] == "Rate limit exceeded"
        assert body["retry_after"] == 45


class TestLimiterConfiguration:

    def test_limiter_is_disabled_in_tests(self):
        """RATE_LIMIT_ENABLED=false turns the limiter off."""
        from stripe_assistant.core.rate_limiter import limiter

        assert limiter.enabled is False

    def test_limiter_enables_headers(self):
        from stripe_assistant.core.rate_limiter import limiter

        assert limiter._headers_enabled is True
