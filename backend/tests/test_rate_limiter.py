"""
Tests for app/core/rate_limiter.py - Rate limiting functionality.
"""
from unittest.mock import MagicMock, patch


class TestGetRealClientIP:
    """Test real client IP extraction."""

    def test_extracts_from_x_forwarded_for(self):
        """Should extract first IP from X-Forwarded-For header."""
        from app.core.rate_limiter import get_real_client_ip

        mock_request = MagicMock()
        mock_request.headers = {"X-Forwarded-For": "203.0.113.1, 198.51.100.1, 192.0.2.1"}

        ip = get_real_client_ip(mock_request)

        assert ip == "203.0.113.1"

    def test_extracts_from_x_real_ip(self):
        """Should extract from X-Real-IP if X-Forwarded-For not present."""
        from app.core.rate_limiter import get_real_client_ip

        mock_request = MagicMock()
        mock_request.headers = {"X-Real-IP": "203.0.113.2"}

        ip = get_real_client_ip(mock_request)

        assert ip == "203.0.113.2"

    def test_falls_back_to_direct_ip(self):
        """Should fall back to direct connection IP."""
        from app.core.rate_limiter import get_real_client_ip

        mock_request = MagicMock()
        mock_request.headers = {}

        with patch('app.core.rate_limiter.get_remote_address', return_value="192.168.1.100"):
            ip = get_real_client_ip(mock_request)

        assert ip == "192.168.1.100"

    def test_strips_whitespace(self):
        """Should strip whitespace from extracted IP."""
        from app.core.rate_limiter import get_real_client_ip

        mock_request = MagicMock()
        mock_request.headers = {"X-Forwarded-For": "  203.0.113.1  , 198.51.100.1"}

        ip = get_real_client_ip(mock_request)

        assert ip == "203.0.113.1"


def _limited_request(method: str = "POST", path: str = "/api/v1/auth/login") -> MagicMock:
    request = MagicMock()
    request.method = method
    request.url.path = path
    request.headers = {"X-Real-IP": "1.2.3.4"}
    return request


def _exceeded(retry_after: int) -> MagicMock:
    from slowapi.errors import RateLimitExceeded

    exc = MagicMock(spec=RateLimitExceeded)
    exc.retry_after = retry_after
    return exc


class TestRateLimits:
    """Test configured limits."""

    def test_login_limit_comes_from_settings(self):
        from app.core.config import settings
        from app.core.rate_limiter import RateLimits

        assert RateLimits.AUTH_LOGIN == settings.RATE_LIMIT_LOGIN

    def test_registration_is_throttled(self):
        from app.core.rate_limiter import RateLimits

        assert RateLimits.AUTH_REGISTER == "5/minute"


class TestRateLimitExceededHandler:
    """Test custom rate limit exceeded handler."""

    def test_returns_429_response(self):
        from app.core.rate_limiter import rate_limit_exceeded_handler

        response = rate_limit_exceeded_handler(_limited_request(), _exceeded(30))

        assert response.status_code == 429

    def test_includes_retry_after_header(self):
        from app.core.rate_limiter import rate_limit_exceeded_handler

        response = rate_limit_exceeded_handler(_limited_request("GET", "/api/v1/tasks/"), _exceeded(45))

        assert response.headers["Retry-After"] == "45"

    def test_returns_json_body(self):
        """Should use the same error fields as the rest of the API."""
        import json

        from app.core.rate_limiter import rate_limit_exceeded_handler

        response = rate_limit_exceeded_handler(_limited_request(), _exceeded(60))

        body = json.loads(response.body)
        assert body["code"] == "rate_limited"
        assert "60 seconds" in body["detail"]

    def test_logs_client(self, caplog):
        import logging

        from app.core.rate_limiter import rate_limit_exceeded_handler

        with caplog.at_level(logging.WARNING, logger="hse.rate_limiter"):
            rate_limit_exceeded_handler(_limited_request(), _exceeded(60))

        assert "1.2.3.4" in caplog.text


class TestLimiterConfiguration:
    """Test limiter configuration."""

    def test_limiter_has_default_limits(self):
        from app.core.rate_limiter import limiter

        assert limiter._default_limits

    def test_limiter_keys_by_client_ip(self):
        from app.core.rate_limiter import get_real_client_ip, limiter

        assert limiter._key_func is get_real_client_ip
