from middleware.rate_limiter import limiter, get_user_id
from core.config import settings
from services.token_service import TokenService
from starlette.requests import Request
from tests.conftest import TEST_PASSWORD


def make_request(headers: dict) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("10.0.0.1", 1234),
    }
    return Request(scope)


def test_rate_limiter_disabled_in_testing():
    """Verify rate limiter is disabled during tests."""

    assert settings.ENV == "testing"
    assert limiter.enabled is False


def test_rate_limit_key_uses_access_token_subject():
    token = TokenService.create_access_token(user_id=12)

    assert get_user_id(make_request({"Authorization": f"Bearer {token}"})) == "user:12"


def test_rate_limit_key_falls_back_to_ip():
    refresh_token, _ = TokenService.create_refresh_token(user_id=12)

    assert get_user_id(make_request({})) == "10.0.0.1"
    assert get_user_id(make_request({"Authorization": "Bearer garbage"})) == "10.0.0.1"
    assert get_user_id(make_request({"Authorization": f"Bearer {refresh_token}"})) == "10.0.0.1"


async def test_can_make_multiple_requests_in_tests(client, approved_user):
    """Verify rate limiting doesn't interfere with tests."""
    # Make 10 login requests (normally limited to 5/min)
    for i in range(10):
        response = await client.post("/auth/login", json={
            "email": approved_user.email,
            "password": TEST_PASSWORD
        })
        assert response.status_code == 200
