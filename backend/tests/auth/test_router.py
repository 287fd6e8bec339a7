import pytest
from unittest.mock import AsyncMock

from blog_auth.main import app
from blog_auth.auth.dependencies import get_notifier
from blog_auth.core.interfaces import NotificationResult


@pytest.fixture
def user_data():
    """Sample registration payload for testing."""
    return {
        "name": "Test User",
        "email": "test@example.com",
        "phone": "5551234567",
        "password": "SecurePass123!",
    }


@pytest.fixture
def mock_notifier():
    """Replace the email notifier with a mock that reports delivery."""
    notifier = AsyncMock()
    notifier.send_password_reset.return_value = NotificationResult(delivered=True)
    app.dependency_overrides[get_notifier] = lambda: notifier
    return notifier


async def register_and_login(test_client, user_data) -> dict:
    """Helper to register a user and return the login response body."""
    await test_client.post("/auth/register", json=user_data)
    response = await test_client.post(
        "/auth/login",
        json={"email": user_data["email"], "password": user_data["password"]},
    )
    assert response.status_code == 200
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Register
# =============================================================================


@pytest.mark.asyncio
async def test_register_endpoint_creates_identity(test_client, user_data):
    """Test POST /auth/register creates a logged-out identity."""
    response = await test_client.post("/auth/register", json=user_data)

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == user_data["email"]
    assert data["name"] == user_data["name"]
    assert data["status"] == "logged_out"
    assert "id" in data
    assert "password" not in data
    assert "secret_hash" not in data
    assert "access_token" not in data


@pytest.mark.asyncio
async def test_register_endpoint_returns_422_for_invalid_data(test_client):
    """Test POST /auth/register returns 422 for invalid data."""
    response = await test_client.post(
        "/auth/register",
        json={"name": "", "email": "invalid-email", "password": "pass"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_endpoint_returns_422_for_multibyte_password_over_72_bytes(
    test_client, user_data
):
    """Test POST /auth/register rejects a 40-character, 80-byte password."""
    response = await test_client.post(
        "/auth/register", json={**user_data, "password": "\u00e9" * 40}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_endpoint_returns_409_for_existing_email(test_client, user_data):
    """Test POST /auth/register returns 409 for duplicate email."""
    await test_client.post("/auth/register", json=user_data)

    response = await test_client.post("/auth/register", json=user_data)

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_register_endpoint_returns_409_for_existing_phone(test_client, user_data):
    """Test POST /auth/register returns 409 for a phone already in use."""
    await test_client.post("/auth/register", json=user_data)

    response = await test_client.post(
        "/auth/register", json={**user_data, "email": "other@example.com"}
    )

    assert response.status_code == 409


# =============================================================================
# Login
# =============================================================================


@pytest.mark.asyncio
async def test_login_endpoint_returns_tokens(test_client, user_data):
    """Test POST /auth/login returns tokens and the logged-in identity."""
    data = await register_and_login(test_client, user_data)

    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert data["user"]["status"] == "logged_in"
    assert "secret_hash" not in data["user"]


@pytest.mark.asyncio
async def test_login_endpoint_accepts_phone(test_client, user_data):
    """Test POST /auth/login with a phone number."""
    await test_client.post("/auth/register", json=user_data)

    response = await test_client.post(
        "/auth/login",
        json={"phone": user_data["phone"], "password": user_data["password"]},
    )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_login_endpoint_requires_exactly_one_identifier(test_client, user_data):
    """Test POST /auth/login returns 422 without email or phone."""
    response = await test_client.post("/auth/login", json={"password": "whatever"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_endpoint_returns_401_for_bad_credentials(test_client, user_data):
    """Unknown email and wrong password give the same 401 response."""
    await test_client.post("/auth/register", json=user_data)

    wrong_password = await test_client.post(
        "/auth/login",
        json={"email": user_data["email"], "password": "WrongPassword!"},
    )
    unknown_email = await test_client.post(
        "/auth/login",
        json={"email": "nobody@example.com", "password": user_data["password"]},
    )

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


@pytest.mark.asyncio
async def test_login_endpoint_is_rate_limited(test_client, user_data):
    """Test POST /auth/login returns 429 with Retry-After once the limit is hit."""
    payload = {"email": user_data["email"], "password": "WrongPassword!"}
    for _ in range(5):
        await test_client.post("/auth/login", json=payload)

    response = await test_client.post("/auth/login", json=payload)

    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) > 0


# =============================================================================
# Me / logout / refresh
# =============================================================================


@pytest.mark.asyncio
async def test_me_endpoint_returns_current_identity(test_client, user_data):
    """Test GET /auth/me returns the identity behind the access token."""
    tokens = await register_and_login(test_client, user_data)

    response = await test_client.get("/auth/me", headers=bearer(tokens["access_token"]))

    assert response.status_code == 200
    assert response.json()["email"] == user_data["email"]


@pytest.mark.asyncio
async def test_me_endpoint_rejects_refresh_token(test_client, user_data):
    """Test GET /auth/me does not accept a refresh token."""
    tokens = await register_and_login(test_client, user_data)

    response = await test_client.get("/auth/me", headers=bearer(tokens["refresh_token"]))

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_me_endpoint_requires_token(test_client):
    """Test GET /auth/me without a bearer token is rejected."""
    response = await test_client.get("/auth/me")

    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_logout_revokes_issued_tokens(test_client, user_data):
    """Test POST /auth/logout invalidates both access and refresh tokens."""
    tokens = await register_and_login(test_client, user_data)

    response = await test_client.post("/auth/logout", headers=bearer(tokens["access_token"]))
    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}

    me = await test_client.get("/auth/me", headers=bearer(tokens["access_token"]))
    refreshed = await test_client.post(
        "/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert me.status_code == 401
    assert refreshed.status_code == 401


@pytest.mark.asyncio
async def test_refresh_endpoint_returns_new_access_token(test_client, user_data):
    """Test POST /auth/refresh returns a working access token."""
    tokens = await register_and_login(test_client, user_data)

    response = await test_client.post(
        "/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )

    assert response.status_code == 200
    access_token = response.json()["access_token"]
    me = await test_client.get("/auth/me", headers=bearer(access_token))
    assert me.status_code == 200


@pytest.mark.asyncio
async def test_refresh_endpoint_rejects_access_token(test_client, user_data):
    """Test POST /auth/refresh does not accept an access token."""
    tokens = await register_and_login(test_client, user_data)

    response = await test_client.post(
        "/auth/refresh", json={"refresh_token": tokens["access_token"]}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_endpoint_rejects_garbage(test_client):
    """Test POST /auth/refresh returns 401 for a malformed token."""
    response = await test_client.post("/auth/refresh", json={"refresh_token": "not-a-jwt"})

    assert response.status_code == 401


# =============================================================================
# Password reset
# =============================================================================


@pytest.mark.asyncio
async def test_forgot_password_sends_token(test_client, user_data, mock_notifier):
    """Test POST /auth/forgot-password sends one reset email."""
    await test_client.post("/auth/register", json=user_data)

    response = await test_client.post(
        "/auth/forgot-password", json={"email": user_data["email"]}
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Password reset token has been sent to your email"}
    mock_notifier.send_password_reset.assert_awaited_once()


@pytest.mark.asyncio
async def test_forgot_password_unknown_email_looks_the_same(test_client, mock_notifier):
    """Test POST /auth/forgot-password does not reveal unknown emails."""
    response = await test_client.post(
        "/auth/forgot-password", json={"email": "nobody@example.com"}
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Password reset token has been sent to your email"}
    mock_notifier.send_password_reset.assert_not_awaited()


@pytest.mark.asyncio
async def test_forgot_password_returns_500_when_email_fails(test_client, user_data, mock_notifier):
    """Test POST /auth/forgot-password surfaces delivery failures."""
    mock_notifier.send_password_reset.return_value = NotificationResult(delivered=False)
    await test_client.post("/auth/register", json=user_data)

    response = await test_client.post(
        "/auth/forgot-password", json={"email": user_data["email"]}
    )

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_reset_password_changes_password(test_client, user_data, mock_notifier):
    """Test the full forgot/reset flow swaps the accepted password."""
    await test_client.post("/auth/register", json=user_data)
    await test_client.post("/auth/forgot-password", json={"email": user_data["email"]})
    reset_token = mock_notifier.send_password_reset.call_args[0][1]

    response = await test_client.post(
        "/auth/reset-password",
        json={
            "token": reset_token,
            "password": "BrandNewPass456!",
            "confirm_password": "BrandNewPass456!",
        },
    )
    assert response.status_code == 200

    old_login = await test_client.post(
        "/auth/login", json={"email": user_data["email"], "password": user_data["password"]}
    )
    new_login = await test_client.post(
        "/auth/login", json={"email": user_data["email"], "password": "BrandNewPass456!"}
    )
    assert old_login.status_code == 401
    assert new_login.status_code == 200


@pytest.mark.asyncio
async def test_reset_password_rejects_mismatched_confirmation(test_client):
    """Test POST /auth/reset-password returns 422 when passwords differ."""
    response = await test_client.post(
        "/auth/reset-password",
        json={"token": "x", "password": "BrandNewPass456!", "confirm_password": "Different456!"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reset_password_rejects_access_token(test_client, user_data):
    """Test POST /auth/reset-password does not accept an access token."""
    tokens = await register_and_login(test_client, user_data)

    response = await test_client.post(
        "/auth/reset-password",
        json={
            "token": tokens["access_token"],
            "password": "BrandNewPass456!",
            "confirm_password": "BrandNewPass456!",
        },
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_reset_password_rejects_multibyte_password_over_72_bytes(test_client):
    """Test POST /auth/reset-password rejects passwords bcrypt cannot hash."""
    password = "é" * 40

    response = await test_client.post(
        "/auth/reset-password",
        json={"token": "x", "password": password, "confirm_password": password},
    )

    assert response.status_code == 422
