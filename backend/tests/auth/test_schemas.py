import pytest
from pydantic import ValidationError

from blog_auth.auth.schemas import LoginRequest, RegisterRequest, ResetPasswordRequest

LONG_MULTIBYTE = "é" * 40  # 40 characters, 80 UTF-8 bytes


def test_register_rejects_password_over_72_bytes():
    """Test that the byte length is checked, not the character count."""
    with pytest.raises(ValidationError):
        RegisterRequest(name="Ada", email="ada@example.com", password=LONG_MULTIBYTE)


def test_register_accepts_72_byte_password():
    """Test that 36 two-byte characters fit."""
    request = RegisterRequest(name="Ada", email="ada@example.com", password="é" * 36)

    assert request.password == "é" * 36


def test_reset_rejects_password_over_72_bytes():
    """Test that reset applies the same byte limit."""
    with pytest.raises(ValidationError):
        ResetPasswordRequest(
            token="t", password=LONG_MULTIBYTE, confirm_password=LONG_MULTIBYTE
        )


def test_reset_rejects_mismatched_confirmation():
    """Test that the confirmation must match."""
    with pytest.raises(ValidationError):
        ResetPasswordRequest(token="t", password="Password123", confirm_password="Password124")


@pytest.mark.parametrize(
    "payload",
    [
        {"password": "pw"},
        {"email": "ada@example.com", "phone": "5551234567", "password": "pw"},
    ],
)
def test_login_requires_exactly_one_identifier(payload):
    """Test that login takes either email or phone, not both or neither."""
    with pytest.raises(ValidationError):
        LoginRequest(**payload)
