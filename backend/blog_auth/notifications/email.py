"""Transactional email client for password reset messages.

Messages are posted as JSON to an HTTP mail API authenticated with a bearer key.
"""

import logging
from datetime import timedelta
from html import escape
from urllib.parse import quote

import httpx

from blog_auth.config import get_settings
from blog_auth.core.interfaces import INotificationPort, NotificationResult

logger = logging.getLogger(__name__)

DEFAULT_RESET_LINK_TTL = timedelta(hours=1)


def describe_ttl(ttl: timedelta) -> str:
    """Human-readable lifetime, e.g. '1 hour' or '30 minutes'."""
    minutes = max(1, int(ttl.total_seconds() // 60))
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


def build_reset_link(frontend_url: str, token: str) -> str:
    return f"{frontend_url.rstrip('/')}/reset-password?token={quote(token, safe='')}"


def render_password_reset_text(
    display_name: str, reset_link: str, app_name: str, expires_in: str
) -> str:
    return (
        f"Hello {display_name},\n\n"
        "You requested to reset your password. Click the link below to reset it:\n\n"
        f"{reset_link}\n\n"
        f"This link will expire in {expires_in}.\n\n"
        "If you didn't request this, please ignore this email.\n\n"
        f"Best regards,\n{app_name} Team"
    )


def render_password_reset_html(
    display_name: str, reset_link: str, app_name: str, expires_in: str
) -> str:
    return (
        "<!DOCTYPE html><html lang=\"en\"><body style=\"font-family: Arial, sans-serif;\">"
        f"<h1>Reset Your Password</h1>"
        f"<p>Hello {escape(display_name)},</p>"
        "<p>You requested to reset your password. Click the button below to reset it:</p>"
        f"<p><a href=\"{escape(reset_link)}\" style=\"background-color: #2563eb; color: #ffffff; "
        "padding: 12px 24px; border-radius: 6px; text-decoration: none;\">Reset Password</a></p>"
        f"<p>This link will expire in {expires_in}.</p>"
        "<p>If you didn't request this, please ignore this email.</p>"
        f"<p>Best regards,<br>{app_name} Team</p>"
        "</body></html>"
    )


class HttpEmailNotifier(INotificationPort):
    """Client for an HTTP transactional email API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        sender_name: str,
        frontend_url: str,
        link_ttl: timedelta = DEFAULT_RESET_LINK_TTL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the email client.

        Args:
            api_url: Endpoint that accepts a JSON message
            api_key: Bearer key for the email API
            sender: From address
            sender_name: Display name of the sender, also used in the signature
            frontend_url: Base URL of the frontend that serves /reset-password
            link_ttl: Lifetime of the reset token, quoted in the message
            transport: Optional httpx transport (used by tests)
        """
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._sender_name = sender_name
        self._frontend_url = frontend_url
        self._link_ttl = link_ttl
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_url and self._api_key and self._sender)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=15.0,
                transport=self._transport,
                headers={
                    "Accept": "application/json",
                    "Authorization": f"Bearer {self._api_key}",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send_password_reset(
        self, email: str, token: str, display_name: str
    ) -> NotificationResult:
        if not self.is_configured:
            logger.error("Email API not configured, cannot send password reset email")
            return NotificationResult(delivered=False)

        reset_link = build_reset_link(self._frontend_url, token)
        expires_in = describe_ttl(self._link_ttl)
        message = {
            "from": {"email": self._sender, "name": self._sender_name},
            "to": [{"email": email}],
            "subject": f"Reset Your Password - {self._sender_name}",
            "text": render_password_reset_text(
                display_name, reset_link, self._sender_name, expires_in
            ),
            "html": render_password_reset_html(
                display_name, reset_link, self._sender_name, expires_in
            ),
        }

        try:
            client = await self._get_client()
            response = await client.post(self._api_url, json=message)
        except httpx.HTTPError as e:
            logger.error(f"Email API request failed: {e}")
            return NotificationResult(delivered=False)

        if response.is_success:
            logger.info("Password reset email accepted by email API")
            return NotificationResult(delivered=True)

        if response.status_code == 401:
            logger.error("Email API: Invalid API key")
        elif response.status_code == 429:
            logger.warning("Email API: Rate limit exceeded")
        else:
            logger.error(f"Email API error: {response.status_code} - {response.text}")
        return NotificationResult(delivered=False)


# =============================================================================
# Singleton instance
# =============================================================================

_email_notifier: HttpEmailNotifier | None = None


def get_email_notifier() -> HttpEmailNotifier:
    """Get singleton email notifier instance."""
    global _email_notifier
    if _email_notifier is None:
        settings = get_settings()
        _email_notifier = HttpEmailNotifier(
            api_url=settings.email_api_url,
            api_key=settings.email_api_key,
            sender=settings.email_from,
            sender_name=settings.email_from_name,
            frontend_url=settings.frontend_url,
            link_ttl=timedelta(minutes=settings.password_reset_token_expire_minutes),
        )
    return _email_notifier


async def close_email_notifier() -> None:
    """Close the singleton's HTTP client, if any."""
    if _email_notifier is not None:
        await _email_notifier.close()
