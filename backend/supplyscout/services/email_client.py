"""
Email provider client (Resend).

WHAT: Send outreach emails and fetch inbound replies by id
WHY: Supplier outreach and reply ingestion both go through the email provider
HOW: httpx AsyncClient against the Resend REST API, same retry/backoff
     policy as the LLM providers; singleton accessor like the provider factory
"""

import asyncio
from typing import Any

import httpx

from ..core.config import settings
from ..utils.exceptions import EmailDeliveryError, EmailNotConfiguredError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ResendEmailClient:
    """Thin async wrapper over the Resend API."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        sender: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None
    ):
        self.api_key = settings.RESEND_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.RESEND_BASE_URL).rstrip("/")
        self.sender = sender or settings.EMAIL_FROM
        self.max_retries = max(1, settings.EMAIL_MAX_RETRIES if max_retries is None else max_retries)
        self.retry_delay = settings.LLM_RETRY_DELAY if retry_delay is None else retry_delay

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(5.0, read=timeout or settings.EMAIL_TIMEOUT),
            headers=headers,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def _require_configured(self) -> None:
        if not self.configured:
            raise EmailNotConfiguredError("Email service not configured: RESEND_API_KEY is not set")

    async def send_email(self, to: str, subject: str, text: str) -> str:
        """
        Send a plain-text email.

        Returns:
            Provider message id

        Raises:
            EmailNotConfiguredError: No API key
            EmailDeliveryError: Provider rejected the message or is unreachable
        """
        self._require_configured()
        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": text,
        }
        data = await self._request("POST", "/emails", json=payload)
        message_id = data.get("id", "")
        logger.info(f"Email sent to {to} (id: {message_id}, subject: {subject!r})")
        return message_id

    async def get_received_email(self, email_id: str) -> dict[str, Any]:
        """
        Fetch an inbound email whose webhook payload carried no body.

        Raises:
            EmailNotConfiguredError: No API key
            EmailDeliveryError: Lookup failed
        """
        self._require_configured()
        return await self._request("GET", f"/emails/receiving/{email_id}")

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        for attempt in range(self.max_retries):
            try:
                response = await self.client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                logger.warning(f"Email provider timeout (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise EmailDeliveryError(f"Email provider timed out after {self.max_retries} attempts") from e

            except httpx.ConnectError as e:
                logger.error(f"Email provider unreachable (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise EmailDeliveryError("Email provider is not reachable") from e

            except httpx.RequestError as e:
                logger.error(
                    f"Email provider transport error {type(e).__name__} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                if attempt == self.max_retries - 1:
                    raise EmailDeliveryError(f"Email provider connection failed: {type(e).__name__}") from e

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code < 500:
                    raise EmailDeliveryError(f"HTTP {status_code}: {e.response.text}") from e
                logger.error(f"Email provider server error {status_code} (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise EmailDeliveryError(f"Email provider server error: {status_code}") from e

            except ValueError as e:
                raise EmailDeliveryError(f"Invalid response from email provider: {e}") from e

            await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise EmailDeliveryError("No response from email provider")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()


_email_client: ResendEmailClient | None = None


def get_email_client() -> ResendEmailClient:
    """Email client singleton."""
    global _email_client
    if _email_client is None:
        _email_client = ResendEmailClient()
        if not _email_client.configured:
            logger.warning("RESEND_API_KEY is not set; outreach tools will report a configuration error")
    return _email_client


def reset_email_client() -> None:
    """Reset the email client singleton (useful for testing)."""
    global _email_client
    _email_client = None
