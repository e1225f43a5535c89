"""HTTP email API delivery channel (SendGrid v3 ``mail/send`` payload)."""

import logging

import httpx

from ..models.results import SendResult

logger = logging.getLogger(__name__)


def build_payload(sender: str, to: str, subject: str, body: str) -> dict:
    return {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": sender},
        "subject": subject,
        "content": [{"type": "text/plain", "value": body}],
    }


class HttpEmailChannel:
    """Posts one JSON request per recipient to an email API."""

    name = "http"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            api_url: Full URL of the send endpoint
            api_key: Bearer token for the API
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (tests inject MockTransport)
        """
        self.api_url = api_url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        )

    async def send(self, sender: str, to: str, subject: str, body: str) -> SendResult:
        try:
            response = await self._client.post(self.api_url, json=build_payload(sender, to, subject, body))
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.error(f"Email API timeout sending to {to}")
            return SendResult(ok=False, detail="timeout")
        except httpx.HTTPStatusError as e:
            logger.error(f"Email API HTTP error {e.response.status_code} sending to {to}: {e.response.text[:200]}")
            return SendResult(ok=False, detail=f"HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Email API error sending to {to}: {type(e).__name__}: {e}")
            return SendResult(ok=False, detail=type(e).__name__)

        message_id = response.headers.get("X-Message-Id")
        logger.debug(f"Email API accepted message to {to} (status {response.status_code}, id {message_id})")
        return SendResult(ok=True, detail=message_id)

    async def close(self) -> None:
        await self._client.aclose()
