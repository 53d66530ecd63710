"""
HTTP Email Client

Sends through a Postmark-style JSON API:

    POST {base_url}/email
    X-Postmark-Server-Token: <token>
    {"From": ..., "To": ..., "Subject": ..., "HtmlBody": ..., "TextBody": ...}
"""

import logging
from typing import Optional

import httpx

from ..delivery.models import DeliveryOutcome
from .base import EmailContent, EmailTransport
from .classification import classify_exception, classify_status

logger = logging.getLogger(__name__)


class HttpEmailClient(EmailTransport):

    def __init__(
        self,
        base_url: str,
        sender: str,
        auth_token: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.sender = sender
        self._auth_token = auth_token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, recipient: str, content: EmailContent) -> DeliveryOutcome:
        payload = {
            "From": self.sender,
            "To": recipient,
            "Subject": content.title,
            "HtmlBody": content.html,
            "TextBody": content.text,
        }
        try:
            response = await self._client.post(
                f"{self.base_url}/email",
                json=payload,
                headers={"X-Postmark-Server-Token": self._auth_token},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Email API request to {recipient} failed: {type(e).__name__}: {e}")
            return classify_exception(e)

        outcome = classify_status(response.status_code, response.text)
        if not outcome.is_success:
            logger.warning(
                f"Email API rejected message to {recipient}: {outcome.kind.value} ({outcome.reason})"
            )
        return outcome

    async def aclose(self) -> None:
        await self._client.aclose()
