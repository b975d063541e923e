import logging

from httpx import AsyncClient

log = logging.getLogger("argon.email")

RESEND_URL = "https://api.resend.com/emails"


class EmailSender:
    """Sends HTML email through the Resend HTTP API."""

    def __init__(self, http: AsyncClient, api_key: str | None, from_email: str):
        self.http = http
        self.api_key = api_key
        self.from_email = from_email

    async def send_email(self, to: str, subject: str, html: str) -> str | None:
        """Sends one message and returns the provider's message id.

        Raises ``httpx.HTTPStatusError`` when the provider rejects the
        message. Without an API key nothing is sent.
        """
        if not self.api_key:
            log.warning("RESEND_API_KEY is not set; skipping email %r to %s", subject, to)
            return None

        response = await self.http.post(
            RESEND_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "from": self.from_email,
                "to": [to],
                "subject": subject,
                "html": html,
            },
        )
        response.raise_for_status()

        message_id = response.json().get("id")
        log.info("Email %r sent to %s (%s)", subject, to, message_id)
        return message_id
