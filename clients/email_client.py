"""
HTTP email gateway client.

Requests carry an X-API-Key header and an X-Signature header holding the
HMAC-SHA256 of the exact JSON body sent.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Send HTML emails from the clinic's billing address."""

    def __init__(
        self,
        gateway_url: str,
        api_key: str,
        hmac_secret: str,
        from_email: str,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature
            from_email: Sender address, displayed as "Clinic Name <from_email>"
            timeout: Seconds to wait for the gateway

        Raises:
            ValueError: If any credential is empty
        """
        credentials = {
            "gateway_url": gateway_url,
            "api_key": api_key,
            "hmac_secret": hmac_secret,
            "from_email": from_email,
        }
        for name, value in credentials.items():
            if not value:
                raise ValueError(f"{name} is required")

        self.gateway_url = gateway_url
        self.hmac_secret = hmac_secret
        self.from_email = from_email
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "X-API-Key": api_key,
        })

    def sign(self, body: str) -> str:
        """HMAC-SHA256 hex digest of a request body."""
        return hmac.new(
            self.hmac_secret.encode("utf-8"),
            body.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _post(self, payload: dict) -> dict:
        body = json.dumps(payload, separators=(",", ":"))

        try:
            response = self.session.post(
                self.gateway_url,
                data=body,
                headers={"X-Signature": self.sign(body)},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Email gateway unreachable: {e}")
            raise EmailGatewayError(f"Connection failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Email gateway returned non-JSON (HTTP {response.status_code})")
            raise EmailGatewayError(f"Invalid response from gateway (HTTP {response.status_code})")

        if not response.ok or not data.get("success"):
            message = data.get("message", "Unknown error")
            logger.error(f"Email gateway rejected message (HTTP {response.status_code}): {message}")
            raise EmailGatewayError(f"Gateway error: {message}")

        return data

    def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        from_name: str,
        reply_to: str | None = None,
    ) -> str | None:
        """
        Send an HTML email.

        Args:
            to: Recipient email address
            subject: Email subject line
            html: HTML body
            from_name: Display name for the sender
            reply_to: Address replies should go to, if not the sender

        Returns:
            Gateway message id, or None if the gateway did not report one

        Raises:
            ValueError: If recipient is empty
            EmailGatewayError: On gateway failure
        """
        if not to:
            raise ValueError("Recipient address is required")

        payload = {
            "type": "html",
            "from": f"{from_name} <{self.from_email}>",
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if reply_to:
            payload["reply_to"] = reply_to

        message_id = self._post(payload).get("message_id")
        logger.info(f"Email sent to {to}: {subject} (message_id={message_id})")
        return message_id
