"""Whapi WhatsApp gateway client.

`WhapiClient.send` is fire-and-forget: delivery problems are logged and
swallowed so that callers (the queue worker, ultimately the approval flow)
never see a notification failure as an exception.
"""

from __future__ import annotations

import re

import httpx

from bypass_guard.core.config import settings
from bypass_guard.core.logging import get_logger

logger = get_logger(__name__)

_NON_DIGITS = re.compile(r"\D+")
_MAX_LOGGED_BODY = 500


def normalize_recipient(raw: str) -> str:
    """Return the recipient as Whapi expects it, digits only: `+33 6 12-34` -> `3361234`."""
    return _NON_DIGITS.sub("", raw.strip().lstrip("+"))


class WhapiClient:
    """Thin httpx wrapper around `POST {base_url}/messages/text`."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        token: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url if base_url is not None else settings.whapi_base_url).rstrip("/")
        self.token = token if token is not None else settings.whapi_token
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.whapi_timeout_seconds
        )
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.token.strip())

    def send(self, to: str, body: str) -> None:
        """Send one text message; never raises."""
        if not self.configured:
            logger.warning("whapi.send.token_missing", extra={"to": to})
            return

        recipient = normalize_recipient(to)
        if not recipient:
            logger.warning("whapi.send.recipient_invalid", extra={"to": to})
            return
        try:
            with httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.post(
                    "/messages/text",
                    headers={
                        "Authorization": f"Bearer {self.token}",
                        "Content-Type": "application/json",
                    },
                    json={"to": recipient, "body": body},
                )
        except Exception as exc:
            logger.error(
                "whapi.send.failed",
                extra={"to": recipient, "error": str(exc), "error_type": type(exc).__name__},
            )
            return

        if response.is_success:
            logger.info(
                "whapi.send.succeeded",
                extra={"to": recipient, "status_code": response.status_code},
            )
            return
        logger.error(
            "whapi.send.rejected",
            extra={
                "to": recipient,
                "status_code": response.status_code,
                "body": response.text[:_MAX_LOGGED_BODY],
            },
        )
