"""Signed webhook notifications for newly synchronized files.

The payload is a plain text message in the robot-webhook format
``{"msgtype": "text", "text": {"content": ...}}``. When a secret is configured
the request is signed: the HMAC-SHA256 of ``"<timestamp>\\n<secret>"`` keyed
with the secret is base64 encoded and passed, URL-encoded, in the ``sign``
query parameter next to the millisecond ``timestamp``.
"""

import base64
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import requests

from .constants import APP_NAME, DEFAULT_HTTP_TIMEOUT

logger = logging.getLogger(APP_NAME)


class NotificationError(Exception):
    """Base class for webhook delivery errors."""


class DeliveryFailure(NotificationError):
    """The endpoint answered with a non-200 status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Webhook returned {status}: {body[:500]}")


class TransportFailure(NotificationError):
    """The request never got an HTTP answer."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Webhook request failed: {cause}")


@dataclass(frozen=True)
class NotificationPayload:
    """One outgoing notification.

    Attributes:
        message (str): The text content.
        signature (str | None): Base64 HMAC signature, when signed.
        signed_timestamp (int | None): Unix milliseconds covered by the signature.
    """

    message: str
    signature: str | None = None
    signed_timestamp: int | None = None

    def body(self) -> dict[str, Any]:
        return {"msgtype": "text", "text": {"content": self.message}}


def current_millis() -> int:
    return int(time.time() * 1000)


def generate_signature(secret: str, timestamp: int | str) -> str:
    """Computes the webhook signature for a timestamp.

    Args:
        secret (str): The shared secret, also used as the HMAC key.
        timestamp (int | str): Unix time in milliseconds.

    Returns:
        str: The base64 encoded HMAC-SHA256 digest (not URL-encoded).
    """
    string_to_sign = f"{timestamp}\n{secret}"
    digest = hmac.new(
        secret.encode("utf-8"),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("utf-8")


def build_payload(
    message: str, secret: str | None = None, timestamp: int | None = None
) -> NotificationPayload:
    """Builds a payload, signing it when a secret is given.

    Args:
        message (str): The text content.
        secret (str | None): Signing secret. Empty or None sends unsigned.
        timestamp (int | None): Milliseconds to sign. Defaults to now.
    """
    if not secret:
        return NotificationPayload(message)
    ts = current_millis() if timestamp is None else timestamp
    return NotificationPayload(message, generate_signature(secret, ts), ts)


def signed_url(endpoint: str, payload: NotificationPayload) -> str:
    """Appends the `timestamp` and `sign` query parameters for a signed payload."""
    if payload.signature is None:
        return endpoint
    sep = "&" if "?" in endpoint else "?"
    sign = quote(payload.signature, safe="")
    return f"{endpoint}{sep}timestamp={payload.signed_timestamp}&sign={sign}"


def send(
    endpoint: str,
    secret: str | None,
    message: str,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    session: requests.Session | None = None,
) -> None:
    """Posts a text notification to the webhook.

    Args:
        endpoint (str): The webhook URL.
        secret (str | None): Signing secret; unsigned when empty.
        message (str): The text content.
        timeout (float): Seconds the request may take.
        session (requests.Session | None): Session to send with.

    Raises:
        DeliveryFailure: If the response status is not 200.
        TransportFailure: If the request fails before a response arrives.
    """
    payload = build_payload(message, secret)
    url = signed_url(endpoint, payload)
    poster = session or requests

    try:
        response = poster.post(
            url,
            json=payload.body(),
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise TransportFailure(e) from e

    if response.status_code != 200:
        raise DeliveryFailure(response.status_code, response.text)


class WebhookNotifier:
    """Sends notifications to one configured endpoint.

    Attributes:
        endpoint (str): The webhook URL.
        secret (str | None): Signing secret.
        timeout (float): Seconds each POST may take.
        session (requests.Session): Reused HTTP session.
    """

    def __init__(
        self,
        endpoint: str,
        secret: str | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.endpoint = endpoint
        self.secret = secret
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, message: str) -> None:
        """Posts `message`; raises NotificationError on failure."""
        send(self.endpoint, self.secret, message, self.timeout, self.session)
